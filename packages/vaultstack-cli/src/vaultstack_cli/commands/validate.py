"""vaultstack validate command - Check settings without assembling."""

from __future__ import annotations

import os

import click

from vaultstack_cli.output import info, success, warning


@click.command()
def validate() -> None:
    """Validate settings read from the environment.

    Fails fast on a malformed domain name, image tag or zone count, exactly
    as an assembly would before requesting its first resource.

    Examples:

        vaultstack validate

        VAULTWARDEN_DOMAIN_NAME=vault.example.com vaultstack validate
    """
    from vaultstack_core import AssemblySettings, ConfigurationError

    from vaultstack_cli.errors import handle_core_error

    try:
        settings = AssemblySettings.from_environment(os.environ)
    except ConfigurationError as e:
        handle_core_error(e, "Validation")

    success("Settings valid")
    info(f"Base version: {settings.base_version}")
    info(f"Availability zones: {settings.max_azs}")
    info(f"Forwarded configuration keys: {len(settings.configuration)}")
    if settings.tls_enabled:
        info(f"Domain: {settings.domain_name} (TLS)")
    else:
        warning("No domain name set; the endpoint will be plaintext HTTP")
