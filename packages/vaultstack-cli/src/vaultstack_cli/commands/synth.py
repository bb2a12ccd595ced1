"""vaultstack synth command - Assemble the topology and write its manifest.

Uses the in-memory engine: nothing is created in a cloud account. The
manifest lists every resource request in creation order, the authorization
rules, identity grants, outputs and the certificate state.
"""

from __future__ import annotations

import os
import re
from collections.abc import Callable
from pathlib import Path

import click
from vaultstack_core.constants import DEFAULT_VALIDATION_POLL_SECONDS
from vaultstack_core.engine import DEFAULT_ACCOUNT, DEFAULT_REGION
from vaultstack_core.models import ACCOUNT_ID_PATTERN, REGION_PATTERN

from vaultstack_cli.output import error, info, print_table, success, warning

DEFAULT_OUTPUT_DIR = ".vaultstack"


def _matching(pattern: str, label: str) -> Callable[[click.Context, click.Parameter, str], str]:
    """Option callback rejecting values that do not match a pattern."""

    def callback(ctx: click.Context, param: click.Parameter, value: str) -> str:
        if not re.match(pattern, value):
            raise click.BadParameter(f"'{value}' is not a valid {label}")
        return value

    return callback


@click.command()
@click.option(
    "--account",
    default=DEFAULT_ACCOUNT,
    callback=_matching(ACCOUNT_ID_PATTERN, "account id"),
    help=f"Account id to synthesize for [default: {DEFAULT_ACCOUNT}]",
)
@click.option(
    "--region",
    default=DEFAULT_REGION,
    callback=_matching(REGION_PATTERN, "region"),
    help=f"Region to synthesize for [default: {DEFAULT_REGION}]",
)
@click.option(
    "-o",
    "--output",
    "output_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Manifest path [default: .vaultstack/topology.<format>]",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["json", "yaml"]),
    default="json",
    help="Manifest format [default: json]",
)
@click.option(
    "--wait",
    is_flag=True,
    default=False,
    help="Block until the certificate is validated instead of exiting.",
)
@click.option(
    "--poll-seconds",
    type=click.FloatRange(min=0),
    default=DEFAULT_VALIDATION_POLL_SECONDS,
    help=f"Seconds between checks with --wait [default: {DEFAULT_VALIDATION_POLL_SECONDS:g}]",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    help="Log level [default: WARNING]",
)
@click.option("--json-logs", is_flag=True, default=False, help="Emit logs as JSON.")
def synth(
    account: str,
    region: str,
    output_path: str | None,
    output_format: str,
    wait: bool,
    poll_seconds: float,
    log_level: str,
    json_logs: bool,
) -> None:
    """Assemble the topology and write its manifest.

    Settings are read from the environment. Without VAULTWARDEN_DOMAIN_NAME
    the endpoint is plaintext HTTP. With it, the certificate stays pending
    until the DNS records printed below are published: synth then exits
    with code 3, or keeps polling with --wait.

    Examples:

        vaultstack synth

        VAULTWARDEN_DOMAIN_NAME=vault.example.com vaultstack synth --wait

        vaultstack synth --account 210987654321 --region us-east-1 -o out/topology.json
    """
    from pydantic import ValidationError as PydanticValidationError
    from rich.markup import escape
    from vaultstack_core import (
        AssemblySettings,
        InMemoryEngine,
        TopologyAssembler,
        VaultstackError,
        configure_logging,
    )

    from vaultstack_cli.errors import (
        EXIT_PENDING_VALIDATION,
        CLIError,
        format_pydantic_error,
        handle_core_error,
        handle_permission_error,
    )

    configure_logging(log_level=log_level, json_format=json_logs)
    output = Path(output_path or f"{DEFAULT_OUTPUT_DIR}/topology.{output_format}")

    try:
        settings = AssemblySettings.from_environment(os.environ)
        engine = InMemoryEngine(account, region)
        topology = TopologyAssembler(engine, settings).assemble()

        if not settings.tls_enabled:
            warning(
                "No domain name set (VAULTWARDEN_DOMAIN_NAME); "
                "the endpoint is served over plaintext HTTP"
            )

        if not topology.is_complete:
            warning(f"Certificate for {settings.domain_name} is pending DNS validation")
            info("Publish these records to complete the assembly:")
            print_table(
                ["Name", "Type", "Value"],
                [[r.name, r.record_type, r.value] for r in topology.pending_validation_records],
            )
            if wait:
                info(f"Waiting for validation, checking every {poll_seconds:g}s")
                topology.wait_until_complete(poll_seconds=poll_seconds)

        manifest = topology.to_manifest()
        manifest.write(output, output_format)  # type: ignore[arg-type]
    except VaultstackError as e:
        handle_core_error(e, "Synthesis")
    except PydanticValidationError as e:
        error(escape(format_pydantic_error(e)))
        raise CLIError("Synthesis failed: invalid topology values") from None
    except PermissionError:
        handle_permission_error(str(output), "write")

    if not topology.is_complete:
        info(f"Pending manifest with {len(manifest.resources)} resources written to {output}")
        raise click.exceptions.Exit(EXIT_PENDING_VALIDATION)

    success(f"Synthesized {len(manifest.resources)} resources to {output}")
    info(f"Endpoint: {topology.endpoint_address}")
