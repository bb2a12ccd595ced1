"""vaultstack config command - List forwarded configuration."""

from __future__ import annotations

import os

import click

from vaultstack_cli.output import info, print_table

MASK = "****"


@click.command()
@click.option(
    "--show-values",
    is_flag=True,
    default=False,
    help="Print values instead of masking them.",
)
def config(show_values: bool) -> None:
    """List the CONFIG_ entries forwarded to the container.

    Each CONFIG_<KEY> variable reaches the container as <KEY>. Values often
    hold secrets (admin token, SMTP password) and are masked by default.

    Examples:

        vaultstack config

        vaultstack config --show-values
    """
    from vaultstack_core import extract_configuration

    digest = extract_configuration(os.environ)
    if not digest:
        info("No CONFIG_ variables set")
        return

    rows = [[key, value if show_values else MASK] for key, value in sorted(digest.items())]
    print_table(["Key", "Value"], rows, title="Forwarded configuration")
