"""CLI entry point for vaultstack.

Defines the main CLI group. Subcommands are loaded lazily so that
``vaultstack --help`` does not import pydantic, tenacity or the engine.
"""

from __future__ import annotations

import importlib
from typing import Any

import click
import rich_click as rclick

from vaultstack_cli import __version__
from vaultstack_cli.output import set_no_color

rclick.rich_click.TEXT_MARKUP = "markdown"
rclick.rich_click.SHOW_ARGUMENTS = True
rclick.rich_click.GROUP_ARGUMENTS_OPTIONS = True


class LazyGroup(rclick.RichGroup):
    """Group whose subcommands are imported on first lookup.

    Subcommands are given as ``"package.module:attribute"`` targets and cached
    once loaded.
    """

    def __init__(self, *args: Any, lazy_subcommands: dict[str, str], **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.lazy_subcommands = dict(lazy_subcommands)
        self._loaded: dict[str, click.Command] = {}

    def list_commands(self, ctx: click.Context) -> list[str]:
        return sorted({*super().list_commands(ctx), *self.lazy_subcommands})

    def get_command(self, ctx: click.Context, cmd_name: str) -> click.Command | None:
        eager = super().get_command(ctx, cmd_name)  # type: ignore[arg-type]
        if eager is not None:
            return eager
        target = self.lazy_subcommands.get(cmd_name)
        if target is None:
            return None
        if cmd_name not in self._loaded:
            module_path, _, attribute = target.partition(":")
            command = getattr(importlib.import_module(module_path), attribute)
            if not isinstance(command, click.Command):
                raise TypeError(f"{target} is not a click command")
            self._loaded[cmd_name] = command
        return self._loaded[cmd_name]


LAZY_COMMANDS = {
    "synth": "vaultstack_cli.commands.synth:synth",
    "validate": "vaultstack_cli.commands.validate:validate",
    "config": "vaultstack_cli.commands.config:config",
}


@click.command(cls=LazyGroup, lazy_subcommands=LAZY_COMMANDS)
@click.version_option(version=__version__, prog_name="vaultstack")
@click.option(
    "--no-color",
    is_flag=True,
    default=False,
    help="Disable colored output.",
    is_eager=True,
    expose_value=False,
    callback=lambda ctx, param, value: set_no_color(value) if value else None,
)
def cli() -> None:
    """vaultstack - Self-hosted Vaultwarden topology.

    Builds the network, image mirror, cluster, encrypted storage and public
    endpoint for a single Vaultwarden instance from environment settings.

    **Settings:**

    - `VAULTWARDEN_BASE_VERSION` - upstream image tag (default: latest)
    - `VAULTWARDEN_DOMAIN_NAME` - public domain, enables TLS
    - `VAULTWARDEN_MAX_AZS` - availability zones (default: 2)
    - `CONFIG_<KEY>` - forwarded to the container as `<KEY>`

    **Getting Started:**

    - `vaultstack validate` - Check your settings
    - `vaultstack config` - List forwarded configuration keys
    - `vaultstack synth` - Write the topology manifest
    """
    pass


if __name__ == "__main__":
    cli()
