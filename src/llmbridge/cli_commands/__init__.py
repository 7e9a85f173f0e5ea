"""CLI subcommand registration."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register all subcommands on the CLI group."""
    from llmbridge.cli_commands.providers import providers
    from llmbridge.cli_commands.send import send

    cli.add_command(send)
    cli.add_command(providers)
