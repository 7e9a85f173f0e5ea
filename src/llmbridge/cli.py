"""llmbridge CLI entrypoint."""

from __future__ import annotations

import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from llmbridge import __version__
from llmbridge.core.interface.config import get_settings
from llmbridge.utils.telemetry import configure_telemetry


@click.group()
@click.version_option(version=__version__, prog_name="llmbridge")
@click.option("--verbose", "-v", is_flag=True, help="Log provider activity at DEBUG level.")
@click.option("--trace", is_flag=True, help="Print provider-call spans to stdout.")
def main(verbose: bool, trace: bool) -> None:
    """llmbridge — talk to Anthropic and Gemini through one canonical model."""
    settings = get_settings()
    level = "DEBUG" if verbose else settings.log_level.upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )

    if trace or settings.otlp_endpoint:
        try:
            configure_telemetry(export_to_console=trace, otlp_endpoint=settings.otlp_endpoint)
        except ImportError as exc:
            raise click.ClickException(str(exc)) from exc


# Register subcommands
from llmbridge.cli_commands import register_commands  # noqa: E402

register_commands(main)

if __name__ == "__main__":
    main()
