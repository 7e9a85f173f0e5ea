"""``llmbridge providers`` — list supported providers."""

from __future__ import annotations

import click

from llmbridge.cli_commands._output import print_providers_table
from llmbridge.core.interface.config import get_settings
from llmbridge.providers.factory import SUPPORTED_PROVIDERS


@click.command()
def providers() -> None:
    """List supported providers and their configuration status."""
    print_providers_table(SUPPORTED_PROVIDERS, get_settings())
