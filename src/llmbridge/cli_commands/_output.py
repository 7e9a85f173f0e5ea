"""Shared CLI output formatters."""

from __future__ import annotations

from rich.console import Console
from rich.table import Table

from llmbridge.core.interface.config import DEFAULT_MODELS, BridgeSettings  # noqa: TC001
from llmbridge.core.usage import UsageTracker  # noqa: TC001

console = Console()

_DISPLAY_NAMES = {"anthropic": "Claude", "gemini": "Gemini"}


def print_text(text: str, *, end: str = "\n") -> None:
    """Print model output verbatim, without rich markup or highlighting."""
    console.print(text, end=end, markup=False, highlight=False, soft_wrap=True)


def print_usage_table(tracker: UsageTracker) -> None:
    """Pretty-print token usage and the estimated cost."""
    table = Table(title="Usage")
    table.add_column("Input tokens", justify="right")
    table.add_column("Output tokens", justify="right")
    table.add_column("Total", justify="right")
    table.add_column("Estimated cost", justify="right", style="green")

    table.add_row(
        str(tracker.input_tokens),
        str(tracker.output_tokens),
        str(tracker.total_tokens),
        tracker.formatted_cost,
    )
    console.print(table)


def print_providers_table(names: tuple[str, ...], settings: BridgeSettings) -> None:
    """Pretty-print supported providers and whether each is configured."""
    table = Table(title="Providers")
    table.add_column("Provider", style="cyan")
    table.add_column("Name")
    table.add_column("Default model")
    table.add_column("API key")

    for name in names:
        configured = settings.provider_config(name).api_key is not None
        marker = " (default)" if name == settings.provider else ""
        table.add_row(
            name + marker,
            _DISPLAY_NAMES.get(name, name),
            settings.model or DEFAULT_MODELS[name],
            "[green]set[/green]" if configured else "[red]missing[/red]",
        )

    console.print(table)
