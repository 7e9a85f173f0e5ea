"""``llmbridge send`` — send one prompt and print the reply."""

from __future__ import annotations

import asyncio
import sys

import click

from llmbridge.cli_commands._output import console, print_text, print_usage_table
from llmbridge.core.interface.config import ApiSettings, get_settings
from llmbridge.core.interface.events import ContentBlockDeltaEvent, TextDelta
from llmbridge.core.interface.models import Message
from llmbridge.providers.base import HTTPProvider
from llmbridge.providers.errors import BridgeError
from llmbridge.providers.factory import create_provider_from_settings


@click.command()
@click.argument("prompt")
@click.option(
    "--provider",
    "-p",
    "provider_name",
    type=click.Choice(["anthropic", "claude", "gemini", "google"], case_sensitive=False),
    default=None,
    help="Provider to use (defaults to LLMBRIDGE_PROVIDER).",
)
@click.option("--model", "-m", default=None, help="Override the model.")
@click.option("--system", "-s", "system_prompt", default=None, help="System prompt.")
@click.option("--stream", is_flag=True, help="Print the reply as it arrives.")
@click.option("--max-tokens", type=click.IntRange(min=1), default=None, help="Output token cap.")
@click.option(
    "--temperature", type=click.FloatRange(0.0, 1.0), default=None, help="Sampling temperature."
)
def send(
    prompt: str,
    provider_name: str | None,
    model: str | None,
    system_prompt: str | None,
    stream: bool,
    max_tokens: int | None,
    temperature: float | None,
) -> None:
    """Send PROMPT to a provider and print the reply with a usage summary."""
    settings = get_settings()
    name = (provider_name or settings.provider).lower()

    overrides = {
        key: value
        for key, value in (("model", model), ("max_tokens", max_tokens), ("temperature", temperature))
        if value is not None
    }
    api_settings = settings.api_settings_for(name).model_copy(update=overrides)

    llm = create_provider_from_settings(settings, name)

    try:
        asyncio.run(_send(llm, prompt, system_prompt, api_settings, stream=stream))
    except BridgeError as exc:
        console.print(f"[red]{llm.name} error:[/red] {exc}")
        sys.exit(1)

    print_usage_table(llm.usage_tracker)


async def _send(
    llm: HTTPProvider,
    prompt: str,
    system_prompt: str | None,
    settings: ApiSettings,
    *,
    stream: bool,
) -> None:
    messages = [Message.user(prompt)]
    async with llm:
        if not stream:
            response = await llm.send_message(system_prompt, messages, settings=settings)
            print_text(response.text or "")
            return

        async with llm.send_message_streaming(system_prompt, messages, settings=settings) as events:
            async for event in events:
                if isinstance(event, ContentBlockDeltaEvent) and isinstance(event.delta, TextDelta):
                    print_text(event.delta.text, end="")
        print_text("")
