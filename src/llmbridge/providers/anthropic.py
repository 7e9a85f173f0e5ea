"""Anthropic Messages API provider; requests pass through in canonical form."""

from typing import Any

import httpx

from llmbridge.core.interface.config import ApiSettings, ProviderConfig
from llmbridge.core.interface.transpilers.anthropic import AnthropicTranspiler
from llmbridge.core.streaming.anthropic import AnthropicStreamDecoder
from llmbridge.core.usage import UsageTracker
from llmbridge.providers.base import HTTPProvider

DEFAULT_BASE_URL = "https://api.anthropic.com"
API_VERSION = "2023-06-01"


class AnthropicProvider(HTTPProvider):
    """Talks to ``POST /v1/messages``; streaming sets ``stream: true``."""

    name = "Claude"
    vendor = "anthropic"

    def __init__(
        self,
        config: ProviderConfig,
        *,
        usage_tracker: UsageTracker | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(config, usage_tracker=usage_tracker, client=client)
        self.transpiler = AnthropicTranspiler()

    @property
    def base_url(self) -> str:
        return (self.config.api_base or DEFAULT_BASE_URL).rstrip("/")

    def _build_request(
        self,
        settings: ApiSettings,
        body: dict[str, Any],
        api_key: str,
        *,
        streaming: bool,
    ) -> httpx.Request:
        headers = {
            "x-api-key": api_key,
            "anthropic-version": API_VERSION,
            "content-type": "application/json",
        }
        if streaming:
            headers["accept"] = "text/event-stream"
        return self._http().build_request(
            "POST", f"{self.base_url}/v1/messages", headers=headers, json=body
        )

    def _new_stream_decoder(self, settings: ApiSettings) -> AnthropicStreamDecoder:
        return AnthropicStreamDecoder()
