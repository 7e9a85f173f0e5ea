"""Gemini generateContent provider; requests and responses are translated."""

from typing import Any

import httpx

from llmbridge.core.interface.config import ApiSettings, ProviderConfig
from llmbridge.core.interface.transpilers.gemini import GeminiTranspiler, ToolCallRegistry
from llmbridge.core.streaming.gemini import GeminiStreamDecoder
from llmbridge.core.usage import UsageTracker
from llmbridge.providers.base import HTTPProvider

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com"


class GeminiProvider(HTTPProvider):
    """Talks to ``models/{model}:generateContent`` and ``:streamGenerateContent``.

    The tool-call side tables live on the transpiler and last as long as
    this instance, so a conversation must keep using the same provider for
    tool results to resolve their function names.
    """

    name = "Gemini"
    vendor = "gemini"

    def __init__(
        self,
        config: ProviderConfig,
        *,
        usage_tracker: UsageTracker | None = None,
        client: httpx.AsyncClient | None = None,
        registry: ToolCallRegistry | None = None,
    ) -> None:
        super().__init__(config, usage_tracker=usage_tracker, client=client)
        self.transpiler: GeminiTranspiler = GeminiTranspiler(registry)

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
        if streaming:
            action = "streamGenerateContent"
            params = {"alt": "sse", "key": api_key}
        else:
            action = "generateContent"
            params = {"key": api_key}
        url = f"{self.base_url}/v1beta/models/{settings.model}:{action}"
        return self._http().build_request(
            "POST", url, params=params, headers={"content-type": "application/json"}, json=body
        )

    def _new_stream_decoder(self, settings: ApiSettings) -> GeminiStreamDecoder:
        return GeminiStreamDecoder(self.transpiler, settings.model)
