"""Transpiler protocol — converts between the canonical model and provider formats.

Each provider has a concrete transpiler implementing bidirectional
conversion: canonical request -> provider payload and provider response ->
:class:`ModelResponse`.
"""

from typing import Any, Protocol

from llmbridge.core.interface.config import ApiSettings
from llmbridge.core.interface.models import Message, ModelResponse, ToolDefinition


class Transpiler(Protocol):
    """Protocol for provider-specific request/response transpilers."""

    def to_provider(
        self,
        system_prompt: str | None,
        messages: list[Message],
        tools: list[ToolDefinition] | None,
        settings: ApiSettings,
        *,
        stream: bool = False,
    ) -> dict[str, Any]:
        """Convert a canonical request into a provider-specific JSON body."""
        ...

    def from_provider(self, response: dict[str, Any]) -> ModelResponse:
        """Convert a provider's non-streaming response body into a :class:`ModelResponse`."""
        ...
