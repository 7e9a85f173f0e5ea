"""Anthropic transpiler — the canonical model already mirrors the Messages API.

Key differences from the canonical model:
- The system prompt is a separate top-level parameter.
- Consecutive same-role messages are merged into one turn.
- Response content may include block types the canonical model does not
  carry (e.g. ``thinking``); those are dropped.
"""

import logging
from typing import Any

from llmbridge.core.interface.config import ApiSettings
from llmbridge.core.interface.models import Message, ModelResponse, ToolDefinition

logger = logging.getLogger(__name__)

_KNOWN_BLOCK_TYPES = frozenset({"text", "image", "tool_use", "tool_result"})


class AnthropicTranspiler:
    """Converts between the canonical model and the Anthropic Messages API."""

    def to_provider(
        self,
        system_prompt: str | None,
        messages: list[Message],
        tools: list[ToolDefinition] | None,
        settings: ApiSettings,
        *,
        stream: bool = False,
    ) -> dict[str, Any]:
        """Build a Messages API request body.

        Streaming and non-streaming share one endpoint; only ``stream`` differs.
        """
        body: dict[str, Any] = {
            "model": settings.model,
            "max_tokens": settings.max_tokens,
            "temperature": settings.temperature,
        }
        if system_prompt:
            body["system"] = system_prompt

        raw_messages = [m.model_dump(mode="json", exclude_none=True) for m in messages]
        body["messages"] = _merge_consecutive_roles(raw_messages)

        if tools:
            body["tools"] = [t.model_dump(mode="json") for t in tools]
        body["stream"] = stream
        return body

    def from_provider(self, response: dict[str, Any]) -> ModelResponse:
        """Convert a Messages API response body into a :class:`ModelResponse`.

        Raises:
            ValidationError: if the body does not have the expected shape.
        """
        content: list[dict[str, Any]] = []
        raw = response.get("content") or []
        if not isinstance(raw, list):
            # let validation reject the shape
            return ModelResponse.model_validate(response)
        for block in raw:
            if isinstance(block, dict) and block.get("type") in _KNOWN_BLOCK_TYPES:
                content.append(block)
            else:
                logger.debug("Dropping unsupported content block: %r", block)
        return ModelResponse.model_validate({**response, "content": content})


def _merge_consecutive_roles(messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Merge consecutive messages with the same role, keeping block order."""
    merged: list[dict[str, Any]] = []
    for msg in messages:
        if merged and merged[-1]["role"] == msg["role"]:
            merged[-1] = {
                "role": msg["role"],
                "content": [*merged[-1]["content"], *msg["content"]],
            }
        else:
            merged.append(msg)
    return merged
