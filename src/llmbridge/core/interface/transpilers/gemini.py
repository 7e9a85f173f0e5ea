"""Gemini transpiler — maps the canonical model to ``generateContent``.

Key differences from the canonical model:
- Role "assistant" becomes "model".
- Content blocks are flattened into ``parts``; tool calls become
  ``functionCall`` parts and tool results ``functionResponse`` parts.
- Gemini assigns no ids to function calls and does not echo the function
  name on results, so synthetic ids are generated and a side table maps
  each id back to its function name.
- Some models attach an opaque ``thoughtSignature`` to function calls that
  must be echoed on later turns; a second side table keeps those.
- Tool schemas lose the JSON Schema keywords Gemini rejects.
"""

import logging
import threading
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from llmbridge.core.interface.config import ApiSettings
from llmbridge.core.interface.models import (
    ContentBlock,
    ImageBlock,
    Message,
    ModelResponse,
    TextBlock,
    ToolDefinition,
    ToolResultBlock,
    ToolUseBlock,
    Usage,
)

logger = logging.getLogger(__name__)

UNKNOWN_FUNCTION_NAME = "unknown"

# JSON Schema keywords Gemini function declarations reject
UNSUPPORTED_SCHEMA_FIELDS = frozenset({"additionalProperties", "$schema"})

# Keywords whose value maps arbitrary names to sub-schemas
_SCHEMA_MAPS = frozenset({"properties", "patternProperties", "$defs", "definitions"})

_FINISH_REASONS = {
    "STOP": "end_turn",
    "MAX_TOKENS": "max_tokens",
}


# ---------------------------------------------------------------------------
# Wire models: responses and stream chunks
# ---------------------------------------------------------------------------


class _GeminiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class GeminiFunctionCall(_GeminiModel):
    name: str
    args: dict[str, Any] | None = None


class GeminiPart(_GeminiModel):
    text: str | None = None
    thought: bool | None = None
    function_call: GeminiFunctionCall | None = None
    thought_signature: str | None = None


class GeminiContent(_GeminiModel):
    role: str | None = None
    parts: list[GeminiPart] | None = None


class GeminiCandidate(_GeminiModel):
    content: GeminiContent | None = None
    finish_reason: str | None = None


class GeminiUsageMetadata(_GeminiModel):
    prompt_token_count: int = 0
    candidates_token_count: int = 0
    total_token_count: int = 0

    def to_usage(self) -> Usage:
        return Usage(
            input_tokens=self.prompt_token_count,
            output_tokens=self.candidates_token_count,
        )


class GeminiResponse(_GeminiModel):
    candidates: list[GeminiCandidate] | None = None
    usage_metadata: GeminiUsageMetadata | None = None
    model_version: str | None = None

    @property
    def first_candidate(self) -> GeminiCandidate | None:
        return self.candidates[0] if self.candidates else None

    @property
    def parts(self) -> list[GeminiPart] | None:
        candidate = self.first_candidate
        if candidate is None or candidate.content is None:
            return None
        return candidate.content.parts


# ---------------------------------------------------------------------------
# Side tables
# ---------------------------------------------------------------------------


class ToolCallRegistry:
    """Synthetic tool-call ids mapped to function names and thought signatures.

    Lives as long as the owning provider; never persisted.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._names: dict[str, str] = {}
        self._signatures: dict[str, str] = {}

    @staticmethod
    def new_call_id() -> str:
        return f"gemini_call_{uuid4().hex}"

    def remember(self, call_id: str, name: str, signature: str | None = None) -> None:
        with self._lock:
            self._names[call_id] = name
            if signature is not None:
                self._signatures[call_id] = signature

    def name_for(self, call_id: str) -> str:
        with self._lock:
            return self._names.get(call_id, UNKNOWN_FUNCTION_NAME)

    def signature_for(self, call_id: str) -> str | None:
        with self._lock:
            return self._signatures.get(call_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._names)


# ---------------------------------------------------------------------------
# Transpiler
# ---------------------------------------------------------------------------


class GeminiTranspiler:
    """Converts between the canonical model and Gemini's generateContent format."""

    def __init__(self, registry: ToolCallRegistry | None = None) -> None:
        self.registry = registry or ToolCallRegistry()

    def to_provider(
        self,
        system_prompt: str | None,
        messages: list[Message],
        tools: list[ToolDefinition] | None,
        settings: ApiSettings,
        *,
        stream: bool = False,
    ) -> dict[str, Any]:
        """Build a generateContent request body.

        ``stream`` is accepted for symmetry; Gemini selects streaming by
        endpoint rather than by body field.
        """
        body: dict[str, Any] = {"contents": self._convert_messages(messages)}

        if system_prompt:
            body["systemInstruction"] = {"parts": [{"text": system_prompt}]}

        declarations = convert_tool_definitions(tools)
        if declarations:
            body["tools"] = declarations

        body["generationConfig"] = {
            "temperature": settings.temperature,
            "maxOutputTokens": settings.max_tokens,
        }
        return body

    def from_provider(self, response: dict[str, Any]) -> ModelResponse:
        """Convert a generateContent response body into a :class:`ModelResponse`."""
        return self.convert_response(GeminiResponse.model_validate(response))

    @staticmethod
    def parse_chunk(data: str) -> GeminiResponse:
        """Decode one JSON chunk; raises ``ValidationError`` when malformed."""
        return GeminiResponse.model_validate_json(data)

    def register_function_call(
        self, call: GeminiFunctionCall, signature: str | None
    ) -> ToolUseBlock:
        """Assign a synthetic id to *call* and record it in the side tables."""
        call_id = self.registry.new_call_id()
        self.registry.remember(call_id, call.name, signature)
        return ToolUseBlock(id=call_id, name=call.name, input=call.args or {})

    def convert_response(self, response: GeminiResponse) -> ModelResponse:
        """Convert a parsed response, registering every function call it contains.

        Within one response, a function call without its own thought
        signature inherits the last one seen.
        """
        candidate = response.first_candidate
        content: list[ContentBlock] = []
        last_signature: str | None = None

        for part in response.parts or []:
            if part.thought:
                continue
            if part.text:
                content.append(TextBlock(text=part.text))
            elif part.function_call is not None:
                last_signature = part.thought_signature or last_signature
                content.append(self.register_function_call(part.function_call, last_signature))

        has_tool_use = any(isinstance(block, ToolUseBlock) for block in content)
        finish_reason = candidate.finish_reason if candidate else None
        return ModelResponse(
            id=f"gemini_{uuid4().hex}",
            model=response.model_version,
            content=content,
            stop_reason="tool_use" if has_tool_use else map_finish_reason(finish_reason),
            usage=response.usage_metadata.to_usage() if response.usage_metadata else None,
        )

    # -- request translation -------------------------------------------------

    def _convert_messages(self, messages: list[Message]) -> list[dict[str, Any]]:
        contents: list[dict[str, Any]] = []
        for message in messages:
            role = "model" if message.role == "assistant" else "user"
            parts: list[dict[str, Any]] = []
            for block in message.content:
                parts.extend(self._block_to_parts(block))
            if parts:
                contents.append({"role": role, "parts": parts})
        return contents

    def _block_to_parts(self, block: ContentBlock) -> list[dict[str, Any]]:
        if isinstance(block, TextBlock):
            return [{"text": block.text}]
        if isinstance(block, ImageBlock):
            return [_inline_data(block)]
        if isinstance(block, ToolUseBlock):
            return [self._function_call_part(block)]
        return self._function_response_parts(block)

    def _function_call_part(self, block: ToolUseBlock) -> dict[str, Any]:
        self.registry.remember(block.id, block.name)
        part: dict[str, Any] = {"functionCall": {"name": block.name, "args": block.input}}
        signature = self.registry.signature_for(block.id)
        if signature is not None:
            part["thoughtSignature"] = signature
        return part

    def _function_response_parts(self, block: ToolResultBlock) -> list[dict[str, Any]]:
        name = self.registry.name_for(block.tool_use_id)
        if name == UNKNOWN_FUNCTION_NAME:
            logger.debug("No function name recorded for tool call %s", block.tool_use_id)
        parts: list[dict[str, Any]] = [
            {"functionResponse": {"name": name, "response": {"result": block.text}}}
        ]
        # functionResponse cannot nest media; images follow as their own parts
        parts.extend(_inline_data(image) for image in block.images)
        return parts


def _inline_data(image: ImageBlock) -> dict[str, Any]:
    return {"inlineData": {"mimeType": image.media_type, "data": image.data}}


def convert_tool_definitions(tools: list[ToolDefinition] | None) -> list[dict[str, Any]] | None:
    """Wrap tool definitions in a single ``functionDeclarations`` entry."""
    if not tools:
        return None
    declarations = [
        {
            "name": tool.name,
            "description": tool.description,
            "parameters": strip_unsupported_schema_fields(tool.input_schema),
        }
        for tool in tools
    ]
    return [{"functionDeclarations": declarations}]


def strip_unsupported_schema_fields(schema: Any) -> Any:
    """Return a deep copy of *schema* without keywords Gemini rejects.

    Keywords are removed at every depth; ``properties``-style maps keep all
    of their names (a property may legitimately be called
    ``additionalProperties``) while their sub-schemas are stripped.
    """
    if isinstance(schema, list):
        return [strip_unsupported_schema_fields(item) for item in schema]
    if not isinstance(schema, dict):
        return schema

    stripped: dict[str, Any] = {}
    for key, value in schema.items():
        if key in UNSUPPORTED_SCHEMA_FIELDS:
            continue
        if key in _SCHEMA_MAPS and isinstance(value, dict):
            stripped[key] = {
                name: strip_unsupported_schema_fields(sub) for name, sub in value.items()
            }
        else:
            stripped[key] = strip_unsupported_schema_fields(value)
    return stripped


def map_finish_reason(finish_reason: str | None) -> str:
    """Map a Gemini finish reason to a canonical stop reason."""
    return _FINISH_REASONS.get(finish_reason or "", "end_turn")
