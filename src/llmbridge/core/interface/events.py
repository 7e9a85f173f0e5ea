"""Canonical stream events.

Every provider's streaming call produces these events, in this order::

    message_start
    (content_block_start, content_block_delta*, content_block_stop)*
    message_delta
    message_stop

The shapes match the Anthropic SSE payloads, so :func:`parse_stream_event`
can decode Anthropic ``data:`` payloads directly.
"""

import logging
from typing import Annotated, Literal

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from llmbridge.core.interface.models import ContentBlock, ModelResponse, Usage

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Deltas
# ---------------------------------------------------------------------------


class TextDelta(BaseModel):
    """Incremental text for a text block."""

    type: Literal["text_delta"] = "text_delta"
    text: str = ""


class InputJsonDelta(BaseModel):
    """Incremental JSON for a tool-use block's input."""

    type: Literal["input_json_delta"] = "input_json_delta"
    partial_json: str = ""


ContentDelta = Annotated[TextDelta | InputJsonDelta, Field(discriminator="type")]


class MessageDelta(BaseModel):
    stop_reason: str | None = None
    stop_sequence: str | None = None


class StreamError(BaseModel):
    type: str = ""
    message: str = ""


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


class MessageStartEvent(BaseModel):
    type: Literal["message_start"] = "message_start"
    message: ModelResponse


class ContentBlockStartEvent(BaseModel):
    type: Literal["content_block_start"] = "content_block_start"
    index: int
    content_block: ContentBlock


class ContentBlockDeltaEvent(BaseModel):
    type: Literal["content_block_delta"] = "content_block_delta"
    index: int
    delta: ContentDelta


class ContentBlockStopEvent(BaseModel):
    type: Literal["content_block_stop"] = "content_block_stop"
    index: int


class MessageDeltaEvent(BaseModel):
    type: Literal["message_delta"] = "message_delta"
    delta: MessageDelta = Field(default_factory=MessageDelta)
    usage: Usage | None = None


class MessageStopEvent(BaseModel):
    type: Literal["message_stop"] = "message_stop"


class PingEvent(BaseModel):
    """Keep-alive sent by the Anthropic API."""

    type: Literal["ping"] = "ping"


class ErrorEvent(BaseModel):
    """An error reported in-band by the Anthropic API."""

    type: Literal["error"] = "error"
    error: StreamError = Field(default_factory=StreamError)


StreamEvent = Annotated[
    MessageStartEvent
    | ContentBlockStartEvent
    | ContentBlockDeltaEvent
    | ContentBlockStopEvent
    | MessageDeltaEvent
    | MessageStopEvent
    | PingEvent
    | ErrorEvent,
    Field(discriminator="type"),
]

_stream_event_adapter: TypeAdapter[StreamEvent] = TypeAdapter(StreamEvent)


def parse_stream_event(data: str) -> StreamEvent | None:
    """Decode one SSE ``data`` payload into a :data:`StreamEvent`.

    Returns ``None`` for empty payloads, invalid JSON and event types the
    canonical model does not know (e.g. ``thinking`` blocks).
    """
    if not data or not data.strip():
        return None
    try:
        return _stream_event_adapter.validate_json(data)
    except ValidationError as exc:
        logger.debug("Skipping undecodable stream event: %s", exc.errors()[0].get("msg", exc))
        return None
