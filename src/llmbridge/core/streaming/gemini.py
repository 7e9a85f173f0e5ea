"""Gemini stream decoder.

``streamGenerateContent?alt=sse`` sends one complete ``GenerateContentResponse``
per ``data:`` line. Each chunk is decoded independently and re-expressed as
canonical events: every text part becomes its own start/delta/stop block and
every function call becomes a tool-use block whose arguments arrive in a
single ``input_json_delta``.

Some deployments ignore ``alt=sse`` and return one (possibly
pretty-printed) JSON document. When no chunk could be decoded by the end of
the stream, the buffered lines are parsed as a whole response and replayed
as a single chunk.
"""

import json
import logging
from uuid import uuid4

from pydantic import ValidationError

from llmbridge.core.interface.events import (
    ContentBlockDeltaEvent,
    ContentBlockStartEvent,
    ContentBlockStopEvent,
    InputJsonDelta,
    MessageDelta,
    MessageDeltaEvent,
    MessageStartEvent,
    MessageStopEvent,
    StreamEvent,
    TextDelta,
)
from llmbridge.core.interface.models import ModelResponse, TextBlock, ToolUseBlock, Usage
from llmbridge.core.interface.transpilers.gemini import (
    GeminiResponse,
    GeminiTranspiler,
    map_finish_reason,
)
from llmbridge.core.streaming.sse import strip_field

logger = logging.getLogger(__name__)


def _chunk_payload(line: str) -> str | None:
    data = strip_field(line, "data")
    if data is not None:
        return data
    if line.startswith("{"):
        return line
    return None


class GeminiStreamDecoder:
    """Line-fed decoder for ``streamGenerateContent``.

    Function calls are registered with the transpiler's side tables as they
    are decoded. Within one stream, a function call without its own thought
    signature inherits the last one seen.
    """

    def __init__(self, transpiler: GeminiTranspiler, model: str | None = None) -> None:
        self._transpiler = transpiler
        self._model = model
        self._message_id = f"gemini_{uuid4().hex}"
        self._raw_lines: list[str] = []
        self._next_index = 0
        self._started = False
        self._saw_tool_use = False
        self._saw_delta = False
        self._finished = False
        self._last_signature: str | None = None
        self._usage: Usage | None = None

    @property
    def usage(self) -> Usage | None:
        """Usage from the last chunk that carried ``usageMetadata``."""
        return self._usage

    def feed_line(self, line: str) -> list[StreamEvent]:
        line = line.rstrip("\r\n")
        if not line.strip():
            return []
        self._raw_lines.append(line)

        payload = _chunk_payload(line.strip())
        if payload is None:
            return []
        try:
            chunk = self._transpiler.parse_chunk(payload)
        except ValidationError:
            logger.debug("Skipping malformed Gemini chunk: %.200s", payload)
            return []
        return self._process_chunk(chunk)

    def finish(self) -> list[StreamEvent]:
        """Emit the closing events once the transport is exhausted."""
        if self._finished:
            return []
        self._finished = True

        events: list[StreamEvent] = []
        if not self._started:
            response = self._parse_buffered_response()
            if response is None:
                return []
            logger.debug("No stream chunks decoded; replaying buffered response")
            events.extend(self._process_chunk(response))

        if not self._saw_delta:
            events.append(self._message_delta(None))
        events.append(MessageStopEvent())
        return events

    # -- internals -------------------------------------------------------------

    def _parse_buffered_response(self) -> GeminiResponse | None:
        for separator in ("", "\n"):
            try:
                return self._transpiler.parse_chunk(separator.join(self._raw_lines))
            except ValidationError:
                continue
        if self._raw_lines:
            logger.debug("Buffered Gemini response could not be decoded either")
        return None

    def _process_chunk(self, chunk: GeminiResponse) -> list[StreamEvent]:
        events: list[StreamEvent] = []
        if not self._started:
            self._started = True
            start = ModelResponse(id=self._message_id, model=chunk.model_version or self._model)
            events.append(MessageStartEvent(message=start))

        if chunk.usage_metadata is not None:
            self._usage = chunk.usage_metadata.to_usage()

        for part in chunk.parts or []:
            if part.thought:
                continue
            if part.text:
                events.extend(self._text_block(part.text))
            elif part.function_call is not None:
                self._last_signature = part.thought_signature or self._last_signature
                block = self._transpiler.register_function_call(
                    part.function_call, self._last_signature
                )
                events.extend(self._tool_use_block(block))

        candidate = chunk.first_candidate
        if candidate is not None and candidate.finish_reason:
            events.append(self._message_delta(candidate.finish_reason))
        return events

    def _text_block(self, text: str) -> list[StreamEvent]:
        index = self._claim_index()
        return [
            ContentBlockStartEvent(index=index, content_block=TextBlock(text="")),
            ContentBlockDeltaEvent(index=index, delta=TextDelta(text=text)),
            ContentBlockStopEvent(index=index),
        ]

    def _tool_use_block(self, block: ToolUseBlock) -> list[StreamEvent]:
        self._saw_tool_use = True
        index = self._claim_index()
        stub = ToolUseBlock(id=block.id, name=block.name, input={})
        return [
            ContentBlockStartEvent(index=index, content_block=stub),
            ContentBlockDeltaEvent(
                index=index, delta=InputJsonDelta(partial_json=json.dumps(block.input))
            ),
            ContentBlockStopEvent(index=index),
        ]

    def _message_delta(self, finish_reason: str | None) -> MessageDeltaEvent:
        self._saw_delta = True
        stop_reason = "tool_use" if self._saw_tool_use else map_finish_reason(finish_reason)
        return MessageDeltaEvent(delta=MessageDelta(stop_reason=stop_reason), usage=self._usage)

    def _claim_index(self) -> int:
        index = self._next_index
        self._next_index += 1
        return index
