"""Anthropic stream decoder.

The Anthropic SSE payloads already have the canonical event shapes, so
decoding is SSE framing plus :func:`parse_stream_event`. The decoder also
tracks usage: ``message_start`` carries the input tokens and
``message_delta`` the (cumulative) output tokens.
Blocks of a type the canonical model lacks are dropped whole, start
through stop.
"""

import logging

from llmbridge.core.interface.events import (
    ContentBlockDeltaEvent,
    ContentBlockStartEvent,
    ContentBlockStopEvent,
    MessageDelta,
    MessageDeltaEvent,
    MessageStartEvent,
    MessageStopEvent,
    StreamEvent,
    parse_stream_event,
)
from llmbridge.core.interface.models import Usage
from llmbridge.core.streaming.sse import SSEFrame, SSEFrameReader

logger = logging.getLogger(__name__)

_DONE = "[DONE]"


class AnthropicStreamDecoder:
    """Line-fed decoder for ``POST /v1/messages`` with ``stream: true``."""

    def __init__(self) -> None:
        self._reader = SSEFrameReader()
        self._usage: Usage | None = None
        self._started = False
        self._saw_delta = False
        self._stopped = False
        self._open_blocks: set[int] = set()

    @property
    def usage(self) -> Usage | None:
        return self._usage

    def feed_line(self, line: str) -> list[StreamEvent]:
        frame = self._reader.feed(line)
        return self._decode(frame) if frame is not None else []

    def finish(self) -> list[StreamEvent]:
        """Flush the last frame and close a stream the server cut short."""
        events: list[StreamEvent] = []
        frame = self._reader.flush()
        if frame is not None:
            events.extend(self._decode(frame))

        if self._started and not self._stopped:
            logger.debug("Stream ended without message_stop; closing it")
            if not self._saw_delta:
                events.append(
                    MessageDeltaEvent(delta=MessageDelta(stop_reason="end_turn"), usage=self._usage)
                )
            events.append(MessageStopEvent())
            self._stopped = True
        return events

    def _decode(self, frame: SSEFrame) -> list[StreamEvent]:
        if frame.data.strip() == _DONE:
            return []
        event = parse_stream_event(frame.data)
        if event is None:
            return []
        if (
            isinstance(event, ContentBlockDeltaEvent | ContentBlockStopEvent)
            and event.index not in self._open_blocks
        ):
            # the block's start was skipped (e.g. ``thinking``)
            logger.debug("Dropping %s for unopened block %d", event.type, event.index)
            return []
        self._observe(event)
        return [event]

    def _observe(self, event: StreamEvent) -> None:
        if isinstance(event, ContentBlockStartEvent):
            self._open_blocks.add(event.index)
        elif isinstance(event, ContentBlockStopEvent):
            self._open_blocks.discard(event.index)
        elif isinstance(event, MessageStartEvent):
            self._started = True
            if event.message.usage is not None:
                self._usage = event.message.usage
        elif isinstance(event, MessageDeltaEvent):
            self._saw_delta = True
            if event.usage is not None:
                self._usage = merge_usage(self._usage, event.usage)
        elif isinstance(event, MessageStopEvent):
            self._stopped = True


def merge_usage(current: Usage | None, delta: Usage) -> Usage:
    """Combine message_start usage with a message_delta update.

    Output tokens in ``message_delta`` are cumulative and replace the earlier
    count; input tokens are only replaced when the delta reports them.
    """
    input_tokens = current.input_tokens if current is not None else 0
    if delta.input_tokens > 0:
        input_tokens = delta.input_tokens
    return Usage(input_tokens=input_tokens, output_tokens=delta.output_tokens)
