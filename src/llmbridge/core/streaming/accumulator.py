"""Rebuild a complete :class:`ModelResponse` from canonical stream events."""

import json
import logging
from collections.abc import AsyncIterable
from dataclasses import dataclass, field

from llmbridge.core.interface.events import (
    ContentBlockDeltaEvent,
    ContentBlockStartEvent,
    ErrorEvent,
    InputJsonDelta,
    MessageDeltaEvent,
    MessageStartEvent,
    StreamError,
    StreamEvent,
    TextDelta,
)
from llmbridge.core.interface.models import (
    ContentBlock,
    ModelResponse,
    TextBlock,
    ToolUseBlock,
    Usage,
)
from llmbridge.core.streaming.anthropic import merge_usage

logger = logging.getLogger(__name__)


@dataclass
class _PendingBlock:
    block: ContentBlock
    text: list[str] = field(default_factory=list)
    partial_json: list[str] = field(default_factory=list)

    def finalize(self) -> ContentBlock:
        if isinstance(self.block, TextBlock):
            return TextBlock(text=self.block.text + "".join(self.text))
        if isinstance(self.block, ToolUseBlock):
            return self.block.model_copy(update={"input": self._tool_input(self.block)})
        return self.block

    def _tool_input(self, block: ToolUseBlock) -> dict:
        raw = "".join(self.partial_json)
        if not raw:
            return dict(block.input)
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            logger.debug("Tool input for %s is not valid JSON; using {}", block.id)
            return {}
        return parsed if isinstance(parsed, dict) else {}


class ResponseAccumulator:
    """Folds a stream of events into the response they describe.

    Content blocks are ordered by their stream index. Tool inputs are parsed
    from the concatenated ``input_json_delta`` fragments; input that does not
    parse to a JSON object becomes ``{}``.
    """

    def __init__(self) -> None:
        self._message: ModelResponse | None = None
        self._blocks: dict[int, _PendingBlock] = {}
        self._stop_reason: str | None = None
        self._stop_sequence: str | None = None
        self._usage: Usage | None = None
        self.error: StreamError | None = None

    def process(self, event: StreamEvent) -> None:
        if isinstance(event, MessageStartEvent):
            self._message = event.message
            self._usage = event.message.usage
        elif isinstance(event, ContentBlockStartEvent):
            self._blocks[event.index] = _PendingBlock(event.content_block)
        elif isinstance(event, ContentBlockDeltaEvent):
            pending = self._blocks.get(event.index)
            if pending is None:
                logger.debug("Delta for unknown block index %d", event.index)
            elif isinstance(event.delta, TextDelta):
                pending.text.append(event.delta.text)
            elif isinstance(event.delta, InputJsonDelta):
                pending.partial_json.append(event.delta.partial_json)
        elif isinstance(event, MessageDeltaEvent):
            self._stop_reason = event.delta.stop_reason or self._stop_reason
            self._stop_sequence = event.delta.stop_sequence or self._stop_sequence
            if event.usage is not None:
                self._usage = merge_usage(self._usage, event.usage)
        elif isinstance(event, ErrorEvent):
            self.error = event.error
        # content_block_stop, message_stop and ping carry nothing to fold in

    def build(self) -> ModelResponse:
        base = self._message or ModelResponse()
        content = [self._blocks[index].finalize() for index in sorted(self._blocks)]
        return base.model_copy(
            update={
                "content": content,
                "stop_reason": self._stop_reason,
                "stop_sequence": self._stop_sequence,
                "usage": self._usage,
            }
        )


async def collect_stream(events: AsyncIterable[StreamEvent]) -> ModelResponse:
    """Drain *events* and return the accumulated response."""
    accumulator = ResponseAccumulator()
    async for event in events:
        accumulator.process(event)
    return accumulator.build()
