"""Tests for the Gemini stream decoder."""

import json
from typing import Any

import pytest

from llmbridge.core.interface.events import (
    ContentBlockDeltaEvent,
    ContentBlockStartEvent,
    ContentBlockStopEvent,
    InputJsonDelta,
    MessageDeltaEvent,
    MessageStartEvent,
    MessageStopEvent,
    StreamEvent,
    TextDelta,
)
from llmbridge.core.interface.models import TextBlock, ToolUseBlock, Usage
from llmbridge.core.interface.transpilers.gemini import GeminiTranspiler
from llmbridge.core.streaming.accumulator import ResponseAccumulator
from llmbridge.core.streaming.gemini import GeminiStreamDecoder


def _chunk(
    parts: list[dict[str, Any]] | None = None,
    finish_reason: str | None = None,
    usage: tuple[int, int] | None = None,
) -> dict[str, Any]:
    candidate: dict[str, Any] = {"content": {"role": "model", "parts": parts or []}}
    if finish_reason:
        candidate["finishReason"] = finish_reason
    chunk: dict[str, Any] = {"candidates": [candidate]}
    if usage:
        chunk["usageMetadata"] = {
            "promptTokenCount": usage[0],
            "candidatesTokenCount": usage[1],
            "totalTokenCount": sum(usage),
        }
    return chunk


def _data(chunk: dict[str, Any]) -> list[str]:
    return [f"data: {json.dumps(chunk)}", ""]


def _decode(
    lines: list[str], transpiler: GeminiTranspiler | None = None
) -> tuple[GeminiStreamDecoder, list[StreamEvent]]:
    decoder = GeminiStreamDecoder(transpiler or GeminiTranspiler(), model="gemini-2.5-pro")
    events: list[StreamEvent] = []
    for line in lines:
        events.extend(decoder.feed_line(line))
    events.extend(decoder.finish())
    return decoder, events


def _assert_well_ordered(events: list[StreamEvent]) -> None:
    assert isinstance(events[0], MessageStartEvent)
    assert sum(isinstance(e, MessageStartEvent) for e in events) == 1
    assert isinstance(events[-1], MessageStopEvent)
    assert sum(isinstance(e, MessageStopEvent) for e in events) == 1

    open_index: int | None = None
    last_index = -1
    for event in events[1:-1]:
        if isinstance(event, ContentBlockStartEvent):
            assert open_index is None
            assert event.index > last_index
            open_index = last_index = event.index
        elif isinstance(event, ContentBlockDeltaEvent):
            assert event.index == open_index
        elif isinstance(event, ContentBlockStopEvent):
            assert event.index == open_index
            open_index = None
    assert open_index is None


class TestGeminiStreamDecoder:
    def test_text_stream(self) -> None:
        lines = [
            *_data(_chunk([{"text": "Hel"}])),
            *_data(_chunk([{"text": "lo"}], finish_reason="STOP", usage=(10, 2))),
        ]
        decoder, events = _decode(lines)

        _assert_well_ordered(events)
        texts = [
            e.delta.text
            for e in events
            if isinstance(e, ContentBlockDeltaEvent) and isinstance(e.delta, TextDelta)
        ]
        assert texts == ["Hel", "lo"]
        assert isinstance(events[0], MessageStartEvent)
        assert events[0].message.id.startswith("gemini_")
        delta = next(e for e in events if isinstance(e, MessageDeltaEvent))
        assert delta.delta.stop_reason == "end_turn"
        assert decoder.usage == Usage(input_tokens=10, output_tokens=2)

    def test_indices_never_reused(self) -> None:
        lines = [
            *_data(_chunk([{"text": "a"}, {"text": "b"}])),
            *_data(_chunk([{"functionCall": {"name": "f", "args": {}}}])),
            *_data(_chunk([{"text": "c"}], finish_reason="STOP")),
        ]
        _, events = _decode(lines)
        _assert_well_ordered(events)
        starts = [e.index for e in events if isinstance(e, ContentBlockStartEvent)]
        assert starts == [0, 1, 2, 3]

    def test_function_call_events(self) -> None:
        transpiler = GeminiTranspiler()
        lines = _data(
            _chunk(
                [{"functionCall": {"name": "get_levels", "args": {"floor": 2}}}],
                finish_reason="STOP",
            )
        )
        _, events = _decode(lines, transpiler)

        start = next(e for e in events if isinstance(e, ContentBlockStartEvent))
        assert isinstance(start.content_block, ToolUseBlock)
        assert start.content_block.id.startswith("gemini_call_")
        assert start.content_block.input == {}

        delta = next(e for e in events if isinstance(e, ContentBlockDeltaEvent))
        assert isinstance(delta.delta, InputJsonDelta)
        assert json.loads(delta.delta.partial_json) == {"floor": 2}

        message_delta = next(e for e in events if isinstance(e, MessageDeltaEvent))
        assert message_delta.delta.stop_reason == "tool_use"
        assert transpiler.registry.name_for(start.content_block.id) == "get_levels"

    def test_tool_use_wins_over_later_finish_reason(self) -> None:
        lines = [
            *_data(_chunk([{"functionCall": {"name": "f"}}])),
            *_data(_chunk([{"text": "done"}], finish_reason="MAX_TOKENS")),
        ]
        _, events = _decode(lines)
        delta = next(e for e in events if isinstance(e, MessageDeltaEvent))
        assert delta.delta.stop_reason == "tool_use"

    def test_max_tokens(self) -> None:
        _, events = _decode(_data(_chunk([{"text": "cut"}], finish_reason="MAX_TOKENS")))
        delta = next(e for e in events if isinstance(e, MessageDeltaEvent))
        assert delta.delta.stop_reason == "max_tokens"

    def test_usage_last_chunk_wins(self) -> None:
        lines = [
            *_data(_chunk([{"text": "a"}], usage=(10, 1))),
            *_data(_chunk([{"text": "b"}], usage=(10, 5))),
            *_data(_chunk([], finish_reason="STOP")),
        ]
        decoder, _ = _decode(lines)
        assert decoder.usage == Usage(input_tokens=10, output_tokens=5)

    def test_malformed_chunk_skipped(self) -> None:
        lines = [
            *_data(_chunk([{"text": "a"}])),
            "data: {oops",
            "",
            *_data(_chunk([{"text": "b"}], finish_reason="STOP")),
        ]
        _, events = _decode(lines)
        _assert_well_ordered(events)
        texts = [
            e.delta.text
            for e in events
            if isinstance(e, ContentBlockDeltaEvent) and isinstance(e.delta, TextDelta)
        ]
        assert texts == ["a", "b"]

    @pytest.mark.parametrize("prefix", ["data: ", "data:", ""])
    def test_line_prefixes(self, prefix: str) -> None:
        line = prefix + json.dumps(_chunk([{"text": "x"}], finish_reason="STOP"))
        _, events = _decode([line])
        assert any(isinstance(e, ContentBlockDeltaEvent) for e in events)

    def test_unrelated_lines_ignored(self) -> None:
        lines = ["event: message", ": comment", *_data(_chunk([{"text": "x"}], finish_reason="STOP"))]
        _, events = _decode(lines)
        _assert_well_ordered(events)

    def test_empty_text_parts_skipped(self) -> None:
        _, events = _decode(_data(_chunk([{"text": ""}], finish_reason="STOP")))
        assert not any(isinstance(e, ContentBlockStartEvent) for e in events)

    def test_missing_finish_reason_still_closes(self) -> None:
        _, events = _decode(_data(_chunk([{"text": "x"}], usage=(3, 1))))
        assert isinstance(events[-2], MessageDeltaEvent)
        assert events[-2].delta.stop_reason == "end_turn"
        assert events[-2].usage == Usage(input_tokens=3, output_tokens=1)
        assert isinstance(events[-1], MessageStopEvent)

    def test_nothing_decodable(self) -> None:
        _, events = _decode(["data: {nope", "", "garbage"])
        assert events == []

    def test_empty_stream(self) -> None:
        _, events = _decode([])
        assert events == []

    def test_finish_is_idempotent(self) -> None:
        decoder, _ = _decode(_data(_chunk([{"text": "x"}], finish_reason="STOP")))
        assert decoder.finish() == []


class TestThoughtSignatures:
    def test_last_seen_signature_propagates(self) -> None:
        transpiler = GeminiTranspiler()
        lines = [
            *_data(_chunk([{"functionCall": {"name": "a"}, "thoughtSignature": "sig-1"}])),
            *_data(_chunk([{"functionCall": {"name": "b"}}])),
            *_data(_chunk([{"functionCall": {"name": "c"}, "thoughtSignature": "sig-2"}])),
            *_data(_chunk([{"functionCall": {"name": "d"}}], finish_reason="STOP")),
        ]
        _, events = _decode(lines, transpiler)

        ids = [
            e.content_block.id
            for e in events
            if isinstance(e, ContentBlockStartEvent) and isinstance(e.content_block, ToolUseBlock)
        ]
        signatures = [transpiler.registry.signature_for(i) for i in ids]
        assert signatures == ["sig-1", "sig-1", "sig-2", "sig-2"]

    def test_no_signature_before_first_seen(self) -> None:
        transpiler = GeminiTranspiler()
        _, events = _decode(_data(_chunk([{"functionCall": {"name": "a"}}])), transpiler)
        start = next(e for e in events if isinstance(e, ContentBlockStartEvent))
        assert transpiler.registry.signature_for(start.content_block.id) is None  # type: ignore[union-attr]


class TestFallback:
    _RESPONSE = {
        "candidates": [
            {
                "content": {
                    "role": "model",
                    "parts": [
                        {"text": "Here are the levels."},
                        {"functionCall": {"name": "get_levels", "args": {"all": True}}},
                    ],
                },
                "finishReason": "STOP",
            }
        ],
        "usageMetadata": {"promptTokenCount": 7, "candidatesTokenCount": 4, "totalTokenCount": 11},
    }

    def _pretty_lines(self) -> list[str]:
        return json.dumps(self._RESPONSE, indent=2).splitlines()

    def test_pretty_printed_response_replayed(self) -> None:
        decoder, events = _decode(self._pretty_lines())

        _assert_well_ordered(events)
        assert isinstance(events[-2], MessageDeltaEvent)
        assert events[-2].delta.stop_reason == "tool_use"
        assert events[-2].usage == Usage(input_tokens=7, output_tokens=4)
        assert decoder.usage == Usage(input_tokens=7, output_tokens=4)

    def test_equivalent_to_non_streaming(self) -> None:
        _, events = _decode(self._pretty_lines())
        accumulator = ResponseAccumulator()
        for event in events:
            accumulator.process(event)
        streamed = accumulator.build()

        direct = GeminiTranspiler().from_provider(self._RESPONSE)

        assert streamed.stop_reason == direct.stop_reason
        assert streamed.usage == direct.usage
        assert len(streamed.content) == len(direct.content)
        assert streamed.content[0] == direct.content[0] == TextBlock(text="Here are the levels.")
        streamed_call, direct_call = streamed.content[1], direct.content[1]
        assert isinstance(streamed_call, ToolUseBlock)
        assert isinstance(direct_call, ToolUseBlock)
        assert (streamed_call.name, streamed_call.input) == (direct_call.name, direct_call.input)
