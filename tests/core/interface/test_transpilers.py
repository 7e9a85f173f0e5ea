"""Tests for the Anthropic and Gemini transpilers."""

import copy
from typing import Any

import pytest
from pydantic import ValidationError

from llmbridge.core.interface.config import ApiSettings
from llmbridge.core.interface.models import (
    ImageBlock,
    Message,
    TextBlock,
    ToolDefinition,
    ToolResultBlock,
    ToolUseBlock,
)
from llmbridge.core.interface.transpilers.anthropic import AnthropicTranspiler
from llmbridge.core.interface.transpilers.gemini import (
    GeminiTranspiler,
    ToolCallRegistry,
    map_finish_reason,
    strip_unsupported_schema_fields,
)

_SETTINGS = ApiSettings(model="test-model", temperature=0.5, max_tokens=256)

# ---------------------------------------------------------------------------
# Fixtures: sample conversations
# ---------------------------------------------------------------------------


def _get_levels_history() -> list[Message]:
    return [
        Message.user("Which levels exist?"),
        Message.assistant([ToolUseBlock(id="c1", name="get_levels", input={})]),
        Message.tool_results([ToolResultBlock.from_text("c1", "Level 1, Level 2")]),
    ]


def _tool() -> ToolDefinition:
    return ToolDefinition(
        name="get_levels",
        description="List the levels of the model",
        input_schema={
            "$schema": "http://json-schema.org/draft-07/schema#",
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "filter": {
                    "type": "object",
                    "additionalProperties": False,
                    "properties": {"name": {"type": "string"}},
                },
                "tags": {
                    "type": "array",
                    "items": {"type": "object", "additionalProperties": True},
                },
            },
            "required": ["filter"],
        },
    )


# ---------------------------------------------------------------------------
# Anthropic Transpiler Tests
# ---------------------------------------------------------------------------


class TestAnthropicTranspiler:
    def setup_method(self) -> None:
        self.transpiler = AnthropicTranspiler()

    def test_request_body(self) -> None:
        body = self.transpiler.to_provider(
            "Be brief.", [Message.user("Hello")], None, _SETTINGS, stream=True
        )

        assert body == {
            "model": "test-model",
            "max_tokens": 256,
            "temperature": 0.5,
            "system": "Be brief.",
            "messages": [{"role": "user", "content": [{"type": "text", "text": "Hello"}]}],
            "stream": True,
        }

    def test_no_system_prompt(self) -> None:
        body = self.transpiler.to_provider(None, [Message.user("Hi")], None, _SETTINGS)
        assert "system" not in body
        assert body["stream"] is False

    def test_tools(self) -> None:
        body = self.transpiler.to_provider(None, [Message.user("Hi")], [_tool()], _SETTINGS)
        tools = body["tools"]
        assert tools[0]["name"] == "get_levels"
        # Anthropic accepts the schema unchanged
        assert tools[0]["input_schema"]["additionalProperties"] is False

    def test_tool_round_trip_messages(self) -> None:
        body = self.transpiler.to_provider(None, _get_levels_history(), None, _SETTINGS)
        messages = body["messages"]

        assert messages[1]["content"][0] == {
            "type": "tool_use",
            "id": "c1",
            "name": "get_levels",
            "input": {},
        }
        assert messages[2]["content"][0] == {
            "type": "tool_result",
            "tool_use_id": "c1",
            "content": "Level 1, Level 2",
        }

    def test_consecutive_roles_merged(self) -> None:
        body = self.transpiler.to_provider(
            None,
            [Message.user("First"), Message.user("Second"), Message.assistant("Both.")],
            None,
            _SETTINGS,
        )
        messages = body["messages"]
        assert len(messages) == 2
        assert [b["text"] for b in messages[0]["content"]] == ["First", "Second"]

    def test_image_block_shape(self) -> None:
        body = self.transpiler.to_provider(
            None, [Message.user_with_image("What?", b"img")], None, _SETTINGS
        )
        image = body["messages"][0]["content"][0]
        assert image["type"] == "image"
        assert image["source"]["media_type"] == "image/png"

    def test_from_provider(self) -> None:
        response = self.transpiler.from_provider(
            {
                "id": "msg_1",
                "type": "message",
                "role": "assistant",
                "model": "claude-sonnet-4-5-20250929",
                "content": [
                    {"type": "text", "text": "Let me check."},
                    {"type": "tool_use", "id": "toolu_1", "name": "get_levels", "input": {}},
                ],
                "stop_reason": "tool_use",
                "stop_sequence": None,
                "usage": {"input_tokens": 12, "output_tokens": 7},
            }
        )

        assert response.id == "msg_1"
        assert response.text == "Let me check."
        assert response.tool_uses[0].name == "get_levels"
        assert response.stop_reason == "tool_use"
        assert response.usage is not None
        assert response.usage.total_tokens == 19

    def test_from_provider_drops_unknown_blocks(self) -> None:
        response = self.transpiler.from_provider(
            {
                "id": "msg_1",
                "content": [
                    {"type": "thinking", "thinking": "hmm", "signature": "sig"},
                    {"type": "text", "text": "Answer"},
                ],
            }
        )
        assert response.content == [TextBlock(text="Answer")]

    def test_from_provider_rejects_bad_shape(self) -> None:
        with pytest.raises(ValidationError):
            self.transpiler.from_provider({"content": [{"type": "text"}]})

    def test_from_provider_rejects_non_list_content(self) -> None:
        with pytest.raises(ValidationError):
            self.transpiler.from_provider({"id": "m", "content": 5})


# ---------------------------------------------------------------------------
# Gemini Transpiler Tests
# ---------------------------------------------------------------------------


class TestGeminiRequest:
    def setup_method(self) -> None:
        self.transpiler = GeminiTranspiler()

    def test_simple_request(self) -> None:
        body = self.transpiler.to_provider(
            "Be brief.",
            [Message.user("Hello"), Message.assistant("Hi there!")],
            None,
            _SETTINGS,
        )

        assert body["contents"] == [
            {"role": "user", "parts": [{"text": "Hello"}]},
            {"role": "model", "parts": [{"text": "Hi there!"}]},
        ]
        assert body["systemInstruction"] == {"parts": [{"text": "Be brief."}]}
        assert body["generationConfig"] == {"temperature": 0.5, "maxOutputTokens": 256}
        assert "tools" not in body

    def test_no_system_instruction(self) -> None:
        body = self.transpiler.to_provider(None, [Message.user("Hi")], None, _SETTINGS)
        assert "systemInstruction" not in body

    def test_get_levels_function_response_name(self) -> None:
        body = self.transpiler.to_provider(None, _get_levels_history(), None, _SETTINGS)
        contents = body["contents"]

        assert contents[1] == {
            "role": "model",
            "parts": [{"functionCall": {"name": "get_levels", "args": {}}}],
        }
        assert contents[2] == {
            "role": "user",
            "parts": [
                {
                    "functionResponse": {
                        "name": "get_levels",
                        "response": {"result": "Level 1, Level 2"},
                    }
                }
            ],
        }

    def test_unknown_tool_result_name(self) -> None:
        history = [Message.tool_results([ToolResultBlock.from_text("missing", "x")])]
        body = self.transpiler.to_provider(None, history, None, _SETTINGS)
        part = body["contents"][0]["parts"][0]
        assert part["functionResponse"]["name"] == "unknown"

    def test_image_part(self) -> None:
        history = [Message(role="user", content=[ImageBlock.from_base64("abc", "image/jpeg")])]
        body = self.transpiler.to_provider(None, history, None, _SETTINGS)
        assert body["contents"][0]["parts"] == [
            {"inlineData": {"mimeType": "image/jpeg", "data": "abc"}}
        ]

    def test_tool_result_images_follow_response(self) -> None:
        history = [
            Message.assistant([ToolUseBlock(id="c2", name="screenshot")]),
            Message.tool_results(
                [ToolResultBlock.from_image("c2", "abc", "image/png", text="Viewport")]
            ),
        ]
        body = self.transpiler.to_provider(None, history, None, _SETTINGS)
        parts = body["contents"][1]["parts"]

        assert parts[0] == {
            "functionResponse": {"name": "screenshot", "response": {"result": "Viewport"}}
        }
        assert parts[1] == {"inlineData": {"mimeType": "image/png", "data": "abc"}}

    def test_empty_messages_dropped(self) -> None:
        history = [Message(role="user", content=[]), Message.user("Hi")]
        body = self.transpiler.to_provider(None, history, None, _SETTINGS)
        assert body["contents"] == [{"role": "user", "parts": [{"text": "Hi"}]}]

    def test_order_preserved(self) -> None:
        history = [Message.user("a"), Message.assistant("b"), Message.user("c")]
        body = self.transpiler.to_provider(None, history, None, _SETTINGS)
        texts = [c["parts"][0]["text"] for c in body["contents"]]
        assert texts == ["a", "b", "c"]

    def test_tools_wrapped_in_function_declarations(self) -> None:
        body = self.transpiler.to_provider(None, [Message.user("Hi")], [_tool()], _SETTINGS)

        assert len(body["tools"]) == 1
        declaration = body["tools"][0]["functionDeclarations"][0]
        assert declaration["name"] == "get_levels"
        assert declaration["description"] == "List the levels of the model"
        params = declaration["parameters"]
        assert "$schema" not in params
        assert "additionalProperties" not in params
        assert "additionalProperties" not in params["properties"]["filter"]
        assert "additionalProperties" not in params["properties"]["tags"]["items"]

    def test_thought_signature_echoed(self) -> None:
        response = self.transpiler.from_provider(
            {
                "candidates": [
                    {
                        "content": {
                            "role": "model",
                            "parts": [
                                {
                                    "functionCall": {"name": "get_levels", "args": {}},
                                    "thoughtSignature": "sig-1",
                                }
                            ],
                        },
                        "finishReason": "STOP",
                    }
                ]
            }
        )
        history = [Message.user("Levels?"), response.to_message()]

        body = self.transpiler.to_provider(None, history, None, _SETTINGS)
        part = body["contents"][1]["parts"][0]

        assert part["functionCall"] == {"name": "get_levels", "args": {}}
        assert part["thoughtSignature"] == "sig-1"

    def test_no_signature_for_foreign_ids(self) -> None:
        body = self.transpiler.to_provider(None, _get_levels_history(), None, _SETTINGS)
        assert "thoughtSignature" not in body["contents"][1]["parts"][0]


class TestGeminiResponse:
    def setup_method(self) -> None:
        self.transpiler = GeminiTranspiler()

    def test_text_response(self) -> None:
        response = self.transpiler.from_provider(
            {
                "candidates": [
                    {
                        "content": {"role": "model", "parts": [{"text": "Hello!"}]},
                        "finishReason": "STOP",
                    }
                ],
                "usageMetadata": {
                    "promptTokenCount": 10,
                    "candidatesTokenCount": 3,
                    "totalTokenCount": 13,
                },
                "modelVersion": "gemini-2.5-pro",
            }
        )

        assert response.id.startswith("gemini_")
        assert response.text == "Hello!"
        assert response.stop_reason == "end_turn"
        assert response.model == "gemini-2.5-pro"
        assert response.usage is not None
        assert response.usage.input_tokens == 10
        assert response.usage.output_tokens == 3

    def test_function_call_forces_tool_use(self) -> None:
        response = self.transpiler.from_provider(
            {
                "candidates": [
                    {
                        "content": {
                            "parts": [
                                {"text": "Checking."},
                                {"functionCall": {"name": "get_levels", "args": {"a": 1}}},
                            ]
                        },
                        "finishReason": "STOP",
                    }
                ]
            }
        )

        assert response.stop_reason == "tool_use"
        call = response.tool_uses[0]
        assert call.id.startswith("gemini_call_")
        assert call.input == {"a": 1}
        assert self.transpiler.registry.name_for(call.id) == "get_levels"

    def test_signature_propagates_to_later_calls(self) -> None:
        response = self.transpiler.from_provider(
            {
                "candidates": [
                    {
                        "content": {
                            "parts": [
                                {"functionCall": {"name": "a"}, "thoughtSignature": "sig-a"},
                                {"functionCall": {"name": "b"}},
                            ]
                        }
                    }
                ]
            }
        )
        first, second = response.tool_uses
        assert self.transpiler.registry.signature_for(first.id) == "sig-a"
        assert self.transpiler.registry.signature_for(second.id) == "sig-a"

    def test_max_tokens(self) -> None:
        response = self.transpiler.from_provider(
            {"candidates": [{"content": {"parts": [{"text": "cut"}]}, "finishReason": "MAX_TOKENS"}]}
        )
        assert response.stop_reason == "max_tokens"

    def test_no_candidates(self) -> None:
        response = self.transpiler.from_provider({})
        assert response.content == []
        assert response.stop_reason == "end_turn"
        assert response.usage is None

    def test_thought_parts_skipped(self) -> None:
        response = self.transpiler.from_provider(
            {
                "candidates": [
                    {"content": {"parts": [{"text": "thinking...", "thought": True}, {"text": "Done"}]}}
                ]
            }
        )
        assert response.content == [TextBlock(text="Done")]

    def test_malformed_chunk(self) -> None:
        with pytest.raises(ValidationError):
            self.transpiler.parse_chunk("{not json")


class TestFinishReasonMapping:
    @pytest.mark.parametrize(
        ("reason", "expected"),
        [
            ("STOP", "end_turn"),
            ("MAX_TOKENS", "max_tokens"),
            ("SAFETY", "end_turn"),
            ("RECITATION", "end_turn"),
            (None, "end_turn"),
        ],
    )
    def test_mapping(self, reason: str | None, expected: str) -> None:
        assert map_finish_reason(reason) == expected


class TestSchemaStripping:
    def test_removes_at_every_depth(self) -> None:
        stripped = strip_unsupported_schema_fields(_tool().input_schema)
        assert stripped == {
            "type": "object",
            "properties": {
                "filter": {"type": "object", "properties": {"name": {"type": "string"}}},
                "tags": {"type": "array", "items": {"type": "object"}},
            },
            "required": ["filter"],
        }

    def test_idempotent(self) -> None:
        once = strip_unsupported_schema_fields(_tool().input_schema)
        twice = strip_unsupported_schema_fields(once)
        assert twice == once

    def test_does_not_mutate_input(self) -> None:
        schema = _tool().input_schema
        original = copy.deepcopy(schema)
        strip_unsupported_schema_fields(schema)
        assert schema == original

    def test_property_named_like_keyword_is_kept(self) -> None:
        schema: dict[str, Any] = {
            "type": "object",
            "properties": {"additionalProperties": {"type": "string"}},
        }
        assert strip_unsupported_schema_fields(schema) == schema


class TestToolCallRegistry:
    def test_unknown_name(self) -> None:
        assert ToolCallRegistry().name_for("nope") == "unknown"

    def test_remember(self) -> None:
        registry = ToolCallRegistry()
        registry.remember("c1", "get_levels", "sig")
        assert registry.name_for("c1") == "get_levels"
        assert registry.signature_for("c1") == "sig"
        assert len(registry) == 1

    def test_remember_keeps_existing_signature(self) -> None:
        registry = ToolCallRegistry()
        registry.remember("c1", "get_levels", "sig")
        registry.remember("c1", "get_levels")
        assert registry.signature_for("c1") == "sig"

    def test_new_ids(self) -> None:
        assert ToolCallRegistry.new_call_id().startswith("gemini_call_")
        assert ToolCallRegistry.new_call_id() != ToolCallRegistry.new_call_id()
