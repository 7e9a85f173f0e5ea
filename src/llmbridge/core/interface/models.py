"""Canonical message model — the vendor-neutral format shared by all providers.

The canonical shapes deliberately mirror the Anthropic Messages API, so the
Anthropic transpiler is close to an identity mapping while the Gemini
transpiler does the structural work. Orchestration code never touches
vendor-specific payloads.
"""

import base64
from typing import Annotated, Any, Literal
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

# ---------------------------------------------------------------------------
# Content blocks: the polymorphic building blocks of a message
# ---------------------------------------------------------------------------


class TextBlock(BaseModel):
    """Plain text content block."""

    type: Literal["text"] = "text"
    text: str


class ImageSource(BaseModel):
    """Inline base64 image payload."""

    type: Literal["base64"] = "base64"
    media_type: str = "image/png"
    data: str


class ImageBlock(BaseModel):
    """Image content block carrying base64 data."""

    type: Literal["image"] = "image"
    source: ImageSource

    @property
    def media_type(self) -> str:
        return self.source.media_type

    @property
    def data(self) -> str:
        return self.source.data

    @classmethod
    def from_base64(cls, data: str, media_type: str = "image/png") -> "ImageBlock":
        """Create an image block from already-encoded base64 data."""
        return cls(source=ImageSource(media_type=media_type, data=data))

    @classmethod
    def from_png_bytes(cls, image: bytes) -> "ImageBlock":
        """Create a PNG image block from raw bytes."""
        return cls.from_base64(base64.b64encode(image).decode("ascii"), "image/png")


class ToolUseBlock(BaseModel):
    """A tool invocation emitted by the assistant."""

    type: Literal["tool_use"] = "tool_use"
    id: str = Field(default_factory=lambda: f"toolu_{uuid4().hex[:24]}")
    name: str
    input: dict[str, Any] = {}


ToolResultContent = Annotated[TextBlock | ImageBlock, Field(discriminator="type")]


class ToolResultBlock(BaseModel):
    """The result of executing a tool, sent back on a user turn.

    ``content`` is either a plain string or a list of text/image blocks.
    """

    type: Literal["tool_result"] = "tool_result"
    tool_use_id: str
    content: str | list[ToolResultContent] = ""
    is_error: bool | None = None

    @property
    def text(self) -> str:
        """Concatenated text of the result, ignoring images."""
        if isinstance(self.content, str):
            return self.content
        return "\n".join(block.text for block in self.content if isinstance(block, TextBlock))

    @property
    def images(self) -> list[ImageBlock]:
        """Image blocks embedded in the result."""
        if isinstance(self.content, str):
            return []
        return [block for block in self.content if isinstance(block, ImageBlock)]

    @classmethod
    def from_text(cls, tool_use_id: str, text: str, is_error: bool = False) -> "ToolResultBlock":
        """Create a text-only tool result."""
        return cls(tool_use_id=tool_use_id, content=text, is_error=is_error or None)

    @classmethod
    def from_image(
        cls,
        tool_use_id: str,
        data: str,
        media_type: str = "image/png",
        text: str | None = None,
    ) -> "ToolResultBlock":
        """Create a tool result carrying an image, preceded by optional text."""
        content: list[TextBlock | ImageBlock] = []
        if text:
            content.append(TextBlock(text=text))
        content.append(ImageBlock.from_base64(data, media_type))
        return cls(tool_use_id=tool_use_id, content=content)


ContentBlock = Annotated[
    TextBlock | ImageBlock | ToolUseBlock | ToolResultBlock,
    Field(discriminator="type"),
]


# ---------------------------------------------------------------------------
# Message: one role-tagged turn of the conversation
# ---------------------------------------------------------------------------


class Message(BaseModel):
    """A single conversation turn.

    Roles:
    - user: human input and tool results
    - assistant: model output (text and tool invocations)

    A plain string is accepted for ``content`` and normalised to a single
    text block.
    """

    role: Literal["user", "assistant"]
    content: list[ContentBlock] = []

    @field_validator("content", mode="before")
    @classmethod
    def _wrap_text(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [{"type": "text", "text": value}]
        return value

    @property
    def text(self) -> str:
        """Extract concatenated text from all text blocks."""
        return "".join(block.text for block in self.content if isinstance(block, TextBlock))

    @property
    def tool_uses(self) -> list[ToolUseBlock]:
        return [block for block in self.content if isinstance(block, ToolUseBlock)]

    @classmethod
    def user(cls, text: str) -> "Message":
        """Create a user message."""
        return cls(role="user", content=[TextBlock(text=text)])

    @classmethod
    def user_with_image(cls, text: str, image: bytes | None = None) -> "Message":
        """Create a user message with an optional PNG attachment placed before the text."""
        if not image:
            return cls.user(text)
        return cls(role="user", content=[ImageBlock.from_png_bytes(image), TextBlock(text=text)])

    @classmethod
    def assistant(cls, content: str | list[ContentBlock]) -> "Message":
        """Create an assistant message from text or a list of blocks."""
        if isinstance(content, str):
            return cls(role="assistant", content=[TextBlock(text=content)])
        return cls(role="assistant", content=list(content))

    @classmethod
    def tool_results(cls, results: list[ToolResultBlock]) -> "Message":
        """Create the user turn that carries tool results back to the model."""
        blocks: list[ContentBlock] = list(results)
        return cls(role="user", content=blocks)


# ---------------------------------------------------------------------------
# Tools, usage and responses
# ---------------------------------------------------------------------------


class ToolDefinition(BaseModel):
    """A tool the model may call, described by a JSON Schema."""

    name: str
    description: str
    input_schema: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )


class Usage(BaseModel):
    """Token counts reported by a provider."""

    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class ModelResponse(BaseModel):
    """A complete assistant response in canonical form."""

    id: str = ""
    type: str = "message"
    role: Literal["assistant"] = "assistant"
    model: str | None = None
    content: list[ContentBlock] = []
    stop_reason: str | None = None
    stop_sequence: str | None = None
    usage: Usage | None = None

    @property
    def text(self) -> str | None:
        """Return the first text block, if any."""
        for block in self.content:
            if isinstance(block, TextBlock):
                return block.text
        return None

    @property
    def tool_uses(self) -> list[ToolUseBlock]:
        return [block for block in self.content if isinstance(block, ToolUseBlock)]

    def to_message(self) -> Message:
        """Convert the response into an assistant turn for the next request."""
        return Message(role="assistant", content=list(self.content))
