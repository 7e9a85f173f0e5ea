"""Canonical model, provider protocol and transpilation."""

from llmbridge.core.interface.config import ApiSettings, BridgeSettings, ProviderConfig
from llmbridge.core.interface.events import (
    ContentBlockDeltaEvent,
    ContentBlockStartEvent,
    ContentBlockStopEvent,
    ErrorEvent,
    InputJsonDelta,
    MessageDelta,
    MessageDeltaEvent,
    MessageStartEvent,
    MessageStopEvent,
    PingEvent,
    StreamEvent,
    TextDelta,
)
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
from llmbridge.core.interface.provider import AIProvider
from llmbridge.core.interface.transpiler import Transpiler

__all__ = [
    "AIProvider",
    "ApiSettings",
    "BridgeSettings",
    "ContentBlock",
    "ContentBlockDeltaEvent",
    "ContentBlockStartEvent",
    "ContentBlockStopEvent",
    "ErrorEvent",
    "ImageBlock",
    "InputJsonDelta",
    "Message",
    "MessageDelta",
    "MessageDeltaEvent",
    "MessageStartEvent",
    "MessageStopEvent",
    "ModelResponse",
    "PingEvent",
    "ProviderConfig",
    "StreamEvent",
    "TextBlock",
    "TextDelta",
    "ToolDefinition",
    "ToolResultBlock",
    "ToolUseBlock",
    "Transpiler",
    "Usage",
]
