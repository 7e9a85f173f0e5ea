"""Incremental decoding of vendor streams into canonical events."""

from llmbridge.core.streaming.accumulator import ResponseAccumulator, collect_stream
from llmbridge.core.streaming.anthropic import AnthropicStreamDecoder
from llmbridge.core.streaming.gemini import GeminiStreamDecoder
from llmbridge.core.streaming.sse import SSEFrame, SSEFrameReader
from llmbridge.core.streaming.stream import ProviderStream, StreamCompletion

__all__ = [
    "AnthropicStreamDecoder",
    "GeminiStreamDecoder",
    "ProviderStream",
    "ResponseAccumulator",
    "SSEFrame",
    "SSEFrameReader",
    "StreamCompletion",
    "collect_stream",
]
