"""Provider-specific transpiler implementations."""

from llmbridge.core.interface.transpilers.anthropic import AnthropicTranspiler
from llmbridge.core.interface.transpilers.gemini import GeminiTranspiler, ToolCallRegistry

__all__ = ["AnthropicTranspiler", "GeminiTranspiler", "ToolCallRegistry"]
