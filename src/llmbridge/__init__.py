"""llmbridge — one canonical message model for Anthropic and Gemini chat APIs."""

from __future__ import annotations

from typing import TYPE_CHECKING

__version__ = "0.1.0"

if TYPE_CHECKING:
    from llmbridge.core.interface.models import Message as Message
    from llmbridge.core.usage import UsageTracker as UsageTracker
    from llmbridge.providers.anthropic import AnthropicProvider as AnthropicProvider
    from llmbridge.providers.factory import create_provider as create_provider
    from llmbridge.providers.gemini import GeminiProvider as GeminiProvider

_LAZY_EXPORTS = {
    "Message": "llmbridge.core.interface.models",
    "UsageTracker": "llmbridge.core.usage",
    "AnthropicProvider": "llmbridge.providers.anthropic",
    "GeminiProvider": "llmbridge.providers.gemini",
    "create_provider": "llmbridge.providers.factory",
}


def __getattr__(name: str) -> object:
    module_path = _LAZY_EXPORTS.get(name)
    if module_path is not None:
        import importlib

        mod = importlib.import_module(module_path)
        return getattr(mod, name)
    raise AttributeError(f"module 'llmbridge' has no attribute {name!r}")
