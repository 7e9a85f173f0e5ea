"""Provider layer — HTTP providers, error taxonomy and cancellation."""

from llmbridge.providers.anthropic import AnthropicProvider
from llmbridge.providers.base import HTTPProvider
from llmbridge.providers.cancellation import (
    CancellationSource,
    CancellationToken,
    RequestRegistry,
)
from llmbridge.providers.errors import (
    BridgeError,
    ErrorKind,
    ProviderError,
    RequestCancelledError,
    classify_http_error,
)
from llmbridge.providers.factory import create_provider, create_provider_from_settings
from llmbridge.providers.gemini import GeminiProvider

__all__ = [
    "AnthropicProvider",
    "BridgeError",
    "CancellationSource",
    "CancellationToken",
    "ErrorKind",
    "GeminiProvider",
    "HTTPProvider",
    "ProviderError",
    "RequestCancelledError",
    "RequestRegistry",
    "classify_http_error",
    "create_provider",
    "create_provider_from_settings",
]
