"""Provider construction by name."""

import logging

from llmbridge.core.interface.config import BridgeSettings, ProviderConfig
from llmbridge.core.usage import UsageTracker
from llmbridge.providers.anthropic import AnthropicProvider
from llmbridge.providers.base import HTTPProvider
from llmbridge.providers.gemini import GeminiProvider

logger = logging.getLogger(__name__)

_ALIASES: dict[str, type[HTTPProvider]] = {
    "anthropic": AnthropicProvider,
    "claude": AnthropicProvider,
    "gemini": GeminiProvider,
    "google": GeminiProvider,
}

SUPPORTED_PROVIDERS: tuple[str, ...] = ("anthropic", "gemini")


def create_provider(
    name: str,
    config: ProviderConfig,
    usage_tracker: UsageTracker | None = None,
) -> HTTPProvider:
    """Create the provider registered under *name*.

    Unknown names fall back to the Anthropic provider.
    """
    provider_cls = _ALIASES.get(name.lower())
    if provider_cls is None:
        logger.warning("Unknown provider %r; falling back to anthropic", name)
        provider_cls = AnthropicProvider
    return provider_cls(config, usage_tracker=usage_tracker)


def create_provider_from_settings(
    settings: BridgeSettings,
    provider: str | None = None,
    usage_tracker: UsageTracker | None = None,
) -> HTTPProvider:
    """Create a provider configured from environment-backed settings."""
    name = provider or settings.provider
    return create_provider(name, settings.provider_config(name), usage_tracker)
