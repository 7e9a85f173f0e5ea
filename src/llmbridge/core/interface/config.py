"""Request settings, provider configuration and environment-backed settings."""

from functools import lru_cache

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MODEL = "claude-sonnet-4-5-20250929"

DEFAULT_MODELS: dict[str, str] = {
    "anthropic": DEFAULT_MODEL,
    "gemini": "gemini-2.5-pro",
}


class ApiSettings(BaseModel):
    """Immutable settings for a single request.

    Use ``settings.model_copy(update={...})`` to derive per-request overrides.
    """

    model_config = ConfigDict(frozen=True)

    model: str = DEFAULT_MODEL
    temperature: float = Field(default=0.7, ge=0.0, le=1.0)
    max_tokens: int = Field(default=4096, gt=0)


class ProviderConfig(BaseModel):
    """Connection settings for one provider instance."""

    api_key: str | None = None
    api_base: str | None = None
    timeout: float = 300.0
    defaults: ApiSettings = Field(default_factory=ApiSettings)


class BridgeSettings(BaseSettings):
    """Settings loaded from ``LLMBRIDGE_*`` environment variables or ``.env``."""

    model_config = SettingsConfigDict(
        env_prefix="LLMBRIDGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    provider: str = "anthropic"  # anthropic | gemini
    anthropic_api_key: str | None = None
    gemini_api_key: str | None = None
    anthropic_base_url: str | None = None
    gemini_base_url: str | None = None

    model: str | None = None  # None = provider default
    temperature: float = Field(default=0.7, ge=0.0, le=1.0)
    max_tokens: int = Field(default=4096, gt=0)
    timeout: float = 300.0

    log_level: str = "WARNING"
    otlp_endpoint: str | None = None  # export provider spans via OTLP/gRPC when set

    @property
    def default_api_settings(self) -> ApiSettings:
        return self.api_settings_for(self.provider)

    def api_settings_for(self, provider: str) -> ApiSettings:
        """Default request settings, using the provider's default model when none is set."""
        model = self.model or DEFAULT_MODELS[_canonical_name(provider)]
        return ApiSettings(model=model, temperature=self.temperature, max_tokens=self.max_tokens)

    def provider_config(self, provider: str | None = None) -> ProviderConfig:
        """Project the settings onto one provider's :class:`ProviderConfig`."""
        name = _canonical_name(provider or self.provider)
        if name == "gemini":
            api_key, api_base = self.gemini_api_key, self.gemini_base_url
        else:
            api_key, api_base = self.anthropic_api_key, self.anthropic_base_url
        return ProviderConfig(
            api_key=api_key,
            api_base=api_base,
            timeout=self.timeout,
            defaults=self.api_settings_for(name),
        )


def _canonical_name(provider: str) -> str:
    return "gemini" if provider.lower() in ("gemini", "google") else "anthropic"


@lru_cache
def get_settings() -> BridgeSettings:
    return BridgeSettings()
