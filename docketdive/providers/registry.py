"""Per-request provider selection."""

from __future__ import annotations

from typing import Any, Optional

import structlog

from docketdive.errors import ValidationError
from docketdive.rag.models import ProviderConfig, ProviderName

from .base import ModelProvider
from .groq import GroqProvider
from .ollama import OllamaProvider

logger = structlog.get_logger(__name__)

# Backend names accepted in place of local/cloud
PROVIDER_ALIASES: dict[str, ProviderName] = {
    "ollama": ProviderName.LOCAL,
    "groq": ProviderName.CLOUD,
}


def parse_provider_name(value: str | ProviderName) -> ProviderName:
    """Resolve a provider name or alias (case-insensitive).

    Raises:
        ValidationError: If the name is not a known provider
    """
    if isinstance(value, ProviderName):
        return value
    key = value.strip().lower()
    if key in PROVIDER_ALIASES:
        return PROVIDER_ALIASES[key]
    try:
        return ProviderName(key)
    except ValueError as e:
        allowed = sorted({p.value for p in ProviderName} | set(PROVIDER_ALIASES))
        raise ValidationError(
            f"Unknown provider '{value}'",
            details={"allowed": allowed},
        ) from e


def build_provider_configs(settings: Any) -> dict[ProviderName, ProviderConfig]:
    """Build the connection parameters of every provider from settings."""
    groq_key = settings.groq_api_key
    shared = {
        "temperature": settings.llm_temperature,
        "max_tokens": settings.max_tokens,
        "token_timeout": settings.token_timeout,
    }
    return {
        ProviderName.LOCAL: ProviderConfig(
            provider=ProviderName.LOCAL,
            model=settings.ollama_model,
            base_url=settings.ollama_base_url,
            **shared,
        ),
        ProviderName.CLOUD: ProviderConfig(
            provider=ProviderName.CLOUD,
            model=settings.groq_model,
            base_url=settings.groq_base_url,
            api_key=groq_key,
            **shared,
        ),
    }


class ProviderRegistry:
    """Maps each provider name to its adapter and configuration.

    Example:
        registry = create_provider_registry(settings)
        provider, config = registry.resolve("groq")
        async for token in provider.complete(prompt, config):
            ...
    """

    def __init__(
        self,
        providers: dict[ProviderName, tuple[ModelProvider, ProviderConfig]],
        default: ProviderName = ProviderName.CLOUD,
    ):
        if default not in providers:
            raise ValueError(f"default provider '{default.value}' is not registered")
        self._providers = providers
        self.default = default

    def resolve(
        self, name: Optional[str | ProviderName] = None
    ) -> tuple[ModelProvider, ProviderConfig]:
        """Return the adapter and config for a request.

        Args:
            name: Provider name or alias; None selects the default

        Raises:
            ValidationError: If the provider is unknown or not registered
        """
        provider_name = self.default if name is None else parse_provider_name(name)
        if provider_name not in self._providers:
            raise ValidationError(
                f"Provider '{provider_name.value}' is not available",
                details={"provider": provider_name.value},
            )
        return self._providers[provider_name]

    @property
    def names(self) -> list[ProviderName]:
        return list(self._providers)

    async def close(self) -> None:
        for provider, _ in self._providers.values():
            await provider.close()


def create_provider_registry(settings: Any) -> ProviderRegistry:
    """Create the registry with both backends configured from settings."""
    configs = build_provider_configs(settings)
    registry = ProviderRegistry(
        {
            ProviderName.LOCAL: (OllamaProvider(), configs[ProviderName.LOCAL]),
            ProviderName.CLOUD: (GroqProvider(), configs[ProviderName.CLOUD]),
        },
        default=ProviderName(settings.default_provider),
    )
    logger.info(
        "provider_registry_created",
        default=registry.default.value,
        cloud_configured=settings.groq_api_key is not None,
    )
    return registry
