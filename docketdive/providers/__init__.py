"""Model provider adapters (local Ollama, cloud Groq)."""

from .base import ModelProvider
from .groq import GroqProvider
from .ollama import OllamaProvider
from .registry import (
    PROVIDER_ALIASES,
    ProviderRegistry,
    build_provider_configs,
    create_provider_registry,
    parse_provider_name,
)

__all__ = [
    "ModelProvider",
    "OllamaProvider",
    "GroqProvider",
    "ProviderRegistry",
    "PROVIDER_ALIASES",
    "build_provider_configs",
    "create_provider_registry",
    "parse_provider_name",
]
