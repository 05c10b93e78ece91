"""Embedding provider registry with lazy loading.

Usage:
    from src.embeddings.providers import get_provider

    provider = get_provider("openai")
    vectors = await provider.embed(["marketing student in Dubai"])
"""

from __future__ import annotations

import importlib

from src.embeddings.providers.base import EmbeddingProvider

__all__ = ["EmbeddingProvider", "available_providers", "get_provider"]

# Lazy registry: maps provider name -> (module_path, class_name)
_REGISTRY: dict[str, tuple[str, str]] = {
    "openai": ("src.embeddings.providers.openai", "OpenAIEmbeddingProvider"),
    "hashing": ("src.embeddings.providers.hashing", "HashingEmbeddingProvider"),
}


def get_provider(name: str) -> EmbeddingProvider:
    """Instantiate and return an embedding provider by name.

    Raises:
        ValueError: If the provider name is unknown.
    """
    if name not in _REGISTRY:
        valid = ", ".join(sorted(_REGISTRY))
        msg = f"Unknown embedding provider '{name}'. Available: {valid}"
        raise ValueError(msg)

    module_path, class_name = _REGISTRY[name]
    module = importlib.import_module(module_path)
    cls = getattr(module, class_name)
    return cls()  # type: ignore[no-any-return]


def available_providers() -> list[str]:
    """Return sorted list of registered provider names."""
    return sorted(_REGISTRY)
