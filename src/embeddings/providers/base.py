"""Abstract base class for text-embedding providers."""

import os
from abc import ABC, abstractmethod


class EmbeddingProvider(ABC):
    """Base class that every embedding provider must implement."""

    @property
    @abstractmethod
    def provider_id(self) -> str:
        """Unique identifier for this provider (e.g. 'openai')."""

    @property
    @abstractmethod
    def default_model(self) -> str:
        """The default model ID used when no override is specified."""

    @property
    @abstractmethod
    def env_var(self) -> str | None:
        """Environment variable name for the API key, or None if not needed."""

    @abstractmethod
    async def embed(self, texts: list[str], model: str | None = None) -> list[list[float]]:
        """Embed each text, returning one vector per input in input order.

        Args:
            texts: Non-empty input strings, already truncated by the caller.
            model: Override the provider's default model. None uses default.

        Returns:
            A list of equal-length float vectors.
        """

    def is_configured(self) -> bool:
        """True when the provider can be called (API key present if one is needed)."""
        return self.env_var is None or bool(os.environ.get(self.env_var))
