"""OpenAI embedding provider."""

import logging
import os

from src.embeddings.providers.base import EmbeddingProvider

logger = logging.getLogger(__name__)


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """Embedding provider using the OpenAI embeddings API."""

    @property
    def provider_id(self) -> str:
        return "openai"

    @property
    def default_model(self) -> str:
        return "text-embedding-3-small"

    @property
    def env_var(self) -> str:
        return "OPENAI_API_KEY"

    async def embed(self, texts: list[str], model: str | None = None) -> list[list[float]]:
        api_key = os.environ.get("OPENAI_API_KEY")
        if not api_key:
            msg = "OPENAI_API_KEY environment variable is required"
            raise ValueError(msg)

        try:
            import openai
        except ImportError:
            msg = (
                "openai is required for OpenAI embeddings. "
                "Install with: pip install 'talent-matching[openai]'"
            )
            raise ImportError(msg) from None

        client = openai.AsyncOpenAI(api_key=api_key)
        use_model = model or self.default_model

        logger.debug("Embedding %d text(s) with OpenAI (%s)", len(texts), use_model)
        response = await client.embeddings.create(model=use_model, input=texts)

        ordered = sorted(response.data, key=lambda d: d.index)
        return [list(d.embedding) for d in ordered]
