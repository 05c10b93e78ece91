"""Deterministic local embedding provider based on token hashing.

No network and no API key. Vectors are only comparable with other
vectors from this provider, so the version tag must differ from any
model-backed deployment.
"""

import hashlib
import logging
import re

from src.embeddings.providers.base import EmbeddingProvider

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"[a-z0-9+#]+")


def _bucket_and_sign(token: str, dim: int) -> tuple[int, float]:
    digest = hashlib.md5(token.encode("utf-8")).hexdigest()
    value = int(digest[:8], 16)
    sign = 1.0 if int(digest[8], 16) % 2 == 0 else -1.0
    return value % dim, sign


def embed_text(text: str, dim: int = 256) -> list[float]:
    """Hash unigrams and bigrams of ``text`` into a unit-length vector."""
    tokens = _TOKEN_RE.findall(text.lower())
    features = tokens + [f"{a}_{b}" for a, b in zip(tokens, tokens[1:])]

    vector = [0.0] * dim
    for feature in features:
        index, sign = _bucket_and_sign(feature, dim)
        vector[index] += sign

    norm = sum(v * v for v in vector) ** 0.5
    if norm == 0.0:
        return vector
    return [v / norm for v in vector]


class HashingEmbeddingProvider(EmbeddingProvider):
    """Signed feature-hashing embeddings for development and tests."""

    def __init__(self, dim: int = 256) -> None:
        self._dim = dim

    @property
    def provider_id(self) -> str:
        return "hashing"

    @property
    def default_model(self) -> str:
        return f"hashing-{self._dim}"

    @property
    def env_var(self) -> None:
        return None

    async def embed(self, texts: list[str], model: str | None = None) -> list[list[float]]:
        logger.debug("Hashing %d text(s) into %d dims", len(texts), self._dim)
        return [embed_text(t, self._dim) for t in texts]
