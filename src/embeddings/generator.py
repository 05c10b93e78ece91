"""Embedding generation for candidates and queries.

Every provider call is bounded by ``EmbeddingConfig.timeout_s``. Timeouts,
missing credentials and provider exceptions all surface as ProviderError;
callers treat that as "no vector available".
"""

import asyncio
import logging
from collections.abc import Sequence
from datetime import datetime

from src.core.config import EmbeddingConfig
from src.core.errors import ProviderError
from src.core.schemas import Candidate, CandidateVector
from src.embeddings.providers import EmbeddingProvider, get_provider
from src.embeddings.text import (
    build_academic_text,
    build_profile_text,
    build_skills_text,
    truncate,
)

logger = logging.getLogger(__name__)

_EMPTY_TEXT = "Student profile"


class EmbeddingGenerator:
    """Turns candidate records and query text into vectors."""

    def __init__(self, provider: EmbeddingProvider | None, config: EmbeddingConfig) -> None:
        self._provider = provider
        self._config = config

    @classmethod
    def from_config(cls, config: EmbeddingConfig) -> "EmbeddingGenerator":
        """Build a generator from settings; ``provider: null`` disables embeddings."""
        provider = get_provider(config.provider) if config.provider else None
        return cls(provider, config)

    @property
    def available(self) -> bool:
        return self._provider is not None and self._provider.is_configured()

    @property
    def version(self) -> str:
        return self._config.version

    async def embed_text(self, text: str) -> list[float]:
        """Embed one string, truncated to the configured character budget."""
        if self._provider is None:
            msg = "no embedding provider configured"
            raise ProviderError("none", msg)

        provider_id = self._provider.provider_id
        payload = truncate(text.strip() or _EMPTY_TEXT, self._config.max_chars)
        try:
            vectors = await asyncio.wait_for(
                self._provider.embed([payload], model=self._config.model),
                timeout=self._config.timeout_s,
            )
        except asyncio.TimeoutError as e:
            msg = f"embedding timed out after {self._config.timeout_s:.1f}s"
            raise ProviderError(provider_id, msg) from e
        except (ValueError, ImportError) as e:
            raise ProviderError(provider_id, str(e)) from e
        except Exception as e:
            msg = f"embedding request failed: {e}"
            raise ProviderError(provider_id, msg) from e

        if len(vectors) != 1 or not vectors[0]:
            msg = f"expected one non-empty vector, got {len(vectors)}"
            raise ProviderError(provider_id, msg)
        return vectors[0]

    async def embed_query(self, text: str) -> list[float]:
        """Embed an (already enhanced) query string."""
        return await self.embed_text(text)

    async def generate_candidate_vector(
        self,
        candidate: Candidate,
        applied_projects: Sequence[tuple[str, str | None]] = (),
        now: datetime | None = None,
    ) -> CandidateVector:
        """Generate profile, skills and academic vectors concurrently."""
        profile, skills, academic = await asyncio.gather(
            self.embed_text(build_profile_text(candidate, applied_projects)),
            self.embed_text(build_skills_text(candidate)),
            self.embed_text(build_academic_text(candidate)),
        )
        logger.debug("Generated vectors for candidate %s (dim=%d)", candidate.id, len(profile))
        return CandidateVector(
            user_id=candidate.id,
            profile_vector=profile,
            skills_vector=skills,
            academic_vector=academic,
            vector_version=self._config.version,
            last_updated=now or datetime.now(),
        )
