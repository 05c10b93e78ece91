"""Embedding store: persisted per-candidate vectors plus the refresh job.

Vectors live in the ``student_vectors`` table. Similarity search is a
brute-force in-process cosine scan over profile vectors.
"""

import asyncio
import logging
import sqlite3
from collections.abc import Sequence
from datetime import datetime, timedelta

from src.core.config import EmbeddingConfig
from src.core.db import (
    count_vectors,
    get_vector,
    get_vectors,
    recent_applied_projects,
    select_students,
    upsert_vector,
)
from src.core.errors import DataIntegrityError, ProviderError
from src.core.schemas import Candidate, CandidateVector, RefreshSummary
from src.embeddings.generator import EmbeddingGenerator
from src.matching.similarity import cosine_similarity

logger = logging.getLogger(__name__)


class EmbeddingStore:
    """Read/upsert access to candidate vectors.

    Usage::

        store = EmbeddingStore(conn, settings.embedding)
        if store.needs_regeneration(candidate, store.get(candidate.id)):
            store.upsert(await generator.generate_candidate_vector(candidate))
    """

    def __init__(self, conn: sqlite3.Connection, config: EmbeddingConfig) -> None:
        self._conn = conn
        self._config = config

    def get(self, user_id: str) -> CandidateVector | None:
        return get_vector(self._conn, user_id)

    def upsert(self, vector: CandidateVector) -> None:
        """Replace-on-conflict by user id."""
        upsert_vector(self._conn, vector)
        logger.debug("Stored vectors for %s (%s)", vector.user_id, vector.vector_version)

    def get_all(self) -> list[CandidateVector]:
        return get_vectors(self._conn)

    def get_many(self, user_ids: Sequence[str]) -> dict[str, CandidateVector]:
        return {v.user_id: v for v in get_vectors(self._conn, user_ids)}

    def count(self) -> int:
        return count_vectors(self._conn)

    def needs_regeneration(
        self,
        candidate: Candidate,
        vector: CandidateVector | None,
        now: datetime | None = None,
    ) -> bool:
        """Return True if the candidate's vectors are missing or stale.

        Stale means: the profile changed after the vectors were written, the
        version tag differs from the current one, or the vectors are older
        than the staleness window.
        """
        if vector is None:
            return True
        if candidate.updated_at > vector.last_updated:
            return True
        if vector.vector_version != self._config.version:
            return True
        now = now or datetime.now()
        return now - vector.last_updated > timedelta(days=self._config.staleness_days)

    def similarity_search(
        self,
        query_vector: Sequence[float],
        limit: int = 50,
        threshold: float = 0.0,
    ) -> list[tuple[str, float]]:
        """Return (user_id, similarity) for the closest profile vectors, best first."""
        hits: list[tuple[str, float]] = []
        for vector in self.get_all():
            try:
                similarity = cosine_similarity(query_vector, vector.profile_vector)
            except DataIntegrityError:
                logger.debug("Skipping %s: vector length mismatch", vector.user_id)
                continue
            if similarity >= threshold:
                hits.append((vector.user_id, similarity))
        hits.sort(key=lambda h: h[1], reverse=True)
        return hits[:limit]


async def _refresh_one(
    candidate: Candidate,
    store: EmbeddingStore,
    generator: EmbeddingGenerator,
    conn: sqlite3.Connection,
) -> bool:
    applied = recent_applied_projects(conn, candidate.id, limit=10)
    try:
        vector = await generator.generate_candidate_vector(candidate, applied)
    except ProviderError:
        logger.warning("Vector generation failed for %s", candidate.id, exc_info=True)
        return False
    store.upsert(vector)
    return True


async def refresh_vectors(
    conn: sqlite3.Connection,
    store: EmbeddingStore,
    generator: EmbeddingGenerator,
    config: EmbeddingConfig,
    *,
    force: bool = False,
    limit: int | None = None,
    now: datetime | None = None,
) -> RefreshSummary:
    """Generate vectors for every candidate that needs them.

    Candidates are processed in concurrent batches of ``config.batch_size``
    with ``config.batch_delay_s`` between batches.
    """
    summary = RefreshSummary()
    if not generator.available:
        logger.warning("No embedding provider available; skipping vector refresh")
        return summary

    candidates = select_students(conn, limit=limit)
    existing = store.get_many([c.id for c in candidates])

    pending: list[Candidate] = []
    for candidate in candidates:
        if force or store.needs_regeneration(candidate, existing.get(candidate.id), now):
            pending.append(candidate)
        else:
            summary.skipped += 1

    logger.info(
        "Refreshing vectors: %d pending, %d up to date", len(pending), summary.skipped,
    )

    size = config.batch_size
    for start in range(0, len(pending), size):
        batch = pending[start:start + size]
        results = await asyncio.gather(
            *(_refresh_one(c, store, generator, conn) for c in batch)
        )
        summary.processed += len(batch)
        summary.successful += sum(1 for ok in results if ok)
        summary.failed += sum(1 for ok in results if not ok)
        logger.info(
            "Batch %d: %d/%d succeeded", start // size + 1, sum(results), len(batch),
        )
        if start + size < len(pending) and config.batch_delay_s > 0:
            await asyncio.sleep(config.batch_delay_s)

    return summary
