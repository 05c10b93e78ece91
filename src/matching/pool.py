"""Candidate pool builder: an ordered chain of retrieval strategies.

Cascade order:
  1. VectorLookupStrategy      - students with stored vectors, by similarity
  2. StrictFilterStrategy      - base signal AND every filter category
  3. RelaxedFilterStrategy     - filter categories OR-ed, skills vs interests too
  4. KeywordFallbackStrategy   - domain buckets on the raw prompt
  5. EmergencyFallbackStrategy - recently active complete profiles

Each strategy is tried only if every earlier one returned nothing. A
strategy that raises a provider, database or vector-integrity error
counts as empty.
"""

import logging
import sqlite3
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any

from src.core.config import ActivityWeights, PoolConfig, VocabularyConfig
from src.core.db import get_applications, get_students, select_students
from src.core.errors import DataIntegrityError, ProviderError
from src.core.schemas import Candidate, RetrievalStage, SearchQuery
from src.embeddings.store import EmbeddingStore
from src.matching.scorer import enrich_candidate

logger = logging.getLogger(__name__)

_BASE_SIGNAL = (
    "(COALESCE(students.university, '') != '' "
    "OR COALESCE(students.major, '') != '' "
    "OR COALESCE(students.bio, '') != '' "
    "OR json_array_length(students.skills) > 0 "
    "OR json_array_length(students.interests) > 0)"
)

# Short aliases ("cs", "aud") are too ambiguous for substring SQL matching.
_MIN_SQL_ALIAS = 4


def _like(term: str) -> str:
    return f"%{term.lower()}%"


def _column_like(column: str) -> str:
    return f"lower(COALESCE(students.{column}, '')) LIKE ?"


def _json_like(column: str) -> str:
    return f"EXISTS (SELECT 1 FROM json_each(students.{column}) WHERE lower(value) LIKE ?)"


def _terms(canonical: str, entries: dict[str, tuple[str, ...]]) -> list[str]:
    aliases = [a for a in entries.get(canonical, ()) if len(a) >= _MIN_SQL_ALIAS]
    return [canonical, *aliases]


class _Clause:
    """Accumulates OR-ed SQL conditions with their parameters."""

    def __init__(self) -> None:
        self.parts: list[str] = []
        self.params: list[Any] = []

    def add(self, sql: str, *params: Any) -> None:
        self.parts.append(sql)
        self.params.extend(params)

    def __bool__(self) -> bool:
        return bool(self.parts)

    def sql(self) -> str:
        return "(" + " OR ".join(self.parts) + ")"


class RetrievalStrategy(ABC):
    """One stage of the retrieval cascade."""

    @property
    @abstractmethod
    def stage(self) -> RetrievalStage:
        """Stage name reported in search metadata."""

    @abstractmethod
    async def attempt(self, query: SearchQuery) -> list[Candidate]:
        """Return candidates for the query, or an empty list to fall through."""


class VectorLookupStrategy(RetrievalStrategy):
    """Students with stored vectors, ordered by profile similarity to the query."""

    def __init__(self, conn: sqlite3.Connection, store: EmbeddingStore, config: PoolConfig) -> None:
        self._conn = conn
        self._store = store
        self._config = config

    @property
    def stage(self) -> RetrievalStage:
        return RetrievalStage.VECTOR

    async def attempt(self, query: SearchQuery) -> list[Candidate]:
        if query.vector is None:
            logger.debug("Vector lookup skipped: no query vector")
            return []
        if self._store.count() == 0:
            logger.debug("Vector lookup skipped: vector store is empty")
            return []
        hits = self._store.similarity_search(
            query.vector, limit=self._config.vector_limit, threshold=-1.0,
        )
        return get_students(self._conn, [user_id for user_id, _ in hits])


class StrictFilterStrategy(RetrievalStrategy):
    """Base signal AND every present filter category (OR within a category)."""

    def __init__(
        self, conn: sqlite3.Connection, config: PoolConfig, vocabulary: VocabularyConfig,
    ) -> None:
        self._conn = conn
        self._config = config
        self._vocabulary = vocabulary

    @property
    def stage(self) -> RetrievalStage:
        return RetrievalStage.STRICT_FILTER

    async def attempt(self, query: SearchQuery) -> list[Candidate]:
        filters = query.filters
        conditions = [_BASE_SIGNAL]
        params: list[Any] = []

        if filters.universities:
            clause = _Clause()
            for name in filters.universities:
                for term in _terms(name, self._vocabulary.universities):
                    clause.add(_column_like("university"), _like(term))
            conditions.append(clause.sql())
            params.extend(clause.params)

        if filters.majors:
            clause = _Clause()
            for name in filters.majors:
                for term in _terms(name, self._vocabulary.majors):
                    clause.add(_column_like("major"), _like(term))
                    clause.add(_column_like("subjects"), _like(term))
            conditions.append(clause.sql())
            params.extend(clause.params)

        if filters.skills:
            clause = _Clause()
            for name in filters.skills:
                for term in _terms(name, self._vocabulary.skills):
                    clause.add(_json_like("skills"), _like(term))
            conditions.append(clause.sql())
            params.extend(clause.params)

        return select_students(
            self._conn,
            " AND ".join(conditions),
            params,
            limit=self._config.strict_limit,
        )


class RelaxedFilterStrategy(RetrievalStrategy):
    """Any filter category may match; skills also match declared interests."""

    def __init__(
        self, conn: sqlite3.Connection, config: PoolConfig, vocabulary: VocabularyConfig,
    ) -> None:
        self._conn = conn
        self._config = config
        self._vocabulary = vocabulary

    @property
    def stage(self) -> RetrievalStage:
        return RetrievalStage.RELAXED_FILTER

    async def attempt(self, query: SearchQuery) -> list[Candidate]:
        filters = query.filters
        if filters.is_empty():
            return []

        clause = _Clause()
        for name in filters.universities:
            for term in _terms(name, self._vocabulary.universities):
                clause.add(_column_like("university"), _like(term))
        for name in filters.majors:
            for term in _terms(name, self._vocabulary.majors):
                clause.add(_column_like("major"), _like(term))
                clause.add(_column_like("subjects"), _like(term))
                clause.add(_column_like("bio"), _like(term))
        for name in filters.skills:
            for term in _terms(name, self._vocabulary.skills):
                clause.add(_json_like("skills"), _like(term))
                clause.add(_json_like("interests"), _like(term))

        return select_students(
            self._conn, clause.sql(), clause.params, limit=self._config.relaxed_limit,
        )


class KeywordFallbackStrategy(RetrievalStrategy):
    """Domain buckets matched on the raw prompt, else any student with some profile."""

    def __init__(self, conn: sqlite3.Connection, config: PoolConfig) -> None:
        self._conn = conn
        self._config = config

    @property
    def stage(self) -> RetrievalStage:
        return RetrievalStage.KEYWORD_FALLBACK

    async def attempt(self, query: SearchQuery) -> list[Candidate]:
        prompt = query.prompt.lower()
        clause = _Clause()
        for bucket, needles in self._config.keyword_buckets.items():
            if not any(n in prompt for n in needles):
                continue
            logger.debug("Keyword bucket matched: %s", bucket)
            for needle in needles:
                clause.add(_column_like("major"), _like(needle))
                clause.add(_column_like("bio"), _like(needle))
                clause.add(_json_like("interests"), _like(needle))

        if not clause:
            clause.add(
                "(COALESCE(students.bio, '') != '' "
                "OR json_array_length(students.interests) > 0 "
                "OR COALESCE(students.major, '') != '')"
            )

        return select_students(
            self._conn, clause.sql(), clause.params, limit=self._config.keyword_limit,
        )


class EmergencyFallbackStrategy(RetrievalStrategy):
    """Relevance abandoned: complete profiles with any recent sign of life."""

    def __init__(
        self,
        conn: sqlite3.Connection,
        config: PoolConfig,
        now: datetime | None = None,
    ) -> None:
        self._conn = conn
        self._config = config
        self._now = now

    @property
    def stage(self) -> RetrievalStage:
        return RetrievalStage.EMERGENCY_FALLBACK

    async def attempt(self, query: SearchQuery) -> list[Candidate]:
        now = self._now or datetime.now()
        c = self._config
        where = (
            "students.profile_completed = 1 AND ("
            "students.last_active_at >= ? "
            "OR students.applications_this_month > 0 "
            "OR students.updated_at >= ? "
            "OR students.created_at >= ?)"
        )
        params = [
            (now - timedelta(days=c.active_days)).isoformat(),
            (now - timedelta(days=c.updated_days)).isoformat(),
            (now - timedelta(days=c.created_days)).isoformat(),
        ]
        return select_students(
            self._conn,
            where,
            params,
            order_by=(
                "students.last_active_at DESC, "
                "students.applications_this_month DESC, "
                "students.updated_at DESC"
            ),
            limit=c.emergency_limit,
        )


class ApplicantPoolStrategy(RetrievalStrategy):
    """Every student who applied to one project (shortlisting pool)."""

    def __init__(self, conn: sqlite3.Connection, project_id: str) -> None:
        self._conn = conn
        self._project_id = project_id

    @property
    def stage(self) -> RetrievalStage:
        return RetrievalStage.APPLICANTS

    async def attempt(self, query: SearchQuery) -> list[Candidate]:
        applications = get_applications(self._conn, self._project_id)
        return get_students(self._conn, [a.user_id for a in applications])


class PoolResult:
    """Outcome of one cascade run."""

    def __init__(
        self,
        stage: RetrievalStage | None,
        candidates: list[Candidate],
        attempted_stages: list[RetrievalStage],
    ) -> None:
        self.stage = stage
        self.candidates = candidates
        self.attempted_stages = attempted_stages


class CandidatePoolBuilder:
    """Runs retrieval strategies in order until one yields candidates."""

    def __init__(
        self,
        strategies: list[RetrievalStrategy],
        activity: ActivityWeights,
        now: datetime | None = None,
    ) -> None:
        self._strategies = strategies
        self._activity = activity
        self._now = now

    async def build(self, query: SearchQuery) -> PoolResult:
        attempted: list[RetrievalStage] = []
        for strategy in self._strategies:
            attempted.append(strategy.stage)
            try:
                candidates = await strategy.attempt(query)
            except (ProviderError, sqlite3.Error, DataIntegrityError):
                logger.warning(
                    "Retrieval stage '%s' failed, falling through",
                    strategy.stage.value,
                    exc_info=True,
                )
                continue

            if not candidates:
                logger.info("Stage '%s' returned no candidates", strategy.stage.value)
                continue

            logger.info(
                "Stage '%s' satisfied the request with %d candidates",
                strategy.stage.value, len(candidates),
            )
            enriched = [enrich_candidate(c, self._activity, self._now) for c in candidates]
            return PoolResult(strategy.stage, enriched, attempted)

        logger.info("Every retrieval stage came back empty")
        return PoolResult(None, [], attempted)


def default_strategies(
    conn: sqlite3.Connection,
    store: EmbeddingStore,
    config: PoolConfig,
    vocabulary: VocabularyConfig,
    now: datetime | None = None,
) -> list[RetrievalStrategy]:
    """The company-search cascade in its standard order."""
    return [
        VectorLookupStrategy(conn, store, config),
        StrictFilterStrategy(conn, config, vocabulary),
        RelaxedFilterStrategy(conn, config, vocabulary),
        KeywordFallbackStrategy(conn, config),
        EmergencyFallbackStrategy(conn, config, now),
    ]
