"""Matching service: wires parsing, embeddings, retrieval, scoring and gating.

Data flow for one search:
  1. Validate parameters (before any retrieval)
  2. Parse prompt into filters and keywords, enhance the query text
  3. Embed the query (best effort)
  4. Run the retrieval cascade
  5. Score candidates concurrently in bounded batches
  6. Rank and normalize once every candidate is scored
  7. Apply the tier gate
"""

import asyncio
import logging
import sqlite3
import time
from collections.abc import Sequence
from datetime import datetime

from src.core.config import Settings
from src.core.db import (
    get_applications,
    get_company,
    get_project,
    get_student,
    list_live_projects,
)
from src.core.errors import DataIntegrityError, ProviderError, SearchValidationError
from src.core.schemas import (
    Application,
    Candidate,
    Company,
    Eligibility,
    MatchingMode,
    MatchResult,
    Project,
    ProjectMatch,
    RankedResults,
    SearchMetadata,
    SearchQuery,
    ShortlistResult,
)
from src.embeddings.generator import EmbeddingGenerator
from src.embeddings.store import EmbeddingStore
from src.embeddings.text import build_project_text, enhance_query
from src.insights.generator import InsightGenerator
from src.matching.filters import extract_filters, extract_keywords
from src.matching.gate import TierGate, no_result_suggestions
from src.matching.pool import ApplicantPoolStrategy, CandidatePoolBuilder, default_strategies
from src.matching.ranking import MatchScorer, rank_results
from src.matching.scorer import enrich_candidate, normalize_scores, project_alignment_score
from src.matching.shortlist import ScoreFn, ShortlistManager

logger = logging.getLogger(__name__)

_LIVE_PROJECT_SCAN = 50


class MatchingService:
    """Entry point for company search, shortlisting and project matching.

    Usage::

        service = MatchingService.from_settings(conn, settings)
        results = await service.search("marketing students in Dubai", plan="FREE")
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        settings: Settings,
        generator: EmbeddingGenerator | None = None,
        store: EmbeddingStore | None = None,
        insights: InsightGenerator | None = None,
        now: datetime | None = None,
    ) -> None:
        self._conn = conn
        self._settings = settings
        self._generator = generator
        self._store = store or EmbeddingStore(conn, settings.embedding)
        self._now = now
        self._gate = TierGate(
            settings.tiers, settings.credits, insights, settings.insights.max_concurrency,
        )
        self._scorer = MatchScorer(settings.scoring, settings.blending, settings.vocabulary, now)
        self._shortlists = ShortlistManager(
            conn,
            settings.shortlist,
            settings.scoring.activity,
            self._gate,
            self._applicant_scorer,
            now,
        )

    @classmethod
    def from_settings(cls, conn: sqlite3.Connection, settings: Settings) -> "MatchingService":
        """Build providers from settings.

        Raises:
            ValueError: If a configured provider name is unknown.
        """
        return cls(
            conn,
            settings,
            generator=EmbeddingGenerator.from_config(settings.embedding),
            insights=InsightGenerator.from_config(settings.insights),
        )

    @property
    def gate(self) -> TierGate:
        return self._gate

    # ------------------------------------------------------------------
    # Query construction
    # ------------------------------------------------------------------

    async def _embed(self, text: str) -> list[float] | None:
        if self._generator is None or not self._generator.available:
            return None
        try:
            return await self._generator.embed_query(text)
        except ProviderError:
            logger.warning("Query embedding failed, continuing without vectors", exc_info=True)
            return None

    async def _build_query(
        self,
        prompt: str,
        mode: MatchingMode,
        company: Company | None,
        project: Project | None,
    ) -> SearchQuery:
        project_text = build_project_text(project, prompt or None, company) if project else None
        text = prompt or project_text or ""
        enhanced = enhance_query(text)

        vector = await self._embed(enhanced)
        project_vector = None
        if vector is not None and prompt and project_text:
            project_vector = await self._embed(project_text)

        return SearchQuery(
            prompt=text,
            mode=mode,
            company_id=company.id if company else None,
            project_id=project.id if project else None,
            project_text=project_text,
            enhanced_text=enhanced,
            keywords=extract_keywords(text),
            filters=extract_filters(text, self._settings.vocabulary),
            vector=vector,
            project_vector=project_vector,
        )

    def _validate(
        self,
        prompt: str,
        mode: MatchingMode,
        project_id: str | None,
        limit: int | None,
    ) -> Project | None:
        if mode == MatchingMode.PROJECT_SHORTLISTING and not project_id:
            msg = "project_id is required for project shortlisting"
            raise SearchValidationError(msg)
        if not prompt.strip() and mode != MatchingMode.PROJECT_SHORTLISTING:
            msg = "Search prompt must not be empty"
            raise SearchValidationError(msg)
        if limit is not None and limit < 1:
            msg = f"limit must be positive, got {limit}"
            raise SearchValidationError(msg)
        if project_id is None:
            return None
        project = get_project(self._conn, project_id)
        if project is None:
            msg = f"Project '{project_id}' not found"
            raise SearchValidationError(msg)
        return project

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    async def _score_all(
        self,
        candidates: list[Candidate],
        query: SearchQuery,
        project: Project | None,
        applications: dict[str, Application],
    ) -> list[MatchResult]:
        """Score candidates in batches; vectors are fetched once per batch."""
        size = self._settings.blending.concurrency
        semaphore = asyncio.Semaphore(size)

        async def _batch(batch: list[Candidate]) -> list[MatchResult]:
            async with semaphore:
                vectors = self._store.get_many([c.id for c in batch]) if query.vector else {}
                return [
                    self._scorer.score(
                        c,
                        query,
                        vector=vectors.get(c.id),
                        project=project,
                        application=applications.get(c.id),
                    )
                    for c in batch
                ]

        batches = [candidates[i:i + size] for i in range(0, len(candidates), size)]
        scored = await asyncio.gather(*(_batch(b) for b in batches))
        return [r for batch in scored for r in batch]

    async def search(
        self,
        prompt: str,
        mode: MatchingMode = MatchingMode.COMPANY_SEARCH,
        plan: str | None = None,
        company_id: str | None = None,
        project_id: str | None = None,
        limit: int | None = None,
    ) -> RankedResults:
        """Run one ranked search.

        ``plan`` defaults to the company's plan, or FREE without a company.

        Raises:
            SearchValidationError: On malformed parameters, before retrieval.
        """
        started = time.perf_counter()
        project = self._validate(prompt, mode, project_id, limit)
        company = get_company(self._conn, company_id) if company_id else None
        if company_id and company is None:
            msg = f"Company '{company_id}' not found"
            raise SearchValidationError(msg)
        if company is None and project is not None:
            company = get_company(self._conn, project.company_id)
        plan = (plan or (company.plan if company else "FREE")).upper()
        self._gate.tier_for(plan)

        query = await self._build_query(prompt.strip(), mode, company, project)
        logger.info(
            "Search mode=%s plan=%s filters=%s vector=%s",
            mode.value, plan, query.filters.model_dump(), query.vector is not None,
        )

        applications: dict[str, Application] = {}
        if mode == MatchingMode.PROJECT_SHORTLISTING and project is not None:
            strategies = [ApplicantPoolStrategy(self._conn, project.id)]
            applications = {a.user_id: a for a in get_applications(self._conn, project.id)}
        else:
            strategies = default_strategies(
                self._conn, self._store, self._settings.pool, self._settings.vocabulary, self._now,
            )
        builder = CandidatePoolBuilder(strategies, self._settings.scoring.activity, self._now)
        pool = await builder.build(query)

        results = await self._score_all(pool.candidates, query, project, applications)
        ranked = rank_results(results, mode, self._settings.blending, self._settings.scoring)
        by_id = {c.id: c for c in pool.candidates}
        pairs = [(by_id[r.candidate_id], r) for r in ranked]

        gated = await self._gate.apply(plan, pairs, context=query.prompt, limit=limit)
        elapsed_ms = (time.perf_counter() - started) * 1000

        threshold = None
        if mode == MatchingMode.RELEVANCE_FIRST:
            threshold = self._settings.blending.relevance_first.admission_threshold

        logger.info(
            "Search complete: %d pooled, %d ranked, %d returned in %.0fms",
            len(pool.candidates), len(ranked), len(gated), elapsed_ms,
        )
        return RankedResults(
            query=query.prompt,
            mode=mode,
            plan=plan,
            candidates=gated,
            metadata=SearchMetadata(
                processing_time_ms=round(elapsed_ms, 2),
                pool_size=len(pool.candidates),
                stage=pool.stage,
                attempted_stages=pool.attempted_stages,
                vectors_used=any(r.vectors_used for r in ranked),
                threshold=threshold,
                mode=mode,
                total_matches=len(ranked),
                returned=len(gated),
            ),
            credits=self._gate.credit_status(plan),
            suggestions=[] if gated else no_result_suggestions(query.filters, len(gated)),
            upgrade_prompt=self._gate.upgrade_prompt(plan),
        )

    # ------------------------------------------------------------------
    # Shortlisting
    # ------------------------------------------------------------------

    async def _applicant_scorer(self, project: Project) -> ScoreFn:
        """Build the compatibility scorer for one project's applications."""
        company = get_company(self._conn, project.company_id)
        query = await self._build_query("", MatchingMode.PROJECT_SHORTLISTING, company, project)
        activity = self._settings.scoring.activity

        async def score(application: Application) -> MatchResult:
            candidate = get_student(self._conn, application.user_id)
            if candidate is None:
                msg = f"application {application.id} references missing student {application.user_id}"
                raise DataIntegrityError(msg)
            candidate = enrich_candidate(candidate, activity, self._now)
            vector = self._store.get(candidate.id) if query.vector else None
            return self._scorer.score(
                candidate, query, vector=vector, project=project, application=application,
            )

        return score

    async def score_applicants(self, project_id: str) -> list[MatchResult]:
        """Shortlisting-mode results for every applicant, ranked."""
        project = get_project(self._conn, project_id)
        if project is None:
            msg = f"Project '{project_id}' not found"
            raise SearchValidationError(msg)
        applications = get_applications(self._conn, project_id)
        if not applications:
            return []

        score = await self._applicant_scorer(project)
        semaphore = asyncio.Semaphore(self._settings.shortlist.max_concurrency)

        async def _one(application: Application) -> MatchResult:
            async with semaphore:
                return await score(application)

        results = await asyncio.gather(*(_one(a) for a in applications))
        return rank_results(
            list(results),
            MatchingMode.PROJECT_SHORTLISTING,
            self._settings.blending,
            self._settings.scoring,
        )

    def get_eligibility(self, project_id: str) -> Eligibility:
        return self._shortlists.get_eligibility(project_id)

    async def shortlist_project(self, project_id: str) -> ShortlistResult | None:
        return await self._shortlists.shortlist_project(project_id)

    async def manual_shortlist(
        self,
        project_id: str,
        application_ids: Sequence[str],
        performed_by: str,
        admin: bool = False,
    ) -> ShortlistResult:
        return await self._shortlists.manual_shortlist(
            project_id, application_ids, performed_by, admin=admin,
        )

    # ------------------------------------------------------------------
    # Student -> projects
    # ------------------------------------------------------------------

    def match_projects(
        self,
        student_id: str,
        query: str | None = None,
        limit: int = 10,
    ) -> list[ProjectMatch]:
        """Rank live projects for one student by project alignment.

        Raises:
            SearchValidationError: If the student does not exist or limit < 1.
        """
        if limit < 1:
            msg = f"limit must be positive, got {limit}"
            raise SearchValidationError(msg)
        candidate = get_student(self._conn, student_id)
        if candidate is None:
            msg = f"Student '{student_id}' not found"
            raise SearchValidationError(msg)

        projects = list_live_projects(self._conn, limit=_LIVE_PROJECT_SCAN)
        config = self._settings.scoring.project
        scored = [
            (p, *project_alignment_score(candidate, p, config, query)) for p in projects
        ]
        scored.sort(key=lambda item: item[1], reverse=True)
        normalized = normalize_scores(
            [raw for _, raw, _ in scored],
            floor=self._settings.scoring.normalized_floor,
            flat=self._settings.scoring.normalized_flat,
        )
        logger.info("Matched %d live projects for student %s", len(scored), student_id)
        return [
            ProjectMatch(
                project_id=p.id,
                company_id=p.company_id,
                title=p.title,
                category=p.category,
                raw_score=raw,
                match_score=score,
                match_reasons=reasons,
            )
            for (p, raw, reasons), score in zip(scored, normalized)
        ][:limit]
