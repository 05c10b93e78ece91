"""Auto-shortlisting of project applicants.

Once a project has enough applications, every applicant gets a cached
compatibility score and the top N are marked shortlisted. An existing
shortlist is returned as-is until an admin override replaces it.
"""

import asyncio
import json
import logging
import math
import sqlite3
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime

from src.core.config import ActivityWeights, ShortlistConfig
from src.core.db import (
    count_applications,
    get_applications,
    get_company,
    get_project,
    get_shortlisted,
    get_student,
    reset_shortlist,
    set_application_status,
    update_compatibility_score,
)
from src.core.errors import SearchValidationError
from src.core.schemas import (
    Application,
    ApplicationStatus,
    Candidate,
    Eligibility,
    MatchResult,
    Project,
    ShortlistResult,
)
from src.matching.gate import TierGate
from src.matching.scorer import enrich_candidate, normalize_scores

logger = logging.getLogger(__name__)

ScoreFn = Callable[[Application], Awaitable[MatchResult]]
ScorerFactory = Callable[[Project], Awaitable[ScoreFn]]


def _ranking(application: Application) -> int | None:
    if not application.admin_notes:
        return None
    try:
        notes = json.loads(application.admin_notes)
    except json.JSONDecodeError:
        return None
    ranking = notes.get("ranking") if isinstance(notes, dict) else None
    return ranking if isinstance(ranking, int) else None


def _stored_result(application: Application, score: float) -> MatchResult:
    return MatchResult(
        candidate_id=application.user_id,
        application_id=application.id,
        overall_score=max(0.0, min(100.0, score)),
        match_reasons=["Previously scored compatibility"],
    )


class ShortlistManager:
    """Eligibility checks, auto-shortlisting and manual overrides.

    ``scorer_factory`` is awaited once per project that needs scoring and
    returns the per-application compatibility scorer.

    Usage::

        manager = ShortlistManager(conn, settings.shortlist, activity, gate, factory)
        result = await manager.shortlist_project("proj-1")
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        config: ShortlistConfig,
        activity: ActivityWeights,
        gate: TierGate,
        scorer_factory: ScorerFactory,
        now: datetime | None = None,
    ) -> None:
        self._conn = conn
        self._config = config
        self._activity = activity
        self._gate = gate
        self._scorer_factory = scorer_factory
        self._now = now

    def _project_or_raise(self, project_id: str) -> Project:
        project = get_project(self._conn, project_id)
        if project is None:
            msg = f"Project '{project_id}' not found"
            raise SearchValidationError(msg)
        return project

    def _plan_for(self, project: Project) -> str:
        company = get_company(self._conn, project.company_id)
        return company.plan if company is not None else "FREE"

    def get_eligibility(self, project_id: str) -> Eligibility:
        self._project_or_raise(project_id)
        current = count_applications(self._conn, project_id)
        required = self._config.min_applications
        remaining = max(0, required - current)
        return Eligibility(
            project_id=project_id,
            eligible=current >= required,
            current=current,
            required=required,
            remaining_needed=remaining,
            estimated_days_to_eligibility=math.ceil(remaining / self._config.applications_per_day),
        )

    async def _score_pending(
        self, project: Project, applications: list[Application],
    ) -> dict[str, MatchResult]:
        """Score applications lacking a compatibility score and persist the scores."""
        pending = [a for a in applications if a.compatibility_score is None]
        if not pending:
            return {}

        score = await self._scorer_factory(project)
        semaphore = asyncio.Semaphore(self._config.max_concurrency)

        async def _one(application: Application) -> tuple[str, MatchResult]:
            async with semaphore:
                try:
                    result = await score(application)
                except Exception:
                    logger.warning(
                        "Scoring failed for application %s, using default score",
                        application.id, exc_info=True,
                    )
                    result = _stored_result(application, self._config.default_score)
            return application.id, result

        logger.info("Scoring %d applications for project %s", len(pending), project.id)
        scored = dict(await asyncio.gather(*(_one(a) for a in pending)))
        for application_id, result in scored.items():
            update_compatibility_score(self._conn, application_id, result.overall_score)
        return scored

    def _load_candidate(self, user_id: str) -> Candidate | None:
        candidate = get_student(self._conn, user_id)
        if candidate is None:
            logger.warning("Applicant %s has no student record", user_id)
            return None
        return enrich_candidate(candidate, self._activity, self._now)

    async def _build_result(
        self,
        project: Project,
        entries: Sequence[tuple[Application, MatchResult]],
        total: int,
        shortlisted_at: datetime,
        *,
        cached: bool = False,
        manual: bool = False,
    ) -> ShortlistResult:
        plan = self._plan_for(project)
        normalized = normalize_scores([r.overall_score for _, r in entries])
        pairs: list[tuple[Candidate, MatchResult]] = []
        for (application, result), match in zip(entries, normalized):
            candidate = self._load_candidate(application.user_id)
            if candidate is not None:
                pairs.append((candidate, result.model_copy(update={"match_score": match})))

        context = f"{project.title}. {project.description}"
        return ShortlistResult(
            project_id=project.id,
            candidates=await self._gate.reveal(plan, pairs, context),
            total_applications=total,
            shortlisted_at=shortlisted_at,
            cached=cached,
            manual=manual,
            visibility=self._gate.tier_for(plan).visibility,
            upgrade_prompt=self._gate.upgrade_prompt(plan),
        )

    async def shortlist_project(self, project_id: str) -> ShortlistResult | None:
        """Auto-shortlist a project's applicants.

        Returns None while the project is below the application threshold.

        Raises:
            SearchValidationError: If the project does not exist.
        """
        project = self._project_or_raise(project_id)
        total = count_applications(self._conn, project_id)
        if total < self._config.min_applications:
            logger.info(
                "Project %s has %d/%d applications, not eligible yet",
                project_id, total, self._config.min_applications,
            )
            return None

        existing = get_shortlisted(self._conn, project_id)
        if existing:
            logger.info("Returning cached shortlist for %s (%d)", project_id, len(existing))
            # manual rankings win; unranked rows keep score order
            ordered = sorted(existing, key=lambda a: _ranking(a) or len(existing) + 1)
            entries = [(a, _stored_result(a, a.compatibility_score or 0.0)) for a in ordered]
            shortlisted_at = max(a.updated_at for a in existing)
            return await self._build_result(project, entries, total, shortlisted_at, cached=True)

        applications = get_applications(self._conn, project_id)
        fresh = await self._score_pending(project, applications)

        def _score_of(application: Application) -> float:
            if application.id in fresh:
                return fresh[application.id].overall_score
            return application.compatibility_score or 0.0

        ranked = sorted(applications, key=_score_of, reverse=True)
        top = ranked[: self._config.shortlist_size]
        shortlisted_at = self._now or datetime.now()
        for n, application in enumerate(top, start=1):
            set_application_status(
                self._conn,
                application.id,
                ApplicationStatus.SHORTLISTED,
                {"ranking": n, "shortlisted_at": shortlisted_at.isoformat()},
            )

        logger.info("Shortlisted %d of %d applications for %s", len(top), total, project_id)
        entries = [
            (a, fresh.get(a.id) or _stored_result(a, _score_of(a))) for a in top
        ]
        return await self._build_result(project, entries, total, shortlisted_at)

    async def manual_shortlist(
        self,
        project_id: str,
        application_ids: Sequence[str],
        performed_by: str,
        admin: bool = False,
    ) -> ShortlistResult:
        """Replace the project's shortlist with the given applications, in order.

        Raises:
            SearchValidationError: If the project does not exist, an id is
                repeated or does not belong to it, or the company's plan cannot
                override shortlists.
        """
        project = self._project_or_raise(project_id)
        plan = self._plan_for(project)
        if not admin and not self._gate.can_manual_shortlist(plan):
            msg = f"Plan '{plan}' does not allow manual shortlisting"
            raise SearchValidationError(msg)
        if not application_ids:
            msg = "At least one application id is required"
            raise SearchValidationError(msg)
        duplicates = sorted({i for i in application_ids if application_ids.count(i) > 1})
        if duplicates:
            msg = f"Duplicate application ids: {', '.join(duplicates)}"
            raise SearchValidationError(msg)

        by_id = {a.id: a for a in get_applications(self._conn, project_id)}
        unknown = [i for i in application_ids if i not in by_id]
        if unknown:
            msg = f"Applications not found for project '{project_id}': {', '.join(unknown)}"
            raise SearchValidationError(msg)

        reset = reset_shortlist(self._conn, project_id)
        logger.info("Manual shortlist by %s: reset %d previous entries", performed_by, reset)

        shortlisted_at = self._now or datetime.now()
        for n, application_id in enumerate(application_ids, start=1):
            set_application_status(
                self._conn,
                application_id,
                ApplicationStatus.SHORTLISTED,
                {
                    "ranking": n,
                    "shortlisted_at": shortlisted_at.isoformat(),
                    "shortlisted_by": performed_by,
                    "is_manual": True,
                },
            )

        entries = [
            (by_id[i], _stored_result(by_id[i], by_id[i].compatibility_score or 0.0))
            for i in application_ids
        ]
        return await self._build_result(
            project, entries, len(by_id), shortlisted_at, manual=True,
        )
