"""Tier/credit gate: truncates and redacts ranked results per subscription plan.

Visibility ladder:
  shortlisted_only      - no email/LinkedIn, bio truncated to 100 chars
  full_pool             - contact fields and full bio
  complete_transparency - everything plus AI insights
"""

import asyncio
import logging

from src.core.config import CreditCosts, TierConfig
from src.core.errors import SearchValidationError
from src.core.schemas import (
    Candidate,
    CreditStatus,
    MatchResult,
    RankedCandidate,
    SearchFilters,
    VisibilityLevel,
)
from src.insights.generator import InsightGenerator, template_insights

logger = logging.getLogger(__name__)

BIO_PREVIEW_CHARS = 100

_UPGRADE_PROMPTS: dict[VisibilityLevel, str] = {
    VisibilityLevel.SHORTLISTED_ONLY: (
        "Upgrade to HR Booster to see contact details, LinkedIn profiles and "
        "every applicant instead of only the shortlist."
    ),
    VisibilityLevel.FULL_POOL: (
        "Upgrade to HR Agent for AI-powered candidate insights, detailed "
        "compatibility analysis and interview support."
    ),
}


def no_result_suggestions(filters: SearchFilters, result_count: int = 0) -> list[str]:
    """Query-broadening hints shown when a search returns few or no candidates."""
    suggestions: list[str] = []
    if filters.universities:
        suggestions.append("Remove the university requirement to widen the pool")
    if filters.skills:
        suggestions.append("Search by field of study instead of specific skills")
    if result_count < 5:
        suggestions.append("Try broader terms like 'motivated students' or 'recent graduates'")
        suggestions.append("Search by university or field of study")
        suggestions.append("Look for 'active users' or 'highly engaged candidates'")
    suggestions.append("Try: 'Computer Science students at AUD'")
    return suggestions[:3]


def truncate_bio(bio: str | None) -> str | None:
    if bio is None or len(bio) <= BIO_PREVIEW_CHARS:
        return bio
    return bio[:BIO_PREVIEW_CHARS] + "..."


class TierGate:
    """Applies plan limits, visibility redaction and credit pricing.

    Usage::

        gate = TierGate(settings.tiers, settings.credits, insights)
        ranked = await gate.apply("FREE", pairs, context="Marketing intern")
    """

    def __init__(
        self,
        tiers: dict[str, TierConfig],
        credits: CreditCosts,
        insights: InsightGenerator | None = None,
        concurrency: int = 8,
    ) -> None:
        self._tiers = tiers
        self._credits = credits
        self._insights = insights
        self._concurrency = concurrency

    def tier_for(self, plan: str) -> TierConfig:
        tier = self._tiers.get(plan.upper())
        if tier is None:
            valid = ", ".join(sorted(self._tiers))
            msg = f"Unknown plan '{plan}'. Available: {valid}"
            raise SearchValidationError(msg)
        return tier

    def credit_cost(self, position: int, total: int) -> int:
        """Credits to reveal the contact at 0-based ``position`` of ``total`` results."""
        c = self._credits
        if position < total * c.top_fraction:
            return c.high
        if position >= total * (1 - c.bottom_fraction):
            return c.basic
        return c.medium

    def credit_status(self, plan: str) -> CreditStatus:
        tier = self.tier_for(plan)
        return CreditStatus(
            plan=plan.upper(),
            tier_name=tier.name,
            available=tier.monthly_credits,
            monthly_credits=tier.monthly_credits,
            contacts=tier.contacts,
        )

    def upgrade_prompt(self, plan: str) -> str | None:
        return _UPGRADE_PROMPTS.get(self.tier_for(plan).visibility)

    def can_manual_shortlist(self, plan: str) -> bool:
        return self.tier_for(plan).manual_shortlist

    def redact(
        self,
        candidate: Candidate,
        result: MatchResult,
        rank: int,
        visibility: VisibilityLevel,
        credit_cost: int,
    ) -> RankedCandidate:
        c = candidate
        revealed = visibility != VisibilityLevel.SHORTLISTED_ONLY
        return RankedCandidate(
            rank=rank,
            candidate_id=c.id,
            name=c.name,
            university=c.university,
            major=c.major,
            graduation_year=c.graduation_year,
            location=c.location,
            bio=c.bio if revealed else truncate_bio(c.bio),
            email=c.email if revealed else None,
            linkedin=c.linkedin if revealed else None,
            skills=c.skills,
            interests=c.interests,
            engagement_level=c.engagement_level,
            response_rate=c.response_rate,
            visibility=visibility,
            credit_cost=credit_cost,
            match=result,
        )

    async def apply(
        self,
        plan: str,
        ranked: list[tuple[Candidate, MatchResult]],
        context: str = "",
        limit: int | None = None,
    ) -> list[RankedCandidate]:
        """Truncate to the tier's result count and redact each entry.

        ``ranked`` must already be in final order. ``limit`` can only lower
        the tier's max_results, never raise it.
        """
        tier = self.tier_for(plan)
        count = tier.max_results if limit is None else min(limit, tier.max_results)
        kept = ranked[:count]
        logger.debug(
            "Gate %s: %d of %d results, visibility=%s",
            plan, len(kept), len(ranked), tier.visibility.value,
        )
        return await self.reveal(plan, kept, context)

    async def reveal(
        self,
        plan: str,
        kept: list[tuple[Candidate, MatchResult]],
        context: str = "",
    ) -> list[RankedCandidate]:
        """Redact and price every entry without truncating (shortlists).

        Insights for the complete-transparency tier are generated concurrently,
        at most ``concurrency`` at a time; output keeps the input order.
        """
        tier = self.tier_for(plan)
        gated = [
            self.redact(
                candidate,
                result,
                rank=position + 1,
                visibility=tier.visibility,
                credit_cost=self.credit_cost(position, len(kept)),
            )
            for position, (candidate, result) in enumerate(kept)
        ]
        if tier.visibility != VisibilityLevel.COMPLETE_TRANSPARENCY:
            return gated

        insights = self._insights
        if insights is None:
            return [
                entry.model_copy(update={"insights": template_insights(result)})
                for entry, (_, result) in zip(gated, kept)
            ]

        semaphore = asyncio.Semaphore(self._concurrency)

        async def _with_insights(
            entry: RankedCandidate, candidate: Candidate, result: MatchResult,
        ) -> RankedCandidate:
            async with semaphore:
                generated = await insights.generate(candidate, result, context)
            return entry.model_copy(update={"insights": generated})

        return list(await asyncio.gather(
            *(_with_insights(e, c, r) for e, (c, r) in zip(gated, kept))
        ))
