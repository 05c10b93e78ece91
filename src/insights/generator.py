"""AI-insight commentary for the complete-transparency tier.

Insights start from a score-banded template. When a chat provider is
enabled the template is replaced by model output; any provider failure
keeps the template.
"""

import asyncio
import logging

from src.core.config import InsightsConfig
from src.core.errors import ProviderError
from src.core.schemas import AIInsights, Candidate, MatchResult
from src.insights.llm import ChatProvider, get_provider, parse_json_object

logger = logging.getLogger(__name__)


def template_insights(result: MatchResult) -> AIInsights:
    """Score-banded insight template (>= 80 / >= 60 / else)."""
    score = result.overall_score
    if score >= 80:
        return AIInsights(
            summary=f"Excellent fit with an overall score of {score:.0f}.",
            key_strengths=["Strong skill alignment", "Relevant experience", "High motivation"],
            concerns=[],
            recommendation="Highly recommended candidate - schedule interview immediately",
        )
    if score >= 60:
        return AIInsights(
            summary=f"Promising fit with an overall score of {score:.0f}.",
            key_strengths=["Good potential", "Relevant background"],
            concerns=["Some skill gaps", "May need training"],
            recommendation="Solid candidate - worth interviewing with skill assessment",
        )
    return AIInsights(
        summary=f"Partial fit with an overall score of {score:.0f}.",
        key_strengths=["Enthusiastic applicant"],
        concerns=["Limited relevant experience", "Skill gaps"],
        recommendation="Consider for entry-level role with mentoring",
    )


def _build_user_prompt(candidate: Candidate, result: MatchResult, context: str) -> str:
    c = candidate
    skills = ", ".join(c.skills) if c.skills else "not specified"
    interests = ", ".join(c.interests) if c.interests else "not specified"
    return (
        "OPPORTUNITY\n"
        f"{context}\n\n"
        "CANDIDATE\n"
        f"University: {c.university or 'not provided'}\n"
        f"Major: {c.major or 'not provided'}\n"
        f"Graduation year: {c.graduation_year or 'not provided'}\n"
        f"Skills: {skills}\n"
        f"Interests: {interests}\n"
        f"Bio: {c.bio or 'not provided'}\n\n"
        "SCORES (0-100)\n"
        f"Overall: {result.overall_score:.0f}\n"
        f"Profile relevance: {result.profile_score:.0f}\n"
        f"Skills: {result.skills_score:.0f}\n"
        f"Match reasons: {'; '.join(result.match_reasons)}\n"
    )


def _parse_insights(raw_text: str) -> AIInsights:
    data = parse_json_object(raw_text)
    if not data.get("summary"):
        msg = "model response missing 'summary' field"
        raise ValueError(msg)
    return AIInsights(
        summary=str(data["summary"]),
        key_strengths=[str(s) for s in data.get("key_strengths") or []],
        concerns=[str(s) for s in data.get("concerns") or []],
        recommendation=str(data.get("recommendation", "")),
        source="llm",
    )


class InsightGenerator:
    """Produces AIInsights, enriched by a chat provider when one is enabled."""

    def __init__(self, config: InsightsConfig, provider: ChatProvider | None = None) -> None:
        self._config = config
        self._provider = provider

    @classmethod
    def from_config(cls, config: InsightsConfig) -> "InsightGenerator":
        provider = get_provider(config.provider) if config.enabled else None
        return cls(config, provider)

    async def _complete(self, provider: ChatProvider, prompt: str) -> str:
        provider_id = provider.provider_id
        try:
            return await asyncio.wait_for(
                provider.complete(prompt, model=self._config.model),
                timeout=self._config.timeout_s,
            )
        except asyncio.TimeoutError as e:
            msg = f"insight request timed out after {self._config.timeout_s:.1f}s"
            raise ProviderError(provider_id, msg) from e
        except Exception as e:
            raise ProviderError(provider_id, str(e)) from e

    async def generate(self, candidate: Candidate, result: MatchResult, context: str) -> AIInsights:
        """Return insights for one candidate; never raises on provider failure."""
        template = template_insights(result)
        if self._provider is None:
            return template

        try:
            raw = await self._complete(self._provider, _build_user_prompt(candidate, result, context))
            return _parse_insights(raw)
        except (ProviderError, ValueError):
            logger.warning(
                "Insight generation failed for %s, using template", candidate.id, exc_info=True,
            )
            return template
