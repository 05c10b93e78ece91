"""Unified ranking: blends vector and rule-based sub-scores into MatchResults.

Weight table is picked per candidate from (mode, has usable vector). The
subscription tier never influences scoring; it only gates the output.
"""

import logging
from collections.abc import Sequence
from datetime import datetime

from src.core.config import BlendingConfig, BlendWeights, ScoringConfig, VocabularyConfig
from src.core.errors import DataIntegrityError
from src.core.schemas import (
    Application,
    Candidate,
    CandidateVector,
    ConfidenceLevel,
    MatchingMode,
    MatchResult,
    Project,
    RecommendedAction,
    SearchQuery,
)
from src.matching.scorer import (
    ai_proxy_score,
    application_quality_score,
    normalize_scores,
    project_alignment_score,
    query_terms,
    relevance_score,
    skills_match_score,
)
from src.matching.similarity import cosine_similarity

logger = logging.getLogger(__name__)

_PROFILE_WEIGHT = 0.5
_SKILLS_WEIGHT = 0.3
_ACADEMIC_WEIGHT = 0.2
_PROMPT_SHARE = 0.6
_PROJECT_SHARE = 0.4


class VectorScores:
    """Cosine-derived sub-scores (0-100) for one candidate."""

    def __init__(self, similarity: float, academic: float) -> None:
        self.similarity = similarity
        self.academic = academic


def vector_scores(query: SearchQuery, vector: CandidateVector | None) -> VectorScores | None:
    """Score stored vectors against the query vector(s).

    Returns None when there is nothing comparable: no query vector, no
    stored vector, or a length mismatch between them.
    """
    if query.vector is None or vector is None:
        return None
    try:
        profile = cosine_similarity(query.vector, vector.profile_vector) * 100
        skills = cosine_similarity(query.vector, vector.skills_vector) * 100
        academic = cosine_similarity(query.vector, vector.academic_vector) * 100
        prompt_score = (
            profile * _PROFILE_WEIGHT + skills * _SKILLS_WEIGHT + academic * _ACADEMIC_WEIGHT
        )
        if query.project_vector is not None:
            project = cosine_similarity(query.project_vector, vector.profile_vector) * 100
            similarity = prompt_score * _PROMPT_SHARE + project * _PROJECT_SHARE
        else:
            similarity = prompt_score
    except DataIntegrityError:
        logger.debug("Unusable vector for %s (length mismatch)", vector.user_id, exc_info=True)
        return None
    return VectorScores(
        similarity=max(0.0, min(100.0, similarity)),
        academic=max(0.0, min(100.0, academic)),
    )


def select_weights(mode: MatchingMode, has_vector: bool, blending: BlendingConfig) -> BlendWeights:
    if mode == MatchingMode.PROJECT_SHORTLISTING:
        return blending.shortlisting_vector if has_vector else blending.shortlisting_rules
    return blending.company_search_vector if has_vector else blending.company_search_rules


def confidence_level(score: float, has_vector: bool, blending: BlendingConfig) -> ConfidenceLevel:
    """Rule-only scores need an extra margin to earn the same label."""
    margin = 0.0 if has_vector else blending.no_vector_margin
    if score >= blending.high_confidence + margin:
        return ConfidenceLevel.HIGH
    if score >= blending.medium_confidence + margin:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


def recommended_action(score: float, confidence: ConfidenceLevel) -> RecommendedAction:
    if score >= 85 and confidence == ConfidenceLevel.HIGH:
        return RecommendedAction.SHORTLIST
    if score >= 75:
        return RecommendedAction.CONSIDER
    if score >= 60:
        return RecommendedAction.REVIEW
    return RecommendedAction.PASS


def _dedupe(items: Sequence[str]) -> list[str]:
    result: list[str] = []
    for item in items:
        if item not in result:
            result.append(item)
    return result


class MatchScorer:
    """Scores one candidate against a parsed query.

    Usage::

        scorer = MatchScorer(settings.scoring, settings.blending, settings.vocabulary)
        result = scorer.score(candidate, query, vector=store.get(candidate.id))
    """

    def __init__(
        self,
        scoring: ScoringConfig,
        blending: BlendingConfig,
        vocabulary: VocabularyConfig,
        now: datetime | None = None,
    ) -> None:
        self._scoring = scoring
        self._blending = blending
        self._vocabulary = vocabulary
        self._now = now

    def score(
        self,
        candidate: Candidate,
        query: SearchQuery,
        *,
        vector: CandidateVector | None = None,
        project: Project | None = None,
        application: Application | None = None,
    ) -> MatchResult:
        if query.mode == MatchingMode.RELEVANCE_FIRST:
            return self._score_relevance_first(candidate, query)

        vs = vector_scores(query, vector)
        has_vector = vs is not None

        relevance, relevance_reasons = relevance_score(
            candidate,
            query.filters,
            query.keywords,
            self._scoring.relevance,
            self._vocabulary.universities,
        )
        skills = skills_match_score(candidate, query_terms(query.enhanced_text or query.prompt))

        project_reasons: list[str] = []
        if project is not None:
            raw, project_reasons = project_alignment_score(candidate, project, self._scoring.project)
            project_score = min(100.0, raw)
        else:
            project_score = self._scoring.default_project_score

        quality: float | None = None
        if application is not None and query.mode == MatchingMode.PROJECT_SHORTLISTING:
            quality = application_quality_score(application, self._now)

        weights = select_weights(query.mode, has_vector, self._blending)
        similarity = vs.similarity if vs is not None else 0.0
        overall = round(
            similarity * weights.vector
            + relevance * weights.profile
            + skills * weights.skills
            + project_score * weights.project
            + (quality or 0.0) * weights.application
        )
        overall = max(0.0, min(100.0, float(overall)))

        confidence = confidence_level(overall, has_vector, self._blending)
        reasons = self._reasons(
            candidate, vs, relevance_reasons, skills, project_score, project_reasons, quality,
        )

        return MatchResult(
            candidate_id=candidate.id,
            application_id=application.id if application is not None else None,
            vector_similarity=round(vs.similarity, 2) if vs is not None else None,
            profile_score=round(relevance, 2),
            skills_score=skills,
            academic_score=round(vs.academic, 2) if vs is not None else None,
            project_score=round(project_score, 2),
            application_quality_score=quality,
            relevance_score=round(relevance, 2),
            activity_score=candidate.activity_score,
            ai_score=ai_proxy_score(candidate),
            overall_score=overall,
            confidence=confidence,
            recommended_action=recommended_action(overall, confidence),
            match_reasons=reasons,
            vectors_used=has_vector,
        )

    def _score_relevance_first(self, candidate: Candidate, query: SearchQuery) -> MatchResult:
        w = self._blending.relevance_first
        relevance, reasons = relevance_score(
            candidate,
            query.filters,
            query.keywords,
            self._scoring.relevance,
            self._vocabulary.universities,
        )
        ai_score = ai_proxy_score(candidate)
        overall = round(
            relevance * w.relevance + ai_score * w.ai_score + candidate.activity_score * w.activity
        )
        overall = max(0.0, min(100.0, float(overall)))
        confidence = confidence_level(overall, False, self._blending)
        if candidate.university:
            reasons.append(f"University education: {candidate.university}")
        if len(candidate.skills) > 5:
            reasons.append("Diverse skill set")
        return MatchResult(
            candidate_id=candidate.id,
            profile_score=round(relevance, 2),
            relevance_score=round(relevance, 2),
            activity_score=candidate.activity_score,
            ai_score=ai_score,
            overall_score=overall,
            confidence=confidence,
            recommended_action=recommended_action(overall, confidence),
            match_reasons=_dedupe(reasons) or ["Basic profile match"],
        )

    def _reasons(
        self,
        candidate: Candidate,
        vs: VectorScores | None,
        relevance_reasons: list[str],
        skills: float,
        project_score: float,
        project_reasons: list[str],
        quality: float | None,
    ) -> list[str]:
        reasons: list[str] = []
        if vs is not None:
            if vs.similarity > 80:
                reasons.append("Excellent semantic match with search criteria")
            elif vs.similarity > 70:
                reasons.append("Strong profile alignment")
            if vs.academic > 80:
                reasons.append("Perfect academic background")

        reasons.extend(relevance_reasons)

        if skills > 80:
            reasons.append("Highly relevant skills")
        elif skills > 70:
            reasons.append("Good skills match")

        if project_score >= 70:
            reasons.extend(r for r in project_reasons if r != "Career interests align")

        if candidate.university and not any(r.startswith("Studies at") for r in reasons):
            reasons.append(f"University education: {candidate.university}")

        if quality is not None:
            if quality > 80:
                reasons.append("High-quality application")
            elif quality > 70:
                reasons.append("Well-written application")

        if len(candidate.skills) > 5:
            reasons.append("Diverse skill set")

        return _dedupe(reasons) or ["Basic profile match"]


def _relevance_first_order(results: list[MatchResult], gap: float) -> list[MatchResult]:
    """Order so that anyone more than ``gap`` relevance points ahead ranks higher.

    Among candidates no remaining one out-ranks on relevance, the best
    overall score goes next. The result does not depend on input order.
    """
    remaining = sorted(
        results, key=lambda r: (-r.overall_score, -r.relevance_score, r.candidate_id),
    )
    ordered: list[MatchResult] = []
    while remaining:
        top_relevance = max(r.relevance_score for r in remaining)
        pick = next(r for r in remaining if top_relevance - r.relevance_score <= gap)
        ordered.append(pick)
        remaining.remove(pick)
    return ordered


def rank_results(
    results: list[MatchResult],
    mode: MatchingMode,
    blending: BlendingConfig,
    scoring: ScoringConfig,
) -> list[MatchResult]:
    """Sort results, apply the relevance-first admission threshold, fill match_score.

    Runs once, after every candidate has been scored.
    """
    if mode == MatchingMode.RELEVANCE_FIRST:
        w = blending.relevance_first
        admitted = [r for r in results if r.overall_score >= w.admission_threshold]
        dropped = len(results) - len(admitted)
        if dropped:
            logger.debug("Relevance-first threshold dropped %d candidates", dropped)
        ordered = _relevance_first_order(admitted, w.relevance_gap)
    else:
        ordered = sorted(results, key=lambda r: r.overall_score, reverse=True)

    normalized = normalize_scores(
        [r.overall_score for r in ordered],
        floor=scoring.normalized_floor,
        flat=scoring.normalized_flat,
    )
    return [r.model_copy(update={"match_score": m}) for r, m in zip(ordered, normalized)]
