"""Rule-based scoring for candidates, independent of embeddings.

Score range for every public scorer: 0-100 (clamped), except
project_alignment_score which returns a raw value for normalization.
"""

import logging
import re
from collections.abc import Sequence
from datetime import datetime

from src.core.config import ActivityWeights, ProjectAlignmentConfig, RelevanceWeights
from src.core.schemas import Application, Candidate, EngagementLevel, Project, SearchFilters
from src.matching.filters import STOP_WORDS, extract_keywords

logger = logging.getLogger(__name__)

_TERM_RE = re.compile(r"[a-z0-9][a-z0-9+#/-]*")


def _contains(text: str, term: str) -> bool:
    """Substring match; terms of two characters or fewer must be whole words."""
    if len(term) <= 2:
        return re.search(rf"(?<![a-z0-9]){re.escape(term)}(?![a-z0-9])", text) is not None
    return term in text


def _days_since(ts: datetime | None, now: datetime) -> float | None:
    if ts is None:
        return None
    return (now - ts).total_seconds() / 86_400


def query_terms(text: str) -> list[str]:
    """Distinct lower-case content terms of ``text`` (stop words removed)."""
    terms: list[str] = []
    for token in _TERM_RE.findall(text.lower()):
        token = token.strip("-/")
        if len(token) > 2 and token not in STOP_WORDS and token not in terms:
            terms.append(token)
    return terms


# ---------------------------------------------------------------------------
# Activity
# ---------------------------------------------------------------------------


def activity_score(
    candidate: Candidate,
    weights: ActivityWeights,
    now: datetime | None = None,
) -> float:
    """Engagement score from recency, application volume and profile completeness."""
    now = now or datetime.now()
    w = weights
    score = 0.0

    days = _days_since(candidate.last_active_at, now)
    if days is not None:
        if days <= 7:
            score += w.active_7d
        elif days <= 30:
            score += w.active_30d
        elif days <= 90:
            score += w.active_90d

    score += min(
        candidate.applications_this_month * w.per_application_this_month,
        w.applications_this_month_max,
    )

    if candidate.profile_completed or candidate.profile_completed_at is not None:
        score += w.profile_completed
    if candidate.bio:
        score += w.bio
    if candidate.university:
        score += w.university
    if candidate.major:
        score += w.major

    score += min(
        candidate.total_applications * w.per_total_application,
        w.total_applications_max,
    )

    return min(score, 100.0)


def engagement_level(score: float, weights: ActivityWeights) -> EngagementLevel:
    if score >= weights.high_engagement:
        return EngagementLevel.HIGH
    if score >= weights.medium_engagement:
        return EngagementLevel.MEDIUM
    return EngagementLevel.LOW


def response_rate(score: float) -> float:
    """Estimated response rate in percent, capped at 95."""
    return min(score * 0.8, 95.0)


def enrich_candidate(
    candidate: Candidate,
    weights: ActivityWeights,
    now: datetime | None = None,
) -> Candidate:
    """Return a copy with activity_score, response_rate and engagement_level filled."""
    score = activity_score(candidate, weights, now)
    return candidate.model_copy(update={
        "activity_score": score,
        "response_rate": response_rate(score),
        "engagement_level": engagement_level(score, weights),
    })


# ---------------------------------------------------------------------------
# Query relevance
# ---------------------------------------------------------------------------


def _profile_text(candidate: Candidate) -> str:
    c = candidate
    parts = [
        c.name, c.bio or "", c.university or "", c.major or "", c.subjects or "",
        c.education or "", c.location or "",
        " ".join(c.skills), " ".join(c.interests), " ".join(c.goals),
    ]
    return " ".join(parts).lower()


def relevance_score(
    candidate: Candidate,
    filters: SearchFilters,
    keywords: Sequence[str],
    weights: RelevanceWeights,
    university_aliases: dict[str, tuple[str, ...]] | None = None,
) -> tuple[float, list[str]]:
    """Strict relevance of a candidate to a parsed query.

    Buckets, in priority order: major (then subjects, then interests/goals),
    skills, university, generic keywords. Where the query names no majors
    (or no skills), its keywords stand in for that bucket.

    Returns:
        (score 0-100, match reasons)
    """
    c = candidate
    w = weights
    score = 0.0
    reasons: list[str] = []

    # Major / subjects / interests
    major_terms = [t.lower() for t in (filters.majors or keywords)]
    if major_terms:
        major = (c.major or "").lower()
        subjects = (c.subjects or "").lower()
        tags = " ".join(c.interests + c.goals).lower()
        if major and any(_contains(major, t) for t in major_terms):
            score += w.major
            reasons.append(f"Relevant major: {c.major}")
        elif subjects and any(_contains(subjects, t) for t in major_terms):
            score += w.major * w.subjects_factor
            reasons.append(f"Relevant coursework: {c.subjects}")
        elif tags and any(_contains(tags, t) for t in major_terms):
            score += w.major * w.interests_factor
            reasons.append("Interests align with the requested field")

    # Skills
    skill_terms = [t.lower() for t in (filters.skills or keywords)]
    if skill_terms:
        skill_text = " ".join(
            c.skills + c.goals + c.interests + [c.bio or "", c.subjects or ""]
        ).lower()
        found = [t for t in skill_terms if _contains(skill_text, t)]
        if found:
            score += w.skills * len(found) / len(skill_terms)
            reasons.append(f"Skills match: {', '.join(found[:3])}")

    # University
    if filters.universities and c.university:
        university = c.university.lower()
        aliases = university_aliases or {}
        for name in filters.universities:
            names = (name.lower(), *aliases.get(name, ()))
            if any(n == university or _contains(university, n) or university in n for n in names):
                score += w.university
                reasons.append(f"Studies at {c.university}")
                break

    # Generic keywords over the whole profile
    if keywords:
        text = _profile_text(c)
        hits = sum(1 for k in keywords if _contains(text, k.lower()))
        score += w.keywords * hits / len(keywords)

    return min(score, 100.0), reasons


def skills_match_score(candidate: Candidate, terms: Sequence[str]) -> float:
    """Overlap of query terms with declared skills (+10 floor, capped 100)."""
    skills = [s.lower() for s in candidate.skills if s.strip()]
    if not terms:
        return 10.0
    matches = sum(
        1 for term in terms
        if any(term in skill or skill in term for skill in skills)
    )
    return min(100.0, round(matches / max(len(terms) * 0.3, 1) * 100 + 10))


def ai_proxy_score(candidate: Candidate) -> float:
    """Profile-completeness proxy used by the relevance-first blend."""
    score = 50.0
    if candidate.bio:
        score += 20
    if candidate.university:
        score += 15
    if candidate.major:
        score += 10
    if candidate.goals:
        score += 5
    return min(score, 100.0)


# ---------------------------------------------------------------------------
# Project alignment
# ---------------------------------------------------------------------------


def _major_alignment(major: str, category: str, config: ProjectAlignmentConfig) -> float:
    major = major.lower()
    category = category.lower().replace("_", " ")

    for name, keywords in config.major_categories.items():
        if name in category and any(_contains(major, k) for k in keywords):
            return config.major_direct

    if any(t in major for t in config.partial_business_terms) and any(
        category == name for name in config.partial_business_categories
    ):
        return config.major_partial
    if any(t in major for t in config.partial_tech_terms) and "computer" in category:
        return config.major_partial
    return 0.0


def skills_overlap(a: str, b: str, synonyms: dict[str, tuple[str, ...]]) -> bool:
    """Fuzzy skill equality: containment either way, or a synonym pair."""
    s1 = a.lower().strip()
    s2 = b.lower().strip()
    if not s1 or not s2:
        return False
    if s1 in s2 or s2 in s1:
        return True
    for base, variants in synonyms.items():
        if base in s1 and any(_contains(s2, v) for v in variants):
            return True
        if base in s2 and any(_contains(s1, v) for v in variants):
            return True
    return False


def _query_boost(query: str, project: Project, config: ProjectAlignmentConfig) -> float:
    keywords = extract_keywords(query)
    if not keywords:
        return 0.0
    title = project.title.lower()
    description = project.description.lower()
    category = (project.category or "").lower()
    project_text = f"{title} {description} {category}"

    boost = sum(config.query_title_each for k in keywords if k in title)

    for field, terms in config.query_fields.items():
        if any(k in terms for k in keywords) and (
            field in category or any(_contains(project_text, t) for t in terms)
        ):
            boost += config.query_field
            break

    boost += sum(config.query_description_each for k in keywords if k in description)
    return min(boost, config.query_boost_max)


def project_alignment_score(
    candidate: Candidate,
    project: Project,
    config: ProjectAlignmentConfig,
    query: str | None = None,
) -> tuple[float, list[str]]:
    """Raw candidate/project alignment, floor included, capped at ``raw_cap``.

    Returns:
        (raw score, match reasons)
    """
    c = candidate
    score = 0.0
    reasons: list[str] = []

    if c.major and project.category:
        major_points = _major_alignment(c.major, project.category, config)
        if major_points:
            score += major_points
            reasons.append(f"{c.major} aligns with {project.category}")

    if c.skills and project.skills_required:
        matched = [
            skill for skill in c.skills
            if any(skills_overlap(skill, req, config.skill_synonyms) for req in project.skills_required)
        ]
        if matched:
            score += round(len(matched) / len(project.skills_required) * config.skills)
            reasons.append(f"Skills: {', '.join(matched[:2])}")

    tags = c.interests + c.goals
    if tags:
        project_text = f"{project.title} {project.description} {project.category or ''}".lower()
        aligned = sum(1 for t in tags if t.strip() and t.lower() in project_text)
        if aligned:
            score += min(aligned * config.interest_each, config.interest_max)
            reasons.append("Career interests align")

    if c.location and project.location:
        student_loc = c.location.lower()
        project_loc = project.location.lower()
        if project_loc in student_loc or student_loc in project_loc:
            score += config.location
            reasons.append("Location match")

    if query:
        boost = _query_boost(query, project, config)
        if boost:
            score += boost
            reasons.append("Matches your search")

    score += config.floor
    return min(score, config.raw_cap), reasons


# ---------------------------------------------------------------------------
# Normalization and application quality
# ---------------------------------------------------------------------------


def normalize_scores(
    raws: Sequence[float],
    floor: float = 15.0,
    flat: float = 85.0,
) -> list[float]:
    """Rescale raw scores linearly onto [floor, 100]; identical raws all get ``flat``."""
    if not raws:
        return []
    low = min(raws)
    high = max(raws)
    if high == low:
        return [flat for _ in raws]
    span = 100.0 - floor
    return [float(round(floor + (r - low) / (high - low) * span)) for r in raws]


def application_quality_score(
    application: Application,
    now: datetime | None = None,
) -> float:
    """Quality of an application's written answers, plus a recency bonus."""
    now = now or datetime.now()
    score = 50.0

    if application.cover_letter:
        length = len(application.cover_letter)
        if length > 200:
            score += 15
        elif length > 100:
            score += 10
        elif length > 50:
            score += 5

    if application.why_interested:
        score += 10
    if application.proposed_approach:
        score += 15
    if application.relevant_experience:
        score += 10

    days = _days_since(application.created_at, now)
    if days is not None:
        if days < 7:
            score += 10
        elif days < 30:
            score += 5

    return min(score, 100.0)
