"""Core data models for the talent matching engine."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MatchingMode(str, Enum):
    COMPANY_SEARCH = "company_search"
    PROJECT_SHORTLISTING = "project_shortlisting"
    RELEVANCE_FIRST = "relevance_first"


class ConfidenceLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RecommendedAction(str, Enum):
    SHORTLIST = "shortlist"
    CONSIDER = "consider"
    REVIEW = "review"
    PASS = "pass"


class EngagementLevel(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class VisibilityLevel(str, Enum):
    SHORTLISTED_ONLY = "shortlisted_only"
    FULL_POOL = "full_pool"
    COMPLETE_TRANSPARENCY = "complete_transparency"


class RetrievalStage(str, Enum):
    VECTOR = "vector"
    STRICT_FILTER = "strict_filter"
    RELAXED_FILTER = "relaxed_filter"
    KEYWORD_FALLBACK = "keyword_fallback"
    EMERGENCY_FALLBACK = "emergency_fallback"
    APPLICANTS = "applicants"


class ApplicationStatus(str, Enum):
    PENDING = "pending"
    SHORTLISTED = "shortlisted"
    INTERVIEWED = "interviewed"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


def _naive_local(value: datetime) -> datetime:
    """Timestamps are compared as naive local time; convert aware ones."""
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


# ---------------------------------------------------------------------------
# Records read from the relational store
# ---------------------------------------------------------------------------


class Candidate(BaseModel):
    """A student profile as seen by the matching core.

    Frozen. The pool builder fills the derived activity fields through
    ``model_copy(update=...)``.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    email: str | None = None
    linkedin: str | None = None
    bio: str | None = None
    university: str | None = None
    major: str | None = None
    subjects: str | None = None
    education: str | None = None
    high_school: str | None = None
    graduation_year: int | None = None
    location: str | None = None
    skills: list[str] = Field(default_factory=list)
    interests: list[str] = Field(default_factory=list)
    goals: list[str] = Field(default_factory=list)
    applications_this_month: int = Field(default=0, ge=0)
    total_applications: int = Field(default=0, ge=0)
    last_active_at: datetime | None = None
    profile_completed: bool = False
    profile_completed_at: datetime | None = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    activity_score: float = Field(default=0.0, ge=0.0, le=100.0)
    response_rate: float = Field(default=0.0, ge=0.0, le=100.0)
    engagement_level: EngagementLevel = EngagementLevel.LOW

    @field_validator("last_active_at", "profile_completed_at", "created_at", "updated_at")
    @classmethod
    def naive_timestamps(cls, v: datetime | None) -> datetime | None:
        return _naive_local(v) if v is not None else None


class CandidateVector(BaseModel):
    """Stored embeddings for one candidate."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    profile_vector: list[float]
    skills_vector: list[float]
    academic_vector: list[float]
    vector_version: str
    last_updated: datetime = Field(default_factory=datetime.now)

    @field_validator("last_updated")
    @classmethod
    def naive_timestamp(cls, v: datetime) -> datetime:
        return _naive_local(v)


class Company(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    industry: str | None = None
    one_liner: str | None = None
    plan: str = "FREE"


class Project(BaseModel):
    """An opportunity posted by a company."""

    model_config = ConfigDict(frozen=True)

    id: str
    company_id: str
    title: str
    description: str = ""
    category: str | None = None
    experience_level: str | None = None
    location: str | None = None
    skills_required: list[str] = Field(default_factory=list)
    requirements: list[str] = Field(default_factory=list)
    status: str = "LIVE"
    created_at: datetime = Field(default_factory=datetime.now)

    @field_validator("created_at")
    @classmethod
    def naive_timestamp(cls, v: datetime) -> datetime:
        return _naive_local(v)


class Application(BaseModel):
    """Links a candidate to a project."""

    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    project_id: str
    status: ApplicationStatus = ApplicationStatus.PENDING
    cover_letter: str | None = None
    why_interested: str | None = None
    proposed_approach: str | None = None
    relevant_experience: str | None = None
    compatibility_score: float | None = None
    admin_notes: str | None = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @field_validator("created_at", "updated_at")
    @classmethod
    def naive_timestamps(cls, v: datetime) -> datetime:
        return _naive_local(v)


# ---------------------------------------------------------------------------
# Ephemeral search state
# ---------------------------------------------------------------------------


class SearchFilters(BaseModel):
    """Structured filters extracted from a free-text prompt."""

    model_config = ConfigDict(frozen=True)

    universities: list[str] = Field(default_factory=list)
    majors: list[str] = Field(default_factory=list)
    skills: list[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.universities or self.majors or self.skills)


class SearchQuery(BaseModel):
    """One search call's parsed input. Never persisted."""

    model_config = ConfigDict(frozen=True)

    prompt: str
    mode: MatchingMode = MatchingMode.COMPANY_SEARCH
    company_id: str | None = None
    project_id: str | None = None
    project_text: str | None = None
    enhanced_text: str = ""
    keywords: list[str] = Field(default_factory=list)
    filters: SearchFilters = Field(default_factory=SearchFilters)
    vector: list[float] | None = None
    project_vector: list[float] | None = None


# ---------------------------------------------------------------------------
# Outputs
# ---------------------------------------------------------------------------


class MatchResult(BaseModel):
    """Scores and explanations for one candidate against one query."""

    model_config = ConfigDict(frozen=True)

    candidate_id: str
    application_id: str | None = None
    vector_similarity: float | None = None
    profile_score: float = 0.0
    skills_score: float = 0.0
    academic_score: float | None = None
    project_score: float = 0.0
    application_quality_score: float | None = None
    relevance_score: float = 0.0
    activity_score: float = 0.0
    ai_score: float = 0.0
    overall_score: float = Field(default=0.0, ge=0.0, le=100.0)
    match_score: float = Field(default=0.0, ge=0.0, le=100.0)
    confidence: ConfidenceLevel = ConfidenceLevel.LOW
    recommended_action: RecommendedAction = RecommendedAction.PASS
    match_reasons: list[str] = Field(default_factory=list)
    vectors_used: bool = False


class AIInsights(BaseModel):
    model_config = ConfigDict(frozen=True)

    summary: str
    key_strengths: list[str] = Field(default_factory=list)
    concerns: list[str] = Field(default_factory=list)
    recommendation: str = ""
    source: str = "template"


class RankedCandidate(BaseModel):
    """A candidate as revealed to a company, after tier redaction."""

    model_config = ConfigDict(frozen=True)

    rank: int = Field(ge=1)
    candidate_id: str
    name: str
    university: str | None = None
    major: str | None = None
    graduation_year: int | None = None
    location: str | None = None
    bio: str | None = None
    email: str | None = None
    linkedin: str | None = None
    skills: list[str] = Field(default_factory=list)
    interests: list[str] = Field(default_factory=list)
    engagement_level: EngagementLevel = EngagementLevel.LOW
    response_rate: float = 0.0
    visibility: VisibilityLevel
    credit_cost: int = 0
    match: MatchResult
    insights: AIInsights | None = None


class CreditStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    plan: str
    tier_name: str
    available: int
    monthly_credits: int
    contacts: int


class SearchMetadata(BaseModel):
    """Observability data for one search. Not a stable contract."""

    processing_time_ms: float
    pool_size: int
    stage: RetrievalStage | None
    attempted_stages: list[RetrievalStage] = Field(default_factory=list)
    vectors_used: bool = False
    threshold: float | None = None
    mode: MatchingMode
    total_matches: int = 0
    returned: int = 0


class RankedResults(BaseModel):
    query: str
    mode: MatchingMode
    plan: str
    candidates: list[RankedCandidate] = Field(default_factory=list)
    metadata: SearchMetadata
    credits: CreditStatus
    suggestions: list[str] = Field(default_factory=list)
    upgrade_prompt: str | None = None


class Eligibility(BaseModel):
    """Whether a project has enough applications to auto-shortlist."""

    project_id: str
    eligible: bool
    current: int
    required: int
    remaining_needed: int
    estimated_days_to_eligibility: int


class ShortlistResult(BaseModel):
    project_id: str
    candidates: list[RankedCandidate] = Field(default_factory=list)
    total_applications: int
    shortlisted_at: datetime
    cached: bool = False
    manual: bool = False
    visibility: VisibilityLevel
    upgrade_prompt: str | None = None


class ProjectMatch(BaseModel):
    """A live project ranked for one student."""

    model_config = ConfigDict(frozen=True)

    project_id: str
    company_id: str
    title: str
    category: str | None = None
    raw_score: float
    match_score: float = Field(ge=0.0, le=100.0)
    match_reasons: list[str] = Field(default_factory=list)


class RefreshSummary(BaseModel):
    processed: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0
