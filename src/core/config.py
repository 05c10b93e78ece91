"""Configuration models and YAML loader for the talent matching engine.

Every lookup table the scorers and gates read is a frozen model here, so
callers inject alternate tables by constructing the models directly.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from src.core.schemas import VisibilityLevel


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class DatabaseConfig(_Frozen):
    """Database configuration."""

    path: str = "data/talent.db"


class EmbeddingConfig(_Frozen):
    """Embedding provider and vector lifecycle settings."""

    provider: str | None = "openai"
    model: str | None = None
    version: str = "v1.0"
    max_chars: int = Field(default=32_000, ge=100)
    timeout_s: float = Field(default=8.0, gt=0)
    staleness_days: int = Field(default=30, ge=1)
    batch_size: int = Field(default=10, ge=1, le=100)
    batch_delay_s: float = Field(default=2.0, ge=0)


class InsightsConfig(_Frozen):
    """Chat provider used for AI-insight commentary (complete transparency tier)."""

    enabled: bool = False
    provider: str = "deepseek"
    model: str | None = None
    timeout_s: float = Field(default=15.0, gt=0)
    max_concurrency: int = Field(default=8, ge=1)


class PoolConfig(_Frozen):
    """Caps and recency windows for the retrieval cascade."""

    vector_limit: int = Field(default=500, ge=1)
    strict_limit: int = Field(default=20, ge=1)
    relaxed_limit: int = Field(default=40, ge=1)
    keyword_limit: int = Field(default=30, ge=1)
    emergency_limit: int = Field(default=50, ge=1)
    active_days: int = Field(default=90, ge=1)
    updated_days: int = Field(default=180, ge=1)
    created_days: int = Field(default=365, ge=1)
    keyword_buckets: dict[str, tuple[str, ...]] = Field(
        default_factory=lambda: {
            "marketing": ("marketing", "social media", "advertising", "branding"),
            "tech": ("tech", "software", "developer", "programming", "coding", "computer"),
            "business": ("business", "management", "entrepreneur", "strategy"),
        }
    )


class RelevanceWeights(_Frozen):
    """Point budget for the strict relevance score."""

    major: float = 50.0
    skills: float = 30.0
    university: float = 15.0
    keywords: float = 5.0
    subjects_factor: float = Field(default=0.8, ge=0.0, le=1.0)
    interests_factor: float = Field(default=0.5, ge=0.0, le=1.0)


class ProjectAlignmentConfig(_Frozen):
    """Point budget and lookup tables for the project-alignment score."""

    major_direct: float = 40.0
    major_partial: float = 25.0
    skills: float = 35.0
    interest_each: float = 5.0
    interest_max: float = 15.0
    location: float = 10.0
    floor: float = 20.0
    query_title_each: float = 25.0
    query_field: float = 30.0
    query_description_each: float = 10.0
    query_boost_max: float = 50.0
    raw_cap: float = 170.0
    # project category -> major keywords that count as a direct match
    major_categories: dict[str, tuple[str, ...]] = Field(
        default_factory=lambda: {
            "marketing": ("marketing", "business", "communications", "media", "advertising"),
            "computer science": (
                "computer", "software", "programming", "tech", "data", "engineering", "it",
            ),
            "finance": ("finance", "economics", "business", "accounting", "investment"),
            "psychology": ("psychology", "social", "behavioral", "mental health", "counseling"),
            "business development": ("business", "management", "entrepreneurship", "strategy"),
        }
    )
    partial_business_terms: tuple[str, ...] = ("business", "management", "admin")
    partial_business_categories: tuple[str, ...] = (
        "marketing", "business development", "finance",
    )
    partial_tech_terms: tuple[str, ...] = ("science", "technology", "engineering")
    skill_synonyms: dict[str, tuple[str, ...]] = Field(
        default_factory=lambda: {
            "javascript": ("js", "react", "node", "web development"),
            "python": ("data analysis", "machine learning", "ai"),
            "design": ("ui", "ux", "graphics", "creative"),
            "marketing": ("social media", "content creation", "branding"),
            "analysis": ("analytics", "data", "research"),
        }
    )
    query_fields: dict[str, tuple[str, ...]] = Field(
        default_factory=lambda: {
            "finance": ("finance", "financial", "investment", "banking", "accounting"),
            "data": ("data", "analytics", "science", "analysis", "database"),
            "marketing": ("marketing", "social", "media", "advertising", "branding"),
            "technology": ("tech", "software", "programming", "coding", "development"),
            "design": ("design", "ui", "ux", "graphics", "creative"),
        }
    )


class ActivityWeights(_Frozen):
    """Point budget for the activity score."""

    active_7d: float = 40.0
    active_30d: float = 25.0
    active_90d: float = 10.0
    per_application_this_month: float = 5.0
    applications_this_month_max: float = 30.0
    profile_completed: float = 20.0
    bio: float = 5.0
    university: float = 3.0
    major: float = 2.0
    per_total_application: float = 2.0
    total_applications_max: float = 10.0
    high_engagement: float = 70.0
    medium_engagement: float = 40.0


class ScoringConfig(_Frozen):
    """Weights for rule-based scoring."""

    relevance: RelevanceWeights = Field(default_factory=RelevanceWeights)
    project: ProjectAlignmentConfig = Field(default_factory=ProjectAlignmentConfig)
    activity: ActivityWeights = Field(default_factory=ActivityWeights)
    normalized_floor: float = 15.0
    normalized_flat: float = 85.0
    default_project_score: float = 70.0


class BlendWeights(_Frozen):
    """One row of the blending table. Weights must sum to 1."""

    vector: float = 0.0
    profile: float = 0.0
    skills: float = 0.0
    project: float = 0.0
    application: float = 0.0

    @model_validator(mode="after")
    def weights_sum_to_one(self) -> "BlendWeights":
        total = self.vector + self.profile + self.skills + self.project + self.application
        if abs(total - 1.0) > 1e-6:
            msg = f"blend weights must sum to 1.0, got {total:.3f}"
            raise ValueError(msg)
        return self


class RelevanceFirstWeights(_Frozen):
    """Weights for the rule-based-only talent matcher."""

    relevance: float = 0.60
    ai_score: float = 0.25
    activity: float = 0.15
    admission_threshold: float = 40.0
    relevance_gap: float = 10.0


class BlendingConfig(_Frozen):
    """Mode- and vector-dependent weight tables."""

    company_search_vector: BlendWeights = Field(
        default_factory=lambda: BlendWeights(vector=0.50, profile=0.25, skills=0.25)
    )
    company_search_rules: BlendWeights = Field(
        default_factory=lambda: BlendWeights(profile=0.40, skills=0.40, project=0.20)
    )
    shortlisting_vector: BlendWeights = Field(
        default_factory=lambda: BlendWeights(
            vector=0.35, profile=0.20, skills=0.20, project=0.15, application=0.10,
        )
    )
    shortlisting_rules: BlendWeights = Field(
        default_factory=lambda: BlendWeights(
            profile=0.30, skills=0.30, project=0.25, application=0.15,
        )
    )
    relevance_first: RelevanceFirstWeights = Field(default_factory=RelevanceFirstWeights)
    high_confidence: float = 85.0
    medium_confidence: float = 70.0
    no_vector_margin: float = 10.0
    concurrency: int = Field(default=16, ge=1)


class TierConfig(_Frozen):
    """Result count, credit allowance and visibility for one subscription plan."""

    name: str
    max_results: int = Field(ge=1)
    monthly_credits: int = Field(ge=0)
    contacts: int = Field(ge=0)
    visibility: VisibilityLevel
    manual_shortlist: bool = False


def _default_tiers() -> dict[str, TierConfig]:
    shortlisted = VisibilityLevel.SHORTLISTED_ONLY
    full = VisibilityLevel.FULL_POOL
    complete = VisibilityLevel.COMPLETE_TRANSPARENCY
    return {
        "FREE": TierConfig(
            name="Free", max_results=5, monthly_credits=15, contacts=10, visibility=shortlisted,
        ),
        "PROFESSIONAL": TierConfig(
            name="Professional", max_results=15, monthly_credits=30, contacts=25,
            visibility=full, manual_shortlist=True,
        ),
        "ENTERPRISE": TierConfig(
            name="Enterprise", max_results=50, monthly_credits=100, contacts=75,
            visibility=complete, manual_shortlist=True,
        ),
        "COMPANY_BASIC": TierConfig(
            name="Company Basic", max_results=5, monthly_credits=50, contacts=10,
            visibility=shortlisted,
        ),
        "COMPANY_PREMIUM": TierConfig(
            name="HR Booster", max_results=15, monthly_credits=150, contacts=25,
            visibility=full, manual_shortlist=True,
        ),
        "COMPANY_PRO": TierConfig(
            name="HR Agent", max_results=50, monthly_credits=300, contacts=75,
            visibility=complete, manual_shortlist=True,
        ),
    }


class CreditCosts(_Frozen):
    """Credits charged per revealed contact, by quality band."""

    high: int = Field(default=2, ge=0)
    medium: int = Field(default=1, ge=0)
    basic: int = Field(default=1, ge=0)
    top_fraction: float = Field(default=0.2, gt=0, lt=1)
    bottom_fraction: float = Field(default=0.2, gt=0, lt=1)


class ShortlistConfig(_Frozen):
    """Auto-shortlist trigger settings."""

    min_applications: int = Field(default=30, ge=1)
    shortlist_size: int = Field(default=10, ge=1)
    default_score: float = Field(default=50.0, ge=0, le=100)
    max_concurrency: int = Field(default=10, ge=1)
    applications_per_day: int = Field(default=3, ge=1)


class VocabularyConfig(_Frozen):
    """Fixed vocabulary for structured filter extraction.

    Keys are canonical values; tuples hold additional aliases.
    """

    universities: dict[str, tuple[str, ...]] = Field(
        default_factory=lambda: {
            "american university in dubai": ("aud",),
            "american university of sharjah": ("aus",),
            "zayed university": ("zu",),
            "university of dubai": (),
            "khalifa university": ("ku",),
            "united arab emirates university": ("uaeu",),
            "heriot-watt university": ("heriot-watt", "heriot watt"),
            "middlesex university": ("middlesex",),
            "university of wollongong": ("wollongong", "uowd"),
            "canadian university dubai": ("cud",),
            "new york university abu dhabi": ("nyu abu dhabi", "nyuad"),
            "university of sharjah": (),
            "rochester institute of technology": ("rit",),
            "murdoch university": ("murdoch",),
        }
    )
    majors: dict[str, tuple[str, ...]] = Field(
        default_factory=lambda: {
            "marketing": (),
            "computer science": ("cs", "computing"),
            "business": ("business administration", "bba"),
            "finance": (),
            "economics": (),
            "accounting": (),
            "engineering": (),
            "psychology": (),
            "design": ("graphic design",),
            "data science": (),
            "law": (),
            "mass communication": ("media studies", "communications"),
            "architecture": (),
            "medicine": ("medical",),
            "international relations": (),
        }
    )
    skills: dict[str, tuple[str, ...]] = Field(
        default_factory=lambda: {
            "social media": (),
            "content creation": (),
            "python": (),
            "javascript": ("js",),
            "react": (),
            "sql": (),
            "excel": (),
            "data analysis": ("data analytics",),
            "machine learning": ("ml",),
            "seo": (),
            "photoshop": (),
            "figma": (),
            "ui/ux": ("ux", "ui"),
            "video editing": (),
            "copywriting": (),
            "branding": (),
            "sales": (),
            "public speaking": (),
            "project management": (),
            "research": (),
            "financial modeling": ("financial modelling",),
            "leadership": (),
            "communication": (),
        }
    )


class Settings(BaseModel):
    """Top-level settings loaded from YAML."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    insights: InsightsConfig = Field(default_factory=InsightsConfig)
    pool: PoolConfig = Field(default_factory=PoolConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    blending: BlendingConfig = Field(default_factory=BlendingConfig)
    tiers: dict[str, TierConfig] = Field(default_factory=_default_tiers)
    credits: CreditCosts = Field(default_factory=CreditCosts)
    shortlist: ShortlistConfig = Field(default_factory=ShortlistConfig)
    vocabulary: VocabularyConfig = Field(default_factory=VocabularyConfig)

    @field_validator("tiers")
    @classmethod
    def at_least_one_tier(cls, v: dict[str, TierConfig]) -> dict[str, TierConfig]:
        if not v:
            msg = "at least one tier must be configured"
            raise ValueError(msg)
        return {plan.upper(): tier for plan, tier in v.items()}

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(raw)
