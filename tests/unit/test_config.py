"""Tests for configuration models and YAML loading."""

from pathlib import Path
from textwrap import dedent

import pytest
from pydantic import ValidationError

from src.core.config import (
    BlendingConfig,
    BlendWeights,
    EmbeddingConfig,
    PoolConfig,
    ScoringConfig,
    Settings,
    TierConfig,
    VocabularyConfig,
)
from src.core.schemas import VisibilityLevel


class TestEmbeddingConfig:
    def test_defaults(self) -> None:
        c = EmbeddingConfig()
        assert c.provider == "openai"
        assert c.max_chars == 32_000
        assert c.timeout_s == 8.0
        assert c.staleness_days == 30
        assert c.batch_size == 10

    def test_timeout_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            EmbeddingConfig(timeout_s=0)

    def test_frozen(self) -> None:
        c = EmbeddingConfig()
        with pytest.raises(ValidationError):
            c.version = "v2"  # type: ignore[misc]


class TestPoolConfig:
    def test_legacy_caps(self) -> None:
        c = PoolConfig()
        assert (c.strict_limit, c.relaxed_limit, c.keyword_limit, c.emergency_limit) == (
            20, 40, 30, 50,
        )
        assert (c.active_days, c.updated_days, c.created_days) == (90, 180, 365)

    def test_keyword_buckets(self) -> None:
        assert set(PoolConfig().keyword_buckets) == {"marketing", "tech", "business"}


class TestBlendWeights:
    def test_must_sum_to_one(self) -> None:
        with pytest.raises(ValidationError, match="sum to 1.0"):
            BlendWeights(vector=0.5, profile=0.2)

    def test_default_tables_valid(self) -> None:
        b = BlendingConfig()
        assert b.company_search_vector.vector == 0.50
        assert b.company_search_rules.vector == 0.0
        assert b.shortlisting_vector.application == 0.10
        assert b.shortlisting_rules.project == 0.25

    def test_relevance_first_defaults(self) -> None:
        rf = BlendingConfig().relevance_first
        assert (rf.relevance, rf.ai_score, rf.activity) == (0.60, 0.25, 0.15)
        assert rf.admission_threshold == 40.0


class TestScoringConfig:
    def test_relevance_weights(self) -> None:
        r = ScoringConfig().relevance
        assert (r.major, r.skills, r.university, r.keywords) == (50, 30, 15, 5)

    def test_activity_weights(self) -> None:
        a = ScoringConfig().activity
        assert (a.active_7d, a.active_30d, a.active_90d) == (40, 25, 10)
        assert a.high_engagement == 70
        assert a.medium_engagement == 40


class TestVocabulary:
    def test_aliases(self) -> None:
        v = VocabularyConfig()
        assert "aud" in v.universities["american university in dubai"]
        assert "cs" in v.majors["computer science"]


class TestSettings:
    def test_default_tiers(self) -> None:
        s = Settings()
        assert set(s.tiers) == {
            "FREE", "PROFESSIONAL", "ENTERPRISE",
            "COMPANY_BASIC", "COMPANY_PREMIUM", "COMPANY_PRO",
        }
        assert s.tiers["FREE"].max_results == 5
        assert s.tiers["COMPANY_PREMIUM"].visibility == VisibilityLevel.FULL_POOL
        assert s.tiers["ENTERPRISE"].visibility == VisibilityLevel.COMPLETE_TRANSPARENCY

    def test_tier_keys_uppercased(self) -> None:
        s = Settings(tiers={
            "starter": TierConfig(
                name="Starter", max_results=3, monthly_credits=5, contacts=1,
                visibility=VisibilityLevel.SHORTLISTED_ONLY,
            ),
        })
        assert list(s.tiers) == ["STARTER"]

    def test_empty_tiers_rejected(self) -> None:
        with pytest.raises(ValidationError, match="at least one tier"):
            Settings(tiers={})

    def test_from_yaml(self, tmp_path: Path) -> None:
        yaml_content = dedent("""\
            database:
              path: data/test.db
            embedding:
              provider: hashing
              version: hashing-v1
            shortlist:
              min_applications: 5
            tiers:
              FREE:
                name: Free
                max_results: 2
                monthly_credits: 1
                contacts: 1
                visibility: shortlisted_only
        """)
        config_file = tmp_path / "settings.yaml"
        config_file.write_text(yaml_content)

        s = Settings.from_yaml(config_file)
        assert s.database.path == "data/test.db"
        assert s.embedding.provider == "hashing"
        assert s.shortlist.min_applications == 5
        assert s.tiers["FREE"].max_results == 2
        # untouched sections keep their defaults
        assert s.pool.strict_limit == 20

    def test_from_yaml_empty_file(self, tmp_path: Path) -> None:
        config_file = tmp_path / "empty.yaml"
        config_file.write_text("")
        s = Settings.from_yaml(config_file)
        assert s.database.path == "data/talent.db"

    def test_from_yaml_file_not_found(self) -> None:
        with pytest.raises(FileNotFoundError):
            Settings.from_yaml("/nonexistent/settings.yaml")

    def test_from_yaml_invalid_weights(self, tmp_path: Path) -> None:
        config_file = tmp_path / "bad.yaml"
        config_file.write_text(dedent("""\
            blending:
              company_search_rules:
                profile: 0.9
                skills: 0.9
        """))
        with pytest.raises(ValidationError):
            Settings.from_yaml(config_file)

    def test_example_settings_file_loads(self) -> None:
        path = Path(__file__).parent.parent.parent / "config" / "settings.yaml"
        s = Settings.from_yaml(path)
        assert s.embedding.provider == "hashing"
