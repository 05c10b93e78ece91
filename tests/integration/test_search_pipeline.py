"""Integration test: full matching pipeline over the demo seed data (no network)."""

import json
import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import yaml

from main import main
from src.core.config import EmbeddingConfig, Settings, ShortlistConfig
from src.core.db import count_students, init_db, upsert_application, upsert_student
from src.core.errors import SearchValidationError
from src.core.schemas import (
    Application,
    Candidate,
    MatchingMode,
    RetrievalStage,
    VisibilityLevel,
)
from src.core.seed import SeedData, load_seed
from src.embeddings.generator import EmbeddingGenerator
from src.embeddings.store import EmbeddingStore, refresh_vectors
from src.matching.service import MatchingService

SEED_FILE = Path(__file__).parent.parent.parent / "config" / "seed.yaml"
HASHING = EmbeddingConfig(provider="hashing", version="hashing-v1", batch_delay_s=0)


def _settings(**kw: object) -> Settings:
    return Settings(embedding=HASHING, **kw)  # type: ignore[arg-type]


@pytest.fixture
def db(tmp_path: Path) -> sqlite3.Connection:
    conn = init_db(tmp_path / "test.db")
    load_seed(conn, SeedData.from_yaml(SEED_FILE))
    return conn


@pytest.fixture
def service(db: sqlite3.Connection) -> MatchingService:
    """Rule-based service: no embedding provider."""
    return MatchingService(db, _settings())


async def _vector_service(db: sqlite3.Connection, settings: Settings | None = None) -> MatchingService:
    settings = settings or _settings()
    generator = EmbeddingGenerator.from_config(settings.embedding)
    store = EmbeddingStore(db, settings.embedding)
    await refresh_vectors(db, store, generator, settings.embedding)
    return MatchingService(db, settings, generator=generator, store=store)


# ---------------------------------------------------------------------------
# Company search
# ---------------------------------------------------------------------------


class TestCompanySearch:
    async def test_strict_filter_rules_only(self, service: MatchingService) -> None:
        results = await service.search("marketing students with social media experience")

        assert results.plan == "FREE"
        assert results.metadata.stage == RetrievalStage.STRICT_FILTER
        assert results.metadata.vectors_used is False
        assert [c.candidate_id for c in results.candidates] == ["stu-aisha"]
        assert results.suggestions == []

    async def test_free_plan_redacts(self, service: MatchingService) -> None:
        results = await service.search("marketing students", plan="FREE")
        assert results.candidates
        for c in results.candidates:
            assert c.email is None
            assert c.linkedin is None
            assert c.visibility == VisibilityLevel.SHORTLISTED_ONLY
        assert results.upgrade_prompt is not None
        assert results.credits.available == 15

    async def test_company_plan_used_by_default(self, service: MatchingService) -> None:
        results = await service.search("marketing students", company_id="comp-gulfmedia")
        assert results.plan == "COMPANY_PREMIUM"
        assert results.candidates[0].email is not None

    async def test_vectors_used_when_available(self, db: sqlite3.Connection) -> None:
        service = await _vector_service(db)
        results = await service.search("marketing students in Dubai", plan="ENTERPRISE")

        assert results.metadata.stage == RetrievalStage.VECTOR
        assert results.metadata.attempted_stages == [RetrievalStage.VECTOR]
        assert results.metadata.vectors_used is True
        assert results.metadata.pool_size == count_students(db)
        scores = [c.match.match_score for c in results.candidates]
        assert scores == sorted(scores, reverse=True)

    async def test_enterprise_gets_insights(self, service: MatchingService) -> None:
        results = await service.search("marketing students", plan="ENTERPRISE")
        assert results.candidates
        assert all(c.insights is not None for c in results.candidates)
        assert results.upgrade_prompt is None

    async def test_top_match_explains_major(self, service: MatchingService) -> None:
        results = await service.search("marketing students with social media experience in Dubai")

        top = results.candidates[0]
        assert top.candidate_id == "stu-aisha"
        assert "Relevant major: Marketing" in top.match.match_reasons

    async def test_plan_does_not_change_scores(self, db: sqlite3.Connection) -> None:
        service = await _vector_service(db)
        prompt = "marketing students in Dubai"

        free = await service.search(prompt, plan="FREE")
        enterprise = await service.search(prompt, plan="ENTERPRISE")

        assert free.metadata.vectors_used is True
        assert enterprise.metadata.vectors_used is True
        assert len(free.candidates) <= len(enterprise.candidates)
        full = {c.candidate_id: c.match.overall_score for c in enterprise.candidates}
        assert free.candidates
        for c in free.candidates:
            assert c.match.overall_score == full[c.candidate_id]
        assert [c.candidate_id for c in free.candidates] == list(full)[: len(free.candidates)]

    async def test_limit(self, db: sqlite3.Connection) -> None:
        service = await _vector_service(db)
        results = await service.search("students", plan="ENTERPRISE", limit=2)
        assert len(results.candidates) == 2
        assert results.metadata.returned == 2

    async def test_relevance_first(self, service: MatchingService) -> None:
        results = await service.search(
            "marketing students", mode=MatchingMode.RELEVANCE_FIRST, plan="ENTERPRISE",
        )
        assert results.metadata.threshold == 40
        assert all(c.match.overall_score >= 40 for c in results.candidates)

    async def test_empty_database_suggestions(self, tmp_path: Path) -> None:
        conn = init_db(tmp_path / "empty.db")
        results = await MatchingService(conn, _settings()).search("marketing students")
        assert results.candidates == []
        assert results.metadata.stage is None
        assert len(results.suggestions) == 3


class TestValidation:
    async def test_empty_prompt(self, service: MatchingService) -> None:
        with pytest.raises(SearchValidationError, match="must not be empty"):
            await service.search("   ")

    async def test_unknown_plan(self, service: MatchingService) -> None:
        with pytest.raises(SearchValidationError, match="Unknown plan"):
            await service.search("marketing", plan="GOLD")

    async def test_shortlisting_requires_project(self, service: MatchingService) -> None:
        with pytest.raises(SearchValidationError, match="project_id"):
            await service.search("", mode=MatchingMode.PROJECT_SHORTLISTING)

    async def test_unknown_project(self, service: MatchingService) -> None:
        with pytest.raises(SearchValidationError, match="not found"):
            await service.search("marketing", project_id="proj-nope")

    async def test_unknown_company(self, service: MatchingService) -> None:
        with pytest.raises(SearchValidationError, match="Company 'comp-nope' not found"):
            await service.search("marketing", company_id="comp-nope")

    async def test_bad_limit(self, service: MatchingService) -> None:
        with pytest.raises(SearchValidationError, match="limit"):
            await service.search("marketing", limit=0)


# ---------------------------------------------------------------------------
# Shortlisting
# ---------------------------------------------------------------------------


class TestShortlisting:
    async def test_shortlisting_search_uses_applicants(self, service: MatchingService) -> None:
        results = await service.search(
            "", mode=MatchingMode.PROJECT_SHORTLISTING, project_id="proj-social",
        )
        assert results.metadata.stage == RetrievalStage.APPLICANTS
        assert results.plan == "COMPANY_PREMIUM"
        assert {c.candidate_id for c in results.candidates} == {"stu-aisha", "stu-lina"}
        assert all(c.match.application_id for c in results.candidates)

    async def test_score_applicants(self, service: MatchingService) -> None:
        results = await service.score_applicants("proj-social")
        assert len(results) == 2
        assert results[0].overall_score >= results[1].overall_score

    async def test_auto_shortlist(self, db: sqlite3.Connection) -> None:
        service = MatchingService(db, _settings(shortlist=ShortlistConfig(min_applications=2)))

        result = await service.shortlist_project("proj-social")

        assert result is not None
        assert len(result.candidates) == 2
        assert result.visibility == VisibilityLevel.FULL_POOL
        again = await service.shortlist_project("proj-social")
        assert again is not None and again.cached is True

    async def test_aware_timestamps_score_normally(self, db: sqlite3.Connection) -> None:
        now = datetime.now(timezone.utc)
        upsert_student(db, Candidate(
            id="stu-tz", name="Tz", major="Marketing", skills=["social media"],
            profile_completed=True, last_active_at=now, profile_completed_at=now,
        ))
        upsert_application(db, Application(
            id="app-tz", user_id="stu-tz", project_id="proj-social", created_at=now - timedelta(days=3),
        ))
        service = MatchingService(db, _settings(shortlist=ShortlistConfig(min_applications=3)))

        results = await service.search("marketing students with social media experience")
        assert "stu-tz" in {c.candidate_id for c in results.candidates}

        scored = await service.score_applicants("proj-social")
        assert "stu-tz" in {r.candidate_id for r in scored}

        shortlist = await service.shortlist_project("proj-social")
        assert shortlist is not None
        assert "stu-tz" in {c.candidate_id for c in shortlist.candidates}

    async def test_not_eligible(self, service: MatchingService) -> None:
        assert await service.shortlist_project("proj-social") is None
        e = service.get_eligibility("proj-social")
        assert e.current == 2
        assert e.remaining_needed == 28


# ---------------------------------------------------------------------------
# Student -> projects
# ---------------------------------------------------------------------------


class TestMatchProjects:
    def test_marketing_student(self, service: MatchingService) -> None:
        matches = service.match_projects("stu-aisha")
        assert [m.project_id for m in matches] == ["proj-social", "proj-api"]
        assert matches[0].match_score == 100

    def test_limit(self, service: MatchingService) -> None:
        assert len(service.match_projects("stu-omar", limit=1)) == 1

    def test_unknown_student(self, service: MatchingService) -> None:
        with pytest.raises(SearchValidationError):
            service.match_projects("stu-nope")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


class TestCli:
    def _config(self, tmp_path: Path) -> str:
        path = tmp_path / "settings.yaml"
        path.write_text(yaml.dump({
            "database": {"path": str(tmp_path / "cli.db")},
            "embedding": {"provider": None},
        }))
        return str(path)

    def test_seed_then_search_json(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        config = self._config(tmp_path)
        main(["seed", "--file", str(SEED_FILE), "--config", config])
        assert "4 students" in capsys.readouterr().out

        main(["search", "marketing students", "--export", "json", "--config", config])
        data = json.loads(capsys.readouterr().out)

        assert data["plan"] == "FREE"
        assert data["candidates"][0]["email"] is None
        assert data["metadata"]["stage"] == "strict_filter"

    def test_missing_config_exits(self, tmp_path: Path) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["search", "marketing", "--config", str(tmp_path / "missing.yaml")])
        assert exc_info.value.code == 1

    def test_validation_error_exits(self, tmp_path: Path) -> None:
        config = self._config(tmp_path)
        with pytest.raises(SystemExit) as exc_info:
            main(["search", "marketing", "--plan", "GOLD", "--config", config])
        assert exc_info.value.code == 1
