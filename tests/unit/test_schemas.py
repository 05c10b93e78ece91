"""Tests for core data models."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from src.core.schemas import (
    Candidate,
    ConfidenceLevel,
    MatchingMode,
    MatchResult,
    RankedCandidate,
    SearchFilters,
    SearchQuery,
    VisibilityLevel,
)


class TestCandidate:
    def test_minimal(self) -> None:
        c = Candidate(id="s1")
        assert c.skills == []
        assert c.activity_score == 0.0

    def test_aware_timestamps_made_naive(self) -> None:
        aware = datetime(2024, 6, 1, 8, 0, tzinfo=timezone.utc)
        c = Candidate(id="s1", last_active_at=aware, created_at=aware)
        assert c.last_active_at is not None
        assert c.last_active_at.tzinfo is None
        assert c.last_active_at == aware.astimezone().replace(tzinfo=None)
        # comparable with naive clocks
        assert datetime.now() - c.created_at > timedelta(0)

    def test_frozen(self) -> None:
        c = Candidate(id="s1")
        with pytest.raises(ValidationError):
            c.name = "x"  # type: ignore[misc]

    def test_model_copy_fills_derived_fields(self) -> None:
        c = Candidate(id="s1").model_copy(update={"activity_score": 55.0})
        assert c.activity_score == 55.0

    def test_negative_applications_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Candidate(id="s1", applications_this_month=-1)


class TestSearchQuery:
    def test_defaults(self) -> None:
        q = SearchQuery(prompt="marketing")
        assert q.mode == MatchingMode.COMPANY_SEARCH
        assert q.vector is None
        assert q.filters.is_empty()

    def test_filters_not_empty(self) -> None:
        assert not SearchFilters(majors=["marketing"]).is_empty()


class TestMatchResult:
    def test_score_bounds(self) -> None:
        with pytest.raises(ValidationError):
            MatchResult(candidate_id="s1", overall_score=101)

    def test_defaults(self) -> None:
        r = MatchResult(candidate_id="s1")
        assert r.confidence == ConfidenceLevel.LOW
        assert r.vectors_used is False

    def test_json_round_trip(self) -> None:
        r = MatchResult(candidate_id="s1", overall_score=72, match_reasons=["Relevant major: Marketing"])
        assert MatchResult.model_validate_json(r.model_dump_json()) == r


class TestRankedCandidate:
    def test_rank_starts_at_one(self) -> None:
        with pytest.raises(ValidationError):
            RankedCandidate(
                rank=0,
                candidate_id="s1",
                name="A",
                visibility=VisibilityLevel.FULL_POOL,
                match=MatchResult(candidate_id="s1"),
            )
