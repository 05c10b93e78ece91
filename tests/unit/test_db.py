"""Tests for the database layer: init, upserts, queries, shortlist state."""

import json
from datetime import datetime, timedelta

import pytest

from src.core.db import (
    count_applications,
    count_students,
    count_vectors,
    get_applications,
    get_company,
    get_project,
    get_shortlisted,
    get_student,
    get_students,
    get_vector,
    get_vectors,
    init_db,
    list_live_projects,
    recent_applied_projects,
    reset_shortlist,
    select_students,
    set_application_status,
    update_compatibility_score,
    upsert_application,
    upsert_company,
    upsert_project,
    upsert_student,
    upsert_vector,
)
from src.core.schemas import (
    Application,
    ApplicationStatus,
    Candidate,
    CandidateVector,
    Company,
    Project,
)


def _student(student_id: str = "s1", **kw: object) -> Candidate:
    defaults: dict[str, object] = {"id": student_id, "name": f"Student {student_id}"}
    defaults.update(kw)
    return Candidate(**defaults)  # type: ignore[arg-type]


def _project(project_id: str = "p1", **kw: object) -> Project:
    defaults: dict[str, object] = {"id": project_id, "company_id": "c1", "title": "Intern"}
    defaults.update(kw)
    return Project(**defaults)  # type: ignore[arg-type]


def _application(app_id: str, user_id: str, project_id: str = "p1", **kw: object) -> Application:
    defaults: dict[str, object] = {"id": app_id, "user_id": user_id, "project_id": project_id}
    defaults.update(kw)
    return Application(**defaults)  # type: ignore[arg-type]


@pytest.fixture()
def db(tmp_path):  # type: ignore[no-untyped-def]
    """Provide a fresh SQLite connection per test."""
    return init_db(tmp_path / "test.db")


class TestInitDb:
    def test_creates_tables(self, db) -> None:  # type: ignore[no-untyped-def]
        tables = {
            row[0]
            for row in db.execute(
                "SELECT name FROM sqlite_master WHERE type='table'"
            ).fetchall()
        }
        assert {"companies", "students", "projects", "applications", "student_vectors"} <= tables

    def test_idempotent(self, tmp_path) -> None:  # type: ignore[no-untyped-def]
        p = tmp_path / "double.db"
        init_db(p).close()
        init_db(p).close()


class TestCompanies:
    def test_round_trip(self, db) -> None:  # type: ignore[no-untyped-def]
        upsert_company(db, Company(id="c1", name="Acme", plan="COMPANY_PRO"))
        company = get_company(db, "c1")
        assert company is not None
        assert company.plan == "COMPANY_PRO"

    def test_missing(self, db) -> None:  # type: ignore[no-untyped-def]
        assert get_company(db, "nope") is None


class TestStudents:
    def test_round_trip_lists_and_dates(self, db) -> None:  # type: ignore[no-untyped-def]
        active = datetime(2026, 1, 5, 10, 30)
        upsert_student(db, _student(skills=["python", "sql"], last_active_at=active))
        s = get_student(db, "s1")
        assert s is not None
        assert s.skills == ["python", "sql"]
        assert s.last_active_at == active

    def test_upsert_replaces(self, db) -> None:  # type: ignore[no-untyped-def]
        upsert_student(db, _student(major="Marketing"))
        upsert_student(db, _student(major="Finance"))
        assert count_students(db) == 1
        assert get_student(db, "s1").major == "Finance"  # type: ignore[union-attr]

    def test_get_students_preserves_order(self, db) -> None:  # type: ignore[no-untyped-def]
        for sid in ("a", "b", "c"):
            upsert_student(db, _student(sid))
        result = get_students(db, ["c", "missing", "a"])
        assert [s.id for s in result] == ["c", "a"]

    def test_total_applications_counted(self, db) -> None:  # type: ignore[no-untyped-def]
        upsert_student(db, _student())
        upsert_application(db, _application("a1", "s1", "p1"))
        upsert_application(db, _application("a2", "s1", "p2"))
        assert get_student(db, "s1").total_applications == 2  # type: ignore[union-attr]

    def test_select_with_where_and_limit(self, db) -> None:  # type: ignore[no-untyped-def]
        upsert_student(db, _student("a", major="Marketing"))
        upsert_student(db, _student("b", major="Finance"))
        upsert_student(db, _student("c", major="Marketing"))
        result = select_students(db, "students.major = ?", ["Marketing"], limit=1)
        assert len(result) == 1
        assert result[0].major == "Marketing"


class TestProjects:
    def test_round_trip(self, db) -> None:  # type: ignore[no-untyped-def]
        upsert_project(db, _project(skills_required=["seo"], requirements=["Portfolio"]))
        p = get_project(db, "p1")
        assert p is not None
        assert p.skills_required == ["seo"]

    def test_list_live_only(self, db) -> None:  # type: ignore[no-untyped-def]
        upsert_project(db, _project("p1"))
        upsert_project(db, _project("p2", status="CLOSED"))
        assert [p.id for p in list_live_projects(db)] == ["p1"]


class TestApplications:
    def test_count_and_list(self, db) -> None:  # type: ignore[no-untyped-def]
        upsert_application(db, _application("a1", "s1"))
        upsert_application(db, _application("a2", "s2"))
        assert count_applications(db, "p1") == 2
        assert {a.id for a in get_applications(db, "p1")} == {"a1", "a2"}

    def test_compatibility_score_persisted(self, db) -> None:  # type: ignore[no-untyped-def]
        upsert_application(db, _application("a1", "s1"))
        update_compatibility_score(db, "a1", 77.0)
        assert get_applications(db, "p1")[0].compatibility_score == 77.0

    def test_status_and_notes(self, db) -> None:  # type: ignore[no-untyped-def]
        upsert_application(db, _application("a1", "s1"))
        set_application_status(db, "a1", ApplicationStatus.SHORTLISTED, {"ranking": 1})
        shortlisted = get_shortlisted(db, "p1")
        assert len(shortlisted) == 1
        assert json.loads(shortlisted[0].admin_notes or "{}") == {"ranking": 1}

    def test_status_without_notes_keeps_existing(self, db) -> None:  # type: ignore[no-untyped-def]
        upsert_application(db, _application("a1", "s1"))
        set_application_status(db, "a1", ApplicationStatus.SHORTLISTED, {"ranking": 3})
        set_application_status(db, "a1", ApplicationStatus.INTERVIEWED)
        app = get_applications(db, "p1")[0]
        assert app.status == ApplicationStatus.INTERVIEWED
        assert json.loads(app.admin_notes or "{}") == {"ranking": 3}

    def test_reset_shortlist(self, db) -> None:  # type: ignore[no-untyped-def]
        upsert_application(db, _application("a1", "s1"))
        upsert_application(db, _application("a2", "s2"))
        set_application_status(db, "a1", ApplicationStatus.SHORTLISTED)
        set_application_status(db, "a2", ApplicationStatus.SHORTLISTED)
        assert reset_shortlist(db, "p1") == 2
        assert get_shortlisted(db, "p1") == []

    def test_recent_applied_projects(self, db) -> None:  # type: ignore[no-untyped-def]
        now = datetime.now()
        upsert_project(db, _project("p1", title="Old", category="Finance"))
        upsert_project(db, _project("p2", title="New", category="Marketing"))
        upsert_application(db, _application("a1", "s1", "p1", created_at=now - timedelta(days=5)))
        upsert_application(db, _application("a2", "s1", "p2", created_at=now))
        assert recent_applied_projects(db, "s1") == [("New", "Marketing"), ("Old", "Finance")]


class TestVectors:
    def _vector(self, user_id: str = "s1", value: float = 1.0) -> CandidateVector:
        return CandidateVector(
            user_id=user_id,
            profile_vector=[value, 0.0],
            skills_vector=[0.0, value],
            academic_vector=[value, value],
            vector_version="v1.0",
        )

    def test_round_trip(self, db) -> None:  # type: ignore[no-untyped-def]
        upsert_vector(db, self._vector())
        v = get_vector(db, "s1")
        assert v is not None
        assert v.profile_vector == [1.0, 0.0]

    def test_upsert_replaces(self, db) -> None:  # type: ignore[no-untyped-def]
        upsert_vector(db, self._vector(value=1.0))
        upsert_vector(db, self._vector(value=2.0))
        assert count_vectors(db) == 1
        assert get_vector(db, "s1").profile_vector == [2.0, 0.0]  # type: ignore[union-attr]

    def test_get_vectors_subset(self, db) -> None:  # type: ignore[no-untyped-def]
        upsert_vector(db, self._vector("a"))
        upsert_vector(db, self._vector("b"))
        assert [v.user_id for v in get_vectors(db, ["b"])] == ["b"]
        assert len(get_vectors(db)) == 2
        assert get_vectors(db, []) == []
