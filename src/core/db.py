"""SQLite database layer for students, projects, applications and vectors."""

import json
import sqlite3
from collections.abc import Iterable, Sequence
from datetime import datetime
from pathlib import Path
from typing import Any

from src.core.schemas import (
    Application,
    ApplicationStatus,
    Candidate,
    CandidateVector,
    Company,
    Project,
)

_COMPANIES_TABLE = """
CREATE TABLE IF NOT EXISTS companies (
    id          TEXT PRIMARY KEY,
    name        TEXT NOT NULL,
    industry    TEXT,
    one_liner   TEXT,
    plan        TEXT NOT NULL DEFAULT 'FREE'
);
"""

_STUDENTS_TABLE = """
CREATE TABLE IF NOT EXISTS students (
    id                      TEXT PRIMARY KEY,
    name                    TEXT NOT NULL DEFAULT '',
    email                   TEXT,
    linkedin                TEXT,
    bio                     TEXT,
    university              TEXT,
    major                   TEXT,
    subjects                TEXT,
    education               TEXT,
    high_school             TEXT,
    graduation_year         INTEGER,
    location                TEXT,
    skills                  TEXT NOT NULL DEFAULT '[]',
    interests               TEXT NOT NULL DEFAULT '[]',
    goals                   TEXT NOT NULL DEFAULT '[]',
    applications_this_month INTEGER NOT NULL DEFAULT 0,
    last_active_at          TEXT,
    profile_completed       INTEGER NOT NULL DEFAULT 0,
    profile_completed_at    TEXT,
    created_at              TEXT NOT NULL,
    updated_at              TEXT NOT NULL
);
"""

_PROJECTS_TABLE = """
CREATE TABLE IF NOT EXISTS projects (
    id                  TEXT PRIMARY KEY,
    company_id          TEXT NOT NULL,
    title               TEXT NOT NULL,
    description         TEXT NOT NULL DEFAULT '',
    category            TEXT,
    experience_level    TEXT,
    location            TEXT,
    skills_required     TEXT NOT NULL DEFAULT '[]',
    requirements        TEXT NOT NULL DEFAULT '[]',
    status              TEXT NOT NULL DEFAULT 'LIVE',
    created_at          TEXT NOT NULL
);
"""

_APPLICATIONS_TABLE = """
CREATE TABLE IF NOT EXISTS applications (
    id                  TEXT PRIMARY KEY,
    user_id             TEXT NOT NULL,
    project_id          TEXT NOT NULL,
    status              TEXT NOT NULL DEFAULT 'pending',
    cover_letter        TEXT,
    why_interested      TEXT,
    proposed_approach   TEXT,
    relevant_experience TEXT,
    compatibility_score REAL,
    admin_notes         TEXT,
    created_at          TEXT NOT NULL,
    updated_at          TEXT NOT NULL,
    UNIQUE(user_id, project_id)
);
"""

_VECTORS_TABLE = """
CREATE TABLE IF NOT EXISTS student_vectors (
    user_id         TEXT PRIMARY KEY,
    profile_vector  TEXT NOT NULL,
    skills_vector   TEXT NOT NULL,
    academic_vector TEXT NOT NULL,
    vector_version  TEXT NOT NULL,
    last_updated    TEXT NOT NULL
);
"""

_INDEXES = (
    "CREATE INDEX IF NOT EXISTS idx_applications_project ON applications(project_id)",
    "CREATE INDEX IF NOT EXISTS idx_applications_user ON applications(user_id)",
    "CREATE INDEX IF NOT EXISTS idx_projects_status ON projects(status)",
)


def init_db(path: str | Path) -> sqlite3.Connection:
    """Create the database and tables, returning a connection."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    for ddl in (
        _COMPANIES_TABLE,
        _STUDENTS_TABLE,
        _PROJECTS_TABLE,
        _APPLICATIONS_TABLE,
        _VECTORS_TABLE,
        *_INDEXES,
    ):
        conn.execute(ddl)
    conn.commit()
    return conn


def _ts(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


# ---------------------------------------------------------------------------
# Companies
# ---------------------------------------------------------------------------


def upsert_company(conn: sqlite3.Connection, company: Company) -> None:
    conn.execute(
        """
        INSERT INTO companies (id, name, industry, one_liner, plan)
        VALUES (?, ?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
            name = excluded.name,
            industry = excluded.industry,
            one_liner = excluded.one_liner,
            plan = excluded.plan
        """,
        (company.id, company.name, company.industry, company.one_liner, company.plan),
    )
    conn.commit()


def get_company(conn: sqlite3.Connection, company_id: str) -> Company | None:
    row = conn.execute("SELECT * FROM companies WHERE id = ?", (company_id,)).fetchone()
    if row is None:
        return None
    return Company(**dict(row))


# ---------------------------------------------------------------------------
# Students
# ---------------------------------------------------------------------------


def _row_to_candidate(row: sqlite3.Row) -> Candidate:
    data = dict(row)
    return Candidate(
        id=data["id"],
        name=data["name"],
        email=data["email"],
        linkedin=data["linkedin"],
        bio=data["bio"],
        university=data["university"],
        major=data["major"],
        subjects=data["subjects"],
        education=data["education"],
        high_school=data["high_school"],
        graduation_year=data["graduation_year"],
        location=data["location"],
        skills=json.loads(data["skills"]),
        interests=json.loads(data["interests"]),
        goals=json.loads(data["goals"]),
        applications_this_month=data["applications_this_month"],
        total_applications=data.get("total_applications") or 0,
        last_active_at=_dt(data["last_active_at"]),
        profile_completed=bool(data["profile_completed"]),
        profile_completed_at=_dt(data["profile_completed_at"]),
        created_at=_dt(data["created_at"]),
        updated_at=_dt(data["updated_at"]),
    )


# Correlated count so every student query returns total_applications.
_STUDENT_COLUMNS = (
    "students.*, "
    "(SELECT COUNT(*) FROM applications a WHERE a.user_id = students.id) AS total_applications"
)


def upsert_student(conn: sqlite3.Connection, candidate: Candidate) -> None:
    """Insert or replace a student record (last writer wins)."""
    c = candidate
    conn.execute(
        """
        INSERT INTO students
            (id, name, email, linkedin, bio, university, major, subjects, education,
             high_school, graduation_year, location, skills, interests, goals,
             applications_this_month, last_active_at, profile_completed,
             profile_completed_at, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
            name = excluded.name,
            email = excluded.email,
            linkedin = excluded.linkedin,
            bio = excluded.bio,
            university = excluded.university,
            major = excluded.major,
            subjects = excluded.subjects,
            education = excluded.education,
            high_school = excluded.high_school,
            graduation_year = excluded.graduation_year,
            location = excluded.location,
            skills = excluded.skills,
            interests = excluded.interests,
            goals = excluded.goals,
            applications_this_month = excluded.applications_this_month,
            last_active_at = excluded.last_active_at,
            profile_completed = excluded.profile_completed,
            profile_completed_at = excluded.profile_completed_at,
            updated_at = excluded.updated_at
        """,
        (
            c.id,
            c.name,
            c.email,
            c.linkedin,
            c.bio,
            c.university,
            c.major,
            c.subjects,
            c.education,
            c.high_school,
            c.graduation_year,
            c.location,
            json.dumps(c.skills),
            json.dumps(c.interests),
            json.dumps(c.goals),
            c.applications_this_month,
            _ts(c.last_active_at),
            int(c.profile_completed),
            _ts(c.profile_completed_at),
            _ts(c.created_at),
            _ts(c.updated_at),
        ),
    )
    conn.commit()


def get_student(conn: sqlite3.Connection, student_id: str) -> Candidate | None:
    row = conn.execute(
        f"SELECT {_STUDENT_COLUMNS} FROM students WHERE id = ?", (student_id,),
    ).fetchone()
    return _row_to_candidate(row) if row is not None else None


def get_students(conn: sqlite3.Connection, student_ids: Sequence[str]) -> list[Candidate]:
    """Fetch several students, preserving the order of ``student_ids``."""
    if not student_ids:
        return []
    placeholders = ", ".join("?" for _ in student_ids)
    rows = conn.execute(
        f"SELECT {_STUDENT_COLUMNS} FROM students WHERE id IN ({placeholders})",
        tuple(student_ids),
    ).fetchall()
    by_id = {row["id"]: _row_to_candidate(row) for row in rows}
    return [by_id[sid] for sid in student_ids if sid in by_id]


def select_students(
    conn: sqlite3.Connection,
    where: str = "1 = 1",
    params: Iterable[Any] = (),
    *,
    order_by: str = "students.updated_at DESC",
    limit: int | None = None,
) -> list[Candidate]:
    """Run a filtered student query.

    ``where`` and ``order_by`` are SQL fragments built by the retrieval
    strategies; every value must travel through ``params``.
    """
    sql = f"SELECT {_STUDENT_COLUMNS} FROM students WHERE {where} ORDER BY {order_by}"
    values = list(params)
    if limit is not None:
        sql += " LIMIT ?"
        values.append(limit)
    return [_row_to_candidate(row) for row in conn.execute(sql, values).fetchall()]


def count_students(conn: sqlite3.Connection) -> int:
    return conn.execute("SELECT COUNT(*) FROM students").fetchone()[0]  # type: ignore[no-any-return]


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


def _row_to_project(row: sqlite3.Row) -> Project:
    data = dict(row)
    data["skills_required"] = json.loads(data["skills_required"])
    data["requirements"] = json.loads(data["requirements"])
    data["created_at"] = _dt(data["created_at"])
    return Project(**data)


def upsert_project(conn: sqlite3.Connection, project: Project) -> None:
    p = project
    conn.execute(
        """
        INSERT INTO projects
            (id, company_id, title, description, category, experience_level,
             location, skills_required, requirements, status, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
            company_id = excluded.company_id,
            title = excluded.title,
            description = excluded.description,
            category = excluded.category,
            experience_level = excluded.experience_level,
            location = excluded.location,
            skills_required = excluded.skills_required,
            requirements = excluded.requirements,
            status = excluded.status
        """,
        (
            p.id,
            p.company_id,
            p.title,
            p.description,
            p.category,
            p.experience_level,
            p.location,
            json.dumps(p.skills_required),
            json.dumps(p.requirements),
            p.status,
            _ts(p.created_at),
        ),
    )
    conn.commit()


def get_project(conn: sqlite3.Connection, project_id: str) -> Project | None:
    row = conn.execute("SELECT * FROM projects WHERE id = ?", (project_id,)).fetchone()
    return _row_to_project(row) if row is not None else None


def list_live_projects(conn: sqlite3.Connection, limit: int = 50) -> list[Project]:
    rows = conn.execute(
        "SELECT * FROM projects WHERE status = 'LIVE' ORDER BY created_at DESC LIMIT ?",
        (limit,),
    ).fetchall()
    return [_row_to_project(row) for row in rows]


# ---------------------------------------------------------------------------
# Applications
# ---------------------------------------------------------------------------


def _row_to_application(row: sqlite3.Row) -> Application:
    data = dict(row)
    data["status"] = ApplicationStatus(data["status"])
    data["created_at"] = _dt(data["created_at"])
    data["updated_at"] = _dt(data["updated_at"])
    return Application(**data)


def upsert_application(conn: sqlite3.Connection, application: Application) -> None:
    a = application
    conn.execute(
        """
        INSERT INTO applications
            (id, user_id, project_id, status, cover_letter, why_interested,
             proposed_approach, relevant_experience, compatibility_score,
             admin_notes, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
            status = excluded.status,
            cover_letter = excluded.cover_letter,
            why_interested = excluded.why_interested,
            proposed_approach = excluded.proposed_approach,
            relevant_experience = excluded.relevant_experience,
            compatibility_score = excluded.compatibility_score,
            admin_notes = excluded.admin_notes,
            updated_at = excluded.updated_at
        """,
        (
            a.id,
            a.user_id,
            a.project_id,
            a.status.value,
            a.cover_letter,
            a.why_interested,
            a.proposed_approach,
            a.relevant_experience,
            a.compatibility_score,
            a.admin_notes,
            _ts(a.created_at),
            _ts(a.updated_at),
        ),
    )
    conn.commit()


def get_applications(conn: sqlite3.Connection, project_id: str) -> list[Application]:
    rows = conn.execute(
        "SELECT * FROM applications WHERE project_id = ? ORDER BY created_at, id",
        (project_id,),
    ).fetchall()
    return [_row_to_application(row) for row in rows]


def count_applications(conn: sqlite3.Connection, project_id: str) -> int:
    row = conn.execute(
        "SELECT COUNT(*) FROM applications WHERE project_id = ?", (project_id,),
    ).fetchone()
    return row[0]  # type: ignore[no-any-return]


def get_shortlisted(conn: sqlite3.Connection, project_id: str) -> list[Application]:
    """Return shortlisted applications ordered by compatibility score desc."""
    rows = conn.execute(
        """
        SELECT * FROM applications
        WHERE project_id = ? AND status = ?
        ORDER BY compatibility_score DESC, id
        """,
        (project_id, ApplicationStatus.SHORTLISTED.value),
    ).fetchall()
    return [_row_to_application(row) for row in rows]


def update_compatibility_score(
    conn: sqlite3.Connection, application_id: str, score: float,
) -> None:
    conn.execute(
        "UPDATE applications SET compatibility_score = ?, updated_at = ? WHERE id = ?",
        (score, datetime.now().isoformat(), application_id),
    )
    conn.commit()


def set_application_status(
    conn: sqlite3.Connection,
    application_id: str,
    status: ApplicationStatus,
    admin_notes: dict[str, Any] | None = None,
) -> None:
    """Update status; admin_notes (if given) is stored as JSON."""
    conn.execute(
        """
        UPDATE applications
        SET status = ?, admin_notes = COALESCE(?, admin_notes), updated_at = ?
        WHERE id = ?
        """,
        (
            status.value,
            json.dumps(admin_notes) if admin_notes is not None else None,
            datetime.now().isoformat(),
            application_id,
        ),
    )
    conn.commit()


def reset_shortlist(conn: sqlite3.Connection, project_id: str) -> int:
    """Move every shortlisted application of a project back to pending.

    Returns the number of applications reset.
    """
    cursor = conn.execute(
        "UPDATE applications SET status = ?, updated_at = ? WHERE project_id = ? AND status = ?",
        (
            ApplicationStatus.PENDING.value,
            datetime.now().isoformat(),
            project_id,
            ApplicationStatus.SHORTLISTED.value,
        ),
    )
    conn.commit()
    return cursor.rowcount


def recent_applied_projects(
    conn: sqlite3.Connection, user_id: str, limit: int = 10,
) -> list[tuple[str, str | None]]:
    """Return (title, category) of the projects a student applied to, newest first."""
    rows = conn.execute(
        """
        SELECT p.title, p.category
        FROM applications a JOIN projects p ON p.id = a.project_id
        WHERE a.user_id = ?
        ORDER BY a.created_at DESC
        LIMIT ?
        """,
        (user_id, limit),
    ).fetchall()
    return [(row["title"], row["category"]) for row in rows]


# ---------------------------------------------------------------------------
# Vectors
# ---------------------------------------------------------------------------


def _row_to_vector(row: sqlite3.Row) -> CandidateVector:
    return CandidateVector(
        user_id=row["user_id"],
        profile_vector=json.loads(row["profile_vector"]),
        skills_vector=json.loads(row["skills_vector"]),
        academic_vector=json.loads(row["academic_vector"]),
        vector_version=row["vector_version"],
        last_updated=datetime.fromisoformat(row["last_updated"]),
    )


def upsert_vector(conn: sqlite3.Connection, vector: CandidateVector) -> None:
    """Insert or replace the vectors for one student (keyed by user id)."""
    conn.execute(
        """
        INSERT INTO student_vectors
            (user_id, profile_vector, skills_vector, academic_vector,
             vector_version, last_updated)
        VALUES (?, ?, ?, ?, ?, ?)
        ON CONFLICT(user_id) DO UPDATE SET
            profile_vector = excluded.profile_vector,
            skills_vector = excluded.skills_vector,
            academic_vector = excluded.academic_vector,
            vector_version = excluded.vector_version,
            last_updated = excluded.last_updated
        """,
        (
            vector.user_id,
            json.dumps(vector.profile_vector),
            json.dumps(vector.skills_vector),
            json.dumps(vector.academic_vector),
            vector.vector_version,
            vector.last_updated.isoformat(),
        ),
    )
    conn.commit()


def get_vector(conn: sqlite3.Connection, user_id: str) -> CandidateVector | None:
    row = conn.execute(
        "SELECT * FROM student_vectors WHERE user_id = ?", (user_id,),
    ).fetchone()
    return _row_to_vector(row) if row is not None else None


def get_vectors(conn: sqlite3.Connection, user_ids: Sequence[str] | None = None) -> list[CandidateVector]:
    """Fetch vectors for the given students, or all vectors when ids is None."""
    if user_ids is None:
        rows = conn.execute("SELECT * FROM student_vectors ORDER BY user_id").fetchall()
    elif not user_ids:
        return []
    else:
        placeholders = ", ".join("?" for _ in user_ids)
        rows = conn.execute(
            f"SELECT * FROM student_vectors WHERE user_id IN ({placeholders})",
            tuple(user_ids),
        ).fetchall()
    return [_row_to_vector(row) for row in rows]


def count_vectors(conn: sqlite3.Connection) -> int:
    return conn.execute("SELECT COUNT(*) FROM student_vectors").fetchone()[0]  # type: ignore[no-any-return]
