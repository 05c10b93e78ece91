"""Load demo/fixture records from a YAML file into the database."""

import logging
import sqlite3
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from src.core.db import upsert_application, upsert_company, upsert_project, upsert_student
from src.core.schemas import Application, Candidate, Company, Project

logger = logging.getLogger(__name__)


class SeedData(BaseModel):
    companies: list[Company] = Field(default_factory=list)
    students: list[Candidate] = Field(default_factory=list)
    projects: list[Project] = Field(default_factory=list)
    applications: list[Application] = Field(default_factory=list)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "SeedData":
        path = Path(path)
        if not path.exists():
            msg = f"Seed file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(raw)


def load_seed(conn: sqlite3.Connection, data: SeedData) -> dict[str, int]:
    """Upsert every record; returns counts per table."""
    for company in data.companies:
        upsert_company(conn, company)
    for student in data.students:
        upsert_student(conn, student)
    for project in data.projects:
        upsert_project(conn, project)
    for application in data.applications:
        upsert_application(conn, application)

    counts = {
        "companies": len(data.companies),
        "students": len(data.students),
        "projects": len(data.projects),
        "applications": len(data.applications),
    }
    logger.info("Seeded %s", counts)
    return counts
