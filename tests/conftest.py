"""
Pytest configuration and shared fixtures.
"""

import pytest
from pathlib import Path
from typing import Dict, Any

from fairhire.logger import get_logger, reset_logger
from fairhire.models import CandidateProfile, JobRubric
from fairhire.repository import ScoreRepository


@pytest.fixture(autouse=True)
def isolated_logger(tmp_path):
    """Route the global logger into tmp_path with console output off."""
    reset_logger()
    logger = get_logger(log_dir=tmp_path / "logs", enable_console=False)
    yield logger
    reset_logger()


@pytest.fixture
def legacy_rubric() -> JobRubric:
    """Legacy-scheme rubric requiring two skills."""
    return JobRubric(requirements=("python", "sql"), scheme="legacy", job_key="backend-1")


@pytest.fixture
def five_dimension_rubric() -> JobRubric:
    """Five-dimension rubric requiring two skills."""
    return JobRubric(requirements=("python", "sql"), scheme="five_dimension", job_key="backend-2")


@pytest.fixture
def strong_profile() -> CandidateProfile:
    """6 years, python + postgresql, bachelor, 3 achievements."""
    return CandidateProfile(
        anonymized_id="cand_strong",
        skills=("Python", "PostgreSQL"),
        experience_years=6,
        education="bachelor",
        achievements=("Led migration", "Cut latency 40%", "Mentored team"),
    )


@pytest.fixture
def weak_profile() -> CandidateProfile:
    """No stated experience, no matching skills, nothing listed."""
    return CandidateProfile(
        anonymized_id="cand_weak",
        skills=("excel",),
        experience_years=None,
        education="unknown",
        achievements=(),
    )


@pytest.fixture
def raw_candidate() -> Dict[str, Any]:
    """Extracted CV record as it arrives at intake, identity included."""
    return {
        "name": "Jane Doe",
        "email": "jane.doe@example.com",
        "phone": "+1 555 010 9999",
        "skills": ["Python", "SQL"],
        "experience_years": 4,
        "education": "master",
        "achievements": ["Built billing service with Jane Doe's team", "Mentored two interns"],
    }


@pytest.fixture
def db_path(tmp_path) -> Path:
    """Path for a temporary SQLite database."""
    return tmp_path / "fairhire.db"


@pytest.fixture
def repo(db_path):
    """Repository with one active legacy job 'backend-1'."""
    repository = ScoreRepository(db_path)
    repository.add_job("backend-1", "Backend Engineer", JobRubric(requirements=("python", "sql")))
    yield repository
    repository.close()


@pytest.fixture
def add_candidate(repo):
    """Factory storing an anonymized profile for 'backend-1'."""
    def _add(anonymized_id: str, **fields) -> CandidateProfile:
        profile = CandidateProfile(anonymized_id=anonymized_id, **fields)
        return repo.add_candidate(profile, fields.get("job_key") or "backend-1")
    return _add
