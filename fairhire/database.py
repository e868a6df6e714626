"""
Database schema and connection management.

Uses SQLite with SQLAlchemy. Identities live in their own table so that
nothing read for scoring or ranking ever touches a name or contact field.
"""

from datetime import datetime
from pathlib import Path

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    create_engine,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


class Job(Base):
    """Job a batch of candidates is ranked for."""

    __tablename__ = "jobs"

    job_key = Column(String, primary_key=True)
    title = Column(String, nullable=False)
    scheme = Column(String, nullable=False)  # five_dimension | legacy
    requirements = Column(JSON, nullable=False, default=list)
    weights = Column(JSON, nullable=True)  # null = scheme defaults
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)


class Candidate(Base):
    """Anonymized profile plus its write-once score."""

    __tablename__ = "candidates"

    # Autoincrement doubles as submission order for tie-breaking
    submission_seq = Column(Integer, primary_key=True, autoincrement=True)
    candidate_id = Column(String, nullable=False, unique=True, index=True)
    job_key = Column(String, ForeignKey("jobs.job_key"), nullable=False, index=True)
    status = Column(String, nullable=False, default="pending")  # pending | accepted | rejected

    skills = Column(JSON, nullable=False, default=list)
    experience_years = Column(Integer, nullable=True)
    education = Column(String, nullable=False, default="unknown")
    achievements = Column(JSON, nullable=False, default=list)

    dimension_scores = Column(JSON, nullable=True)
    total_score = Column(Integer, nullable=True)  # null = unscored
    explanation = Column(Text, nullable=True)
    scorer = Column(String, nullable=True)
    scored_at = Column(DateTime, nullable=True)

    submitted_at = Column(DateTime, nullable=False, default=datetime.now)
    decided_at = Column(DateTime, nullable=True)


class CandidateIdentity(Base):
    """Identity vault keyed by anonymized id. Read only to notify a decision."""

    __tablename__ = "identities"

    candidate_id = Column(String, ForeignKey("candidates.candidate_id"), primary_key=True)
    name = Column(String, nullable=True)
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)


def get_engine(db_path: Path) -> Engine:
    """
    Create an engine for the SQLite file.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLAlchemy engine usable from worker threads
    """
    return create_engine(f"sqlite:///{db_path}", connect_args={"check_same_thread": False})


def init_database(db_path: Path) -> None:
    """
    Initialize database and create tables.

    Args:
        db_path: Path to SQLite database file
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = get_engine(db_path)
    Base.metadata.create_all(engine)
    engine.dispose()


def get_session(db_path: Path):
    """
    Get database session.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLAlchemy session
    """
    Session = sessionmaker(bind=get_engine(db_path))
    return Session()
