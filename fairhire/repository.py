"""
Score Repository.

Responsibilities:
- CRUD for jobs, anonymized candidates and the identity vault.
- Write-once score persistence per candidate.

Non-Responsibilities:
- No scoring.
- No ranking order.

Invariant:
A candidate's score is written at most once until reset_scores() clears it.
Concurrent saves for the same candidate cannot both succeed.
"""

from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from .anonymize import Identity
from .database import Candidate, CandidateIdentity, Job, get_engine, init_database
from .errors import NotFoundError, PersistenceError, ScoreAlreadyRecordedError, ValidationError
from .models import (
    CandidateProfile,
    CandidateStatus,
    DecisionNotice,
    JobRubric,
    ScoredCandidate,
)


def _to_profile(row: Candidate) -> CandidateProfile:
    return CandidateProfile(
        anonymized_id=row.candidate_id,
        skills=tuple(row.skills or ()),
        experience_years=row.experience_years,
        education=row.education or "unknown",
        achievements=tuple(row.achievements or ()),
        submission_seq=row.submission_seq,
        job_key=row.job_key,
    )


def _to_rubric(row: Job) -> JobRubric:
    return JobRubric(
        requirements=tuple(row.requirements or ()),
        scheme=row.scheme,
        weights=dict(row.weights) if row.weights else None,
        job_key=row.job_key,
    )


class ScoreRepository:
    """SQLite-backed persistence collaborator for the ranking engine."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        init_database(self.db_path)
        self.engine = get_engine(self.db_path)
        self.Session = sessionmaker(bind=self.engine)

    def close(self) -> None:
        self.engine.dispose()

    # Jobs

    def add_job(self, job_key: str, title: str, rubric: JobRubric, active: bool = True) -> None:
        with self.Session() as session:
            session.add(Job(
                job_key=job_key,
                title=title,
                scheme=rubric.scheme,
                requirements=list(rubric.requirements),
                weights=dict(rubric.weights) if rubric.weights else None,
                active=active,
            ))
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                raise ValidationError([f"Job '{job_key}' already exists"])

    def set_job_active(self, job_key: str, active: bool) -> None:
        with self.Session() as session:
            job = session.query(Job).filter_by(job_key=job_key).first()
            if job is None:
                raise NotFoundError(f"Job '{job_key}' not found")
            job.active = active
            session.commit()

    def load_job(self, job_key: str) -> JobRubric:
        """Rubric for an active job. NotFoundError if missing or inactive."""
        with self.Session() as session:
            job = session.query(Job).filter_by(job_key=job_key).first()
            if job is None:
                raise NotFoundError(f"Job '{job_key}' not found")
            if not job.active:
                raise NotFoundError(f"Job '{job_key}' is inactive")
            return _to_rubric(job)

    def list_jobs(self) -> List[Dict]:
        with self.Session() as session:
            return [
                {"job_key": j.job_key, "title": j.title, "scheme": j.scheme, "active": j.active}
                for j in session.query(Job).order_by(Job.created_at, Job.job_key).all()
            ]

    # Candidates

    def candidate_exists(self, candidate_id: str) -> bool:
        with self.Session() as session:
            return session.query(Candidate.submission_seq).filter_by(candidate_id=candidate_id).first() is not None

    def add_candidate(
        self,
        profile: CandidateProfile,
        job_key: str,
        identity: Optional[Identity] = None,
    ) -> CandidateProfile:
        """Store a pending, unscored profile and return it with its submission_seq."""
        with self.Session() as session:
            if session.query(Job.job_key).filter_by(job_key=job_key).first() is None:
                raise NotFoundError(f"Job '{job_key}' not found")
            row = Candidate(
                candidate_id=profile.anonymized_id,
                job_key=job_key,
                status=CandidateStatus.PENDING.value,
                skills=list(profile.skills),
                experience_years=profile.experience_years,
                education=profile.education.value,
                achievements=list(profile.achievements),
            )
            try:
                session.add(row)
                session.flush()
                if identity is not None:
                    session.add(CandidateIdentity(
                        candidate_id=profile.anonymized_id,
                        name=identity.name,
                        email=identity.email,
                        phone=identity.phone,
                    ))
                session.commit()
            except IntegrityError:
                session.rollback()
                raise ValidationError([f"Candidate {profile.anonymized_id} already exists"])
            return _to_profile(row)

    def count_candidates(self, job_key: str) -> int:
        with self.Session() as session:
            return session.query(Candidate).filter_by(job_key=job_key).count()

    def load_pending_unscored(self, job_key: str) -> List[CandidateProfile]:
        with self.Session() as session:
            rows = (
                session.query(Candidate)
                .filter(
                    Candidate.job_key == job_key,
                    Candidate.status == CandidateStatus.PENDING.value,
                    Candidate.total_score.is_(None),
                )
                .order_by(Candidate.submission_seq)
                .all()
            )
            return [_to_profile(r) for r in rows]

    def load_scored(self, job_key: str) -> List[ScoredCandidate]:
        with self.Session() as session:
            rows = (
                session.query(Candidate)
                .filter(Candidate.job_key == job_key, Candidate.total_score.isnot(None))
                .order_by(Candidate.submission_seq)
                .all()
            )
            return [
                ScoredCandidate(
                    anonymized_id=r.candidate_id,
                    submission_seq=r.submission_seq,
                    total_score=r.total_score,
                    explanation=r.explanation or "",
                    dimension_scores=dict(r.dimension_scores or {}),
                )
                for r in rows
            ]

    def list_candidates(self, job_key: str) -> List[Dict]:
        with self.Session() as session:
            rows = session.query(Candidate).filter_by(job_key=job_key).order_by(Candidate.submission_seq).all()
            return [
                {
                    "anonymized_id": r.candidate_id,
                    "status": r.status,
                    "total_score": r.total_score,
                    "submission_seq": r.submission_seq,
                }
                for r in rows
            ]

    # Scores

    def save_score(
        self,
        candidate_id: str,
        total_score: int,
        explanation: str,
        dimension_scores: Optional[Dict[str, int]] = None,
        scorer: Optional[str] = None,
    ) -> None:
        """
        Persist a score exactly once.

        The conditional update only matches an unscored row, so a second save
        for the same candidate (sequential or racing) updates nothing.

        Raises:
            ScoreAlreadyRecordedError: Candidate already has a score
            NotFoundError: Unknown candidate
            PersistenceError: Storage failure; the caller keeps its result for retry
        """
        try:
            with self.Session() as session:
                updated = (
                    session.query(Candidate)
                    .filter(Candidate.candidate_id == candidate_id, Candidate.total_score.is_(None))
                    .update(
                        {
                            Candidate.total_score: int(total_score),
                            Candidate.explanation: explanation,
                            Candidate.dimension_scores: dict(dimension_scores or {}),
                            Candidate.scorer: scorer,
                            Candidate.scored_at: datetime.now(),
                        },
                        synchronize_session=False,
                    )
                )
                session.commit()
                if updated:
                    return
                exists = session.query(Candidate.submission_seq).filter_by(candidate_id=candidate_id).first()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not save score for {candidate_id}: {type(e).__name__}") from e

        if exists is None:
            raise NotFoundError(f"Candidate {candidate_id} not found")
        raise ScoreAlreadyRecordedError(candidate_id)

    def reset_scores(self, job_key: str, candidate_ids: Optional[Iterable[str]] = None) -> int:
        """Clear scores of pending candidates so the next rank re-scores them. Returns rows reset."""
        with self.Session() as session:
            query = session.query(Candidate).filter(
                Candidate.job_key == job_key,
                Candidate.status == CandidateStatus.PENDING.value,
                Candidate.total_score.isnot(None),
            )
            if candidate_ids is not None:
                query = query.filter(Candidate.candidate_id.in_(list(candidate_ids)))
            count = query.update(
                {
                    Candidate.total_score: None,
                    Candidate.explanation: None,
                    Candidate.dimension_scores: None,
                    Candidate.scorer: None,
                    Candidate.scored_at: None,
                },
                synchronize_session=False,
            )
            session.commit()
            return count

    # Decisions

    def record_decision(self, candidate_id: str, status: CandidateStatus) -> DecisionNotice:
        """Move a scored, pending candidate to accepted or rejected."""
        status = CandidateStatus(status)
        if status == CandidateStatus.PENDING:
            raise ValidationError(["Decision status must be 'accepted' or 'rejected'"])
        with self.Session() as session:
            row = session.query(Candidate).filter_by(candidate_id=candidate_id).first()
            if row is None:
                raise NotFoundError(f"Candidate {candidate_id} not found")
            if row.total_score is None:
                raise ValidationError([f"Candidate {candidate_id} has not been scored yet"])
            if row.status != CandidateStatus.PENDING.value:
                raise ValidationError([f"Candidate {candidate_id} was already {row.status}"])
            row.status = status.value
            row.decided_at = datetime.now()
            session.commit()
            return DecisionNotice(candidate_id, status, row.explanation or "")

    # Identity vault

    def load_identity(self, candidate_id: str) -> Optional[Identity]:
        with self.Session() as session:
            row = session.query(CandidateIdentity).filter_by(candidate_id=candidate_id).first()
            if row is None:
                return None
            return Identity(name=row.name, email=row.email, phone=row.phone)
