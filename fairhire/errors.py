"""
Error taxonomy for the scoring core.

Messages carry anonymized ids, job keys and exception type names only.
Never pass raw profile text or identity fields into these exceptions.
"""

from typing import List, Optional


class FairHireError(Exception):
    """Base class for all domain errors."""
    pass


class ValidationError(FairHireError):
    """Malformed rubric or candidate profile. Raised before any scoring starts."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) if self.errors else "Validation failed")


class NotFoundError(FairHireError):
    """Job does not exist or is inactive."""
    pass


class EmptyBatchError(FairHireError):
    """Nothing to rank for the requested job."""
    pass


class PerCandidateEvaluationError(FairHireError):
    """One candidate's evaluation failed. Siblings are unaffected."""

    def __init__(self, candidate_id: str, cause_type: str):
        self.candidate_id = candidate_id
        self.cause_type = cause_type
        super().__init__(f"Evaluation failed for {candidate_id}: {cause_type}")


class PersistenceError(FairHireError):
    """Storage write failed after a successful evaluation."""
    pass


class ScoreAlreadyRecordedError(PersistenceError):
    """A score already exists for this candidate (write-once)."""

    def __init__(self, candidate_id: str):
        self.candidate_id = candidate_id
        super().__init__(f"Score already recorded for {candidate_id}")


class ExternalScorerError(FairHireError):
    """External model call failed or its reply broke the scorer contract."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)
