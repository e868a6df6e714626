from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .normalize import normalize_achievements, normalize_education, normalize_skills
from .schemes import SCHEMES, get_scheme, ScoringScheme


class EducationLevel(str, Enum):
    NONE = "none"
    BACHELOR = "bachelor"
    MASTER = "master"
    DOCTORATE = "doctorate"
    UNKNOWN = "unknown"


class EvidenceStatus(str, Enum):
    PASS = "pass"
    WARN = "warn"


class CandidateStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


REDACTION_MARKER = "[REDACTED]"


@dataclass(frozen=True)
class CandidateProfile:
    """
    Extracted CV content for one applicant, keyed by an opaque id.
    Carries no name, contact or demographic field.
    """
    anonymized_id: str
    skills: Tuple[str, ...] = ()
    experience_years: Optional[int] = None
    education: EducationLevel = EducationLevel.UNKNOWN
    achievements: Tuple[str, ...] = ()

    # Intake order within a job; used only for tie-breaking
    submission_seq: Optional[int] = None
    job_key: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "skills", tuple(normalize_skills(self.skills)))
        object.__setattr__(self, "achievements", tuple(normalize_achievements(self.achievements)))
        edu = self.education.value if isinstance(self.education, Enum) else self.education
        object.__setattr__(self, "education", EducationLevel(normalize_education(edu)))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "anonymized_id": self.anonymized_id,
            "skills": list(self.skills),
            "experience_years": self.experience_years,
            "education": self.education.value,
            "achievements": list(self.achievements),
        }


@dataclass(frozen=True)
class JobRubric:
    """Required skills plus the weight scheme a job is scored against."""
    requirements: Tuple[str, ...] = ()
    scheme: str = "legacy"
    weights: Optional[Dict[str, int]] = None
    job_key: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "requirements", tuple(normalize_skills(self.requirements)))
        if self.weights is None and self.scheme in SCHEMES:
            object.__setattr__(self, "weights", dict(get_scheme(self.scheme).weights))

    @property
    def scoring_scheme(self) -> ScoringScheme:
        return get_scheme(self.scheme)

    @property
    def dimensions(self) -> Tuple[str, ...]:
        return self.scoring_scheme.dimensions

    def weight(self, dimension: str) -> int:
        return int((self.weights or {})[dimension])


@dataclass(frozen=True)
class EvidenceLine:
    dimension: str
    status: EvidenceStatus
    text: str

    def render(self) -> str:
        return f"[{self.status.value.upper()}] {self.dimension}: {self.text}"


@dataclass(frozen=True)
class ScoreResult:
    """Immutable outcome of scoring one (candidate, job) pair."""
    dimension_scores: Dict[str, int]
    total_score: int
    explanation: Tuple[EvidenceLine, ...]

    @property
    def explanation_text(self) -> str:
        return "\n".join(line.render() for line in self.explanation)

    @property
    def has_warnings(self) -> bool:
        return any(line.status == EvidenceStatus.WARN for line in self.explanation)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dimension_scores": dict(self.dimension_scores),
            "total_score": self.total_score,
            "explanation": [
                {"dimension": e.dimension, "status": e.status.value, "text": e.text}
                for e in self.explanation
            ],
        }


@dataclass(frozen=True)
class RankingEntry:
    """The only shape returned to reviewers."""
    anonymized_id: str
    total_score: int
    explanation: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "anonymized_id": self.anonymized_id,
            "total_score": self.total_score,
            "explanation": self.explanation,
        }


@dataclass(frozen=True)
class CandidateFailure:
    anonymized_id: str
    stage: str  # "evaluation" | "persistence"
    error_type: str
    message: str
    # Set for persistence failures so the save can be retried without recomputation
    result: Optional[ScoreResult] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "anonymized_id": self.anonymized_id,
            "stage": self.stage,
            "error_type": self.error_type,
            "message": self.message,
        }


@dataclass
class RankingOutcome:
    job_key: str
    entries: List[RankingEntry] = field(default_factory=list)
    failures: List[CandidateFailure] = field(default_factory=list)
    scored_now: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    cancelled: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_key": self.job_key,
            "entries": [e.to_dict() for e in self.entries],
            "failures": [f.to_dict() for f in self.failures],
            "scored_now": list(self.scored_now),
            "skipped": list(self.skipped),
            "cancelled": self.cancelled,
        }


@dataclass(frozen=True)
class DecisionNotice:
    """Payload handed to the decision-notification collaborator."""
    anonymized_id: str
    status: CandidateStatus
    explanation: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "anonymized_id": self.anonymized_id,
            "status": self.status.value,
            "explanation": self.explanation,
        }


@dataclass(frozen=True)
class ScoredCandidate:
    """A persisted score as the ranking engine orders it."""
    anonymized_id: str
    submission_seq: Optional[int]
    total_score: int
    explanation: str
    dimension_scores: Dict[str, int] = field(default_factory=dict)

    def to_entry(self) -> RankingEntry:
        return RankingEntry(self.anonymized_id, self.total_score, self.explanation)
