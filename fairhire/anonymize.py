"""
Anonymization Binding.

Responsibilities:
- Issue an opaque anonymized id per applicant at intake time.
- Keep the id -> identity mapping in a vault separate from the profile.
- Strip identity, contact and demographic fragments before a profile is scored.
- Detect and scrub leaks in text headed for reviewers or logs.

Non-Responsibilities:
- No scoring.
- No notification delivery.

Invariant:
Nothing returned by the scoring core can be traced back to a person
without going through resolve().
"""

import re
import secrets
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from .errors import NotFoundError, ValidationError
from .models import REDACTION_MARKER, CandidateProfile

EMAIL_RE = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
PHONE_RE = re.compile(r"(?<!\w)\+?\d[\d\s().-]{7,}\d(?!\w)")
PHONE_MIN_DIGITS = 9
URL_RE = re.compile(r"\b(?:https?://|www\.)\S+|\b(?:linkedin|github)\.com/\S+", re.IGNORECASE)
DEMOGRAPHIC_RE = re.compile(
    r"\b(?:nationality|citizenship|gender|sex|date of birth|dob|age|marital status|religion|ethnicity)"
    r"\s*[:=]\s*[^,;\n]+",
    re.IGNORECASE,
)

_PATTERNS: Tuple[Tuple[str, "re.Pattern[str]"], ...] = (
    ("email", EMAIL_RE),
    ("url", URL_RE),
    ("phone", PHONE_RE),
    ("demographic", DEMOGRAPHIC_RE),
)


def _is_phone(fragment: str) -> bool:
    # Year ranges such as "2019-2021" have too few digits; bare counters have no separators
    digits = sum(c.isdigit() for c in fragment)
    separated = fragment.startswith("+") or any(c in " ().-" for c in fragment)
    return digits >= PHONE_MIN_DIGITS and separated


def _matches(kind: str, pattern: "re.Pattern[str]", text: str) -> bool:
    if kind == "phone":
        return any(_is_phone(m.group(0)) for m in pattern.finditer(text))
    return pattern.search(text) is not None


def _scrub(kind: str, pattern: "re.Pattern[str]", text: str) -> str:
    if kind == "phone":
        return pattern.sub(lambda m: REDACTION_MARKER if _is_phone(m.group(0)) else m.group(0), text)
    return pattern.sub(REDACTION_MARKER, text)


ID_PREFIX = "cand_"


@dataclass(frozen=True)
class Identity:
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    def terms(self) -> List[str]:
        """Identity fragments that must never appear in reviewer-facing text."""
        out: List[str] = []
        if self.name:
            out.extend(p for p in re.split(r"\s+", self.name.strip()) if len(p) >= 2)
        if self.email:
            out.append(self.email)
        if self.phone:
            out.append(self.phone)
        return out


def extract_email(text: str) -> Optional[str]:
    match = EMAIL_RE.search(text or "")
    return match.group(0) if match else None


def _term_pattern(term: str) -> "re.Pattern[str]":
    return re.compile(rf"(?<!\w){re.escape(term)}(?!\w)", re.IGNORECASE)


def find_leaks(text: str, identity: Optional[Identity] = None) -> List[str]:
    """Return the kinds of identifying data found in text (empty list = clean)."""
    found = [kind for kind, pattern in _PATTERNS if _matches(kind, pattern, text or "")]
    if identity is not None:
        if any(_term_pattern(t).search(text or "") for t in identity.terms()):
            found.append("identity")
    return found


def redact_text(text: str, identity: Optional[Identity] = None) -> str:
    out = text or ""
    for kind, pattern in _PATTERNS:
        out = _scrub(kind, pattern, out)
    if identity is not None:
        for term in identity.terms():
            out = _term_pattern(term).sub(REDACTION_MARKER, out)
    return out


def issue_anonymized_id() -> str:
    return ID_PREFIX + secrets.token_hex(8)


class AnonymizationBinding:
    """Maps opaque applicant ids to identities held in the repository's vault."""

    def __init__(self, repository):
        self.repository = repository

    def intake(self, raw: Dict[str, Any], job_key: str) -> CandidateProfile:
        """
        Anonymize one extracted CV record and store it as pending.

        Args:
            raw: Record with optional name/email/phone/content plus skills,
                 experience_years, education and achievements
            job_key: Job the candidate applied to

        Returns:
            The stored CandidateProfile (identity-free, submission_seq assigned)

        Raises:
            ValidationError: If the record is malformed
            NotFoundError: If the job does not exist
        """
        from .schema import validate_candidate

        errors = validate_candidate(raw, require_id=False)
        if errors:
            raise ValidationError(errors)

        email = raw.get("email") or extract_email(raw.get("content") or "")
        identity = Identity(name=raw.get("name"), email=email, phone=raw.get("phone"))

        anonymized_id = issue_anonymized_id()
        while self.repository.candidate_exists(anonymized_id):
            anonymized_id = issue_anonymized_id()

        profile = CandidateProfile(
            anonymized_id=anonymized_id,
            skills=[s for s in (redact_text(s, identity) for s in raw.get("skills") or []) if s != REDACTION_MARKER],
            experience_years=raw.get("experience_years"),
            education=raw.get("education") or "unknown",
            achievements=[redact_text(a, identity) for a in raw.get("achievements") or []],
            job_key=job_key,
        )
        return self.repository.add_candidate(profile, job_key, identity=identity)

    def resolve(self, anonymized_id: str) -> Identity:
        """Look up the identity behind an id. For the notification collaborator only."""
        identity = self.repository.load_identity(anonymized_id)
        if identity is None:
            raise NotFoundError(f"No identity bound to {anonymized_id}")
        return identity
