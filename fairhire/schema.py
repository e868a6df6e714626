from typing import Any, Dict, List, Tuple

from .anonymize import find_leaks
from .errors import ValidationError
from .models import CandidateProfile, EducationLevel, JobRubric
from .normalize import normalize_education
from .schemes import SCHEMES, TOTAL_POINTS

EDUCATION_VALUES = {level.value for level in EducationLevel}
MAX_EXPERIENCE_YEARS = 80
MAX_SKILL_LENGTH = 100


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def _is_str_list(v: Any) -> bool:
    return isinstance(v, (list, tuple, set, frozenset)) and all(isinstance(x, str) for x in v)


def _is_int(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def validate_candidate(data: Dict[str, Any], require_id: bool = True) -> List[str]:
    """
    Returns a list of validation error messages for a raw candidate record.
    Empty list means valid.

    require_id=False is used at intake, before an anonymized id has been issued.
    """
    errors: List[str] = []

    if require_id:
        if "anonymized_id" not in data:
            errors.append("Missing required field: anonymized_id")
        elif not _is_non_empty_str(data["anonymized_id"]):
            errors.append("Field 'anonymized_id' must be a non-empty string")

    if "skills" in data and not _is_str_list(data["skills"]):
        errors.append("Field 'skills' must be a list of strings")
    elif any(len(s) > MAX_SKILL_LENGTH for s in data.get("skills") or []):
        errors.append(f"Field 'skills' entries must be at most {MAX_SKILL_LENGTH} characters")

    if "achievements" in data and not _is_str_list(data["achievements"]):
        errors.append("Field 'achievements' must be a list of strings")

    years = data.get("experience_years")
    if years is not None:
        if not _is_int(years):
            errors.append("Field 'experience_years' must be an integer or null")
        elif years < 0 or years > MAX_EXPERIENCE_YEARS:
            errors.append(f"Field 'experience_years' must be between 0 and {MAX_EXPERIENCE_YEARS}")

    education = data.get("education")
    if education is not None and not isinstance(education, str):
        errors.append("Field 'education' must be a string if provided")

    return errors


def validate_candidate_strict(data: Dict[str, Any]) -> Tuple[bool, List[str]]:
    """
    Strict check for records about to be scored: on top of the basic rules,
    education must be a known level and no field may carry contact or
    demographic data.
    """
    errors = validate_candidate(data)

    education = data.get("education")
    if isinstance(education, str) and normalize_education(education) == "unknown" \
            and education.strip().lower() != "unknown":
        errors.append(f"Field 'education' must be one of: {', '.join(sorted(EDUCATION_VALUES))}")

    texts = list(data.get("skills") or []) + list(data.get("achievements") or [])
    if _is_str_list(texts):
        leaks = sorted({kind for t in texts for kind in find_leaks(t)})
        if leaks:
            errors.append(f"Profile carries identifying data ({', '.join(leaks)}); redact before scoring")

    return (len(errors) == 0, errors)


def validate_profile(profile: CandidateProfile) -> List[str]:
    """Object-level checks run by the ranking engine before any scoring."""
    errors: List[str] = []
    label = profile.anonymized_id or "<missing id>"
    if not _is_non_empty_str(profile.anonymized_id):
        errors.append("Candidate is missing an anonymized_id")
    years = profile.experience_years
    if years is not None and (not _is_int(years) or years < 0):
        errors.append(f"Candidate {label}: experience_years must be a non-negative integer or null")
    leaks = sorted({kind for t in profile.skills + profile.achievements for kind in find_leaks(t)})
    if leaks:
        errors.append(f"Candidate {label}: profile carries identifying data ({', '.join(leaks)})")
    return errors


def validate_rubric(data: Dict[str, Any]) -> List[str]:
    """Returns validation errors for a raw job rubric record."""
    errors: List[str] = []

    reqs = data.get("requirements", [])
    if not _is_str_list(reqs):
        errors.append("Field 'requirements' must be a list of strings")

    scheme_name = data.get("scheme")
    if scheme_name is None:
        return errors + _validate_weights(data.get("weights"), None)
    if scheme_name not in SCHEMES:
        errors.append(f"Field 'scheme' must be one of: {', '.join(sorted(SCHEMES))}")
        return errors
    return errors + _validate_weights(data.get("weights"), scheme_name)


def _validate_weights(weights: Any, scheme_name: Any) -> List[str]:
    if weights is None:
        return []
    if not isinstance(weights, dict) or not all(_is_int(v) for v in weights.values()):
        return ["Field 'weights' must map dimension names to integers"]

    errors: List[str] = []
    if scheme_name is not None:
        expected = set(SCHEMES[scheme_name].dimensions)
        if set(weights) != expected:
            errors.append(
                f"Weights for scheme '{scheme_name}' must cover exactly: {', '.join(sorted(expected))}"
            )
    elif not any(set(weights) == set(s.dimensions) for s in SCHEMES.values()):
        errors.append("Weights must match the dimension set of exactly one scheme")

    if any(v < 0 for v in weights.values()):
        errors.append("Weights must be non-negative")
    total = sum(weights.values())
    if total != TOTAL_POINTS:
        errors.append(f"Weights must sum to {TOTAL_POINTS} (got {total})")
    return errors


def validate_rubric_strict(data: Dict[str, Any]) -> Tuple[bool, List[str]]:
    errors = validate_rubric(data)
    if not data.get("requirements"):
        errors.append("Strict mode: at least one required skill must be listed")
    return (len(errors) == 0, errors)


def validate_job_rubric(rubric: JobRubric) -> List[str]:
    """Object-level rubric checks run by the ranking engine."""
    return validate_rubric({
        "requirements": list(rubric.requirements),
        "scheme": rubric.scheme,
        "weights": rubric.weights,
    })


def _infer_scheme(weights: Dict[str, int]) -> str | None:
    for name, scheme in SCHEMES.items():
        if set(weights) == set(scheme.dimensions):
            return name
    return None


def rubric_from_dict(data: Dict[str, Any], default_scheme: str = "legacy") -> JobRubric:
    """Build a JobRubric, raising ValidationError on malformed input."""
    errors = validate_rubric(data)
    if errors:
        raise ValidationError(errors)
    weights = data.get("weights")
    scheme = data.get("scheme") or (_infer_scheme(weights) if weights else None) or default_scheme
    return JobRubric(
        requirements=tuple(data.get("requirements") or ()),
        scheme=scheme,
        weights=dict(weights) if weights else None,
        job_key=data.get("job_key"),
    )


def profile_from_dict(data: Dict[str, Any]) -> CandidateProfile:
    """Build a CandidateProfile for scoring, raising ValidationError on malformed input."""
    ok, errors = validate_candidate_strict(data)
    if not ok:
        raise ValidationError(errors)
    return CandidateProfile(
        anonymized_id=data["anonymized_id"],
        skills=tuple(data.get("skills") or ()),
        experience_years=data.get("experience_years"),
        education=data.get("education") or "unknown",
        achievements=tuple(data.get("achievements") or ()),
        submission_seq=data.get("submission_seq"),
        job_key=data.get("job_key"),
    )
