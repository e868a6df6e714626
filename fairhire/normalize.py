from typing import Iterable, List


def normalize_text(s: str) -> str:
    return " ".join(s.strip().lower().split())


def normalize_skill(skill: str) -> str:
    return normalize_text(skill)


def normalize_skills(skills: Iterable[str]) -> List[str]:
    # Order-preserving dedupe; empty tokens dropped
    if isinstance(skills, (set, frozenset)):
        skills = sorted(skills)
    seen = set()
    out: List[str] = []
    for s in skills or []:
        token = normalize_skill(s)
        if token and token not in seen:
            seen.add(token)
            out.append(token)
    return out


BACHELOR_SYNS = {"bachelor", "bachelors", "bachelor's", "bsc", "bs", "ba", "b.sc", "b.s.", "undergraduate"}
MASTER_SYNS = {"master", "masters", "master's", "msc", "ms", "ma", "m.sc", "m.s.", "mba"}
DOCTORATE_SYNS = {"doctorate", "phd", "ph.d", "ph.d.", "dphil", "doctoral"}
NONE_SYNS = {"none", "no degree", "high school", "secondary"}


def normalize_education(value: str | None) -> str:
    """Map free-form degree labels onto none|bachelor|master|doctorate|unknown."""
    if value is None:
        return "unknown"
    v = normalize_text(str(value))
    if v in BACHELOR_SYNS:
        return "bachelor"
    if v in MASTER_SYNS:
        return "master"
    if v in DOCTORATE_SYNS:
        return "doctorate"
    if v in NONE_SYNS:
        return "none"
    return "unknown"


def normalize_achievements(achievements: Iterable[str]) -> List[str]:
    return [" ".join(a.split()) for a in achievements or [] if a and a.strip()]
