"""
Dimension Evaluators.

Responsibilities:
- Score one facet of a candidate against a job rubric.
- Emit pass/warn evidence lines supporting the sub-score.

Non-Responsibilities:
- No aggregation across dimensions.
- No persistence.
- No access to identity or contact data.

Invariant:
Given identical (profile, rubric), every evaluator returns the same
integer in [0, weight] and the same evidence. Evaluators never raise
for a well-formed profile.
"""

from typing import Callable, Dict, List, Tuple

from ..models import CandidateProfile, EducationLevel, EvidenceLine, EvidenceStatus, JobRubric
from ..schemes import (
    ACHIEVEMENTS,
    CULTURAL_FIT,
    EDUCATION,
    EXPERIENCE,
    LEARNING_AGILITY,
    SKILLS,
)

Evaluation = Tuple[int, List[EvidenceLine]]
Evaluator = Callable[[CandidateProfile, JobRubric], Evaluation]

# Fixed tiers, independent of the rubric weight: (min_years, points)
EXPERIENCE_TIERS = ((6, 25), (4, 20), (2, 15))
EXPERIENCE_FLOOR = 10

POINTS_PER_ACHIEVEMENT = 4

EDUCATION_POINTS = {
    EducationLevel.MASTER: 15,
    EducationLevel.BACHELOR: 10,
}

LEARNING_SIGNALS = ("learn", "certif", "course", "self-taught", "adopt", "migrat", "new technolog")
POINTS_PER_ADJACENT_SKILL = 3
ADJACENT_SKILL_CAP = 9
POINTS_PER_LEARNING_SIGNAL = 3
LEARNING_SIGNAL_CAP = 6

COLLABORATION_SIGNALS = ("team", "mentor", "collaborat", "volunteer", "community", "open source", "cross-functional")
POINTS_PER_COLLABORATION_SIGNAL = 5


def clamp(value: int, upper: int) -> int:
    return max(0, min(int(value), int(upper)))


def _line(dimension: str, ok: bool, text: str) -> EvidenceLine:
    return EvidenceLine(dimension, EvidenceStatus.PASS if ok else EvidenceStatus.WARN, text)


def skill_matches(requirement: str, skills: Tuple[str, ...]) -> bool:
    """Loose match: any candidate skill containing the requirement as a substring.

    "postgresql" satisfies "sql" on purpose.
    """
    req = requirement.lower()
    return any(req in s.lower() for s in skills)


def evaluate_experience(profile: CandidateProfile, rubric: JobRubric) -> Evaluation:
    weight = rubric.weight(EXPERIENCE)
    years = profile.experience_years
    if years is None:
        return clamp(EXPERIENCE_FLOOR, weight), [
            _line(EXPERIENCE, False, "years of experience not stated; scored as 0 years")
        ]

    points = EXPERIENCE_FLOOR
    for min_years, tier_points in EXPERIENCE_TIERS:
        if years >= min_years:
            points = tier_points
            break

    unit = "year" if years == 1 else "years"
    if years >= EXPERIENCE_TIERS[-1][0]:
        evidence = _line(EXPERIENCE, True, f"{years} {unit} of experience")
    else:
        evidence = _line(EXPERIENCE, False, f"{years} {unit} of experience (below 2 years)")
    return clamp(points, weight), [evidence]


def evaluate_skills(profile: CandidateProfile, rubric: JobRubric) -> Evaluation:
    weight = rubric.weight(SKILLS)
    per_match = rubric.scoring_scheme.points_per_skill_match

    matched = [req for req in rubric.requirements if skill_matches(req, profile.skills)]
    if not matched:
        if rubric.requirements:
            text = f"no required skills matched (0 of {len(rubric.requirements)})"
        else:
            text = "job lists no required skills"
        return 0, [_line(SKILLS, False, text)]

    evidence = [_line(SKILLS, True, f"matched required skill '{req}'") for req in matched]
    return clamp(len(matched) * per_match, weight), evidence


def evaluate_achievements(profile: CandidateProfile, rubric: JobRubric) -> Evaluation:
    weight = rubric.weight(ACHIEVEMENTS)
    count = len(profile.achievements)
    if count == 0:
        return 0, [_line(ACHIEVEMENTS, False, "no achievements listed")]
    noun = "achievement" if count == 1 else "achievements"
    return clamp(count * POINTS_PER_ACHIEVEMENT, weight), [
        _line(ACHIEVEMENTS, True, f"{count} {noun} listed")
    ]


def evaluate_education(profile: CandidateProfile, rubric: JobRubric) -> Evaluation:
    weight = rubric.weight(EDUCATION)
    points = EDUCATION_POINTS.get(profile.education)
    if points is None:
        return 0, [_line(EDUCATION, False, f"education level '{profile.education.value}' earns no points")]
    return clamp(points, weight), [_line(EDUCATION, True, f"{profile.education.value} degree")]


def _count_signals(achievements: Tuple[str, ...], signals: Tuple[str, ...]) -> int:
    return sum(1 for a in achievements if any(sig in a.lower() for sig in signals))


def evaluate_learning_agility(profile: CandidateProfile, rubric: JobRubric) -> Evaluation:
    weight = rubric.weight(LEARNING_AGILITY)
    adjacent = [s for s in profile.skills if not any(req in s for req in rubric.requirements)]
    breadth = min(ADJACENT_SKILL_CAP, len(adjacent) * POINTS_PER_ADJACENT_SKILL)
    signals = _count_signals(profile.achievements, LEARNING_SIGNALS)
    growth = min(LEARNING_SIGNAL_CAP, signals * POINTS_PER_LEARNING_SIGNAL)

    total = clamp(breadth + growth, weight)
    text = f"{len(adjacent)} skills beyond the requirements, {signals} achievements showing new learning"
    return total, [_line(LEARNING_AGILITY, total > 0, text)]


def evaluate_cultural_fit(profile: CandidateProfile, rubric: JobRubric) -> Evaluation:
    weight = rubric.weight(CULTURAL_FIT)
    signals = _count_signals(profile.achievements, COLLABORATION_SIGNALS)
    if signals == 0:
        return 0, [_line(CULTURAL_FIT, False, "no collaboration signals in achievements")]
    noun = "achievement" if signals == 1 else "achievements"
    return clamp(signals * POINTS_PER_COLLABORATION_SIGNAL, weight), [
        _line(CULTURAL_FIT, True, f"{signals} {noun} showing collaboration")
    ]


EVALUATORS: Dict[str, Evaluator] = {
    EXPERIENCE: evaluate_experience,
    SKILLS: evaluate_skills,
    ACHIEVEMENTS: evaluate_achievements,
    EDUCATION: evaluate_education,
    LEARNING_AGILITY: evaluate_learning_agility,
    CULTURAL_FIT: evaluate_cultural_fit,
}
