"""
Named scoring schemes.

Two weight assignments exist side by side and are never merged:
- five_dimension: experience/skills/achievements/learning_agility/cultural_fit (25/25/20/15/15)
- legacy: experience/skills/education/achievements (25/40/15/20)

The tuple order of `dimensions` is the order evidence appears in an explanation.
"""

from dataclasses import dataclass
from typing import Dict, Tuple

EXPERIENCE = "experience"
SKILLS = "skills"
EDUCATION = "education"
ACHIEVEMENTS = "achievements"
LEARNING_AGILITY = "learning_agility"
CULTURAL_FIT = "cultural_fit"

ALL_DIMENSIONS = (EXPERIENCE, SKILLS, EDUCATION, ACHIEVEMENTS, LEARNING_AGILITY, CULTURAL_FIT)

TOTAL_POINTS = 100


@dataclass(frozen=True)
class ScoringScheme:
    name: str
    dimensions: Tuple[str, ...]
    weights: Dict[str, int]
    points_per_skill_match: int

    def weight(self, dimension: str) -> int:
        return self.weights[dimension]


FIVE_DIMENSION = ScoringScheme(
    name="five_dimension",
    dimensions=(EXPERIENCE, SKILLS, ACHIEVEMENTS, LEARNING_AGILITY, CULTURAL_FIT),
    weights={
        EXPERIENCE: 25,
        SKILLS: 25,
        ACHIEVEMENTS: 20,
        LEARNING_AGILITY: 15,
        CULTURAL_FIT: 15,
    },
    points_per_skill_match=5,
)

LEGACY = ScoringScheme(
    name="legacy",
    dimensions=(EXPERIENCE, SKILLS, EDUCATION, ACHIEVEMENTS),
    weights={
        EXPERIENCE: 25,
        SKILLS: 40,
        EDUCATION: 15,
        ACHIEVEMENTS: 20,
    },
    points_per_skill_match=8,
)

SCHEMES: Dict[str, ScoringScheme] = {
    FIVE_DIMENSION.name: FIVE_DIMENSION,
    LEGACY.name: LEGACY,
}

DEFAULT_SCHEME = LEGACY.name


def get_scheme(name: str) -> ScoringScheme:
    try:
        return SCHEMES[name]
    except KeyError:
        raise KeyError(f"Unknown scoring scheme '{name}'. Use one of: {', '.join(sorted(SCHEMES))}") from None
