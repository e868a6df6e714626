"""
Score Aggregation.

Responsibilities:
- Run every evaluator of the rubric's scheme.
- Sum sub-scores into a total and assemble the explanation in scheme order.

Non-Responsibilities:
- No persistence.
- No ranking or tie-breaking.

Invariant:
Given the same inputs, the aggregator returns a byte-identical ScoreResult.
"""

from typing import Dict, List, Optional, Protocol

from ..errors import ValidationError
from ..models import CandidateProfile, EvidenceLine, JobRubric, ScoreResult
from ..schemes import TOTAL_POINTS
from .evaluators import EVALUATORS, Evaluator, clamp


class Scorer(Protocol):
    """Capability shared by the heuristic and external-model scorers."""

    name: str

    def score(self, profile: CandidateProfile, rubric: JobRubric) -> ScoreResult:
        ...


class ScoreAggregator:
    """Combine dimension evaluators into a ScoreResult."""

    def __init__(self, evaluators: Optional[Dict[str, Evaluator]] = None):
        self.evaluators = dict(EVALUATORS)
        if evaluators:
            self.evaluators.update(evaluators)

    def aggregate(self, profile: CandidateProfile, rubric: JobRubric) -> ScoreResult:
        dimension_scores: Dict[str, int] = {}
        explanation: List[EvidenceLine] = []

        for dimension in rubric.dimensions:
            evaluator = self.evaluators.get(dimension)
            if evaluator is None:
                raise ValidationError([f"No evaluator registered for dimension '{dimension}'"])
            points, evidence = evaluator(profile, rubric)
            # Evaluators clamp already; re-clamp so a custom evaluator cannot break the bound
            dimension_scores[dimension] = clamp(points, rubric.weight(dimension))
            explanation.extend(evidence)

        total = sum(dimension_scores.values())
        return ScoreResult(
            dimension_scores=dimension_scores,
            total_score=clamp(total, TOTAL_POINTS),
            explanation=tuple(explanation),
        )


class HeuristicScorer:
    """Deterministic local scorer backed by the dimension evaluators."""

    name = "heuristic"

    def __init__(self, aggregator: Optional[ScoreAggregator] = None):
        self.aggregator = aggregator or ScoreAggregator()

    def score(self, profile: CandidateProfile, rubric: JobRubric) -> ScoreResult:
        return self.aggregator.aggregate(profile, rubric)
