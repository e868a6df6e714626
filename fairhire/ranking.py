"""
Ranking Engine.

Responsibilities:
- Score every unscored candidate of one job batch, at most once each.
- Isolate per-candidate failures so one bad profile never aborts the batch.
- Order the scored set by total score, ties broken by submission order.

Non-Responsibilities:
- No status transitions (decisions belong to the repository/reviewer flow).
- No identity handling; only anonymized ids pass through.

Invariant:
Re-ranking a job with no new candidates re-scores nothing and returns the
same ordering. Persisted scores survive cancellation and partial failure.
"""

import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .anonymize import find_leaks, redact_text
from .errors import (
    EmptyBatchError,
    PerCandidateEvaluationError,
    ScoreAlreadyRecordedError,
    ValidationError,
)
from .logger import get_logger
from .models import (
    CandidateFailure,
    CandidateProfile,
    EvidenceLine,
    JobRubric,
    RankingOutcome,
    ScoredCandidate,
    ScoreResult,
)
from .retry import is_transient_error
from .schema import validate_job_rubric, validate_profile
from .scoring.aggregator import HeuristicScorer

STAGE_EVALUATION = "evaluation"
STAGE_PERSISTENCE = "persistence"

_SKIPPED = object()


def order_scored(scored: Iterable[ScoredCandidate]) -> List[ScoredCandidate]:
    """
    Sort by total score descending; equal totals keep submission order.

    Items without a submission_seq fall back to their position in the input.
    """
    keyed = []
    for position, item in enumerate(scored):
        seq = item.submission_seq if item.submission_seq is not None else position
        keyed.append(((-item.total_score, seq), item))
    keyed.sort(key=lambda pair: pair[0])
    return [item for _, item in keyed]


def check_result(result: ScoreResult, rubric: JobRubric) -> ScoreResult:
    """
    Enforce the scorer contract on one result.

    Integer scores for exactly the scheme dimensions, each within its weight,
    summing to the total, and a non-empty explanation with leaks redacted.
    """
    extra = set(result.dimension_scores) - set(rubric.dimensions)
    if extra:
        raise ValueError(f"Scores for dimensions outside the scheme: {sorted(extra)}")
    for dimension in rubric.dimensions:
        value = result.dimension_scores.get(dimension)
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"Score for '{dimension}' missing or not an integer")
        if not 0 <= value <= rubric.weight(dimension):
            raise ValueError(f"Score for '{dimension}' out of bounds")
    if result.total_score != sum(result.dimension_scores[d] for d in rubric.dimensions):
        raise ValueError("Total score does not equal the sum of dimension scores")
    if not result.explanation:
        raise ValueError("Explanation is empty")
    if any(find_leaks(line.text) for line in result.explanation):
        return ScoreResult(
            dimension_scores=result.dimension_scores,
            total_score=result.total_score,
            explanation=tuple(
                EvidenceLine(line.dimension, line.status, redact_text(line.text)) for line in result.explanation
            ),
        )
    return result


class RankingEngine:
    """Score and order a batch of candidates for one job."""

    def __init__(self, scorer=None, repository=None, max_workers: int = 1, logger=None):
        self.scorer = scorer or HeuristicScorer()
        self.repository = repository
        self.max_workers = max(1, int(max_workers))
        self.logger = logger or get_logger()

    def rank(
        self,
        job_key: str,
        rubric: JobRubric,
        pending: Sequence[CandidateProfile],
        *,
        scored: Sequence[ScoredCandidate] = (),
        cancel_event: Optional[threading.Event] = None,
    ) -> RankingOutcome:
        """
        Score the unscored candidates in `pending` and return the full ordering.

        Args:
            job_key: Job the batch belongs to
            rubric: Requirements and weight scheme for the job
            pending: Candidate profiles awaiting a score, in submission order
            scored: Previously scored candidates to include in the ordering
            cancel_event: When set, no further candidates are started

        Returns:
            RankingOutcome with ordered entries and per-candidate failures

        Raises:
            ValidationError: Rubric or any profile malformed (nothing is scored)
            EmptyBatchError: No unscored candidate in the batch
        """
        errors = validate_job_rubric(rubric)
        for profile in pending:
            errors.extend(validate_profile(profile))
        if errors:
            raise ValidationError(errors)

        already = {s.anonymized_id for s in scored}
        batch: List[Tuple[int, CandidateProfile]] = []
        for position, profile in enumerate(pending):
            if profile.anonymized_id in already:
                continue
            already.add(profile.anonymized_id)
            batch.append((len(scored) + position, profile))

        if not batch:
            raise EmptyBatchError(f"No unscored candidates to rank for job '{job_key}'")

        self.logger.info("Ranking started", job_key=job_key, batch=len(batch), scheme=rubric.scheme)

        outcome = RankingOutcome(job_key=job_key)
        fresh: List[ScoredCandidate] = []

        for position, profile, result in self._evaluate(job_key, rubric, batch, cancel_event):
            if result is _SKIPPED:
                outcome.skipped.append(profile.anonymized_id)
                continue
            if isinstance(result, CandidateFailure):
                outcome.failures.append(result)
                continue
            if self._persist(job_key, profile, result, outcome):
                seq = profile.submission_seq if profile.submission_seq is not None else position
                fresh.append(ScoredCandidate(
                    anonymized_id=profile.anonymized_id,
                    submission_seq=seq,
                    total_score=result.total_score,
                    explanation=result.explanation_text,
                    dimension_scores=dict(result.dimension_scores),
                ))

        outcome.cancelled = bool(outcome.skipped)

        if self.repository is not None:
            full = self.repository.load_scored(job_key)
        else:
            full = _with_positions(scored) + fresh
        outcome.entries = [s.to_entry() for s in order_scored(full)]

        position_of = {p.anonymized_id: pos for pos, p in batch}
        outcome.failures.sort(key=lambda f: position_of.get(f.anonymized_id, 0))
        outcome.scored_now.sort(key=lambda cid: position_of.get(cid, 0))
        outcome.skipped.sort(key=lambda cid: position_of.get(cid, 0))

        self.logger.info(
            "Ranking finished",
            job_key=job_key,
            scored=len(outcome.scored_now),
            failed=len(outcome.failures),
            skipped=len(outcome.skipped),
            ranked=len(outcome.entries),
        )
        return outcome

    def rank_job(self, job_key: str, *, cancel_event: Optional[threading.Event] = None) -> RankingOutcome:
        """
        Repository-backed ranking: load the job and its unscored candidates, score, persist, order.

        Raises:
            NotFoundError: Job missing or inactive
            EmptyBatchError: Job has no candidates at all
        """
        if self.repository is None:
            raise ValidationError(["rank_job needs a repository"])

        rubric = self.repository.load_job(job_key)
        pending = self.repository.load_pending_unscored(job_key)
        if pending:
            return self.rank(job_key, rubric, pending, cancel_event=cancel_event)

        scored = self.repository.load_scored(job_key)
        if not scored:
            raise EmptyBatchError(f"Job '{job_key}' has no candidates to rank")

        # Everything already scored: same ordering, empty delta
        self.logger.info("Nothing new to score", job_key=job_key, ranked=len(scored))
        return RankingOutcome(job_key=job_key, entries=[s.to_entry() for s in order_scored(scored)])

    def retry_failed_saves(self, outcome: RankingOutcome) -> List[CandidateFailure]:
        """Re-attempt persistence failures using the kept results. Returns those still failing."""
        remaining: List[CandidateFailure] = []
        for failure in outcome.failures:
            if failure.stage != STAGE_PERSISTENCE or failure.result is None or self.repository is None:
                remaining.append(failure)
                continue
            profile = CandidateProfile(anonymized_id=failure.anonymized_id)
            retry_outcome = RankingOutcome(job_key=outcome.job_key)
            if not self._persist(outcome.job_key, profile, failure.result, retry_outcome):
                remaining.extend(retry_outcome.failures)
            else:
                outcome.scored_now.extend(retry_outcome.scored_now)
        outcome.failures = remaining
        if self.repository is not None:
            outcome.entries = [s.to_entry() for s in order_scored(self.repository.load_scored(outcome.job_key))]
        return remaining

    # Internals

    def _score_one(self, job_key: str, rubric: JobRubric, profile: CandidateProfile):
        cid = profile.anonymized_id
        self.logger.record_scoring_attempt(job_key)
        try:
            result = check_result(self.scorer.score(profile, rubric), rubric)
        except Exception as e:
            # Isolation boundary: any scorer fault becomes this candidate's failure marker
            err = PerCandidateEvaluationError(cid, type(e).__name__)
            self.logger.record_scoring_failure(job_key, type(e).__name__)
            self.logger.warning(
                "Candidate evaluation failed",
                job_key=job_key,
                candidate=cid,
                error=type(e).__name__,
                transient=is_transient_error(e),
            )
            return CandidateFailure(
                anonymized_id=cid,
                stage=STAGE_EVALUATION,
                error_type=type(e).__name__,
                message=redact_text(f"{err}: {e}"),
            )
        self.logger.record_scoring_success(job_key)
        return result

    def _evaluate(self, job_key, rubric, batch, cancel_event):
        """Yield (position, profile, result|failure|_SKIPPED) per candidate."""
        def cancelled() -> bool:
            return cancel_event is not None and cancel_event.is_set()

        if self.max_workers == 1 or len(batch) == 1:
            for position, profile in batch:
                if cancelled():
                    yield position, profile, _SKIPPED
                    continue
                yield position, profile, self._score_one(job_key, rubric, profile)
            return

        stop = threading.Event()

        def task(profile: CandidateProfile):
            if stop.is_set() or cancelled():
                return _SKIPPED
            return self._score_one(job_key, rubric, profile)

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures: Dict = {pool.submit(task, profile): (position, profile) for position, profile in batch}
            try:
                for future in as_completed(futures):
                    position, profile = futures[future]
                    yield position, profile, future.result()
            except BaseException:
                # Interrupted or abandoned mid-batch: queued candidates never start
                stop.set()
                self.logger.warning("Ranking interrupted, dropping queued candidates", job_key=job_key)
                pool.shutdown(wait=True, cancel_futures=True)
                raise

    def _persist(self, job_key: str, profile: CandidateProfile, result: ScoreResult, outcome: RankingOutcome) -> bool:
        """Save one score. Returns True when this call's result should be ranked."""
        cid = profile.anonymized_id
        if self.repository is None:
            outcome.scored_now.append(cid)
            return True
        try:
            self.repository.save_score(
                cid,
                result.total_score,
                result.explanation_text,
                dimension_scores=result.dimension_scores,
                scorer=getattr(self.scorer, "name", None),
            )
        except ScoreAlreadyRecordedError:
            # Another writer got there first; its stored score stands
            self.logger.info("Score already recorded, keeping stored value", job_key=job_key, candidate=cid)
            return False
        except Exception as e:
            self.logger.record_save_failure(type(e).__name__)
            self.logger.error("Saving score failed", job_key=job_key, candidate=cid, error=type(e).__name__)
            outcome.failures.append(CandidateFailure(
                anonymized_id=cid,
                stage=STAGE_PERSISTENCE,
                error_type=type(e).__name__,
                message=redact_text(str(e)) or type(e).__name__,
                result=result,
            ))
            return False
        outcome.scored_now.append(cid)
        return True


def _with_positions(scored: Sequence[ScoredCandidate]) -> List[ScoredCandidate]:
    """Give previously scored items without a seq their input position."""
    out: List[ScoredCandidate] = []
    for position, item in enumerate(scored):
        if item.submission_seq is None:
            item = ScoredCandidate(
                anonymized_id=item.anonymized_id,
                submission_seq=position,
                total_score=item.total_score,
                explanation=item.explanation,
                dimension_scores=dict(item.dimension_scores),
            )
        out.append(item)
    return out