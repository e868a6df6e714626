"""
External Model Scorer.

Responsibilities:
- Ask a generative model (OpenAI-compatible chat completions API) to score
  an anonymized profile against the rubric's dimensions.
- Enforce the scorer contract on the reply: every dimension present, each
  score within its weight, explanation non-empty and free of identifying data.

Non-Responsibilities:
- No determinism guarantee; that belongs to the model provider.
- No persistence.

Invariant:
The API key never appears in a log line, exception message or result.
"""

import json
from typing import Any, Dict, List, Optional

import requests

from ..anonymize import find_leaks, redact_text
from ..errors import ExternalScorerError
from ..logger import get_logger
from ..models import CandidateProfile, EvidenceLine, EvidenceStatus, JobRubric, ScoreResult
from ..retry import CircuitBreaker, CircuitOpenError, RetryError, exponential_backoff, should_retry_http_status

SYSTEM_PROMPT = (
    "You are an AI that screens resumes fairly. The candidate is anonymized; never guess or "
    "mention names, nationalities, gender, age or contact details. Score only the listed "
    "dimensions, each as an integer between 0 and its maximum, and justify every score with "
    "short evidence lines. Reply with JSON only, shaped as: "
    '{"dimension_scores": {"<dimension>": <int>}, '
    '"explanation": [{"dimension": "<dimension>", "status": "pass" | "warn", "text": "<evidence>"}]}'
)


class RetryableStatusError(Exception):
    """HTTP status worth retrying (408, 429, 5xx)."""

    def __init__(self, status_code: int):
        self.status_code = status_code
        super().__init__(f"Retryable HTTP status {status_code}")


def build_user_prompt(profile: CandidateProfile, rubric: JobRubric) -> str:
    dimensions = {d: rubric.weight(d) for d in rubric.dimensions}
    candidate = profile.to_dict()
    candidate.pop("anonymized_id", None)
    return (
        f"Required skills: {', '.join(rubric.requirements) or '(none listed)'}\n"
        f"Dimensions and maximum points: {json.dumps(dimensions)}\n"
        f"Candidate profile: {json.dumps(candidate, sort_keys=True)}"
    )


class ExternalModelScorer:
    """Scorer backed by a remote language model."""

    name = "external"

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4",
        base_url: str = "https://api.openai.com/v1",
        timeout: int = 30,
        max_retries: int = 2,
        base_delay: float = 1.0,
        breaker: Optional[CircuitBreaker] = None,
        logger=None,
    ):
        if not api_key:
            raise ExternalScorerError("External scorer requires an API key")
        self._api_key = api_key
        self.model = model
        self.url = f"{base_url.rstrip('/')}/chat/completions"
        self.timeout = timeout
        self.breaker = breaker or CircuitBreaker(failure_threshold=3, recovery_timeout=60)
        self.logger = logger or get_logger()
        self._post = exponential_backoff(
            max_retries=max_retries,
            base_delay=base_delay,
            exceptions=(requests.exceptions.Timeout, requests.exceptions.ConnectionError, RetryableStatusError),
            on_retry=self._on_retry,
        )(self._post_once)

    def _on_retry(self, attempt: int, exc: Exception, delay: float) -> None:
        self.logger.warning("Model call failed, retrying", attempt=attempt, error=type(exc).__name__, delay=delay)

    def _post_once(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.logger.record_model_call()
        resp = requests.post(
            self.url,
            headers={"Authorization": f"Bearer {self._api_key}", "Content-Type": "application/json"},
            json=payload,
            timeout=self.timeout,
        )
        if should_retry_http_status(resp.status_code):
            raise RetryableStatusError(resp.status_code)
        if resp.status_code >= 400:
            raise ExternalScorerError(f"Model request rejected ({resp.status_code})", status_code=resp.status_code)
        return resp.json()

    def score(self, profile: CandidateProfile, rubric: JobRubric) -> ScoreResult:
        payload = {
            "model": self.model,
            "temperature": 0,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_user_prompt(profile, rubric)},
            ],
        }
        try:
            data = self.breaker.call(self._post, payload)
        except ExternalScorerError:
            raise
        except CircuitOpenError as e:
            raise ExternalScorerError(str(e)) from None
        except RetryError as e:
            cause = e.__cause__
            status = getattr(cause, "status_code", None)
            raise ExternalScorerError(
                f"Model request failed after retries: {type(cause).__name__}", status_code=status
            ) from None
        except (requests.exceptions.RequestException, ValueError) as e:
            raise ExternalScorerError(f"Model request failed: {type(e).__name__}") from None

        try:
            content = data["choices"][0]["message"]["content"]
            reply = json.loads(content)
        except (KeyError, IndexError, TypeError, ValueError):
            raise ExternalScorerError("Model reply is not valid JSON in the expected envelope") from None

        result = parse_model_reply(reply, rubric)
        self.logger.debug("Model scored candidate", candidate=profile.anonymized_id, total=result.total_score)
        return result


def parse_model_reply(reply: Any, rubric: JobRubric) -> ScoreResult:
    """Validate a model reply against the rubric and build a ScoreResult."""
    if not isinstance(reply, dict):
        raise ExternalScorerError("Model reply must be a JSON object")

    raw_scores = reply.get("dimension_scores")
    if not isinstance(raw_scores, dict):
        raise ExternalScorerError("Model reply is missing 'dimension_scores'")

    dimension_scores: Dict[str, int] = {}
    for dimension in rubric.dimensions:
        value = raw_scores.get(dimension)
        if not isinstance(value, int) or isinstance(value, bool):
            raise ExternalScorerError(f"Model reply has no integer score for '{dimension}'")
        if not 0 <= value <= rubric.weight(dimension):
            raise ExternalScorerError(
                f"Model score for '{dimension}' is outside [0, {rubric.weight(dimension)}]"
            )
        dimension_scores[dimension] = value

    lines: List[EvidenceLine] = []
    for item in reply.get("explanation") or []:
        if not isinstance(item, dict):
            continue
        dimension = item.get("dimension")
        text = item.get("text")
        if dimension not in dimension_scores or not isinstance(text, str) or not text.strip():
            continue
        status = EvidenceStatus.WARN if item.get("status") == "warn" else EvidenceStatus.PASS
        if find_leaks(text):
            text = redact_text(text)
        lines.append(EvidenceLine(dimension, status, " ".join(text.split())))

    if not lines:
        raise ExternalScorerError("Model reply has an empty explanation")

    order = {d: i for i, d in enumerate(rubric.dimensions)}
    lines.sort(key=lambda line: order[line.dimension])

    return ScoreResult(
        dimension_scores=dimension_scores,
        total_score=sum(dimension_scores.values()),
        explanation=tuple(lines),
    )
