"""
Tests for scoring/external.py - model-backed scorer with the HTTP layer mocked.
"""

import json
from unittest.mock import MagicMock, patch

import pytest
import requests

from fairhire.config import Settings
from fairhire.errors import ExternalScorerError
from fairhire.models import EvidenceStatus
from fairhire.retry import CircuitBreaker
from fairhire.scoring import ExternalModelScorer, HeuristicScorer, build_scorer
from fairhire.scoring.external import build_user_prompt, parse_model_reply

API_KEY = "sk-test-do-not-log"


def _response(status=200, reply=None, body=None):
    resp = MagicMock()
    resp.status_code = status
    if body is None:
        body = {"choices": [{"message": {"content": json.dumps(reply)}}]}
    resp.json.return_value = body
    return resp


def _legacy_reply(**overrides):
    reply = {
        "dimension_scores": {"experience": 20, "skills": 16, "education": 10, "achievements": 8},
        "explanation": [
            {"dimension": "skills", "status": "pass", "text": "matched python and sql"},
            {"dimension": "experience", "status": "pass", "text": "5 years"},
            {"dimension": "achievements", "status": "warn", "text": "only two achievements"},
        ],
    }
    reply.update(overrides)
    return reply


@pytest.fixture
def scorer():
    return ExternalModelScorer(api_key=API_KEY, base_delay=0, max_retries=2)


class TestScore:
    """Test a full scoring call."""

    def test_success(self, scorer, strong_profile, legacy_rubric):
        """A valid reply becomes a ScoreResult in scheme order."""
        with patch("fairhire.scoring.external.requests.post", return_value=_response(reply=_legacy_reply())) as post:
            result = scorer.score(strong_profile, legacy_rubric)

        assert result.total_score == 54
        assert [l.dimension for l in result.explanation] == ["experience", "skills", "achievements"]
        assert result.explanation[2].status == EvidenceStatus.WARN
        assert post.call_count == 1

        kwargs = post.call_args.kwargs
        assert kwargs["headers"]["Authorization"] == f"Bearer {API_KEY}"
        assert kwargs["json"]["model"] == "gpt-4"
        assert post.call_args.args[0].endswith("/chat/completions")

    def test_prompt_has_no_anonymized_id(self, strong_profile, legacy_rubric):
        """The id is not sent to the provider."""
        prompt = build_user_prompt(strong_profile, legacy_rubric)
        assert "cand_strong" not in prompt
        assert "python" in prompt

    def test_retries_on_503_then_succeeds(self, scorer, strong_profile, legacy_rubric):
        """Retryable statuses are retried."""
        responses = [_response(status=503), _response(reply=_legacy_reply())]
        with patch("fairhire.scoring.external.requests.post", side_effect=responses) as post:
            result = scorer.score(strong_profile, legacy_rubric)
        assert result.total_score == 54
        assert post.call_count == 2

    def test_timeouts_exhaust_retries(self, scorer, strong_profile, legacy_rubric):
        """Persistent timeouts surface as ExternalScorerError without the key."""
        with patch("fairhire.scoring.external.requests.post", side_effect=requests.exceptions.Timeout("slow")) as post:
            with pytest.raises(ExternalScorerError) as exc:
                scorer.score(strong_profile, legacy_rubric)
        assert post.call_count == 3
        assert API_KEY not in str(exc.value)
        assert "Timeout" in str(exc.value)

    def test_client_error_not_retried(self, scorer, strong_profile, legacy_rubric):
        """A 401 fails at once with its status code."""
        with patch("fairhire.scoring.external.requests.post", return_value=_response(status=401, body={})) as post:
            with pytest.raises(ExternalScorerError) as exc:
                scorer.score(strong_profile, legacy_rubric)
        assert post.call_count == 1
        assert exc.value.status_code == 401

    def test_circuit_opens(self, strong_profile, legacy_rubric):
        """Once the breaker opens, no request is made."""
        scorer = ExternalModelScorer(
            api_key=API_KEY, base_delay=0, max_retries=0,
            breaker=CircuitBreaker(failure_threshold=1, recovery_timeout=60),
        )
        with patch("fairhire.scoring.external.requests.post", side_effect=requests.exceptions.ConnectionError()) as post:
            with pytest.raises(ExternalScorerError):
                scorer.score(strong_profile, legacy_rubric)
            with pytest.raises(ExternalScorerError, match="OPEN"):
                scorer.score(strong_profile, legacy_rubric)
        assert post.call_count == 1

    def test_non_json_content(self, scorer, strong_profile, legacy_rubric):
        """Content that is not JSON is a contract failure."""
        body = {"choices": [{"message": {"content": "I think they are great"}}]}
        with patch("fairhire.scoring.external.requests.post", return_value=_response(body=body)):
            with pytest.raises(ExternalScorerError):
                scorer.score(strong_profile, legacy_rubric)

    def test_model_calls_counted(self, scorer, strong_profile, legacy_rubric, isolated_logger):
        """Each HTTP attempt is recorded as a model call."""
        responses = [_response(status=429), _response(reply=_legacy_reply())]
        with patch("fairhire.scoring.external.requests.post", side_effect=responses):
            scorer.score(strong_profile, legacy_rubric)
        assert isolated_logger.get_metrics()["model_calls"] == 2


class TestParseModelReply:
    """Test reply contract enforcement."""

    def test_missing_dimension(self, legacy_rubric):
        """Every scheme dimension must be scored."""
        reply = _legacy_reply(dimension_scores={"experience": 20, "skills": 16, "education": 10})
        with pytest.raises(ExternalScorerError, match="achievements"):
            parse_model_reply(reply, legacy_rubric)

    def test_out_of_bounds(self, legacy_rubric):
        """A score above the weight is rejected, not clamped."""
        reply = _legacy_reply(dimension_scores={"experience": 30, "skills": 16, "education": 10, "achievements": 8})
        with pytest.raises(ExternalScorerError, match="outside"):
            parse_model_reply(reply, legacy_rubric)

    def test_non_integer(self, legacy_rubric):
        """Fractional scores are rejected."""
        reply = _legacy_reply(dimension_scores={"experience": 20.5, "skills": 16, "education": 10, "achievements": 8})
        with pytest.raises(ExternalScorerError):
            parse_model_reply(reply, legacy_rubric)

    def test_empty_explanation(self, legacy_rubric):
        """An explanation is required."""
        with pytest.raises(ExternalScorerError, match="empty explanation"):
            parse_model_reply(_legacy_reply(explanation=[]), legacy_rubric)

    def test_leaks_redacted(self, legacy_rubric):
        """Contact data invented by the model is scrubbed."""
        reply = _legacy_reply(explanation=[
            {"dimension": "skills", "status": "pass", "text": "ask jane@example.com about sql"},
        ])
        result = parse_model_reply(reply, legacy_rubric)
        assert "jane@example.com" not in result.explanation_text
        assert "[REDACTED]" in result.explanation_text

    def test_unknown_dimension_lines_dropped(self, legacy_rubric):
        """Evidence for dimensions outside the scheme is ignored."""
        reply = _legacy_reply(explanation=[
            {"dimension": "cultural_fit", "status": "pass", "text": "nice person"},
            {"dimension": "skills", "status": "pass", "text": "sql"},
        ])
        result = parse_model_reply(reply, legacy_rubric)
        assert [l.dimension for l in result.explanation] == ["skills"]


class TestBuildScorer:
    """Test scorer selection from settings."""

    def _settings(self, **overrides):
        values = dict(
            db_path="data/fairhire.db",
            scoring_scheme="legacy",
            scorer="heuristic",
            max_workers=1,
            llm_api_key=None,
            llm_model="gpt-4",
            llm_base_url="https://api.openai.com/v1",
            llm_timeout=30,
            log_level="INFO",
        )
        values.update(overrides)
        return Settings(**values)

    def test_heuristic_default(self):
        """The heuristic scorer is the default."""
        assert isinstance(build_scorer(self._settings()), HeuristicScorer)

    def test_external_with_key(self):
        """External scorer picks up model and URL settings."""
        scorer = build_scorer(self._settings(scorer="external", llm_api_key=API_KEY, llm_model="gpt-4o-mini"))
        assert isinstance(scorer, ExternalModelScorer)
        assert scorer.model == "gpt-4o-mini"

    def test_external_without_key(self):
        """External scorer without a key is a configuration error."""
        with pytest.raises(ExternalScorerError):
            build_scorer(self._settings(scorer="external"))
