"""
Tests for logger.py - structured logging and ranking metrics.
"""

import threading

import pytest

from fairhire.logger import StructuredLogger, get_logger, reset_logger


@pytest.fixture
def logger(tmp_path):
    return StructuredLogger(name="fairhire_test", log_dir=tmp_path, enable_console=False)


class TestStructuredLogger:
    """Test logging output."""

    def test_fresh_metrics(self, logger):
        """A new logger starts with zeroed counters."""
        metrics = logger.get_metrics()
        assert metrics["candidates_attempted"] == 0
        assert metrics["model_calls"] == 0
        assert metrics["errors_by_type"] == {}

    def test_context_written_to_file(self, logger, tmp_path):
        """Context keys are serialized into the daily log file."""
        logger.info("Ranking started", job_key="backend-1", batch=3)

        log_files = list(tmp_path.glob("fairhire_test_*.log"))
        assert len(log_files) == 1
        content = log_files[0].read_text()
        assert "Ranking started" in content
        assert '"job_key": "backend-1"' in content

    def test_all_levels(self, logger):
        """Every level method is callable."""
        logger.debug("d")
        logger.info("i")
        logger.warning("w")
        logger.error("e")
        logger.critical("c")

    def test_does_not_propagate(self, logger):
        """Records stay on this logger's handlers."""
        assert logger.logger.propagate is False


class TestMetrics:
    """Test scoring counters."""

    def test_attempts_successes_failures(self, logger):
        """Counters and per-job rates follow the recorded events."""
        for _ in range(3):
            logger.record_scoring_attempt("backend-1")
        logger.record_scoring_success("backend-1")
        logger.record_scoring_success("backend-1")
        logger.record_scoring_failure("backend-1", "ExternalScorerError")
        logger.record_model_call()

        metrics = logger.get_metrics()
        assert metrics["candidates_attempted"] == 3
        assert metrics["candidates_scored"] == 2
        assert metrics["candidates_failed"] == 1
        assert metrics["model_calls"] == 1
        assert metrics["errors_by_type"] == {"ExternalScorerError": 1}
        assert metrics["job_success_rate"]["backend-1"]["success_rate"] == pytest.approx(0.667, rel=0.01)

    def test_save_failures(self, logger):
        """Failed saves are counted separately from evaluation failures."""
        logger.record_save_failure("PersistenceError")
        metrics = logger.get_metrics()
        assert metrics["saves_failed"] == 1
        assert metrics["candidates_failed"] == 0
        assert metrics["errors_by_type"]["PersistenceError"] == 1

    def test_get_metrics_is_a_snapshot(self, logger):
        """Mutating the returned dict leaves the live counters alone."""
        logger.record_scoring_attempt("backend-1")
        snapshot = logger.get_metrics()
        snapshot["job_success_rate"]["backend-1"]["attempts"] = 99

        assert "success_rate" not in logger.metrics["job_success_rate"]["backend-1"]
        assert logger.get_metrics()["job_success_rate"]["backend-1"]["attempts"] == 1

    def test_counts_from_many_threads(self, logger):
        """Concurrent workers lose no counts."""
        def work():
            for _ in range(500):
                logger.record_scoring_attempt("backend-1")
                logger.record_scoring_failure("backend-1", "RuntimeError")

        threads = [threading.Thread(target=work) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        metrics = logger.get_metrics()
        assert metrics["candidates_attempted"] == 4000
        assert metrics["candidates_failed"] == 4000
        assert metrics["errors_by_type"]["RuntimeError"] == 4000
        assert metrics["job_success_rate"]["backend-1"]["attempts"] == 4000

    def test_summary_logged(self, logger, tmp_path):
        """log_metrics_summary writes the session totals."""
        logger.record_scoring_attempt("backend-1")
        logger.record_scoring_success("backend-1")
        logger.log_metrics_summary()

        content = next(tmp_path.glob("*.log")).read_text()
        assert "Candidates scored: 1/1" in content


class TestGlobalLogger:
    """Test the module-level singleton."""

    def test_singleton(self, tmp_path):
        """get_logger returns the same instance until reset."""
        reset_logger()
        first = get_logger(log_dir=tmp_path, enable_console=False)
        assert get_logger() is first

    def test_reset_gives_fresh_metrics(self, tmp_path):
        """reset_logger drops the old instance and its counters."""
        reset_logger()
        first = get_logger(log_dir=tmp_path, enable_console=False)
        first.record_model_call()

        reset_logger()
        second = get_logger(log_dir=tmp_path, enable_console=False)
        assert second is not first
        assert second.metrics["model_calls"] == 0
