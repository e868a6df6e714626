"""
Structured logging for FairHire.

Console and daily-file output plus counters describing ranking runs.
Only anonymized ids, job keys, counts and error type names are ever
passed as context; profile text and identity fields stay out of logs.
"""

import copy
import json
import logging
import sys
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional


class StructuredLogger:
    """
    Logger with console/file handlers and scoring metrics.
    """

    def __init__(
        self,
        name: str = "fairhire",
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        enable_file: bool = True,
        enable_console: bool = True,
    ):
        """
        Initialize the structured logger.

        Args:
            name: Logger name
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_dir: Directory for log files (default: logs/)
            enable_file: Write logs to file
            enable_console: Output logs to console
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, level.upper()))
        self.logger.handlers.clear()
        self.logger.propagate = False

        self._metrics_lock = threading.Lock()
        self.metrics = self._empty_metrics()

        if enable_console:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(getattr(logging, level.upper()))
            console_handler.setFormatter(logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            ))
            self.logger.addHandler(console_handler)

        if enable_file:
            if log_dir is None:
                log_dir = Path("logs")
            log_dir.mkdir(parents=True, exist_ok=True)

            log_file = log_dir / f"{name}_{datetime.now().strftime('%Y%m%d')}.log"
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)  # Always log everything to file
            file_handler.setFormatter(logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            ))
            self.logger.addHandler(file_handler)

    @staticmethod
    def _empty_metrics() -> dict:
        return {
            "model_calls": 0,
            "candidates_attempted": 0,
            "candidates_scored": 0,
            "candidates_failed": 0,
            "saves_failed": 0,
            "errors_by_type": {},
            "job_success_rate": {},
        }

    def debug(self, message: str, **kwargs):
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs):
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs):
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs):
        self._log(logging.ERROR, message, kwargs)

    def critical(self, message: str, **kwargs):
        self._log(logging.CRITICAL, message, kwargs)

    def _log(self, level: int, message: str, context: dict):
        if context:
            message = f"{message} | Context: {json.dumps(context, sort_keys=True, default=str)}"
        self.logger.log(level, message)

    # Metric tracking (called from scoring worker threads)

    def record_model_call(self):
        with self._metrics_lock:
            self.metrics["model_calls"] += 1

    def record_scoring_attempt(self, job_key: str):
        with self._metrics_lock:
            self.metrics["candidates_attempted"] += 1
            stats = self.metrics["job_success_rate"].setdefault(job_key, {"attempts": 0, "successes": 0})
            stats["attempts"] += 1

    def record_scoring_success(self, job_key: str):
        with self._metrics_lock:
            self.metrics["candidates_scored"] += 1
            if job_key in self.metrics["job_success_rate"]:
                self.metrics["job_success_rate"][job_key]["successes"] += 1

    def record_scoring_failure(self, job_key: str, error_type: str):
        with self._metrics_lock:
            self.metrics["candidates_failed"] += 1
            self._count_error(error_type)

    def record_save_failure(self, error_type: str):
        with self._metrics_lock:
            self.metrics["saves_failed"] += 1
            self._count_error(error_type)

    def _count_error(self, error_type: str):
        # Caller holds _metrics_lock
        errors = self.metrics["errors_by_type"]
        errors[error_type] = errors.get(error_type, 0) + 1

    def get_metrics(self) -> dict:
        """Return a snapshot of the metrics with per-job success rates filled in."""
        with self._metrics_lock:
            metrics_copy = copy.deepcopy(self.metrics)
        for stats in metrics_copy["job_success_rate"].values():
            if stats["attempts"] > 0:
                stats["success_rate"] = round(stats["successes"] / stats["attempts"], 3)
        return metrics_copy

    def log_metrics_summary(self):
        metrics = self.get_metrics()

        attempted = metrics["candidates_attempted"]
        scored = metrics["candidates_scored"]
        overall_rate = round(scored / attempted * 100, 1) if attempted else 0

        self.info("=== Ranking Session Metrics ===")
        self.info(f"Candidates scored: {scored}/{attempted} ({overall_rate}% success)")
        if metrics["model_calls"]:
            self.info(f"Model calls: {metrics['model_calls']}")
        if metrics["saves_failed"]:
            self.info(f"Failed saves: {metrics['saves_failed']}")

        if metrics["job_success_rate"]:
            self.info("Job Success Rates:")
            for job_key, stats in metrics["job_success_rate"].items():
                rate = stats.get("success_rate", 0) * 100
                self.info(f"  {job_key}: {stats['successes']}/{stats['attempts']} ({rate:.1f}%)")

        if metrics["errors_by_type"]:
            self.info("Error Types:")
            for error_type, count in metrics["errors_by_type"].items():
                self.info(f"  {error_type}: {count}")


# Global logger instance
_global_logger: Optional[StructuredLogger] = None


def get_logger(
    name: str = "fairhire",
    level: str = "INFO",
    **kwargs
) -> StructuredLogger:
    """
    Get or create the global logger instance.

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        **kwargs: Additional arguments passed to StructuredLogger

    Returns:
        StructuredLogger instance
    """
    global _global_logger

    if _global_logger is None:
        _global_logger = StructuredLogger(name=name, level=level, **kwargs)

    return _global_logger


def reset_logger():
    """Reset the global logger (useful for testing)."""
    global _global_logger
    _global_logger = None
