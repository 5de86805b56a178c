"""
Structured logging system for jobrecs.

Provides centralized logging with console and file outputs, log levels,
and metrics tracking for monitoring document store queries and
recommendation passes.
"""

import logging
import sys
import threading
from pathlib import Path
from typing import Optional
from datetime import datetime
import json


class StructuredLogger:
    """
    Centralized logger with support for console and file outputs.
    Tracks query and pass metrics for the recommendation pipeline.
    """

    def __init__(
        self,
        name: str = "jobrecs",
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
        self.logger.handlers.clear()  # Remove existing handlers

        # record_* runs on query fan-out threads
        self._metrics_lock = threading.Lock()
        self.metrics = {
            "queries_attempted": 0,
            "queries_successful": 0,
            "queries_failed": 0,
            "passes_started": 0,
            "passes_committed": 0,
            "passes_discarded": 0,
            "errors_by_type": {},
            "query_success_rate": {},
        }

        if enable_console:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(getattr(logging, level.upper()))
            console_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            console_handler.setFormatter(console_formatter)
            self.logger.addHandler(console_handler)

        if enable_file:
            if log_dir is None:
                log_dir = Path("logs")
            log_dir.mkdir(parents=True, exist_ok=True)

            log_file = log_dir / f"jobrecs_{datetime.now().strftime('%Y%m%d')}.log"
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)  # Always log everything to file
            file_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            file_handler.setFormatter(file_formatter)
            self.logger.addHandler(file_handler)

    def debug(self, message: str, **kwargs):
        """Log debug message with optional context."""
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs):
        """Log info message with optional context."""
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message with optional context."""
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs):
        """Log error message with optional context."""
        self._log(logging.ERROR, message, kwargs)

    def critical(self, message: str, **kwargs):
        """Log critical message with optional context."""
        self._log(logging.CRITICAL, message, kwargs)

    def _log(self, level: int, message: str, context: dict):
        """Internal logging method with context."""
        if context:
            message = f"{message} | Context: {json.dumps(context, default=str)}"
        self.logger.log(level, message)

    # Metric tracking methods

    def record_query_attempt(self, query: str):
        """Record a document store query for a named gated query."""
        with self._metrics_lock:
            self.metrics["queries_attempted"] += 1
            stats = self.metrics["query_success_rate"].setdefault(
                query, {"attempts": 0, "successes": 0}
            )
            stats["attempts"] += 1

    def record_query_success(self, query: str):
        """Record successful query."""
        with self._metrics_lock:
            self.metrics["queries_successful"] += 1
            if query in self.metrics["query_success_rate"]:
                self.metrics["query_success_rate"][query]["successes"] += 1

    def record_query_failure(self, query: str, error_type: str):
        """Record query failure."""
        with self._metrics_lock:
            self.metrics["queries_failed"] += 1
            errors = self.metrics["errors_by_type"]
            errors[error_type] = errors.get(error_type, 0) + 1

    def record_pass_started(self):
        """Increment started pass counter."""
        self._increment("passes_started")

    def record_pass_committed(self):
        """Increment committed pass counter."""
        self._increment("passes_committed")

    def record_pass_discarded(self):
        """Increment counter of passes superseded before commit."""
        self._increment("passes_discarded")

    def _increment(self, key: str):
        with self._metrics_lock:
            self.metrics[key] += 1

    def get_metrics(self) -> dict:
        """Return a snapshot of current metrics."""
        with self._metrics_lock:
            metrics_copy = self.metrics.copy()
            metrics_copy["errors_by_type"] = dict(self.metrics["errors_by_type"])
            metrics_copy["query_success_rate"] = {
                query: dict(stats)
                for query, stats in self.metrics["query_success_rate"].items()
            }
        for stats in metrics_copy["query_success_rate"].values():
            if stats["attempts"] > 0:
                stats["success_rate"] = round(
                    stats["successes"] / stats["attempts"], 3
                )

        return metrics_copy

    def log_metrics_summary(self):
        """Log a summary of current metrics."""
        metrics = self.get_metrics()

        total_attempts = metrics["queries_attempted"]
        total_successes = metrics["queries_successful"]
        overall_rate = 0
        if total_attempts > 0:
            overall_rate = round(total_successes / total_attempts * 100, 1)

        self.info("=== Recommendation Session Metrics ===")
        self.info(
            f"Passes: {metrics['passes_committed']} committed, "
            f"{metrics['passes_discarded']} discarded, "
            f"{metrics['passes_started']} started"
        )
        self.info(f"Queries: {total_successes}/{total_attempts} ({overall_rate}% success)")

        if metrics["query_success_rate"]:
            self.info("Query Success Rates:")
            for query, stats in metrics["query_success_rate"].items():
                rate = stats.get("success_rate", 0) * 100
                self.info(f"  {query}: {stats['successes']}/{stats['attempts']} ({rate:.1f}%)")

        if metrics["errors_by_type"]:
            self.info("Error Types:")
            for error_type, count in metrics["errors_by_type"].items():
                self.info(f"  {error_type}: {count}")


# Global logger instance
_global_logger: Optional[StructuredLogger] = None


def get_logger(
    name: str = "jobrecs",
    level: Optional[str] = None,
    **kwargs
) -> StructuredLogger:
    """
    Get or create the global logger instance.

    Defaults for level, log directory and file output come from
    ``jobrecs.config.load_settings`` unless passed explicitly.

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        **kwargs: Additional arguments passed to StructuredLogger

    Returns:
        StructuredLogger instance
    """
    global _global_logger

    if _global_logger is None:
        from .config import load_settings

        settings = load_settings()
        kwargs.setdefault("log_dir", settings.log_dir)
        kwargs.setdefault("enable_file", settings.log_to_file)
        _global_logger = StructuredLogger(
            name=name, level=level or settings.log_level, **kwargs
        )

    return _global_logger


def reset_logger():
    """Reset the global logger (useful for testing)."""
    global _global_logger
    _global_logger = None
