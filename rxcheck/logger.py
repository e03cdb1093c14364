"""
Structured logging system for rxcheck.

Provides centralized logging with console and file outputs, plus
session metrics for cache effectiveness and upstream health.
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
    Tracks cache hit rates and external service success rates.
    """

    def __init__(
        self,
        name: str = "rxcheck",
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
        self._lock = threading.Lock()

        # Metrics tracking
        self.metrics = {
            "api_calls": 0,
            "cache_lookups": {},
            "external_calls": {},
            "errors_by_type": {},
        }

        # Console handler
        if enable_console:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setLevel(getattr(logging, level.upper()))
            console_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            console_handler.setFormatter(console_formatter)
            self.logger.addHandler(console_handler)

        # File handler
        if enable_file:
            if log_dir is None:
                log_dir = Path("logs")
            log_dir.mkdir(parents=True, exist_ok=True)

            log_file = log_dir / f"rxcheck_{datetime.now().strftime('%Y%m%d')}.log"
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)  # Always log everything to file
            file_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(threadName)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            file_handler.setFormatter(file_formatter)
            self.logger.addHandler(file_handler)

    def set_level(self, level: str):
        """Change the log threshold after startup configuration is read."""
        numeric = getattr(logging, level.upper())
        self.logger.setLevel(numeric)
        for handler in self.logger.handlers:
            if not isinstance(handler, logging.FileHandler):
                handler.setLevel(numeric)

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

    def record_api_call(self):
        """Increment API call counter."""
        with self._lock:
            self.metrics["api_calls"] += 1

    def record_cache_lookup(self, resource: str, hit: bool):
        """Record a cache lookup for a resource ('drug' or 'interaction')."""
        with self._lock:
            stats = self.metrics["cache_lookups"].setdefault(
                resource, {"hits": 0, "misses": 0}
            )
            stats["hits" if hit else "misses"] += 1

    def record_external_attempt(self, service: str):
        """Record a call to an upstream service."""
        with self._lock:
            self.metrics["api_calls"] += 1
            stats = self.metrics["external_calls"].setdefault(
                service, {"attempts": 0, "successes": 0}
            )
            stats["attempts"] += 1

    def record_external_success(self, service: str):
        """Record a successful upstream call."""
        with self._lock:
            if service in self.metrics["external_calls"]:
                self.metrics["external_calls"][service]["successes"] += 1

    def record_external_failure(self, service: str, error_type: str):
        """Record an upstream failure by error type."""
        with self._lock:
            self.metrics["external_calls"].setdefault(
                service, {"attempts": 0, "successes": 0}
            )
            errors = self.metrics["errors_by_type"]
            errors[error_type] = errors.get(error_type, 0) + 1

    def get_metrics(self) -> dict:
        """Return current metrics."""
        with self._lock:
            metrics_copy = json.loads(json.dumps(self.metrics))

        for stats in metrics_copy["cache_lookups"].values():
            total = stats["hits"] + stats["misses"]
            if total > 0:
                stats["hit_rate"] = round(stats["hits"] / total, 3)

        for stats in metrics_copy["external_calls"].values():
            if stats["attempts"] > 0:
                stats["success_rate"] = round(
                    stats["successes"] / stats["attempts"], 3
                )

        return metrics_copy

    def log_metrics_summary(self):
        """Log a summary of current metrics."""
        metrics = self.get_metrics()

        self.info("=== rxcheck Session Metrics ===")
        self.info(f"API Calls: {metrics['api_calls']}")

        if metrics["cache_lookups"]:
            self.info("Cache Hit Rates:")
            for resource, stats in metrics["cache_lookups"].items():
                rate = stats.get("hit_rate", 0) * 100
                self.info(f"  {resource}: {stats['hits']}/{stats['hits'] + stats['misses']} ({rate:.1f}%)")

        if metrics["external_calls"]:
            self.info("External Service Success Rates:")
            for service, stats in metrics["external_calls"].items():
                rate = stats.get("success_rate", 0) * 100
                self.info(f"  {service}: {stats['successes']}/{stats['attempts']} ({rate:.1f}%)")

        if metrics["errors_by_type"]:
            self.info("Error Types:")
            for error_type, count in metrics["errors_by_type"].items():
                self.info(f"  {error_type}: {count}")


# Global logger instance
_global_logger: Optional[StructuredLogger] = None


def get_logger(
    name: str = "rxcheck",
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
