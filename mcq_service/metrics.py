"""In-process counters for the model fallback engine."""

import threading
from collections import defaultdict
from typing import Any, Dict, Optional


class FallbackMetrics:
    """Tracks attempts, retries and failovers across fallback calls."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.total_calls = 0
        self.successful_calls = 0
        self.exhausted_calls = 0
        self.total_attempts = 0
        self.total_retries = 0
        self.failovers = 0
        self.attempts_by_model: Dict[str, int] = defaultdict(int)
        self.successes_by_model: Dict[str, int] = defaultdict(int)
        self.errors_by_category: Dict[str, int] = defaultdict(int)

    def record_attempt(self, model: str) -> None:
        with self._lock:
            self.total_attempts += 1
            self.attempts_by_model[model] += 1

    def record_retry(self, model: str, category: str) -> None:
        """Record a transient failure that will be retried on the same model."""
        with self._lock:
            self.total_retries += 1
            self.errors_by_category[category] += 1

    def record_failover(self, model: str, category: Optional[str]) -> None:
        """Record giving up on a model and moving to the next candidate."""
        with self._lock:
            self.failovers += 1
            if category is not None:
                self.errors_by_category[category] += 1

    def record_success(self, model: str) -> None:
        with self._lock:
            self.total_calls += 1
            self.successful_calls += 1
            self.successes_by_model[model] += 1

    def record_exhausted(self) -> None:
        """Record a call in which every candidate model failed."""
        with self._lock:
            self.total_calls += 1
            self.exhausted_calls += 1

    def get_summary(self) -> Dict[str, Any]:
        """Return a JSON-ready snapshot of the counters."""
        with self._lock:
            success_rate = (
                self.successful_calls / self.total_calls if self.total_calls else 0.0
            )
            return {
                "total_calls": self.total_calls,
                "successful_calls": self.successful_calls,
                "exhausted_calls": self.exhausted_calls,
                "success_rate": success_rate,
                "total_attempts": self.total_attempts,
                "total_retries": self.total_retries,
                "failovers": self.failovers,
                "attempts_by_model": dict(self.attempts_by_model),
                "successes_by_model": dict(self.successes_by_model),
                "errors_by_category": dict(self.errors_by_category),
            }


_fallback_metrics: Optional[FallbackMetrics] = None
_metrics_lock = threading.Lock()


def get_fallback_metrics() -> FallbackMetrics:
    """Get the process-wide fallback metrics instance."""
    global _fallback_metrics
    with _metrics_lock:
        if _fallback_metrics is None:
            _fallback_metrics = FallbackMetrics()
        return _fallback_metrics


def reset_fallback_metrics() -> None:
    """Replace the process-wide metrics with a fresh instance."""
    global _fallback_metrics
    with _metrics_lock:
        _fallback_metrics = FallbackMetrics()
