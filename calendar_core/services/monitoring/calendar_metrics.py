"""In-process counters for calendar provider calls.

Failures that the core deliberately absorbs (a free/busy lookup that falls
back to "no conflicts") still have to be visible to operators; every such
event is logged at WARNING and counted here.

Usage
-----
>>> from calendar_core.services.monitoring.calendar_metrics import metrics
>>> metrics.record_failure("google", "get_free_busy", error_type="ApiError")
>>> metrics.count("google", "get_free_busy", "failure")
1
"""
from __future__ import annotations

import logging
import threading
from collections import Counter
from typing import Dict, Tuple

logger = logging.getLogger(__name__)


class CalendarMetrics:
    """Thread-safe counters keyed by (provider, operation, outcome)."""

    def __init__(self) -> None:
        self._counts: Counter = Counter()
        self._lock = threading.Lock()

    def record_success(self, provider: str, operation: str) -> None:
        self._incr(provider, operation, "success")

    def record_failure(self, provider: str, operation: str, error_type: str) -> None:
        self._incr(provider, operation, "failure")
        self._incr(provider, operation, f"error:{error_type}")
        logger.debug("Metric: %s %s failure error_type=%s", provider, operation, error_type)

    def record_token_refresh(self, provider: str, succeeded: bool) -> None:
        self._incr(provider, "token_refresh", "success" if succeeded else "failure")

    def record_degraded(self, provider: str, operation: str) -> None:
        """A failure was swallowed and a fallback result served"""
        self._incr(provider, operation, "degraded")

    def count(self, provider: str, operation: str, outcome: str) -> int:
        with self._lock:
            return self._counts[(provider, operation, outcome)]

    def snapshot(self) -> Dict[Tuple[str, str, str], int]:
        with self._lock:
            return dict(self._counts)

    def reset(self) -> None:
        with self._lock:
            self._counts.clear()

    def _incr(self, provider: str, operation: str, outcome: str) -> None:
        with self._lock:
            self._counts[(provider, operation, outcome)] += 1


# Module-level singleton
metrics = CalendarMetrics()
