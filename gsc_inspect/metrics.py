from __future__ import annotations

import time
from collections import Counter
from threading import Lock
from typing import Dict, List, Optional

from .models import MetricsSnapshot


class MetricsCollector:
    """Thread-safe collector for per-run inspection metrics.

    Records every HTTP attempt (status code and latency) and every settled
    task, and produces an aggregated MetricsSnapshot for the run summary."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._status_counts: Counter = Counter()
        self._latencies_ms: List[int] = []
        self._attempts = 0
        self._retries = 0
        self._transport_errors = 0
        self._successes = 0
        self._failures = 0

    def record_attempt(self, status_code: Optional[int], latency_ms: int) -> None:
        """Record one HTTP attempt; status_code is None when no response arrived."""
        with self._lock:
            self._attempts += 1
            self._latencies_ms.append(latency_ms)
            if status_code is None:
                self._transport_errors += 1
            else:
                self._status_counts[status_code] += 1

    def record_retry(self) -> None:
        with self._lock:
            self._retries += 1

    def record_outcome(self, success: bool) -> None:
        """Record a settled task."""
        with self._lock:
            if success:
                self._successes += 1
            else:
                self._failures += 1

    def snapshot(self) -> MetricsSnapshot:
        with self._lock:
            total = self._attempts
            avg_latency_ms = (sum(self._latencies_ms) / total) if total else 0.0
            http_5xx = sum(n for code, n in self._status_counts.items() if 500 <= code < 600)
            return MetricsSnapshot(
                total_attempts=total,
                retry_count=self._retries,
                success_count=self._successes,
                failure_count=self._failures,
                http_429_count=self._status_counts[429],
                http_403_count=self._status_counts[403],
                http_5xx_count=http_5xx,
                transport_error_count=self._transport_errors,
                avg_latency_ms=avg_latency_ms,
                timestamp=time.time(),
            )

    def status_counts(self) -> Dict[int, int]:
        with self._lock:
            return dict(self._status_counts)
