from __future__ import annotations

from typing import Optional


class BackoffStrategy:
    """Deterministic exponential backoff for retry delays.

    Computes sleep duration as base * 2^attempt with attempt counted from 0,
    so the default schedule is 1s, 2s, 4s, ... No jitter is added; retry
    timing must be reproducible."""

    def __init__(self, base_seconds: float = 1.0, max_seconds: Optional[float] = None) -> None:
        self._base = base_seconds
        self._max = max_seconds

    def get_sleep(self, attempt: int) -> float:
        """Calculate the backoff sleep duration in seconds after a failed attempt."""
        delay = self._base * (2 ** max(attempt, 0))
        if self._max is not None:
            delay = min(self._max, delay)
        return delay
