from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Union

from .constants import DEFAULTS
from .errors import ConfigError


@dataclass(frozen=True)
class Task:
    url: str
    property: str


@dataclass(frozen=True)
class ErrorRecord:
    url: str
    status: Optional[int]
    message: str
    raw: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"url": self.url, "status": self.status, "message": self.message, "raw": self.raw}


class FailureClass(str, enum.Enum):
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    AUTH = "auth"


@dataclass(frozen=True)
class Success:
    payload: Dict[str, Any]

    @property
    def url(self) -> str:
        return self.payload["url"]


@dataclass(frozen=True)
class RetryableFailure:
    reason: FailureClass
    wait_seconds: float
    status: Optional[int] = None


@dataclass(frozen=True)
class TerminalFailure:
    error: ErrorRecord


AttemptOutcome = Union[Success, RetryableFailure, TerminalFailure]
TaskOutcome = Union[Success, TerminalFailure]


@dataclass(frozen=True)
class RunConfig:
    """Settings consumed by the batch orchestrator.

    validate() is called before the first batch; anything it rejects is fatal.
    """

    batch_size: int = DEFAULTS["batch_size"]
    delay_ms: int = DEFAULTS["delay_ms"]
    max_retries: int = DEFAULTS["max_retries"]
    requests_per_minute: float = DEFAULTS["rate_limit"]
    resume: bool = False
    language: str = DEFAULTS["language"]
    output_dir: str = DEFAULTS["output_dir"]
    filter_verdict: Optional[str] = None
    only_not_indexed: bool = False

    def validate(self) -> None:
        if not _is_int(self.batch_size) or self.batch_size <= 0:
            raise ConfigError("batch_size", self.batch_size, "must be a positive integer")
        if not _is_number(self.delay_ms) or self.delay_ms < 0:
            raise ConfigError("delay_ms", self.delay_ms, "must be >= 0")
        if not _is_int(self.max_retries) or self.max_retries < 0:
            raise ConfigError("max_retries", self.max_retries, "must be a non-negative integer")
        if not _is_number(self.requests_per_minute) or self.requests_per_minute <= 0:
            raise ConfigError("requests_per_minute", self.requests_per_minute, "must be > 0")


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass
class RunReport:
    """Accumulators for one pass over the task list."""

    results: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[ErrorRecord] = field(default_factory=list)
    processed_urls: Set[str] = field(default_factory=set)
    batches_run: int = 0
    skipped: int = 0
    interrupted: bool = False
    elapsed_seconds: float = 0.0

    @property
    def success_count(self) -> int:
        return len(self.results)

    @property
    def error_count(self) -> int:
        return len(self.errors)


@dataclass(frozen=True)
class MetricsSnapshot:
    total_attempts: int
    retry_count: int
    success_count: int
    failure_count: int
    http_429_count: int
    http_403_count: int
    http_5xx_count: int
    transport_error_count: int
    avg_latency_ms: float
    timestamp: float
