from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

import requests

from .auth import CredentialProvider
from .backoff import BackoffStrategy
from .constants import (
    API_ENDPOINT,
    AUTH_RETRY_DELAY_SECS,
    DEFAULTS,
    QUOTA_MARKERS,
    REQUEST_TIMEOUT,
)
from .metrics import MetricsCollector
from .models import (
    AttemptOutcome,
    ErrorRecord,
    FailureClass,
    RetryableFailure,
    Success,
    Task,
    TaskOutcome,
    TerminalFailure,
)

logger = logging.getLogger(__name__)


class InspectionExecutor:
    """Inspects one URL via the URL Inspection API, retrying by failure class.

    execute() always returns Success or TerminalFailure; transport errors,
    credential errors and exhausted retries are all folded into an
    ErrorRecord. Retry policy per attempt (counted from 0):

    - 429: wait Retry-After seconds when given, else exponential backoff
    - 5xx: exponential backoff
    - 401: one retry after a short pause, only on the first attempt
    - 403: exponential backoff when the body mentions quota, else terminal
    - anything else non-2xx: terminal
    """

    def __init__(
        self,
        credentials: CredentialProvider,
        max_retries: int = DEFAULTS["max_retries"],
        language: str = DEFAULTS["language"],
        backoff: Optional[BackoffStrategy] = None,
        metrics: Optional[MetricsCollector] = None,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        endpoint: str = API_ENDPOINT,
        timeout: int = REQUEST_TIMEOUT,
    ) -> None:
        self._credentials = credentials
        self._max_retries = max_retries
        self._language = language
        self._backoff = backoff or BackoffStrategy()
        self._metrics = metrics
        self._session = session or requests.Session()
        self._sleep = sleep
        self._endpoint = endpoint
        self._timeout = timeout

    def execute(self, task: Task) -> TaskOutcome:
        body = {
            "inspectionUrl": task.url,
            "siteUrl": task.property,
            "languageCode": self._language,
        }

        for attempt in range(self._max_retries + 1):
            try:
                token = self._credentials.get_access_token()
            except Exception as exc:  # noqa: BLE001
                return TerminalFailure(ErrorRecord(task.url, None, f"Failed to obtain access token: {exc}"))

            start_ms = _now_ms()
            try:
                response = self._session.post(
                    self._endpoint,
                    json=body,
                    headers={
                        "Content-Type": "application/json",
                        "Accept": "application/json",
                        "Authorization": f"Bearer {token}",
                    },
                    timeout=self._timeout,
                )
            except requests.RequestException as exc:
                if self._metrics:
                    self._metrics.record_attempt(None, _now_ms() - start_ms)
                logger.warning("url=%s transport error: %s", task.url, exc)
                return TerminalFailure(ErrorRecord(task.url, None, str(exc) or type(exc).__name__))

            if self._metrics:
                self._metrics.record_attempt(response.status_code, _now_ms() - start_ms)

            outcome = classify(task, response, attempt, self._max_retries, self._backoff)
            if not isinstance(outcome, RetryableFailure):
                if isinstance(outcome, TerminalFailure):
                    logger.warning(
                        "url=%s failed status=%s attempt=%d: %s",
                        task.url, outcome.error.status, attempt, outcome.error.message,
                    )
                return outcome

            logger.warning(
                "url=%s status=%s (%s) attempt=%d/%d, retrying in %.1fs",
                task.url, outcome.status, outcome.reason.value, attempt + 1,
                self._max_retries + 1, outcome.wait_seconds,
            )
            if self._metrics:
                self._metrics.record_retry()
            self._sleep(outcome.wait_seconds)

        # classify() never asks for a retry on the last attempt
        return TerminalFailure(ErrorRecord(task.url, None, "Retries exhausted"))


def classify(
    task: Task,
    response: requests.Response,
    attempt: int,
    max_retries: int,
    backoff: BackoffStrategy,
) -> AttemptOutcome:
    """Map one HTTP response to the outcome of a single attempt."""
    status = response.status_code
    is_last = attempt >= max_retries

    if 200 <= status < 300:
        try:
            payload = response.json()
        except ValueError:
            return TerminalFailure(ErrorRecord(task.url, status, "Invalid JSON in response", response.text))
        if not isinstance(payload, dict):
            payload = {"response": payload}
        payload = dict(payload)
        payload["url"] = task.url
        return Success(payload)

    if status == 429:
        if is_last:
            return TerminalFailure(error_record(task, response))
        wait = parse_retry_after(response.headers.get("Retry-After"))
        if wait is None:
            wait = backoff.get_sleep(attempt)
        return RetryableFailure(FailureClass.RATE_LIMITED, wait, status)

    if 500 <= status < 600:
        if is_last:
            return TerminalFailure(error_record(task, response))
        return RetryableFailure(FailureClass.SERVER_ERROR, backoff.get_sleep(attempt), status)

    if status == 401 and attempt == 0 and not is_last:
        return RetryableFailure(FailureClass.AUTH, AUTH_RETRY_DELAY_SECS, status)

    if status == 403 and not is_last and is_quota_error(response.text):
        return RetryableFailure(FailureClass.RATE_LIMITED, backoff.get_sleep(attempt), status)

    return TerminalFailure(error_record(task, response))


def is_quota_error(body: Optional[str]) -> bool:
    if not body:
        return False
    return any(marker in body for marker in QUOTA_MARKERS)


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Seconds from a Retry-After header; None when absent, non-numeric or not positive."""
    if value is None:
        return None
    try:
        seconds = int(str(value).strip())
    except ValueError:
        return None
    if seconds <= 0:
        return None
    return float(seconds)


def error_record(task: Task, response: requests.Response) -> ErrorRecord:
    raw: Any
    try:
        raw = response.json()
    except ValueError:
        raw = response.text or None

    message = None
    if isinstance(raw, dict):
        err = raw.get("error")
        if isinstance(err, dict):
            message = err.get("message")
        elif isinstance(err, str):
            message = err
    return ErrorRecord(
        url=task.url,
        status=response.status_code,
        message=message or f"Request failed with status code {response.status_code}",
        raw=raw,
    )


def _now_ms() -> int:
    return int(time.monotonic() * 1000)
