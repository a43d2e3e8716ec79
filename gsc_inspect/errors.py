"""Fatal error types.

Per-URL failures are never raised; they end up as ErrorRecord entries in the
run report. The exceptions below are reserved for conditions that stop the
whole run before (or instead of) processing any URL.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class InspectorError(Exception):
    """Base exception for all fatal gsc-inspect errors."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
        }


class ConfigError(InspectorError):
    """A run setting is out of range (batch size, delay, retries, rate)."""

    def __init__(self, field: str, value: Any, reason: str) -> None:
        super().__init__(f"Invalid {field}={value!r}: {reason}", context={"field": field, "value": value})


class InputError(InspectorError):
    """The task list could not be read."""


class AuthError(InspectorError):
    """No usable credential could be obtained."""
