"""Exception hierarchy for task orchestration.

Callers pattern-match on these types instead of error message text:

    TaskError
    ├── ConfigurationError   (missing credentials, fatal at startup)
    ├── TaskValidationError  (caller mistake, never sent to the remote system)
    ├── RemoteServiceError   (remote call raised or returned a non-success code)
    ├── TaskFailedError      (remote job reached FAILED)
    └── PollTimeoutError     (poll attempt budget exhausted)

Every error carries a ``data`` dict with diagnostics and a ``status_code``
hint for whatever transport layer sits above the orchestrator.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class TaskError(Exception):
    """Base class for all orchestration errors.

    Attributes:
        status_code: HTTP-style status hint for upstream layers
        data: Diagnostic context (never contains credentials)
    """

    status_code: int = 500

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.data: Dict[str, Any] = data or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to an error payload suitable for JSON responses."""
        return {
            "error": {
                "message": self.message,
                "type": type(self).__name__,
                "status_code": self.status_code,
                "data": {k: v for k, v in self.data.items() if _is_plain(v)},
            }
        }


def _is_plain(value: Any) -> bool:
    return isinstance(value, (str, int, float, bool, type(None), list, dict))


class ConfigurationError(TaskError):
    """Raised when required remote-access configuration is missing."""

    status_code = 500


class TaskValidationError(TaskError, ValueError):
    """Raised for missing or malformed caller input."""

    status_code = 400


class RemoteServiceError(TaskError):
    """Raised when the remote task API fails or rejects a request.

    Attributes:
        original_error: Underlying exception, if the call raised
        response: Remote response body, if the call returned a rejection
    """

    status_code = 500

    def __init__(
        self,
        message: str,
        original_error: Optional[BaseException] = None,
        response: Any = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, data=data)
        self.original_error = original_error
        self.response = response


class TaskFailedError(TaskError):
    """Raised when a polled job reaches the FAILED terminal state."""

    status_code = 422

    def __init__(self, job_id: str, error_message: Optional[str], record: Any = None) -> None:
        self.job_id = job_id
        self.error_message = error_message or "unknown error"
        self.record = record
        super().__init__(
            f"Task {job_id} failed: {self.error_message}",
            data={"job_id": job_id, "error_message": self.error_message},
        )


class PollTimeoutError(TaskError):
    """Raised when a job does not reach a terminal state within the poll budget."""

    status_code = 408

    def __init__(
        self,
        job_id: str,
        attempts: int,
        max_attempts: int,
        last_error: Optional[BaseException] = None,
    ) -> None:
        self.job_id = job_id
        self.attempts = attempts
        self.max_attempts = max_attempts
        self.last_error = last_error
        super().__init__(
            f"Polling task {job_id} timed out after {attempts} attempts "
            f"(max_attempts={max_attempts})",
            data={"job_id": job_id, "attempts": attempts, "max_attempts": max_attempts},
        )
