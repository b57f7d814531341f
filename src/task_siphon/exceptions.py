"""Exception hierarchy for task-siphon.

The query pipeline never raises these for empty or malformed input; they
belong to the sync pipeline, where an empty result or a failing upstream
usually means misconfiguration.
"""

from typing import Any


class TaskSiphonError(Exception):
    """Base exception for all task-siphon errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(TaskSiphonError):
    """Raised when a credential is missing or an option is invalid."""


class NoMatchingSessionsError(TaskSiphonError):
    """Raised when no cache rows survive filtering."""


class CacheQueryError(TaskSiphonError):
    """Raised when the session cache query process fails."""

    def __init__(self, message: str, returncode: int | None = None, stderr: str = ""):
        super().__init__(message, {"returncode": returncode} if returncode is not None else None)
        self.returncode = returncode
        self.stderr = stderr


class UpstreamError(TaskSiphonError):
    """Raised when the remote context service fails or is unreachable."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
