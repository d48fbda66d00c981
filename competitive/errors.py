"""
Error taxonomy for competitive analysis reconciliation.

Only submission failures reach callers as exceptions. Transport, schema and
storage problems on every other path are recovered locally and logged.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    USER_INPUT = "user_input"
    TRANSPORT = "transport"
    SCHEMA = "schema"
    STORAGE = "storage"


class CompetitiveAnalysisError(Exception):
    """Base exception for competitive analysis failures."""

    kind: ErrorKind = ErrorKind.TRANSPORT

    def __init__(self, message: str, *, kind: ErrorKind | None = None) -> None:
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind


class BackendRequestError(CompetitiveAnalysisError):
    """
    Raised by the backend connector when a request fails or returns non-2xx.

    Attributes:
        status_code: HTTP status when a response was received, else None.
        detail: Error text extracted from the response body, if any.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        detail: str | None = None,
    ) -> None:
        super().__init__(message, kind=ErrorKind.TRANSPORT)
        self.status_code = status_code
        self.detail = detail


class AnalysisSubmissionError(CompetitiveAnalysisError):
    """
    User-visible failure of a new analysis submission.
    """

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind = ErrorKind.USER_INPUT,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, kind=kind)
        self.status_code = status_code


class CacheStorageError(CompetitiveAnalysisError):
    """Raised by storage backends; the cache store converts it into a no-op."""

    kind = ErrorKind.STORAGE
