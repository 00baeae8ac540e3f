"""Domain error kinds and the result type returned by core validators."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

from fastapi import Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Caller-visible failure kinds produced by the accounting core."""

    INVALID_TIMESTAMP = "invalid_timestamp"
    NON_POSITIVE_DURATION = "non_positive_duration"
    OVERLAP_DETECTED = "overlap_detected"
    PERMISSION_DENIED = "permission_denied"


class DomainError(Exception):
    """Base class for deterministic, non-retryable core failures."""

    kind: ErrorKind

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict[str, str]:
        return {"code": self.kind.value, "message": self.message}


class InvalidTimestamp(DomainError):
    kind = ErrorKind.INVALID_TIMESTAMP


class NonPositiveDuration(DomainError):
    kind = ErrorKind.NON_POSITIVE_DURATION


class OverlapDetected(DomainError):
    kind = ErrorKind.OVERLAP_DETECTED


class PermissionDenied(DomainError):
    kind = ErrorKind.PERMISSION_DENIED


ERROR_STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.INVALID_TIMESTAMP: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.NON_POSITIVE_DURATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.OVERLAP_DETECTED: status.HTTP_409_CONFLICT,
    ErrorKind.PERMISSION_DENIED: status.HTTP_403_FORBIDDEN,
}


@dataclass(frozen=True, slots=True)
class Result(Generic[T]):
    """Either a success value or a tagged domain error."""

    value: T | None = None
    error: DomainError | None = None

    @classmethod
    def success(cls, value: T | None = None) -> Result[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: DomainError) -> Result[T]:
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> ErrorKind | None:
        return self.error.kind if self.error is not None else None

    def unwrap(self) -> T:
        """Return the success value or raise the carried error."""

        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Translate a domain error into its HTTP response."""

    logger.warning("Rejected %s %s: %s", request.method, request.url.path, exc.kind.value)
    return JSONResponse(
        status_code=ERROR_STATUS_CODES[exc.kind],
        content={"detail": exc.to_payload()},
    )
