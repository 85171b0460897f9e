from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class AppError(Exception):
    """Base error for request-level failures raised by services.

    Rendered into the `{success: false, error}` envelope by the exception
    handler registered in `main.create_app`.
    """

    message: str
    status_code: int = 400
    data: Any = None

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True)
class ValidationFailed(AppError):
    errors: list[dict[str, str]] = field(default_factory=list)
    status_code: int = 400

    @classmethod
    def for_field(cls, field_name: str, message: str) -> "ValidationFailed":
        return cls(
            message=message,
            errors=[{"field": field_name, "message": message}],
        )


@dataclass(slots=True)
class NotFound(AppError):
    status_code: int = 404


@dataclass(slots=True)
class Conflict(AppError):
    # Duplicates surface as 400 on the public API.
    status_code: int = 400


@dataclass(slots=True)
class BusinessRuleViolation(AppError):
    status_code: int = 400


@dataclass(slots=True)
class Unauthorized(AppError):
    status_code: int = 401


@dataclass(slots=True)
class Forbidden(AppError):
    status_code: int = 403


@dataclass(slots=True)
class UpstreamError(AppError):
    """A collaborator (storage, email) failed."""

    status_code: int = 502
    service: str | None = None
    cause: Exception | None = None
