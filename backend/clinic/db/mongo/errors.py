from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(slots=True)
class StoreError(Exception):
    """Base error for document store operations.

    Caught by a FastAPI exception handler and rendered into the standard
    error envelope. Driver details (index names, server messages) stay on
    the exception for logs and never reach the response body.
    """

    message: str
    operation: str | None = None
    collection: str | None = None
    key: dict[str, Any] | None = None
    code: int | None = None
    retryable: bool = False
    cause: Exception | None = None

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True)
class StoreNotFound(StoreError):
    pass


@dataclass(slots=True)
class StoreConflict(StoreError):
    pass


@dataclass(slots=True)
class StoreValidation(StoreError):
    pass


@dataclass(slots=True)
class StoreUnavailable(StoreError):
    pass


@dataclass(slots=True)
class StoreInternal(StoreError):
    pass
