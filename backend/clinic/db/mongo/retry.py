from __future__ import annotations

import random
import time
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

from bson.errors import InvalidDocument
from pymongo.errors import (
    AutoReconnect,
    BulkWriteError,
    ConnectionFailure,
    DuplicateKeyError,
    NetworkTimeout,
    OperationFailure,
    PyMongoError,
    ServerSelectionTimeoutError,
    WriteError,
)

from .errors import (
    StoreConflict,
    StoreError,
    StoreInternal,
    StoreUnavailable,
    StoreValidation,
)

T = TypeVar("T")

DUPLICATE_KEY_CODES = {11000, 11001}
# DocumentValidationFailure, BadValue, FailedToParse, TypeMismatch
_VALIDATION_CODES = {121, 2, 9, 14}


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    max_attempts: int = 4
    base_delay_s: float = 0.05
    max_delay_s: float = 1.0

    def delay(self, attempt: int) -> float:
        """Full-jitter delay before retry number `attempt` (1-based)."""
        ceiling = min(self.max_delay_s, self.base_delay_s * 2 ** (attempt - 1))
        return random.uniform(0, ceiling)


# Inserts are not idempotent; the driver's own retryable writes cover them.
NO_RETRY = RetryPolicy(max_attempts=1)


def _write_error_codes(exc: Exception) -> set[int]:
    if isinstance(exc, BulkWriteError):
        return {int(err.get("code") or 0) for err in (exc.details or {}).get("writeErrors") or []}
    code = getattr(exc, "code", None)
    return {int(code)} if code is not None else set()


def classify(exc: Exception) -> tuple[type[StoreError], str, bool]:
    """Return (error class, public message, retryable) for a driver exception."""
    codes = _write_error_codes(exc)
    if isinstance(exc, DuplicateKeyError) or (
        isinstance(exc, (BulkWriteError, OperationFailure)) and codes & DUPLICATE_KEY_CODES
    ):
        return StoreConflict, "Duplicate field value entered", False
    if isinstance(exc, InvalidDocument) or (
        isinstance(exc, (WriteError, OperationFailure)) and codes & _VALIDATION_CODES
    ):
        return StoreValidation, "Document failed store validation", False
    # Timeouts subclass AutoReconnect but already spent a full wait; fail fast.
    if isinstance(exc, (ServerSelectionTimeoutError, NetworkTimeout)):
        return StoreUnavailable, "Document store unreachable", False
    # A dropped connection or primary step-down is worth a retry.
    if isinstance(exc, AutoReconnect):
        return StoreUnavailable, "Document store temporarily unavailable", True
    if isinstance(exc, ConnectionFailure):
        return StoreUnavailable, "Document store unreachable", False
    if isinstance(exc, PyMongoError):
        return StoreInternal, f"Document store request failed ({type(exc).__name__})", False
    return StoreInternal, "Unexpected document store error", False


def to_store_error(
    exc: Exception,
    *,
    operation: str,
    collection: str | None = None,
    key: dict[str, Any] | None = None,
) -> StoreError:
    if isinstance(exc, StoreError):
        return exc
    error_cls, message, retryable = classify(exc)
    return error_cls(
        message=message,
        operation=operation,
        collection=collection,
        key=key,
        code=getattr(exc, "code", None),
        retryable=retryable,
        cause=exc,
    )


def mongo_call(
    operation: str,
    fn: Callable[[], T],
    *,
    collection: str | None = None,
    key: dict[str, Any] | None = None,
    retry_policy: RetryPolicy | None = None,
) -> T:
    policy = retry_policy or RetryPolicy()
    attempts = max(1, int(policy.max_attempts))

    attempt = 1
    while True:
        try:
            return fn()
        except (PyMongoError, InvalidDocument) as e:
            err = to_store_error(e, operation=operation, collection=collection, key=key)
            if not err.retryable or attempt >= attempts:
                raise err from e
        time.sleep(policy.delay(attempt))
        attempt += 1
