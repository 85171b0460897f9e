from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.responses import ORJSONResponse

from .observability.context import current_request_id
from .settings import get_settings

GENERIC_SERVER_ERROR = "Server Error"

_DEFAULT_ERRORS = {
    400: "Bad Request",
    401: "Not authorized to access this route",
    403: "Forbidden",
    404: "Resource not found",
    405: "Method Not Allowed",
}


def _default_error(status_code: int) -> str:
    if status_code >= 500:
        return GENERIC_SERVER_ERROR
    return _DEFAULT_ERRORS.get(status_code, "Error")


def _request_id(request: Request) -> str | None:
    rid = getattr(getattr(request, "state", None), "request_id", None)
    if rid:
        return str(rid)
    return current_request_id()


def ok(
    data: Any = None,
    *,
    status_code: int = 200,
    count: int | None = None,
    total: int | None = None,
    pagination: dict[str, Any] | None = None,
    message: str | None = None,
    **extra: Any,
) -> ORJSONResponse:
    """Success envelope: `{success: true, data, count?, total?, pagination?}`."""
    payload: dict[str, Any] = {"success": True}
    if count is not None:
        payload["count"] = int(count)
    if total is not None:
        payload["total"] = int(total)
    if pagination is not None:
        payload["pagination"] = pagination
    if message:
        payload["message"] = message
    payload.update(extra)
    payload["data"] = {} if data is None else data
    return ORJSONResponse(status_code=int(status_code), content=payload)


def error_payload(
    *,
    request: Request,
    status_code: int,
    error: str | None = None,
    errors: list[dict[str, Any]] | None = None,
    data: Any = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {"success": False}

    if errors:
        payload["errors"] = errors
    payload["error"] = error or _default_error(int(status_code))

    if data is not None:
        payload["data"] = data

    rid = _request_id(request)
    if rid:
        payload["requestId"] = rid

    return payload


def error_response(
    *,
    request: Request,
    status_code: int,
    error: str | None = None,
    errors: list[dict[str, Any]] | None = None,
    data: Any = None,
) -> ORJSONResponse:
    settings = get_settings()

    # Never leak internal details in production for server errors.
    safe_error = error
    if int(status_code) >= 500 and settings.is_production:
        safe_error = GENERIC_SERVER_ERROR

    return ORJSONResponse(
        status_code=int(status_code),
        content=error_payload(
            request=request,
            status_code=int(status_code),
            error=safe_error,
            errors=errors,
            data=data,
        ),
    )
