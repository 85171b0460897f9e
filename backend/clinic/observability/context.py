from __future__ import annotations

import structlog


def bind_request(*, request_id: str, method: str, path: str) -> None:
    """Start a fresh log context for one request."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, method=method, path=path)


def bind_principal(user_id: str | None, roles: list[str] | None = None) -> None:
    if not user_id:
        return
    structlog.contextvars.bind_contextvars(user_id=user_id, roles=list(roles or []))


def clear_request() -> None:
    structlog.contextvars.clear_contextvars()


def current_request_id() -> str | None:
    rid = structlog.contextvars.get_contextvars().get("request_id")
    return str(rid) if rid else None
