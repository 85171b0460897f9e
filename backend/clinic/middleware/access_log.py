from __future__ import annotations

import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from ..observability.logging import get_logger


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000.0, 2)


class AccessLogMiddleware(BaseHTTPMiddleware):
    """
    One `request` event per API call. Request id, method and path are
    already bound to the log context, so only the outcome is added here.
    5xx responses log at error, other 4xx at warning.
    """

    def __init__(self, app, *, exclude_paths: set[str] | None = None):
        super().__init__(app)
        self._skip = frozenset(exclude_paths or ())
        self._log = get_logger("access")

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self._skip:
            return await call_next(request)

        start = time.perf_counter()
        client_ip = request.client.host if request.client else None
        try:
            response = await call_next(request)
        except Exception:
            self._log.exception("request_failed", duration_ms=_elapsed_ms(start), client_ip=client_ip)
            raise

        status = response.status_code
        emit = self._log.error if status >= 500 else self._log.warning if status >= 400 else self._log.info
        emit("request", status_code=status, duration_ms=_elapsed_ms(start), client_ip=client_ip)
        return response
