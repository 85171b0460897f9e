from __future__ import annotations

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from ..auth.cognito import CognitoAuthError, verify_bearer_token
from ..errors import AppError, Unauthorized
from ..envelope import error_response
from ..observability.context import bind_principal
from ..observability.logging import get_logger

# Catalog reads are open to anonymous visitors.
PUBLIC_READ_PREFIXES = (
    "/api/products",
    "/api/categories",
    "/api/courses",
    "/api/webinars",
    "/api/feedback/item",
    "/api/gallery",
    "/api/services",
    "/api/recipes",
    "/api/detox-plans",
)

# Reads under a public prefix that still need a principal.
PRIVATE_READ_PATHS = (
    "/api/products/admin",
    "/api/webinars/user-webinars",
)


def is_public_path(method: str, path: str) -> bool:
    # "GET /" health is public.
    if path == "/":
        return True

    if method.upper() not in ("GET", "HEAD"):
        return False

    if any(path.startswith(p) for p in PRIVATE_READ_PATHS):
        return False
    if path.startswith("/api/webinars/") and path.endswith("/registrations"):
        return False

    return any(path == p or path.startswith(p + "/") for p in PUBLIC_READ_PREFIXES)


def _bearer_token(request: Request) -> str | None:
    auth = request.headers.get("authorization")
    if not auth:
        return None
    parts = str(auth).split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise Unauthorized(message="Not authorized to access this route")
    return parts[1].strip()


def authenticate(request: Request) -> None:
    """Attach the verified principal to request.state.user, or raise 401."""
    path = request.url.path

    # Let CORS preflight through without auth.
    if request.method.upper() == "OPTIONS":
        return

    # Only enforce auth for API routes.
    if not path.startswith("/api/"):
        return

    token = _bearer_token(request)
    if token is None:
        if is_public_path(request.method, path):
            request.state.user = None
            return
        raise Unauthorized(message="Not authorized to access this route")

    try:
        user = verify_bearer_token(token)
    except CognitoAuthError as e:
        raise AppError(message=str(e), status_code=int(getattr(e, "status_code", 401)))
    except Exception:
        raise Unauthorized(message="Not authorized to access this route")

    request.state.user = user


class AuthMiddleware(BaseHTTPMiddleware):
    """
    Auth enforcement as ASGI middleware.

    Added before CORSMiddleware so CORS wraps all responses (including auth
    failures) and preflight works. Role checks happen per route through
    `auth.roles.require_roles`.
    """

    async def dispatch(self, request: Request, call_next):
        try:
            authenticate(request)
        except AppError as exc:
            status_code = int(exc.status_code or 401)
            log = get_logger("auth_middleware")
            if status_code >= 500:
                log.error("auth_misconfigured", status_code=status_code, error=exc.message)
            else:
                log.info("auth_denied", status_code=status_code, reason=exc.message)
            return error_response(
                request=request,
                status_code=status_code,
                error=exc.message if status_code < 500 else None,
            )

        user = getattr(request.state, "user", None)
        if user is not None:
            bind_principal(user.sub, user.roles)
        return await call_next(request)
