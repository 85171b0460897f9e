from __future__ import annotations

from typing import Any, Callable, Iterable

from fastapi import Request

from ..errors import Forbidden, Unauthorized

ROLE_USER = "user"
ROLE_STAFF = "staff"
ROLE_ADMIN = "admin"


def normalize_roles(value: Any) -> list[str]:
    """
    Normalize roles to a canonical list of lowercase strings.
    Cognito groups arrive as a list; a bare string is accepted too.
    """
    roles_in: Iterable[Any]
    if isinstance(value, (list, tuple)):
        roles_in = value
    elif isinstance(value, str) and value.strip():
        roles_in = [value]
    else:
        roles_in = []

    out: list[str] = []
    for r in roles_in:
        s = str(r or "").strip()
        if not s:
            continue
        low = s.lower().replace("_", "").replace("-", "")
        if low in ("admin", "admins", "administrator"):
            canon = ROLE_ADMIN
        elif low in ("staff", "operator"):
            canon = ROLE_STAFF
        elif low in ("user", "member", "basic"):
            canon = ROLE_USER
        else:
            canon = s.lower()
        if canon not in out:
            out.append(canon)

    if not out:
        out = [ROLE_USER]
    return out


def current_user(request: Request):
    """The authenticated principal, or None on public routes."""
    return getattr(request.state, "user", None)


def authenticated(request: Request):
    user = current_user(request)
    if user is None:
        raise Unauthorized(message="Not authorized to access this route")
    return user


def authorize(user: Any, roles: Iterable[str]) -> None:
    allowed = [str(r).lower() for r in roles]
    if not allowed:
        return
    have = normalize_roles(getattr(user, "roles", None))
    if not any(r in have for r in allowed):
        role = have[0] if have else ROLE_USER
        raise Forbidden(message=f"User role {role} is not authorized to access this route")


def require_roles(*roles: str) -> Callable[[Request], Any]:
    """FastAPI dependency: authenticated principal holding one of `roles`."""

    def _dep(request: Request):
        user = authenticated(request)
        authorize(user, roles)
        return user

    return _dep
