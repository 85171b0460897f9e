from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import httpx
from cachetools import TTLCache, cached
from jose import JWTError, jwt

from ..settings import settings
from .roles import normalize_roles


class CognitoAuthError(Exception):
    def __init__(self, message: str, *, status_code: int = 401):
        super().__init__(message)
        self.status_code = status_code


def _parse_subscription_end(raw: Any) -> datetime | None:
    if raw in (None, ""):
        return None
    try:
        if isinstance(raw, (int, float)) or str(raw).isdigit():
            return datetime.fromtimestamp(int(raw), tz=timezone.utc)
        end = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    except ValueError:
        return None
    return end if end.tzinfo else end.replace(tzinfo=timezone.utc)


@dataclass
class VerifiedUser:
    sub: str
    username: str
    email: str | None
    claims: dict[str, Any]
    roles: list[str] = field(default_factory=list)

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> "VerifiedUser":
        email = claims.get("email")
        email = str(email) if email is not None else None
        username = (
            str(claims.get("preferred_username") or "").strip()
            or str(claims.get("cognito:username") or "").strip()
            or (email or "")
        )
        return cls(
            sub=str(claims.get("sub") or ""),
            username=username,
            email=email,
            claims=dict(claims),
            roles=normalize_roles(claims.get("cognito:groups")),
        )

    @property
    def is_admin(self) -> bool:
        return "admin" in self.roles

    @property
    def subscription_end(self) -> datetime | None:
        return _parse_subscription_end(self.claims.get("custom:subscriptionEnd"))

    @property
    def is_subscribed(self) -> bool:
        """Active membership: a plan claim plus a subscription end in the future."""
        if not str(self.claims.get("custom:membership") or "").strip():
            return False
        end = self.subscription_end
        return end is not None and end > datetime.now(timezone.utc)


def _issuer() -> str:
    if not settings.cognito_user_pool_id:
        raise CognitoAuthError("COGNITO_USER_POOL_ID is not set", status_code=500)
    region = settings.cognito_region or settings.aws_region
    return f"https://cognito-idp.{region}.amazonaws.com/{settings.cognito_user_pool_id}"


# Cognito rotates signing keys rarely; an hour keeps restarts cheap.
@cached(TTLCache(maxsize=4, ttl=60 * 60))
def _fetch_jwks(url: str) -> dict[str, Any]:
    try:
        resp = httpx.get(url, timeout=10.0)
        resp.raise_for_status()
    except httpx.HTTPError as e:
        raise CognitoAuthError(f"unable to fetch signing keys: {e}", status_code=503)
    return resp.json()


def _signing_key(token: str, issuer: str) -> dict[str, Any]:
    try:
        kid = jwt.get_unverified_header(token).get("kid")
    except JWTError:
        raise CognitoAuthError("malformed token")
    for key in _fetch_jwks(f"{issuer}/.well-known/jwks.json").get("keys", []):
        if key.get("kid") == kid:
            return key
    raise CognitoAuthError("unknown signing key")


def verify_bearer_token(token: str) -> VerifiedUser:
    if not token:
        raise CognitoAuthError("missing token")
    if not settings.cognito_client_id:
        raise CognitoAuthError("COGNITO_CLIENT_ID is not set", status_code=500)

    issuer = _issuer()
    try:
        claims = jwt.decode(
            token,
            _signing_key(token, issuer),
            algorithms=["RS256"],
            audience=settings.cognito_client_id,
            issuer=issuer,
        )
    except JWTError as e:
        raise CognitoAuthError(f"invalid token: {e}")

    if claims.get("token_use") not in (None, "id", "access"):
        raise CognitoAuthError("invalid token_use")

    user = VerifiedUser.from_claims(claims)
    if not user.sub:
        raise CognitoAuthError("missing sub")
    return user
