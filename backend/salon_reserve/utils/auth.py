from datetime import datetime, timedelta, timezone
from typing import NamedTuple, Optional, Sequence

import jwt
from jwt import InvalidTokenError

DEFAULT_TTL = timedelta(minutes=30)


class TokenClaims(NamedTuple):
    user_id: str
    tenant_id: Optional[str]


def create_access_token(
    *,
    user_id: str,
    secret: str,
    tenant_id: Optional[str] = None,
    algorithm: str = "HS256",
    expires_delta: timedelta | None = None,
) -> str:
    issued_at = datetime.now(timezone.utc)
    claims: dict[str, object] = {
        "sub": user_id,
        "iat": issued_at,
        "exp": issued_at + (expires_delta or DEFAULT_TTL),
    }
    if tenant_id is not None:
        claims["tid"] = tenant_id
    return jwt.encode(claims, secret, algorithm=algorithm)


def decode_access_token(token: str, *, secret: str, algorithms: Sequence[str]) -> TokenClaims:
    """Verify signature and expiry. Raises ValueError for any token that cannot identify a user."""
    try:
        claims = jwt.decode(token, secret, algorithms=list(algorithms), options={"require": ["sub", "exp"]})
    except InvalidTokenError as exc:
        raise ValueError("invalid token") from exc

    user_id, tenant_id = claims["sub"], claims.get("tid")
    if not isinstance(user_id, str) or not user_id:
        raise ValueError("token sub must be a non-empty string")
    if tenant_id is not None and not isinstance(tenant_id, str):
        raise ValueError("token tid must be a string")
    return TokenClaims(user_id=user_id, tenant_id=tenant_id)
