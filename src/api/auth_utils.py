"""
Bearer token helpers.

Tokens are issued by the identity provider in production; the API only
needs the user id from the `sub` claim. `issue_user_token` exists for
the CLI and tests.
"""

import os
from datetime import UTC, datetime, timedelta
from typing import Any, cast

from jose import JWTError, jwt

SECRET_KEY = os.environ.get("LMS_SECRET_KEY", "dev-secret-unsafe")
ALGORITHM = "HS256"
ISSUER = "lumora-lms"
TOKEN_TTL = timedelta(hours=24)


def issue_user_token(
    user_id: str,
    ttl: timedelta | None = None,
    now_utc: datetime | None = None,
) -> str:
    """
    Sign a token for `user_id`.

    Args:
        user_id: Value of the `sub` claim
        ttl: Lifetime, defaults to TOKEN_TTL
        now_utc: Issue time (for determinism). Defaults to datetime.now(UTC).
    """
    issued_at = now_utc if now_utc is not None else datetime.now(UTC)
    claims = {
        "sub": user_id,
        "iss": ISSUER,
        "iat": issued_at,
        "exp": issued_at + (ttl or TOKEN_TTL),
    }
    token: str = jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)
    return token


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Verified claims, or None for a bad signature, wrong issuer or expired token."""
    try:
        claims = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM], issuer=ISSUER)
    except JWTError:
        return None
    return cast(dict[str, Any], claims)


def user_id_from_token(token: str) -> str | None:
    claims = decode_access_token(token)
    if claims is None:
        return None
    sub = claims.get("sub")
    return sub if isinstance(sub, str) and sub else None
