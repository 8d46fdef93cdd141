"""JWT access/refresh token creation and verification."""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

ACCESS_ISSUER = "chirpy-access"
REFRESH_ISSUER = "chirpy-refresh"
DEFAULT_ALGORITHM = "HS256"


def create_token(
    user_id: int,
    issuer: str,
    expires_in_seconds: int,
    secret: str,
    algorithm: str = DEFAULT_ALGORITHM,
) -> str:
    """Create a JWT with sub=user_id, signed with ``secret``."""
    now = datetime.now(timezone.utc)
    payload = {
        "iss": issuer,
        "iat": now,
        "exp": now + timedelta(seconds=expires_in_seconds),
        "sub": str(user_id),
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


def verify_token(
    token: str,
    issuer: str,
    secret: str,
    algorithm: str = DEFAULT_ALGORITHM,
) -> Optional[int]:
    """Decode JWT and return the user id, or None if invalid/expired/wrong issuer."""
    try:
        payload = jwt.decode(token, secret, algorithms=[algorithm], issuer=issuer)
        return int(payload["sub"])
    except (jwt.PyJWTError, KeyError, ValueError):
        return None
