"""
Token Utilities

Verification of bearer tokens issued by the identity provider. The API
never issues end-user credentials itself; create_access_token exists for
local tooling and tests that need a correctly signed token.
"""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from app.core.config import settings

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_TTL_MINUTES = 60


def create_access_token(
    subject: str,
    *,
    email: str,
    name: str | None = None,
    expires_minutes: int = DEFAULT_TOKEN_TTL_MINUTES,
    extra_claims: dict[str, Any] | None = None,
) -> str:
    """
    Create a signed access token shaped like the identity provider's.

    Args:
        subject: User ID (the `sub` claim)
        email: User's email address
        name: Display name, stored under user_metadata like the provider does
        expires_minutes: Lifetime of the token
        extra_claims: Additional claims to merge in

    Returns:
        Encoded JWT string
    """
    now = datetime.now(UTC)
    claims: dict[str, Any] = {
        "sub": subject,
        "email": email,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=expires_minutes)).timestamp()),
        "type": "access",
    }
    if settings.jwt_audience:
        claims["aud"] = settings.jwt_audience
    if name:
        claims["user_metadata"] = {"full_name": name}
    if extra_claims:
        claims.update(extra_claims)

    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict[str, Any] | None:
    """
    Decode and verify a bearer token.

    Checks the signature, algorithm, expiry and (when configured) audience.

    Returns:
        The token claims, or None if the token is invalid or expired
    """
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options={"verify_aud": settings.jwt_audience is not None},
        )
    except JWTError as e:
        logger.debug(f"Token verification failed: {e}")
        return None
