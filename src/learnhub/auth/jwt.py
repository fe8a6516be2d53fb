"""
JWT access token verification.

Tokens are issued by the platform's identity provider. The ``sub`` claim is
the user id and an optional ``role`` claim carries the user's role. HS*
algorithms verify with ``jwt_secret``; RS*/ES* with the public key file.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import jwt

from learnhub.config import get_settings

_public_key: str | None = None


def _verification_key() -> str:
    """Key used to verify signatures (public key file cached after first read)."""
    global _public_key  # noqa: PLW0603
    settings = get_settings()
    if settings.jwt_algorithm.startswith("HS"):
        if not settings.jwt_secret:
            msg = "jwt_secret must be set for HMAC algorithms"
            raise jwt.InvalidTokenError(msg)
        return settings.jwt_secret
    if _public_key is None:
        _public_key = Path(settings.jwt_public_key_path).read_text()
    return _public_key


def reset_keys() -> None:
    """Reset cached keys (useful for testing)."""
    global _public_key  # noqa: PLW0603
    _public_key = None


def create_access_token(
    user_id: str,
    role: str = "user",
    *,
    signing_key: str | None = None,
    expires_minutes: int = 60,
) -> str:
    """
    Create a signed access token.

    Only meant for local tooling and tests; production tokens come from the
    identity provider. Defaults to ``jwt_secret`` as the signing key.
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": user_id,
        "role": role,
        "iat": now,
        "exp": now + timedelta(minutes=expires_minutes),
    }
    if settings.jwt_issuer:
        payload["iss"] = settings.jwt_issuer
    return jwt.encode(payload, signing_key or settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> dict[str, Any]:
    """
    Verify and decode an access token.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, or has no subject.
    """
    settings = get_settings()
    options: dict[str, Any] = {"require": ["sub", "exp"]}
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            _verification_key(),
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
            options=options,
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired"
        raise jwt.InvalidTokenError(msg) from None

    if not isinstance(payload["sub"], str) or not payload["sub"]:
        msg = "Token subject must be a non-empty string"
        raise jwt.InvalidTokenError(msg)
    return payload
