"""FastAPI authentication dependencies."""

from __future__ import annotations

from dataclasses import dataclass

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from learnhub.auth.jwt import verify_token
from learnhub.config import get_settings

_bearer = HTTPBearer()


@dataclass(frozen=True)
class CurrentUser:
    user_id: str
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role in get_settings().admin_roles


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Security(_bearer),
) -> CurrentUser:
    """
    Extract and verify the bearer JWT.

    Raises 401 on a missing, invalid or expired token.
    """
    try:
        payload = verify_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e

    return CurrentUser(user_id=payload["sub"], role=str(payload.get("role") or "user"))


async def require_admin(
    user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """Same as get_current_user but additionally requires an admin role."""
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
