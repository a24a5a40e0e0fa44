"""Shared FastAPI dependencies."""

import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.models.auth import Actor
from app.services.auth_service import actor_from_claims, verify_token

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer()


async def get_token_claims(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
) -> dict:
    """Verify the Bearer token and return decoded claims."""
    claims = verify_token(credentials.credentials)
    if claims is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )
    return claims


async def get_current_actor(
    claims: dict = Depends(get_token_claims),
) -> Actor:
    """Resolve the caller's identity and admin rights.

    Standard dependency for all protected endpoints.
    """
    return actor_from_claims(claims)


async def require_admin(
    actor: Actor = Depends(get_current_actor),
) -> Actor:
    """Reject callers without administrative rights."""
    if not actor.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"error": {"code": "forbidden", "message": "Administrator rights required"}},
        )
    return actor
