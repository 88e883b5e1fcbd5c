"""
Resolve the calling user from a Supabase access token.
"""

import logging

from fastapi import Header, HTTPException

from weblitho.database import get_client

logger = logging.getLogger(__name__)

SESSION_EXPIRED = "Session expired. Please log in again."


def _bearer_token(authorization: str | None) -> str:
    if not authorization:
        return ""
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return token.strip()


async def get_current_user_id(authorization: str | None = Header(default=None)) -> str:
    """FastAPI dependency: 401 unless the bearer token belongs to a Supabase user."""
    token = _bearer_token(authorization)
    if not token:
        raise HTTPException(status_code=401, detail=SESSION_EXPIRED)

    try:
        response = get_client().auth.get_user(token)
    except Exception as e:
        logger.info("[auth] Token rejected: %s", e)
        raise HTTPException(status_code=401, detail=SESSION_EXPIRED)

    user = getattr(response, "user", None)
    if user is None or not getattr(user, "id", None):
        raise HTTPException(status_code=401, detail=SESSION_EXPIRED)
    return user.id
