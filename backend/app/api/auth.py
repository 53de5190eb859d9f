"""Minimal auth dependency.

Stub implementation that takes the user id straight from the bearer token.
Real token validation belongs to the identity service in front of this API.
"""

from typing import Annotated

from fastapi import Header, HTTPException, status

from backend.app.db.context import RequestContext


async def get_current_context(
    authorization: Annotated[str | None, Header()] = None,
) -> RequestContext:
    """Extract request context from authorization header.

    Accepts a simple "Bearer <user_id>" format.

    Args:
        authorization: Authorization header (e.g., "Bearer user-123")

    Returns:
        RequestContext with user_id

    Raises:
        HTTPException: If the header is missing or malformed
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = authorization[7:].strip()  # Strip "Bearer "

    if not user_id or " " in user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid bearer token (expected user id)",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return RequestContext(user_id=user_id)
