"""
FastAPI dependencies for authentication.

Provides ``db_session``, ``get_current_user_id`` and ``get_current_user``
dependencies that are used across all protected routes.
"""

from __future__ import annotations

from typing import AsyncGenerator, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import User
from database.session import get_db_session

_bearer_scheme = HTTPBearer(auto_error=False)

SESSION_USER_KEY = "user_id"
SESSION_VERSION_KEY = "session_version"


async def db_session(
    session: AsyncSession = Depends(get_db_session),
) -> AsyncGenerator[AsyncSession, None]:
    """Yield a DB session for route handlers."""
    yield session


def _not_authenticated() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
    )


async def get_current_user_id(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    session: AsyncSession = Depends(db_session),
) -> int:
    """
    Return the authenticated ``user_id`` from the session cookie, or from a
    Bearer token for non-browser clients. Raises 401 when neither is valid.

    A cookie issued before the user's last logout no longer matches
    ``User.session_version`` and is discarded.
    """
    user_id = request.session.get(SESSION_USER_KEY)
    if user_id is not None:
        user = await session.get(User, int(user_id))
        if user is not None and user.session_version == request.session.get(SESSION_VERSION_KEY):
            return user.id
        request.session.clear()

    if credentials is not None:
        from auth.jwt import verify_token

        return verify_token(credentials.credentials)

    raise _not_authenticated()


async def get_current_user(
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> User:
    """Load the authenticated ``User``; a stale session for a deleted user is a 401."""
    user = await session.get(User, user_id)
    if user is None:
        raise _not_authenticated()
    return user
