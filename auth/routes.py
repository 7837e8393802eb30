"""
Auth API routes — register, login, logout, me.

Route prefix: /api/auth
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from auth.dependencies import SESSION_USER_KEY, SESSION_VERSION_KEY, db_session, get_current_user
from auth.jwt import create_token
from auth.password import hash_password, verify_password
from database.models import User, default_preferences
from utils.schemas import LoginRequest, RegisterRequest, UserOut, dump

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


def _login(request: Request, user: User) -> Dict[str, Any]:
    request.session.clear()
    request.session[SESSION_USER_KEY] = user.id
    request.session[SESSION_VERSION_KEY] = user.session_version or 0
    payload = dump(UserOut, user)
    payload["token"] = create_token(user.id)
    return payload


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    req: RegisterRequest,
    request: Request,
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    """Register a new user and log them in."""
    result = await session.execute(
        select(User).where(or_(User.username == req.username, User.email == req.email))
    )
    if result.scalars().first() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Username already exists",
        )

    user = User(
        username=req.username,
        email=req.email,
        display_name=req.display_name or req.username,
        profile_image=req.profile_image,
        password_hash=hash_password(req.password),
        preferences=default_preferences(),
        session_version=0,
    )
    session.add(user)
    await session.flush()

    logger.info("Registered user %s (%s)", user.username, user.id)
    return _login(request, user)


@router.post("/login")
async def login(
    req: LoginRequest,
    request: Request,
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    """Login with username + password."""
    result = await session.execute(
        select(User).where(User.username == req.username)
    )
    user = result.scalar_one_or_none()

    if user is None or not verify_password(req.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
        )

    logger.info("Login: %s (%s)", user.username, user.id)
    return _login(request, user)


@router.post("/logout")
async def logout(
    request: Request,
    session: AsyncSession = Depends(db_session),
) -> Dict[str, str]:
    """End the session and invalidate every cookie issued to this user so far."""
    user_id = request.session.get(SESSION_USER_KEY)
    if user_id is not None:
        user = await session.get(User, int(user_id))
        if user is not None and user.session_version == request.session.get(SESSION_VERSION_KEY):
            user.session_version += 1
            logger.info("Logout: %s (%s)", user.username, user.id)
    request.session.clear()
    return {"message": "Logged out successfully"}


@router.get("/me")
async def me(user: User = Depends(get_current_user)) -> Dict[str, Any]:
    return dump(UserOut, user)
