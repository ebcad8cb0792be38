"""
FastAPI dependencies for authentication.
"""
from typing import Annotated, Optional
from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import Request

from app.core.database.engine import get_db
from app.core.errors import Unauthenticated
from app.features.users.auth import AuthProvider, build_auth_provider
from app.features.users.models import User
from app.features.users.schemas import AuthenticatedUser


def get_auth_provider(request: Request) -> AuthProvider:
    """
    Provider selected at startup.

    Falls back to building one from config when the app was not started
    through `app.main` (scripts, bare routers).
    """
    provider = getattr(request.app.state, "auth_provider", None)
    if provider is None:
        provider = build_auth_provider()
        request.app.state.auth_provider = provider
    return provider


async def get_optional_user(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    provider: Annotated[AuthProvider, Depends(get_auth_provider)],
) -> Optional[AuthenticatedUser]:
    """
    Current caller, or None for anonymous requests.

    Invalid or expired credentials still fail with 401.
    """
    user = await provider.authenticate(request, db)
    request.state.user = user
    return user


async def get_current_user(
    user: Annotated[Optional[AuthenticatedUser], Depends(get_optional_user)],
) -> AuthenticatedUser:
    """
    Require an authenticated caller.

    Usage:
        @router.get("/me")
        async def get_me(user: AuthenticatedUser = Depends(get_current_user)):
            return user
    """
    if user is None:
        raise Unauthenticated("No token provided")
    return user


async def get_current_user_record(
    user: Annotated[AuthenticatedUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """
    Database row of the current caller.

    Raises:
        Unauthenticated: If the identity has no local user (fixed identities usually don't)
    """
    result = await db.execute(select(User).where(User.id == user.id))
    record = result.scalar_one_or_none()
    if record is None:
        raise Unauthenticated("User not found")
    return record


def get_authorization_header(request) -> str:
    """
    Extract authorization header for rate limiting.
    Used with slowapi Limiter.
    """
    auth = request.headers.get("Authorization", "")
    return auth or "anonymous"
