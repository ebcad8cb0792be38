"""
User feature routes.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.permissions.resolver import is_manager, system_matrix
from app.features.permissions.schemas import SystemPermissionsResponse
from app.features.users.models import User
from app.features.users.schemas import AuthenticatedUser, UserResponse, UserPublic, UserUpdate
from app.features.users.dependencies import get_current_user, get_current_user_record


router = APIRouter()


@router.get("/me", response_model=UserResponse)
async def get_current_user_profile(
    user: Annotated[User, Depends(get_current_user_record)]
):
    """Get current authenticated user's profile."""
    return user


@router.patch("/me", response_model=UserResponse)
async def update_current_user_profile(
    update_data: UserUpdate,
    user: Annotated[User, Depends(get_current_user_record)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Update current user's profile."""
    if update_data.name is not None:
        user.name = update_data.name

    await db.commit()
    await db.refresh(user)
    return user


@router.get("/me/system-permissions", response_model=SystemPermissionsResponse)
async def get_my_system_permissions(
    user: Annotated[AuthenticatedUser, Depends(get_current_user)]
):
    """Matrix granted by the caller's system roles, without any organization."""
    return SystemPermissionsResponse(
        user_id=user.id,
        roles=[role.name for role in user.roles],
        is_manager=is_manager(user),
        permissions=system_matrix(user).to_dict(),
    )


@router.get("/{user_id}", response_model=UserPublic)
async def get_user_by_id(
    user_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    _user: Annotated[AuthenticatedUser, Depends(get_current_user)]
):
    """Get public user profile by ID."""
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    return user
