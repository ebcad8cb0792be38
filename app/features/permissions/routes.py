"""
Permission resolution API routes.

Read-only views of the tool catalog and of the caller's effective matrix.
"""
from typing import Annotated, Optional
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.organizations.dependencies import find_active_membership
from app.features.permissions.dependencies import resolve_permission_matrix
from app.features.permissions.matrix import (
    ACTIONS,
    ADMIN_SENTINELS,
    LEGACY_PERMISSION_MAP,
    TOOL_KEYS,
    has_permission,
)
from app.features.permissions.resolver import effective_matrix, is_manager
from app.features.permissions.schemas import (
    EffectivePermissionsResponse,
    LegacyPermissionEntry,
    PermissionCheckRequest,
    PermissionCheckResponse,
    RequiredPermission,
    ToolCatalogResponse,
)
from app.features.users.dependencies import get_current_user
from app.features.users.schemas import AuthenticatedUser
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


@router.get("/tools", response_model=ToolCatalogResponse)
async def list_tools():
    """Known tool keys, actions, and how legacy permission tokens translate."""
    return ToolCatalogResponse(
        tools=list(TOOL_KEYS),
        actions=list(ACTIONS),
        admin_sentinels=sorted(ADMIN_SENTINELS),
        legacy_permissions=[
            LegacyPermissionEntry(token=token, tool=tool, action=action)
            for token, (tool, action) in sorted(LEGACY_PERMISSION_MAP.items())
        ],
    )


@router.get("/me", response_model=EffectivePermissionsResponse)
async def get_my_permissions(
    request: Request,
    user: Annotated[AuthenticatedUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    organization_id: Optional[str] = None
):
    """
    The matrix tool guards would use for the caller.

    `organization_id` (query or x-organization-id header) selects the
    organization; without it the default membership is used.
    """
    authorization = await resolve_permission_matrix(request, user, db)
    return EffectivePermissionsResponse(
        user_id=user.id,
        organization_id=authorization.organization_id,
        is_manager=is_manager(user),
        permissions=authorization.permission_matrix.to_dict(),
    )


@router.post("/check", response_model=PermissionCheckResponse)
async def check_permission(
    check: PermissionCheckRequest,
    request: Request,
    user: Annotated[AuthenticatedUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Check whether the caller holds a tool permission, without acting on it."""
    required = RequiredPermission(tool=check.tool, action=check.action)
    if check.tool not in TOOL_KEYS or check.action not in ACTIONS:
        return PermissionCheckResponse(has_permission=False, reason="unknown_tool_or_action", required=required)

    if check.organization_id:
        membership = await find_active_membership(db, check.organization_id, user.id)
        matrix = effective_matrix(user, membership)
    else:
        authorization = await resolve_permission_matrix(request, user, db)
        membership = authorization.membership
        matrix = authorization.permission_matrix

    granted = has_permission(matrix, check.tool, check.action)
    if granted:
        reason = "manager" if is_manager(user) else "granted"
    elif check.organization_id and membership is None:
        reason = "not_a_member"
    else:
        reason = "insufficient_permissions"

    log.debug(f"Permission check for user {user.id}: {check.tool}:{check.action} -> {reason}")
    return PermissionCheckResponse(has_permission=granted, reason=reason, required=required)
