"""
Authorization guards.

Implements:
- require_organization_member / require_organization_manager for routes
  under /organizations/{organization_id}
- require_tool_permission(tool, action) for routes without an organization
  segment, which resolve the organization opportunistically
"""
from dataclasses import dataclass
from typing import Annotated, Optional
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import Request

from app.core.database.engine import get_db
from app.core.errors import InsufficientPermission, MembershipRequired, Unauthenticated
from app.features.organizations.dependencies import (
    ORGANIZATION_HEADER,
    OrganizationContext,
    find_active_membership,
    find_default_membership_for_user,
    resolve_organization_context,
)
from app.features.organizations.models import OrganizationMember
from app.features.permissions.matrix import PermissionMatrix, has_permission
from app.features.permissions.resolver import effective_matrix, is_manager
from app.features.users.dependencies import get_current_user, get_optional_user
from app.features.users.schemas import AuthenticatedUser
from app.utils import get_logger


log = get_logger(__name__)

ORGANIZATION_FIELD = "organization_id"
_BODY_METHODS = {"POST", "PUT", "PATCH"}


# ============================================================================
# Organization-scoped guards
# ============================================================================

async def require_organization_member(
    user: Annotated[AuthenticatedUser, Depends(get_current_user)],
    context: Annotated[OrganizationContext, Depends(resolve_organization_context)]
) -> OrganizationContext:
    """Pass members of the organization and system managers."""
    if context.membership is not None or is_manager(user):
        return context
    raise MembershipRequired()


async def require_organization_manager(
    user: Annotated[AuthenticatedUser, Depends(get_current_user)],
    context: Annotated[OrganizationContext, Depends(resolve_organization_context)]
) -> OrganizationContext:
    """
    Pass system managers and holders of organization_management:edit.

    Organization admins pass because their membership grants the full matrix.
    """
    if is_manager(user) or has_permission(context.permission_matrix, "organization_management", "edit"):
        return context

    log.info(f"User {user.id} denied organization management in {context.organization_id}")
    raise InsufficientPermission(
        "organization_management",
        "edit",
        message="Organization management edit permission is required for this action",
    )


# ============================================================================
# Tool permission guard
# ============================================================================

@dataclass(frozen=True)
class ToolAuthorization:
    """Outcome of a passed tool permission check."""
    user: AuthenticatedUser
    organization_id: Optional[str]
    membership: Optional[OrganizationMember]
    permission_matrix: PermissionMatrix


async def get_organization_id_from_request(request: Request) -> Optional[str]:
    """
    Organization id named by the request.

    Preference: path parameter, x-organization-id header, query parameter,
    JSON body field.
    """
    organization_id = (
        request.path_params.get(ORGANIZATION_FIELD)
        or request.headers.get(ORGANIZATION_HEADER)
        or request.query_params.get(ORGANIZATION_FIELD)
    )
    if organization_id:
        return organization_id

    if request.method not in _BODY_METHODS:
        return None
    if not request.headers.get("content-type", "").startswith("application/json"):
        return None
    try:
        body = await request.json()
    except ValueError:
        # Malformed bodies are rejected by request validation, not here
        return None
    if isinstance(body, dict) and body.get(ORGANIZATION_FIELD):
        return str(body[ORGANIZATION_FIELD])
    return None


async def resolve_request_membership(
    request: Request,
    user: AuthenticatedUser,
    db: AsyncSession
) -> tuple[Optional[str], Optional[OrganizationMember]]:
    """
    Membership a tool check should use.

    1. The organization context already resolved for this request
    2. The active membership in the organization the request names
    3. The caller's default membership, only when no organization is named
    """
    context: Optional[OrganizationContext] = getattr(request.state, "organization_context", None)
    if context is not None and context.membership is not None:
        return context.organization_id, context.membership

    organization_id = await get_organization_id_from_request(request)
    if organization_id:
        return organization_id, await find_active_membership(db, organization_id, user.id)

    membership = await find_default_membership_for_user(db, user.id)
    return (membership.organization_id if membership else None), membership


async def resolve_permission_matrix(
    request: Request,
    user: AuthenticatedUser,
    db: AsyncSession
) -> ToolAuthorization:
    """Effective matrix for the caller in the organization this request resolves to."""
    organization_id, membership = await resolve_request_membership(request, user, db)
    matrix = effective_matrix(user, membership)
    request.state.permission_matrix = matrix
    return ToolAuthorization(
        user=user,
        organization_id=organization_id,
        membership=membership,
        permission_matrix=matrix,
    )


def require_tool_permission(tool: str, action: str = "view"):
    """
    FastAPI dependency requiring a tool permission.

    Usage:
        @router.post("/legislations")
        async def create_legislation(
            auth: ToolAuthorization = Depends(require_tool_permission("legislation", "edit"))
        ):
            ...

    Raises:
        Unauthenticated: 401 if there is no authenticated user
        InsufficientPermission: 403 with `required: {tool, action}` if denied
    """
    async def tool_permission_dependency(
        request: Request,
        db: Annotated[AsyncSession, Depends(get_db)],
        user: Annotated[Optional[AuthenticatedUser], Depends(get_optional_user)]
    ) -> ToolAuthorization:
        if user is None:
            raise Unauthenticated()

        authorization = await resolve_permission_matrix(request, user, db)
        if not has_permission(authorization.permission_matrix, tool, action):
            log.info(
                f"User {user.id} denied {tool}:{action} "
                f"(organization {authorization.organization_id})"
            )
            raise InsufficientPermission(tool, action)

        log.debug(f"User {user.id} granted {tool}:{action}")
        return authorization

    return tool_permission_dependency
