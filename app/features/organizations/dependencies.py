"""
Organization lookups and the organization-context dependency.

Storage reads return None on absence; the dependency turns absence into the
matching denial.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Annotated, Iterable, Optional
from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import Request

from app.core.database.engine import get_db
from app.core.errors import MembershipRequired, MissingOrganization, OrganizationNotFound
from app.features.organizations.models import (
    EXCLUDED_MEMBERSHIP_STATUSES,
    Organization,
    OrganizationMember,
    OrgRole,
)
from app.features.permissions.matrix import PermissionMatrix
from app.features.permissions.resolver import effective_matrix, is_manager
from app.features.users.dependencies import get_current_user
from app.features.users.schemas import AuthenticatedUser
from app.utils import get_logger


log = get_logger(__name__)

ORGANIZATION_HEADER = "x-organization-id"


# ============================================================================
# Storage reads
# ============================================================================

async def find_organization_by_id(db: AsyncSession, organization_id: str) -> Optional[Organization]:
    result = await db.execute(select(Organization).where(Organization.id == organization_id))
    return result.scalar_one_or_none()


async def find_active_membership(
    db: AsyncSession,
    organization_id: str,
    user_id: str
) -> Optional[OrganizationMember]:
    """
    Membership of `user_id` in `organization_id` that counts for authorization.

    Inactive and deactivated rows are excluded. The org role is eager-loaded.
    """
    result = await db.execute(
        select(OrganizationMember).where(
            OrganizationMember.organization_id == organization_id,
            OrganizationMember.user_id == user_id,
            OrganizationMember.status.not_in(EXCLUDED_MEMBERSHIP_STATUSES),
        )
    )
    return result.scalars().first()


async def find_default_membership_for_user(db: AsyncSession, user_id: str) -> Optional[OrganizationMember]:
    """The membership used when a request names no organization."""
    result = await db.execute(
        select(OrganizationMember).where(
            OrganizationMember.user_id == user_id,
            OrganizationMember.status.not_in(EXCLUDED_MEMBERSHIP_STATUSES),
        )
    )
    return resolve_default_membership(result.scalars().all())


async def find_org_role(db: AsyncSession, organization_id: str, org_role_id: str) -> Optional[OrgRole]:
    result = await db.execute(
        select(OrgRole).where(OrgRole.id == org_role_id, OrgRole.organization_id == organization_id)
    )
    return result.scalar_one_or_none()


def resolve_default_membership(memberships: Iterable[OrganizationMember]) -> Optional[OrganizationMember]:
    """
    Pick a user's default membership.

    Among memberships that count for authorization, prefer organization
    admins, then the earliest created, then the lowest id. Returns None if
    none qualify.
    """
    candidates = [m for m in memberships if m.status not in EXCLUDED_MEMBERSHIP_STATUSES]
    if not candidates:
        return None
    return min(
        candidates,
        key=lambda m: (not m.is_org_admin, m.created_at or datetime.max, m.id),
    )


# ============================================================================
# Organization context
# ============================================================================

@dataclass(frozen=True)
class OrganizationContext:
    """Organization a request acts on, resolved once per request."""
    organization: Organization
    organization_id: str
    membership: Optional[OrganizationMember]
    org_role: Optional[OrgRole]
    permission_matrix: PermissionMatrix


def get_organization_id_from_path_or_header(request: Request) -> Optional[str]:
    return request.path_params.get("organization_id") or request.headers.get(ORGANIZATION_HEADER)


async def resolve_organization_context(
    request: Request,
    user: Annotated[AuthenticatedUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
) -> OrganizationContext:
    """
    Resolve the organization named by the request and the caller's place in it.

    Raises:
        MissingOrganization: 400 if neither path nor header names an organization
        OrganizationNotFound: 404 if the organization does not exist
        MembershipRequired: 403 if the caller is neither a member nor a manager
    """
    organization_id = get_organization_id_from_path_or_header(request)
    if not organization_id:
        raise MissingOrganization()

    organization = await find_organization_by_id(db, organization_id)
    if organization is None:
        raise OrganizationNotFound()

    membership = await find_active_membership(db, organization_id, user.id)
    if membership is None and not is_manager(user):
        log.info(f"User {user.id} has no access to organization {organization_id}")
        raise MembershipRequired("User does not have access to this organization")

    context = OrganizationContext(
        organization=organization,
        organization_id=organization_id,
        membership=membership,
        org_role=membership.org_role if membership else None,
        permission_matrix=effective_matrix(user, membership),
    )
    request.state.organization_context = context
    return context
