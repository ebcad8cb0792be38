"""
Organization feature routes.

Routes under /{organization_id} resolve the organization context first; reads
require membership (or a system manager), writes require organization
management.
"""
import secrets
from datetime import datetime, timedelta, timezone
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError

from app.core.database.engine import get_db
from app.features.organizations.dependencies import OrganizationContext, find_org_role
from app.features.organizations.models import (
    EXCLUDED_MEMBERSHIP_STATUSES,
    Invitation,
    InvitationStatus,
    MembershipStatus,
    Organization,
    OrganizationMember,
    OrgRole,
    SetupStatus,
)
from app.features.organizations.schemas import (
    BulkInviteRequest,
    BulkInviteResponse,
    BulkInviteResult,
    ChangeMemberRole,
    MemberCreate,
    MemberResponse,
    MemberUpdate,
    MyOrganizationPermissionsResponse,
    MyOrganizationResponse,
    OrganizationCreate,
    OrganizationResponse,
    OrganizationUpdate,
    OrgRoleCreate,
    OrgRoleResponse,
    OrgRoleSummary,
    OrgRoleUpdate,
    PermissionsMatrixUpdate,
    SetupStatusResponse,
    SetupStatusUpdate,
)
from app.features.organizations.utils import (
    ensure_default_org_roles,
    log_org_audit,
    snapshot,
    stored_permissions,
)
from app.features.permissions.dependencies import (
    ToolAuthorization,
    require_organization_manager,
    require_organization_member,
    require_tool_permission,
)
from app.features.permissions.matrix import permission_schema_version
from app.features.permissions.resolver import is_manager
from app.features.users.dependencies import get_current_user
from app.features.users.models import User
from app.features.users.schemas import AuthenticatedUser
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()

INVITATION_TTL = timedelta(days=7)


def serialize_org_role(role: OrgRole) -> OrgRoleResponse:
    return OrgRoleResponse(
        id=role.id,
        organization_id=role.organization_id,
        name=role.name,
        permissions=stored_permissions(role.permissions),
        permission_schema_version=role.permission_schema_version,
        is_system=role.is_system,
        is_active=role.is_active,
        created_at=role.created_at,
        updated_at=role.updated_at,
    )


async def get_member_or_404(db: AsyncSession, organization_id: str, member_id: str) -> OrganizationMember:
    result = await db.execute(
        select(OrganizationMember).where(
            OrganizationMember.id == member_id,
            OrganizationMember.organization_id == organization_id,
        )
    )
    member = result.scalar_one_or_none()
    if member is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Member not found")
    return member


async def get_org_role_or_404(db: AsyncSession, organization_id: str, org_role_id: str) -> OrgRole:
    role = await find_org_role(db, organization_id, org_role_id)
    if role is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Role not found")
    return role


def require_org_admin_grant(user: AuthenticatedUser, context: OrganizationContext) -> None:
    """
    Only system managers and organization admins may grant or revoke organization admin.

    Raises:
        HTTPException: 403 otherwise, even for callers with organization_management:edit
    """
    if is_manager(user) or (context.membership is not None and context.membership.is_org_admin):
        return
    log.info(f"User {user.id} may not change organization admin in {context.organization_id}")
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Only organization admins can grant or revoke organization admin",
    )


def apply_setup_status(organization: Organization, setup_status: SetupStatus) -> None:
    """Set the setup status and stamp when it was completed or skipped."""
    organization.setup_status = setup_status.value
    if setup_status == SetupStatus.COMPLETED:
        organization.setup_completed_at = datetime.now(timezone.utc)
    elif setup_status == SetupStatus.SKIPPED:
        organization.setup_skipped_at = datetime.now(timezone.utc)


# ============================================================================
# Organizations
# ============================================================================

@router.get("/", response_model=list[MyOrganizationResponse])
async def list_my_organizations(
    user: Annotated[AuthenticatedUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Organizations the caller has a membership in, newest first."""
    result = await db.execute(
        select(OrganizationMember)
        .where(OrganizationMember.user_id == user.id)
        .order_by(OrganizationMember.created_at.desc())
    )
    return [
        MyOrganizationResponse(
            id=membership.organization.id,
            name=membership.organization.name,
            setup_status=membership.organization.setup_status,
            member_status=membership.status,
            is_org_admin=membership.is_org_admin,
            role_id=membership.org_role_id,
        )
        for membership in result.scalars().all()
        if membership.organization is not None
    ]


@router.post("/", response_model=OrganizationResponse, status_code=status.HTTP_201_CREATED)
async def create_organization(
    org_data: OrganizationCreate,
    authorization: Annotated[ToolAuthorization, Depends(require_tool_permission("organization_management", "edit"))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """
    Create an organization.

    The creator becomes an active organization admin and the default org roles are seeded.
    """
    user = authorization.user
    values = org_data.model_dump()
    if not values.get("primary_contact_email"):
        values["primary_contact_email"] = user.email

    organization = Organization(**values, created_by=user.id, updated_by=user.id)
    db.add(organization)
    await db.flush()

    db.add(OrganizationMember(
        organization_id=organization.id,
        user_id=user.id,
        status=MembershipStatus.ACTIVE.value,
        is_org_admin=True,
        invited_by=user.id,
        invited_at=datetime.now(timezone.utc),
    ))
    await ensure_default_org_roles(db, organization.id)

    await log_org_audit(
        db,
        organization_id=organization.id,
        actor_user_id=user.id,
        entity_type="organization",
        entity_id=organization.id,
        action="created",
        message=f"Organization {organization.name} created",
        new_values=snapshot(organization),
    )
    await db.commit()
    await db.refresh(organization)

    log.info(f"User {user.id} created organization {organization.id}")
    return organization


@router.get("/{organization_id}", response_model=OrganizationResponse)
async def get_organization_profile(
    context: Annotated[OrganizationContext, Depends(require_organization_member)]
):
    """Organization profile."""
    return context.organization


@router.put("/{organization_id}", response_model=OrganizationResponse)
async def update_organization_profile(
    update_data: OrganizationUpdate,
    context: Annotated[OrganizationContext, Depends(require_organization_manager)],
    user: Annotated[AuthenticatedUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Update the organization profile (organization managers only)."""
    organization = context.organization
    previous = snapshot(organization)

    for key, value in update_data.model_dump(exclude_unset=True).items():
        # name and setup_status are not nullable
        if key in ("name", "setup_status") and value is None:
            continue
        if key == "setup_status":
            apply_setup_status(organization, value)
            continue
        setattr(organization, key, value)
    organization.updated_by = user.id

    await log_org_audit(
        db,
        organization_id=organization.id,
        actor_user_id=user.id,
        entity_type="organization",
        entity_id=organization.id,
        action="updated",
        message=f"Organization {organization.name} profile updated",
        previous_values=previous,
        new_values=snapshot(organization),
    )
    await db.commit()
    await db.refresh(organization)
    return organization


@router.get("/{organization_id}/setup-status", response_model=SetupStatusResponse)
async def get_setup_status(
    context: Annotated[OrganizationContext, Depends(require_organization_member)]
):
    return context.organization


@router.put("/{organization_id}/setup-status", response_model=SetupStatusResponse)
async def update_setup_status(
    setup_update: SetupStatusUpdate,
    context: Annotated[OrganizationContext, Depends(require_organization_manager)],
    user: Annotated[AuthenticatedUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Move the organization through onboarding (not_started, in_progress, completed, skipped)."""
    organization = context.organization
    previous = snapshot(organization)

    apply_setup_status(organization, setup_update.setup_status)
    organization.updated_by = user.id

    await log_org_audit(
        db,
        organization_id=organization.id,
        actor_user_id=user.id,
        entity_type="organization",
        entity_id=organization.id,
        action="setup_status_changed",
        message=f"Organization setup status changed to {organization.setup_status}",
        previous_values=previous,
        new_values=snapshot(organization),
    )
    await db.commit()
    await db.refresh(organization)
    return organization


@router.get("/{organization_id}/permissions/me", response_model=MyOrganizationPermissionsResponse)
async def get_my_organization_permissions(
    context: Annotated[OrganizationContext, Depends(require_organization_member)],
    user: Annotated[AuthenticatedUser, Depends(get_current_user)]
):
    """The caller's merged (system + organization) permission matrix."""
    membership = context.membership
    return MyOrganizationPermissionsResponse(
        organization_id=context.organization_id,
        role=OrgRoleSummary.model_validate(context.org_role) if context.org_role else None,
        is_org_admin=bool(membership and membership.is_org_admin),
        is_manager=is_manager(user),
        permissions=context.permission_matrix.to_dict(),
    )


# ============================================================================
# Org roles
# ============================================================================

@router.get("/{organization_id}/org-roles", response_model=list[OrgRoleResponse])
async def list_org_roles(
    context: Annotated[OrganizationContext, Depends(require_organization_member)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Org roles of the organization, oldest first, with normalized permissions."""
    result = await db.execute(
        select(OrgRole)
        .where(OrgRole.organization_id == context.organization_id)
        .order_by(OrgRole.created_at.asc(), OrgRole.name.asc())
    )
    return [serialize_org_role(role) for role in result.scalars().all()]


@router.post("/{organization_id}/org-roles", response_model=OrgRoleResponse, status_code=status.HTTP_201_CREATED)
async def create_org_role(
    role_data: OrgRoleCreate,
    context: Annotated[OrganizationContext, Depends(require_organization_manager)],
    user: Annotated[AuthenticatedUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Create an org role. Permissions are normalized to a matrix before storage."""
    existing = await db.scalar(
        select(OrgRole).where(
            OrgRole.organization_id == context.organization_id,
            OrgRole.name == role_data.name,
        )
    )
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Role with this name already exists")

    permissions = stored_permissions(role_data.permissions)
    role = OrgRole(
        organization_id=context.organization_id,
        name=role_data.name,
        permissions=permissions,
        permission_schema_version=permission_schema_version(permissions),
        is_system=role_data.is_system,
        is_active=True,
    )
    db.add(role)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Role with this name already exists")

    await log_org_audit(
        db,
        organization_id=context.organization_id,
        actor_user_id=user.id,
        entity_type="org_role",
        entity_id=role.id,
        action="created",
        message=f"Organization role {role.name} created",
        new_values=snapshot(role),
    )
    await db.commit()
    await db.refresh(role)
    return serialize_org_role(role)


@router.put("/{organization_id}/org-roles/permissions-matrix", response_model=list[OrgRoleResponse])
async def update_permissions_matrix(
    matrix_update: PermissionsMatrixUpdate,
    context: Annotated[OrganizationContext, Depends(require_organization_manager)],
    user: Annotated[AuthenticatedUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Replace the permissions of several org roles. Unknown role ids are skipped."""
    updated = []
    for item in matrix_update.roles:
        role = await find_org_role(db, context.organization_id, item.id)
        if role is None:
            log.debug(f"Skipping unknown org role {item.id} in organization {context.organization_id}")
            continue

        previous = snapshot(role)
        role.permissions = stored_permissions(item.permissions)
        role.permission_schema_version = permission_schema_version(role.permissions)

        await log_org_audit(
            db,
            organization_id=context.organization_id,
            actor_user_id=user.id,
            entity_type="org_role",
            entity_id=role.id,
            action="permissions_matrix_updated",
            message=f"Permissions matrix updated for role {role.name}",
            previous_values=previous,
            new_values=snapshot(role),
        )
        updated.append(role)

    await db.commit()
    for role in updated:
        await db.refresh(role)
    return [serialize_org_role(role) for role in updated]


@router.put("/{organization_id}/org-roles/{org_role_id}", response_model=OrgRoleResponse)
async def update_org_role(
    org_role_id: str,
    role_update: OrgRoleUpdate,
    context: Annotated[OrganizationContext, Depends(require_organization_manager)],
    user: Annotated[AuthenticatedUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Rename, re-permission, or (de)activate an org role."""
    role = await get_org_role_or_404(db, context.organization_id, org_role_id)
    previous = snapshot(role)

    update_data = role_update.model_dump(exclude_unset=True)
    if update_data.get("name") is not None:
        role.name = update_data["name"].strip()
    if "permissions" in update_data:
        role.permissions = stored_permissions(update_data["permissions"])
        role.permission_schema_version = permission_schema_version(role.permissions)
    if update_data.get("is_active") is not None:
        role.is_active = update_data["is_active"]

    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Role with this name already exists")

    await log_org_audit(
        db,
        organization_id=context.organization_id,
        actor_user_id=user.id,
        entity_type="org_role",
        entity_id=role.id,
        action="updated",
        message=f"Organization role {role.name} updated",
        previous_values=previous,
        new_values=snapshot(role),
    )
    await db.commit()
    await db.refresh(role)
    return serialize_org_role(role)


@router.delete("/{organization_id}/org-roles/{org_role_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_org_role(
    org_role_id: str,
    context: Annotated[OrganizationContext, Depends(require_organization_manager)],
    user: Annotated[AuthenticatedUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Delete an org role. Members holding it are left without a role."""
    role = await get_org_role_or_404(db, context.organization_id, org_role_id)
    previous = snapshot(role)

    await db.execute(
        update(OrganizationMember)
        .where(OrganizationMember.org_role_id == role.id)
        .values(org_role_id=None)
        .execution_options(synchronize_session=False)
    )
    await db.delete(role)

    await log_org_audit(
        db,
        organization_id=context.organization_id,
        actor_user_id=user.id,
        entity_type="org_role",
        entity_id=previous["id"],
        action="deleted",
        message=f"Organization role {previous['name']} deleted",
        previous_values=previous,
    )
    await db.commit()


# ============================================================================
# Members
# ============================================================================

@router.get("/{organization_id}/members", response_model=list[MemberResponse])
async def list_members(
    context: Annotated[OrganizationContext, Depends(require_organization_member)],
    db: Annotated[AsyncSession, Depends(get_db)],
    member_status: Annotated[MembershipStatus | None, Query(alias="status")] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200)
):
    """Members of the organization, optionally filtered by status."""
    query = select(OrganizationMember).where(OrganizationMember.organization_id == context.organization_id)
    if member_status is not None:
        query = query.where(OrganizationMember.status == member_status.value)
    query = query.order_by(OrganizationMember.created_at.asc()).offset(skip).limit(limit)

    result = await db.execute(query)
    return result.scalars().all()


@router.post("/{organization_id}/members", response_model=MemberResponse, status_code=status.HTTP_201_CREATED)
async def add_member(
    member_data: MemberCreate,
    context: Annotated[OrganizationContext, Depends(require_organization_manager)],
    user: Annotated[AuthenticatedUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Add an existing user to the organization. Granting organization admin needs an org admin."""
    if member_data.is_org_admin:
        require_org_admin_grant(user, context)

    target = await db.scalar(select(User).where(User.id == member_data.user_id))
    if target is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    existing = await db.scalar(
        select(OrganizationMember).where(
            OrganizationMember.organization_id == context.organization_id,
            OrganizationMember.user_id == member_data.user_id,
        )
    )
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User is already a member of this organization")

    if member_data.org_role_id:
        await get_org_role_or_404(db, context.organization_id, member_data.org_role_id)

    member = OrganizationMember(
        organization_id=context.organization_id,
        user_id=member_data.user_id,
        org_role_id=member_data.org_role_id,
        status=member_data.status.value,
        is_org_admin=member_data.is_org_admin,
        invited_by=user.id,
        invited_at=datetime.now(timezone.utc),
    )
    db.add(member)
    await db.flush()

    await log_org_audit(
        db,
        organization_id=context.organization_id,
        actor_user_id=user.id,
        entity_type="member",
        entity_id=member.id,
        action="created",
        message=f"User {target.email} added to organization",
        new_values=snapshot(member),
    )
    await db.commit()
    await db.refresh(member)
    return member


@router.get("/{organization_id}/members/{member_id}", response_model=MemberResponse)
async def get_member(
    member_id: str,
    context: Annotated[OrganizationContext, Depends(require_organization_member)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    return await get_member_or_404(db, context.organization_id, member_id)


@router.put("/{organization_id}/members/{member_id}", response_model=MemberResponse)
async def update_member(
    member_id: str,
    member_update: MemberUpdate,
    context: Annotated[OrganizationContext, Depends(require_organization_manager)],
    user: Annotated[AuthenticatedUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """
    Update a member's status, org role or organization admin flag.

    Only provided fields change; a null `org_role_id` clears the role.
    """
    member = await get_member_or_404(db, context.organization_id, member_id)
    changes = member_update.model_dump(exclude_unset=True)

    is_org_admin = changes.get("is_org_admin")
    if is_org_admin is not None and is_org_admin != member.is_org_admin:
        require_org_admin_grant(user, context)
    if changes.get("org_role_id"):
        await get_org_role_or_404(db, context.organization_id, changes["org_role_id"])

    previous = snapshot(member)
    if "org_role_id" in changes:
        member.org_role_id = changes["org_role_id"]
    if is_org_admin is not None:
        member.is_org_admin = is_org_admin
    if changes.get("status") is not None:
        member.status = changes["status"].value
        if changes["status"] == MembershipStatus.DEACTIVATED:
            member.deactivated_at = datetime.now(timezone.utc)
        else:
            member.deactivated_at = None

    await log_org_audit(
        db,
        organization_id=context.organization_id,
        actor_user_id=user.id,
        entity_type="member",
        entity_id=member.id,
        action="updated",
        message="Member updated",
        previous_values=previous,
        new_values=snapshot(member),
    )
    await db.commit()
    await db.refresh(member)
    return member


@router.post("/{organization_id}/members/{member_id}/change-role", response_model=MemberResponse)
async def change_member_role(
    member_id: str,
    role_change: ChangeMemberRole,
    context: Annotated[OrganizationContext, Depends(require_organization_manager)],
    user: Annotated[AuthenticatedUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Assign an org role of this organization to a member, or clear it."""
    member = await get_member_or_404(db, context.organization_id, member_id)
    if role_change.org_role_id:
        await get_org_role_or_404(db, context.organization_id, role_change.org_role_id)

    previous = snapshot(member)
    member.org_role_id = role_change.org_role_id

    await log_org_audit(
        db,
        organization_id=context.organization_id,
        actor_user_id=user.id,
        entity_type="member",
        entity_id=member.id,
        action="role_changed",
        message="Member role changed",
        previous_values=previous,
        new_values=snapshot(member),
    )
    await db.commit()
    await db.refresh(member)
    return member


@router.post("/{organization_id}/members/{member_id}/deactivate", response_model=MemberResponse)
async def deactivate_member(
    member_id: str,
    context: Annotated[OrganizationContext, Depends(require_organization_manager)],
    user: Annotated[AuthenticatedUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Deactivate a membership. Deactivated members no longer count for authorization."""
    member = await get_member_or_404(db, context.organization_id, member_id)
    previous = snapshot(member)

    member.status = MembershipStatus.DEACTIVATED.value
    member.deactivated_at = datetime.now(timezone.utc)

    await log_org_audit(
        db,
        organization_id=context.organization_id,
        actor_user_id=user.id,
        entity_type="member",
        entity_id=member.id,
        action="deactivated",
        message="Member deactivated",
        previous_values=previous,
        new_values=snapshot(member),
    )
    await db.commit()
    await db.refresh(member)
    return member


# ============================================================================
# Invitations
# ============================================================================

@router.post("/{organization_id}/invitations/bulk", response_model=BulkInviteResponse, status_code=status.HTTP_201_CREATED)
async def invite_bulk(
    invite_data: BulkInviteRequest,
    context: Annotated[OrganizationContext, Depends(require_organization_manager)],
    user: Annotated[AuthenticatedUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """
    Invite several people at once.

    Each row gets a `pending_invite` membership and a pending invitation.
    Unknown emails get a user record; repeated emails are counted once.
    Rows fail individually (missing email, unknown role, already a member)
    without failing the request.
    """
    if not invite_data.rows:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="rows array is required")

    seen_emails = set()
    duplicate_count = 0
    results = []

    for row in invite_data.rows:
        email = row.email.lower() if row.email else None
        if email is None:
            results.append(BulkInviteResult(success=False, email="", error="Email is required"))
            continue
        if email in seen_emails:
            duplicate_count += 1
            continue
        seen_emails.add(email)

        if row.org_role_id and await find_org_role(db, context.organization_id, row.org_role_id) is None:
            results.append(BulkInviteResult(success=False, email=email, error="Role not found"))
            continue

        invitee = await db.scalar(select(User).where(User.email == email))
        if invitee is None:
            invitee = User(email=email, name=row.name or email.split("@")[0])
            db.add(invitee)
            await db.flush()

        member = await db.scalar(
            select(OrganizationMember).where(
                OrganizationMember.organization_id == context.organization_id,
                OrganizationMember.user_id == invitee.id,
            )
        )
        if member is not None and member.status not in EXCLUDED_MEMBERSHIP_STATUSES:
            results.append(BulkInviteResult(
                success=False,
                email=email,
                member_id=member.id,
                error="User is already a member of this organization",
            ))
            continue

        if member is None:
            member = OrganizationMember(organization_id=context.organization_id, user_id=invitee.id)
            db.add(member)
        member.status = MembershipStatus.PENDING_INVITE.value
        member.org_role_id = row.org_role_id or member.org_role_id
        member.invited_by = user.id
        member.invited_at = datetime.now(timezone.utc)
        member.deactivated_at = None
        await db.flush()

        invitation = Invitation(
            organization_id=context.organization_id,
            email=email,
            status=InvitationStatus.PENDING.value,
            invite_token=secrets.token_hex(24),
            expires_at=datetime.now(timezone.utc) + INVITATION_TTL,
            invited_by=user.id,
            details={"member_id": member.id, "org_role_id": member.org_role_id},
        )
        db.add(invitation)
        await db.flush()

        await log_org_audit(
            db,
            organization_id=context.organization_id,
            actor_user_id=user.id,
            entity_type="invitation",
            entity_id=invitation.id,
            action="created",
            message=f"Invitation created for {email}",
            new_values=snapshot(invitation),
        )
        results.append(BulkInviteResult(success=True, email=email, member_id=member.id, invitation_id=invitation.id))

    await db.commit()

    success_count = sum(1 for result in results if result.success)
    log.info(f"User {user.id} invited {success_count} people to organization {context.organization_id}")
    return BulkInviteResponse(
        success_count=success_count,
        failed_count=len(results) - success_count,
        duplicate_count=duplicate_count,
        results=results,
    )
