"""
Legislation routes.

Every route is gated on the `legislation` tool: reads need view, writes need
edit. Outside system managers, callers only see legislations of the
organization they hold a membership in for this request, plus
organization-less ones. Naming an organization is not enough.
"""
from typing import Annotated, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.core.errors import MembershipRequired, OrganizationNotFound
from app.features.legislation.models import Legislation, LegislationStatus
from app.features.legislation.schemas import LegislationCreate, LegislationResponse, LegislationUpdate
from app.features.organizations.dependencies import find_active_membership, find_organization_by_id
from app.features.permissions.dependencies import ToolAuthorization, require_tool_permission
from app.features.permissions.resolver import is_manager
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()

CanView = Annotated[ToolAuthorization, Depends(require_tool_permission("legislation", "view"))]
CanEdit = Annotated[ToolAuthorization, Depends(require_tool_permission("legislation", "edit"))]


def member_organization_id(authorization: ToolAuthorization) -> Optional[str]:
    """Organization the caller is an active member of for this request, if any."""
    if authorization.membership is None:
        return None
    return authorization.membership.organization_id


def is_visible(legislation: Legislation, authorization: ToolAuthorization) -> bool:
    if is_manager(authorization.user) or legislation.organization_id is None:
        return True
    return legislation.organization_id == member_organization_id(authorization)


async def get_legislation_or_404(
    db: AsyncSession,
    legislation_id: str,
    authorization: ToolAuthorization
) -> Legislation:
    legislation = await db.get(Legislation, legislation_id)
    if legislation is None or not is_visible(legislation, authorization):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Legislation not found")
    return legislation


@router.get("", response_model=list[LegislationResponse])
async def list_legislations(
    authorization: CanView,
    db: Annotated[AsyncSession, Depends(get_db)],
    legislation_status: Annotated[LegislationStatus | None, Query(alias="status")] = None,
    organization_id: str | None = None,
    legislation_type: str | None = None,
    search: str | None = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200)
):
    """
    List legislations, most recently updated first.

    Args:
        legislation_status: Only legislations in this status
        organization_id: Only legislations of this organization
        legislation_type: Only legislations of this type
        search: Case-insensitive substring of the title
    """
    query = select(Legislation)
    if not is_manager(authorization.user):
        own_organization_id = member_organization_id(authorization)
        if own_organization_id is None:
            query = query.where(Legislation.organization_id.is_(None))
        else:
            query = query.where(or_(
                Legislation.organization_id.is_(None),
                Legislation.organization_id == own_organization_id,
            ))
    if organization_id:
        query = query.where(Legislation.organization_id == organization_id)
    if legislation_status is not None:
        query = query.where(Legislation.status == legislation_status.value)
    if legislation_type:
        query = query.where(Legislation.legislation_type == legislation_type)
    if search:
        query = query.where(Legislation.title.ilike(f"%{search}%"))

    query = query.order_by(Legislation.updated_at.desc(), Legislation.id.desc()).offset(skip).limit(limit)
    result = await db.execute(query)
    return result.scalars().all()


@router.get("/{legislation_id}", response_model=LegislationResponse)
async def get_legislation(
    legislation_id: str,
    authorization: CanView,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    return await get_legislation_or_404(db, legislation_id, authorization)


@router.post("", response_model=LegislationResponse, status_code=status.HTTP_201_CREATED)
async def create_legislation(
    legislation_data: LegislationCreate,
    authorization: CanEdit,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """
    Create a legislation in the caller's organization unless one is given.

    Raises:
        OrganizationNotFound: 404 if the target organization does not exist
        MembershipRequired: 403 if a non-manager is not an active member of it
    """
    values = legislation_data.model_dump()
    values["status"] = legislation_data.status.value

    organization_id = values.get("organization_id")
    if organization_id is None:
        organization_id = member_organization_id(authorization)
        if organization_id is None and is_manager(authorization.user):
            organization_id = authorization.organization_id

    if organization_id is not None:
        if await find_organization_by_id(db, organization_id) is None:
            raise OrganizationNotFound()
        if not is_manager(authorization.user):
            if await find_active_membership(db, organization_id, authorization.user.id) is None:
                log.info(f"User {authorization.user.id} cannot create legislation in {organization_id}")
                raise MembershipRequired("User does not have access to this organization")
    values["organization_id"] = organization_id

    legislation = Legislation(**values, created_by=authorization.user.id, updated_by=authorization.user.id)
    db.add(legislation)
    await db.commit()
    await db.refresh(legislation)

    log.info(f"User {authorization.user.id} created legislation {legislation.id}")
    return legislation


@router.put("/{legislation_id}", response_model=LegislationResponse)
async def update_legislation(
    legislation_id: str,
    update_data: LegislationUpdate,
    authorization: CanEdit,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    legislation = await get_legislation_or_404(db, legislation_id, authorization)

    changes = update_data.model_dump(exclude_unset=True)
    # title and status are not nullable
    for key in ("title", "status"):
        if key in changes and changes[key] is None:
            del changes[key]
    if "status" in changes:
        changes["status"] = changes["status"].value

    effective_from = changes.get("effective_from", legislation.effective_from)
    effective_to = changes.get("effective_to", legislation.effective_to)
    if effective_from and effective_to and effective_to < effective_from:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="effective_to must not be before effective_from")

    for key, value in changes.items():
        setattr(legislation, key, value)
    legislation.updated_by = authorization.user.id
    await db.commit()
    await db.refresh(legislation)
    return legislation


@router.delete("/{legislation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_legislation(
    legislation_id: str,
    authorization: CanEdit,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    legislation = await get_legislation_or_404(db, legislation_id, authorization)
    await db.delete(legislation)
    await db.commit()
    log.info(f"User {authorization.user.id} deleted legislation {legislation_id}")
