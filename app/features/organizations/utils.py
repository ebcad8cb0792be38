"""
Organization helpers: default org roles and the audit-log sink.
"""
from datetime import date
from enum import Enum
from typing import Any, Dict, Optional
from sqlalchemy import inspect, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.organizations.models import OrgAuditLog, OrgRole
from app.features.permissions.matrix import normalize, permission_schema_version
from app.utils import get_logger


log = get_logger(__name__)


DEFAULT_ORG_ROLES = [
    ("Admin", "*"),
    ("City Official", {
        "mapping_zoning": {"view": True, "edit": True},
        "legislation": {"view": True, "edit": True},
        "organization_management": {"view": True, "edit": True},
    }),
    ("Planner", {
        "mapping_zoning": {"view": True, "edit": True},
        "legislation": {"view": True, "edit": True},
        "organization_management": {"view": True, "edit": False},
    }),
    ("Reviewer", {
        "mapping_zoning": {"view": True, "edit": False},
        "legislation": {"view": True, "edit": False},
        "organization_management": {"view": True, "edit": False},
    }),
]


def stored_permissions(value: Any) -> dict[str, dict[str, bool]]:
    """Normalized matrix in the JSON shape org roles are stored with."""
    return normalize(value).to_dict()


async def ensure_default_org_roles(db: AsyncSession, organization_id: str) -> list[OrgRole]:
    """
    Create the default org roles that are missing from an organization.

    Existing roles with a default name are left untouched.
    """
    result = await db.execute(select(OrgRole.name).where(OrgRole.organization_id == organization_id))
    existing = set(result.scalars().all())

    created = []
    for name, permissions in DEFAULT_ORG_ROLES:
        if name in existing:
            continue
        stored = stored_permissions(permissions)
        role = OrgRole(
            organization_id=organization_id,
            name=name,
            permissions=stored,
            permission_schema_version=permission_schema_version(stored),
            is_system=True,
            is_active=True,
        )
        db.add(role)
        created.append(role)

    if created:
        await db.flush()
        log.info(f"Seeded {len(created)} default org roles for organization {organization_id}")
    return created


def snapshot(obj: Any) -> dict[str, Any]:
    """
    JSON-safe dict of the column values already loaded on a model instance.

    Unloaded (expired or server-generated) columns are left out.
    """
    loaded = inspect(obj).dict
    values = {}
    for column in obj.__table__.columns:
        if column.key not in loaded:
            continue
        value = loaded[column.key]
        if isinstance(value, date):
            value = value.isoformat()
        elif isinstance(value, Enum):
            value = value.value
        values[column.key] = value
    return values


async def log_org_audit(
    db: AsyncSession,
    *,
    organization_id: Optional[str],
    actor_user_id: Optional[str],
    entity_type: Optional[str],
    entity_id: Optional[str],
    action: Optional[str],
    message: Optional[str],
    previous_values: Optional[Dict[str, Any]] = None,
    new_values: Optional[Dict[str, Any]] = None,
    details: Optional[Dict[str, Any]] = None,
) -> Optional[OrgAuditLog]:
    """
    Record an organization change.

    Entries missing the organization, entity, action or message are skipped
    and None is returned. The entry is added to the session, not committed.
    """
    if not organization_id or not entity_type or not entity_id or not action or not message:
        return None

    entry = OrgAuditLog(
        organization_id=organization_id,
        actor_user_id=actor_user_id,
        entity_type=entity_type,
        entity_id=str(entity_id),
        action=action,
        message=message,
        previous_values=previous_values or {},
        new_values=new_values or {},
        details=details or {},
    )
    db.add(entry)
    log.info(f"Audit: org={organization_id} actor={actor_user_id} {entity_type}:{entity_id} {action}")
    return entry
