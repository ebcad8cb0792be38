"""
Organization models.

Organizations are municipal tenants. Each one owns its org roles (matrix-shaped
permission payloads) and links users through memberships. Organization changes
are recorded in the append-only OrgAuditLog.
"""
from datetime import datetime
from typing import Any, Dict, Optional
from sqlalchemy import String, ForeignKey, Boolean, Integer, JSON, Text, DateTime, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
import enum

from app.core.database.base import Base, TimestampMixin, generate_ulid


class SetupStatus(str, enum.Enum):
    """Onboarding progress of an organization."""
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    SKIPPED = "skipped"


class MembershipStatus(str, enum.Enum):
    """Status of an organization membership."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING_INVITE = "pending_invite"
    DEACTIVATED = "deactivated"


class InvitationStatus(str, enum.Enum):
    """Status of an organization invitation."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REVOKED = "revoked"
    EXPIRED = "expired"


# Memberships in these states never count for authorization
EXCLUDED_MEMBERSHIP_STATUSES = (MembershipStatus.INACTIVE.value, MembershipStatus.DEACTIVATED.value)


class Organization(Base, TimestampMixin):
    """Municipal organization (tenant)."""
    __tablename__ = "organizations"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    # Address and contact
    street_address_1: Mapped[str | None] = mapped_column(String(255), nullable=True)
    street_address_2: Mapped[str | None] = mapped_column(String(255), nullable=True)
    city: Mapped[str | None] = mapped_column(String(120), nullable=True)
    state_region: Mapped[str | None] = mapped_column(String(120), nullable=True)
    postal_zip: Mapped[str | None] = mapped_column(String(40), nullable=True)
    country: Mapped[str | None] = mapped_column(String(120), nullable=True)
    website: Mapped[str | None] = mapped_column(String(255), nullable=True)
    primary_contact_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    logo_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    setup_status: Mapped[str] = mapped_column(String(40), default=SetupStatus.NOT_STARTED.value, nullable=False)
    setup_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    setup_skipped_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    settings: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)

    created_by: Mapped[str | None] = mapped_column(String(26), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(26), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, name={self.name!r})>"


class OrgRole(Base, TimestampMixin):
    """
    Organization-scoped role.

    `permissions` holds a matrix object (normalized on write), a legacy token
    list, or "*". Seeded system roles (Admin, City Official, Planner, Reviewer)
    ship with every organization.
    """
    __tablename__ = "org_roles"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    organization_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    name: Mapped[str] = mapped_column(String(150), nullable=False)

    permissions: Mapped[Any] = mapped_column(JSON, default=dict, nullable=False)
    # 2 = matrix object, 1 = legacy list / wildcard
    permission_schema_version: Mapped[int] = mapped_column(Integer, default=2, nullable=False)

    is_system: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        UniqueConstraint("organization_id", "name", name="org_role_organization_name_unique"),
    )

    def __repr__(self) -> str:
        return f"<OrgRole(id={self.id}, name={self.name!r}, org_id={self.organization_id})>"


class OrganizationMember(Base, TimestampMixin):
    """
    Link between a user and an organization.

    At most one row per (organization, user). `is_org_admin` grants full
    organization-scoped permissions regardless of `org_role`.
    """
    __tablename__ = "organization_members"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    organization_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    user_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    org_role_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("org_roles.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    status: Mapped[str] = mapped_column(String(50), default=MembershipStatus.ACTIVE.value, nullable=False, index=True)
    is_org_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    invited_by: Mapped[str | None] = mapped_column(String(26), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    invited_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    deactivated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    organization: Mapped["Organization"] = relationship("Organization", lazy="selectin")
    org_role: Mapped[Optional["OrgRole"]] = relationship("OrgRole", lazy="selectin")
    user: Mapped["User"] = relationship("User", foreign_keys=[user_id], lazy="selectin")  # type: ignore

    __table_args__ = (
        UniqueConstraint("organization_id", "user_id", name="organization_members_organization_user_unique"),
    )

    def __repr__(self) -> str:
        return (
            f"<OrganizationMember(id={self.id}, org_id={self.organization_id}, "
            f"user_id={self.user_id}, status={self.status})>"
        )


class OrgAuditLog(Base, TimestampMixin):
    """
    Audit log for organization changes.

    Tracks who changed what, with before/after snapshots.
    """
    __tablename__ = "org_audit_logs"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    organization_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    actor_user_id: Mapped[str | None] = mapped_column(String(26), nullable=True, index=True)

    entity_type: Mapped[str] = mapped_column(String(80), nullable=False, index=True)
    entity_id: Mapped[str] = mapped_column(String(80), nullable=False)
    action: Mapped[str] = mapped_column(String(80), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)

    previous_values: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    new_values: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    details: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)

    def __repr__(self) -> str:
        return f"<OrgAuditLog(id={self.id}, org_id={self.organization_id}, action={self.action}, entity={self.entity_type})>"


class Invitation(Base, TimestampMixin):
    """
    Pending invitation of an email address into an organization.

    Created by bulk invites alongside a `pending_invite` membership; `details`
    records the membership and role the invitation was issued for.
    """
    __tablename__ = "invitations"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    organization_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(40), default=InvitationStatus.PENDING.value, nullable=False)
    invite_token: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    invited_by: Mapped[str | None] = mapped_column(String(26), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    details: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)

    def __repr__(self) -> str:
        return f"<Invitation(id={self.id}, org_id={self.organization_id}, email={self.email!r}, status={self.status})>"
