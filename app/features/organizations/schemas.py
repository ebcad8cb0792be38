"""
Pydantic schemas for organization-related requests and responses.
"""
from datetime import datetime
from typing import Any
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.features.organizations.models import MembershipStatus, SetupStatus
from app.features.permissions.schemas import PermissionMatrixSchema


# Organization Schemas
class OrganizationBase(BaseModel):
    """Base organization schema."""
    name: str = Field(..., min_length=1, max_length=255)
    street_address_1: str | None = Field(None, max_length=255)
    street_address_2: str | None = Field(None, max_length=255)
    city: str | None = Field(None, max_length=120)
    state_region: str | None = Field(None, max_length=120)
    postal_zip: str | None = Field(None, max_length=40)
    country: str | None = Field(None, max_length=120)
    website: str | None = Field(None, max_length=255)
    primary_contact_email: EmailStr | None = None
    logo_url: str | None = Field(None, max_length=500)


class OrganizationCreate(OrganizationBase):
    """Schema for creating a new organization."""
    pass


class OrganizationUpdate(BaseModel):
    """Schema for updating organization information."""
    name: str | None = Field(None, min_length=1, max_length=255)
    street_address_1: str | None = Field(None, max_length=255)
    street_address_2: str | None = Field(None, max_length=255)
    city: str | None = Field(None, max_length=120)
    state_region: str | None = Field(None, max_length=120)
    postal_zip: str | None = Field(None, max_length=40)
    country: str | None = Field(None, max_length=120)
    website: str | None = Field(None, max_length=255)
    primary_contact_email: EmailStr | None = None
    logo_url: str | None = Field(None, max_length=500)
    setup_status: SetupStatus | None = None


class OrganizationResponse(OrganizationBase):
    """Schema for organization responses."""
    id: str
    primary_contact_email: str | None = None
    setup_status: str
    setup_completed_at: datetime | None = None
    setup_skipped_at: datetime | None = None
    created_by: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SetupStatusResponse(BaseModel):
    """Onboarding progress of an organization."""
    setup_status: str
    setup_completed_at: datetime | None = None
    setup_skipped_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class SetupStatusUpdate(BaseModel):
    setup_status: SetupStatus


class MyOrganizationResponse(BaseModel):
    """An organization the caller belongs to, with the caller's membership."""
    id: str
    name: str
    setup_status: str
    member_status: str
    is_org_admin: bool
    role_id: str | None = None


# Org Role Schemas
class OrgRoleCreate(BaseModel):
    """Schema for creating an org role."""
    name: str = Field(..., max_length=150)
    permissions: Any = Field(default_factory=list, description="Matrix object, legacy token list, or '*'")
    is_system: bool = False

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        """Strip and require a role name."""
        v = v.strip()
        if not v:
            raise ValueError("Role name is required")
        return v


class OrgRoleUpdate(BaseModel):
    """Schema for updating an org role."""
    name: str | None = Field(None, min_length=1, max_length=150)
    permissions: Any = None
    is_active: bool | None = None


class OrgRolePermissionsUpdate(BaseModel):
    """One entry of a bulk permissions matrix update."""
    id: str
    permissions: Any = None


class PermissionsMatrixUpdate(BaseModel):
    """Schema for updating the permissions of several org roles at once."""
    roles: list[OrgRolePermissionsUpdate] = []


class OrgRoleResponse(BaseModel):
    """Org role with its normalized permission matrix."""
    id: str
    organization_id: str
    name: str
    permissions: PermissionMatrixSchema
    permission_schema_version: int
    is_system: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime


class OrgRoleSummary(BaseModel):
    id: str
    name: str

    model_config = ConfigDict(from_attributes=True)


# Membership Schemas
class MemberCreate(BaseModel):
    """Schema for adding an existing user to an organization."""
    user_id: str
    org_role_id: str | None = None
    is_org_admin: bool = False
    status: MembershipStatus = MembershipStatus.ACTIVE


class MemberUpdate(BaseModel):
    """Schema for updating a membership. Only provided fields change."""
    status: MembershipStatus | None = None
    org_role_id: str | None = None
    is_org_admin: bool | None = None


class ChangeMemberRole(BaseModel):
    """Schema for assigning an org role to a member (null clears it)."""
    org_role_id: str | None = None


class MemberResponse(BaseModel):
    """Schema for membership responses."""
    id: str
    organization_id: str
    user_id: str
    org_role_id: str | None = None
    status: str
    is_org_admin: bool
    invited_by: str | None = None
    invited_at: datetime | None = None
    deactivated_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MyOrganizationPermissionsResponse(BaseModel):
    """The caller's effective permissions inside one organization."""
    organization_id: str
    role: OrgRoleSummary | None = None
    is_org_admin: bool = False
    is_manager: bool = False
    permissions: PermissionMatrixSchema


# Invitation Schemas
class BulkInviteRow(BaseModel):
    """One invitee of a bulk invite. A blank email fails only this row."""
    email: EmailStr | None = None
    name: str | None = Field(None, max_length=255)
    org_role_id: str | None = None

    @field_validator("email", mode="before")
    @classmethod
    def blank_email_is_missing(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v


class BulkInviteRequest(BaseModel):
    rows: list[BulkInviteRow] = []


class BulkInviteResult(BaseModel):
    """Outcome for one invitee."""
    success: bool
    email: str
    member_id: str | None = None
    invitation_id: str | None = None
    error: str | None = None


class BulkInviteResponse(BaseModel):
    success_count: int
    failed_count: int
    duplicate_count: int
    results: list[BulkInviteResult]
