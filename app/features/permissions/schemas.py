"""
Pydantic schemas for permission resolution endpoints.
"""
from typing import Dict, List, Optional
from pydantic import BaseModel, Field


class ToolAccessSchema(BaseModel):
    """Access bits for one tool."""
    view: bool = False
    edit: bool = False


PermissionMatrixSchema = Dict[str, ToolAccessSchema]


class RequiredPermission(BaseModel):
    """The (tool, action) a guard asked for."""
    tool: str
    action: str


class LegacyPermissionEntry(BaseModel):
    token: str
    tool: str
    action: str


class ToolCatalogResponse(BaseModel):
    """Known tools, actions, and the legacy token translation table."""
    tools: List[str]
    actions: List[str]
    admin_sentinels: List[str]
    legacy_permissions: List[LegacyPermissionEntry]


class SystemPermissionsResponse(BaseModel):
    """Matrix derived from system roles only."""
    user_id: str
    roles: List[str] = []
    is_manager: bool
    permissions: PermissionMatrixSchema


class EffectivePermissionsResponse(BaseModel):
    """Matrix a tool guard would use for this caller."""
    user_id: str
    organization_id: Optional[str] = None
    is_manager: bool
    permissions: PermissionMatrixSchema


class PermissionCheckRequest(BaseModel):
    """Schema for checking whether the caller holds a tool permission."""
    tool: str = Field(..., description="Tool key, e.g. 'legislation'")
    action: str = Field("view", description="'view' or 'edit'")
    organization_id: Optional[str] = Field(None, description="Organization context (default membership if omitted)")


class PermissionCheckResponse(BaseModel):
    """Schema for permission check response."""
    has_permission: bool
    reason: Optional[str] = None
    required: RequiredPermission
