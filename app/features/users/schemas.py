"""
Pydantic schemas for user-related requests and responses.
"""
from datetime import datetime
from typing import Any
from pydantic import BaseModel, ConfigDict, EmailStr, Field


class RoleGrant(BaseModel):
    """A system role as seen by authorization: its name and raw permissions payload."""
    name: str
    permissions: Any = None

    model_config = ConfigDict(from_attributes=True, frozen=True)


class AuthenticatedUser(BaseModel):
    """
    Identity attached to a request by the auth provider.

    `roles[].permissions` is passed through untouched ("*" or a legacy token list);
    normalization happens in the permissions feature.
    """
    id: str
    email: str
    name: str = ""
    roles: tuple[RoleGrant, ...] = ()

    model_config = ConfigDict(from_attributes=True, frozen=True)


class UserBase(BaseModel):
    """Base user schema with common fields."""
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=255)


class UserUpdate(BaseModel):
    """Schema for updating user information."""
    name: str | None = Field(None, min_length=1, max_length=255)


class RoleResponse(BaseModel):
    """System role as returned by the API."""
    id: str
    name: str
    display_name: str | None = None
    description: str | None = None
    permissions: Any = None
    is_system: bool

    model_config = ConfigDict(from_attributes=True)


class UserResponse(UserBase):
    """Schema for user responses."""
    id: str
    is_active: bool
    last_login_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    roles: list[RoleResponse] = []

    model_config = ConfigDict(from_attributes=True)


class UserPublic(BaseModel):
    """Public user information (limited fields)."""
    id: str
    name: str

    model_config = ConfigDict(from_attributes=True)
