"""
Pydantic schemas for legislation requests and responses.
"""
from datetime import date, datetime
from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.features.legislation.models import LegislationStatus


class LegislationBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    legislation_type: str | None = Field(None, max_length=100)
    jurisdiction: str | None = Field(None, max_length=255)
    municipality: str | None = Field(None, max_length=255)
    description: str | None = None
    effective_from: date | None = None
    effective_to: date | None = None


class LegislationCreate(LegislationBase):
    """Schema for creating a legislation. `organization_id` also selects the permission context."""
    organization_id: str | None = None
    status: LegislationStatus = LegislationStatus.DRAFT

    @model_validator(mode="after")
    def check_effective_range(self):
        if self.effective_from and self.effective_to and self.effective_to < self.effective_from:
            raise ValueError("effective_to must not be before effective_from")
        return self


class LegislationUpdate(BaseModel):
    """Schema for updating a legislation. Only provided fields change."""
    title: str | None = Field(None, min_length=1, max_length=255)
    legislation_type: str | None = Field(None, max_length=100)
    status: LegislationStatus | None = None
    jurisdiction: str | None = Field(None, max_length=255)
    municipality: str | None = Field(None, max_length=255)
    description: str | None = None
    effective_from: date | None = None
    effective_to: date | None = None


class LegislationResponse(LegislationBase):
    id: str
    organization_id: str | None = None
    status: str
    created_by: str | None = None
    updated_by: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
