"""
Legislation model.

A legislation (planning process) may belong to an organization; rows without
one are jurisdiction-wide.
"""
from datetime import date
from sqlalchemy import Date, ForeignKey, String, Text, Index
from sqlalchemy.orm import Mapped, mapped_column
import enum

from app.core.database.base import Base, TimestampMixin, generate_ulid


class LegislationStatus(str, enum.Enum):
    DRAFT = "draft"
    PENDING = "pending"
    AWAITING_APPROVAL = "awaiting-approval"
    ACTIVE = "active"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class Legislation(Base, TimestampMixin):
    """Municipal legislation record."""
    __tablename__ = "legislations"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    organization_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=True,
        index=True
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    legislation_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    status: Mapped[str] = mapped_column(String(40), default=LegislationStatus.DRAFT.value, nullable=False, index=True)
    jurisdiction: Mapped[str | None] = mapped_column(String(255), nullable=True)
    municipality: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    effective_from: Mapped[date | None] = mapped_column(Date, nullable=True)
    effective_to: Mapped[date | None] = mapped_column(Date, nullable=True)

    created_by: Mapped[str | None] = mapped_column(String(26), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(26), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    __table_args__ = (
        Index("ix_legislations_org_status", "organization_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Legislation(id={self.id}, title={self.title!r}, status={self.status})>"
