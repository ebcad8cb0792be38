"""
User and system Role models with ULID primary keys.

System roles are global (not tied to an organization). Their `permissions`
column holds a legacy permission token list or "*".
"""
from datetime import datetime
from typing import Any
from sqlalchemy import String, Boolean, ForeignKey, Table, Column, JSON, Text, Integer, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, TimestampMixin, generate_ulid


# Association table for many-to-many relationship between users and system roles
user_roles = Table(
    "user_roles",
    Base.metadata,
    Column("user_id", String(26), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", String(26), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("granted_by_id", String(26), ForeignKey("users.id"), nullable=True),
    Column("granted_at", DateTime(timezone=True), nullable=False, default=datetime.now),
)


class Role(Base, TimestampMixin):
    """
    System-level role.

    Examples: admin, city_official, planner, viewer
    """
    __tablename__ = "roles"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    display_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Legacy token list (["legislation.read", ...]) or "*"
    permissions: Mapped[Any] = mapped_column(JSON, nullable=False, default=list)

    # System roles cannot be deleted
    is_system: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    level: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    def __repr__(self) -> str:
        return f"<Role(id={self.id}, name={self.name!r})>"


class User(Base, TimestampMixin):
    """
    User model representing authenticated users.

    A user holds zero or more system roles and at most one membership per organization.
    """
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Track last login
    last_login_at: Mapped[datetime | None] = mapped_column(nullable=True)

    roles: Mapped[list["Role"]] = relationship(
        "Role",
        secondary=user_roles,
        primaryjoin=lambda: User.id == user_roles.c.user_id,
        secondaryjoin=lambda: Role.id == user_roles.c.role_id,
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email!r})>"
