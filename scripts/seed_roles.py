"""
Seed script to populate the default system roles and an initial admin user.

Run this script after database initialization to create:
- Default system roles (admin, city_official, planner, viewer)
- An admin user holding the admin role

Existing roles and users are left untouched, so the script can be re-run.

Usage:
    python -m scripts.seed_roles

Environment:
    SEED_ADMIN_EMAIL, SEED_ADMIN_NAME
"""
import asyncio
import os
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db, init_db
from app.features.users.models import Role, User
from app.utils import get_logger


log = get_logger(__name__)


DEFAULT_ROLES = {
    "admin": {
        "display_name": "Administrator",
        "description": "Full system access with all permissions",
        "level": 100,
        "permissions": [
            "user.read", "user.create", "user.update", "user.delete",
            "legislation.read", "legislation.create", "legislation.update", "legislation.delete",
            "workflow.read", "workflow.create", "workflow.update", "workflow.delete",
            "system.admin",
        ],
    },
    "city_official": {
        "display_name": "City Official",
        "description": "Manages every organization and tool",
        "level": 80,
        "permissions": "*",
    },
    "planner": {
        "display_name": "Planner",
        "description": "Drafts legislation, workflows and zoning maps",
        "level": 50,
        "permissions": [
            "legislation.read", "legislation.create", "legislation.update",
            "workflow.read", "workflow.create", "workflow.update",
            "mapping.read", "mapping.edit",
        ],
    },
    "viewer": {
        "display_name": "Viewer",
        "description": "Read-only access",
        "level": 10,
        "permissions": ["legislation.read", "workflow.read", "mapping.read"],
    },
}

DEFAULT_ADMIN_EMAIL = os.environ.get("SEED_ADMIN_EMAIL", "admin@example.com").strip().lower()
DEFAULT_ADMIN_NAME = os.environ.get("SEED_ADMIN_NAME", "System Admin")


async def seed_roles(db: AsyncSession) -> dict[str, Role]:
    """Create missing system roles; return every default role by name."""
    result = await db.execute(select(Role).where(Role.name.in_(DEFAULT_ROLES)))
    roles = {role.name: role for role in result.scalars().all()}

    for role_name, role_config in DEFAULT_ROLES.items():
        if role_name in roles:
            log.info(f"Role '{role_name}' already exists, skipping")
            continue

        role = Role(name=role_name, is_system=True, **role_config)
        db.add(role)
        roles[role_name] = role
        log.info(f"Created role '{role_name}'")

    await db.flush()
    return roles


async def seed_admin_user(db: AsyncSession, admin_role: Role) -> User:
    """Create the admin user if no user has its email yet."""
    result = await db.execute(select(User).where(User.email == DEFAULT_ADMIN_EMAIL))
    user = result.scalar_one_or_none()
    if user is not None:
        log.info(f"User '{DEFAULT_ADMIN_EMAIL}' already exists, skipping")
        return user

    user = User(email=DEFAULT_ADMIN_EMAIL, name=DEFAULT_ADMIN_NAME, is_active=True, roles=[admin_role])
    db.add(user)
    await db.flush()
    log.info(f"Created admin user '{DEFAULT_ADMIN_EMAIL}' ({user.id})")
    return user


async def main():
    """Main function to seed roles and the admin user."""
    log.info("Starting role seeding...")

    # Initialize database tables first
    log.info("Initializing database tables...")
    await init_db()

    async for db in get_db():
        try:
            roles = await seed_roles(db)
            await seed_admin_user(db, roles["admin"])
            await db.commit()

            log.info("Role seeding completed successfully!")
            for role_name, role_config in DEFAULT_ROLES.items():
                log.info(f"  - {role_name}: {role_config['description']}")

        except Exception as e:
            log.error(f"Error seeding roles: {e}", exc_info=True)
            await db.rollback()
            raise

        break  # Only use first session


if __name__ == "__main__":
    asyncio.run(main())
