"""
Tests for the permission resolution routes.
"""
import pytest

from app.features.permissions.matrix import LEGACY_PERMISSION_MAP, TOOL_KEYS
from tests.factories import create_membership, create_org_role, create_organization, create_user


class TestToolCatalog:
    """Tests for GET /permissions/tools."""

    @pytest.mark.asyncio
    async def test_catalog(self, client) -> None:
        response = await client.get("/permissions/tools")
        assert response.status_code == 200
        body = response.json()
        assert body["tools"] == list(TOOL_KEYS)
        assert body["actions"] == ["view", "edit"]
        assert set(body["admin_sentinels"]) == {"*", "system.admin", "admin"}
        assert len(body["legacy_permissions"]) == len(LEGACY_PERMISSION_MAP)
        assert {"token": "mapping.edit", "tool": "mapping_zoning", "action": "edit"} in body["legacy_permissions"]


class TestMyPermissions:
    """Tests for GET /permissions/me."""

    @pytest.mark.asyncio
    async def test_requires_authentication(self, client) -> None:
        response = await client.get("/permissions/me")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_named_organization(self, client, db, auth_headers) -> None:
        organization = await create_organization(db)
        role = await create_org_role(db, organization, "Accountant", ["accounting.edit"])
        user = await create_user(db)
        await create_membership(db, organization, user, org_role=role)

        response = await client.get(
            "/permissions/me", params={"organization_id": organization.id}, headers=auth_headers(user)
        )
        assert response.status_code == 200
        body = response.json()
        assert body["organization_id"] == organization.id
        assert body["is_manager"] is False
        assert body["permissions"]["accounting"] == {"view": True, "edit": True}
        assert body["permissions"]["legislation"] == {"view": False, "edit": False}

    @pytest.mark.asyncio
    async def test_no_organization(self, client, db, auth_headers) -> None:
        user = await create_user(db, roles=[("viewer", ["data.read"])])
        response = await client.get("/permissions/me", headers=auth_headers(user))
        body = response.json()
        assert body["organization_id"] is None
        assert body["permissions"]["data_management"] == {"view": True, "edit": False}


class TestPermissionCheck:
    """Tests for POST /permissions/check."""

    @pytest.mark.asyncio
    async def test_granted_and_denied(self, client, db, auth_headers) -> None:
        user = await create_user(db, roles=[("viewer", ["legislation.read"])])

        response = await client.post(
            "/permissions/check", json={"tool": "legislation"}, headers=auth_headers(user)
        )
        assert response.json() == {
            "has_permission": True,
            "reason": "granted",
            "required": {"tool": "legislation", "action": "view"},
        }

        response = await client.post(
            "/permissions/check", json={"tool": "legislation", "action": "edit"}, headers=auth_headers(user)
        )
        assert response.json()["has_permission"] is False
        assert response.json()["reason"] == "insufficient_permissions"

    @pytest.mark.asyncio
    async def test_unknown_tool(self, client, db, auth_headers) -> None:
        user = await create_user(db, roles=[("admin", [])])
        response = await client.post("/permissions/check", json={"tool": "teleporter"}, headers=auth_headers(user))
        assert response.json()["has_permission"] is False
        assert response.json()["reason"] == "unknown_tool_or_action"

    @pytest.mark.asyncio
    async def test_manager(self, client, db, auth_headers) -> None:
        user = await create_user(db, roles=[("city_official", [])])
        response = await client.post(
            "/permissions/check", json={"tool": "approvals", "action": "edit"}, headers=auth_headers(user)
        )
        assert response.json()["has_permission"] is True
        assert response.json()["reason"] == "manager"

    @pytest.mark.asyncio
    async def test_organization_without_membership(self, client, db, auth_headers) -> None:
        organization = await create_organization(db)
        user = await create_user(db)
        response = await client.post(
            "/permissions/check",
            json={"tool": "legislation", "organization_id": organization.id},
            headers=auth_headers(user),
        )
        assert response.json()["has_permission"] is False
        assert response.json()["reason"] == "not_a_member"
