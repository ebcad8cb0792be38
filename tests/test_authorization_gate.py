"""
Tests for the organization context and tool permission guards.
"""
import json
from datetime import datetime, timedelta

import pytest

from app.core.errors import MissingOrganization
from app.features.organizations.dependencies import resolve_organization_context
from app.features.permissions.dependencies import get_organization_id_from_request
from app.features.users.schemas import AuthenticatedUser
from tests.factories import (
    build_request,
    create_legislation,
    create_membership,
    create_org_role,
    create_organization,
    create_user,
    make_token,
)


REVIEWER = {"legislation": {"view": True}, "organization_management": {"view": True}}
EDITOR = {"legislation": {"view": True, "edit": True}}


class TestOrganizationIdFromRequest:
    """Tests for locating the organization a request names."""

    @pytest.mark.asyncio
    async def test_path_wins(self) -> None:
        request = build_request(
            path_params={"organization_id": "from-path"},
            headers={"x-organization-id": "from-header"},
            query_string=b"organization_id=from-query",
        )
        assert await get_organization_id_from_request(request) == "from-path"

    @pytest.mark.asyncio
    async def test_header_before_query(self) -> None:
        request = build_request(headers={"x-organization-id": "from-header"}, query_string=b"organization_id=from-query")
        assert await get_organization_id_from_request(request) == "from-header"

    @pytest.mark.asyncio
    async def test_query(self) -> None:
        assert await get_organization_id_from_request(build_request(query_string=b"organization_id=q")) == "q"

    @pytest.mark.asyncio
    async def test_json_body(self) -> None:
        request = build_request(
            method="POST",
            headers={"content-type": "application/json"},
            body=json.dumps({"organization_id": "from-body"}).encode(),
        )
        assert await get_organization_id_from_request(request) == "from-body"

    @pytest.mark.asyncio
    async def test_body_ignored_for_get(self) -> None:
        request = build_request(
            headers={"content-type": "application/json"},
            body=json.dumps({"organization_id": "from-body"}).encode(),
        )
        assert await get_organization_id_from_request(request) is None

    @pytest.mark.asyncio
    async def test_malformed_body(self) -> None:
        request = build_request(method="POST", headers={"content-type": "application/json"}, body=b"{not json")
        assert await get_organization_id_from_request(request) is None

    @pytest.mark.asyncio
    async def test_nothing_named(self) -> None:
        assert await get_organization_id_from_request(build_request(method="POST")) is None


class TestOrganizationContext:
    """Tests for the organization-scoped guards."""

    @pytest.mark.asyncio
    async def test_missing_organization(self) -> None:
        user = AuthenticatedUser(id="u", email="u@example.com")
        with pytest.raises(MissingOrganization):
            await resolve_organization_context(build_request(), user, None)

    @pytest.mark.asyncio
    async def test_unauthenticated_is_401(self, client, db) -> None:
        """Unauthenticated requests fail before any organization lookup."""
        organization = await create_organization(db)
        response = await client.put(f"/organizations/{organization.id}", json={"name": "New"})
        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "No token provided"}
        assert response.headers["www-authenticate"] == "Bearer"

        response = await client.put("/organizations/does-not-exist", json={"name": "New"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_organization(self, client, db, auth_headers) -> None:
        user = await create_user(db)
        response = await client.get("/organizations/does-not-exist", headers=auth_headers(user))
        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Organization not found"}

    @pytest.mark.asyncio
    async def test_non_member(self, client, db, auth_headers) -> None:
        organization = await create_organization(db)
        user = await create_user(db)
        response = await client.get(f"/organizations/{organization.id}", headers=auth_headers(user))
        assert response.status_code == 403
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_member(self, client, db, auth_headers) -> None:
        organization = await create_organization(db)
        user = await create_user(db)
        await create_membership(db, organization, user)
        response = await client.get(f"/organizations/{organization.id}", headers=auth_headers(user))
        assert response.status_code == 200
        assert response.json()["name"] == organization.name

    @pytest.mark.asyncio
    async def test_deactivated_membership_excluded(self, client, db, auth_headers) -> None:
        organization = await create_organization(db)
        user = await create_user(db)
        await create_membership(db, organization, user, status="deactivated", is_org_admin=True)
        response = await client.get(f"/organizations/{organization.id}", headers=auth_headers(user))
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_pending_invite_counts(self, client, db, auth_headers) -> None:
        organization = await create_organization(db)
        user = await create_user(db)
        await create_membership(db, organization, user, status="pending_invite")
        response = await client.get(f"/organizations/{organization.id}", headers=auth_headers(user))
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_system_manager_without_membership(self, client, db, auth_headers) -> None:
        organization = await create_organization(db)
        official = await create_user(db, roles=[("city_official", [])])
        response = await client.get(f"/organizations/{organization.id}", headers=auth_headers(official))
        assert response.status_code == 200
        response = await client.put(
            f"/organizations/{organization.id}", json={"city": "Shelbyville"}, headers=auth_headers(official)
        )
        assert response.status_code == 200
        assert response.json()["city"] == "Shelbyville"

    @pytest.mark.asyncio
    async def test_org_admin_without_role_is_manager(self, client, db, auth_headers) -> None:
        organization = await create_organization(db)
        user = await create_user(db)
        await create_membership(db, organization, user, is_org_admin=True)
        response = await client.put(
            f"/organizations/{organization.id}", json={"website": "https://springfield.gov"}, headers=auth_headers(user)
        )
        assert response.status_code == 200
        assert response.json()["website"] == "https://springfield.gov"

    @pytest.mark.asyncio
    async def test_member_without_management_edit(self, client, db, auth_headers) -> None:
        organization = await create_organization(db)
        reviewer_role = await create_org_role(db, organization, "Reviewer", REVIEWER)
        user = await create_user(db)
        await create_membership(db, organization, user, org_role=reviewer_role)
        response = await client.put(
            f"/organizations/{organization.id}", json={"name": "Renamed"}, headers=auth_headers(user)
        )
        assert response.status_code == 403
        assert response.json()["required"] == {"tool": "organization_management", "action": "edit"}

    @pytest.mark.asyncio
    async def test_management_edit_via_legacy_role(self, client, db, auth_headers) -> None:
        organization = await create_organization(db)
        role = await create_org_role(db, organization, "Clerk", ["members.manage"])
        user = await create_user(db)
        await create_membership(db, organization, user, org_role=role)
        response = await client.put(
            f"/organizations/{organization.id}", json={"name": "Renamed"}, headers=auth_headers(user)
        )
        assert response.status_code == 200


class TestToolPermission:
    """Tests for require_tool_permission, through the legislation routes."""

    @pytest.mark.asyncio
    async def test_unauthenticated(self, client) -> None:
        response = await client.get("/legislations")
        assert response.status_code == 401
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_invalid_token(self, client) -> None:
        response = await client.get("/legislations", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid token"

    @pytest.mark.asyncio
    async def test_expired_token(self, client, db) -> None:
        user = await create_user(db)
        token = make_token(user.id, expires_in=timedelta(minutes=-5))
        response = await client.get("/legislations", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["message"] == "Token expired"

    @pytest.mark.asyncio
    async def test_inactive_user(self, client, db, auth_headers) -> None:
        user = await create_user(db, roles=[("admin", ["system.admin"])], is_active=False)
        response = await client.get("/legislations", headers=auth_headers(user))
        assert response.status_code == 403
        assert response.json()["message"] == "Account is inactive"

    @pytest.mark.asyncio
    async def test_denied_without_permission(self, client, db, auth_headers) -> None:
        user = await create_user(db)
        response = await client.get("/legislations", headers=auth_headers(user))
        assert response.status_code == 403
        assert response.json() == {
            "success": False,
            "message": "Insufficient permissions",
            "required": {"tool": "legislation", "action": "view"},
        }

    @pytest.mark.asyncio
    async def test_system_role_grants(self, client, db, auth_headers) -> None:
        user = await create_user(db, roles=[("viewer", ["legislation.read"])])
        response = await client.get("/legislations", headers=auth_headers(user))
        assert response.status_code == 200

        response = await client.post("/legislations", json={"title": "Noise Ordinance"}, headers=auth_headers(user))
        assert response.status_code == 403
        assert response.json()["required"] == {"tool": "legislation", "action": "edit"}

    @pytest.mark.asyncio
    async def test_default_membership(self, client, db, auth_headers) -> None:
        """Without a named organization, the default membership's role applies."""
        organization = await create_organization(db)
        role = await create_org_role(db, organization, "Reviewer", REVIEWER)
        user = await create_user(db)
        await create_membership(db, organization, user, org_role=role)
        response = await client.get("/legislations", headers=auth_headers(user))
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_default_membership_prefers_org_admin(self, client, db, auth_headers) -> None:
        first = await create_organization(db, "First")
        second = await create_organization(db, "Second")
        user = await create_user(db)
        await create_membership(db, first, user, created_at=datetime(2024, 1, 1))
        await create_membership(db, second, user, is_org_admin=True, created_at=datetime(2024, 6, 1))

        response = await client.get("/permissions/me", headers=auth_headers(user))
        assert response.status_code == 200
        assert response.json()["organization_id"] == second.id
        assert response.json()["permissions"]["accounting"] == {"view": True, "edit": True}

    @pytest.mark.asyncio
    async def test_default_membership_earliest(self, client, db, auth_headers) -> None:
        first = await create_organization(db, "First")
        second = await create_organization(db, "Second")
        user = await create_user(db)
        await create_membership(db, second, user, created_at=datetime(2024, 6, 1))
        await create_membership(db, first, user, created_at=datetime(2024, 1, 1))

        response = await client.get("/permissions/me", headers=auth_headers(user))
        assert response.json()["organization_id"] == first.id

    @pytest.mark.asyncio
    async def test_default_membership_equal_created_at(self, client, db, auth_headers) -> None:
        """Memberships created at the same instant are ordered by id."""
        first = await create_organization(db, "First")
        second = await create_organization(db, "Second")
        user = await create_user(db)
        same_time = datetime(2024, 1, 1)
        await create_membership(db, second, user, created_at=same_time, member_id="01HB0000000000000000000000")
        await create_membership(db, first, user, created_at=same_time, member_id="01HA0000000000000000000000")

        response = await client.get("/permissions/me", headers=auth_headers(user))
        assert response.status_code == 200
        assert response.json()["organization_id"] == first.id

    @pytest.mark.asyncio
    async def test_header_selects_organization(self, client, db, auth_headers) -> None:
        editing = await create_organization(db, "Editing")
        reading = await create_organization(db, "Reading")
        editor_role = await create_org_role(db, editing, "Editor", EDITOR)
        reader_role = await create_org_role(db, reading, "Reviewer", REVIEWER)
        user = await create_user(db)
        await create_membership(db, editing, user, org_role=editor_role)
        await create_membership(db, reading, user, org_role=reader_role)

        payload = {"title": "Parking Rules"}
        response = await client.post("/legislations", json=payload, headers=auth_headers(user, reading.id))
        assert response.status_code == 403

        response = await client.post("/legislations", json=payload, headers=auth_headers(user, editing.id))
        assert response.status_code == 201
        assert response.json()["organization_id"] == editing.id

    @pytest.mark.asyncio
    async def test_query_selects_organization(self, client, db, auth_headers) -> None:
        organization = await create_organization(db)
        role = await create_org_role(db, organization, "Reviewer", REVIEWER)
        user = await create_user(db)
        await create_membership(db, organization, user, org_role=role)
        response = await client.get(
            "/legislations", params={"organization_id": organization.id}, headers=auth_headers(user)
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_body_selects_organization(self, client, db, auth_headers) -> None:
        organization = await create_organization(db)
        role = await create_org_role(db, organization, "Editor", EDITOR)
        user = await create_user(db)
        await create_membership(db, organization, user, org_role=role)
        response = await client.post(
            "/legislations",
            json={"title": "Tree Protection", "organization_id": organization.id},
            headers=auth_headers(user),
        )
        assert response.status_code == 201

    @pytest.mark.asyncio
    async def test_named_organization_without_membership(self, client, db, auth_headers) -> None:
        """Naming an organization the caller is not in does not fall back to the default one."""
        home = await create_organization(db, "Home")
        elsewhere = await create_organization(db, "Elsewhere")
        role = await create_org_role(db, home, "Editor", EDITOR)
        user = await create_user(db)
        await create_membership(db, home, user, org_role=role)

        response = await client.get("/legislations", headers=auth_headers(user, elsewhere.id))
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_deactivated_membership_grants_nothing(self, client, db, auth_headers) -> None:
        organization = await create_organization(db)
        role = await create_org_role(db, organization, "Editor", EDITOR)
        user = await create_user(db)
        await create_membership(db, organization, user, org_role=role, status="deactivated")
        response = await client.get("/legislations", headers=auth_headers(user, organization.id))
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_inactive_org_role_grants_nothing(self, client, db, auth_headers) -> None:
        organization = await create_organization(db)
        role = await create_org_role(db, organization, "Editor", EDITOR, is_active=False)
        user = await create_user(db)
        await create_membership(db, organization, user, org_role=role)
        response = await client.get("/legislations", headers=auth_headers(user))
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_manager_passes(self, client, db, auth_headers) -> None:
        admin = await create_user(db, roles=[("ADMIN", [])])
        await create_legislation(db)
        response = await client.get("/legislations", headers=auth_headers(admin))
        assert response.status_code == 200
        assert len(response.json()) == 1
