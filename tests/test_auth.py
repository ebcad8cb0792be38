"""
Tests for authentication providers.
"""
import pytest

from app.core import config
from app.features.users.auth import (
    FixedIdentityAuthProvider,
    JWTAuthProvider,
    build_auth_provider,
    get_bearer_token,
)
from app.features.users.schemas import AuthenticatedUser, RoleGrant
from app.main import app
from tests.factories import build_request, create_user, make_token


class TestBearerToken:
    """Tests for reading the Authorization header."""

    def test_bearer(self) -> None:
        assert get_bearer_token(build_request(headers={"Authorization": "Bearer abc"})) == "abc"

    def test_scheme_is_case_insensitive(self) -> None:
        assert get_bearer_token(build_request(headers={"Authorization": "bearer abc"})) == "abc"

    @pytest.mark.parametrize("value", ["", "Basic abc", "Bearer", "Bearer   "])
    def test_missing_or_other_scheme(self, value: str) -> None:
        assert get_bearer_token(build_request(headers={"Authorization": value})) is None


class TestBuildAuthProvider:
    """Tests for selecting the provider from configuration."""

    def test_jwt(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(config, "AUTH_PROVIDER", "jwt")
        monkeypatch.setattr(config, "JWT_SECRET", "s3cret")
        provider = build_auth_provider()
        assert isinstance(provider, JWTAuthProvider)
        assert provider.secret == "s3cret"

    def test_fixed_in_development(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(config, "AUTH_PROVIDER", "fixed")
        monkeypatch.setattr(config, "ENVIRONMENT", "development")
        monkeypatch.setattr(config, "FIXED_IDENTITY_ID", "dev-1")
        monkeypatch.setattr(config, "FIXED_IDENTITY_ROLE", "city_official")
        provider = build_auth_provider()
        assert isinstance(provider, FixedIdentityAuthProvider)
        assert provider.identity.id == "dev-1"
        assert provider.identity.roles[0].name == "city_official"

    def test_fixed_refused_outside_development(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(config, "AUTH_PROVIDER", "fixed")
        monkeypatch.setattr(config, "ENVIRONMENT", "production")
        with pytest.raises(RuntimeError):
            build_auth_provider()

    def test_unknown(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(config, "AUTH_PROVIDER", "magic")
        with pytest.raises(RuntimeError):
            build_auth_provider()


class TestProviders:
    """Tests for authenticating requests."""

    @pytest.mark.asyncio
    async def test_jwt_loads_user_and_roles(self, client, db) -> None:
        user = await create_user(db, roles=[("planner", ["legislation.read"])])
        response = await client.get(
            "/users/me/system-permissions",
            headers={"Authorization": f"Bearer {make_token(user.id)}"},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["user_id"] == user.id
        assert body["roles"] == ["planner"]
        assert body["is_manager"] is False
        assert body["permissions"]["legislation"] == {"view": True, "edit": False}

    @pytest.mark.asyncio
    async def test_jwt_id_claim(self, client, db) -> None:
        """Tokens may carry the user id as `id` instead of `sub`."""
        user = await create_user(db)
        token = make_token("", id=user.id)
        response = await client.get("/users/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        assert response.json()["email"] == user.email

    @pytest.mark.asyncio
    async def test_jwt_authentication_is_read_only(self, client, db) -> None:
        """Authenticating a request does not write to the user row."""
        user = await create_user(db)
        await db.refresh(user)
        updated_at = user.updated_at
        response = await client.get("/users/me", headers={"Authorization": f"Bearer {make_token(user.id)}"})
        assert response.status_code == 200

        await db.refresh(user)
        assert user.last_login_at is None
        assert user.updated_at == updated_at

    @pytest.mark.asyncio
    async def test_jwt_unknown_user(self, client) -> None:
        response = await client.get("/users/me", headers={"Authorization": f"Bearer {make_token('nobody')}"})
        assert response.status_code == 401
        assert response.json()["message"] == "User not found"

    @pytest.mark.asyncio
    async def test_jwt_wrong_secret(self, client, db) -> None:
        user = await create_user(db)
        app.state.auth_provider = JWTAuthProvider("another-secret")
        response = await client.get("/users/me", headers={"Authorization": f"Bearer {make_token(user.id)}"})
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid token"

    @pytest.mark.asyncio
    async def test_fixed_identity(self, client) -> None:
        identity = AuthenticatedUser(
            id="dev-user",
            email="dev@example.com",
            roles=(RoleGrant(name="admin", permissions=["*"]),),
        )
        app.state.auth_provider = FixedIdentityAuthProvider(identity)

        response = await client.get("/permissions/me")
        assert response.status_code == 200
        assert response.json()["user_id"] == "dev-user"
        assert response.json()["is_manager"] is True
        assert all(cell == {"view": True, "edit": True} for cell in response.json()["permissions"].values())
