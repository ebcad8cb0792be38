"""
Authentication strategies.

One provider is selected at startup from `config.AUTH_PROVIDER` and stored on
`app.state.auth_provider`:

- "jwt": `JWTAuthProvider` verifies `Authorization: Bearer <token>` and loads the user
- "fixed": `FixedIdentityAuthProvider` returns a configured identity (development only)
"""
from typing import Optional

import jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import Request

from app.core import config
from app.core.errors import AuthorizationError, Unauthenticated
from app.features.users.models import User
from app.features.users.schemas import AuthenticatedUser, RoleGrant
from app.utils import get_logger


log = get_logger(__name__)


def get_bearer_token(request: Request) -> Optional[str]:
    """Extract the bearer token from the Authorization header, if any."""
    auth = request.headers.get("Authorization", "")
    scheme, _, token = auth.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def verify_jwt_token(token: str, secret: str, algorithm: str) -> dict:
    """
    Verify a signed JWT and return its payload.

    Raises:
        Unauthenticated: If the token is expired or invalid
    """
    try:
        return jwt.decode(token, secret, algorithms=[algorithm])
    except jwt.ExpiredSignatureError:
        raise Unauthenticated("Token expired")
    except jwt.InvalidTokenError:
        raise Unauthenticated("Invalid token")


class AuthProvider:
    """Resolves the caller of a request, or None when the request is anonymous."""
    name = "base"

    async def authenticate(self, request: Request, db: AsyncSession) -> Optional[AuthenticatedUser]:
        raise NotImplementedError


class JWTAuthProvider(AuthProvider):
    """Bearer-token authentication against local users."""
    name = "jwt"

    def __init__(self, secret: str, algorithm: str = "HS256"):
        self.secret = secret
        self.algorithm = algorithm

    async def authenticate(self, request: Request, db: AsyncSession) -> Optional[AuthenticatedUser]:
        token = get_bearer_token(request)
        if token is None:
            return None

        payload = verify_jwt_token(token, self.secret, self.algorithm)
        user_id = payload.get("sub") or payload.get("id")
        if not user_id:
            raise Unauthenticated("Invalid token payload")

        result = await db.execute(select(User).where(User.id == str(user_id)))
        user = result.scalar_one_or_none()
        if user is None:
            raise Unauthenticated("User not found")

        if not user.is_active:
            raise AuthorizationError("Account is inactive")

        return AuthenticatedUser.model_validate(user)


class FixedIdentityAuthProvider(AuthProvider):
    """Every request is made by the same configured identity."""
    name = "fixed"

    def __init__(self, identity: AuthenticatedUser):
        self.identity = identity

    async def authenticate(self, request: Request, db: AsyncSession) -> Optional[AuthenticatedUser]:
        return self.identity


def build_auth_provider() -> AuthProvider:
    """
    Build the provider named by `config.AUTH_PROVIDER`.

    Raises:
        RuntimeError: For an unknown provider, or "fixed" outside development
    """
    if config.AUTH_PROVIDER == "jwt":
        return JWTAuthProvider(config.JWT_SECRET, config.JWT_ALGORITHM)

    if config.AUTH_PROVIDER == "fixed":
        if config.ENVIRONMENT != "development":
            raise RuntimeError("The fixed identity auth provider is only available in development")
        identity = AuthenticatedUser(
            id=config.FIXED_IDENTITY_ID,
            email=config.FIXED_IDENTITY_EMAIL,
            name=config.FIXED_IDENTITY_NAME,
            roles=(RoleGrant(name=config.FIXED_IDENTITY_ROLE, permissions=["*"]),),
        )
        log.warning(f"Using fixed identity {identity.email} for every request")
        return FixedIdentityAuthProvider(identity)

    raise RuntimeError(f"Unknown AUTH_PROVIDER: {config.AUTH_PROVIDER!r}")
