"""
Authorization errors raised by request guards.

Each error carries the HTTP status and the message returned to the client.
`authorization_error_handler` (registered in `app.main`) renders them as:

    {"success": false, "message": "...", "required": {"tool": "...", "action": "..."}}

`required` is only present for permission denials.
"""
from typing import Optional

from fastapi import status
from starlette.requests import Request
from starlette.responses import JSONResponse


class AuthorizationError(Exception):
    """Base class for guard denials."""
    status_code: int = status.HTTP_403_FORBIDDEN
    default_message: str = "Forbidden"

    def __init__(self, message: Optional[str] = None, required: Optional[dict[str, str]] = None):
        self.message = message or self.default_message
        self.required = required
        super().__init__(self.message)

    def to_content(self) -> dict:
        content = {"success": False, "message": self.message}
        if self.required is not None:
            content["required"] = self.required
        return content


class Unauthenticated(AuthorizationError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"


class MissingOrganization(AuthorizationError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "organizationId is required"


class OrganizationNotFound(AuthorizationError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Organization not found"


class MembershipRequired(AuthorizationError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Organization membership is required"


class InsufficientPermission(AuthorizationError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Insufficient permissions"

    def __init__(self, tool: str, action: str, message: Optional[str] = None):
        super().__init__(message, required={"tool": tool, "action": action})


async def authorization_error_handler(_request: Request, exc: AuthorizationError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_content(), headers=headers)
