"""
Role resolution: turns system roles and organization memberships into matrices.

System roles come from the authentication layer as `{name, permissions}` pairs
whose permissions are a legacy token list or "*". Organization memberships
contribute through their org role, or the full matrix for organization admins.
"""
from typing import Any, Optional

from app.features.permissions.matrix import PermissionMatrix, empty_matrix, full_matrix, merge, normalize

MANAGER_ROLE_NAMES = frozenset({"admin", "city_official"})


def _field(obj: Any, name: str, default: Any = None) -> Any:
    """Read `name` from an ORM row, pydantic model or plain dict."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _system_roles(user: Any) -> list:
    return list(_field(user, "roles") or [])


def is_manager(user: Any) -> bool:
    """True if the user holds the `admin` or `city_official` system role (any case)."""
    return any(
        str(_field(role, "name") or "").lower() in MANAGER_ROLE_NAMES
        for role in _system_roles(user)
    )


def system_matrix(user: Any) -> PermissionMatrix:
    """
    Matrix granted by the user's system roles alone.

    Managers get the full matrix without looking at role payloads. Everyone
    else gets the merge of every non-null role payload.
    """
    if is_manager(user):
        return full_matrix()

    payloads = [
        _field(role, "permissions")
        for role in _system_roles(user)
        if _field(role, "permissions") is not None
    ]
    if not payloads:
        return empty_matrix()
    return merge(*payloads)


def membership_matrix(membership: Any) -> PermissionMatrix:
    """
    Matrix granted inside an organization by a membership.

    Organization admins get the full matrix regardless of their org role.
    Inactive org roles grant nothing.
    """
    if membership is None:
        return empty_matrix()
    if _field(membership, "is_org_admin", False):
        return full_matrix()

    org_role = _field(membership, "org_role")
    if org_role is None or not _field(org_role, "is_active", True):
        return empty_matrix()
    return normalize(_field(org_role, "permissions") or [])


def effective_matrix(user: Any, membership: Optional[Any] = None) -> PermissionMatrix:
    """System matrix OR membership matrix."""
    return merge(system_matrix(user), membership_matrix(membership))
