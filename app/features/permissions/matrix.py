"""
Tool permission matrix.

A permission matrix maps every tool to a `ToolAccess(view, edit)` pair. Role
payloads arrive in three shapes that coexist in the same JSON columns:

- the wildcard string ``"*"``
- a legacy list of permission tokens, e.g. ``["legislation.read", "mapping.edit"]``
- a matrix object, e.g. ``{"legislation": {"view": true, "edit": false}}``

`normalize` resolves any of them into a `PermissionMatrix`. Unrecognized
payloads normalize to the empty matrix instead of raising, so permission
resolution fails closed.
"""
import enum
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any

TOOL_KEYS: tuple[str, ...] = (
    "mapping_zoning",
    "legislation",
    "organization_management",
    "data_management",
    "accounting",
    "approvals",
)

ACTIONS: tuple[str, ...] = ("view", "edit")

WILDCARD = "*"

# Any of these in a legacy list grants every tool
ADMIN_SENTINELS = frozenset({"*", "system.admin", "admin"})

LEGACY_PERMISSION_MAP: dict[str, tuple[str, str]] = {
    "mapping.read": ("mapping_zoning", "view"),
    "mapping.edit": ("mapping_zoning", "edit"),
    "legislation.read": ("legislation", "view"),
    "legislation.create": ("legislation", "edit"),
    "legislation.update": ("legislation", "edit"),
    "legislation.delete": ("legislation", "edit"),
    "legislation.approve": ("legislation", "edit"),
    "workflow.read": ("legislation", "view"),
    "workflow.create": ("legislation", "edit"),
    "workflow.update": ("legislation", "edit"),
    "workflow.delete": ("legislation", "edit"),
    "org.manage": ("organization_management", "edit"),
    "members.read": ("organization_management", "view"),
    "members.manage": ("organization_management", "edit"),
    "settings.manage": ("organization_management", "edit"),
    "approvals.read": ("approvals", "view"),
    "approvals.edit": ("approvals", "edit"),
    "accounting.read": ("accounting", "view"),
    "accounting.edit": ("accounting", "edit"),
    "data.read": ("data_management", "view"),
    "data.edit": ("data_management", "edit"),
}


@dataclass(frozen=True)
class ToolAccess:
    """Access bits for a single tool."""
    view: bool = False
    edit: bool = False

    def __or__(self, other: "ToolAccess") -> "ToolAccess":
        return ToolAccess(view=self.view or other.view, edit=self.edit or other.edit)

    def to_dict(self) -> dict[str, bool]:
        return {"view": self.view, "edit": self.edit}


NO_ACCESS = ToolAccess()
FULL_ACCESS = ToolAccess(view=True, edit=True)


class PermissionMatrix(Mapping[str, ToolAccess]):
    """
    Immutable, total mapping of tool key -> ToolAccess.

    Tools missing from `entries` get NO_ACCESS; keys outside TOOL_KEYS are
    dropped. Compares equal to any mapping with the same items.
    """
    __slots__ = ("_entries",)

    def __init__(self, entries: Mapping[str, ToolAccess] | None = None):
        entries = entries or {}
        self._entries = {tool: entries.get(tool, NO_ACCESS) for tool in TOOL_KEYS}

    def __getitem__(self, tool: str) -> ToolAccess:
        return self._entries[tool]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        granted = {tool: access for tool, access in self._entries.items() if access != NO_ACCESS}
        return f"<PermissionMatrix({granted})>"

    def to_dict(self) -> dict[str, dict[str, bool]]:
        """JSON form: {tool: {"view": bool, "edit": bool}} for every tool."""
        return {tool: access.to_dict() for tool, access in self._entries.items()}


class PayloadKind(str, enum.Enum):
    """Shape of a stored permissions payload."""
    WILDCARD = "wildcard"
    LEGACY_LIST = "legacy_list"
    MATRIX = "matrix"
    UNRECOGNIZED = "unrecognized"


def classify_payload(value: Any) -> PayloadKind:
    if isinstance(value, str):
        return PayloadKind.WILDCARD if value == WILDCARD else PayloadKind.UNRECOGNIZED
    if isinstance(value, (list, tuple)):
        return PayloadKind.LEGACY_LIST
    if isinstance(value, Mapping):
        return PayloadKind.MATRIX
    return PayloadKind.UNRECOGNIZED


def empty_matrix() -> PermissionMatrix:
    return PermissionMatrix()


def full_matrix() -> PermissionMatrix:
    return PermissionMatrix({tool: FULL_ACCESS for tool in TOOL_KEYS})


def _normalize_entry(entry: Any) -> ToolAccess:
    # bool before Mapping: a bare flag grants both actions
    if isinstance(entry, bool):
        return ToolAccess(view=entry, edit=entry)
    if isinstance(entry, ToolAccess):
        return ToolAccess(view=entry.view or entry.edit, edit=entry.edit)
    if isinstance(entry, Mapping):
        edit = bool(entry.get("edit"))
        return ToolAccess(view=bool(entry.get("view")) or edit, edit=edit)
    return NO_ACCESS


def _from_legacy_list(tokens: list | tuple) -> PermissionMatrix:
    cleaned = [str(token).strip() for token in tokens if token is not None]
    if any(token in ADMIN_SENTINELS for token in cleaned):
        return full_matrix()

    entries: dict[str, ToolAccess] = {}
    for token in cleaned:
        mapping = LEGACY_PERMISSION_MAP.get(token)
        if mapping is None:
            continue
        tool, action = mapping
        granted = FULL_ACCESS if action == "edit" else ToolAccess(view=True)
        entries[tool] = entries.get(tool, NO_ACCESS) | granted
    return PermissionMatrix(entries)


def normalize(value: Any) -> PermissionMatrix:
    """
    Normalize any permissions payload into a PermissionMatrix.

    Args:
        value: "*", a legacy token list, a matrix-shaped mapping, or anything else

    Returns:
        A matrix with every tool present. Unrecognized input yields the empty matrix.
    """
    kind = classify_payload(value)
    if kind is PayloadKind.WILDCARD:
        return full_matrix()
    if kind is PayloadKind.LEGACY_LIST:
        return _from_legacy_list(value)
    if kind is PayloadKind.MATRIX:
        return PermissionMatrix({tool: _normalize_entry(value.get(tool)) for tool in TOOL_KEYS})
    return empty_matrix()


def merge(*values: Any) -> PermissionMatrix:
    """OR every (tool, action) cell across the normalized inputs."""
    entries = {tool: NO_ACCESS for tool in TOOL_KEYS}
    for value in values:
        matrix = normalize(value)
        for tool in TOOL_KEYS:
            entries[tool] = entries[tool] | matrix[tool]
    return PermissionMatrix(entries)


def has_permission(matrix: Any, tool: str, action: str = "view") -> bool:
    """
    Check a single (tool, action) cell.

    Unknown tools or actions are denied. `view` is granted by either bit,
    `edit` only by the edit bit.
    """
    if tool not in TOOL_KEYS or action not in ACTIONS:
        return False
    access = normalize(matrix)[tool]
    if action == "view":
        return access.view or access.edit
    return access.edit


def permission_schema_version(value: Any) -> int:
    """Storage version of an org role payload: 2 for matrix objects, 1 otherwise."""
    return 2 if classify_payload(value) is PayloadKind.MATRIX else 1
