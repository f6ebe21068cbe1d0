"""Per-verb access control for the remote-user resource."""
from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, FrozenSet, Iterable, Optional

from .errors import PermissionDeniedError

if TYPE_CHECKING:  # pragma: no cover
    from .models import App, UserRecord


class Permission(str, Enum):
    GET_USERS = "get_users"
    LIST_USERS = "list_users"
    POST_USERS = "post_users"
    PUT_USERS = "put_users"
    DELETE_USERS = "delete_users"


ALL_PERMISSIONS: FrozenSet[Permission] = frozenset(Permission)

# Operations that act on a single record also require the App to own it.
ITEM_PERMISSIONS: FrozenSet[Permission] = frozenset(
    {Permission.GET_USERS, Permission.PUT_USERS, Permission.DELETE_USERS}
)


def parse_permissions(raw: Optional[str | Iterable[str]]) -> FrozenSet[Permission]:
    """Parse a comma separated list (or iterable) of permission names."""

    if raw is None:
        return ALL_PERMISSIONS
    items = raw.split(",") if isinstance(raw, str) else list(raw)
    parsed = set()
    for item in items:
        name = item.strip().lower()
        if not name:
            continue
        try:
            parsed.add(Permission(name))
        except ValueError as exc:
            raise ValueError(f"Unknown permission {item.strip()!r}") from exc
    return frozenset(parsed)


def serialize_permissions(permissions: Iterable[Permission]) -> str:
    return ",".join(sorted(permission.value for permission in permissions))


def is_granted(app: "App", permission: Permission, subject: Optional["UserRecord"] = None) -> bool:
    """Return ``True`` when ``app`` may perform ``permission`` (on ``subject``)."""

    if permission not in app.permissions:
        return False
    if permission in ITEM_PERMISSIONS:
        if subject is None:
            return False
        return subject.app_id == app.id
    return True


def require_permission(
    app: "App",
    permission: Permission,
    subject: Optional["UserRecord"] = None,
) -> None:
    if not is_granted(app, permission, subject):
        raise PermissionDeniedError(f"App {app.id} is not granted {permission.value}")


__all__ = [
    "ALL_PERMISSIONS",
    "ITEM_PERMISSIONS",
    "Permission",
    "is_granted",
    "parse_permissions",
    "require_permission",
    "serialize_permissions",
]
