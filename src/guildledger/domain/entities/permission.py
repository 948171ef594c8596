"""Permission model for shared accounts.

A user's membership in a shared account has a relation type (owner or
contributor) and an independent set of three permission flags. The relation
type only decides the default flags; after creation each flag can be
changed on its own.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any


class RelationType(str, Enum):
    """Role of a user within a shared account."""

    OWNER = "owner"
    CONTRIBUTOR = "contributor"


class PermissionAction(str, Enum):
    """Unit of authorization granularity."""

    READ = "read"
    WRITE = "write"
    DELETE = "delete"


@dataclass(frozen=True)
class PermissionConfig:
    """Permission flags held by one relation.

    Attributes:
        read: May view the account and its members.
        write: May edit the account.
        delete: May delete the account.
    """

    read: bool
    write: bool
    delete: bool = False

    def allows(self, action: PermissionAction) -> bool:
        """Return whether the flag for ``action`` is set."""
        if action is PermissionAction.READ:
            return self.read is True
        if action is PermissionAction.WRITE:
            return self.write is True
        if action is PermissionAction.DELETE:
            return self.delete is True
        return False

    def merged(
        self,
        read: bool | None = None,
        write: bool | None = None,
        delete: bool | None = None,
    ) -> "PermissionConfig":
        """Return a copy with every non-None flag overridden."""
        changes = {
            name: value
            for name, value in (("read", read), ("write", write), ("delete", delete))
            if value is not None
        }
        return replace(self, **changes)

    def to_dict(self) -> dict[str, bool]:
        """Convert flags to dictionary format for JSON serialization."""
        return {"read": self.read, "write": self.write, "delete": self.delete}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PermissionConfig":
        """Create flags from a dictionary; absent flags are False."""
        return cls(
            read=data.get("read") is True,
            write=data.get("write") is True,
            delete=data.get("delete") is True,
        )


DEFAULT_PERMISSIONS: dict[RelationType, PermissionConfig] = {
    RelationType.OWNER: PermissionConfig(read=True, write=True, delete=True),
    RelationType.CONTRIBUTOR: PermissionConfig(read=True, write=True, delete=False),
}


@dataclass
class PermissionCheckResult:
    """Outcome of a single permission check.

    Attributes:
        has_permission: Whether the action is granted.
        relation_type: The caller's relation type, if related.
        permissions: The caller's stored flags, if related.
        reason: Why access was denied; None when granted.
    """

    has_permission: bool
    relation_type: RelationType | None = None
    permissions: PermissionConfig | None = None
    reason: str | None = None
