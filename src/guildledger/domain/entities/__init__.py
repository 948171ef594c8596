"""Domain entities for GuildLedger.

Entities are pure Python dataclasses and enums that represent core business
concepts. They have no dependencies on infrastructure or external frameworks.
"""

from guildledger.domain.entities.pagination import Page, Pagination
from guildledger.domain.entities.permission import (
    DEFAULT_PERMISSIONS,
    PermissionAction,
    PermissionCheckResult,
    PermissionConfig,
    RelationType,
)

__all__ = [
    "DEFAULT_PERMISSIONS",
    "Page",
    "Pagination",
    "PermissionAction",
    "PermissionCheckResult",
    "PermissionConfig",
    "RelationType",
]
