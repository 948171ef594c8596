"""API schemas for request/response validation."""

from guildledger.infrastructure.api.schemas.shared_account_schemas import (
    AccessibleAccountsResponse,
    AddUserToAccountRequest,
    BatchPermissionCheckRequest,
    CreateSharedAccountRequest,
    PermissionCheckResponse,
    PermissionConfigSchema,
    PermissionOverride,
    SharedAccountDetailResponse,
    SharedAccountListResponse,
    SharedAccountResponse,
    UpdateSharedAccountRequest,
    UserRelationListResponse,
    UserRelationResponse,
)

__all__ = [
    "AccessibleAccountsResponse",
    "AddUserToAccountRequest",
    "BatchPermissionCheckRequest",
    "CreateSharedAccountRequest",
    "PermissionCheckResponse",
    "PermissionConfigSchema",
    "PermissionOverride",
    "SharedAccountDetailResponse",
    "SharedAccountListResponse",
    "SharedAccountResponse",
    "UpdateSharedAccountRequest",
    "UserRelationListResponse",
    "UserRelationResponse",
]
