"""Pydantic schemas for shared account endpoints."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from guildledger.domain.entities.permission import (
    PermissionAction,
    PermissionCheckResult,
    PermissionConfig,
    RelationType,
)

# GET /shared-accounts/accessible would shadow the detail route of these.
RESERVED_ACCOUNT_NAMES = frozenset({"accessible"})


class PermissionConfigSchema(BaseModel):
    """Full set of permission flags."""

    read: bool = Field(..., description="Read permission")
    write: bool = Field(..., description="Write permission")
    delete: bool = Field(False, description="Delete permission")

    @classmethod
    def from_config(cls, config: PermissionConfig) -> "PermissionConfigSchema":
        return cls(**config.to_dict())


class PermissionOverride(BaseModel):
    """Partial set of permission flags; omitted flags are left unchanged."""

    read: bool | None = Field(None, description="Read permission")
    write: bool | None = Field(None, description="Write permission")
    delete: bool | None = Field(None, description="Delete permission")


class CreateSharedAccountRequest(BaseModel):
    """Request body for creating a shared account."""

    account_name: str = Field(
        ...,
        min_length=3,
        max_length=50,
        pattern=r"^[a-zA-Z0-9_-]+$",
        description="Unique account name (letters, digits, underscore, hyphen)",
    )
    display_name: str = Field(..., min_length=1, max_length=100, description="Display name")
    server_name: str = Field(..., min_length=1, max_length=50, description="Game server name")

    @field_validator("account_name")
    @classmethod
    def reject_reserved_names(cls, v: str) -> str:
        """Reject names that collide with fixed routes under the collection."""
        if v in RESERVED_ACCOUNT_NAMES:
            raise ValueError(f'"{v}" is a reserved name')
        return v


class UpdateSharedAccountRequest(BaseModel):
    """Request body for a partial shared account update."""

    display_name: str | None = Field(None, min_length=1, max_length=100)
    server_name: str | None = Field(None, min_length=1, max_length=50)
    is_active: bool | None = Field(None, description="Whether the account is active")


class AddUserToAccountRequest(BaseModel):
    """Request body for adding a user to a shared account."""

    user_id: str = Field(..., min_length=1, max_length=36, description="User ID to add")
    relation_type: RelationType = Field(
        RelationType.CONTRIBUTOR, description="Relation type of the new member"
    )
    permissions: PermissionOverride | None = Field(
        None, description="Optional override of the relation type's default permissions"
    )


class BatchPermissionCheckRequest(BaseModel):
    """Request body for checking one action on several accounts."""

    account_names: list[str] = Field(..., min_length=1, max_length=100)
    action: PermissionAction = PermissionAction.READ


class SharedAccountResponse(BaseModel):
    """Shared account information."""

    account_name: str
    display_name: str | None
    server_name: str | None
    is_active: bool
    user_count: int | None = Field(None, description="Number of related users")
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserRelationResponse(BaseModel):
    """A user's membership in a shared account."""

    id: str
    user_id: str
    username: str | None = None
    relation_type: RelationType
    permissions: PermissionConfigSchema
    joined_at: datetime


class SharedAccountDetailResponse(SharedAccountResponse):
    """Shared account with all its members."""

    user_relations: list[UserRelationResponse] = Field(default_factory=list)


class SharedAccountListResponse(BaseModel):
    """Paginated response for shared account list."""

    items: list[SharedAccountResponse]
    total: int = Field(..., description="Total number of matching accounts")
    page: int = Field(..., description="Current page number (1-indexed)")
    size: int = Field(..., description="Number of items per page")
    total_pages: int = Field(..., description="Total number of pages")


class UserRelationListResponse(BaseModel):
    """Paginated response for shared account members."""

    items: list[UserRelationResponse]
    total: int
    page: int
    size: int
    total_pages: int


class PermissionCheckResponse(BaseModel):
    """Result of a permission check."""

    has_permission: bool
    relation_type: RelationType | None = None
    permissions: PermissionConfigSchema | None = None
    reason: str | None = None

    @classmethod
    def from_result(cls, result: PermissionCheckResult) -> "PermissionCheckResponse":
        return cls(
            has_permission=result.has_permission,
            relation_type=result.relation_type,
            permissions=(
                PermissionConfigSchema.from_config(result.permissions)
                if result.permissions is not None
                else None
            ),
            reason=result.reason,
        )


class AccessibleAccountsResponse(BaseModel):
    """Names of the accounts on which the caller holds a permission."""

    action: PermissionAction
    account_names: list[str]
