"""Shared accounts API routes.

Provides endpoints for shared account lifecycle, membership management and
permission queries. Every endpoint acts on behalf of the authenticated caller.
Domain errors are translated to HTTP responses by the application's exception
handlers.
"""

from fastapi import APIRouter, Query, Response, status

from guildledger.domain.entities.pagination import Pagination
from guildledger.domain.entities.permission import PermissionAction
from guildledger.domain.services import SharedAccountDetail
from guildledger.infrastructure.api.dependencies import (
    AuthenticatedUser,
    PermissionServiceDep,
    SharedAccountServiceDep,
)
from guildledger.infrastructure.api.schemas import (
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
from guildledger.infrastructure.persistence.models import (
    SharedAccountModel,
    UserAccountRelationModel,
)

router = APIRouter()


def _account_response(
    account: SharedAccountModel, user_count: int | None = None
) -> SharedAccountResponse:
    return SharedAccountResponse(
        account_name=account.account_name,
        display_name=account.display_name,
        server_name=account.server_name,
        is_active=account.is_active,
        user_count=user_count,
        created_at=account.created_at,
        updated_at=account.updated_at,
    )


def _relation_response(relation: UserAccountRelationModel) -> UserRelationResponse:
    return UserRelationResponse(
        id=relation.id,
        user_id=relation.user_id,
        username=relation.username,
        relation_type=relation.type,
        permissions=PermissionConfigSchema.from_config(relation.permissions),
        joined_at=relation.joined_at,
    )


def _detail_response(detail: SharedAccountDetail) -> SharedAccountDetailResponse:
    account = detail.account
    return SharedAccountDetailResponse(
        account_name=account.account_name,
        display_name=account.display_name,
        server_name=account.server_name,
        is_active=account.is_active,
        user_count=detail.user_count,
        created_at=account.created_at,
        updated_at=account.updated_at,
        user_relations=[_relation_response(r) for r in detail.relations],
    )


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=SharedAccountResponse,
    responses={
        404: {"description": "Creator not found"},
        409: {"description": "Account name already exists"},
    },
)
async def create_shared_account(
    request: CreateSharedAccountRequest,
    current_user: AuthenticatedUser,
    service: SharedAccountServiceDep,
) -> SharedAccountResponse:
    """Create a shared account owned by the caller."""
    account = await service.create_shared_account(
        account_name=request.account_name,
        display_name=request.display_name,
        server_name=request.server_name,
        creator_user_id=current_user.user_id,
    )
    return _account_response(account, user_count=1)


@router.get(
    "",
    status_code=status.HTTP_200_OK,
    response_model=SharedAccountListResponse,
)
async def list_shared_accounts(
    current_user: AuthenticatedUser,
    service: SharedAccountServiceDep,
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    size: int = Query(20, ge=1, le=100, description="Items per page"),
    search: str | None = Query(None, description="Search account, display or server name"),
    include_inactive: bool = Query(False, description="Include deactivated accounts"),
) -> SharedAccountListResponse:
    """List the shared accounts the caller is related to.

    Most recently updated accounts come first.
    """
    result = await service.get_user_accessible_accounts(
        user_id=current_user.user_id,
        pagination=Pagination(page=page, size=size, search=search),
        include_inactive=include_inactive,
    )

    return SharedAccountListResponse(
        items=[_account_response(s.account, s.user_count) for s in result.items],
        total=result.total,
        page=result.page,
        size=result.size,
        total_pages=result.total_pages,
    )


@router.get(
    "/accessible",
    status_code=status.HTTP_200_OK,
    response_model=AccessibleAccountsResponse,
)
async def list_accessible_account_names(
    current_user: AuthenticatedUser,
    permission_service: PermissionServiceDep,
    action: PermissionAction = Query(PermissionAction.READ, description="Required action"),
) -> AccessibleAccountsResponse:
    """List the names of the accounts on which the caller may perform an action."""
    names = await permission_service.get_accessible_accounts(current_user.user_id, action)
    return AccessibleAccountsResponse(action=action, account_names=names)


@router.post(
    "/permissions/batch",
    status_code=status.HTTP_200_OK,
    response_model=dict[str, PermissionCheckResponse],
)
async def batch_check_permissions(
    request: BatchPermissionCheckRequest,
    current_user: AuthenticatedUser,
    permission_service: PermissionServiceDep,
) -> dict[str, PermissionCheckResponse]:
    """Check one action for the caller on several accounts at once.

    The response has exactly one entry per distinct account name.
    """
    results = await permission_service.batch_check_permissions(
        current_user.user_id, request.account_names, request.action
    )
    return {name: PermissionCheckResponse.from_result(r) for name, r in results.items()}


@router.get(
    "/{account_name}",
    status_code=status.HTTP_200_OK,
    response_model=SharedAccountDetailResponse,
    responses={
        403: {"description": "No read permission"},
        404: {"description": "Account not found"},
    },
)
async def get_shared_account(
    account_name: str,
    current_user: AuthenticatedUser,
    service: SharedAccountServiceDep,
) -> SharedAccountDetailResponse:
    """Get a shared account with all its members."""
    detail = await service.get_shared_account_detail(account_name, current_user.user_id)
    return _detail_response(detail)


@router.put(
    "/{account_name}",
    status_code=status.HTTP_200_OK,
    response_model=SharedAccountResponse,
    responses={
        403: {"description": "No write permission"},
        404: {"description": "Account not found"},
    },
)
async def update_shared_account(
    account_name: str,
    request: UpdateSharedAccountRequest,
    current_user: AuthenticatedUser,
    service: SharedAccountServiceDep,
) -> SharedAccountResponse:
    """Update a shared account's display name, server name or active flag."""
    changes = request.model_dump(exclude_none=True)
    account = await service.update_shared_account(account_name, changes, current_user.user_id)
    return _account_response(account)


@router.delete(
    "/{account_name}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        403: {"description": "No delete permission"},
        404: {"description": "Account not found"},
    },
)
async def delete_shared_account(
    account_name: str,
    current_user: AuthenticatedUser,
    service: SharedAccountServiceDep,
) -> Response:
    """Delete a shared account and all of its memberships."""
    await service.delete_shared_account(account_name, current_user.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{account_name}/users",
    status_code=status.HTTP_201_CREATED,
    response_model=UserRelationResponse,
    responses={
        403: {"description": "Caller is not an owner"},
        404: {"description": "Account or user not found"},
        409: {"description": "User already related to the account"},
    },
)
async def add_user_to_account(
    account_name: str,
    request: AddUserToAccountRequest,
    current_user: AuthenticatedUser,
    service: SharedAccountServiceDep,
) -> UserRelationResponse:
    """Add a user to a shared account (owners only)."""
    overrides = (
        request.permissions.model_dump(exclude_none=True) if request.permissions else None
    )
    relation = await service.add_user_to_account(
        account_name=account_name,
        target_user_id=request.user_id,
        operator_user_id=current_user.user_id,
        relation_type=request.relation_type,
        permissions=overrides,
    )
    return _relation_response(relation)


@router.get(
    "/{account_name}/users",
    status_code=status.HTTP_200_OK,
    response_model=UserRelationListResponse,
    responses={403: {"description": "No read permission"}},
)
async def list_account_users(
    account_name: str,
    current_user: AuthenticatedUser,
    service: SharedAccountServiceDep,
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    size: int = Query(20, ge=1, le=100, description="Items per page"),
    search: str | None = Query(None, description="Search user ID or username"),
) -> UserRelationListResponse:
    """List the members of a shared account, earliest member first."""
    result = await service.get_account_users(
        account_name,
        current_user.user_id,
        Pagination(page=page, size=size, search=search),
    )

    return UserRelationListResponse(
        items=[_relation_response(r) for r in result.items],
        total=result.total,
        page=result.page,
        size=result.size,
        total_pages=result.total_pages,
    )


@router.delete(
    "/{account_name}/users/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        403: {"description": "Caller may not remove this user"},
        404: {"description": "User not related to the account"},
        409: {"description": "Last owner cannot be removed"},
    },
)
async def remove_user_from_account(
    account_name: str,
    user_id: str,
    current_user: AuthenticatedUser,
    service: SharedAccountServiceDep,
) -> Response:
    """Remove a user from a shared account.

    Owners may remove anyone; any member may remove themselves.
    """
    await service.remove_user_from_account(
        account_name=account_name,
        target_user_id=user_id,
        operator_user_id=current_user.user_id,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put(
    "/{account_name}/users/{user_id}/permissions",
    status_code=status.HTTP_200_OK,
    response_model=UserRelationResponse,
    responses={
        403: {"description": "Caller is not an owner"},
        404: {"description": "User not related to the account"},
    },
)
async def update_user_permissions(
    account_name: str,
    user_id: str,
    request: PermissionOverride,
    current_user: AuthenticatedUser,
    service: SharedAccountServiceDep,
) -> UserRelationResponse:
    """Change a member's permission flags (owners only)."""
    relation = await service.update_user_permissions(
        account_name=account_name,
        target_user_id=user_id,
        partial_permissions=request.model_dump(exclude_none=True),
        operator_user_id=current_user.user_id,
    )
    return _relation_response(relation)


@router.get(
    "/{account_name}/permissions",
    status_code=status.HTTP_200_OK,
    response_model=PermissionCheckResponse,
)
async def get_my_permissions(
    account_name: str,
    current_user: AuthenticatedUser,
    permission_service: PermissionServiceDep,
) -> PermissionCheckResponse:
    """Get the caller's relation and permissions on a shared account."""
    result = await permission_service.get_user_permissions(current_user.user_id, account_name)
    return PermissionCheckResponse.from_result(result)


@router.get(
    "/{account_name}/permissions/{action}",
    status_code=status.HTTP_200_OK,
    response_model=PermissionCheckResponse,
)
async def check_my_permission(
    account_name: str,
    action: PermissionAction,
    current_user: AuthenticatedUser,
    permission_service: PermissionServiceDep,
) -> PermissionCheckResponse:
    """Check whether the caller may perform an action on a shared account."""
    result = await permission_service.check_permission(
        current_user.user_id, account_name, action
    )
    return PermissionCheckResponse.from_result(result)
