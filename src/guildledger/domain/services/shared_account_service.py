"""Shared account service for business logic.

Provides account lifecycle and membership operations for shared accounts.
Each operation first asks the permission service whether the caller is
allowed, then changes the stores. Operations that touch several rows run in
a single transaction that is rolled back on any error.

Ownership rules:
    - Only owners may add members or change member permissions.
    - Owners may remove anyone; every member may remove themselves.
    - An account always keeps at least one owner relation.
"""

import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from guildledger.core.config import get_settings
from guildledger.core.logging import get_logger
from guildledger.domain.entities.pagination import Page, Pagination
from guildledger.domain.entities.permission import (
    DEFAULT_PERMISSIONS,
    PermissionConfig,
    RelationType,
)
from guildledger.domain.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    SharedAccountError,
    StorageFaultError,
)
from guildledger.domain.services.shared_account_permission_service import (
    SharedAccountPermissionService,
)
from guildledger.infrastructure.persistence.models import (
    SharedAccountModel,
    UserAccountRelationModel,
)
from guildledger.infrastructure.persistence.repositories import (
    SharedAccountRepository,
    UserAccountRelationRepository,
    UserRepository,
)

logger = get_logger(__name__)

UPDATABLE_ACCOUNT_FIELDS = ("display_name", "server_name", "is_active")
PERMISSION_FIELDS = ("read", "write", "delete")


@dataclass
class SharedAccountSummary:
    """A shared account with its member count, as shown in listings."""

    account: SharedAccountModel
    user_count: int


@dataclass
class SharedAccountDetail:
    """A shared account with every relation and the member count."""

    account: SharedAccountModel
    relations: list[UserAccountRelationModel]
    user_count: int


def merge_permissions(
    base: PermissionConfig, overrides: dict[str, bool | None] | None
) -> PermissionConfig:
    """Apply a partial permission override field by field.

    Args:
        base: Permissions to start from.
        overrides: Mapping with any of 'read', 'write', 'delete'. None values
            and missing keys keep the base value.

    Returns:
        The merged permissions.

    Raises:
        ValueError: If the override names an unknown permission.
    """
    if not overrides:
        return base
    unknown = set(overrides) - set(PERMISSION_FIELDS)
    if unknown:
        raise ValueError(f"Unknown permission(s): {', '.join(sorted(unknown))}")
    return base.merged(**overrides)


class SharedAccountService:
    """Service for shared account management business logic."""

    def __init__(
        self,
        session: AsyncSession,
        permission_service: SharedAccountPermissionService | None = None,
    ) -> None:
        """Initialize the shared account service.

        Args:
            session: SQLAlchemy async session.
            permission_service: Permission evaluator; one bound to the same
                session is created if not provided.
        """
        self.session = session
        self.account_repo = SharedAccountRepository(session)
        self.relation_repo = UserAccountRelationRepository(session)
        self.user_repo = UserRepository(session)
        self.permission_service = permission_service or SharedAccountPermissionService(session)
        self.max_page_size = get_settings().max_page_size

    @asynccontextmanager
    async def _transaction(self, conflict_message: str | None = None) -> AsyncIterator[None]:
        """Commit the enclosed statements as one unit, or roll them all back.

        Args:
            conflict_message: Message for the ConflictError raised when the
                database rejects the changes with a constraint violation.
                Without it, constraint violations count as storage faults.
        """
        try:
            yield
            await self.session.commit()
        except SharedAccountError:
            await self.session.rollback()
            raise
        except IntegrityError as e:
            await self.session.rollback()
            if conflict_message is None:
                logger.error("Unexpected constraint violation", error=str(e))
                raise StorageFaultError("storage operation failed") from e
            raise ConflictError(conflict_message) from e
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Storage operation failed", error=str(e))
            raise StorageFaultError("storage operation failed") from e
        except Exception:
            await self.session.rollback()
            raise

    @asynccontextmanager
    async def _reading(self) -> AsyncIterator[None]:
        """Translate database failures during read-only work."""
        try:
            yield
        except SQLAlchemyError as e:
            logger.error("Storage read failed", error=str(e))
            raise StorageFaultError("storage operation failed") from e

    def _clamp(self, pagination: Pagination) -> Pagination:
        if pagination.size <= self.max_page_size:
            return pagination
        return Pagination(page=pagination.page, size=self.max_page_size, search=pagination.search)

    async def create_shared_account(
        self,
        account_name: str,
        display_name: str,
        server_name: str,
        creator_user_id: str,
    ) -> SharedAccountModel:
        """Create a shared account owned by its creator.

        The account row and the creator's owner relation are written in one
        transaction, so an account is never visible without an owner.

        Args:
            account_name: Unique account name.
            display_name: Human-readable label.
            server_name: Game server name.
            creator_user_id: User who becomes the first owner.

        Returns:
            Created shared account model.

        Raises:
            ConflictError: If the account name is already taken.
            NotFoundError: If the creator is not a known user.
        """
        conflict_message = f'shared account "{account_name}" already exists'

        async with self._reading():
            if await self.account_repo.exists(account_name):
                raise ConflictError(conflict_message)
            if not await self.user_repo.exists(creator_user_id):
                raise NotFoundError(f'user "{creator_user_id}" not found')

        now = datetime.now(timezone.utc)
        account = SharedAccountModel(
            account_name=account_name,
            display_name=display_name,
            server_name=server_name,
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        owner_relation = UserAccountRelationModel(
            id=str(uuid.uuid4()),
            user_id=creator_user_id,
            account_name=account_name,
            relation_type=RelationType.OWNER.value,
            joined_at=now,
        )
        owner_relation.permissions = DEFAULT_PERMISSIONS[RelationType.OWNER]

        async with self._transaction(conflict_message):
            await self.account_repo.create(account)
            await self.relation_repo.create(owner_relation)

        logger.info(
            "Shared account created",
            account_name=account_name,
            creator_user_id=creator_user_id,
        )
        return account

    async def get_user_accessible_accounts(
        self,
        user_id: str,
        pagination: Pagination,
        include_inactive: bool = False,
    ) -> Page[SharedAccountSummary]:
        """List the shared accounts a user is related to.

        Args:
            user_id: User ID.
            pagination: Page, size and optional search over account name,
                display name and server name.
            include_inactive: Whether to include deactivated accounts.

        Returns:
            Page of account summaries, most recently updated first.
        """
        pagination = self._clamp(pagination)
        async with self._reading():
            rows, total = await self.account_repo.list_for_user_paginated(
                user_id=user_id,
                page=pagination.page,
                page_size=pagination.size,
                search_query=pagination.search,
                include_inactive=include_inactive,
            )

        return Page(
            items=[SharedAccountSummary(account=account, user_count=count) for account, count in rows],
            total=total,
            page=pagination.page,
            size=pagination.size,
        )

    async def get_shared_account_detail(
        self, account_name: str, user_id: str
    ) -> SharedAccountDetail:
        """Get a shared account with all its members.

        The read check runs first; a user can hold no relation to an account
        that does not exist, so an unknown account name yields ForbiddenError.

        Raises:
            ForbiddenError: If the user cannot read the account.
            NotFoundError: If the account disappeared after the check.
        """
        if not await self.permission_service.can_read(user_id, account_name):
            raise ForbiddenError("no permission to access this shared account")

        async with self._reading():
            account = await self.account_repo.get_with_relations(account_name)

        if account is None:
            raise NotFoundError(f'shared account "{account_name}" not found')

        relations = list(account.relations)
        return SharedAccountDetail(account=account, relations=relations, user_count=len(relations))

    async def update_shared_account(
        self,
        account_name: str,
        changes: dict[str, Any],
        user_id: str,
    ) -> SharedAccountModel:
        """Apply a partial update to a shared account.

        Args:
            account_name: Account name.
            changes: Any of display_name, server_name, is_active. Omitted
                fields keep their current value.
            user_id: Acting user; needs write permission.

        Returns:
            Updated shared account model.

        Raises:
            ForbiddenError: If the user lacks write permission.
            NotFoundError: If the account does not exist.
            ValueError: If ``changes`` names a field that cannot be updated.
        """
        unknown = set(changes) - set(UPDATABLE_ACCOUNT_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

        if not await self.permission_service.can_write(user_id, account_name):
            raise ForbiddenError("no permission to modify this shared account")

        async with self._transaction():
            account = await self.account_repo.get_by_name(account_name)
            if account is None:
                raise NotFoundError(f'shared account "{account_name}" not found')

            for field_name, value in changes.items():
                setattr(account, field_name, value)
            account.updated_at = datetime.now(timezone.utc)

            await self.account_repo.update(account)

        logger.info(
            "Shared account updated",
            account_name=account_name,
            user_id=user_id,
            fields=sorted(changes),
        )
        return account

    async def delete_shared_account(self, account_name: str, user_id: str) -> None:
        """Delete a shared account and every relation to it.

        Raises:
            ForbiddenError: If the user lacks delete permission.
            NotFoundError: If the account does not exist.
        """
        if not await self.permission_service.can_delete(user_id, account_name):
            raise ForbiddenError("no permission to delete this shared account")

        async with self._transaction():
            account = await self.account_repo.get_by_name(account_name)
            if account is None:
                raise NotFoundError(f'shared account "{account_name}" not found')

            removed = await self.relation_repo.delete_by_account(account_name)
            await self.account_repo.delete_by_name(account_name)

        logger.info(
            "Shared account deleted",
            account_name=account_name,
            user_id=user_id,
            relations_removed=removed,
        )

    async def add_user_to_account(
        self,
        account_name: str,
        target_user_id: str,
        operator_user_id: str,
        relation_type: RelationType = RelationType.CONTRIBUTOR,
        permissions: dict[str, bool | None] | None = None,
    ) -> UserAccountRelationModel:
        """Add a user to a shared account.

        The new relation starts from the default permissions of its relation
        type; any flag in ``permissions`` overrides the default.

        Args:
            account_name: Account name.
            target_user_id: User to add.
            operator_user_id: Acting user; must be an owner.
            relation_type: Owner or contributor.
            permissions: Optional partial permission override.

        Returns:
            Created relation model.

        Raises:
            ForbiddenError: If the operator is not an owner.
            NotFoundError: If the account or the target user does not exist.
            ConflictError: If the target user is already related to the account.
        """
        if not await self.permission_service.is_owner(operator_user_id, account_name):
            raise ForbiddenError("only owners can add users to a shared account")

        relation_type = RelationType(relation_type)
        effective = merge_permissions(DEFAULT_PERMISSIONS[relation_type], permissions)

        conflict_message = "user is already related to this shared account"

        async with self._transaction(conflict_message):
            if await self.account_repo.get_by_name(account_name) is None:
                raise NotFoundError(f'shared account "{account_name}" not found')

            if not await self.user_repo.exists(target_user_id):
                raise NotFoundError(f'user "{target_user_id}" not found')

            if await self.relation_repo.find_relation(target_user_id, account_name):
                raise ConflictError(conflict_message)

            relation = UserAccountRelationModel(
                id=str(uuid.uuid4()),
                user_id=target_user_id,
                account_name=account_name,
                relation_type=relation_type.value,
                joined_at=datetime.now(timezone.utc),
            )
            relation.permissions = effective
            await self.relation_repo.create(relation)

        logger.info(
            "User added to shared account",
            account_name=account_name,
            target_user_id=target_user_id,
            operator_user_id=operator_user_id,
            relation_type=relation_type.value,
        )
        return relation

    async def remove_user_from_account(
        self,
        account_name: str,
        target_user_id: str,
        operator_user_id: str,
    ) -> None:
        """Remove a user from a shared account.

        Owners may remove anyone and every user may remove themselves. When the
        removed relation is an owner, the remaining owners are counted again
        after the delete, inside the same transaction. The delete holds the
        write lock until commit, so of two concurrent removals the later one
        sees the earlier one's delete and rolls back.

        Raises:
            ForbiddenError: If the operator is neither an owner nor the target.
            NotFoundError: If the target user is not related to the account.
            ConflictError: If the target is the last owner.
        """
        is_self = operator_user_id == target_user_id
        if not is_self and not await self.permission_service.is_owner(
            operator_user_id, account_name
        ):
            raise ForbiddenError(
                "only owners can remove other users; users may only remove themselves"
            )

        async with self._transaction():
            relation = await self.relation_repo.find_relation(target_user_id, account_name)
            if relation is None:
                raise NotFoundError("user not related to this account")

            removing_owner = relation.is_owner
            if removing_owner:
                owner_count = await self.relation_repo.count_owners(account_name, lock=True)
                if owner_count <= 1:
                    raise ConflictError("cannot remove the last owner")

            await self.relation_repo.delete(relation)

            # A concurrent removal may have committed since the count above.
            if removing_owner and await self.relation_repo.count_owners(account_name) < 1:
                raise ConflictError("cannot remove the last owner")

        logger.info(
            "User removed from shared account",
            account_name=account_name,
            target_user_id=target_user_id,
            operator_user_id=operator_user_id,
        )

    async def update_user_permissions(
        self,
        account_name: str,
        target_user_id: str,
        partial_permissions: dict[str, bool | None],
        operator_user_id: str,
    ) -> UserAccountRelationModel:
        """Change a member's permission flags.

        Only the given flags change; the relation type never does.

        Raises:
            ForbiddenError: If the operator is not an owner.
            NotFoundError: If the target user is not related to the account.
            ValueError: If ``partial_permissions`` names an unknown flag.
        """
        if not await self.permission_service.is_owner(operator_user_id, account_name):
            raise ForbiddenError("only owners can change user permissions")

        merge_permissions(PermissionConfig(read=False, write=False), partial_permissions)

        async with self._transaction():
            relation = await self.relation_repo.find_relation(target_user_id, account_name)
            if relation is None:
                raise NotFoundError("user not related to this account")

            relation.permissions = merge_permissions(relation.permissions, partial_permissions)
            await self.relation_repo.update(relation)

        logger.info(
            "User permissions updated",
            account_name=account_name,
            target_user_id=target_user_id,
            operator_user_id=operator_user_id,
            permissions=relation.permissions.to_dict(),
        )
        return relation

    async def get_account_users(
        self,
        account_name: str,
        user_id: str,
        pagination: Pagination,
    ) -> Page[UserAccountRelationModel]:
        """List the members of a shared account, earliest member first.

        Args:
            account_name: Account name.
            user_id: Acting user; needs read permission.
            pagination: Page, size and optional search over user ID and username.

        Raises:
            ForbiddenError: If the user cannot read the account.
        """
        if not await self.permission_service.can_read(user_id, account_name):
            raise ForbiddenError("no permission to view users of this shared account")

        pagination = self._clamp(pagination)
        async with self._reading():
            relations, total = await self.relation_repo.list_for_account_paginated(
                account_name=account_name,
                page=pagination.page,
                page_size=pagination.size,
                search_query=pagination.search,
            )

        return Page(items=relations, total=total, page=pagination.page, size=pagination.size)
