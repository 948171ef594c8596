"""Permission evaluation for shared accounts.

Answers "may this user perform this action on this shared account?" from the
user's relation row. Every query here fails closed: a missing relation, a
missing flag or a storage fault all come back as "denied" (or an empty list)
instead of an exception. Only ``validate_permission_or_throw`` raises.
"""

import asyncio

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from guildledger.core.logging import get_logger
from guildledger.domain.entities.permission import (
    PermissionAction,
    PermissionCheckResult,
)
from guildledger.domain.exceptions import PermissionDeniedError
from guildledger.infrastructure.persistence.repositories import UserAccountRelationRepository

logger = get_logger(__name__)

REASON_NOT_RELATED = "user not related to this account"
REASON_CHECK_ERROR = "error during permission check"


def lacks_permission_reason(action: PermissionAction) -> str:
    """Denial reason for a relation whose flag for ``action`` is not set."""
    return f"user lacks {action.value} permission"


class SharedAccountPermissionService:
    """Evaluates user permissions on shared accounts.

    The service is stateless apart from its session. When a session factory
    is supplied, batch checks run concurrently on independent sessions;
    otherwise they run one after another on the shared session, since an
    AsyncSession must not be used by concurrent tasks.
    """

    def __init__(
        self,
        session: AsyncSession,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            session: Database session for querying relations.
            session_factory: Optional factory for per-check sessions in batch mode.
        """
        self.session = session
        self.session_factory = session_factory
        self.relation_repo = UserAccountRelationRepository(session)

    async def check_permission(
        self,
        user_id: str,
        account_name: str,
        action: PermissionAction,
    ) -> PermissionCheckResult:
        """Check whether a user may perform an action on a shared account.

        Args:
            user_id: User ID.
            account_name: Shared account name.
            action: Action to check.

        Returns:
            PermissionCheckResult. Never raises.
        """
        try:
            relation = await self.relation_repo.find_relation(user_id, account_name)
            if relation is None:
                return PermissionCheckResult(has_permission=False, reason=REASON_NOT_RELATED)

            permissions = relation.permissions
            has_permission = permissions.allows(action)

            return PermissionCheckResult(
                has_permission=has_permission,
                relation_type=relation.type,
                permissions=permissions,
                reason=None if has_permission else lacks_permission_reason(action),
            )
        except Exception as e:
            logger.error(
                "Permission check failed",
                user_id=user_id,
                account_name=account_name,
                action=action.value,
                error=str(e),
            )
            return PermissionCheckResult(has_permission=False, reason=REASON_CHECK_ERROR)

    async def is_owner(self, user_id: str, account_name: str) -> bool:
        """Check whether a user holds an owner relation to a shared account.

        Storage faults are logged and reported as False.
        """
        try:
            relation = await self.relation_repo.find_owner_relation(user_id, account_name)
        except Exception as e:
            logger.error(
                "Owner check failed",
                user_id=user_id,
                account_name=account_name,
                error=str(e),
            )
            return False
        return relation is not None

    async def can_read(self, user_id: str, account_name: str) -> bool:
        result = await self.check_permission(user_id, account_name, PermissionAction.READ)
        return result.has_permission

    async def can_write(self, user_id: str, account_name: str) -> bool:
        result = await self.check_permission(user_id, account_name, PermissionAction.WRITE)
        return result.has_permission

    async def can_delete(self, user_id: str, account_name: str) -> bool:
        result = await self.check_permission(user_id, account_name, PermissionAction.DELETE)
        return result.has_permission

    async def get_user_permissions(
        self, user_id: str, account_name: str
    ) -> PermissionCheckResult:
        """Return the caller's relation type and flags for an account.

        Same shape as a read check, so ``has_permission`` tells whether the
        user can see the account at all.
        """
        return await self.check_permission(user_id, account_name, PermissionAction.READ)

    async def batch_check_permissions(
        self,
        user_id: str,
        account_names: list[str],
        action: PermissionAction,
    ) -> dict[str, PermissionCheckResult]:
        """Check one action against several shared accounts.

        Args:
            user_id: User ID.
            account_names: Shared account names; duplicates collapse to one entry.
            action: Action to check.

        Returns:
            Mapping of account name to its check result, one entry per name.
        """
        names = list(dict.fromkeys(account_names))

        if self.session_factory is None:
            results = [await self.check_permission(user_id, name, action) for name in names]
        else:
            results = await asyncio.gather(
                *(self._check_in_own_session(user_id, name, action) for name in names)
            )

        return dict(zip(names, results))

    async def _check_in_own_session(
        self,
        user_id: str,
        account_name: str,
        action: PermissionAction,
    ) -> PermissionCheckResult:
        """Run a single check on a fresh session from the factory."""
        try:
            async with self.session_factory() as session:
                checker = SharedAccountPermissionService(session)
                return await checker.check_permission(user_id, account_name, action)
        except Exception as e:
            logger.error(
                "Batch permission check failed",
                user_id=user_id,
                account_name=account_name,
                action=action.value,
                error=str(e),
            )
            return PermissionCheckResult(has_permission=False, reason=REASON_CHECK_ERROR)

    async def get_accessible_accounts(
        self,
        user_id: str,
        action: PermissionAction = PermissionAction.READ,
    ) -> list[str]:
        """List the shared accounts on which a user holds a permission.

        Args:
            user_id: User ID.
            action: Permission the user must hold (defaults to read).

        Returns:
            Account names, or an empty list on storage fault.
        """
        try:
            relations = await self.relation_repo.list_for_user(user_id)
            return [
                relation.account_name
                for relation in relations
                if relation.permissions.allows(action)
            ]
        except Exception as e:
            logger.error(
                "Failed to list accessible accounts",
                user_id=user_id,
                action=action.value,
                error=str(e),
            )
            return []

    async def validate_permission_or_throw(
        self,
        user_id: str,
        account_name: str,
        action: PermissionAction,
    ) -> PermissionCheckResult:
        """Check a permission and raise if it is denied.

        Returns:
            The granting PermissionCheckResult.

        Raises:
            PermissionDeniedError: If the permission is denied, with the reason.
        """
        result = await self.check_permission(user_id, account_name, action)
        if not result.has_permission:
            raise PermissionDeniedError(result.reason or REASON_CHECK_ERROR)
        return result
