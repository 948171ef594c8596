"""Repository for shared account database operations."""

from sqlalchemy import and_, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased, selectinload

from guildledger.infrastructure.persistence.models import (
    SharedAccountModel,
    UserAccountRelationModel,
)


class SharedAccountRepository:
    """Repository for shared account database operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the repository.

        Args:
            session: SQLAlchemy async session.
        """
        self.session = session

    async def create(self, account: SharedAccountModel) -> SharedAccountModel:
        """Create a new shared account.

        Args:
            account: Shared account model to create.

        Returns:
            Created shared account model.
        """
        self.session.add(account)
        await self.session.flush()
        return account

    async def get_by_name(self, account_name: str) -> SharedAccountModel | None:
        """Get a shared account by name.

        Args:
            account_name: Account name (primary key).

        Returns:
            Shared account model if found, None otherwise.
        """
        result = await self.session.execute(
            select(SharedAccountModel).where(SharedAccountModel.account_name == account_name)
        )
        return result.scalar_one_or_none()

    async def exists(self, account_name: str) -> bool:
        """Check if a shared account name is already taken."""
        result = await self.session.execute(
            select(SharedAccountModel.account_name)
            .where(SharedAccountModel.account_name == account_name)
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def get_with_relations(self, account_name: str) -> SharedAccountModel | None:
        """Get a shared account with all its relations and their users loaded.

        Args:
            account_name: Account name.

        Returns:
            Shared account model if found, None otherwise.
        """
        result = await self.session.execute(
            select(SharedAccountModel)
            .where(SharedAccountModel.account_name == account_name)
            .options(
                selectinload(SharedAccountModel.relations).selectinload(
                    UserAccountRelationModel.user
                )
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_for_user_paginated(
        self,
        user_id: str,
        page: int = 1,
        page_size: int = 20,
        search_query: str | None = None,
        include_inactive: bool = False,
    ) -> tuple[list[tuple[SharedAccountModel, int]], int]:
        """Get the shared accounts a user is related to, with member counts.

        Accounts the user has no relation to are never returned.

        Args:
            user_id: User whose relations gate visibility.
            page: Page number (1-indexed).
            page_size: Number of items per page.
            search_query: Optional search over account, display and server name.
            include_inactive: Whether to include accounts with is_active=False.

        Returns:
            Tuple of (list of (account, user_count) tuples, total count).
        """
        caller = aliased(UserAccountRelationModel)
        members = aliased(UserAccountRelationModel)

        query = select(SharedAccountModel).join(
            caller,
            and_(
                caller.account_name == SharedAccountModel.account_name,
                caller.user_id == user_id,
            ),
        )

        if not include_inactive:
            query = query.where(SharedAccountModel.is_active.is_(True))

        if search_query:
            search_pattern = f"%{search_query}%"
            query = query.where(
                or_(
                    SharedAccountModel.account_name.ilike(search_pattern),
                    SharedAccountModel.display_name.ilike(search_pattern),
                    SharedAccountModel.server_name.ilike(search_pattern),
                )
            )

        count_query = select(func.count()).select_from(query.subquery())
        total_result = await self.session.execute(count_query)
        total = total_result.scalar_one()

        user_count = (
            select(func.count(members.id))
            .where(members.account_name == SharedAccountModel.account_name)
            .correlate(SharedAccountModel)
            .scalar_subquery()
        )

        offset = (page - 1) * page_size
        page_query = (
            query.add_columns(user_count.label("user_count"))
            .order_by(
                SharedAccountModel.updated_at.desc(),
                SharedAccountModel.account_name.asc(),
            )
            .offset(offset)
            .limit(page_size)
        )

        result = await self.session.execute(page_query)
        rows = [(account, int(count or 0)) for account, count in result.all()]

        return rows, total

    async def update(self, account: SharedAccountModel) -> SharedAccountModel:
        """Update an existing shared account.

        Args:
            account: Shared account model with updated fields.

        Returns:
            Updated shared account model.
        """
        if account not in self.session:
            self.session.add(account)
        await self.session.flush()
        await self.session.refresh(account)
        return account

    async def delete_by_name(self, account_name: str) -> int:
        """Delete a shared account row.

        Args:
            account_name: Account name.

        Returns:
            Number of rows deleted.
        """
        result = await self.session.execute(
            delete(SharedAccountModel).where(SharedAccountModel.account_name == account_name)
        )
        await self.session.flush()
        return result.rowcount or 0
