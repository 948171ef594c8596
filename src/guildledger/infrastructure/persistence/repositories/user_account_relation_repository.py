"""Repository for user-to-shared-account relation database operations."""

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from guildledger.domain.entities.permission import RelationType
from guildledger.infrastructure.persistence.models import UserAccountRelationModel, UserModel


class UserAccountRelationRepository:
    """Repository for user account relation database operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the repository.

        Args:
            session: SQLAlchemy async session.
        """
        self.session = session

    async def create(self, relation: UserAccountRelationModel) -> UserAccountRelationModel:
        """Create a new relation.

        Raises IntegrityError if the (user_id, account_name) pair already exists.

        Args:
            relation: Relation model to create.

        Returns:
            Created relation model.
        """
        self.session.add(relation)
        await self.session.flush()
        return relation

    async def find_relation(
        self, user_id: str, account_name: str
    ) -> UserAccountRelationModel | None:
        """Get the unique relation between a user and an account.

        Args:
            user_id: User ID.
            account_name: Account name.

        Returns:
            Relation model if found, None otherwise.
        """
        result = await self.session.execute(
            select(UserAccountRelationModel).where(
                (UserAccountRelationModel.user_id == user_id)
                & (UserAccountRelationModel.account_name == account_name)
            )
        )
        return result.scalar_one_or_none()

    async def find_owner_relation(
        self, user_id: str, account_name: str
    ) -> UserAccountRelationModel | None:
        """Get the relation between a user and an account if it is an owner relation."""
        result = await self.session.execute(
            select(UserAccountRelationModel).where(
                (UserAccountRelationModel.user_id == user_id)
                & (UserAccountRelationModel.account_name == account_name)
                & (UserAccountRelationModel.relation_type == RelationType.OWNER.value)
            )
        )
        return result.scalar_one_or_none()

    async def count_owners(self, account_name: str, lock: bool = False) -> int:
        """Count owner relations of an account.

        With ``lock=True`` the owner rows are selected ``FOR UPDATE`` so that a
        concurrent removal in another transaction waits until this one ends.
        SQLite ignores the clause; callers that must not race recount after
        their own write.

        Args:
            account_name: Account name.
            lock: Whether to lock the owner rows.

        Returns:
            Number of owner relations.
        """
        query = select(UserAccountRelationModel.id).where(
            (UserAccountRelationModel.account_name == account_name)
            & (UserAccountRelationModel.relation_type == RelationType.OWNER.value)
        )
        if lock:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return len(result.scalars().all())

    async def list_for_user(self, user_id: str) -> list[UserAccountRelationModel]:
        """List every relation held by a user."""
        result = await self.session.execute(
            select(UserAccountRelationModel)
            .where(UserAccountRelationModel.user_id == user_id)
            .order_by(UserAccountRelationModel.joined_at.asc())
        )
        return list(result.scalars().all())

    async def list_for_account_paginated(
        self,
        account_name: str,
        page: int = 1,
        page_size: int = 20,
        search_query: str | None = None,
    ) -> tuple[list[UserAccountRelationModel], int]:
        """Get paginated relations of an account, earliest member first.

        Args:
            account_name: Account name.
            page: Page number (1-indexed).
            page_size: Number of items per page.
            search_query: Optional search over user ID and username.

        Returns:
            Tuple of (list of relations with users loaded, total count).
        """
        query = (
            select(UserAccountRelationModel)
            .join(UserModel, UserModel.id == UserAccountRelationModel.user_id, isouter=True)
            .where(UserAccountRelationModel.account_name == account_name)
        )

        if search_query:
            search_pattern = f"%{search_query}%"
            query = query.where(
                or_(
                    UserAccountRelationModel.user_id.ilike(search_pattern),
                    UserModel.username.ilike(search_pattern),
                )
            )

        count_query = select(func.count()).select_from(query.subquery())
        total_result = await self.session.execute(count_query)
        total = total_result.scalar_one()

        offset = (page - 1) * page_size
        query = (
            query.options(selectinload(UserAccountRelationModel.user))
            .order_by(
                UserAccountRelationModel.joined_at.asc(),
                UserAccountRelationModel.id.asc(),
            )
            .offset(offset)
            .limit(page_size)
        )

        result = await self.session.execute(query)
        return list(result.scalars().all()), total

    async def update(self, relation: UserAccountRelationModel) -> UserAccountRelationModel:
        """Persist changes to a relation."""
        if relation not in self.session:
            self.session.add(relation)
        await self.session.flush()
        return relation

    async def delete(self, relation: UserAccountRelationModel) -> None:
        """Delete a relation.

        Args:
            relation: Relation model to delete.
        """
        await self.session.delete(relation)
        await self.session.flush()

    async def delete_by_account(self, account_name: str) -> int:
        """Delete every relation of an account.

        Args:
            account_name: Account name.

        Returns:
            Number of relations deleted.
        """
        result = await self.session.execute(
            delete(UserAccountRelationModel).where(
                UserAccountRelationModel.account_name == account_name
            )
        )
        await self.session.flush()
        return result.rowcount or 0
