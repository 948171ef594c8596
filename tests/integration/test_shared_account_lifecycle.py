"""Integration tests for shared account management on a real database."""

import asyncio
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy import event, func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from guildledger.domain.entities.pagination import Pagination
from guildledger.domain.entities.permission import (
    PermissionAction,
    PermissionConfig,
    RelationType,
)
from guildledger.domain.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    StorageFaultError,
)
from guildledger.domain.services import SharedAccountPermissionService, SharedAccountService
from guildledger.infrastructure.persistence.database import (
    Base,
    _enable_sqlite_foreign_keys,
)
from guildledger.infrastructure.persistence.models import UserAccountRelationModel, UserModel


@pytest.fixture
def service(db_session, users):
    return SharedAccountService(db_session)


@pytest_asyncio.fixture
async def guild1(service):
    """guild1 owned by u1."""
    return await service.create_shared_account("guild1", "Guild One", "ServerA", "u1")


async def relation_count(session: AsyncSession, account_name: str) -> int:
    result = await session.execute(
        select(func.count(UserAccountRelationModel.id)).where(
            UserAccountRelationModel.account_name == account_name
        )
    )
    return result.scalar_one()


class TestScenarios:
    """End-to-end ownership and visibility scenarios."""

    @pytest.mark.asyncio
    async def test_create_and_self_access(self, service, guild1):
        detail = await service.get_shared_account_detail("guild1", "u1")

        assert detail.account.display_name == "Guild One"
        assert detail.account.server_name == "ServerA"
        assert detail.user_count == 1
        assert detail.relations[0].user_id == "u1"
        assert detail.relations[0].type is RelationType.OWNER
        assert detail.relations[0].username == "alice"

    @pytest.mark.asyncio
    async def test_contributor_can_write_but_not_delete(self, service, guild1):
        await service.add_user_to_account("guild1", "u2", "u1")

        updated = await service.update_shared_account(
            "guild1", {"display_name": "Guild Uno"}, "u2"
        )
        assert updated.display_name == "Guild Uno"

        with pytest.raises(ForbiddenError):
            await service.delete_shared_account("guild1", "u2")

    @pytest.mark.asyncio
    async def test_last_owner_protection(self, service, guild1, db_session):
        with pytest.raises(ConflictError, match="last owner"):
            await service.remove_user_from_account("guild1", "u1", "u1")

        assert await service.permission_service.is_owner("u1", "guild1") is True
        assert await relation_count(db_session, "guild1") == 1

    @pytest.mark.asyncio
    async def test_self_removal_always_allowed(self, service, guild1):
        await service.add_user_to_account("guild1", "u2", "u1")

        await service.remove_user_from_account("guild1", "u2", "u2")

        assert await service.permission_service.can_read("u2", "guild1") is False

    @pytest.mark.asyncio
    async def test_visibility_is_relation_gated(self, service, guild1):
        page = await service.get_user_accessible_accounts("u3", Pagination())

        assert page.total == 0
        assert page.items == []

        with pytest.raises(ForbiddenError):
            await service.get_shared_account_detail("guild1", "u3")

    @pytest.mark.asyncio
    async def test_detail_of_missing_account_is_forbidden(self, service, users):
        with pytest.raises(ForbiddenError):
            await service.get_shared_account_detail("nowhere", "u1")


class TestInvariants:
    """Uniqueness, ownership and atomicity guarantees."""

    @pytest.mark.asyncio
    async def test_duplicate_relation_conflicts(self, service, guild1, db_session):
        await service.add_user_to_account("guild1", "u2", "u1")

        with pytest.raises(ConflictError):
            await service.add_user_to_account("guild1", "u2", "u1", RelationType.OWNER)

        assert await relation_count(db_session, "guild1") == 2

    @pytest.mark.asyncio
    async def test_duplicate_account_name_conflicts(self, service, guild1):
        with pytest.raises(ConflictError, match="already exists"):
            await service.create_shared_account("guild1", "Other", "ServerB", "u2")

    @pytest.mark.asyncio
    async def test_owner_can_leave_when_another_owner_remains(self, service, guild1):
        await service.add_user_to_account("guild1", "u2", "u1", RelationType.OWNER)

        await service.remove_user_from_account("guild1", "u1", "u1")

        assert await service.permission_service.is_owner("u2", "guild1") is True
        with pytest.raises(ConflictError):
            await service.remove_user_from_account("guild1", "u2", "u2")

    @pytest.mark.asyncio
    async def test_creation_is_atomic(self, service, users, db_session):
        service.relation_repo.create = AsyncMock(
            side_effect=OperationalError("INSERT", {}, Exception("disk I/O error"))
        )

        with pytest.raises(StorageFaultError):
            await service.create_shared_account("guild1", "Guild One", "ServerA", "u1")

        assert await service.account_repo.get_by_name("guild1") is None
        assert await relation_count(db_session, "guild1") == 0

    @pytest.mark.asyncio
    async def test_unknown_creator_is_not_found(self, service, users):
        with pytest.raises(NotFoundError):
            await service.create_shared_account("guild1", "Guild One", "ServerA", "ghost")

    @pytest.mark.asyncio
    async def test_adding_unknown_user_is_not_found(self, service, guild1):
        with pytest.raises(NotFoundError):
            await service.add_user_to_account("guild1", "ghost", "u1")

    @pytest.mark.asyncio
    async def test_contributor_cannot_add_members(self, service, guild1):
        await service.add_user_to_account("guild1", "u2", "u1")

        with pytest.raises(ForbiddenError):
            await service.add_user_to_account("guild1", "u3", "u2")

    @pytest.mark.asyncio
    async def test_contributor_cannot_remove_others(self, service, guild1):
        await service.add_user_to_account("guild1", "u2", "u1")
        await service.add_user_to_account("guild1", "u3", "u1")

        with pytest.raises(ForbiddenError):
            await service.remove_user_from_account("guild1", "u3", "u2")


class TestPermissions:
    """Default permissions and partial overrides."""

    @pytest.mark.asyncio
    async def test_owner_defaults(self, service, guild1):
        relation = await service.add_user_to_account("guild1", "u2", "u1", RelationType.OWNER)

        assert relation.permissions == PermissionConfig(read=True, write=True, delete=True)

    @pytest.mark.asyncio
    async def test_contributor_defaults(self, service, guild1):
        relation = await service.add_user_to_account("guild1", "u2", "u1")

        assert relation.permissions == PermissionConfig(read=True, write=True, delete=False)

    @pytest.mark.asyncio
    async def test_override_fills_defaults(self, service, guild1):
        relation = await service.add_user_to_account(
            "guild1", "u2", "u1", RelationType.CONTRIBUTOR, permissions={"delete": True}
        )

        assert relation.permissions == PermissionConfig(read=True, write=True, delete=True)
        assert relation.type is RelationType.CONTRIBUTOR
        assert await service.permission_service.can_delete("u2", "guild1") is True

    @pytest.mark.asyncio
    async def test_partial_update_changes_only_given_flag(self, service, guild1):
        await service.add_user_to_account(
            "guild1", "u2", "u1", permissions={"delete": True}
        )

        relation = await service.update_user_permissions("guild1", "u2", {"write": False}, "u1")

        assert relation.permissions == PermissionConfig(read=True, write=False, delete=True)
        assert relation.type is RelationType.CONTRIBUTOR
        with pytest.raises(ForbiddenError):
            await service.update_shared_account("guild1", {"server_name": "ServerB"}, "u2")

    @pytest.mark.asyncio
    async def test_owner_flags_are_independent_of_relation_type(self, service, guild1):
        await service.update_user_permissions("guild1", "u1", {"delete": False}, "u1")

        assert await service.permission_service.is_owner("u1", "guild1") is True
        with pytest.raises(ForbiddenError):
            await service.delete_shared_account("guild1", "u1")

    @pytest.mark.asyncio
    async def test_update_for_unrelated_user_is_not_found(self, service, guild1):
        with pytest.raises(NotFoundError):
            await service.update_user_permissions("guild1", "u3", {"read": False}, "u1")

    @pytest.mark.asyncio
    async def test_check_permission_is_repeatable(self, service, guild1):
        checker = service.permission_service

        first = await checker.check_permission("u3", "guild1", PermissionAction.READ)
        second = await checker.check_permission("u3", "guild1", PermissionAction.READ)

        assert first == second
        assert first.has_permission is False


class TestLifecycle:
    """Updates, deletion and listings."""

    @pytest.mark.asyncio
    async def test_delete_removes_account_and_relations(self, service, guild1, db_session):
        await service.add_user_to_account("guild1", "u2", "u1")

        await service.delete_shared_account("guild1", "u1")

        assert await service.account_repo.get_by_name("guild1") is None
        assert await relation_count(db_session, "guild1") == 0
        assert await service.permission_service.get_accessible_accounts("u2") == []

    @pytest.mark.asyncio
    async def test_update_missing_fields_keeps_values(self, service, guild1):
        updated = await service.update_shared_account("guild1", {"is_active": False}, "u1")

        assert updated.is_active is False
        assert updated.display_name == "Guild One"
        assert updated.server_name == "ServerA"

    @pytest.mark.asyncio
    async def test_listing_orders_by_last_update(self, service, users):
        await service.create_shared_account("guild_a", "Alpha", "ServerA", "u1")
        await service.create_shared_account("guild_b", "Bravo", "ServerB", "u1")

        page = await service.get_user_accessible_accounts("u1", Pagination())
        assert [s.account.account_name for s in page.items] == ["guild_b", "guild_a"]

        await service.update_shared_account("guild_a", {"display_name": "Alpha 2"}, "u1")

        page = await service.get_user_accessible_accounts("u1", Pagination())
        assert [s.account.account_name for s in page.items] == ["guild_a", "guild_b"]

    @pytest.mark.asyncio
    async def test_listing_search_paging_and_counts(self, service, users):
        for i in range(3):
            await service.create_shared_account(f"raid_{i}", f"Raid {i}", "ServerA", "u1")
        await service.create_shared_account("trade", "Trading post", "ServerB", "u1")
        await service.add_user_to_account("raid_0", "u2", "u1")

        page = await service.get_user_accessible_accounts("u1", Pagination(page=1, size=2))
        assert page.total == 4
        assert page.total_pages == 2
        assert len(page.items) == 2

        page = await service.get_user_accessible_accounts("u1", Pagination(search="serverb"))
        assert [s.account.account_name for s in page.items] == ["trade"]

        page = await service.get_user_accessible_accounts("u1", Pagination(search="raid_0"))
        assert page.items[0].user_count == 2

        page = await service.get_user_accessible_accounts("u2", Pagination())
        assert [s.account.account_name for s in page.items] == ["raid_0"]

    @pytest.mark.asyncio
    async def test_inactive_accounts_hidden_by_default(self, service, guild1):
        await service.update_shared_account("guild1", {"is_active": False}, "u1")

        page = await service.get_user_accessible_accounts("u1", Pagination())
        assert page.total == 0

        page = await service.get_user_accessible_accounts(
            "u1", Pagination(), include_inactive=True
        )
        assert page.total == 1

    @pytest.mark.asyncio
    async def test_member_listing_in_join_order(self, service, guild1):
        await service.add_user_to_account("guild1", "u3", "u1")
        await service.add_user_to_account("guild1", "u2", "u1")

        page = await service.get_account_users("guild1", "u2", Pagination())

        assert page.total == 3
        assert [r.user_id for r in page.items] == ["u1", "u3", "u2"]
        assert [r.username for r in page.items] == ["alice", "carol", "bob"]

        page = await service.get_account_users("guild1", "u1", Pagination(search="car"))
        assert [r.user_id for r in page.items] == ["u3"]


@pytest_asyncio.fixture
async def file_session_factory(tmp_path):
    """Session factory over a file database, so each session gets its own connection."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'guildledger.db'}")
    event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


def pause_after_first_owner_count(service, barrier):
    """Hold the service at the barrier right after its pre-delete owner count."""
    count_owners = service.relation_repo.count_owners
    calls = 0

    async def paused(account_name, lock=False):
        nonlocal calls
        count = await count_owners(account_name, lock=lock)
        calls += 1
        if calls == 1:
            await barrier.wait()
        return count

    service.relation_repo.count_owners = paused


class TestConcurrentOwnerRemoval:
    """Two owners leaving at once must not leave the account ownerless."""

    @pytest.mark.asyncio
    async def test_only_one_of_two_owners_can_leave(self, file_session_factory):
        async with file_session_factory() as session:
            session.add_all([UserModel(id="u1", username="alice"), UserModel(id="u2", username="bob")])
            await session.commit()

            service = SharedAccountService(session)
            await service.create_shared_account("guild1", "Guild One", "ServerA", "u1")
            await service.add_user_to_account(
                "guild1", "u2", "u1", relation_type=RelationType.OWNER
            )

        barrier = asyncio.Barrier(2)

        async def leave(user_id):
            async with file_session_factory() as session:
                service = SharedAccountService(session)
                pause_after_first_owner_count(service, barrier)
                try:
                    await service.remove_user_from_account("guild1", user_id, user_id)
                except ConflictError:
                    return "conflict"
                return "removed"

        outcomes = await asyncio.gather(leave("u1"), leave("u2"))

        assert sorted(outcomes) == ["conflict", "removed"]

        async with file_session_factory() as session:
            owners = await session.execute(
                select(func.count())
                .select_from(UserAccountRelationModel)
                .where(
                    (UserAccountRelationModel.account_name == "guild1")
                    & (UserAccountRelationModel.relation_type == RelationType.OWNER.value)
                )
            )
            assert owners.scalar_one() == 1


class TestConcurrentBatch:
    """Batch checks fanned out over independent sessions."""

    @pytest.mark.asyncio
    async def test_batch_with_session_factory(self, file_session_factory):
        async with file_session_factory() as session:
            session.add_all([UserModel(id="u1", username="alice"), UserModel(id="u2", username="bob")])
            await session.commit()

            service = SharedAccountService(session)
            await service.create_shared_account("guild_a", "A", "ServerA", "u1")
            await service.create_shared_account("guild_b", "B", "ServerA", "u2")

            checker = SharedAccountPermissionService(session, session_factory=file_session_factory)
            results = await checker.batch_check_permissions(
                "u1", ["guild_a", "guild_b", "guild_c"], PermissionAction.DELETE
            )

        assert set(results) == {"guild_a", "guild_b", "guild_c"}
        assert results["guild_a"].has_permission is True
        assert results["guild_b"].has_permission is False
        assert results["guild_c"].has_permission is False
        assert results["guild_a"].relation_type is RelationType.OWNER
        assert results["guild_b"].reason == "user not related to this account"
