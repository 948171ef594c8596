"""API tests for the shared accounts endpoints."""

import pytest
import pytest_asyncio

BASE = "/api/v1/shared-accounts"


@pytest_asyncio.fixture
async def guild1(client, users, auth_headers):
    """guild1 created over the API by u1."""
    response = await client.post(
        BASE,
        json={"account_name": "guild1", "display_name": "Guild One", "server_name": "ServerA"},
        headers=auth_headers("u1", "alice"),
    )
    assert response.status_code == 201
    return response.json()


@pytest_asyncio.fixture
async def with_contributor(client, guild1, auth_headers):
    """guild1 with u2 added as a contributor."""
    response = await client.post(
        f"{BASE}/guild1/users",
        json={"user_id": "u2"},
        headers=auth_headers("u1", "alice"),
    )
    assert response.status_code == 201
    return response.json()


class TestHealth:
    @pytest.mark.asyncio
    async def test_health_and_live(self, client):
        assert (await client.get("/health")).json()["status"] == "healthy"
        assert (await client.get("/live")).json()["status"] == "alive"

    @pytest.mark.asyncio
    async def test_correlation_id_is_echoed(self, client):
        response = await client.get("/health", headers={"X-Correlation-ID": "cid_test"})

        assert response.headers["X-Correlation-ID"] == "cid_test"


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_missing_token(self, client):
        response = await client.get(BASE)

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_malformed_header(self, client):
        response = await client.get(BASE, headers={"Authorization": "Token abc"})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_invalid_token(self, client):
        response = await client.get(BASE, headers={"Authorization": "Bearer not.a.jwt"})

        assert response.status_code == 401


class TestAccounts:
    @pytest.mark.asyncio
    async def test_create_returns_account(self, guild1):
        assert guild1["account_name"] == "guild1"
        assert guild1["display_name"] == "Guild One"
        assert guild1["server_name"] == "ServerA"
        assert guild1["is_active"] is True
        assert guild1["user_count"] == 1

    @pytest.mark.asyncio
    async def test_duplicate_name_conflicts(self, client, guild1, auth_headers):
        response = await client.post(
            BASE,
            json={"account_name": "guild1", "display_name": "Again", "server_name": "ServerB"},
            headers=auth_headers("u2", "bob"),
        )

        assert response.status_code == 409
        assert "already exists" in response.json()["detail"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["ab", "bad name", "x" * 51, "guild!", "accessible"])
    async def test_invalid_account_name(self, client, users, auth_headers, name):
        response = await client.post(
            BASE,
            json={"account_name": name, "display_name": "G", "server_name": "S"},
            headers=auth_headers("u1"),
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_creator_not_found(self, client, users, auth_headers):
        response = await client.post(
            BASE,
            json={"account_name": "guild9", "display_name": "G", "server_name": "S"},
            headers=auth_headers("ghost"),
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_list_only_related_accounts(self, client, guild1, auth_headers):
        response = await client.get(BASE, headers=auth_headers("u1"))
        body = response.json()

        assert response.status_code == 200
        assert body["total"] == 1
        assert body["total_pages"] == 1
        assert body["items"][0]["account_name"] == "guild1"
        assert body["items"][0]["user_count"] == 1

        response = await client.get(BASE, headers=auth_headers("u3"))
        assert response.json()["total"] == 0

    @pytest.mark.asyncio
    async def test_detail(self, client, with_contributor, auth_headers):
        response = await client.get(f"{BASE}/guild1", headers=auth_headers("u2"))
        body = response.json()

        assert response.status_code == 200
        assert body["user_count"] == 2
        relations = {r["user_id"]: r for r in body["user_relations"]}
        assert relations["u1"]["relation_type"] == "owner"
        assert relations["u1"]["username"] == "alice"
        assert relations["u2"]["relation_type"] == "contributor"
        assert relations["u2"]["permissions"] == {"read": True, "write": True, "delete": False}

    @pytest.mark.asyncio
    async def test_detail_forbidden_for_unrelated_user(self, client, guild1, auth_headers):
        response = await client.get(f"{BASE}/guild1", headers=auth_headers("u3"))

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_contributor_updates_but_cannot_delete(
        self, client, with_contributor, auth_headers
    ):
        response = await client.put(
            f"{BASE}/guild1",
            json={"display_name": "Guild Uno"},
            headers=auth_headers("u2"),
        )
        assert response.status_code == 200
        assert response.json()["display_name"] == "Guild Uno"
        assert response.json()["server_name"] == "ServerA"

        response = await client.delete(f"{BASE}/guild1", headers=auth_headers("u2"))
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_owner_deletes(self, client, with_contributor, auth_headers):
        response = await client.delete(f"{BASE}/guild1", headers=auth_headers("u1"))
        assert response.status_code == 204

        response = await client.get(f"{BASE}/guild1", headers=auth_headers("u1"))
        assert response.status_code == 403


class TestMembers:
    @pytest.mark.asyncio
    async def test_add_with_permission_override(self, client, guild1, auth_headers):
        response = await client.post(
            f"{BASE}/guild1/users",
            json={"user_id": "u3", "permissions": {"delete": True}},
            headers=auth_headers("u1"),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["relation_type"] == "contributor"
        assert body["permissions"] == {"read": True, "write": True, "delete": True}

    @pytest.mark.asyncio
    async def test_add_duplicate_conflicts(self, client, with_contributor, auth_headers):
        response = await client.post(
            f"{BASE}/guild1/users",
            json={"user_id": "u2", "relation_type": "owner"},
            headers=auth_headers("u1"),
        )

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_contributor_cannot_add(self, client, with_contributor, auth_headers):
        response = await client.post(
            f"{BASE}/guild1/users",
            json={"user_id": "u3"},
            headers=auth_headers("u2"),
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_list_members(self, client, with_contributor, auth_headers):
        response = await client.get(f"{BASE}/guild1/users", headers=auth_headers("u2"))
        body = response.json()

        assert response.status_code == 200
        assert body["total"] == 2
        assert [r["user_id"] for r in body["items"]] == ["u1", "u2"]

    @pytest.mark.asyncio
    async def test_update_member_permissions(self, client, with_contributor, auth_headers):
        response = await client.put(
            f"{BASE}/guild1/users/u2/permissions",
            json={"write": False},
            headers=auth_headers("u1"),
        )

        assert response.status_code == 200
        assert response.json()["permissions"] == {"read": True, "write": False, "delete": False}

    @pytest.mark.asyncio
    async def test_last_owner_cannot_leave(self, client, guild1, auth_headers):
        response = await client.delete(f"{BASE}/guild1/users/u1", headers=auth_headers("u1"))

        assert response.status_code == 409
        assert response.json()["detail"] == "cannot remove the last owner"

    @pytest.mark.asyncio
    async def test_member_removes_self(self, client, with_contributor, auth_headers):
        response = await client.delete(f"{BASE}/guild1/users/u2", headers=auth_headers("u2"))

        assert response.status_code == 204

    @pytest.mark.asyncio
    async def test_remove_unrelated_user_not_found(self, client, guild1, auth_headers):
        response = await client.delete(f"{BASE}/guild1/users/u3", headers=auth_headers("u1"))

        assert response.status_code == 404


class TestPermissionQueries:
    @pytest.mark.asyncio
    async def test_check_action(self, client, with_contributor, auth_headers):
        response = await client.get(
            f"{BASE}/guild1/permissions/delete", headers=auth_headers("u2")
        )
        body = response.json()

        assert response.status_code == 200
        assert body["has_permission"] is False
        assert body["relation_type"] == "contributor"
        assert body["reason"] == "user lacks delete permission"

    @pytest.mark.asyncio
    async def test_unknown_action_rejected(self, client, guild1, auth_headers):
        response = await client.get(f"{BASE}/guild1/permissions/admin", headers=auth_headers("u1"))

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_my_permissions_when_unrelated(self, client, guild1, auth_headers):
        response = await client.get(f"{BASE}/guild1/permissions", headers=auth_headers("u3"))
        body = response.json()

        assert response.status_code == 200
        assert body["has_permission"] is False
        assert body["permissions"] is None
        assert body["reason"] == "user not related to this account"

    @pytest.mark.asyncio
    async def test_batch(self, client, guild1, auth_headers):
        response = await client.post(
            f"{BASE}/permissions/batch",
            json={"account_names": ["guild1", "nowhere", "guild1"], "action": "write"},
            headers=auth_headers("u1"),
        )
        body = response.json()

        assert response.status_code == 200
        assert set(body) == {"guild1", "nowhere"}
        assert body["guild1"]["has_permission"] is True
        assert body["nowhere"]["has_permission"] is False

    @pytest.mark.asyncio
    async def test_accessible(self, client, with_contributor, auth_headers):
        response = await client.get(
            f"{BASE}/accessible", params={"action": "delete"}, headers=auth_headers("u2")
        )
        assert response.json() == {"action": "delete", "account_names": []}

        response = await client.get(f"{BASE}/accessible", headers=auth_headers("u2"))
        assert response.json() == {"action": "read", "account_names": ["guild1"]}
