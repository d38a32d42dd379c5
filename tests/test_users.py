"""사용자 API 테스트.

User API tests — Listing, directory profiles and role assignment limits.
"""

from httpx import AsyncClient

from tests.conftest import ORG_A, auth_header

URL = "/api/users"


class TestUserList:
    """사용자 목록 테스트."""

    async def test_list_and_filter(
        self, client: AsyncClient, manager_token, requester, other_manager
    ):
        res = await client.get(URL, headers=auth_header(manager_token))
        assert res.status_code == 200
        assert res.json()["total"] == 3

        res = await client.get(URL, params={"role": "manager"}, headers=auth_header(manager_token))
        assert {u["user_id"] for u in res.json()["items"]} == {"nattaya.p", "kittipong.r"}

        res = await client.get(URL, params={"search": "somchai"}, headers=auth_header(manager_token))
        assert [u["user_id"] for u in res.json()["items"]] == ["somchai.k"]

    async def test_list_forbidden_for_users(self, client: AsyncClient, requester_token):
        res = await client.get(URL, headers=auth_header(requester_token))
        assert res.status_code == 403


class TestDirectoryProfile:
    """디렉터리 프로필 테스트."""

    async def test_profile_merges_directory(self, client: AsyncClient, manager_token, directory):
        res = await client.get(f"{URL}/somchai.k/profile", headers=auth_header(manager_token))
        assert res.status_code == 200
        data = res.json()
        assert data["role"] == "USER"
        assert data["emp_code"] == "E1001"
        assert data["cost_center_code"] == "CC-1001"
        assert data["orgcode3"] == ORG_A

    async def test_directory_only_person(self, client: AsyncClient, manager_token, directory):
        res = await client.get(f"{URL}/wichai.t/profile", headers=auth_header(manager_token))
        assert res.status_code == 200
        assert res.json()["role"] is None
        assert res.json()["position_title"] == "หัวหน้าแผนก"

    async def test_unknown_person(self, client: AsyncClient, manager_token):
        res = await client.get(f"{URL}/ghost.user/profile", headers=auth_header(manager_token))
        assert res.status_code == 404


class TestAssignRole:
    """역할 부여 테스트."""

    async def test_admin_promotes_user(self, client: AsyncClient, admin_token, requester):
        res = await client.put(
            f"{URL}/somchai.k/role", json={"role": "manager"}, headers=auth_header(admin_token)
        )
        assert res.status_code == 200, res.text
        assert res.json()["role"] == "MANAGER"

    async def test_cannot_grant_above_own_role(self, client: AsyncClient, admin_token, requester):
        res = await client.put(
            f"{URL}/somchai.k/role", json={"role": "SUPER_ADMIN"}, headers=auth_header(admin_token)
        )
        assert res.status_code == 403

    async def test_cannot_demote_higher_user(self, client: AsyncClient, admin_token, super_admin):
        res = await client.put(
            f"{URL}/root.admin/role", json={"role": "USER"}, headers=auth_header(admin_token)
        )
        assert res.status_code == 403

    async def test_unknown_role(self, client: AsyncClient, admin_token, requester):
        res = await client.put(
            f"{URL}/somchai.k/role", json={"role": "OWNER"}, headers=auth_header(admin_token)
        )
        assert res.status_code == 400

    async def test_unknown_user(self, client: AsyncClient, admin_token):
        res = await client.put(
            f"{URL}/ghost.user/role", json={"role": "USER"}, headers=auth_header(admin_token)
        )
        assert res.status_code == 404

    async def test_manager_cannot_assign(self, client: AsyncClient, manager_token, requester):
        res = await client.put(
            f"{URL}/somchai.k/role", json={"role": "USER"}, headers=auth_header(manager_token)
        )
        assert res.status_code == 403
