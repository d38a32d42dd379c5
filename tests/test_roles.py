"""역할 및 권한 테스트.

Role and permission tests — The static permission table, role listing,
statistics and the permission check endpoint.
"""

import pytest
from httpx import AsyncClient

from app.utils.permissions import Permission, UserRole, has_permission, parse_role
from tests.conftest import auth_header


class TestPermissionTable:
    """정적 권한 테이블 테스트."""

    @pytest.mark.parametrize(
        ("role", "permission", "expected"),
        [
            ("USER", Permission.CREATE_REQUISITION, True),
            ("USER", Permission.APPROVE_REQUISITION, False),
            ("USER", Permission.VIEW_SYSTEM_LOGS, False),
            ("MANAGER", Permission.APPROVE_REQUISITION, True),
            ("MANAGER", Permission.CREATE_PRODUCT, False),
            ("ADMIN", Permission.CREATE_PRODUCT, True),
            ("ADMIN", Permission.DELETE_USER, False),
            ("SUPER_ADMIN", Permission.DELETE_USER, True),
            ("DEV", Permission.MANAGE_SETTINGS, True),
            ("manager", Permission.APPROVE_REQUISITION, True),
            ("GUEST", Permission.VIEW_PRODUCTS, False),
            (None, Permission.VIEW_PRODUCTS, False),
        ],
    )
    def test_has_permission(self, role, permission, expected):
        assert has_permission(role, permission) is expected

    def test_unknown_permission_code(self):
        assert has_permission("SUPER_ADMIN", "FLY_TO_MOON") is False

    def test_top_roles_hold_everything(self):
        for role in (UserRole.SUPER_ADMIN, UserRole.DEV):
            assert all(has_permission(role, p) for p in Permission)

    def test_parse_role(self):
        assert parse_role("admin") == UserRole.ADMIN
        assert parse_role(UserRole.DEV) == UserRole.DEV
        assert parse_role("nobody") is None


class TestRoleApi:
    """역할 API 테스트."""

    async def test_list_roles_lowest_first(self, client: AsyncClient, requester_token):
        res = await client.get("/api/roles", headers=auth_header(requester_token))
        assert res.status_code == 200
        roles = res.json()
        assert [r["name"] for r in roles] == ["USER", "MANAGER", "ADMIN", "SUPER_ADMIN", "DEV"]
        assert "APPROVE_REQUISITION" in roles[1]["permissions"]

    async def test_list_roles_requires_auth(self, client: AsyncClient):
        res = await client.get("/api/roles")
        assert res.status_code == 401

    async def test_statistics(
        self, client: AsyncClient, manager_token, requester, other_manager, admin_user
    ):
        res = await client.get("/api/roles/statistics", headers=auth_header(manager_token))
        assert res.status_code == 200
        data = res.json()
        assert data["total"] == 4
        assert data["by_role"] == {
            "USER": 1, "MANAGER": 2, "ADMIN": 1, "SUPER_ADMIN": 0, "DEV": 0,
        }

    async def test_statistics_forbidden_for_users(self, client: AsyncClient, requester_token):
        res = await client.get("/api/roles/statistics", headers=auth_header(requester_token))
        assert res.status_code == 403


class TestPermissionCheck:
    """권한 확인 API 테스트."""

    async def test_defaults_to_caller_role(self, client: AsyncClient, requester_token):
        res = await client.get(
            "/api/permissions/check", params={"permission": "APPROVE_REQUISITION"},
            headers=auth_header(requester_token),
        )
        assert res.status_code == 200
        assert res.json() == {"role": "USER", "permission": "APPROVE_REQUISITION", "allowed": False}

    async def test_explicit_role(self, client: AsyncClient, requester_token):
        res = await client.get(
            "/api/permissions/check",
            params={"permission": "APPROVE_REQUISITION", "role": "manager"},
            headers=auth_header(requester_token),
        )
        assert res.json()["allowed"] is True
        assert res.json()["role"] == "MANAGER"

    async def test_unknown_role(self, client: AsyncClient, requester_token):
        res = await client.get(
            "/api/permissions/check", params={"permission": "VIEW_PRODUCTS", "role": "GUEST"},
            headers=auth_header(requester_token),
        )
        assert res.status_code == 400
