"""관리자 조회 테스트.

Manager resolution tests — Cost-center lookup, title keywords,
de-duplication and the org-unit endpoints.
"""

from decimal import Decimal

from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.services.manager_service import manager_service
from tests.conftest import ORG_A, ORG_B, auth_header


class TestManagerEmails:
    """코스트센터 관리자 이메일 테스트."""

    async def test_resolves_by_cost_center_and_title(self, db: AsyncSession, directory):
        emails = await manager_service.get_manager_emails(db, "somchai.k")
        assert emails == ["nattaya.p@ube.co.th", "wichai.t@ube.co.th"]

    async def test_lookup_by_employee_code(self, db: AsyncSession, directory):
        emails = await manager_service.get_manager_emails(db, "E1001")
        assert "nattaya.p@ube.co.th" in emails

    async def test_login_lookup_is_case_insensitive(self, db: AsyncSession, directory):
        assert await manager_service.get_manager_emails(db, "SOMCHAI.K") == [
            "nattaya.p@ube.co.th", "wichai.t@ube.co.th",
        ]

    async def test_unknown_requester(self, db: AsyncSession, directory):
        assert await manager_service.get_manager_emails(db, "ghost.user") == []

    async def test_requester_without_cost_center(self, db: AsyncSession, directory):
        from app.models.user import DirectoryEntry
        db.add(DirectoryEntry(ad_login_name="floating", position_title="Clerk"))
        await db.flush()
        assert await manager_service.get_manager_emails(db, "floating") == []

    async def test_no_managerial_title(self, db: AsyncSession):
        from app.models.user import DirectoryEntry
        db.add_all([
            DirectoryEntry(ad_login_name="a.one", cost_center_code="CC-9", position_title="Clerk", email="a@x.th"),
            DirectoryEntry(ad_login_name="b.two", cost_center_code="CC-9", position_title="Engineer", email="b@x.th"),
        ])
        await db.flush()
        assert await manager_service.get_manager_emails(db, "a.one") == []


class TestOrgUnit:
    """조직 코드 3 테스트."""

    async def test_managers_by_orgcode3(self, db: AsyncSession, directory):
        managers = await manager_service.get_managers_by_orgcode3(db, ORG_A)
        assert {m["ad_login_name"] for m in managers} == {"nattaya.p", "nattaya.p2", "wichai.t"}

    async def test_user_orgcode3_prefers_directory(self, db: AsyncSession, directory, requester):
        requester.orgcode3 = ORG_B
        await db.flush()
        assert await manager_service.get_user_orgcode3(db, "somchai.k") == ORG_A

    async def test_user_orgcode3_falls_back_to_users(self, db: AsyncSession, admin_user):
        assert await manager_service.get_user_orgcode3(db, "admin.user") == ORG_B

    async def test_can_submit_to_manager(self, db: AsyncSession, directory, other_manager):
        assert await manager_service.can_user_submit_to_manager(db, "somchai.k", "nattaya.p") is True
        assert await manager_service.can_user_submit_to_manager(db, "somchai.k", "kittipong.r") is False
        assert await manager_service.can_user_submit_to_manager(db, "ghost", "nobody") is False

    async def test_orgcode3_submission_endpoint(
        self, client: AsyncClient, requester_token, directory, products, mail
    ):
        res = await client.post(
            "/api/orgcode3",
            json={"items": [{"product_id": products[1].id, "quantity": 10}]},
            headers=auth_header(requester_token),
        )
        assert res.status_code == 201, res.text
        data = res.json()
        assert data["requisition"]["orgcode3"] == ORG_A
        assert Decimal(data["requisition"]["total_amount"]) == Decimal("72.50")
        assert len(data["managers"]) == 3
        assert mail.await_count == 3

    async def test_orgcode3_stats_and_list(
        self, client: AsyncClient, requester_token, manager_token, directory, products
    ):
        for qty in (1, 3):
            await client.post(
                "/api/orgcode3",
                json={"items": [{"product_id": products[0].id, "quantity": qty}]},
                headers=auth_header(requester_token),
            )

        res = await client.get("/api/orgcode3/stats", headers=auth_header(manager_token))
        assert res.status_code == 200
        stats = res.json()
        assert stats["total_requisitions"] == 2
        assert Decimal(stats["by_status"]["PENDING"]["total_amount"]) == Decimal("502.00")

        res = await client.get("/api/orgcode3/requisitions", headers=auth_header(manager_token))
        assert res.json()["total"] == 2

    async def test_other_org_requires_department_permission(
        self, client: AsyncClient, manager_token
    ):
        res = await client.get(
            "/api/orgcode3/stats", params={"orgcode3": ORG_B}, headers=auth_header(manager_token)
        )
        assert res.status_code == 403
