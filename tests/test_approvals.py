"""승인 흐름 테스트.

Approval workflow tests — Latest-status resolution, decision actions,
permission and org-unit checks, invalid transitions and concurrent edits.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.models.requisition import Approval, Requisition, RequisitionStatus
from app.services.approval_service import approval_service
from app.utils.permissions import ROLE_PERMISSIONS, Permission, UserRole
from tests.conftest import ORG_A, _make_user, auth_header


@pytest_asyncio.fixture
async def requisition(db: AsyncSession, requester, products) -> Requisition:
    """PENDING 신청서 1건 (One pending requisition in ORG_A)."""
    from app.models.requisition import RequisitionItem
    req = Requisition(
        user_id=requester.user_id,
        status=RequisitionStatus.PENDING.value,
        total_amount=Decimal("251.00"),
        site_id="1700",
        orgcode3=ORG_A,
        items=[
            RequisitionItem(
                product_id=products[0].id, product=products[0], quantity=2,
                unit_price=Decimal("125.50"), total_price=Decimal("251.00"),
            )
        ],
    )
    db.add(req)
    await db.flush()
    await db.refresh(req)
    return req


def _url(req: Requisition) -> str:
    return f"/api/requisitions/{req.id}/approve"


class TestLatestStatus:
    """최신 상태 결정 테스트."""

    async def test_defaults_to_stored_status(self, db: AsyncSession, requisition):
        assert await approval_service.get_latest_status(db, requisition.id) == RequisitionStatus.PENDING

    async def test_missing_requisition_is_pending(self, db: AsyncSession):
        assert await approval_service.get_latest_status(db, 987654) == RequisitionStatus.PENDING

    async def test_latest_approval_row_wins(self, db: AsyncSession, requisition):
        t1 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
        t2 = t1 + timedelta(hours=2)
        db.add(Approval(requisition_id=requisition.id, approved_by="nattaya.p", status="APPROVED", approved_at=t1))
        db.add(Approval(requisition_id=requisition.id, approved_by="wichai.t", status="REJECTED", approved_at=t2))
        await db.flush()
        assert await approval_service.get_latest_status(db, requisition.id) == RequisitionStatus.REJECTED

    async def test_latest_is_by_timestamp_not_insert_order(self, db: AsyncSession, requisition):
        t2 = datetime(2026, 3, 2, 11, 0, tzinfo=timezone.utc)
        db.add(Approval(requisition_id=requisition.id, approved_by="nattaya.p", status="REJECTED", approved_at=t2))
        await db.flush()
        # 나중에 입력됐지만 더 이른 시각 — Inserted later, decided earlier
        db.add(Approval(requisition_id=requisition.id, approved_by="wichai.t", status="APPROVED",
                        approved_at=t2 - timedelta(hours=2)))
        await db.flush()
        assert await approval_service.get_latest_status(db, requisition.id) == RequisitionStatus.REJECTED


class TestApprovalFlow:
    """승인 결정 API 테스트."""

    async def test_manager_approves(
        self, client: AsyncClient, db: AsyncSession, manager_token, requisition, mail
    ):
        res = await client.post(
            _url(requisition), json={"action": "approve", "note": "OK"},
            headers=auth_header(manager_token),
        )
        assert res.status_code == 200, res.text
        assert res.json() == {
            "requisition_id": requisition.id,
            "status": "APPROVED",
            "action": "approve",
            "changed": True,
        }
        assert requisition.status == "APPROVED"

        history = await approval_service.get_status_history(db, requisition.id)
        assert [h.status for h in history][-1] == "APPROVED"
        approvals = await approval_service.get_approval_history(db, requisition.id)
        assert len(approvals) == 1
        assert approvals[0].approved_by == "nattaya.p"
        assert approvals[0].note == "OK"

        # 신청자에게 승인 메일 — Requester is told
        assert mail.await_args_list[-1].args[0] == "somchai.k@ube.co.th"
        assert "approved" in mail.await_args_list[-1].args[1]

    async def test_default_note(self, client: AsyncClient, db: AsyncSession, manager_token, requisition):
        await client.post(_url(requisition), json={"action": "reject"}, headers=auth_header(manager_token))
        approvals = await approval_service.get_approval_history(db, requisition.id)
        assert approvals[0].status == "REJECTED"
        assert approvals[0].note == "REJECTED by nattaya.p"

    async def test_approved_can_be_closed(self, client: AsyncClient, manager_token, requisition):
        await client.post(_url(requisition), json={"action": "approve"}, headers=auth_header(manager_token))
        res = await client.post(_url(requisition), json={"action": "close"}, headers=auth_header(manager_token))
        assert res.status_code == 200
        assert res.json()["status"] == "CLOSED"

    async def test_rejected_cannot_be_approved(self, client: AsyncClient, manager_token, requisition):
        await client.post(_url(requisition), json={"action": "reject"}, headers=auth_header(manager_token))
        res = await client.post(_url(requisition), json={"action": "approve"}, headers=auth_header(manager_token))
        assert res.status_code == 400

    async def test_note_does_not_change_status(
        self, client: AsyncClient, db: AsyncSession, manager_token, requisition, mail
    ):
        res = await client.post(
            _url(requisition), json={"action": "note", "note": "Checking stock"},
            headers=auth_header(manager_token),
        )
        assert res.status_code == 200
        assert res.json()["changed"] is False
        assert res.json()["status"] == "PENDING"
        assert mail.await_count == 0

        history = await approval_service.get_status_history(db, requisition.id)
        assert history[-1].comment == "Checking stock"
        assert history[-1].status == "PENDING"

    async def test_unknown_action(self, client: AsyncClient, manager_token, requisition):
        res = await client.post(_url(requisition), json={"action": "escalate"}, headers=auth_header(manager_token))
        assert res.status_code == 400

    async def test_missing_requisition(self, client: AsyncClient, manager_token):
        res = await client.post(
            "/api/requisitions/31337/approve", json={"action": "approve"},
            headers=auth_header(manager_token),
        )
        assert res.status_code == 404


class TestApprovalPermissions:
    """승인 권한 테스트."""

    async def test_user_cannot_approve(self, client: AsyncClient, requester_token, requisition):
        res = await client.post(_url(requisition), json={"action": "approve"}, headers=auth_header(requester_token))
        assert res.status_code == 403

    async def test_manager_of_other_org_cannot_approve(
        self, client: AsyncClient, other_manager_token, requisition
    ):
        res = await client.post(
            _url(requisition), json={"action": "approve"}, headers=auth_header(other_manager_token)
        )
        assert res.status_code == 403

    async def test_admin_can_approve_any_org(self, client: AsyncClient, admin_token, requisition):
        res = await client.post(_url(requisition), json={"action": "approve"}, headers=auth_header(admin_token))
        assert res.status_code == 200

    async def test_approval_history_visible_to_requester(
        self, client: AsyncClient, manager_token, requester_token, requisition
    ):
        await client.post(_url(requisition), json={"action": "approve"}, headers=auth_header(manager_token))
        res = await client.get(
            f"/api/requisitions/{requisition.id}/approvals", headers=auth_header(requester_token)
        )
        assert res.status_code == 200
        assert [a["status"] for a in res.json()] == ["APPROVED"]


class TestConcurrentDecision:
    """낙관적 잠금 테스트."""

    async def test_stale_version_is_rejected(self, db: AsyncSession, requisition):
        from sqlalchemy import update

        # 다른 요청이 먼저 버전을 올림 — Another writer bumps the version first
        await db.execute(
            update(Requisition.__table__)
            .where(Requisition.__table__.c.id == requisition.id)
            .values(version=requisition.version + 1)
        )
        requisition.status = RequisitionStatus.APPROVED.value
        with pytest.raises(StaleDataError):
            await db.flush()

    async def test_conflict_answers_409(self, client: AsyncClient, manager_token, requisition, mail):
        with patch.object(
            approval_service, "create_approval",
            new=AsyncMock(side_effect=StaleDataError("version mismatch")),
        ):
            res = await client.post(_url(requisition), json={"action": "approve"}, headers=auth_header(manager_token))
        assert res.status_code == 409
        assert "modified by another request" in res.json()["detail"]
        assert mail.await_count == 0


class TestRejectPermission:
    """반려 권한 테스트."""

    async def test_reject_needs_only_reject_permission(
        self, client: AsyncClient, manager_token, requisition, monkeypatch
    ):
        monkeypatch.setitem(
            ROLE_PERMISSIONS, UserRole.MANAGER,
            ROLE_PERMISSIONS[UserRole.MANAGER] - {Permission.APPROVE_REQUISITION},
        )
        res = await client.post(_url(requisition), json={"action": "approve"}, headers=auth_header(manager_token))
        assert res.status_code == 403

        res = await client.post(_url(requisition), json={"action": "reject"}, headers=auth_header(manager_token))
        assert res.status_code == 200
        assert res.json()["status"] == "REJECTED"


class TestApprovalNotices:
    """승인 후 알림 테스트."""

    async def test_approval_notifies_admins(
        self, client: AsyncClient, db: AsyncSession, manager_token, requisition, admin_user, super_admin, mail
    ):
        from sqlalchemy import select
        from app.models.notification import EmailLog

        res = await client.post(_url(requisition), json={"action": "approve"}, headers=auth_header(manager_token))
        assert res.status_code == 200

        recipients = sorted(call.args[0] for call in mail.await_args_list)
        assert recipients == ["admin.user@ube.co.th", "root.admin@ube.co.th", "somchai.k@ube.co.th"]
        admin_rows = (await db.execute(
            select(EmailLog).where(EmailLog.notification_type == "admin_notice")
        )).scalars().all()
        assert {row.requisition_id for row in admin_rows} == {requisition.id}

    async def test_rejection_does_not_notify_admins(
        self, client: AsyncClient, manager_token, requisition, admin_user, mail
    ):
        await client.post(_url(requisition), json={"action": "reject"}, headers=auth_header(manager_token))
        assert [call.args[0] for call in mail.await_args_list] == ["somchai.k@ube.co.th"]


class TestApprovalStats:
    """승인 통계 API 테스트."""

    async def test_counts_per_status(
        self, client: AsyncClient, db: AsyncSession, manager_token, requisition, products
    ):
        other = await _make_user(db, "pimchanok.s", "USER")
        second = Requisition(
            user_id=other.user_id, status="PENDING", total_amount=Decimal("7.25"), orgcode3=ORG_A,
        )
        db.add(second)
        await db.flush()

        await client.post(_url(requisition), json={"action": "approve"}, headers=auth_header(manager_token))
        await client.post(_url(requisition), json={"action": "close"}, headers=auth_header(manager_token))
        await client.post(_url(second), json={"action": "reject"}, headers=auth_header(manager_token))

        res = await client.get("/api/requisitions/approval-stats", headers=auth_header(manager_token))
        assert res.status_code == 200
        assert res.json() == {"total": 3, "approved": 1, "rejected": 1, "closed": 1}

        res = await client.get(
            "/api/requisitions/approval-stats", params={"approved_by": "someone.else"},
            headers=auth_header(manager_token),
        )
        assert res.json()["total"] == 0

    async def test_requires_history_permission(self, client: AsyncClient, requester_token):
        res = await client.get("/api/requisitions/approval-stats", headers=auth_header(requester_token))
        assert res.status_code == 403
