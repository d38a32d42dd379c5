"""알림 API 테스트.

Notification tests — The in-app feed, arrival notice, pending reminders,
manual retry of failed emails and email log administration.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.notification import EmailLog, EmailStatus, NotificationType
from app.models.requisition import Requisition, RequisitionStatus
from app.services.notification_service import notification_service
from app.utils.email import EmailDeliveryError
from tests.conftest import ORG_A, auth_header


@pytest_asyncio.fixture
async def pending(db: AsyncSession, requester, directory) -> list[Requisition]:
    """대기 신청서 2건과 승인된 신청서 1건 (Two pending, one approved)."""
    now = datetime.now(timezone.utc)
    rows = [
        Requisition(user_id=requester.user_id, status="PENDING", total_amount=Decimal("10.00"),
                    orgcode3=ORG_A, submitted_at=now - timedelta(days=3)),
        Requisition(user_id=requester.user_id, status="PENDING", total_amount=Decimal("20.00"),
                    orgcode3=ORG_A, submitted_at=now - timedelta(days=1)),
        Requisition(user_id=requester.user_id, status="APPROVED", total_amount=Decimal("30.00"),
                    orgcode3=ORG_A, submitted_at=now - timedelta(days=5)),
    ]
    db.add_all(rows)
    await db.flush()
    return rows


@pytest_asyncio.fixture
async def feed(db: AsyncSession, requester) -> list[EmailLog]:
    """신청자 앞 알림 3건 (Three feed entries for the requester)."""
    logs = [
        EmailLog(
            to_user_id=requester.user_id, to_email=requester.email, subject=f"Notice {i}",
            body="<p>hi</p>", status=EmailStatus.SENT.value,
            notification_type=NotificationType.REQUISITION_CREATED.value,
        )
        for i in range(3)
    ]
    db.add_all(logs)
    await db.flush()
    return logs


class TestFeed:
    """인앱 알림 피드 테스트."""

    async def test_list_notifications(self, client: AsyncClient, requester_token, feed):
        res = await client.get("/api/notifications", headers=auth_header(requester_token))
        assert res.status_code == 200
        data = res.json()
        assert data["total"] == 3
        assert "body" not in data["items"][0]

    async def test_unread_and_mark_read(self, client: AsyncClient, requester_token, feed):
        headers = auth_header(requester_token)
        res = await client.get("/api/notifications/unread-count", headers=headers)
        assert res.json() == {"unread_count": 3}

        res = await client.patch(f"/api/notifications/{feed[0].id}/read", headers=headers)
        assert res.status_code == 200
        res = await client.get("/api/notifications/unread-count", headers=headers)
        assert res.json() == {"unread_count": 2}

        res = await client.patch("/api/notifications/read-all", headers=headers)
        assert res.status_code == 200
        res = await client.get("/api/notifications/unread-count", headers=headers)
        assert res.json() == {"unread_count": 0}

    async def test_cannot_mark_someone_elses(self, client: AsyncClient, manager_token, feed):
        res = await client.patch(f"/api/notifications/{feed[0].id}/read", headers=auth_header(manager_token))
        assert res.status_code == 404

    async def test_no_auth(self, client: AsyncClient):
        res = await client.get("/api/notifications")
        assert res.status_code == 401


class TestArrival:
    """도착 알림 테스트."""

    async def test_arrival_notice(self, client: AsyncClient, manager_token, pending, mail):
        res = await client.post(
            "/api/notifications/arrival",
            json={"requisition_id": pending[2].id},
            headers=auth_header(manager_token),
        )
        assert res.status_code == 200, res.text
        data = res.json()
        assert data["status"] == "SENT"
        assert data["notification_type"] == "arrival"
        assert data["subject"] == f"สินค้ามาแล้ว - Requisition #{pending[2].id}"
        assert mail.await_args.args[0] == "somchai.k@ube.co.th"

    async def test_arrival_requires_permission(self, client: AsyncClient, requester_token, pending):
        res = await client.post(
            "/api/notifications/arrival",
            json={"requisition_id": pending[0].id},
            headers=auth_header(requester_token),
        )
        assert res.status_code == 403

    async def test_arrival_missing_requisition(self, client: AsyncClient, manager_token):
        res = await client.post(
            "/api/notifications/arrival", json={"requisition_id": 777},
            headers=auth_header(manager_token),
        )
        assert res.status_code == 404


class TestManagerFeed:
    """관리자 인앱 알림 테스트."""

    async def test_submission_reaches_manager_feed(
        self, client: AsyncClient, db: AsyncSession, requester_token, manager_token, products, directory, mail
    ):
        res = await client.post(
            "/api/requisitions",
            json={"items": [{"product_id": products[0].id, "quantity": 1}]},
            headers=auth_header(requester_token),
        )
        assert res.status_code == 201, res.text

        res = await client.get("/api/notifications/unread-count", headers=auth_header(manager_token))
        assert res.json() == {"unread_count": 1}

        rows = (await db.execute(
            select(EmailLog).where(EmailLog.notification_type == NotificationType.REQUISITION_PENDING.value)
        )).scalars().all()
        assert sorted(row.to_user_id for row in rows) == ["nattaya.p", "wichai.t"]

        res = await client.get("/api/notifications", headers=auth_header(manager_token))
        assert res.json()["total"] == 1


class TestReminders:
    """대기 리마인더 테스트."""

    async def test_reminders_for_pending_only(self, db: AsyncSession, pending, mail):
        result = await notification_service.send_pending_reminders(db)

        assert result["pending_count"] == 2
        # 신청서 2건 × 관리자 2명 — Two requisitions times two managers
        assert result["reminders_sent"] == 4
        assert [r["requisition_id"] for r in result["results"]] == [pending[0].id, pending[1].id]
        assert result["results"][0]["days_pending"] == 3
        assert mail.await_count == 4

    async def test_reminders_land_in_manager_feeds(self, db: AsyncSession, pending, mail):
        await notification_service.send_pending_reminders(db)
        rows = (await db.execute(
            select(EmailLog).where(EmailLog.notification_type == NotificationType.REMINDER.value)
        )).scalars().all()
        assert sorted({row.to_user_id for row in rows}) == ["nattaya.p", "wichai.t"]

    async def test_reminder_endpoint_with_cron_token(
        self, client: AsyncClient, pending, monkeypatch
    ):
        monkeypatch.setattr(settings, "CRON_SECRET", "s3cret")
        res = await client.post("/api/notifications/reminder", headers={"X-Cron-Token": "s3cret"})
        assert res.status_code == 200
        assert res.json()["pending_count"] == 2

    async def test_reminder_endpoint_rejects_wrong_token(
        self, client: AsyncClient, pending, monkeypatch
    ):
        monkeypatch.setattr(settings, "CRON_SECRET", "s3cret")
        res = await client.post("/api/notifications/reminder", headers={"X-Cron-Token": "nope"})
        assert res.status_code == 401

    async def test_reminder_endpoint_without_token_or_secret(
        self, client: AsyncClient, pending, monkeypatch
    ):
        monkeypatch.setattr(settings, "CRON_SECRET", "s3cret")
        res = await client.post("/api/notifications/reminder")
        assert res.status_code == 401

        # 시크릿 미설정 시 빈 토큰도 거부 — An unset secret never matches
        monkeypatch.setattr(settings, "CRON_SECRET", "")
        res = await client.post("/api/notifications/reminder", headers={"X-Cron-Token": ""})
        assert res.status_code == 401

    async def test_reminder_endpoint_admin_and_manager(
        self, client: AsyncClient, admin_token, manager_token, pending
    ):
        res = await client.post("/api/notifications/reminder", headers=auth_header(manager_token))
        assert res.status_code == 403
        res = await client.post("/api/notifications/reminder", headers=auth_header(admin_token))
        assert res.status_code == 200


class TestRetry:
    """실패 메일 재발송 테스트."""

    async def test_retry_appends_linked_rows(self, db: AsyncSession, pending, mail):
        mail.side_effect = EmailDeliveryError("timeout")
        first = await notification_service.notify_arrival(db, pending[0].id)
        assert first.status == "FAILED"

        mail.side_effect = None
        result = await notification_service.retry_failed(db)
        assert result["total"] == 1
        assert result["succeeded"] == 1

        retry = (await db.execute(
            select(EmailLog).where(EmailLog.retry_of_id == first.id)
        )).scalar_one()
        assert retry.status == "SENT"
        assert retry.attempt_number == 2
        assert first.status == "FAILED"

        # 이미 재시도된 행은 다시 대상이 아님 — A retried row is not picked again
        again = await notification_service.retry_failed(db)
        assert again["total"] == 0

    async def test_retry_stops_at_max_attempts(self, db: AsyncSession, pending, mail):
        mail.side_effect = EmailDeliveryError("relay down")
        await notification_service.notify_arrival(db, pending[0].id)

        totals = []
        for _ in range(4):
            totals.append((await notification_service.retry_failed(db, max_attempts=3))["total"])
        assert totals == [1, 1, 0, 0]

        attempts = (await db.execute(
            select(EmailLog.attempt_number).order_by(EmailLog.id)
        )).scalars().all()
        assert attempts == [1, 2, 3]

    async def test_retry_endpoint_and_stats(
        self, client: AsyncClient, db: AsyncSession, admin_token, manager_token, pending, mail
    ):
        mail.side_effect = EmailDeliveryError("relay down")
        await notification_service.notify_arrival(db, pending[0].id)
        mail.side_effect = None

        res = await client.post("/api/email-logs/retry-failed", headers=auth_header(manager_token))
        assert res.status_code == 403

        res = await client.post("/api/email-logs/retry-failed", headers=auth_header(admin_token))
        assert res.status_code == 200
        assert res.json()["succeeded"] == 1

        res = await client.get("/api/email-logs/stats", headers=auth_header(admin_token))
        stats = res.json()
        assert stats["total"] == 2
        assert stats["sent"] == 1
        assert stats["failed"] == 1
        assert stats["by_type"] == {"arrival": 2}

        res = await client.get(
            "/api/email-logs", params={"status": "FAILED"}, headers=auth_header(admin_token)
        )
        assert res.json()["total"] == 1
        assert res.json()["items"][0]["error_message"] == "relay down"


class TestStatusNotices:
    async def test_rejection_notice(self, db: AsyncSession, pending, mail):
        log = await notification_service.notify_status_change(
            db, pending[0].id, RequisitionStatus.REJECTED, "nattaya.p", "Over budget"
        )
        assert log.notification_type == "requisition_rejected"
        assert "Over budget" in log.body

    async def test_admin_notice(self, db: AsyncSession, admin_user, super_admin, mail):
        logs = await notification_service.notify_admins(db, "Stock low", "A4 paper below 10 reams")
        assert sorted(log.to_email for log in logs) == ["admin.user@ube.co.th", "root.admin@ube.co.th"]
