"""알림 서비스 — 이메일 알림 발송 및 로그 관리.

Notification Service — Sends requisition emails and keeps the EmailLog trail.

Every send is a single synchronous attempt that appends exactly one
EmailLog row (SENT or FAILED). Mail failures never propagate to the caller,
so a failed email cannot undo the business change it announces. Failed
rows can be re-sent manually through retry_failed(), which appends a new
row per attempt.
"""

import html
import logging
from datetime import timedelta
from typing import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.notification import EmailLog, EmailStatus, NotificationType
from app.models.requisition import Requisition, RequisitionItem, RequisitionStatus
from app.models.user import DirectoryEntry
from app.repositories.notification_repository import email_log_repository
from app.repositories.requisition_repository import requisition_repository
from app.repositories.user_repository import directory_repository, user_repository
from app.services.manager_service import manager_service
from app.utils.email import EmailDeliveryError, send_email
from app.utils.exceptions import NotFoundError
from app.utils.permissions import UserRole
from app.utils.timezone import days_between, to_display, utcnow

logger = logging.getLogger(__name__)


# --- 본문 템플릿 (Body templates) ---

def _login(entry: DirectoryEntry) -> str | None:
    """디렉터리 행의 로그인 ID — users.user_id와 같은 소문자 형태."""
    return entry.ad_login_name.strip().lower() if entry.ad_login_name else None


def _requisition_url(requisition_id: int) -> str:
    return f"{settings.PORTAL_BASE_URL.rstrip('/')}/requisitions/{requisition_id}"


def _render_items(items: Sequence[RequisitionItem]) -> str:
    if not items:
        return ""
    rows: list[str] = []
    for item in items:
        name: str = item.product.name if item.product is not None else f"#{item.product_id}"
        rows.append(
            f"<tr><td>{html.escape(name)}</td><td>{item.quantity}</td>"
            f"<td>{item.unit_price:,.2f}</td><td>{item.total_price:,.2f}</td></tr>"
        )
    return (
        "<table border='1' cellpadding='4' cellspacing='0'>"
        "<tr><th>Product</th><th>Qty</th><th>Unit price</th><th>Total</th></tr>"
        + "".join(rows)
        + "</table>"
    )


def _render_body(
    heading: str,
    requisition: Requisition,
    lines: list[str],
    items: Sequence[RequisitionItem] = (),
) -> str:
    details: str = "".join(f"<p>{html.escape(line)}</p>" for line in lines if line)
    return (
        f"<h2>{html.escape(heading)}</h2>"
        f"<p>Requisition #{requisition.id} &middot; requested by {html.escape(requisition.user_id)}</p>"
        f"<p>Submitted: {to_display(requisition.submitted_at)}</p>"
        f"<p>Total amount: {requisition.total_amount:,.2f}</p>"
        f"{details}"
        f"{_render_items(items)}"
        f"<p><a href='{_requisition_url(requisition.id)}'>Open in StationaryHub</a></p>"
    )


class NotificationService:
    """알림 서비스.

    Notification service: dispatch, requisition events, reminders,
    manual retry, and the per-user in-app feed built on EmailLog.
    """

    # --- 발송 (Dispatch) ---

    async def dispatch(
        self,
        db: AsyncSession,
        *,
        to_email: str,
        subject: str,
        body: str,
        notification_type: NotificationType | str,
        to_user_id: str | None = None,
        requisition_id: int | None = None,
        attempt_number: int = 1,
        retry_of_id: int | None = None,
    ) -> EmailLog:
        """메일을 1회 발송하고 결과를 EmailLog에 기록합니다.

        Attempt one send and append its EmailLog row. Never raises on a
        mail failure; the FAILED row carries the error message instead.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            to_email: 수신 이메일 (Recipient address)
            subject: 제목 (Subject)
            body: HTML 본문 (HTML body)
            notification_type: 알림 유형 (Notification type)
            to_user_id: 수신자 사용자 ID (Recipient user id, optional)
            requisition_id: 관련 신청서 ID (Related requisition, optional)
            attempt_number: 시도 번호 (Attempt number in a retry chain)
            retry_of_id: 재시도 대상 로그 ID (Failed row being retried)

        Returns:
            EmailLog: 기록된 로그 (The appended log row)
        """
        status: EmailStatus = EmailStatus.SENT
        error_message: str | None = None
        try:
            await send_email(to_email, subject, body)
        except EmailDeliveryError as exc:
            status = EmailStatus.FAILED
            error_message = str(exc)
            logger.warning("Email to %s failed (%s): %s", to_email, subject, exc)
        else:
            logger.info("Email sent to %s: %s", to_email, subject)

        log: EmailLog = EmailLog(
            to_user_id=to_user_id,
            to_email=to_email,
            subject=subject,
            body=body,
            status=status.value,
            notification_type=NotificationType(notification_type).value,
            requisition_id=requisition_id,
            error_message=error_message,
            attempt_number=attempt_number,
            retry_of_id=retry_of_id,
        )
        db.add(log)
        await db.flush()
        await db.refresh(log)
        return log

    async def _user_email(self, db: AsyncSession, user_id: str) -> str | None:
        """사용자 이메일 — users 테이블 우선, 없으면 디렉터리 뷰."""
        user = await user_repository.get_by_id(db, user_id)
        if user is not None and user.email:
            return user.email
        entry = await directory_repository.find_by_login(db, user_id)
        return entry.email if entry is not None and entry.email else None

    async def _load(self, db: AsyncSession, requisition_id: int) -> Requisition:
        requisition = await requisition_repository.get_with_items(db, requisition_id)
        if requisition is None:
            raise NotFoundError("Requisition not found")
        return requisition

    # --- 신청서 이벤트 (Requisition events) ---

    async def notify_requisition_created(
        self,
        db: AsyncSession,
        requisition_id: int,
    ) -> list[EmailLog]:
        """신청서 생성 알림 — 신청자 확인 메일 + 관리자 승인 요청 메일.

        Confirmation to the requester plus an approval request to each
        resolved manager. Recipients without an email are skipped.
        """
        requisition = await self._load(db, requisition_id)
        logs: list[EmailLog] = []

        requester_email = await self._user_email(db, requisition.user_id)
        if requester_email:
            logs.append(
                await self.dispatch(
                    db,
                    to_email=requester_email,
                    subject=f"Requisition #{requisition.id} submitted",
                    body=_render_body(
                        "Your requisition has been submitted",
                        requisition,
                        [requisition.issue_note or ""],
                        requisition.items,
                    ),
                    notification_type=NotificationType.REQUISITION_CREATED,
                    to_user_id=requisition.user_id,
                    requisition_id=requisition.id,
                )
            )

        logs.extend(await self.notify_managers(db, requisition))
        return logs

    async def notify_managers(
        self,
        db: AsyncSession,
        requisition: Requisition,
    ) -> list[EmailLog]:
        """신청자의 관리자에게 승인 요청 메일 (Approval request to managers)."""
        managers: list[DirectoryEntry] = await manager_service.get_managers(db, requisition.user_id)
        if not managers:
            logger.info("No manager found for requisition %s (requester %s)", requisition.id, requisition.user_id)
            return []

        logs: list[EmailLog] = []
        for manager in managers:
            logs.append(
                await self.dispatch(
                    db,
                    to_email=manager.email.strip(),
                    subject=f"Approval required: Requisition #{requisition.id}",
                    body=_render_body(
                        "A requisition is waiting for your approval",
                        requisition,
                        [requisition.issue_note or ""],
                        requisition.items,
                    ),
                    notification_type=NotificationType.REQUISITION_PENDING,
                    to_user_id=_login(manager),
                    requisition_id=requisition.id,
                )
            )
        return logs

    async def notify_status_change(
        self,
        db: AsyncSession,
        requisition_id: int,
        status: RequisitionStatus,
        actor: str,
        note: str | None = None,
    ) -> EmailLog | None:
        """상태 변경을 신청자에게 알립니다 (Tell the requester about a decision)."""
        if status == RequisitionStatus.APPROVED:
            return await self.notify_requisition_approved(db, requisition_id, actor, note)
        if status == RequisitionStatus.REJECTED:
            return await self.notify_requisition_rejected(db, requisition_id, actor, note)
        if status == RequisitionStatus.CLOSED:
            return await self._notify_requester(
                db, requisition_id, NotificationType.REQUISITION_CLOSED,
                "closed", actor, note,
            )
        return None

    async def notify_requisition_approved(
        self,
        db: AsyncSession,
        requisition_id: int,
        approver: str,
        note: str | None = None,
    ) -> EmailLog | None:
        """승인 알림 — 신청자 메일 후 관리자(ADMIN) 전체에게도 통보.

        Tell the requester, then let every admin know about the approval.
        Returns the requester's log row.
        """
        log = await self._notify_requester(
            db, requisition_id, NotificationType.REQUISITION_APPROVED,
            "approved", approver, note,
        )
        await self.notify_admins(
            db,
            f"Requisition #{requisition_id} approved",
            f"Requisition #{requisition_id} was approved by {approver}.",
            requisition_id=requisition_id,
        )
        return log

    async def notify_requisition_rejected(
        self,
        db: AsyncSession,
        requisition_id: int,
        approver: str,
        note: str | None = None,
    ) -> EmailLog | None:
        return await self._notify_requester(
            db, requisition_id, NotificationType.REQUISITION_REJECTED,
            "rejected", approver, note,
        )

    async def _notify_requester(
        self,
        db: AsyncSession,
        requisition_id: int,
        notification_type: NotificationType,
        verb: str,
        actor: str,
        note: str | None,
    ) -> EmailLog | None:
        requisition = await self._load(db, requisition_id)
        email = await self._user_email(db, requisition.user_id)
        if not email:
            logger.info("Requester %s has no email; skipping %s notice", requisition.user_id, verb)
            return None
        return await self.dispatch(
            db,
            to_email=email,
            subject=f"Requisition #{requisition.id} {verb}",
            body=_render_body(
                f"Your requisition was {verb} by {actor}",
                requisition,
                [f"Note: {note}" if note else ""],
                requisition.items,
            ),
            notification_type=notification_type,
            to_user_id=requisition.user_id,
            requisition_id=requisition.id,
        )

    async def notify_admins(
        self,
        db: AsyncSession,
        subject: str,
        message: str,
        requisition_id: int | None = None,
    ) -> list[EmailLog]:
        """관리자(ADMIN/SUPER_ADMIN) 전체에게 메일 (Mail every admin with an email)."""
        admins = await user_repository.get_by_roles(
            db, [UserRole.ADMIN.value, UserRole.SUPER_ADMIN.value]
        )
        logs: list[EmailLog] = []
        for admin in admins:
            if not admin.email:
                continue
            logs.append(
                await self.dispatch(
                    db,
                    to_email=admin.email,
                    subject=subject,
                    body=f"<p>{html.escape(message)}</p>",
                    notification_type=NotificationType.ADMIN_NOTICE,
                    to_user_id=admin.user_id,
                    requisition_id=requisition_id,
                )
            )
        return logs

    async def notify_arrival(
        self,
        db: AsyncSession,
        requisition_id: int,
        message: str | None = None,
    ) -> EmailLog | None:
        """상품 도착 알림 — 신청자에게 수령 안내 (Items ready for pickup)."""
        requisition = await self._load(db, requisition_id)
        email = await self._user_email(db, requisition.user_id)
        if not email:
            return None
        text: str = message or (
            f"The items for requisition #{requisition.id} have arrived. "
            "Please collect them from the stationery counter."
        )
        return await self.dispatch(
            db,
            to_email=email,
            subject=f"สินค้ามาแล้ว - Requisition #{requisition.id}",
            body=_render_body("Your items have arrived", requisition, [text], requisition.items),
            notification_type=NotificationType.ARRIVAL,
            to_user_id=requisition.user_id,
            requisition_id=requisition.id,
        )

    # --- 리마인더 (Reminders) ---

    async def send_pending_reminders(self, db: AsyncSession) -> dict:
        """대기 중인 모든 신청서에 대해 관리자 리마인더를 보냅니다.

        Scan every PENDING requisition, oldest first, and mail one reminder
        per resolved manager. Runs unconditionally on every call.

        Returns:
            dict: {"pending_count", "reminders_sent", "results"}
        """
        pending = await requisition_repository.get_by_status_oldest_first(
            db, RequisitionStatus.PENDING.value
        )
        results: list[dict] = []
        reminders_sent: int = 0

        for requisition in pending:
            days_pending: int = days_between(requisition.submitted_at)
            managers: list[DirectoryEntry] = await manager_service.get_managers(db, requisition.user_id)
            entry: dict = {
                "requisition_id": requisition.id,
                "requester": requisition.user_id,
                "days_pending": days_pending,
                "managers": [m.email.strip() for m in managers],
                "sent": 0,
                "failed": 0,
            }
            for manager in managers:
                log = await self.dispatch(
                    db,
                    to_email=manager.email.strip(),
                    subject=f"Reminder: Requisition #{requisition.id} pending for {days_pending} day(s)",
                    body=_render_body(
                        "A requisition is still waiting for approval",
                        requisition,
                        [f"Pending for {days_pending} day(s)."],
                    ),
                    notification_type=NotificationType.REMINDER,
                    to_user_id=_login(manager),
                    requisition_id=requisition.id,
                )
                if log.status == EmailStatus.SENT.value:
                    entry["sent"] += 1
                    reminders_sent += 1
                else:
                    entry["failed"] += 1
            results.append(entry)

        logger.info("Reminder run: %d pending, %d reminders sent", len(pending), reminders_sent)
        return {
            "pending_count": len(pending),
            "reminders_sent": reminders_sent,
            "results": results,
        }

    # --- 재시도 (Manual retry) ---

    async def retry_failed(
        self,
        db: AsyncSession,
        max_attempts: int | None = None,
    ) -> dict:
        """실패한 메일을 1회씩 재발송합니다.

        Re-send each retryable FAILED row once, synchronously and without
        backoff. Each attempt appends a new row linked by retry_of_id.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            max_attempts: 체인당 최대 시도 횟수 (Max attempts per chain;
                          defaults to EMAIL_RETRY_MAX_ATTEMPTS)

        Returns:
            dict: {"total", "succeeded", "failed", "results"}
        """
        limit: int = max_attempts or settings.EMAIL_RETRY_MAX_ATTEMPTS
        failures = await email_log_repository.get_retryable_failures(db, limit)

        results: list[dict] = []
        succeeded: int = 0
        for failed in failures:
            log = await self.dispatch(
                db,
                to_email=failed.to_email,
                subject=failed.subject,
                body=failed.body,
                notification_type=failed.notification_type,
                to_user_id=failed.to_user_id,
                requisition_id=failed.requisition_id,
                attempt_number=failed.attempt_number + 1,
                retry_of_id=failed.id,
            )
            if log.status == EmailStatus.SENT.value:
                succeeded += 1
            results.append({
                "original_id": failed.id,
                "retry_id": log.id,
                "status": log.status,
                "attempt_number": log.attempt_number,
                "error": log.error_message,
            })

        return {
            "total": len(failures),
            "succeeded": succeeded,
            "failed": len(failures) - succeeded,
            "results": results,
        }

    # --- 인앱 알림 (In-app feed) ---

    async def list_notifications(
        self,
        db: AsyncSession,
        user_id: str,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[Sequence[EmailLog], int]:
        return await email_log_repository.get_user_notifications(db, user_id, page, per_page)

    async def get_unread_count(self, db: AsyncSession, user_id: str) -> int:
        return await email_log_repository.get_unread_count(db, user_id)

    async def mark_read(self, db: AsyncSession, log_id: int, user_id: str) -> bool:
        return await email_log_repository.mark_read(db, log_id, user_id)

    async def mark_all_read(self, db: AsyncSession, user_id: str) -> int:
        return await email_log_repository.mark_all_read(db, user_id)

    # --- 관리 (Administration) ---

    async def list_email_logs(
        self,
        db: AsyncSession,
        status: str | None = None,
        notification_type: str | None = None,
        page: int = 1,
        per_page: int = 100,
    ) -> tuple[Sequence[EmailLog], int]:
        query = email_log_repository.build_list_query(status, notification_type)
        return await email_log_repository.get_paginated(db, query, page, per_page)

    async def get_email_stats(self, db: AsyncSession) -> dict:
        """발송 통계 — 상태별, 유형별, 최근 24시간 (Stats by status, type, last 24h)."""
        by_status = await email_log_repository.count_by_status(db)
        last_24h = await email_log_repository.count_by_status(db, since=utcnow() - timedelta(hours=24))
        by_type = await email_log_repository.count_by_type(db)
        return {
            "total": sum(by_status.values()),
            "sent": by_status.get(EmailStatus.SENT.value, 0),
            "failed": by_status.get(EmailStatus.FAILED.value, 0),
            "by_type": by_type,
            "last_24h": {
                "sent": last_24h.get(EmailStatus.SENT.value, 0),
                "failed": last_24h.get(EmailStatus.FAILED.value, 0),
            },
        }


# 싱글턴 인스턴스 — Singleton instance
notification_service: NotificationService = NotificationService()
