"""이메일 로그 레포지토리 — 알림/이메일 로그 DB 쿼리 담당.

Email Log Repository — Handles email-log queries, including the per-user
in-app notification feed and the failed-email retry scan.
"""

from datetime import datetime
from typing import Sequence

from sqlalchemy import Select, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from app.models.notification import EmailLog, EmailStatus
from app.repositories.base import BaseRepository


class EmailLogRepository(BaseRepository[EmailLog]):
    """이메일 로그 레포지토리.

    Extends:
        BaseRepository[EmailLog]
    """

    def __init__(self) -> None:
        super().__init__(EmailLog)

    async def get_user_notifications(
        self,
        db: AsyncSession,
        user_id: str,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[Sequence[EmailLog], int]:
        """사용자의 알림 목록을 페이지네이션하여 조회합니다.

        Retrieve the paginated notification feed of a user, newest first.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            user_id: 사용자 ID (User id)
            page: 페이지 번호, 1부터 시작 (Page number, 1-based)
            per_page: 페이지당 항목 수 (Items per page)

        Returns:
            tuple[Sequence[EmailLog], int]: (로그 목록, 전체 개수) (Rows, total count)
        """
        query: Select = (
            select(EmailLog)
            .where(EmailLog.to_user_id == user_id)
            .order_by(EmailLog.sent_at.desc(), EmailLog.id.desc())
        )
        return await self.get_paginated(db, query, page, per_page)

    async def get_unread_count(
        self,
        db: AsyncSession,
        user_id: str,
    ) -> int:
        """사용자의 읽지 않은 알림 수를 조회합니다."""
        query: Select = (
            select(func.count())
            .select_from(EmailLog)
            .where(
                EmailLog.to_user_id == user_id,
                EmailLog.is_read.is_(False),
            )
        )
        count: int = (await db.execute(query)).scalar() or 0
        return count

    async def mark_read(
        self,
        db: AsyncSession,
        log_id: int,
        user_id: str,
    ) -> bool:
        """단일 알림을 읽음 처리합니다. 본인 소유가 아니면 False.

        Mark one row as read; only the recipient's own rows match.
        """
        result = await db.execute(
            update(EmailLog)
            .where(
                EmailLog.id == log_id,
                EmailLog.to_user_id == user_id,
            )
            .values(is_read=True)
        )
        await db.flush()
        return result.rowcount > 0

    async def mark_all_read(
        self,
        db: AsyncSession,
        user_id: str,
    ) -> int:
        """사용자의 모든 읽지 않은 알림을 읽음 처리합니다."""
        result = await db.execute(
            update(EmailLog)
            .where(
                EmailLog.to_user_id == user_id,
                EmailLog.is_read.is_(False),
            )
            .values(is_read=True)
        )
        await db.flush()
        return result.rowcount

    def build_list_query(
        self,
        status: str | None = None,
        notification_type: str | None = None,
    ) -> Select:
        """관리자용 로그 목록 쿼리 (Admin list query, newest first)."""
        query: Select = select(EmailLog).order_by(EmailLog.sent_at.desc(), EmailLog.id.desc())
        if status:
            query = query.where(EmailLog.status == status.upper())
        if notification_type:
            query = query.where(EmailLog.notification_type == notification_type)
        return query

    async def get_retryable_failures(
        self,
        db: AsyncSession,
        max_attempts: int,
    ) -> Sequence[EmailLog]:
        """재시도 대상 실패 로그를 조회합니다.

        FAILED rows that no later attempt points back to and whose
        attempt_number is still below max_attempts, oldest first.
        """
        retry = aliased(EmailLog)
        already_retried = select(retry.id).where(retry.retry_of_id == EmailLog.id).exists()
        result = await db.execute(
            select(EmailLog)
            .where(
                EmailLog.status == EmailStatus.FAILED.value,
                EmailLog.attempt_number < max_attempts,
                ~already_retried,
            )
            .order_by(EmailLog.sent_at.asc(), EmailLog.id.asc())
        )
        return result.scalars().all()

    async def count_by_status(self, db: AsyncSession, since: datetime | None = None) -> dict[str, int]:
        query = select(EmailLog.status, func.count()).group_by(EmailLog.status)
        if since is not None:
            query = query.where(EmailLog.sent_at >= since)
        result = await db.execute(query)
        return {status: count for status, count in result.all()}

    async def count_by_type(self, db: AsyncSession) -> dict[str, int]:
        result = await db.execute(
            select(EmailLog.notification_type, func.count()).group_by(EmailLog.notification_type)
        )
        return {ntype: count for ntype, count in result.all()}


# 싱글턴 인스턴스 — Singleton instance
email_log_repository: EmailLogRepository = EmailLogRepository()
