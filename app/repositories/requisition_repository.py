"""신청서 레포지토리 — 신청서/승인/상태 이력 DB 쿼리 담당.

Requisition Repository — Queries for requisitions, approvals and the
status history log.
"""

from typing import Sequence

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.requisition import Approval, Requisition, RequisitionItem, StatusHistory
from app.repositories.base import BaseRepository


class RequisitionRepository(BaseRepository[Requisition]):
    """신청서 레포지토리.

    Extends:
        BaseRepository[Requisition]
    """

    def __init__(self) -> None:
        super().__init__(Requisition)

    async def get_with_items(
        self,
        db: AsyncSession,
        requisition_id: int,
    ) -> Requisition | None:
        """품목을 함께 로드하여 신청서를 조회합니다.

        Load a requisition with its line items and their products eagerly.
        """
        result = await db.execute(
            select(Requisition)
            .options(selectinload(Requisition.items).selectinload(RequisitionItem.product))
            .where(Requisition.id == requisition_id)
        )
        return result.scalar_one_or_none()

    def build_list_query(
        self,
        user_id: str | None = None,
        status: str | None = None,
        orgcode3: str | None = None,
    ) -> Select:
        """신청서 목록 쿼리 — 최신 제출 순 (Newest submission first)."""
        query: Select = select(Requisition).order_by(
            Requisition.submitted_at.desc(), Requisition.id.desc()
        )
        if user_id is not None:
            query = query.where(Requisition.user_id == user_id)
        if status:
            query = query.where(Requisition.status == status.upper())
        if orgcode3 is not None:
            query = query.where(Requisition.orgcode3 == orgcode3)
        return query

    async def get_by_status_oldest_first(
        self,
        db: AsyncSession,
        status: str,
    ) -> Sequence[Requisition]:
        """상태별 신청서를 오래된 순으로 조회합니다 (Oldest submission first)."""
        result = await db.execute(
            select(Requisition)
            .where(Requisition.status == status)
            .order_by(Requisition.submitted_at.asc(), Requisition.id.asc())
        )
        return result.scalars().all()

    async def stats_by_status(
        self,
        db: AsyncSession,
        orgcode3: str | None = None,
    ) -> list[tuple[str, int, object]]:
        """상태별 건수 및 합계 (Count and total amount per status)."""
        query = select(
            Requisition.status,
            func.count(Requisition.id),
            func.coalesce(func.sum(Requisition.total_amount), 0),
        ).group_by(Requisition.status)
        if orgcode3 is not None:
            query = query.where(Requisition.orgcode3 == orgcode3)
        result = await db.execute(query)
        return [(row[0], row[1], row[2]) for row in result.all()]


class ApprovalRepository(BaseRepository[Approval]):
    """승인 레포지토리."""

    def __init__(self) -> None:
        super().__init__(Approval)

    async def get_latest(
        self,
        db: AsyncSession,
        requisition_id: int,
    ) -> Approval | None:
        """가장 최근 승인 행 — approved_at, id 내림차순 (Ties broken by id)."""
        result = await db.execute(
            select(Approval)
            .where(Approval.requisition_id == requisition_id)
            .order_by(Approval.approved_at.desc(), Approval.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_history(
        self,
        db: AsyncSession,
        requisition_id: int,
    ) -> Sequence[Approval]:
        result = await db.execute(
            select(Approval)
            .where(Approval.requisition_id == requisition_id)
            .order_by(Approval.approved_at.desc(), Approval.id.desc())
        )
        return result.scalars().all()

    async def count_by_status(
        self,
        db: AsyncSession,
        approved_by: str | None = None,
    ) -> dict[str, int]:
        query = select(Approval.status, func.count()).group_by(Approval.status)
        if approved_by is not None:
            query = query.where(Approval.approved_by == approved_by)
        result = await db.execute(query)
        return {status: count for status, count in result.all()}


class StatusHistoryRepository(BaseRepository[StatusHistory]):
    """상태 이력 레포지토리."""

    def __init__(self) -> None:
        super().__init__(StatusHistory)

    async def get_history(
        self,
        db: AsyncSession,
        requisition_id: int,
    ) -> Sequence[StatusHistory]:
        result = await db.execute(
            select(StatusHistory)
            .where(StatusHistory.requisition_id == requisition_id)
            .order_by(StatusHistory.changed_at.desc(), StatusHistory.id.desc())
        )
        return result.scalars().all()


# 싱글턴 인스턴스 — Singleton instances
requisition_repository: RequisitionRepository = RequisitionRepository()
approval_repository: ApprovalRepository = ApprovalRepository()
status_history_repository: StatusHistoryRepository = StatusHistoryRepository()
