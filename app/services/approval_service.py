"""승인 서비스 — 신청서 상태 전이 및 승인 이력.

Approval Service — Requisition status workflow.

The stored ``requisitions.status`` column is authoritative and is guarded
by the optimistic-lock ``version`` column. Each decision writes an Approval
row, a StatusHistory row and the new status in a single flush, so the
caller's one commit makes them all-or-nothing.

Transitions:
    PENDING  → APPROVED | REJECTED | CLOSED
    APPROVED → CLOSED
"""

import logging
from typing import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.requisition import Approval, Requisition, RequisitionStatus, StatusHistory
from app.repositories.requisition_repository import (
    approval_repository,
    requisition_repository,
    status_history_repository,
)
from app.utils.context import RequestContext
from app.utils.exceptions import BadRequestError, ForbiddenError, NotFoundError
from app.utils.permissions import Permission

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[RequisitionStatus, frozenset[RequisitionStatus]] = {
    RequisitionStatus.PENDING: frozenset({
        RequisitionStatus.APPROVED,
        RequisitionStatus.REJECTED,
        RequisitionStatus.CLOSED,
    }),
    RequisitionStatus.APPROVED: frozenset({RequisitionStatus.CLOSED}),
    RequisitionStatus.REJECTED: frozenset(),
    RequisitionStatus.CLOSED: frozenset(),
}

# 액션 → (결과 상태, 필요 권한) — "note"는 상태를 바꾸지 않음
_ACTIONS: dict[str, tuple[RequisitionStatus | None, tuple[Permission, ...]]] = {
    "approve": (RequisitionStatus.APPROVED, (Permission.APPROVE_REQUISITION,)),
    "reject": (RequisitionStatus.REJECTED, (Permission.REJECT_REQUISITION,)),
    "close": (RequisitionStatus.CLOSED, (Permission.EDIT_REQUISITION,)),
    "note": (None, (Permission.APPROVE_REQUISITION,)),
}


class ApprovalService:
    """승인 서비스."""

    async def get_latest_status(
        self,
        db: AsyncSession,
        requisition_id: int,
    ) -> RequisitionStatus:
        """신청서의 최신 상태를 반환합니다.

        Latest Approval row's status; else the requisition's stored status;
        else PENDING.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            requisition_id: 신청서 ID (Requisition id)

        Returns:
            RequisitionStatus: 최신 상태 (Latest status)
        """
        latest: Approval | None = await approval_repository.get_latest(db, requisition_id)
        if latest is not None:
            return RequisitionStatus(latest.status)

        requisition: Requisition | None = await requisition_repository.get_by_id(db, requisition_id)
        if requisition is not None and requisition.status:
            return RequisitionStatus(requisition.status)
        return RequisitionStatus.PENDING

    async def create_approval(
        self,
        db: AsyncSession,
        requisition_id: int,
        approved_by: str,
        status: RequisitionStatus,
        note: str | None = None,
    ) -> Approval:
        """승인 행과 상태 이력 행을 함께 기록합니다.

        Write an Approval row, its StatusHistory row and the requisition's
        new status in one flush.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            requisition_id: 신청서 ID (Requisition id)
            approved_by: 결정자 ID (Approver login id)
            status: 결과 상태 (Resulting status)
            note: 메모, 없으면 "{STATUS} by {approver}" (Note; defaulted when empty)

        Returns:
            Approval: 생성된 승인 행 (Created approval)

        Raises:
            NotFoundError: 신청서 없음 (Requisition not found)
            BadRequestError: 허용되지 않는 상태 전이 (Transition not allowed)
        """
        requisition: Requisition | None = await requisition_repository.get_by_id(db, requisition_id)
        if requisition is None:
            raise NotFoundError("Requisition not found")

        current = RequisitionStatus(requisition.status)
        if status not in ALLOWED_TRANSITIONS[current]:
            raise BadRequestError(
                f"Cannot change requisition from {current.value} to {status.value}"
            )

        text: str = note or f"{status.value} by {approved_by}"
        approval = Approval(
            requisition_id=requisition_id,
            approved_by=approved_by,
            status=status.value,
            note=text,
        )
        db.add(approval)
        db.add(
            StatusHistory(
                requisition_id=requisition_id,
                status=status.value,
                changed_by=approved_by,
                comment=text,
            )
        )
        # version_id_col이 동시 수정을 감지 — StaleDataError on concurrent update
        requisition.status = status.value
        await db.flush()
        await db.refresh(approval)

        logger.info("Requisition %s: %s -> %s by %s", requisition_id, current.value, status.value, approved_by)
        return approval

    async def add_note(
        self,
        db: AsyncSession,
        requisition_id: int,
        author: str,
        note: str,
    ) -> StatusHistory:
        """상태 변경 없이 이력에 메모를 남깁니다 (Comment without a transition)."""
        requisition: Requisition | None = await requisition_repository.get_by_id(db, requisition_id)
        if requisition is None:
            raise NotFoundError("Requisition not found")
        if not note or not note.strip():
            raise BadRequestError("Note is required")

        entry = StatusHistory(
            requisition_id=requisition_id,
            status=requisition.status,
            changed_by=author,
            comment=note.strip(),
        )
        db.add(entry)
        await db.flush()
        await db.refresh(entry)
        return entry

    async def approve_requisition(
        self,
        db: AsyncSession,
        ctx: RequestContext,
        requisition_id: int,
        action: str,
        note: str | None = None,
    ) -> dict:
        """승인 결정 흐름 — 권한 및 조직 검증 후 기록.

        Decision flow. Checks the action's permissions and that the
        approver belongs to the requisition's org unit (unless the role
        manages departments), then records the decision.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            ctx: 호출자 컨텍스트 (Caller context)
            requisition_id: 신청서 ID (Requisition id)
            action: "approve" | "reject" | "close" | "note"
            note: 메모 (Optional note)

        Returns:
            dict: {"requisition_id", "status", "action", "changed"}

        Raises:
            BadRequestError: 알 수 없는 액션 (Unknown action)
            ForbiddenError: 권한 없음 또는 다른 조직 (Missing permission or other org unit)
        """
        key: str = (action or "").strip().lower()
        if key not in _ACTIONS:
            raise BadRequestError(f"Unknown action: {action}")
        target, required = _ACTIONS[key]

        for permission in required:
            if not ctx.can(permission):
                raise ForbiddenError(f"Missing permission: {permission.value}")

        requisition: Requisition | None = await requisition_repository.get_by_id(db, requisition_id)
        if requisition is None:
            raise NotFoundError("Requisition not found")

        if not ctx.can(Permission.MANAGE_DEPARTMENTS):
            if not ctx.orgcode3 or ctx.orgcode3 != requisition.orgcode3:
                raise ForbiddenError("Requisition belongs to another org unit")

        if target is None:
            await self.add_note(db, requisition_id, ctx.user_id, note or "")
            return {
                "requisition_id": requisition_id,
                "status": requisition.status,
                "action": key,
                "changed": False,
            }

        await self.create_approval(db, requisition_id, ctx.user_id, target, note)
        return {
            "requisition_id": requisition_id,
            "status": target.value,
            "action": key,
            "changed": True,
        }

    async def get_approval_history(
        self,
        db: AsyncSession,
        requisition_id: int,
    ) -> Sequence[Approval]:
        return await approval_repository.get_history(db, requisition_id)

    async def get_status_history(
        self,
        db: AsyncSession,
        requisition_id: int,
    ) -> Sequence[StatusHistory]:
        return await status_history_repository.get_history(db, requisition_id)

    async def get_approval_stats(
        self,
        db: AsyncSession,
        approved_by: str | None = None,
    ) -> dict:
        """상태별 승인 건수 (Approval counts per status, optionally per approver)."""
        counts: dict[str, int] = await approval_repository.count_by_status(db, approved_by)
        return {
            "total": sum(counts.values()),
            "approved": counts.get(RequisitionStatus.APPROVED.value, 0),
            "rejected": counts.get(RequisitionStatus.REJECTED.value, 0),
            "closed": counts.get(RequisitionStatus.CLOSED.value, 0),
        }


# 싱글턴 인스턴스 — Singleton instance
approval_service: ApprovalService = ApprovalService()
