"""신청서 라우터 — 신청서 제출/조회, 품목 관리, 승인 결정.

Requisition Router — Submission, listing, line items and approval
decisions.

Permission Matrix:
    - 제출/본인 조회: 인증된 모든 사용자 (Any authenticated user)
    - 전체 조회: VIEW_APPROVAL_HISTORY
    - 품목 교체/삭제: EDIT_REQUISITION
    - 승인/반려/종결/메모: 액션별 권한 (Per-action, checked by the approval service)

Notifications are sent after the business transaction commits; a mail
failure only produces a FAILED email log row.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_request_context, require_permission
from app.database import get_db
from app.models.requisition import RequisitionStatus
from app.schemas.requisition import (
    ApprovalActionRequest,
    ApprovalResponse,
    ItemsReplaceRequest,
    RequisitionCreate,
    RequisitionDetailResponse,
    RequisitionItemResponse,
    RequisitionResponse,
    StatusHistoryResponse,
)
from app.services.approval_service import approval_service
from app.services.notification_service import notification_service
from app.services.requisition_service import requisition_service
from app.utils.context import RequestContext
from app.utils.pagination import Page
from app.utils.permissions import Permission

router: APIRouter = APIRouter()


@router.get("", response_model=Page)
async def list_requisitions(
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[RequestContext, Depends(get_request_context)],
    mine: bool = False,
    status: Annotated[RequisitionStatus | None, Query()] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    per_page: Annotated[int, Query(ge=1, le=100)] = 20,
) -> Page:
    """신청서 목록을 조회합니다.

    List requisitions, newest first. Callers without VIEW_APPROVAL_HISTORY
    only ever see their own.

    Args:
        db: 비동기 데이터베이스 세션 (Async database session)
        ctx: 호출자 컨텍스트 (Caller context)
        mine: 본인 것만 (Only the caller's own)
        status: 상태 필터 (Status filter)
        page: 페이지 번호 (Page number)
        per_page: 페이지당 항목 수 (Items per page)

    Returns:
        Page: 페이지네이션된 신청서 목록 (Paginated requisitions)
    """
    rows, total = await requisition_service.list_requisitions(
        db, ctx, mine=mine, status=status.value if status else None, page=page, per_page=per_page
    )
    items = [RequisitionResponse.model_validate(r) for r in rows]
    return Page.build(items, total, page, per_page)


@router.post("", response_model=RequisitionDetailResponse, status_code=201)
async def create_requisition(
    data: RequisitionCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[RequestContext, Depends(get_request_context)],
) -> RequisitionDetailResponse:
    """신청서를 제출하고 신청자/관리자에게 알립니다.

    Submit a requisition, then notify the requester and the resolved
    managers.
    """
    requisition = await requisition_service.create_requisition(
        db, ctx, data.items, site_id=data.site_id, issue_note=data.issue_note
    )
    await db.commit()
    response = RequisitionDetailResponse.model_validate(requisition)

    await notification_service.notify_requisition_created(db, requisition.id)
    await db.commit()
    return response


@router.get("/approval-stats")
async def approval_stats(
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[RequestContext, Depends(require_permission(Permission.VIEW_APPROVAL_HISTORY))],
    approved_by: Annotated[str | None, Query()] = None,
) -> dict:
    """상태별 승인 건수 — approved_by로 승인자 필터.

    Approval counts per status, optionally for one approver.

    Returns:
        dict: {"total", "approved", "rejected", "closed"}
    """
    return await approval_service.get_approval_stats(db, approved_by)


@router.get("/{requisition_id}", response_model=RequisitionDetailResponse)
async def get_requisition(
    requisition_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[RequestContext, Depends(get_request_context)],
) -> RequisitionDetailResponse:
    requisition = await requisition_service.get_requisition(db, ctx, requisition_id)
    return RequisitionDetailResponse.model_validate(requisition)


# === 품목 (Line items) ===


@router.get("/{requisition_id}/items", response_model=list[RequisitionItemResponse])
async def list_items(
    requisition_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[RequestContext, Depends(get_request_context)],
) -> list[RequisitionItemResponse]:
    requisition = await requisition_service.get_requisition(db, ctx, requisition_id)
    return [RequisitionItemResponse.model_validate(i) for i in requisition.items]


@router.put("/{requisition_id}/items", response_model=RequisitionDetailResponse)
async def replace_items(
    requisition_id: int,
    data: ItemsReplaceRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[RequestContext, Depends(require_permission(Permission.EDIT_REQUISITION))],
) -> RequisitionDetailResponse:
    """품목을 일괄 교체하고 합계를 다시 계산합니다.

    Replace every line item and recompute total_amount atomically.
    """
    requisition = await requisition_service.replace_items(db, requisition_id, data.items)
    await db.commit()
    return RequisitionDetailResponse.model_validate(requisition)


@router.delete("/{requisition_id}/items", response_model=RequisitionDetailResponse)
async def clear_items(
    requisition_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[RequestContext, Depends(require_permission(Permission.EDIT_REQUISITION))],
) -> RequisitionDetailResponse:
    """품목 전체 삭제 — 합계 0 (Remove every item; total becomes 0)."""
    requisition = await requisition_service.clear_items(db, requisition_id)
    await db.commit()
    return RequisitionDetailResponse.model_validate(requisition)


# === 승인 (Approvals) ===


@router.post("/{requisition_id}/approve")
async def decide(
    requisition_id: int,
    data: ApprovalActionRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[RequestContext, Depends(get_request_context)],
) -> dict:
    """승인 결정 — approve | reject | close | note.

    Record a decision. A status change commits the approval, the status
    history row and the new status together, then mails the requester.

    Returns:
        dict: {"requisition_id", "status", "action", "changed"}
    """
    result: dict = await approval_service.approve_requisition(
        db, ctx, requisition_id, data.action, data.note
    )
    await db.commit()

    if result["changed"]:
        await notification_service.notify_status_change(
            db, requisition_id, RequisitionStatus(result["status"]), ctx.user_id, data.note
        )
        await db.commit()
    return result


@router.get("/{requisition_id}/approvals", response_model=list[ApprovalResponse])
async def approval_history(
    requisition_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[RequestContext, Depends(get_request_context)],
) -> list[ApprovalResponse]:
    await requisition_service.get_requisition(db, ctx, requisition_id)
    rows = await approval_service.get_approval_history(db, requisition_id)
    return [ApprovalResponse.model_validate(r) for r in rows]


@router.get("/{requisition_id}/status-history", response_model=list[StatusHistoryResponse])
async def status_history(
    requisition_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[RequestContext, Depends(get_request_context)],
) -> list[StatusHistoryResponse]:
    await requisition_service.get_requisition(db, ctx, requisition_id)
    rows = await approval_service.get_status_history(db, requisition_id)
    return [StatusHistoryResponse.model_validate(r) for r in rows]
