"""조직 코드 3 라우터 — 조직 단위 신청 및 관리자 조회.

OrgCode3 Router — Org-unit scoped submission, manager lookup,
requisition list and statistics.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_request_context
from app.database import get_db
from app.models.requisition import RequisitionStatus
from app.schemas.requisition import (
    OrgCode3RequisitionCreate,
    RequisitionDetailResponse,
    RequisitionResponse,
)
from app.services.manager_service import manager_service
from app.services.notification_service import notification_service
from app.services.requisition_service import requisition_service
from app.utils.context import RequestContext
from app.utils.exceptions import BadRequestError, ForbiddenError
from app.utils.pagination import Page
from app.utils.permissions import Permission

router: APIRouter = APIRouter()


def _resolve_orgcode3(ctx: RequestContext, orgcode3: str | None) -> str:
    """요청 조직 코드 확인 — 다른 조직은 MANAGE_DEPARTMENTS 필요."""
    target: str | None = orgcode3 or ctx.orgcode3
    if not target:
        raise BadRequestError("No org unit for this user")
    if target != ctx.orgcode3 and not ctx.can(Permission.MANAGE_DEPARTMENTS):
        raise ForbiddenError("Cannot access another org unit")
    return target


@router.post("", status_code=201)
async def create_orgcode3_requisition(
    data: OrgCode3RequisitionCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[RequestContext, Depends(get_request_context)],
) -> dict:
    """조직 코드 기반 신청서 제출.

    Submit a requisition whose org unit and site come from the directory
    view, then notify the requester and the managers.

    Returns:
        dict: {"requisition": ..., "managers": [...]}
    """
    requisition, managers = await requisition_service.create_with_orgcode3(
        db, ctx, data.items, issue_note=data.issue_note
    )
    await db.commit()
    payload = RequisitionDetailResponse.model_validate(requisition)

    await notification_service.notify_requisition_created(db, requisition.id)
    await db.commit()
    return {"requisition": payload, "managers": managers}


@router.get("/managers")
async def list_managers(
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[RequestContext, Depends(get_request_context)],
    orgcode3: Annotated[str | None, Query()] = None,
) -> list[dict]:
    """조직의 관리자 목록 (Managers of the caller's org unit)."""
    target: str = _resolve_orgcode3(ctx, orgcode3)
    return await manager_service.get_managers_by_orgcode3(db, target)


@router.get("/requisitions", response_model=Page)
async def list_orgcode3_requisitions(
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[RequestContext, Depends(get_request_context)],
    orgcode3: Annotated[str | None, Query()] = None,
    status: Annotated[RequisitionStatus | None, Query()] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    per_page: Annotated[int, Query(ge=1, le=100)] = 20,
) -> Page:
    rows, total = await requisition_service.get_requisitions_for_manager(
        db, ctx, orgcode3=orgcode3, status=status.value if status else None,
        page=page, per_page=per_page,
    )
    items = [RequisitionResponse.model_validate(r) for r in rows]
    return Page.build(items, total, page, per_page)


@router.get("/stats")
async def orgcode3_stats(
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[RequestContext, Depends(get_request_context)],
    orgcode3: Annotated[str | None, Query()] = None,
) -> dict:
    """조직의 상태별 신청 건수/금액 (Counts and totals per status)."""
    target: str = _resolve_orgcode3(ctx, orgcode3)
    return await manager_service.get_orgcode3_stats(db, target)
