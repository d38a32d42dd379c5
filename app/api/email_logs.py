"""이메일 로그 관리 라우터 — 발송 기록 조회, 통계, 실패 재발송.

Email Log Router — Delivery log listing, statistics and the manual retry
of failed sends. Requires VIEW_SYSTEM_LOGS.
"""

from typing import Annotated

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import require_permission
from app.database import get_db
from app.models.notification import EmailStatus, NotificationType
from app.schemas.notification import EmailLogResponse, RetryRequest
from app.services.notification_service import notification_service
from app.utils.context import RequestContext
from app.utils.pagination import Page
from app.utils.permissions import Permission

router: APIRouter = APIRouter()


@router.get("", response_model=Page)
async def list_email_logs(
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[RequestContext, Depends(require_permission(Permission.VIEW_SYSTEM_LOGS))],
    status: Annotated[EmailStatus | None, Query()] = None,
    notification_type: Annotated[NotificationType | None, Query()] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    per_page: Annotated[int, Query(ge=1, le=500)] = 100,
) -> Page:
    rows, total = await notification_service.list_email_logs(
        db,
        status=status.value if status else None,
        notification_type=notification_type.value if notification_type else None,
        page=page,
        per_page=per_page,
    )
    items = [EmailLogResponse.model_validate(r) for r in rows]
    return Page.build(items, total, page, per_page)


@router.get("/stats")
async def email_stats(
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[RequestContext, Depends(require_permission(Permission.VIEW_SYSTEM_LOGS))],
) -> dict:
    """발송 통계 — 상태별, 유형별, 최근 24시간 (Stats by status, type and last 24h)."""
    return await notification_service.get_email_stats(db)


@router.post("/retry-failed")
async def retry_failed(
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[RequestContext, Depends(require_permission(Permission.VIEW_SYSTEM_LOGS))],
    data: Annotated[RetryRequest | None, Body()] = None,
) -> dict:
    """실패한 메일을 1회씩 재발송합니다.

    Re-send each retryable FAILED email once. Every attempt appends a new
    log row linked to the failed one.

    Returns:
        dict: {"total", "succeeded", "failed", "results"}
    """
    result: dict = await notification_service.retry_failed(
        db, max_attempts=data.max_attempts if data else None
    )
    await db.commit()
    return result
