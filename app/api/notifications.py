"""알림 라우터 — 인앱 알림 피드, 도착 알림, 대기 리마인더.

Notification Router — The per-user in-app feed built on email logs, the
arrival notice and the pending-approval reminder trigger.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_request_context, require_cron_or_admin, require_permission
from app.database import get_db
from app.schemas.common import MessageResponse
from app.schemas.notification import (
    ArrivalRequest,
    EmailLogResponse,
    NotificationResponse,
    UnreadCountResponse,
)
from app.services.notification_service import notification_service
from app.utils.context import RequestContext
from app.utils.exceptions import BadRequestError, NotFoundError
from app.utils.pagination import Page
from app.utils.permissions import Permission

logger = logging.getLogger(__name__)

router: APIRouter = APIRouter()


@router.get("", response_model=Page)
async def list_notifications(
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[RequestContext, Depends(get_request_context)],
    page: int = 1,
    per_page: int = 20,
) -> Page:
    """사용자의 알림 목록을 조회합니다.

    List the caller's notifications, newest first.

    Args:
        db: 비동기 데이터베이스 세션 (Async database session)
        ctx: 호출자 컨텍스트 (Caller context)
        page: 페이지 번호 (Page number)
        per_page: 페이지당 항목 수 (Items per page)

    Returns:
        Page: 페이지네이션된 알림 목록 (Paginated notification list)
    """
    rows, total = await notification_service.list_notifications(
        db, user_id=ctx.user_id, page=page, per_page=per_page
    )
    items = [NotificationResponse.model_validate(r) for r in rows]
    return Page.build(items, total, page, per_page)


@router.get("/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[RequestContext, Depends(get_request_context)],
) -> UnreadCountResponse:
    count: int = await notification_service.get_unread_count(db, ctx.user_id)
    return UnreadCountResponse(unread_count=count)


@router.patch("/read-all", response_model=MessageResponse)
async def mark_all_read(
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[RequestContext, Depends(get_request_context)],
) -> MessageResponse:
    """모든 알림을 읽음 처리합니다 (Mark every notification read)."""
    count: int = await notification_service.mark_all_read(db, ctx.user_id)
    await db.commit()
    return MessageResponse(message=f"{count} notifications marked as read")


@router.patch("/{notification_id}/read", response_model=MessageResponse)
async def mark_read(
    notification_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[RequestContext, Depends(get_request_context)],
) -> MessageResponse:
    """알림을 읽음 처리합니다 — 본인 알림만 (Only the caller's own)."""
    success: bool = await notification_service.mark_read(db, notification_id, ctx.user_id)
    if not success:
        raise NotFoundError("Notification not found")
    await db.commit()
    return MessageResponse(message="Notification marked as read")


@router.post("/arrival", response_model=EmailLogResponse)
async def send_arrival_notice(
    data: ArrivalRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[RequestContext, Depends(require_permission(Permission.EDIT_REQUISITION))],
) -> EmailLogResponse:
    """상품 도착 알림을 신청자에게 보냅니다.

    Tell the requester their items have arrived. The returned log row is
    FAILED when the mail could not be delivered.

    Raises:
        NotFoundError: 신청서 없음 (Requisition not found)
        BadRequestError: 신청자 이메일 없음 (Requester has no email)
    """
    log = await notification_service.notify_arrival(db, data.requisition_id, data.message)
    if log is None:
        raise BadRequestError("Requester has no email address")
    await db.commit()
    return EmailLogResponse.model_validate(log)


@router.post("/reminder")
async def send_reminders(
    db: Annotated[AsyncSession, Depends(get_db)],
    caller: Annotated[str, Depends(require_cron_or_admin)],
) -> dict:
    """대기 중인 신청서 관리자 리마인더 — 외부 cron 호출용.

    Mail a reminder to the managers of every PENDING requisition.

    Returns:
        dict: {"pending_count", "reminders_sent", "results"}
    """
    logger.info("Reminder run triggered by %s", caller)
    result: dict = await notification_service.send_pending_reminders(db)
    await db.commit()
    return result
