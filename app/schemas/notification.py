"""알림/이메일 로그 Pydantic 스키마.

Notification feed and email log schemas.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class NotificationResponse(BaseModel):
    """인앱 알림 항목 — 본문 제외 (Feed entry without the HTML body)."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    subject: str
    notification_type: str
    requisition_id: int | None = None
    status: str
    is_read: bool
    sent_at: datetime


class EmailLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    to_user_id: str | None = None
    to_email: str
    subject: str
    status: str
    notification_type: str
    requisition_id: int | None = None
    error_message: str | None = None
    attempt_number: int
    retry_of_id: int | None = None
    sent_at: datetime


class UnreadCountResponse(BaseModel):
    unread_count: int


class ArrivalRequest(BaseModel):
    """도착 알림 요청 (Arrival notice for a requisition)."""

    requisition_id: int
    message: str | None = Field(default=None, max_length=2000)


class RetryRequest(BaseModel):
    max_attempts: int | None = Field(default=None, ge=1, le=10)
