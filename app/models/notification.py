"""이메일 로그 SQLAlchemy ORM 모델 정의.

EmailLog SQLAlchemy ORM model definition.
Every notification attempt appends one row; rows are never updated except
for the recipient's read flag. Retries append a new row pointing back at
the failed one via retry_of_id.

Tables:
    - email_logs: 메일 발송 시도 기록 (One row per email attempt)
"""

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class EmailStatus(str, Enum):
    SENT = "SENT"
    FAILED = "FAILED"


class NotificationType(str, Enum):
    """알림 유형 (notification_type 필드 값)."""

    REQUISITION_CREATED = "requisition_created"
    REQUISITION_PENDING = "requisition_pending"
    REQUISITION_APPROVED = "requisition_approved"
    REQUISITION_REJECTED = "requisition_rejected"
    REQUISITION_CLOSED = "requisition_closed"
    ARRIVAL = "arrival"
    REMINDER = "reminder"
    MANAGER_NOTICE = "manager_notice"
    ADMIN_NOTICE = "admin_notice"


class EmailLog(Base):
    """이메일 로그 모델 — 발송 시도 한 건.

    Attributes:
        id: 로그 ID (Log id)
        to_user_id: 수신자 사용자 ID (Recipient user id, None for directory-only managers)
        to_email: 수신 이메일 (Recipient address)
        subject: 제목 (Subject)
        body: HTML 본문 (HTML body)
        status: SENT | FAILED
        notification_type: 알림 유형 (See NotificationType)
        requisition_id: 관련 신청서 (Related requisition)
        is_read: 읽음 여부 (In-app read flag)
        error_message: 실패 사유 (Failure reason)
        attempt_number: 시도 횟수, 1부터 (Attempt count, starting at 1)
        retry_of_id: 재시도 대상 로그 (Failed row this attempt retried)
        sent_at: 시도 일시 UTC (Attempt timestamp)
    """

    __tablename__ = "email_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    to_user_id: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    to_email: Mapped[str] = mapped_column(String(255), nullable=False)
    subject: Mapped[str] = mapped_column(String(500), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    notification_type: Mapped[str] = mapped_column(String(50), nullable=False)
    requisition_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("requisitions.id", ondelete="SET NULL"), nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    attempt_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    retry_of_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("email_logs.id"), nullable=True)
    sent_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)
