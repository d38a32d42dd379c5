"""신청서 및 승인 관련 SQLAlchemy ORM 모델 정의.

Requisition, line item, approval and status history ORM models.

Tables:
    - requisitions: 구매 신청서 (Purchase requests, status + optimistic lock version)
    - requisition_items: 신청 품목 (Line items)
    - approvals: 승인/반려 결정 (Immutable approve/reject decisions)
    - status_history: 상태 변경 이력 (Append-only status transition log)
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from sqlalchemy import String, DateTime, Integer, ForeignKey, Numeric, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class RequisitionStatus(str, Enum):
    """신청서 상태 (Requisition status)."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CLOSED = "CLOSED"


class Requisition(Base):
    """신청서 모델 — 직원의 구매 신청.

    Requisition model. Never hard-deleted; only its status changes.
    ``version`` is the SQLAlchemy version_id_col, so two concurrent updates
    of the same row cannot both succeed (StaleDataError on the loser).

    Attributes:
        id: 신청서 ID (Requisition id)
        user_id: 신청자 FK (Requester)
        status: 현재 상태 (PENDING | APPROVED | REJECTED | CLOSED)
        submitted_at: 제출 일시 UTC (Submission timestamp)
        total_amount: 합계 금액 (Sum of line totals)
        site_id: 사이트 ID (Site / cost center)
        issue_note: 메모 (Free-text note)
        orgcode3: 신청 시점 조직 코드 (Org unit at submission, routes approval)
        version: 낙관적 잠금 버전 (Optimistic lock counter)
    """

    __tablename__ = "requisitions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(100), ForeignKey("users.user_id"), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=RequisitionStatus.PENDING.value, index=True)
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    site_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    issue_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    orgcode3: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    # 관계 — Relationships
    requester = relationship("User")
    items = relationship(
        "RequisitionItem",
        back_populates="requisition",
        cascade="all, delete-orphan",
        order_by="RequisitionItem.id",
    )


class RequisitionItem(Base):
    """신청 품목 — total_price = quantity × unit_price."""

    __tablename__ = "requisition_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    requisition_id: Mapped[int] = mapped_column(Integer, ForeignKey("requisitions.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id: Mapped[int] = mapped_column(Integer, ForeignKey("products.id"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    requisition = relationship("Requisition", back_populates="items")
    product = relationship("Product")

    @property
    def product_name(self) -> str | None:
        return self.product.name if self.product is not None else None


class Approval(Base):
    """승인 결정 — 생성 후 변경 불가 (Immutable decision record)."""

    __tablename__ = "approvals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    requisition_id: Mapped[int] = mapped_column(Integer, ForeignKey("requisitions.id", ondelete="CASCADE"), nullable=False, index=True)
    approved_by: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    approved_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))


class StatusHistory(Base):
    """상태 변경 이력 — Approval과 같은 트랜잭션에서 기록 (Written alongside approvals)."""

    __tablename__ = "status_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    requisition_id: Mapped[int] = mapped_column(Integer, ForeignKey("requisitions.id", ondelete="CASCADE"), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    changed_by: Mapped[str] = mapped_column(String(100), nullable=False)
    changed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
