"""신청서 관련 Pydantic 요청/응답 스키마.

Requisition request/response schemas.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class RequisitionItemInput(BaseModel):
    """신청 품목 입력 — unit_price 생략 시 상품 현재 단가 사용.

    Line item on submission. unit_price defaults to the product's unit cost.
    """

    product_id: int
    quantity: int = Field(gt=0)
    unit_price: Decimal | None = Field(default=None, ge=0)


class RequisitionItemReplace(BaseModel):
    """품목 일괄 교체 입력 — 모든 필드 필수 (All fields required)."""

    product_id: int
    quantity: int = Field(gt=0)
    unit_price: Decimal = Field(ge=0)


class RequisitionCreate(BaseModel):
    items: list[RequisitionItemInput] = Field(min_length=1)
    site_id: str | None = None
    issue_note: str | None = Field(default=None, max_length=2000)


class OrgCode3RequisitionCreate(BaseModel):
    """조직 코드 기반 신청 — 사이트/조직은 디렉터리에서 결정."""

    items: list[RequisitionItemInput] = Field(min_length=1)
    issue_note: str | None = Field(default=None, max_length=2000)


class ItemsReplaceRequest(BaseModel):
    items: list[RequisitionItemReplace] = Field(min_length=1)


class ApprovalActionRequest(BaseModel):
    """승인 액션 — approve | reject | close | note."""

    action: str
    note: str | None = Field(default=None, max_length=2000)


class RequisitionItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    product_name: str | None = None
    quantity: int
    unit_price: Decimal
    total_price: Decimal


class RequisitionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    status: str
    submitted_at: datetime
    total_amount: Decimal
    site_id: str | None = None
    issue_note: str | None = None
    orgcode3: str | None = None
    version: int


class RequisitionDetailResponse(RequisitionResponse):
    items: list[RequisitionItemResponse] = []


class ApprovalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    requisition_id: int
    approved_by: str
    status: str
    note: str | None = None
    approved_at: datetime


class StatusHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    requisition_id: int
    status: str
    changed_by: str
    changed_at: datetime
    comment: str | None = None
