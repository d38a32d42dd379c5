"""상품 관련 Pydantic 요청/응답 스키마.

Product, category, price history and audit log schemas.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    sort_order: int = 0


class CategoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    sort_order: int


class ProductCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    category_id: int | None = None
    unit_cost: Decimal = Field(default=Decimal("0"), ge=0)
    order_unit: str | None = None
    photo_url: str | None = None


class ProductUpdate(BaseModel):
    """상품 수정 (부분 업데이트) — unit_cost 변경 시 가격 이력 기록."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    category_id: int | None = None
    unit_cost: Decimal | None = Field(default=None, ge=0)
    order_unit: str | None = None
    photo_url: str | None = None
    year: int | None = None
    notes: str | None = None


class PriceUpdateRequest(BaseModel):
    new_price: Decimal = Field(ge=0)
    year: int | None = None
    notes: str | None = None


class ProductResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    category_id: int | None = None
    unit_cost: Decimal
    order_unit: str | None = None
    photo_url: str | None = None
    created_at: datetime


class PriceHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    old_price: Decimal
    new_price: Decimal
    price_change: Decimal
    percentage_change: Decimal
    year: int
    notes: str | None = None
    created_by: str
    recorded_at: datetime


class AuditLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    action_type: str
    old_data: str | None = None
    new_data: str | None = None
    changed_by: str
    changed_at: datetime
    notes: str | None = None
