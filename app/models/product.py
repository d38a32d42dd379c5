"""상품 카탈로그 관련 SQLAlchemy ORM 모델 정의.

Product catalog SQLAlchemy ORM model definitions.

Tables:
    - product_categories: 상품 분류 (Product categories)
    - products: 상품 (Catalog products with current unit cost)
    - price_history: 가격 변경 이력 (Append-only price change log)
    - product_audit_logs: 상품 감사 로그 (Before/after JSON snapshots)
"""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import String, DateTime, Integer, ForeignKey, Numeric, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class ProductCategory(Base):
    """상품 분류 모델."""

    __tablename__ = "product_categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    products = relationship("Product", back_populates="category")


class Product(Base):
    """상품 모델 — 카탈로그 상품.

    Attributes:
        id: 상품 ID (Product id)
        category_id: 분류 FK (Category foreign key)
        name: 상품명 (Product name)
        unit_cost: 현재 단가 (Current unit cost)
        order_unit: 주문 단위 (Order unit, e.g. "box", "ream")
        photo_url: 상품 이미지 URL (Photo URL)
    """

    __tablename__ = "products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    category_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("product_categories.id", ondelete="SET NULL"), nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    order_unit: Mapped[str | None] = mapped_column(String(50), nullable=True)
    photo_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    category = relationship("ProductCategory", back_populates="products")


class PriceHistory(Base):
    """가격 변경 이력 — 단가 변경마다 한 행 추가 (One row per price change).

    price_change = new_price - old_price
    percentage_change = price_change / old_price * 100 (old_price가 0이면 0)
    """

    __tablename__ = "price_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    old_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    new_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    price_change: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    percentage_change: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str] = mapped_column(String(100), nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))


class ProductAuditLog(Base):
    """상품 감사 로그 — 변경 전/후 JSON 스냅샷.

    Product audit log. old_data/new_data hold JSON snapshots of the
    product row before and after the change.

    Action Types:
        - "CREATE": new_data만 존재
        - "UPDATE": old_data, new_data 모두 존재
        - "DELETE": old_data만 존재
    """

    __tablename__ = "product_audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # 삭제된 상품의 로그도 보존하기 위해 FK 없음 — No FK so DELETE rows survive
    product_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    action_type: Mapped[str] = mapped_column(String(20), nullable=False)
    old_data: Mapped[str | None] = mapped_column(Text, nullable=True)
    new_data: Mapped[str | None] = mapped_column(Text, nullable=True)
    changed_by: Mapped[str] = mapped_column(String(100), nullable=False)
    changed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
