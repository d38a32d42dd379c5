"""상품 레포지토리 — 상품/분류/가격 이력/감사 로그 DB 쿼리 담당.

Product Repository — Catalog, price history and audit log queries.
"""

from datetime import datetime
from typing import Sequence

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.product import PriceHistory, Product, ProductAuditLog, ProductCategory
from app.models.requisition import RequisitionItem
from app.repositories.base import BaseRepository


class ProductRepository(BaseRepository[Product]):
    """상품 레포지토리."""

    def __init__(self) -> None:
        super().__init__(Product)

    def build_list_query(
        self,
        category_id: int | None = None,
        search: str | None = None,
    ) -> Select:
        query: Select = select(Product).order_by(Product.name, Product.id)
        if category_id is not None:
            query = query.where(Product.category_id == category_id)
        if search:
            query = query.where(Product.name.ilike(f"%{search}%"))
        return query

    async def is_referenced(self, db: AsyncSession, product_id: int) -> bool:
        """신청 품목에서 참조 중인지 확인합니다 (Used by any requisition item)."""
        result = await db.execute(
            select(func.count()).select_from(RequisitionItem).where(RequisitionItem.product_id == product_id)
        )
        return (result.scalar() or 0) > 0

    async def get_many(self, db: AsyncSession, product_ids: set[int]) -> dict[int, Product]:
        """ID 집합으로 상품을 일괄 조회합니다 (Bulk lookup keyed by id)."""
        if not product_ids:
            return {}
        result = await db.execute(select(Product).where(Product.id.in_(product_ids)))
        return {p.id: p for p in result.scalars().all()}


class CategoryRepository(BaseRepository[ProductCategory]):
    """상품 분류 레포지토리."""

    def __init__(self) -> None:
        super().__init__(ProductCategory)


class PriceHistoryRepository(BaseRepository[PriceHistory]):
    """가격 이력 레포지토리."""

    def __init__(self) -> None:
        super().__init__(PriceHistory)

    async def get_for_product(self, db: AsyncSession, product_id: int) -> Sequence[PriceHistory]:
        result = await db.execute(
            select(PriceHistory)
            .where(PriceHistory.product_id == product_id)
            .order_by(PriceHistory.recorded_at.desc(), PriceHistory.id.desc())
        )
        return result.scalars().all()


class AuditLogRepository(BaseRepository[ProductAuditLog]):
    """상품 감사 로그 레포지토리."""

    def __init__(self) -> None:
        super().__init__(ProductAuditLog)

    def build_list_query(
        self,
        product_id: int | None = None,
        action_type: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> Select:
        """감사 로그 필터 쿼리 — 최신 순 (Newest first)."""
        query: Select = select(ProductAuditLog).order_by(
            ProductAuditLog.changed_at.desc(), ProductAuditLog.id.desc()
        )
        if product_id is not None:
            query = query.where(ProductAuditLog.product_id == product_id)
        if action_type:
            query = query.where(ProductAuditLog.action_type == action_type.upper())
        if start is not None:
            query = query.where(ProductAuditLog.changed_at >= start)
        if end is not None:
            query = query.where(ProductAuditLog.changed_at <= end)
        return query

    async def count_by_action(self, db: AsyncSession) -> dict[str, int]:
        result = await db.execute(
            select(ProductAuditLog.action_type, func.count()).group_by(ProductAuditLog.action_type)
        )
        return {action: count for action, count in result.all()}

    async def get_recent(self, db: AsyncSession, limit: int = 10) -> Sequence[ProductAuditLog]:
        result = await db.execute(
            select(ProductAuditLog)
            .order_by(ProductAuditLog.changed_at.desc(), ProductAuditLog.id.desc())
            .limit(limit)
        )
        return result.scalars().all()


# 싱글턴 인스턴스 — Singleton instances
product_repository: ProductRepository = ProductRepository()
category_repository: CategoryRepository = CategoryRepository()
price_history_repository: PriceHistoryRepository = PriceHistoryRepository()
audit_log_repository: AuditLogRepository = AuditLogRepository()
