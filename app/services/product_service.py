"""상품 서비스 — 카탈로그, 가격 이력, 감사 로그 비즈니스 로직.

Product Service — Catalog CRUD, price changes and the audit trail.
Every product mutation appends a ProductAuditLog row with JSON snapshots;
every price change appends exactly one PriceHistory row.
"""

import json
import logging
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from io import BytesIO
from typing import Any, Sequence

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Alignment, Font, PatternFill
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.product import PriceHistory, Product, ProductAuditLog, ProductCategory
from app.repositories.product_repository import (
    audit_log_repository,
    category_repository,
    price_history_repository,
    product_repository,
)
from app.schemas.product import CategoryCreate, ProductCreate, ProductUpdate
from app.utils.exceptions import BadRequestError, DuplicateError, NotFoundError
from app.utils.timezone import utcnow

logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")

# 가격 일괄 가져오기 필수 열 — Required columns for the price import sheet
PRICE_IMPORT_COLUMNS: list[str] = ["product_id", "new_price"]


def compute_price_change(old: Decimal, new: Decimal) -> tuple[Decimal, Decimal]:
    """가격 변동액과 변동률을 계산합니다.

    Returns (new - old, (new - old) / old * 100). The percentage is 0 when
    the old price is 0, and both are rounded to 0.01.
    """
    change: Decimal = (new - old).quantize(_CENT, rounding=ROUND_HALF_UP)
    if old == 0:
        return change, Decimal("0.00")
    pct: Decimal = ((new - old) / old * 100).quantize(_CENT, rounding=ROUND_HALF_UP)
    return change, pct


def _snapshot(product: Product) -> str:
    data: dict[str, Any] = {
        "id": product.id,
        "name": product.name,
        "category_id": product.category_id,
        "unit_cost": str(product.unit_cost),
        "order_unit": product.order_unit,
        "photo_url": product.photo_url,
    }
    return json.dumps(data, ensure_ascii=False)


class ProductService:
    """상품 서비스."""

    # --- 분류 (Categories) ---

    async def list_categories(self, db: AsyncSession) -> Sequence[ProductCategory]:
        return await category_repository.get_all(db, order_by=ProductCategory.sort_order)

    async def create_category(self, db: AsyncSession, data: CategoryCreate) -> ProductCategory:
        if await category_repository.exists(db, {"name": data.name}):
            raise DuplicateError("Category name already exists")
        return await category_repository.create(db, data.model_dump())

    # --- 상품 CRUD ---

    async def list_products(
        self,
        db: AsyncSession,
        category_id: int | None = None,
        search: str | None = None,
        page: int = 1,
        per_page: int = 50,
    ) -> tuple[Sequence[Product], int]:
        query = product_repository.build_list_query(category_id, search)
        return await product_repository.get_paginated(db, query, page, per_page)

    async def get_product(self, db: AsyncSession, product_id: int) -> Product:
        product = await product_repository.get_by_id(db, product_id)
        if product is None:
            raise NotFoundError("Product not found")
        return product

    async def create_product(
        self,
        db: AsyncSession,
        data: ProductCreate,
        actor: str,
    ) -> Product:
        """상품을 생성하고 CREATE 감사 로그를 남깁니다."""
        if data.category_id is not None and await category_repository.get_by_id(db, data.category_id) is None:
            raise NotFoundError("Category not found")

        product = await product_repository.create(db, data.model_dump())
        await self._audit(db, product.id, "CREATE", actor, new_data=_snapshot(product))
        return product

    async def update_product(
        self,
        db: AsyncSession,
        product_id: int,
        data: ProductUpdate,
        actor: str,
    ) -> Product:
        """상품을 수정합니다. unit_cost가 바뀌면 가격 이력 경로를 탑니다.

        A changed unit_cost goes through update_price(); an unchanged one
        writes no PriceHistory row.
        """
        product = await self.get_product(db, product_id)
        fields: dict[str, Any] = data.model_dump(exclude_unset=True)
        new_price: Decimal | None = fields.pop("unit_cost", None)
        year: int | None = fields.pop("year", None)
        notes: str | None = fields.pop("notes", None)

        if fields:
            if fields.get("category_id") is not None and await category_repository.get_by_id(db, fields["category_id"]) is None:
                raise NotFoundError("Category not found")
            before: str = _snapshot(product)
            for field, value in fields.items():
                setattr(product, field, value)
            await db.flush()
            await self._audit(db, product.id, "UPDATE", actor, old_data=before, new_data=_snapshot(product), notes=notes)

        if new_price is not None and Decimal(new_price) != Decimal(product.unit_cost):
            await self.update_price(db, product_id, new_price, actor, year=year, notes=notes)

        await db.refresh(product)
        return product

    async def delete_product(self, db: AsyncSession, product_id: int, actor: str) -> None:
        """상품을 삭제하고 DELETE 감사 로그를 남깁니다."""
        product = await self.get_product(db, product_id)
        if await product_repository.is_referenced(db, product_id):
            raise BadRequestError("Product is used by existing requisitions")
        before: str = _snapshot(product)
        await product_repository.delete(db, product_id)
        await self._audit(db, product_id, "DELETE", actor, old_data=before)

    # --- 가격 (Price) ---

    async def update_price(
        self,
        db: AsyncSession,
        product_id: int,
        new_price: Decimal,
        actor: str,
        year: int | None = None,
        notes: str | None = None,
    ) -> PriceHistory:
        """상품 단가를 변경하고 가격 이력 1행 + 감사 로그 1행을 기록합니다.

        Change a product's unit cost. Writes exactly one PriceHistory row
        (price_change = new - old, percentage_change = change / old * 100,
        0 when old is 0) and one UPDATE audit row.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            product_id: 상품 ID (Product id)
            new_price: 새 단가 (New unit cost)
            actor: 변경자 ID (Who made the change)
            year: 가격 적용 연도, 없으면 올해 (Price year; defaults to current year)
            notes: 메모 (Notes)

        Returns:
            PriceHistory: 기록된 가격 이력 (Recorded history row)
        """
        product = await self.get_product(db, product_id)
        old: Decimal = Decimal(product.unit_cost or 0).quantize(_CENT)
        new: Decimal = Decimal(new_price).quantize(_CENT, rounding=ROUND_HALF_UP)
        change, pct = compute_price_change(old, new)

        before: str = _snapshot(product)
        product.unit_cost = new
        history = PriceHistory(
            product_id=product_id,
            old_price=old,
            new_price=new,
            price_change=change,
            percentage_change=pct,
            year=year or utcnow().year,
            notes=notes,
            created_by=actor,
        )
        db.add(history)
        await db.flush()
        await self._audit(
            db, product_id, "UPDATE", actor,
            old_data=before,
            new_data=_snapshot(product),
            notes=f"Price changed from {old} to {new} ({pct}%)" + (f": {notes}" if notes else ""),
        )
        await db.refresh(history)
        logger.info("Product %s price %s -> %s by %s", product_id, old, new, actor)
        return history

    async def get_price_history(self, db: AsyncSession, product_id: int) -> Sequence[PriceHistory]:
        await self.get_product(db, product_id)
        return await price_history_repository.get_for_product(db, product_id)

    # --- 감사 로그 (Audit log) ---

    async def _audit(
        self,
        db: AsyncSession,
        product_id: int,
        action_type: str,
        actor: str,
        old_data: str | None = None,
        new_data: str | None = None,
        notes: str | None = None,
    ) -> ProductAuditLog:
        entry = ProductAuditLog(
            product_id=product_id,
            action_type=action_type,
            old_data=old_data,
            new_data=new_data,
            changed_by=actor,
            notes=notes,
        )
        db.add(entry)
        await db.flush()
        return entry

    async def get_audit_log(
        self,
        db: AsyncSession,
        product_id: int | None = None,
        action_type: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        page: int = 1,
        per_page: int = 50,
    ) -> tuple[Sequence[ProductAuditLog], int]:
        query = audit_log_repository.build_list_query(product_id, action_type, start, end)
        return await audit_log_repository.get_paginated(db, query, page, per_page)

    async def get_audit_stats(self, db: AsyncSession) -> dict:
        """액션 유형별 건수와 최근 10건 (Counts per action type and the 10 latest)."""
        counts = await audit_log_repository.count_by_action(db)
        recent = await audit_log_repository.get_recent(db, limit=10)
        return {"by_action": counts, "total": sum(counts.values()), "recent": recent}

    # --- Excel 가격 일괄 가져오기 (Bulk price import) ---

    async def import_prices_from_excel(
        self,
        db: AsyncSession,
        file_content: bytes,
        year: int,
        actor: str,
        notes: str | None = None,
    ) -> dict:
        """Excel 파일의 product_id/new_price 행으로 단가를 일괄 변경합니다.

        Each valid row goes through update_price(). Invalid rows are
        reported as {"row", "error"} and skipped.

        Raises:
            ValueError: 필수 열 누락 (Missing required columns)
        """
        wb = load_workbook(filename=BytesIO(file_content), read_only=True, data_only=True)
        ws = wb.active

        header_row = next(ws.iter_rows(min_row=1, max_row=1), None)
        headers: list[str] = [
            str(cell.value).strip().lower() if cell.value is not None else ""
            for cell in (header_row or [])
        ]
        missing: list[str] = [c for c in PRICE_IMPORT_COLUMNS if c not in headers]
        if missing:
            wb.close()
            raise ValueError(f"Missing required columns: {', '.join(missing)}")
        col_idx: dict[str, int] = {name: i for i, name in enumerate(headers)}

        updated: list[dict] = []
        errors: list[dict] = []
        for row_num, row in enumerate(ws.iter_rows(min_row=2, values_only=True), start=2):
            values = list(row)
            raw_id = values[col_idx["product_id"]] if col_idx["product_id"] < len(values) else None
            raw_price = values[col_idx["new_price"]] if col_idx["new_price"] < len(values) else None
            if raw_id is None and raw_price is None:
                continue  # 빈 행

            try:
                product_id = int(raw_id)
                price = Decimal(str(raw_price))
            except (TypeError, ValueError, InvalidOperation):
                errors.append({"row": row_num, "error": "Invalid product_id or price format"})
                continue
            if price < 0:
                errors.append({"row": row_num, "error": "Price must not be negative"})
                continue

            product = await product_repository.get_by_id(db, product_id)
            if product is None:
                errors.append({"row": row_num, "error": f"Product ID {product_id} not found"})
                continue

            history = await self.update_price(
                db, product_id, price, actor, year=year, notes=notes or "Imported from Excel"
            )
            updated.append({
                "product_id": product_id,
                "product_name": product.name,
                "old_price": history.old_price,
                "new_price": history.new_price,
                "percentage_change": history.percentage_change,
            })
        wb.close()

        return {"updated": len(updated), "results": updated, "errors": errors}

    @staticmethod
    def generate_price_import_template() -> bytes:
        """가격 가져오기 샘플 Excel (Sample workbook for the price import)."""
        wb = Workbook()
        ws = wb.active
        ws.title = "Price Import"

        header_font = Font(bold=True, color="FFFFFF", size=11)
        header_fill = PatternFill(start_color="1F6FB2", end_color="1F6FB2", fill_type="solid")
        for col, header in enumerate(PRICE_IMPORT_COLUMNS, 1):
            cell = ws.cell(row=1, column=col, value=header)
            cell.font = header_font
            cell.fill = header_fill
            cell.alignment = Alignment(horizontal="center")

        ws.append([1, 45.50])
        ws.append([2, 120.00])
        ws.column_dimensions["A"].width = 14
        ws.column_dimensions["B"].width = 14

        buf = BytesIO()
        wb.save(buf)
        return buf.getvalue()


# 싱글턴 인스턴스 — Singleton instance
product_service: ProductService = ProductService()
