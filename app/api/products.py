"""상품 라우터 — 상품 CRUD, 가격 변경/이력, 감사 로그, Excel 가격 가져오기.

Product Router — Catalog CRUD, price changes and history, the product
audit log, and the bulk Excel price import.

Permission Matrix:
    - 조회: VIEW_PRODUCTS
    - 생성/수정/가격 변경/가져오기: CREATE_PRODUCT / EDIT_PRODUCT
    - 삭제: DELETE_PRODUCT
    - 감사 로그 조회: VIEW_SYSTEM_LOGS 또는 VIEW_APPROVAL_HISTORY
    - 감사 통계: VIEW_SYSTEM_LOGS

Static paths (audit-log, import-prices) are registered before /{product_id}.
"""

from datetime import datetime, timezone
from io import BytesIO
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import require_any_permission, require_permission
from app.database import get_db
from app.schemas.common import ExcelImportResponse, MessageResponse
from app.schemas.product import (
    AuditLogResponse,
    PriceHistoryResponse,
    PriceUpdateRequest,
    ProductCreate,
    ProductResponse,
    ProductUpdate,
)
from app.services.product_service import product_service
from app.utils.context import RequestContext
from app.utils.exceptions import BadRequestError
from app.utils.pagination import Page
from app.utils.permissions import Permission

router: APIRouter = APIRouter()

_XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


# === 감사 로그 (Audit log) ===


@router.get("/audit-log", response_model=Page)
async def list_audit_log(
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[
        RequestContext,
        Depends(require_any_permission(Permission.VIEW_SYSTEM_LOGS, Permission.VIEW_APPROVAL_HISTORY)),
    ],
    product_id: Annotated[int | None, Query()] = None,
    action_type: Annotated[str | None, Query()] = None,
    start: Annotated[datetime | None, Query()] = None,
    end: Annotated[datetime | None, Query()] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    per_page: Annotated[int, Query(ge=1, le=200)] = 50,
) -> Page:
    """상품 감사 로그 조회 — 상품/액션/기간 필터.

    List product audit entries, newest first, filtered by product, action
    type and time range.
    """
    rows, total = await product_service.get_audit_log(
        db, product_id=product_id, action_type=action_type.upper() if action_type else None,
        start=start, end=end, page=page, per_page=per_page,
    )
    items = [AuditLogResponse.model_validate(r) for r in rows]
    return Page.build(items, total, page, per_page)


@router.post("/audit-log")
async def audit_log_stats(
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[RequestContext, Depends(require_permission(Permission.VIEW_SYSTEM_LOGS))],
) -> dict:
    """감사 로그 통계 — 액션별 건수와 최근 항목 (Counts per action and latest entries)."""
    stats: dict = await product_service.get_audit_stats(db)
    stats["recent"] = [AuditLogResponse.model_validate(r) for r in stats["recent"]]
    return stats


# === Excel 가격 가져오기 (Bulk price import) ===


@router.post("/import-prices", response_model=ExcelImportResponse)
async def import_prices(
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[RequestContext, Depends(require_permission(Permission.EDIT_PRODUCT))],
    file: UploadFile = File(...),
    year: Annotated[int | None, Form()] = None,
    notes: Annotated[str | None, Form()] = None,
) -> dict:
    """Excel 파일로 단가를 일괄 변경합니다.

    Reprice products from an .xlsx upload with product_id/new_price
    columns. Bad rows are reported and skipped.
    """
    if not file.filename or not file.filename.endswith(".xlsx"):
        raise BadRequestError("Only .xlsx files are supported")

    content: bytes = await file.read()
    try:
        result = await product_service.import_prices_from_excel(
            db,
            file_content=content,
            year=year or datetime.now(timezone.utc).year,
            actor=ctx.user_id,
            notes=notes,
        )
    except ValueError as e:
        raise BadRequestError(str(e))
    await db.commit()
    return result


@router.get("/import-prices/template")
async def download_price_template(
    ctx: Annotated[RequestContext, Depends(require_permission(Permission.VIEW_PRODUCTS))],
) -> StreamingResponse:
    """가격 가져오기 샘플 Excel 다운로드 (Download the sample workbook)."""
    excel_bytes: bytes = product_service.generate_price_import_template()
    return StreamingResponse(
        BytesIO(excel_bytes),
        media_type=_XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": "attachment; filename=price_import_template.xlsx"},
    )


# === 상품 CRUD ===


@router.get("", response_model=Page)
async def list_products(
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[RequestContext, Depends(require_permission(Permission.VIEW_PRODUCTS))],
    category_id: Annotated[int | None, Query()] = None,
    search: Annotated[str | None, Query()] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    per_page: Annotated[int, Query(ge=1, le=200)] = 50,
) -> Page:
    rows, total = await product_service.list_products(
        db, category_id=category_id, search=search, page=page, per_page=per_page
    )
    items = [ProductResponse.model_validate(r) for r in rows]
    return Page.build(items, total, page, per_page)


@router.post("", response_model=ProductResponse, status_code=201)
async def create_product(
    data: ProductCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[RequestContext, Depends(require_permission(Permission.CREATE_PRODUCT))],
) -> ProductResponse:
    product = await product_service.create_product(db, data, ctx.user_id)
    await db.commit()
    return ProductResponse.model_validate(product)


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[RequestContext, Depends(require_permission(Permission.VIEW_PRODUCTS))],
) -> ProductResponse:
    return ProductResponse.model_validate(await product_service.get_product(db, product_id))


@router.put("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: int,
    data: ProductUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[RequestContext, Depends(require_permission(Permission.EDIT_PRODUCT))],
) -> ProductResponse:
    """상품 수정 — unit_cost가 바뀌면 가격 이력이 함께 기록됩니다.

    Partial update. A changed unit_cost also records a PriceHistory row.
    """
    product = await product_service.update_product(db, product_id, data, ctx.user_id)
    await db.commit()
    return ProductResponse.model_validate(product)


@router.delete("/{product_id}", response_model=MessageResponse)
async def delete_product(
    product_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[RequestContext, Depends(require_permission(Permission.DELETE_PRODUCT))],
) -> MessageResponse:
    await product_service.delete_product(db, product_id, ctx.user_id)
    await db.commit()
    return MessageResponse(message="Product deleted")


# === 가격 (Price) ===


@router.put("/{product_id}/price", response_model=PriceHistoryResponse)
async def update_price(
    product_id: int,
    data: PriceUpdateRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[RequestContext, Depends(require_permission(Permission.EDIT_PRODUCT))],
) -> PriceHistoryResponse:
    """단가 변경 — 가격 이력 1건과 감사 로그 1건 기록.

    Change the unit cost, writing one price history row and one audit row.
    """
    history = await product_service.update_price(
        db, product_id, data.new_price, ctx.user_id, year=data.year, notes=data.notes
    )
    await db.commit()
    return PriceHistoryResponse.model_validate(history)


@router.get("/{product_id}/price-history", response_model=list[PriceHistoryResponse])
async def price_history(
    product_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[RequestContext, Depends(require_permission(Permission.VIEW_PRODUCTS))],
) -> list[PriceHistoryResponse]:
    rows = await product_service.get_price_history(db, product_id)
    return [PriceHistoryResponse.model_validate(r) for r in rows]
