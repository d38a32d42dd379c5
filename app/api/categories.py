"""상품 분류 라우터 (Product category router)."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import require_permission
from app.database import get_db
from app.schemas.product import CategoryCreate, CategoryResponse
from app.services.product_service import product_service
from app.utils.context import RequestContext
from app.utils.permissions import Permission

router: APIRouter = APIRouter()


@router.get("", response_model=list[CategoryResponse])
async def list_categories(
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[RequestContext, Depends(require_permission(Permission.VIEW_PRODUCTS))],
) -> list[CategoryResponse]:
    rows = await product_service.list_categories(db)
    return [CategoryResponse.model_validate(r) for r in rows]


@router.post("", response_model=CategoryResponse, status_code=201)
async def create_category(
    data: CategoryCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[RequestContext, Depends(require_permission(Permission.CREATE_PRODUCT))],
) -> CategoryResponse:
    """분류 생성 — 이름 중복 시 409 (Duplicate names are rejected)."""
    category = await product_service.create_category(db, data)
    await db.commit()
    return CategoryResponse.model_validate(category)
