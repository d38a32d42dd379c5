"""신청서 서비스 — 신청서 생성/조회/품목 교체 비즈니스 로직.

Requisition Service — Submission, listing, access checks and line-item
replacement. Totals are always recomputed from the line items using exact
Decimal arithmetic.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.product import Product
from app.models.requisition import Requisition, RequisitionItem, RequisitionStatus, StatusHistory
from app.repositories.product_repository import product_repository
from app.repositories.requisition_repository import requisition_repository
from app.repositories.user_repository import directory_repository
from app.schemas.requisition import RequisitionItemInput, RequisitionItemReplace
from app.services.manager_service import manager_service
from app.utils.context import RequestContext
from app.utils.exceptions import BadRequestError, ForbiddenError, NotFoundError
from app.utils.permissions import Permission

_CENT = Decimal("0.01")


def _money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)


def _build_items(
    items: Sequence[RequisitionItemInput | RequisitionItemReplace],
    products: dict[int, Product],
) -> tuple[list[RequisitionItem], Decimal]:
    """입력으로 품목 행을 만들고 합계를 계산합니다 (Rows plus their exact sum)."""
    rows: list[RequisitionItem] = []
    total: Decimal = Decimal("0")
    for item in items:
        product: Product | None = products.get(item.product_id)
        if product is None:
            raise BadRequestError(f"Product {item.product_id} not found")
        unit_price: Decimal = _money(
            item.unit_price if item.unit_price is not None else product.unit_cost
        )
        line_total: Decimal = _money(unit_price * item.quantity)
        rows.append(
            RequisitionItem(
                product_id=product.id,
                product=product,
                quantity=item.quantity,
                unit_price=unit_price,
                total_price=line_total,
            )
        )
        total += line_total
    return rows, total


class RequisitionService:
    """신청서 서비스."""

    async def create_requisition(
        self,
        db: AsyncSession,
        ctx: RequestContext,
        items: Sequence[RequisitionItemInput],
        site_id: str | None = None,
        issue_note: str | None = None,
        orgcode3: str | None = None,
    ) -> Requisition:
        """신청서를 생성합니다.

        Create a PENDING requisition with its items and an initial status
        history row. total_amount is the exact sum of the line totals.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            ctx: 호출자 컨텍스트 (Caller context)
            items: 품목 목록, 1개 이상 (At least one line item)
            site_id: 사이트 ID, 없으면 호출자 또는 기본값 (Site; defaults to caller's or DEFAULT_SITE_ID)
            issue_note: 메모 (Free-text note)
            orgcode3: 조직 코드, 없으면 호출자 값 (Org unit; defaults to caller's)

        Returns:
            Requisition: 품목이 로드된 신청서 (Requisition with items loaded)

        Raises:
            BadRequestError: 품목 없음 또는 존재하지 않는 상품 (Empty or unknown product)
        """
        if not items:
            raise BadRequestError("A requisition needs at least one item")

        products = await product_repository.get_many(db, {i.product_id for i in items})
        rows, total = _build_items(items, products)

        requisition = Requisition(
            user_id=ctx.user_id,
            status=RequisitionStatus.PENDING.value,
            total_amount=total,
            site_id=site_id or ctx.site_id or settings.DEFAULT_SITE_ID,
            issue_note=issue_note,
            orgcode3=orgcode3 or ctx.orgcode3,
            items=rows,
        )
        db.add(requisition)
        await db.flush()

        db.add(
            StatusHistory(
                requisition_id=requisition.id,
                status=RequisitionStatus.PENDING.value,
                changed_by=ctx.user_id,
                comment="Requisition submitted",
            )
        )
        await db.flush()
        await db.refresh(requisition, attribute_names=["submitted_at", "version"])
        return requisition

    async def create_with_orgcode3(
        self,
        db: AsyncSession,
        ctx: RequestContext,
        items: Sequence[RequisitionItemInput],
        issue_note: str | None = None,
    ) -> tuple[Requisition, list[dict]]:
        """조직 코드/사이트를 디렉터리에서 결정하여 신청서를 생성합니다.

        Resolve the caller's orgcode3 and site id from the directory view
        (falling back to the session values, then DEFAULT_SITE_ID), create
        the requisition, and return it with the org unit's managers.
        """
        entry = await directory_repository.find_by_login(db, ctx.user_id)
        orgcode3: str | None = (entry.orgcode3 if entry else None) or ctx.orgcode3
        site_id: str = (entry.site_id if entry else None) or ctx.site_id or settings.DEFAULT_SITE_ID

        requisition = await self.create_requisition(
            db, ctx, items, site_id=site_id, issue_note=issue_note, orgcode3=orgcode3
        )
        managers: list[dict] = []
        if orgcode3:
            managers = await manager_service.get_managers_by_orgcode3(db, orgcode3)
        return requisition, managers

    async def list_requisitions(
        self,
        db: AsyncSession,
        ctx: RequestContext,
        mine: bool = False,
        status: str | None = None,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[Sequence[Requisition], int]:
        """신청서 목록 — 승인 이력 권한이 없으면 본인 것만.

        Callers without VIEW_APPROVAL_HISTORY always see only their own.
        """
        own_only: bool = mine or not ctx.can(Permission.VIEW_APPROVAL_HISTORY)
        query = requisition_repository.build_list_query(
            user_id=ctx.user_id if own_only else None,
            status=status,
        )
        return await requisition_repository.get_paginated(db, query, page, per_page)

    async def get_requisitions_for_manager(
        self,
        db: AsyncSession,
        ctx: RequestContext,
        orgcode3: str | None = None,
        status: str | None = None,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[Sequence[Requisition], int]:
        """관리자 조직의 신청서 목록 (Requisitions routed to the manager's org unit)."""
        target: str | None = orgcode3 or ctx.orgcode3
        if target is None:
            return [], 0
        if target != ctx.orgcode3 and not ctx.can(Permission.MANAGE_DEPARTMENTS):
            raise ForbiddenError("Cannot view another org unit")
        query = requisition_repository.build_list_query(status=status, orgcode3=target)
        return await requisition_repository.get_paginated(db, query, page, per_page)

    async def get_requisition(
        self,
        db: AsyncSession,
        ctx: RequestContext,
        requisition_id: int,
    ) -> Requisition:
        """신청서 단건 조회 — 본인 또는 승인 이력 권한자만.

        Raises:
            NotFoundError: 신청서 없음 (Requisition not found)
            ForbiddenError: 다른 사람의 신청서 (Someone else's requisition)
        """
        requisition = await requisition_repository.get_with_items(db, requisition_id)
        if requisition is None:
            raise NotFoundError("Requisition not found")
        if requisition.user_id != ctx.user_id and not ctx.can(Permission.VIEW_APPROVAL_HISTORY):
            raise ForbiddenError("Cannot view this requisition")
        return requisition

    async def replace_items(
        self,
        db: AsyncSession,
        requisition_id: int,
        items: Sequence[RequisitionItemReplace],
    ) -> Requisition:
        """품목을 전부 삭제 후 재등록하고 합계를 다시 계산합니다.

        Delete every line item, insert the new ones and set total_amount to
        their exact sum, all in one flush.
        """
        requisition = await requisition_repository.get_with_items(db, requisition_id)
        if requisition is None:
            raise NotFoundError("Requisition not found")
        if not items:
            raise BadRequestError("Items are required")

        products = await product_repository.get_many(db, {i.product_id for i in items})
        rows, total = _build_items(items, products)

        # delete-orphan cascade가 기존 품목을 삭제 — Orphaned rows are deleted on flush
        requisition.items = rows
        requisition.total_amount = total
        await db.flush()
        return requisition

    async def clear_items(
        self,
        db: AsyncSession,
        requisition_id: int,
    ) -> Requisition:
        """품목을 모두 삭제하고 합계를 0으로 설정합니다."""
        requisition = await requisition_repository.get_with_items(db, requisition_id)
        if requisition is None:
            raise NotFoundError("Requisition not found")

        requisition.items = []
        requisition.total_amount = Decimal("0")
        await db.flush()
        return requisition


# 싱글턴 인스턴스 — Singleton instance
requisition_service: RequisitionService = RequisitionService()
