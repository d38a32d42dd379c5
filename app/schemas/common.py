"""공통 Pydantic 응답 스키마 정의.

Common response schemas shared across API domains.
"""

from typing import Any

from pydantic import BaseModel


class PaginatedResponse(BaseModel):
    """페이지네이션 응답 스키마.

    Paginated response wrapper schema.

    Attributes:
        items: 항목 목록 (List of result items)
        total: 전체 항목 수 (Total count across all pages)
        page: 현재 페이지 번호 (Current page number, 1-based)
        per_page: 페이지당 항목 수 (Items per page)
        pages: 전체 페이지 수 (Total number of pages)
    """

    items: list[Any]
    total: int
    page: int
    per_page: int
    pages: int


class MessageResponse(BaseModel):
    """범용 메시지 응답 스키마 (Simple confirmation message)."""

    message: str


class ExcelImportResponse(BaseModel):
    """Excel 가격 가져오기 결과.

    Attributes:
        updated: 변경된 상품 수 (Number of products repriced)
        results: 상품별 변경 내역 (Per-product change rows)
        errors: 건너뛴 행과 사유 (Skipped rows with reasons)
    """

    updated: int
    results: list[dict[str, Any]] = []
    errors: list[dict[str, Any]] = []
