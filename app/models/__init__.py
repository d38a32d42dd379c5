"""SQLAlchemy ORM 모델 패키지 — 모든 도메인 모델의 중앙 임포트 지점.

SQLAlchemy ORM models package — Central import point for all domain models.
Importing from this package registers every model with the metadata,
which Alembic and relationship resolution rely on.

Modules:
    user: 사용자 및 디렉터리 뷰 (User, DirectoryEntry)
    product: 상품, 분류, 가격 이력, 감사 로그 (Catalog, price history, audit log)
    requisition: 신청서, 품목, 승인, 상태 이력 (Requisitions and approval trail)
    notification: 이메일 로그 (Email logs)
    token: 리프레시 토큰 (Refresh tokens)
"""

from app.models.user import User, DirectoryEntry
from app.models.product import ProductCategory, Product, PriceHistory, ProductAuditLog
from app.models.requisition import RequisitionStatus, Requisition, RequisitionItem, Approval, StatusHistory
from app.models.notification import EmailStatus, NotificationType, EmailLog
from app.models.token import RefreshToken

__all__ = [
    "User", "DirectoryEntry",
    "ProductCategory", "Product", "PriceHistory", "ProductAuditLog",
    "RequisitionStatus", "Requisition", "RequisitionItem", "Approval", "StatusHistory",
    "EmailStatus", "NotificationType", "EmailLog",
    "RefreshToken",
]
