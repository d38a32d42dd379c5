"""API 라우터 패키지 — 모든 엔드포인트 통합.

API Router package — Aggregates every endpoint into a single router that
main.py mounts under /api.

Included routers:
    - auth: LDAP 로그인 및 토큰 (LDAP login and tokens)
    - requisitions: 신청서, 품목, 승인 (Requisitions, items, approvals)
    - orgcode3: 조직 단위 신청 및 관리자 (Org-unit submission and managers)
    - products / categories: 상품 카탈로그, 가격, 감사 로그 (Catalog, prices, audit log)
    - notifications: 인앱 알림, 도착 알림, 리마인더 (Feed, arrival notice, reminders)
    - email_logs: 발송 기록 관리 (Delivery log administration)
    - roles / users: 역할과 사용자 (Roles and users)
"""

from fastapi import APIRouter

from app.api.auth import router as auth_router
from app.api.categories import router as categories_router
from app.api.email_logs import router as email_logs_router
from app.api.notifications import router as notifications_router
from app.api.orgcode3 import router as orgcode3_router
from app.api.products import router as products_router
from app.api.requisitions import router as requisitions_router
from app.api.roles import router as roles_router
from app.api.users import router as users_router

api_router: APIRouter = APIRouter()

api_router.include_router(auth_router, prefix="/auth", tags=["Auth"])
api_router.include_router(requisitions_router, prefix="/requisitions", tags=["Requisitions"])
api_router.include_router(orgcode3_router, prefix="/orgcode3", tags=["OrgCode3"])
api_router.include_router(products_router, prefix="/products", tags=["Products"])
api_router.include_router(categories_router, prefix="/categories", tags=["Categories"])
api_router.include_router(notifications_router, prefix="/notifications", tags=["Notifications"])
api_router.include_router(email_logs_router, prefix="/email-logs", tags=["Email Logs"])
api_router.include_router(roles_router, tags=["Roles"])
api_router.include_router(users_router, prefix="/users", tags=["Users"])
