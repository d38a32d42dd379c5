"""레포지토리 패키지 — 데이터베이스 쿼리 계층.

Repository package. Repositories only build queries and flush; they never
commit. The routers own the transaction boundary.

Modules:
    base: 제네릭 CRUD 및 페이지네이션 (Generic CRUD and pagination)
    user_repository: 사용자와 디렉터리 뷰 (Users and the directory view)
    requisition_repository: 신청서, 품목, 승인, 상태 이력 (Requisitions and their trail)
    product_repository: 상품, 분류, 가격 이력, 감사 로그 (Catalog and audit)
    notification_repository: 이메일 로그와 인앱 알림 (Email logs and the feed)
    auth_repository: 리프레시 토큰 (Refresh tokens)
"""
