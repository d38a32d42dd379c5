"""initial_stationaryhub_schema

Revision ID: a7c3e1f09b21
Revises:
Create Date: 2026-10-19 09:00:00.000000

StationaryHub 초기 스키마:
- users, user_with_roles (디렉터리 뷰 미러)
- product_categories, products, price_history, product_audit_logs
- requisitions (version 낙관적 잠금), requisition_items, approvals, status_history
- email_logs (retry_of_id 재시도 체인), refresh_tokens
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "a7c3e1f09b21"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # 1. 사용자 — Users synced on LDAP login
    op.create_table(
        "users",
        sa.Column("user_id", sa.String(100), primary_key=True),
        sa.Column("username", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="USER"),
        sa.Column("department", sa.String(255), nullable=True),
        sa.Column("site_id", sa.String(50), nullable=True),
        sa.Column("orgcode3", sa.String(50), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_users_orgcode3", "users", ["orgcode3"])

    # 2. 디렉터리 뷰 미러 — Directory view mirror
    op.create_table(
        "user_with_roles",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("emp_code", sa.String(50), nullable=True),
        sa.Column("ad_login_name", sa.String(100), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("full_name_eng", sa.String(255), nullable=True),
        sa.Column("full_name_thai", sa.String(255), nullable=True),
        sa.Column("position_title", sa.String(255), nullable=True),
        sa.Column("cost_center_code", sa.String(50), nullable=True),
        sa.Column("cost_center_name", sa.String(255), nullable=True),
        sa.Column("orgcode3", sa.String(50), nullable=True),
        sa.Column("orgcode4", sa.String(50), nullable=True),
        sa.Column("site_id", sa.String(50), nullable=True),
    )
    op.create_index("ix_user_with_roles_ad_login_name", "user_with_roles", ["ad_login_name"])
    op.create_index("ix_user_with_roles_cost_center_code", "user_with_roles", ["cost_center_code"])
    op.create_index("ix_user_with_roles_orgcode3", "user_with_roles", ["orgcode3"])

    # 3. 상품 카탈로그 — Catalog
    op.create_table(
        "product_categories",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("sort_order", sa.Integer, nullable=False, server_default="0"),
    )
    op.create_table(
        "products",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("category_id", sa.Integer, sa.ForeignKey("product_categories.id", ondelete="SET NULL"), nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("unit_cost", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("order_unit", sa.String(50), nullable=True),
        sa.Column("photo_url", sa.String(500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_table(
        "price_history",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("product_id", sa.Integer, sa.ForeignKey("products.id", ondelete="CASCADE"), nullable=False),
        sa.Column("old_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("new_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("price_change", sa.Numeric(12, 2), nullable=False),
        sa.Column("percentage_change", sa.Numeric(8, 2), nullable=False),
        sa.Column("year", sa.Integer, nullable=False),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("created_by", sa.String(100), nullable=False),
        sa.Column("recorded_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_price_history_product_id", "price_history", ["product_id"])

    # 감사 로그는 삭제된 상품 기록을 보존 — No FK so DELETE rows survive
    op.create_table(
        "product_audit_logs",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("product_id", sa.Integer, nullable=False),
        sa.Column("action_type", sa.String(20), nullable=False),
        sa.Column("old_data", sa.Text, nullable=True),
        sa.Column("new_data", sa.Text, nullable=True),
        sa.Column("changed_by", sa.String(100), nullable=False),
        sa.Column("changed_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("notes", sa.Text, nullable=True),
    )
    op.create_index("ix_product_audit_logs_product_id", "product_audit_logs", ["product_id"])
    op.create_index("ix_product_audit_logs_changed_at", "product_audit_logs", ["changed_at"])

    # 4. 신청서 — Requisitions
    op.create_table(
        "requisitions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(100), sa.ForeignKey("users.user_id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("submitted_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("total_amount", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("site_id", sa.String(50), nullable=True),
        sa.Column("issue_note", sa.Text, nullable=True),
        sa.Column("orgcode3", sa.String(50), nullable=True),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
    )
    op.create_index("ix_requisitions_user_id", "requisitions", ["user_id"])
    op.create_index("ix_requisitions_status", "requisitions", ["status"])
    op.create_index("ix_requisitions_orgcode3", "requisitions", ["orgcode3"])

    op.create_table(
        "requisition_items",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("requisition_id", sa.Integer, sa.ForeignKey("requisitions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("product_id", sa.Integer, sa.ForeignKey("products.id"), nullable=False),
        sa.Column("quantity", sa.Integer, nullable=False),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("total_price", sa.Numeric(14, 2), nullable=False),
    )
    op.create_index("ix_requisition_items_requisition_id", "requisition_items", ["requisition_id"])

    op.create_table(
        "approvals",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("requisition_id", sa.Integer, sa.ForeignKey("requisitions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("approved_by", sa.String(100), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("note", sa.Text, nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_approvals_requisition_id", "approvals", ["requisition_id"])

    op.create_table(
        "status_history",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("requisition_id", sa.Integer, sa.ForeignKey("requisitions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("changed_by", sa.String(100), nullable=False),
        sa.Column("changed_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("comment", sa.Text, nullable=True),
    )
    op.create_index("ix_status_history_requisition_id", "status_history", ["requisition_id"])

    # 5. 메일 로그 — Email attempts
    op.create_table(
        "email_logs",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("to_user_id", sa.String(100), nullable=True),
        sa.Column("to_email", sa.String(255), nullable=False),
        sa.Column("subject", sa.String(500), nullable=False),
        sa.Column("body", sa.Text, nullable=False),
        sa.Column("status", sa.String(10), nullable=False),
        sa.Column("notification_type", sa.String(50), nullable=False),
        sa.Column("requisition_id", sa.Integer, sa.ForeignKey("requisitions.id", ondelete="SET NULL"), nullable=True),
        sa.Column("is_read", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("attempt_number", sa.Integer, nullable=False, server_default="1"),
        sa.Column("retry_of_id", sa.Integer, sa.ForeignKey("email_logs.id"), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_email_logs_to_user_id", "email_logs", ["to_user_id"])
    op.create_index("ix_email_logs_status", "email_logs", ["status"])
    op.create_index("ix_email_logs_sent_at", "email_logs", ["sent_at"])

    # 6. 리프레시 토큰 — Refresh tokens
    op.create_table(
        "refresh_tokens",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(100), sa.ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False),
        sa.Column("token", sa.String(1024), nullable=False, unique=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_refresh_tokens_user_id", "refresh_tokens", ["user_id"])


def downgrade() -> None:
    op.drop_table("refresh_tokens")
    op.drop_table("email_logs")
    op.drop_table("status_history")
    op.drop_table("approvals")
    op.drop_table("requisition_items")
    op.drop_table("requisitions")
    op.drop_table("product_audit_logs")
    op.drop_table("price_history")
    op.drop_table("products")
    op.drop_table("product_categories")
    op.drop_table("user_with_roles")
    op.drop_table("users")
