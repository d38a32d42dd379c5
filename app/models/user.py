"""사용자 및 디렉터리 뷰 SQLAlchemy ORM 모델 정의.

User and directory-view SQLAlchemy ORM model definitions.

Tables:
    - users: 포털 사용자 (Portal users, keyed by AD login id, synced on login)
    - user_with_roles: 조직도 디렉터리 뷰 (Org-chart directory view mirror)
"""

from datetime import datetime, timezone
from sqlalchemy import String, DateTime, Integer, Index
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.utils.permissions import UserRole


class User(Base):
    """사용자 모델 — 포털 사용자 계정.

    User model — Portal account synchronized from the directory on each login.
    There is no local password; credentials are verified by LDAP bind.

    Attributes:
        user_id: AD 로그인 ID (Directory login id, primary key)
        username: 표시 이름 (Display name)
        email: 이메일 (Email address)
        role: 역할 이름 (USER | MANAGER | ADMIN | SUPER_ADMIN | DEV)
        department: 부서 (Department)
        site_id: 사이트/코스트센터 ID (Site id)
        orgcode3: 3단계 조직 코드 (Third-level org unit code)
        created_at: 생성 일시 UTC (Creation timestamp)
        updated_at: 수정 일시 UTC (Last update timestamp)
    """

    __tablename__ = "users"

    # AD 로그인 ID — sAMAccountName, 디렉터리와 동일한 식별자
    user_id: Mapped[str] = mapped_column(String(100), primary_key=True)
    username: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # 역할 — 문자열로 저장, utils.permissions.UserRole 값
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=UserRole.USER.value)
    department: Mapped[str | None] = mapped_column(String(255), nullable=True)
    site_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    orgcode3: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))


class DirectoryEntry(Base):
    """조직도 디렉터리 엔트리 — UserWithRoles 뷰.

    Mirror of the HR directory view that supplies department and org-chart
    data. Read-only from the portal's point of view.

    Attributes:
        emp_code: 사번 (Employee code)
        ad_login_name: AD 로그인 ID (Directory login id, joins users.user_id)
        email: 이메일 (Email)
        full_name_eng / full_name_thai: 영문/태국어 이름 (Names)
        position_title: 직함 (Position title, used to detect managers)
        cost_center_code / cost_center_name: 코스트센터 (Cost center)
        orgcode3 / orgcode4: 조직 코드 (Org unit codes)
        site_id: 사이트 ID (Site id)
    """

    __tablename__ = "user_with_roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    emp_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    ad_login_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    full_name_eng: Mapped[str | None] = mapped_column(String(255), nullable=True)
    full_name_thai: Mapped[str | None] = mapped_column(String(255), nullable=True)
    position_title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    cost_center_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    cost_center_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    orgcode3: Mapped[str | None] = mapped_column(String(50), nullable=True)
    orgcode4: Mapped[str | None] = mapped_column(String(50), nullable=True)
    site_id: Mapped[str | None] = mapped_column(String(50), nullable=True)

    __table_args__ = (
        Index("ix_user_with_roles_ad_login_name", "ad_login_name"),
        Index("ix_user_with_roles_cost_center_code", "cost_center_code"),
        Index("ix_user_with_roles_orgcode3", "orgcode3"),
    )
