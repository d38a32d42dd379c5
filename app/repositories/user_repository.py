"""사용자 및 디렉터리 레포지토리 — 사용자/조직도 DB 쿼리 담당.

User and directory repositories. The directory repository reads the
UserWithRoles view mirror used for manager resolution and login enrichment.
"""

from typing import Sequence

from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import DirectoryEntry, User
from app.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """사용자 레포지토리."""

    def __init__(self) -> None:
        super().__init__(User)

    def build_list_query(
        self,
        role: str | None = None,
        search: str | None = None,
    ) -> Select:
        """사용자 목록 쿼리를 구성합니다 (Build the filtered user list query)."""
        query: Select = select(User).order_by(User.username)
        if role:
            query = query.where(User.role == role.upper())
        if search:
            pattern: str = f"%{search}%"
            query = query.where(
                or_(
                    User.user_id.ilike(pattern),
                    User.username.ilike(pattern),
                    User.email.ilike(pattern),
                )
            )
        return query

    async def get_by_role(self, db: AsyncSession, role: str) -> Sequence[User]:
        result = await db.execute(
            select(User).where(User.role == role).order_by(User.username)
        )
        return result.scalars().all()

    async def get_by_roles(self, db: AsyncSession, roles: list[str]) -> Sequence[User]:
        result = await db.execute(
            select(User).where(User.role.in_(roles)).order_by(User.username)
        )
        return result.scalars().all()

    async def count_by_role(self, db: AsyncSession) -> dict[str, int]:
        """역할별 사용자 수 (User counts grouped by role)."""
        result = await db.execute(
            select(User.role, func.count()).group_by(User.role)
        )
        return {role: count for role, count in result.all()}


class DirectoryRepository(BaseRepository[DirectoryEntry]):
    """디렉터리 뷰 레포지토리 (UserWithRoles view)."""

    def __init__(self) -> None:
        super().__init__(DirectoryEntry)

    async def find_by_login(self, db: AsyncSession, login: str) -> DirectoryEntry | None:
        """AD 로그인 ID로 조회하고, 없으면 사번으로 재조회합니다.

        Look up a directory row by AD login name, falling back to employee code.
        """
        result = await db.execute(
            select(DirectoryEntry)
            .where(func.lower(DirectoryEntry.ad_login_name) == login.lower())
            .order_by(DirectoryEntry.id)
            .limit(1)
        )
        entry: DirectoryEntry | None = result.scalar_one_or_none()
        if entry is not None:
            return entry

        result = await db.execute(
            select(DirectoryEntry)
            .where(DirectoryEntry.emp_code == login)
            .order_by(DirectoryEntry.id)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def find_managers_by_cost_center(
        self,
        db: AsyncSession,
        cost_center_code: str,
        title_keywords: list[str],
    ) -> Sequence[DirectoryEntry]:
        """코스트센터가 같고 관리자 직함인 엔트리를 조회합니다.

        Directory rows in the cost center whose position title contains any
        of the manager keywords (case-insensitive).
        """
        if not title_keywords:
            return []
        title_match = or_(
            *[DirectoryEntry.position_title.ilike(f"%{kw}%") for kw in title_keywords]
        )
        result = await db.execute(
            select(DirectoryEntry)
            .where(DirectoryEntry.cost_center_code == cost_center_code, title_match)
            .order_by(DirectoryEntry.id)
        )
        return result.scalars().all()

    async def find_by_orgcode3(
        self,
        db: AsyncSession,
        orgcode3: str,
        title_keywords: list[str] | None = None,
    ) -> Sequence[DirectoryEntry]:
        query: Select = select(DirectoryEntry).where(DirectoryEntry.orgcode3 == orgcode3)
        if title_keywords:
            query = query.where(
                or_(*[DirectoryEntry.position_title.ilike(f"%{kw}%") for kw in title_keywords])
            )
        result = await db.execute(query.order_by(DirectoryEntry.id))
        return result.scalars().all()


# 싱글턴 인스턴스 — Singleton instances
user_repository: UserRepository = UserRepository()
directory_repository: DirectoryRepository = DirectoryRepository()
