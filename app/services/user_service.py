"""사용자 서비스 — 사용자 목록 및 디렉터리 프로필 조회.

User Service — User listing and directory profile lookups. Users are
created only by LDAP login, so there is no create/delete here.
"""

from typing import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import DirectoryEntry, User
from app.repositories.user_repository import directory_repository, user_repository
from app.schemas.user import DirectoryProfileResponse
from app.utils.exceptions import NotFoundError


class UserService:
    """사용자 관련 비즈니스 로직을 처리하는 서비스."""

    async def list_users(
        self,
        db: AsyncSession,
        role: str | None = None,
        search: str | None = None,
        page: int = 1,
        per_page: int = 50,
    ) -> tuple[Sequence[User], int]:
        """사용자 목록을 조회합니다.

        List users ordered by name, filtered by role and a search term
        matched against login id, name and email.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            role: 역할 필터 (Role filter)
            search: 검색어 (Search term)
            page: 페이지 번호 (Page number)
            per_page: 페이지당 항목 수 (Items per page)

        Returns:
            tuple[Sequence[User], int]: (사용자 목록, 전체 개수)
        """
        query = user_repository.build_list_query(role=role, search=search)
        return await user_repository.get_paginated(db, query, page, per_page)

    async def get_directory_profile(
        self,
        db: AsyncSession,
        user_id: str,
    ) -> DirectoryProfileResponse:
        """디렉터리 프로필 — users 행과 조직도 행을 합쳐 반환.

        Raises:
            NotFoundError: 두 곳 모두 없음 (Neither a user nor a directory row)
        """
        user: User | None = await user_repository.get_by_id(db, user_id)
        entry: DirectoryEntry | None = await directory_repository.find_by_login(db, user_id)
        if user is None and entry is None:
            raise NotFoundError("User not found")

        return DirectoryProfileResponse(
            user_id=user.user_id if user else (entry.ad_login_name or user_id),
            role=user.role if user else None,
            email=(entry.email if entry else None) or (user.email if user else None),
            emp_code=entry.emp_code if entry else None,
            full_name_eng=entry.full_name_eng if entry else None,
            full_name_thai=entry.full_name_thai if entry else None,
            position_title=entry.position_title if entry else None,
            cost_center_code=entry.cost_center_code if entry else None,
            cost_center_name=entry.cost_center_name if entry else None,
            orgcode3=(entry.orgcode3 if entry else None) or (user.orgcode3 if user else None),
            site_id=(entry.site_id if entry else None) or (user.site_id if user else None),
        )


# 싱글턴 인스턴스 — Singleton instance
user_service: UserService = UserService()
