"""역할 서비스 — 역할 부여 및 역할 통계 비즈니스 로직.

Role Service — Role assignment and statistics over the static
role/permission table.
"""

import logging
from typing import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User
from app.repositories.user_repository import user_repository
from app.schemas.user import RoleResponse
from app.utils.context import RequestContext
from app.utils.exceptions import BadRequestError, ForbiddenError, NotFoundError
from app.utils.permissions import ROLE_RANK, UserRole, get_role_permissions, parse_role

logger = logging.getLogger(__name__)


class RoleService:
    """역할 관련 비즈니스 로직을 처리하는 서비스."""

    def list_roles(self) -> list[RoleResponse]:
        """모든 역할과 권한 목록 (Every role with its permissions, lowest first)."""
        return [
            RoleResponse(
                name=role.value,
                rank=ROLE_RANK[role],
                permissions=sorted(p.value for p in get_role_permissions(role)),
            )
            for role in sorted(UserRole, key=lambda r: ROLE_RANK[r])
        ]

    async def assign_role(
        self,
        db: AsyncSession,
        ctx: RequestContext,
        user_id: str,
        role_name: str,
    ) -> User:
        """사용자에게 역할을 부여합니다.

        Assign a role to a user.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            ctx: 호출자 컨텍스트 (Caller context)
            user_id: 대상 사용자 ID (Target user id)
            role_name: 부여할 역할 이름 (Role to assign)

        Returns:
            User: 갱신된 사용자 (Updated user)

        Raises:
            BadRequestError: 알 수 없는 역할 (Unknown role)
            ForbiddenError: 호출자보다 높은 역할 부여 시도 (Role above the caller's own)
            NotFoundError: 사용자 없음 (User not found)
        """
        role: UserRole | None = parse_role(role_name)
        if role is None:
            raise BadRequestError(f"Unknown role: {role_name}")
        if ROLE_RANK[role] > ROLE_RANK[ctx.role]:
            raise ForbiddenError("Cannot assign a role above your own")

        user: User | None = await user_repository.get_by_id(db, user_id)
        if user is None:
            raise NotFoundError("User not found")

        target_current = parse_role(user.role) or UserRole.USER
        if ROLE_RANK[target_current] > ROLE_RANK[ctx.role]:
            raise ForbiddenError("Cannot change the role of a user above your own")

        previous: str = user.role
        user.role = role.value
        await db.flush()
        await db.refresh(user)
        logger.info("Role of %s changed %s -> %s by %s", user_id, previous, role.value, ctx.user_id)
        return user

    async def get_users_by_role(self, db: AsyncSession, role_name: str) -> Sequence[User]:
        role: UserRole | None = parse_role(role_name)
        if role is None:
            raise BadRequestError(f"Unknown role: {role_name}")
        return await user_repository.get_by_role(db, role.value)

    async def get_role_statistics(self, db: AsyncSession) -> dict:
        """역할별 사용자 수 — 모든 역할 포함, 없으면 0 (Every role, zero-filled)."""
        counts: dict[str, int] = await user_repository.count_by_role(db)
        by_role: dict[str, int] = {role.value: counts.get(role.value, 0) for role in UserRole}
        return {"total": sum(counts.values()), "by_role": by_role}


# 싱글턴 인스턴스 — Singleton instance
role_service: RoleService = RoleService()
