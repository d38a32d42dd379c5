"""사용자 라우터 — 사용자 목록, 디렉터리 프로필, 역할 부여.

User Router — User listing, directory profiles and role assignment.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import require_permission
from app.database import get_db
from app.schemas.user import DirectoryProfileResponse, RoleAssignRequest, UserResponse
from app.services.role_service import role_service
from app.services.user_service import user_service
from app.utils.context import RequestContext
from app.utils.pagination import Page
from app.utils.permissions import Permission

router: APIRouter = APIRouter()


@router.get("", response_model=Page)
async def list_users(
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[RequestContext, Depends(require_permission(Permission.VIEW_USERS))],
    role: Annotated[str | None, Query()] = None,
    search: Annotated[str | None, Query()] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    per_page: Annotated[int, Query(ge=1, le=200)] = 50,
) -> Page:
    rows, total = await user_service.list_users(
        db, role=role, search=search, page=page, per_page=per_page
    )
    items = [UserResponse.model_validate(u) for u in rows]
    return Page.build(items, total, page, per_page)


@router.get("/{user_id}/profile", response_model=DirectoryProfileResponse)
async def get_profile(
    user_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[RequestContext, Depends(require_permission(Permission.VIEW_USERS))],
) -> DirectoryProfileResponse:
    return await user_service.get_directory_profile(db, user_id)


@router.put("/{user_id}/role", response_model=UserResponse)
async def assign_role(
    user_id: str,
    data: RoleAssignRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[RequestContext, Depends(require_permission(Permission.ASSIGN_ROLE))],
) -> UserResponse:
    """사용자 역할 변경 — 호출자 순위 이하의 역할만 부여 가능.

    Change a user's role. Callers cannot grant a role above their own or
    change someone ranked above them.
    """
    user = await role_service.assign_role(db, ctx, user_id, data.role)
    await db.commit()
    return UserResponse.model_validate(user)
