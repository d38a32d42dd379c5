"""역할 라우터 — 역할 목록, 역할 통계, 권한 확인.

Role Router — Role listing, per-role user statistics and permission checks
against the static role/permission table.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_request_context, require_permission
from app.database import get_db
from app.schemas.user import PermissionCheckResponse, RoleResponse
from app.services.role_service import role_service
from app.utils.context import RequestContext
from app.utils.exceptions import BadRequestError
from app.utils.permissions import Permission, has_permission, parse_role

router: APIRouter = APIRouter()


@router.get("/roles", response_model=list[RoleResponse])
async def list_roles(
    ctx: Annotated[RequestContext, Depends(get_request_context)],
) -> list[RoleResponse]:
    """역할 목록 — 낮은 순위부터 (Roles with permissions, lowest rank first)."""
    return role_service.list_roles()


@router.get("/roles/statistics")
async def role_statistics(
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[RequestContext, Depends(require_permission(Permission.VIEW_USERS))],
) -> dict:
    return await role_service.get_role_statistics(db)


@router.get("/permissions/check", response_model=PermissionCheckResponse)
async def check_permission(
    ctx: Annotated[RequestContext, Depends(get_request_context)],
    permission: Annotated[str, Query()],
    role: Annotated[str | None, Query()] = None,
) -> PermissionCheckResponse:
    """권한 보유 여부 확인 — role 생략 시 호출자 역할.

    Check whether a role (the caller's by default) holds a permission.
    Unknown permission codes answer False.
    """
    target_role = parse_role(role) if role else ctx.role
    if target_role is None:
        raise BadRequestError(f"Unknown role: {role}")
    return PermissionCheckResponse(
        role=target_role.value,
        permission=permission,
        allowed=has_permission(target_role, permission),
    )
