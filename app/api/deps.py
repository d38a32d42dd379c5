"""FastAPI 의존성 주입 모듈 — 인증 및 권한 검사.

FastAPI dependency injection module — Authentication and authorization.

Authentication Flow:
    1. 클라이언트가 Authorization: Bearer <token> 헤더를 전송
       (Client sends Authorization: Bearer <token> header)
    2. decode_token()이 JWT를 검증하고 페이로드를 반환
       (decode_token verifies JWT and returns payload)
    3. 페이로드의 "sub"(AD 로그인 ID)로 DB에서 사용자를 조회
       (User is fetched by the "sub" login id)
    4. RequestContext를 만들어 서비스에 명시적으로 전달
       (A RequestContext is built and passed explicitly to services)

Authorization Flow (require_permission):
    역할의 정적 권한 테이블을 조회하여 없으면 403
    (The role's static permission set is looked up; 403 when missing)
"""

import hmac
from typing import Annotated, Awaitable, Callable

import jwt
from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.models.user import User
from app.utils.context import RequestContext
from app.utils.exceptions import ForbiddenError, UnauthorizedError
from app.utils.jwt import decode_token
from app.utils.permissions import Permission

# HTTP Bearer 토큰 추출기 — auto_error=False: 헤더 없으면 None (cron 경로 허용)
security: HTTPBearer = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """JWT 토큰에서 현재 인증된 사용자를 추출합니다.

    Decode the bearer token and return the authenticated user.

    Raises:
        UnauthorizedError: 토큰 없음/무효/만료 또는 사용자 없음
                           (Missing, invalid or expired token, or unknown user)
    """
    if credentials is None:
        raise UnauthorizedError("Authentication required")
    try:
        payload: dict = decode_token(credentials.credentials)
    except jwt.InvalidTokenError:
        raise UnauthorizedError("Invalid or expired token")

    # 토큰 타입 검증 — Reject refresh tokens used as access tokens
    if payload.get("type") != "access":
        raise UnauthorizedError("Invalid token type")
    user_id: str | None = payload.get("sub")
    if user_id is None:
        raise UnauthorizedError("Invalid token")

    user: User | None = await db.get(User, user_id)
    if user is None:
        raise UnauthorizedError("User not found")
    return user


async def get_request_context(
    current_user: Annotated[User, Depends(get_current_user)],
) -> RequestContext:
    """인증된 사용자로부터 요청 컨텍스트를 만듭니다 (Build the caller context)."""
    return RequestContext.from_user(current_user)


def require_permission(permission: Permission) -> Callable[..., Awaitable[RequestContext]]:
    """권한 기반 접근 제어 의존성 팩토리.

    Dependency factory enforcing one permission from the static table.

    Args:
        permission: 필요한 권한 (Required permission)

    Returns:
        FastAPI 의존성 — RequestContext 반환 또는 403 발생
        (Dependency returning the RequestContext or raising 403)
    """
    async def _check(
        ctx: Annotated[RequestContext, Depends(get_request_context)],
    ) -> RequestContext:
        if not ctx.can(permission):
            raise ForbiddenError(f"Missing permission: {permission.value}")
        return ctx
    return _check


def require_any_permission(*permissions: Permission) -> Callable[..., Awaitable[RequestContext]]:
    """여러 권한 중 하나라도 있으면 허용 (Any of the given permissions)."""
    async def _check(
        ctx: Annotated[RequestContext, Depends(get_request_context)],
    ) -> RequestContext:
        if not any(ctx.can(p) for p in permissions):
            raise ForbiddenError("Insufficient permissions")
        return ctx
    return _check


async def require_cron_or_admin(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
    x_cron_token: Annotated[str | None, Header()] = None,
) -> str:
    """외부 cron 토큰 또는 MANAGE_SETTINGS 권한자만 허용합니다.

    Accept either an X-Cron-Token matching CRON_SECRET, or a bearer token
    of a user holding MANAGE_SETTINGS. Returns the caller label.
    """
    if settings.CRON_SECRET and hmac.compare_digest(
        (x_cron_token or "").encode(), settings.CRON_SECRET.encode()
    ):
        return "cron"

    user: User = await get_current_user(credentials, db)
    ctx = RequestContext.from_user(user)
    if not ctx.can(Permission.MANAGE_SETTINGS):
        raise ForbiddenError(f"Missing permission: {Permission.MANAGE_SETTINGS.value}")
    return ctx.user_id
