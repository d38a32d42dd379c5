"""인증 서비스 — LDAP 로그인, 사용자 동기화, 토큰 갱신 비즈니스 로직.

Auth Service — LDAP login, user synchronization from the directory view,
and the JWT token lifecycle.
"""

from datetime import datetime, timedelta, timezone

import jwt
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.user import DirectoryEntry, User
from app.repositories.auth_repository import auth_repository
from app.repositories.user_repository import directory_repository, user_repository
from app.schemas.auth import LoginRequest, RefreshRequest, TokenResponse, UserMeResponse
from app.utils.exceptions import UnauthorizedError
from app.utils.jwt import create_access_token, create_refresh_token, decode_token
from app.utils.ldap import DirectoryProfile, ldap_authenticator
from app.utils.permissions import UserRole, get_role_permissions
from app.utils.timezone import as_utc


class AuthService:
    """인증 관련 비즈니스 로직을 처리하는 서비스.

    Service handling LDAP login, directory sync, token refresh and logout.
    """

    def _build_jwt_payload(self, user: User) -> dict[str, str | None]:
        """JWT 토큰 페이로드를 생성합니다 (Session claims for the token)."""
        return {
            "sub": user.user_id,
            "role": user.role,
            "department": user.department,
            "site_id": user.site_id,
        }

    async def _generate_tokens(
        self,
        db: AsyncSession,
        user: User,
    ) -> TokenResponse:
        """액세스/리프레시 토큰 쌍을 발급하고 리프레시 토큰을 저장합니다."""
        payload = self._build_jwt_payload(user)
        access_token: str = create_access_token(payload)
        refresh_token: str = create_refresh_token(payload)

        # 기존 리프레시 토큰 정리 — One active refresh token per user
        await auth_repository.delete_user_refresh_tokens(db, user.user_id)

        expires_at: datetime = datetime.now(timezone.utc) + timedelta(
            days=settings.JWT_REFRESH_TOKEN_EXPIRE_DAYS
        )
        await auth_repository.create_refresh_token(
            db, user_id=user.user_id, token=refresh_token, expires_at=expires_at
        )

        return TokenResponse(access_token=access_token, refresh_token=refresh_token)

    async def sync_user(
        self,
        db: AsyncSession,
        user_id: str,
        profile: DirectoryProfile,
        entry: DirectoryEntry | None,
    ) -> User:
        """디렉터리 정보로 사용자 행을 생성하거나 갱신합니다.

        Create the user on first login (role USER, site DEFAULT_SITE_ID) or
        refresh name, email, department and org unit on later logins. The
        role is never changed here. Directory view data wins over the LDAP
        profile when both exist.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            user_id: AD 로그인 ID (Login id)
            profile: LDAP 조회 결과 (Profile from the bind)
            entry: 디렉터리 뷰 행, 없을 수 있음 (Directory view row, may be None)

        Returns:
            User: 동기화된 사용자 (Synchronized user)
        """
        username: str = (
            (entry.full_name_eng if entry else None)
            or profile.display_name
            or user_id
        )
        email: str | None = (entry.email if entry else None) or profile.email
        department: str | None = (entry.cost_center_name if entry else None) or profile.department
        orgcode3: str | None = entry.orgcode3 if entry else None

        user: User | None = await user_repository.get_by_id(db, user_id)
        if user is None:
            return await user_repository.create(
                db,
                {
                    "user_id": user_id,
                    "username": username,
                    "email": email,
                    "role": UserRole.USER.value,
                    "department": department,
                    "site_id": settings.DEFAULT_SITE_ID,
                    "orgcode3": orgcode3,
                },
            )

        user.username = username
        user.email = email or user.email
        user.department = department or user.department
        user.orgcode3 = orgcode3 or user.orgcode3
        await db.flush()
        return user

    async def login(
        self,
        db: AsyncSession,
        data: LoginRequest,
    ) -> TokenResponse:
        """LDAP 로그인을 처리합니다.

        Bind against the directory, sync the user row, and issue tokens.

        Raises:
            UnauthorizedError: 자격 증명 불일치 (Invalid credentials)
        """
        profile: DirectoryProfile = await ldap_authenticator.authenticate(data.username, data.password)
        user_id: str = profile.username.lower()
        entry: DirectoryEntry | None = await directory_repository.find_by_login(db, user_id)

        user: User = await self.sync_user(db, user_id, profile, entry)
        return await self._generate_tokens(db, user)

    async def refresh_tokens(
        self,
        db: AsyncSession,
        data: RefreshRequest,
    ) -> TokenResponse:
        """리프레시 토큰으로 새 토큰 쌍을 발급합니다.

        Exchange a stored, unexpired refresh token for a new pair. The old
        token is revoked.

        Raises:
            UnauthorizedError: 유효하지 않거나 만료된 토큰 (Invalid or expired token)
        """
        db_token = await auth_repository.get_refresh_token(db, data.refresh_token)
        if db_token is None:
            raise UnauthorizedError("Invalid refresh token")

        if as_utc(db_token.expires_at) < datetime.now(timezone.utc):
            await auth_repository.delete_refresh_token(db, data.refresh_token)
            raise UnauthorizedError("Refresh token has expired")

        try:
            payload: dict = decode_token(data.refresh_token)
        except jwt.InvalidTokenError:
            await auth_repository.delete_refresh_token(db, data.refresh_token)
            raise UnauthorizedError("Invalid refresh token")

        if payload.get("type") != "refresh" or payload.get("sub") is None:
            raise UnauthorizedError("Invalid refresh token payload")

        user: User | None = await user_repository.get_by_id(db, payload["sub"])
        if user is None:
            raise UnauthorizedError("User not found")

        await auth_repository.delete_refresh_token(db, data.refresh_token)
        return await self._generate_tokens(db, user)

    async def logout(self, db: AsyncSession, refresh_token: str) -> None:
        """리프레시 토큰을 폐기합니다 (Revoke the refresh token)."""
        await auth_repository.delete_refresh_token(db, refresh_token)

    async def get_me(
        self,
        db: AsyncSession,
        user: User,
    ) -> UserMeResponse:
        """현재 세션 프로필 — 디렉터리 이름/직함 포함.

        Session profile enriched with directory names and title.
        """
        entry: DirectoryEntry | None = await directory_repository.find_by_login(db, user.user_id)
        return UserMeResponse(
            user_id=user.user_id,
            username=user.username,
            email=user.email,
            role=user.role,
            department=user.department,
            site_id=user.site_id,
            orgcode3=user.orgcode3,
            emp_code=entry.emp_code if entry else None,
            full_name_eng=entry.full_name_eng if entry else None,
            full_name_thai=entry.full_name_thai if entry else None,
            position_title=entry.position_title if entry else None,
            cost_center_name=entry.cost_center_name if entry else None,
            permissions=sorted(p.value for p in get_role_permissions(user.role)),
        )


# 싱글턴 인스턴스 — Singleton instance
auth_service: AuthService = AuthService()
