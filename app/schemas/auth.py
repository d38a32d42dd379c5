"""인증 관련 Pydantic 요청/응답 스키마 정의.

Authentication request/response schemas: LDAP login, token issuance and
refresh, and the current session profile.
"""

from pydantic import BaseModel


class LoginRequest(BaseModel):
    """LDAP 로그인 요청 스키마.

    Attributes:
        username: AD 로그인 ID, 도메인 제외 (sAMAccountName without domain)
        password: 비밀번호 (Verified by LDAP bind, never stored)
    """

    username: str
    password: str


class TokenResponse(BaseModel):
    """JWT 토큰 발급 응답 스키마."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class RefreshRequest(BaseModel):
    refresh_token: str


class UserMeResponse(BaseModel):
    """현재 세션 프로필 (GET /auth/me).

    Session profile: role, department and site plus directory-derived names.
    """

    user_id: str
    username: str
    email: str | None = None
    role: str
    department: str | None = None
    site_id: str | None = None
    orgcode3: str | None = None
    emp_code: str | None = None
    full_name_eng: str | None = None
    full_name_thai: str | None = None
    position_title: str | None = None
    cost_center_name: str | None = None
    permissions: list[str] = []
