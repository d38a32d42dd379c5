"""요청 범위 컨텍스트.

Request-scoped context passed explicitly from the API layer into services,
instead of services reading the session themselves.
"""

from dataclasses import dataclass

from app.utils.permissions import Permission, UserRole, has_permission, parse_role


@dataclass(frozen=True)
class RequestContext:
    """인증된 호출자 정보 (Authenticated caller).

    Attributes:
        user_id: AD 로그인 ID (Directory login id)
        role: 역할 (Role)
        department: 부서 (Department)
        site_id: 사이트 ID (Site id)
        orgcode3: 조직 코드 (Org unit code)
        email: 이메일 (Email)
        username: 표시 이름 (Display name)
    """

    user_id: str
    role: UserRole
    department: str | None = None
    site_id: str | None = None
    orgcode3: str | None = None
    email: str | None = None
    username: str | None = None

    @classmethod
    def from_user(cls, user) -> "RequestContext":
        return cls(
            user_id=user.user_id,
            role=parse_role(user.role) or UserRole.USER,
            department=user.department,
            site_id=user.site_id,
            orgcode3=user.orgcode3,
            email=user.email,
            username=user.username,
        )

    def can(self, permission: Permission) -> bool:
        return has_permission(self.role, permission)
