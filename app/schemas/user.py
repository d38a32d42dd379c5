"""사용자/역할 관련 Pydantic 요청/응답 스키마 정의.

User and role request/response schemas.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    username: str
    email: str | None = None
    role: str
    department: str | None = None
    site_id: str | None = None
    orgcode3: str | None = None
    created_at: datetime


class DirectoryProfileResponse(BaseModel):
    """디렉터리 프로필 (Directory profile merged with the users row)."""

    user_id: str
    role: str | None = None
    email: str | None = None
    emp_code: str | None = None
    full_name_eng: str | None = None
    full_name_thai: str | None = None
    position_title: str | None = None
    cost_center_code: str | None = None
    cost_center_name: str | None = None
    orgcode3: str | None = None
    site_id: str | None = None


class RoleAssignRequest(BaseModel):
    """역할 변경 요청 (Role assignment request)."""

    role: str


class RoleResponse(BaseModel):
    """역할과 권한 목록 (Role with its permission codes)."""

    name: str
    rank: int
    permissions: list[str]


class PermissionCheckResponse(BaseModel):
    role: str
    permission: str
    allowed: bool
