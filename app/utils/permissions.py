"""역할 및 권한 정적 테이블.

Static role → permission table. A capability check is a plain lookup in
ROLE_PERMISSIONS; there is no delegation, per-resource ACL or expiry.

Role hierarchy (낮은 순 → 높은 순, lowest to highest):
    USER < MANAGER < ADMIN < SUPER_ADMIN < DEV
"""

from enum import Enum


class UserRole(str, Enum):
    """사용자 역할 (User roles)."""

    USER = "USER"
    MANAGER = "MANAGER"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"
    DEV = "DEV"


class Permission(str, Enum):
    """권한 코드 (Permission codes)."""

    # 신청서 — Requisitions
    CREATE_REQUISITION = "CREATE_REQUISITION"
    VIEW_REQUISITION = "VIEW_REQUISITION"
    EDIT_REQUISITION = "EDIT_REQUISITION"
    DELETE_REQUISITION = "DELETE_REQUISITION"
    APPROVE_REQUISITION = "APPROVE_REQUISITION"
    REJECT_REQUISITION = "REJECT_REQUISITION"
    VIEW_APPROVAL_HISTORY = "VIEW_APPROVAL_HISTORY"

    # 사용자 — Users
    VIEW_USERS = "VIEW_USERS"
    CREATE_USER = "CREATE_USER"
    EDIT_USER = "EDIT_USER"
    DELETE_USER = "DELETE_USER"
    ASSIGN_ROLE = "ASSIGN_ROLE"

    # 상품 — Products
    VIEW_PRODUCTS = "VIEW_PRODUCTS"
    CREATE_PRODUCT = "CREATE_PRODUCT"
    EDIT_PRODUCT = "EDIT_PRODUCT"
    DELETE_PRODUCT = "DELETE_PRODUCT"

    # 보고서 — Reports
    VIEW_REPORTS = "VIEW_REPORTS"
    GENERATE_REPORTS = "GENERATE_REPORTS"
    EXPORT_DATA = "EXPORT_DATA"

    # 시스템 — System
    VIEW_SYSTEM_LOGS = "VIEW_SYSTEM_LOGS"
    MANAGE_SETTINGS = "MANAGE_SETTINGS"

    # 부서 — Departments
    VIEW_DEPARTMENTS = "VIEW_DEPARTMENTS"
    MANAGE_DEPARTMENTS = "MANAGE_DEPARTMENTS"


_USER_PERMISSIONS: frozenset[Permission] = frozenset({
    Permission.CREATE_REQUISITION,
    Permission.VIEW_REQUISITION,
    Permission.VIEW_PRODUCTS,
    Permission.VIEW_REPORTS,
})

_MANAGER_PERMISSIONS: frozenset[Permission] = _USER_PERMISSIONS | {
    Permission.EDIT_REQUISITION,
    Permission.APPROVE_REQUISITION,
    Permission.REJECT_REQUISITION,
    Permission.VIEW_APPROVAL_HISTORY,
    Permission.VIEW_USERS,
    Permission.EDIT_USER,
    Permission.GENERATE_REPORTS,
    Permission.EXPORT_DATA,
    Permission.VIEW_DEPARTMENTS,
}

# ADMIN은 DELETE_USER를 갖지 않음 — ADMIN does not hold DELETE_USER
_ADMIN_PERMISSIONS: frozenset[Permission] = _MANAGER_PERMISSIONS | {
    Permission.DELETE_REQUISITION,
    Permission.CREATE_USER,
    Permission.ASSIGN_ROLE,
    Permission.CREATE_PRODUCT,
    Permission.EDIT_PRODUCT,
    Permission.DELETE_PRODUCT,
    Permission.VIEW_SYSTEM_LOGS,
    Permission.MANAGE_SETTINGS,
    Permission.MANAGE_DEPARTMENTS,
}

ROLE_PERMISSIONS: dict[UserRole, frozenset[Permission]] = {
    UserRole.USER: _USER_PERMISSIONS,
    UserRole.MANAGER: _MANAGER_PERMISSIONS,
    UserRole.ADMIN: _ADMIN_PERMISSIONS,
    UserRole.SUPER_ADMIN: frozenset(Permission),
    UserRole.DEV: frozenset(Permission),
}

# 역할 순위 — 역할 부여 시 상한 비교에 사용 (Rank used to cap role assignment)
ROLE_RANK: dict[UserRole, int] = {
    UserRole.USER: 1,
    UserRole.MANAGER: 2,
    UserRole.ADMIN: 3,
    UserRole.SUPER_ADMIN: 4,
    UserRole.DEV: 5,
}


def parse_role(role: str | UserRole | None) -> UserRole | None:
    """문자열을 역할로 변환합니다. 알 수 없는 값이면 None."""
    if role is None:
        return None
    try:
        return UserRole(str(role.value if isinstance(role, UserRole) else role).upper())
    except ValueError:
        return None


def get_role_permissions(role: str | UserRole | None) -> frozenset[Permission]:
    """역할의 권한 집합을 반환합니다. 알 수 없는 역할은 빈 집합."""
    parsed: UserRole | None = parse_role(role)
    if parsed is None:
        return frozenset()
    return ROLE_PERMISSIONS[parsed]


def has_permission(role: str | UserRole | None, permission: Permission | str) -> bool:
    """역할이 권한을 가지는지 확인합니다.

    Check whether a role holds a permission.

    Args:
        role: 역할 이름 또는 UserRole (Role name or enum)
        permission: 권한 코드 (Permission code)

    Returns:
        bool: 보유 여부. 알 수 없는 역할/권한이면 False
              (False for unknown roles or permissions)
    """
    try:
        perm = Permission(permission)
    except ValueError:
        return False
    return perm in get_role_permissions(role)
