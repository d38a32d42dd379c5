"""관리자 조회 서비스 — 신청자를 승인 관리자에게 연결.

Manager resolution. Maps a requester to the managers who should receive
their requisition, via the cost center (and org code 3) in the directory
view. When nothing matches, callers get an empty list and skip the
notification; there is no fallback manager.
"""

from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.user import DirectoryEntry
from app.repositories.requisition_repository import requisition_repository
from app.repositories.user_repository import directory_repository, user_repository


def _unique_by_email(entries: list[DirectoryEntry]) -> list[DirectoryEntry]:
    """이메일 기준 중복 제거 — 같은 주소는 첫 행만 (First row per address wins)."""
    seen: set[str] = set()
    unique: list[DirectoryEntry] = []
    for entry in entries:
        email = (entry.email or "").strip()
        if not email or email.lower() in seen:
            continue
        seen.add(email.lower())
        unique.append(entry)
    return unique


class ManagerService:
    """관리자 조회 서비스."""

    async def get_managers(
        self,
        db: AsyncSession,
        requester_id: str,
    ) -> list[DirectoryEntry]:
        """신청자의 코스트센터 관리자 디렉터리 행을 반환합니다.

        Managerial directory rows sharing the requester's cost center, one
        row per email address, in directory order. Empty when the requester
        has no cost center or nobody matches.
        """
        requester: DirectoryEntry | None = await directory_repository.find_by_login(db, requester_id)
        if requester is None or not requester.cost_center_code:
            return []

        managers = await directory_repository.find_managers_by_cost_center(
            db, requester.cost_center_code, settings.MANAGER_TITLE_KEYWORDS
        )
        return _unique_by_email(list(managers))

    async def get_manager_emails(
        self,
        db: AsyncSession,
        requester_id: str,
    ) -> list[str]:
        """신청자의 코스트센터 관리자 이메일을 반환합니다.

        Return the emails of managerial directory rows sharing the
        requester's cost center.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            requester_id: 신청자 AD 로그인 ID 또는 사번 (Login id or employee code)

        Returns:
            list[str]: 중복 제거된 이메일 목록, 없으면 빈 리스트
                       (De-duplicated emails; empty when no cost center or manager)
        """
        return [(entry.email or "").strip() for entry in await self.get_managers(db, requester_id)]

    async def get_managers_by_orgcode3(
        self,
        db: AsyncSession,
        orgcode3: str,
    ) -> list[dict]:
        """조직 코드 3의 관리자 목록 (Managers within an org unit)."""
        entries = await directory_repository.find_by_orgcode3(
            db, orgcode3, settings.MANAGER_TITLE_KEYWORDS
        )
        return [
            {
                "emp_code": e.emp_code,
                "ad_login_name": e.ad_login_name,
                "email": e.email,
                "full_name_eng": e.full_name_eng,
                "full_name_thai": e.full_name_thai,
                "position_title": e.position_title,
                "orgcode3": e.orgcode3,
            }
            for e in entries
        ]

    async def get_user_orgcode3(self, db: AsyncSession, user_id: str) -> str | None:
        """사용자의 조직 코드 3 — 디렉터리 우선, 없으면 users 테이블."""
        entry = await directory_repository.find_by_login(db, user_id)
        if entry is not None and entry.orgcode3:
            return entry.orgcode3
        user = await user_repository.get_by_id(db, user_id)
        return user.orgcode3 if user is not None else None

    async def can_user_submit_to_manager(
        self,
        db: AsyncSession,
        user_id: str,
        manager_id: str,
    ) -> bool:
        """두 사용자가 같은 조직 코드 3에 속하는지 확인합니다 (null이면 False)."""
        user_org = await self.get_user_orgcode3(db, user_id)
        manager_org = await self.get_user_orgcode3(db, manager_id)
        return user_org is not None and user_org == manager_org

    async def get_orgcode3_stats(self, db: AsyncSession, orgcode3: str) -> dict:
        """조직 코드 3의 상태별 신청 건수/금액 (Counts and totals per status)."""
        rows = await requisition_repository.stats_by_status(db, orgcode3=orgcode3)
        by_status: dict[str, dict] = {}
        total_count: int = 0
        total_amount: Decimal = Decimal("0")
        for status, count, amount in rows:
            amount_dec = Decimal(str(amount or 0))
            by_status[status] = {"count": count, "total_amount": amount_dec}
            total_count += count
            total_amount += amount_dec
        return {
            "orgcode3": orgcode3,
            "total_requisitions": total_count,
            "total_amount": total_amount,
            "by_status": by_status,
        }


# 싱글턴 인스턴스 — Singleton instance
manager_service: ManagerService = ManagerService()
