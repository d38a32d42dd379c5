"""시간대 유틸리티.

All timestamps are stored in UTC. Conversion to the portal's local
timezone happens only when rendering (email bodies, subjects).
"""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from app.config import settings


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """naive datetime은 UTC로 간주합니다 (SQLite returns naive values)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_display(value: datetime | None, fmt: str = "%d/%m/%Y %H:%M") -> str:
    """표시용 시간대로 변환하여 포맷합니다 (Format in DISPLAY_TIMEZONE)."""
    if value is None:
        return "-"
    return as_utc(value).astimezone(ZoneInfo(settings.DISPLAY_TIMEZONE)).strftime(fmt)


def days_between(start: datetime, end: datetime | None = None) -> int:
    """두 시각 사이의 경과 일수 (Whole days elapsed, never negative)."""
    end = end or utcnow()
    return max((as_utc(end) - as_utc(start)).days, 0)
