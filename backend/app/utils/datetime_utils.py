"""
IRDesk Platform - 时间工具
统一UTC时间处理与ISO格式输出
"""

from datetime import date, datetime, timezone
from typing import Optional, Union


def utcnow() -> datetime:
    """当前UTC时间(带时区)"""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """将时间统一为带时区的UTC时间; 无时区的值视为UTC"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_iso(value: Optional[Union[datetime, date]]) -> Optional[str]:
    """输出ISO-8601字符串, UTC时间以Z结尾"""
    if value is None:
        return None
    if isinstance(value, datetime):
        value = ensure_utc(value)
        return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return value.isoformat()


def month_start(value: Optional[datetime] = None) -> datetime:
    """所在月份的第一天零点(UTC)"""
    value = ensure_utc(value or utcnow())
    return value.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
