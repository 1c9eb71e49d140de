from __future__ import annotations

import logging
from datetime import datetime, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)

# 1=Sunday, 2=Monday, ..., 7=Saturday
WEEKDAY_NAMES = {
    1: "sun",
    2: "mon",
    3: "tue",
    4: "wed",
    5: "thu",
    6: "fri",
    7: "sat",
}
WEEKDAY_CODES = {name: code for code, name in WEEKDAY_NAMES.items()}


def resolve_timezone(name: Optional[str]) -> tzinfo:
    if name:
        try:
            return ZoneInfo(name)
        except Exception as exc:  # pragma: no cover - environment-dependent
            logger.warning("Failed to load timezone %s via zoneinfo (%s)", name, exc)
    local_tz = datetime.now().astimezone().tzinfo
    if name:
        logger.warning("Using system local timezone instead: %s", getattr(local_tz, "key", local_tz))
    return local_tz  # type: ignore[return-value]


def now_in_tz(tz) -> datetime:
    if tz:
        return datetime.now(tz)
    return datetime.now().astimezone()


def weekday_number(moment: datetime) -> int:
    """Weekday of ``moment`` in the 1=Sunday ... 7=Saturday encoding."""
    return moment.isoweekday() % 7 + 1


def format_tz_offset(tz) -> str:
    sample = now_in_tz(tz)
    offset = tz.utcoffset(sample) if hasattr(tz, "utcoffset") else None
    if offset is None:
        return ""
    total_minutes = int(offset.total_seconds() // 60)
    sign = "+" if total_minutes >= 0 else "-"
    hours, minutes = divmod(abs(total_minutes), 60)
    return f"{sign}{hours:02d}:{minutes:02d}"
