from __future__ import annotations

import logging
from datetime import datetime, time, timedelta
from typing import Optional

from time_utils import weekday_number

from .storage import AlarmRecord

logger = logging.getLogger(__name__)


def _at(day, alarm: AlarmRecord, tzinfo) -> datetime:
    return datetime.combine(day, time(alarm.hour, alarm.minute), tzinfo=tzinfo)


def next_fire_instant(alarm: AlarmRecord, now: datetime) -> Optional[datetime]:
    """Next wall-clock instant strictly after ``now`` at which ``alarm`` triggers.

    Returns None when no such date can be represented.
    """
    try:
        if not alarm.repeat_days:
            candidate = _at(now.date(), alarm, now.tzinfo)
            if candidate <= now:
                candidate = _at(now.date() + timedelta(days=1), alarm, now.tzinfo)
            return candidate

        today = weekday_number(now)
        nearest: Optional[datetime] = None
        for weekday in alarm.repeat_days:
            days_ahead = (weekday - today) % 7
            candidate = _at(now.date() + timedelta(days=days_ahead), alarm, now.tzinfo)
            if candidate <= now:
                candidate = _at(now.date() + timedelta(days=days_ahead + 7), alarm, now.tzinfo)
            if nearest is None or candidate < nearest:
                nearest = candidate
        return nearest
    except OverflowError:
        logger.warning("No representable next fire instant for alarm %s after %s", alarm.id, now)
        return None
