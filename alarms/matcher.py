from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from time_utils import weekday_number

from .storage import AlarmRecord


def matches(alarm: AlarmRecord, now: datetime) -> bool:
    if not alarm.enabled:
        return False
    if alarm.hour != now.hour or alarm.minute != now.minute:
        return False
    return not alarm.repeat_days or weekday_number(now) in alarm.repeat_days


def should_fire(now: datetime, alarms: Iterable[AlarmRecord], already_ringing: bool) -> Optional[AlarmRecord]:
    """Pick the alarm that must start ringing at ``now``, if any.

    Only the first matching alarm in collection order is returned; others
    due in the same minute are not fired. Nothing fires while a session is
    active or outside second 0 of a minute.
    """
    if already_ringing or now.second != 0:
        return None
    for alarm in alarms:
        if matches(alarm, now):
            return alarm
    return None
