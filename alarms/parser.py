from __future__ import annotations

import re
from dataclasses import dataclass
from typing import FrozenSet, Optional, Tuple

from time_utils import WEEKDAY_CODES

from .sounds import SOUND_PROFILES

DAY_GROUPS = {
    "daily": frozenset(range(1, 8)),
    "weekdays": frozenset({2, 3, 4, 5, 6}),
    "weekends": frozenset({1, 7}),
}

TIME_RE = re.compile(r"^(\d{1,2})(?::(\d{2}))?\s*(am|pm)?\b")
DAYS_RE = re.compile(r"\b(?:every|on)\s+([a-z,\s]+?)(?=\s+(?:auto|sound|nosnooze)\b|$)")
AUTO_RE = re.compile(r"\bauto\s+(\d+)\s*s?\b")
SOUND_RE = re.compile(r"\bsound\s+(\w+)")
LABEL_RE = re.compile(r"\blabel\s+(.+)$", re.IGNORECASE)


@dataclass
class AlarmCommand:
    action: str
    hour: Optional[int] = None
    minute: Optional[int] = None
    repeat_days: FrozenSet[int] = frozenset()
    label: Optional[str] = None
    auto_stop_seconds: Optional[int] = None
    snooze_enabled: bool = True
    sound: Optional[str] = None
    index: Optional[int] = None
    error: Optional[str] = None
    raw_text: str = ""


def parse_alarm_request(text: str) -> Optional[AlarmCommand]:
    """Parse a console command such as ``add 7:30 am every mon,fri label Gym``."""

    cleaned = text.strip()
    lower = cleaned.lower()
    if not lower:
        return None
    verb, _, rest = lower.partition(" ")
    rest = rest.strip()

    if verb in ("stop", "off"):
        return AlarmCommand(action="stop", raw_text=cleaned)
    if verb == "snooze":
        return AlarmCommand(action="snooze", raw_text=cleaned)
    if verb in ("list", "ls"):
        return AlarmCommand(action="list", raw_text=cleaned)
    if verb == "next":
        return AlarmCommand(action="next", raw_text=cleaned)
    if verb == "sounds":
        return AlarmCommand(action="sounds", raw_text=cleaned)

    if verb in ("remove", "delete", "rm", "toggle"):
        action = "toggle" if verb == "toggle" else "remove"
        index = _extract_index(rest)
        if index is None:
            return AlarmCommand(action="unknown", error=f"Which alarm? Try '{verb} 1'.", raw_text=cleaned)
        return AlarmCommand(action=action, index=index, raw_text=cleaned)

    if verb == "preview":
        sound = _match_sound(rest)
        if sound is None:
            return AlarmCommand(action="unknown", error=f"Unknown sound '{rest}'.", raw_text=cleaned)
        return AlarmCommand(action="preview", sound=sound, raw_text=cleaned)

    if verb == "add":
        return _parse_add(cleaned, rest)

    return None


def _parse_add(cleaned: str, rest: str) -> AlarmCommand:
    label_match = LABEL_RE.search(cleaned)
    label = label_match.group(1).strip() if label_match else None
    options = LABEL_RE.sub("", rest).strip()

    parsed_time = _extract_time(options)
    if parsed_time is None:
        return AlarmCommand(action="unknown", error="Could not understand the alarm time, try 'add 7:30'.", raw_text=cleaned)
    hour, minute = parsed_time

    repeat_days = _extract_days(options)
    if repeat_days is None:
        return AlarmCommand(action="unknown", error="Could not understand the repeat days.", raw_text=cleaned)

    auto_match = AUTO_RE.search(options)
    auto_stop_seconds = int(auto_match.group(1)) if auto_match else None
    if auto_stop_seconds == 0:
        return AlarmCommand(action="unknown", error="Auto-stop needs at least one second.", raw_text=cleaned)

    sound = None
    sound_match = SOUND_RE.search(options)
    if sound_match:
        sound = _match_sound(sound_match.group(1))
        if sound is None:
            return AlarmCommand(action="unknown", error=f"Unknown sound '{sound_match.group(1)}'.", raw_text=cleaned)

    return AlarmCommand(
        action="add",
        hour=hour,
        minute=minute,
        repeat_days=repeat_days,
        label=label,
        auto_stop_seconds=auto_stop_seconds,
        snooze_enabled="nosnooze" not in options,
        sound=sound,
        raw_text=cleaned,
    )


def _extract_time(text: str) -> Optional[Tuple[int, int]]:
    match = TIME_RE.match(text)
    if not match:
        return None
    hour = int(match.group(1))
    minute = int(match.group(2)) if match.group(2) else 0
    qualifier = match.group(3)
    if qualifier and not 1 <= hour <= 12:
        return None
    hour = _adjust_hour(hour, qualifier)
    if not 0 <= hour <= 23 or not 0 <= minute <= 59:
        return None
    return hour, minute


def _adjust_hour(hour: int, qualifier: Optional[str]) -> int:
    if qualifier == "am":
        return 0 if hour == 12 else hour
    if qualifier == "pm":
        return hour if hour == 12 else hour + 12
    return hour


def _extract_days(text: str) -> Optional[FrozenSet[int]]:
    for word, days in DAY_GROUPS.items():
        if re.search(rf"\b{word}\b", text):
            return days
    match = DAYS_RE.search(text)
    if not match:
        return frozenset()
    days = set()
    for token in re.split(r"[,\s]+", match.group(1).strip()):
        if not token:
            continue
        code = WEEKDAY_CODES.get(token[:3])
        if code is None:
            return None
        days.add(code)
    return frozenset(days)


def _extract_index(text: str) -> Optional[int]:
    match = re.search(r"(\d+)", text)
    if match:
        return int(match.group(1))
    return None


def _match_sound(text: str) -> Optional[str]:
    wanted = text.strip().lower()
    for name in SOUND_PROFILES:
        if name.lower() == wanted:
            return name
    return None
