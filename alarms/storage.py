from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field, replace
from pathlib import Path
from threading import Lock
from typing import FrozenSet, List, Optional, Union

from .sounds import DEFAULT_SOUND, SOUND_PROFILES

logger = logging.getLogger(__name__)

DEFAULT_LABEL = "Alarm"
SNOOZE_SUFFIX = " (Snooze)"


class InvalidAlarmError(ValueError):
    """Raised when an alarm record would violate its field constraints."""


@dataclass(frozen=True)
class ManualStop:
    @property
    def label(self) -> str:
        return "Until turned off"

    def to_dict(self) -> dict:
        return {"mode": "manual"}


@dataclass(frozen=True)
class AutoStop:
    seconds: int

    def __post_init__(self) -> None:
        if isinstance(self.seconds, bool) or not isinstance(self.seconds, int) or self.seconds <= 0:
            raise InvalidAlarmError(f"Auto-stop duration must be a positive number of seconds, got {self.seconds!r}")

    @property
    def label(self) -> str:
        return f"Auto-stop after {self.seconds}s"

    def to_dict(self) -> dict:
        return {"mode": "automatic", "seconds": self.seconds}


StopMode = Union[ManualStop, AutoStop]


def stop_mode_from_dict(data: Optional[dict]) -> StopMode:
    if not data or data.get("mode", "manual") == "manual":
        return ManualStop()
    if data.get("mode") == "automatic":
        return AutoStop(int(data.get("seconds", 0)))
    raise InvalidAlarmError(f"Unknown stop mode: {data.get('mode')!r}")


def new_alarm_id() -> str:
    return f"al_{uuid.uuid4().hex[:8]}"


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class AlarmRecord:
    id: str
    hour: int
    minute: int
    enabled: bool = True
    label: str = DEFAULT_LABEL
    stop_mode: StopMode = field(default_factory=ManualStop)
    repeat_days: FrozenSet[int] = frozenset()
    snooze_enabled: bool = True
    sound: str = DEFAULT_SOUND

    def __post_init__(self) -> None:
        if not self.id:
            raise InvalidAlarmError("Alarm id must not be empty")
        if not _is_int(self.hour) or not 0 <= self.hour <= 23:
            raise InvalidAlarmError(f"Hour must be in 0..23, got {self.hour!r}")
        if not _is_int(self.minute) or not 0 <= self.minute <= 59:
            raise InvalidAlarmError(f"Minute must be in 0..59, got {self.minute!r}")
        days = frozenset(self.repeat_days)
        for day in days:
            if not _is_int(day) or not 1 <= day <= 7:
                raise InvalidAlarmError(f"Weekday must be in 1..7 (1=Sunday), got {day!r}")
        object.__setattr__(self, "repeat_days", days)
        if not isinstance(self.stop_mode, (ManualStop, AutoStop)):
            raise InvalidAlarmError(f"Unsupported stop mode: {self.stop_mode!r}")
        if self.sound not in SOUND_PROFILES:
            raise InvalidAlarmError(f"Unknown sound profile: {self.sound!r}")

    @classmethod
    def create(cls, hour: int, minute: int, **fields) -> "AlarmRecord":
        return cls(id=new_alarm_id(), hour=hour, minute=minute, **fields)

    @property
    def is_one_shot(self) -> bool:
        return not self.repeat_days

    @property
    def time_string(self) -> str:
        display_hour = 12 if self.hour % 12 == 0 else self.hour % 12
        suffix = "AM" if self.hour < 12 else "PM"
        return f"{display_hour}:{self.minute:02d} {suffix}"

    def updated(self, **changes) -> "AlarmRecord":
        """Return a validated copy with ``changes`` applied."""
        return replace(self, **changes)

    def snoozed(self, hour: int, minute: int) -> "AlarmRecord":
        return replace(
            self,
            id=new_alarm_id(),
            hour=hour,
            minute=minute,
            enabled=True,
            repeat_days=frozenset(),
            label=f"{self.label}{SNOOZE_SUFFIX}",
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "hour": self.hour,
            "minute": self.minute,
            "enabled": self.enabled,
            "label": self.label,
            "stop_mode": self.stop_mode.to_dict(),
            "repeat_days": sorted(self.repeat_days),
            "snooze_enabled": self.snooze_enabled,
            "sound": self.sound,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AlarmRecord":
        if "hour" not in data or "minute" not in data:
            raise InvalidAlarmError("Alarm payload missing hour/minute fields")
        return cls(
            id=str(data.get("id") or new_alarm_id()),
            hour=data["hour"],
            minute=data["minute"],
            enabled=bool(data.get("enabled", True)),
            label=str(data.get("label") or DEFAULT_LABEL),
            stop_mode=stop_mode_from_dict(data.get("stop_mode")),
            repeat_days=frozenset(data.get("repeat_days") or ()),
            snooze_enabled=bool(data.get("snooze_enabled", True)),
            sound=str(data.get("sound") or DEFAULT_SOUND),
        )


def load_alarms(path: Path) -> List[AlarmRecord]:
    if not path.exists():
        return []
    try:
        with path.open("r", encoding="utf-8") as f:
            payload = json.load(f)
    except Exception as exc:  # pragma: no cover - corrupted file
        logger.error("Failed to load alarms from %s: %s", path, exc)
        return []
    alarms: List[AlarmRecord] = []
    seen = set()
    for item in payload or []:
        try:
            alarm = AlarmRecord.from_dict(item)
        except Exception as exc:
            logger.warning("Skipping alarm item due to parse error: %s", exc)
            continue
        if alarm.id in seen:
            logger.warning("Skipping alarm item with duplicate id %s", alarm.id)
            continue
        seen.add(alarm.id)
        alarms.append(alarm)
    return alarms


def save_alarms(path: Path, alarms: List[AlarmRecord]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    serializable = [a.to_dict() for a in alarms]
    with path.open("w", encoding="utf-8") as f:
        json.dump(serializable, f, ensure_ascii=False, indent=2)


class AlarmStore:
    """Ordered alarm collection persisted to a JSON file after every mutation."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = Lock()
        self._alarms: List[AlarmRecord] = load_alarms(self.path)
        logger.info("Loaded %s alarms from %s", len(self._alarms), self.path)

    def list(self) -> List[AlarmRecord]:
        with self._lock:
            return list(self._alarms)

    def get(self, alarm_id: str) -> Optional[AlarmRecord]:
        with self._lock:
            return next((a for a in self._alarms if a.id == alarm_id), None)

    def upsert(self, alarm: AlarmRecord) -> None:
        with self._lock:
            for index, existing in enumerate(self._alarms):
                if existing.id == alarm.id:
                    self._alarms[index] = alarm
                    break
            else:
                self._alarms.append(alarm)
            save_alarms(self.path, self._alarms)

    def remove(self, alarm_id: str) -> Optional[AlarmRecord]:
        with self._lock:
            removed = next((a for a in self._alarms if a.id == alarm_id), None)
            if removed is None:
                return None
            self._alarms = [a for a in self._alarms if a.id != alarm_id]
            save_alarms(self.path, self._alarms)
            return removed

    def set_enabled(self, alarm_id: str, enabled: bool) -> Optional[AlarmRecord]:
        with self._lock:
            for index, existing in enumerate(self._alarms):
                if existing.id == alarm_id:
                    updated = existing.updated(enabled=enabled)
                    self._alarms[index] = updated
                    save_alarms(self.path, self._alarms)
                    return updated
        return None
