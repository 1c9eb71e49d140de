from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from time_utils import WEEKDAY_NAMES

from .manager import AlarmManager, NotRingingError, SnoozeDisabledError
from .parser import parse_alarm_request
from .sounds import DEFAULT_SOUND, SOUND_PROFILES, AudioPlaybackError
from .storage import AlarmRecord, AutoStop, InvalidAlarmError, ManualStop

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    handled: bool
    response_text: Optional[str] = None
    action: Optional[str] = None


class CommandRouter:
    def __init__(self, alarm_manager: AlarmManager, default_label: str = "Alarm"):
        self.alarm_manager = alarm_manager
        self.default_label = default_label

    def handle_text(self, text: str, now: datetime) -> Optional[CommandResult]:
        parsed = parse_alarm_request(text)
        if not parsed:
            return None
        logger.info("Alarm command: %s", parsed)

        if parsed.action == "unknown":
            return CommandResult(handled=True, response_text=parsed.error, action=parsed.action)

        if parsed.action == "list":
            alarms = self.alarm_manager.list_alarms()
            if not alarms:
                resp = "No alarms yet."
            else:
                resp = "Alarms:\n" + "\n".join(
                    f"{idx}) {describe_alarm(alarm)}" for idx, alarm in enumerate(alarms, start=1)
                )
            return CommandResult(handled=True, response_text=resp, action="list")

        if parsed.action == "next":
            upcoming = self.alarm_manager.next_alarm(now)
            if upcoming is None:
                resp = "No upcoming alarms."
            else:
                alarm, fire_at = upcoming
                resp = f"Next: {alarm.label} {format_alarm_time(fire_at, now)}."
            return CommandResult(handled=True, response_text=resp, action="next")

        if parsed.action == "sounds":
            resp = "Sounds: " + ", ".join(SOUND_PROFILES)
            return CommandResult(handled=True, response_text=resp, action="sounds")

        if parsed.action in ("remove", "toggle"):
            alarm = self._alarm_at(parsed.index)
            if alarm is None:
                return CommandResult(handled=True, response_text="No such alarm.", action=parsed.action)
            if parsed.action == "remove":
                self.alarm_manager.delete_alarm(alarm.id)
                resp = f"Removed the {alarm.time_string} alarm."
            else:
                toggled = self.alarm_manager.toggle_alarm(alarm.id)
                state = "on" if toggled and toggled.enabled else "off"
                resp = f"The {alarm.time_string} alarm is {state}."
            return CommandResult(handled=True, response_text=resp, action=parsed.action)

        if parsed.action == "stop":
            current = self.alarm_manager.stop()
            resp = "Alarm stopped." if current else "Nothing is ringing."
            return CommandResult(handled=True, response_text=resp, action="stop")

        if parsed.action == "snooze":
            try:
                snoozed = self.alarm_manager.snooze(now)
            except NotRingingError:
                resp = "Nothing is ringing, nothing to snooze."
            except SnoozeDisabledError:
                resp = "Snooze is off for this alarm, say 'stop' instead."
            else:
                resp = f"Snoozed until {snoozed.time_string}."
            return CommandResult(handled=True, response_text=resp, action="snooze")

        if parsed.action == "preview":
            try:
                self.alarm_manager.preview_sound(parsed.sound)
            except AudioPlaybackError as exc:
                logger.error("Preview of %s failed: %s", parsed.sound, exc)
                resp = f"Could not play {parsed.sound}: {exc}"
            else:
                resp = f"Playing {parsed.sound}."
            return CommandResult(handled=True, response_text=resp, action="preview")

        if parsed.action == "add":
            try:
                alarm = AlarmRecord.create(
                    parsed.hour,
                    parsed.minute,
                    label=parsed.label or self.default_label,
                    repeat_days=parsed.repeat_days,
                    stop_mode=AutoStop(parsed.auto_stop_seconds) if parsed.auto_stop_seconds else ManualStop(),
                    snooze_enabled=parsed.snooze_enabled,
                    sound=parsed.sound or DEFAULT_SOUND,
                )
            except InvalidAlarmError as exc:
                return CommandResult(handled=True, response_text=str(exc), action="add")
            self.alarm_manager.add_alarm(alarm)
            return CommandResult(handled=True, response_text=f"Alarm set: {describe_alarm(alarm)}.", action="add")

        return CommandResult(handled=True, response_text=None, action=parsed.action)

    def _alarm_at(self, index: Optional[int]) -> Optional[AlarmRecord]:
        alarms = self.alarm_manager.list_alarms()
        if index is None or not 1 <= index <= len(alarms):
            return None
        return alarms[index - 1]


def describe_alarm(alarm: AlarmRecord) -> str:
    days = ",".join(WEEKDAY_NAMES[d] for d in sorted(alarm.repeat_days)) or "once"
    state = "" if alarm.enabled else " (off)"
    return f"{alarm.time_string} {alarm.label} [{days}; {alarm.stop_mode.label}; {alarm.sound}]{state}"


def format_alarm_time(dt: datetime, now: datetime) -> str:
    if dt.date() == now.date():
        day_prefix = "today "
    elif dt.date() == now.date() + timedelta(days=1):
        day_prefix = "tomorrow "
    else:
        day_prefix = dt.strftime("%a %d.%m ")
    return f"{day_prefix}at {dt.strftime('%H:%M')}"
