from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from threading import Event, RLock, Thread, Timer
from typing import Callable, List, Optional, Tuple

from time_utils import now_in_tz

from .matcher import should_fire
from .schedule import next_fire_instant
from .sounds import AlarmSoundPlayer, AudioPlaybackError
from .storage import AlarmRecord, AlarmStore, AutoStop

logger = logging.getLogger(__name__)


class SnoozeError(Exception):
    """Snooze was requested in a state that does not allow it."""


class NotRingingError(SnoozeError):
    pass


class SnoozeDisabledError(SnoozeError):
    pass


class SessionState(Enum):
    IDLE = "idle"
    RINGING = "ringing"


@dataclass
class FiringSession:
    alarm: AlarmRecord
    generation: int
    started_at: datetime
    auto_stop_at: Optional[datetime] = None
    audio_source: Optional[str] = None
    audio_error: Optional[Exception] = None
    errors: List[Exception] = field(default_factory=list)


def _daemon_timer(seconds: float, callback: Callable[[], None]) -> Timer:
    timer = Timer(seconds, callback)
    timer.daemon = True
    return timer


class AlarmManager:
    def __init__(
        self,
        store: AlarmStore,
        sound_player: AlarmSoundPlayer,
        notifier=None,
        tick_interval: float = 1.0,
        snooze_minutes: int = 5,
        on_alarm_triggered: Optional[Callable[[FiringSession], None]] = None,
        timezone=None,
        clock: Optional[Callable[[], datetime]] = None,
        timer_factory: Callable[[float, Callable[[], None]], object] = _daemon_timer,
    ):
        self.store = store
        self.sound_player = sound_player
        self.notifier = notifier
        self.tick_interval = max(0.2, tick_interval)
        self.snooze_minutes = max(1, snooze_minutes)
        self.on_alarm_triggered = on_alarm_triggered
        self.tzinfo = timezone
        self.clock = clock or (lambda: now_in_tz(self.tzinfo))
        self.timer_factory = timer_factory

        self._lock = RLock()
        self._session: Optional[FiringSession] = None
        self._generation = 0
        self._auto_stop_timer = None
        self._last_tick: Optional[datetime] = None
        self._last_fired_minute: Optional[datetime] = None
        self._stop_event = Event()
        self._thread: Optional[Thread] = None

    # lifecycle

    def start(self) -> None:
        if self.notifier is not None:
            self.notifier.start()
            now = self.clock()
            for alarm in self.store.list():
                if alarm.enabled:
                    self._schedule_notification(alarm, now)
        self._stop_event.clear()
        self._thread = Thread(target=self._loop, name="alarm-tick", daemon=True)
        self._thread.start()
        logger.info("Alarm manager started (tick=%.1fs, %s alarms)", self.tick_interval, len(self.store.list()))

    def shutdown(self) -> None:
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=2)
        self._thread = None
        self.stop()
        if self.notifier is not None:
            self.notifier.shutdown()

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception:
                logger.error("Alarm tick failed", exc_info=True)
            self._stop_event.wait(self.tick_interval)

    # firing session

    @property
    def state(self) -> SessionState:
        with self._lock:
            return SessionState.RINGING if self._session else SessionState.IDLE

    @property
    def is_ringing(self) -> bool:
        return self.state is SessionState.RINGING

    @property
    def session(self) -> Optional[FiringSession]:
        with self._lock:
            return self._session

    def tick(self, now: Optional[datetime] = None) -> Optional[FiringSession]:
        """Evaluate one clock reading.

        A repeat of the last whole second is ignored, and a minute that has
        already fired never fires again. Any other reading is evaluated, so a
        clock set backwards keeps ringing alarms from the new time on.
        """
        now = (now or self.clock()).replace(microsecond=0)
        with self._lock:
            if now == self._last_tick:
                return None
            if self._last_tick is not None and now < self._last_tick:
                logger.warning("Clock moved back from %s to %s", self._last_tick, now)
            self._last_tick = now
            minute = now.replace(second=0)
            if minute == self._last_fired_minute:
                return None
            due = should_fire(now, self.store.list(), already_ringing=self._session is not None)
            if due is None:
                return None
            session = self.fire(due, now)
            if session is not None:
                self._last_fired_minute = minute
            return session

    def fire(self, alarm: AlarmRecord, now: Optional[datetime] = None) -> Optional[FiringSession]:
        now = now or self.clock()
        with self._lock:
            if self._session is not None:
                logger.info("Alarm %s not fired: %s is already ringing", alarm.id, self._session.alarm.id)
                return None
            self._generation += 1
            session = FiringSession(alarm=alarm, generation=self._generation, started_at=now)
            self._session = session
            logger.info("Alarm %s ringing (%s, label=%s)", alarm.id, alarm.time_string, alarm.label)

            try:
                session.audio_source = self.sound_player.start_loop(alarm.sound)
            except AudioPlaybackError as exc:
                session.audio_error = exc
                logger.error("Alarm %s is ringing without sound: %s", alarm.id, exc)

            if isinstance(alarm.stop_mode, AutoStop):
                seconds = alarm.stop_mode.seconds
                session.auto_stop_at = now + timedelta(seconds=seconds)
                generation = session.generation
                self._auto_stop_timer = self.timer_factory(seconds, lambda: self._auto_stop(generation))
                self._auto_stop_timer.start()

            if alarm.is_one_shot:
                try:
                    self.store.set_enabled(alarm.id, False)
                except Exception as exc:
                    session.errors.append(exc)
                    logger.error("Failed to disable one-shot alarm %s", alarm.id, exc_info=True)
                self._cancel_notification(alarm.id, session)
            else:
                # move the backstop past the occurrence that is ringing now
                self._schedule_notification(alarm, now, session)

        if self.on_alarm_triggered:
            try:
                self.on_alarm_triggered(session)
            except Exception:  # pragma: no cover - callback safety
                logger.error("on_alarm_triggered callback failed", exc_info=True)
        return session

    def stop(self) -> Optional[AlarmRecord]:
        with self._lock:
            session = self._session
            if session is None:
                return None
            if self._auto_stop_timer is not None:
                self._auto_stop_timer.cancel()
                self._auto_stop_timer = None
            self._session = None
            try:
                self.sound_player.stop_loop()
            except Exception:
                logger.error("Failed to stop alarm sound", exc_info=True)
            logger.info("Alarm %s stopped", session.alarm.id)
            return session.alarm

    def snooze(self, now: Optional[datetime] = None) -> AlarmRecord:
        now = now or self.clock()
        with self._lock:
            session = self._session
            if session is None:
                raise NotRingingError("No alarm is ringing")
            if not session.alarm.snooze_enabled:
                raise SnoozeDisabledError(f"Alarm {session.alarm.id} does not allow snooze")
            self.stop()
            wake_at = now + timedelta(minutes=self.snooze_minutes)
            snoozed = session.alarm.snoozed(wake_at.hour, wake_at.minute)
            logger.info("Alarm %s snoozed until %s as %s", session.alarm.id, snoozed.time_string, snoozed.id)
            return self.add_alarm(snoozed)

    def _auto_stop(self, generation: int) -> None:
        with self._lock:
            session = self._session
            if session is None or session.generation != generation:
                logger.debug("Ignoring stale auto-stop timer (generation=%s)", generation)
                return
            logger.info("Alarm %s auto-stopped", session.alarm.id)
            self._auto_stop_timer = None
            self.stop()

    # alarm collection

    def list_alarms(self) -> List[AlarmRecord]:
        return self.store.list()

    def get_alarm(self, alarm_id: str) -> Optional[AlarmRecord]:
        return self.store.get(alarm_id)

    def add_alarm(self, alarm: AlarmRecord) -> AlarmRecord:
        with self._lock:
            if self.store.get(alarm.id) is not None:
                raise ValueError(f"Alarm {alarm.id} already exists")
            self.store.upsert(alarm)
        logger.info("Alarm %s added for %s (label=%s)", alarm.id, alarm.time_string, alarm.label)
        if alarm.enabled:
            self._schedule_notification(alarm, self.clock())
        return alarm

    def update_alarm(self, alarm: AlarmRecord) -> Optional[AlarmRecord]:
        with self._lock:
            if self.store.get(alarm.id) is None:
                return None
            self.store.upsert(alarm)
        self._cancel_notification(alarm.id)
        if alarm.enabled:
            self._schedule_notification(alarm, self.clock())
        logger.info("Alarm %s updated", alarm.id)
        return alarm

    def delete_alarm(self, alarm_id: str) -> Optional[AlarmRecord]:
        self._cancel_notification(alarm_id)
        with self._lock:
            removed = self.store.remove(alarm_id)
        if removed:
            logger.info("Alarm %s deleted", alarm_id)
        return removed

    def toggle_alarm(self, alarm_id: str) -> Optional[AlarmRecord]:
        with self._lock:
            current = self.store.get(alarm_id)
            if current is None:
                return None
            updated = self.store.set_enabled(alarm_id, not current.enabled)
        if updated is None:
            return None
        if updated.enabled:
            self._schedule_notification(updated, self.clock())
        else:
            self._cancel_notification(alarm_id)
        return updated

    def next_alarm(self, now: Optional[datetime] = None) -> Optional[Tuple[AlarmRecord, datetime]]:
        now = now or self.clock()
        upcoming = []
        for alarm in self.store.list():
            if not alarm.enabled:
                continue
            fire_at = next_fire_instant(alarm, now)
            if fire_at is not None:
                upcoming.append((fire_at, alarm))
        if not upcoming:
            return None
        fire_at, alarm = min(upcoming, key=lambda item: item[0])
        return alarm, fire_at

    # sound preview

    def preview_sound(self, sound: str) -> None:
        """Play a short non-looping sample; it takes the audio sink from anyone holding it."""
        with self._lock:
            if self._session is not None:
                logger.warning("Preview of %s silences ringing alarm %s", sound, self._session.alarm.id)
            self.sound_player.preview(sound)

    def stop_preview(self) -> bool:
        with self._lock:
            return self.sound_player.stop_preview()

    # notifications

    def _schedule_notification(
        self, alarm: AlarmRecord, now: datetime, session: Optional[FiringSession] = None
    ) -> None:
        if self.notifier is None:
            return
        fire_at = next_fire_instant(alarm, now)
        if fire_at is None:
            return
        try:
            self.notifier.schedule(alarm, fire_at)
        except Exception as exc:
            if session is not None:
                session.errors.append(exc)
            logger.error("Failed to schedule notification for %s", alarm.id, exc_info=True)

    def _cancel_notification(self, alarm_id: str, session: Optional[FiringSession] = None) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier.cancel(alarm_id)
        except Exception as exc:
            if session is not None:
                session.errors.append(exc)
            logger.error("Failed to cancel notification for %s", alarm_id, exc_info=True)
