"""Deferred alarm notifications backed by APScheduler date jobs."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger

from time_utils import now_in_tz

from .schedule import next_fire_instant
from .storage import AlarmRecord

logger = logging.getLogger(__name__)


@dataclass
class Notification:
    alarm_id: str
    title: str
    body: str


def build_notification(alarm: AlarmRecord) -> Notification:
    return Notification(alarm_id=alarm.id, title=alarm.label, body=f"Alarm - {alarm.time_string}")


def log_notification(notification: Notification) -> None:
    logger.warning("Alarm notification: %s (%s)", notification.title, notification.body)


class NotificationScheduler:
    """Keeps one pending notification per alarm id.

    This is a backstop for when the tick loop is not running; the in-process
    matcher stays authoritative while it is.
    """

    def __init__(
        self,
        deliver: Callable[[Notification], None] = log_notification,
        timezone=None,
        scheduler: Optional[BackgroundScheduler] = None,
    ):
        self.deliver = deliver
        self.tzinfo = timezone
        if scheduler is None:
            scheduler = BackgroundScheduler(timezone=timezone) if timezone else BackgroundScheduler()
        self._scheduler = scheduler

    def start(self) -> None:
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info("Notification scheduler started")

    def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Notification scheduler stopped")

    def schedule(self, alarm: AlarmRecord, fire_at: datetime) -> None:
        # pending jobs of a stopped scheduler are not replaced by id
        self._remove_job(alarm.id)
        self._scheduler.add_job(
            self._deliver,
            trigger=DateTrigger(run_date=fire_at),
            args=(alarm,),
            id=alarm.id,
            name=alarm.label,
            replace_existing=True,
            misfire_grace_time=60,
        )
        logger.info("Notification for %s scheduled at %s", alarm.id, fire_at.isoformat())

    def cancel(self, alarm_id: str) -> bool:
        if not self._remove_job(alarm_id):
            return False
        logger.info("Notification for %s cancelled", alarm_id)
        return True

    def scheduled_for(self, alarm_id: str) -> Optional[datetime]:
        job = self._scheduler.get_job(alarm_id)
        if job is None:
            return None
        return getattr(job, "next_run_time", None) or job.trigger.run_date

    def _remove_job(self, alarm_id: str) -> bool:
        try:
            self._scheduler.remove_job(alarm_id)
        except JobLookupError:
            return False
        return True

    def _deliver(self, alarm: AlarmRecord) -> None:
        try:
            self.deliver(build_notification(alarm))
        except Exception:
            logger.error("Notification delivery failed for %s", alarm.id, exc_info=True)
        if alarm.repeat_days:
            fire_at = next_fire_instant(alarm, now_in_tz(self.tzinfo))
            if fire_at is not None:
                self.schedule(alarm, fire_at)
