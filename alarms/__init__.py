"""Alarm scheduling and firing engine."""

from .manager import AlarmManager, FiringSession, SessionState
from .storage import AlarmRecord, AlarmStore, AutoStop, ManualStop
