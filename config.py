import logging
import logging.handlers
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


def _get_env_bool(name: str, default: bool = False) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    return val.strip() in {"1", "true", "True", "yes", "YES", "y"}


def _get_env_int(name: str, default: int) -> int:
    val = os.getenv(name)
    if val is None or val == "":
        return default
    try:
        return int(val)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be an integer") from exc


def _get_env_float(name: str, default: float) -> float:
    val = os.getenv(name)
    if val is None or val == "":
        return default
    try:
        return float(val)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be a float") from exc


@dataclass
class Config:
    alarms_path: Path
    alarm_sound_path: Optional[Path]
    tick_interval_ms: int
    snooze_minutes: int
    tone_seconds: float
    preview_seconds: float
    output_device_index: Optional[int]
    enable_notifications: bool
    timezone: Optional[str]
    debug: bool
    log_level: str


def load_config(env_path: Optional[Path] = None) -> Config:
    if env_path is None:
        env_path = Path(".env")
    if env_path.exists():
        load_dotenv(env_path)

    alarms_path = Path(os.getenv("ALARM_STORAGE_PATH", "data/alarms.json"))
    sound_env = os.getenv("ALARM_SOUND_PATH")
    alarm_sound_path = Path(sound_env) if sound_env else None
    if alarm_sound_path and not alarm_sound_path.exists():
        logging.warning("ALARM_SOUND_PATH is set but file is missing: %s", alarm_sound_path)
    tick_interval_ms = _get_env_int("ALARM_TICK_INTERVAL_MS", 1000)
    snooze_minutes = _get_env_int("ALARM_SNOOZE_MINUTES", 5)
    if snooze_minutes < 1:
        raise ValueError("ALARM_SNOOZE_MINUTES must be at least 1")
    tone_seconds = _get_env_float("ALARM_TONE_SECONDS", 2.0)
    preview_seconds = _get_env_float("ALARM_PREVIEW_SECONDS", 3.0)
    output_device_env = os.getenv("OUTPUT_DEVICE_INDEX")
    output_device_index = int(output_device_env) if output_device_env else None
    enable_notifications = _get_env_bool("ENABLE_NOTIFICATIONS", True)
    timezone = os.getenv("TIMEZONE") or None
    debug = _get_env_bool("DEBUG", False)
    log_level = "DEBUG" if debug else os.getenv("LOG_LEVEL", "INFO").upper()

    return Config(
        alarms_path=alarms_path,
        alarm_sound_path=alarm_sound_path,
        tick_interval_ms=tick_interval_ms,
        snooze_minutes=snooze_minutes,
        tone_seconds=tone_seconds,
        preview_seconds=preview_seconds,
        output_device_index=output_device_index,
        enable_notifications=enable_notifications,
        timezone=timezone,
        debug=debug,
        log_level=log_level,
    )


def setup_logging(log_level: str = "INFO") -> None:
    logs_dir = Path("logs")
    logs_dir.mkdir(exist_ok=True)

    log_path = logs_dir / "alarm_clock.log"
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    file_handler = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=1_000_000, backupCount=3, encoding="utf-8"
    )
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        handlers=[file_handler, console_handler],
    )
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
