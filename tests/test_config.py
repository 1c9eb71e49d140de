from pathlib import Path

import pytest

from config import load_config

ENV_KEYS = (
    "ALARM_STORAGE_PATH",
    "ALARM_SOUND_PATH",
    "ALARM_TICK_INTERVAL_MS",
    "ALARM_SNOOZE_MINUTES",
    "ALARM_TONE_SECONDS",
    "ENABLE_NOTIFICATIONS",
    "TIMEZONE",
    "LOG_LEVEL",
    "DEBUG",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults(tmp_path):
    config = load_config(tmp_path / "missing.env")
    assert config.alarms_path == Path("data/alarms.json")
    assert config.alarm_sound_path is None
    assert config.tick_interval_ms == 1000
    assert config.snooze_minutes == 5
    assert config.tone_seconds == 2.0
    assert config.enable_notifications is True
    assert config.log_level == "INFO"


def test_reads_env_file(tmp_path):
    env = tmp_path / ".env"
    env.write_text(
        "ALARM_STORAGE_PATH=/tmp/alarms.json\nALARM_SNOOZE_MINUTES=9\nENABLE_NOTIFICATIONS=no\nDEBUG=1\n",
        encoding="utf-8",
    )
    config = load_config(env)
    assert config.alarms_path == Path("/tmp/alarms.json")
    assert config.snooze_minutes == 9
    assert config.enable_notifications is False
    assert config.log_level == "DEBUG"


def test_invalid_numbers_are_rejected(tmp_path, monkeypatch):
    monkeypatch.setenv("ALARM_TICK_INTERVAL_MS", "fast")
    with pytest.raises(ValueError, match="ALARM_TICK_INTERVAL_MS"):
        load_config(tmp_path / "missing.env")
    monkeypatch.setenv("ALARM_TICK_INTERVAL_MS", "500")
    monkeypatch.setenv("ALARM_SNOOZE_MINUTES", "0")
    with pytest.raises(ValueError):
        load_config(tmp_path / "missing.env")
