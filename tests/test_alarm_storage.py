import json

import pytest

from alarms.storage import (
    AlarmRecord,
    AlarmStore,
    AutoStop,
    InvalidAlarmError,
    ManualStop,
    load_alarms,
)


def _alarm(alarm_id="al_1", **fields):
    return AlarmRecord(id=alarm_id, hour=fields.pop("hour", 8), minute=fields.pop("minute", 0), **fields)


@pytest.mark.parametrize(
    "fields",
    [
        {"hour": 24},
        {"hour": -1},
        {"minute": 60},
        {"hour": True},
        {"repeat_days": {0}},
        {"repeat_days": {8}},
        {"sound": "Klaxon"},
    ],
)
def test_invalid_fields_rejected(fields):
    with pytest.raises(InvalidAlarmError):
        _alarm(**fields)


def test_auto_stop_requires_positive_seconds():
    with pytest.raises(InvalidAlarmError):
        AutoStop(0)
    assert AutoStop(20).label == "Auto-stop after 20s"
    assert ManualStop().label == "Until turned off"


def test_updated_revalidates():
    alarm = _alarm()
    assert alarm.updated(minute=45).minute == 45
    with pytest.raises(InvalidAlarmError):
        alarm.updated(hour=25)


def test_time_string_is_twelve_hour():
    assert _alarm(hour=0, minute=5).time_string == "12:05 AM"
    assert _alarm(hour=8, minute=0).time_string == "8:00 AM"
    assert _alarm(hour=12, minute=30).time_string == "12:30 PM"
    assert _alarm(hour=23, minute=59).time_string == "11:59 PM"


def test_create_generates_unique_ids():
    first = AlarmRecord.create(7, 0)
    second = AlarmRecord.create(7, 0)
    assert first.id != second.id
    assert first.id.startswith("al_")


def test_store_preserves_insertion_order_and_persists(tmp_path):
    path = tmp_path / "alarms.json"
    store = AlarmStore(path)
    late = _alarm("al_late", hour=22, repeat_days={2, 4}, stop_mode=AutoStop(30), sound="Soft")
    early = _alarm("al_early", hour=6)
    store.upsert(late)
    store.upsert(early)
    store.upsert(late.updated(label="Bedtime"))

    reloaded = AlarmStore(path).list()
    assert [a.id for a in reloaded] == ["al_late", "al_early"]
    assert reloaded[0].label == "Bedtime"
    assert reloaded[0].repeat_days == frozenset({2, 4})
    assert reloaded[0].stop_mode == AutoStop(30)
    assert reloaded[0].sound == "Soft"


def test_store_set_enabled_and_remove(tmp_path):
    store = AlarmStore(tmp_path / "alarms.json")
    store.upsert(_alarm("al_a"))
    store.upsert(_alarm("al_b"))

    disabled = store.set_enabled("al_a", False)
    assert disabled is not None and disabled.enabled is False
    assert store.get("al_a").enabled is False
    assert store.set_enabled("al_missing", False) is None

    assert store.remove("al_b").id == "al_b"
    assert store.remove("al_b") is None
    assert [a.id for a in store.list()] == ["al_a"]


def test_load_skips_invalid_and_duplicate_items(tmp_path):
    path = tmp_path / "alarms.json"
    path.write_text(
        json.dumps(
            [
                {"id": "al_ok", "hour": 7, "minute": 15},
                {"id": "al_bad", "hour": 31, "minute": 0},
                {"id": "al_ok", "hour": 9, "minute": 0},
                {"id": "al_days", "hour": 9, "minute": 0, "repeat_days": [1, 9]},
            ]
        ),
        encoding="utf-8",
    )
    alarms = load_alarms(path)
    assert [(a.id, a.hour) for a in alarms] == [("al_ok", 7)]
