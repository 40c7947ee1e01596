import json
from pathlib import Path

import pytest

from snapable_wifi.system_log import (
    CATEGORY_AUTHORIZATION,
    CATEGORY_SYSTEM,
    CATEGORY_WIFI,
    SystemLog,
    SystemLogEntry,
)


def test_record_persists_jsonl(tmp_path: Path):
    path = tmp_path / "logs" / "system_log.jsonl"
    log = SystemLog(path)

    entry = log.record(CATEGORY_WIFI, "connect_attempt", "Joining Home", metadata={"ssid": "Home", "interface": None})

    assert entry.metadata == {"ssid": "Home"}
    lines = path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    payload = json.loads(lines[0])
    assert payload["event"] == "connect_attempt"
    assert payload["category"] == "wifi"
    assert "result" not in payload


def test_entries_restored_and_bad_lines_skipped(tmp_path: Path):
    path = tmp_path / "system_log.jsonl"
    first = SystemLog(path)
    first.record(CATEGORY_SYSTEM, "startup", "Starting")
    first.record(CATEGORY_AUTHORIZATION, "authorization_changed", "Granted", result={"state": "authorizedAlways"})
    with path.open("a", encoding="utf-8") as handle:
        handle.write("not json\n")
        handle.write(json.dumps({"event": 3, "message": "bad"}) + "\n")
        handle.write("\n")

    restored = SystemLog(path)

    entries = restored.tail()
    assert [entry.event for entry in entries] == ["startup", "authorization_changed"]
    assert entries[1].result == {"state": "authorizedAlways"}


def test_tail_filters_and_limits(tmp_path: Path):
    log = SystemLog(tmp_path / "system_log.jsonl")
    for index in range(5):
        log.record(CATEGORY_WIFI, f"event_{index}", "wifi")
    log.record(CATEGORY_SYSTEM, "startup", "system")

    assert [entry.event for entry in log.tail(2, category="wifi")] == ["event_3", "event_4"]
    assert [entry.event for entry in log.tail(category="system")] == ["startup"]
    assert len(log.tail(0)) == 1


def test_max_entries_bounds_memory(tmp_path: Path):
    log = SystemLog(None, max_entries=3)
    for index in range(5):
        log.record(CATEGORY_WIFI, f"event_{index}", "wifi")

    assert [entry.event for entry in log.tail()] == ["event_2", "event_3", "event_4"]
    assert log.path is None
    assert not list(tmp_path.iterdir())


def test_invalid_max_entries():
    with pytest.raises(ValueError):
        SystemLog(None, max_entries=0)


def test_blank_category_falls_back_to_system():
    log = SystemLog(None)
    assert log.record("  ", "event", "message").category == CATEGORY_SYSTEM


def test_entry_from_dict_defaults():
    entry = SystemLogEntry.from_dict({"event": "x", "message": "y", "timestamp": "oops", "metadata": []})
    assert entry is not None
    assert entry.category == CATEGORY_SYSTEM
    assert entry.metadata is None
    assert SystemLogEntry.from_dict(["not", "a", "dict"]) is None
