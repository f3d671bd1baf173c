import json

import pytest

from seatshuffle.models import ConfirmedLayoutRecord, LayoutItem
from seatshuffle.storage import (
    InMemoryConfirmedLayoutStore,
    JsonConfirmedLayoutStore,
    UnreadableStoreError,
    sanitize_class_id,
)


def _record(record_id, timestamp):
    return ConfirmedLayoutRecord(
        id=record_id,
        date="2026-03-01 09:30",
        timestamp=timestamp,
        layout=[LayoutItem(1, "Al", "M")],
    )


def test_json_store_round_trips_newest_first(tmp_path):
    store = JsonConfirmedLayoutStore(tmp_path)

    store.append("5a", _record("old", 100))
    store.append("5a", _record("new", 200))

    assert [record.id for record in store.list("5a")] == ["new", "old"]
    assert store.list("5b") == []
    assert (tmp_path / "data" / "confirmed" / "5a.json").exists()


def test_json_store_enforces_limit(tmp_path):
    store = JsonConfirmedLayoutStore(tmp_path, limit=3)

    for index in range(5):
        store.append("5a", _record(f"r{index}", index))

    assert [record.id for record in store.list("5a")] == ["r4", "r3", "r2"]


def test_json_store_delete(tmp_path):
    store = JsonConfirmedLayoutStore(tmp_path)
    store.append("5a", _record("keep", 1))
    store.append("5a", _record("drop", 2))

    assert store.delete("5a", "drop") is True
    assert store.delete("5a", "drop") is False
    assert [record.id for record in store.list("5a")] == ["keep"]


def test_json_store_skips_corrupt_data(tmp_path):
    store = JsonConfirmedLayoutStore(tmp_path)
    path = store.storage_dir() / "5a.json"
    path.write_text(
        json.dumps([_record("ok", 1).to_dict(), {"id": "broken"}]),
        encoding="utf-8",
    )

    assert [record.id for record in store.list("5a")] == ["ok"]

    path.write_text("{not json", encoding="utf-8")
    assert store.list("5a") == []


def test_sanitize_class_id_strips_path_characters():
    assert sanitize_class_id("../etc/passwd") == "etcpasswd"
    assert sanitize_class_id("class-5_a") == "class-5_a"
    assert len(sanitize_class_id("x" * 100)) == 60
    with pytest.raises(ValueError):
        sanitize_class_id("///")
    with pytest.raises(ValueError):
        sanitize_class_id("")


def test_in_memory_store_matches_json_behaviour():
    store = InMemoryConfirmedLayoutStore(limit=2)
    for index in range(3):
        store.append("5a", _record(f"r{index}", index))

    assert [record.id for record in store.list("5a")] == ["r2", "r1"]
    assert store.delete("5a", "r1") is True
    assert store.delete("5a", "missing") is False
    assert [record.id for record in store.list("5a")] == ["r2"]


def test_json_store_refuses_to_overwrite_corrupt_file(tmp_path):
    store = JsonConfirmedLayoutStore(tmp_path)
    path = store.storage_dir() / "5a.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(UnreadableStoreError):
        store.append("5a", _record("new", 1))
    with pytest.raises(UnreadableStoreError):
        store.delete("5a", "new")

    assert path.read_text(encoding="utf-8") == "{not json"


def test_json_store_list_rejects_invalid_class_id(tmp_path):
    store = JsonConfirmedLayoutStore(tmp_path)

    with pytest.raises(ValueError):
        store.list("///")
