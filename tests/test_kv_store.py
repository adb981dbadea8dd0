import json
import logging

import pytest

from quiz_tracker.services.kv_store import JsonFileStore, MemoryStore, StorageQuotaExceeded


def test_memory_store_get_set_remove():
    store = MemoryStore()
    assert store.get("k") is None

    store.set("k", "v")
    assert store.get("k") == "v"

    store.remove("k")
    store.remove("missing")
    assert store.get("k") is None


def test_memory_store_quota_rejects_write_and_keeps_old_value():
    store = MemoryStore(quota_bytes=10)
    store.set("k", "12345")

    with pytest.raises(StorageQuotaExceeded):
        store.set("k", "1234567890")
    assert store.get("k") == "12345"


def test_json_file_store_persists_across_instances(tmp_path):
    path = tmp_path / "nested" / "store.json"
    JsonFileStore(str(path)).set("progress", '{"a": 1}')

    reopened = JsonFileStore(str(path))
    assert reopened.get("progress") == '{"a": 1}'

    reopened.remove("progress")
    assert JsonFileStore(str(path)).get("progress") is None


def test_json_file_store_treats_corrupt_file_as_empty(tmp_path, caplog):
    path = tmp_path / "store.json"
    path.write_text("{broken", encoding="utf-8")

    store = JsonFileStore(str(path))
    with caplog.at_level(logging.ERROR):
        assert store.get("anything") is None
    assert "저장소 파일 읽기 실패" in caplog.text

    store.set("k", "v")
    assert json.loads(path.read_text(encoding="utf-8")) == {"k": "v"}


def test_json_file_store_quota_leaves_file_untouched(tmp_path):
    path = tmp_path / "store.json"
    store = JsonFileStore(str(path), quota_bytes=20)
    store.set("k", "small")

    with pytest.raises(StorageQuotaExceeded):
        store.set("other", "x" * 100)

    assert json.loads(path.read_text(encoding="utf-8")) == {"k": "small"}
    assert store.get("other") is None
