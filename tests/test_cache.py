import pytest

from cart_rewards.services.cache import RESOLVED_STORE_ID_KEY, InMemoryCache, JsonFileCache


def test_in_memory_cache_set_get_remove():
    cache = InMemoryCache({"other": "value"})

    assert cache.get(RESOLVED_STORE_ID_KEY) is None

    cache.set(RESOLVED_STORE_ID_KEY, "store-1")
    assert cache.get(RESOLVED_STORE_ID_KEY) == "store-1"

    cache.remove(RESOLVED_STORE_ID_KEY)
    cache.remove(RESOLVED_STORE_ID_KEY)
    assert cache.get(RESOLVED_STORE_ID_KEY) is None
    assert cache.get("other") == "value"


def test_json_file_cache_persists_across_instances(tmp_path):
    path = tmp_path / "cache" / "store.json"

    JsonFileCache(str(path)).set(RESOLVED_STORE_ID_KEY, "store-1")

    reopened = JsonFileCache(str(path))
    assert reopened.get(RESOLVED_STORE_ID_KEY) == "store-1"

    reopened.remove(RESOLVED_STORE_ID_KEY)
    assert JsonFileCache(str(path)).get(RESOLVED_STORE_ID_KEY) is None


def test_json_file_cache_missing_file_reads_empty(tmp_path):
    cache = JsonFileCache(str(tmp_path / "missing.json"))

    assert cache.get(RESOLVED_STORE_ID_KEY) is None
    cache.remove(RESOLVED_STORE_ID_KEY)
    assert not (tmp_path / "missing.json").exists()


def test_json_file_cache_ignores_corrupt_file(tmp_path):
    path = tmp_path / "store.json"
    path.write_text("{broken", encoding="utf-8")
    cache = JsonFileCache(str(path))

    assert cache.get(RESOLVED_STORE_ID_KEY) is None

    cache.set(RESOLVED_STORE_ID_KEY, "store-2")
    assert cache.get(RESOLVED_STORE_ID_KEY) == "store-2"


def test_json_file_cache_ignores_non_object_file(tmp_path):
    path = tmp_path / "store.json"
    path.write_text('["store-1"]', encoding="utf-8")

    assert JsonFileCache(str(path)).get(RESOLVED_STORE_ID_KEY) is None


def test_json_file_cache_failed_write_leaves_no_temp_file(tmp_path, monkeypatch):
    path = tmp_path / "store.json"
    cache = JsonFileCache(str(path))
    cache.set(RESOLVED_STORE_ID_KEY, "store-1")

    def failing_dump(data, f):
        f.write("{")
        raise ValueError("serialization failed")

    monkeypatch.setattr("cart_rewards.services.cache.json.dump", failing_dump)

    with pytest.raises(ValueError):
        cache.set(RESOLVED_STORE_ID_KEY, "store-2")

    assert not (tmp_path / "store.json.tmp").exists()
    monkeypatch.undo()
    assert cache.get(RESOLVED_STORE_ID_KEY) == "store-1"
