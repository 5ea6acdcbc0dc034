import pytest

from resourcewatch.ingest import cache as cache_module
from resourcewatch.ingest.cache import CacheStore


def test_empty_store_has_no_copy(tmp_path):
    store = CacheStore(tmp_path / "cache", "steering.json")
    assert store.exists() is False
    assert store.last_modified() is None
    assert (tmp_path / "cache").is_dir()


def test_write_atomically_replaces_content(tmp_path):
    store = CacheStore(tmp_path, "steering.json")
    store.write_atomically(b'{"v":1}')
    store.write_atomically(b'{"v":2}')
    assert store.exists()
    assert store.read() == b'{"v":2}'
    assert store.last_modified() is not None
    assert [p.name for p in tmp_path.iterdir()] == ["steering.json"]


def test_failed_replace_keeps_previous_copy(tmp_path, monkeypatch):
    store = CacheStore(tmp_path, "steering.json")
    store.write_atomically(b'{"v":1}')

    def boom(src, dst):
        raise OSError("disk gone")

    monkeypatch.setattr(cache_module.os, "replace", boom)
    with pytest.raises(OSError):
        store.write_atomically(b'{"v":2, "partial": tru')

    assert store.read() == b'{"v":1}'
    assert [p.name for p in tmp_path.iterdir()] == ["steering.json"]


def test_new_cache_file_is_world_readable(tmp_path):
    store = CacheStore(tmp_path, "steering.json")
    store.write_atomically(b'{"v":1}')
    assert store.path.stat().st_mode & 0o777 == 0o644


def test_rewrite_keeps_existing_permissions(tmp_path):
    store = CacheStore(tmp_path, "steering.json")
    store.write_atomically(b'{"v":1}')
    store.path.chmod(0o640)
    store.write_atomically(b'{"v":2}')
    assert store.path.stat().st_mode & 0o777 == 0o640
