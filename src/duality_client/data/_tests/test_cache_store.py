from __future__ import annotations

from duality_client._tests._helpers.fakes import ImmediateExecutor, ManualExecutor
from duality_client.data.cache import DataCache
from duality_client.data.providers import DownloadIdentity, ParametrizedIdentity
from duality_client.data.store import DirectoryCacheStore


def test_round_trip(tmp_path) -> None:
    store = DirectoryCacheStore(tmp_path)
    identity = DownloadIdentity("s", "mesh")
    assert store.load(identity) is None
    store.save(identity, b"payload")
    assert store.load(identity) == b"payload"
    assert not list(tmp_path.glob("*.tmp"))


def test_record_for_other_identity_is_discarded(tmp_path) -> None:
    store = DirectoryCacheStore(tmp_path)
    wanted = ParametrizedIdentity("s", "gen.py", (("r", 0.5),))
    other = ParametrizedIdentity("s", "gen.py", (("r", 0.7),))
    store.save(other, b"other")
    # simulate a colliding file name holding a different identity
    store._path(wanted.cache_key()).write_bytes(store._path(other.cache_key()).read_bytes())

    assert store.load(wanted) is None
    assert not store._path(wanted.cache_key()).exists()
    assert store.load(other) == b"other"


def test_truncated_record_is_discarded(tmp_path) -> None:
    store = DirectoryCacheStore(tmp_path)
    identity = DownloadIdentity("s", "mesh")
    store._path(identity.cache_key()).write_bytes(b"DC")
    assert store.load(identity) is None


def test_clear_removes_records(tmp_path) -> None:
    store = DirectoryCacheStore(tmp_path)
    store.save(DownloadIdentity("s", "a"), b"a")
    store.save(DownloadIdentity("s", "b"), b"b")
    store.clear()
    assert not list(tmp_path.glob("*.bin"))


def test_cache_reads_through_store(tmp_path) -> None:
    identity = DownloadIdentity("s", "mesh")
    DirectoryCacheStore(tmp_path).save(identity, b"stored")
    calls: list[int] = []

    def fetch() -> bytes:
        calls.append(1)
        return b"remote"

    cache = DataCache(executor=ImmediateExecutor(), store=DirectoryCacheStore(tmp_path))
    assert cache.get_or_fetch(identity, fetch).payload == b"stored"
    assert calls == []


def test_cache_writes_through_store(tmp_path) -> None:
    identity = DownloadIdentity("s", "mesh")
    cache = DataCache(executor=ImmediateExecutor(), store=DirectoryCacheStore(tmp_path))
    cache.get_or_fetch(identity, lambda: b"remote")
    assert DirectoryCacheStore(tmp_path).load(identity) == b"remote"

    cache.clear()
    assert DirectoryCacheStore(tmp_path).load(identity) is None


def test_clear_defers_store_io_to_executor(tmp_path) -> None:
    identity = DownloadIdentity("s", "mesh")
    store = DirectoryCacheStore(tmp_path)
    store.save(identity, b"stored")
    executor = ManualExecutor()
    cache = DataCache(executor=executor, store=store)

    cache.clear()

    assert store.load(identity) == b"stored"
    assert executor.run_all() == 1
    assert store.load(identity) is None


def test_invalidate_all_keeps_persistent_records(tmp_path) -> None:
    identity = DownloadIdentity("s", "mesh")
    cache = DataCache(executor=ImmediateExecutor(), store=DirectoryCacheStore(tmp_path))
    cache.get_or_fetch(identity, lambda: b"remote")

    cache.invalidate_all()

    assert not cache.contains(identity)
    assert DirectoryCacheStore(tmp_path).load(identity) == b"remote"
