import asyncio
import logging
from datetime import datetime
from unittest.mock import MagicMock

import pytest

from tiercache.core.expiration import to_epoch_ms
from tiercache.core import repository as repository_module
from tiercache.core.repository import BaseCacheRepository
from tiercache.domain.exceptions import CacheWriteError
from tiercache.domain.interfaces.cache_item import CacheItem
from tiercache.domain.models.common import NO_EXPIRATION
from tiercache.infrastructure.filesystem.file_system_cache_repository import FileSystemCacheRepository
from tiercache.infrastructure.memory.memory_cache_item import MemoryCacheItem
from tiercache.infrastructure.memory.memory_cache_repository import MemoryCacheRepository


class RecordingRepository(MemoryCacheRepository):
    """Memory repository that records hook calls and the state they observed."""

    def __init__(self, *args, **kwargs):
        self.events = []
        super().__init__(*args, **kwargs)

    def _on_set(self, key, value, ttl_ms):
        self.events.append(("set", key, value, ttl_ms, key in self))

    async def _on_set_async(self, key, value, ttl_ms):
        self.events.append(("set_async", key, value, ttl_ms, key in self))

    def _on_delete(self, key):
        self.events.append(("delete", key, key in self))

    async def _on_delete_async(self, key):
        self.events.append(("delete_async", key, key in self))

    def _on_clear(self):
        self.events.append(("clear", self.size))

    async def _on_clear_async(self):
        self.events.append(("clear_async", self.size))


class FailingItem(MemoryCacheItem):
    def set(self, value):
        raise CacheWriteError(self.key, "disk full")

    async def set_async(self, value):
        raise CacheWriteError(self.key, "disk full")


class FailingRepository(MemoryCacheRepository):
    def _construct_cache_item(self, key, expires_at):
        return FailingItem(key, expires_at, clock=self._clock)


class SlowReleaseItem(MemoryCacheItem):
    """Suspends once while releasing, like an item backed by real I/O."""

    async def delete_async(self):
        await asyncio.sleep(0)
        await super().delete_async()


class SlowReleaseRepository(MemoryCacheRepository):
    def _construct_cache_item(self, key, expires_at):
        return SlowReleaseItem(key, expires_at, clock=self._clock)


@pytest.fixture
def repository(clock):
    """Fixture to create a memory repository with a 100ms window and no background sweep."""
    return MemoryCacheRepository("test", sliding_window_ms=100, auto_sweep_enabled=False, clock=clock)


@pytest.fixture
def recording_repository(clock):
    return RecordingRepository("recording", sliding_window_ms=100, auto_sweep_enabled=False, clock=clock)


def test_base_repository_is_abstract():
    with pytest.raises(TypeError):
        BaseCacheRepository("abstract", auto_sweep_enabled=False)


def test_set_then_get_round_trip(repository):
    value = {"answer": 42}
    assert repository.set("k", value) is value
    assert repository.get("k") == value
    assert repository.size == 1


def test_get_missing_key_returns_none(repository):
    assert repository.get("missing") is None


def test_sliding_window_scenario(clock):
    """Window 100ms, sweep 50ms: present at t=50, gone at t=150."""
    repository = MemoryCacheRepository("scenario", sliding_window_ms=100, sweep_interval_ms=50, clock=clock)
    repository.set("a", 1)
    clock.advance(50)
    assert repository.get("a") == 1
    clock.advance(100)
    assert repository.get("a") is None
    assert repository.size == 0


def test_get_sweeps_before_any_timer_tick(repository, clock):
    repository.set("a", 1)
    repository.set("b", 2, ttl_ms=10_000)
    clock.advance(100)
    assert repository.get("b") == 2
    assert "a" not in repository
    assert repository.size == 1


def test_item_is_absent_exactly_at_deadline(repository, clock):
    repository.set("a", 1, ttl_ms=20)
    clock.advance(19)
    assert repository.get("a") == 1
    clock.advance(1)
    assert repository.get("a") is None


def test_no_defaults_never_expires(clock):
    repository = MemoryCacheRepository("forever", sliding_window_ms=None, auto_sweep_enabled=False, clock=clock)
    repository.set("b", "x")
    clock.advance(10 * 365 * 24 * 60 * 60 * 1000)
    assert repository.get("b") == "x"
    assert repository._get_cache_item("b").expires_at == NO_EXPIRATION


def test_set_existing_key_updates_in_place(repository):
    repository.set("c", 1)
    original = repository._get_cache_item("c")
    repository.set("c", 2)
    assert repository.get("c") == 2
    assert repository.size == 1
    assert repository._get_cache_item("c") is original


def test_set_recomputes_expiration_but_get_does_not(repository, clock):
    """Reads never extend the deadline; writes always recompute it."""
    repository.set("c", 1)
    clock.advance(60)
    repository.get("c")
    assert repository._get_cache_item("c").expires_at == clock.now - 60 + 100
    repository.set("c", 2)
    assert repository._get_cache_item("c").expires_at == clock.now + 100
    clock.advance(60)
    assert repository.get("c") == 2


def test_per_call_absolute_expiration(repository, clock):
    deadline = datetime(2040, 1, 1)
    repository.set("d", "v", absolute_expiration=deadline)
    assert repository._get_cache_item("d").expires_at == to_epoch_ms(deadline)


def test_repository_default_absolute_expiration(clock):
    deadline = datetime(2040, 1, 1)
    repository = MemoryCacheRepository(
        "absolute", sliding_window_ms=100, absolute_expiration=deadline, auto_sweep_enabled=False, clock=clock
    )
    repository.set("e", "v")
    assert repository._get_cache_item("e").expires_at == to_epoch_ms(deadline)


def test_delete_removes_key(repository):
    repository.set("k", "v")
    repository.delete("k")
    assert repository.get("k") is None
    assert repository.size == 0


def test_delete_missing_key_is_noop(recording_repository):
    recording_repository.delete("missing")
    assert recording_repository.events == []


def test_clear_empties_repository(repository):
    for i in range(5):
        repository.set(f"k{i}", i)
    repository.clear()
    assert repository.size == 0
    assert all(repository.get(f"k{i}") is None for i in range(5))


def test_clear_expired_items_returns_removed_count(repository, clock):
    repository.set("short", 1, ttl_ms=10)
    repository.set("long", 2, ttl_ms=1000)
    clock.advance(10)
    assert repository.clear_expired_items() == 1
    assert repository.keys() == ["long"]


def test_sweep_calls_on_expired(repository, clock, mocker):
    repository.set("k", "v", ttl_ms=10)
    item = repository._get_cache_item("k")
    spy = mocker.spy(item, "on_expired")
    clock.advance(10)
    repository.clear_expired_items()
    spy.assert_called_once()


def test_snapshot_does_not_sweep(repository, clock):
    repository.set("a", 1, ttl_ms=10)
    repository.set("b", 2, ttl_ms=1000)
    clock.advance(10)
    snapshot = repository.snapshot()
    assert set(snapshot) == {"a", "b"}
    assert snapshot["b"] == 2
    assert repository.size == 2


def test_introspection(repository):
    repository.set("a", 1)
    repository.set("b", 2)
    assert len(repository) == 2
    assert "a" in repository
    assert repository.keys() == ["a", "b"]
    assert str(repository) == "test"
    assert "size=2" in repr(repository)


def test_hooks_run_after_storage_mutation(recording_repository):
    recording_repository.set("k", "v", ttl_ms=50)
    recording_repository.set("k", "w")
    recording_repository.delete("k")
    recording_repository.set("x", 1)
    recording_repository.clear()
    assert recording_repository.events == [
        ("set", "k", "v", 50, True),
        ("set", "k", "w", None, True),
        ("delete", "k", False),
        ("set", "x", 1, None, True),
        ("clear", 0),
    ]


def test_write_failure_propagates_and_item_is_not_stored(clock):
    repository = FailingRepository("failing", auto_sweep_enabled=False, clock=clock)
    with pytest.raises(CacheWriteError):
        repository.set("k", "v")
    assert repository.size == 0


def test_injected_logger_receives_debug_messages(clock):
    mock_logger = MagicMock(spec=logging.Logger)
    repository = MemoryCacheRepository("logged", auto_sweep_enabled=False, logger=mock_logger, clock=clock)
    repository.set("k", "v")
    repository.get("k")
    messages = [call.args[0] for call in mock_logger.debug.call_args_list]
    assert any("Created cache repository logged" in m for m in messages)
    assert any("Setting cache item k" in m for m in messages)
    assert any("Getting cache item k" in m for m in messages)


def test_custom_item_contract_is_enforced():
    class Incomplete(CacheItem):
        def get(self):
            return None

    with pytest.raises(TypeError):
        Incomplete("k", NO_EXPIRATION)


def test_sync_construction_without_loop_defers_sweep(clock):
    repository = MemoryCacheRepository("deferred", clock=clock)
    assert not repository.auto_sweep_running
    repository.close()
    assert repository.closed


# --- Async surface ---

@pytest.mark.asyncio
async def test_async_round_trip_and_delete(repository):
    assert await repository.set_async("k", "v") == "v"
    assert await repository.get_async("k") == "v"
    await repository.delete_async("k")
    assert await repository.get_async("k") is None
    assert repository.size == 0


@pytest.mark.asyncio
async def test_get_async_sweeps_expired_items(repository, clock):
    await repository.set_async("a", 1)
    clock.advance(100)
    assert await repository.get_async("a") is None
    assert repository.size == 0


@pytest.mark.asyncio
async def test_clear_async_and_snapshot_async(repository):
    await repository.set_async("a", 1)
    await repository.set_async("b", 2)
    assert await repository.snapshot_async() == {"a": 1, "b": 2}
    await repository.clear_async()
    assert repository.size == 0


@pytest.mark.asyncio
async def test_async_hooks_run_after_storage_mutation(recording_repository):
    await recording_repository.set_async("k", "v")
    await recording_repository.delete_async("k")
    await recording_repository.delete_async("missing")
    await recording_repository.set_async("x", 1)
    await recording_repository.clear_async()
    assert recording_repository.events == [
        ("set_async", "k", "v", None, True),
        ("delete_async", "k", False),
        ("set_async", "x", 1, None, True),
        ("clear_async", 0),
    ]


@pytest.mark.asyncio
async def test_async_write_failure_propagates(clock):
    repository = FailingRepository("failing", auto_sweep_enabled=False, clock=clock)
    with pytest.raises(CacheWriteError):
        await repository.set_async("k", "v")
    assert repository.size == 0


@pytest.mark.asyncio
async def test_auto_sweep_removes_expired_items_between_reads(clock):
    async with MemoryCacheRepository("auto", sliding_window_ms=100, sweep_interval_ms=10, clock=clock) as repository:
        assert repository.auto_sweep_running
        await repository.set_async("a", 1)
        clock.advance(150)
        await asyncio.sleep(0.1)
        assert repository.size == 0
    assert not repository.auto_sweep_running
    assert repository.closed


@pytest.mark.asyncio
async def test_auto_sweep_starts_when_created_inside_event_loop(clock):
    repository = MemoryCacheRepository("inside-loop", sweep_interval_ms=10, clock=clock)
    try:
        assert repository.auto_sweep_running
    finally:
        await repository.aclose()
    assert not repository.auto_sweep_running


@pytest.mark.asyncio
async def test_auto_sweep_survives_failing_pass(clock, mocker):
    repository = MemoryCacheRepository("flaky", sweep_interval_ms=10, clock=clock)
    original = repository.clear_expired_items_async
    calls = {"n": 0}

    async def flaky():
        calls["n"] += 1
        if calls["n"] == 1:
            raise RuntimeError("boom")
        return await original()

    mocker.patch.object(repository, "clear_expired_items_async", side_effect=flaky)
    try:
        await asyncio.sleep(0.1)
        assert calls["n"] >= 2
        assert repository.auto_sweep_running
    finally:
        await repository.aclose()


@pytest.mark.asyncio
async def test_closed_repository_does_not_restart_sweep(clock):
    repository = MemoryCacheRepository("closed", sweep_interval_ms=10, clock=clock)
    repository.close()
    await repository.set_async("k", "v")
    assert not repository.auto_sweep_running
    assert await repository.get_async("k") == "v"


@pytest.mark.asyncio
async def test_disabled_auto_sweep_never_starts(repository):
    await repository.set_async("k", "v")
    repository.start_auto_sweep()
    assert not repository.auto_sweep_running


def test_default_logger_is_module_logger(repository):
    assert repository._logger is repository_module.default_logger


@pytest.mark.asyncio
async def test_set_during_async_sweep_keeps_new_value(clock):
    repository = SlowReleaseRepository("racing", sliding_window_ms=100, auto_sweep_enabled=False, clock=clock)
    await repository.set_async("k", 1)
    expired_item = repository._get_cache_item("k")
    clock.advance(200)

    sweep = asyncio.create_task(repository.clear_expired_items_async())
    await asyncio.sleep(0)
    await repository.set_async("k", 2)

    assert await sweep == 1
    assert repository._get_cache_item("k") is not expired_item
    assert await repository.get_async("k") == 2


@pytest.mark.asyncio
async def test_set_during_async_sweep_keeps_new_file(clock, storage_provider):
    repository = FileSystemCacheRepository(
        "racing-files", sliding_window_ms=100, auto_sweep_enabled=False, clock=clock, storage_provider=storage_provider
    )
    await repository.set_async("k", 1)
    clock.advance(200)

    sweep = asyncio.create_task(repository.clear_expired_items_async())
    await asyncio.sleep(0)
    await repository.set_async("k", 2)
    await sweep

    assert await repository.get_async("k") == 2
    assert len(list(storage_provider.directory.iterdir())) == 1


@pytest.mark.asyncio
async def test_set_during_async_delete_keeps_new_value(clock):
    repository = SlowReleaseRepository("racing-delete", sliding_window_ms=100, auto_sweep_enabled=False, clock=clock)
    await repository.set_async("k", 1)

    deletion = asyncio.create_task(repository.delete_async("k"))
    await asyncio.sleep(0)
    await repository.set_async("k", 2)
    await deletion

    assert await repository.get_async("k") == 2
    assert repository.size == 1
