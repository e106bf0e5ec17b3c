"""Tests for the realtime cursor scheduler."""
import asyncio

import orjson
import pytest

from ordersync.errors import EnqueueError, RateLimitedError
from ordersync.fetch.retry import RateLimitRetryPolicy
from ordersync.jobs.fetcher import FeedSync
from ordersync.jobs.metrics_exporter import MetricsExporter
from ordersync.jobs.queue import Job
from ordersync.jobs.realtime import RealtimeCursorScheduler, SchedulerState
from ordersync.parse.order_parser import OrderRecordParser
from ordersync.store.state import StateDB

from helpers import ScriptedFeed, order_payload

CURSOR_KEY = "seaport-sync-last"
LOCK = "seaport-sync-lock"


class SpyStateDB(StateDB):
    """StateDB that counts lock releases."""

    def __init__(self, db_path):
        super().__init__(db_path)
        self.releases = []

    async def release_lock(self, name, suppress_reacquire=False, cooldown=5.0):
        self.releases.append((name, suppress_reacquire))
        await super().release_lock(name, suppress_reacquire, cooldown)


class StubFeedSync:
    """Returns scripted cursors (or raises scripted errors) from fetch_page."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = []

    async def fetch_page(self, cursor="", from_timestamp=None, to_timestamp=None, side="sell", api_key=None):
        self.calls.append((cursor, side))
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


def _state(tmp_path):
    state = SpyStateDB(tmp_path / "state.db")
    asyncio.run(state.initialize())
    return state


def test_cursor_round_trip(tmp_path, order_store, relay):
    """Test a run resumes from the stored cursor and stores the feed's next one."""
    state = _state(tmp_path)
    asyncio.run(state.set(CURSOR_KEY, "abc123"))
    feed = ScriptedFeed({"abc123": {"orders": [order_payload("0x01")], "next": "def456"}})
    sync = FeedSync(feed.client(), order_store, relay, parser=OrderRecordParser(chain_id=1))
    scheduler = RealtimeCursorScheduler(sync, state)

    async def go():
        try:
            await scheduler.run()
        finally:
            await sync.client.aclose()

    asyncio.run(go())

    assert feed.cursors == ["abc123"]
    assert asyncio.run(state.get(CURSOR_KEY)) == "def456"
    assert len(relay.orders) == 1
    assert state.releases == [(LOCK, False)]
    assert scheduler.state is SchedulerState.IDLE


def test_missing_cursor_starts_from_empty(tmp_path):
    """Test no stored cursor means the run starts from the empty cursor."""
    state = _state(tmp_path)
    stub = StubFeedSync("first")
    scheduler = RealtimeCursorScheduler(stub, state)

    asyncio.run(scheduler.run())

    assert stub.calls == [("", "sell")]
    assert asyncio.run(state.get(CURSOR_KEY)) == "first"


def test_failure_releases_lock_once_and_keeps_cursor(tmp_path):
    """Test an inner failure is swallowed, the cursor is kept and the lock released once."""
    state = _state(tmp_path)
    asyncio.run(state.set(CURSOR_KEY, "abc123"))
    asyncio.run(state.acquire_lock(LOCK, 60))
    scheduler = RealtimeCursorScheduler(StubFeedSync(RateLimitedError("429", status_code=429)), state)

    asyncio.run(scheduler.run(Job(name="realtime", attempts_made=2)))

    assert state.releases == [(LOCK, False)]
    assert asyncio.run(state.is_locked(LOCK)) is False
    assert asyncio.run(state.get(CURSOR_KEY)) == "abc123"


def test_enqueue_failure_is_swallowed(tmp_path):
    """Test a relay failure inside a run still reaches lock release."""
    state = _state(tmp_path)
    scheduler = RealtimeCursorScheduler(StubFeedSync(EnqueueError("relay down")), state)

    asyncio.run(scheduler.run())

    assert len(state.releases) == 1


def test_unchanged_cursor_still_completes(tmp_path, caplog):
    """Test a stalled feed logs a warning and the run completes normally."""
    state = _state(tmp_path)
    asyncio.run(state.set(CURSOR_KEY, "same"))
    scheduler = RealtimeCursorScheduler(StubFeedSync("same"), state)

    asyncio.run(scheduler.run())

    assert "cursor didn't change" in caplog.text
    assert asyncio.run(state.get(CURSOR_KEY)) == "same"
    assert len(state.releases) == 1


def test_empty_next_cursor_is_not_stored(tmp_path):
    """Test an absent next cursor leaves the stored one alone."""
    state = _state(tmp_path)
    asyncio.run(state.set(CURSOR_KEY, "abc123"))
    scheduler = RealtimeCursorScheduler(StubFeedSync(None), state)

    asyncio.run(scheduler.run())

    assert asyncio.run(state.get(CURSOR_KEY)) == "abc123"


def test_rate_limit_inside_run_is_retried(tmp_path, order_store, relay):
    """Test a 429 on a stored cursor is retried by the run's fetch."""
    state = _state(tmp_path)
    asyncio.run(state.set(CURSOR_KEY, "abc123"))
    feed = ScriptedFeed({"abc123": [429, {"orders": [], "next": "def456"}]})

    async def no_sleep(seconds):
        return None

    sync = FeedSync(
        feed.client(),
        order_store,
        relay,
        retry_policy=RateLimitRetryPolicy(delay=5.0, sleep=no_sleep),
    )
    scheduler = RealtimeCursorScheduler(sync, state)

    async def go():
        try:
            await scheduler.run()
        finally:
            await sync.client.aclose()

    asyncio.run(go())

    assert feed.cursors == ["abc123", "abc123"]
    assert asyncio.run(state.get(CURSOR_KEY)) == "def456"


def test_trigger_respects_lock(tmp_path):
    """Test a second trigger is refused while the lock is held."""
    state = _state(tmp_path)
    stub = StubFeedSync("c1")
    scheduler = RealtimeCursorScheduler(stub, state)

    async def go():
        queue = scheduler.create_queue()
        await queue.start()
        try:
            first = await scheduler.trigger(delay=60)
            second = await scheduler.trigger(delay=0)
            return first, second, queue.pending, scheduler.state
        finally:
            await queue.stop()

    first, second, pending, state_after = asyncio.run(go())

    assert (first, second) == (True, False)
    assert pending == 1
    assert state_after is SchedulerState.SCHEDULED
    assert stub.calls == []


def test_queued_run_releases_lock(tmp_path):
    """Test a run picked up by the queue syncs once and frees the lock."""
    state = _state(tmp_path)
    stub = StubFeedSync("c1")
    scheduler = RealtimeCursorScheduler(stub, state)

    async def go():
        queue = scheduler.create_queue()
        await queue.start()
        try:
            assert await state.acquire_lock(LOCK, 60)
            await scheduler.enqueue_next(0)
            await queue.join()
        finally:
            await queue.stop()

    asyncio.run(go())

    assert stub.calls == [("", "sell")]
    assert asyncio.run(state.is_locked(LOCK)) is False
    assert asyncio.run(state.get(CURSOR_KEY)) == "c1"
    assert scheduler.state is SchedulerState.IDLE


def test_enqueue_next_without_queue(tmp_path):
    """Test re-arming needs an attached queue."""
    scheduler = RealtimeCursorScheduler(StubFeedSync(), _state(tmp_path))

    with pytest.raises(RuntimeError, match="no queue"):
        asyncio.run(scheduler.enqueue_next(1.0))


def test_run_exports_metrics(tmp_path):
    """Test each run appends one metrics line."""
    state = _state(tmp_path)
    metrics_file = tmp_path / "metrics.jsonl"
    scheduler = RealtimeCursorScheduler(
        StubFeedSync("c1", RateLimitedError("429", status_code=429)),
        state,
        exporter=MetricsExporter("realtime", metrics_file=metrics_file),
    )

    asyncio.run(scheduler.run())
    asyncio.run(scheduler.run())

    lines = [orjson.loads(line) for line in metrics_file.read_bytes().splitlines()]
    assert [line["success"] for line in lines] == [True, False]
    assert lines[0]["cursor_moved"] is True


def test_absent_next_cursor_from_empty_is_not_a_move(tmp_path, caplog):
    """Test no next cursor from an empty stored cursor counts as a stalled feed."""
    state = _state(tmp_path)
    metrics_file = tmp_path / "metrics.jsonl"
    scheduler = RealtimeCursorScheduler(
        StubFeedSync(None),
        state,
        exporter=MetricsExporter("realtime", metrics_file=metrics_file),
    )

    asyncio.run(scheduler.run())

    line = orjson.loads(metrics_file.read_bytes().splitlines()[0])
    assert line["cursor_moved"] is False
    assert "cursor didn't change" in caplog.text
    assert asyncio.run(state.get(CURSOR_KEY)) is None
