import asyncio

import pytest

from warden.governance.models import MessageSnapshot
from warden.governance.reentry import ReentryTracker
from warden.governance.scheduler import DeferredTasks
from warden.governance.snapshots import SnapshotCache
from warden.governance.trust import TrustLedger


def snap(message_id, author_id=1):
    return MessageSnapshot(message_id=message_id, author_id=author_id, author_name="a", channel_id=5, content="hi")


class TestReentryTracker:
    def test_entry_is_consumed_once(self, clock):
        tracker = ReentryTracker(retention_seconds=3600, clock=clock)
        tracker.record(42, "https://discord.gg/x", "alice")

        first = tracker.consume(42)

        assert first is not None and first.invite_url == "https://discord.gg/x"
        assert tracker.consume(42) is None

    def test_entry_expires_after_retention(self, clock):
        tracker = ReentryTracker(retention_seconds=3600, clock=clock)
        tracker.record(42, "https://discord.gg/x", "alice")
        clock.advance(3601)

        assert tracker.consume(42) is None

    def test_prune_drops_only_expired(self, clock):
        tracker = ReentryTracker(retention_seconds=100, clock=clock)
        tracker.record(1, "u1", "a")
        clock.advance(60)
        tracker.record(2, "u2", "b")
        clock.advance(50)

        assert tracker.prune() == 1
        assert 1 not in tracker and 2 in tracker

    def test_restore_puts_a_failed_entry_back(self, clock):
        tracker = ReentryTracker(retention_seconds=3600, clock=clock)
        entry = tracker.record(42, "u", "alice")
        tracker.consume(42)

        tracker.restore(entry)

        assert tracker.get(42) == entry


class TestSnapshotCache:
    def test_oldest_is_evicted_at_capacity(self, clock):
        cache = SnapshotCache(max_size=2, max_age_seconds=3600, clock=clock)
        for mid in (1, 2, 3):
            cache.capture(snap(mid))

        assert len(cache) == 2
        assert cache.pop(1) is None
        assert cache.pop(3) is not None

    def test_snapshots_age_out(self, clock):
        cache = SnapshotCache(max_size=10, max_age_seconds=3600, clock=clock)
        cache.capture(snap(1))
        clock.advance(3601)

        assert cache.pop(1) is None

    def test_prune(self, clock):
        cache = SnapshotCache(max_size=10, max_age_seconds=60, clock=clock)
        cache.capture(snap(1))
        clock.advance(61)
        cache.capture(snap(2))

        assert cache.prune() == 1
        assert len(cache) == 1


class TestTrustLedger:
    def test_service_actor_is_trusted(self, platform):
        ledger = TrustLedger(platform)

        assert ledger.is_trusted(platform.service_actor_id)
        assert not ledger.is_trusted(7)
        assert not ledger.is_trusted(None)

    def test_expectation_is_consumed_once(self, platform, clock):
        ledger = TrustLedger(platform, ttl_seconds=60, clock=clock)
        ledger.expect(42, 100)

        assert ledger.consume(42, 100)
        assert not ledger.consume(42, 100)

    def test_expectation_expires(self, platform, clock):
        ledger = TrustLedger(platform, ttl_seconds=60, clock=clock)
        ledger.expect(42, 100)
        clock.advance(61)

        assert not ledger.consume(42, 100)


@pytest.mark.asyncio
class TestDeferredTasks:
    async def test_callback_runs_after_delay(self):
        tasks = DeferredTasks()
        fired = []

        async def cb(value):
            fired.append(value)

        tasks.schedule("k", 0.01, cb, "x")
        assert tasks.pending("k")
        await asyncio.sleep(0.05)

        assert fired == ["x"]
        assert not tasks.pending("k")

    async def test_cancelled_callback_never_runs(self):
        tasks = DeferredTasks()
        fired = []

        async def cb():
            fired.append(1)

        tasks.schedule("k", 0.01, cb)
        assert tasks.cancel("k")
        await asyncio.sleep(0.05)

        assert fired == []

    async def test_rescheduling_replaces_the_earlier_task(self):
        tasks = DeferredTasks()
        fired = []

        async def cb(value):
            fired.append(value)

        tasks.schedule("k", 0.01, cb, "first")
        tasks.schedule("k", 0.02, cb, "second")
        await asyncio.sleep(0.06)

        assert fired == ["second"]
        assert len(tasks) == 0
