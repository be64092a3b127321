"""Tests for the merged push/poll conductor status feed."""

import asyncio
from datetime import timedelta

import pytest

from tests.conftest import NOW
from tourbook.conductor.feed import ConductorStatusFeed
from tourbook.schemas.conductor_schema import ConductorState, ConductorStatus


def make_status(state=ConductorState.AVAILABLE, updated_at=NOW, conductor_id="driver-1"):
    return ConductorStatus(
        conductor_id=conductor_id,
        state=state,
        is_active=True,
        updated_at=updated_at,
    )


class TestOffer:
    @pytest.mark.asyncio
    async def test_first_status_accepted(self, tracker):
        feed = ConductorStatusFeed(tracker, poll_interval=3600)
        assert await feed.offer(make_status()) is True
        assert feed.latest.state == ConductorState.AVAILABLE

    @pytest.mark.asyncio
    async def test_older_status_discarded(self, tracker):
        feed = ConductorStatusFeed(tracker, poll_interval=3600)
        await feed.offer(make_status(ConductorState.BUSY, NOW))
        accepted = await feed.offer(
            make_status(ConductorState.AVAILABLE, NOW - timedelta(seconds=30))
        )
        assert accepted is False
        assert feed.latest.state == ConductorState.BUSY

    @pytest.mark.asyncio
    async def test_same_timestamp_accepted(self, tracker):
        # An expired busy window changes the state without a new write.
        feed = ConductorStatusFeed(tracker, poll_interval=3600)
        await feed.offer(make_status(ConductorState.BUSY, NOW))
        assert await feed.offer(make_status(ConductorState.AVAILABLE, NOW)) is True
        assert feed.latest.state == ConductorState.AVAILABLE

    @pytest.mark.asyncio
    async def test_other_conductor_replaces(self, tracker):
        feed = ConductorStatusFeed(tracker, poll_interval=3600)
        await feed.offer(make_status(updated_at=NOW))
        older_other = make_status(updated_at=NOW - timedelta(minutes=1), conductor_id="driver-2")
        assert await feed.offer(older_other) is True

    @pytest.mark.asyncio
    async def test_listeners_notified_on_change_only(self, tracker):
        feed = ConductorStatusFeed(tracker, poll_interval=3600)
        seen = []
        feed.add_listener(seen.append)

        await feed.offer(make_status())
        await feed.offer(make_status())
        await feed.offer(make_status(ConductorState.BUSY, NOW + timedelta(seconds=1)))

        assert [s.state for s in seen] == [ConductorState.AVAILABLE, ConductorState.BUSY]

    @pytest.mark.asyncio
    async def test_async_listener_and_removal(self, tracker):
        feed = ConductorStatusFeed(tracker, poll_interval=3600)
        seen = []

        async def listener(status):
            seen.append(status)

        remove = feed.add_listener(listener)
        await feed.offer(make_status())
        remove()
        await feed.offer(make_status(ConductorState.BUSY, NOW + timedelta(seconds=1)))
        assert len(seen) == 1


class TestRefresh:
    @pytest.mark.asyncio
    async def test_reads_live_conductor(self, tracker):
        await tracker.set_active("driver-1")
        feed = ConductorStatusFeed(tracker, poll_interval=3600)
        status = await feed.refresh()
        assert status.conductor_id == "driver-1"
        assert status.state == ConductorState.AVAILABLE

    @pytest.mark.asyncio
    async def test_failed_read_keeps_cached(self, tracker, session_repo):
        await tracker.set_active("driver-1")
        feed = ConductorStatusFeed(tracker, conductor_id="driver-1", poll_interval=3600)
        await feed.refresh()
        tracker._confirmed.clear()
        session_repo.unavailable = True
        status = await feed.refresh("poll")
        assert status.state == ConductorState.AVAILABLE
        assert feed.latest is status

    @pytest.mark.asyncio
    async def test_overtaken_read_discarded(self, tracker):
        release_first = asyncio.Event()
        calls = []

        class SlowTracker:
            sessions = tracker.sessions

            async def get_live_conductor(self):
                calls.append(len(calls))
                if len(calls) == 1:
                    await release_first.wait()
                    return make_status(ConductorState.BUSY, NOW + timedelta(seconds=5))
                return make_status(ConductorState.AVAILABLE, NOW)

        feed = ConductorStatusFeed(SlowTracker(), poll_interval=3600)
        first = asyncio.create_task(feed.refresh("poll"))
        await asyncio.sleep(0)
        await feed.refresh("push")
        release_first.set()
        await first

        assert feed.latest.state == ConductorState.AVAILABLE


class TestRunningFeed:
    @pytest.mark.asyncio
    async def test_start_loads_initial_status(self, tracker):
        await tracker.set_active("driver-1")
        feed = ConductorStatusFeed(tracker, poll_interval=3600)
        await feed.start()
        await feed.wait_idle()
        assert feed.latest.conductor_id == "driver-1"
        await feed.stop()
        assert not feed.running

    @pytest.mark.asyncio
    async def test_push_updates_latest(self, tracker):
        await tracker.set_active("driver-1")
        async with ConductorStatusFeed(tracker, poll_interval=3600) as feed:
            await feed.wait_idle()
            await tracker.set_busy_for("driver-1", 30)
            await feed.wait_idle()
            assert feed.latest.state == ConductorState.BUSY

    @pytest.mark.asyncio
    async def test_poll_picks_up_expiry(self, tracker, clock):
        await tracker.set_active("driver-1")
        await tracker.set_busy_for("driver-1", 10)
        async with ConductorStatusFeed(tracker, poll_interval=0.01) as feed:
            await feed.wait_idle()
            assert feed.latest.state == ConductorState.BUSY
            clock.advance(minutes=11)
            await asyncio.sleep(0.05)
            await feed.wait_idle()
            assert feed.latest.state == ConductorState.AVAILABLE

    @pytest.mark.asyncio
    async def test_stop_unsubscribes(self, tracker, session_repo):
        feed = ConductorStatusFeed(tracker, poll_interval=3600)
        await feed.start()
        await feed.stop()
        assert session_repo._listeners == []
