"""End-to-end tests for the ingestion controller over a replayed feed."""

import asyncio
import json

import pytest

from conftest import FakeTrendSource, make_message, make_status
from trendstream.core.errors import TransportError
from trendstream.ingestor.feed import ReplayFeed
from trendstream.ingestor.pipeline import build_controller, run_ingestion
from trendstream.tracker.rate import MonitorState


class FlakyFeed(ReplayFeed):
    """Replay feed whose first subscriptions fail."""

    def __init__(self, statuses, failures):
        super().__init__(statuses)
        self.failures = failures
        self.attempts = 0

    async def subscribe(self, keywords):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise TransportError("connection reset by peer")
        async for message in super().subscribe(keywords):
            yield message


class DownSource(FakeTrendSource):
    async def fetch_names(self):
        self.calls += 1
        raise TransportError("trends endpoint unavailable")


def replay_statuses():
    return [
        make_status(1, "Apple unveils a phone", 0, user="alice"),
        make_status(2, "nothing to see here", 1, user="carol"),
        make_status(3, "Obama gives a speech", 2, user="bob"),
        make_status(4, "Apple shares climb", 3, user="alice"),
        make_status(5, "Obama signs the bill", 4, user="dave"),
    ]


class TestSequentialController:
    """Tracking one trend at a time."""

    @pytest.mark.asyncio
    async def test_collects_each_trend_until_target(self, settings, store):
        settings.target_sample_count = 2
        controller = build_controller(
            settings, store=store, feed=ReplayFeed(replay_statuses()), source=FakeTrendSource(["Apple", "Obama"])
        )

        stats = await controller.run(once=True)

        assert stats['switches'] == 2
        assert stats['refreshes'] == 1
        assert stats['messages_received'] == 4
        by_trend = {}
        for message in store.messages:
            by_trend.setdefault(message.trend_id, []).append(message.message_id)
        assert by_trend == {1: [1, 4], 2: [3, 5]}
        assert {a.handle for a in store.users} == {"alice", "bob", "dave"}
        assert controller.session.monitor.state is MonitorState.IDLE
        assert controller.feed.remaining == 1
        assert controller.running is False

    @pytest.mark.asyncio
    async def test_quiet_trend_times_out(self, settings, store):
        settings.max_seconds_per_trend = 0.2
        feed = ReplayFeed([make_status(1, "Apple unveils a phone")])
        controller = build_controller(settings, store=store, feed=feed, source=FakeTrendSource(["Apple", "Obama"]))

        stats = await controller.run(once=True)

        assert stats['switches'] == 2
        assert [m.message_id for m in store.messages] == [1]

    @pytest.mark.asyncio
    async def test_refresh_failure_ends_cycle(self, settings, store):
        controller = build_controller(settings, store=store, feed=ReplayFeed([]), source=DownSource([]))

        stats = await controller.run(once=True)

        assert stats['refreshes'] == 0
        assert stats['switches'] == 0
        assert len(stats['errors']) == 1
        assert "Trend refresh" in stats['errors'][0]

    @pytest.mark.asyncio
    async def test_refresh_drops_batches_of_retired_trends(self, settings, store):
        source = FakeTrendSource(["Apple", "Obama"])
        controller = build_controller(settings, store=store, feed=ReplayFeed([]), source=source)
        await controller._refresh()
        await controller.session.message_batch(1).add(make_message("Apple shares climb", trend_id=1))
        controller.session.message_batch(2)

        source.names = ["Samsung"]
        store.fail_messages = True
        trends = await controller._refresh()

        assert [t.id for t in trends] == [3]
        # Batches still holding records survive
        assert set(controller.session.message_batches) == {1}
        assert len(controller.session.message_batch(1)) == 1
        assert controller.session.stats['refreshes'] == 2


class TestSimultaneousController:
    """Tracking every trend at once."""

    @pytest.fixture
    def simultaneous(self, settings):
        settings.tracking_mode = "simultaneous"
        settings.refresh_interval_seconds = 0.2
        return settings

    @pytest.mark.asyncio
    async def test_matches_messages_to_trends(self, simultaneous, store):
        feed = ReplayFeed(replay_statuses())
        controller = build_controller(simultaneous, store=store, feed=feed, source=FakeTrendSource(["Apple", "Obama"]))

        stats = await controller.run(once=True)

        assert stats['messages_matched'] == 4
        assert sorted((m.message_id, m.trend_id) for m in store.messages) == [(1, 1), (3, 2), (4, 1), (5, 2)]
        # The feed filter never selects the unrelated status
        assert feed.remaining == 1

    @pytest.mark.asyncio
    async def test_stop_ends_run(self, simultaneous, store):
        simultaneous.refresh_interval_seconds = 30
        controller = build_controller(
            simultaneous, store=store, feed=ReplayFeed(replay_statuses()), source=FakeTrendSource(["Apple"])
        )
        asyncio.get_running_loop().call_later(0.1, controller.stop)

        stats = await asyncio.wait_for(controller.run(), timeout=5)

        assert stats['refreshes'] == 1
        assert len(store.messages) == 2
        assert controller.running is False

    @pytest.mark.asyncio
    async def test_feed_failures_resubscribe(self, simultaneous, store):
        feed = FlakyFeed(replay_statuses(), failures=2)
        controller = build_controller(simultaneous, store=store, feed=feed, source=FakeTrendSource(["Apple", "Obama"]))

        stats = await controller.run(once=True)

        assert stats['transport_errors'] == 2
        assert feed.attempts == 3
        assert len(store.messages) == 4

    @pytest.mark.asyncio
    async def test_store_failure_keeps_records_pending(self, simultaneous, store):
        store.fail_messages = True
        controller = build_controller(
            simultaneous, store=store, feed=ReplayFeed(replay_statuses()), source=FakeTrendSource(["Apple", "Obama"])
        )

        stats = await controller.run(once=True)

        assert store.messages == []
        assert store.message_calls >= 2
        assert len(controller.session.message_batch(1)) == 2
        assert len(controller.session.message_batch(2)) == 2
        assert stats['errors'] == []


class TestRunIngestion:
    """The pipeline entry point over a replay file."""

    @pytest.mark.asyncio
    async def test_replay_file(self, settings, store, tmp_path):
        settings.tracking_mode = "simultaneous"
        settings.refresh_interval_seconds = 0.2
        path = tmp_path / "statuses.jsonl"
        lines = [json.dumps(s) for s in replay_statuses()]
        lines.insert(1, json.dumps({"delete": {"status": {"id": 9}}}))
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        source = FakeTrendSource(["Obama"])

        stats = await run_ingestion(settings, once=True, replay_path=str(path), store=store, source=source)

        assert stats['messages_matched'] == 2
        assert [m.message_id for m in store.messages] == [3, 5]
        assert source.closed is True
        assert 'runtime_seconds' in stats
