"""Tests for the offline ranking pass."""

import pytest

from conftest import make_message
from trendstream.core.errors import PersistenceError
from trendstream.ranker.pipeline import main, run_ranking
from trendstream.ranker.score import RankingEngine, RankingVariant


async def seed(store):
    apple = await store.insert_trend("Apple")
    obama = await store.insert_trend("#Obama")
    await store.insert_messages([
        make_message("Apple event", 0, message_id=1, trend_id=apple, is_verified=True, has_link=True),
        make_message("Apple event", 1, message_id=2, trend_id=apple),
        make_message("Apple #Obama story", 2, message_id=3, trend_id=apple, is_verified=True),
        make_message("#Obama signs", 3, message_id=4, trend_id=obama, is_retweet=True, is_verified=True),
    ])
    return apple, obama


class FailingFetchStore:
    """Store whose message reads fail for one trend."""

    def __init__(self, store, failing_trend):
        self.store = store
        self.failing_trend = failing_trend

    def __getattr__(self, name):
        return getattr(self.store, name)

    async def fetch_messages(self, trend_id):
        if trend_id == self.failing_trend:
            raise PersistenceError("connection lost")
        return await self.store.fetch_messages(trend_id)


class TestRunRanking:
    """Tests for run_ranking."""

    @pytest.mark.asyncio
    async def test_engagement_updates_ranks_only(self, settings, store):
        apple, obama = await seed(store)

        stats = await run_ranking(store, settings, RankingEngine(RankingVariant.ENGAGEMENT))

        assert stats['trends_ranked'] == 2
        assert stats['messages_ranked'] == 4
        assert stats['rank_rows'] == 0
        assert store.rank_records == []
        assert len(store.rank_updates) == 4
        assert store.messages[0].rank == 250000
        assert store.messages[1].rank == 0

    @pytest.mark.asyncio
    async def test_trust_writes_deduplicated_rank_rows(self, settings, store):
        apple, obama = await seed(store)

        stats = await run_ranking(store, settings, RankingEngine(RankingVariant.TRUST))

        assert stats['variant'] == "trust"
        assert stats['rank_rows'] == 3
        apple_rows = [r for r in store.rank_records if r.trend_id == apple]
        # The duplicate text keeps its higher-ranked copy
        assert {r.message_id for r in apple_rows} == {1, 3}
        assert store.messages[0].rank == 500000
        # Another trend's name and an unrelated hashtag lower the rank
        assert store.messages[2].rank < 400000

    @pytest.mark.asyncio
    async def test_quality_reported_per_trend(self, settings, store):
        apple, obama = await seed(store)

        stats = await run_ranking(store, settings, RankingEngine(RankingVariant.ENGAGEMENT))

        assert stats['quality'][apple] == pytest.approx(1 / 3)
        assert stats['quality'][obama] == pytest.approx(1.0 - 0.05)

    @pytest.mark.asyncio
    async def test_failed_trend_is_skipped(self, settings, store):
        apple, obama = await seed(store)

        stats = await run_ranking(FailingFetchStore(store, apple), settings, RankingEngine())

        assert stats['trends_ranked'] == 1
        assert len(stats['errors']) == 1
        assert all(m.trend_id == obama for m in store.rank_updates)

    @pytest.mark.asyncio
    async def test_engine_built_from_settings(self, settings, store):
        await seed(store)
        settings.ranking_variant = "trust"

        stats = await run_ranking(store, settings)

        assert stats['variant'] == "trust"
        assert stats['runtime_seconds'] >= 0


class TestRankerCli:
    """Tests for the ranking CLI."""

    def test_invalid_configuration_exit_code(self, monkeypatch):
        monkeypatch.setenv("MAX_FOLLOWERS", "1")
        assert main([]) == 2
