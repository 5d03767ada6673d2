"""Shared fixtures for TrendStream tests."""

from datetime import datetime, timedelta, timezone
from typing import List

import pytest

from trendstream.core.domain import Author, Message, Trend
from trendstream.core.errors import PersistenceError
from trendstream.core.settings import Settings
from trendstream.core.store import Store
from trendstream.core.wordlists import load_stopwords
from trendstream.tracker.sources import TrendSource

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeStore(Store):
    """In-memory Store recording every call."""

    def __init__(self):
        self.trend_ids = {}
        self.messages: List[Message] = []
        self.users: List[Author] = []
        self.rank_updates: List[Message] = []
        self.rank_records = []
        self.message_calls = 0
        self.fail_messages = False
        self.fail_trends = set()

    async def insert_trend(self, name: str) -> int:
        if name in self.fail_trends:
            raise PersistenceError(f"cannot insert {name}")
        if name not in self.trend_ids:
            self.trend_ids[name] = len(self.trend_ids) + 1
        return self.trend_ids[name]

    async def insert_messages(self, messages) -> bool:
        self.message_calls += 1
        if self.fail_messages:
            raise PersistenceError("database unavailable")
        for message in messages:
            message.record_id = len(self.messages) + 1
            self.messages.append(message)
        return True

    async def insert_users(self, authors) -> bool:
        self.users.extend(authors)
        return True

    async def fetch_trends(self):
        return [Trend(id=i, name=n) for n, i in self.trend_ids.items()]

    async def fetch_messages(self, trend_id: int):
        return [m for m in self.messages if m.trend_id == trend_id]

    async def update_ranks(self, messages) -> None:
        self.rank_updates.extend(messages)

    async def insert_ranks(self, records) -> None:
        self.rank_records.extend(records)


class FakeTrendSource(TrendSource):
    """Trend source returning preset names."""

    def __init__(self, names):
        self.names = list(names)
        self.calls = 0
        self.closed = False

    async def fetch_names(self):
        self.calls += 1
        return list(self.names)

    async def aclose(self):
        self.closed = True


def make_message(text: str, offset_seconds: float = 0, **overrides) -> Message:
    fields = dict(
        message_id=abs(hash((text, offset_seconds))) % 10**12,
        user_name="reporter",
        text=text,
        timestamp=BASE_TIME + timedelta(seconds=offset_seconds),
    )
    fields.update(overrides)
    return Message(**fields)


def make_status(status_id: int, text: str, offset_seconds: float = 0, user: str = "reporter", **extra) -> dict:
    """Minimal streaming status payload."""
    status = {
        "id": status_id,
        "text": text,
        "timestamp_ms": str(int((BASE_TIME + timedelta(seconds=offset_seconds)).timestamp() * 1000)),
        "user": {"screen_name": user, "name": user.title(), "verified": False, "followers_count": 100},
        "retweet_count": 0,
        "entities": {"urls": [], "media": []},
    }
    status.update(extra)
    return status


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        db_url="sqlite+aiosqlite:///:memory:",
        retry_max_attempts=3,
        retry_initial_wait=0.001,
        retry_max_wait=0.01,
        max_seconds_per_trend=0.5,
        refresh_interval_seconds=0.3,
    )


@pytest.fixture
def stopwords():
    return load_stopwords()


@pytest.fixture
def store():
    return FakeStore()
