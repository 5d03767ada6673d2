"""Store interface and its SQLAlchemy implementation."""

import asyncio
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from trendstream.core import repositories
from trendstream.core.db import get_sessionmaker
from trendstream.core.domain import Author, Message, RankRecord, Trend
from trendstream.core.errors import PersistenceError
from trendstream.core.logging import get_logger

logger = get_logger(__name__)


class Store(ABC):
    """Durable storage used by the ingestion and ranking flows."""

    @abstractmethod
    async def insert_trend(self, name: str) -> int:
        """Store a trend name; returns the existing id when already present."""
        pass

    @abstractmethod
    async def insert_messages(self, messages: Sequence[Message]) -> bool:
        pass

    @abstractmethod
    async def insert_users(self, authors: Sequence[Author]) -> bool:
        pass

    @abstractmethod
    async def fetch_trends(self) -> List[Trend]:
        pass

    @abstractmethod
    async def fetch_messages(self, trend_id: int) -> List[Message]:
        pass

    @abstractmethod
    async def update_ranks(self, messages: Sequence[Message]) -> None:
        """Write each message's rank to the row named by its record id."""
        pass

    @abstractmethod
    async def insert_ranks(self, records: Sequence[RankRecord]) -> None:
        pass


class SqlStore(Store):
    """Store backed by the repository functions; one session per call."""

    def __init__(self, sessionmaker: Optional[async_sessionmaker] = None):
        self._sessionmaker = sessionmaker or get_sessionmaker()

    async def _run(self, operation, *args):
        try:
            async with self._sessionmaker() as session:
                return await operation(session, *args)
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as exc:
            # Connection failures surface from the driver unwrapped
            logger.error(f"Store operation {operation.__name__} failed: {exc}")
            raise PersistenceError(f"{operation.__name__} failed: {exc}") from exc

    async def insert_trend(self, name: str) -> int:
        return await self._run(repositories.insert_trend, name)

    async def insert_messages(self, messages: Sequence[Message]) -> bool:
        await self._run(repositories.insert_messages, messages)
        return True

    async def insert_users(self, authors: Sequence[Author]) -> bool:
        await self._run(repositories.insert_users, authors)
        return True

    async def fetch_trends(self) -> List[Trend]:
        return await self._run(repositories.fetch_trends)

    async def fetch_messages(self, trend_id: int) -> List[Message]:
        return await self._run(repositories.fetch_messages, trend_id)

    async def update_ranks(self, messages: Sequence[Message]) -> None:
        await self._run(repositories.update_ranks, messages)

    async def insert_ranks(self, records: Sequence[RankRecord]) -> None:
        await self._run(repositories.insert_ranks, records)
