"""Repository layer for database operations.

Provides async inserts and lookups for trends, messages, authors and
rank rows. Trend inserts are idempotent by name; author inserts skip
handles that already exist.
"""

from typing import Dict, List, Sequence

from sqlalchemy import insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from trendstream.core.domain import Author, Message, RankRecord, Trend, ensure_utc
from trendstream.core.logging import get_logger
from trendstream.core.models import AuthorRecord, MessageRecord, TrendRank, TrendRecord

logger = get_logger(__name__)

RANK_CHUNK_SIZE = 100


async def insert_trend(session: AsyncSession, name: str) -> int:
    """
    Insert a trend by name, or return the id it already has.

    Args:
        session: Database session
        name: Trend name as received from the trend source

    Returns:
        Id of the new or existing trend
    """
    stmt = select(TrendRecord.id).where(TrendRecord.name == name)
    existing_id = (await session.execute(stmt)).scalar_one_or_none()
    if existing_id is not None:
        logger.debug(f"Trend already stored: {name} (id={existing_id})")
        return existing_id

    record = TrendRecord(name=name, active=True)
    session.add(record)
    try:
        await session.commit()
    except IntegrityError:
        # Another writer inserted the same name between select and commit
        await session.rollback()
        return (await session.execute(stmt)).scalar_one()

    await session.refresh(record)
    logger.info(f"Created new trend: {name} (id={record.id})")
    return record.id


def _message_row(message: Message) -> MessageRecord:
    return MessageRecord(
        status_id=message.message_id,
        trend_id=message.trend_id,
        user_name=message.user_name,
        text=message.text,
        created_at=ensure_utc(message.timestamp),
        location_name=message.location_name,
        latitude=message.latitude,
        longitude=message.longitude,
        has_link=message.has_link,
        link=message.link,
        is_retweet=message.is_retweet,
        retweet_count=message.retweet_count,
        is_verified=message.is_verified,
        num_followers=message.num_followers,
        match_strength=message.match_strength,
        rank=message.rank,
    )


async def insert_messages(session: AsyncSession, messages: Sequence[Message]) -> int:
    """
    Insert a batch of messages in one transaction.

    Each message gets its ``record_id`` set to the stored row id.

    Args:
        session: Database session
        messages: Messages to store

    Returns:
        Number of rows inserted
    """
    if not messages:
        return 0

    rows = [_message_row(message) for message in messages]
    session.add_all(rows)
    await session.flush()
    await session.commit()

    for message, row in zip(messages, rows):
        message.record_id = row.id

    logger.debug(f"Inserted {len(rows)} messages")
    return len(rows)


async def insert_users(session: AsyncSession, authors: Sequence[Author]) -> int:
    """
    Insert authors whose handle is not stored yet.

    Args:
        session: Database session
        authors: Authors to store; repeated handles keep the first entry

    Returns:
        Number of rows inserted
    """
    unique: Dict[str, Author] = {}
    for author in authors:
        if author.handle and author.handle not in unique:
            unique[author.handle] = author
    if not unique:
        return 0

    stmt = select(AuthorRecord.user_name).where(AuthorRecord.user_name.in_(list(unique)))
    existing = set((await session.execute(stmt)).scalars().all())

    rows = [
        AuthorRecord(
            user_name=author.handle,
            name=author.name,
            is_verified=author.verified,
            num_followers=author.followers,
        )
        for handle, author in unique.items()
        if handle not in existing
    ]
    if rows:
        session.add_all(rows)
        await session.commit()

    logger.debug(f"Inserted {len(rows)} users, skipped {len(existing)} existing")
    return len(rows)


async def fetch_trends(session: AsyncSession) -> List[Trend]:
    """
    Get stored trends ordered by id.

    Args:
        session: Database session

    Returns:
        List of Trend objects
    """
    stmt = select(TrendRecord).order_by(TrendRecord.id)
    records = (await session.execute(stmt)).scalars().all()
    return [Trend(id=r.id, name=r.name, active=r.active) for r in records]


async def fetch_messages(session: AsyncSession, trend_id: int) -> List[Message]:
    """
    Get the stored messages of one trend in insertion order.

    Args:
        session: Database session
        trend_id: Trend to load

    Returns:
        List of Message objects with ``record_id`` set
    """
    stmt = (
        select(MessageRecord)
        .where(MessageRecord.trend_id == trend_id)
        .order_by(MessageRecord.id)
    )
    records = (await session.execute(stmt)).scalars().all()

    return [
        Message(
            message_id=r.status_id,
            user_name=r.user_name,
            text=r.text,
            timestamp=ensure_utc(r.created_at),
            trend_id=r.trend_id,
            is_verified=r.is_verified,
            num_followers=r.num_followers,
            location_name=r.location_name,
            latitude=r.latitude,
            longitude=r.longitude,
            has_link=r.has_link,
            link=r.link,
            is_retweet=r.is_retweet,
            retweet_count=r.retweet_count,
            match_strength=r.match_strength,
            rank=r.rank,
            record_id=r.id,
        )
        for r in records
    ]


async def update_ranks(session: AsyncSession, messages: Sequence[Message]) -> int:
    """
    Write recomputed ranks back to stored messages.

    Each row is addressed by its record id and receives its own rank.

    Args:
        session: Database session
        messages: Messages with ``record_id`` and ``rank`` set

    Returns:
        Number of rows updated
    """
    params = [
        {"id": message.record_id, "rank": message.rank}
        for message in messages
        if message.record_id is not None
    ]
    if not params:
        return 0

    await session.execute(update(MessageRecord), params)
    await session.commit()

    logger.debug(f"Updated rank of {len(params)} messages")
    return len(params)


async def insert_ranks(
    session: AsyncSession,
    records: Sequence[RankRecord],
    chunk_size: int = RANK_CHUNK_SIZE,
) -> int:
    """
    Insert rank rows in chunks, including the final partial chunk.

    Args:
        session: Database session
        records: Rank rows to store
        chunk_size: Rows per INSERT statement

    Returns:
        Number of rows inserted
    """
    rows = [
        {"trend_id": r.trend_id, "message_id": r.message_id, "rank": r.rank}
        for r in records
    ]
    for start in range(0, len(rows), chunk_size):
        await session.execute(insert(TrendRank), rows[start:start + chunk_size])
    await session.commit()

    logger.debug(f"Inserted {len(rows)} rank rows")
    return len(rows)
