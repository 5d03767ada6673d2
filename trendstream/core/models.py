"""Database models for TrendStream."""
from sqlalchemy import (
    BigInteger, Boolean, DateTime, Float, Index, Integer, String, Text, UniqueConstraint
)
from sqlalchemy.orm import mapped_column
from sqlalchemy.sql import func

from .db import Base

# SQLite only autoincrements INTEGER PRIMARY KEY columns
BigIntPK = BigInteger().with_variant(Integer, "sqlite")


class TrendRecord(Base):
    """Tracked trends, unique by name."""
    __tablename__ = "trends"

    id = mapped_column(Integer, primary_key=True)
    name = mapped_column(Text, nullable=False)  # curator mode stores whole posts
    active = mapped_column(Boolean, default=True, nullable=False)
    created_at = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (UniqueConstraint("name", name="uq_trends_name"),)


class MessageRecord(Base):
    """Messages collected from the feed, tagged with a trend."""
    __tablename__ = "messages"

    id = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    status_id = mapped_column(BigInteger, nullable=False, index=True)
    trend_id = mapped_column(Integer, nullable=False, index=True)  # 0 = unmatched
    user_name = mapped_column(String(64), nullable=False, index=True)
    text = mapped_column(Text, nullable=False)
    created_at = mapped_column(DateTime(timezone=True), nullable=False, index=True)  # UTC
    location_name = mapped_column(String(200), nullable=True)
    latitude = mapped_column(Float, default=-1.0, nullable=False)
    longitude = mapped_column(Float, default=-1.0, nullable=False)
    has_link = mapped_column(Boolean, default=False, nullable=False)
    link = mapped_column(String(1500), nullable=True)
    is_retweet = mapped_column(Boolean, default=False, nullable=False)
    retweet_count = mapped_column(Integer, default=0, nullable=False)
    is_verified = mapped_column(Boolean, default=False, nullable=False)
    num_followers = mapped_column(Integer, default=0, nullable=False)
    match_strength = mapped_column(Integer, default=0, nullable=False)
    rank = mapped_column(BigInteger, default=0, nullable=False, index=True)

    __table_args__ = (Index("ix_messages_trend_rank", "trend_id", "rank"),)


class AuthorRecord(Base):
    """Message authors, unique by handle."""
    __tablename__ = "users"

    id = mapped_column(Integer, primary_key=True)
    user_name = mapped_column(String(64), nullable=False)
    name = mapped_column(String(200), nullable=True)
    is_verified = mapped_column(Boolean, default=False, nullable=False)
    num_followers = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (UniqueConstraint("user_name", name="uq_users_user_name"),)


class TrendRank(Base):
    """Deduplicated per-trend ranking written by the trust ranking pass."""
    __tablename__ = "ranks"

    id = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    trend_id = mapped_column(Integer, nullable=False, index=True)
    message_id = mapped_column(BigInteger, nullable=False, index=True)
    rank = mapped_column(BigInteger, nullable=False)
    created_at = mapped_column(DateTime(timezone=True), server_default=func.now())
