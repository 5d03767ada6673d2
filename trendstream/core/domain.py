"""Domain records for trends, messages and authors.

Messages and authors are built from streaming status payloads (the JSON
objects delivered by the feed, one per line). Timestamps are always UTC.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

NO_COORDINATE = -1.0
UNMATCHED_TREND_ID = 0

STATUS_TIME_FORMAT = "%a %b %d %H:%M:%S %z %Y"


@dataclass
class Trend:
    """A topic being tracked; ``id`` is 0 until persisted."""
    id: int
    name: str
    keywords: List[str] = field(default_factory=list)
    active: bool = True


@dataclass
class Author:
    """Message author, unique by handle."""
    handle: str
    name: Optional[str] = None
    verified: bool = False
    followers: int = 0


@dataclass
class Message:
    """A single status delivered by the feed."""
    message_id: int
    user_name: str
    text: str
    timestamp: datetime
    trend_id: int = UNMATCHED_TREND_ID
    is_verified: bool = False
    num_followers: int = 0
    location_name: Optional[str] = None
    latitude: float = NO_COORDINATE
    longitude: float = NO_COORDINATE
    has_link: bool = False
    link: Optional[str] = None
    is_retweet: bool = False
    retweet_count: int = 0
    match_strength: int = 0
    rank: int = 0
    record_id: Optional[int] = None
    author: Optional[Author] = None
    retweeted: Optional["Message"] = None

    @property
    def timestamp_ms(self) -> int:
        """Creation time in epoch milliseconds."""
        return int(self.timestamp.timestamp() * 1000)


@dataclass
class RankRecord:
    """One row of a trend's deduplicated ranking."""
    trend_id: int
    message_id: int
    rank: int


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes, convert aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_status_time(status: Dict[str, Any]) -> datetime:
    """Creation time of a status payload, preferring ``timestamp_ms``."""
    timestamp_ms = status.get("timestamp_ms")
    if timestamp_ms is not None:
        return datetime.fromtimestamp(int(timestamp_ms) / 1000, tz=timezone.utc)

    created_at = status.get("created_at")
    if created_at:
        try:
            return datetime.strptime(created_at, STATUS_TIME_FORMAT).astimezone(timezone.utc)
        except ValueError:
            return ensure_utc(datetime.fromisoformat(created_at))

    return datetime.now(timezone.utc)


def _status_text(status: Dict[str, Any]) -> str:
    extended = status.get("extended_tweet") or {}
    return extended.get("full_text") or status.get("full_text") or status.get("text") or ""


def _status_link(status: Dict[str, Any]) -> Optional[str]:
    """First media link, else first URL entity; media wins."""
    entities = status.get("entities") or {}
    media = entities.get("media") or []
    if media:
        return media[0].get("expanded_url") or media[0].get("url")
    urls = entities.get("urls") or []
    if urls:
        return urls[0].get("expanded_url") or urls[0].get("url")
    return None


def author_from_status(status: Dict[str, Any]) -> Author:
    """Build the Author of a status payload."""
    user = status.get("user") or {}
    return Author(
        handle=user.get("screen_name", ""),
        name=user.get("name"),
        verified=bool(user.get("verified", False)),
        followers=int(user.get("followers_count") or 0),
    )


def message_from_status(status: Dict[str, Any], trend_id: int = UNMATCHED_TREND_ID) -> Message:
    """
    Build a Message from a status payload.

    Args:
        status: Decoded status object
        trend_id: Trend to tag the message with

    Returns:
        Message, with ``retweeted`` holding the original status for retweets
    """
    author = author_from_status(status)

    latitude = longitude = NO_COORDINATE
    coordinates = status.get("coordinates")
    if coordinates and coordinates.get("coordinates"):
        # GeoJSON order is [longitude, latitude]
        longitude, latitude = (float(v) for v in coordinates["coordinates"][:2])

    place = status.get("place") or {}
    link = _status_link(status)

    retweeted_status = status.get("retweeted_status")
    retweeted = message_from_status(retweeted_status, trend_id) if retweeted_status else None

    return Message(
        message_id=int(status.get("id") or 0),
        user_name=author.handle,
        text=_status_text(status),
        timestamp=parse_status_time(status),
        trend_id=trend_id,
        is_verified=author.verified,
        num_followers=author.followers,
        location_name=place.get("name"),
        latitude=latitude,
        longitude=longitude,
        has_link=link is not None,
        link=link,
        is_retweet=retweeted is not None,
        retweet_count=int(status.get("retweet_count") or 0),
        author=author,
        retweeted=retweeted,
    )
