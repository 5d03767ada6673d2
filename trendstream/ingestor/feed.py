"""Message feeds.

A feed yields Messages matching its current track terms. ``reset_filter``
swaps the terms in place; an empty set detaches the feed, which then
waits for new terms. Once ``reset_filter`` returns, no message selected
by the previous terms is yielded.

- HttpStreamFeed: newline-delimited JSON statuses from a streaming endpoint
- ReplayFeed: recorded statuses, for offline runs and tests
"""

import asyncio
import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Set, Tuple, Union

import httpx

from trendstream.core.domain import Message, message_from_status
from trendstream.core.errors import ConfigurationError, TransportError
from trendstream.core.http import build_client
from trendstream.core.logging import get_logger
from trendstream.core.settings import Settings

logger = get_logger(__name__)


class Feed(ABC):
    """Source of messages filtered by track terms."""

    @abstractmethod
    def subscribe(self, keywords: Set[str]) -> AsyncIterator[Message]:
        """Yield matching messages until unsubscribed."""
        pass

    @abstractmethod
    async def unsubscribe(self) -> None:
        pass

    @abstractmethod
    async def reset_filter(self, keywords: Set[str]) -> None:
        """Replace the track terms; an empty set detaches the feed."""
        pass

    @abstractmethod
    async def aclose(self) -> None:
        pass


def is_status(payload: Dict[str, Any]) -> bool:
    """Status objects carry an id and a user; notices (delete, limit) do not."""
    return isinstance(payload, dict) and "id" in payload and "user" in payload


def matches_terms(text: str, terms: Iterable[str]) -> bool:
    """Track semantics: a term matches when all its words occur in the text."""
    lowered = text.lower()
    for term in terms:
        words = term.lower().split()
        if words and all(word in lowered for word in words):
            return True
    return False


class _FilterState:
    """Current track terms plus a generation bumped on every change."""

    def __init__(self):
        self.terms: Tuple[str, ...] = ()
        self.generation = 0
        self.closed = False
        self.changed = asyncio.Event()

    def set(self, keywords: Iterable[str]) -> None:
        self.terms = tuple(sorted(set(keywords)))
        self.generation += 1
        self.changed.set()

    async def wait_for_terms(self) -> None:
        while not self.terms and not self.closed:
            self.changed.clear()
            await self.changed.wait()


class HttpStreamFeed(Feed):
    """Streaming filter endpoint client over httpx."""

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self.url = settings.feed_url
        # Streams stay open indefinitely; keep-alive newlines arrive well within the read timeout
        self.client = client or build_client(settings, timeout=httpx.Timeout(10.0, read=90.0))
        self._filter = _FilterState()
        self._response: Optional[httpx.Response] = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.unsubscribe()
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    @property
    def terms(self) -> Tuple[str, ...]:
        return self._filter.terms

    async def reset_filter(self, keywords: Set[str]) -> None:
        self._filter.set(keywords)
        if self._response is not None:
            await self._response.aclose()
        logger.info(f"Feed filter set to {len(self._filter.terms)} terms")

    async def unsubscribe(self) -> None:
        self._filter.closed = True
        await self.reset_filter(set())

    async def subscribe(self, keywords: Set[str]) -> AsyncIterator[Message]:
        """
        Yield messages until unsubscribed.

        Raises:
            TransportError: on connection failure, HTTP error or server close
        """
        self._filter.closed = False
        self._filter.set(keywords)

        while not self._filter.closed:
            await self._filter.wait_for_terms()
            if self._filter.closed:
                break

            generation = self._filter.generation
            async for message in self._stream(self._filter.terms, generation):
                yield message

            if generation == self._filter.generation and not self._filter.closed:
                raise TransportError(f"Stream closed by server: {self.url}")

    async def _stream(self, terms: Tuple[str, ...], generation: int) -> AsyncIterator[Message]:
        logger.debug(f"Connecting to {self.url} tracking {list(terms)}")
        try:
            async with self.client.stream("POST", self.url, data={"track": ",".join(terms)}) as response:
                self._response = response
                if generation != self._filter.generation:
                    return
                response.raise_for_status()

                async for line in response.aiter_lines():
                    if generation != self._filter.generation:
                        return
                    line = line.strip()
                    if not line:
                        continue  # keep-alive

                    try:
                        payload = json.loads(line)
                    except ValueError:
                        logger.warning(f"Skipping undecodable line: {line[:80]}")
                        continue

                    if is_status(payload):
                        yield message_from_status(payload)

        except httpx.HTTPStatusError as e:
            raise TransportError(f"HTTP {e.response.status_code} from {self.url}") from e
        except (httpx.HTTPError, httpx.StreamError) as e:
            # Closing the response to apply a new filter interrupts the read
            if generation != self._filter.generation:
                return
            raise TransportError(f"Stream error from {self.url}: {type(e).__name__}: {e}") from e
        finally:
            self._response = None


class ReplayFeed(Feed):
    """
    Replays recorded statuses as if they arrived from the stream.

    Statuses are kept pending until one matches the current terms, so a
    later filter still sees statuses an earlier one skipped. When nothing
    pending matches, the feed waits for a filter change, like an idle stream.
    """

    def __init__(self, statuses: Iterable[Union[Dict[str, Any], Message]], delay: float = 0.0):
        self._pending: List[Message] = [
            s if isinstance(s, Message) else message_from_status(s) for s in statuses
        ]
        self.delay = delay
        self._filter = _FilterState()
        self.delivered = 0

    @classmethod
    def from_file(cls, path: Union[str, Path], delay: float = 0.0) -> "ReplayFeed":
        """Load one JSON status per line."""
        path = Path(path)
        try:
            with path.open(encoding="utf-8") as handle:
                statuses = [json.loads(line) for line in handle if line.strip()]
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"Cannot load replay file {path}: {e}") from e
        logger.info(f"Loaded {len(statuses)} statuses from {path}")
        return cls([s for s in statuses if is_status(s)], delay=delay)

    @property
    def remaining(self) -> int:
        return len(self._pending)

    async def reset_filter(self, keywords: Set[str]) -> None:
        self._filter.set(keywords)

    async def unsubscribe(self) -> None:
        self._filter.closed = True
        self._filter.set(set())

    async def aclose(self) -> None:
        self._filter.closed = True
        self._filter.changed.set()

    def _next_match(self) -> Optional[Message]:
        for position, message in enumerate(self._pending):
            if matches_terms(message.text, self._filter.terms):
                return self._pending.pop(position)
        return None

    async def subscribe(self, keywords: Set[str]) -> AsyncIterator[Message]:
        self._filter.closed = False
        self._filter.set(keywords)

        while not self._filter.closed:
            await self._filter.wait_for_terms()
            if self._filter.closed:
                break
            message = self._next_match()
            if message is None:
                # Nothing left for these terms; idle until they change
                self._filter.changed.clear()
                await self._filter.changed.wait()
                continue

            self.delivered += 1
            yield message
            await asyncio.sleep(self.delay)
