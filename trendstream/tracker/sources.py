"""Upstream trend sources."""
from abc import ABC, abstractmethod
from typing import Any, List, Optional

import httpx

from trendstream.core.errors import TransportError
from trendstream.core.http import build_client
from trendstream.core.logging import get_logger
from trendstream.core.settings import Settings

logger = get_logger(__name__)

US_WOEID = 23424977
WORLD_WOEID = 1


class TrendSource(ABC):
    """Provides the current trend names, most relevant first."""

    @abstractmethod
    async def fetch_names(self) -> List[str]:
        pass

    async def aclose(self) -> None:
        """Release connections held by the source."""
        pass


class _ApiSource(TrendSource):
    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self.base_url = settings.api_base_url.rstrip("/")
        self.client = client or build_client(settings)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _get_json(self, path: str, params: dict) -> Any:
        url = f"{self.base_url}/{path}"
        try:
            response = await self.client.get(url, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise TransportError(f"HTTP {e.response.status_code} from {url}") from e
        except httpx.RequestError as e:
            raise TransportError(f"Request to {url} failed: {type(e).__name__}: {e}") from e
        except ValueError as e:
            raise TransportError(f"Invalid JSON from {url}: {e}") from e


class LocationTrendSource(_ApiSource):
    """Ranked trending topics for a WOEID location."""

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        super().__init__(settings, client)
        self.woeid = settings.woeid

    async def fetch_names(self) -> List[str]:
        payload = await self._get_json("trends/place.json", {"id": self.woeid})
        names = []
        for location in payload or []:
            for trend in location.get("trends", []):
                if trend.get("name"):
                    names.append(trend["name"])
        logger.info(f"Fetched {len(names)} trends for woeid {self.woeid}")
        return names


class CuratorTrendSource(_ApiSource):
    """Latest posts of a curator account, each used as a pseudo-trend."""

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        super().__init__(settings, client)
        self.account = settings.curator_account

    async def fetch_names(self) -> List[str]:
        statuses = await self._get_json(
            "statuses/user_timeline.json",
            {"screen_name": self.account, "tweet_mode": "extended"},
        )
        names = []
        for status in statuses or []:
            text = (status.get("full_text") or status.get("text") or "").strip()
            if text:
                names.append(text)
        logger.info(f"Fetched {len(names)} posts from @{self.account}")
        return names


def create_trend_source(settings: Settings, client: Optional[httpx.AsyncClient] = None) -> TrendSource:
    """Trend source selected by ``settings.trend_source``."""
    if settings.trend_source == "curator":
        return CuratorTrendSource(settings, client)
    return LocationTrendSource(settings, client)
