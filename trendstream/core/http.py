"""Shared httpx client construction for the upstream API and feed."""
from typing import Dict, Optional

import httpx

from trendstream import __version__

from .settings import Settings

USER_AGENT = f"TrendStream/{__version__}"


def build_headers(settings: Settings) -> Dict[str, str]:
    headers = {"User-Agent": USER_AGENT}
    if settings.api_token:
        headers["Authorization"] = f"Bearer {settings.api_token}"
    return headers


def build_client(
    settings: Settings,
    timeout: Optional[httpx.Timeout] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """AsyncClient carrying the configured headers; ``transport`` is for tests."""
    return httpx.AsyncClient(
        timeout=timeout or httpx.Timeout(10.0),
        headers=build_headers(settings),
        follow_redirects=True,
        transport=transport,
        limits=httpx.Limits(
            max_keepalive_connections=10,
            max_connections=20,
            keepalive_expiry=30.0
        )
    )
