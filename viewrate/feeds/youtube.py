"""YouTube measurement source — polls the Data API v3 for video view counts."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from viewrate.core.config import YouTubeConfig, get_settings
from viewrate.feeds.base import ItemMetadata, MeasurementSource
from viewrate.feeds.exceptions import (
    FetchConnectionError,
    FetchParseError,
    ItemNotFoundError,
)

logger = structlog.stdlib.get_logger()


def _first_item(body: object, item_id: str) -> dict[str, Any]:
    """Return the first entry of a ``videos.list`` response.

    Expected structure::

        {"items": [{"id": "abc", "statistics": {"viewCount": "1234"}}]}
    """
    if not isinstance(body, dict):
        raise FetchParseError("YouTube API returned a non-object body")
    items = body.get("items")
    if not isinstance(items, list):
        raise FetchParseError("YouTube API response has no items list")
    if not items:
        raise ItemNotFoundError(f"Video not found: {item_id}")
    first = items[0]
    if not isinstance(first, dict):
        raise FetchParseError("YouTube API item is not an object")
    return first


def _parse_view_count(body: object, item_id: str) -> int:
    """Extract ``statistics.viewCount`` as an int."""
    item = _first_item(body, item_id)
    stats = item.get("statistics")
    if not isinstance(stats, dict) or "viewCount" not in stats:
        raise FetchParseError(f"No viewCount for video {item_id}")
    try:
        return int(stats["viewCount"])
    except (TypeError, ValueError) as exc:
        raise FetchParseError(
            f"Invalid viewCount {stats['viewCount']!r} for video {item_id}"
        ) from exc


def _parse_snippet(body: object, item_id: str) -> ItemMetadata:
    """Extract title and best thumbnail from a ``part=snippet`` response."""
    item = _first_item(body, item_id)
    snippet = item.get("snippet")
    if not isinstance(snippet, dict):
        raise FetchParseError(f"No snippet for video {item_id}")

    thumbnail = ""
    thumbnails = snippet.get("thumbnails")
    if isinstance(thumbnails, dict):
        for size in ("high", "medium", "default"):
            entry = thumbnails.get(size)
            if isinstance(entry, dict) and entry.get("url"):
                thumbnail = str(entry["url"])
                break

    return ItemMetadata(
        id=str(item.get("id", item_id)),
        title=str(snippet.get("title", "")),
        thumbnail=thumbnail,
    )


class YouTubeSource(MeasurementSource):
    """Measurement source backed by the YouTube Data API.

    Usage::

        source = YouTubeSource()
        async with source:
            views = await source.fetch_measurement("dQw4w9WgXcQ")
    """

    def __init__(
        self,
        config: YouTubeConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config or get_settings().youtube
        self._transport = transport
        self._http: httpx.AsyncClient | None = None

    @property
    def connected(self) -> bool:
        """Whether the HTTP client is active."""
        return self._http is not None and not self._http.is_closed

    async def connect(self) -> None:
        """Create the httpx async client."""
        if self.connected:
            return
        self._http = httpx.AsyncClient(
            base_url=self._config.base_url,
            timeout=httpx.Timeout(self._config.timeout_secs),
            transport=self._transport,
        )

    async def close(self) -> None:
        """Close the httpx async client."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def fetch_measurement(self, item_id: str) -> int:
        body = await self._get_videos(item_id, part="statistics")
        views = _parse_view_count(body, item_id)
        logger.debug("youtube_view_count", item_id=item_id, views=views)
        return views

    async def fetch_metadata(self, item_id: str) -> ItemMetadata:
        body = await self._get_videos(item_id, part="snippet")
        return _parse_snippet(body, item_id)

    async def _get_videos(self, item_id: str, part: str) -> object:
        if self._http is None:
            raise FetchConnectionError("HTTP client not connected")

        params = {
            "part": part,
            "id": item_id,
            "key": self._config.api_key.get_secret_value(),
        }
        try:
            response = await self._http.get("/videos", params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise FetchConnectionError(
                f"YouTube API returned {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise FetchConnectionError(f"YouTube API request failed: {exc}") from exc

        try:
            return response.json()
        except ValueError as exc:
            raise FetchParseError("YouTube API returned invalid JSON") from exc
