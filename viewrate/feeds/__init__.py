"""Measurement sources — external view counts for tracked items."""

from viewrate.feeds.base import ItemMetadata, MeasurementSource
from viewrate.feeds.exceptions import (
    FetchConnectionError,
    FetchError,
    FetchParseError,
    ItemNotFoundError,
)
from viewrate.feeds.youtube import YouTubeSource

__all__ = [
    "FetchConnectionError",
    "FetchError",
    "FetchParseError",
    "ItemMetadata",
    "ItemNotFoundError",
    "MeasurementSource",
    "YouTubeSource",
]
