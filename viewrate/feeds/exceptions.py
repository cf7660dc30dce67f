"""Exception hierarchy for measurement sources."""

from __future__ import annotations


class FetchError(Exception):
    """Base exception for all measurement fetch errors."""


class FetchConnectionError(FetchError):
    """Failed to reach the measurement source (HTTP/transport)."""


class FetchParseError(FetchError):
    """Failed to parse a response from the measurement source."""


class ItemNotFoundError(FetchError):
    """The source does not know the requested item."""
