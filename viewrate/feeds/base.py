"""Abstract measurement source — connection lifecycle and the fetch contract."""

from __future__ import annotations

import abc
from types import TracebackType

from pydantic import BaseModel


class ItemMetadata(BaseModel):
    """Display metadata for an item, as reported by the source."""

    id: str
    title: str = ""
    thumbnail: str = ""


class MeasurementSource(abc.ABC):
    """Abstract base class for external measurement sources.

    Subclasses implement ``connect()``, ``close()`` and
    ``fetch_measurement()``. Failures are raised as ``FetchError``
    subclasses; callers decide whether to skip or abort.

    Usage::

        async with YouTubeSource(config) as source:
            views = await source.fetch_measurement("dQw4w9WgXcQ")
    """

    @abc.abstractmethod
    async def connect(self) -> None:
        """Establish connection to the data source."""

    @abc.abstractmethod
    async def close(self) -> None:
        """Close connection to the data source."""

    @abc.abstractmethod
    async def fetch_measurement(self, item_id: str) -> int:
        """Return the current measurement for *item_id*.

        Raises:
            ItemNotFoundError: the source does not know the item.
            FetchError: the source is unreachable or the reply is unusable.
        """

    async def fetch_metadata(self, item_id: str) -> ItemMetadata:
        """Return display metadata for *item_id*. Sources may not support it."""
        return ItemMetadata(id=item_id)

    async def __aenter__(self) -> MeasurementSource:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()
