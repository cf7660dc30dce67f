"""Persistence contracts — tracked items, the sample log and the alert log.

All methods are async and raise ``StorageError`` when the backing store is
unreachable. Every write persists exactly one record atomically.
"""

from __future__ import annotations

import abc
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from viewrate.core.types import (
    AlertRecord,
    Channel,
    DeliveryOutcome,
    ItemStatus,
    Sample,
    Tier,
    TrackedItem,
)


class ItemRepository(abc.ABC):
    """Owner of ``TrackedItem`` state. The pipeline only reads from it."""

    @abc.abstractmethod
    async def add(self, item: TrackedItem) -> TrackedItem:
        """Insert a new item. Raises DuplicateItemError if the id exists."""

    @abc.abstractmethod
    async def get(self, item_id: str) -> TrackedItem | None:
        """Return the item or None."""

    @abc.abstractmethod
    async def list_items(self, status: ItemStatus | None = None) -> list[TrackedItem]:
        """Return items in creation order, optionally filtered by status."""

    @abc.abstractmethod
    async def set_status(self, item_id: str, status: ItemStatus) -> TrackedItem:
        """Change lifecycle status. Raises UnknownItemError."""

    @abc.abstractmethod
    async def update_thresholds(
        self, item_id: str, warning_threshold: int, emergency_threshold: int
    ) -> TrackedItem:
        """Replace both thresholds (re-validated). Raises UnknownItemError."""

    @abc.abstractmethod
    async def delete(self, item_id: str) -> bool:
        """Delete an item with its samples and alert records."""


class SampleStore(abc.ABC):
    """Append-only log of ``(item, measurement, observed_at)`` samples."""

    @abc.abstractmethod
    async def append(self, sample: Sample) -> None:
        """Persist one sample. Measurement decreases are accepted as-is."""

    @abc.abstractmethod
    async def recent(self, item_id: str, n: int) -> list[Sample]:
        """Return up to *n* most recent samples, newest first."""

    @abc.abstractmethod
    async def history(
        self,
        item_id: str,
        since: float | None = None,
        limit: int | None = None,
    ) -> list[Sample]:
        """Return samples observed at or after *since*, newest first."""


class AlertLog(abc.ABC):
    """Append-only log of delivery attempts."""

    @abc.abstractmethod
    async def append(self, record: AlertRecord) -> None:
        """Persist one alert record."""

    @abc.abstractmethod
    async def query(
        self,
        item_id: str | None = None,
        tier: Tier | None = None,
        since: float | None = None,
        channel: Channel | None = None,
        outcome: DeliveryOutcome | None = None,
        include_tests: bool = True,
        limit: int | None = None,
    ) -> list[AlertRecord]:
        """Return matching records, newest first. *since* is exclusive."""

    async def exists(
        self,
        item_id: str,
        tier: Tier,
        since: float,
        include_tests: bool = True,
    ) -> bool:
        """Whether any record for ``(item_id, tier)`` is newer than *since*."""
        records = await self.query(
            item_id=item_id,
            tier=tier,
            since=since,
            include_tests=include_tests,
            limit=1,
        )
        return bool(records)


@dataclass
class Storage:
    """The three persistence roles, backed by one store."""

    items: ItemRepository
    samples: SampleStore
    alerts: AlertLog
    closer: Callable[[], Awaitable[None]] | None = field(default=None, repr=False)

    async def close(self) -> None:
        if self.closer is not None:
            await self.closer()
