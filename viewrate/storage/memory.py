"""In-memory implementations of the persistence contracts."""

from __future__ import annotations

from collections import defaultdict

from viewrate.core.types import (
    AlertRecord,
    Channel,
    DeliveryOutcome,
    ItemStatus,
    Sample,
    Tier,
    TrackedItem,
)
from viewrate.storage.base import AlertLog, ItemRepository, SampleStore, Storage
from viewrate.storage.exceptions import DuplicateItemError, UnknownItemError


class InMemorySampleStore(SampleStore):
    """Process-local sample log keyed by item id."""

    def __init__(self) -> None:
        self._samples: dict[str, list[Sample]] = defaultdict(list)

    async def append(self, sample: Sample) -> None:
        self._samples[sample.item_id].append(sample)

    async def recent(self, item_id: str, n: int) -> list[Sample]:
        if n <= 0:
            return []
        return self._newest_first(item_id)[:n]

    async def history(
        self,
        item_id: str,
        since: float | None = None,
        limit: int | None = None,
    ) -> list[Sample]:
        samples = [
            s for s in self._newest_first(item_id)
            if since is None or s.observed_at >= since
        ]
        return samples[:limit] if limit is not None else samples

    def drop(self, item_id: str) -> None:
        self._samples.pop(item_id, None)

    def _newest_first(self, item_id: str) -> list[Sample]:
        # Reversed input keeps the latest insert first among equal timestamps.
        return sorted(
            reversed(self._samples.get(item_id, [])),
            key=lambda s: s.observed_at,
            reverse=True,
        )


class InMemoryAlertLog(AlertLog):
    """Process-local alert log."""

    def __init__(self) -> None:
        self._records: list[AlertRecord] = []

    @property
    def records(self) -> list[AlertRecord]:
        """All records in insertion order."""
        return list(self._records)

    async def append(self, record: AlertRecord) -> None:
        self._records.append(record)

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
        matches = [
            r for r in reversed(self._records)
            if (item_id is None or r.item_id == item_id)
            and (tier is None or r.tier == tier)
            and (since is None or r.timestamp > since)
            and (channel is None or r.channel == channel)
            and (outcome is None or r.outcome == outcome)
            and (include_tests or not r.is_test)
        ]
        matches.sort(key=lambda r: r.timestamp, reverse=True)
        return matches[:limit] if limit is not None else matches

    def drop(self, item_id: str) -> None:
        self._records = [r for r in self._records if r.item_id != item_id]


class InMemoryItemRepository(ItemRepository):
    """Process-local item table. Deletes cascade into the given stores."""

    def __init__(
        self,
        samples: InMemorySampleStore | None = None,
        alerts: InMemoryAlertLog | None = None,
    ) -> None:
        self._items: dict[str, TrackedItem] = {}
        self._samples = samples
        self._alerts = alerts

    async def add(self, item: TrackedItem) -> TrackedItem:
        if item.id in self._items:
            raise DuplicateItemError(f"Item already tracked: {item.id}")
        self._items[item.id] = item.model_copy(deep=True)
        return item.model_copy(deep=True)

    async def get(self, item_id: str) -> TrackedItem | None:
        item = self._items.get(item_id)
        return item.model_copy(deep=True) if item is not None else None

    async def list_items(self, status: ItemStatus | None = None) -> list[TrackedItem]:
        return [
            item.model_copy(deep=True)
            for item in self._items.values()
            if status is None or item.status == status
        ]

    async def set_status(self, item_id: str, status: ItemStatus) -> TrackedItem:
        item = self._require(item_id)
        updated = item.model_copy(update={"status": status})
        self._items[item_id] = updated
        return updated.model_copy(deep=True)

    async def update_thresholds(
        self, item_id: str, warning_threshold: int, emergency_threshold: int
    ) -> TrackedItem:
        item = self._require(item_id)
        # model_copy(update=...) skips validation, so rebuild the model.
        updated = TrackedItem.model_validate(
            {
                **item.model_dump(),
                "warning_threshold": warning_threshold,
                "emergency_threshold": emergency_threshold,
            }
        )
        self._items[item_id] = updated
        return updated.model_copy(deep=True)

    async def delete(self, item_id: str) -> bool:
        if self._items.pop(item_id, None) is None:
            return False
        if self._samples is not None:
            self._samples.drop(item_id)
        if self._alerts is not None:
            self._alerts.drop(item_id)
        return True

    def _require(self, item_id: str) -> TrackedItem:
        item = self._items.get(item_id)
        if item is None:
            raise UnknownItemError(f"Unknown item: {item_id}")
        return item


def create_memory_storage() -> Storage:
    """Build a ``Storage`` whose item deletes cascade to samples and alerts."""
    samples = InMemorySampleStore()
    alerts = InMemoryAlertLog()
    items = InMemoryItemRepository(samples=samples, alerts=alerts)
    return Storage(items=items, samples=samples, alerts=alerts)
