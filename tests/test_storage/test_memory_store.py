"""Tests for the in-memory stores — ordering, filtering, cascades."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from viewrate.core.types import (
    AlertRecord,
    Channel,
    DeliveryOutcome,
    ItemStatus,
    Sample,
    Tier,
    TrackedItem,
)
from viewrate.storage.exceptions import DuplicateItemError, UnknownItemError
from viewrate.storage.memory import create_memory_storage

# ── Helpers ─────────────────────────────────────────────────────


def _item(item_id: str = "vid1", **kw: object) -> TrackedItem:
    defaults: dict[str, object] = {
        "id": item_id,
        "title": f"Video {item_id}",
        "warning_threshold": 30,
        "emergency_threshold": 80,
    }
    defaults.update(kw)
    return TrackedItem(**defaults)  # type: ignore[arg-type]


def _record(**kw: object) -> AlertRecord:
    defaults: dict[str, object] = {
        "item_id": "vid1",
        "tier": Tier.WARNING,
        "channel": Channel.EMAIL,
        "recipient": "a@example.com",
        "message": "WARNING Alert",
        "outcome": DeliveryOutcome.DELIVERED,
        "timestamp": 1000.0,
    }
    defaults.update(kw)
    return AlertRecord(**defaults)  # type: ignore[arg-type]


# ── Items ───────────────────────────────────────────────────────


class TestItems:
    async def test_add_and_get(self) -> None:
        storage = create_memory_storage()
        await storage.items.add(_item())
        got = await storage.items.get("vid1")
        assert got is not None
        assert got.title == "Video vid1"

    async def test_get_unknown(self) -> None:
        storage = create_memory_storage()
        assert await storage.items.get("nope") is None

    async def test_duplicate_rejected(self) -> None:
        storage = create_memory_storage()
        await storage.items.add(_item())
        with pytest.raises(DuplicateItemError):
            await storage.items.add(_item())

    async def test_list_filters_by_status(self) -> None:
        storage = create_memory_storage()
        await storage.items.add(_item("a"))
        await storage.items.add(_item("b", status=ItemStatus.PAUSED))
        active = await storage.items.list_items(status=ItemStatus.ACTIVE)
        assert [i.id for i in active] == ["a"]
        assert len(await storage.items.list_items()) == 2

    async def test_set_status(self) -> None:
        storage = create_memory_storage()
        await storage.items.add(_item())
        updated = await storage.items.set_status("vid1", ItemStatus.PAUSED)
        assert updated.status == ItemStatus.PAUSED
        assert (await storage.items.get("vid1")).status == ItemStatus.PAUSED  # type: ignore[union-attr]

    async def test_set_status_unknown(self) -> None:
        storage = create_memory_storage()
        with pytest.raises(UnknownItemError):
            await storage.items.set_status("nope", ItemStatus.PAUSED)

    async def test_update_thresholds_validates(self) -> None:
        storage = create_memory_storage()
        await storage.items.add(_item())
        with pytest.raises(ValidationError):
            await storage.items.update_thresholds("vid1", 100, 50)
        updated = await storage.items.update_thresholds("vid1", 50, 100)
        assert updated.warning_threshold == 50

    async def test_returned_items_are_copies(self) -> None:
        storage = create_memory_storage()
        await storage.items.add(_item())
        got = await storage.items.get("vid1")
        got.title = "changed"  # type: ignore[union-attr]
        assert (await storage.items.get("vid1")).title == "Video vid1"  # type: ignore[union-attr]

    async def test_delete_cascades(self) -> None:
        storage = create_memory_storage()
        await storage.items.add(_item())
        await storage.items.add(_item("other"))
        await storage.samples.append(Sample(item_id="vid1", measurement=1, observed_at=1.0))
        await storage.alerts.append(_record())
        await storage.alerts.append(_record(item_id="other"))

        assert await storage.items.delete("vid1") is True
        assert await storage.samples.recent("vid1", 5) == []
        remaining = await storage.alerts.query()
        assert [r.item_id for r in remaining] == ["other"]
        assert await storage.items.delete("vid1") is False


# ── Samples ─────────────────────────────────────────────────────


class TestSamples:
    async def test_recent_is_newest_first(self) -> None:
        storage = create_memory_storage()
        for i, views in enumerate([100, 140, 190]):
            await storage.samples.append(
                Sample(item_id="vid1", measurement=views, observed_at=float(i))
            )
        recent = await storage.samples.recent("vid1", 2)
        assert [s.measurement for s in recent] == [190, 140]

    async def test_recent_shorter_history(self) -> None:
        storage = create_memory_storage()
        await storage.samples.append(Sample(item_id="vid1", measurement=5, observed_at=1.0))
        assert len(await storage.samples.recent("vid1", 10)) == 1

    async def test_recent_no_samples(self) -> None:
        storage = create_memory_storage()
        assert await storage.samples.recent("vid1", 2) == []

    async def test_decrease_accepted(self) -> None:
        storage = create_memory_storage()
        await storage.samples.append(Sample(item_id="vid1", measurement=140, observed_at=1.0))
        await storage.samples.append(Sample(item_id="vid1", measurement=100, observed_at=2.0))
        recent = await storage.samples.recent("vid1", 2)
        assert [s.measurement for s in recent] == [100, 140]

    async def test_equal_timestamps_latest_insert_first(self) -> None:
        storage = create_memory_storage()
        await storage.samples.append(Sample(item_id="vid1", measurement=1, observed_at=5.0))
        await storage.samples.append(Sample(item_id="vid1", measurement=2, observed_at=5.0))
        recent = await storage.samples.recent("vid1", 1)
        assert recent[0].measurement == 2

    async def test_history_since_and_limit(self) -> None:
        storage = create_memory_storage()
        for t in range(10):
            await storage.samples.append(
                Sample(item_id="vid1", measurement=t * 10, observed_at=float(t))
            )
        since = await storage.samples.history("vid1", since=7.0)
        assert [s.observed_at for s in since] == [9.0, 8.0, 7.0]
        limited = await storage.samples.history("vid1", limit=2)
        assert [s.observed_at for s in limited] == [9.0, 8.0]


# ── Alert log ───────────────────────────────────────────────────


class TestAlertLog:
    async def test_query_filters(self) -> None:
        storage = create_memory_storage()
        await storage.alerts.append(_record(timestamp=1.0))
        await storage.alerts.append(_record(timestamp=2.0, channel=Channel.SMS, recipient="+1"))
        await storage.alerts.append(
            _record(timestamp=3.0, tier=Tier.EMERGENCY, outcome=DeliveryOutcome.FAILED)
        )

        assert len(await storage.alerts.query(channel=Channel.SMS)) == 1
        assert len(await storage.alerts.query(outcome=DeliveryOutcome.FAILED)) == 1
        assert len(await storage.alerts.query(tier=Tier.WARNING)) == 2
        newest = await storage.alerts.query(limit=1)
        assert newest[0].timestamp == 3.0

    async def test_since_is_exclusive(self) -> None:
        storage = create_memory_storage()
        await storage.alerts.append(_record(timestamp=10.0))
        assert await storage.alerts.query(since=10.0) == []
        assert len(await storage.alerts.query(since=9.9)) == 1

    async def test_exists_counts_tests_by_default(self) -> None:
        storage = create_memory_storage()
        await storage.alerts.append(_record(timestamp=10.0, is_test=True))
        assert await storage.alerts.exists("vid1", Tier.WARNING, since=0.0) is True
        assert await storage.alerts.exists(
            "vid1", Tier.WARNING, since=0.0, include_tests=False
        ) is False
