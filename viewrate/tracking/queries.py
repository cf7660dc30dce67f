"""Read-side queries and the manual test trigger.

Rates and tiers here are derived live from stored samples; nothing is
cached on the item.
"""

from __future__ import annotations

import structlog
from pydantic import BaseModel, Field

from viewrate.core.types import (
    AlertRecord,
    Channel,
    DeliveryOutcome,
    HistoryPoint,
    ItemSnapshot,
    ItemStatus,
    NotificationRecipients,
    Tier,
    TrackedItem,
)
from viewrate.monitor.dispatcher import NotificationDispatcher
from viewrate.monitor.types import DispatchRequest
from viewrate.storage.base import AlertLog, ItemRepository, SampleStore
from viewrate.storage.exceptions import UnknownItemError
from viewrate.tracking.classifier import classify_item
from viewrate.tracking.rate import compute_rate, rate_history

logger = structlog.get_logger(__name__)

DEFAULT_HISTORY_LIMIT = 60


class ItemDetail(BaseModel):
    """Snapshot plus recent history for a single item."""

    snapshot: ItemSnapshot
    history: list[HistoryPoint] = Field(default_factory=list)
    notifications: NotificationRecipients = Field(default_factory=NotificationRecipients)


async def build_snapshot(item: TrackedItem, samples: SampleStore) -> ItemSnapshot:
    """Current measurement, rate and tier from the two most recent samples."""
    recent = await samples.recent(item.id, 2)
    rate = compute_rate(recent)
    return ItemSnapshot(
        id=item.id,
        title=item.title,
        thumbnail=item.thumbnail,
        status=item.status,
        tier=classify_item(rate, item),
        current_measurement=recent[0].measurement if recent else 0,
        rate=rate,
        warning_threshold=item.warning_threshold,
        emergency_threshold=item.emergency_threshold,
    )


async def list_snapshots(
    items: ItemRepository,
    samples: SampleStore,
    status: ItemStatus | None = None,
) -> list[ItemSnapshot]:
    return [
        await build_snapshot(item, samples)
        for item in await items.list_items(status=status)
    ]


async def get_item_detail(
    items: ItemRepository,
    samples: SampleStore,
    item_id: str,
    since: float | None = None,
    limit: int | None = DEFAULT_HISTORY_LIMIT,
) -> ItemDetail:
    """Snapshot plus time-bounded history in chronological order.

    Raises:
        UnknownItemError: no item with *item_id*.
    """
    item = await items.get(item_id)
    if item is None:
        raise UnknownItemError(f"Unknown item: {item_id}")

    snapshot = await build_snapshot(item, samples)
    history = await samples.history(item_id, since=since, limit=limit)
    return ItemDetail(
        snapshot=snapshot,
        history=rate_history(history),
        notifications=item.notifications,
    )


async def alert_history(
    alert_log: AlertLog,
    channel: Channel | None = None,
    outcome: DeliveryOutcome | None = None,
    tier: Tier | None = None,
    item_id: str | None = None,
    limit: int | None = None,
) -> list[AlertRecord]:
    """Alert records, newest first, optionally filtered."""
    return await alert_log.query(
        item_id=item_id,
        tier=tier,
        channel=channel,
        outcome=outcome,
        limit=limit,
    )


async def send_test_alert(
    dispatcher: NotificationDispatcher,
    items: ItemRepository,
    samples: SampleStore,
    item_id: str,
    channel: Channel,
    recipients: list[str] | None = None,
) -> list[AlertRecord]:
    """Send a WARNING-tier test alert over one channel, skipping the cooldown.

    Uses *recipients* if given, else the item's configured recipients for
    *channel*.

    Raises:
        UnknownItemError: no item with *item_id*.
        ValueError: no recipients to send to.
    """
    item = await items.get(item_id)
    if item is None:
        raise UnknownItemError(f"Unknown item: {item_id}")

    targets = list(recipients) if recipients else item.notifications.for_channel(channel)
    if not targets:
        raise ValueError(f"No {channel.value} recipients for item {item_id}")

    rate = compute_rate(await samples.recent(item_id, 2))
    logger.info(
        "test_alert_requested",
        item_id=item_id,
        channel=channel.value,
        recipients=len(targets),
    )
    return await dispatcher.dispatch(DispatchRequest.test(item, channel, targets, rate=rate))
