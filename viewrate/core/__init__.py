"""Core module — config, types, logging."""

from viewrate.core.config import Settings, get_settings, load_settings, reset_settings
from viewrate.core.logging import setup_logging
from viewrate.core.types import (
    AlertRecord,
    Channel,
    DeliveryOutcome,
    DispatchMode,
    HistoryPoint,
    ItemSnapshot,
    ItemStatus,
    NotificationRecipients,
    Sample,
    Tier,
    TrackedItem,
)

__all__ = [
    "AlertRecord",
    "Channel",
    "DeliveryOutcome",
    "DispatchMode",
    "HistoryPoint",
    "ItemSnapshot",
    "ItemStatus",
    "NotificationRecipients",
    "Sample",
    "Settings",
    "Tier",
    "TrackedItem",
    "get_settings",
    "load_settings",
    "reset_settings",
    "setup_logging",
]
