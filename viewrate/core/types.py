"""Domain types for view-rate tracking — items, samples, tiers and alert records."""

from __future__ import annotations

import time
from collections.abc import Iterator
from enum import IntEnum, StrEnum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator


class Tier(IntEnum):
    """Alert tier — ordered so comparisons work naturally."""

    NORMAL = 0
    WARNING = 1
    EMERGENCY = 2

    @property
    def label(self) -> str:
        """Lowercase wire name (``normal``, ``warning``, ``emergency``)."""
        return self.name.lower()

    @classmethod
    def from_label(cls, label: str) -> Tier:
        try:
            return cls[label.strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown tier: {label!r}") from None


class ItemStatus(StrEnum):
    """Lifecycle status of a tracked item."""

    ACTIVE = "active"
    PAUSED = "paused"


class Channel(StrEnum):
    """Notification channel."""

    EMAIL = "email"
    CHAT = "chat"
    SMS = "sms"


class DeliveryOutcome(StrEnum):
    """Result of a single send attempt."""

    DELIVERED = "delivered"
    FAILED = "failed"


class DispatchMode(StrEnum):
    """Whether a dispatch is a real alert or a manual test."""

    NORMAL = "normal"
    TEST = "test"


# Fixed fan-out order across channels.
CHANNEL_ORDER: tuple[Channel, ...] = (Channel.EMAIL, Channel.CHAT, Channel.SMS)


class NotificationRecipients(BaseModel):
    """Recipients per channel; each list is independently optional."""

    model_config = ConfigDict(populate_by_name=True)

    emails: list[str] = Field(default_factory=list)
    chat_ids: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("chat_ids", "zaloIds", "zalo_ids"),
    )
    phone_numbers: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("phone_numbers", "phoneNumbers"),
    )

    def for_channel(self, channel: Channel) -> list[str]:
        if channel == Channel.EMAIL:
            return list(self.emails)
        if channel == Channel.CHAT:
            return list(self.chat_ids)
        return list(self.phone_numbers)

    def items(self) -> Iterator[tuple[Channel, list[str]]]:
        """Yield ``(channel, recipients)`` in email, chat, sms order."""
        for channel in CHANNEL_ORDER:
            yield channel, self.for_channel(channel)

    @property
    def total(self) -> int:
        return len(self.emails) + len(self.chat_ids) + len(self.phone_numbers)


class TrackedItem(BaseModel):
    """An externally hosted item (e.g. a YouTube video) whose views are tracked."""

    id: str
    title: str = ""
    thumbnail: str = ""
    warning_threshold: int
    emergency_threshold: int
    status: ItemStatus = ItemStatus.ACTIVE
    notifications: NotificationRecipients = Field(default_factory=NotificationRecipients)
    created_at: float = Field(default_factory=time.time)

    @model_validator(mode="after")
    def _check_thresholds(self) -> TrackedItem:
        if not self.id:
            raise ValueError("item id must not be empty")
        if self.warning_threshold <= 0:
            raise ValueError("warning_threshold must be positive")
        if self.emergency_threshold <= self.warning_threshold:
            raise ValueError("emergency_threshold must be greater than warning_threshold")
        return self

    @property
    def active(self) -> bool:
        return self.status == ItemStatus.ACTIVE

    def threshold_for(self, tier: Tier) -> int:
        """Return the threshold that *tier* crossed (0 for NORMAL)."""
        if tier == Tier.EMERGENCY:
            return self.emergency_threshold
        if tier == Tier.WARNING:
            return self.warning_threshold
        return 0


class Sample(BaseModel):
    """One observed measurement for an item. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    item_id: str
    measurement: int
    observed_at: float = Field(default_factory=time.time)


class AlertRecord(BaseModel):
    """One delivery attempt. Audit log entry and deduplication index."""

    model_config = ConfigDict(frozen=True)

    item_id: str
    item_title: str = ""
    tier: Tier
    channel: Channel
    recipient: str
    message: str
    outcome: DeliveryOutcome
    timestamp: float = Field(default_factory=time.time)
    rate: int = 0
    threshold: int = 0
    is_test: bool = False

    @property
    def delivered(self) -> bool:
        return self.outcome == DeliveryOutcome.DELIVERED


class ItemSnapshot(BaseModel):
    """Live view of an item: current measurement, rate and tier."""

    id: str
    title: str = ""
    thumbnail: str = ""
    status: ItemStatus = ItemStatus.ACTIVE
    tier: Tier = Tier.NORMAL
    current_measurement: int = 0
    rate: int = 0
    warning_threshold: int
    emergency_threshold: int


class HistoryPoint(BaseModel):
    """A sample with its rate against the immediately preceding sample."""

    observed_at: float
    measurement: int
    rate: int = 0
