"""Domain types for the alert dispatch subsystem."""

from __future__ import annotations

import time
from typing import Any

from pydantic import BaseModel, Field

from viewrate.core.types import (
    Channel,
    DispatchMode,
    NotificationRecipients,
    Tier,
    TrackedItem,
)


class AlertMessage(BaseModel):
    """Rendered alert, assembled once and handed to every channel."""

    tier: Tier
    title: str
    body: str = ""
    # One-line summary; also stored on each AlertRecord.
    text: str = ""
    url: str = ""
    fields: dict[str, str] = Field(default_factory=dict)
    is_test: bool = False
    timestamp: float = Field(default_factory=time.time)
    raw: dict[str, Any] = Field(default_factory=dict)


class DispatchRequest(BaseModel):
    """What to send and to whom — either a real alert or a manual test."""

    item_id: str
    item_title: str = ""
    tier: Tier
    rate: int = 0
    threshold: int = 0
    recipients: NotificationRecipients = Field(default_factory=NotificationRecipients)
    mode: DispatchMode = DispatchMode.NORMAL

    @property
    def is_test(self) -> bool:
        return self.mode == DispatchMode.TEST

    @classmethod
    def for_item(cls, item: TrackedItem, tier: Tier, rate: int) -> DispatchRequest:
        """Build a normal alert for *item* crossing *tier*."""
        return cls(
            item_id=item.id,
            item_title=item.title,
            tier=tier,
            rate=rate,
            threshold=item.threshold_for(tier),
            recipients=item.notifications,
        )

    @classmethod
    def test(
        cls,
        item: TrackedItem,
        channel: Channel,
        recipients: list[str],
        rate: int = 0,
    ) -> DispatchRequest:
        """Build a WARNING-tier test alert restricted to one channel."""
        by_channel: dict[Channel, list[str]] = {channel: list(recipients)}
        return cls(
            item_id=item.id,
            item_title=item.title,
            tier=Tier.WARNING,
            rate=rate,
            threshold=item.warning_threshold,
            recipients=NotificationRecipients(
                emails=by_channel.get(Channel.EMAIL, []),
                chat_ids=by_channel.get(Channel.CHAT, []),
                phone_numbers=by_channel.get(Channel.SMS, []),
            ),
            mode=DispatchMode.TEST,
        )
