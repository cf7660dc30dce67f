"""Convenience factory for wiring the notification stack."""

from __future__ import annotations

import time
from collections.abc import Callable

import structlog

from viewrate.core.config import AlertsConfig
from viewrate.core.types import Channel
from viewrate.monitor.channels import (
    ChatChannel,
    EmailChannel,
    LogChannel,
    NotificationChannel,
    SmsChannel,
)
from viewrate.monitor.dispatcher import NotificationDispatcher
from viewrate.storage.base import AlertLog

logger = structlog.get_logger(__name__)


def create_channels(config: AlertsConfig) -> dict[Channel, NotificationChannel]:
    """Build the enabled channels; dry-run fills the gaps with log-only ones."""
    channels: dict[Channel, NotificationChannel] = {}

    if config.email.enabled:
        channels[Channel.EMAIL] = EmailChannel(config.email)

    if config.chat.enabled:
        channels[Channel.CHAT] = ChatChannel(config.chat)

    if config.sms.enabled:
        channels[Channel.SMS] = SmsChannel(config.sms)

    if config.dry_run:
        for channel in Channel:
            channels.setdefault(channel, LogChannel(channel))

    logger.info(
        "channels_configured",
        channels=sorted(c.value for c in channels),
        dry_run=config.dry_run,
    )
    return channels


def create_monitor_stack(
    config: AlertsConfig,
    alert_log: AlertLog | None = None,
    clock: Callable[[], float] = time.time,
) -> NotificationDispatcher:
    """Build a dispatcher over the configured channels."""
    return NotificationDispatcher(
        channels=create_channels(config),
        alert_log=alert_log,
        clock=clock,
    )
