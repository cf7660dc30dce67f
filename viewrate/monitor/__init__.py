"""Alerting subsystem — message formatting, channels and dispatch."""

from viewrate.monitor.channels import (
    ChatChannel,
    EmailChannel,
    LogChannel,
    NotificationChannel,
    SmsChannel,
)
from viewrate.monitor.dispatcher import NotificationDispatcher
from viewrate.monitor.exceptions import SendError
from viewrate.monitor.factory import create_channels, create_monitor_stack
from viewrate.monitor.formatters import format_alert, format_summary
from viewrate.monitor.types import AlertMessage, DispatchRequest

__all__ = [
    "AlertMessage",
    "ChatChannel",
    "DispatchRequest",
    "EmailChannel",
    "LogChannel",
    "NotificationChannel",
    "NotificationDispatcher",
    "SendError",
    "SmsChannel",
    "create_channels",
    "create_monitor_stack",
    "format_alert",
    "format_summary",
]
