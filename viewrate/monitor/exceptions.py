"""Notification delivery exceptions."""

from __future__ import annotations


class SendError(Exception):
    """A single channel/recipient send attempt failed."""

    def __init__(self, channel: str, recipient: str, reason: str = "") -> None:
        self.channel = channel
        self.recipient = recipient
        self.reason = reason
        super().__init__(f"{channel} send to {recipient} failed: {reason}")
