"""Notification dispatcher — fans an alert out to every recipient and logs each attempt."""

from __future__ import annotations

import time
from collections.abc import Callable

import structlog

from viewrate.core.types import AlertRecord, Channel, DeliveryOutcome
from viewrate.monitor.channels import NotificationChannel
from viewrate.monitor.exceptions import SendError
from viewrate.monitor.formatters import format_alert
from viewrate.monitor.types import AlertMessage, DispatchRequest
from viewrate.storage.base import AlertLog
from viewrate.storage.exceptions import StorageError

# Dedicated structured logger for dispatch decisions.
decision_logger = structlog.get_logger("decision_log")

logger = structlog.get_logger(__name__)

Clock = Callable[[], float]


class NotificationDispatcher:
    """Sends one message per configured recipient per channel.

    - Every attempt is persisted as an AlertRecord, delivered or failed.
    - A failing channel or recipient never aborts the remaining sends.
    - Test requests are tagged (``is_test``) and otherwise handled
      identically; cooldown checks happen upstream, not here.
    """

    def __init__(
        self,
        channels: dict[Channel, NotificationChannel] | None = None,
        alert_log: AlertLog | None = None,
        clock: Clock = time.time,
    ) -> None:
        self._channels: dict[Channel, NotificationChannel] = dict(channels or {})
        self._alert_log = alert_log
        self._clock = clock

    @property
    def channels(self) -> dict[Channel, NotificationChannel]:
        return dict(self._channels)

    async def dispatch(self, request: DispatchRequest) -> list[AlertRecord]:
        """Send *request* to all its recipients. Returns the records written."""
        msg = format_alert(request)
        self._log_decision(request, msg)

        records: list[AlertRecord] = []
        for channel, recipients in request.recipients.items():
            for recipient in recipients:
                delivered = await self._send_one(channel, recipient, msg)
                record = AlertRecord(
                    item_id=request.item_id,
                    item_title=request.item_title,
                    tier=request.tier,
                    channel=channel,
                    recipient=recipient,
                    message=msg.text,
                    outcome=(
                        DeliveryOutcome.DELIVERED if delivered else DeliveryOutcome.FAILED
                    ),
                    timestamp=self._clock(),
                    rate=request.rate,
                    threshold=request.threshold,
                    is_test=request.is_test,
                )
                await self._persist(record)
                records.append(record)

        logger.info(
            "alerts_dispatched",
            item_id=request.item_id,
            tier=request.tier.label,
            rate=request.rate,
            attempts=len(records),
            delivered=sum(1 for r in records if r.delivered),
            is_test=request.is_test,
        )
        return records

    # ── Internal ────────────────────────────────────────────────

    async def _send_one(self, channel: Channel, recipient: str, msg: AlertMessage) -> bool:
        ch = self._channels.get(channel)
        try:
            if ch is None:
                raise SendError(channel.value, recipient, "channel not configured")
            if not await ch.send(recipient, msg):
                raise SendError(channel.value, recipient, "channel reported failure")
            return True
        except SendError as exc:
            logger.warning(
                "send_failed",
                channel=channel.value,
                recipient=recipient,
                reason=exc.reason,
            )
        except Exception:
            logger.exception(
                "channel_dispatch_error",
                channel=channel.value,
                recipient=recipient,
            )
        return False

    async def _persist(self, record: AlertRecord) -> None:
        if self._alert_log is None:
            return
        try:
            await self._alert_log.append(record)
        except StorageError:
            logger.exception(
                "alert_record_write_failed",
                item_id=record.item_id,
                channel=record.channel.value,
                recipient=record.recipient,
            )

    def _log_decision(self, request: DispatchRequest, msg: AlertMessage) -> None:
        decision_logger.info(
            "decision",
            item_id=request.item_id,
            tier=request.tier.label,
            rate=request.rate,
            threshold=request.threshold,
            mode=request.mode.value,
            title=msg.title,
            recipients=request.recipients.total,
        )

    # ── Lifecycle ───────────────────────────────────────────────

    async def close(self) -> None:
        for ch in self._channels.values():
            try:
                await ch.close()
            except Exception:
                logger.exception("channel_close_error", channel=type(ch).__name__)
