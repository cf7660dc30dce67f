"""Tests for NotificationDispatcher — fan-out, failure isolation, audit records, decision logging."""

from __future__ import annotations

from unittest.mock import patch

from viewrate.core.types import (
    AlertRecord,
    Channel,
    DeliveryOutcome,
    NotificationRecipients,
    Tier,
    TrackedItem,
)
from viewrate.monitor.channels import NotificationChannel
from viewrate.monitor.dispatcher import NotificationDispatcher
from viewrate.monitor.types import AlertMessage, DispatchRequest
from viewrate.storage.exceptions import StorageError
from viewrate.storage.memory import InMemoryAlertLog

# ── Helpers ─────────────────────────────────────────────────────


class FakeChannel(NotificationChannel):
    def __init__(
        self,
        channel: Channel,
        fail_for: tuple[str, ...] = (),
        raise_for: tuple[str, ...] = (),
    ) -> None:
        self.channel = channel
        self.fail_for = fail_for
        self.raise_for = raise_for
        self.sent: list[tuple[str, AlertMessage]] = []
        self.closed = False

    async def send(self, recipient: str, msg: AlertMessage) -> bool:
        if recipient in self.raise_for:
            raise RuntimeError("provider exploded")
        self.sent.append((recipient, msg))
        return recipient not in self.fail_for

    async def close(self) -> None:
        self.closed = True


class BrokenAlertLog(InMemoryAlertLog):
    async def append(self, record: AlertRecord) -> None:
        raise StorageError("disk full")


def _item(**recipients: list[str]) -> TrackedItem:
    return TrackedItem(
        id="vid1",
        title="Launch",
        warning_threshold=30,
        emergency_threshold=80,
        notifications=NotificationRecipients(**recipients),
    )


def _request(tier: Tier = Tier.EMERGENCY, **recipients: list[str]) -> DispatchRequest:
    return DispatchRequest.for_item(_item(**recipients), tier, rate=120)


def _channels(**kw: FakeChannel) -> dict[Channel, NotificationChannel]:
    return {Channel(name): ch for name, ch in kw.items()}


# ── Fan-out ─────────────────────────────────────────────────────


class TestFanOut:
    async def test_one_record_per_recipient(self) -> None:
        email, chat, sms = (FakeChannel(c) for c in (Channel.EMAIL, Channel.CHAT, Channel.SMS))
        log = InMemoryAlertLog()
        disp = NotificationDispatcher(
            channels=_channels(email=email, chat=chat, sms=sms),
            alert_log=log,
            clock=lambda: 500.0,
        )

        records = await disp.dispatch(_request(
            emails=["a@x.io", "b@x.io"], chat_ids=["z1"], phone_numbers=["+1"],
        ))

        assert [(r.channel, r.recipient) for r in records] == [
            (Channel.EMAIL, "a@x.io"),
            (Channel.EMAIL, "b@x.io"),
            (Channel.CHAT, "z1"),
            (Channel.SMS, "+1"),
        ]
        assert all(r.delivered for r in records)
        assert all(r.timestamp == 500.0 for r in records)
        assert all(r.threshold == 80 and r.rate == 120 for r in records)
        assert records[0].message == "EMERGENCY Alert: 120 views/minute for Launch"
        assert log.records == records

    async def test_empty_channel_lists_skipped(self) -> None:
        email = FakeChannel(Channel.EMAIL)
        disp = NotificationDispatcher(channels=_channels(email=email))
        records = await disp.dispatch(_request(emails=["a@x.io"]))
        assert len(records) == 1

    async def test_no_recipients(self) -> None:
        disp = NotificationDispatcher(channels={})
        assert await disp.dispatch(_request()) == []


# ── Failure isolation ───────────────────────────────────────────


class TestFailureIsolation:
    async def test_failed_recipient_does_not_block_others(self) -> None:
        email = FakeChannel(Channel.EMAIL, fail_for=("bad@x.io",))
        chat = FakeChannel(Channel.CHAT)
        disp = NotificationDispatcher(channels=_channels(email=email, chat=chat))

        records = await disp.dispatch(_request(
            emails=["bad@x.io", "good@x.io"], chat_ids=["z1"],
        ))

        outcomes = {r.recipient: r.outcome for r in records}
        assert outcomes == {
            "bad@x.io": DeliveryOutcome.FAILED,
            "good@x.io": DeliveryOutcome.DELIVERED,
            "z1": DeliveryOutcome.DELIVERED,
        }

    async def test_exception_recorded_as_failed(self) -> None:
        sms = FakeChannel(Channel.SMS, raise_for=("+1",))
        disp = NotificationDispatcher(channels=_channels(sms=sms))
        records = await disp.dispatch(_request(phone_numbers=["+1", "+2"]))
        assert [r.outcome for r in records] == [
            DeliveryOutcome.FAILED,
            DeliveryOutcome.DELIVERED,
        ]

    async def test_missing_channel_recorded_as_failed(self) -> None:
        disp = NotificationDispatcher(channels=_channels(email=FakeChannel(Channel.EMAIL)))
        records = await disp.dispatch(_request(emails=["a@x.io"], chat_ids=["z1"]))
        by_channel = {r.channel: r.outcome for r in records}
        assert by_channel[Channel.CHAT] == DeliveryOutcome.FAILED
        assert by_channel[Channel.EMAIL] == DeliveryOutcome.DELIVERED

    async def test_log_write_failure_does_not_abort(self) -> None:
        email = FakeChannel(Channel.EMAIL)
        disp = NotificationDispatcher(channels=_channels(email=email), alert_log=BrokenAlertLog())
        records = await disp.dispatch(_request(emails=["a@x.io", "b@x.io"]))
        assert len(records) == 2
        assert len(email.sent) == 2


# ── Test mode ───────────────────────────────────────────────────


class TestTestMode:
    async def test_records_flagged(self) -> None:
        chat = FakeChannel(Channel.CHAT)
        disp = NotificationDispatcher(channels=_channels(chat=chat))
        request = DispatchRequest.test(_item(chat_ids=["z9"]), Channel.CHAT, ["z1"], rate=12)

        records = await disp.dispatch(request)

        assert len(records) == 1
        assert records[0].is_test is True
        assert records[0].tier == Tier.WARNING
        assert records[0].threshold == 30
        assert records[0].message.startswith("[TEST] WARNING Alert")
        assert chat.sent[0][0] == "z1"


# ── Decision logging ────────────────────────────────────────────


class TestDecisionLogging:
    async def test_decision_logger_called(self) -> None:
        disp = NotificationDispatcher(channels={})
        with patch("viewrate.monitor.dispatcher.decision_logger") as mock_log:
            await disp.dispatch(_request(emails=["a@x.io"]))
            mock_log.info.assert_called_once()
            kwargs = mock_log.info.call_args[1]
            assert kwargs["tier"] == "emergency"
            assert kwargs["mode"] == "normal"
            assert kwargs["recipients"] == 1


class TestLifecycle:
    async def test_close_closes_channels(self) -> None:
        email, sms = FakeChannel(Channel.EMAIL), FakeChannel(Channel.SMS)
        disp = NotificationDispatcher(channels=_channels(email=email, sms=sms))
        await disp.close()
        assert email.closed and sms.closed

    def test_channels_property_is_copy(self) -> None:
        disp = NotificationDispatcher(channels=_channels(email=FakeChannel(Channel.EMAIL)))
        disp.channels.clear()
        assert Channel.EMAIL in disp.channels
