"""Tests for domain types — tier ordering, item validation, recipients."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from viewrate.core.types import (
    AlertRecord,
    Channel,
    DeliveryOutcome,
    NotificationRecipients,
    Sample,
    Tier,
    TrackedItem,
)


def _item(**kw: object) -> TrackedItem:
    defaults: dict[str, object] = {
        "id": "vid1",
        "title": "My Video",
        "warning_threshold": 30,
        "emergency_threshold": 80,
    }
    defaults.update(kw)
    return TrackedItem(**defaults)  # type: ignore[arg-type]


class TestTier:
    def test_ordering(self) -> None:
        assert Tier.NORMAL < Tier.WARNING < Tier.EMERGENCY

    def test_label(self) -> None:
        assert Tier.EMERGENCY.label == "emergency"

    def test_from_label_case_insensitive(self) -> None:
        assert Tier.from_label("Warning") == Tier.WARNING

    def test_from_label_unknown(self) -> None:
        with pytest.raises(ValueError, match="Unknown tier"):
            Tier.from_label("critical")


class TestTrackedItem:
    def test_valid_thresholds(self) -> None:
        item = _item()
        assert item.active

    def test_emergency_must_exceed_warning(self) -> None:
        with pytest.raises(ValidationError):
            _item(warning_threshold=80, emergency_threshold=80)

    def test_warning_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            _item(warning_threshold=0, emergency_threshold=10)

    def test_empty_id_rejected(self) -> None:
        with pytest.raises(ValidationError):
            _item(id="")

    def test_threshold_for(self) -> None:
        item = _item()
        assert item.threshold_for(Tier.WARNING) == 30
        assert item.threshold_for(Tier.EMERGENCY) == 80
        assert item.threshold_for(Tier.NORMAL) == 0


class TestNotificationRecipients:
    def test_defaults_are_empty(self) -> None:
        r = NotificationRecipients()
        assert r.total == 0
        assert [c for c, _ in r.items()] == [Channel.EMAIL, Channel.CHAT, Channel.SMS]

    def test_legacy_aliases(self) -> None:
        r = NotificationRecipients.model_validate(
            {"emails": ["a@x.io"], "zaloIds": ["z1", "z2"], "phoneNumbers": ["+1555"]}
        )
        assert r.chat_ids == ["z1", "z2"]
        assert r.phone_numbers == ["+1555"]
        assert r.total == 4

    def test_for_channel_returns_copy(self) -> None:
        r = NotificationRecipients(emails=["a@x.io"])
        r.for_channel(Channel.EMAIL).append("b@x.io")
        assert r.emails == ["a@x.io"]


class TestImmutableRecords:
    def test_sample_is_frozen(self) -> None:
        s = Sample(item_id="vid1", measurement=100, observed_at=1.0)
        with pytest.raises(ValidationError):
            s.measurement = 5  # type: ignore[misc]

    def test_alert_record_delivered(self) -> None:
        r = AlertRecord(
            item_id="vid1",
            tier=Tier.WARNING,
            channel=Channel.SMS,
            recipient="+1555",
            message="m",
            outcome=DeliveryOutcome.DELIVERED,
        )
        assert r.delivered
        assert r.is_test is False
