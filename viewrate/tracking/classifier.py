"""Threshold classifier — maps a rate onto an alert tier."""

from __future__ import annotations

from viewrate.core.types import Tier, TrackedItem


def classify(rate: int, warning_threshold: int, emergency_threshold: int) -> Tier:
    """Return the tier for *rate*. Ties go to the higher tier."""
    if rate >= emergency_threshold:
        return Tier.EMERGENCY
    if rate >= warning_threshold:
        return Tier.WARNING
    return Tier.NORMAL


def classify_item(rate: int, item: TrackedItem) -> Tier:
    return classify(rate, item.warning_threshold, item.emergency_threshold)
