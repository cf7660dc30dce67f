"""Pure functions that turn dispatch requests into AlertMessage objects."""

from __future__ import annotations

from viewrate.core.types import Tier
from viewrate.monitor.types import AlertMessage, DispatchRequest

_WATCH_URL = "https://www.youtube.com/watch?v={item_id}"

_TEST_PREFIX = "[TEST] "


def watch_url(item_id: str) -> str:
    return _WATCH_URL.format(item_id=item_id)


def format_summary(tier: Tier, rate: int, item_title: str, is_test: bool = False) -> str:
    """One-line message, e.g. ``WARNING Alert: 40 views/minute for My Video``."""
    prefix = _TEST_PREFIX if is_test else ""
    return f"{prefix}{tier.label.upper()} Alert: {rate} views/minute for {item_title}"


def format_alert(request: DispatchRequest) -> AlertMessage:
    """Convert a DispatchRequest to an AlertMessage."""
    prefix = _TEST_PREFIX if request.is_test else ""
    title = f"{prefix}{request.tier.label.upper()} Alert: High view rate detected"
    body = (
        f'The video "{request.item_title}" has reached a view rate of '
        f"{request.rate} views/minute."
    )
    url = watch_url(request.item_id)

    return AlertMessage(
        tier=request.tier,
        title=title,
        body=body,
        text=format_summary(
            request.tier, request.rate, request.item_title, is_test=request.is_test
        ),
        url=url,
        fields={
            "item_id": request.item_id,
            "rate": str(request.rate),
            "threshold": str(request.threshold),
        },
        is_test=request.is_test,
        raw=request.model_dump(mode="json"),
    )
