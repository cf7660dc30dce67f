"""Alert deduplicator — per (item, tier) cooldown backed by the alert log."""

from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

import structlog

from viewrate.core.types import Tier
from viewrate.storage.base import AlertLog
from viewrate.storage.exceptions import StorageError

logger = structlog.get_logger(__name__)

Clock = Callable[[], float]

DEFAULT_COOLDOWN_SECS = 300.0


class AlertDeduplicator:
    """Suppresses repeat alerts of the same tier for the same item.

    The alert log is the source of truth: an alert is suppressed when any
    record for ``(item, tier)``, test alerts included, is newer than
    ``now - cooldown``.
    Tiers are independent keys, so an emergency never suppresses a warning.

    Check and dispatch must run inside ``hold()`` so two concurrent
    evaluations of the same key cannot both pass::

        async with dedup.hold(item.id, tier):
            if await dedup.should_send(item.id, tier):
                await dispatcher.dispatch(request)
    """

    def __init__(
        self,
        alert_log: AlertLog,
        cooldown_secs: float = DEFAULT_COOLDOWN_SECS,
        clock: Clock = time.time,
    ) -> None:
        self._alert_log = alert_log
        self._cooldown_secs = cooldown_secs
        self._clock = clock
        self._locks: dict[tuple[str, Tier], asyncio.Lock] = {}
        self._holders: dict[tuple[str, Tier], int] = {}

    @property
    def cooldown_secs(self) -> float:
        return self._cooldown_secs

    async def should_send(self, item_id: str, tier: Tier) -> bool:
        """Return False if a same-tier alert went out within the cooldown.

        A failed log query fails closed: the alert is suppressed.
        """
        since = self._clock() - self._cooldown_secs
        try:
            recent = await self._alert_log.exists(item_id, tier, since)
        except StorageError as exc:
            logger.warning(
                "dedupe_check_failed",
                item_id=item_id,
                tier=tier.label,
                error=str(exc),
            )
            return False

        if recent:
            logger.info(
                "alert_suppressed",
                item_id=item_id,
                tier=tier.label,
                cooldown_secs=self._cooldown_secs,
            )
            return False
        return True

    @asynccontextmanager
    async def hold(self, item_id: str, tier: Tier) -> AsyncIterator[None]:
        """Serialise check-and-dispatch for one ``(item, tier)`` key."""
        key = (item_id, tier)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._holders[key] = self._holders.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            # Last holder out drops the key so idle items do not accumulate locks.
            self._holders[key] -= 1
            if self._holders[key] == 0:
                del self._holders[key]
                del self._locks[key]
