"""Per-item pipeline — fetch, sample, rate, classify, dedupe, dispatch."""

from __future__ import annotations

import time
from collections.abc import Callable
from enum import StrEnum

import structlog
from pydantic import BaseModel

from viewrate.core.types import Sample, Tier, TrackedItem
from viewrate.feeds.base import MeasurementSource
from viewrate.feeds.exceptions import FetchError
from viewrate.monitor.dispatcher import NotificationDispatcher
from viewrate.monitor.types import DispatchRequest
from viewrate.storage.base import SampleStore
from viewrate.storage.exceptions import StorageError
from viewrate.tracking.classifier import classify_item
from viewrate.tracking.dedup import AlertDeduplicator
from viewrate.tracking.rate import compute_rate

logger = structlog.get_logger(__name__)


class PipelineStage(StrEnum):
    """Stage at which an item's run stopped early."""

    FETCH = "fetch"
    APPEND = "append"
    RATE = "rate"
    UNEXPECTED = "unexpected"


class PipelineResult(BaseModel):
    """Outcome of one item's run within a sweep."""

    item_id: str
    measurement: int | None = None
    rate: int = 0
    tier: Tier = Tier.NORMAL
    suppressed: bool = False
    alerts_sent: int = 0
    failed_stage: PipelineStage | None = None
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.failed_stage is None


class ItemPipeline:
    """Runs the full fetch-to-dispatch sequence for a single item.

    Expected failures (fetch, storage) are logged and reported in the
    result; anything else propagates to the scheduler, which isolates it.
    """

    def __init__(
        self,
        source: MeasurementSource,
        samples: SampleStore,
        deduplicator: AlertDeduplicator,
        dispatcher: NotificationDispatcher,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._source = source
        self._samples = samples
        self._dedup = deduplicator
        self._dispatcher = dispatcher
        self._clock = clock

    async def run(self, item: TrackedItem) -> PipelineResult:
        try:
            measurement = await self._source.fetch_measurement(item.id)
        except FetchError as exc:
            logger.warning("fetch_failed", item_id=item.id, error=str(exc))
            return PipelineResult(
                item_id=item.id, failed_stage=PipelineStage.FETCH, error=str(exc)
            )

        sample = Sample(item_id=item.id, measurement=measurement, observed_at=self._clock())
        try:
            await self._samples.append(sample)
        except StorageError as exc:
            logger.warning("sample_append_failed", item_id=item.id, error=str(exc))
            return PipelineResult(
                item_id=item.id,
                measurement=measurement,
                failed_stage=PipelineStage.APPEND,
                error=str(exc),
            )

        try:
            recent = await self._samples.recent(item.id, 2)
        except StorageError as exc:
            logger.warning("sample_read_failed", item_id=item.id, error=str(exc))
            return PipelineResult(
                item_id=item.id,
                measurement=measurement,
                failed_stage=PipelineStage.RATE,
                error=str(exc),
            )

        rate = compute_rate(recent)
        if rate < 0:
            # Source reset or out-of-order sample; classified as normal.
            logger.warning(
                "measurement_decreased",
                item_id=item.id,
                measurement=measurement,
                rate=rate,
            )
        tier = classify_item(rate, item)
        logger.info(
            "item_rate",
            item_id=item.id,
            measurement=measurement,
            rate=rate,
            tier=tier.label,
        )

        result = PipelineResult(
            item_id=item.id, measurement=measurement, rate=rate, tier=tier
        )
        if tier == Tier.NORMAL:
            return result

        async with self._dedup.hold(item.id, tier):
            if not await self._dedup.should_send(item.id, tier):
                result.suppressed = True
                return result
            records = await self._dispatcher.dispatch(
                DispatchRequest.for_item(item, tier, rate)
            )

        result.alerts_sent = len(records)
        return result
