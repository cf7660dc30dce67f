"""Poll scheduler — runs the item pipeline for every active item on a fixed cadence."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable

import structlog

from viewrate.core.types import ItemStatus, TrackedItem
from viewrate.storage.base import ItemRepository
from viewrate.storage.exceptions import StorageError
from viewrate.tracking.pipeline import ItemPipeline, PipelineResult, PipelineStage

logger = structlog.stdlib.get_logger()

Clock = Callable[[], float]
SleepFn = Callable[[float], Awaitable[None]]


class PollScheduler:
    """Fires one sweep over all active items every ``interval_secs``.

    - A tick that comes due while the previous sweep is still running is
      skipped, so the cadence never drifts behind a slow sweep.
    - Items within a sweep run concurrently up to ``max_concurrency``;
      an item already in flight is never started a second time.
    - Each item is isolated: any error is logged and the sweep continues.

    ``clock`` and ``sleep`` are injectable so ticks can be driven
    deterministically in tests; ``run_tick()`` runs one sweep directly.

    Usage::

        scheduler = PollScheduler(items, pipeline, interval_secs=60)
        await scheduler.start()
        # ...
        await scheduler.stop()
    """

    def __init__(
        self,
        items: ItemRepository,
        pipeline: ItemPipeline,
        interval_secs: float = 60.0,
        max_concurrency: int = 10,
        clock: Clock = time.monotonic,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._items = items
        self._pipeline = pipeline
        self._interval_secs = interval_secs
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._clock = clock
        self._sleep = sleep
        self._task: asyncio.Task[None] | None = None
        self._sweep_task: asyncio.Task[list[PipelineResult]] | None = None
        self._running = False
        self._in_flight: set[str] = set()
        self._tick_count = 0
        self._skipped_ticks = 0
        self._failed_sweeps = 0
        self._last_results: list[PipelineResult] = []

    @property
    def running(self) -> bool:
        return self._running

    @property
    def tick_count(self) -> int:
        """Number of sweeps started."""
        return self._tick_count

    @property
    def skipped_ticks(self) -> int:
        """Ticks dropped because the previous sweep was still running."""
        return self._skipped_ticks

    @property
    def failed_sweeps(self) -> int:
        """Background sweeps that ended with an unhandled error."""
        return self._failed_sweeps

    @property
    def last_results(self) -> list[PipelineResult]:
        return list(self._last_results)

    @property
    def in_flight(self) -> frozenset[str]:
        return frozenset(self._in_flight)

    # ── Lifecycle ───────────────────────────────────────────────

    async def start(self) -> None:
        """Verify persistence and start the background loop.

        Raises:
            StorageError: the item repository is unreachable at startup.
        """
        if self._running:
            return
        # Claimed before the first await so a concurrent start() returns early.
        self._running = True
        try:
            active = await self._items.list_items(status=ItemStatus.ACTIVE)
        except BaseException:
            self._running = False
            raise
        self._task = asyncio.create_task(self._loop())
        logger.info(
            "scheduler_started",
            interval_secs=self._interval_secs,
            active_items=len(active),
        )

    async def stop(self) -> None:
        """Stop the loop and wait for an in-flight sweep to finish."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if self._sweep_task is not None:
            # Errors surface through _on_sweep_done.
            await asyncio.wait({self._sweep_task})
            self._sweep_task = None
        logger.info(
            "scheduler_stopped",
            ticks=self._tick_count,
            skipped_ticks=self._skipped_ticks,
        )

    # ── Sweeps ──────────────────────────────────────────────────

    async def run_tick(self) -> list[PipelineResult]:
        """Run one sweep over all active items and return their results."""
        self._tick_count += 1
        tick = self._tick_count
        try:
            items = await self._items.list_items(status=ItemStatus.ACTIVE)
        except StorageError:
            logger.exception("item_listing_failed", tick=tick)
            return []

        outcomes = await asyncio.gather(*(self._run_item(item) for item in items))
        results = [r for r in outcomes if r is not None]
        self._last_results = results

        logger.info(
            "tick_complete",
            tick=tick,
            items=len(items),
            alerts_sent=sum(r.alerts_sent for r in results),
            suppressed=sum(1 for r in results if r.suppressed),
            errors=sum(1 for r in results if not r.ok),
        )
        return results

    async def _run_item(self, item: TrackedItem) -> PipelineResult | None:
        if item.id in self._in_flight:
            logger.warning("item_already_running", item_id=item.id)
            return None
        self._in_flight.add(item.id)
        try:
            async with self._semaphore:
                return await self._pipeline.run(item)
        except Exception as exc:
            logger.exception("item_pipeline_error", item_id=item.id)
            return PipelineResult(
                item_id=item.id,
                failed_stage=PipelineStage.UNEXPECTED,
                error=str(exc),
            )
        finally:
            self._in_flight.discard(item.id)

    async def _loop(self) -> None:
        """Background loop that starts a sweep at each tick deadline."""
        next_tick = self._clock()
        while self._running:
            try:
                if self._sweep_task is not None and not self._sweep_task.done():
                    self._skipped_ticks += 1
                    logger.warning(
                        "tick_skipped",
                        reason="previous sweep still running",
                        skipped_ticks=self._skipped_ticks,
                    )
                else:
                    self._sweep_task = asyncio.create_task(self.run_tick())
                    self._sweep_task.add_done_callback(self._on_sweep_done)
            except Exception:
                logger.exception("scheduler_loop_error")

            next_tick += self._interval_secs
            try:
                await self._sleep(max(0.0, next_tick - self._clock()))
            except asyncio.CancelledError:
                break

    def _on_sweep_done(self, task: asyncio.Task[list[PipelineResult]]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._failed_sweeps += 1
            logger.error(
                "sweep_failed",
                error=str(exc),
                error_type=type(exc).__name__,
                failed_sweeps=self._failed_sweeps,
            )
