#!/usr/bin/env python3
"""Service entrypoint — wires storage, source, alerting and the poll scheduler.

Usage::

    # Run with default config
    python scripts/run.py

    # Custom config file
    python scripts/run.py --config config/settings.yaml

    # Override log level
    python scripts/run.py --log-level DEBUG
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
import time

import structlog

from viewrate.core.config import Settings, load_settings
from viewrate.core.logging import setup_logging
from viewrate.core.types import Sample
from viewrate.feeds.base import MeasurementSource
from viewrate.feeds.exceptions import FetchError
from viewrate.feeds.youtube import YouTubeSource
from viewrate.monitor.factory import create_monitor_stack
from viewrate.monitor.web_api import start_web_api
from viewrate.storage import Storage, StorageError, create_storage
from viewrate.tracking.dedup import AlertDeduplicator
from viewrate.tracking.pipeline import ItemPipeline
from viewrate.tracking.scheduler import PollScheduler

logger = structlog.get_logger(__name__)


async def seed_items(settings: Settings, storage: Storage, source: MeasurementSource) -> int:
    """Add configured items that are not tracked yet, with an initial sample."""
    added = 0
    for item in settings.items:
        if await storage.items.get(item.id) is not None:
            continue
        if not item.title:
            try:
                meta = await source.fetch_metadata(item.id)
                item = item.model_copy(update={"title": meta.title, "thumbnail": meta.thumbnail})
            except FetchError as exc:
                logger.warning("seed_metadata_failed", item_id=item.id, error=str(exc))
        await storage.items.add(item)
        added += 1
        try:
            views = await source.fetch_measurement(item.id)
            await storage.samples.append(
                Sample(item_id=item.id, measurement=views, observed_at=time.time())
            )
        except FetchError as exc:
            logger.warning("seed_initial_sample_failed", item_id=item.id, error=str(exc))
        logger.info("item_seeded", item_id=item.id, title=item.title)
    return added


async def run(args: argparse.Namespace) -> int:
    """Start all components and run until interrupted."""
    settings = load_settings(args.config)
    setup_logging(level=args.log_level)

    logger.info(
        "service_starting",
        storage=settings.storage.backend,
        poll_interval_secs=settings.scheduler.poll_interval_secs,
        cooldown_secs=settings.scheduler.cooldown_secs,
    )

    # ── Storage + source ─────────────────────────────────────────
    storage = create_storage(settings.storage)
    source = YouTubeSource(settings.youtube)
    await source.connect()

    # ── Alerting ─────────────────────────────────────────────────
    dispatcher = create_monitor_stack(settings.alerts, alert_log=storage.alerts)
    deduplicator = AlertDeduplicator(
        storage.alerts,
        cooldown_secs=settings.scheduler.cooldown_secs,
    )

    # ── Pipeline + scheduler ─────────────────────────────────────
    pipeline = ItemPipeline(
        source=source,
        samples=storage.samples,
        deduplicator=deduplicator,
        dispatcher=dispatcher,
    )
    scheduler = PollScheduler(
        items=storage.items,
        pipeline=pipeline,
        interval_secs=settings.scheduler.poll_interval_secs,
        max_concurrency=settings.scheduler.max_concurrency,
    )

    try:
        seeded = await seed_items(settings, storage, source)
        await scheduler.start()
    except StorageError:
        logger.exception("storage_unavailable_at_startup")
        await dispatcher.close()
        await source.close()
        await storage.close()
        return 1

    logger.info("items_seeded", count=seeded)

    runner = None
    if settings.api.enabled:
        runner = await start_web_api(
            storage,
            dispatcher,
            host=settings.api.host,
            port=settings.api.port,
            history_limit=settings.scheduler.history_limit,
        )

    logger.info("service_running", api="active" if runner else "disabled")

    # ── Wait for shutdown signal ─────────────────────────────────
    stop_event = asyncio.Event()

    def _signal_handler() -> None:
        logger.info("shutdown_signal_received")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            # Windows: signal handlers not supported on ProactorEventLoop
            pass

    try:
        await stop_event.wait()
    except KeyboardInterrupt:
        logger.info("keyboard_interrupt")

    # ── Graceful shutdown ────────────────────────────────────────
    logger.info("service_shutting_down")

    await scheduler.stop()
    if runner is not None:
        await runner.cleanup()
    await dispatcher.close()
    await source.close()
    await storage.close()

    logger.info(
        "service_stopped",
        ticks=scheduler.tick_count,
        skipped_ticks=scheduler.skipped_ticks,
    )
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Poll view counts, classify view rates and dispatch alerts.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to settings YAML (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level override: DEBUG, INFO, WARNING, ERROR",
    )
    args = parser.parse_args()

    code = asyncio.run(run(args))
    sys.exit(code)


if __name__ == "__main__":
    main()
