"""Tracking — rate engine, classifier, deduplicator, pipeline and scheduler."""

from viewrate.tracking.classifier import classify, classify_item
from viewrate.tracking.dedup import AlertDeduplicator
from viewrate.tracking.pipeline import ItemPipeline, PipelineResult, PipelineStage
from viewrate.tracking.queries import (
    ItemDetail,
    alert_history,
    build_snapshot,
    get_item_detail,
    list_snapshots,
    send_test_alert,
)
from viewrate.tracking.rate import compute_rate, rate_history
from viewrate.tracking.scheduler import PollScheduler

__all__ = [
    "AlertDeduplicator",
    "ItemDetail",
    "ItemPipeline",
    "PipelineResult",
    "PipelineStage",
    "PollScheduler",
    "alert_history",
    "build_snapshot",
    "classify",
    "classify_item",
    "compute_rate",
    "get_item_detail",
    "list_snapshots",
    "rate_history",
    "send_test_alert",
]
