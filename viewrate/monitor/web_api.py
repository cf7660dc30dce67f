"""JSON query API — live item snapshots, history, alert log and test alerts.

Runs as an ``aiohttp`` web server alongside the poll scheduler.
Exposes:
- ``GET /api/items``               → items with live rate and tier
- ``GET /api/items/{item_id}``     → one item with its sample history
- ``GET /api/alerts``              → alert history (channel/outcome/tier filters)
- ``POST /api/alerts/test``        → send a test alert over one channel
"""

from __future__ import annotations

from typing import Any

import structlog
from aiohttp import web

from viewrate.core.types import AlertRecord, Channel, DeliveryOutcome, ItemSnapshot, Tier
from viewrate.monitor.dispatcher import NotificationDispatcher
from viewrate.storage.base import Storage
from viewrate.storage.exceptions import StorageError, UnknownItemError
from viewrate.tracking.queries import (
    DEFAULT_HISTORY_LIMIT,
    ItemDetail,
    alert_history,
    get_item_detail,
    list_snapshots,
    send_test_alert,
)

logger = structlog.get_logger(__name__)


def _error(status: int, message: str) -> web.Response:
    return web.json_response({"error": message}, status=status)


def _snapshot_json(snap: ItemSnapshot) -> dict[str, Any]:
    return {
        "id": snap.id,
        "title": snap.title,
        "thumbnail": snap.thumbnail,
        "status": snap.status.value,
        "tier": snap.tier.label,
        "current_measurement": snap.current_measurement,
        "rate": snap.rate,
        "warning_threshold": snap.warning_threshold,
        "emergency_threshold": snap.emergency_threshold,
    }


def _detail_json(detail: ItemDetail) -> dict[str, Any]:
    data = _snapshot_json(detail.snapshot)
    data["history"] = [p.model_dump() for p in detail.history]
    data["notifications"] = detail.notifications.model_dump()
    return data


def _record_json(record: AlertRecord) -> dict[str, Any]:
    data = record.model_dump(mode="json")
    data["tier"] = record.tier.label
    return data


def _optional_float(request: web.Request, name: str) -> float | None:
    raw = request.query.get(name)
    if raw is None or raw == "":
        return None
    try:
        return float(raw)
    except ValueError:
        raise web.HTTPBadRequest(text=f"{name} must be a number") from None


def _optional_int(request: web.Request, name: str, default: int | None = None) -> int | None:
    raw = request.query.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise web.HTTPBadRequest(text=f"{name} must be an integer") from None
    if value < 0:
        raise web.HTTPBadRequest(text=f"{name} must not be negative")
    return value


# ── Handlers ────────────────────────────────────────────────────


async def _handle_items(request: web.Request) -> web.Response:
    storage: Storage = request.app["storage"]
    try:
        snapshots = await list_snapshots(storage.items, storage.samples)
    except StorageError:
        logger.exception("api_items_failed")
        return _error(500, "Failed to fetch items")
    return web.json_response([_snapshot_json(s) for s in snapshots])


async def _handle_item_detail(request: web.Request) -> web.Response:
    storage: Storage = request.app["storage"]
    item_id = request.match_info["item_id"]
    since = _optional_float(request, "since")
    limit = _optional_int(request, "limit", request.app["history_limit"])
    try:
        detail = await get_item_detail(
            storage.items, storage.samples, item_id, since=since, limit=limit
        )
    except UnknownItemError:
        return _error(404, "Item not found")
    except StorageError:
        logger.exception("api_item_detail_failed", item_id=item_id)
        return _error(500, "Failed to fetch item details")
    return web.json_response(_detail_json(detail))


async def _handle_alerts(request: web.Request) -> web.Response:
    storage: Storage = request.app["storage"]
    try:
        channel = Channel(request.query["channel"]) if request.query.get("channel") else None
        outcome = (
            DeliveryOutcome(request.query["outcome"]) if request.query.get("outcome") else None
        )
        tier = Tier.from_label(request.query["tier"]) if request.query.get("tier") else None
    except ValueError as exc:
        return _error(400, str(exc))
    limit = _optional_int(request, "limit")

    try:
        records = await alert_history(
            storage.alerts, channel=channel, outcome=outcome, tier=tier, limit=limit
        )
    except StorageError:
        logger.exception("api_alerts_failed")
        return _error(500, "Failed to fetch notification history")
    return web.json_response([_record_json(r) for r in records])


async def _handle_test_alert(request: web.Request) -> web.Response:
    storage: Storage = request.app["storage"]
    dispatcher: NotificationDispatcher = request.app["dispatcher"]

    try:
        body = await request.json()
    except ValueError:
        return _error(400, "Body must be JSON")
    if not isinstance(body, dict):
        return _error(400, "Body must be a JSON object")

    item_id = body.get("item_id")
    raw_channel = body.get("channel")
    recipients = body.get("recipients")
    if not item_id or not raw_channel:
        return _error(400, "Missing required parameters")
    if recipients is not None and (
        not isinstance(recipients, list) or not all(isinstance(r, str) for r in recipients)
    ):
        return _error(400, "recipients must be a list of strings")
    try:
        channel = Channel(raw_channel)
    except ValueError:
        return _error(400, f"Invalid notification type: {raw_channel}")

    try:
        records = await send_test_alert(
            dispatcher,
            storage.items,
            storage.samples,
            str(item_id),
            channel,
            recipients=recipients,
        )
    except UnknownItemError:
        return _error(404, "Item not found")
    except ValueError as exc:
        return _error(400, str(exc))
    except StorageError:
        logger.exception("api_test_alert_failed", item_id=item_id)
        return _error(500, "Failed to send test notification")

    return web.json_response({
        "message": "Test notification sent",
        "records": [_record_json(r) for r in records],
    })


def create_web_app(
    storage: Storage,
    dispatcher: NotificationDispatcher,
    history_limit: int = DEFAULT_HISTORY_LIMIT,
) -> web.Application:
    """Create the aiohttp web application."""
    app = web.Application()
    app["storage"] = storage
    app["dispatcher"] = dispatcher
    app["history_limit"] = history_limit
    app.router.add_get("/api/items", _handle_items)
    app.router.add_get("/api/items/{item_id}", _handle_item_detail)
    app.router.add_get("/api/alerts", _handle_alerts)
    app.router.add_post("/api/alerts/test", _handle_test_alert)
    return app


async def start_web_api(
    storage: Storage,
    dispatcher: NotificationDispatcher,
    host: str = "0.0.0.0",
    port: int = 8080,
    history_limit: int = DEFAULT_HISTORY_LIMIT,
) -> web.AppRunner:
    """Start the API server. Returns the runner for cleanup."""
    app = create_web_app(storage, dispatcher, history_limit=history_limit)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    logger.info("web_api_started", host=host, port=port)
    return runner
