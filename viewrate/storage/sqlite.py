"""Storage backed by sqlite — one table per role, cascading item deletes.

sqlite3 calls are blocking, so every operation runs in a worker thread via
``asyncio.to_thread`` on its own short-lived connection.
"""

from __future__ import annotations

import asyncio
import sqlite3
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, TypeVar

import structlog

from viewrate.core.types import (
    AlertRecord,
    Channel,
    DeliveryOutcome,
    ItemStatus,
    NotificationRecipients,
    Sample,
    Tier,
    TrackedItem,
)
from viewrate.storage.base import AlertLog, ItemRepository, SampleStore, Storage
from viewrate.storage.exceptions import (
    DuplicateItemError,
    StorageError,
    UnknownItemError,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")

_SCHEMA = """
CREATE TABLE IF NOT EXISTS items (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL DEFAULT '',
    thumbnail TEXT NOT NULL DEFAULT '',
    warning_threshold INTEGER NOT NULL,
    emergency_threshold INTEGER NOT NULL,
    status TEXT NOT NULL DEFAULT 'active',
    notifications TEXT NOT NULL DEFAULT '{"emails":[],"chat_ids":[],"phone_numbers":[]}',
    created_at REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS samples (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    item_id TEXT NOT NULL REFERENCES items(id) ON DELETE CASCADE,
    measurement INTEGER NOT NULL,
    observed_at REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS alert_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    item_id TEXT NOT NULL REFERENCES items(id) ON DELETE CASCADE,
    item_title TEXT NOT NULL DEFAULT '',
    tier TEXT NOT NULL,
    channel TEXT NOT NULL,
    recipient TEXT NOT NULL,
    message TEXT NOT NULL,
    outcome TEXT NOT NULL,
    timestamp REAL NOT NULL,
    rate INTEGER NOT NULL,
    threshold INTEGER NOT NULL,
    is_test INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_samples_item_ts ON samples(item_id, observed_at);
CREATE INDEX IF NOT EXISTS idx_alert_log_item_tier_ts ON alert_log(item_id, tier, timestamp);
CREATE INDEX IF NOT EXISTS idx_alert_log_ts ON alert_log(timestamp);
CREATE INDEX IF NOT EXISTS idx_items_status ON items(status);
"""

_ITEM_COLUMNS = (
    "id, title, thumbnail, warning_threshold, emergency_threshold,"
    " status, notifications, created_at"
)
_ALERT_COLUMNS = (
    "item_id, item_title, tier, channel, recipient, message, outcome,"
    " timestamp, rate, threshold, is_test"
)


class SQLiteDatabase:
    """Owns the database file, the schema and the thread hop."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._initialised = False

    @property
    def path(self) -> Path:
        return self._path

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._path)
        try:
            conn.execute("PRAGMA foreign_keys = ON")
            yield conn
        finally:
            conn.close()

    def initialise(self) -> None:
        """Create the parent directory and schema. Raises StorageError."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self.connection() as conn:
                conn.executescript(_SCHEMA)
                conn.commit()
        except (OSError, sqlite3.Error) as exc:
            raise StorageError(f"Cannot initialise sqlite store at {self._path}: {exc}") from exc
        self._initialised = True
        logger.info("sqlite_store_ready", path=str(self._path))

    async def run(self, fn: Callable[[sqlite3.Connection], T]) -> T:
        """Run *fn* with a fresh connection in a worker thread."""
        if not self._initialised:
            await asyncio.to_thread(self.initialise)
        return await asyncio.to_thread(self._call, fn)

    def _call(self, fn: Callable[[sqlite3.Connection], T]) -> T:
        try:
            with self.connection() as conn:
                with conn:
                    return fn(conn)
        except sqlite3.IntegrityError:
            # Callers map constraint violations to their own errors.
            raise
        except sqlite3.Error as exc:
            raise StorageError(f"sqlite operation failed: {exc}") from exc


# ── Row mapping ─────────────────────────────────────────────────


def _item_from_row(row: tuple[Any, ...]) -> TrackedItem:
    (item_id, title, thumbnail, warning, emergency, status, notifications, created_at) = row
    return TrackedItem(
        id=item_id,
        title=title,
        thumbnail=thumbnail,
        warning_threshold=int(warning),
        emergency_threshold=int(emergency),
        status=ItemStatus(status),
        notifications=NotificationRecipients.model_validate_json(notifications),
        created_at=float(created_at),
    )


def _alert_from_row(row: tuple[Any, ...]) -> AlertRecord:
    (item_id, title, tier, channel, recipient, message, outcome,
     timestamp, rate, threshold, is_test) = row
    return AlertRecord(
        item_id=item_id,
        item_title=title,
        tier=Tier.from_label(tier),
        channel=Channel(channel),
        recipient=recipient,
        message=message,
        outcome=DeliveryOutcome(outcome),
        timestamp=float(timestamp),
        rate=int(rate),
        threshold=int(threshold),
        is_test=bool(is_test),
    )


# ── Roles ───────────────────────────────────────────────────────


class SQLiteItemRepository(ItemRepository):
    def __init__(self, db: SQLiteDatabase) -> None:
        self._db = db

    async def add(self, item: TrackedItem) -> TrackedItem:
        def _insert(conn: sqlite3.Connection) -> None:
            conn.execute(
                f"INSERT INTO items ({_ITEM_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    item.id,
                    item.title,
                    item.thumbnail,
                    item.warning_threshold,
                    item.emergency_threshold,
                    item.status.value,
                    item.notifications.model_dump_json(),
                    item.created_at,
                ),
            )

        try:
            await self._db.run(_insert)
        except sqlite3.IntegrityError as exc:
            raise DuplicateItemError(f"Item already tracked: {item.id}") from exc
        return item

    async def get(self, item_id: str) -> TrackedItem | None:
        def _select(conn: sqlite3.Connection) -> tuple[Any, ...] | None:
            return conn.execute(
                f"SELECT {_ITEM_COLUMNS} FROM items WHERE id = ?", (item_id,)
            ).fetchone()

        row = await self._db.run(_select)
        return _item_from_row(row) if row is not None else None

    async def list_items(self, status: ItemStatus | None = None) -> list[TrackedItem]:
        query = f"SELECT {_ITEM_COLUMNS} FROM items"
        params: list[object] = []
        if status is not None:
            query += " WHERE status = ?"
            params.append(status.value)
        query += " ORDER BY created_at, rowid"

        def _select(conn: sqlite3.Connection) -> list[tuple[Any, ...]]:
            return conn.execute(query, params).fetchall()

        rows = await self._db.run(_select)
        return [_item_from_row(row) for row in rows]

    async def set_status(self, item_id: str, status: ItemStatus) -> TrackedItem:
        await self._update(item_id, "status = ?", (status.value,))
        return await self._require(item_id)

    async def update_thresholds(
        self, item_id: str, warning_threshold: int, emergency_threshold: int
    ) -> TrackedItem:
        current = await self._require(item_id)
        # Validate before writing.
        updated = TrackedItem.model_validate(
            {
                **current.model_dump(),
                "warning_threshold": warning_threshold,
                "emergency_threshold": emergency_threshold,
            }
        )
        await self._update(
            item_id,
            "warning_threshold = ?, emergency_threshold = ?",
            (warning_threshold, emergency_threshold),
        )
        return updated

    async def delete(self, item_id: str) -> bool:
        def _delete(conn: sqlite3.Connection) -> int:
            return conn.execute("DELETE FROM items WHERE id = ?", (item_id,)).rowcount

        return await self._db.run(_delete) > 0

    async def _update(self, item_id: str, assignments: str, params: tuple[object, ...]) -> None:
        def _execute(conn: sqlite3.Connection) -> int:
            return conn.execute(
                f"UPDATE items SET {assignments} WHERE id = ?", (*params, item_id)
            ).rowcount

        if await self._db.run(_execute) == 0:
            raise UnknownItemError(f"Unknown item: {item_id}")

    async def _require(self, item_id: str) -> TrackedItem:
        item = await self.get(item_id)
        if item is None:
            raise UnknownItemError(f"Unknown item: {item_id}")
        return item


class SQLiteSampleStore(SampleStore):
    def __init__(self, db: SQLiteDatabase) -> None:
        self._db = db

    async def append(self, sample: Sample) -> None:
        def _insert(conn: sqlite3.Connection) -> None:
            conn.execute(
                "INSERT INTO samples (item_id, measurement, observed_at) VALUES (?, ?, ?)",
                (sample.item_id, sample.measurement, sample.observed_at),
            )

        try:
            await self._db.run(_insert)
        except sqlite3.IntegrityError as exc:
            raise StorageError(f"Cannot store sample for {sample.item_id}: {exc}") from exc

    async def recent(self, item_id: str, n: int) -> list[Sample]:
        if n <= 0:
            return []
        return await self.history(item_id, limit=n)

    async def history(
        self,
        item_id: str,
        since: float | None = None,
        limit: int | None = None,
    ) -> list[Sample]:
        query = "SELECT item_id, measurement, observed_at FROM samples WHERE item_id = ?"
        params: list[object] = [item_id]
        if since is not None:
            query += " AND observed_at >= ?"
            params.append(since)
        query += " ORDER BY observed_at DESC, id DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(int(limit))

        def _select(conn: sqlite3.Connection) -> list[tuple[Any, ...]]:
            return conn.execute(query, params).fetchall()

        rows = await self._db.run(_select)
        return [
            Sample(item_id=row[0], measurement=int(row[1]), observed_at=float(row[2]))
            for row in rows
        ]


class SQLiteAlertLog(AlertLog):
    def __init__(self, db: SQLiteDatabase) -> None:
        self._db = db

    async def append(self, record: AlertRecord) -> None:
        def _insert(conn: sqlite3.Connection) -> None:
            conn.execute(
                f"INSERT INTO alert_log ({_ALERT_COLUMNS})"
                " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    record.item_id,
                    record.item_title,
                    record.tier.label,
                    record.channel.value,
                    record.recipient,
                    record.message,
                    record.outcome.value,
                    record.timestamp,
                    record.rate,
                    record.threshold,
                    int(record.is_test),
                ),
            )

        try:
            await self._db.run(_insert)
        except sqlite3.IntegrityError as exc:
            raise StorageError(f"Cannot store alert for {record.item_id}: {exc}") from exc

    async def query(
        self,
        item_id: str | None = None,
        tier: Tier | None = None,
        since: float | None = None,
        channel: Channel | None = None,
        outcome: DeliveryOutcome | None = None,
        include_tests: bool = True,
        limit: int | None = None,
    ) -> list[AlertRecord]:
        clauses: list[str] = []
        params: list[object] = []
        if item_id is not None:
            clauses.append("item_id = ?")
            params.append(item_id)
        if tier is not None:
            clauses.append("tier = ?")
            params.append(tier.label)
        if since is not None:
            clauses.append("timestamp > ?")
            params.append(since)
        if channel is not None:
            clauses.append("channel = ?")
            params.append(channel.value)
        if outcome is not None:
            clauses.append("outcome = ?")
            params.append(outcome.value)
        if not include_tests:
            clauses.append("is_test = 0")

        query = f"SELECT {_ALERT_COLUMNS} FROM alert_log"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY timestamp DESC, id DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(int(limit))

        def _select(conn: sqlite3.Connection) -> list[tuple[Any, ...]]:
            return conn.execute(query, params).fetchall()

        rows = await self._db.run(_select)
        return [_alert_from_row(row) for row in rows]


def create_sqlite_storage(path: str | Path) -> Storage:
    """Build a ``Storage`` over one sqlite file."""
    db = SQLiteDatabase(path)
    return Storage(
        items=SQLiteItemRepository(db),
        samples=SQLiteSampleStore(db),
        alerts=SQLiteAlertLog(db),
    )
