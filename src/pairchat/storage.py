"""SQLite document store with live query subscriptions."""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable

from pydantic import BaseModel

from .config import STORE_POLL_INTERVAL
from .errors import StoreUnavailable
from .live import Subscription

logger = logging.getLogger(__name__)

_OPERATORS = ("==", "array_contains")


class _ServerTimestamp:
    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


# Placeholder resolved to the store's clock (epoch ms) when written
SERVER_TIMESTAMP = _ServerTimestamp()


class StoredDocument(BaseModel):
    id: str
    data: dict[str, Any]


class Query(BaseModel):
    """A filtered, optionally ordered view of one collection."""

    collection: str
    filters: tuple[tuple[str, str, Any], ...] = ()
    order_field: str | None = None
    descending: bool = False

    def where(self, field: str, op: str, value: Any) -> Query:
        if op not in _OPERATORS:
            raise ValueError(f"Unsupported operator: {op}")
        return self.model_copy(update={"filters": self.filters + ((field, op, value),)})

    def order_by(self, field: str, descending: bool = False) -> Query:
        return self.model_copy(update={"order_field": field, "descending": descending})

    def matches(self, data: dict[str, Any]) -> bool:
        for field, op, value in self.filters:
            actual = data.get(field)
            if op == "==" and actual != value:
                return False
            if op == "array_contains" and (not isinstance(actual, list) or value not in actual):
                return False
        return True

    def apply(self, docs: list[StoredDocument]) -> list[StoredDocument]:
        """Filter and sort documents given in insertion order.

        Ties keep insertion order; documents without the order field go last.
        """
        matched = [d for d in docs if self.matches(d.data)]
        if self.order_field is None:
            return matched

        field = self.order_field
        present = [d for d in matched if d.data.get(field) is not None]
        missing = [d for d in matched if d.data.get(field) is None]
        present.sort(key=lambda d: d.data[field], reverse=self.descending)
        return present + missing


def _split_document_path(path: str) -> tuple[str, str]:
    segments = [s for s in path.split("/") if s]
    if len(segments) < 2 or len(segments) % 2:
        raise ValueError(f"Not a document path: {path!r}")
    return "/".join(segments[:-1]), segments[-1]


def _check_collection_path(path: str) -> str:
    segments = [s for s in path.split("/") if s]
    if not segments or len(segments) % 2 == 0:
        raise ValueError(f"Not a collection path: {path!r}")
    return "/".join(segments)


class DocumentStore:
    """SQLite-backed collections of JSON documents.

    Collections are addressed by slash paths, so a message log lives at
    ``conversations/<id>/messages``. Every change re-delivers the full result
    of each open subscription whose result it altered, whether the write
    came through this object or another connection to the same file.
    """

    def __init__(
        self,
        db_path: Path,
        clock: Callable[[], float] = time.time,
        poll_interval: float = STORE_POLL_INTERVAL,
    ):
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path))
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self._migrate()
        self._clock = clock
        self._last_timestamp = 0
        self._subscriptions: list[tuple[Query, Subscription]] = []
        self._delivered: dict[Subscription, list[tuple[str, dict[str, Any]]]] = {}
        self._poll_interval = poll_interval
        self._watcher: asyncio.Task | None = None

    def _migrate(self):
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS documents (
                collection TEXT NOT NULL,
                doc_id TEXT NOT NULL,
                data TEXT NOT NULL,
                UNIQUE (collection, doc_id)
            );

            CREATE INDEX IF NOT EXISTS idx_documents_collection
                ON documents(collection);
        """)
        self.conn.commit()

    @contextmanager
    def _guard(self, action: str, path: str):
        try:
            yield
        except sqlite3.Error as exc:
            logger.warning("Store %s failed for %s: %s", action, path, exc)
            raise StoreUnavailable(f"Could not {action} {path}: {exc}") from exc

    def _server_timestamp(self) -> int:
        # Strictly increasing so server-stamped writes never tie
        now = int(self._clock() * 1000)
        self._last_timestamp = max(now, self._last_timestamp + 1)
        return self._last_timestamp

    def _resolve(self, data: dict[str, Any]) -> dict[str, Any]:
        return {
            key: self._server_timestamp() if value is SERVER_TIMESTAMP else value
            for key, value in data.items()
        }

    def _load(self, collection: str) -> list[StoredDocument]:
        rows = self.conn.execute(
            "SELECT doc_id, data FROM documents WHERE collection = ? ORDER BY rowid",
            (collection,),
        ).fetchall()
        return [StoredDocument(id=r["doc_id"], data=json.loads(r["data"])) for r in rows]

    async def get(self, path: str) -> dict[str, Any] | None:
        """Point read; ``None`` when the document does not exist."""
        collection, doc_id = _split_document_path(path)
        with self._guard("read", path):
            row = self.conn.execute(
                "SELECT data FROM documents WHERE collection = ? AND doc_id = ?",
                (collection, doc_id),
            ).fetchone()
        return json.loads(row["data"]) if row else None

    async def set(self, path: str, data: dict[str, Any]):
        """Write the whole document, replacing any previous content."""
        collection, doc_id = _split_document_path(path)
        body = json.dumps(self._resolve(data))
        with self._guard("write", path):
            self.conn.execute(
                """INSERT INTO documents (collection, doc_id, data) VALUES (?, ?, ?)
                   ON CONFLICT(collection, doc_id) DO UPDATE SET data = excluded.data""",
                (collection, doc_id, body),
            )
            self.conn.commit()
        self._notify(collection)

    async def update(self, path: str, fields: dict[str, Any]):
        """Merge top-level fields into an existing document."""
        collection, doc_id = _split_document_path(path)
        with self._guard("update", path):
            row = self.conn.execute(
                "SELECT data FROM documents WHERE collection = ? AND doc_id = ?",
                (collection, doc_id),
            ).fetchone()
            if row is None:
                raise StoreUnavailable(f"No document to update at {path}")
            merged = {**json.loads(row["data"]), **self._resolve(fields)}
            self.conn.execute(
                "UPDATE documents SET data = ? WHERE collection = ? AND doc_id = ?",
                (json.dumps(merged), collection, doc_id),
            )
            self.conn.commit()
        self._notify(collection)

    async def add(self, collection: str, data: dict[str, Any]) -> str:
        """Insert a document under a generated id and return the id."""
        collection = _check_collection_path(collection)
        doc_id = uuid.uuid4().hex
        with self._guard("add to", collection):
            self.conn.execute(
                "INSERT INTO documents (collection, doc_id, data) VALUES (?, ?, ?)",
                (collection, doc_id, json.dumps(self._resolve(data))),
            )
            self.conn.commit()
        self._notify(collection)
        return doc_id

    async def query(self, query: Query) -> list[StoredDocument]:
        collection = _check_collection_path(query.collection)
        with self._guard("query", collection):
            return query.apply(self._load(collection))

    async def subscribe(
        self,
        query: Query,
        transform: Callable[[list[StoredDocument]], Any] | None = None,
    ) -> Subscription:
        """Open a live view; the current result is delivered immediately.

        Later snapshots follow writes through this store at once, and
        commits from other connections to the same file within one poll
        interval.
        """
        query = query.model_copy(update={"collection": _check_collection_path(query.collection)})
        if self._watcher is None:
            # Read before the initial query so no outside commit slips between them
            with self._guard("watch", query.collection):
                version = self._data_version()
        initial = await self.query(query)
        sub = Subscription(transform=transform, on_close=self._unsubscribe)
        self._subscriptions.append((query, sub))
        self._delivered[sub] = _fingerprint(initial)
        sub.push(initial)
        if self._watcher is None:
            self._watcher = asyncio.get_running_loop().create_task(self._watch(version))
        logger.debug("Subscribed to %s (%d open)", query.collection, len(self._subscriptions))
        return sub

    def _unsubscribe(self, sub: Subscription):
        self._subscriptions = [(q, s) for q, s in self._subscriptions if s is not sub]
        self._delivered.pop(sub, None)
        if not self._subscriptions:
            self._stop_watcher()

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    def _data_version(self) -> int:
        # Changes only when another connection commits to the file
        return self.conn.execute("PRAGMA data_version").fetchone()[0]

    async def _watch(self, version: int):
        while self._subscriptions:
            await asyncio.sleep(self._poll_interval)
            try:
                current = self._data_version()
            except sqlite3.Error:
                logger.warning("Stopped watching %s for outside commits", self.db_path, exc_info=True)
                break
            if current != version:
                version = current
                for collection in {q.collection for q, _ in self._subscriptions}:
                    self._notify(collection)
        if self._watcher is asyncio.current_task():
            self._watcher = None

    def _stop_watcher(self):
        watcher, self._watcher = self._watcher, None
        if watcher is not None and not watcher.done() and not watcher.get_loop().is_closed():
            watcher.cancel()

    def _notify(self, collection: str):
        listeners = [(q, s) for q, s in self._subscriptions if q.collection == collection]
        if not listeners:
            return
        try:
            docs = self._load(collection)
        except sqlite3.Error:
            logger.warning("Could not refresh subscriptions on %s", collection, exc_info=True)
            return
        for query, sub in listeners:
            snapshot = query.apply(docs)
            fingerprint = _fingerprint(snapshot)
            if self._delivered.get(sub) == fingerprint:
                continue
            self._delivered[sub] = fingerprint
            try:
                sub.push(snapshot)
            except Exception:
                # A bad document must not fail the write that revealed it
                logger.warning("Dropped snapshot of %s for one subscriber", collection, exc_info=True)

    def close(self):
        for _, sub in list(self._subscriptions):
            sub.close()
        self._stop_watcher()
        self.conn.close()


def _fingerprint(docs: list[StoredDocument]) -> list[tuple[str, dict[str, Any]]]:
    return [(d.id, d.data) for d in docs]
