"""DuckDB-backed document store.

Every collection (including sub-collections such as
``memories/{id}/reactions``) lives in a single ``documents`` table; the
document body is stored as JSON text.

Database Schema:
    documents table:
        - seq: Insertion sequence, used as a stable tie-breaker for ordering
        - collection: Collection path
        - id: Document id (unique within its collection)
        - data: JSON-encoded document body

Concurrency:
    The DuckDB connection is NOT safe for interleaved use, so every public
    operation takes an asyncio.Lock. A transaction holds the lock for its
    whole body, which is what makes read-then-write sequences atomic.
"""
import asyncio
import json
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

import duckdb

from archive.errors import NotFound

from .base import DocumentStore, DocumentTransaction, Filter, Increment, Page, ServerTimestamp

logger = logging.getLogger(__name__)

_CREATE_SEQUENCE = "CREATE SEQUENCE IF NOT EXISTS documents_seq START 1"

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS documents (
    seq        BIGINT DEFAULT nextval('documents_seq'),
    collection VARCHAR NOT NULL,
    id         VARCHAR NOT NULL,
    data       VARCHAR NOT NULL
)
"""


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _lookup(doc: Dict[str, Any], dotted: str) -> Any:
    value: Any = doc
    for part in dotted.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def _sort_key(doc: Dict[str, Any], field: str) -> tuple:
    value = _lookup(doc, field)
    return (value is None, "" if value is None else value)


def _resolve(value: Any, current: Any, now: str) -> Any:
    """Resolve write sentinels against the field's current value."""
    if isinstance(value, ServerTimestamp):
        return now
    if isinstance(value, Increment):
        return (current or 0) + value.amount
    if isinstance(value, dict):
        base = dict(current) if isinstance(current, dict) else {}
        for key, sub in value.items():
            base[key] = _resolve(sub, base.get(key), now)
        return base
    return value


def _apply_fields(doc: Dict[str, Any], fields: Dict[str, Any], dotted: bool) -> Dict[str, Any]:
    now = utc_now_iso()
    for key, value in fields.items():
        parts = key.split(".") if dotted else [key]
        target = doc
        for part in parts[:-1]:
            nxt = target.get(part)
            if not isinstance(nxt, dict):
                nxt = {}
                target[part] = nxt
            target = nxt
        leaf = parts[-1]
        target[leaf] = _resolve(value, target.get(leaf), now)
    return doc


class DuckDBDocumentStore(DocumentStore):
    """Document store on an embedded DuckDB file (or ``:memory:``)."""

    _default_db_path: str = "archive.duckdb"

    def __init__(self, db_path: Optional[str] = None) -> None:
        self._db_path = db_path or self._default_db_path
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._lock = asyncio.Lock()
        self._initialize_db()
        logger.info("[DuckDBDocumentStore] Initialized with db=%s", self._db_path)

    def _get_connection(self) -> duckdb.DuckDBPyConnection:
        if self._connection is None:
            self._connection = duckdb.connect(self._db_path)
        return self._connection

    def _initialize_db(self) -> None:
        conn = self._get_connection()
        conn.execute(_CREATE_SEQUENCE)
        conn.execute(_CREATE_TABLE)

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    # -----------------------------------------------------------------------
    # Synchronous primitives (caller holds the lock)
    # -----------------------------------------------------------------------

    def _read(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        row = self._get_connection().execute(
            "SELECT data FROM documents WHERE collection = ? AND id = ?",
            [collection, doc_id],
        ).fetchone()
        if row is None:
            return None
        doc = json.loads(row[0])
        doc["id"] = doc_id
        return doc

    def _write(self, collection: str, doc_id: str, doc: Dict[str, Any], exists: bool) -> None:
        body = {k: v for k, v in doc.items() if k != "id"}
        data = json.dumps(body, default=str)
        conn = self._get_connection()
        if exists:
            conn.execute(
                "UPDATE documents SET data = ? WHERE collection = ? AND id = ?",
                [data, collection, doc_id],
            )
        else:
            conn.execute(
                "INSERT INTO documents (collection, id, data) VALUES (?, ?, ?)",
                [collection, doc_id, data],
            )

    def _create(self, collection: str, fields: Dict[str, Any]) -> str:
        doc_id = uuid.uuid4().hex
        self._write(collection, doc_id, _apply_fields({}, fields, dotted=False), exists=False)
        return doc_id

    def _set(self, collection: str, doc_id: str, fields: Dict[str, Any], merge: bool) -> None:
        current = self._read(collection, doc_id)
        base = dict(current) if (merge and current) else {}
        self._write(collection, doc_id, _apply_fields(base, fields, dotted=False), current is not None)

    def _patch(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        current = self._read(collection, doc_id)
        if current is None:
            raise NotFound(f"No document {collection}/{doc_id}")
        self._write(collection, doc_id, _apply_fields(current, fields, dotted=True), exists=True)

    def _delete(self, collection: str, doc_id: str) -> bool:
        result = self._get_connection().execute(
            "DELETE FROM documents WHERE collection = ? AND id = ? RETURNING id",
            [collection, doc_id],
        ).fetchone()
        return result is not None

    def _query(
        self,
        collection: str,
        where: Sequence[Filter],
        order_by: Optional[str],
        descending: bool,
        limit: Optional[int],
        start_after: Optional[str],
    ) -> Page:
        rows = self._get_connection().execute(
            "SELECT id, data FROM documents WHERE collection = ? ORDER BY seq ASC",
            [collection],
        ).fetchall()

        docs: List[Dict[str, Any]] = []
        for doc_id, data in rows:
            doc = json.loads(data)
            doc["id"] = doc_id
            if all(_lookup(doc, f) == v for f, v in where):
                docs.append(doc)

        if order_by:
            # Missing values sort last in ascending order; sort is stable on seq.
            docs.sort(key=lambda d: _sort_key(d, order_by), reverse=descending)

        if start_after is not None:
            ids = [d["id"] for d in docs]
            docs = docs[ids.index(start_after) + 1:] if start_after in ids else []

        has_more = False
        if limit is not None:
            has_more = len(docs) > limit
            docs = docs[:limit]

        return Page(
            items=docs,
            cursor=docs[-1]["id"] if docs else None,
            has_more=has_more,
        )

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        async with self._lock:
            return self._read(collection, doc_id)

    async def create(self, collection: str, fields: Dict[str, Any]) -> str:
        async with self._lock:
            return self._create(collection, fields)

    async def set(
        self, collection: str, doc_id: str, fields: Dict[str, Any], merge: bool = False
    ) -> None:
        async with self._lock:
            self._set(collection, doc_id, fields, merge)

    async def patch(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        async with self._lock:
            self._patch(collection, doc_id, fields)

    async def delete(self, collection: str, doc_id: str) -> bool:
        async with self._lock:
            return self._delete(collection, doc_id)

    async def query(
        self,
        collection: str,
        where: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        start_after: Optional[str] = None,
    ) -> Page:
        async with self._lock:
            return self._query(collection, where, order_by, descending, limit, start_after)

    async def count(self, collection: str) -> int:
        async with self._lock:
            row = self._get_connection().execute(
                "SELECT COUNT(*) FROM documents WHERE collection = ?", [collection]
            ).fetchone()
        return int(row[0]) if row else 0

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[DocumentTransaction]:
        async with self._lock:
            conn = self._get_connection()
            conn.execute("BEGIN TRANSACTION")
            try:
                yield _DuckDBTransaction(self)
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")


class _DuckDBTransaction(DocumentTransaction):
    """Transaction view; runs the store's primitives without re-locking."""

    def __init__(self, store: DuckDBDocumentStore) -> None:
        self._store = store

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        return self._store._read(collection, doc_id)

    async def create(self, collection: str, fields: Dict[str, Any]) -> str:
        return self._store._create(collection, fields)

    async def set(
        self, collection: str, doc_id: str, fields: Dict[str, Any], merge: bool = False
    ) -> None:
        self._store._set(collection, doc_id, fields, merge)

    async def patch(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        self._store._patch(collection, doc_id, fields)

    async def delete(self, collection: str, doc_id: str) -> bool:
        return self._store._delete(collection, doc_id)

    async def query(
        self,
        collection: str,
        where: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        start_after: Optional[str] = None,
    ) -> Page:
        return self._store._query(collection, where, order_by, descending, limit, start_after)
