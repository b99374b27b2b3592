"""PostgreSQL-backed document store.

Documents live in a single ``documents`` table as JSONB, keyed by
``(collection, id)``. Transactions lock every row they read with
``SELECT ... FOR UPDATE`` and apply buffered writes before committing.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

import psycopg2
from psycopg2.extras import Json, RealDictCursor

from promoflow.store.base import (
    Document,
    DocumentStore,
    Filter,
    StoreError,
    Transaction,
    matches_filters,
    merge_update,
    resolve_server_timestamps,
    utc_now,
)

logger = logging.getLogger(__name__)


def _split_filters(filters: Optional[Sequence[Filter]]) -> Tuple[Dict[str, Any], List[Filter]]:
    """Equality filters go to SQL as JSONB containment, the rest are checked in Python."""
    equality = {}
    remaining = []
    for field_name, op, value in filters or ():
        if op == "==":
            equality[field_name] = value
        else:
            remaining.append((field_name, op, value))
    return equality, remaining


def _select(cur, collection: str, filters: Optional[Sequence[Filter]], for_update: bool = False):
    equality, remaining = _split_filters(filters)
    sql = "SELECT id, data FROM documents WHERE collection = %s"
    params: List[Any] = [collection]
    if equality:
        sql += " AND data @> %s"
        params.append(Json(equality))
    sql += " ORDER BY id"
    if for_update:
        sql += " FOR UPDATE"
    cur.execute(sql, params)
    return [
        (row["id"], row["data"])
        for row in cur.fetchall()
        if matches_filters(row["data"], remaining)
    ]


def _write(cur, op: str, collection: str, doc_id: str, data: Document) -> None:
    data = resolve_server_timestamps(data, utc_now())
    if op == "set":
        cur.execute("""
            INSERT INTO documents (collection, id, data)
            VALUES (%s, %s, %s)
            ON CONFLICT (collection, id)
            DO UPDATE SET data = EXCLUDED.data, updated_at = CURRENT_TIMESTAMP
        """, (collection, doc_id, Json(data)))
    elif op == "update":
        cur.execute("""
            SELECT data FROM documents
            WHERE collection = %s AND id = %s
            FOR UPDATE
        """, (collection, doc_id))
        row = cur.fetchone()
        if not row:
            raise StoreError(f"No document to update: {collection}/{doc_id}")
        cur.execute("""
            UPDATE documents SET data = %s, updated_at = CURRENT_TIMESTAMP
            WHERE collection = %s AND id = %s
        """, (Json(merge_update(row["data"], data)), collection, doc_id))
    else:
        raise StoreError(f"Unknown write operation '{op}'")


class PostgresTransaction(Transaction):

    def __init__(self, cursor):
        super().__init__()
        self._cur = cursor

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        self._cur.execute("""
            SELECT data FROM documents
            WHERE collection = %s AND id = %s
            FOR UPDATE
        """, (collection, doc_id))
        row = self._cur.fetchone()
        return row["data"] if row else None

    def list(
        self,
        collection: str,
        filters: Optional[Sequence[Filter]] = None,
    ) -> List[Tuple[str, Document]]:
        return _select(self._cur, collection, filters, for_update=True)


class PostgresDocumentStore(DocumentStore):
    """Document store on top of psycopg2 connections."""

    def __init__(self, db_config: Dict[str, Any]):
        self.db_config = db_config

    def get_connection(self):
        """Create database connection"""
        try:
            return psycopg2.connect(**self.db_config)
        except psycopg2.Error as e:
            logger.error(f"Database connection failed: {e}")
            raise StoreError(str(e)) from e

    @contextmanager
    def _cursor(self):
        conn = self.get_connection()
        try:
            cur = conn.cursor(cursor_factory=RealDictCursor)
            yield cur
            conn.commit()
            cur.close()
        except psycopg2.Error as e:
            conn.rollback()
            logger.error(f"Database operation failed: {e}")
            raise StoreError(str(e)) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        with self._cursor() as cur:
            cur.execute("""
                SELECT data FROM documents
                WHERE collection = %s AND id = %s
            """, (collection, doc_id))
            row = cur.fetchone()
            return row["data"] if row else None

    def list(
        self,
        collection: str,
        filters: Optional[Sequence[Filter]] = None,
        limit: Optional[int] = None,
    ) -> List[Tuple[str, Document]]:
        with self._cursor() as cur:
            results = _select(cur, collection, filters)
        if limit is not None:
            results = results[:limit]
        return results

    def set(self, collection: str, doc_id: str, data: Document) -> None:
        with self._cursor() as cur:
            _write(cur, "set", collection, doc_id, data)

    def update(self, collection: str, doc_id: str, data: Document) -> None:
        with self._cursor() as cur:
            _write(cur, "update", collection, doc_id, data)

    def delete(self, collection: str, doc_id: str) -> None:
        with self._cursor() as cur:
            cur.execute("""
                DELETE FROM documents WHERE collection = %s AND id = %s
            """, (collection, doc_id))

    @contextmanager
    def transaction(self) -> Iterator[PostgresTransaction]:
        with self._cursor() as cur:
            tx = PostgresTransaction(cur)
            yield tx
            for op, collection, doc_id, data in tx.pending_writes:
                _write(cur, op, collection, doc_id, data)

    def health(self) -> bool:
        try:
            conn = self.get_connection()
            conn.close()
            return True
        except StoreError:
            return False
