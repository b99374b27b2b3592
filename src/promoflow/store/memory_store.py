"""In-process document store.

Used by the test suite and for local runs without a database. A single
re-entrant lock serialises transactions, so a transaction observes no
concurrent writes between its reads and its commit.
"""

import copy
import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple

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


class InMemoryTransaction(Transaction):

    def __init__(self, store: "InMemoryDocumentStore"):
        super().__init__()
        self._store = store

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        return self._store.get(collection, doc_id)

    def list(
        self,
        collection: str,
        filters: Optional[Sequence[Filter]] = None,
    ) -> List[Tuple[str, Document]]:
        return self._store.list(collection, filters)


class InMemoryDocumentStore(DocumentStore):
    """Dictionary-backed store with all-or-nothing transactions."""

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self._collections: Dict[str, Dict[str, Document]] = {}
        self._lock = threading.RLock()
        self._clock = clock

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        with self._lock:
            doc = self._collections.get(collection, {}).get(doc_id)
            return copy.deepcopy(doc) if doc is not None else None

    def list(
        self,
        collection: str,
        filters: Optional[Sequence[Filter]] = None,
        limit: Optional[int] = None,
    ) -> List[Tuple[str, Document]]:
        with self._lock:
            docs = self._collections.get(collection, {})
            results = [
                (doc_id, copy.deepcopy(data))
                for doc_id, data in sorted(docs.items())
                if matches_filters(data, filters)
            ]
        if limit is not None:
            results = results[:limit]
        return results

    def set(self, collection: str, doc_id: str, data: Document) -> None:
        with self._lock:
            self._apply([("set", collection, doc_id, data)])

    def update(self, collection: str, doc_id: str, data: Document) -> None:
        with self._lock:
            self._apply([("update", collection, doc_id, data)])

    def delete(self, collection: str, doc_id: str) -> None:
        with self._lock:
            self._collections.get(collection, {}).pop(doc_id, None)

    @contextmanager
    def transaction(self) -> Iterator[InMemoryTransaction]:
        with self._lock:
            tx = InMemoryTransaction(self)
            yield tx
            self._apply(tx.pending_writes)

    def _apply(self, writes: List[Tuple[str, str, str, Document]]) -> None:
        """Apply writes atomically: validate everything on a copy, then swap."""
        now = self._clock()
        staged = {name: dict(docs) for name, docs in self._collections.items()}
        for op, collection, doc_id, data in writes:
            docs = staged.setdefault(collection, {})
            data = resolve_server_timestamps(data, now)
            if op == "set":
                docs[doc_id] = data
            elif op == "update":
                if doc_id not in docs:
                    raise StoreError(f"No document to update: {collection}/{doc_id}")
                docs[doc_id] = merge_update(docs[doc_id], data)
            else:
                raise StoreError(f"Unknown write operation '{op}'")
        self._collections = staged
