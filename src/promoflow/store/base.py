"""Document store interface.

A store holds JSON-like documents grouped in collections and keyed by id.
Sub-collections are addressed by path, e.g. ``customers/cust_1/redemptions``.
"""

import copy
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable, ContextManager, Dict, List, Optional, Sequence, Tuple

Document = Dict[str, Any]
Filter = Tuple[str, str, Any]


class StoreError(Exception):
    """Raised when the backing store rejects a read or write."""


class _ServerTimestamp:
    def __repr__(self):
        return "SERVER_TIMESTAMP"


# Replaced with the store clock when the write is applied
SERVER_TIMESTAMP = _ServerTimestamp()

_OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
    "<": lambda a, b: a < b,
    "<=": lambda a, b: a <= b,
    ">": lambda a, b: a > b,
    ">=": lambda a, b: a >= b,
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_document_id() -> str:
    return uuid.uuid4().hex[:20]


def matches_filters(data: Document, filters: Optional[Sequence[Filter]]) -> bool:
    """Check a document against ``(field, op, value)`` filters.

    A document missing the field never matches.
    """
    for field_name, op, value in filters or ():
        if op not in _OPERATORS:
            raise ValueError(f"Unsupported filter operator '{op}'")
        if field_name not in data:
            return False
        try:
            if not _OPERATORS[op](data[field_name], value):
                return False
        except TypeError:
            return False
    return True


def resolve_server_timestamps(data: Document, now: datetime) -> Document:
    """Return a copy of ``data`` with SERVER_TIMESTAMP replaced by ``now``."""
    resolved = {}
    for key, value in data.items():
        if value is SERVER_TIMESTAMP:
            resolved[key] = now.isoformat()
        else:
            resolved[key] = copy.deepcopy(value)
    return resolved


def merge_update(current: Document, changes: Document) -> Document:
    """Apply a partial update to a document.

    Dotted keys address nested maps: ``{"redemptions.r1": "camp_1"}``
    sets one entry without replacing the whole map.
    """
    merged = copy.deepcopy(current)
    for key, value in changes.items():
        parts = key.split(".")
        target = merged
        for part in parts[:-1]:
            nested = target.get(part)
            if not isinstance(nested, dict):
                nested = {}
                target[part] = nested
            target = nested
        target[parts[-1]] = copy.deepcopy(value)
    return merged


class Transaction(ABC):
    """Atomic unit of reads and buffered writes.

    Writes are applied only when the ``with`` block exits normally; an
    exception inside the block discards all of them.
    """

    def __init__(self):
        self._writes: List[Tuple[str, str, str, Document]] = []

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        """Read a document, locking it for the rest of the transaction."""

    @abstractmethod
    def list(
        self,
        collection: str,
        filters: Optional[Sequence[Filter]] = None,
    ) -> List[Tuple[str, Document]]:
        """Read matching documents, locking them for the rest of the transaction."""

    def set(self, collection: str, doc_id: str, data: Document) -> None:
        self._writes.append(("set", collection, doc_id, dict(data)))

    def update(self, collection: str, doc_id: str, data: Document) -> None:
        self._writes.append(("update", collection, doc_id, dict(data)))

    def new_id(self, collection: str) -> str:
        return new_document_id()

    @property
    def pending_writes(self) -> List[Tuple[str, str, str, Document]]:
        return list(self._writes)


class DocumentStore(ABC):
    """Generic get/list/add/update/delete access keyed by id."""

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        pass

    @abstractmethod
    def list(
        self,
        collection: str,
        filters: Optional[Sequence[Filter]] = None,
        limit: Optional[int] = None,
    ) -> List[Tuple[str, Document]]:
        """Return ``(id, data)`` pairs ordered by id."""

    @abstractmethod
    def set(self, collection: str, doc_id: str, data: Document) -> None:
        """Create or replace a document under a caller-chosen id."""

    @abstractmethod
    def update(self, collection: str, doc_id: str, data: Document) -> None:
        """Partially update an existing document; raises StoreError if absent."""

    @abstractmethod
    def delete(self, collection: str, doc_id: str) -> None:
        pass

    @abstractmethod
    def transaction(self) -> ContextManager[Transaction]:
        """Context manager yielding a Transaction."""

    def add(self, collection: str, data: Document) -> str:
        """Create a document under a generated id and return the id."""
        doc_id = new_document_id()
        self.set(collection, doc_id, data)
        return doc_id

    def close(self) -> None:
        pass
