"""Document store backends."""

from .base import DocumentStore, Transaction, StoreError, SERVER_TIMESTAMP
from .memory_store import InMemoryDocumentStore

__all__ = [
    "DocumentStore",
    "Transaction",
    "StoreError",
    "SERVER_TIMESTAMP",
    "InMemoryDocumentStore",
    "create_store",
]


def create_store(settings) -> DocumentStore:
    """Build the store selected by ``settings.store_backend``."""
    if settings.store_backend == "postgres":
        from .postgres_store import PostgresDocumentStore
        return PostgresDocumentStore(settings.db_config)
    return InMemoryDocumentStore()
