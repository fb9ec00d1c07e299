"""Document store backends."""

from .interfaces import DocumentStore, LiveStream, StoredDocument, Subscription
from .memory_store import InMemoryDocumentStore

__all__ = [
    "DocumentStore",
    "InMemoryDocumentStore",
    "LiveStream",
    "StoredDocument",
    "Subscription",
]
