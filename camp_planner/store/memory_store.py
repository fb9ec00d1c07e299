"""
In-memory document store.

Used for local development (STORE_BACKEND=memory) and tests. All writes are
serialized by one asyncio lock, so check-and-set is atomic, and subscribers
are notified in commit order before the write call returns.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections import defaultdict
from collections.abc import Iterable
from typing import Any

from ..errors import DocumentExistsError, DocumentNotFoundError, VersionConflictError
from .interfaces import DocumentStore, StoredDocument, Subscription

logger = logging.getLogger(__name__)


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed DocumentStore with live subscriptions."""

    def __init__(self) -> None:
        self._docs: dict[str, dict[str, StoredDocument]] = defaultdict(dict)
        self._lock = asyncio.Lock()
        self._doc_subscribers: dict[tuple[str, str], list[Subscription[StoredDocument | None]]] = defaultdict(list)
        self._query_subscribers: list[tuple[str, tuple[str, ...], Subscription[list[StoredDocument]]]] = []

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, collection: str, doc_id: str) -> StoredDocument | None:
        doc = self._docs[collection].get(doc_id)
        return self._copy(doc) if doc else None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def put(self, collection: str, doc_id: str, data: dict[str, Any]) -> StoredDocument:
        async with self._lock:
            current = self._docs[collection].get(doc_id)
            version = current.version + 1 if current else 1
            return self._commit(collection, StoredDocument(id=doc_id, data=copy.deepcopy(data), version=version))

    async def create(self, collection: str, doc_id: str, data: dict[str, Any]) -> StoredDocument:
        async with self._lock:
            if doc_id in self._docs[collection]:
                raise DocumentExistsError(collection, doc_id)
            return self._commit(collection, StoredDocument(id=doc_id, data=copy.deepcopy(data), version=1))

    async def patch(
        self,
        collection: str,
        doc_id: str,
        fields: dict[str, Any],
        *,
        expected_version: int | None = None,
    ) -> StoredDocument:
        async with self._lock:
            current = self._docs[collection].get(doc_id)
            if current is None:
                raise DocumentNotFoundError(collection, doc_id)
            if expected_version is not None and current.version != expected_version:
                raise VersionConflictError(collection, doc_id, expected_version, current.version)
            data = {**copy.deepcopy(current.data), **copy.deepcopy(fields)}
            return self._commit(collection, StoredDocument(id=doc_id, data=data, version=current.version + 1))

    async def delete(self, collection: str, doc_id: str) -> bool:
        async with self._lock:
            removed = self._docs[collection].pop(doc_id, None)
            if removed is None:
                return False
            logger.debug(f"Deleted {collection}/{doc_id}")
            self._notify(collection, doc_id, None)
            return True

    def _commit(self, collection: str, doc: StoredDocument) -> StoredDocument:
        self._docs[collection][doc.id] = doc
        logger.debug(f"Committed {collection}/{doc.id} v{doc.version}")
        self._notify(collection, doc.id, doc)
        return self._copy(doc)

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    async def subscribe(self, collection: str, doc_id: str) -> Subscription[StoredDocument | None]:
        key = (collection, doc_id)

        def _teardown() -> None:
            subscribers = self._doc_subscribers.get(key, [])
            if subscription in subscribers:
                subscribers.remove(subscription)
            if not subscribers:
                self._doc_subscribers.pop(key, None)

        subscription: Subscription[StoredDocument | None] = Subscription(on_close=_teardown)
        async with self._lock:
            subscription.push(await self.get(collection, doc_id))
            self._doc_subscribers[key].append(subscription)
        return subscription

    async def query_by_ids(self, collection: str, doc_ids: Iterable[str]) -> Subscription[list[StoredDocument]]:
        ids = tuple(doc_ids)

        def _teardown() -> None:
            self._query_subscribers[:] = [entry for entry in self._query_subscribers if entry[2] is not subscription]

        subscription: Subscription[list[StoredDocument]] = Subscription(on_close=_teardown)
        async with self._lock:
            subscription.push(self._snapshot(collection, ids))
            self._query_subscribers.append((collection, ids, subscription))
        return subscription

    def _notify(self, collection: str, doc_id: str, doc: StoredDocument | None) -> None:
        for subscription in list(self._doc_subscribers.get((collection, doc_id), [])):
            subscription.push(self._copy(doc) if doc else None)
        for query_collection, ids, subscription in list(self._query_subscribers):
            if query_collection == collection and doc_id in ids:
                subscription.push(self._snapshot(collection, ids))

    def _snapshot(self, collection: str, ids: tuple[str, ...]) -> list[StoredDocument]:
        docs = self._docs[collection]
        return [self._copy(docs[doc_id]) for doc_id in ids if doc_id in docs]

    @staticmethod
    def _copy(doc: StoredDocument) -> StoredDocument:
        return StoredDocument(id=doc.id, data=copy.deepcopy(doc.data), version=doc.version)
