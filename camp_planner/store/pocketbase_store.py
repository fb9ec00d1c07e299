"""
PocketBase document store.

Maps the planner's document model onto PocketBase collections:

- PocketBase record ids are fixed-length, so the planner's id (a schedule
  code or a user uid) lives in a unique ``doc_id`` text field.
- Document fields are stored flat on the record under their persisted names
  (``kidName``, ``camps``, ``schedule``...), next to a ``version`` number.
  The SDK exposes record fields in snake_case; they are read back under the
  persisted camelCase names.
- Live queries use the SDK's realtime record subscriptions.

The SDK is blocking; every call runs in a worker thread via asyncio.to_thread.
PocketBase has no conditional update, so check-and-set is a read-compare-write
serialized per document by an asyncio lock. That protects writers inside one
API process; separate processes writing the same document can still race.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import AsyncIterator, Callable, Iterable
from contextlib import asynccontextmanager
from typing import Any

from pocketbase import PocketBase
from pocketbase.client import ClientResponseError  # type: ignore[attr-defined]

from ..errors import DocumentExistsError, DocumentNotFoundError, StoreError, VersionConflictError
from ..logging_config import TRACE
from .interfaces import DocumentStore, StoredDocument, Subscription

logger = logging.getLogger(__name__)

# Record attributes that belong to PocketBase or to the store, not the document
_RECORD_META_FIELDS = {"id", "created", "updated", "collection_id", "collection_name", "expand", "doc_id", "version"}

DEFAULT_COLLECTION_MAP = {
    # "users" is PocketBase's built-in auth collection
    "users": "planner_accounts",
    "schedules": "planner_schedules",
}


def _persisted_name(attribute: str) -> str:
    """``kid_name`` -> ``kidName``; names without underscores are unchanged."""
    head, *rest = attribute.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _is_not_unique(error: ClientResponseError) -> bool:
    payload = getattr(error, "data", None) or {}
    field_errors = payload.get("data", {}) if isinstance(payload, dict) else {}
    doc_id_error = field_errors.get("doc_id", {}) if isinstance(field_errors, dict) else {}
    return isinstance(doc_id_error, dict) and doc_id_error.get("code") == "validation_not_unique"


class _DocumentFeed:
    """Per-subscription ordering guard: never deliver an older version after a newer one."""

    def __init__(self, subscription: Subscription[StoredDocument | None]):
        self.subscription = subscription
        self.last_version = 0

    def offer(self, doc: StoredDocument | None) -> None:
        if doc is None:
            self.last_version = 0
            self.subscription.push(None)
            return
        if doc.version <= self.last_version:
            return
        self.last_version = doc.version
        self.subscription.push(doc)


class PocketBaseDocumentStore(DocumentStore):
    """DocumentStore backed by a PocketBase server."""

    def __init__(self, pb_client: PocketBase, collection_map: dict[str, str] | None = None):
        self.pb = pb_client
        self._collection_map = dict(DEFAULT_COLLECTION_MAP if collection_map is None else collection_map)
        # Held or awaited write locks only; an entry goes away with its last user
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}
        self._lock_users: dict[tuple[str, str], int] = {}

    def _collection(self, collection: str) -> Any:
        return self.pb.collection(self._collection_map.get(collection, collection))

    @asynccontextmanager
    async def _document_lock(self, collection: str, doc_id: str) -> AsyncIterator[None]:
        """Serialize writes to one document."""
        key = (collection, doc_id)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                del self._locks[key]

    def _to_document(self, record: Any) -> StoredDocument:
        data = {
            _persisted_name(key): value for key, value in vars(record).items() if key not in _RECORD_META_FIELDS
        }
        return StoredDocument(
            id=str(getattr(record, "doc_id", "")),
            data=data,
            version=int(getattr(record, "version", 0) or 0),
        )

    async def _find_record(self, collection: str, doc_id: str) -> Any | None:
        try:
            result = await asyncio.to_thread(
                self._collection(collection).get_list,
                1,
                1,
                query_params={"filter": f"doc_id = {_quote(doc_id)}"},
            )
        except ClientResponseError as e:
            logger.error(f"PocketBase error reading {collection}/{doc_id}: {e}")
            raise StoreError(f"Failed to read {collection}/{doc_id}") from e
        return result.items[0] if result.items else None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, collection: str, doc_id: str) -> StoredDocument | None:
        record = await self._find_record(collection, doc_id)
        if record is None:
            return None
        doc = self._to_document(record)
        logger.log(TRACE, f"Read {collection}/{doc_id} v{doc.version}: {doc.data}")
        return doc

    async def get_many(self, collection: str, doc_ids: Iterable[str]) -> list[StoredDocument]:
        ids = list(doc_ids)
        if not ids:
            return []
        id_filter = " || ".join(f"doc_id = {_quote(doc_id)}" for doc_id in ids)
        try:
            records = await asyncio.to_thread(
                self._collection(collection).get_full_list,
                query_params={"filter": id_filter},
            )
        except ClientResponseError as e:
            logger.error(f"PocketBase error reading {len(ids)} {collection} documents: {e}")
            raise StoreError(f"Failed to read {collection}") from e
        by_id = {doc.id: doc for doc in (self._to_document(record) for record in records)}
        return [by_id[doc_id] for doc_id in ids if doc_id in by_id]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create(self, collection: str, doc_id: str, data: dict[str, Any]) -> StoredDocument:
        async with self._document_lock(collection, doc_id):
            if await self._find_record(collection, doc_id) is not None:
                raise DocumentExistsError(collection, doc_id)
            payload = {**data, "doc_id": doc_id, "version": 1}
            try:
                record = await asyncio.to_thread(self._collection(collection).create, payload)
            except ClientResponseError as e:
                if _is_not_unique(e):
                    raise DocumentExistsError(collection, doc_id) from e
                logger.error(f"PocketBase error creating {collection}/{doc_id}: {e}")
                raise StoreError(f"Failed to create {collection}/{doc_id}") from e
        logger.debug(f"Created {collection}/{doc_id}")
        return self._to_document(record)

    async def put(self, collection: str, doc_id: str, data: dict[str, Any]) -> StoredDocument:
        async with self._document_lock(collection, doc_id):
            record = await self._find_record(collection, doc_id)
            try:
                if record is None:
                    payload = {**data, "doc_id": doc_id, "version": 1}
                    saved = await asyncio.to_thread(self._collection(collection).create, payload)
                else:
                    current = self._to_document(record)
                    # Full replace: clear fields the new document no longer has
                    cleared = {key: None for key in current.data if key not in data}
                    payload = {**cleared, **data, "version": current.version + 1}
                    saved = await asyncio.to_thread(self._collection(collection).update, record.id, payload)
            except ClientResponseError as e:
                logger.error(f"PocketBase error writing {collection}/{doc_id}: {e}")
                raise StoreError(f"Failed to write {collection}/{doc_id}") from e
        logger.debug(f"Replaced {collection}/{doc_id}")
        return self._to_document(saved)

    async def patch(
        self,
        collection: str,
        doc_id: str,
        fields: dict[str, Any],
        *,
        expected_version: int | None = None,
    ) -> StoredDocument:
        async with self._document_lock(collection, doc_id):
            record = await self._find_record(collection, doc_id)
            if record is None:
                raise DocumentNotFoundError(collection, doc_id)
            current_version = int(getattr(record, "version", 0) or 0)
            if expected_version is not None and current_version != expected_version:
                raise VersionConflictError(collection, doc_id, expected_version, current_version)
            payload = {**fields, "version": current_version + 1}
            try:
                saved = await asyncio.to_thread(self._collection(collection).update, record.id, payload)
            except ClientResponseError as e:
                logger.error(f"PocketBase error updating {collection}/{doc_id}: {e}")
                raise StoreError(f"Failed to update {collection}/{doc_id}") from e
        logger.debug(f"Patched {collection}/{doc_id} fields {sorted(fields)} -> v{current_version + 1}")
        return self._to_document(saved)

    async def delete(self, collection: str, doc_id: str) -> bool:
        async with self._document_lock(collection, doc_id):
            record = await self._find_record(collection, doc_id)
            if record is None:
                return False
            try:
                await asyncio.to_thread(self._collection(collection).delete, record.id)
            except ClientResponseError as e:
                logger.error(f"PocketBase error deleting {collection}/{doc_id}: {e}")
                raise StoreError(f"Failed to delete {collection}/{doc_id}") from e
        logger.debug(f"Deleted {collection}/{doc_id}")
        return True

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    async def _listen(self, collection: str, callback: Callable[[Any], None]) -> Callable[[], None]:
        """Subscribe to every record event of a collection; returns the unsubscribe function."""
        try:
            unsubscribe = await asyncio.to_thread(self._collection(collection).subscribe, callback)
        except ClientResponseError as e:
            logger.error(f"PocketBase error subscribing to {collection}: {e}")
            raise StoreError(f"Failed to subscribe to {collection}") from e
        return unsubscribe  # type: ignore[no-any-return]

    @staticmethod
    def _teardown(loop: asyncio.AbstractEventLoop, unsubscribe: Callable[[], None] | None) -> None:
        if unsubscribe is not None:
            # Unsubscribing is a blocking HTTP call; keep it off the event loop
            loop.run_in_executor(None, unsubscribe)

    async def subscribe(self, collection: str, doc_id: str) -> Subscription[StoredDocument | None]:
        loop = asyncio.get_running_loop()
        handle: dict[str, Callable[[], None] | None] = {"unsubscribe": None}
        subscription: Subscription[StoredDocument | None] = Subscription(
            on_close=lambda: self._teardown(loop, handle["unsubscribe"])
        )
        feed = _DocumentFeed(subscription)

        def on_event(event: Any) -> None:
            record = getattr(event, "record", None)
            if record is None or getattr(record, "doc_id", None) != doc_id:
                return
            doc = None if getattr(event, "action", "") == "delete" else self._to_document(record)
            loop.call_soon_threadsafe(feed.offer, doc)

        # Listen first so no commit between the initial read and the listener is lost
        handle["unsubscribe"] = await self._listen(collection, on_event)
        feed.offer(await self.get(collection, doc_id))
        logger.debug(f"Subscribed to {collection}/{doc_id}")
        return subscription

    async def query_by_ids(self, collection: str, doc_ids: Iterable[str]) -> Subscription[list[StoredDocument]]:
        loop = asyncio.get_running_loop()
        ids = tuple(doc_ids)
        handle: dict[str, Callable[[], None] | None] = {"unsubscribe": None}
        subscription: Subscription[list[StoredDocument]] = Subscription(
            on_close=lambda: self._teardown(loop, handle["unsubscribe"])
        )

        # Refreshes run one at a time in event order; a result never replaces a newer one
        refresh_lock = asyncio.Lock()
        sequence = itertools.count(1)
        delivered = {"seq": 0}
        pending: set[asyncio.Task[None]] = set()

        async def refresh(seq: int) -> None:
            async with refresh_lock:
                if subscription.closed:
                    return
                docs = await self.get_many(collection, ids)
                if seq <= delivered["seq"]:
                    logger.debug(f"Dropping stale {collection} query result #{seq}")
                    return
                delivered["seq"] = seq
                subscription.push(docs)

        def on_refreshed(task: asyncio.Task[None]) -> None:
            pending.discard(task)
            if not task.cancelled() and task.exception() is not None:
                logger.error(f"Failed to refresh {collection} query: {task.exception()}")

        def start_refresh() -> None:
            task = loop.create_task(refresh(next(sequence)))
            pending.add(task)
            task.add_done_callback(on_refreshed)

        def on_event(event: Any) -> None:
            record = getattr(event, "record", None)
            if record is not None and getattr(record, "doc_id", None) in ids:
                loop.call_soon_threadsafe(start_refresh)

        handle["unsubscribe"] = await self._listen(collection, on_event)
        try:
            await refresh(next(sequence))
        except StoreError:
            subscription.close()
            raise
        logger.debug(f"Querying {len(ids)} {collection} documents live")
        return subscription
