"""Document store contract.

The planner treats persistence as a document store with live queries:
documents are JSON-like dicts addressed by (collection, id), every committed
write bumps a per-document ``version``, and readers can hold subscriptions
that receive each committed version in order.

Writes merge at top-level-field granularity only. There are no transactions
spanning documents; check-and-set on a single document is available through
``patch(..., expected_version=...)``.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True)
class StoredDocument:
    """A committed document version."""

    id: str
    data: dict[str, Any] = field(default_factory=dict)
    version: int = 1


# =============================================================================
# Live streams
# =============================================================================


class LiveStream(ABC, Generic[T]):
    """Async iterator over pushed values with an explicit close.

    Usage:
        async with await store.subscribe("schedules", "ABC123") as stream:
            async for doc in stream:
                ...

    Once closed the iterator ends; values still queued are discarded.
    """

    @property
    @abstractmethod
    def closed(self) -> bool:
        pass

    @abstractmethod
    def close(self) -> None:
        pass

    @abstractmethod
    async def __anext__(self) -> T:
        pass

    def __aiter__(self) -> LiveStream[T]:
        return self

    async def __aenter__(self) -> LiveStream[T]:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()

    def map(self, fn: Callable[[T], U]) -> LiveStream[U]:
        """Stream of ``fn(value)``; closing it closes this stream."""
        return MappedStream(self, fn)


_CLOSED = object()


class Subscription(LiveStream[T]):
    """Queue-backed stream fed by a store."""

    def __init__(self, on_close: Callable[[], None] | None = None):
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False
        self._on_close = on_close

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, value: T) -> None:
        """Deliver a value; ignored after close."""
        if not self._closed:
            self._queue.put_nowait(value)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._on_close is not None:
            try:
                self._on_close()
            except Exception as e:
                logger.warning(f"Error tearing down subscription: {e}")
        self._queue.put_nowait(_CLOSED)

    async def __anext__(self) -> T:
        if self._closed:
            raise StopAsyncIteration
        value = await self._queue.get()
        if value is _CLOSED or self._closed:
            raise StopAsyncIteration
        return value  # type: ignore[no-any-return]


class MappedStream(LiveStream[U]):
    def __init__(self, source: LiveStream[T], fn: Callable[[T], U]):
        self._source = source
        self._fn = fn

    @property
    def closed(self) -> bool:
        return self._source.closed

    def close(self) -> None:
        self._source.close()

    async def __anext__(self) -> U:
        value = await self._source.__anext__()
        return self._fn(value)


# =============================================================================
# Store
# =============================================================================


class DocumentStore(ABC):
    """Abstract document store used by the planner services."""

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> StoredDocument | None:
        """Current version of a document, or None."""
        pass

    @abstractmethod
    async def put(self, collection: str, doc_id: str, data: dict[str, Any]) -> StoredDocument:
        """Create or fully replace a document."""
        pass

    @abstractmethod
    async def create(self, collection: str, doc_id: str, data: dict[str, Any]) -> StoredDocument:
        """Create a document, raising DocumentExistsError if the id is taken."""
        pass

    @abstractmethod
    async def patch(
        self,
        collection: str,
        doc_id: str,
        fields: dict[str, Any],
        *,
        expected_version: int | None = None,
    ) -> StoredDocument:
        """Overwrite the given top-level fields.

        Raises:
            DocumentNotFoundError: If the document does not exist
            VersionConflictError: If ``expected_version`` is set and stale
        """
        pass

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> bool:
        """Delete a document. Returns False if it was already gone."""
        pass

    @abstractmethod
    async def subscribe(self, collection: str, doc_id: str) -> Subscription[StoredDocument | None]:
        """Live stream of one document; None is delivered when it is deleted or missing."""
        pass

    @abstractmethod
    async def query_by_ids(self, collection: str, doc_ids: Iterable[str]) -> Subscription[list[StoredDocument]]:
        """Live stream of the existing documents among ``doc_ids``."""
        pass

    async def get_many(self, collection: str, doc_ids: Iterable[str]) -> list[StoredDocument]:
        """Existing documents among ``doc_ids``, in the given order."""
        found: list[StoredDocument] = []
        for doc_id in doc_ids:
            doc = await self.get(collection, doc_id)
            if doc is not None:
                found.append(doc)
        return found

    async def close(self) -> None:
        """Release backend resources."""
        return None
