"""
Shared dependencies for the Camp Planner API.

This module provides:
- Backend construction (document store + identity provider) per settings
- Tracking of open live streams so sign-out can close them
- PocketBase admin authentication for the pocketbase backend
- FastAPI dependency functions for the planner services
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any, TypeVar

from fastapi import HTTPException

from camp_planner.identity import IdentityProvider, IdentityRef, InMemoryIdentityProvider
from camp_planner.identity.pocketbase_identity import PocketBaseIdentityProvider
from camp_planner.services import AccountService, ScheduleDefaults, ScheduleService
from camp_planner.store import DocumentStore, InMemoryDocumentStore, LiveStream
from camp_planner.store.pocketbase_store import PocketBaseDocumentStore
from pocketbase import PocketBase

from .settings import Settings, get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

# ========================================
# Backends
# ========================================


class OpenStreams:
    """Live event streams currently held open, grouped by uid.

    While a uid has streams open, the identity provider is watched for it;
    signing out closes every one of them.
    """

    def __init__(self, identity: IdentityProvider):
        self._identity = identity
        self._streams: dict[str, set[LiveStream[Any]]] = {}
        self._unsubscribes: dict[str, Callable[[], None]] = {}

    def track(self, uid: str, stream: LiveStream[T]) -> LiveStream[T]:
        if uid not in self._streams:
            self._streams[uid] = set()
            self._unsubscribes[uid] = self._identity.subscribe(uid, lambda ref: self._on_auth_change(uid, ref))
        self._streams[uid].add(stream)
        return stream

    def release(self, uid: str, stream: LiveStream[Any]) -> None:
        streams = self._streams.get(uid)
        if streams is None:
            return
        streams.discard(stream)
        if not streams:
            del self._streams[uid]
            self._unsubscribes.pop(uid)()

    def open_count(self, uid: str) -> int:
        return len(self._streams.get(uid, ()))

    def close_all(self, uid: str) -> int:
        """Close every stream of ``uid``. Returns how many were open."""
        streams = list(self._streams.get(uid, ()))
        for stream in streams:
            stream.close()
            self.release(uid, stream)
        return len(streams)

    def close_everything(self) -> None:
        for uid in list(self._streams):
            self.close_all(uid)

    def _on_auth_change(self, uid: str, identity: IdentityRef | None) -> None:
        if identity is None:
            closed = self.close_all(uid)
            logger.info(f"Closed {closed} live stream(s) of signed-out user {uid}")


class Backends:
    """Process-wide store, identity provider and services."""

    def __init__(self, store: DocumentStore, identity: IdentityProvider, settings: Settings):
        self.store = store
        self.identity = identity
        self.streams = OpenStreams(identity)
        self.accounts = AccountService(store)
        self.schedules = ScheduleService(
            store,
            self.accounts,
            defaults=ScheduleDefaults(
                start_date=settings.default_start_date,
                week_count=settings.default_week_count,
            ),
            id_attempts=settings.schedule_id_attempts,
        )


_backends: Backends | None = None


async def authenticate_pb(pb: PocketBase, settings: Settings) -> None:
    """Authenticate with PocketBase as admin."""
    try:
        await asyncio.to_thread(
            pb.collection("_superusers").auth_with_password,
            settings.pocketbase_admin_email,
            settings.pocketbase_admin_password,
        )
        logger.info("Successfully authenticated with PocketBase")
    except Exception as e:
        logger.error(f"Failed to authenticate with PocketBase: {e}")
        raise


async def init_backends(settings: Settings | None = None) -> Backends:
    """Build the backends selected by STORE_BACKEND and install them."""
    settings = settings or get_settings()
    if settings.store_backend == "memory":
        logger.warning("Using in-memory store and identity provider; data is not persisted")
        backends = Backends(InMemoryDocumentStore(), InMemoryIdentityProvider(), settings)
    else:
        pb = PocketBase(settings.pocketbase_url)
        await authenticate_pb(pb, settings)
        backends = Backends(
            PocketBaseDocumentStore(pb),
            PocketBaseIdentityProvider.for_url(settings.pocketbase_url),
            settings,
        )
    install_backends(backends)
    return backends


def install_backends(backends: Backends | None) -> None:
    global _backends
    _backends = backends


async def close_backends() -> None:
    global _backends
    if _backends is not None:
        _backends.streams.close_everything()
        await _backends.store.close()
        _backends = None


def get_backends() -> Backends:
    if _backends is None:
        raise HTTPException(status_code=503, detail="Service is starting up")
    return _backends


# ========================================
# FastAPI dependencies
# ========================================


def get_identity_provider() -> IdentityProvider:
    return get_backends().identity


def get_account_service() -> AccountService:
    return get_backends().accounts


def get_schedule_service() -> ScheduleService:
    return get_backends().schedules


def get_open_streams() -> OpenStreams:
    return get_backends().streams
