"""
Shared fixtures for the camp planner test suite.

- A mock PocketBase client exposing the SDK calls the stores and identity
  provider make, patched in for every test so nothing reaches a server
- Planner services over a fresh in-memory store
- ``api_client``: a TestClient over the app with in-memory backends and
  bypass auth
"""

from __future__ import annotations

import os
import sys
from collections.abc import Iterator
from pathlib import Path
from types import SimpleNamespace
from typing import Any
from unittest.mock import Mock, patch

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from camp_planner.models import ScheduleDocument  # noqa: E402
from camp_planner.services import AccountService, ScheduleDefaults, ScheduleService  # noqa: E402
from camp_planner.store import InMemoryDocumentStore  # noqa: E402


def create_mock_pocketbase() -> Mock:
    """PocketBase client double; ``pb.collection(name)`` always returns the same collection mock."""
    records = Mock(name="collection")
    records.get_list.return_value = Mock(items=[], total_items=0, page=1)
    records.get_full_list.return_value = []
    records.create.return_value = make_record(doc_id="mock-id")
    records.subscribe.return_value = Mock(name="unsubscribe")
    records.auth_with_password.return_value = Mock(token="mock-token", record=SimpleNamespace(id="mock-uid"))
    records.auth_with_oauth2.return_value = Mock(token="mock-token", record=SimpleNamespace(id="mock-uid"))

    pb = Mock(name="pocketbase")
    pb.collection.return_value = records
    pb.auth_store = Mock(token="mock-token")
    return pb


def make_record(doc_id: str, version: int = 1, record_id: str = "pbrecord0000001", **fields: Any) -> SimpleNamespace:
    """A PocketBase-like record: attributes for every stored field."""
    return SimpleNamespace(
        id=record_id,
        collection_id="pbc_planner",
        collection_name="planner_schedules",
        created="2025-06-01 00:00:00.000Z",
        updated="2025-06-01 00:00:00.000Z",
        expand={},
        doc_id=doc_id,
        version=version,
        **fields,
    )


@pytest.fixture
def mock_pocketbase() -> Mock:
    return create_mock_pocketbase()


@pytest.fixture(autouse=True)
def no_real_pocketbase() -> Iterator[Mock | None]:
    """Route every ``PocketBase(url)`` construction to a mock.

    Set USE_REAL_POCKETBASE=true to run against a live server.
    """
    if os.environ.get("USE_REAL_POCKETBASE") == "true":
        yield None
        return

    pb = create_mock_pocketbase()
    with patch("pocketbase.PocketBase", return_value=pb), patch("api.dependencies.PocketBase", return_value=pb):
        yield pb


# ========================================
# Planner fixtures
# ========================================


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def account_service(store: InMemoryDocumentStore) -> AccountService:
    return AccountService(store)


@pytest.fixture
def schedule_service(store: InMemoryDocumentStore, account_service: AccountService) -> ScheduleService:
    return ScheduleService(store, account_service, defaults=ScheduleDefaults())


def make_schedule(**overrides: Any) -> ScheduleDocument:
    """A schedule document with the defaults of a freshly created one."""
    data: dict[str, Any] = {
        "id": "ABC123",
        "kidName": "Ava",
        "ownerId": "owner-1",
        "collaborators": [],
        "camps": [],
        "allKids": ["Ava"],
        "schedule": {},
        "startDate": "2025-06-23",
        "weekCount": 8,
        "version": 1,
    }
    data.update(overrides)
    return ScheduleDocument.model_validate(data)


@pytest.fixture
def schedule_factory():
    return make_schedule


@pytest.fixture
def record_factory():
    return make_record


# ========================================
# API fixtures
# ========================================


@pytest.fixture
def api_client(monkeypatch: pytest.MonkeyPatch) -> Iterator[Any]:
    """TestClient over a fresh app with in-memory backends and bypass auth.

    Requests act as DEV_USER_ID unless they send an X-Debug-User header.
    """
    from fastapi.testclient import TestClient

    from api.main import create_app
    from api.settings import get_settings

    monkeypatch.setenv("AUTH_MODE", "bypass")
    monkeypatch.setenv("STORE_BACKEND", "memory")
    monkeypatch.setenv("DEV_USER_ID", "dev-user")
    monkeypatch.delenv("IS_DOCKER", raising=False)
    get_settings.cache_clear()

    with patch("api.settings._is_docker_environment", return_value=False):
        app = create_app()
        with TestClient(app) as client:
            yield client

    get_settings.cache_clear()
