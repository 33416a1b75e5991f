# tests/conftest.py
#
# Shared fakes. No test here talks to a real MongoDB: the scripts take an
# injectable store, so FakeStore stands in for MongoMetricsStore and keeps
# everything in memory with the same failure semantics.

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

import pytest

from sky.core.config import get_settings
from sky.core.errors import CollectionAlreadyExistsError, DuplicateCredentialError
from sky.core.run_context import command_metrics_var, set_run_id
from sky.models import EXPIRE_AFTER_SECONDS, MetricRecord, time_series_options


class FakeStore:
    def __init__(self, fail_insert: Optional[Exception] = None):
        self.users: Dict[str, Dict[str, Any]] = {}
        self.collections: Dict[str, Dict[str, Any]] = {}
        self.documents: Dict[str, List[Dict[str, Any]]] = {}
        self.calls: List[str] = []
        self.closed = False
        self.fail_insert = fail_insert

    def create_user(self, username: str, password: str, roles: List[Dict[str, str]]) -> None:
        self.calls.append("create_user")
        if username in self.users:
            raise DuplicateCredentialError(f"user {username!r} already exists")
        self.users[username] = {"pwd": password, "roles": roles}

    def create_time_series_collection(self, name: str) -> None:
        self.calls.append("create_time_series_collection")
        if name in self.collections:
            raise CollectionAlreadyExistsError(f"collection {name} already exists")
        self.collections[name] = {
            "timeseries": time_series_options(),
            "expireAfterSeconds": EXPIRE_AFTER_SECONDS,
        }
        self.documents.setdefault(name, [])

    def insert_many(self, name: str, records: Iterable[MetricRecord]) -> int:
        self.calls.append("insert_many")
        if self.fail_insert is not None:
            raise self.fail_insert
        docs = [r.to_document() for r in records]
        self.documents.setdefault(name, []).extend(docs)
        return len(docs)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture(autouse=True)
def _isolate_settings_and_run(monkeypatch):
    for var in (
        "MONGO_URI",
        "MONGO_DATABASE",
        "MONGO_COLLECTION",
        "MONGO_APP_USER",
        "MONGO_APP_PASSWORD",
    ):
        monkeypatch.delenv(var, raising=False)
    get_settings.cache_clear()
    set_run_id(None)
    command_metrics_var.set(None)
    yield
    get_settings.cache_clear()
