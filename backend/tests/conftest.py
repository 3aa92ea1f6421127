"""Shared fixtures for tracker and API tests."""

from collections.abc import Iterator
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from app.main import app, attach_tracker
from tracker.storage import MemoryStorageArea
from tracker.store import ProjectStore


class TickingClock:
    """Deterministic clock that advances one second per call."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 3, 1, 9, 0, 0)

    def __call__(self) -> datetime:
        current = self.now
        self.now += timedelta(seconds=1)
        return current


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def storage() -> MemoryStorageArea:
    return MemoryStorageArea()


@pytest.fixture
def store(storage: MemoryStorageArea, clock: TickingClock) -> ProjectStore:
    store = ProjectStore(storage, clock=clock)
    store.load()
    return store


@pytest.fixture
def client(store: ProjectStore) -> Iterator[TestClient]:
    """TestClient over the app with an in-memory store on ``app.state``."""
    attach_tracker(app, store)
    with TestClient(app) as test_client:
        yield test_client
    app.state.store = None
