"""Pytest configuration and fixtures."""

import os

# Settings are read at import time; keep tests off the insecure default key
os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-at-least-32-characters")

import pytest
from datetime import datetime, timedelta, timezone
from typing import Generator

from fastapi.testclient import TestClient

from virtual_queue.api.deps import get_queue_service
from virtual_queue.core.metrics import metrics
from virtual_queue.core.rate_limit import limiter
from virtual_queue.core.security import create_access_token
from virtual_queue.main import app
from virtual_queue.services.queue_service import QueueService
from virtual_queue.services.queue_store import QueueStore


class FakeClock:
    """Controllable clock returning aware UTC datetimes."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def tenant_headers(tenant_id: str) -> dict:
    """Auth headers for a business user acting on its own queue."""
    token = create_access_token({"sub": tenant_id, "email": f"{tenant_id}@test.com", "role": "owner"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 14, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def store() -> QueueStore:
    return QueueStore()


@pytest.fixture
def queue_service(store: QueueStore, clock: FakeClock) -> QueueService:
    """A fresh queue service with the default 3 minute bootstrap average."""
    return QueueService(store=store, clock=clock, default_service_minutes=3)


@pytest.fixture
def client(queue_service: QueueService) -> Generator[TestClient, None, None]:
    """Create a test client bound to a fresh queue service."""
    app.dependency_overrides[get_queue_service] = lambda: queue_service
    # Disable rate limiting during tests to avoid flaky failures
    limiter.enabled = False
    metrics.reset()
    # Don't raise server exceptions so we can test error status codes
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    limiter.enabled = True
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> dict:
    return tenant_headers("T1")


@pytest.fixture
def headers_for():
    """Build auth headers for any tenant."""
    return tenant_headers
