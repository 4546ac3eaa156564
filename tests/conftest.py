"""
Shared fixtures.

Settings are read from the environment at import time, so the minimum set of
variables is seeded here before any project module is imported. Redis is
replaced by fakeredis; every test gets its own fake server.
"""
from __future__ import annotations

import os

os.environ.setdefault("APP_ENV", "prod")
os.environ.setdefault("SERVICE_ROLE", "receiver")
os.environ.setdefault("PROJECT_ID", "test-project")
os.environ.setdefault("BROKER_URL", "redis://localhost:6379/0")

import pytest
from fakeredis import FakeAsyncRedis, FakeServer

from repository.broker_repository import BrokerRepository
from repository.object_store_repository import ObjectStoreRepository


class FakeClock:
    def __init__(self, now: float) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingBroker(BrokerRepository):
    """Real broker that also remembers every publish attempt."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.published: list[tuple[str, bytes]] = []

    async def publish(self, topic: str, data: bytes) -> str:
        self.published.append((topic, data))
        return await super().publish(topic, data)


class FakeAnnotator:
    def __init__(self, labels: list[str] | None = None, error: Exception | None = None) -> None:
        self.labels = labels or []
        self.error = error
        self.calls: list[tuple[bytes, int]] = []
        self.closed = False

    async def annotate_labels(self, image: bytes, max_results: int = 3) -> list[str]:
        self.calls.append((image, max_results))
        if self.error is not None:
            raise self.error
        return list(self.labels[:max_results])

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(1_700_000_000.0)


@pytest.fixture
async def redis_client():
    client = FakeAsyncRedis(server=FakeServer())
    yield client
    await client.aclose()


@pytest.fixture
def broker(redis_client, clock) -> RecordingBroker:
    return RecordingBroker(redis_client, "test-project", clock=clock)


@pytest.fixture
def store(redis_client, clock) -> ObjectStoreRepository:
    return ObjectStoreRepository(redis_client, clock=clock)
