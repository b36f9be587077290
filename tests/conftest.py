"""Shared fixtures: settings, fake backend, in-memory registry and stream fakes."""

from __future__ import annotations

import json
from typing import Iterable, List, Optional

import anyio
import httpx
import pytest

from research_client.api.auth import StaticTokenProvider
from research_client.api.client import ResearchApiClient
from research_client.core.errors import TransportError
from research_client.core.settings import Settings
from research_client.services.run_store import RunStore
from research_client.services.storage import MemoryStorage

from fake_backend import FakeBackend

TOKEN = "test-token"


def frame(kind: str, data=None) -> str:
    message = {"event": kind}
    if data is not None:
        message["data"] = data
    return json.dumps(message)


class FakeSubscription:
    """Replays canned frames, then closes cleanly or fails."""

    def __init__(self, frames: Iterable[str], fail: bool = False) -> None:
        self._frames = list(frames)
        self._fail = fail
        self.closed = False

    async def frames(self):
        for item in self._frames:
            if self.closed:
                return
            yield item
        if self._fail:
            raise TransportError("connection reset by peer")

    async def close(self) -> None:
        self.closed = True


class HeldOpenSubscription(FakeSubscription):
    """Replays canned frames, then stays open until closed."""

    def __init__(self, frames: Iterable[str]) -> None:
        super().__init__(frames)
        self._closed_event = anyio.Event()

    async def frames(self):
        for item in self._frames:
            yield item
        await self._closed_event.wait()

    async def close(self) -> None:
        self.closed = True
        self._closed_event.set()


class SubscriptionRecorder:
    """Subscription factory handing out prepared subscriptions in order."""

    def __init__(self, *subscriptions: FakeSubscription) -> None:
        self._queue: List[FakeSubscription] = list(subscriptions)
        self.calls: List[tuple] = []

    def __call__(self, run_id: str, query: str, token: str) -> FakeSubscription:
        self.calls.append((run_id, query, token))
        return self._queue.pop(0)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        api_base_url="http://testserver",
        auth_audience="https://research.test/api",
        access_token=TOKEN,
        user_id="user-1",
        store_dir=tmp_path / "store",
    )


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend(token=TOKEN)


@pytest.fixture
async def api(settings, backend):
    client = ResearchApiClient(settings, transport=httpx.ASGITransport(app=backend.app))
    yield client
    await client.close()


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def store(storage) -> RunStore:
    return RunStore(storage)


@pytest.fixture
def credentials() -> StaticTokenProvider:
    return StaticTokenProvider(TOKEN)


def stored_runs(storage: MemoryStorage, key: str = "ai_research_runs") -> Optional[list]:
    raw = storage.get(key)
    return None if raw is None else json.loads(raw)
