"""Shared fixtures: a file-backed SQLite database per test and a scripted upstream."""
import asyncio
from typing import Optional, Sequence

import pytest
from fastapi import Request
from httpx import ASGITransport, AsyncClient

from chatrelay.api.deps import get_current_user_id, get_room_store
from chatrelay.core.config import get_settings
from chatrelay.db.init_db import init_db
from chatrelay.db.session import create_session_factory
from chatrelay.main import app
from chatrelay.schemas.chat import Snapshot, SnapshotDetail
from chatrelay.schemas.model import ModelParameters
from chatrelay.services.relay import InFlightRegistry, StreamingRelay
from chatrelay.services.room_store import RoomStore
from chatrelay.utils.errors import UpstreamError


class FakeClock:
    """Millisecond clock that advances one second per reading."""

    def __init__(self, start: int = 1_700_000_000_000, step: int = 1000):
        self.now = start
        self.step = step

    def __call__(self) -> int:
        self.now += self.step
        return self.now


class StubUpstream:
    """Replays fixed cumulative snapshots; the last one finishes the reply."""

    def __init__(
            self,
            texts: Sequence[str] = ("h", "hi there"),
            message_id: str = "99",
            fail_at: Optional[int] = None,
            finish: bool = True,
            delay: float = 0
    ):
        self.texts = list(texts)
        self.message_id = message_id
        self.fail_at = fail_at
        self.finish = finish
        self.delay = delay
        self.calls = []
        self.closed = 0

    async def stream(self, prompt, parent_message_id, context, params):
        self.calls.append({
            "prompt": prompt,
            "parent_message_id": parent_message_id,
            "context": context,
            "model": params.model
        })
        try:
            for index, text in enumerate(self.texts):
                if self.delay:
                    await asyncio.sleep(self.delay)
                if self.fail_at == index:
                    raise UpstreamError("upstream went away")
                last = index == len(self.texts) - 1
                yield Snapshot(
                    id=self.message_id,
                    text=text,
                    parent_message_id=parent_message_id,
                    detail=SnapshotDetail(
                        model=params.model,
                        finish_reason="stop" if last and self.finish else None
                    )
                )
        finally:
            self.closed += 1


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
async def session_factory(tmp_path):
    engine, factory = create_session_factory(f"sqlite+aiosqlite:///{tmp_path / 'chatrelay.db'}")
    await init_db(engine)
    yield factory
    await engine.dispose()


@pytest.fixture
def store(session_factory, clock) -> RoomStore:
    return RoomStore(session_factory, clock=clock)


@pytest.fixture
def params() -> ModelParameters:
    return ModelParameters(
        api_key="sk-test",
        model="gpt-test",
        base_url="http://upstream.test/v1",
        timeout_ms=1000
    )


@pytest.fixture
def upstream() -> StubUpstream:
    return StubUpstream()


@pytest.fixture
def inflight() -> InFlightRegistry:
    return InFlightRegistry()


@pytest.fixture
def make_relay(store, upstream, params, inflight):
    def _make(user_id: str = "42", upstream_override=None) -> StreamingRelay:
        return StreamingRelay(store, upstream_override or upstream, params, user_id, inflight=inflight)
    return _make


async def header_user(request: Request) -> str:
    return request.headers.get("X-User-Id", "42")


@pytest.fixture
async def client(session_factory, store, upstream, inflight):
    app.state.session_factory = session_factory
    app.state.upstream = upstream
    app.state.inflight = inflight
    app.dependency_overrides[get_current_user_id] = header_user
    app.dependency_overrides[get_room_store] = lambda: store

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
        yield http

    app.dependency_overrides.clear()


@pytest.fixture
def override_settings():
    def _override(settings):
        app.dependency_overrides[get_settings] = lambda: settings
    return _override
