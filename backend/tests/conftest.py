"""Shared test fixtures for the chat synchronization engine.

The transport is replaced by in-memory sessions that record what was
emitted and let tests fire inbound events directly. The notification timer
runs on a fake loop whose clock only moves when a test advances it.
"""
import asyncio
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from chatsync.realtime.connection import TransportSession
from chatsync.realtime.engine import ChatEngine
from chatsync.realtime.errors import TransportError

FIXED_NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeTimer:
    def __init__(self, when, callback, args):
        self.when = when
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeLoop:
    """Just enough of an event loop for NotificationCenter."""

    def __init__(self):
        self.now = 0.0
        self.timers = []

    def time(self):
        return self.now

    def call_later(self, delay, callback, *args):
        timer = FakeTimer(self.now + delay, callback, args)
        self.timers.append(timer)
        return timer

    def advance(self, seconds):
        self.now += seconds
        due = [t for t in self.timers if not t.cancelled and t.when <= self.now]
        for timer in sorted(due, key=lambda t: t.when):
            self.timers.remove(timer)
            timer.callback(*timer.args)

    @property
    def pending(self):
        return [t for t in self.timers if not t.cancelled]


class FakeSession(TransportSession):
    def __init__(self, fail_open=False, slow_close=False):
        super().__init__()
        self.fail_open = fail_open
        self.slow_close = slow_close
        self.callback = None
        self.opened = False
        self.close_calls = 0
        self.emitted = []

    def bind(self, callback):
        self.callback = callback

    async def open(self):
        self.opened = True
        if self.fail_open:
            raise TransportError("connection refused")

    async def emit(self, event, payload):
        self.emitted.append((event, payload))

    async def close(self):
        self.close_calls += 1
        if self.slow_close:
            # Give other tasks a chance to run mid-close
            await asyncio.sleep(0)

    def fire(self, event, payload=None):
        self.callback(event, payload)


class FakeTransport:
    """Transport factory that remembers every session it created."""

    def __init__(self):
        self.sessions = []
        self.fail_open = False
        self.slow_close = False

    def __call__(self):
        session = FakeSession(fail_open=self.fail_open, slow_close=self.slow_close)
        self.sessions.append(session)
        return session

    @property
    def latest(self):
        return self.sessions[-1]


@pytest.fixture
def fake_loop():
    return FakeLoop()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def engine(transport, fake_loop):
    """ChatEngine over fake sessions with a deterministic clock."""
    return ChatEngine(transport, loop=fake_loop, clock=lambda: FIXED_NOW)


def wire_message(content, username="bob", user_id=1, message_id=None):
    """Build a message payload as the backend sends it."""
    payload = {
        "content": content,
        "user": {"username": username, "id": user_id},
        "createdAt": "2026-01-01T11:59:00Z",
    }
    if message_id is not None:
        payload["id"] = message_id
    return payload


@pytest.fixture
def make_wire_message():
    return wire_message


async def _joined_engine(engine, transport, username="bob", user_id=1):
    """Drive an engine through connect and the first backend event."""
    await engine.join(username, user_id)
    await engine.connection.drain()
    transport.latest.fire("connect")
    await engine.connection.drain()
    transport.latest.fire("recentMessages", [])
    return transport.latest


@pytest.fixture
def joined_engine():
    """Async helper returning the joined session."""
    return _joined_engine


@pytest.fixture
def api_client():
    """Provide a TestClient for the main FastAPI app (lifespan not run)."""
    from chatsync.main import app

    return TestClient(app)
