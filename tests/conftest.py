from __future__ import annotations

import asyncio
import json
import os
import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

os.environ.setdefault("OPENAI_API_KEY", "sk-test")

from relay.errors import TransportClosedError  # noqa: E402


class FakeTelephony:
    """Telephony leg fed from a queue; `hang_up` ends the stream."""

    def __init__(self) -> None:
        self.is_open = True
        self.sent: list[dict] = []
        self.closed = False
        self._incoming: asyncio.Queue = asyncio.Queue()

    def push(self, message: dict | str) -> None:
        self._incoming.put_nowait(message if isinstance(message, str) else json.dumps(message))

    def hang_up(self) -> None:
        self._incoming.put_nowait(None)

    async def receive(self) -> str:
        frame = await self._incoming.get()
        if frame is None:
            self.is_open = False
            raise TransportClosedError("caller hung up")
        return frame

    async def send(self, message: dict) -> None:
        self.sent.append(message)

    async def close(self) -> None:
        self.is_open = False
        self.closed = True


class FakeRealtime:
    """AI leg that records what it is sent.

    With `speak_on_greeting`, a `response.create` makes it answer with one
    audio delta, the way the real service starts a turn.
    """

    def __init__(self, *, fail_connect: bool = False, speak_on_greeting: bool = False) -> None:
        self.is_open = False
        self.sent: list[dict] = []
        self.closed = False
        self._fail_connect = fail_connect
        self._speak_on_greeting = speak_on_greeting
        self._incoming: asyncio.Queue = asyncio.Queue()

    def emit(self, message: dict | str) -> None:
        self._incoming.put_nowait(message if isinstance(message, str) else json.dumps(message))

    def drop(self) -> None:
        self._incoming.put_nowait(None)

    async def connect(self) -> None:
        if self._fail_connect:
            raise TransportClosedError("connection refused")
        self.is_open = True

    async def receive(self) -> str:
        frame = await self._incoming.get()
        if frame is None:
            self.is_open = False
            raise TransportClosedError("server went away")
        return frame

    async def send(self, message: dict) -> None:
        self.sent.append(message)
        if self._speak_on_greeting and message["type"] == "response.create":
            self.emit({"type": "response.output_audio.delta", "delta": "AAA=", "item_id": "item1"})

    async def close(self) -> None:
        self.is_open = False
        self.closed = True


def drain(channel) -> list[dict]:
    """Take every frame currently queued on an outbound channel."""

    frames = []
    while not channel.queue.empty():
        frames.append(channel.queue.get_nowait())
    return frames


async def wait_until(predicate, *, timeout: float = 1.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.001)


@pytest.fixture()
def settings():
    from config.settings import Settings

    return Settings(
        _env_file=None,
        openai_api_key="sk-test",
        realtime_instructions="Be brief.",
        realtime_greeting="Say hello.",
    )


@pytest.fixture()
def telephony() -> FakeTelephony:
    return FakeTelephony()


@pytest.fixture()
def realtime() -> FakeRealtime:
    return FakeRealtime()


@pytest.fixture()
def relay(telephony, realtime, settings):
    from relay.relay import SessionRelay

    return SessionRelay(telephony, realtime, settings=settings)


@pytest.fixture(scope="session")
def app():
    import importlib

    # Ensure clean import with the test settings.
    for module_name in [
        "config.settings",
        "api.dependencies",
        "api.twilio_routes",
        "api.routes",
        "main",
    ]:
        sys.modules.pop(module_name, None)

    main = importlib.import_module("main")
    return main.app
