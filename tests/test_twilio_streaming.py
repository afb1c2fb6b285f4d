from __future__ import annotations

import asyncio
import json

import pytest
from starlette.websockets import WebSocketState

from integrations.twilio_streaming import TwilioMediaStream
from relay.errors import TransportClosedError


class StubWebSocket:
    def __init__(self, frames: list[str | bytes]) -> None:
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED
        self._frames = list(frames)
        self.sent: list[str] = []
        self.closed = False

    async def receive(self) -> dict:
        if not self._frames:
            self.client_state = WebSocketState.DISCONNECTED
            return {"type": "websocket.disconnect", "code": 1001}
        frame = self._frames.pop(0)
        if isinstance(frame, bytes):
            return {"type": "websocket.receive", "bytes": frame}
        return {"type": "websocket.receive", "text": frame}

    async def send_text(self, data: str) -> None:
        self.sent.append(data)

    async def close(self, code: int = 1000) -> None:
        self.application_state = WebSocketState.DISCONNECTED
        self.closed = True


def test_receive_until_disconnect() -> None:
    ws = StubWebSocket(['{"event": "connected"}'])
    stream = TwilioMediaStream(ws)

    async def _run() -> None:
        assert await stream.receive() == '{"event": "connected"}'
        with pytest.raises(TransportClosedError):
            await stream.receive()

    asyncio.run(_run())
    assert stream.is_open is False


def test_send_serializes_frames() -> None:
    ws = StubWebSocket([])
    stream = TwilioMediaStream(ws)

    asyncio.run(stream.send({"event": "clear", "streamSid": "CA123"}))

    assert [json.loads(frame) for frame in ws.sent] == [{"event": "clear", "streamSid": "CA123"}]


def test_send_after_close_raises() -> None:
    ws = StubWebSocket([])
    stream = TwilioMediaStream(ws)

    async def _run() -> None:
        await stream.close()
        await stream.close()
        with pytest.raises(TransportClosedError):
            await stream.send({"event": "clear", "streamSid": "CA123"})

    asyncio.run(_run())
    assert ws.closed is True
    assert ws.sent == []


def test_binary_frames_are_passed_to_the_parser() -> None:
    ws = StubWebSocket([b"\x00\x01garbage", b'{"event": "stop"}'])
    stream = TwilioMediaStream(ws)

    async def _run() -> list:
        return [await stream.receive(), await stream.receive()]

    assert asyncio.run(_run()) == [b"\x00\x01garbage", b'{"event": "stop"}']
    assert stream.is_open is True
