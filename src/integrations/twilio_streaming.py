"""Twilio Media Streams leg of the relay."""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from relay.errors import TransportClosedError

LOGGER = logging.getLogger(__name__)


class TwilioMediaStream:
    """Adapts an accepted FastAPI WebSocket to the relay's transport interface."""

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket

    @property
    def is_open(self) -> bool:
        return (
            self._websocket.client_state == WebSocketState.CONNECTED
            and self._websocket.application_state == WebSocketState.CONNECTED
        )

    async def receive(self) -> str | bytes:
        # Binary frames are handed on too; the parser rejects what is not JSON.
        message = await self._websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise TransportClosedError(f"Twilio disconnected (code={message.get('code', 1000)})")
        text = message.get("text")
        if text is not None:
            return text
        return message.get("bytes") or b""

    async def send(self, message: dict[str, Any]) -> None:
        if not self.is_open:
            raise TransportClosedError("Twilio stream not open")
        try:
            await self._websocket.send_text(json.dumps(message))
        except (WebSocketDisconnect, RuntimeError) as exc:
            raise TransportClosedError(f"Twilio send failed: {exc}") from exc

    async def close(self) -> None:
        if not self.is_open:
            return
        try:
            await self._websocket.close()
        except RuntimeError as exc:
            raise TransportClosedError(f"Twilio close failed: {exc}") from exc
