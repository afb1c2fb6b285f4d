"""OpenAI Realtime leg of the relay."""

from __future__ import annotations

import logging
from typing import Any

from openai import AsyncOpenAI, OpenAIError
from websockets.exceptions import ConnectionClosed, WebSocketException

from config.settings import Settings, get_settings
from relay.errors import TransportClosedError

LOGGER = logging.getLogger(__name__)


class OpenAIRealtimeTransport:
    """Wrapper around the SDK's realtime WebSocket connection.

    Frames are passed through as raw JSON so the relay can apply its own
    parsing and skip what it does not understand.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self._client = AsyncOpenAI(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url or None,
        )
        self._model = settings.openai_realtime_model
        self._temperature = settings.openai_realtime_temperature
        self._connection = None
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    async def connect(self) -> None:
        extra_query: dict[str, Any] = {}
        if self._temperature is not None:
            extra_query["temperature"] = str(self._temperature)

        manager = self._client.realtime.connect(model=self._model, extra_query=extra_query)
        try:
            self._connection = await manager.enter()
        except (OpenAIError, WebSocketException, OSError) as exc:
            await self._client.close()
            raise TransportClosedError(f"Realtime connect failed: {exc}") from exc
        self._open = True
        LOGGER.info("OpenAI Realtime connected (model=%s)", self._model)

    async def receive(self) -> bytes:
        if self._connection is None:
            raise TransportClosedError("Realtime leg not connected")
        try:
            return await self._connection.recv_bytes()
        except ConnectionClosed as exc:
            self._open = False
            raise TransportClosedError(f"Realtime disconnected: {exc}") from exc

    async def send(self, message: dict[str, Any]) -> None:
        if self._connection is None or not self._open:
            raise TransportClosedError("Realtime leg not open")
        try:
            await self._connection.send(message)
        except ConnectionClosed as exc:
            self._open = False
            raise TransportClosedError(f"Realtime disconnected: {exc}") from exc

    async def close(self) -> None:
        """Close the socket if still open and release the API client."""

        connection, was_open = self._connection, self._open
        self._connection = None
        self._open = False
        try:
            if connection is not None and was_open:
                await connection.close()
                LOGGER.info("OpenAI Realtime disconnected")
        except WebSocketException as exc:
            raise TransportClosedError(f"Realtime close failed: {exc}") from exc
        finally:
            await self._client.close()


def build_realtime_transport() -> OpenAIRealtimeTransport:
    """Factory returning a fresh, unconnected AI leg for one call."""

    return OpenAIRealtimeTransport()
