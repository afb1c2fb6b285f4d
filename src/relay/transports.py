"""Interfaces the relay expects from its two legs."""

from __future__ import annotations

import asyncio
from typing import Any, Protocol


class Transport(Protocol):
    """One side of the call.

    `receive` returns a raw JSON frame and raises `TransportClosedError` once
    the peer has gone away. `send` takes an already-built frame.
    """

    @property
    def is_open(self) -> bool:  # pragma: no cover - protocol stub
        ...

    async def receive(self) -> str | bytes:  # pragma: no cover - protocol stub
        ...

    async def send(self, message: dict[str, Any]) -> None:  # pragma: no cover - protocol stub
        ...

    async def close(self) -> None:  # pragma: no cover - protocol stub
        ...


class RealtimeTransport(Transport, Protocol):
    """AI leg; the relay opens it itself."""

    async def connect(self) -> None:  # pragma: no cover - protocol stub
        ...


class OutboundChannel:
    """Unbounded outbound queue drained by one writer task per leg.

    `submit` never blocks, so a slow peer cannot stall the relay's consumer.
    """

    def __init__(self, transport: Transport, *, name: str) -> None:
        self._transport = transport
        self.name = name
        self.queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()

    def __len__(self) -> int:
        return self.queue.qsize()

    def submit(self, message: dict[str, Any]) -> None:
        self.queue.put_nowait(message)

    async def run(self) -> None:
        while True:
            message = await self.queue.get()
            await self._transport.send(message)
