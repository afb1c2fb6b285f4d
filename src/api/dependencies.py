"""Shared FastAPI dependencies.

Separated to avoid circular imports between route modules.
"""

from __future__ import annotations

from typing import Callable

from relay.transports import RealtimeTransport


def get_realtime_factory() -> Callable[[], RealtimeTransport]:
    # Lazy import so route modules load without importing the OpenAI SDK.
    from integrations.openai_realtime import build_realtime_transport

    return build_realtime_transport
