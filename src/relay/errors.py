"""Relay exceptions.

These are safe to import from the API layer without pulling in the AI client.
"""

from __future__ import annotations


class RelayError(Exception):
    default_detail: str = "Relay error"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.default_detail)
        self.detail = detail or self.default_detail


class MalformedEventError(RelayError):
    default_detail = "Malformed transport event."


class TransportClosedError(RelayError):
    default_detail = "Transport connection closed."


class ProtocolViolationError(RelayError):
    default_detail = "Realtime protocol violation."
