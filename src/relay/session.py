"""Session state owned by a single relay."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import Enum


class RelayState(str, Enum):
    INITIALIZING = "initializing"
    AWAITING_START = "awaiting_start"
    ACTIVE = "active"
    CLOSED = "closed"


@dataclass(slots=True)
class Session:
    """Synchronization state for one call.

    Only the relay's consumer routine reads or writes these fields.

    The playback anchor is cleared on barge-in or when a delta for a new item
    arrives, not when an item finishes playing (the mark queue would show
    that, but its count drives no decisions). So after a reply has played
    out, the anchor and item id stay set until the next turn. A
    `speech_started` in that gap still truncates the finished item, with an
    offset past its end that the realtime API rejects with an `error` event
    (logged, session continues), and clears an already empty telephony
    buffer.
    """

    stream_id: str | None = None
    call_sid: str | None = None
    latest_media_timestamp: int = 0
    playback_anchor_timestamp: int | None = None
    active_utterance_id: str | None = None
    pending_acks: deque[str] = field(default_factory=deque)
    ai_ready: bool = False
    telephony_ready: bool = False
    greeting_sent: bool = False
    buffered_audio: deque[str] = field(default_factory=deque)
    dropped_frames: int = 0
    out_of_order_frames: int = 0
    state: RelayState = RelayState.INITIALIZING

    @property
    def is_closed(self) -> bool:
        return self.state is RelayState.CLOSED

    def start_stream(self, stream_id: str, call_sid: str | None = None) -> None:
        self.stream_id = stream_id
        self.call_sid = call_sid
        self.telephony_ready = True
        self.latest_media_timestamp = 0
        self.playback_anchor_timestamp = None

    def advance_clock(self, timestamp: int) -> bool:
        """Move the media clock forward.

        Returns False (and leaves the clock alone) for a frame stamped earlier
        than the latest one seen.
        """

        if timestamp < self.latest_media_timestamp:
            self.out_of_order_frames += 1
            return False
        self.latest_media_timestamp = timestamp
        return True

    def track_playback(self, item_id: str | None) -> None:
        """Anchor the current AI turn on the caller timeline."""

        if item_id and self.active_utterance_id and item_id != self.active_utterance_id:
            # A different item means the previous turn is over.
            self.playback_anchor_timestamp = None
        if self.playback_anchor_timestamp is None:
            self.playback_anchor_timestamp = self.latest_media_timestamp
        if item_id:
            self.active_utterance_id = item_id

    def elapsed_playback_ms(self) -> int | None:
        """Milliseconds of the active item the caller has heard, or None if nothing is playing."""

        if self.active_utterance_id is None or self.playback_anchor_timestamp is None:
            return None
        return self.latest_media_timestamp - self.playback_anchor_timestamp

    def buffer_audio(self, payload: str, limit: int) -> None:
        """Hold a caller frame until the realtime leg is configured, keeping the newest `limit`."""

        self.buffered_audio.append(payload)
        while len(self.buffered_audio) > limit:
            self.buffered_audio.popleft()
            self.dropped_frames += 1

    def reset_playback(self) -> None:
        self.pending_acks.clear()
        self.active_utterance_id = None
        self.playback_anchor_timestamp = None

    def acknowledge(self) -> str | None:
        if not self.pending_acks:
            return None
        return self.pending_acks.popleft()
