"""Session relay: the per-call state machine bridging telephony and realtime AI.

Two reader tasks turn incoming frames into events and put them on one inbox.
A single consumer (`run`) takes events off the inbox and hands them to
`dispatch`, which is synchronous: it updates the `Session` and submits
outbound frames to per-leg channels without awaiting. Two writer tasks drain
those channels. When either leg goes away the session closes, the remaining
tasks are cancelled and the other leg is closed.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from config.settings import Settings, get_settings
from relay import commands
from relay.errors import MalformedEventError, ProtocolViolationError, RelayError, TransportClosedError
from relay.events import (
    AudioDelta,
    Leg,
    LegClosed,
    MediaReceived,
    PlaybackMarked,
    RealtimeConnected,
    RealtimeFailed,
    RelayEvent,
    SpeechStarted,
    StreamStarted,
    StreamStopped,
    parse_realtime_event,
    parse_telephony_event,
)
from relay.session import RelayState, Session
from relay.transports import OutboundChannel, RealtimeTransport, Transport

LOGGER = logging.getLogger(__name__)


class SessionRelay:
    """Relay for exactly one call."""

    def __init__(
        self,
        telephony: Transport,
        realtime: RealtimeTransport,
        *,
        settings: Settings | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._telephony = telephony
        self._realtime = realtime
        self.session = Session()
        self.telephony_out = OutboundChannel(telephony, name=Leg.TELEPHONY.value)
        self.realtime_out = OutboundChannel(realtime, name=Leg.REALTIME.value)
        self._inbox: asyncio.Queue[RelayEvent] = asyncio.Queue()
        self._handlers: dict[type, Callable[[Any], None]] = {
            RealtimeConnected: self._on_realtime_connected,
            StreamStarted: self._on_stream_started,
            MediaReceived: self._on_media,
            PlaybackMarked: self._on_mark,
            StreamStopped: self._on_stream_stopped,
            AudioDelta: self._on_audio_delta,
            SpeechStarted: self._on_speech_started,
            RealtimeFailed: self._on_realtime_failed,
            LegClosed: self._on_leg_closed,
        }

    # ------------------------------------------------------------------
    # Task wiring

    async def run(self) -> None:
        """Serve the call until either leg closes."""

        workers = [
            asyncio.create_task(self._read_telephony(), name="relay-telephony-reader"),
            asyncio.create_task(self._read_realtime(), name="relay-realtime-reader"),
            asyncio.create_task(self._write(self.telephony_out, Leg.TELEPHONY), name="relay-telephony-writer"),
            asyncio.create_task(self._write(self.realtime_out, Leg.REALTIME), name="relay-realtime-writer"),
        ]
        try:
            while not self.session.is_closed:
                event = await self._inbox.get()
                self.dispatch(event)
        finally:
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            if not self.session.is_closed:
                self._close("relay cancelled")
            await self._close_transports()

    async def _read_telephony(self) -> None:
        try:
            while True:
                raw = await self._telephony.receive()
                try:
                    event = parse_telephony_event(raw)
                except MalformedEventError as exc:
                    LOGGER.warning("Skipping telephony frame: %s", exc.detail)
                    continue
                if event is not None:
                    self._inbox.put_nowait(event)
        except TransportClosedError as exc:
            self._inbox.put_nowait(LegClosed(Leg.TELEPHONY, exc.detail))
        except Exception as exc:
            LOGGER.exception("Telephony transport fault")
            self._inbox.put_nowait(LegClosed(Leg.TELEPHONY, f"transport fault: {exc}"))

    async def _read_realtime(self) -> None:
        try:
            await self._realtime.connect()
            self._inbox.put_nowait(RealtimeConnected())
            while True:
                raw = await self._realtime.receive()
                try:
                    event = parse_realtime_event(raw)
                except MalformedEventError as exc:
                    LOGGER.warning("Skipping realtime frame: %s", exc.detail)
                    continue
                if event is not None:
                    self._inbox.put_nowait(event)
        except TransportClosedError as exc:
            self._inbox.put_nowait(LegClosed(Leg.REALTIME, exc.detail))
        except Exception as exc:
            LOGGER.exception("Realtime transport fault")
            self._inbox.put_nowait(LegClosed(Leg.REALTIME, f"transport fault: {exc}"))

    async def _write(self, channel: OutboundChannel, leg: Leg) -> None:
        try:
            await channel.run()
        except TransportClosedError as exc:
            self._inbox.put_nowait(LegClosed(leg, exc.detail))
        except Exception as exc:
            LOGGER.exception("Failed to send to %s", leg.value)
            self._inbox.put_nowait(LegClosed(leg, f"send failed: {exc}"))

    async def _close_transports(self) -> None:
        # Both adapters make close() a no-op on a leg that is already gone,
        # but still release what they hold.
        for leg, transport in ((Leg.REALTIME, self._realtime), (Leg.TELEPHONY, self._telephony)):
            try:
                await transport.close()
            except (RelayError, OSError, RuntimeError):
                LOGGER.warning("Closing %s leg failed", leg.value, exc_info=True)

    # ------------------------------------------------------------------
    # State machine

    def dispatch(self, event: RelayEvent) -> None:
        """Apply one event to the session. Never awaits."""

        if self.session.is_closed:
            return
        handler = self._handlers.get(type(event))
        if handler is None:
            LOGGER.warning("No handler for relay event %r", event)
            return
        handler(event)

    def _on_realtime_connected(self, _event: RealtimeConnected) -> None:
        session = self.session
        if session.ai_ready:
            return
        self.realtime_out.submit(
            commands.session_update(
                instructions=self._settings.resolve_instructions(),
                voice=self._settings.realtime_voice,
                audio_format=self._settings.realtime_audio_format,
            )
        )
        session.ai_ready = True
        LOGGER.info("Realtime session configured (stream=%s)", session.stream_id)

        if session.buffered_audio:
            LOGGER.debug("Flushing %d buffered caller frames", len(session.buffered_audio))
            for audio in session.buffered_audio:
                self._send_realtime(commands.input_audio_append(audio))
            session.buffered_audio.clear()

        if session.state is RelayState.INITIALIZING:
            session.state = RelayState.AWAITING_START
        self._maybe_greet()

    def _on_stream_started(self, event: StreamStarted) -> None:
        session = self.session
        if session.stream_id is not None:
            LOGGER.warning(
                "Ignoring repeated start (stream=%s, got %s)", session.stream_id, event.stream_id
            )
            return

        session.start_stream(event.stream_id, event.call_sid)
        session.state = RelayState.ACTIVE
        LOGGER.info("Telephony stream started (stream=%s call=%s)", event.stream_id, event.call_sid)
        self._maybe_greet()

    def _maybe_greet(self) -> None:
        session = self.session
        if session.greeting_sent or not (session.ai_ready and session.telephony_ready):
            return
        self._send_realtime(commands.response_create(self._settings.realtime_greeting))
        session.greeting_sent = True
        LOGGER.info("Requested greeting (stream=%s)", session.stream_id)

    def _on_media(self, event: MediaReceived) -> None:
        session = self.session
        if not session.advance_clock(event.timestamp):
            LOGGER.warning(
                "Out-of-order media frame (stream=%s ts=%d latest=%d)",
                session.stream_id,
                event.timestamp,
                session.latest_media_timestamp,
            )

        if not session.ai_ready:
            session.buffer_audio(event.payload, self._settings.realtime_audio_buffer_frames)
        elif self._realtime.is_open:
            self._send_realtime(commands.input_audio_append(event.payload))
        else:
            session.dropped_frames += 1
            LOGGER.debug("Dropped caller frame, realtime leg closed (dropped=%d)", session.dropped_frames)

    def _on_mark(self, event: PlaybackMarked) -> None:
        if self.session.acknowledge() is None:
            LOGGER.debug("Mark %r with no pending acknowledgements", event.name)

    def _on_stream_stopped(self, _event: StreamStopped) -> None:
        self._close("telephony stream stopped")

    def _on_audio_delta(self, event: AudioDelta) -> None:
        session = self.session
        if session.stream_id is None:
            LOGGER.warning("Audio delta before telephony start; skipping")
            return

        session.track_playback(event.item_id)
        self.telephony_out.submit(commands.telephony_media(session.stream_id, event.delta))
        self.telephony_out.submit(commands.telephony_mark(session.stream_id))
        session.pending_acks.append(commands.ACK_MARK_NAME)

    def _on_speech_started(self, _event: SpeechStarted) -> None:
        session = self.session
        elapsed = session.elapsed_playback_ms()
        if elapsed is None:
            return

        item_id = session.active_utterance_id
        LOGGER.info("Barge-in: truncating %s at %d ms (stream=%s)", item_id, elapsed, session.stream_id)
        self._send_realtime(commands.conversation_item_truncate(item_id, elapsed))
        if session.stream_id is not None:
            self.telephony_out.submit(commands.telephony_clear(session.stream_id))
        session.reset_playback()

    def _on_realtime_failed(self, event: RealtimeFailed) -> None:
        LOGGER.error("Realtime error (stream=%s code=%s): %s", self.session.stream_id, event.code, event.message)

    def _on_leg_closed(self, event: LegClosed) -> None:
        self._close(f"{event.leg.value} closed: {event.reason or 'no reason'}")

    def _send_realtime(self, message: dict[str, Any]) -> None:
        if message.get("type") == "input_audio_buffer.append" and not self.session.ai_ready:
            raise ProtocolViolationError("Audio appended before the realtime session was configured")
        self.realtime_out.submit(message)

    def _close(self, reason: str) -> None:
        session = self.session
        session.state = RelayState.CLOSED
        LOGGER.info(
            "Session closed (stream=%s reason=%s pending_acks=%d dropped=%d out_of_order=%d unsent=%d)",
            session.stream_id,
            reason,
            len(session.pending_acks),
            session.dropped_frames,
            session.out_of_order_frames,
            len(self.telephony_out) + len(self.realtime_out),
        )
        session.pending_acks.clear()
        session.buffered_audio.clear()
