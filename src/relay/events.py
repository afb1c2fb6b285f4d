"""Typed events produced by the transport readers.

Twilio Media Streams and OpenAI Realtime both speak JSON text frames. The
parsers below turn a raw frame into one of the event types here, return None
for frames the relay has no use for, and raise `MalformedEventError` for
anything it cannot make sense of.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from relay.errors import MalformedEventError

LOGGER = logging.getLogger(__name__)


class Leg(str, Enum):
    TELEPHONY = "telephony"
    REALTIME = "realtime"


@dataclass(frozen=True, slots=True)
class StreamStarted:
    stream_id: str
    call_sid: str | None = None


@dataclass(frozen=True, slots=True)
class MediaReceived:
    timestamp: int
    payload: str


@dataclass(frozen=True, slots=True)
class PlaybackMarked:
    name: str | None = None


@dataclass(frozen=True, slots=True)
class StreamStopped:
    pass


@dataclass(frozen=True, slots=True)
class RealtimeConnected:
    pass


@dataclass(frozen=True, slots=True)
class AudioDelta:
    delta: str
    item_id: str | None = None


@dataclass(frozen=True, slots=True)
class SpeechStarted:
    pass


@dataclass(frozen=True, slots=True)
class RealtimeFailed:
    message: str
    code: str | None = None


@dataclass(frozen=True, slots=True)
class LegClosed:
    leg: Leg
    reason: str | None = None


TelephonyEvent = Union[StreamStarted, MediaReceived, PlaybackMarked, StreamStopped]
RealtimeEvent = Union[AudioDelta, SpeechStarted, RealtimeFailed]
RelayEvent = Union[TelephonyEvent, RealtimeEvent, RealtimeConnected, LegClosed]

_IGNORED_TELEPHONY_EVENTS = frozenset({"connected", "dtmf"})
_AUDIO_DELTA_TYPES = frozenset({"response.output_audio.delta", "response.audio.delta"})


def _load(raw: str | bytes) -> dict[str, Any]:
    try:
        message = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise MalformedEventError(f"Invalid JSON frame: {exc}") from exc
    if not isinstance(message, dict):
        raise MalformedEventError("Frame is not a JSON object")
    return message


def _section(message: dict[str, Any], key: str) -> dict[str, Any]:
    section = message.get(key)
    if not isinstance(section, dict):
        raise MalformedEventError(f"'{key}' section missing")
    return section


def parse_telephony_event(raw: str | bytes) -> TelephonyEvent | None:
    message = _load(raw)
    event = str(message.get("event") or "")

    if event == "media":
        media = _section(message, "media")
        if media.get("track") and media.get("track") != "inbound":
            return None
        payload = media.get("payload")
        if not isinstance(payload, str) or not payload:
            raise MalformedEventError("media frame without payload")
        try:
            timestamp = int(media.get("timestamp"))
        except (TypeError, ValueError) as exc:
            raise MalformedEventError(f"media frame with bad timestamp: {media.get('timestamp')!r}") from exc
        return MediaReceived(timestamp=timestamp, payload=payload)

    if event == "start":
        start = _section(message, "start")
        stream_id = start.get("streamSid") or message.get("streamSid")
        if not stream_id:
            raise MalformedEventError("start event without streamSid")
        call_sid = start.get("callSid")
        return StreamStarted(stream_id=str(stream_id), call_sid=str(call_sid) if call_sid else None)

    if event == "mark":
        mark = message.get("mark") or {}
        name = mark.get("name") if isinstance(mark, dict) else None
        return PlaybackMarked(name=name)

    if event == "stop":
        return StreamStopped()

    if event in _IGNORED_TELEPHONY_EVENTS:
        LOGGER.debug("Ignoring telephony event %s", event)
        return None

    raise MalformedEventError(f"Unrecognized telephony event: {event!r}")


def parse_realtime_event(raw: str | bytes) -> RealtimeEvent | None:
    message = _load(raw)
    event_type = message.get("type")
    if not isinstance(event_type, str) or not event_type:
        raise MalformedEventError("Realtime event without type")

    if event_type in _AUDIO_DELTA_TYPES:
        delta = message.get("delta")
        if not isinstance(delta, str) or not delta:
            raise MalformedEventError("audio delta without payload")
        item_id = message.get("item_id")
        return AudioDelta(delta=delta, item_id=str(item_id) if item_id else None)

    if event_type == "input_audio_buffer.speech_started":
        return SpeechStarted()

    if event_type == "error":
        error = message.get("error") or {}
        if not isinstance(error, dict):
            error = {"message": str(error)}
        return RealtimeFailed(
            message=str(error.get("message") or "unknown error"),
            code=error.get("code"),
        )

    # session.created, response.done, transcripts etc.
    return None
