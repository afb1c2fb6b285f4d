"""Builders for the outbound frames sent to each leg."""

from __future__ import annotations

from typing import Any

ACK_MARK_NAME = "ai-response"


def telephony_media(stream_id: str, payload: str) -> dict[str, Any]:
    return {"event": "media", "streamSid": stream_id, "media": {"payload": payload}}


def telephony_mark(stream_id: str, name: str = ACK_MARK_NAME) -> dict[str, Any]:
    return {"event": "mark", "streamSid": stream_id, "mark": {"name": name}}


def telephony_clear(stream_id: str) -> dict[str, Any]:
    return {"event": "clear", "streamSid": stream_id}


def session_update(
    *,
    instructions: str,
    voice: str,
    audio_format: str = "audio/pcmu",
    turn_detection: str = "server_vad",
) -> dict[str, Any]:
    """Configuration sent once, before any audio is appended."""

    return {
        "type": "session.update",
        "session": {
            "type": "realtime",
            "output_modalities": ["audio"],
            "audio": {
                "input": {
                    "format": {"type": audio_format},
                    "turn_detection": {"type": turn_detection},
                },
                "output": {
                    "format": {"type": audio_format},
                    "voice": voice,
                },
            },
            "instructions": instructions,
        },
    }


def response_create(instructions: str | None = None) -> dict[str, Any]:
    response: dict[str, Any] = {}
    if instructions:
        response["instructions"] = instructions
    return {"type": "response.create", "response": response}


def input_audio_append(audio: str) -> dict[str, Any]:
    return {"type": "input_audio_buffer.append", "audio": audio}


def conversation_item_truncate(item_id: str, audio_end_ms: int, *, content_index: int = 0) -> dict[str, Any]:
    return {
        "type": "conversation.item.truncate",
        "item_id": item_id,
        "content_index": content_index,
        "audio_end_ms": audio_end_ms,
    }
