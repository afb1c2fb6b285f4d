"""Twilio Voice integration.

This module provides:
- Voice webhook (TwiML) that connects the call to our media stream.
- Media Streams WebSocket that runs one SessionRelay per call.
"""

from __future__ import annotations

import logging
from typing import Callable
from xml.sax.saxutils import escape

from fastapi import APIRouter, Depends, Request, Response, WebSocket

from api.dependencies import get_realtime_factory
from config.settings import get_settings
from integrations.twilio_streaming import TwilioMediaStream
from relay.relay import SessionRelay
from relay.transports import RealtimeTransport

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/twilio", tags=["twilio"])

MEDIA_STREAM_PATH = "/api/twilio/media-stream"


def _twiml_response(xml: str) -> Response:
    # Twilio expects application/xml
    return Response(content=xml, media_type="application/xml")


def _to_ws_url(http_url: str) -> str:
    if http_url.startswith("https://"):
        return "wss://" + http_url.removeprefix("https://")
    if http_url.startswith("http://"):
        return "ws://" + http_url.removeprefix("http://")
    return http_url


def _stream_url(request: Request) -> str:
    settings = get_settings()
    if settings.public_base_url:
        return _to_ws_url(settings.public_base_url.rstrip("/") + MEDIA_STREAM_PATH)
    # Twilio only connects to wss://; the request host is the best guess behind a proxy.
    host = request.headers.get("host") or request.url.netloc
    return f"wss://{host}{MEDIA_STREAM_PATH}"


def _twiml_connect_stream(*, stream_url: str, say_text: str | None, language: str) -> str:
    stream = escape(stream_url, {'"': "&quot;"})
    say = ""
    if say_text:
        say = f"<Say language=\"{escape(language)}\">{escape(say_text)}</Say>"
    return (
        "<?xml version=\"1.0\" encoding=\"UTF-8\"?>"
        "<Response>"
        f"{say}"
        "<Connect>"
        f"<Stream url=\"{stream}\" />"
        "</Connect>"
        "</Response>"
    )


@router.api_route("/voice", methods=["GET", "POST"])
async def twilio_voice_webhook(request: Request) -> Response:
    settings = get_settings()
    stream_url = _stream_url(request)
    LOGGER.info("Incoming call; directing media stream to %s", stream_url)
    return _twiml_response(
        _twiml_connect_stream(
            stream_url=stream_url,
            say_text=settings.twilio_connect_message,
            language=settings.twilio_say_language,
        )
    )


@router.websocket("/media-stream")
async def twilio_media_stream(
    websocket: WebSocket,
    realtime_factory: Callable[[], RealtimeTransport] = Depends(get_realtime_factory),
) -> None:
    await websocket.accept()
    LOGGER.info("Twilio media stream connected")
    relay = SessionRelay(TwilioMediaStream(websocket), realtime_factory())
    await relay.run()
    LOGGER.info("Twilio media stream finished (stream=%s)", relay.session.stream_id)
