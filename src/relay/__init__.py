"""Per-call relay between the telephony media stream and the realtime AI session.

Each accepted media-stream WebSocket gets its own `SessionRelay`. Nothing in
this package is shared between calls.
"""
