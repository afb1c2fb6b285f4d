"""FastAPI routes: service status plus the Twilio voice integration.

Everything is mounted under `/api` (`/api/`, `/api/healthz`,
`/api/twilio/voice`, `/api/twilio/media-stream`); Twilio webhook and stream
URLs must use those paths. `root_router` also serves `/healthz` at the root
for load balancers and monitors that check it there.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from api.schemas import StatusResponse
from api.twilio_routes import router as twilio_router
from config.settings import get_settings

router = APIRouter()
router.include_router(twilio_router)

root_router = APIRouter()


@router.get("/", response_model=StatusResponse)
async def service_status() -> StatusResponse:
    return StatusResponse(status=f"{get_settings().service_name} running")


@router.get("/healthz", response_class=PlainTextResponse)
@root_router.get("/healthz", response_class=PlainTextResponse)
async def healthz() -> str:
    return "ok"
