"""Entry point for the telephony to realtime AI voice relay service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from api.routes import root_router
from api.routes import router as api_router
from config.settings import get_settings

LOGGER = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    LOGGER.info(
        "%s starting (model=%s voice=%s)",
        settings.service_name,
        settings.openai_realtime_model,
        settings.realtime_voice,
    )
    yield


# Fails fast with a validation error when OPENAI_API_KEY is missing.
settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

app = FastAPI(
    title=settings.service_name,
    description="Bridges Twilio Media Streams calls to an OpenAI Realtime voice session.",
    lifespan=lifespan,
)
app.include_router(api_router, prefix="/api")
app.include_router(root_router)


def run() -> None:
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
