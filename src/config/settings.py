"""Application-wide configuration loading and validation."""

from __future__ import annotations

from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    log_level: str = Field(default="INFO")
    service_name: str = Field(default="MyData AI Voice")

    # HTTP server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080)

    # OpenAI Realtime. The key is required: without it the service must not start.
    openai_api_key: str = Field(min_length=1)
    openai_base_url: str | None = Field(
        default=None,
        description="Optional API base URL override (e.g. a proxy).",
    )
    openai_realtime_model: str = Field(default="gpt-realtime")
    openai_realtime_temperature: float | None = Field(
        default=None,
        ge=0.0,
        le=2.0,
        description="Optional sampling temperature passed as a connect query parameter.",
    )

    # Realtime session behaviour
    realtime_voice: str = Field(default="alloy")
    realtime_audio_format: str = Field(
        default="audio/pcmu",
        description="Codec for both directions; must match the telephony leg (G.711 mu-law).",
    )
    realtime_audio_buffer_frames: int = Field(
        default=500,
        ge=1,
        description="Caller frames (20 ms each) held while the realtime leg connects; oldest dropped beyond this.",
    )
    realtime_instructions: str | None = Field(
        default=None,
        description="Inline instructions; overrides realtime_instructions_file when set.",
    )
    realtime_instructions_file: str = Field(default="system_message.txt")
    realtime_greeting: str = Field(
        default="Hej, du taler med MyData Support. Hvordan kan jeg hjælpe?",
        description="Instructions for the opening utterance once both legs are ready.",
    )

    # Twilio (Voice)
    public_base_url: str | None = Field(
        default=None,
        description="Public base URL for Twilio webhooks (e.g. https://<ngrok>.ngrok-free.app).",
    )
    twilio_say_language: str = Field(default="da-DK")
    twilio_connect_message: str | None = Field(
        default="Du bliver nu forbundet til MyData support.",
        description="Spoken by Twilio before the media stream connects; empty to skip.",
    )

    def resolve_instructions(self) -> str:
        if self.realtime_instructions:
            return self.realtime_instructions
        from prompts.loader import load_prompt

        return load_prompt(self.realtime_instructions_file)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance."""

    return Settings()
