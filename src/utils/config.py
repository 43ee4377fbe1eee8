"""
Configuration management using pydantic-settings.

Loads settings from environment variables and .env files.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..relay.prompts import SYSTEM_MESSAGE


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # OpenAI Configuration
    openai_api_key: str = Field(
        ...,
        description="OpenAI API key for the Realtime API",
    )
    openai_realtime_model: str = Field(
        default="gpt-4o-realtime-preview-2024-10-01",
        description="Model to use for OpenAI Realtime API",
    )

    # Session negotiation (sent once per call in session.update)
    realtime_voice: str = Field(
        default="alloy",
        description="Voice to use for OpenAI Realtime (alloy, echo, shimmer, ...)",
    )
    realtime_instructions: str = Field(
        default=SYSTEM_MESSAGE,
        description="System instructions for the assistant",
    )
    realtime_audio_format: Literal["pcm16", "g711_ulaw", "g711_alaw"] = Field(
        default="g711_alaw",
        description="Audio format used on both sides of the relay. Must match the telephony stream.",
    )
    realtime_temperature: float = Field(
        default=0.8,
        ge=0.6,
        le=1.2,
        description="Sampling temperature for responses",
    )

    # Realtime connection keepalive
    ping_interval: Optional[float] = Field(default=20.0, description="Seconds between keepalive pings")
    ping_timeout: Optional[float] = Field(default=20.0, description="Seconds to wait for a pong")

    # Relay behaviour
    close_sibling_on_exit: bool = Field(
        default=True,
        description="Close the other connection when one direction of a call ends",
    )

    # Public URL for the media stream (defaults to the request host)
    public_wss_base_url: Optional[str] = Field(
        default=None,
        description="Public WebSocket URL the telephony side connects to",
    )

    # Server Configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=5050, description="Server port")
    debug: bool = Field(default=False, description="Enable debug mode")

    @property
    def openai_realtime_url(self) -> str:
        """Get the OpenAI Realtime WebSocket URL."""
        return f"wss://api.openai.com/v1/realtime?model={self.openai_realtime_model}"

    def media_stream_url(self, host: str) -> str:
        """Get the media stream WebSocket URL, falling back to ``host``."""
        if self.public_wss_base_url:
            base = self.public_wss_base_url.rstrip("/")
        else:
            base = f"wss://{host}"
        return f"{base}/media-stream"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to avoid re-reading environment on every call.
    """
    return Settings()


# Convenience access
settings = get_settings()
