"""Configuration management."""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field


# Load environment variables from .env file
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(env_path)


def parse_lon_lat(value: str | None) -> tuple[float, float] | None:
    """Parse a "lon,lat" string. Returns None for empty or malformed input."""
    if not value or not value.strip():
        return None
    parts = value.split(",")
    if len(parts) != 2:
        return None
    try:
        return (float(parts[0]), float(parts[1]))
    except ValueError:
        return None


class Settings(BaseModel):
    """Application settings."""

    # Routing provider
    mapbox_token: str | None = Field(
        default_factory=lambda: os.getenv("MAPBOX_TOKEN")
    )
    mapbox_base_url: str = Field(
        default_factory=lambda: os.getenv("MAPBOX_BASE_URL", "https://api.mapbox.com")
    )

    # Intent parsing providers (both optional - rule-based parsing is the floor)
    openai_api_key: str | None = Field(
        default_factory=lambda: os.getenv("OPENAI_API_KEY")
    )
    openai_model: str = Field(
        default_factory=lambda: os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    )
    openai_base_url: str | None = Field(
        default_factory=lambda: os.getenv("OPENAI_BASE_URL")
    )
    anthropic_api_key: str | None = Field(
        default_factory=lambda: os.getenv("ANTHROPIC_API_KEY")
    )
    anthropic_model: str = Field(
        default_factory=lambda: os.getenv("ANTHROPIC_MODEL", "claude-3-5-haiku-20241022")
    )
    anthropic_base_url: str = Field(
        default_factory=lambda: os.getenv("ANTHROPIC_BASE_URL", "https://api.anthropic.com")
    )

    # Remote services used by the front end
    intent_api_url: str | None = Field(
        default_factory=lambda: os.getenv("INTENT_API_URL")
    )
    transcribe_url: str = Field(
        default_factory=lambda: os.getenv("TRANSCRIBE_URL", "http://localhost:3001")
    )

    # Location
    current_location: tuple[float, float] | None = Field(
        default_factory=lambda: parse_lon_lat(os.getenv("CURRENT_LOCATION"))
    )
    default_origin: tuple[float, float] = Field(
        # San Francisco, used whenever no live fix is available
        default_factory=lambda: parse_lon_lat(os.getenv("DEFAULT_ORIGIN")) or (-122.4194, 37.7749)
    )
    location_poll_interval: float = Field(
        default_factory=lambda: float(os.getenv("LOCATION_POLL_INTERVAL", "5.0"))
    )

    # Route comparison tuning
    distance_threshold: float = Field(
        default_factory=lambda: float(os.getenv("ROUTE_DISTANCE_THRESHOLD", "0.10"))
    )
    duration_threshold: float = Field(
        default_factory=lambda: float(os.getenv("ROUTE_DURATION_THRESHOLD", "0.15"))
    )

    # HTTP / server settings
    http_timeout: float = Field(
        default_factory=lambda: float(os.getenv("HTTP_TIMEOUT", "30.0"))
    )
    host: str = Field(default_factory=lambda: os.getenv("HOST", "127.0.0.1"))
    port: int = Field(default_factory=lambda: int(os.getenv("PORT", "3000")))
    log_level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    def validate_required(self) -> list[str]:
        """Check for missing required configuration."""
        missing = []

        if not self.mapbox_token:
            missing.append("MAPBOX_TOKEN")

        # LLM keys are optional: the rule-based parser always works

        return missing


# Global settings instance
settings = Settings()
