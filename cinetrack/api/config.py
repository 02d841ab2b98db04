"""
Configuration for the CineTrack HTTP API.

Uses pydantic-settings for environment variable loading. Store, auth and
catalog settings live in cinetrack.config; this covers the HTTP surface only.
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """HTTP API configuration loaded from environment."""

    host: str = Field(default="0.0.0.0", description="API bind host")
    port: int = Field(default=8080, description="API bind port")

    # CORS settings
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins",
    )

    # Live streams
    stream_keepalive_seconds: float = Field(
        default=15.0, description="Interval between SSE keep-alive comments"
    )

    model_config = {"env_prefix": "CINETRACK_API_"}
