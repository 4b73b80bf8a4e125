"""
Application Configuration

Uses Pydantic Settings for type-safe configuration.
"""

from datetime import date
from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import AliasChoices, Field, field_validator, ConfigDict

# Project root: stage-challenge/
PROJECT_ROOT = Path(__file__).parent.parent.parent


class Settings(BaseSettings):
    """Application settings with validation."""

    # === Core ===
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")

    # === Database ===
    database_url: str = Field(
        default="sqlite:///./challenge.db",
        description="Database connection URL"
    )

    # === Strava ===
    strava_client_id: Optional[str] = Field(default=None)
    strava_client_secret: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("strava_client_secret", "strava_secret")
    )
    strava_webhook_verify_token: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("strava_webhook_verify_token", "strava_verify_token")
    )
    strava_redirect_uri: Optional[str] = Field(
        default=None,
        description="OAuth callback URL registered with Strava"
    )
    strava_scope: str = Field(default="read,activity:read_all")

    # === Timeouts (seconds) ===
    strava_token_timeout_seconds: float = Field(default=10.0, gt=0)
    strava_api_timeout_seconds: float = Field(default=15.0, gt=0)
    token_refresh_buffer_seconds: int = Field(default=60, ge=0)
    reconcile_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Upper bound for one background reconciliation unit"
    )

    # === Challenge ===
    challenge_name: str = Field(default="100 Days Stage Challenge")
    challenge_start_date: date = Field(default=date(2024, 8, 15))
    challenge_total_days: int = Field(default=100, gt=0)
    challenge_stage_count: int = Field(default=5, gt=0)
    challenge_stage_days: int = Field(default=20, gt=0)

    # === Leaderboard ===
    leaderboard_include_zero_scores: bool = Field(default=False)
    score_cache_enabled: bool = Field(default=True)

    @field_validator('database_url')
    @classmethod
    def fix_postgres_url(cls, v: str) -> str:
        """Fix Render/Railway postgres:// URL to postgresql://"""
        if v.startswith("postgres://"):
            return v.replace("postgres://", "postgresql://", 1)
        return v

    @field_validator('log_level')
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper()

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )


# Global settings instance
settings = Settings()
