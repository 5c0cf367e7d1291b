"""Application settings loaded from environment variables."""

from __future__ import annotations

from datetime import timedelta, tzinfo
from zoneinfo import ZoneInfo

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """MHC CVH server configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Server
    # Default to loopback to avoid accidentally exposing a health MCP server
    # to your LAN/WAN. Opt into `0.0.0.0` explicitly when you intend remote access.
    mhc_host: str = "127.0.0.1"
    mhc_port: int = 8001
    mhc_log_level: str = "info"
    # Additional explicit guard: if binding to non-loopback, refuse to start unless
    # this is set true (there is currently no auth layer).
    mhc_allow_insecure_bind: bool = False

    # Storage (custom sample data bank)
    db_path: str = "~/.mhc/health.db"

    # Encryption
    encryption_key: str = ""

    # Connectors
    apple_health_export_path: str = ""
    use_mock_data: bool = True

    # Calendar used for day/week/month windows (IANA name)
    timezone: str = "UTC"

    # Scoring
    bmi_weight_max_age_days: float = Field(default=182.5, gt=0)
    sleep_session_max_gap_minutes: float = Field(default=60, gt=0)
    cvh_minimum_components: int = Field(default=5, ge=1, le=8)

    @property
    def tzinfo(self) -> tzinfo:
        return ZoneInfo(self.timezone)

    @property
    def bmi_weight_max_age(self) -> timedelta:
        return timedelta(days=self.bmi_weight_max_age_days)

    @property
    def sleep_session_max_gap(self) -> timedelta:
        return timedelta(minutes=self.sleep_session_max_gap_minutes)


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
