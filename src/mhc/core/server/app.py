"""MHC Cardiovascular Health MCP Server — application factory.

This module provides:
- create_app() for testability (integration tests create fresh server instances)
- Module-level `mcp` variable for FastMCP discovery (`fastmcp run ...app.py:mcp`)
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from fastmcp import FastMCP

from mhc.core.config.settings import Settings, get_settings
from mhc.core.storage.database import DatabaseError, HealthDatabase
from mhc.core.storage.encryption import EncryptionError, FieldEncryptor
from mhc.core.storage.repository import CustomSampleRepository
from mhc.domains.health.connectors import SampleProvider
from mhc.domains.health.connectors.apple_health import AppleHealthProvider
from mhc.domains.health.connectors.composite import CompositeSampleProvider
from mhc.domains.health.connectors.custom_samples import CustomSampleProvider
from mhc.domains.health.connectors.providers import MockSampleProvider
from mhc.domains.health.domain_logic.cvh_service import CVHScoreService
from mhc.domains.health.tools.cvh_score_tools import register_cvh_score_tools

logger = logging.getLogger(__name__)

SERVER_NAME = "MHC Cardiovascular Health"
SERVER_VERSION = "0.1.0"


def _open_repository(settings: Settings) -> CustomSampleRepository | None:
    """Open the encrypted custom sample store, or None when it is not configured."""
    if not settings.encryption_key:
        logger.info(
            "No ENCRYPTION_KEY configured — running without persistence. "
            "Set ENCRYPTION_KEY to enable recording custom samples."
        )
        return None
    try:
        encryptor = FieldEncryptor(settings.encryption_key)
        health_db = HealthDatabase(settings.db_path)
        health_db.initialize()
    except (EncryptionError, DatabaseError) as exc:
        logger.error("Failed to initialize storage: %s", exc)
        logger.warning("Continuing without persistence — custom samples will not be stored")
        return None
    logger.info(
        "Health data bank initialized: %s (schema v%d)",
        settings.db_path,
        health_db.get_schema_version(),
    )
    return CustomSampleRepository(health_db, encryptor)


def _build_provider(
    settings: Settings, repository: CustomSampleRepository | None
) -> SampleProvider:
    """Assemble providers in priority order: apple_health > custom > mock."""
    providers: list[SampleProvider] = []
    if settings.apple_health_export_path:
        apple = AppleHealthProvider(settings.apple_health_export_path)
        if apple.is_connected():
            providers.append(apple)
            logger.info("Apple Health export connected: %s", settings.apple_health_export_path)
        else:
            logger.warning("Apple Health export not found: %s", settings.apple_health_export_path)
    if repository is not None:
        providers.append(CustomSampleProvider(repository))
    if settings.use_mock_data or not providers:
        providers.append(MockSampleProvider())
        logger.info("Mock sample provider enabled")
    if len(providers) == 1:
        return providers[0]
    return CompositeSampleProvider(providers)


def create_app(
    *,
    sample_provider_override: SampleProvider | None = None,
    repository_override: CustomSampleRepository | None = None,
    clock: Callable[[], datetime] | None = None,
    settings: Settings | None = None,
) -> FastMCP:
    """Create and configure the MHC Cardiovascular Health MCP server.

    This is the main application factory. It:
    1. Creates the FastMCP server instance
    2. Initializes the encrypted storage layer (custom sample data bank)
    3. Assembles the sample providers (Apple Health, custom, mock)
    4. Creates the CVH score service
    5. Registers all tools
    """
    settings = settings or get_settings()

    # --- Server instance ---
    server = FastMCP(
        SERVER_NAME,
        instructions=(
            "My Heart Counts — Cardiovascular Health (CVH) scoring server. "
            "Computes the eight-component CVH score from Apple Health exports "
            "and user-recorded research samples, and summarizes individual "
            "health sample series."
        ),
    )

    # --- Initialize encrypted storage (custom sample data bank) ---
    if repository_override is not None:
        repository = repository_override
    else:
        repository = _open_repository(settings)

    # --- Initialize sample provider ---
    if sample_provider_override is not None:
        provider = sample_provider_override
    else:
        provider = _build_provider(settings, repository)
    logger.info("Sample provider: %s", provider.data_source)

    service = CVHScoreService(
        provider,
        tz=settings.tzinfo,
        bmi_weight_max_age=settings.bmi_weight_max_age,
        sleep_max_gap=settings.sleep_session_max_gap,
        minimum_components=settings.cvh_minimum_components,
        clock=clock,
    )

    # --- Register tools ---
    @server.tool
    def health_check() -> dict:
        """Check server health and return basic status information."""
        status = {
            "status": "ok",
            "server": SERVER_NAME,
            "version": SERVER_VERSION,
            "data_source": provider.data_source,
            "connected": provider.is_connected(),
            "timezone": settings.timezone,
            "storage_enabled": repository is not None,
        }
        if repository is not None:
            status["custom_samples_stored"] = repository.count_samples()
        return status

    register_cvh_score_tools(server, service)
    logger.info("CVH score tools registered")

    # --- Register custom sample tools (requires storage) ---
    if repository is not None:
        from mhc.domains.health.tools.custom_sample_tools import register_custom_sample_tools

        register_custom_sample_tools(server, repository)
        logger.info("Custom sample tools registered")

    return server


# Module-level instance for FastMCP discovery (`fastmcp run src/mhc/core/server/app.py:mcp`).
# Lazy: only created when this module is loaded directly (not when tests import create_app).
def __getattr__(name: str):
    if name == "mcp":
        global mcp  # noqa: PLW0603
        mcp = create_app()
        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
