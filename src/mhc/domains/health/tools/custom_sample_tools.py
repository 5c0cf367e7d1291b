"""MCP tools for recording and managing custom health samples.

These tools let users record research data that no device captures (diet
questionnaire score, nicotine exposure, LDL cholesterol, mental wellbeing)
and measurements taken elsewhere (clinic blood pressure, weight, glucose).
Samples are persisted to the encrypted health data bank and feed the CVH
score through the custom sample provider.
"""

from __future__ import annotations

import json
import logging
import math
import time
from datetime import datetime, timedelta, timezone

from fastmcp import Context, FastMCP

from mhc.core.storage.models import CustomHealthSample
from mhc.core.storage.repository import CustomSampleRepository, RepositoryError
from mhc.domains.health.domain_logic.sample_models import (
    NICOTINE_EXPOSURE,
    QUANTITY_SAMPLE_TYPES,
    NicotineExposure,
    convert_to_display_unit,
    sample_type_for_identifier,
)
from mhc.domains.health.domain_logic.score_definition import coerce_to_int

logger = logging.getLogger(__name__)

_RECORDABLE = {t.identifier: t for t in QUANTITY_SAMPLE_TYPES}


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------

def _parse_datetime(value: str, field_name: str) -> datetime:
    """Parse an ISO 8601 date or datetime; naive values are taken as UTC."""
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise ValueError(f"{field_name} must be an ISO 8601 date or datetime, got {value!r}") from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def register_custom_sample_tools(
    mcp: FastMCP,
    repository: CustomSampleRepository,
) -> None:
    """Register custom sample entry and management tools on the MCP server."""

    @mcp.tool
    async def record_custom_sample(
        ctx: Context,
        sample_type: str,
        value: float,
        unit: str = "",
        start_date: str = "",
        end_date: str = "",
    ) -> str:
        """Record a health sample in your data bank.

        Args:
            sample_type: Sample type identifier: 'dietMEPAScore', 'nicotineExposure',
                'bloodLipids', 'mentalWellbeingScore', or a HealthKit quantity type
                such as 'HKQuantityTypeIdentifierBodyMass'.
            value: Numeric value. For 'nicotineExposure': 0 never smoked,
                1 quit more than 5 years ago, 2 quit 1-5 years ago,
                3 quit within the last year or using nicotine delivery systems,
                4 currently smoking.
            unit: Unit of ``value``. Defaults to the type's display unit;
                common alternatives (lb, in, cm, mmol/L) are converted.
            start_date: When the sample was taken (ISO 8601). Defaults to now.
            end_date: End of the sample period (ISO 8601). Defaults to start_date.
        """
        resolved = _RECORDABLE.get(sample_type)
        if resolved is None:
            return json.dumps({
                "status": "error",
                "message": f"Cannot record sample_type {sample_type!r}.",
                "valid_sample_types": sorted(_RECORDABLE),
            })

        if not math.isfinite(value):
            return json.dumps({"status": "error", "message": "value must be a finite number."})

        unit = unit or resolved.display_unit
        display_value = convert_to_display_unit(resolved, value, unit)
        if display_value is None:
            return json.dumps({
                "status": "error",
                "message": f"Unsupported unit {unit!r} for {sample_type}.",
            })
        if resolved == NICOTINE_EXPOSURE and coerce_to_int(display_value) not in set(NicotineExposure):
            return json.dumps({
                "status": "error",
                "message": "nicotineExposure value must be an integer from 0 to 4.",
            })

        try:
            start = _parse_datetime(start_date, "start_date") if start_date else datetime.now(timezone.utc)
            end = _parse_datetime(end_date, "end_date") if end_date else start
        except ValueError as exc:
            return json.dumps({"status": "error", "message": str(exc)})
        if end < start:
            return json.dumps({"status": "error", "message": "end_date must not be before start_date."})

        sample = CustomHealthSample(
            id="",
            sample_type=resolved.identifier,
            value=display_value,
            unit=resolved.display_unit,
            start_date=start,
            end_date=end,
        )
        try:
            sid = repository.save_sample(sample)
        except RepositoryError as exc:
            logger.error("Failed to record %s sample: %s", sample_type, exc)
            return json.dumps({"status": "error", "message": str(exc)})

        logger.info("Custom sample saved: %s = %s %s (%s)", sample_type, display_value, resolved.display_unit, sid)
        return json.dumps({"status": "saved", **sample.as_dict()})

    @mcp.tool
    async def list_custom_samples(
        ctx: Context,
        sample_type: str = "",
        limit: int = 20,
    ) -> str:
        """List previously recorded samples, newest first.

        Args:
            sample_type: Optional sample type identifier to filter by.
            limit: Maximum number of samples to return.
        """
        if sample_type and sample_type_for_identifier(sample_type) is None:
            return json.dumps({"status": "error", "message": f"Unknown sample_type {sample_type!r}."})
        if limit < 1:
            return json.dumps({"status": "error", "message": "limit must be at least 1."})

        samples = repository.get_samples(sample_type or None, limit=limit)
        return json.dumps({
            "status": "ok",
            "count": len(samples),
            "total_stored": repository.count_samples(sample_type or None),
            "samples": [s.as_dict() for s in samples],
        }, indent=2)

    @mcp.tool
    async def delete_custom_sample(
        ctx: Context,
        sample_id: str,
    ) -> str:
        """Permanently delete one recorded sample.

        Args:
            sample_id: The UUID of the sample to delete.
        """
        if repository.delete_sample(sample_id):
            return json.dumps({"status": "deleted", "sample_id": sample_id})
        return json.dumps({
            "status": "not_found",
            "sample_id": sample_id,
            "message": "No sample found with that ID.",
        })

    @mcp.tool
    async def purge_custom_samples(
        ctx: Context,
        older_than_days: int | None = 365,
        confirm: str = "",
    ) -> str:
        """Delete recorded samples older than a number of days, or all of them.

        Args:
            older_than_days: Delete samples that ended more than this many days ago
                (default: 365). Pass null to delete every sample.
            confirm: Must be exactly 'DELETE_ALL' when older_than_days is null. Safety gate.
        """
        start_time = time.monotonic()

        if older_than_days is None:
            if confirm != "DELETE_ALL":
                return json.dumps({
                    "status": "cancelled",
                    "message": (
                        "To delete all recorded samples, call this tool with "
                        "confirm='DELETE_ALL'. This action cannot be undone."
                    ),
                })
            count = repository.delete_all_samples()
            return json.dumps({
                "status": "all_deleted",
                "samples_deleted": count,
                "duration_ms": round((time.monotonic() - start_time) * 1000, 1),
            })

        if older_than_days < 1:
            return json.dumps({
                "status": "error",
                "message": "older_than_days must be at least 1.",
            })

        cutoff = datetime.now(timezone.utc) - timedelta(days=older_than_days)
        count = repository.purge_before(cutoff)
        return json.dumps({
            "status": "purged",
            "samples_deleted": count,
            "older_than_days": older_than_days,
            "duration_ms": round((time.monotonic() - start_time) * 1000, 1),
        })
