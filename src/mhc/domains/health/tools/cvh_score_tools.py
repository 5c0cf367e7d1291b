"""MCP tools for the Cardiovascular Health (CVH) score and sample summaries."""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

if TYPE_CHECKING:
    from mhc.domains.health.domain_logic.cvh_service import CVHScoreService

from mhc.domains.health.domain_logic.aggregation import (
    INTERVALS_BY_NAME,
    AggregationKind,
    AggregationStrategy,
    SingleValueConfig,
)
from mhc.domains.health.domain_logic.cvh_definitions import (
    CVH_BLOOD_GLUCOSE,
    CVH_BLOOD_LIPIDS,
    CVH_BLOOD_PRESSURE,
    CVH_BMI,
    CVH_DIET,
    CVH_NICOTINE,
    CVH_PHYSICAL_EXERCISE,
    CVH_SLEEP,
    CVH_STEP_COUNT,
)
from mhc.domains.health.domain_logic.cvh_service import last
from mhc.domains.health.domain_logic.sample_models import ALL_SAMPLE_TYPES, sample_type_for_identifier

logger = logging.getLogger(__name__)

_EXPLAINERS = {
    "diet": CVH_DIET,
    "physical_exercise": CVH_PHYSICAL_EXERCISE,
    "step_count": CVH_STEP_COUNT,
    "nicotine_exposure": CVH_NICOTINE,
    "sleep": CVH_SLEEP,
    "body_mass_index": CVH_BMI,
    "blood_lipids": CVH_BLOOD_LIPIDS,
    "blood_glucose": CVH_BLOOD_GLUCOSE,
    "blood_pressure": CVH_BLOOD_PRESSURE,
}

_AGGREGATIONS = ("most_recent", *(kind.value for kind in AggregationKind))


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------

def _summary_config(aggregation: str, interval: str | None) -> SingleValueConfig:
    """Build the reduction config for health_sample_summary.

    Raises:
        ValueError: On an unknown aggregation or interval name.
    """
    if aggregation not in _AGGREGATIONS:
        raise ValueError(f"aggregation must be one of: {' | '.join(_AGGREGATIONS)}")
    if aggregation == "most_recent":
        if interval:
            raise ValueError("interval cannot be combined with aggregation='most_recent'")
        return SingleValueConfig.most_recent_sample()

    kind = AggregationKind(aggregation)
    if not interval:
        return SingleValueConfig.aggregated(final=kind)
    if interval not in INTERVALS_BY_NAME:
        raise ValueError(f"interval must be one of: {' | '.join(INTERVALS_BY_NAME)}")
    return SingleValueConfig.aggregated(AggregationStrategy(kind, INTERVALS_BY_NAME[interval]))


def _explainer_table() -> dict[str, dict]:
    return {
        name: {
            "bands": [{"range": text, "score": score} for text, score in definition.explainer_rows()],
            "footer": definition.explainer_footer,
        }
        for name, definition in _EXPLAINERS.items()
    }


def register_cvh_score_tools(mcp: FastMCP, service: CVHScoreService) -> None:
    """Register CVH score tools on the MCP server."""

    @mcp.tool
    async def cardiovascular_health_score(
        ctx: Context,
        include_explainers: bool = False,
    ) -> str:
        """Compute the Cardiovascular Health (CVH) score from current health data.

        Scores eight components (diet, physical exercise, nicotine exposure,
        sleep, body mass index, blood lipids, blood glucose, blood pressure)
        on a 0-1 scale. The overall score is their average and is only given
        when at least five components have data. Mental wellbeing is reported
        alongside but does not count towards the score.

        Args:
            include_explainers: Include the band tables used for each component.
        """
        start_time = time.monotonic()
        now = service.now()
        assessment = await service.assess(now)
        elapsed_ms = (time.monotonic() - start_time) * 1000

        result = {
            "status": "ok",
            "generated_at": now.isoformat(),
            **assessment.as_dict(),
            "provenance": service.provider.get_provenance(),
            "duration_ms": round(elapsed_ms, 1),
        }
        if include_explainers:
            result["explainers"] = _explainer_table()
        logger.info(
            "CVH score computed: %s (%d/8 components)",
            assessment.score, assessment.available_components,
        )
        return json.dumps(result, indent=2)

    @mcp.tool
    async def health_sample_summary(
        ctx: Context,
        sample_type: str,
        days: int = 7,
        aggregation: str = "most_recent",
        interval: str | None = None,
    ) -> str:
        """Summarize one kind of health sample over the last N days.

        Args:
            sample_type: Sample type identifier, e.g. 'HKQuantityTypeIdentifierStepCount'
                or 'bloodLipids'.
            days: Number of days to look back, including today.
            aggregation: 'most_recent', 'sum', 'average', 'min' or 'max'.
            interval: Optional bucket size ('hour', 'day', 'week', 'month', 'year').
                With an interval the result is one value per bucket; without,
                a single value for the whole window.
        """
        resolved = sample_type_for_identifier(sample_type)
        if resolved is None:
            return json.dumps({
                "status": "error",
                "message": f"Unknown sample_type {sample_type!r}.",
                "valid_sample_types": [t.identifier for t in ALL_SAMPLE_TYPES],
            })
        if days < 1:
            return json.dumps({"status": "error", "message": "days must be at least 1."})
        try:
            config = _summary_config(aggregation, interval)
        except ValueError as exc:
            return json.dumps({"status": "error", "message": str(exc)})

        time_range = last(service.now(), service.tz, days=days)
        try:
            samples = await service.summarize(resolved, time_range, config)
        except ValueError as exc:
            return json.dumps({"status": "error", "message": str(exc)})

        return json.dumps({
            "status": "ok",
            "sample_type": resolved.identifier,
            "display_title": resolved.display_title,
            "unit": resolved.display_unit,
            "aggregation": aggregation,
            "interval": interval,
            "start_date": time_range[0].isoformat(),
            "end_date": time_range[1].isoformat(),
            "count": len(samples),
            "values": [
                {
                    "value": round(s.value, 4),
                    "start_date": s.start_date.isoformat(),
                    "end_date": s.end_date.isoformat(),
                }
                for s in samples
            ],
            "data_source": service.provider.data_source,
        }, indent=2)
