"""Apple Health sample provider — reads from exported Health data XML.

Users export via iOS Health app → Share → Export Health Data → produces
export.xml. This provider parses that XML once and serves SampleProvider
queries from the parsed result.
"""

from __future__ import annotations

import logging
from pathlib import Path

from mhc.domains.health.connectors.apple_health_parser import (
    AppleHealthExport,
    AppleHealthParseError,
    parse_apple_health_export,
)
from mhc.domains.health.domain_logic.sample_models import (
    BloodPressureCorrelation,
    QuantitySample,
    SampleType,
    TimeRange,
    in_time_range,
)
from mhc.domains.health.domain_logic.sleep_sessions import SleepStageSample

logger = logging.getLogger(__name__)


class AppleHealthProvider:
    """SampleProvider backed by an Apple Health XML export.

    Usage::

        provider = AppleHealthProvider("/path/to/export.xml")
        if provider.is_connected():
            weights = await provider.get_quantity_samples(BODY_MASS, time_range)
    """

    def __init__(self, export_path: str) -> None:
        self._export_path = export_path
        self._cache: dict[tuple[str, float], AppleHealthExport] = {}
        self._connected = bool(export_path) and Path(export_path).exists()

    async def get_quantity_samples(
        self, sample_type: SampleType, time_range: TimeRange
    ) -> list[QuantitySample]:
        """Samples of ``sample_type`` from the export; custom types are never exported."""
        if sample_type.is_custom:
            return []
        return [s for s in self._parse().samples_for(sample_type) if in_time_range(s, time_range)]

    async def get_blood_pressure(self, time_range: TimeRange) -> list[BloodPressureCorrelation]:
        return [c for c in self._parse().blood_pressure if in_time_range(c, time_range)]

    async def get_sleep_samples(self, time_range: TimeRange) -> list[SleepStageSample]:
        return [s for s in self._parse().sleep_samples if in_time_range(s, time_range)]

    def is_connected(self) -> bool:
        """Check if the export file exists and is readable."""
        return self._connected

    @property
    def data_source(self) -> str:
        return "apple_health"

    def get_provenance(self) -> dict[str, str]:
        return {
            "data_source": self.data_source,
            "data_source_note": "Data from Apple Health export.",
            "export_path": self._export_path,
        }

    def _parse(self) -> AppleHealthExport:
        """Parse the export, cached until the file changes."""
        if not self._connected:
            return AppleHealthExport()
        try:
            key = (self._export_path, Path(self._export_path).stat().st_mtime)
        except OSError:
            logger.warning("Apple Health export disappeared: %s", self._export_path)
            return AppleHealthExport()
        if key not in self._cache:
            try:
                parsed = parse_apple_health_export(self._export_path)
            except AppleHealthParseError:
                logger.exception("Failed to parse Apple Health export")
                return AppleHealthExport()
            self._cache.clear()
            self._cache[key] = parsed
        return self._cache[key]
