"""Apple Health XML export parser.

Parses the ``export.xml`` file produced by Apple Health (iOS → Share → Export
Health Data). Supports incremental parsing of large files via iterparse.

Values are converted to each sample type's display unit:
- HKQuantityTypeIdentifierBodyMass: lb / g → kg
- HKQuantityTypeIdentifierHeight: cm / in / ft → m
- HKQuantityTypeIdentifierBloodGlucose: mmol/L → mg/dL
- HKQuantityTypeIdentifierAppleExerciseTime: s / hr → min
- HKCorrelationTypeIdentifierBloodPressure → BloodPressureCorrelation
- HKCategoryTypeIdentifierSleepAnalysis → SleepStageSample

Records in an unknown unit are skipped rather than guessed.
"""

from __future__ import annotations

import logging
import math
import xml.etree.ElementTree as ET
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from mhc.domains.health.domain_logic.sample_models import (
    BLOOD_PRESSURE,
    BLOOD_PRESSURE_DIASTOLIC,
    BLOOD_PRESSURE_SYSTOLIC,
    QUANTITY_SAMPLE_TYPES,
    SLEEP_ANALYSIS,
    BloodPressureCorrelation,
    InvalidSampleError,
    QuantitySample,
    SampleType,
    convert_to_display_unit,
    pair_blood_pressure,
)
from mhc.domains.health.domain_logic.sleep_sessions import SleepStage, SleepStageSample

logger = logging.getLogger(__name__)

_QUANTITY_TYPES = {t.identifier: t for t in QUANTITY_SAMPLE_TYPES if not t.is_custom}


class AppleHealthParseError(Exception):
    """Raised when parsing Apple Health export XML fails."""


@dataclass
class AppleHealthExport:
    """Everything we read from one export, converted to display units."""

    quantity_samples: dict[str, list[QuantitySample]] = field(default_factory=dict)
    blood_pressure: list[BloodPressureCorrelation] = field(default_factory=list)
    sleep_samples: list[SleepStageSample] = field(default_factory=list)

    def samples_for(self, sample_type: SampleType) -> list[QuantitySample]:
        return self.quantity_samples.get(sample_type.identifier, [])


def _parse_date(date_str: str) -> datetime:
    """Parse Apple Health date format: '2025-12-01 08:30:00 -0500'."""
    try:
        return datetime.strptime(date_str, "%Y-%m-%d %H:%M:%S %z")
    except ValueError:
        # Fallback for ISO format
        return datetime.fromisoformat(date_str)


def _quantity_sample(elem: ET.Element) -> QuantitySample | None:
    sample_type = _QUANTITY_TYPES.get(elem.get("type", ""))
    if sample_type is None:
        return None
    try:
        start = _parse_date(elem.get("startDate", ""))
        end = _parse_date(elem.get("endDate", "") or elem.get("startDate", ""))
        raw = float(elem.get("value", ""))
    except (ValueError, TypeError):
        return None
    if not math.isfinite(raw):
        logger.debug("Skipping %s record with non-finite value", sample_type.identifier)
        return None

    unit = elem.get("unit", sample_type.display_unit)
    value = convert_to_display_unit(sample_type, raw, unit)
    if value is None:
        logger.debug("Skipping %s record in unsupported unit %r", sample_type.identifier, unit)
        return None
    try:
        return QuantitySample(sample_type, sample_type.display_unit, value, start, end)
    except InvalidSampleError:
        return None


def _sleep_sample(elem: ET.Element) -> SleepStageSample | None:
    stage = SleepStage.from_healthkit_value(elem.get("value", ""))
    if stage is None:
        return None
    try:
        return SleepStageSample(
            _parse_date(elem.get("startDate", "")),
            _parse_date(elem.get("endDate", "")),
            stage,
        )
    except (ValueError, TypeError):
        return None


def _correlation(elem: ET.Element) -> BloodPressureCorrelation | None:
    systolic = diastolic = None
    for child in elem.iter("Record"):
        sample = _quantity_sample(child)
        if sample is None:
            continue
        if sample.sample_type == BLOOD_PRESSURE_SYSTOLIC and systolic is None:
            systolic = sample
        elif sample.sample_type == BLOOD_PRESSURE_DIASTOLIC and diastolic is None:
            diastolic = sample
    try:
        return BloodPressureCorrelation(
            _parse_date(elem.get("startDate", "")),
            _parse_date(elem.get("endDate", "")),
            systolic=systolic,
            diastolic=diastolic,
        )
    except (ValueError, TypeError):
        return None


def parse_apple_health_export(
    export_path: str | Path,
    since: datetime | None = None,
) -> AppleHealthExport:
    """Parse an Apple Health export.xml into samples.

    Uses iterparse for memory-efficient processing of large exports.

    Args:
        export_path: Path to the Apple Health export.xml file.
        since: If given, records that ended before this instant are skipped.

    Returns:
        AppleHealthExport with quantity samples grouped by type identifier,
        blood pressure correlations and sleep-stage samples, each sorted by
        start date.

    Raises:
        AppleHealthParseError: If the file cannot be found or parsed.
    """
    path = Path(export_path)
    if not path.exists():
        raise AppleHealthParseError(f"Export file not found: {path}")

    records: dict[str, list[QuantitySample]] = defaultdict(list)
    correlations: list[BloodPressureCorrelation] = []
    sleep_records: list[SleepStageSample] = []
    correlation_depth = 0

    def keep(item) -> bool:
        return since is None or item.end_date >= since

    try:
        for event, elem in ET.iterparse(str(path), events=("start", "end")):
            tag = elem.tag

            if event == "start":
                if tag == "Correlation":
                    correlation_depth += 1
                continue

            if tag == "Record":
                # Correlation members are read when the correlation closes
                if correlation_depth:
                    continue
                if elem.get("type") == SLEEP_ANALYSIS.identifier:
                    sleep = _sleep_sample(elem)
                    if sleep is not None and keep(sleep):
                        sleep_records.append(sleep)
                else:
                    sample = _quantity_sample(elem)
                    if sample is not None and keep(sample):
                        records[sample.sample_type.identifier].append(sample)
                elem.clear()

            elif tag == "Correlation":
                correlation_depth -= 1
                if elem.get("type") == BLOOD_PRESSURE.identifier:
                    correlation = _correlation(elem)
                    if correlation is not None and keep(correlation):
                        correlations.append(correlation)
                elem.clear()

            elif tag == "Workout" and not correlation_depth:
                elem.clear()

    except ET.ParseError as exc:
        raise AppleHealthParseError(f"Invalid XML: {exc}") from exc

    # Loose systolic/diastolic records not wrapped in a correlation
    covered = {c.time_range for c in correlations}
    loose = [
        c for c in pair_blood_pressure(
            records.get(BLOOD_PRESSURE_SYSTOLIC.identifier, []),
            records.get(BLOOD_PRESSURE_DIASTOLIC.identifier, []),
        )
        if c.time_range not in covered
    ]
    correlations.extend(loose)

    for samples in records.values():
        samples.sort(key=lambda s: s.start_date)
    correlations.sort(key=lambda c: c.start_date)
    sleep_records.sort(key=lambda s: s.start_date)

    logger.info(
        "Parsed Apple Health export: %d sample types, %d blood pressure readings, %d sleep records",
        len(records), len(correlations), len(sleep_records),
    )
    return AppleHealthExport(dict(records), correlations, sleep_records)
