"""Sample models shared by the CVH scoring and aggregation code.

A ``QuantitySample`` is one immutable measurement: a typed value, a unit and
a half-open ``[start, end)`` time range. Samples come either from the
platform health store ("healthkit") or from research data the user entered
themselves ("custom").
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import Literal

SampleSource = Literal["healthkit", "custom"]


class InvalidSampleError(ValueError):
    """Raised when a sample is constructed with an end date before its start date."""


# ---------------------------------------------------------------------------
# Sample types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SampleType:
    """Tag identifying what a sample measures and where it comes from."""

    source: SampleSource
    identifier: str
    display_title: str
    display_unit: str

    @property
    def is_custom(self) -> bool:
        return self.source == "custom"


BODY_MASS_INDEX = SampleType("healthkit", "HKQuantityTypeIdentifierBodyMassIndex", "Body Mass Index", "count")
BODY_MASS = SampleType("healthkit", "HKQuantityTypeIdentifierBodyMass", "Body Weight", "kg")
HEIGHT = SampleType("healthkit", "HKQuantityTypeIdentifierHeight", "Height", "m")
BLOOD_GLUCOSE = SampleType("healthkit", "HKQuantityTypeIdentifierBloodGlucose", "Blood Glucose", "mg/dL")
BLOOD_PRESSURE_SYSTOLIC = SampleType(
    "healthkit", "HKQuantityTypeIdentifierBloodPressureSystolic", "Systolic Blood Pressure", "mmHg"
)
BLOOD_PRESSURE_DIASTOLIC = SampleType(
    "healthkit", "HKQuantityTypeIdentifierBloodPressureDiastolic", "Diastolic Blood Pressure", "mmHg"
)
BLOOD_PRESSURE = SampleType("healthkit", "HKCorrelationTypeIdentifierBloodPressure", "Blood Pressure", "mmHg")
APPLE_EXERCISE_TIME = SampleType("healthkit", "HKQuantityTypeIdentifierAppleExerciseTime", "Exercise Time", "min")
STEP_COUNT = SampleType("healthkit", "HKQuantityTypeIdentifierStepCount", "Steps", "count")
SLEEP_ANALYSIS = SampleType("healthkit", "HKCategoryTypeIdentifierSleepAnalysis", "Sleep", "hr")

DIET_MEPA_SCORE = SampleType("custom", "dietMEPAScore", "Diet", "count")
NICOTINE_EXPOSURE = SampleType("custom", "nicotineExposure", "Nicotine Exposure", "count")
BLOOD_LIPIDS = SampleType("custom", "bloodLipids", "LDL Cholesterol", "mg/dL")
MENTAL_WELLBEING_SCORE = SampleType("custom", "mentalWellbeingScore", "Mental Wellbeing", "count")

ALL_SAMPLE_TYPES: tuple[SampleType, ...] = (
    BODY_MASS_INDEX,
    BODY_MASS,
    HEIGHT,
    BLOOD_GLUCOSE,
    BLOOD_PRESSURE_SYSTOLIC,
    BLOOD_PRESSURE_DIASTOLIC,
    BLOOD_PRESSURE,
    APPLE_EXERCISE_TIME,
    STEP_COUNT,
    SLEEP_ANALYSIS,
    DIET_MEPA_SCORE,
    NICOTINE_EXPOSURE,
    BLOOD_LIPIDS,
    MENTAL_WELLBEING_SCORE,
)

CUSTOM_SAMPLE_TYPES: tuple[SampleType, ...] = tuple(t for t in ALL_SAMPLE_TYPES if t.is_custom)

_BY_IDENTIFIER = {t.identifier: t for t in ALL_SAMPLE_TYPES}


def sample_type_for_identifier(identifier: str) -> SampleType | None:
    """Look up a known sample type by its identifier (e.g. ``'bloodLipids'``)."""
    return _BY_IDENTIFIER.get(identifier)


# ---------------------------------------------------------------------------
# Samples
# ---------------------------------------------------------------------------

TimeRange = tuple[datetime, datetime]


@dataclass(frozen=True)
class QuantitySample:
    """A single immutable measurement over ``[start_date, end_date)``."""

    sample_type: SampleType
    unit: str
    value: float
    start_date: datetime
    end_date: datetime
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    def __post_init__(self) -> None:
        if self.end_date < self.start_date:
            raise InvalidSampleError(
                f"Sample end date {self.end_date.isoformat()} is before "
                f"start date {self.start_date.isoformat()}"
            )

    @property
    def time_range(self) -> TimeRange:
        return (self.start_date, self.end_date)

    @property
    def is_point_in_time(self) -> bool:
        return self.start_date == self.end_date

    @property
    def duration_seconds(self) -> float:
        return (self.end_date - self.start_date).total_seconds()

    def with_value(
        self,
        value: float,
        *,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> QuantitySample:
        """Return a copy with the same identity but a new value and, optionally, dates."""
        return QuantitySample(
            sample_type=self.sample_type,
            unit=self.unit,
            value=value,
            start_date=start_date or self.start_date,
            end_date=end_date or self.end_date,
            id=self.id,
        )


@dataclass(frozen=True)
class BloodPressureCorrelation:
    """A blood pressure reading: systolic and diastolic samples taken together."""

    start_date: datetime
    end_date: datetime
    systolic: QuantitySample | None = None
    diastolic: QuantitySample | None = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    def __post_init__(self) -> None:
        if self.end_date < self.start_date:
            raise InvalidSampleError("Correlation end date is before its start date")

    @property
    def time_range(self) -> TimeRange:
        return (self.start_date, self.end_date)


@dataclass(frozen=True)
class BloodPressureMeasurement:
    """Systolic/diastolic pair in mmHg."""

    systolic: int | float
    diastolic: int | float

    def __str__(self) -> str:
        return f"{self.systolic}/{self.diastolic}"


class NicotineExposure(IntEnum):
    """Self-reported nicotine exposure, stored as the custom sample's value."""

    NEVER_SMOKED = 0
    QUIT_MORE_THAN_5_YEARS_AGO = 1
    QUIT_WITHIN_1_TO_5_YEARS = 2
    QUIT_WITHIN_LAST_YEAR_OR_USING_NDS = 3
    ACTIVELY_SMOKING = 4

    @property
    def display_title(self) -> str:
        return _NICOTINE_TITLES[self]


_NICOTINE_TITLES = {
    NicotineExposure.NEVER_SMOKED: "Never",
    NicotineExposure.QUIT_MORE_THAN_5_YEARS_AGO: "More than 5 years ago",
    NicotineExposure.QUIT_WITHIN_1_TO_5_YEARS: "1 to 5 years ago",
    NicotineExposure.QUIT_WITHIN_LAST_YEAR_OR_USING_NDS: "Within last year, or am using NDS",
    NicotineExposure.ACTIVELY_SMOKING: "Currently smoking",
}


def most_recent(samples):
    """Return the element with the latest end date, or None for an empty collection."""
    return max(samples, key=lambda s: s.end_date, default=None)


def in_time_range(item, time_range: TimeRange) -> bool:
    """True if ``item`` (anything with start/end dates) overlaps ``time_range``.

    Point-in-time items at the range start are included; items starting at
    the range end are not.
    """
    start, end = time_range
    return item.start_date < end and item.end_date >= start


def pair_blood_pressure(
    systolic: list[QuantitySample],
    diastolic: list[QuantitySample],
) -> list[BloodPressureCorrelation]:
    """Combine loose systolic/diastolic samples taken at the same time into readings.

    Samples without a partner become single-sided correlations, which never
    produce a blood pressure score.
    """
    by_range: dict[TimeRange, dict[str, QuantitySample]] = {}
    for kind, samples in (("systolic", systolic), ("diastolic", diastolic)):
        for sample in samples:
            by_range.setdefault(sample.time_range, {}).setdefault(kind, sample)
    return [
        BloodPressureCorrelation(
            start_date=start,
            end_date=end,
            systolic=pair.get("systolic"),
            diastolic=pair.get("diastolic"),
        )
        for (start, end), pair in sorted(by_range.items(), key=lambda item: item[0])
    ]


# ---------------------------------------------------------------------------
# Units
# ---------------------------------------------------------------------------

# mg/dL per mmol/L: glucose (180.156 g/mol), LDL cholesterol (386.65 g/mol)
_GLUCOSE_MG_DL_PER_MMOL_L = 18.0156
_CHOLESTEROL_MG_DL_PER_MMOL_L = 38.67

# Multipliers from a source unit to each sample type's display unit
_UNIT_FACTORS: dict[SampleType, dict[str, float]] = {
    BODY_MASS: {"kg": 1.0, "g": 0.001, "lb": 0.45359237},
    HEIGHT: {"m": 1.0, "cm": 0.01, "in": 0.0254, "ft": 0.3048},
    BLOOD_GLUCOSE: {"mg/dL": 1.0, "mmol/L": _GLUCOSE_MG_DL_PER_MMOL_L},
    BLOOD_LIPIDS: {"mg/dL": 1.0, "mmol/L": _CHOLESTEROL_MG_DL_PER_MMOL_L},
    APPLE_EXERCISE_TIME: {"min": 1.0, "s": 1 / 60, "hr": 60.0},
    STEP_COUNT: {"count": 1.0},
    BODY_MASS_INDEX: {"count": 1.0},
    BLOOD_PRESSURE_SYSTOLIC: {"mmHg": 1.0},
    BLOOD_PRESSURE_DIASTOLIC: {"mmHg": 1.0},
    DIET_MEPA_SCORE: {"count": 1.0},
    NICOTINE_EXPOSURE: {"count": 1.0},
    MENTAL_WELLBEING_SCORE: {"count": 1.0},
}

# Types that carry a single numeric value (everything except correlations and sleep)
QUANTITY_SAMPLE_TYPES: tuple[SampleType, ...] = tuple(_UNIT_FACTORS)


def _normalize_unit(unit: str) -> str:
    # HealthKit writes molar units with the molar mass, e.g. "mmol<180.1558800000541>/L"
    if unit.startswith("mmol<") and unit.endswith(">/L"):
        return "mmol/L"
    return unit


def convert_to_display_unit(sample_type: SampleType, value: float, unit: str) -> float | None:
    """Convert ``value`` in ``unit`` to ``sample_type``'s display unit, or None if unknown."""
    factor = _UNIT_FACTORS.get(sample_type, {}).get(_normalize_unit(unit))
    if factor is None:
        return None
    return value * factor
