"""Mock health sample generators for development and testing.

All mock data represents a median healthy adult — not in crisis, not perfectly
optimized. The CVH components derived from it land between 0.5 and 1.0, and
the composite score is about 0.76.

Samples are generated on a fixed UTC day grid, so the same query window
always yields the same samples (values and IDs).
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, time, timedelta, timezone

from mhc.domains.health.domain_logic.sample_models import (
    APPLE_EXERCISE_TIME,
    BLOOD_GLUCOSE,
    BLOOD_LIPIDS,
    BLOOD_PRESSURE_DIASTOLIC,
    BLOOD_PRESSURE_SYSTOLIC,
    BODY_MASS,
    BODY_MASS_INDEX,
    DIET_MEPA_SCORE,
    HEIGHT,
    MENTAL_WELLBEING_SCORE,
    NICOTINE_EXPOSURE,
    STEP_COUNT,
    BloodPressureCorrelation,
    NicotineExposure,
    QuantitySample,
    SampleType,
    TimeRange,
    in_time_range,
)
from mhc.domains.health.domain_logic.sleep_sessions import SleepStage, SleepStageSample

_MOCK_NAMESPACE = uuid.UUID("6f1c2d0e-4b7a-4e55-9a51-2f0d7c1e9b3a")

# (every N days, start time, duration, values cycled by day)
_SCHEDULES: dict[SampleType, tuple[int, time, timedelta, list[float]]] = {
    DIET_MEPA_SCORE: (14, time(19, 0), timedelta(0), [10]),
    NICOTINE_EXPOSURE: (30, time(19, 0), timedelta(0), [NicotineExposure.QUIT_MORE_THAN_5_YEARS_AGO]),
    BLOOD_LIPIDS: (30, time(9, 0), timedelta(0), [122.0, 118.0, 126.0]),
    MENTAL_WELLBEING_SCORE: (14, time(19, 0), timedelta(0), [18]),
    APPLE_EXERCISE_TIME: (1, time(17, 30), timedelta(minutes=30), [20.0, 25.0, 15.0, 30.0, 10.0, 22.0, 18.0]),
    STEP_COUNT: (1, time(8, 0), timedelta(hours=12), [7200.0, 6400.0, 8100.0, 5900.0, 7600.0, 6800.0, 7000.0]),
    BODY_MASS: (7, time(7, 0), timedelta(0), [77.5, 77.8, 77.3]),
    BODY_MASS_INDEX: (7, time(7, 0), timedelta(0), [25.3, 25.4, 25.2]),
    HEIGHT: (365, time(7, 0), timedelta(0), [1.75]),
    BLOOD_GLUCOSE: (3, time(7, 30), timedelta(0), [94.0, 97.0, 91.0]),
    BLOOD_PRESSURE_SYSTOLIC: (2, time(8, 0), timedelta(0), [118.0, 121.0, 116.0]),
    BLOOD_PRESSURE_DIASTOLIC: (2, time(8, 0), timedelta(0), [76.0, 78.0, 74.0]),
}

# (stage, offset from 22:45 UTC, duration)
_NIGHT: list[tuple[SleepStage, timedelta, timedelta]] = [
    (SleepStage.IN_BED, timedelta(0), timedelta(hours=7, minutes=55)),
    (SleepStage.ASLEEP_CORE, timedelta(minutes=15), timedelta(hours=3)),
    (SleepStage.ASLEEP_DEEP, timedelta(hours=3, minutes=15), timedelta(hours=1)),
    (SleepStage.ASLEEP_REM, timedelta(hours=4, minutes=15), timedelta(hours=1)),
    (SleepStage.AWAKE, timedelta(hours=5, minutes=15), timedelta(minutes=10)),
    (SleepStage.ASLEEP_CORE, timedelta(hours=5, minutes=25), timedelta(hours=2, minutes=20)),
]
_BEDTIME = time(22, 45)


def _days(time_range: TimeRange) -> list[date]:
    """UTC calendar days touched by ``time_range``, plus one day of margin each side."""
    start, end = (d.astimezone(timezone.utc).date() for d in time_range)
    first = start - timedelta(days=1)
    return [first + timedelta(days=i) for i in range((end - first).days + 2)]


def _mock_id(identifier: str, start: datetime) -> uuid.UUID:
    return uuid.uuid5(_MOCK_NAMESPACE, f"{identifier}:{start.isoformat()}")


def get_mock_quantity_samples(sample_type: SampleType, time_range: TimeRange) -> list[QuantitySample]:
    """Return mock samples of ``sample_type`` overlapping ``time_range``, oldest first."""
    schedule = _SCHEDULES.get(sample_type)
    if schedule is None:
        return []
    every, at, duration, values = schedule

    samples = []
    for day in _days(time_range):
        ordinal = day.toordinal()
        if ordinal % every:
            continue
        start = datetime.combine(day, at, tzinfo=timezone.utc)
        sample = QuantitySample(
            sample_type=sample_type,
            unit=sample_type.display_unit,
            value=float(values[(ordinal // every) % len(values)]),
            start_date=start,
            end_date=start + duration,
            id=_mock_id(sample_type.identifier, start),
        )
        if in_time_range(sample, time_range):
            samples.append(sample)
    return samples


def get_mock_blood_pressure(time_range: TimeRange) -> list[BloodPressureCorrelation]:
    """Return mock blood pressure readings overlapping ``time_range``."""
    systolic = get_mock_quantity_samples(BLOOD_PRESSURE_SYSTOLIC, time_range)
    diastolic = get_mock_quantity_samples(BLOOD_PRESSURE_DIASTOLIC, time_range)
    return [
        BloodPressureCorrelation(
            start_date=s.start_date,
            end_date=s.end_date,
            systolic=s,
            diastolic=d,
            id=_mock_id("bloodPressure", s.start_date),
        )
        for s, d in zip(systolic, diastolic)
    ]


def get_mock_sleep_samples(time_range: TimeRange) -> list[SleepStageSample]:
    """Return one night of sleep stages per day (7h20m asleep), overlapping ``time_range``."""
    samples = []
    for day in _days(time_range):
        bedtime = datetime.combine(day, _BEDTIME, tzinfo=timezone.utc)
        for stage, offset, duration in _NIGHT:
            start = bedtime + offset
            sample = SleepStageSample(
                start_date=start,
                end_date=start + duration,
                stage=stage,
                id=_mock_id(stage.value, start),
            )
            if in_time_range(sample, time_range):
                samples.append(sample)
    return samples
