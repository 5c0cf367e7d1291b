"""Cardiovascular Health (CVH) score: per-component resolvers and composite.

Each resolver is a pure function over a snapshot of samples and returns a
``ScoreResult``. Missing, stale or inconsistent evidence never raises; it
produces a result with no score. The composite is the mean of the available
component scores, and only exists once enough components are available.

Components (in composite order):
    diet, physical exercise (or step count), nicotine exposure, sleep,
    body mass index, blood lipids, blood glucose, blood pressure

Mental wellbeing is scored and reported alongside, but is not part of the
composite.
"""

from __future__ import annotations

import logging
import math
import statistics
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Sequence

from mhc.domains.health.domain_logic.cvh_definitions import (
    CVH_BLOOD_GLUCOSE,
    CVH_BLOOD_LIPIDS,
    CVH_BLOOD_PRESSURE,
    CVH_BMI,
    CVH_DIET,
    CVH_MENTAL_WELLBEING,
    CVH_NICOTINE,
    CVH_PHYSICAL_EXERCISE,
    CVH_SLEEP,
    CVH_STEP_COUNT,
)
from mhc.domains.health.domain_logic.sample_models import (
    APPLE_EXERCISE_TIME,
    BLOOD_GLUCOSE,
    BLOOD_LIPIDS,
    BLOOD_PRESSURE,
    BODY_MASS_INDEX,
    DIET_MEPA_SCORE,
    MENTAL_WELLBEING_SCORE,
    NICOTINE_EXPOSURE,
    SLEEP_ANALYSIS,
    STEP_COUNT,
    BloodPressureCorrelation,
    BloodPressureMeasurement,
    NicotineExposure,
    QuantitySample,
    SampleType,
    TimeRange,
    most_recent,
)
from mhc.domains.health.domain_logic.score_definition import ScoreResult, coerce_to_int
from mhc.domains.health.domain_logic.sleep_sessions import SleepSession

logger = logging.getLogger(__name__)

MINIMUM_COMPONENTS = 5
DEFAULT_BMI_WEIGHT_MAX_AGE = timedelta(days=182.5)  # half a year


def _clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    """Clamp a value to [lo, hi]."""
    return max(lo, min(hi, value))


# ---------------------------------------------------------------------------
# Component resolvers
# ---------------------------------------------------------------------------

def resolve_diet_score(samples: Sequence[QuantitySample]) -> ScoreResult:
    return ScoreResult.from_sample(
        "Most Recent Score", DIET_MEPA_SCORE, most_recent(samples), lambda s: s.value, CVH_DIET,
    )


def resolve_physical_exercise_score(weekly_exercise_minutes: Sequence[QuantitySample]) -> ScoreResult:
    """Score the last weekly exercise-minutes statistic."""
    return ScoreResult.from_sample(
        "Last 7 Days",
        APPLE_EXERCISE_TIME,
        most_recent(weekly_exercise_minutes),
        lambda s: s.value,
        CVH_PHYSICAL_EXERCISE,
    )


def resolve_step_count_score(
    daily_step_counts: Sequence[QuantitySample],
    time_range: TimeRange | None = None,
) -> ScoreResult:
    """Score the rounded mean of the daily step totals."""
    title = "Daily Average, Last 7 Days"
    if not daily_step_counts:
        return ScoreResult.empty(title, STEP_COUNT, CVH_STEP_COUNT, time_range)
    if time_range is None:
        time_range = (
            min(s.start_date for s in daily_step_counts),
            max(s.end_date for s in daily_step_counts),
        )
    average = float(round(statistics.fmean(s.value for s in daily_step_counts)))
    return ScoreResult.from_value(title, STEP_COUNT, average, time_range, CVH_STEP_COUNT)


def preferred_exercise_metric(
    weekly_exercise_minutes: Sequence[QuantitySample],
    daily_step_counts: Sequence[QuantitySample],
) -> SampleType:
    """Exercise minutes unless there are none but step counts exist."""
    if not weekly_exercise_minutes and daily_step_counts:
        return STEP_COUNT
    return APPLE_EXERCISE_TIME


def _nicotine_value(sample: QuantitySample) -> NicotineExposure | None:
    raw = coerce_to_int(sample.value)
    if raw is None:
        return None
    try:
        return NicotineExposure(raw)
    except ValueError:
        logger.debug("Ignoring nicotine exposure sample with unknown value %r", sample.value)
        return None


def resolve_nicotine_score(samples: Sequence[QuantitySample]) -> ScoreResult:
    return ScoreResult.from_sample(
        "Most Recent Response", NICOTINE_EXPOSURE, most_recent(samples), _nicotine_value, CVH_NICOTINE,
    )


def resolve_sleep_score(sessions: Sequence[SleepSession]) -> ScoreResult:
    """Score hours asleep in the most recent sleep session."""
    if not sessions:
        return ScoreResult.empty("Last Night", SLEEP_ANALYSIS, CVH_SLEEP)
    return ScoreResult.from_sample(
        "Most Recent Night",
        SLEEP_ANALYSIS,
        most_recent(sessions),
        lambda s: s.total_time_asleep / 60 / 60,
        CVH_SLEEP,
    )


def derive_bmi_sample(weight: QuantitySample, height: QuantitySample) -> QuantitySample:
    """Synthesize a BMI sample (kg/m²) from weight and height samples.

    The result takes the time range of whichever input ended later.
    """
    newer = weight if weight.end_date > height.end_date else height
    return QuantitySample(
        sample_type=BODY_MASS_INDEX,
        unit=BODY_MASS_INDEX.display_unit,
        value=weight.value / height.value ** 2,
        start_date=newer.start_date,
        end_date=newer.end_date,
    )


def resolve_bmi_score(
    bmi_samples: Sequence[QuantitySample],
    weight_samples: Sequence[QuantitySample],
    height_samples: Sequence[QuantitySample],
    now: datetime | None = None,
    max_weight_age: timedelta = DEFAULT_BMI_WEIGHT_MAX_AGE,
) -> ScoreResult:
    """Reconcile BMI, weight and height samples into one BMI score.

    - a BMI sample without both weight and height is used as-is;
    - with all three, the BMI is derived from weight/height when the weight
      is strictly newer than the BMI sample;
    - without a BMI sample, weight and height are combined unless the
      weight ended more than ``max_weight_age`` before ``now``.
      Height is never considered stale.
    """
    title = "Most Recent Sample"
    now = now or datetime.now(timezone.utc)
    bmi = most_recent(bmi_samples)
    weight = most_recent(weight_samples)
    height = most_recent(height_samples)

    def score(sample: QuantitySample) -> ScoreResult:
        return ScoreResult.from_sample(title, BODY_MASS_INDEX, sample, lambda s: s.value, CVH_BMI)

    if bmi is None:
        if weight is None or height is None:
            return ScoreResult.empty(title, BODY_MASS_INDEX, CVH_BMI)
        if now - weight.end_date > max_weight_age:
            logger.debug("Weight sample from %s is too old to derive BMI", weight.end_date.isoformat())
            return ScoreResult.empty(title, BODY_MASS_INDEX, CVH_BMI)
        return score(derive_bmi_sample(weight, height))

    if weight is None or height is None:
        return score(bmi)
    if weight.end_date > bmi.end_date:
        return score(derive_bmi_sample(weight, height))
    return score(bmi)


def resolve_blood_lipids_score(samples: Sequence[QuantitySample]) -> ScoreResult:
    return ScoreResult.from_sample(
        "Most Recent Sample", BLOOD_LIPIDS, most_recent(samples), lambda s: s.value, CVH_BLOOD_LIPIDS,
    )


def resolve_blood_glucose_score(samples: Sequence[QuantitySample]) -> ScoreResult:
    return ScoreResult.from_sample(
        "Most Recent Sample", BLOOD_GLUCOSE, most_recent(samples), lambda s: s.value, CVH_BLOOD_GLUCOSE,
    )


def _blood_pressure_value(correlation: BloodPressureCorrelation) -> BloodPressureMeasurement | None:
    if correlation.systolic is None or correlation.diastolic is None:
        return None
    systolic, diastolic = correlation.systolic.value, correlation.diastolic.value
    if not (math.isfinite(systolic) and math.isfinite(diastolic)):
        return None
    return BloodPressureMeasurement(systolic=math.trunc(systolic), diastolic=math.trunc(diastolic))


def resolve_blood_pressure_score(correlations: Sequence[BloodPressureCorrelation]) -> ScoreResult:
    """Score the most recent reading; both systolic and diastolic are required."""
    return ScoreResult.from_sample(
        "Most Recent Sample",
        BLOOD_PRESSURE,
        most_recent(correlations),
        _blood_pressure_value,
        CVH_BLOOD_PRESSURE,
    )


def resolve_mental_wellbeing_score(samples: Sequence[QuantitySample]) -> ScoreResult:
    """Questionnaire score scaled by 4 onto 0-100."""
    return ScoreResult.from_sample(
        "Most Recent Response",
        MENTAL_WELLBEING_SCORE,
        most_recent(samples),
        lambda s: s.value * 4,
        CVH_MENTAL_WELLBEING,
    )


# ---------------------------------------------------------------------------
# Composite
# ---------------------------------------------------------------------------

def composite_score(
    results: Sequence[ScoreResult],
    minimum_components: int = MINIMUM_COMPONENTS,
) -> float | None:
    """Mean of the available component scores, each clamped to [0, 1].

    Returns None when fewer than ``minimum_components`` scores are available.
    """
    scores = [_clamp(r.score) for r in results if r.score_available]
    if len(scores) < minimum_components:
        return None
    return sum(scores) / len(scores)


@dataclass
class CVHInputs:
    """Snapshot of every series the CVH score reads from."""

    diet: list[QuantitySample] = field(default_factory=list)
    weekly_exercise_minutes: list[QuantitySample] = field(default_factory=list)
    daily_step_counts: list[QuantitySample] = field(default_factory=list)
    step_count_time_range: TimeRange | None = None
    nicotine_exposure: list[QuantitySample] = field(default_factory=list)
    sleep_sessions: list[SleepSession] = field(default_factory=list)
    body_mass_index: list[QuantitySample] = field(default_factory=list)
    body_mass: list[QuantitySample] = field(default_factory=list)
    height: list[QuantitySample] = field(default_factory=list)
    blood_lipids: list[QuantitySample] = field(default_factory=list)
    blood_glucose: list[QuantitySample] = field(default_factory=list)
    blood_pressure: list[BloodPressureCorrelation] = field(default_factory=list)
    mental_wellbeing: list[QuantitySample] = field(default_factory=list)


@dataclass
class CVHAssessment:
    """All component results plus the composite score (None if not enough data)."""

    diet: ScoreResult
    physical_exercise: ScoreResult
    nicotine_exposure: ScoreResult
    sleep: ScoreResult
    body_mass_index: ScoreResult
    blood_lipids: ScoreResult
    blood_glucose: ScoreResult
    blood_pressure: ScoreResult
    mental_wellbeing: ScoreResult
    score: float | None

    @property
    def components(self) -> list[ScoreResult]:
        """The eight results that feed the composite, in display order."""
        return [
            self.diet,
            self.physical_exercise,
            self.nicotine_exposure,
            self.sleep,
            self.body_mass_index,
            self.blood_lipids,
            self.blood_glucose,
            self.blood_pressure,
        ]

    @property
    def available_components(self) -> int:
        return sum(1 for r in self.components if r.score_available)

    def as_dict(self) -> dict:
        return {
            "score": round(self.score, 4) if self.score is not None else None,
            "available_components": self.available_components,
            "components": {
                "diet": self.diet.as_dict(),
                "physical_exercise": self.physical_exercise.as_dict(),
                "nicotine_exposure": self.nicotine_exposure.as_dict(),
                "sleep": self.sleep.as_dict(),
                "body_mass_index": self.body_mass_index.as_dict(),
                "blood_lipids": self.blood_lipids.as_dict(),
                "blood_glucose": self.blood_glucose.as_dict(),
                "blood_pressure": self.blood_pressure.as_dict(),
            },
            "mental_wellbeing": self.mental_wellbeing.as_dict(),
        }


def assess_cvh(
    inputs: CVHInputs,
    now: datetime | None = None,
    *,
    minimum_components: int = MINIMUM_COMPONENTS,
    bmi_weight_max_age: timedelta = DEFAULT_BMI_WEIGHT_MAX_AGE,
) -> CVHAssessment:
    """Evaluate every component and the composite from a snapshot."""
    if preferred_exercise_metric(inputs.weekly_exercise_minutes, inputs.daily_step_counts) is STEP_COUNT:
        exercise = resolve_step_count_score(inputs.daily_step_counts, inputs.step_count_time_range)
    else:
        exercise = resolve_physical_exercise_score(inputs.weekly_exercise_minutes)

    assessment = CVHAssessment(
        diet=resolve_diet_score(inputs.diet),
        physical_exercise=exercise,
        nicotine_exposure=resolve_nicotine_score(inputs.nicotine_exposure),
        sleep=resolve_sleep_score(inputs.sleep_sessions),
        body_mass_index=resolve_bmi_score(
            inputs.body_mass_index, inputs.body_mass, inputs.height, now, bmi_weight_max_age,
        ),
        blood_lipids=resolve_blood_lipids_score(inputs.blood_lipids),
        blood_glucose=resolve_blood_glucose_score(inputs.blood_glucose),
        blood_pressure=resolve_blood_pressure_score(inputs.blood_pressure),
        mental_wellbeing=resolve_mental_wellbeing_score(inputs.mental_wellbeing),
        score=None,
    )
    assessment.score = composite_score(assessment.components, minimum_components)
    logger.debug(
        "CVH assessment: %d/8 components available, score=%s",
        assessment.available_components, assessment.score,
    )
    return assessment
