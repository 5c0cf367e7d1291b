"""Tests for the CVH component resolvers and composite score."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from mhc.domains.health.domain_logic.cvh_definitions import CVH_DIET
from mhc.domains.health.domain_logic.cvh_score import (
    CVHInputs,
    assess_cvh,
    composite_score,
    derive_bmi_sample,
    preferred_exercise_metric,
    resolve_blood_glucose_score,
    resolve_blood_lipids_score,
    resolve_blood_pressure_score,
    resolve_bmi_score,
    resolve_diet_score,
    resolve_mental_wellbeing_score,
    resolve_nicotine_score,
    resolve_physical_exercise_score,
    resolve_sleep_score,
    resolve_step_count_score,
)
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
    BloodPressureMeasurement,
    NicotineExposure,
    QuantitySample,
)
from mhc.domains.health.domain_logic.score_definition import ScoreResult
from mhc.domains.health.domain_logic.sleep_sessions import (
    SleepStage,
    SleepStageSample,
    split_into_sleep_sessions,
)

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


def _sample(sample_type, value, days_ago=1.0, duration=timedelta(0)):
    start = NOW - timedelta(days=days_ago)
    return QuantitySample(sample_type, sample_type.display_unit, value, start, start + duration)


def _reading(systolic, diastolic, days_ago=1.0):
    s = _sample(BLOOD_PRESSURE_SYSTOLIC, systolic, days_ago) if systolic is not None else None
    d = _sample(BLOOD_PRESSURE_DIASTOLIC, diastolic, days_ago) if diastolic is not None else None
    when = NOW - timedelta(days=days_ago)
    return BloodPressureCorrelation(when, when, systolic=s, diastolic=d)


def _sessions(hours_asleep, nights_ago=1):
    bedtime = NOW - timedelta(days=nights_ago, hours=13)
    return split_into_sleep_sessions([
        SleepStageSample(bedtime, bedtime + timedelta(hours=hours_asleep), SleepStage.ASLEEP_CORE),
    ])


def _result(score):
    return ScoreResult("t", DIET_MEPA_SCORE, CVH_DIET, score=score)


class TestSimpleComponents:
    def test_diet_uses_most_recent(self):
        result = resolve_diet_score([_sample(DIET_MEPA_SCORE, 16, days_ago=10), _sample(DIET_MEPA_SCORE, 9)])
        assert result.input_value == 9
        assert result.score == 0.5

    def test_diet_empty(self):
        result = resolve_diet_score([])
        assert result.score is None
        assert result.time_range is None

    def test_lipids(self):
        assert resolve_blood_lipids_score([_sample(BLOOD_LIPIDS, 145.0)]).score == 0.6

    def test_glucose_any_value(self):
        assert resolve_blood_glucose_score([_sample(BLOOD_GLUCOSE, 210.0)]).score == 0.5
        assert resolve_blood_glucose_score([]).score is None

    def test_mental_wellbeing_scaled_by_four(self):
        result = resolve_mental_wellbeing_score([_sample(MENTAL_WELLBEING_SCORE, 18)])
        assert result.input_value == 72
        assert result.score == 0.8


class TestExercise:
    def test_weekly_minutes(self):
        weekly = [_sample(APPLE_EXERCISE_TIME, 140.0, days_ago=7, duration=timedelta(days=7))]
        result = resolve_physical_exercise_score(weekly)
        assert result.score == 0.9
        assert result.title == "Last 7 Days"

    def test_step_count_rounded_daily_average(self):
        daily = [_sample(STEP_COUNT, v, days_ago=i + 1, duration=timedelta(days=1))
                 for i, v in enumerate([7999.0, 8000.0])]
        result = resolve_step_count_score(daily)
        assert result.input_value == 8000.0  # 7999.5 rounds to even
        assert result.score == 0.9

    def test_step_count_empty_keeps_window(self):
        window = (NOW - timedelta(days=7), NOW)
        result = resolve_step_count_score([], window)
        assert result.score is None
        assert result.time_range == window

    def test_preferred_metric(self):
        weekly = [_sample(APPLE_EXERCISE_TIME, 10.0)]
        daily = [_sample(STEP_COUNT, 5000.0)]
        assert preferred_exercise_metric(weekly, daily) is APPLE_EXERCISE_TIME
        assert preferred_exercise_metric([], daily) is STEP_COUNT
        assert preferred_exercise_metric([], []) is APPLE_EXERCISE_TIME


class TestNicotine:
    def test_valid_response(self):
        result = resolve_nicotine_score([_sample(NICOTINE_EXPOSURE, 2.0)])
        assert result.input_value is NicotineExposure.QUIT_WITHIN_1_TO_5_YEARS
        assert result.score == 0.5

    def test_never_smoked_scores_full(self):
        assert resolve_nicotine_score([_sample(NICOTINE_EXPOSURE, 0.0)]).score == 1.0

    @pytest.mark.parametrize("raw", [5.0, -1.0, 1.5])
    def test_invalid_response_has_no_score(self, raw):
        result = resolve_nicotine_score([_sample(NICOTINE_EXPOSURE, raw)])
        assert result.score is None
        assert result.time_range is not None


class TestSleep:
    def test_most_recent_session(self):
        sessions = _sessions(5.5, nights_ago=2) + _sessions(7.5)
        result = resolve_sleep_score(sessions)
        assert result.input_value == pytest.approx(7.5)
        assert result.score == 1.0

    def test_no_sessions(self):
        result = resolve_sleep_score([])
        assert result.score is None
        assert result.title == "Last Night"


class TestBMI:
    def test_bmi_sample_alone(self):
        result = resolve_bmi_score([_sample(BODY_MASS_INDEX, 27.0)], [], [], NOW)
        assert result.score == 0.7

    def test_derived_from_weight_and_height(self):
        result = resolve_bmi_score(
            [], [_sample(BODY_MASS, 70.0)], [_sample(HEIGHT, 1.75, days_ago=800)], NOW,
        )
        assert result.input_value == pytest.approx(22.857, abs=1e-3)
        assert result.score == 1.0

    def test_newer_weight_overrides_bmi_sample(self):
        result = resolve_bmi_score(
            [_sample(BODY_MASS_INDEX, 31.0, days_ago=5)],
            [_sample(BODY_MASS, 70.0, days_ago=1)],
            [_sample(HEIGHT, 1.75, days_ago=100)],
            NOW,
        )
        assert result.score == 1.0

    def test_bmi_sample_wins_when_not_older_than_weight(self):
        result = resolve_bmi_score(
            [_sample(BODY_MASS_INDEX, 31.0, days_ago=1)],
            [_sample(BODY_MASS, 70.0, days_ago=1)],
            [_sample(HEIGHT, 1.75, days_ago=100)],
            NOW,
        )
        assert result.input_value == 31.0
        assert result.score == 0.3

    def test_stale_weight_is_ignored(self):
        result = resolve_bmi_score(
            [], [_sample(BODY_MASS, 70.0, days_ago=400)], [_sample(HEIGHT, 1.75)], NOW,
        )
        assert result.score is None

    def test_staleness_boundary(self):
        height = [_sample(HEIGHT, 1.75)]
        fresh = resolve_bmi_score([], [_sample(BODY_MASS, 70.0, days_ago=181.5)], height, NOW)
        stale = resolve_bmi_score([], [_sample(BODY_MASS, 70.0, days_ago=183.5)], height, NOW)
        assert fresh.score_available
        assert not stale.score_available

    def test_configurable_max_age(self):
        result = resolve_bmi_score(
            [], [_sample(BODY_MASS, 70.0, days_ago=40)], [_sample(HEIGHT, 1.75)], NOW,
            max_weight_age=timedelta(days=30),
        )
        assert result.score is None

    def test_missing_height(self):
        assert resolve_bmi_score([], [_sample(BODY_MASS, 70.0)], [], NOW).score is None

    def test_derived_sample_takes_newer_time_range(self):
        weight = _sample(BODY_MASS, 80.0, days_ago=1)
        height = _sample(HEIGHT, 2.0, days_ago=300)
        derived = derive_bmi_sample(weight, height)
        assert derived.value == 20.0
        assert derived.time_range == weight.time_range
        assert derived.sample_type is BODY_MASS_INDEX


class TestBloodPressure:
    def test_most_recent_reading(self):
        result = resolve_blood_pressure_score([_reading(150, 95, days_ago=3), _reading(118, 76)])
        assert result.input_value == BloodPressureMeasurement(118, 76)
        assert result.score == 0.75

    def test_values_truncated_to_int(self):
        result = resolve_blood_pressure_score([_reading(129.9, 79.9)])
        assert result.input_value == BloodPressureMeasurement(129, 79)
        assert result.score == 0.75

    def test_diastolic_band_catches_mixed_reading(self):
        assert resolve_blood_pressure_score([_reading(130, 79)]).score == 0.5

    def test_reading_between_bands_has_no_score(self):
        result = resolve_blood_pressure_score([_reading(99, 81)])
        assert result.input_value == BloodPressureMeasurement(99, 81)
        assert result.score is None

    @pytest.mark.parametrize("systolic,diastolic", [
        (float("nan"), 80), (120, float("inf")), (float("-inf"), 70),
    ])
    def test_non_finite_reading_has_no_score(self, systolic, diastolic):
        result = resolve_blood_pressure_score([_reading(systolic, diastolic)])
        assert result.score is None
        assert result.time_range is not None

    def test_non_finite_reading_does_not_break_assessment(self):
        assessment = assess_cvh(CVHInputs(blood_pressure=[_reading(float("nan"), 80)]), NOW)
        assert assessment.blood_pressure.score is None
        assert assessment.score is None

    def test_single_sided_reading_has_no_score(self):
        result = resolve_blood_pressure_score([_reading(120, None)])
        assert result.score is None
        assert result.time_range is not None


class TestComposite:
    def test_mean_of_available(self):
        results = [_result(s) for s in (1.0, 0.5, 0.5, 0.0, 0.5)] + [_result(None)] * 3
        assert composite_score(results) == pytest.approx(0.5)

    def test_too_few_components(self):
        results = [_result(1.0)] * 4 + [_result(None)] * 4
        assert composite_score(results) is None

    def test_configurable_minimum(self):
        results = [_result(1.0)] * 4
        assert composite_score(results, minimum_components=4) == 1.0

    def test_scores_are_clamped(self):
        results = [_result(1.5)] + [_result(0.5)] * 4
        assert composite_score(results) == pytest.approx(0.6)

    def test_nan_is_unavailable(self):
        results = [_result(float("nan"))] + [_result(1.0)] * 4
        assert composite_score(results) is None


class TestAssess:
    def _full_inputs(self) -> CVHInputs:
        return CVHInputs(
            diet=[_sample(DIET_MEPA_SCORE, 15)],
            weekly_exercise_minutes=[_sample(APPLE_EXERCISE_TIME, 160.0, days_ago=8, duration=timedelta(days=7))],
            nicotine_exposure=[_sample(NICOTINE_EXPOSURE, 0.0)],
            sleep_sessions=_sessions(8.0),
            body_mass_index=[_sample(BODY_MASS_INDEX, 23.0)],
            blood_lipids=[_sample(BLOOD_LIPIDS, 110.0)],
            blood_glucose=[_sample(BLOOD_GLUCOSE, 90.0)],
            blood_pressure=[_reading(95, 70)],
            mental_wellbeing=[_sample(MENTAL_WELLBEING_SCORE, 25)],
        )

    def test_full_assessment(self):
        assessment = assess_cvh(self._full_inputs(), NOW)
        assert assessment.available_components == 8
        # Seven perfect components and glucose at 0.5
        assert assessment.score == pytest.approx(7.5 / 8)
        assert assessment.mental_wellbeing.score == 1.0

    def test_mental_wellbeing_not_in_composite(self):
        assessment = assess_cvh(self._full_inputs(), NOW)
        assert assessment.mental_wellbeing not in assessment.components
        assert len(assessment.components) == 8

    def test_step_count_fallback(self):
        inputs = self._full_inputs()
        inputs.weekly_exercise_minutes = []
        inputs.daily_step_counts = [_sample(STEP_COUNT, 11_000.0, days_ago=2, duration=timedelta(days=1))]
        assessment = assess_cvh(inputs, NOW)
        assert assessment.physical_exercise.sample_type is STEP_COUNT
        assert assessment.physical_exercise.score == 1.0

    def test_empty_inputs(self):
        assessment = assess_cvh(CVHInputs(), NOW)
        assert assessment.score is None
        assert assessment.available_components == 0

    def test_as_dict(self):
        data = assess_cvh(self._full_inputs(), NOW).as_dict()
        assert data["available_components"] == 8
        assert set(data["components"]) == {
            "diet", "physical_exercise", "nicotine_exposure", "sleep",
            "body_mass_index", "blood_lipids", "blood_glucose", "blood_pressure",
        }
        assert data["components"]["blood_pressure"]["input_value"] == "95/70"
        assert data["components"]["nicotine_exposure"]["input_value"] == 0
        assert data["mental_wellbeing"]["score"] == 1.0
