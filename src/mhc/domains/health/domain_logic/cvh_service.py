"""CVH score service: fetches a fresh sample snapshot and scores it.

Nothing is cached between calls; every assessment re-reads every series
through the provider, so the score always reflects the current data.

Query windows end at the end of the current local day:

=====================  ==========================================
diet, lipids,          last 2 months
nicotine, wellbeing
exercise minutes       last 7 days, shifted back one day (weekly sum)
step count             same window, daily sums
sleep                  last 14 days
BMI                    last 14 days
body weight            last 3 months
height                 last 5 years
blood glucose          last 14 days
blood pressure         last 3 months
=====================  ==========================================
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Callable

from mhc.domains.health.connectors import SampleProvider, StatisticsProvider
from mhc.domains.health.connectors.local_statistics import LocalStatisticsProvider
from mhc.domains.health.domain_logic.aggregation import (
    DAY,
    AggregationInterval,
    AggregationKind,
    SingleValueConfig,
    aggregate_single_value,
    compute_statistics,
    start_of_day,
)
from mhc.domains.health.domain_logic.cvh_score import (
    DEFAULT_BMI_WEIGHT_MAX_AGE,
    MINIMUM_COMPONENTS,
    CVHAssessment,
    CVHInputs,
    assess_cvh,
)
from mhc.domains.health.domain_logic.sample_models import (
    APPLE_EXERCISE_TIME,
    BLOOD_GLUCOSE,
    BLOOD_LIPIDS,
    BLOOD_PRESSURE,
    BODY_MASS,
    BODY_MASS_INDEX,
    DIET_MEPA_SCORE,
    HEIGHT,
    MENTAL_WELLBEING_SCORE,
    NICOTINE_EXPOSURE,
    SLEEP_ANALYSIS,
    STEP_COUNT,
    QuantitySample,
    SampleType,
    TimeRange,
)
from mhc.domains.health.domain_logic.sleep_sessions import (
    DEFAULT_MAX_GAP,
    SleepProcessingResult,
    SleepSession,
    SleepSessionProcessor,
)

logger = logging.getLogger(__name__)

WEEK_OF_DAYS = AggregationInterval(days=7)


def last(
    now: datetime,
    tz: tzinfo,
    *,
    days: int = 0,
    months: int = 0,
    years: int = 0,
    offset_days: int = 0,
) -> TimeRange:
    """Window covering the last N calendar units up to the end of ``now``'s local day."""
    end = DAY.add_to(start_of_day(now, tz), tz)
    if offset_days:
        end = DAY.add_to(end, tz, offset_days)
    length = AggregationInterval(years=years, months=months, days=days)
    return (length.add_to(end, tz, -1), end)


def _widen(time_range: TimeRange, by: timedelta) -> TimeRange:
    return (time_range[0] - by, time_range[1] + by)


class CVHScoreService:
    """Scores the CVH components from whatever the provider currently holds.

    Usage::

        service = CVHScoreService(provider, tz=ZoneInfo("America/Los_Angeles"))
        assessment = await service.assess()
        print(assessment.score)
    """

    def __init__(
        self,
        provider: SampleProvider,
        statistics: StatisticsProvider | None = None,
        *,
        tz: tzinfo = timezone.utc,
        bmi_weight_max_age: timedelta = DEFAULT_BMI_WEIGHT_MAX_AGE,
        sleep_max_gap: timedelta = DEFAULT_MAX_GAP,
        minimum_components: int = MINIMUM_COMPONENTS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._provider = provider
        self._statistics = statistics or LocalStatisticsProvider(provider, tz)
        self._tz = tz
        self._bmi_weight_max_age = bmi_weight_max_age
        self._minimum_components = minimum_components
        self._sleep = SleepSessionProcessor(sleep_max_gap)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def provider(self) -> SampleProvider:
        return self._provider

    @property
    def tz(self) -> tzinfo:
        return self._tz

    def now(self) -> datetime:
        return self._clock()

    async def fetch_inputs(self, now: datetime | None = None) -> CVHInputs:
        """Read every series the score needs, concurrently."""
        now = now or self.now()
        tz = self._tz
        p = self._provider

        two_months = last(now, tz, months=2)
        exercise_window = last(now, tz, days=7, offset_days=-1)
        sleep_window = last(now, tz, days=14)

        (
            diet, lipids, nicotine, wellbeing,
            weekly_exercise, daily_steps,
            sleep_sessions,
            bmi, weight, height, glucose, blood_pressure,
        ) = await asyncio.gather(
            p.get_quantity_samples(DIET_MEPA_SCORE, two_months),
            p.get_quantity_samples(BLOOD_LIPIDS, two_months),
            p.get_quantity_samples(NICOTINE_EXPOSURE, two_months),
            p.get_quantity_samples(MENTAL_WELLBEING_SCORE, two_months),
            self._statistics.get_statistics(
                APPLE_EXERCISE_TIME, AggregationKind.SUM, WEEK_OF_DAYS, exercise_window,
            ),
            self._statistics.get_statistics(
                STEP_COUNT, AggregationKind.SUM, DAY, exercise_window,
            ),
            self.sleep_sessions(sleep_window),
            p.get_quantity_samples(BODY_MASS_INDEX, last(now, tz, days=14)),
            p.get_quantity_samples(BODY_MASS, last(now, tz, months=3)),
            p.get_quantity_samples(HEIGHT, last(now, tz, years=5)),
            p.get_quantity_samples(BLOOD_GLUCOSE, last(now, tz, days=14)),
            p.get_blood_pressure(last(now, tz, months=3)),
        )

        return CVHInputs(
            diet=diet,
            weekly_exercise_minutes=weekly_exercise,
            daily_step_counts=daily_steps,
            step_count_time_range=exercise_window,
            nicotine_exposure=nicotine,
            sleep_sessions=sleep_sessions,
            body_mass_index=bmi,
            body_mass=weight,
            height=height,
            blood_lipids=lipids,
            blood_glucose=glucose,
            blood_pressure=blood_pressure,
            mental_wellbeing=wellbeing,
        )

    async def _process_sleep(self, time_range: TimeRange) -> SleepProcessingResult:
        # Sessions crossing the window edges still need all of their samples
        samples = await self._provider.get_sleep_samples(_widen(time_range, timedelta(days=1)))
        return self._sleep.process(samples, time_range, self._tz)

    async def sleep_sessions(self, time_range: TimeRange) -> list[SleepSession]:
        """Sleep sessions whose midpoint falls in ``time_range``, oldest first."""
        return (await self._process_sleep(time_range)).sessions

    async def assess(self, now: datetime | None = None) -> CVHAssessment:
        """Fetch a fresh snapshot and evaluate all components and the composite."""
        now = now or self.now()
        inputs = await self.fetch_inputs(now)
        return assess_cvh(
            inputs,
            now,
            minimum_components=self._minimum_components,
            bmi_weight_max_age=self._bmi_weight_max_age,
        )

    async def _series(self, sample_type: SampleType, time_range: TimeRange) -> list[QuantitySample]:
        if sample_type != SLEEP_ANALYSIS:
            return await self._provider.get_quantity_samples(sample_type, time_range)
        by_day = (await self._process_sleep(time_range)).time_asleep_by_day
        return [
            QuantitySample(SLEEP_ANALYSIS, SLEEP_ANALYSIS.display_unit, seconds / 3600, noon, noon)
            for noon, seconds in sorted(by_day.items())
        ]

    async def summarize(
        self,
        sample_type: SampleType,
        time_range: TimeRange,
        config: SingleValueConfig,
    ) -> list[QuantitySample]:
        """Reduce one series over ``time_range`` according to ``config``.

        A config with steps but no final reduction yields one value per
        bucket of its last step. Sleep is summarized as hours asleep per
        night, stamped at local noon of the day the night ended.

        Raises:
            ValueError: For the blood pressure correlation type, which has
                no single value.
        """
        if sample_type == BLOOD_PRESSURE:
            raise ValueError("Blood pressure readings cannot be reduced to a single value")
        samples = await self._series(sample_type, time_range)
        if config.use_most_recent_sample or config.final is not None:
            return aggregate_single_value(samples, config, time_range, self._tz)

        *earlier, last_step = config.steps
        if earlier:
            samples = aggregate_single_value(samples, SingleValueConfig(steps=tuple(earlier)), time_range, self._tz)
        return compute_statistics(
            samples,
            config.effective_kind,
            last_step.interval,
            time_range,
            anchor=start_of_day(time_range[0], self._tz),
            tz=self._tz,
        )
