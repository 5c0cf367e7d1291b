"""Sleep sessions derived from raw sleep-stage samples.

Sleep analysis samples arrive as a flat list of stage intervals (in bed,
core, deep, REM, awake, ...), possibly from several sources. A session is a
contiguous run of such samples; a gap longer than ``max_gap`` starts a new
session. Time asleep is the union of the asleep-stage intervals, so
overlapping samples from two devices are not double counted.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone, tzinfo
from enum import Enum
from typing import Iterable

from mhc.domains.health.domain_logic.sample_models import InvalidSampleError, TimeRange

logger = logging.getLogger(__name__)

DEFAULT_MAX_GAP = timedelta(hours=1)


class SleepStage(str, Enum):
    IN_BED = "HKCategoryValueSleepAnalysisInBed"
    ASLEEP_UNSPECIFIED = "HKCategoryValueSleepAnalysisAsleepUnspecified"
    AWAKE = "HKCategoryValueSleepAnalysisAwake"
    ASLEEP_CORE = "HKCategoryValueSleepAnalysisAsleepCore"
    ASLEEP_DEEP = "HKCategoryValueSleepAnalysisAsleepDeep"
    ASLEEP_REM = "HKCategoryValueSleepAnalysisAsleepREM"

    @property
    def is_asleep(self) -> bool:
        return self not in (SleepStage.IN_BED, SleepStage.AWAKE)

    @classmethod
    def from_healthkit_value(cls, value: str) -> SleepStage | None:
        # Older exports use "HKCategoryValueSleepAnalysisAsleep" for unspecified sleep.
        if value == "HKCategoryValueSleepAnalysisAsleep":
            return cls.ASLEEP_UNSPECIFIED
        try:
            return cls(value)
        except ValueError:
            return None


@dataclass(frozen=True)
class SleepStageSample:
    start_date: datetime
    end_date: datetime
    stage: SleepStage
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    def __post_init__(self) -> None:
        if self.end_date < self.start_date:
            raise InvalidSampleError("Sleep sample end date is before its start date")

    @property
    def time_range(self) -> TimeRange:
        return (self.start_date, self.end_date)


def _union_seconds(intervals: Iterable[TimeRange]) -> float:
    total = 0.0
    current_start: datetime | None = None
    current_end: datetime | None = None
    for start, end in sorted(intervals):
        if current_end is None or start > current_end:
            if current_end is not None:
                total += (current_end - current_start).total_seconds()
            current_start, current_end = start, end
        else:
            current_end = max(current_end, end)
    if current_end is not None:
        total += (current_end - current_start).total_seconds()
    return total


@dataclass(frozen=True)
class SleepSession:
    """A contiguous run of sleep-stage samples, treated as one night."""

    samples: tuple[SleepStageSample, ...]

    @property
    def start_date(self) -> datetime:
        return min(s.start_date for s in self.samples)

    @property
    def end_date(self) -> datetime:
        return max(s.end_date for s in self.samples)

    @property
    def time_range(self) -> TimeRange:
        return (self.start_date, self.end_date)

    @property
    def middle(self) -> datetime:
        return self.start_date + (self.end_date - self.start_date) / 2

    @property
    def total_time_asleep(self) -> float:
        """Seconds spent in any asleep stage."""
        return _union_seconds(s.time_range for s in self.samples if s.stage.is_asleep)


def split_into_sleep_sessions(
    samples: Iterable[SleepStageSample],
    max_gap: timedelta = DEFAULT_MAX_GAP,
) -> list[SleepSession]:
    """Group samples into sessions, oldest first."""
    sessions: list[SleepSession] = []
    current: list[SleepStageSample] = []
    current_end: datetime | None = None

    for sample in sorted(samples, key=lambda s: (s.start_date, s.end_date)):
        if current_end is not None and sample.start_date - current_end > max_gap:
            sessions.append(SleepSession(tuple(current)))
            current = []
            current_end = None
        current.append(sample)
        current_end = sample.end_date if current_end is None else max(current_end, sample.end_date)

    if current:
        sessions.append(SleepSession(tuple(current)))
    return sessions


@dataclass(frozen=True)
class SleepProcessingResult:
    sessions: list[SleepSession]
    # key: local noon of the day a session ended; value: seconds asleep
    time_asleep_by_day: dict[datetime, float]


class SleepSessionProcessor:
    """Turns sleep-stage samples into sessions for a time range.

    Repeated calls with identical input return the previous result without
    recomputing.

    Usage::

        processor = SleepSessionProcessor()
        result = processor.process(samples, (start, end))
        last_night = result.sessions[-1] if result.sessions else None
    """

    def __init__(self, max_gap: timedelta = DEFAULT_MAX_GAP) -> None:
        self._max_gap = max_gap
        self._last_key: tuple | None = None
        self._last_result: SleepProcessingResult | None = None

    def process(
        self,
        samples: Iterable[SleepStageSample],
        time_range: TimeRange,
        tz: tzinfo = timezone.utc,
    ) -> SleepProcessingResult:
        samples = tuple(samples)
        key = (samples, time_range, tz)
        if self._last_result is not None and key == self._last_key:
            return self._last_result

        start, end = time_range
        sessions = [
            session
            for session in split_into_sleep_sessions(samples, self._max_gap)
            if start <= session.middle < end
        ]
        by_day: dict[datetime, float] = {}
        for session in sessions:
            local_end = session.end_date.astimezone(tz)
            noon = datetime(local_end.year, local_end.month, local_end.day, 12, tzinfo=tz)
            by_day[noon] = by_day.get(noon, 0.0) + session.total_time_asleep

        result = SleepProcessingResult(sessions=sessions, time_asleep_by_day=by_day)
        logger.debug("Split %d sleep samples into %d sessions", len(samples), len(sessions))
        self._last_key = key
        self._last_result = result
        return result
