"""Time-series aggregation of quantity samples over calendar intervals.

Samples are bucketed into consecutive calendar windows (hour, day, week,
month, ...) starting at an anchor date. Buckets are computed with wall-clock
arithmetic in the caller's time zone, so a "day" bucket spans local midnight
to local midnight even across DST changes.

For cumulative (sum) aggregation a sample that only partially overlaps a
bucket contributes ``value * sample_duration / bucket_duration`` to it, with
its dates clipped to the bucket. This ratio is kept as-is: dashboard totals
depend on it.
"""

from __future__ import annotations

import calendar
import logging
import statistics
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from enum import Enum
from typing import Iterable, Sequence

from mhc.domains.health.domain_logic.sample_models import (
    QuantitySample,
    TimeRange,
    most_recent,
)

logger = logging.getLogger(__name__)


class AggregationKind(str, Enum):
    SUM = "sum"
    AVERAGE = "average"
    MIN = "min"
    MAX = "max"

    def reduce(self, values: Sequence[float]) -> float:
        """Collapse ``values`` (must be non-empty) into one number."""
        if self is AggregationKind.SUM:
            return sum(values)
        if self is AggregationKind.AVERAGE:
            return statistics.fmean(values)
        if self is AggregationKind.MIN:
            return min(values)
        return max(values)


@dataclass(frozen=True)
class AggregationInterval:
    """A calendar duration. Months/years are applied before weeks/days, hours last."""

    years: int = 0
    months: int = 0
    weeks: int = 0
    days: int = 0
    hours: int = 0

    def __post_init__(self) -> None:
        parts = (self.years, self.months, self.weeks, self.days, self.hours)
        if any(p < 0 for p in parts) or not any(parts):
            raise ValueError(f"Aggregation interval must be positive: {self!r}")

    def add_to(self, date: datetime, tz: tzinfo, count: int = 1) -> datetime:
        """Return ``date`` advanced by ``count`` times this interval in ``tz``."""
        local = date.astimezone(tz).replace(tzinfo=None)

        months = (self.years * 12 + self.months) * count
        if months:
            year_offset, month_index = divmod(local.month - 1 + months, 12)
            year = local.year + year_offset
            month = month_index + 1
            day = min(local.day, calendar.monthrange(year, month)[1])
            local = local.replace(year=year, month=month, day=day)

        local = local + timedelta(days=(self.weeks * 7 + self.days) * count)
        result = local.replace(tzinfo=tz)

        if self.hours:
            result = (result.astimezone(timezone.utc) + timedelta(hours=self.hours * count)).astimezone(tz)
        return result


HOUR = AggregationInterval(hours=1)
DAY = AggregationInterval(days=1)
WEEK = AggregationInterval(weeks=1)
MONTH = AggregationInterval(months=1)
YEAR = AggregationInterval(years=1)

INTERVALS_BY_NAME = {"hour": HOUR, "day": DAY, "week": WEEK, "month": MONTH, "year": YEAR}


@dataclass(frozen=True)
class AggregationStrategy:
    """How samples are reduced (``kind``) and over which windows (``interval``)."""

    kind: AggregationKind
    interval: AggregationInterval


def start_of_day(date: datetime, tz: tzinfo) -> datetime:
    """Local midnight of ``date``'s day in ``tz``."""
    local = date.astimezone(tz)
    return datetime(local.year, local.month, local.day, tzinfo=tz)


def bucket_ranges(
    anchor: datetime,
    interval: AggregationInterval,
    end: datetime,
    tz: tzinfo,
) -> list[TimeRange]:
    """Consecutive ``[boundary, boundary + interval)`` windows from ``anchor`` up to ``end``.

    The anchor's own bucket is always included; later boundaries are included
    while they fall before ``end``.
    """
    ranges: list[TimeRange] = []
    count = 0
    while True:
        start = interval.add_to(anchor, tz, count)
        if count > 0 and start >= end:
            break
        ranges.append((start, interval.add_to(start, tz)))
        count += 1
    return ranges


def _falls_into(sample: QuantitySample, start: datetime, stop: datetime) -> bool:
    if sample.is_point_in_time:
        return start <= sample.start_date < stop
    return sample.start_date < stop and start < sample.end_date


def _bucket_contents(
    samples: Iterable[QuantitySample],
    kind: AggregationKind,
    start: datetime,
    stop: datetime,
) -> list[QuantitySample]:
    bucket_seconds = (stop - start).total_seconds()
    if bucket_seconds <= 0:
        return []

    result: list[QuantitySample] = []
    for sample in samples:
        if not _falls_into(sample, start, stop):
            continue
        if kind is not AggregationKind.SUM:
            result.append(sample)
        elif sample.is_point_in_time or (start <= sample.start_date and sample.end_date < stop):
            result.append(sample)
        else:
            overlap = sample.duration_seconds / bucket_seconds
            result.append(sample.with_value(
                sample.value * overlap,
                start_date=max(sample.start_date, start),
                end_date=min(sample.end_date, stop),
            ))
    return result


def aggregate(
    samples: Iterable[QuantitySample],
    strategy: AggregationStrategy,
    anchor: datetime,
    overall_time_range: TimeRange,
    tz: tzinfo = timezone.utc,
) -> list[QuantitySample]:
    """Bucket ``samples`` into calendar windows and return the per-bucket samples in order.

    Average/min/max pass matching samples through unchanged; the reduction
    happens later (see :func:`aggregate_single_value`). Sum scales samples that
    only partially overlap a bucket.
    """
    samples = list(samples)
    if not samples:
        return []

    seen: set[uuid.UUID] = set()
    result: list[QuantitySample] = []
    for start, stop in bucket_ranges(anchor, strategy.interval, overall_time_range[1], tz):
        for sample in _bucket_contents(samples, strategy.kind, start, stop):
            if sample.id in seen:
                logger.debug(
                    "Sample %s spans multiple %s buckets (%s – %s)",
                    sample.id, strategy.kind.value, sample.start_date, sample.end_date,
                )
            seen.add(sample.id)
            result.append(sample)
    return result


def compute_statistics(
    samples: Iterable[QuantitySample],
    kind: AggregationKind,
    interval: AggregationInterval,
    time_range: TimeRange,
    anchor: datetime | None = None,
    tz: tzinfo = timezone.utc,
) -> list[QuantitySample]:
    """One reduced sample per non-empty bucket, spanning that bucket."""
    samples = list(samples)
    if not samples:
        return []

    first = samples[0]
    stats: list[QuantitySample] = []
    for start, stop in bucket_ranges(anchor or time_range[0], interval, time_range[1], tz):
        contents = _bucket_contents(samples, kind, start, stop)
        if not contents:
            continue
        stats.append(QuantitySample(
            sample_type=first.sample_type,
            unit=first.unit,
            value=kind.reduce([s.value for s in contents]),
            start_date=start,
            end_date=stop,
        ))
    return stats


# ---------------------------------------------------------------------------
# Single-value reduction
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SingleValueConfig:
    """How a whole series is reduced to the one value shown on a dashboard tile."""

    steps: tuple[AggregationStrategy, ...] = ()
    final: AggregationKind | None = None
    use_most_recent_sample: bool = False

    @classmethod
    def most_recent_sample(cls) -> SingleValueConfig:
        return cls(use_most_recent_sample=True)

    @classmethod
    def aggregated(
        cls,
        *steps: AggregationStrategy,
        final: AggregationKind | None = None,
    ) -> SingleValueConfig:
        if not steps and final is None:
            raise ValueError("An aggregated config needs at least one step or a final reduction")
        return cls(steps=tuple(steps), final=final)

    @property
    def effective_kind(self) -> AggregationKind | None:
        if self.use_most_recent_sample:
            return None
        return self.final or self.steps[-1].kind


def aggregate_single_value(
    samples: Iterable[QuantitySample],
    config: SingleValueConfig,
    overall_time_range: TimeRange,
    tz: tzinfo = timezone.utc,
) -> list[QuantitySample]:
    """Reduce a series according to ``config``.

    Returns the most recent sample, the last intermediate bucketed series (no
    final step), or a single synthetic sample (with a final step). Empty input
    gives an empty list.
    """
    samples = list(samples)
    if not samples:
        return []
    first = samples[0]

    if config.use_most_recent_sample:
        return [most_recent(samples)]

    anchor = start_of_day(overall_time_range[0], tz)
    for step in config.steps:
        samples = aggregate(samples, step, anchor, overall_time_range, tz)

    if config.final is None or not samples:
        return samples

    return [QuantitySample(
        sample_type=first.sample_type,
        unit=first.unit,
        value=config.final.reduce([s.value for s in samples]),
        start_date=min(s.start_date for s in samples),
        end_date=max(s.end_date for s in samples),
    )]
