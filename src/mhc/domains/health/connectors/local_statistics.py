"""Statistics computed locally from a SampleProvider's raw samples."""

from __future__ import annotations

from datetime import datetime, timezone, tzinfo

from mhc.domains.health.connectors import SampleProvider
from mhc.domains.health.domain_logic.aggregation import (
    AggregationInterval,
    AggregationKind,
    compute_statistics,
)
from mhc.domains.health.domain_logic.sample_models import QuantitySample, SampleType, TimeRange


class LocalStatisticsProvider:
    """StatisticsProvider that buckets raw samples in-process.

    Usage::

        stats = LocalStatisticsProvider(provider, tz=ZoneInfo("Europe/London"))
        daily_steps = await stats.get_statistics(STEP_COUNT, AggregationKind.SUM, DAY, time_range)
    """

    def __init__(self, provider: SampleProvider, tz: tzinfo = timezone.utc) -> None:
        self._provider = provider
        self._tz = tz

    async def get_statistics(
        self,
        sample_type: SampleType,
        kind: AggregationKind,
        interval: AggregationInterval,
        time_range: TimeRange,
        anchor: datetime | None = None,
    ) -> list[QuantitySample]:
        samples = await self._provider.get_quantity_samples(sample_type, time_range)
        return compute_statistics(samples, kind, interval, time_range, anchor, self._tz)
