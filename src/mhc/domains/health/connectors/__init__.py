"""Health sample connectors — abstraction layer for sample retrieval."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from mhc.domains.health.domain_logic.aggregation import AggregationInterval, AggregationKind
from mhc.domains.health.domain_logic.sample_models import (
    BloodPressureCorrelation,
    QuantitySample,
    SampleType,
    TimeRange,
)
from mhc.domains.health.domain_logic.sleep_sessions import SleepStageSample


@runtime_checkable
class SampleProvider(Protocol):
    """Abstract interface for health sample retrieval.

    Scoring code calls these methods without knowing whether samples come
    from an Apple Health export, the custom sample store, or mock generators.
    Every method returns a fresh snapshot ordered by start date, containing
    the samples that overlap ``time_range``.
    """

    async def get_quantity_samples(
        self, sample_type: SampleType, time_range: TimeRange
    ) -> list[QuantitySample]:
        """Quantity samples of ``sample_type``, values in its display unit."""
        ...

    async def get_blood_pressure(self, time_range: TimeRange) -> list[BloodPressureCorrelation]:
        """Blood pressure readings (systolic/diastolic correlations)."""
        ...

    async def get_sleep_samples(self, time_range: TimeRange) -> list[SleepStageSample]:
        """Raw sleep-stage samples."""
        ...

    def is_connected(self) -> bool:
        """Whether real health data is available."""
        ...

    @property
    def data_source(self) -> str:
        """Label for the active data source: 'apple_health', 'custom', or 'mock'."""
        ...

    def get_provenance(self) -> dict[str, str]:
        """Return provenance metadata suitable for merging into tool output."""
        ...


@runtime_checkable
class StatisticsProvider(Protocol):
    """Bucketed statistics (one reduced sample per non-empty interval)."""

    async def get_statistics(
        self,
        sample_type: SampleType,
        kind: AggregationKind,
        interval: AggregationInterval,
        time_range: TimeRange,
        anchor: datetime | None = None,
    ) -> list[QuantitySample]:
        ...
