"""Composite sample provider — merges multiple sources with priority.

Priority order: apple_health > custom > mock.
Each provider method queries sources in priority order, returning the first
non-empty result. Custom research samples (diet, nicotine, lipids) only
exist in the data bank, so they come through even when an Apple Health
export is connected; mock data is the fallback for everything.
"""

from __future__ import annotations

import logging

from mhc.domains.health.connectors import SampleProvider
from mhc.domains.health.domain_logic.sample_models import (
    BloodPressureCorrelation,
    QuantitySample,
    SampleType,
    TimeRange,
)
from mhc.domains.health.domain_logic.sleep_sessions import SleepStageSample

logger = logging.getLogger(__name__)


class CompositeSampleProvider:
    """Merges multiple SampleProviders with priority ordering.

    Usage::

        composite = CompositeSampleProvider([
            apple_health_provider,  # Highest priority
            custom_provider,        # Middle priority
            mock_provider,          # Fallback
        ])
        weights = await composite.get_quantity_samples(BODY_MASS, time_range)
    """

    def __init__(self, providers: list[SampleProvider]) -> None:
        """Initialize with providers in priority order (highest first).

        Args:
            providers: Ordered list of SampleProviders. First provider
                with data wins for each method call.
        """
        if not providers:
            raise ValueError("At least one provider is required")
        self._providers = providers

    async def get_quantity_samples(
        self, sample_type: SampleType, time_range: TimeRange
    ) -> list[QuantitySample]:
        """Return samples from the highest-priority provider with data."""
        for provider in self._providers:
            result = await provider.get_quantity_samples(sample_type, time_range)
            if result:
                logger.debug("%s samples served by %s", sample_type.identifier, provider.data_source)
                return result
        return []

    async def get_blood_pressure(self, time_range: TimeRange) -> list[BloodPressureCorrelation]:
        """Return blood pressure readings from the highest-priority provider with data."""
        for provider in self._providers:
            result = await provider.get_blood_pressure(time_range)
            if result:
                return result
        return []

    async def get_sleep_samples(self, time_range: TimeRange) -> list[SleepStageSample]:
        """Return sleep samples from the highest-priority provider with data."""
        for provider in self._providers:
            result = await provider.get_sleep_samples(time_range)
            if result:
                return result
        return []

    def is_connected(self) -> bool:
        """True if any provider is connected."""
        return any(p.is_connected() for p in self._providers)

    @property
    def data_source(self) -> str:
        """Return the data source of the first connected provider."""
        for provider in self._providers:
            if provider.is_connected():
                return provider.data_source
        return self._providers[-1].data_source

    def get_provenance(self) -> dict[str, str]:
        """Return provenance info including all active sources."""
        active = [
            p.data_source for p in self._providers if p.is_connected()
        ]
        return {
            "data_source": self.data_source,
            "active_sources": ", ".join(active) if active else "none",
            "data_source_note": (
                f"Composite provider with {len(active)} active source(s). "
                f"Priority: {' > '.join(p.data_source for p in self._providers)}."
            ),
        }
