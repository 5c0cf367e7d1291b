"""Concrete SampleProvider implementations."""

from __future__ import annotations

from mhc.domains.health.connectors.mock_data import (
    get_mock_blood_pressure,
    get_mock_quantity_samples,
    get_mock_sleep_samples,
)
from mhc.domains.health.domain_logic.sample_models import (
    BloodPressureCorrelation,
    QuantitySample,
    SampleType,
    TimeRange,
)
from mhc.domains.health.domain_logic.sleep_sessions import SleepStageSample


class MockSampleProvider:
    """Uses mock data generators. Always available."""

    async def get_quantity_samples(
        self, sample_type: SampleType, time_range: TimeRange
    ) -> list[QuantitySample]:
        return get_mock_quantity_samples(sample_type, time_range)

    async def get_blood_pressure(self, time_range: TimeRange) -> list[BloodPressureCorrelation]:
        return get_mock_blood_pressure(time_range)

    async def get_sleep_samples(self, time_range: TimeRange) -> list[SleepStageSample]:
        return get_mock_sleep_samples(time_range)

    def is_connected(self) -> bool:
        return False

    @property
    def data_source(self) -> str:
        return "mock"

    def get_provenance(self) -> dict[str, str]:
        return {
            "data_source": self.data_source,
            "data_source_note": (
                "Using simulated health data. "
                "Connect a health data source for real measurements."
            ),
        }
