"""Custom sample provider — reads user-entered samples from the data bank (SQLite).

Users record research questionnaire results and lab values (diet score,
nicotine exposure, LDL cholesterol, ...) via MCP tools. This provider reads
the stored samples to implement SampleProvider.
"""

from __future__ import annotations

import logging

from mhc.core.storage.repository import CustomSampleRepository
from mhc.domains.health.domain_logic.sample_models import (
    BLOOD_PRESSURE_DIASTOLIC,
    BLOOD_PRESSURE_SYSTOLIC,
    BloodPressureCorrelation,
    QuantitySample,
    SampleType,
    TimeRange,
    pair_blood_pressure,
)
from mhc.domains.health.domain_logic.sleep_sessions import SleepStageSample

logger = logging.getLogger(__name__)

# Upper bound on rows pulled for a single query window
MAX_SAMPLES_PER_QUERY = 10_000


class CustomSampleProvider:
    """SampleProvider backed by samples stored in the encrypted data bank."""

    def __init__(self, repository: CustomSampleRepository) -> None:
        self._repo = repository

    async def get_quantity_samples(
        self, sample_type: SampleType, time_range: TimeRange
    ) -> list[QuantitySample]:
        """Stored samples of ``sample_type`` overlapping ``time_range``, oldest first."""
        start, end = time_range
        stored = self._repo.get_samples(
            sample_type.identifier, since=start, until=end, limit=MAX_SAMPLES_PER_QUERY,
        )
        samples = []
        for record in stored:
            sample = record.to_quantity_sample()
            if sample is None:
                logger.warning("Skipping stored sample %s of unknown type %r", record.id, record.sample_type)
                continue
            samples.append(sample)
        samples.sort(key=lambda s: s.start_date)
        return samples

    async def get_blood_pressure(self, time_range: TimeRange) -> list[BloodPressureCorrelation]:
        """Stored systolic/diastolic samples with matching dates, paired into readings."""
        systolic = await self.get_quantity_samples(BLOOD_PRESSURE_SYSTOLIC, time_range)
        diastolic = await self.get_quantity_samples(BLOOD_PRESSURE_DIASTOLIC, time_range)
        return pair_blood_pressure(systolic, diastolic)

    async def get_sleep_samples(self, time_range: TimeRange) -> list[SleepStageSample]:
        """Sleep stages are never entered by hand."""
        return []

    def is_connected(self) -> bool:
        """The data bank is always 'connected' if the repository exists."""
        return True

    @property
    def data_source(self) -> str:
        return "custom"

    def get_provenance(self) -> dict[str, str]:
        count = self._repo.count_samples()
        return {
            "data_source": self.data_source,
            "data_source_note": f"User-entered health samples ({count} stored).",
        }
