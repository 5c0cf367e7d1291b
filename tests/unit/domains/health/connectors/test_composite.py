"""Tests for the CompositeSampleProvider."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from mhc.domains.health.connectors import SampleProvider
from mhc.domains.health.connectors.composite import CompositeSampleProvider
from mhc.domains.health.connectors.providers import MockSampleProvider
from mhc.domains.health.domain_logic.sample_models import BODY_MASS, DIET_MEPA_SCORE, QuantitySample

WINDOW = (datetime(2025, 6, 1, tzinfo=timezone.utc), datetime(2025, 6, 15, tzinfo=timezone.utc))


def _run(coro):
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


class EmptyProvider:
    """Provider that returns no samples for all methods."""

    async def get_quantity_samples(self, sample_type, time_range):
        return []

    async def get_blood_pressure(self, time_range):
        return []

    async def get_sleep_samples(self, time_range):
        return []

    def is_connected(self):
        return True

    @property
    def data_source(self):
        return "empty"

    def get_provenance(self):
        return {"data_source": "empty"}


class DietOnlyProvider(EmptyProvider):
    """Connected provider holding a single diet score."""

    async def get_quantity_samples(self, sample_type, time_range):
        if sample_type != DIET_MEPA_SCORE:
            return []
        when = datetime(2025, 6, 10, tzinfo=timezone.utc)
        return [QuantitySample(DIET_MEPA_SCORE, "count", 14.0, when, when)]

    @property
    def data_source(self):
        return "custom"


class TestPriorityOrdering:
    def test_first_provider_with_data_wins(self):
        composite = CompositeSampleProvider([EmptyProvider(), MockSampleProvider()])
        weights = _run(composite.get_quantity_samples(BODY_MASS, WINDOW))
        assert len(weights) > 0

    def test_higher_priority_data_shadows_mock(self):
        composite = CompositeSampleProvider([DietOnlyProvider(), MockSampleProvider()])
        diet = _run(composite.get_quantity_samples(DIET_MEPA_SCORE, WINDOW))
        assert [s.value for s in diet] == [14.0]

    def test_falls_through_per_sample_type(self):
        composite = CompositeSampleProvider([DietOnlyProvider(), MockSampleProvider()])
        assert _run(composite.get_quantity_samples(BODY_MASS, WINDOW))

    def test_blood_pressure_and_sleep_fall_through(self):
        composite = CompositeSampleProvider([EmptyProvider(), MockSampleProvider()])
        assert _run(composite.get_blood_pressure(WINDOW))
        assert _run(composite.get_sleep_samples(WINDOW))

    def test_all_empty_returns_empty(self):
        composite = CompositeSampleProvider([EmptyProvider(), EmptyProvider()])
        assert _run(composite.get_quantity_samples(BODY_MASS, WINDOW)) == []
        assert _run(composite.get_blood_pressure(WINDOW)) == []
        assert _run(composite.get_sleep_samples(WINDOW)) == []


class TestMetadata:
    def test_requires_a_provider(self):
        with pytest.raises(ValueError, match="At least one provider"):
            CompositeSampleProvider([])

    def test_data_source_is_first_connected(self):
        composite = CompositeSampleProvider([DietOnlyProvider(), MockSampleProvider()])
        assert composite.data_source == "custom"
        assert composite.is_connected()

    def test_data_source_falls_back_to_last(self):
        composite = CompositeSampleProvider([MockSampleProvider()])
        assert composite.data_source == "mock"
        assert not composite.is_connected()

    def test_provenance_lists_priority(self):
        composite = CompositeSampleProvider([DietOnlyProvider(), MockSampleProvider()])
        provenance = composite.get_provenance()
        assert provenance["active_sources"] == "custom"
        assert "custom > mock" in provenance["data_source_note"]

    def test_satisfies_protocol(self):
        assert isinstance(CompositeSampleProvider([MockSampleProvider()]), SampleProvider)
        assert isinstance(MockSampleProvider(), SampleProvider)
