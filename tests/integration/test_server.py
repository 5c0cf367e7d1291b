"""Integration tests for the MHC Cardiovascular Health MCP server."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta, timezone

import pytest
from fastmcp import Client

from mhc.core.config.settings import Settings
from mhc.core.server.app import create_app

FIXED_NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio required)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def _payload(result) -> dict:
    return json.loads(result.content[0].text)


SCORE_TOOLS = [
    "health_check",
    "cardiovascular_health_score",
    "health_sample_summary",
]

STORAGE_TOOLS = [
    "record_custom_sample",
    "list_custom_samples",
    "delete_custom_sample",
    "purge_custom_samples",
]


@pytest.fixture
def client():
    """MCP client on a mock-data server without storage."""
    mcp = create_app(clock=lambda: FIXED_NOW, settings=Settings(_env_file=None))
    return Client(mcp)


@pytest.fixture
def storage_client(sample_repository):
    """MCP client on a server backed by an in-memory data bank."""
    mcp = create_app(
        repository_override=sample_repository,
        clock=lambda: FIXED_NOW,
        settings=Settings(_env_file=None),
    )
    return Client(mcp)


class TestToolRegistration:
    def test_score_tools_listed(self, client):
        async def _check():
            async with client:
                names = [t.name for t in await client.list_tools()]
                for expected in SCORE_TOOLS:
                    assert expected in names, f"Missing tool: {expected}"
                for absent in STORAGE_TOOLS:
                    assert absent not in names
        _run(_check())

    def test_storage_tools_listed_with_repository(self, storage_client):
        async def _check():
            async with storage_client:
                names = [t.name for t in await storage_client.list_tools()]
                for expected in SCORE_TOOLS + STORAGE_TOOLS:
                    assert expected in names, f"Missing tool: {expected}"
        _run(_check())


class TestHealthCheck:
    def test_returns_ok(self, client):
        async def _check():
            async with client:
                data = _payload(await client.call_tool("health_check", {}))
                assert data["status"] == "ok"
                assert data["data_source"] == "mock"
                assert data["storage_enabled"] is False
                assert data["timezone"] == "UTC"
        _run(_check())

    def test_reports_stored_samples(self, storage_client):
        async def _check():
            async with storage_client:
                data = _payload(await storage_client.call_tool("health_check", {}))
                assert data["storage_enabled"] is True
                assert data["custom_samples_stored"] == 0
                assert data["data_source"] == "custom"
        _run(_check())


class TestCardiovascularHealthScore:
    def test_mock_score(self, client):
        async def _check():
            async with client:
                data = _payload(await client.call_tool("cardiovascular_health_score", {}))
                assert data["status"] == "ok"
                assert data["score"] == pytest.approx(0.7625)
                assert data["available_components"] == 8
                assert data["components"]["blood_glucose"]["score"] == 0.5
                assert data["mental_wellbeing"]["score"] == 0.8
                assert data["provenance"]["data_source"] == "mock"
                assert data["generated_at"] == FIXED_NOW.isoformat()
                assert "explainers" not in data
        _run(_check())

    def test_explainers(self, client):
        async def _check():
            async with client:
                data = _payload(await client.call_tool(
                    "cardiovascular_health_score", {"include_explainers": True},
                ))
                diet = data["explainers"]["diet"]
                assert diet["bands"][0] == {"range": "15 – 16", "score": 100}
                assert data["explainers"]["blood_glucose"]["bands"] == []
        _run(_check())

    def test_recorded_sample_overrides_mock(self, storage_client):
        async def _check():
            async with storage_client:
                saved = _payload(await storage_client.call_tool("record_custom_sample", {
                    "sample_type": "nicotineExposure",
                    "value": 0,
                    "start_date": "2025-06-14T10:00:00",
                }))
                assert saved["status"] == "saved"
                data = _payload(await storage_client.call_tool("cardiovascular_health_score", {}))
                assert data["components"]["nicotine_exposure"]["score"] == 1.0
                assert data["score"] == pytest.approx((6.1 - 0.75 + 1.0) / 8)
        _run(_check())


class TestHealthSampleSummary:
    def test_daily_step_sums(self, client):
        async def _check():
            async with client:
                data = _payload(await client.call_tool("health_sample_summary", {
                    "sample_type": "HKQuantityTypeIdentifierStepCount",
                    "days": 3,
                    "aggregation": "sum",
                    "interval": "day",
                }))
                assert data["status"] == "ok"
                assert data["count"] == 3
                assert data["unit"] == "count"
                assert data["start_date"] == "2025-06-13T00:00:00+00:00"
        _run(_check())

    def test_most_recent_weight(self, client):
        async def _check():
            async with client:
                data = _payload(await client.call_tool("health_sample_summary", {
                    "sample_type": "HKQuantityTypeIdentifierBodyMass",
                    "days": 30,
                }))
                assert data["count"] == 1
                assert data["display_title"] == "Body Weight"
        _run(_check())

    def test_average_over_window(self, client):
        async def _check():
            async with client:
                data = _payload(await client.call_tool("health_sample_summary", {
                    "sample_type": "HKQuantityTypeIdentifierBloodGlucose",
                    "days": 14,
                    "aggregation": "average",
                }))
                assert data["count"] == 1
                assert 90 <= data["values"][0]["value"] <= 97
        _run(_check())

    def test_unknown_sample_type(self, client):
        async def _check():
            async with client:
                data = _payload(await client.call_tool("health_sample_summary", {"sample_type": "vo2max"}))
                assert data["status"] == "error"
                assert "bloodLipids" in data["valid_sample_types"]
        _run(_check())

    @pytest.mark.parametrize("args,message", [
        ({"days": 0}, "days"),
        ({"aggregation": "median"}, "aggregation"),
        ({"interval": "day"}, "most_recent"),
        ({"aggregation": "sum", "interval": "fortnight"}, "interval"),
    ])
    def test_invalid_arguments(self, client, args, message):
        async def _check():
            async with client:
                data = _payload(await client.call_tool("health_sample_summary", {
                    "sample_type": "HKQuantityTypeIdentifierStepCount", **args,
                }))
                assert data["status"] == "error"
                assert message in data["message"]
        _run(_check())

    def test_blood_pressure_not_summarized(self, client):
        async def _check():
            async with client:
                data = _payload(await client.call_tool("health_sample_summary", {
                    "sample_type": "HKCorrelationTypeIdentifierBloodPressure",
                }))
                assert data["status"] == "error"
        _run(_check())


class TestCustomSampleTools:
    def test_record_converts_units(self, storage_client):
        async def _check():
            async with storage_client:
                data = _payload(await storage_client.call_tool("record_custom_sample", {
                    "sample_type": "HKQuantityTypeIdentifierBodyMass",
                    "value": 165,
                    "unit": "lb",
                    "start_date": "2025-06-14T07:00:00+00:00",
                }))
                assert data["status"] == "saved"
                assert data["unit"] == "kg"
                assert data["value"] == pytest.approx(74.84, abs=0.01)
                assert data["end_date"] == data["start_date"]
        _run(_check())

    @pytest.mark.parametrize("args,message", [
        ({"sample_type": "heartRate", "value": 60}, "Cannot record"),
        ({"sample_type": "bloodLipids", "value": 3.1, "unit": "mmHg"}, "Unsupported unit"),
        ({"sample_type": "HKQuantityTypeIdentifierBloodPressureSystolic", "value": "nan"}, "finite"),
        ({"sample_type": "bloodLipids", "value": "inf"}, "finite"),
        ({"sample_type": "nicotineExposure", "value": 2.5}, "0 to 4"),
        ({"sample_type": "nicotineExposure", "value": 7}, "0 to 4"),
        ({"sample_type": "dietMEPAScore", "value": 12, "start_date": "last tuesday"}, "ISO 8601"),
        ({"sample_type": "dietMEPAScore", "value": 12,
          "start_date": "2025-06-14T10:00:00", "end_date": "2025-06-14T09:00:00"}, "end_date"),
    ])
    def test_record_validation(self, storage_client, args, message):
        async def _check():
            async with storage_client:
                data = _payload(await storage_client.call_tool("record_custom_sample", args))
                assert data["status"] == "error"
                assert message in data["message"]
        _run(_check())

    def test_recorded_samples_reduced_per_bucket(self, storage_client):
        async def _check():
            async with storage_client:
                for hour, kg in ((7, 70.0), (9, 72.0)):
                    await storage_client.call_tool("record_custom_sample", {
                        "sample_type": "HKQuantityTypeIdentifierBodyMass",
                        "value": kg,
                        "start_date": f"2025-06-14T{hour:02d}:00:00+00:00",
                    })
                data = _payload(await storage_client.call_tool("health_sample_summary", {
                    "sample_type": "HKQuantityTypeIdentifierBodyMass",
                    "days": 3,
                    "aggregation": "max",
                    "interval": "day",
                }))
                assert data["count"] == 1
                assert data["values"][0]["value"] == 72.0
                assert data["values"][0]["start_date"] == "2025-06-14T00:00:00+00:00"
        _run(_check())

    def test_list_and_delete(self, storage_client):
        async def _check():
            async with storage_client:
                saved = _payload(await storage_client.call_tool("record_custom_sample", {
                    "sample_type": "bloodLipids", "value": 3.0, "unit": "mmol/L",
                }))
                listed = _payload(await storage_client.call_tool("list_custom_samples", {
                    "sample_type": "bloodLipids",
                }))
                assert listed["count"] == 1
                assert listed["samples"][0]["id"] == saved["id"]
                assert listed["samples"][0]["value"] == pytest.approx(116.01)

                deleted = _payload(await storage_client.call_tool("delete_custom_sample", {
                    "sample_id": saved["id"],
                }))
                assert deleted["status"] == "deleted"
                again = _payload(await storage_client.call_tool("delete_custom_sample", {
                    "sample_id": saved["id"],
                }))
                assert again["status"] == "not_found"
        _run(_check())

    def test_list_unknown_type(self, storage_client):
        async def _check():
            async with storage_client:
                data = _payload(await storage_client.call_tool("list_custom_samples", {"sample_type": "x"}))
                assert data["status"] == "error"
        _run(_check())

    def test_purge_older_than(self, storage_client):
        now = datetime.now(timezone.utc)

        async def _check():
            async with storage_client:
                for when in (now - timedelta(days=400), now - timedelta(days=2)):
                    await storage_client.call_tool("record_custom_sample", {
                        "sample_type": "dietMEPAScore", "value": 12, "start_date": when.isoformat(),
                    })
                data = _payload(await storage_client.call_tool("purge_custom_samples", {
                    "older_than_days": 365,
                }))
                assert data["status"] == "purged"
                assert data["samples_deleted"] == 1
        _run(_check())

    def test_purge_all_requires_confirmation(self, storage_client):
        async def _check():
            async with storage_client:
                await storage_client.call_tool("record_custom_sample", {
                    "sample_type": "dietMEPAScore", "value": 12,
                })
                cancelled = _payload(await storage_client.call_tool("purge_custom_samples", {
                    "older_than_days": None,
                }))
                assert cancelled["status"] == "cancelled"

                purged = _payload(await storage_client.call_tool("purge_custom_samples", {
                    "older_than_days": None, "confirm": "DELETE_ALL",
                }))
                assert purged["status"] == "all_deleted"
                assert purged["samples_deleted"] == 1
        _run(_check())

    def test_purge_rejects_non_positive_days(self, storage_client):
        async def _check():
            async with storage_client:
                data = _payload(await storage_client.call_tool("purge_custom_samples", {
                    "older_than_days": 0,
                }))
                assert data["status"] == "error"
        _run(_check())
