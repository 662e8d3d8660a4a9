"""Tests del cliente HTTP contra la app FastAPI en proceso."""

import pytest
from fastapi.testclient import TestClient

from analytics_core import AnalyticsService
from report_api import create_app
from report_api.client import ReportClient
from sensors import FleetSimulator, SimulatorConfig
from telemetry_store import InMemoryTelemetryRepository


NOW = 1_700_000_000


@pytest.fixture
def client():
    repository = InMemoryTelemetryRepository()
    FleetSimulator(SimulatorConfig(devices_per_fleet=3, days=1)).populate(repository, now=NOW)
    with AnalyticsService(repository, workers=3) as service:
        with TestClient(create_app(service)) as session:
            yield ReportClient("http://testserver/", session=session)


def test_health(client):
    assert client.is_healthy()


def test_reports_roundtrip(client):
    start = NOW - 86400

    health = client.health_report(start, NOW, health_threshold=100)
    leaks = client.detect_leaks(start, NOW, limit=5)
    devices = client.list_devices(fleet="gas")

    assert health["total"] == len(health["devices"])
    assert leaks["limit"] == 5
    assert devices["total"] == 3


def test_optional_arguments_are_dropped(client):
    """None no se envía: la API aplica sus valores por defecto."""
    report = client.anomalies(NOW - 86400, NOW, device_id=None)
    assert report["sensitivity"] == "medium"


def test_consumption_methods(client):
    start = NOW - 86400
    gas_region = client.list_devices(fleet="gas")["devices"][0]["region"]

    energy = client.energy_consumption(start, NOW, "LIGHT-000001")
    regional = client.regional_energy(start, NOW)
    gas = client.gas_consumption(start, NOW, gas_region)
    efficiency = client.energy_efficiency(start, NOW, include_recommendations=False)

    assert energy["deviceId"] == "LIGHT-000001"
    assert energy["readingCount"] == 24
    assert regional["deviceCount"] == 3
    assert gas["region"] == gas_region
    assert gas["deviceCount"] >= 1
    assert efficiency["summary"]["totalDevices"] == 3
    assert efficiency["recommendations"] == []


def test_telemetry_and_water_methods(client):
    start = NOW - 86400

    telemetry = client.lighting_telemetry(start, NOW, "LIGHT-000002", limit=5)
    quality = client.water_quality(start, NOW, include_alerts=False)
    leaks = client.detect_leaks(start, NOW, region="Atlantis")

    timestamps = [r["timestamp"] for r in telemetry["readings"]]
    assert timestamps == sorted(timestamps)
    assert (telemetry["total"], len(timestamps)) == (24, 5)
    assert sum(r["deviceCount"] for r in quality["regions"]) == 3
    assert quality["alerts"] == []
    assert (leaks["total"], leaks["affectedDevices"]) == (0, 0)