"""
Tests unitarios para DashboardComposer.
"""

import json
import time

import pytest

from analytics_core.dashboard_composer import DashboardComposer
from analytics_core.errors import InvalidParameter, RepositoryTimeout
from analytics_core.models import Fleet, Reading
from telemetry_store import InMemoryTelemetryRepository


NOW = 1_700_000_000


def troubled_city():
    """Iluminación con baja disponibilidad y calor; agua con fuga y batería baja."""
    return {
        Fleet.LIGHTING: [
            Reading("LIGHT-000001", NOW - 3600 * i, state=i % 2, temp=40.0, energy_acc=30.0 - 10 * i)
            for i in range(4)
        ],
        Fleet.WATER: [
            Reading("WATER-000001", NOW - 300, battery=90.0, consumption=1.0, pressure=3.0, leak_detected=False),
            Reading("WATER-000001", NOW - 200, battery=15.0, consumption=2.0, pressure=3.0, leak_detected=True),
            Reading("WATER-000001", NOW - 100, battery=60.0, consumption=4.0, pressure=3.0, leak_detected=False),
        ],
        Fleet.GAS: [
            Reading("GAS-000001", NOW - 300, battery=90.0, consumption=0.5, pressure=0.8, leak_detected=False),
            Reading("GAS-000001", NOW - 100, battery=90.0, consumption=1.0, pressure=0.8, leak_detected=False),
        ],
    }


def healthy_city():
    readings = troubled_city()
    readings[Fleet.LIGHTING] = [
        Reading("LIGHT-000001", NOW - 3600 * i, state=1, temp=25.0, energy_acc=30.0 - 10 * i)
        for i in range(4)
    ]
    readings[Fleet.WATER] = [
        Reading("WATER-000001", NOW - 100 * i, battery=90.0, consumption=5.0 - i, leak_detected=False)
        for i in range(3)
    ]
    return readings


class TestCompose:
    """Snapshot completo."""

    @pytest.fixture
    def composer(self):
        return DashboardComposer()

    def test_overview_and_totals(self, composer):
        repo = InMemoryTelemetryRepository(readings=troubled_city())

        snapshot = composer.compose(repo, "day", now=NOW)

        assert snapshot.window.to_dict() == {"start": NOW - 86400, "end": NOW}
        assert snapshot.overview["lighting"] == {
            "deviceCount": 1,
            "totalEnergyConsumption": 30.0,
            "avgTemperature": 40.0,
            "uptimePercentage": 50.0,
        }
        assert snapshot.overview["water"]["leakCount"] == 1
        assert snapshot.overview["water"]["lowBatteryCount"] == 1
        assert snapshot.totals == {
            "devices": 3,
            "energyConsumption": 30.0,
            "waterConsumption": 3.0,
            "gasConsumption": 0.5,
            "totalLeaks": 1,
            "lowBatteryDevices": 1,
        }

    def test_alerts_in_fixed_order(self, composer):
        repo = InMemoryTelemetryRepository(readings=troubled_city())

        alerts = composer.compose(repo, "day", now=NOW).alerts

        assert [a.type for a in alerts["critical"]] == ["leaks", "lighting_uptime"]
        assert [a.type for a in alerts["warning"]] == ["low_battery", "lighting_temperature"]
        assert alerts["info"] == []

    def test_deterministic_output(self, composer):
        repo = InMemoryTelemetryRepository(readings=troubled_city())

        first = composer.compose(repo, "day", now=NOW).to_dict()
        second = composer.compose(repo, "day", now=NOW).to_dict()

        assert json.dumps(first, sort_keys=True) == json.dumps(second, sort_keys=True)

    def test_healthy_city_has_no_alerts(self, composer):
        repo = InMemoryTelemetryRepository(readings=healthy_city())

        alerts = composer.compose(repo, "day", now=NOW).alerts

        assert alerts == {"critical": [], "warning": [], "info": []}

    def test_time_range_limits_window(self, composer):
        repo = InMemoryTelemetryRepository(readings=troubled_city())

        snapshot = composer.compose(repo, "hour", now=NOW)

        # Solo las lecturas de la última hora (NOW - 3600 incluido)
        assert snapshot.overview["lighting"]["totalEnergyConsumption"] == 10.0

    def test_empty_repository(self, composer):
        snapshot = composer.compose(InMemoryTelemetryRepository(), "week", now=NOW)

        assert snapshot.totals["devices"] == 0
        assert snapshot.alerts == {"critical": [], "warning": [], "info": []}

    def test_invalid_time_range(self, composer):
        with pytest.raises(InvalidParameter):
            composer.compose(InMemoryTelemetryRepository(), "decade", now=NOW)


class TestDegradation:
    """Fallas parciales y timeouts."""

    def test_unavailable_fleet_left_empty(self, flaky_repository):
        repo = flaky_repository(broken={Fleet.GAS}, readings=troubled_city())

        snapshot = DashboardComposer().compose(repo, "day", now=NOW)

        assert snapshot.overview["gas"] == {}
        assert snapshot.overview["water"]["deviceCount"] == 1
        assert snapshot.totals["gasConsumption"] == 0.0
        assert [a.type for a in snapshot.alerts["info"]] == ["fleet_unavailable"]
        assert "gas" in snapshot.alerts["info"][0].message

    def test_timeout_aborts_snapshot(self):
        repo = InMemoryTelemetryRepository(readings=troubled_city(), latency=0.5)

        with pytest.raises(RepositoryTimeout):
            DashboardComposer().compose(repo, "day", now=NOW, timeout=0.05)

    def test_hung_backend_does_not_outlive_timeout(self, hanging_repository):
        started = time.monotonic()

        with pytest.raises(RepositoryTimeout):
            DashboardComposer().compose(hanging_repository, "day", now=NOW, timeout=0.1)

        assert time.monotonic() - started < 0.5
