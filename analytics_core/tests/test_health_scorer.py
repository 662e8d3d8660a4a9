"""
Tests unitarios para HealthScorer.
"""

import random

import pytest

from analytics_core.errors import InvalidParameter
from analytics_core.health_scorer import HealthScorer
from analytics_core.models import Device, Fleet, Reading, TimeWindow
from telemetry_store import InMemoryTelemetryRepository


WINDOW = TimeWindow(0, 10_000)


def lighting_device_readings(device_id="LIGHT-000001", count=100, on=95):
    return [
        Reading(
            device_id=device_id,
            timestamp=i * 10,
            voltage=220.0,
            temp=20.0,
            power_factor=0.9,
            state=1 if i < on else 0,
        )
        for i in range(count)
    ]


def water_device_readings(device_id="WATER-000001", count=10, leaks=1, battery=10.0, pressure=3.0):
    return [
        Reading(
            device_id=device_id,
            timestamp=i * 10,
            battery=battery,
            pressure=pressure,
            flow_rate=1.0,
            leak_detected=i < leaks,
        )
        for i in range(count)
    ]


class TestScenarios:
    """Escenarios de referencia."""

    @pytest.fixture
    def scorer(self):
        return HealthScorer()

    def test_lighting_scenario(self, scorer):
        repo = InMemoryTelemetryRepository(
            devices=[Device("LIGHT-000001", Fleet.LIGHTING, "Recife")],
            readings={Fleet.LIGHTING: lighting_device_readings()},
        )

        reports = scorer.report(repo, Fleet.LIGHTING, WINDOW, health_threshold=100)

        assert len(reports) == 1
        assert reports[0].health_score == pytest.approx(96.5)
        assert reports[0].region == "Recife"
        assert reports[0].metrics["uptimePercentage"] == pytest.approx(95.0)

    def test_water_scenario(self, scorer):
        repo = InMemoryTelemetryRepository(
            readings={Fleet.WATER: water_device_readings()},
        )

        reports = scorer.report(repo, "water", WINDOW)

        assert len(reports) == 1
        assert reports[0].health_score == pytest.approx(30.0)
        assert reports[0].metrics["leakCount"] == 1

    def test_healthy_device_not_reported(self, scorer):
        repo = InMemoryTelemetryRepository(
            readings={Fleet.WATER: water_device_readings(leaks=0, battery=90.0)},
        )
        assert scorer.report(repo, Fleet.WATER, WINDOW) == []

    def test_empty_window_returns_empty_list(self, scorer):
        repo = InMemoryTelemetryRepository(
            readings={Fleet.WATER: water_device_readings()},
        )
        assert scorer.report(repo, Fleet.WATER, TimeWindow(50_000, 60_000)) == []

    def test_sorted_worst_first(self, scorer):
        readings = (
            water_device_readings("WATER-000001", leaks=0, battery=40.0)   # 70
            + water_device_readings("WATER-000002", leaks=2, battery=10.0)  # 20
            + water_device_readings("WATER-000003", leaks=0, battery=10.0)  # 40
        )
        repo = InMemoryTelemetryRepository(readings={Fleet.WATER: readings})

        reports = scorer.report(repo, Fleet.WATER, WINDOW)

        assert [r.device_id for r in reports] == ["WATER-000002", "WATER-000003", "WATER-000001"]
        assert [r.health_score for r in reports] == [20.0, 40.0, 70.0]

    def test_leak_penalty_is_capped(self, scorer):
        score, _ = scorer.score_meter(Fleet.WATER, {"avgBattery": 90.0, "avgPressure": 3.0, "leakCount": 50})
        assert score == 60.0

    def test_gas_pressure_band(self, scorer):
        in_band, _ = scorer.score_meter(Fleet.GAS, {"avgBattery": 90.0, "avgPressure": 0.8, "leakCount": 0})
        out_of_band, _ = scorer.score_meter(Fleet.GAS, {"avgBattery": 90.0, "avgPressure": 3.0, "leakCount": 0})
        assert in_band == 100.0
        assert out_of_band == 85.0

    def test_lighting_off_band_voltage_and_heat(self, scorer):
        score, _ = scorer.score_lighting({
            "uptimeRatio": 1.0, "avgVoltage": 180.0, "avgTemp": 50.0, "avgPowerFactor": 1.0,
        })
        assert score == pytest.approx(40 + 10 + 5 + 15)


class TestValidation:
    """Validación de parámetros antes de consultar el repositorio."""

    @pytest.mark.parametrize("threshold", [-1, 101, "abc"])
    def test_invalid_threshold(self, threshold):
        repo = InMemoryTelemetryRepository()
        repo.available = False  # no debe llegar a consultarse

        with pytest.raises(InvalidParameter):
            HealthScorer().report(repo, Fleet.WATER, WINDOW, health_threshold=threshold)

    def test_invalid_fleet(self):
        with pytest.raises(InvalidParameter):
            HealthScorer().report(InMemoryTelemetryRepository(), "trucks", WINDOW)


class TestBounds:
    """El score queda en [0, 100] para cualquier entrada."""

    @staticmethod
    def _maybe(rnd, lo, hi):
        return None if rnd.random() < 0.1 else rnd.uniform(lo, hi)

    @pytest.mark.parametrize("seed", range(25))
    def test_lighting_score_bounded(self, seed):
        rnd = random.Random(seed)
        row = {
            "uptimeRatio": rnd.uniform(-2, 3),
            "avgVoltage": self._maybe(rnd, -500, 500),
            "avgTemp": self._maybe(rnd, -100, 200),
            "avgPowerFactor": rnd.uniform(-5, 5),
        }
        score, _ = HealthScorer().score_lighting(row)
        assert 0 <= score <= 100

    @pytest.mark.parametrize("seed", range(25))
    def test_meter_score_bounded(self, seed):
        rnd = random.Random(seed)
        fleet = rnd.choice([Fleet.WATER, Fleet.GAS])
        row = {
            "avgBattery": self._maybe(rnd, -50, 150),
            "avgPressure": self._maybe(rnd, -10, 20),
            "leakCount": rnd.randint(0, 1000),
        }
        score, _ = HealthScorer().score_meter(fleet, row)
        assert 0 <= score <= 100
