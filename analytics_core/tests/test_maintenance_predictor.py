"""
Tests unitarios para MaintenancePredictor.
"""

import random

import pytest

from analytics_core.errors import InvalidParameter
from analytics_core.maintenance_predictor import MaintenancePredictor
from analytics_core.models import Fleet, Reading, TimeWindow
from telemetry_store import InMemoryTelemetryRepository


WINDOW = TimeWindow(0, 10_000)


def gas_readings(device_id, leaks, pressure=0.8, count=10):
    return [
        Reading(
            device_id=device_id,
            timestamp=i * 100,
            pressure=pressure,
            flow_rate=0.5,
            battery=90.0,
            consumption=float(i),
            leak_detected=i < leaks,
        )
        for i in range(count)
    ]


class TestRiskScore:
    """Factores de riesgo por flota."""

    @pytest.fixture
    def predictor(self):
        return MaintenancePredictor()

    def test_healthy_lighting_has_zero_risk(self, predictor):
        risk, _ = predictor.risk_score(Fleet.LIGHTING, {
            "voltageStd": 2.0, "avgCurrent": 0.5, "uptime": 0.99, "operatingHours": 100.0,
        })
        assert risk == 0.0

    def test_lighting_factors_accumulate(self, predictor):
        risk, metrics = predictor.risk_score(Fleet.LIGHTING, {
            "voltageStd": 15.0, "avgCurrent": 1.5, "uptime": 0.5, "operatingHours": 60000.0,
        })
        assert risk == 100.0  # 25 + 20 + 30 + 25
        assert metrics["uptimePercentage"] == 50.0

    def test_gas_leaks_weigh_more_than_water(self, predictor):
        row = {"pressureStd": 0.0, "flowStd": 0.0, "avgBattery": 90.0, "leakCount": 1}
        water, _ = predictor.risk_score(Fleet.WATER, dict(row, avgPressure=3.0))
        gas, _ = predictor.risk_score(Fleet.GAS, dict(row, avgPressure=0.8))
        assert gas > water > 0

    @pytest.mark.parametrize("seed", range(25))
    def test_risk_bounded(self, predictor, seed):
        rnd = random.Random(seed)
        fleet = rnd.choice(list(Fleet))
        row = {
            "voltageStd": rnd.uniform(0, 100),
            "avgCurrent": rnd.uniform(-5, 5),
            "uptime": rnd.uniform(-1, 2),
            "operatingHours": rnd.uniform(0, 200000),
            "pressureStd": rnd.uniform(0, 10),
            "flowStd": rnd.uniform(0, 10),
            "avgPressure": rnd.uniform(-10, 10),
            "avgBattery": rnd.uniform(-20, 120),
            "leakCount": rnd.randint(0, 500),
        }
        risk, _ = predictor.risk_score(fleet, row)
        assert 0 <= risk <= 100


class TestFailureDays:
    """Curva de días hasta el fallo."""

    @pytest.mark.parametrize("fleet", list(Fleet))
    def test_monotonically_non_increasing(self, fleet):
        predictor = MaintenancePredictor()
        days = [predictor.predicted_failure_days(fleet, step / 2) for step in range(0, 201)]
        assert all(a >= b for a, b in zip(days, days[1:]))
        assert days[-1] == 0.0

    def test_steep_decay_above_cutoff(self):
        predictor = MaintenancePredictor()
        assert predictor.predicted_failure_days(Fleet.GAS, 80) == pytest.approx(20 * 0.6)
        assert predictor.predicted_failure_days(Fleet.GAS, 90) == pytest.approx(10 * 0.3)

    def test_gas_decays_fastest(self):
        predictor = MaintenancePredictor()
        days = {fleet: predictor.predicted_failure_days(fleet, 50) for fleet in Fleet}
        assert days[Fleet.GAS] < days[Fleet.WATER] < days[Fleet.LIGHTING]


class TestReport:
    """Reporte completo sobre el repositorio."""

    def test_threshold_filter_and_summary(self):
        readings = (
            gas_readings("GAS-000001", leaks=2, pressure=2.0)  # 50 + 25 = 75
            + gas_readings("GAS-000002", leaks=4)               # 100
            + gas_readings("GAS-000003", leaks=0)               # 0
        )
        repo = InMemoryTelemetryRepository(readings={Fleet.GAS: readings})

        forecast = MaintenancePredictor().report(repo, Fleet.GAS, WINDOW)

        assert [p.device_id for p in forecast.predictions] == ["GAS-000002", "GAS-000001"]
        assert forecast.predictions[0].predicted_failure_days == 0.0
        assert forecast.predictions[1].predicted_failure_days == pytest.approx(15.0)
        assert forecast.summary == {
            "totalDevicesAtRisk": 2,
            "urgentMaintenance": 1,
            "byType": [{"type": "gas", "count": 2}],
        }

    def test_default_lookback_window(self):
        repo = InMemoryTelemetryRepository()
        forecast = MaintenancePredictor().report(repo, Fleet.WATER, now=100 * 86400)
        assert forecast.window == TimeWindow(70 * 86400, 100 * 86400)
        assert forecast.predictions == []

    @pytest.mark.parametrize("kwargs", [
        {"risk_threshold": 150},
        {"risk_threshold": -5},
        {"lookback_days": 0},
        {"lookback_days": 2.5},
    ])
    def test_invalid_parameters(self, kwargs):
        with pytest.raises(InvalidParameter):
            MaintenancePredictor().report(InMemoryTelemetryRepository(), Fleet.WATER, **kwargs)
