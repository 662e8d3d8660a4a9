"""
Tests unitarios para CrossFleetCorrelator.
"""

import time

import pytest

from analytics_core.cross_fleet_correlator import CrossFleetCorrelator
from analytics_core.errors import RepositoryTimeout, RepositoryUnavailable
from analytics_core.models import Device, Fleet, Reading, TimeWindow
from telemetry_store import InMemoryTelemetryRepository


T0 = 1_699_999_200  # inicio de un slot horario
WINDOW = TimeWindow(T0, T0 + 4 * 3600)


@pytest.fixture
def repo():
    devices = [
        Device("LIGHT-000001", Fleet.LIGHTING, "Recife"),
        Device("WATER-000001", Fleet.WATER, "Recife"),
        Device("GAS-000001", Fleet.GAS, "Recife"),
        Device("LIGHT-000002", Fleet.LIGHTING, "Natal"),
        Device("WATER-000002", Fleet.WATER, "Natal"),
    ]
    readings = {
        Fleet.LIGHTING: [
            Reading("LIGHT-000001", T0, energy_acc=0.0, power_consumption=100.0),
            Reading("LIGHT-000001", T0 + 3600, energy_acc=500.0, power_consumption=120.0),
            Reading("LIGHT-000002", T0, energy_acc=0.0, power_consumption=50.0),
            Reading("LIGHT-000002", T0 + 3600, energy_acc=1000.0, power_consumption=60.0),
        ],
        Fleet.WATER: [
            # Recife: contador sin cambios, consumo de agua 0
            Reading("WATER-000001", T0, consumption=10.0, flow_rate=1.0, leak_detected=False),
            Reading("WATER-000001", T0 + 60, consumption=10.0, flow_rate=1.2, leak_detected=False),
            Reading("WATER-000002", T0, consumption=0.0, flow_rate=2.0, leak_detected=True),
            Reading("WATER-000002", T0 + 3600, consumption=5.0, flow_rate=2.5, leak_detected=False),
        ],
        Fleet.GAS: [
            Reading("GAS-000001", T0, consumption=1.0, flow_rate=0.5, leak_detected=False),
            Reading("GAS-000001", T0 + 3600, consumption=2.0, flow_rate=0.6, leak_detected=False),
        ],
    }
    return InMemoryTelemetryRepository(devices, readings)


class TestPatterns:
    """Patrones por región."""

    def test_zero_water_gives_zero_ratio(self, repo):
        report = CrossFleetCorrelator().correlate(repo, WINDOW)

        recife = next(p for p in report.per_region_patterns if p.region == "Recife")
        assert recife.energy_water_ratio == 0.0
        assert recife.consumption_class == "balanced"
        assert recife.leak_risk == "low"
        assert recife.fleets["lighting"]["totalConsumption"] == 500.0
        assert recife.fleets["gas"]["perDeviceConsumption"] == 1.0

    def test_high_energy_and_leak_density(self, repo):
        report = CrossFleetCorrelator().correlate(repo, WINDOW)

        natal = next(p for p in report.per_region_patterns if p.region == "Natal")
        assert natal.energy_water_ratio == pytest.approx(200.0)
        assert natal.consumption_class == "high_energy_consumption"
        assert natal.leak_density == 1.0
        assert natal.leak_risk == "high"
        assert "gas" not in natal.fleets

    def test_insights_only_for_fired_classifications(self, repo):
        report = CrossFleetCorrelator().correlate(repo, WINDOW)

        assert [(i["region"], i["type"]) for i in report.insights] == [
            ("Natal", "high_energy_consumption"),
            ("Natal", "high_leak_density"),
        ]

    def test_region_filter(self, repo):
        report = CrossFleetCorrelator().correlate(repo, WINDOW, region="Recife")

        assert report.region == "Recife"
        assert [p.region for p in report.per_region_patterns] == ["Recife"]
        assert report.insights == []


class TestTemporalPairs:
    """Inner join por (región, slot)."""

    def test_only_slots_present_in_all_fleets(self, repo):
        report = CrossFleetCorrelator().correlate(repo, WINDOW)

        assert report.temporal_pairs == [{
            "region": "Recife",
            "timeSlot": T0,
            "lighting": 100.0,
            "water": pytest.approx(1.1),
            "gas": 0.5,
        }]
        assert report.correlation_metrics["pairedSlots"] == 1
        assert report.correlation_metrics["lightingWater"] == 0.0

    def test_pearson_over_paired_slots(self):
        devices = [Device(f"{f.value}-1", f, "Recife") for f in Fleet]
        readings = {}
        for fleet, scale in ((Fleet.LIGHTING, 100.0), (Fleet.WATER, 1.0), (Fleet.GAS, -1.0)):
            field = "power_consumption" if fleet is Fleet.LIGHTING else "flow_rate"
            readings[fleet] = [
                Reading(f"{fleet.value}-1", T0 + slot * 3600, **{field: scale * (slot + 1) + 10})
                for slot in range(4)
            ]
        repo = InMemoryTelemetryRepository(devices, readings)

        metrics = CrossFleetCorrelator().correlate(repo, WINDOW).correlation_metrics

        assert metrics["pairedSlots"] == 4
        assert metrics["lightingWater"] == pytest.approx(1.0)
        assert metrics["waterGas"] == pytest.approx(-1.0)

    def test_unavailable_repository_propagates(self, flaky_repository):
        repo = flaky_repository(broken={Fleet.WATER})
        with pytest.raises(RepositoryUnavailable):
            CrossFleetCorrelator().correlate(repo, WINDOW)

    def test_hung_backend_does_not_outlive_timeout(self, hanging_repository):
        started = time.monotonic()

        with pytest.raises(RepositoryTimeout):
            CrossFleetCorrelator().correlate(hanging_repository, WINDOW, timeout=0.1)

        assert time.monotonic() - started < 0.5
