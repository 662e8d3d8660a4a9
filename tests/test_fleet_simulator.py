"""Tests del simulador de flotas."""

import re

from analytics_core.models import Fleet, TimeWindow
from sensors import FleetSimulator, SimulatorConfig
from telemetry_store import InMemoryTelemetryRepository


NOW = 1_700_000_000


def populated(seed=42, devices=4, days=2):
    repo = InMemoryTelemetryRepository()
    config = SimulatorConfig(seed=seed, devices_per_fleet=devices, days=days)
    counts = FleetSimulator(config).populate(repo, now=NOW)
    return repo, counts


def test_counts_per_fleet():
    """Cada flota recibe dispositivos × días × lecturas por día."""
    repo, counts = populated()

    assert counts == {"lighting": 4 * 2 * 24, "water": 4 * 2 * 24, "gas": 4 * 2 * 24}
    window = TimeWindow(NOW - 2 * 86400, NOW)
    for fleet in Fleet:
        assert repo.count_documents(fleet, window) == counts[fleet.value]


def test_device_ids_and_regions():
    repo, _ = populated(devices=12)

    for fleet, prefix in ((Fleet.LIGHTING, "LIGHT"), (Fleet.WATER, "WATER"), (Fleet.GAS, "GAS")):
        devices = repo.list_devices(fleet)
        assert len(devices) == 12
        assert all(re.fullmatch(rf"{prefix}-\d{{6}}", d.device_id) for d in devices)
        assert all(d.region for d in devices)


def test_same_seed_same_telemetry():
    first, _ = populated(seed=7)
    second, _ = populated(seed=7)
    other, _ = populated(seed=8)
    window = TimeWindow(0, NOW)

    dump = lambda repo: [r.to_dict() for r in repo.query(Fleet.WATER, window)]
    assert dump(first) == dump(second)
    assert dump(first) != dump(other)


def test_counters_are_monotonic():
    """energyAcc, operatingHours y consumption nunca bajan por dispositivo."""
    repo, _ = populated()
    window = TimeWindow(0, NOW)

    for fleet in Fleet:
        fields = ("energy_acc", "operating_hours") if fleet is Fleet.LIGHTING else ("consumption",)
        last = {}
        for reading in repo.query(fleet, window):
            for name in fields:
                value = getattr(reading, name)
                previous = last.get((reading.device_id, name), 0.0)
                assert value >= previous
                last[(reading.device_id, name)] = value


def test_timestamps_end_at_now():
    simulator = FleetSimulator(SimulatorConfig(days=1, readings_per_day=4))
    assert simulator.timestamps(NOW) == [NOW - 3 * 21600, NOW - 2 * 21600, NOW - 21600, NOW]
