"""Tests del repositorio de telemetría en memoria."""

import pytest

from analytics_core.errors import RepositoryTimeout, RepositoryUnavailable
from analytics_core.models import Device, DeviceStatus, Fleet, Reading, TimeWindow
from analytics_core.repository import TIME_SLOT, Aggregation, QueryFilters
from telemetry_store import InMemoryTelemetryRepository


WINDOW = TimeWindow(0, 100_000)


@pytest.fixture
def repo():
    devices = [
        Device("WATER-000001", Fleet.WATER, "Recife"),
        Device("WATER-000002", Fleet.WATER, "Natal", status=DeviceStatus.INACTIVE),
    ]
    readings = [
        Reading("WATER-000002", 36_000, flow_rate=4.0, leak_detected=False),
        Reading("WATER-000001", 7_200, flow_rate=1.0, leak_detected=True),
        Reading("WATER-000002", 7_200, flow_rate=3.0, leak_detected=True),
        Reading("WATER-000001", 7_300, flow_rate=None, leak_detected=False),
        Reading("WATER-000001", 200_000, flow_rate=9.0, leak_detected=True),
    ]
    return InMemoryTelemetryRepository(devices, {Fleet.WATER: readings})


def test_query_is_ordered_and_windowed(repo):
    """Orden (timestamp, deviceId) y límites inclusivos de la ventana."""
    readings = list(repo.query(Fleet.WATER, WINDOW))

    assert [(r.timestamp, r.device_id) for r in readings] == [
        (7_200, "WATER-000001"),
        (7_200, "WATER-000002"),
        (7_300, "WATER-000001"),
        (36_000, "WATER-000002"),
    ]
    assert [r.timestamp for r in repo.query(Fleet.WATER, TimeWindow(7_300, 36_000))] == [7_300, 36_000]


def test_query_filters(repo):
    leaks = list(repo.query(Fleet.WATER, WINDOW, filters=QueryFilters(leak_detected=True)))
    assert [r.device_id for r in leaks] == ["WATER-000001", "WATER-000002"]

    natal = list(repo.query(Fleet.WATER, WINDOW, filters=QueryFilters(region="Natal")))
    assert {r.device_id for r in natal} == {"WATER-000002"}

    active = list(repo.query(Fleet.WATER, WINDOW, filters=QueryFilters(status="active")))
    assert {r.device_id for r in active} == {"WATER-000001"}


def test_time_slots_sort_numerically(repo):
    """7200 va antes que 36000 aunque como texto sería al revés."""
    rows = repo.query_grouped(
        Fleet.WATER, WINDOW, [TIME_SLOT],
        {"readings": Aggregation("count"), "avgFlow": Aggregation("avg", "flowRate")},
    )

    assert [row[TIME_SLOT] for row in rows] == [7_200, 36_000]
    assert rows[0]["readings"] == 3
    assert rows[0]["avgFlow"] == pytest.approx(2.0)


def test_grouped_aggregations(repo):
    rows = repo.query_grouped(
        Fleet.WATER, WINDOW, ["deviceId", "region"],
        {
            "readings": Aggregation("count"),
            "flowReadings": Aggregation("count", "flowRate"),
            "leaks": Aggregation("sum", "leakDetected"),
            "maxFlow": Aggregation("max", "flowRate"),
            "flowStd": Aggregation("stddev", "flowRate"),
        },
    )

    assert rows == [
        {"deviceId": "WATER-000001", "region": "Recife", "readings": 2, "flowReadings": 1,
         "leaks": 1.0, "maxFlow": 1.0, "flowStd": 0.0},
        {"deviceId": "WATER-000002", "region": "Natal", "readings": 2, "flowReadings": 2,
         "leaks": 1.0, "maxFlow": 4.0, "flowStd": pytest.approx(0.7071, abs=1e-4)},
    ]


def test_grouped_empty_window(repo):
    rows = repo.query_grouped(Fleet.WATER, TimeWindow(0, 10), ["deviceId"], {"n": Aggregation("count")})
    assert rows == []


def test_invalid_aggregation():
    with pytest.raises(ValueError):
        Aggregation("median", "flowRate")
    with pytest.raises(ValueError):
        Aggregation("avg")


def test_count_and_join(repo):
    assert repo.count_documents(Fleet.WATER, WINDOW, filters=QueryFilters(leak_detected=True)) == 2

    joined = repo.join_device_metadata(Fleet.WATER, list(repo.query(Fleet.WATER, WINDOW)))
    assert [(r.region, r.status) for r in joined[:2]] == [("Recife", "active"), ("Natal", "inactive")]


def test_list_devices(repo):
    assert [d.device_id for d in repo.list_devices(Fleet.WATER)] == ["WATER-000001", "WATER-000002"]
    assert repo.list_devices(Fleet.GAS) == []


def test_unavailable(repo):
    repo.available = False
    with pytest.raises(RepositoryUnavailable):
        repo.count_documents(Fleet.WATER, WINDOW)


def test_timeout(repo):
    repo.latency = 0.2
    with pytest.raises(RepositoryTimeout):
        repo.query(Fleet.WATER, WINDOW, timeout=0.01)
    # sin timeout la consulta espera la latencia completa
    assert repo.count_documents(Fleet.WATER, WINDOW) == 4
