"""
Repositorio de telemetría en memoria.

Implementación completa de TelemetryRepository sobre listas en memoria.
Se usa en tests y en la demo de la API; en producción el contrato lo
cumple el almacén de documentos.
"""

import logging
import threading
import time
from collections import defaultdict
from dataclasses import replace
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from analytics_core import stats_kit
from analytics_core.errors import RepositoryTimeout, RepositoryUnavailable
from analytics_core.models import Device, Fleet, Reading, TimeWindow
from analytics_core.repository import (
    TIME_SLOT,
    Aggregation,
    QueryFilters,
    TelemetryRepository,
)


logger = logging.getLogger(__name__)

_METADATA_FIELDS = ("region", "status")


def _sort_key(value: Any) -> Tuple[int, Any]:
    # None al final; números y textos nunca se comparan entre sí
    if value is None:
        return (2, "")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (0, value)
    return (1, str(value))


class InMemoryTelemetryRepository(TelemetryRepository):
    """
    🧪 Repositorio en memoria.

    `latency` simula el tiempo de respuesta del backend: si supera el
    timeout del llamador se lanza RepositoryTimeout. `available = False`
    hace que toda consulta lance RepositoryUnavailable.

    Example:
        >>> repo = InMemoryTelemetryRepository()
        >>> repo.add_device(Device("WATER-000001", Fleet.WATER, "Recife"))
        >>> repo.add_readings(Fleet.WATER, readings)
        >>> repo.count_documents(Fleet.WATER, TimeWindow(0, 10**10))
    """

    def __init__(
        self,
        devices: Iterable[Device] = (),
        readings: Optional[Dict[Fleet, Iterable[Reading]]] = None,
        latency: float = 0.0,
    ):
        self.latency = latency
        self.available = True
        self._devices: Dict[Fleet, Dict[str, Device]] = {fleet: {} for fleet in Fleet}
        self._readings: Dict[Fleet, List[Reading]] = {fleet: [] for fleet in Fleet}
        self._lock = threading.Lock()

        for device in devices:
            self.add_device(device)
        for fleet, items in (readings or {}).items():
            self.add_readings(fleet, items)

    def add_device(self, device: Device) -> None:
        with self._lock:
            self._devices[device.fleet][device.device_id] = device

    def add_readings(self, fleet: Fleet, readings: Iterable[Reading]) -> None:
        with self._lock:
            self._readings[Fleet.parse(fleet)].extend(readings)

    # ─────────────────────────────────────────────────────────────────────────
    # Helpers internos
    # ─────────────────────────────────────────────────────────────────────────

    def _wait(self, timeout: Optional[float]) -> None:
        if not self.available:
            raise RepositoryUnavailable(f"{self.name} is not available")
        if self.latency <= 0:
            return
        if timeout is not None and self.latency > timeout:
            time.sleep(max(0.0, timeout))
            raise RepositoryTimeout(f"{self.name} did not answer within {timeout}s")
        time.sleep(self.latency)

    def _device(self, fleet: Fleet, device_id: str) -> Optional[Device]:
        return self._devices[fleet].get(device_id)

    def _matching(
        self,
        fleet: Fleet,
        window: TimeWindow,
        filters: Optional[QueryFilters],
    ) -> List[Reading]:
        filters = filters or QueryFilters()
        with self._lock:
            readings = list(self._readings[fleet])
            devices = dict(self._devices[fleet])

        result = []
        for reading in readings:
            if not window.contains(reading.timestamp):
                continue
            if filters.device_id and reading.device_id != filters.device_id:
                continue
            if filters.leak_detected is not None and bool(reading.leak_detected) != filters.leak_detected:
                continue
            if filters.region or filters.status:
                device = devices.get(reading.device_id)
                if device is None:
                    continue
                if filters.region and device.region != filters.region:
                    continue
                if filters.status and device.status.value != filters.status:
                    continue
            result.append(reading)
        return result

    def _group_value(self, fleet: Fleet, reading: Reading, name: str, slot_seconds: int) -> Any:
        if name == TIME_SLOT:
            return stats_kit.time_slot(reading.timestamp, slot_seconds)
        if name in _METADATA_FIELDS:
            device = self._device(fleet, reading.device_id)
            if device is None:
                return None
            return device.region if name == "region" else device.status.value
        return reading.value(name)

    @staticmethod
    def _aggregate(readings: List[Reading], aggregation: Aggregation) -> Any:
        if aggregation.op == "count":
            if not aggregation.field:
                return len(readings)
            return sum(1 for r in readings if r.numeric(aggregation.field) is not None)

        values = [r.numeric(aggregation.field) for r in readings]
        values = [v for v in values if v is not None]
        if aggregation.op == "sum":
            return sum(values)
        if not values:
            return None
        if aggregation.op == "avg":
            return stats_kit.mean(values)
        if aggregation.op == "min":
            return stats_kit.minimum(values)
        if aggregation.op == "max":
            return stats_kit.maximum(values)
        return stats_kit.stddev_sample(values)

    # ─────────────────────────────────────────────────────────────────────────
    # Contrato TelemetryRepository
    # ─────────────────────────────────────────────────────────────────────────

    def query(
        self,
        fleet: Fleet,
        window: TimeWindow,
        filters: Optional[QueryFilters] = None,
        timeout: Optional[float] = None,
    ) -> Iterator[Reading]:
        self._wait(timeout)
        readings = self._matching(fleet, window, filters)
        readings.sort(key=lambda r: (r.timestamp, r.device_id))
        return iter(readings)

    def query_grouped(
        self,
        fleet: Fleet,
        window: TimeWindow,
        group_by: List[str],
        aggregations: Dict[str, Aggregation],
        filters: Optional[QueryFilters] = None,
        timeout: Optional[float] = None,
        slot_seconds: int = 3600,
    ) -> List[Dict[str, Any]]:
        self._wait(timeout)
        groups: Dict[Tuple, List[Reading]] = defaultdict(list)
        for reading in self._matching(fleet, window, filters):
            key = tuple(self._group_value(fleet, reading, name, slot_seconds) for name in group_by)
            groups[key].append(reading)

        rows = []
        for key in sorted(groups, key=lambda k: tuple(_sort_key(v) for v in k)):
            row: Dict[str, Any] = dict(zip(group_by, key))
            for name, aggregation in aggregations.items():
                row[name] = self._aggregate(groups[key], aggregation)
            rows.append(row)

        logger.debug(f"query_grouped {fleet.value} by {group_by}: {len(rows)} groups")
        return rows

    def count_documents(
        self,
        fleet: Fleet,
        window: TimeWindow,
        filters: Optional[QueryFilters] = None,
        timeout: Optional[float] = None,
    ) -> int:
        self._wait(timeout)
        return len(self._matching(fleet, window, filters))

    def join_device_metadata(self, fleet: Fleet, readings: List[Reading]) -> List[Reading]:
        enriched = []
        for reading in readings:
            device = self._device(fleet, reading.device_id)
            if device is None:
                enriched.append(reading)
                continue
            enriched.append(replace(reading, region=device.region, status=device.status.value))
        return enriched

    def list_devices(
        self,
        fleet: Fleet,
        filters: Optional[QueryFilters] = None,
        timeout: Optional[float] = None,
    ) -> List[Device]:
        self._wait(timeout)
        filters = filters or QueryFilters()
        with self._lock:
            devices = list(self._devices[fleet].values())
        return sorted(
            (
                d for d in devices
                if (not filters.region or d.region == filters.region)
                and (not filters.status or d.status.value == filters.status)
                and (not filters.device_id or d.device_id == filters.device_id)
            ),
            key=lambda d: d.device_id,
        )
