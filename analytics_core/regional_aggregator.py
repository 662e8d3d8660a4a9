"""
Agregador regional para Analytics Core.
Agrupa métricas por dispositivo en (flota, región).
"""

import logging
from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from . import stats_kit
from .models import DeviceMetrics, Fleet, RegionalReport, RegionalSummary, TimeWindow
from .repository import Aggregation, QueryFilters, TelemetryRepository


logger = logging.getLogger(__name__)


class RegionalAggregator:
    """
    🗺️ Regional Aggregator - Estadísticas comparativas por región.

    Trabaja sobre métricas ya calculadas por dispositivo (DeviceMetrics),
    no sobre lecturas crudas. Una región sin dispositivos de una flota
    simplemente no produce fila para esa flota.
    """

    def _aggregations(self, fleet: Fleet) -> Dict[str, Aggregation]:
        aggregations = {
            "readings": Aggregation("count"),
            "counterMin": Aggregation("min", fleet.counter_field),
            "counterMax": Aggregation("max", fleet.counter_field),
        }
        if fleet is Fleet.LIGHTING:
            aggregations["uptime"] = Aggregation("avg", "state")
            aggregations["efficiency"] = Aggregation("avg", "powerFactor")
        else:
            aggregations["leakCount"] = Aggregation("sum", "leakDetected")
        return aggregations

    def collect_metrics(
        self,
        repository: TelemetryRepository,
        fleet: Any,
        window: TimeWindow,
        filters: Optional[QueryFilters] = None,
        timeout: Optional[float] = None,
    ) -> List[DeviceMetrics]:
        """Construye DeviceMetrics con una consulta agrupada por dispositivo."""
        fleet = Fleet.parse(fleet)
        rows = repository.query_grouped(
            fleet, window, ["deviceId", "region"], self._aggregations(fleet),
            filters=filters, timeout=timeout,
        )
        metrics = []
        for row in rows:
            if row.get("region") is None:
                # Lecturas de un dispositivo sin metadatos: no se puede ubicar
                continue
            consumption = (row.get("counterMax") or 0.0) - (row.get("counterMin") or 0.0)
            metrics.append(DeviceMetrics(
                device_id=row["deviceId"],
                fleet=fleet.value,
                region=row["region"],
                reading_count=int(row.get("readings") or 0),
                consumption=max(consumption, 0.0),
                uptime=row.get("uptime"),
                efficiency=row.get("efficiency"),
                leak_count=int(row.get("leakCount") or 0),
            ))
        return metrics

    def aggregate(self, metrics: Iterable[DeviceMetrics]) -> List[RegionalSummary]:
        """
        Pliega métricas por dispositivo en un resumen por (flota, región).

        Orden de salida: flota (lighting, water, gas) y luego región.
        """
        groups: Dict[Tuple[str, str], List[DeviceMetrics]] = OrderedDict()
        for item in metrics:
            groups.setdefault((item.fleet, item.region), []).append(item)

        fleet_order = {fleet.value: index for index, fleet in enumerate(Fleet)}
        summaries = []
        for (fleet, region) in sorted(groups, key=lambda key: (fleet_order.get(key[0], 99), key[0], key[1])):
            devices = groups[(fleet, region)]
            count = len(devices)
            total = sum(d.consumption for d in devices)
            aggregate = {
                "totalConsumption": total,
                "avgConsumption": stats_kit.safe_divide(total, count),
                "totalReadings": sum(d.reading_count for d in devices),
            }
            if fleet == Fleet.LIGHTING.value:
                aggregate["avgUptime"] = stats_kit.mean(d.uptime for d in devices) * 100
                aggregate["avgEfficiency"] = stats_kit.mean(d.efficiency for d in devices)
            else:
                leaks = sum(d.leak_count for d in devices)
                aggregate["totalLeaks"] = leaks
                aggregate["leaksPerDevice"] = stats_kit.safe_divide(leaks, count)
            summaries.append(RegionalSummary(
                region=region,
                fleet=fleet,
                device_count=count,
                aggregate_metrics=aggregate,
            ))
        return summaries

    def build_report(
        self,
        window: TimeWindow,
        metrics: Iterable[DeviceMetrics],
        regions: Optional[Sequence[str]] = None,
    ) -> RegionalReport:
        if regions:
            wanted = set(regions)
            metrics = [m for m in metrics if m.region in wanted]
        return RegionalReport(window=window, summaries=self.aggregate(metrics))

    def report(
        self,
        repository: TelemetryRepository,
        window: TimeWindow,
        fleets: Any = None,
        regions: Optional[Sequence[str]] = None,
        timeout: Optional[float] = None,
    ) -> RegionalReport:
        """
        Estadísticas regionales de una o varias flotas.

        Args:
            fleets: Flota, lista de flotas o "all"/None para las tres.
            regions: Limita el reporte a estas regiones.
        """
        if isinstance(fleets, (list, tuple)):
            selected = [Fleet.parse(f) for f in fleets]
        else:
            selected = Fleet.expand(fleets)

        metrics: List[DeviceMetrics] = []
        for fleet in selected:
            metrics.extend(self.collect_metrics(repository, fleet, window, timeout=timeout))
        report = self.build_report(window, metrics, regions)
        logger.debug(f"regional: {len(report.summaries)} (fleet, region) groups")
        return report
