"""
Correlación entre flotas para Analytics Core.
Cruza consumo de energía, agua y gas por región y por slot horario.
"""

import logging
from concurrent.futures import Executor
from typing import Any, Dict, List, Optional, Tuple

from . import stats_kit
from .config import AnalyticsConfig, config as default_config
from .fanout import fan_out, fan_out_temporary
from .models import CorrelationReport, Fleet, RegionPattern, TimeWindow
from .repository import TIME_SLOT, Aggregation, QueryFilters, TelemetryRepository


logger = logging.getLogger(__name__)

PAIRS = (
    ("lightingWater", Fleet.LIGHTING, Fleet.WATER),
    ("lightingGas", Fleet.LIGHTING, Fleet.GAS),
    ("waterGas", Fleet.WATER, Fleet.GAS),
)


class CrossFleetCorrelator:
    """
    🔗 Cross-Fleet Correlator - Patrones de consumo combinados.

    Por región calcula el consumo de cada flota (delta del contador
    monótono por dispositivo), la razón energía/agua y la densidad de fugas.
    Las series por slot solo incluyen slots presentes en las tres flotas
    (inner join): los huecos se descartan, no se rellenan con ceros.

    Ejemplo:
        correlator = CrossFleetCorrelator()
        report = correlator.correlate(repo, window, region="Recife")
        for insight in report.insights:
            print(insight["message"])
    """

    def __init__(self, config: Optional[AnalyticsConfig] = None):
        self.config = config or default_config

    # ─────────────────────────────────────────────────────────────────────────
    # Consultas
    # ─────────────────────────────────────────────────────────────────────────

    def _device_aggregations(self, fleet: Fleet) -> Dict[str, Aggregation]:
        aggregations = {
            "counterMin": Aggregation("min", fleet.counter_field),
            "counterMax": Aggregation("max", fleet.counter_field),
        }
        if fleet is not Fleet.LIGHTING:
            aggregations["leakCount"] = Aggregation("sum", "leakDetected")
        return aggregations

    def _calls(
        self,
        repository: TelemetryRepository,
        window: TimeWindow,
        filters: QueryFilters,
        timeout: Optional[float],
    ) -> Dict[Tuple[str, Fleet], Any]:
        slot_seconds = self.config.correlation.slot_seconds
        calls = {}
        for fleet in Fleet:
            calls[("devices", fleet)] = (
                lambda fleet=fleet: repository.query_grouped(
                    fleet, window, ["region", "deviceId"], self._device_aggregations(fleet),
                    filters=filters, timeout=timeout,
                )
            )
            calls[("slots", fleet)] = (
                lambda fleet=fleet: repository.query_grouped(
                    fleet, window, ["region", TIME_SLOT],
                    {"rate": Aggregation("avg", fleet.rate_field)},
                    filters=filters, timeout=timeout, slot_seconds=slot_seconds,
                )
            )
        return calls

    # ─────────────────────────────────────────────────────────────────────────
    # Cálculo
    # ─────────────────────────────────────────────────────────────────────────

    def region_totals(self, fleet: Fleet, rows: List[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
        """Consumo total, dispositivos y fugas por región de una flota."""
        totals: Dict[str, Dict[str, Any]] = {}
        for row in rows:
            region = row.get("region")
            if region is None:
                continue
            entry = totals.setdefault(region, {"devices": 0, "totalConsumption": 0.0, "leakCount": 0})
            entry["devices"] += 1
            delta = (row.get("counterMax") or 0.0) - (row.get("counterMin") or 0.0)
            entry["totalConsumption"] += max(delta, 0.0)
            entry["leakCount"] += int(row.get("leakCount") or 0)
        for entry in totals.values():
            entry["perDeviceConsumption"] = stats_kit.safe_divide(entry["totalConsumption"], entry["devices"])
        if fleet is Fleet.LIGHTING:
            for entry in totals.values():
                entry.pop("leakCount")
        return totals

    def region_pattern(self, region: str, fleets: Dict[str, Dict[str, Any]]) -> RegionPattern:
        """Clasifica el consumo y el riesgo de fugas de una región."""
        cfg = self.config.correlation
        lighting = fleets.get(Fleet.LIGHTING.value, {})
        water = fleets.get(Fleet.WATER.value, {})
        gas = fleets.get(Fleet.GAS.value, {})

        ratio = stats_kit.safe_divide(
            lighting.get("totalConsumption", 0.0), water.get("totalConsumption", 0.0)
        )
        leaks = water.get("leakCount", 0) + gas.get("leakCount", 0)
        meters = water.get("devices", 0) + gas.get("devices", 0)
        density = stats_kit.safe_divide(leaks, meters)

        return RegionPattern(
            region=region,
            fleets=fleets,
            energy_water_ratio=ratio,
            consumption_class="high_energy_consumption" if ratio > cfg.high_energy_ratio else "balanced",
            leak_density=density,
            leak_risk="high" if density > cfg.high_leak_density else "low",
        )

    def insights(self, patterns: List[RegionPattern]) -> List[Dict[str, Any]]:
        """Insights legibles, solo para regiones donde dispara una clasificación."""
        result = []
        for pattern in patterns:
            if pattern.consumption_class == "high_energy_consumption":
                result.append({
                    "region": pattern.region,
                    "type": "high_energy_consumption",
                    "message": (
                        f"{pattern.region}: consumo de energía {pattern.energy_water_ratio:.1f} veces "
                        f"el consumo de agua"
                    ),
                    "value": pattern.energy_water_ratio,
                })
            if pattern.leak_risk == "high":
                result.append({
                    "region": pattern.region,
                    "type": "high_leak_density",
                    "message": f"{pattern.region}: {pattern.leak_density:.3f} fugas por medidor",
                    "value": pattern.leak_density,
                })
        return result

    def temporal_pairs(self, slots: Dict[Fleet, List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
        """Inner join de las series por (región, slot) de las tres flotas."""
        series: Dict[Fleet, Dict[Tuple[str, int], float]] = {
            fleet: {
                (row["region"], row[TIME_SLOT]): row["rate"]
                for row in slots.get(fleet, [])
                if row.get("region") is not None and row.get("rate") is not None
            }
            for fleet in Fleet
        }
        common = set(series[Fleet.LIGHTING])
        for fleet in (Fleet.WATER, Fleet.GAS):
            common &= set(series[fleet])

        return [
            {
                "region": region,
                "timeSlot": slot,
                **{fleet.value: series[fleet][(region, slot)] for fleet in Fleet},
            }
            for region, slot in sorted(common)
        ]

    def correlation_metrics(self, pairs: List[Dict[str, Any]]) -> Dict[str, Any]:
        metrics: Dict[str, Any] = {"pairedSlots": len(pairs)}
        for name, left, right in PAIRS:
            metrics[name] = stats_kit.pearson(
                [p[left.value] for p in pairs],
                [p[right.value] for p in pairs],
            )
        return metrics

    def correlate(
        self,
        repository: TelemetryRepository,
        window: TimeWindow,
        region: Optional[str] = None,
        timeout: Optional[float] = None,
        executor: Optional[Executor] = None,
    ) -> CorrelationReport:
        """
        Análisis cruzado de las tres flotas en la ventana.

        Args:
            region: Limita el análisis a una región.
            executor: Pool para las seis consultas; si se omite se crea uno temporal.
        """
        filters = QueryFilters(region=region)
        calls = self._calls(repository, window, filters, timeout)
        if executor is None:
            futures = fan_out_temporary(calls, timeout)
        else:
            futures = fan_out(executor, calls, timeout)

        per_fleet = {fleet: self.region_totals(fleet, futures[("devices", fleet)].result()) for fleet in Fleet}
        slots = {fleet: futures[("slots", fleet)].result() for fleet in Fleet}

        regions = sorted({name for totals in per_fleet.values() for name in totals})
        patterns = []
        for name in regions:
            fleets = {
                fleet.value: per_fleet[fleet][name]
                for fleet in Fleet if name in per_fleet[fleet]
            }
            patterns.append(self.region_pattern(name, fleets))

        pairs = self.temporal_pairs(slots)
        logger.debug(f"cross-fleet: {len(patterns)} regions, {len(pairs)} paired slots")
        return CorrelationReport(
            window=window,
            region=region,
            per_region_patterns=patterns,
            correlation_metrics=self.correlation_metrics(pairs),
            temporal_pairs=pairs,
            insights=self.insights(patterns),
        )
