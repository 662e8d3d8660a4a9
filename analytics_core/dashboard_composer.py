"""
Dashboard de la ciudad para Analytics Core.
Resumen por flota, totales y alertas basadas en reglas.
"""

import logging
import time
from concurrent.futures import Executor
from typing import Any, Dict, List, Optional

from . import stats_kit
from .config import AnalyticsConfig, config as default_config
from .errors import RepositoryUnavailable
from .fanout import fan_out, fan_out_temporary
from .models import Alert, DashboardSnapshot, Fleet, TimeRange, TimeWindow
from .repository import Aggregation, TelemetryRepository


logger = logging.getLogger(__name__)


ALERT_LEVELS = ("critical", "warning", "info")


def _aggregations(fleet: Fleet) -> Dict[str, Aggregation]:
    aggregations = {
        "readings": Aggregation("count"),
        "counterMin": Aggregation("min", fleet.counter_field),
        "counterMax": Aggregation("max", fleet.counter_field),
    }
    if fleet is Fleet.LIGHTING:
        aggregations["uptime"] = Aggregation("avg", "state")
        aggregations["avgTemp"] = Aggregation("avg", "temp")
    else:
        aggregations["avgPressure"] = Aggregation("avg", "pressure")
        aggregations["leakCount"] = Aggregation("sum", "leakDetected")
        aggregations["minBattery"] = Aggregation("min", "battery")
    return aggregations


def _weighted_mean(rows: List[Dict[str, Any]], name: str) -> float:
    """Promedio de promedios por dispositivo ponderado por número de lecturas."""
    total = 0.0
    weight = 0
    for row in rows:
        value = row.get(name)
        if value is None:
            continue
        total += value * row.get("readings", 0)
        weight += row.get("readings", 0)
    return stats_kit.safe_divide(total, weight)


class DashboardComposer:
    """
    📊 Dashboard Composer - Vista compuesta de las tres flotas.

    Consulta cada flota una vez (en paralelo), pliega las filas por
    dispositivo en un resumen por flota y genera alertas deterministas:
    mismas entradas, mismas alertas en el mismo orden.

    Si una flota no está disponible su resumen queda vacío ({}) y se emite
    una alerta informativa; un timeout aborta el dashboard completo.
    """

    def __init__(self, config: Optional[AnalyticsConfig] = None):
        self.config = config or default_config

    def fleet_summary(self, fleet: Any, rows: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Pliega las filas agrupadas por dispositivo en el resumen de la flota."""
        fleet = Fleet.parse(fleet)
        rows = [row for row in rows if row.get("readings")]
        consumption = sum(
            max((row.get("counterMax") or 0.0) - (row.get("counterMin") or 0.0), 0.0)
            for row in rows
        )

        if fleet is Fleet.LIGHTING:
            return {
                "deviceCount": len(rows),
                "totalEnergyConsumption": consumption,
                "avgTemperature": _weighted_mean(rows, "avgTemp"),
                "uptimePercentage": _weighted_mean(rows, "uptime") * 100,
            }

        low_battery = self.config.dashboard.low_battery
        return {
            "deviceCount": len(rows),
            "totalConsumption": consumption,
            "avgPressure": _weighted_mean(rows, "avgPressure"),
            "leakCount": int(sum(row.get("leakCount") or 0 for row in rows)),
            "lowBatteryCount": sum(
                1 for row in rows
                if row.get("minBattery") is not None and row["minBattery"] < low_battery
            ),
        }

    def totals(self, overview: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
        lighting = overview.get(Fleet.LIGHTING.value) or {}
        water = overview.get(Fleet.WATER.value) or {}
        gas = overview.get(Fleet.GAS.value) or {}
        return {
            "devices": sum((summary or {}).get("deviceCount", 0) for summary in overview.values()),
            "energyConsumption": lighting.get("totalEnergyConsumption", 0.0),
            "waterConsumption": water.get("totalConsumption", 0.0),
            "gasConsumption": gas.get("totalConsumption", 0.0),
            "totalLeaks": water.get("leakCount", 0) + gas.get("leakCount", 0),
            "lowBatteryDevices": water.get("lowBatteryCount", 0) + gas.get("lowBatteryCount", 0),
        }

    def build_alerts(self, overview: Dict[str, Dict[str, Any]]) -> Dict[str, List[Alert]]:
        """
        Genera alertas en un orden fijo.

        critical: fugas, disponibilidad de iluminación
        warning: batería baja, temperatura de iluminación
        info: flotas sin datos
        """
        cfg = self.config.dashboard
        totals = self.totals(overview)
        lighting = overview.get(Fleet.LIGHTING.value) or {}
        alerts: Dict[str, List[Alert]] = {level: [] for level in ALERT_LEVELS}

        if totals["totalLeaks"] > 0:
            alerts["critical"].append(Alert(
                type="leaks",
                message=f"{totals['totalLeaks']} fugas detectadas en las redes de agua y gas",
                priority="high",
            ))
        # Sin luminarias reportando no hay evidencia de baja disponibilidad
        if lighting.get("deviceCount") and lighting["uptimePercentage"] < cfg.min_lighting_uptime_pct:
            alerts["critical"].append(Alert(
                type="lighting_uptime",
                message=(
                    f"Disponibilidad de iluminación en {lighting['uptimePercentage']:.1f}% "
                    f"(mínimo {cfg.min_lighting_uptime_pct:.0f}%)"
                ),
                priority="high",
            ))

        if totals["lowBatteryDevices"] > 0:
            alerts["warning"].append(Alert(
                type="low_battery",
                message=f"{totals['lowBatteryDevices']} medidores con batería bajo {cfg.low_battery:.0f}%",
                priority="medium",
            ))
        if lighting.get("deviceCount") and lighting["avgTemperature"] > cfg.max_lighting_temperature:
            alerts["warning"].append(Alert(
                type="lighting_temperature",
                message=(
                    f"Temperatura media de luminarias en {lighting['avgTemperature']:.1f}°C "
                    f"(máximo {cfg.max_lighting_temperature:.0f}°C)"
                ),
                priority="medium",
            ))

        for fleet in Fleet:
            if fleet.value in overview and not overview[fleet.value]:
                alerts["info"].append(Alert(
                    type="fleet_unavailable",
                    message=f"Datos de la flota {fleet.value} no disponibles",
                    priority="low",
                ))
        return alerts

    def compose(
        self,
        repository: TelemetryRepository,
        time_range: Any = TimeRange.DAY,
        now: Optional[int] = None,
        timeout: Optional[float] = None,
        executor: Optional[Executor] = None,
    ) -> DashboardSnapshot:
        """
        Construye el snapshot del dashboard para el rango pedido.

        Args:
            time_range: hour, day, week o month; la ventana termina en `now`.
            executor: Pool donde consultar las flotas. Si se omite se crea
                uno temporal de tres workers.
        """
        time_range = TimeRange.parse(time_range)
        now = int(now if now is not None else time.time())
        window = TimeWindow.last(time_range.seconds, now)

        calls = {
            fleet: (lambda fleet=fleet: repository.query_grouped(
                fleet, window, ["deviceId"], _aggregations(fleet), timeout=timeout,
            ))
            for fleet in Fleet
        }
        if executor is None:
            futures = fan_out_temporary(calls, timeout)
        else:
            futures = fan_out(executor, calls, timeout)

        overview: Dict[str, Dict[str, Any]] = {}
        for fleet in Fleet:
            try:
                rows = futures[fleet].result()
            except RepositoryUnavailable as exc:
                logger.warning(f"dashboard: {fleet.value} unavailable ({exc}), summary left empty")
                overview[fleet.value] = {}
                continue
            overview[fleet.value] = self.fleet_summary(fleet, rows)

        return DashboardSnapshot(
            timestamp=now,
            time_range=time_range.value,
            window=window,
            overview=overview,
            totals=self.totals(overview),
            alerts=self.build_alerts(overview),
        )
