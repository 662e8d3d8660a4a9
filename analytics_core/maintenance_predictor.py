"""
Predictor de mantenimiento para Analytics Core.
Score de riesgo 0-100 por dispositivo y días estimados hasta el fallo.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from . import stats_kit
from .config import AnalyticsConfig, config as default_config
from .errors import InvalidParameter
from .health_scorer import validate_threshold
from .models import Fleet, MaintenanceForecast, MaintenancePrediction, TimeWindow
from .repository import Aggregation, QueryFilters, TelemetryRepository


logger = logging.getLogger(__name__)


LIGHTING_AGGREGATIONS = {
    "readings": Aggregation("count"),
    "voltageStd": Aggregation("stddev", "voltage"),
    "avgCurrent": Aggregation("avg", "current"),
    "uptime": Aggregation("avg", "state"),
    "operatingHours": Aggregation("max", "operatingHours"),
}

METER_AGGREGATIONS = {
    "readings": Aggregation("count"),
    "pressureStd": Aggregation("stddev", "pressure"),
    "flowStd": Aggregation("stddev", "flowRate"),
    "avgPressure": Aggregation("avg", "pressure"),
    "avgBattery": Aggregation("avg", "battery"),
    "leakCount": Aggregation("sum", "leakDetected"),
}


def _outside(value: Optional[float], band: Tuple[float, float]) -> bool:
    if value is None:
        return False
    low, high = band
    return not low <= value <= high


class MaintenancePredictor:
    """
    🔧 Maintenance Predictor - Riesgo por suma ponderada de factores.

    Cada factor se evalúa de forma independiente y aporta su peso si se
    cumple; el total se limita a [0, 100]. Los pesos son por flota
    (config.maintenance.weights) pero la forma es la misma:
    inestabilidad, promedios fuera de rango, confiabilidad y desgaste.

    Ejemplo:
        predictor = MaintenancePredictor()
        forecast = predictor.report(repo, Fleet.GAS, risk_threshold=60)
        print(forecast.summary["urgentMaintenance"])
    """

    def __init__(self, config: Optional[AnalyticsConfig] = None):
        self.config = config or default_config

    def risk_score(self, fleet: Any, row: Dict[str, Any]) -> Tuple[float, Dict[str, Any]]:
        """
        Calcula el riesgo de un dispositivo a partir de su fila agrupada.

        Returns:
            (riesgo, métricas explicativas)
        """
        fleet = Fleet.parse(fleet)
        w = self.config.weights(fleet.value)
        risk = 0.0

        if fleet is Fleet.LIGHTING:
            voltage_std = row.get("voltageStd") or 0.0
            current = row.get("avgCurrent")
            uptime = row.get("uptime")
            hours = row.get("operatingHours") or 0.0

            if voltage_std > w.voltage_stddev_limit:
                risk += w.voltage_instability
            if _outside(current, w.current_band):
                risk += w.current_out_of_range
            if uptime is not None and uptime < w.min_uptime:
                risk += w.low_uptime
            if hours > w.expected_lifetime_hours:
                risk += w.wear

            metrics = {
                "voltageStdDev": voltage_std,
                "avgCurrent": current or 0.0,
                "uptimePercentage": (uptime or 0.0) * 100,
                "operatingHours": hours,
            }
        else:
            pressure_std = row.get("pressureStd") or 0.0
            flow_std = row.get("flowStd") or 0.0
            pressure = row.get("avgPressure")
            battery = row.get("avgBattery")
            leaks = int(row.get("leakCount") or 0)

            if pressure_std > w.pressure_stddev_limit:
                risk += w.pressure_instability
            if flow_std > w.flow_stddev_limit:
                risk += w.flow_instability
            if _outside(pressure, w.pressure_band):
                risk += w.pressure_out_of_range
            risk += leaks * w.per_leak
            if battery is not None and battery < w.battery_low:
                risk += w.low_battery

            metrics = {
                "pressureStdDev": pressure_std,
                "flowStdDev": flow_std,
                "avgPressure": pressure or 0.0,
                "avgBattery": battery or 0.0,
                "leakCount": leaks,
            }

        metrics["readings"] = row.get("readings", 0)
        return stats_kit.clamp(risk, 0, 100), metrics

    def predicted_failure_days(self, fleet: Any, risk: float) -> float:
        """
        Días estimados hasta el fallo: (100 - riesgo) · decay.

        El decay es menor sobre el corte de riesgo (caída acelerada cerca
        del nivel crítico) y distinto por flota.
        """
        w = self.config.weights(Fleet.parse(fleet).value)
        risk = stats_kit.clamp(risk, 0, 100)
        decay = w.decay_steep if risk > w.steep_risk_cutoff else w.decay_normal
        return (100 - risk) * decay

    def lookback_window(self, lookback_days: Optional[int] = None, now: Optional[int] = None) -> TimeWindow:
        """Ventana de los últimos `lookback_days` días hasta `now`."""
        days = self.config.maintenance.lookback_days if lookback_days is None else lookback_days
        if not isinstance(days, int) or isinstance(days, bool) or days <= 0:
            raise InvalidParameter(f"lookbackDays must be a positive integer, got {days!r}")
        return TimeWindow.last(days * 24 * 3600, now)

    def report(
        self,
        repository: TelemetryRepository,
        fleet: Any,
        window: Optional[TimeWindow] = None,
        risk_threshold: Optional[float] = None,
        lookback_days: Optional[int] = None,
        now: Optional[int] = None,
        filters: Optional[QueryFilters] = None,
        timeout: Optional[float] = None,
    ) -> MaintenanceForecast:
        """
        Predice mantenimiento para los dispositivos de una flota.

        Args:
            window: Ventana explícita; si se omite se usan los últimos
                `lookback_days` días hasta `now`.
            risk_threshold: Solo se retornan dispositivos con riesgo >= umbral.

        Returns:
            MaintenanceForecast con predicciones ordenadas por riesgo desc.
        """
        fleet = Fleet.parse(fleet)
        cfg = self.config.maintenance
        threshold = validate_threshold(
            cfg.default_risk_threshold if risk_threshold is None else risk_threshold,
            "riskThreshold",
        )
        if window is None:
            window = self.lookback_window(lookback_days, now)

        aggregations = LIGHTING_AGGREGATIONS if fleet is Fleet.LIGHTING else METER_AGGREGATIONS
        rows = repository.query_grouped(
            fleet, window, ["deviceId", "region"], aggregations,
            filters=filters, timeout=timeout,
        )

        predictions = []
        for row in rows:
            if not row.get("readings"):
                continue
            risk, metrics = self.risk_score(fleet, row)
            if risk < threshold:
                continue
            predictions.append(MaintenancePrediction(
                device_id=row["deviceId"],
                fleet=fleet.value,
                region=row.get("region") or "",
                risk_score=risk,
                predicted_failure_days=self.predicted_failure_days(fleet, risk),
                metrics=metrics,
            ))

        predictions.sort(key=lambda p: (-p.risk_score, p.device_id))
        logger.debug(f"maintenance {fleet.value}: {len(predictions)} of {len(rows)} devices at risk")
        return MaintenanceForecast(
            window=window,
            risk_threshold=threshold,
            urgent_risk=cfg.urgent_risk,
            predictions=predictions,
        )
