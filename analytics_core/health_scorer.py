"""
Health Scorer para Analytics Core.
Convierte la telemetría reciente de cada dispositivo en un score 0-100.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from . import stats_kit
from .config import AnalyticsConfig, config as default_config
from .errors import InvalidParameter
from .models import Fleet, HealthReport, TimeWindow
from .repository import Aggregation, QueryFilters, TelemetryRepository


logger = logging.getLogger(__name__)


LIGHTING_AGGREGATIONS = {
    "readings": Aggregation("count"),
    "uptimeRatio": Aggregation("avg", "state"),
    "avgVoltage": Aggregation("avg", "voltage"),
    "avgTemp": Aggregation("avg", "temp"),
    "avgPowerFactor": Aggregation("avg", "powerFactor"),
}

METER_AGGREGATIONS = {
    "readings": Aggregation("count"),
    "avgBattery": Aggregation("avg", "battery"),
    "avgPressure": Aggregation("avg", "pressure"),
    "leakCount": Aggregation("sum", "leakDetected"),
}


def validate_threshold(value: float, name: str) -> float:
    """Valida que un umbral de score esté en [0, 100]."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidParameter(f"{name} must be a number, got {value!r}") from None
    if not 0 <= number <= 100:
        raise InvalidParameter(f"{name} must be between 0 and 100, got {value}")
    return number


class HealthScorer:
    """
    🩺 Health Scorer - Score de salud ponderado por tipo de flota.

    Iluminación: 40·uptime + crédito de voltaje + crédito de temperatura
    + 15·factor de potencia. Medidores: 100 menos penalizaciones por
    batería, presión fuera de banda y fugas.

    Ejemplo:
        scorer = HealthScorer()
        reports = scorer.report(repo, Fleet.WATER, window, health_threshold=80)
        for r in reports:
            print(r.device_id, r.health_score)
    """

    def __init__(self, config: Optional[AnalyticsConfig] = None):
        self.config = config or default_config

    def score_lighting(self, row: Dict[str, Any]) -> Tuple[float, Dict[str, Any]]:
        """
        Calcula la salud de una luminaria a partir de sus promedios.

        Args:
            row: Fila agrupada con uptimeRatio, avgVoltage, avgTemp, avgPowerFactor

        Returns:
            (score, métricas explicativas)
        """
        cfg = self.config.lighting_health
        uptime = row.get("uptimeRatio") or 0.0
        voltage = row.get("avgVoltage")
        temp = row.get("avgTemp")
        power_factor = row.get("avgPowerFactor") or 0.0

        low, high = cfg.nominal_voltage
        if voltage is not None and low <= voltage <= high:
            voltage_credit = cfg.voltage_credit_nominal
        else:
            voltage_credit = cfg.voltage_credit_off_band

        # Sin temperatura no hay evidencia de sobrecalentamiento
        if temp is None or temp <= cfg.temperature_safety_limit:
            temp_credit = cfg.temperature_credit_safe
        else:
            temp_credit = cfg.temperature_credit_hot

        score = stats_kit.clamp(
            cfg.uptime_weight * uptime
            + voltage_credit
            + temp_credit
            + cfg.power_factor_weight * power_factor,
            0, 100,
        )
        metrics = {
            "readings": row.get("readings", 0),
            "uptimePercentage": uptime * 100,
            "avgVoltage": voltage or 0.0,
            "avgTemp": temp or 0.0,
            "avgPowerFactor": power_factor,
        }
        return score, metrics

    def score_meter(self, fleet: Fleet, row: Dict[str, Any]) -> Tuple[float, Dict[str, Any]]:
        """
        Calcula la salud de un medidor de agua o gas.

        Las penalizaciones se acumulan: batería baja (dos niveles), presión
        fuera de la banda nominal y fugas (con tope).
        """
        cfg = self.config.meter(Fleet.parse(fleet).value)
        battery = row.get("avgBattery")
        pressure = row.get("avgPressure")
        leaks = int(row.get("leakCount") or 0)

        penalty = 0.0
        if battery is not None:
            if battery < cfg.battery_low:
                penalty += cfg.battery_low_penalty
            if battery < cfg.battery_critical:
                penalty += cfg.battery_critical_penalty
        if pressure is not None:
            low, high = cfg.pressure_band
            if not low <= pressure <= high:
                penalty += cfg.pressure_penalty
        penalty += min(cfg.leak_penalty * leaks, cfg.leak_penalty_cap)

        score = stats_kit.clamp(100 - penalty, 0, 100)
        metrics = {
            "readings": row.get("readings", 0),
            "avgBattery": battery or 0.0,
            "avgPressure": pressure or 0.0,
            "leakCount": leaks,
        }
        return score, metrics

    def score(self, fleet: Fleet, row: Dict[str, Any]) -> Tuple[float, Dict[str, Any]]:
        if fleet is Fleet.LIGHTING:
            return self.score_lighting(row)
        return self.score_meter(fleet, row)

    def report(
        self,
        repository: TelemetryRepository,
        fleet: Any,
        window: TimeWindow,
        health_threshold: Optional[float] = None,
        filters: Optional[QueryFilters] = None,
        timeout: Optional[float] = None,
    ) -> List[HealthReport]:
        """
        Reporta los dispositivos de una flota con salud bajo el umbral.

        Returns:
            HealthReport ordenados de peor a mejor salud. Dispositivos sin
            lecturas en la ventana no aparecen.
        """
        fleet = Fleet.parse(fleet)
        threshold = validate_threshold(
            self.config.default_health_threshold if health_threshold is None else health_threshold,
            "healthThreshold",
        )
        aggregations = LIGHTING_AGGREGATIONS if fleet is Fleet.LIGHTING else METER_AGGREGATIONS

        rows = repository.query_grouped(
            fleet, window, ["deviceId", "region"], aggregations,
            filters=filters, timeout=timeout,
        )

        reports = []
        for row in rows:
            if not row.get("readings"):
                continue
            health, metrics = self.score(fleet, row)
            if health < threshold:
                reports.append(HealthReport(
                    device_id=row["deviceId"],
                    fleet=fleet.value,
                    region=row.get("region") or "",
                    health_score=health,
                    metrics=metrics,
                ))

        reports.sort(key=lambda r: (r.health_score, r.device_id))
        logger.debug(
            f"health {fleet.value}: {len(rows)} devices scored, {len(reports)} below {threshold}"
        )
        return reports
