"""
Detector de anomalías para Analytics Core.
Marca lecturas fuera de la banda media ± k·σ y reglas absolutas por flota.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from .config import AnalyticsConfig, config as default_config
from .models import AnomalyReport, Fleet, Reading, Sensitivity, TimeWindow
from .repository import Aggregation, QueryFilters, TelemetryRepository


logger = logging.getLogger(__name__)

# deviceId -> señal -> (media, desviación)
Bands = Dict[str, Tuple[float, float]]


class AnomalyDetector:
    """
    🔍 Anomaly Detector - Detección estadística, no clasificación.

    Una lectura es anómala si dispara cualquier regla (OR lógico):
    - alguna señal fuera de media ± k·σ de su dispositivo en la ventana
    - leakDetected == True
    - batería bajo el piso absoluto
    - temperatura de luminaria sobre el límite absoluto

    Con σ = 0 las bandas estadísticas no marcan nada; las reglas
    absolutas siguen activas.

    Ejemplo:
        detector = AnomalyDetector()
        reports = detector.report(repo, Fleet.GAS, window, sensitivity="high")
    """

    def __init__(self, config: Optional[AnalyticsConfig] = None):
        self.config = config or default_config

    def k_for(self, sensitivity: Any) -> float:
        """Multiplicador k de desviaciones para la sensibilidad dada."""
        level = Sensitivity.parse(sensitivity)
        return float(self.config.anomaly.sensitivity_k[level.value])

    def _band_aggregations(self, fleet: Fleet) -> Dict[str, Aggregation]:
        aggregations = {}
        for signal in fleet.anomaly_signals:
            aggregations[f"{signal}Mean"] = Aggregation("avg", signal)
            aggregations[f"{signal}Std"] = Aggregation("stddev", signal)
        return aggregations

    def is_anomalous(self, reading: Reading, fleet: Fleet, bands: Bands, k: float) -> bool:
        """
        Evalúa una lectura contra las bandas de su dispositivo y las reglas absolutas.

        Args:
            reading: Lectura a evaluar
            fleet: Flota de la lectura
            bands: señal -> (media, σ) del dispositivo en la ventana
            k: Multiplicador de desviaciones
        """
        cfg = self.config.anomaly

        if reading.leak_detected:
            return True
        if reading.battery is not None and reading.battery < cfg.battery_floor:
            return True
        if fleet is Fleet.LIGHTING and reading.temp is not None and reading.temp > cfg.lighting_max_temperature:
            return True

        for signal in fleet.anomaly_signals:
            value = reading.numeric(signal)
            mean, std = bands.get(signal, (None, None))
            if value is None or mean is None or not std:
                continue
            if value > mean + k * std or value < mean - k * std:
                return True
        return False

    def report(
        self,
        repository: TelemetryRepository,
        fleet: Any,
        window: TimeWindow,
        sensitivity: Any = Sensitivity.MEDIUM,
        filters: Optional[QueryFilters] = None,
        timeout: Optional[float] = None,
    ) -> List[AnomalyReport]:
        """
        Reporta los dispositivos con al menos una lectura anómala.

        Las bandas se calculan en el repositorio (una consulta agrupada) y
        luego se recorren las lecturas en orden temporal.

        Returns:
            AnomalyReport ordenados por anomalyCount desc y deviceId.
        """
        fleet = Fleet.parse(fleet)
        k = self.k_for(sensitivity)
        max_samples = self.config.anomaly.max_samples

        rows = repository.query_grouped(
            fleet, window, ["deviceId", "region"], self._band_aggregations(fleet),
            filters=filters, timeout=timeout,
        )
        bands: Dict[str, Bands] = {}
        regions: Dict[str, str] = {}
        for row in rows:
            device_id = row["deviceId"]
            regions[device_id] = row.get("region") or ""
            bands[device_id] = {
                signal: (row.get(f"{signal}Mean"), row.get(f"{signal}Std"))
                for signal in fleet.anomaly_signals
            }

        counts: Dict[str, int] = {}
        samples: Dict[str, List[Reading]] = {}
        for reading in repository.query(fleet, window, filters=filters, timeout=timeout):
            device_bands = bands.get(reading.device_id, {})
            if not self.is_anomalous(reading, fleet, device_bands, k):
                continue
            counts[reading.device_id] = counts.get(reading.device_id, 0) + 1
            flagged = samples.setdefault(reading.device_id, [])
            if len(flagged) < max_samples:
                flagged.append(reading)

        reports = [
            AnomalyReport(
                device_id=device_id,
                fleet=fleet.value,
                region=regions.get(device_id, ""),
                anomaly_count=count,
                samples=samples[device_id],
            )
            for device_id, count in counts.items()
        ]
        reports.sort(key=lambda r: (-r.anomaly_count, r.device_id))
        logger.debug(f"anomalies {fleet.value} k={k}: {len(reports)} devices flagged")
        return reports
