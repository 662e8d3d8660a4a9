"""
Servicio principal de Analytics Core.
Orquesta los analizadores sobre un repositorio de telemetría inyectado.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

from .anomaly_detector import AnomalyDetector
from .config import AnalyticsConfig, config as default_config
from .consumption_reports import (
    MAX_PAGE_SIZE,
    detect_leaks,
    energy_consumption,
    energy_efficiency,
    gas_consumption,
    lighting_telemetry,
    list_devices,
    regional_energy_consumption,
    water_quality_report,
)
from .cross_fleet_correlator import CrossFleetCorrelator
from .dashboard_composer import DashboardComposer
from .fanout import fan_out
from .health_scorer import HealthScorer
from .maintenance_predictor import MaintenancePredictor
from .models import (
    AnomalyReport,
    CorrelationReport,
    DashboardSnapshot,
    Device,
    DeviceMetrics,
    EfficiencyReport,
    EnergyConsumptionReport,
    Fleet,
    GasConsumptionReport,
    HealthReport,
    LeakReport,
    MaintenanceForecast,
    RegionalEnergyReport,
    RegionalReport,
    Sensitivity,
    TelemetryPage,
    TimeRange,
    TimeWindow,
    WaterQualityReport,
)
from .regional_aggregator import RegionalAggregator
from .repository import QueryFilters, TelemetryRepository


logger = logging.getLogger(__name__)

T = TypeVar("T")


class AnalyticsService:
    """
    📈 Analytics Service - Orquestador del núcleo analítico.

    Recibe el repositorio por inyección y expone una operación por
    analizador. Con fleet="all" las tres flotas se consultan en paralelo
    en un pool acotado por el número de CPUs y los resultados se unen.

    Todas las operaciones aceptan `timeout` (segundos): se pasa al
    repositorio y es el plazo del fan-in. Si vence, la operación completa
    falla con RepositoryTimeout. No hay reintentos.

    Ejemplo:
        with AnalyticsService(repository) as service:
            window = TimeWindow.last(24 * 3600)
            for report in service.health_report("all", window, health_threshold=70):
                print(report.to_dict())
    """

    def __init__(
        self,
        repository: TelemetryRepository,
        config: Optional[AnalyticsConfig] = None,
        workers: Optional[int] = None,
    ):
        self.repository = repository
        self.config = config or default_config
        self.health_scorer = HealthScorer(self.config)
        self.anomaly_detector = AnomalyDetector(self.config)
        self.maintenance_predictor = MaintenancePredictor(self.config)
        self.regional_aggregator = RegionalAggregator()
        self.dashboard_composer = DashboardComposer(self.config)
        self.correlator = CrossFleetCorrelator(self.config)

        self.workers = max(1, workers or self.config.workers)
        self._executor = ThreadPoolExecutor(
            max_workers=self.workers, thread_name_prefix="analytics"
        )
        logger.info(f"AnalyticsService ready on {repository.name} with {self.workers} workers")

    # ─────────────────────────────────────────────────────────────────────────
    # Ciclo de vida
    # ─────────────────────────────────────────────────────────────────────────

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    def __enter__(self) -> "AnalyticsService":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ─────────────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────────────

    def _per_fleet(
        self,
        fleet: Any,
        call: Callable[[Fleet], T],
        timeout: Optional[float],
    ) -> List[T]:
        """Ejecuta `call` para cada flota pedida; en paralelo si son varias."""
        fleets = Fleet.expand(fleet)
        if len(fleets) == 1:
            return [call(fleets[0])]
        futures = fan_out(
            self._executor,
            {item: (lambda item=item: call(item)) for item in fleets},
            timeout,
        )
        return [futures[item].result() for item in fleets]

    # ─────────────────────────────────────────────────────────────────────────
    # Operaciones
    # ─────────────────────────────────────────────────────────────────────────

    def health_report(
        self,
        fleet: Any,
        window: TimeWindow,
        health_threshold: Optional[float] = None,
        region: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> List[HealthReport]:
        """
        Dispositivos con salud bajo el umbral, de peor a mejor.

        Args:
            fleet: lighting, water, gas o "all"
            window: Ventana de lecturas
            health_threshold: Umbral 0-100 (por defecto config.default_health_threshold)
            region: Limita el análisis a una región
        """
        filters = QueryFilters(region=region)
        results = self._per_fleet(
            fleet,
            lambda item: self.health_scorer.report(
                self.repository, item, window, health_threshold, filters=filters, timeout=timeout
            ),
            timeout,
        )
        reports = [report for group in results for report in group]
        reports.sort(key=lambda r: (r.health_score, r.device_id))
        return reports

    def anomalies(
        self,
        fleet: Any,
        window: TimeWindow,
        sensitivity: Any = Sensitivity.MEDIUM,
        device_id: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> List[AnomalyReport]:
        """Dispositivos con lecturas anómalas, por cantidad de anomalías desc."""
        self.anomaly_detector.k_for(sensitivity)
        filters = QueryFilters(device_id=device_id)
        results = self._per_fleet(
            fleet,
            lambda item: self.anomaly_detector.report(
                self.repository, item, window, sensitivity, filters=filters, timeout=timeout
            ),
            timeout,
        )
        reports = [report for group in results for report in group]
        reports.sort(key=lambda r: (-r.anomaly_count, r.device_id))
        return reports

    def maintenance(
        self,
        fleet: Any,
        window: Optional[TimeWindow] = None,
        risk_threshold: Optional[float] = None,
        lookback_days: Optional[int] = None,
        now: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> MaintenanceForecast:
        """Predicción de mantenimiento de una flota o de las tres."""
        if window is None:
            # Misma ventana para todas las flotas
            window = self.maintenance_predictor.lookback_window(lookback_days, now)

        forecasts = self._per_fleet(
            fleet,
            lambda item: self.maintenance_predictor.report(
                self.repository, item, window, risk_threshold, timeout=timeout
            ),
            timeout,
        )
        predictions = [p for forecast in forecasts for p in forecast.predictions]
        predictions.sort(key=lambda p: (-p.risk_score, p.device_id))
        return MaintenanceForecast(
            window=window,
            risk_threshold=forecasts[0].risk_threshold,
            urgent_risk=forecasts[0].urgent_risk,
            predictions=predictions,
        )

    def regional_statistics(
        self,
        window: TimeWindow,
        fleets: Any = None,
        regions: Optional[Sequence[str]] = None,
        timeout: Optional[float] = None,
    ) -> RegionalReport:
        """Estadísticas por (flota, región); fleets None o "all" para las tres."""
        if isinstance(fleets, (list, tuple)):
            selected = [Fleet.parse(f) for f in fleets]
        else:
            selected = Fleet.expand(fleets)

        futures = fan_out(
            self._executor,
            {
                item: (lambda item=item: self.regional_aggregator.collect_metrics(
                    self.repository, item, window, timeout=timeout
                ))
                for item in selected
            },
            timeout,
        )
        metrics: List[DeviceMetrics] = []
        for item in selected:
            metrics.extend(futures[item].result())
        return self.regional_aggregator.build_report(window, metrics, regions)

    def dashboard(
        self,
        time_range: Any = TimeRange.DAY,
        now: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> DashboardSnapshot:
        return self.dashboard_composer.compose(
            self.repository, time_range, now=now, timeout=timeout, executor=self._executor
        )

    def cross_fleet(
        self,
        window: TimeWindow,
        region: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> CorrelationReport:
        return self.correlator.correlate(
            self.repository, window, region=region, timeout=timeout, executor=self._executor
        )

    def energy_consumption(
        self,
        device_id: str,
        window: TimeWindow,
        timeout: Optional[float] = None,
    ) -> EnergyConsumptionReport:
        return energy_consumption(
            self.repository, device_id, window,
            timeout=timeout, slot_seconds=self.config.correlation.slot_seconds,
        )

    def lighting_telemetry(
        self,
        device_id: str,
        window: TimeWindow,
        limit: int = MAX_PAGE_SIZE,
        offset: int = 0,
        timeout: Optional[float] = None,
    ) -> TelemetryPage:
        return lighting_telemetry(
            self.repository, device_id, window, limit=limit, offset=offset, timeout=timeout
        )

    def regional_energy(
        self,
        window: TimeWindow,
        region: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> RegionalEnergyReport:
        """Consumo de energía por región; sin `region`, todas las regiones."""
        return regional_energy_consumption(self.repository, window, region=region, timeout=timeout)

    def detect_leaks(
        self,
        window: TimeWindow,
        fleet: Any = Fleet.WATER,
        limit: int = 100,
        offset: int = 0,
        region: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> LeakReport:
        return detect_leaks(
            self.repository, fleet, window, limit=limit, offset=offset, region=region, timeout=timeout
        )

    def water_quality(
        self,
        window: TimeWindow,
        region: Optional[str] = None,
        include_alerts: bool = True,
        timeout: Optional[float] = None,
    ) -> WaterQualityReport:
        return water_quality_report(
            self.repository, window, region=region, include_alerts=include_alerts,
            config=self.config, timeout=timeout,
        )

    def gas_consumption(
        self,
        region: str,
        window: TimeWindow,
        timeout: Optional[float] = None,
    ) -> GasConsumptionReport:
        return gas_consumption(self.repository, region, window, timeout=timeout)

    def energy_efficiency(
        self,
        window: TimeWindow,
        include_recommendations: bool = True,
        timeout: Optional[float] = None,
    ) -> EfficiencyReport:
        return energy_efficiency(
            self.repository, window, include_recommendations, config=self.config, timeout=timeout
        )

    def list_devices(
        self,
        fleet: Any = None,
        region: Optional[str] = None,
        status: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> List[Device]:
        return list_devices(self.repository, fleet, region=region, status=status, timeout=timeout)

    def get_info(self) -> Dict[str, Any]:
        """Información del servicio para el endpoint de salud."""
        return {
            "repository": self.repository.name,
            "workers": self.workers,
            "fleets": [fleet.value for fleet in Fleet],
        }
