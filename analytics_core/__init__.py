"""
╔══════════════════════════════════════════════════════════════════════════════╗
║                    📈 Analytics Core - City Insights 📈                       ║
║              Telemetría de iluminación, agua y gas en reportes               ║
╚══════════════════════════════════════════════════════════════════════════════╝

Núcleo analítico de City Insights.
Convierte lecturas crudas de las tres flotas IoT en reportes de decisión:
salud, anomalías, mantenimiento, estadísticas regionales, dashboard y
correlación entre flotas.

Módulos:
- stats_kit: Primitivas numéricas sin NaN
- models: Dataclasses de dispositivos, lecturas y reportes
- repository: Contrato con el almacén de telemetría
- health_scorer, anomaly_detector, maintenance_predictor: Análisis por dispositivo
- regional_aggregator, dashboard_composer, cross_fleet_correlator: Vistas agregadas
- consumption_reports: Consumo, fugas, eficiencia y listado de dispositivos
- analytics_service: Servicio orquestador principal
"""

from .config import AnalyticsConfig, load_config
from .errors import (
    AnalyticsError,
    InvalidParameter,
    InvalidRange,
    RepositoryError,
    RepositoryTimeout,
    RepositoryUnavailable,
)
from .models import Device, DeviceStatus, Fleet, Reading, Sensitivity, TimeRange, TimeWindow
from .repository import Aggregation, QueryFilters, TelemetryRepository
from .health_scorer import HealthScorer
from .anomaly_detector import AnomalyDetector
from .maintenance_predictor import MaintenancePredictor
from .regional_aggregator import RegionalAggregator
from .dashboard_composer import DashboardComposer
from .cross_fleet_correlator import CrossFleetCorrelator
from .analytics_service import AnalyticsService

__all__ = [
    "AnalyticsConfig",
    "load_config",
    "AnalyticsError",
    "InvalidParameter",
    "InvalidRange",
    "RepositoryError",
    "RepositoryTimeout",
    "RepositoryUnavailable",
    "Device",
    "DeviceStatus",
    "Fleet",
    "Reading",
    "Sensitivity",
    "TimeRange",
    "TimeWindow",
    "Aggregation",
    "QueryFilters",
    "TelemetryRepository",
    "HealthScorer",
    "AnomalyDetector",
    "MaintenancePredictor",
    "RegionalAggregator",
    "DashboardComposer",
    "CrossFleetCorrelator",
    "AnalyticsService",
]

__version__ = "1.0.0"
