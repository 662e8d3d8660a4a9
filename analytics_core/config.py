"""
Configuración centralizada para Analytics Core.
Define umbrales, pesos y parámetros ajustables por flota.

Todos los números mágicos de los analizadores viven aquí para poder
afinarlos por despliegue sin tocar el código de cálculo.
"""

import json
import os
from dataclasses import dataclass, field, fields, is_dataclass, replace
from typing import Dict, Any, Optional, Tuple


@dataclass
class LightingHealthConfig:
    """Pesos y bandas del score de salud para iluminación."""
    uptime_weight: float = 40.0
    power_factor_weight: float = 15.0
    nominal_voltage: Tuple[float, float] = (210.0, 230.0)
    voltage_credit_nominal: float = 25.0
    voltage_credit_off_band: float = 10.0
    temperature_safety_limit: float = 40.0
    temperature_credit_safe: float = 20.0
    temperature_credit_hot: float = 5.0


@dataclass
class MeterHealthConfig:
    """Penalizaciones del score de salud para medidores (agua/gas)."""
    battery_low: float = 50.0
    battery_low_penalty: float = 30.0
    battery_critical: float = 20.0
    battery_critical_penalty: float = 30.0
    pressure_band: Tuple[float, float] = (1.5, 6.0)
    pressure_penalty: float = 15.0
    leak_penalty: float = 10.0
    leak_penalty_cap: float = 40.0


@dataclass
class AnomalyConfig:
    """Configuración del detector de anomalías."""
    sensitivity_k: Dict[str, float] = field(default_factory=lambda: {
        "low": 3.0,
        "medium": 2.0,
        "high": 1.5,
    })
    battery_floor: float = 15.0
    lighting_max_temperature: float = 45.0
    max_samples: int = 10


@dataclass
class MaintenanceWeights:
    """Pesos de riesgo de una flota. Misma forma para las tres flotas."""
    # Inestabilidad
    voltage_stddev_limit: float = 10.0
    voltage_instability: float = 25.0
    pressure_stddev_limit: float = 1.0
    pressure_instability: float = 20.0
    flow_stddev_limit: float = 0.8
    flow_instability: float = 15.0
    # Promedios fuera de rango
    current_band: Tuple[float, float] = (0.2, 1.0)
    current_out_of_range: float = 20.0
    pressure_band: Tuple[float, float] = (1.5, 5.5)
    pressure_out_of_range: float = 20.0
    # Confiabilidad
    min_uptime: float = 0.9
    low_uptime: float = 30.0
    per_leak: float = 15.0
    battery_low: float = 20.0
    low_battery: float = 20.0
    # Desgaste
    expected_lifetime_hours: float = 50000.0
    wear: float = 25.0
    # Curva de tiempo a fallo: (100 - riesgo) * decay
    steep_risk_cutoff: float = 80.0
    decay_steep: float = 0.5
    decay_normal: float = 1.0


def _default_maintenance_weights() -> Dict[str, MaintenanceWeights]:
    return {
        "lighting": MaintenanceWeights(),
        "water": MaintenanceWeights(
            pressure_stddev_limit=1.0,
            pressure_instability=20.0,
            flow_stddev_limit=0.8,
            flow_instability=15.0,
            pressure_band=(1.5, 5.5),
            pressure_out_of_range=20.0,
            per_leak=15.0,
            decay_steep=0.4,
            decay_normal=0.8,
        ),
        "gas": MaintenanceWeights(
            pressure_stddev_limit=0.2,
            pressure_instability=25.0,
            flow_stddev_limit=0.6,
            flow_instability=15.0,
            pressure_band=(0.3, 1.2),
            pressure_out_of_range=25.0,
            per_leak=25.0,
            decay_steep=0.3,
            decay_normal=0.6,
        ),
    }


@dataclass
class MaintenanceConfig:
    """Configuración del predictor de mantenimiento."""
    weights: Dict[str, MaintenanceWeights] = field(default_factory=_default_maintenance_weights)
    default_risk_threshold: float = 70.0
    urgent_risk: float = 90.0
    lookback_days: int = 30


@dataclass
class DashboardConfig:
    """Reglas de alertas del dashboard de la ciudad."""
    min_lighting_uptime_pct: float = 90.0
    max_lighting_temperature: float = 35.0
    low_battery: float = 20.0


@dataclass
class CorrelationConfig:
    """Parámetros del análisis cruzado entre flotas."""
    slot_seconds: int = 3600
    high_energy_ratio: float = 100.0
    high_leak_density: float = 0.01

    def __post_init__(self):
        if isinstance(self.slot_seconds, bool) or not isinstance(self.slot_seconds, int) or self.slot_seconds <= 0:
            raise ValueError(f"correlation.slot_seconds must be a positive integer, got {self.slot_seconds!r}")


@dataclass
class EfficiencyConfig:
    """Score de eficiencia energética de iluminación y reglas de recomendación."""
    power_factor_weight: float = 60.0
    uptime_weight: float = 40.0
    target_score: float = 80.0
    min_power_factor: float = 0.85
    min_uptime: float = 0.9
    performers: int = 5


@dataclass
class WaterQualityConfig:
    """Bandas de operación de la red de agua para el reporte de calidad."""
    pressure_band: Tuple[float, float] = (2.0, 5.0)
    temperature_band: Tuple[float, float] = (10.0, 25.0)
    min_quality_index: float = 80.0


@dataclass
class AnalyticsConfig:
    """Configuración completa de Analytics Core."""
    lighting_health: LightingHealthConfig = field(default_factory=LightingHealthConfig)
    meter_health: Dict[str, MeterHealthConfig] = field(default_factory=lambda: {
        "water": MeterHealthConfig(),
        "gas": MeterHealthConfig(pressure_band=(0.3, 1.2)),
    })
    anomaly: AnomalyConfig = field(default_factory=AnomalyConfig)
    maintenance: MaintenanceConfig = field(default_factory=MaintenanceConfig)
    dashboard: DashboardConfig = field(default_factory=DashboardConfig)
    correlation: CorrelationConfig = field(default_factory=CorrelationConfig)
    efficiency: EfficiencyConfig = field(default_factory=EfficiencyConfig)
    water_quality: WaterQualityConfig = field(default_factory=WaterQualityConfig)
    default_health_threshold: float = 80.0
    workers: int = field(default_factory=lambda: int(os.environ.get("ANALYTICS_WORKERS", "0")) or (os.cpu_count() or 1))

    def meter(self, fleet: str) -> MeterHealthConfig:
        """Obtiene la configuración de salud de un medidor (agua/gas)."""
        return self.meter_health[fleet]

    def weights(self, fleet: str) -> MaintenanceWeights:
        """Obtiene los pesos de riesgo de una flota."""
        return self.maintenance.weights[fleet]

    @classmethod
    def from_dict(cls, overrides: Dict[str, Any]) -> "AnalyticsConfig":
        """
        Crea una configuración aplicando overrides sobre los valores por defecto.

        Las claves siguen los nombres de los campos; los diccionarios anidados
        se mezclan recursivamente. Claves desconocidas lanzan ValueError.

        Ejemplo:
            AnalyticsConfig.from_dict({"anomaly": {"battery_floor": 10}})
        """
        return _merge(cls(), overrides)


def _merge(target: Any, overrides: Dict[str, Any]) -> Any:
    if not isinstance(overrides, dict):
        raise ValueError(f"Expected a mapping of overrides, got {type(overrides).__name__}")

    if is_dataclass(target):
        known = {f.name for f in fields(target)}
        changes = {}
        for key, value in overrides.items():
            if key not in known:
                raise ValueError(f"Unknown config key '{key}' for {type(target).__name__}")
            changes[key] = _merge_value(getattr(target, key), value)
        return replace(target, **changes)

    merged = dict(target)
    for key, value in overrides.items():
        merged[key] = _merge_value(merged[key], value) if key in merged else value
    return merged


def _merge_value(current: Any, value: Any) -> Any:
    if is_dataclass(current) or isinstance(current, dict):
        return _merge(current, value)
    if isinstance(current, tuple):
        return tuple(value)
    return value


def load_config(path: Optional[str] = None) -> AnalyticsConfig:
    """
    Carga la configuración desde un archivo JSON.

    Si no se pasa ruta se usa la variable de entorno ANALYTICS_CONFIG_FILE;
    sin archivo se retornan los valores por defecto.
    """
    path = path or os.environ.get("ANALYTICS_CONFIG_FILE")
    if not path:
        return AnalyticsConfig()

    with open(path, "r", encoding="utf-8") as fh:
        return AnalyticsConfig.from_dict(json.load(fh))


# Instancia global de configuración (puede ser sobrescrita)
config = AnalyticsConfig()
