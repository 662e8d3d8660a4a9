"""
Modelos de datos para Analytics Core.
Define dispositivos, lecturas, ventanas de tiempo y los reportes de salida.

Todos los reportes son valores derivados: se crean en cada análisis y se
serializan con to_dict() a JSON con claves camelCase y floats redondeados.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Dict, Any, List

from .errors import InvalidParameter, InvalidRange


def _round(value: Any, digits: int = 2) -> Any:
    """Redondea floats (también dentro de dicts/listas) para salida estable."""
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return round(value, digits)
    if isinstance(value, dict):
        return {k: _round(v, digits) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_round(v, digits) for v in value]
    return value


class Fleet(Enum):
    """Poblaciones de dispositivos soportadas."""
    LIGHTING = "lighting"
    WATER = "water"
    GAS = "gas"

    @classmethod
    def parse(cls, value: Any) -> "Fleet":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise InvalidParameter(
                f"Invalid fleet: {value}. Must be lighting, water or gas"
            ) from None

    @classmethod
    def expand(cls, value: Any) -> List["Fleet"]:
        """Convierte 'all' (o None) en las tres flotas; cualquier otro valor en una."""
        if value is None or (isinstance(value, str) and value.lower() == "all"):
            return list(cls)
        return [cls.parse(value)]

    @property
    def counter_field(self) -> str:
        """Contador monótono de consumo de la flota."""
        return "energyAcc" if self is Fleet.LIGHTING else "consumption"

    @property
    def rate_field(self) -> str:
        """Señal instantánea de consumo usada en las series por slot."""
        return "powerConsumption" if self is Fleet.LIGHTING else "flowRate"

    @property
    def anomaly_signals(self) -> List[str]:
        if self is Fleet.LIGHTING:
            return ["powerConsumption", "voltage"]
        return ["flowRate", "pressure", "consumption"]


class DeviceStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Sensitivity(Enum):
    """Sensibilidad del detector de anomalías (mapeada a k desviaciones)."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def parse(cls, value: Any) -> "Sensitivity":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise InvalidParameter(
                f"Invalid sensitivity: {value}. Must be low, medium or high"
            ) from None


class TimeRange(Enum):
    """Rangos fijos del dashboard, terminando en 'ahora'."""
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"

    @property
    def seconds(self) -> int:
        return {
            "hour": 3600,
            "day": 24 * 3600,
            "week": 7 * 24 * 3600,
            "month": 30 * 24 * 3600,
        }[self.value]

    @classmethod
    def parse(cls, value: Any) -> "TimeRange":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise InvalidParameter(
                f"Invalid timeRange: {value}. Must be hour, day, week or month"
            ) from None


@dataclass(frozen=True)
class TimeWindow:
    """
    Rango [start, end] en epoch seconds, inclusivo en ambos extremos.
    start <= end es precondición: lo contrario lanza InvalidRange.
    """
    start: int
    end: int

    def __post_init__(self):
        if self.start > self.end:
            raise InvalidRange(f"Invalid window: start {self.start} > end {self.end}")

    @classmethod
    def last(cls, seconds: int, now: Optional[int] = None) -> "TimeWindow":
        """Ventana de `seconds` segundos que termina en `now`."""
        end = int(now if now is not None else time.time())
        return cls(start=end - int(seconds), end=end)

    @property
    def duration(self) -> int:
        return self.end - self.start

    def contains(self, timestamp: int) -> bool:
        return self.start <= timestamp <= self.end

    def to_dict(self) -> Dict[str, int]:
        return {"start": self.start, "end": self.end}


@dataclass
class Device:
    """Metadatos de un dispositivo. Nunca se borra, solo se desactiva."""
    device_id: str
    fleet: Fleet
    region: str
    status: DeviceStatus = DeviceStatus.ACTIVE
    installed_at: int = 0
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    def __post_init__(self):
        if not self.device_id:
            raise ValueError("device_id cannot be empty")

    @property
    def is_active(self) -> bool:
        return self.status is DeviceStatus.ACTIVE

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Device":
        coords = data.get("coords") or {}
        return cls(
            device_id=data["deviceId"],
            fleet=Fleet.parse(data["fleet"]),
            region=data.get("region", ""),
            status=DeviceStatus(data.get("status", "active")),
            installed_at=int(data.get("installedAt", 0)),
            latitude=coords.get("latitude"),
            longitude=coords.get("longitude"),
        )

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "deviceId": self.device_id,
            "fleet": self.fleet.value,
            "region": self.region,
            "status": self.status.value,
            "installedAt": self.installed_at,
        }
        if self.latitude is not None and self.longitude is not None:
            result["coords"] = {"latitude": self.latitude, "longitude": self.longitude}
        return result


# Nombre en el documento -> atributo del dataclass
READING_FIELDS: Dict[str, str] = {
    "deviceId": "device_id",
    "timestamp": "timestamp",
    "voltage": "voltage",
    "current": "current",
    "powerConsumption": "power_consumption",
    "powerFactor": "power_factor",
    "temp": "temp",
    "lux": "lux",
    "state": "state",
    "energyAcc": "energy_acc",
    "operatingHours": "operating_hours",
    "pressure": "pressure",
    "flowRate": "flow_rate",
    "consumption": "consumption",
    "battery": "battery",
    "temperature": "temperature",
    "leakDetected": "leak_detected",
    "region": "region",
    "status": "status",
}


@dataclass
class Reading:
    """
    Una lectura de telemetría. Los campos que no aplican a la flota quedan en None.
    region/status solo vienen poblados tras join_device_metadata().
    """
    device_id: str
    timestamp: int
    # Iluminación
    voltage: Optional[float] = None
    current: Optional[float] = None
    power_consumption: Optional[float] = None
    power_factor: Optional[float] = None
    temp: Optional[float] = None
    lux: Optional[float] = None
    state: Optional[int] = None
    energy_acc: Optional[float] = None
    operating_hours: Optional[float] = None
    # Agua / gas
    pressure: Optional[float] = None
    flow_rate: Optional[float] = None
    consumption: Optional[float] = None
    battery: Optional[float] = None
    temperature: Optional[float] = None
    leak_detected: Optional[bool] = None
    # Metadatos del dispositivo
    region: Optional[str] = None
    status: Optional[str] = None

    def value(self, name: str) -> Any:
        """Valor de un campo por su nombre de documento (ej: 'flowRate')."""
        attr = READING_FIELDS.get(name)
        if attr is None:
            raise KeyError(f"Unknown reading field '{name}'")
        return getattr(self, attr)

    def numeric(self, name: str) -> Optional[float]:
        """Valor numérico de un campo; booleanos cuentan como 1/0."""
        raw = self.value(name)
        if raw is None:
            return None
        if isinstance(raw, bool):
            return 1.0 if raw else 0.0
        if isinstance(raw, (int, float)):
            return float(raw)
        return None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Reading":
        kwargs = {}
        for key, attr in READING_FIELDS.items():
            if key in data and data[key] is not None:
                kwargs[attr] = data[key]
        kwargs["timestamp"] = int(kwargs.get("timestamp", 0))
        if "leak_detected" in kwargs:
            kwargs["leak_detected"] = bool(kwargs["leak_detected"])
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        """Serializa omitiendo campos ausentes."""
        result = {}
        for key, attr in READING_FIELDS.items():
            raw = getattr(self, attr)
            if raw is None:
                continue
            result[key] = _round(raw, 4)
        return result


@dataclass
class HealthReport:
    """Salud 0-100 de un dispositivo con las métricas que la explican."""
    device_id: str
    fleet: str
    region: str
    health_score: float
    metrics: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "deviceId": self.device_id,
            "fleet": self.fleet,
            "region": self.region,
            "healthScore": round(self.health_score, 2),
            "metrics": _round(self.metrics),
        }


@dataclass
class AnomalyReport:
    """Dispositivo con lecturas anómalas y una muestra acotada para inspección."""
    device_id: str
    fleet: str
    region: str
    anomaly_count: int
    samples: List[Reading] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "deviceId": self.device_id,
            "fleet": self.fleet,
            "region": self.region,
            "anomalyCount": self.anomaly_count,
            "samples": [s.to_dict() for s in self.samples],
        }


@dataclass
class MaintenancePrediction:
    """Riesgo de mantenimiento 0-100 y días estimados hasta el fallo."""
    device_id: str
    fleet: str
    region: str
    risk_score: float
    predicted_failure_days: float
    metrics: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "deviceId": self.device_id,
            "fleet": self.fleet,
            "region": self.region,
            "riskScore": round(self.risk_score, 2),
            "predictedFailureDays": round(self.predicted_failure_days, 2),
            "metrics": _round(self.metrics),
        }


@dataclass
class MaintenanceForecast:
    """Predicciones sobre el umbral de riesgo más un resumen por flota."""
    window: TimeWindow
    risk_threshold: float
    urgent_risk: float
    predictions: List[MaintenancePrediction] = field(default_factory=list)

    @property
    def summary(self) -> Dict[str, Any]:
        by_type: Dict[str, int] = {}
        for prediction in self.predictions:
            by_type[prediction.fleet] = by_type.get(prediction.fleet, 0) + 1
        return {
            "totalDevicesAtRisk": len(self.predictions),
            "urgentMaintenance": sum(
                1 for p in self.predictions if p.risk_score >= self.urgent_risk
            ),
            "byType": [
                {"type": fleet.value, "count": by_type[fleet.value]}
                for fleet in Fleet if fleet.value in by_type
            ],
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "window": self.window.to_dict(),
            "riskThreshold": self.risk_threshold,
            "summary": self.summary,
            "predictions": [p.to_dict() for p in self.predictions],
        }


@dataclass
class DeviceMetrics:
    """Métricas ya calculadas de un dispositivo, entrada del agregador regional."""
    device_id: str
    fleet: str
    region: str
    reading_count: int = 0
    consumption: float = 0.0
    uptime: Optional[float] = None
    efficiency: Optional[float] = None
    leak_count: int = 0


@dataclass
class RegionalSummary:
    region: str
    fleet: str
    device_count: int
    aggregate_metrics: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "region": self.region,
            "fleet": self.fleet,
            "deviceCount": self.device_count,
            "aggregateMetrics": _round(self.aggregate_metrics),
        }


@dataclass
class RegionalReport:
    """Estadísticas regionales comparativas por (flota, región)."""
    window: TimeWindow
    summaries: List[RegionalSummary] = field(default_factory=list)

    @property
    def regions(self) -> List[Dict[str, Any]]:
        totals: Dict[str, Dict[str, int]] = {}
        for summary in self.summaries:
            totals.setdefault(summary.region, {})[summary.fleet] = summary.device_count
        return [
            {
                "name": region,
                "totalDevices": sum(fleets.values()),
                "fleets": fleets,
            }
            for region, fleets in sorted(totals.items())
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "window": self.window.to_dict(),
            "regions": self.regions,
            "summaries": [s.to_dict() for s in self.summaries],
        }


@dataclass
class Alert:
    type: str
    message: str
    priority: str

    def to_dict(self) -> Dict[str, str]:
        return {"type": self.type, "message": self.message, "priority": self.priority}


@dataclass
class DashboardSnapshot:
    """Vista compuesta de la ciudad: resumen por flota, totales y alertas."""
    timestamp: int
    time_range: str
    window: TimeWindow
    overview: Dict[str, Dict[str, Any]]
    totals: Dict[str, Any]
    alerts: Dict[str, List[Alert]]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "timeRange": self.time_range,
            "window": self.window.to_dict(),
            "overview": _round(self.overview),
            "totals": _round(self.totals),
            "alerts": {
                level: [a.to_dict() for a in alerts]
                for level, alerts in self.alerts.items()
            },
        }


@dataclass
class RegionPattern:
    """Patrón de consumo de una región combinando las tres flotas."""
    region: str
    fleets: Dict[str, Dict[str, Any]]
    energy_water_ratio: float
    consumption_class: str
    leak_density: float
    leak_risk: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "region": self.region,
            "fleets": _round(self.fleets),
            "energyWaterRatio": round(self.energy_water_ratio, 4),
            "consumptionClass": self.consumption_class,
            "leakDensity": round(self.leak_density, 4),
            "leakRisk": self.leak_risk,
        }


@dataclass
class CorrelationReport:
    window: TimeWindow
    region: Optional[str]
    per_region_patterns: List[RegionPattern] = field(default_factory=list)
    correlation_metrics: Dict[str, Any] = field(default_factory=dict)
    temporal_pairs: List[Dict[str, Any]] = field(default_factory=list)
    insights: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "window": self.window.to_dict(),
            "region": self.region,
            "perRegionPatterns": [p.to_dict() for p in self.per_region_patterns],
            "correlationMetrics": _round(self.correlation_metrics, 4),
            "temporalPairs": _round(self.temporal_pairs),
            "insights": _round(self.insights),
        }


@dataclass
class EnergyConsumptionReport:
    device_id: str
    window: TimeWindow
    reading_count: int
    energy_consumed: float
    avg_power: float
    max_power: float
    min_power: float
    trend: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "deviceId": self.device_id,
            "window": self.window.to_dict(),
            "readingCount": self.reading_count,
            "totalConsumption": round(self.energy_consumed, 2),
            "avgPower": round(self.avg_power, 2),
            "maxPower": round(self.max_power, 2),
            "minPower": round(self.min_power, 2),
            "trend": _round(self.trend),
        }


@dataclass
class LeakReport:
    """Página de lecturas con fuga detectada."""
    fleet: str
    window: TimeWindow
    leaks: List[Reading]
    total: int
    limit: int
    offset: int
    affected_devices: int = 0
    region: Optional[str] = None

    @property
    def has_next(self) -> bool:
        return self.offset + len(self.leaks) < self.total

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fleet": self.fleet,
            "window": self.window.to_dict(),
            "leaks": [leak.to_dict() for leak in self.leaks],
            "region": self.region,
            "affectedDevices": self.affected_devices,
            "total": self.total,
            "limit": self.limit,
            "offset": self.offset,
            "hasNext": self.has_next,
        }


@dataclass
class RegionalEnergyReport:
    """Consumo de energía de iluminación por región."""
    window: TimeWindow
    region: Optional[str]
    regions: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "window": self.window.to_dict(),
            "region": self.region,
            "deviceCount": sum(r["deviceCount"] for r in self.regions),
            "totalConsumption": round(sum(r["totalConsumption"] for r in self.regions), 2),
            "regions": _round(self.regions),
        }


@dataclass
class TelemetryPage:
    """Lecturas crudas de un dispositivo en orden temporal, paginadas."""
    device_id: str
    fleet: str
    window: TimeWindow
    readings: List[Reading]
    total: int
    limit: int
    offset: int

    @property
    def has_next(self) -> bool:
        return self.offset + len(self.readings) < self.total

    def to_dict(self) -> Dict[str, Any]:
        return {
            "deviceId": self.device_id,
            "fleet": self.fleet,
            "window": self.window.to_dict(),
            "readings": [r.to_dict() for r in self.readings],
            "total": self.total,
            "limit": self.limit,
            "offset": self.offset,
            "hasNext": self.has_next,
        }


@dataclass
class WaterQualityReport:
    """Calidad de la red de agua por región: presión, temperatura y fugas."""
    window: TimeWindow
    region: Optional[str]
    regions: List[Dict[str, Any]] = field(default_factory=list)
    alerts: List[Alert] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "window": self.window.to_dict(),
            "region": self.region,
            "regions": _round(self.regions),
            "alerts": [a.to_dict() for a in self.alerts],
        }


@dataclass
class GasConsumptionReport:
    region: str
    window: TimeWindow
    device_count: int
    total_consumption: float
    avg_flow_rate: float
    leak_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "region": self.region,
            "window": self.window.to_dict(),
            "deviceCount": self.device_count,
            "totalConsumption": round(self.total_consumption, 2),
            "avgFlowRate": round(self.avg_flow_rate, 4),
            "leakCount": self.leak_count,
        }


@dataclass
class EfficiencyReport:
    """Eficiencia energética de la flota de iluminación."""
    window: TimeWindow
    devices: List[Dict[str, Any]]
    regional_analysis: List[Dict[str, Any]]
    summary: Dict[str, Any]
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "window": self.window.to_dict(),
            "summary": _round(self.summary),
            "regionalAnalysis": _round(self.regional_analysis),
            "devices": _round(self.devices),
            "recommendations": list(self.recommendations),
        }
