"""
Reportes de consumo para Analytics Core.

Operaciones puntuales del catálogo de herramientas: telemetría cruda y
consumo de energía de las luminarias, fugas paginadas, calidad del agua,
consumo de gas por región, eficiencia energética y listado de dispositivos.
"""

import logging
from itertools import islice
from typing import Any, Dict, List, Optional

from . import stats_kit
from .config import AnalyticsConfig, config as default_config
from .errors import InvalidParameter
from .models import (
    Alert,
    Device,
    DeviceStatus,
    EfficiencyReport,
    EnergyConsumptionReport,
    Fleet,
    GasConsumptionReport,
    LeakReport,
    RegionalEnergyReport,
    TelemetryPage,
    TimeWindow,
    WaterQualityReport,
)
from .repository import TIME_SLOT, Aggregation, QueryFilters, TelemetryRepository


logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 1000


def _require(value: Optional[str], name: str) -> str:
    if not value or not str(value).strip():
        raise InvalidParameter(f"{name} is required")
    return str(value)


def _delta(row: Dict[str, Any]) -> float:
    return max((row.get("counterMax") or 0.0) - (row.get("counterMin") or 0.0), 0.0)


def _weighted(items: List[Dict[str, Any]], name: str, weight: str) -> float:
    """Promedio de promedios por dispositivo ponderado por el conteo `weight`."""
    total = sum(i[name] * i[weight] for i in items if i.get(name) is not None)
    count = sum(i[weight] for i in items if i.get(name) is not None)
    return stats_kit.safe_divide(total, count)


def _out_of_band(value: Optional[float], band: Any) -> bool:
    return value is not None and not band[0] <= value <= band[1]


def energy_consumption(
    repository: TelemetryRepository,
    device_id: str,
    window: TimeWindow,
    timeout: Optional[float] = None,
    slot_seconds: int = 3600,
) -> EnergyConsumptionReport:
    """
    Consumo de energía de una luminaria en la ventana.

    La energía consumida es el delta del contador energyAcc; la tendencia es
    la potencia media por slot horario.
    """
    device_id = _require(device_id, "deviceId")
    filters = QueryFilters(device_id=device_id)

    rows = repository.query_grouped(
        Fleet.LIGHTING, window, ["deviceId"],
        {
            "readings": Aggregation("count"),
            "counterMin": Aggregation("min", "energyAcc"),
            "counterMax": Aggregation("max", "energyAcc"),
            "avgPower": Aggregation("avg", "powerConsumption"),
            "maxPower": Aggregation("max", "powerConsumption"),
            "minPower": Aggregation("min", "powerConsumption"),
        },
        filters=filters, timeout=timeout,
    )
    trend = repository.query_grouped(
        Fleet.LIGHTING, window, [TIME_SLOT],
        {"avgPower": Aggregation("avg", "powerConsumption"), "readings": Aggregation("count")},
        filters=filters, timeout=timeout, slot_seconds=slot_seconds,
    )

    row = rows[0] if rows else {}
    return EnergyConsumptionReport(
        device_id=device_id,
        window=window,
        reading_count=int(row.get("readings") or 0),
        energy_consumed=_delta(row),
        avg_power=row.get("avgPower") or 0.0,
        max_power=row.get("maxPower") or 0.0,
        min_power=row.get("minPower") or 0.0,
        trend=[
            {"timeSlot": t[TIME_SLOT], "avgPower": t.get("avgPower") or 0.0, "readings": t["readings"]}
            for t in trend
        ],
    )


def _check_page(limit: Any, offset: Any) -> None:
    if not isinstance(limit, int) or not 1 <= limit <= MAX_PAGE_SIZE:
        raise InvalidParameter(f"limit must be between 1 and {MAX_PAGE_SIZE}, got {limit!r}")
    if not isinstance(offset, int) or offset < 0:
        raise InvalidParameter(f"offset must be a non-negative integer, got {offset!r}")


def lighting_telemetry(
    repository: TelemetryRepository,
    device_id: str,
    window: TimeWindow,
    limit: int = MAX_PAGE_SIZE,
    offset: int = 0,
    timeout: Optional[float] = None,
) -> TelemetryPage:
    """Lecturas crudas de una luminaria en la ventana, de la más antigua a la más nueva."""
    device_id = _require(device_id, "deviceId")
    _check_page(limit, offset)

    filters = QueryFilters(device_id=device_id)
    total = repository.count_documents(Fleet.LIGHTING, window, filters=filters, timeout=timeout)
    readings = list(islice(
        repository.query(Fleet.LIGHTING, window, filters=filters, timeout=timeout), offset, offset + limit
    ))
    return TelemetryPage(
        device_id=device_id,
        fleet=Fleet.LIGHTING.value,
        window=window,
        readings=readings,
        total=total,
        limit=limit,
        offset=offset,
    )


def regional_energy_consumption(
    repository: TelemetryRepository,
    window: TimeWindow,
    region: Optional[str] = None,
    timeout: Optional[float] = None,
) -> RegionalEnergyReport:
    """
    Consumo de energía de iluminación por región.

    Sin `region` se reportan todas las regiones; las luminarias sin
    metadatos quedan en la región "".
    """
    rows = repository.query_grouped(
        Fleet.LIGHTING, window, ["region", "deviceId"],
        {
            "readings": Aggregation("count"),
            "counterMin": Aggregation("min", "energyAcc"),
            "counterMax": Aggregation("max", "energyAcc"),
            "avgPower": Aggregation("avg", "powerConsumption"),
            "maxPower": Aggregation("max", "powerConsumption"),
            "minPower": Aggregation("min", "powerConsumption"),
        },
        filters=QueryFilters(region=region), timeout=timeout,
    )

    by_region: Dict[str, List[Dict[str, Any]]] = {}
    for row in rows:
        by_region.setdefault(row.get("region") or "", []).append(row)

    regions = []
    for name, items in sorted(by_region.items()):
        regions.append({
            "region": name,
            "deviceCount": len(items),
            "readingCount": sum(r["readings"] for r in items),
            "totalConsumption": sum(_delta(r) for r in items),
            "avgPower": _weighted(items, "avgPower", "readings"),
            "maxPower": stats_kit.maximum(r.get("maxPower") for r in items),
            "minPower": stats_kit.minimum(r.get("minPower") for r in items),
        })
    return RegionalEnergyReport(window=window, region=region, regions=regions)


def detect_leaks(
    repository: TelemetryRepository,
    fleet: Any,
    window: TimeWindow,
    limit: int = 100,
    offset: int = 0,
    region: Optional[str] = None,
    timeout: Optional[float] = None,
) -> LeakReport:
    """
    Lecturas con leakDetected en la ventana, paginadas.

    El orden (timestamp, deviceId) del repositorio hace que las páginas
    sean estables entre llamadas. `total` y `affected_devices` cubren
    todas las páginas.
    """
    fleet = Fleet.parse(fleet)
    if fleet is Fleet.LIGHTING:
        raise InvalidParameter("Leak detection applies only to water and gas fleets")
    _check_page(limit, offset)

    filters = QueryFilters(leak_detected=True, region=region)
    total = repository.count_documents(fleet, window, filters=filters, timeout=timeout)
    devices = repository.query_grouped(
        fleet, window, ["deviceId"], {"leaks": Aggregation("count")}, filters=filters, timeout=timeout,
    )
    page = list(islice(repository.query(fleet, window, filters=filters, timeout=timeout), offset, offset + limit))
    leaks = repository.join_device_metadata(fleet, page)

    logger.debug(f"leaks {fleet.value}: {len(leaks)} of {total} (offset {offset})")
    return LeakReport(
        fleet=fleet.value,
        window=window,
        leaks=leaks,
        total=total,
        limit=limit,
        offset=offset,
        affected_devices=len(devices),
        region=region,
    )


def gas_consumption(
    repository: TelemetryRepository,
    region: str,
    window: TimeWindow,
    timeout: Optional[float] = None,
) -> GasConsumptionReport:
    """Consumo de gas de una región: delta por medidor, caudal medio y fugas."""
    region = _require(region, "region")
    rows = repository.query_grouped(
        Fleet.GAS, window, ["deviceId"],
        {
            "counterMin": Aggregation("min", "consumption"),
            "counterMax": Aggregation("max", "consumption"),
            "avgFlowRate": Aggregation("avg", "flowRate"),
            "flowReadings": Aggregation("count", "flowRate"),
            "leakCount": Aggregation("sum", "leakDetected"),
        },
        filters=QueryFilters(region=region), timeout=timeout,
    )

    flow_total = sum((row.get("avgFlowRate") or 0.0) * row["flowReadings"] for row in rows)
    flow_count = sum(row["flowReadings"] for row in rows)
    return GasConsumptionReport(
        region=region,
        window=window,
        device_count=len(rows),
        total_consumption=sum(_delta(row) for row in rows),
        avg_flow_rate=stats_kit.safe_divide(flow_total, flow_count),
        leak_count=int(sum(row.get("leakCount") or 0 for row in rows)),
    )


def _recommendations(
    cfg: Any,
    avg_score: float,
    devices: List[Dict[str, Any]],
    regional: List[Dict[str, Any]],
) -> List[str]:
    result = []
    if devices and avg_score < cfg.target_score:
        result.append(
            f"La eficiencia media ({avg_score:.1f}) está bajo el objetivo de {cfg.target_score:.0f}: "
            f"priorizar mantenimiento de las luminarias con peor desempeño"
        )
    low_pf = sum(1 for d in devices if d["avgPowerFactor"] < cfg.min_power_factor)
    if low_pf:
        result.append(
            f"{low_pf} luminarias con factor de potencia bajo {cfg.min_power_factor:.2f}: "
            f"evaluar corrección del factor de potencia"
        )
    low_uptime = sum(1 for d in devices if d["uptimePercentage"] < cfg.min_uptime * 100)
    if low_uptime:
        result.append(
            f"{low_uptime} luminarias con disponibilidad bajo {cfg.min_uptime * 100:.0f}%: "
            f"revisar fallas de encendido"
        )
    if len(regional) > 1:
        worst = min(regional, key=lambda r: (r["avgEfficiency"], r["region"]))
        if worst["avgEfficiency"] < cfg.target_score:
            result.append(
                f"La región {worst['region']} tiene la menor eficiencia media ({worst['avgEfficiency']:.1f})"
            )
    return result


def energy_efficiency(
    repository: TelemetryRepository,
    window: TimeWindow,
    include_recommendations: bool = True,
    config: Optional[AnalyticsConfig] = None,
    timeout: Optional[float] = None,
) -> EfficiencyReport:
    """
    Eficiencia energética de la flota de iluminación.

    efficiencyScore = clamp(60·factor de potencia medio + 40·uptime, 0, 100)
    """
    cfg = (config or default_config).efficiency
    rows = repository.query_grouped(
        Fleet.LIGHTING, window, ["deviceId", "region"],
        {
            "readings": Aggregation("count"),
            "avgPowerFactor": Aggregation("avg", "powerFactor"),
            "uptime": Aggregation("avg", "state"),
            "counterMin": Aggregation("min", "energyAcc"),
            "counterMax": Aggregation("max", "energyAcc"),
        },
        timeout=timeout,
    )

    devices = []
    for row in rows:
        power_factor = row.get("avgPowerFactor") or 0.0
        uptime = row.get("uptime") or 0.0
        devices.append({
            "deviceId": row["deviceId"],
            "region": row.get("region") or "",
            "efficiencyScore": stats_kit.clamp(
                cfg.power_factor_weight * power_factor + cfg.uptime_weight * uptime, 0, 100
            ),
            "avgPowerFactor": power_factor,
            "uptimePercentage": uptime * 100,
            "energyConsumption": _delta(row),
        })
    devices.sort(key=lambda d: (-d["efficiencyScore"], d["deviceId"]))

    by_region: Dict[str, List[Dict[str, Any]]] = {}
    for device in devices:
        by_region.setdefault(device["region"], []).append(device)
    regional = [
        {
            "region": region,
            "deviceCount": len(items),
            "avgEfficiency": stats_kit.mean(d["efficiencyScore"] for d in items),
            "totalEnergy": sum(d["energyConsumption"] for d in items),
        }
        for region, items in sorted(by_region.items())
    ]

    def performer(device: Dict[str, Any]) -> Dict[str, Any]:
        return {key: device[key] for key in ("deviceId", "region", "efficiencyScore")}

    avg_score = stats_kit.mean(d["efficiencyScore"] for d in devices)
    worst = sorted(devices, key=lambda d: (d["efficiencyScore"], d["deviceId"]))
    summary = {
        "totalDevices": len(devices),
        "totalEnergyConsumption": sum(d["energyConsumption"] for d in devices),
        "avgEfficiencyScore": avg_score,
        "bestPerformers": [performer(d) for d in devices[:cfg.performers]],
        "worstPerformers": [performer(d) for d in worst[:cfg.performers]],
    }

    return EfficiencyReport(
        window=window,
        devices=devices,
        regional_analysis=regional,
        summary=summary,
        recommendations=_recommendations(cfg, avg_score, devices, regional) if include_recommendations else [],
    )


def _quality_alerts(cfg: Any, region: Dict[str, Any]) -> List[Alert]:
    name = region["region"] or "sin región"
    alerts = []
    if region["leakCount"]:
        alerts.append(Alert(
            type="water_leak",
            message=f"{region['leakCount']} lecturas con fuga en la red de agua de {name}",
            priority="high",
        ))
    if region["pressureOutOfBand"]:
        low, high = cfg.pressure_band
        alerts.append(Alert(
            type="water_pressure",
            message=(
                f"{region['pressureOutOfBand']} medidores en {name} con presión media "
                f"fuera de {low:g}-{high:g} bar"
            ),
            priority="medium",
        ))
    if region["temperatureOutOfBand"]:
        low, high = cfg.temperature_band
        alerts.append(Alert(
            type="water_temperature",
            message=(
                f"{region['temperatureOutOfBand']} medidores en {name} con temperatura media "
                f"fuera de {low:g}-{high:g} °C"
            ),
            priority="medium",
        ))
    return alerts


def water_quality_report(
    repository: TelemetryRepository,
    window: TimeWindow,
    region: Optional[str] = None,
    include_alerts: bool = True,
    config: Optional[AnalyticsConfig] = None,
    timeout: Optional[float] = None,
) -> WaterQualityReport:
    """
    Calidad de la red de agua por región.

    Los medidores no reportan parámetros químicos: la calidad se mide por
    presión y temperatura medias de cada medidor contra las bandas de
    config.water_quality, más las lecturas con fuga.

    qualityIndex = 100 · medidores dentro de ambas bandas / medidores
    """
    cfg = (config or default_config).water_quality
    rows = repository.query_grouped(
        Fleet.WATER, window, ["region", "deviceId"],
        {
            "readings": Aggregation("count"),
            "pressureReadings": Aggregation("count", "pressure"),
            "avgPressure": Aggregation("avg", "pressure"),
            "minPressure": Aggregation("min", "pressure"),
            "maxPressure": Aggregation("max", "pressure"),
            "temperatureReadings": Aggregation("count", "temperature"),
            "avgTemperature": Aggregation("avg", "temperature"),
            "avgFlowRate": Aggregation("avg", "flowRate"),
            "flowReadings": Aggregation("count", "flowRate"),
            "leakCount": Aggregation("sum", "leakDetected"),
        },
        filters=QueryFilters(region=region), timeout=timeout,
    )

    by_region: Dict[str, List[Dict[str, Any]]] = {}
    for row in rows:
        by_region.setdefault(row.get("region") or "", []).append(row)

    regions = []
    for name, items in sorted(by_region.items()):
        pressure_flags = {i["deviceId"] for i in items if _out_of_band(i.get("avgPressure"), cfg.pressure_band)}
        temperature_flags = {
            i["deviceId"] for i in items if _out_of_band(i.get("avgTemperature"), cfg.temperature_band)
        }
        quality_index = 100.0 * stats_kit.safe_divide(
            len(items) - len(pressure_flags | temperature_flags), len(items)
        )
        regions.append({
            "region": name,
            "deviceCount": len(items),
            "readingCount": sum(i["readings"] for i in items),
            "avgPressure": _weighted(items, "avgPressure", "pressureReadings"),
            "minPressure": stats_kit.minimum(i.get("minPressure") for i in items),
            "maxPressure": stats_kit.maximum(i.get("maxPressure") for i in items),
            "avgTemperature": _weighted(items, "avgTemperature", "temperatureReadings"),
            "avgFlowRate": _weighted(items, "avgFlowRate", "flowReadings"),
            "pressureOutOfBand": len(pressure_flags),
            "temperatureOutOfBand": len(temperature_flags),
            "leakCount": int(sum(i.get("leakCount") or 0 for i in items)),
            "qualityIndex": quality_index,
            "status": "good" if quality_index >= cfg.min_quality_index else "degraded",
        })

    alerts = []
    if include_alerts:
        for item in regions:
            alerts.extend(_quality_alerts(cfg, item))

    logger.debug(f"water quality: {len(regions)} regions, {len(alerts)} alerts")
    return WaterQualityReport(window=window, region=region, regions=regions, alerts=alerts)


def list_devices(
    repository: TelemetryRepository,
    fleet: Any = None,
    region: Optional[str] = None,
    status: Optional[str] = None,
    timeout: Optional[float] = None,
) -> List[Device]:
    """Metadatos de dispositivos, filtrables por región y estado."""
    if status is not None:
        try:
            status = DeviceStatus(str(status).lower()).value
        except ValueError:
            raise InvalidParameter(f"Invalid status: {status}. Must be active or inactive") from None

    filters = QueryFilters(region=region, status=status)
    devices: List[Device] = []
    for item in Fleet.expand(fleet):
        devices.extend(repository.list_devices(item, filters=filters, timeout=timeout))
    return devices
