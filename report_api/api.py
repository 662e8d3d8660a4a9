#!/usr/bin/env python3
"""
╔══════════════════════════════════════════════════════════════════════════════╗
║                      📡 Report API - City Insights                            ║
║                  Operaciones del Analytics Core sobre HTTP                   ║
╚══════════════════════════════════════════════════════════════════════════════╝

API FastAPI delgada: valida la forma de cada petición con Pydantic, llama
al AnalyticsService y traduce los errores de dominio a códigos HTTP.

Usage:
    python -m report_api.api

    o con uvicorn (flota simulada en memoria):
    uvicorn report_api.api:build_demo_app --factory --port 8000
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from analytics_core import AnalyticsService, TimeWindow
from analytics_core.errors import (
    InvalidParameter,
    InvalidRange,
    RepositoryTimeout,
    RepositoryUnavailable,
)


# Configuración de logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(message)s"
)
logger = logging.getLogger("report_api.api")


# ═══════════════════════════════════════════════════════════════════════════════
# Pydantic Models
# ═══════════════════════════════════════════════════════════════════════════════

class WindowRequest(BaseModel):
    """Ventana [start, end] en epoch seconds y timeout opcional."""
    start: int
    end: int
    timeout: Optional[float] = None


class HealthReportRequest(WindowRequest):
    fleet: str = "all"
    healthThreshold: Optional[float] = None
    region: Optional[str] = None


class AnomalyRequest(WindowRequest):
    fleet: str = "all"
    sensitivity: str = "medium"
    deviceId: Optional[str] = None


class MaintenanceRequest(BaseModel):
    """Sin start/end se usan los últimos lookbackDays días."""
    fleet: str = "all"
    start: Optional[int] = None
    end: Optional[int] = None
    riskThreshold: Optional[float] = None
    lookbackDays: Optional[int] = None
    timeout: Optional[float] = None


class RegionalRequest(WindowRequest):
    fleets: Optional[List[str]] = None
    regions: Optional[List[str]] = None


class CrossFleetRequest(WindowRequest):
    region: Optional[str] = None


class EnergyConsumptionRequest(WindowRequest):
    deviceId: str


class LightingTelemetryRequest(WindowRequest):
    deviceId: str
    limit: int = 1000
    offset: int = 0


class RegionalEnergyRequest(WindowRequest):
    region: Optional[str] = None


class LeakRequest(WindowRequest):
    fleet: str = "water"
    limit: int = 100
    offset: int = 0
    region: Optional[str] = None


class WaterQualityRequest(WindowRequest):
    region: Optional[str] = None
    includeAlerts: bool = True


class GasConsumptionRequest(WindowRequest):
    region: str


class EfficiencyRequest(WindowRequest):
    includeRecommendations: bool = True


# ═══════════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════════

def _run(operation: str, call: Callable[[], Any]) -> Any:
    """Ejecuta una operación del núcleo traduciendo errores de dominio a HTTP."""
    try:
        return call()
    except (InvalidRange, InvalidParameter) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except RepositoryTimeout as e:
        logger.error(f"⏱️ {operation}: {e}")
        raise HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail=str(e))
    except RepositoryUnavailable as e:
        logger.error(f"🔌 {operation}: {e}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


def _window(request: Any) -> TimeWindow:
    return TimeWindow(start=request.start, end=request.end)


# ═══════════════════════════════════════════════════════════════════════════════
# FastAPI App
# ═══════════════════════════════════════════════════════════════════════════════

def create_app(service: AnalyticsService, default_timeout: Optional[float] = None) -> FastAPI:
    """
    Crea la aplicación FastAPI sobre un AnalyticsService ya construido.

    Args:
        service: Servicio con el repositorio inyectado
        default_timeout: Timeout (segundos) cuando la petición no trae uno
    """
    app = FastAPI(
        title="📡 City Insights Report API",
        description="Reportes de salud, anomalías, mantenimiento y consumo de flotas IoT",
        version="1.0.0",
    )

    # CORS para desarrollo
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def timeout_of(request: Any) -> Optional[float]:
        value = getattr(request, "timeout", None)
        return default_timeout if value is None else value

    @app.get("/", tags=["Health"])
    def root():
        """Endpoint raíz con información de la API."""
        return {
            "service": "City Insights Report API",
            "version": "1.0.0",
            "docs": "/docs",
        }

    @app.get("/health", tags=["Health"])
    def health_check():
        """Verifica el estado del servicio."""
        return {
            "status": "healthy",
            "timestamp": datetime.now().isoformat(),
            **service.get_info(),
        }

    @app.post("/api/health-report", tags=["Devices"])
    def health_report(request: HealthReportRequest) -> Dict[str, Any]:
        """🩺 Dispositivos con salud bajo el umbral, de peor a mejor."""
        reports = _run("health-report", lambda: service.health_report(
            request.fleet, _window(request), request.healthThreshold,
            region=request.region, timeout=timeout_of(request),
        ))
        return {
            "fleet": request.fleet,
            "window": {"start": request.start, "end": request.end},
            "total": len(reports),
            "devices": [r.to_dict() for r in reports],
        }

    @app.post("/api/anomalies", tags=["Devices"])
    def anomalies(request: AnomalyRequest) -> Dict[str, Any]:
        """🔍 Dispositivos con lecturas anómalas."""
        reports = _run("anomalies", lambda: service.anomalies(
            request.fleet, _window(request), request.sensitivity,
            device_id=request.deviceId, timeout=timeout_of(request),
        ))
        return {
            "fleet": request.fleet,
            "sensitivity": request.sensitivity,
            "window": {"start": request.start, "end": request.end},
            "total": len(reports),
            "devices": [r.to_dict() for r in reports],
        }

    @app.post("/api/maintenance", tags=["Devices"])
    def maintenance(request: MaintenanceRequest) -> Dict[str, Any]:
        """🔧 Predicción de mantenimiento."""
        def call():
            window = None
            if request.start is not None or request.end is not None:
                if request.start is None or request.end is None:
                    raise InvalidParameter("start and end must be given together")
                window = TimeWindow(request.start, request.end)
            return service.maintenance(
                request.fleet, window, request.riskThreshold,
                lookback_days=request.lookbackDays, timeout=timeout_of(request),
            )
        return _run("maintenance", call).to_dict()

    @app.post("/api/regional-statistics", tags=["Regions"])
    def regional_statistics(request: RegionalRequest) -> Dict[str, Any]:
        """🗺️ Estadísticas comparativas por región."""
        return _run("regional-statistics", lambda: service.regional_statistics(
            _window(request), request.fleets, request.regions, timeout=timeout_of(request),
        )).to_dict()

    @app.get("/api/dashboard", tags=["Dashboard"])
    def dashboard(
        timeRange: str = Query("day"),
        timeout: Optional[float] = Query(None, gt=0),
    ) -> Dict[str, Any]:
        """📊 Dashboard de la ciudad para hour, day, week o month."""
        return _run("dashboard", lambda: service.dashboard(
            timeRange, timeout=default_timeout if timeout is None else timeout,
        )).to_dict()

    @app.post("/api/cross-fleet", tags=["Regions"])
    def cross_fleet(request: CrossFleetRequest) -> Dict[str, Any]:
        """🔗 Correlación de consumo entre flotas."""
        return _run("cross-fleet", lambda: service.cross_fleet(
            _window(request), region=request.region, timeout=timeout_of(request),
        )).to_dict()

    @app.post("/api/energy-consumption", tags=["Consumption"])
    def energy_consumption(request: EnergyConsumptionRequest) -> Dict[str, Any]:
        return _run("energy-consumption", lambda: service.energy_consumption(
            request.deviceId, _window(request), timeout=timeout_of(request),
        )).to_dict()

    @app.post("/api/lighting-telemetry", tags=["Devices"])
    def lighting_telemetry(request: LightingTelemetryRequest) -> Dict[str, Any]:
        """💡 Lecturas crudas de una luminaria en orden temporal."""
        return _run("lighting-telemetry", lambda: service.lighting_telemetry(
            request.deviceId, _window(request), limit=request.limit,
            offset=request.offset, timeout=timeout_of(request),
        )).to_dict()

    @app.post("/api/regional-energy", tags=["Consumption"])
    def regional_energy(request: RegionalEnergyRequest) -> Dict[str, Any]:
        return _run("regional-energy", lambda: service.regional_energy(
            _window(request), region=request.region, timeout=timeout_of(request),
        )).to_dict()

    @app.post("/api/leaks", tags=["Consumption"])
    def leaks(request: LeakRequest) -> Dict[str, Any]:
        return _run("leaks", lambda: service.detect_leaks(
            _window(request), request.fleet, limit=request.limit, offset=request.offset,
            region=request.region, timeout=timeout_of(request),
        )).to_dict()

    @app.post("/api/water-quality", tags=["Consumption"])
    def water_quality(request: WaterQualityRequest) -> Dict[str, Any]:
        """💧 Calidad de la red de agua por región."""
        return _run("water-quality", lambda: service.water_quality(
            _window(request), region=request.region,
            include_alerts=request.includeAlerts, timeout=timeout_of(request),
        )).to_dict()

    @app.post("/api/gas-consumption", tags=["Consumption"])
    def gas_consumption(request: GasConsumptionRequest) -> Dict[str, Any]:
        return _run("gas-consumption", lambda: service.gas_consumption(
            request.region, _window(request), timeout=timeout_of(request),
        )).to_dict()

    @app.post("/api/energy-efficiency", tags=["Consumption"])
    def energy_efficiency(request: EfficiencyRequest) -> Dict[str, Any]:
        return _run("energy-efficiency", lambda: service.energy_efficiency(
            _window(request), request.includeRecommendations, timeout=timeout_of(request),
        )).to_dict()

    @app.get("/api/devices", tags=["Devices"])
    def devices(
        fleet: str = Query("all"),
        region: Optional[str] = None,
        status: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Lista metadatos de dispositivos."""
        items = _run("devices", lambda: service.list_devices(
            fleet, region=region, status=status, timeout=default_timeout,
        ))
        return {"total": len(items), "devices": [d.to_dict() for d in items]}

    return app


def build_demo_app() -> FastAPI:
    """App sobre un repositorio en memoria poblado por el simulador."""
    from analytics_core.config import load_config
    from sensors.fleet_simulator import FleetSimulator
    from telemetry_store import InMemoryTelemetryRepository

    repository = InMemoryTelemetryRepository()
    counts = FleetSimulator().populate(repository)
    logger.info(f"🛰️ Demo repository seeded: {counts}")
    return create_app(AnalyticsService(repository, load_config()), default_timeout=10.0)


# ═══════════════════════════════════════════════════════════════════════════════
# Main Entry Point
# ═══════════════════════════════════════════════════════════════════════════════

if __name__ == "__main__":
    import uvicorn

    print("""
╔══════════════════════════════════════════════════════════════════════════════╗
║                      📡 City Insights Report API                             ║
║                     Analytics Core sobre HTTP (demo)                         ║
╚══════════════════════════════════════════════════════════════════════════════╝
    """)

    uvicorn.run(
        build_demo_app(),
        host="0.0.0.0",
        port=8000,
        log_level="info",
    )
