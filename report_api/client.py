"""
Cliente HTTP de la Report API.

Envuelve los endpoints en métodos con los mismos nombres que el
AnalyticsService. Retorna el JSON de la respuesta tal cual.
"""

import logging
from typing import Any, Dict, List, Optional

import requests


logger = logging.getLogger(__name__)


class ReportClient:
    """
    📡 Cliente de la Report API.

    Ejemplo:
        client = ReportClient("http://localhost:8000")
        if client.is_healthy():
            snapshot = client.dashboard("day")
    """

    def __init__(self, base_url: str = "http://localhost:8000", timeout: float = 30.0, session=None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _get(self, path: str, **params) -> Dict[str, Any]:
        params = {k: v for k, v in params.items() if v is not None}
        response = self.session.get(f"{self.base_url}{path}", params=params, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        payload = {k: v for k, v in payload.items() if v is not None}
        response = self.session.post(f"{self.base_url}{path}", json=payload, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def is_healthy(self) -> bool:
        """True si la API responde al health check."""
        try:
            return self._get("/health").get("status") == "healthy"
        except requests.RequestException as e:
            logger.warning(f"Report API not reachable at {self.base_url}: {e}")
            return False

    def health_report(self, start: int, end: int, fleet: str = "all",
                      health_threshold: Optional[float] = None, region: Optional[str] = None) -> Dict[str, Any]:
        return self._post("/api/health-report", {
            "start": start, "end": end, "fleet": fleet,
            "healthThreshold": health_threshold, "region": region,
        })

    def anomalies(self, start: int, end: int, fleet: str = "all",
                  sensitivity: str = "medium", device_id: Optional[str] = None) -> Dict[str, Any]:
        return self._post("/api/anomalies", {
            "start": start, "end": end, "fleet": fleet,
            "sensitivity": sensitivity, "deviceId": device_id,
        })

    def maintenance(self, fleet: str = "all", risk_threshold: Optional[float] = None,
                    lookback_days: Optional[int] = None) -> Dict[str, Any]:
        return self._post("/api/maintenance", {
            "fleet": fleet, "riskThreshold": risk_threshold, "lookbackDays": lookback_days,
        })

    def regional_statistics(self, start: int, end: int, fleets: Optional[List[str]] = None,
                            regions: Optional[List[str]] = None) -> Dict[str, Any]:
        return self._post("/api/regional-statistics", {
            "start": start, "end": end, "fleets": fleets, "regions": regions,
        })

    def dashboard(self, time_range: str = "day") -> Dict[str, Any]:
        return self._get("/api/dashboard", timeRange=time_range)

    def cross_fleet(self, start: int, end: int, region: Optional[str] = None) -> Dict[str, Any]:
        return self._post("/api/cross-fleet", {"start": start, "end": end, "region": region})

    def lighting_telemetry(self, start: int, end: int, device_id: str,
                           limit: Optional[int] = None, offset: Optional[int] = None) -> Dict[str, Any]:
        return self._post("/api/lighting-telemetry", {
            "start": start, "end": end, "deviceId": device_id, "limit": limit, "offset": offset,
        })

    def energy_consumption(self, start: int, end: int, device_id: str) -> Dict[str, Any]:
        return self._post("/api/energy-consumption", {"start": start, "end": end, "deviceId": device_id})

    def regional_energy(self, start: int, end: int, region: Optional[str] = None) -> Dict[str, Any]:
        return self._post("/api/regional-energy", {"start": start, "end": end, "region": region})

    def detect_leaks(self, start: int, end: int, fleet: str = "water",
                     limit: int = 100, offset: int = 0, region: Optional[str] = None) -> Dict[str, Any]:
        return self._post("/api/leaks", {
            "start": start, "end": end, "fleet": fleet,
            "limit": limit, "offset": offset, "region": region,
        })

    def water_quality(self, start: int, end: int, region: Optional[str] = None,
                      include_alerts: bool = True) -> Dict[str, Any]:
        return self._post("/api/water-quality", {
            "start": start, "end": end, "region": region, "includeAlerts": include_alerts,
        })

    def gas_consumption(self, start: int, end: int, region: str) -> Dict[str, Any]:
        return self._post("/api/gas-consumption", {"start": start, "end": end, "region": region})

    def energy_efficiency(self, start: int, end: int, include_recommendations: bool = True) -> Dict[str, Any]:
        return self._post("/api/energy-efficiency", {
            "start": start, "end": end, "includeRecommendations": include_recommendations,
        })

    def list_devices(self, fleet: str = "all", region: Optional[str] = None,
                     status: Optional[str] = None) -> Dict[str, Any]:
        return self._get("/api/devices", fleet=fleet, region=region, status=status)
