#!/usr/bin/env python3
"""
╔══════════════════════════════════════════════════════════════════════════════╗
║                   🏙️ City Insights Report Demo                               ║
║               Dashboard, salud y mantenimiento vía Report API                ║
╚══════════════════════════════════════════════════════════════════════════════╝

Consulta una Report API en ejecución y muestra un resumen de la ciudad.

Usage:
    python -m report_api.api          # en otra terminal
    python run_report_demo.py --url http://localhost:8000 --hours 24
"""

import argparse
import time

import requests

from report_api.client import ReportClient


PRIORITY_EMOJI = {"critical": "🔴", "warning": "🟠", "info": "⚪"}


def print_dashboard(snapshot: dict) -> None:
    totals = snapshot["totals"]
    print(f"📊 Dashboard ({snapshot['timeRange']})")
    print(f"   ├─ Dispositivos: {totals['devices']}")
    print(f"   ├─ Energía: {totals['energyConsumption']:.2f}")
    print(f"   ├─ Agua: {totals['waterConsumption']:.2f}")
    print(f"   ├─ Gas: {totals['gasConsumption']:.2f}")
    print(f"   └─ Fugas: {totals['totalLeaks']}")
    for level, alerts in snapshot["alerts"].items():
        for alert in alerts:
            print(f"   {PRIORITY_EMOJI.get(level, '⚪')} {alert['message']}")


def main():
    parser = argparse.ArgumentParser(description="City Insights - demo de reportes")
    parser.add_argument("--url", default="http://localhost:8000", help="URL base de la Report API")
    parser.add_argument("--hours", type=int, default=24, help="Horas hacia atrás a analizar")
    parser.add_argument("--threshold", type=float, default=80.0, help="Umbral de salud")
    args = parser.parse_args()

    print("""
╔══════════════════════════════════════════════════════════════════════════════╗
║                   🏙️ City Insights Report Demo                               ║
╚══════════════════════════════════════════════════════════════════════════════╝
    """)

    client = ReportClient(args.url)
    if not client.is_healthy():
        print(f"❌ No se pudo conectar a la Report API en {args.url}")
        print("   Ejecuta primero: python -m report_api.api")
        return

    end = int(time.time())
    start = end - args.hours * 3600

    try:
        print_dashboard(client.dashboard("day"))

        health = client.health_report(start, end, health_threshold=args.threshold)
        print(f"\n🩺 {health['total']} dispositivos con salud < {args.threshold:.0f}")
        for device in health["devices"][:5]:
            print(f"   ├─ {device['deviceId']} ({device['region']}): {device['healthScore']:.1f}")

        forecast = client.maintenance()
        summary = forecast["summary"]
        print(f"\n🔧 {summary['totalDevicesAtRisk']} en riesgo, "
              f"{summary['urgentMaintenance']} urgentes")
        for prediction in forecast["predictions"][:5]:
            print(f"   ├─ {prediction['deviceId']}: riesgo {prediction['riskScore']:.1f}, "
                  f"~{prediction['predictedFailureDays']:.0f} días")

        quality = client.water_quality(start, end)
        print(f"\n💧 Calidad del agua en {len(quality['regions'])} regiones")
        for region in quality["regions"]:
            print(f"   ├─ {region['region']}: índice {region['qualityIndex']:.0f} ({region['status']})")
        for alert in quality["alerts"]:
            print(f"   ⚠️ {alert['message']}")
    except requests.HTTPError as e:
        print(f"❌ La API respondió con error: {e}")


if __name__ == "__main__":
    main()
