#!/usr/bin/env python3
"""
╔══════════════════════════════════════════════════════════════════════════════╗
║                         🛰️ Fleet Simulator 🛰️                                 ║
║              Telemetría sintética de iluminación, agua y gas                 ║
╚══════════════════════════════════════════════════════════════════════════════╝

Genera dispositivos y lecturas reproducibles (semilla fija) para poblar un
repositorio de telemetría en demos y tests. Los contadores (energyAcc,
operatingHours, consumption) son monótonos por dispositivo.

Usage:
    python -m sensors.fleet_simulator                    # 10 dispositivos por flota, 3 días
    python -m sensors.fleet_simulator --devices 50 --days 7
"""

import argparse
import random
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from analytics_core.models import Device, DeviceStatus, Fleet, Reading


# (nombre, latitud, longitud, radio en grados)
REGIONS: List[Tuple[str, float, float, float]] = [
    ("São Paulo", -23.5505, -46.6333, 0.5),
    ("Rio de Janeiro", -22.9068, -43.1729, 0.4),
    ("Belo Horizonte", -19.9167, -43.9345, 0.3),
    ("Curitiba", -25.4284, -49.2733, 0.3),
    ("Porto Alegre", -30.0346, -51.2177, 0.3),
    ("Salvador", -12.9714, -38.5014, 0.4),
    ("Recife", -8.0476, -34.8770, 0.3),
    ("Fortaleza", -3.7319, -38.5267, 0.3),
    ("Manaus", -3.1190, -60.0217, 0.4),
    ("Brasília", -15.7975, -47.8919, 0.4),
]

DEVICE_PREFIX = {
    Fleet.LIGHTING: "LIGHT",
    Fleet.WATER: "WATER",
    Fleet.GAS: "GAS",
}


@dataclass
class SimulatorConfig:
    """Configuración del simulador de flotas."""
    seed: int = 42
    devices_per_fleet: int = 10
    days: int = 3
    readings_per_day: int = 24
    regions: int = 4  # Primeras N regiones de REGIONS
    inactive_probability: float = 0.05

    # Iluminación
    lamp_off_probability: float = 0.1
    nominal_voltage: float = 220.0

    # Medidores
    water_leak_probability: float = 0.05
    gas_leak_probability: float = 0.02


class FleetSimulator:
    """
    🛰️ Fleet Simulator - Generador de telemetría IoT virtual.

    Ejemplo:
        simulator = FleetSimulator(SimulatorConfig(seed=7, devices_per_fleet=5))
        repo = InMemoryTelemetryRepository()
        counts = simulator.populate(repo, now=1_700_000_000)
    """

    def __init__(self, config: Optional[SimulatorConfig] = None):
        self.config = config or SimulatorConfig()
        self._random = random.Random(self.config.seed)

    def timestamps(self, now: int) -> List[int]:
        """Marcas de tiempo equiespaciadas de los últimos `days` días hasta `now`."""
        step = 24 * 3600 // self.config.readings_per_day
        total = self.config.days * self.config.readings_per_day
        start = now - total * step
        return [start + (i + 1) * step for i in range(total)]

    def generate_devices(self, fleet: Fleet, installed_at: int = 0) -> List[Device]:
        """Dispositivos de una flota repartidos al azar entre las regiones."""
        regions = REGIONS[:max(1, min(self.config.regions, len(REGIONS)))]
        devices = []
        for index in range(1, self.config.devices_per_fleet + 1):
            name, lat, lon, radius = self._random.choice(regions)
            status = (
                DeviceStatus.INACTIVE
                if self._random.random() < self.config.inactive_probability
                else DeviceStatus.ACTIVE
            )
            devices.append(Device(
                device_id=f"{DEVICE_PREFIX[fleet]}-{index:06d}",
                fleet=fleet,
                region=name,
                status=status,
                installed_at=installed_at,
                latitude=lat + self._random.uniform(-radius, radius),
                longitude=lon + self._random.uniform(-radius, radius),
            ))
        return devices

    def _lighting(self, device_id: str, timestamps: List[int]) -> List[Reading]:
        rnd = self._random
        readings = []
        current = 0.5
        energy = 0.0
        hours = 0.0
        for ts in timestamps:
            voltage = self.config.nominal_voltage + rnd.uniform(-5, 5)
            power_factor = round(0.85 + rnd.uniform(0, 0.1), 2)
            current = max(0.1, current + rnd.uniform(-0.1, 0.1))
            power = voltage * current * power_factor
            energy += power * 0.1
            hours += rnd.uniform(0, 0.1)
            readings.append(Reading(
                device_id=device_id,
                timestamp=ts,
                voltage=voltage,
                current=current,
                power_consumption=round(power, 2),
                power_factor=power_factor,
                temp=25 + rnd.uniform(-5, 5),
                lux=100 + rnd.uniform(0, 900),
                state=0 if rnd.random() < self.config.lamp_off_probability else 1,
                energy_acc=round(energy, 2),
                operating_hours=hours,
            ))
        return readings

    def _meter(self, fleet: Fleet, device_id: str, timestamps: List[int]) -> List[Reading]:
        rnd = self._random
        is_gas = fleet is Fleet.GAS
        leak_probability = self.config.gas_leak_probability if is_gas else self.config.water_leak_probability
        readings = []
        pulses = 0
        for ts in timestamps:
            pulses += rnd.randint(0, 4 if is_gas else 9)
            readings.append(Reading(
                device_id=device_id,
                timestamp=ts,
                flow_rate=rnd.uniform(0, 1.5 if is_gas else 2.0),
                battery=80 + rnd.uniform(0, 20),
                pressure=(0.5 + rnd.uniform(0, 0.5)) if is_gas else (2 + rnd.uniform(0, 3)),
                temperature=(20 + rnd.uniform(0, 5)) if is_gas else (15 + rnd.uniform(0, 10)),
                consumption=pulses * (0.01 if is_gas else 0.1),
                leak_detected=rnd.random() < leak_probability,
            ))
        return readings

    def generate_readings(self, device: Device, timestamps: List[int]) -> List[Reading]:
        if device.fleet is Fleet.LIGHTING:
            return self._lighting(device.device_id, timestamps)
        return self._meter(device.fleet, device.device_id, timestamps)

    def populate(self, repository, now: Optional[int] = None) -> Dict[str, int]:
        """
        Crea dispositivos y lecturas de las tres flotas en el repositorio.

        Args:
            repository: Repositorio con add_device / add_readings
            now: Fin de la serie (epoch seconds); por defecto la hora actual

        Returns:
            Conteo de lecturas generadas por flota
        """
        now = int(now if now is not None else time.time())
        timestamps = self.timestamps(now)
        counts = {}
        for fleet in Fleet:
            total = 0
            for device in self.generate_devices(fleet, installed_at=timestamps[0] if timestamps else now):
                repository.add_device(device)
                readings = self.generate_readings(device, timestamps)
                repository.add_readings(fleet, readings)
                total += len(readings)
            counts[fleet.value] = total
        return counts


# ═══════════════════════════════════════════════════════════════════════════════
# CLI
# ═══════════════════════════════════════════════════════════════════════════════

def main():
    from telemetry_store import InMemoryTelemetryRepository

    parser = argparse.ArgumentParser(description="Fleet Simulator - telemetría sintética")
    parser.add_argument("--seed", type=int, default=42, help="Semilla del generador")
    parser.add_argument("--devices", type=int, default=10, help="Dispositivos por flota")
    parser.add_argument("--days", type=int, default=3, help="Días de historia")
    parser.add_argument("--readings-per-day", type=int, default=24, help="Lecturas por día")
    args = parser.parse_args()

    simulator = FleetSimulator(SimulatorConfig(
        seed=args.seed,
        devices_per_fleet=args.devices,
        days=args.days,
        readings_per_day=args.readings_per_day,
    ))
    counts = simulator.populate(InMemoryTelemetryRepository())

    print("🛰️ Telemetría generada:")
    for fleet, total in counts.items():
        print(f"   ├─ {fleet}: {total} lecturas")
    print(f"   └─ total: {sum(counts.values())} lecturas")


if __name__ == "__main__":
    main()
