"""
Generadores de telemetría sintética.
"""

from .fleet_simulator import FleetSimulator, SimulatorConfig

__all__ = ["FleetSimulator", "SimulatorConfig"]
