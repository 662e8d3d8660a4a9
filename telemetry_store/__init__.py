"""
Implementaciones de TelemetryRepository.
"""

from .memory import InMemoryTelemetryRepository

__all__ = ["InMemoryTelemetryRepository"]
