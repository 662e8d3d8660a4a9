"""
Fixtures compartidas por los tests de City Insights.
"""

import threading

import pytest

from analytics_core.errors import RepositoryUnavailable
from telemetry_store import InMemoryTelemetryRepository


class FlakyRepository(InMemoryTelemetryRepository):
    """Repositorio en memoria donde algunas flotas no están disponibles."""

    def __init__(self, broken=(), **kwargs):
        super().__init__(**kwargs)
        self.broken = set(broken)

    def _check(self, fleet):
        if fleet in self.broken:
            raise RepositoryUnavailable(f"{fleet.value} collection is not available")

    def query(self, fleet, *args, **kwargs):
        self._check(fleet)
        return super().query(fleet, *args, **kwargs)

    def query_grouped(self, fleet, *args, **kwargs):
        self._check(fleet)
        return super().query_grouped(fleet, *args, **kwargs)


class HangingRepository(InMemoryTelemetryRepository):
    """Backend que se cuelga en query_grouped ignorando el timeout recibido."""

    def __init__(self, hang_seconds=2.0, **kwargs):
        super().__init__(**kwargs)
        self.hang_seconds = hang_seconds
        self.released = threading.Event()

    def query_grouped(self, fleet, *args, **kwargs):
        self.released.wait(self.hang_seconds)
        return super().query_grouped(fleet, *args, **kwargs)


@pytest.fixture
def flaky_repository():
    """Fábrica de repositorios con flotas caídas."""
    return FlakyRepository


@pytest.fixture
def hanging_repository():
    """Repositorio colgado; se libera al terminar el test."""
    repo = HangingRepository()
    yield repo
    repo.released.set()
