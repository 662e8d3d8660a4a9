"""
╔══════════════════════════════════════════════════════════════════════════════╗
║                   🗄️ Telemetry Repository - City Insights                     ║
║                      Frontera de datos del Analytics Core                     ║
╚══════════════════════════════════════════════════════════════════════════════╝

Clase base abstracta que define el contrato entre el núcleo analítico y el
almacén de telemetría (documento por lectura + metadatos de dispositivo).
Cualquier backend (MongoDB, Timescale, memoria) debe implementar esta interfaz.

El núcleo nunca escribe lecturas: solo consulta, agrupa y cuenta.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional

from .models import Device, Fleet, Reading, TimeWindow


# Campo virtual de agrupación: inicio del slot temporal de la lectura
TIME_SLOT = "timeSlot"

AGGREGATION_OPS = ("sum", "avg", "min", "max", "stddev", "count")


@dataclass(frozen=True)
class QueryFilters:
    """Filtros opcionales de una consulta."""
    device_id: Optional[str] = None
    region: Optional[str] = None
    status: Optional[str] = None
    leak_detected: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            key: value for key, value in (
                ("deviceId", self.device_id),
                ("region", self.region),
                ("status", self.status),
                ("leakDetected", self.leak_detected),
            ) if value is not None
        }


@dataclass(frozen=True)
class Aggregation:
    """
    Operación de agregación sobre un campo de lectura.

    Example:
        >>> Aggregation("avg", "state")      # fracción de lecturas encendidas
        >>> Aggregation("stddev", "voltage") # desviación estándar muestral
        >>> Aggregation("count")             # número de lecturas del grupo
    """
    op: str
    field: Optional[str] = None

    def __post_init__(self):
        if self.op not in AGGREGATION_OPS:
            raise ValueError(
                f"Unsupported aggregation '{self.op}'. Must be one of {', '.join(AGGREGATION_OPS)}"
            )
        if self.op != "count" and not self.field:
            raise ValueError(f"Aggregation '{self.op}' requires a field")


class TelemetryRepository(ABC):
    """
    🗄️ Contrato de consulta de telemetría.

    Todas las operaciones aceptan `timeout` en segundos. Si el backend no
    responde a tiempo debe lanzar RepositoryTimeout; si no puede atender la
    consulta, RepositoryUnavailable. El núcleo no reintenta.

    La agregación se empuja al backend (query_grouped) para no materializar
    millones de lecturas en el proceso del núcleo.
    """

    @property
    def name(self) -> str:
        """Identificador del backend."""
        return self.__class__.__name__

    @abstractmethod
    def query(
        self,
        fleet: Fleet,
        window: TimeWindow,
        filters: Optional[QueryFilters] = None,
        timeout: Optional[float] = None,
    ) -> Iterator[Reading]:
        """
        Itera las lecturas de la flota dentro de la ventana.

        Orden garantizado: (timestamp, deviceId) ascendente, para que la
        paginación sea estable.
        """
        pass

    @abstractmethod
    def query_grouped(
        self,
        fleet: Fleet,
        window: TimeWindow,
        group_by: List[str],
        aggregations: Dict[str, Aggregation],
        filters: Optional[QueryFilters] = None,
        timeout: Optional[float] = None,
        slot_seconds: int = 3600,
    ) -> List[Dict[str, Any]]:
        """
        Agrupa y agrega lecturas en el backend.

        Args:
            group_by: Campos de agrupación. Se admiten campos de lectura,
                metadatos del dispositivo ("region", "status") y TIME_SLOT.
            aggregations: nombre de salida -> Aggregation.
            slot_seconds: Tamaño del slot cuando se agrupa por TIME_SLOT.

        Returns:
            Una fila por grupo con los campos de agrupación y las agregaciones,
            ordenadas por la clave de agrupación. Lista vacía si no hay lecturas.
        """
        pass

    @abstractmethod
    def count_documents(
        self,
        fleet: Fleet,
        window: TimeWindow,
        filters: Optional[QueryFilters] = None,
        timeout: Optional[float] = None,
    ) -> int:
        pass

    @abstractmethod
    def join_device_metadata(self, fleet: Fleet, readings: List[Reading]) -> List[Reading]:
        """Retorna copias de las lecturas con region/status del dispositivo."""
        pass

    @abstractmethod
    def list_devices(
        self,
        fleet: Fleet,
        filters: Optional[QueryFilters] = None,
        timeout: Optional[float] = None,
    ) -> List[Device]:
        pass

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name='{self.name}')>"
