"""
Excepciones de Analytics Core.

Un resultado vacío no es un error: los analizadores retornan listas vacías.
"""


class AnalyticsError(Exception):
    """Excepción base de Analytics Core."""
    pass


class InvalidRange(AnalyticsError):
    """La ventana de tiempo tiene start > end."""
    pass


class InvalidParameter(AnalyticsError):
    """Umbral, sensibilidad o enum fuera de dominio."""
    pass


class RepositoryError(AnalyticsError):
    """Fallo en la frontera con el repositorio de telemetría."""
    pass


class RepositoryTimeout(RepositoryError):
    """El repositorio no respondió dentro del timeout del llamador."""
    pass


class RepositoryUnavailable(RepositoryError):
    """El repositorio no está disponible (conexión caída, colección inexistente)."""
    pass
