"""
StatisticsKit - primitivas numéricas compartidas.

Funciones puras sobre lotes finitos de muestras. Los valores None se
ignoran y ninguna función retorna NaN/Infinity: los casos degenerados
(muestra vacía, división por cero, varianza nula) retornan 0.
"""

import math
from typing import Iterable, List, Optional, Sequence


def _clean(xs: Iterable[Optional[float]]) -> List[float]:
    return [float(x) for x in xs if x is not None and math.isfinite(float(x))]


def safe_divide(a: float, b: float) -> float:
    """Divide a/b retornando 0 cuando b == 0 (nunca lanza)."""
    if not b:
        return 0.0
    result = a / b
    return result if math.isfinite(result) else 0.0


def clamp(x: float, lo: float, hi: float) -> float:
    """Limita x al intervalo [lo, hi]."""
    if x is None or not math.isfinite(x):
        return lo
    return max(lo, min(hi, x))


def mean(xs: Iterable[Optional[float]]) -> float:
    values = _clean(xs)
    return safe_divide(sum(values), len(values))


def stddev_sample(xs: Iterable[Optional[float]]) -> float:
    """Desviación estándar con corrección de Bessel. Retorna 0 para n < 2."""
    values = _clean(xs)
    n = len(values)
    if n < 2:
        return 0.0
    mu = sum(values) / n
    return math.sqrt(sum((v - mu) ** 2 for v in values) / (n - 1))


def stddev_population(xs: Iterable[Optional[float]]) -> float:
    values = _clean(xs)
    n = len(values)
    if n == 0:
        return 0.0
    mu = sum(values) / n
    return math.sqrt(sum((v - mu) ** 2 for v in values) / n)


def minimum(xs: Iterable[Optional[float]]) -> float:
    values = _clean(xs)
    return min(values) if values else 0.0


def maximum(xs: Iterable[Optional[float]]) -> float:
    values = _clean(xs)
    return max(values) if values else 0.0


def rate_of_change(values: Sequence[Optional[float]], timestamps: Sequence[int]) -> float:
    """
    Pendiente entre la primera y la última muestra en orden temporal.

    Acepta entradas desordenadas y con huecos. Retorna 0 si no hay dos
    muestras válidas o si el intervalo de tiempo es 0.
    """
    pairs = sorted(
        (t, float(v)) for v, t in zip(values, timestamps)
        if v is not None and t is not None and math.isfinite(float(v))
    )
    if len(pairs) < 2:
        return 0.0
    (t0, v0), (t1, v1) = pairs[0], pairs[-1]
    return safe_divide(v1 - v0, t1 - t0)


def pearson(xs: Sequence[float], ys: Sequence[float]) -> float:
    """
    Coeficiente de correlación de Pearson entre dos series pareadas.

    Retorna 0 cuando hay menos de dos pares o alguna serie es constante.
    """
    pairs = [
        (float(x), float(y)) for x, y in zip(xs, ys)
        if x is not None and y is not None
    ]
    n = len(pairs)
    if n < 2:
        return 0.0
    mx = sum(p[0] for p in pairs) / n
    my = sum(p[1] for p in pairs) / n
    cov = sum((x - mx) * (y - my) for x, y in pairs)
    sx = math.sqrt(sum((x - mx) ** 2 for x, _ in pairs))
    sy = math.sqrt(sum((y - my) ** 2 for _, y in pairs))
    return clamp(safe_divide(cov, sx * sy), -1.0, 1.0)


def time_slot(timestamp: int, slot_seconds: int) -> int:
    """Inicio (epoch seconds) del slot de tamaño fijo que contiene timestamp."""
    return int(timestamp) // slot_seconds * slot_seconds


def spread(xs: Iterable[Optional[float]]) -> float:
    """Diferencia max - min; consumo de un contador monótono en la ventana."""
    values = _clean(xs)
    if not values:
        return 0.0
    return max(values) - min(values)
