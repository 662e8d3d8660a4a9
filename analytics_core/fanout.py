"""
Fan-out / fan-in de consultas por flota sobre un ThreadPoolExecutor.
"""

import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from typing import Any, Callable, Dict, Hashable, Optional

from .errors import RepositoryTimeout


logger = logging.getLogger(__name__)


def fan_out(
    executor: Executor,
    calls: Dict[Hashable, Callable[[], Any]],
    timeout: Optional[float] = None,
) -> Dict[Hashable, Future]:
    """
    Lanza cada llamada en el pool y espera a que terminen todas.

    Si alguna no termina antes de `timeout` se cancelan las pendientes y se
    lanza RepositoryTimeout: nunca se retornan resultados parciales.

    Returns:
        clave -> Future ya terminado. `future.result()` relanza el error
        original de la llamada.
    """
    futures = {key: executor.submit(call) for key, call in calls.items()}
    _, pending = wait(futures.values(), timeout=timeout)
    if pending:
        for future in pending:
            future.cancel()
        logger.error(f"{len(pending)} of {len(futures)} repository calls exceeded {timeout}s")
        raise RepositoryTimeout(f"Repository did not answer within {timeout}s")
    return futures


def fan_out_temporary(
    calls: Dict[Hashable, Callable[[], Any]],
    timeout: Optional[float] = None,
) -> Dict[Hashable, Future]:
    """
    Igual que fan_out pero sobre un pool propio de len(calls) workers.

    El pool se cierra sin esperar: una llamada colgada que ignora el timeout
    no retiene al llamador más allá de `timeout`.
    """
    pool = ThreadPoolExecutor(max_workers=len(calls), thread_name_prefix="fanout")
    try:
        return fan_out(pool, calls, timeout)
    finally:
        pool.shutdown(wait=False, cancel_futures=True)
