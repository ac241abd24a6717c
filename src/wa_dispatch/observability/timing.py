"""Context manager and helpers for latency instrumentation."""

from __future__ import annotations

import contextlib
import time
from collections.abc import Generator

from wa_dispatch.observability.logging import get_logger

logger = get_logger(__name__)


class Stopwatch:
    """Cronômetro simples; `elapsed_ms` fica disponível durante e após o bloco."""

    __slots__ = ("_start", "_end")

    def __init__(self) -> None:
        self._start = time.perf_counter()
        self._end: float | None = None

    def stop(self) -> None:
        self._end = time.perf_counter()

    @property
    def elapsed_ms(self) -> float:
        end = self._end if self._end is not None else time.perf_counter()
        return round((end - self._start) * 1000, 2)


@contextlib.contextmanager
def timed(component: str, **fields: object) -> Generator[Stopwatch, None, None]:
    """Context manager to measure and log elapsed time per component.

    Usage:
        with timed("retry_tick", batch=2) as watch:
            # do work
        watch.elapsed_ms

    Logs structured entry with:
        - component: str (name of the measured component)
        - elapsed_ms: float (milliseconds elapsed)
        - any extra keyword fields given by the caller
    """
    watch = Stopwatch()
    try:
        yield watch
    finally:
        watch.stop()
        logger.debug(
            "component_latency",
            extra={"component": component, "elapsed_ms": watch.elapsed_ms, **fields},
        )
