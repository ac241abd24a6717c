"""Rate limiter de janela fixa compartilhado por todos os caminhos de envio.

A janela é derivada do relógio de parede (não é janela deslizante):
bucket = int(now // window_seconds). O contador de cada bucket expira sozinho.
"""

from __future__ import annotations

import logging
import math
import time

from wa_dispatch.infra.ttl_cache import BoundedTTLCache, Clock
from wa_dispatch.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)

# Poucos buckets vivos bastam: só o corrente é incrementado.
_MAX_TRACKED_BUCKETS = 8


class FixedWindowRateLimiter:
    """Limita envios a `budget` por janela fixa de `window_seconds`.

    Instância única injetada em fila atrasada, fila de retry e envio urgente.
    Uma recusa não tem efeito colateral e não conta como tentativa.
    """

    def __init__(
        self,
        budget: int,
        window_seconds: int = 60,
        clock: Clock | None = None,
    ) -> None:
        if budget < 1:
            raise ValueError("budget deve ser >= 1")
        if window_seconds < 1:
            raise ValueError("window_seconds deve ser >= 1")
        self._budget = budget
        self._window = window_seconds
        self._clock = clock or time.time
        self._counters: BoundedTTLCache[int, int] = BoundedTTLCache(
            max_entries=_MAX_TRACKED_BUCKETS,
            ttl_seconds=window_seconds * 2,
            clock=self._clock,
        )

    @property
    def budget(self) -> int:
        return self._budget

    @property
    def window_seconds(self) -> int:
        return self._window

    def current_bucket(self) -> int:
        """Identificador do bucket corrente."""
        return int(self._clock() // self._window)

    def try_acquire(self) -> bool:
        """Consome uma unidade do orçamento do bucket corrente.

        Returns:
            True se o envio pode prosseguir; False se o orçamento esgotou
        """
        bucket = self.current_bucket()
        acquired = False

        def _increment(count: int | None) -> int:
            nonlocal acquired
            current = count or 0
            if current >= self._budget:
                return current
            acquired = True
            return current + 1

        count = self._counters.update(bucket, _increment)
        if not acquired:
            logger.debug(
                "rate_limit_exhausted",
                extra={
                    "bucket": bucket,
                    "count": count,
                    "budget": self._budget,
                    "reset_in_seconds": self.seconds_until_reset(),
                },
            )
        return acquired

    def remaining(self) -> int:
        """Quantos envios ainda cabem no bucket corrente."""
        used = self._counters.get(self.current_bucket()) or 0
        return max(0, self._budget - used)

    def seconds_until_reset(self) -> float:
        """Segundos até o início do próximo bucket."""
        now = self._clock()
        next_boundary = (math.floor(now / self._window) + 1) * self._window
        return round(next_boundary - now, 3)

    def snapshot(self) -> dict[str, float | int]:
        """Estado para introspecção."""
        return {
            "budget": self._budget,
            "window_seconds": self._window,
            "remaining": self.remaining(),
            "reset_in_seconds": self.seconds_until_reset(),
        }
