"""Cache em memória limitada por tamanho (LRU) e por tempo (TTL).

Base comum de IdempotencyCache, OutboundLedger, RateLimiter e dedupe inbound.
Cada instância é um componente próprio, injetado no motor, nunca estado global.

⚠️ Estado local do processo: perdido ao reiniciar (trade-off aceito).
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Hashable
from typing import Generic, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

Clock = Callable[[], float]


class BoundedTTLCache(Generic[K, V]):
    """Mapa LRU com expiração por entrada.

    Estrutura interna:
        {key: (value, expire_at)} em ordem de uso (mais antigo primeiro)

    Todas as operações são seções críticas curtas sob um lock; nenhuma
    faz I/O.
    """

    def __init__(
        self,
        max_entries: int,
        ttl_seconds: float,
        clock: Clock | None = None,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries deve ser >= 1")
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds deve ser > 0")
        self._max_entries = max_entries
        self._ttl = float(ttl_seconds)
        self._clock = clock or time.time
        self._data: OrderedDict[K, tuple[V, float]] = OrderedDict()
        self._lock = threading.Lock()

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def get(self, key: K, default: V | None = None) -> V | None:
        """Retorna o valor vivo (e marca como usado) ou `default`."""
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                return default
            self._data.move_to_end(key)
            return entry[0]

    def set(self, key: K, value: V, ttl_seconds: float | None = None) -> None:
        """Insere/substitui a entrada com TTL novo."""
        with self._lock:
            self._store(key, value, ttl_seconds)

    def add_if_absent(
        self,
        key: K,
        value: V,
        ttl_seconds: float | None = None,
    ) -> tuple[bool, V]:
        """Set-if-not-exists atômico.

        Returns:
            (True, value) se inseriu agora; (False, existente) caso contrário
        """
        with self._lock:
            entry = self._live_entry(key)
            if entry is not None:
                self._data.move_to_end(key)
                return False, entry[0]
            self._store(key, value, ttl_seconds)
            return True, value

    def update(
        self,
        key: K,
        fn: Callable[[V | None], V],
        ttl_seconds: float | None = None,
    ) -> V:
        """Aplica `fn` ao valor atual (ou None) e grava o resultado atomicamente."""
        with self._lock:
            entry = self._live_entry(key)
            value = fn(entry[0] if entry is not None else None)
            self._store(key, value, ttl_seconds)
            return value

    def pop(self, key: K, default: V | None = None) -> V | None:
        """Remove a entrada; retorna o valor se ainda estava viva."""
        with self._lock:
            entry = self._data.pop(key, None)
            if entry is None or entry[1] <= self._clock():
                return default
            return entry[0]

    def pop_if(self, key: K, predicate: Callable[[V], bool]) -> bool:
        """Remove a entrada viva somente se `predicate(valor)` for verdadeiro."""
        with self._lock:
            entry = self._live_entry(key)
            if entry is None or not predicate(entry[0]):
                return False
            del self._data[key]
            return True

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return self._live_entry(key) is not None  # type: ignore[arg-type]

    def __len__(self) -> int:
        with self._lock:
            self._purge_expired()
            return len(self._data)

    def items(self) -> list[tuple[K, V]]:
        """Snapshot das entradas vivas (mais antigas primeiro)."""
        with self._lock:
            self._purge_expired()
            return [(k, v) for k, (v, _) in self._data.items()]

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    # Métodos internos: chamados com o lock adquirido

    def _live_entry(self, key: K) -> tuple[V, float] | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        if entry[1] <= self._clock():
            del self._data[key]
            return None
        return entry

    def _store(self, key: K, value: V, ttl_seconds: float | None) -> None:
        ttl = self._ttl if ttl_seconds is None else float(ttl_seconds)
        self._data[key] = (value, self._clock() + ttl)
        self._data.move_to_end(key)
        if len(self._data) > self._max_entries:
            self._purge_expired()
        while len(self._data) > self._max_entries:
            self._data.popitem(last=False)

    def _purge_expired(self) -> None:
        now = self._clock()
        expired = [k for k, (_, expire_at) in self._data.items() if expire_at <= now]
        for k in expired:
            del self._data[k]
