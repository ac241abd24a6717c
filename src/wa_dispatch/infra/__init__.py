"""Camada de infraestrutura: componentes em memória e cliente HTTP.

- Cache: BoundedTTLCache (LRU + TTL)
- Rate limit: FixedWindowRateLimiter
- Idempotência: IdempotencyCache
- Ledger: OutboundLedger
- HTTP: HttpClient

Infraestrutura não decide regra de negócio; nada é persistido entre restarts.
"""

from wa_dispatch.infra.http import (
    HttpClient,
    HttpClientConfig,
    HttpError,
    create_http_client,
)
from wa_dispatch.infra.idempotency import IdempotencyCache
from wa_dispatch.infra.ledger import OutboundLedger
from wa_dispatch.infra.rate_limiter import FixedWindowRateLimiter
from wa_dispatch.infra.ttl_cache import BoundedTTLCache

__all__ = [
    "BoundedTTLCache",
    "FixedWindowRateLimiter",
    "HttpClient",
    "HttpClientConfig",
    "HttpError",
    "IdempotencyCache",
    "OutboundLedger",
    "create_http_client",
]
