"""Observabilidade: logging JSON, correlation_id e medição de latência."""

from wa_dispatch.observability.logging import (
    CorrelationIdFilter,
    configure_logging,
    get_logger,
    mask_recipient,
)
from wa_dispatch.observability.middleware import (
    CorrelationIdMiddleware,
    get_correlation_id,
    new_correlation_id,
)
from wa_dispatch.observability.timing import Stopwatch, timed

__all__ = [
    "CorrelationIdFilter",
    "CorrelationIdMiddleware",
    "Stopwatch",
    "configure_logging",
    "get_correlation_id",
    "get_logger",
    "mask_recipient",
    "new_correlation_id",
    "timed",
]
