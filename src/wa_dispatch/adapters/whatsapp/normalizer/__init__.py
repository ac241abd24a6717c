from __future__ import annotations

from .extractor import IncomingMessage, extract_incoming

__all__ = [
    "IncomingMessage",
    "extract_incoming",
]
