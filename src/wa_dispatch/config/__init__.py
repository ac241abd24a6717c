"""Configurações centralizadas do wa_dispatch.

Este módulo exporta:
- Settings: classe de configuração via variáveis de ambiente
- get_settings: função cacheada para obter instância única
- Constantes de endpoint do gateway

Uso típico:
    from wa_dispatch.config import get_settings
"""

from wa_dispatch.config.settings import (
    GATEWAY_BASE_URL,
    GATEWAY_DOCUMENT_PATH,
    GATEWAY_INTERACTIVE_PATH,
    GATEWAY_TEXT_PATH,
    Settings,
    get_settings,
)

__all__ = [
    "Settings",
    "get_settings",
    "GATEWAY_BASE_URL",
    "GATEWAY_TEXT_PATH",
    "GATEWAY_DOCUMENT_PATH",
    "GATEWAY_INTERACTIVE_PATH",
]
