"""Pré-upload de documento para o provedor de mídia.

Responsabilidades:
- Enviar o arquivo via multipart (campo `file`)
- Descobrir o media_id na resposta (formatos variados)

Executado fora do fluxo de envio (operador, uma vez por documento); o
media_id resultante vai para MEDIA_ID.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from wa_dispatch.infra.http import HttpClient, HttpClientConfig, HttpError
from wa_dispatch.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)

UPLOAD_TIMEOUT_SECONDS = 60.0


class MediaUploadError(Exception):
    """Falha no upload de mídia."""


@dataclass(frozen=True)
class MediaUploadResult:
    """Resultado de upload de mídia."""

    media_id: str | None
    status_code: int
    response: Any


def find_media_id(data: Any) -> str | None:
    """Procura o media_id em `media_id | id | data.id | media[0].id`."""
    if not isinstance(data, dict):
        return None
    for candidate in (
        data.get("media_id"),
        data.get("id"),
        (data.get("data") or {}).get("id") if isinstance(data.get("data"), dict) else None,
    ):
        if candidate:
            return str(candidate)
    media = data.get("media")
    if isinstance(media, list) and media and isinstance(media[0], dict) and media[0].get("id"):
        return str(media[0]["id"])
    return None


async def upload_document(
    path: str | Path,
    *,
    upload_url: str,
    api_key: str,
    http_client: HttpClient | None = None,
) -> MediaUploadResult:
    """Faz upload do documento e retorna o media_id detectado.

    Raises:
        MediaUploadError: arquivo ausente ou falha HTTP
    """
    file_path = Path(path)
    if not file_path.is_file():
        raise MediaUploadError(f"Arquivo não encontrado: {file_path}")

    client = http_client or HttpClient(
        HttpClientConfig(
            timeout_seconds=UPLOAD_TIMEOUT_SECONDS,
            default_headers={"Authorization": f"Bearer {api_key}"},
        )
    )

    logger.info(
        "media_upload_started",
        extra={"filename": file_path.name, "size_bytes": file_path.stat().st_size},
    )
    try:
        with file_path.open("rb") as handle:
            response = await client.request(
                "POST",
                upload_url,
                files={"file": (file_path.name, handle, "application/pdf")},
                headers={"Authorization": f"Bearer {api_key}"},
            )
    except HttpError as exc:
        raise MediaUploadError(f"Upload falhou: {exc}") from exc
    finally:
        if http_client is None:
            await client.close()

    try:
        data = response.json()
    except ValueError:
        data = response.text

    media_id = find_media_id(data)
    logger.info(
        "media_upload_completed",
        extra={
            "status_code": response.status_code,
            "media_id_found": media_id is not None,
        },
    )
    return MediaUploadResult(media_id=media_id, status_code=response.status_code, response=data)
