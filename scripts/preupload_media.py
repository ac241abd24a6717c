#!/usr/bin/env python
"""Pré-upload do documento para o provedor de mídia.

Envia o PDF uma vez e imprime o media_id a configurar em MEDIA_ID.

Variáveis de ambiente:
    MEDIA_UPLOAD_URL (ou UPLOAD_URL): endpoint de upload
    UPLOAD_API_KEY (ou GATEWAY_API_KEY): bearer token
    PDF_PATH: caminho do arquivo (default ./assets/document.pdf)

Uso:
    python scripts/preupload_media.py
"""

import asyncio
import json
import os
import sys
from pathlib import Path

# Adicionar src ao path
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from wa_dispatch.adapters.whatsapp.media_upload import (  # noqa: E402
    MediaUploadError,
    upload_document,
)
from wa_dispatch.observability.logging import configure_logging  # noqa: E402


def _env(*names: str) -> str | None:
    for name in names:
        value = os.environ.get(name)
        if value:
            return value
    return None


async def main() -> int:
    upload_url = _env("MEDIA_UPLOAD_URL", "UPLOAD_URL")
    api_key = _env("UPLOAD_API_KEY", "GATEWAY_API_KEY", "SEND_API_KEY")
    pdf_path = Path(_env("PDF_PATH") or "./assets/document.pdf")

    if not upload_url or not api_key:
        print("MEDIA_UPLOAD_URL e UPLOAD_API_KEY são obrigatórios")
        return 1

    try:
        result = await upload_document(pdf_path, upload_url=upload_url, api_key=api_key)
    except MediaUploadError as exc:
        print(f"Upload falhou: {exc}")
        return 1

    print(f"Status: {result.status_code}")
    print(json.dumps(result.response, indent=2, ensure_ascii=False))
    if result.media_id:
        print(f"\nOK. MEDIA_ID={result.media_id}")
    else:
        print("\nmedia_id não encontrado na resposta; copie manualmente para MEDIA_ID.")
    return 0


if __name__ == "__main__":
    configure_logging("INFO", "wa_dispatch-preupload", log_format="text")
    sys.exit(asyncio.run(main()))
