"""
Envio de mensagens WhatsApp via Evolution API.
Sem configuração (url/chave/instância) o envio é apenas simulado no log (desenvolvimento).
"""
import logging
import os
from typing import Optional, Tuple

import httpx

from app.lib.text import format_phone_br

logger = logging.getLogger(__name__)

SEND_TIMEOUT = 15.0


def send_text(
    phone: str,
    text: str,
    *,
    api_url: Optional[str] = None,
    api_key: Optional[str] = None,
    instance: Optional[str] = None,
) -> Tuple[bool, str]:
    """
    Envia mensagem de texto.

    Returns:
        Tupla (success, error_message). Envio simulado conta como sucesso.
    """
    url = api_url or os.getenv("EVOLUTION_API_URL")
    key = api_key or os.getenv("EVOLUTION_API_KEY")
    instance_name = instance or os.getenv("EVOLUTION_INSTANCE")

    number = format_phone_br(phone)
    if not number:
        return False, "Telefone inválido para envio de WhatsApp"

    if not url or not key or not instance_name:
        logger.info(f"[WHATSAPP] API não configurada, simulando envio para {number}: {text[:80]!r}")
        return True, ""

    try:
        response = httpx.post(
            f"{url.rstrip('/')}/message/sendText/{instance_name}",
            headers={"apikey": key, "Content-Type": "application/json"},
            json={
                "number": number,
                "options": {"delay": 1200},
                "textMessage": {"text": text},
            },
            timeout=SEND_TIMEOUT,
        )
    except httpx.HTTPError as e:
        logger.error(f"[WHATSAPP] FALHA - Erro de conexão com a Evolution API ({number}): {e}", exc_info=True)
        return False, f"Erro de conexão com o WhatsApp: {str(e)[:100]}"

    if response.status_code in (200, 201):
        logger.info(f"[WHATSAPP] Mensagem enviada para {number}")
        return True, ""

    error_msg = f"Evolution API retornou {response.status_code}: {response.text[:200]}"
    logger.error(f"[WHATSAPP] FALHA - {error_msg}")
    return False, error_msg
