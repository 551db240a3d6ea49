"""
Serviço de envio de emails usando Resend.
Faz fallback para modo "log" quando RESEND_API_KEY não está configurado (desenvolvimento).
"""
import logging
import os
import re
from typing import Optional, Sequence, Tuple

import resend

logger = logging.getLogger(__name__)


def _friendly_resend_error(error_msg_raw: str) -> str:
    lowered = error_msg_raw.lower()
    if "domain" in lowered and ("not verified" in lowered or "unverified" in lowered):
        # Exemplo: "The empresa.com.br domain is not verified"
        domain_pattern = r"\b([a-zA-Z0-9]([a-zA-Z0-9\-]{0,61}[a-zA-Z0-9])?\.)+[a-zA-Z]{2,}"
        domain_match = re.search(domain_pattern, error_msg_raw)
        if domain_match:
            return (
                f"Domínio '{domain_match.group(0)}' não está verificado no Resend. "
                "Adicione e verifique o domínio em https://resend.com/domains"
            )
        return "Domínio de email não está verificado no Resend. Adicione e verifique o domínio em https://resend.com/domains"
    if "invalid" in lowered:
        return "Configuração de email inválida. Verifique o remetente e a chave do Resend."
    if "unauthorized" in lowered or "401" in lowered:
        return "Chave de API do Resend inválida ou expirada."
    if "rate limit" in lowered or "quota" in lowered:
        return "Limite de envio de emails excedido. Tente novamente mais tarde."
    return f"Erro ao enviar email: {error_msg_raw[:100]}"


def send_email(
    to_email: str,
    subject: str,
    html_body: str,
    text_body: Optional[str] = None,
    *,
    cc: Optional[Sequence[str]] = None,
    api_key: Optional[str] = None,
    email_from: Optional[str] = None,
) -> Tuple[bool, str]:
    """
    Envia um email via Resend.

    `api_key`/`email_from` vêm das configurações do tenant quando existirem;
    caso contrário usa RESEND_API_KEY/EMAIL_FROM do ambiente.

    Returns:
        Tupla (success: bool, error_message: str):
        - success: True se o email foi enviado com sucesso, False caso contrário
        - error_message: Mensagem de erro específica se falhou, string vazia se sucesso
    """
    resend_api_key = api_key or os.getenv("RESEND_API_KEY")
    sender = email_from or os.getenv("EMAIL_FROM")

    if not resend_api_key:
        error_msg = "Chave de API do Resend não configurada. Configure RESEND_API_KEY no ambiente."
        logger.warning(f"[EMAIL] {error_msg} Email '{subject}' apenas logado para {to_email}")
        return False, error_msg

    if not sender:
        error_msg = "Endereço de email remetente não configurado. Configure EMAIL_FROM no ambiente."
        logger.error(f"[EMAIL] {error_msg} Não é possível enviar email para {to_email}")
        return False, error_msg

    resend.api_key = resend_api_key

    params: dict = {
        "from": sender,
        "to": [to_email],
        "subject": subject,
        "html": html_body,
    }
    if text_body:
        params["text"] = text_body
    if cc:
        params["cc"] = [c for c in cc if c and c != to_email]

    try:
        email_response = resend.Emails.send(params)
    except Exception as resend_error:
        error_msg_raw = str(resend_error)
        # Remover possíveis vazamentos de API key
        if resend_api_key in error_msg_raw:
            error_msg_raw = error_msg_raw.replace(resend_api_key, "***REDACTED***")
        logger.error(
            f"[EMAIL] FALHA - Erro ao enviar email via Resend para {to_email}: {error_msg_raw}",
            exc_info=True,
        )
        return False, _friendly_resend_error(error_msg_raw)

    # Resend retorna um dict (ou objeto) com 'id' quando bem-sucedido
    if isinstance(email_response, dict) and "id" in email_response:
        logger.info(f"[EMAIL] Email '{subject}' enviado para {to_email} (id={email_response['id']})")
        return True, ""
    if getattr(email_response, "id", None):
        return True, ""

    error_msg = f"Resposta inesperada do serviço de email: {email_response}"
    logger.error(f"[EMAIL] FALHA - {error_msg} para {to_email}")
    return False, error_msg
