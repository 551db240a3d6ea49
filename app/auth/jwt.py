import os
from pathlib import Path
from datetime import datetime, timedelta, timezone
from typing import Dict
from dotenv import load_dotenv
from jose import jwt, JWTError
from fastapi import HTTPException

# Carrega variáveis de ambiente do .env (garante que está carregado antes de usar)
project_root = Path(__file__).resolve().parent.parent.parent
load_dotenv(project_root / ".env")
load_dotenv(".env")

# Configuração JWT
# Aceita JWT_SECRET ou APP_JWT_SECRET
JWT_SECRET = os.getenv("JWT_SECRET") or os.getenv("APP_JWT_SECRET") or "CHANGE_ME"
JWT_ISSUER = os.getenv("JWT_ISSUER") or os.getenv("APP_JWT_ISSUER", "smartflux")
JWT_ALGORITHM = "HS256"
JWT_EXPIRATION_HOURS = 8
REFRESH_EXPIRATION_DAYS = 30


def create_access_token(
    account_id: int,
    tenant_id: int,
    membership_id: int,
    role: str,
    email: str,
    name: str,
) -> str:
    """
    Cria um token JWT de acesso para a conta no tenant do membership.

    Args:
        account_id: ID da conta no banco
        tenant_id: ID do tenant ativo na sessão
        membership_id: ID do membership (account ↔ tenant)
        role: Role no tenant (ADMIN, MANAGER, SELLER, VIEWER)
        email: Email da conta
        name: Nome da conta

    Returns:
        Token JWT codificado
    """
    now = datetime.now(timezone.utc)
    payload: Dict[str, any] = {
        "sub": str(account_id),  # Subject (account_id)
        "email": email,
        "name": name,
        "tenant_id": tenant_id,
        "membership_id": membership_id,
        "role": role,
        "type": "access",
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(hours=JWT_EXPIRATION_HOURS)).timestamp()),
        "iss": JWT_ISSUER,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def create_refresh_token(account_id: int, tenant_id: int) -> str:
    """Cria um refresh token (30 dias). O valor também fica salvo em account.refresh_token."""
    now = datetime.now(timezone.utc)
    payload: Dict[str, any] = {
        "sub": str(account_id),
        "tenant_id": tenant_id,
        "type": "refresh",
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(days=REFRESH_EXPIRATION_DAYS)).timestamp()),
        "iss": JWT_ISSUER,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def verify_token(token: str, expected_type: str = "access") -> Dict[str, any]:
    """
    Verifica e decodifica um token JWT.

    Args:
        token: Token JWT a ser verificado
        expected_type: "access" ou "refresh"

    Returns:
        Payload do token decodificado

    Raises:
        HTTPException: Se o token for inválido, expirado ou de outro tipo
    """
    try:
        payload = jwt.decode(
            token,
            JWT_SECRET,
            algorithms=[JWT_ALGORITHM],
            issuer=JWT_ISSUER,
        )
    except JWTError:
        # Evita vazar detalhes internos no payload de erro.
        raise HTTPException(status_code=401, detail="Token inválido ou expirado")
    if payload.get("type", "access") != expected_type:
        raise HTTPException(status_code=401, detail="Token inválido ou expirado")
    return payload
