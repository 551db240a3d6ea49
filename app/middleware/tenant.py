from __future__ import annotations

from typing import Any, Awaitable, Callable

from fastapi import HTTPException, Request

from app.auth.jwt import verify_token


async def tenant_context_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Any]],
):
    """
    Middleware de contexto (não-enforcement):

    - Se houver Authorization: Bearer <token>, decodifica via verify_token()
    - Coloca {account_id, tenant_id, role, membership_id} em request.state
    - NÃO consulta DB e NÃO bloqueia request em caso de token inválido
      (o enforcement real fica nas dependencies: get_current_membership()).
    """
    auth = request.headers.get("authorization") or ""
    if not auth.startswith("Bearer "):
        return await call_next(request)

    token = auth.removeprefix("Bearer ").strip()
    if not token:
        return await call_next(request)

    try:
        payload = verify_token(token)
    except HTTPException:
        # Não muda o comportamento de endpoints públicos (ex.: /api/health).
        return await call_next(request)

    try:
        if payload.get("sub") is not None:
            request.state.account_id = int(payload["sub"])
        if payload.get("tenant_id") is not None:
            request.state.tenant_id = int(payload["tenant_id"])
        if payload.get("membership_id") is not None:
            request.state.membership_id = int(payload["membership_id"])
        if payload.get("role") is not None:
            request.state.role = str(payload["role"])
    except (TypeError, ValueError):
        # Token com formato inesperado: segue sem contexto.
        pass

    return await call_next(request)


def get_tenant_id(request: Request) -> int | None:
    """
    Helper leve para extrair tenant_id do contexto (logs, auditoria).
    Preferir enforcement via get_current_membership().
    """
    v = getattr(request.state, "tenant_id", None)
    return int(v) if v is not None else None
