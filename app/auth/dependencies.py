from typing import Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from sqlmodel import Session, select

from app.db.session import get_session
from app.model.account import Account, AccountStatus
from app.model.membership import Membership, MembershipStatus
from app.model.tenant import Tenant
from app.auth.jwt import verify_token
from app.services import setting_service

bearer = HTTPBearer(auto_error=False)


def get_token_payload(
    credentials: HTTPAuthorizationCredentials = Depends(bearer),
) -> dict[str, Any]:
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token de acesso não informado",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return verify_token(credentials.credentials)


def get_current_account(
    payload: dict[str, Any] = Depends(get_token_payload),
    session: Session = Depends(get_session),
) -> Account:
    """Dependency que retorna a conta autenticada a partir do JWT."""
    account_id_raw = payload.get("sub")
    if not account_id_raw:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token inválido ou expirado")
    account_id = int(account_id_raw)

    account = session.get(Account, account_id)
    if not account:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Usuário não encontrado")
    if account.status != AccountStatus.ACTIVE:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Usuário inativo")
    return account


def get_current_membership(
    payload: dict[str, Any] = Depends(get_token_payload),
    session: Session = Depends(get_session),
) -> Membership:
    """
    Dependency que valida o acesso da conta ao tenant do JWT via Membership.

    Raises:
        HTTPException: Se não existir membership ACTIVE para (account_id, tenant_id)
    """
    account_id_raw = payload.get("sub")
    tenant_id_raw = payload.get("tenant_id")
    if not account_id_raw or not tenant_id_raw:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token inválido ou expirado")

    account_id = int(account_id_raw)
    tenant_id = int(tenant_id_raw)

    membership = session.exec(
        select(Membership).where(
            Membership.account_id == account_id,
            Membership.tenant_id == tenant_id,
            Membership.status == MembershipStatus.ACTIVE,
        )
    ).first()
    if not membership:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Acesso negado",
        )
    return membership


def get_current_tenant(
    membership: Membership = Depends(get_current_membership),
    session: Session = Depends(get_session),
) -> Tenant:
    tenant = session.get(Tenant, membership.tenant_id)
    if not tenant:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Empresa não encontrada")
    return tenant


def require_role(*roles: str):
    """
    Dependency factory para restringir uma rota a uma ou mais roles.

    Args:
        roles: Roles aceitas (ex: "ADMIN", "MANAGER")

    Returns:
        Dependency function
    """
    def role_checker(membership: Membership = Depends(get_current_membership)) -> Membership:
        if membership.role.value not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Você não tem permissão para realizar esta ação",
            )
        return membership

    return role_checker


def require_permission(module: str, action: str = "view"):
    """Restringe a rota conforme a matriz de permissões configurada pela empresa."""
    def permission_checker(
        membership: Membership = Depends(get_current_membership),
        tenant: Tenant = Depends(get_current_tenant),
    ) -> Membership:
        if not setting_service.check_permission(tenant, membership.role.value, module, action):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Você não tem permissão para acessar este módulo",
            )
        return membership

    return permission_checker
