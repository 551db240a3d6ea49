import logging
import secrets
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlmodel import Session, select

from app.auth.dependencies import get_current_account, get_current_membership
from app.auth.jwt import create_access_token, create_refresh_token, verify_token
from app.auth.password import hash_password, password_problem, verify_password
from app.db.session import get_session
from app.lib.text import ensure_utc, normalize_email
from app.model.account import Account, AccountStatus
from app.model.base import utc_now
from app.model.membership import Membership, MembershipRole, MembershipStatus
from app.model.tenant import Tenant
from app.services import email_service, email_template
from app.services.tenant_service import create_tenant, get_tenant_by_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])

RESET_CODE_MINUTES = 15


class LoginRequest(BaseModel):
    email: str
    password: str
    tenant_id: int | None = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)


class RegisterRequest(BaseModel):
    name: str
    email: str
    password: str
    phone: str | None = None
    tenant_name: str | None = None
    tenant_id: int | None = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = (v or "").strip()
        if len(v) < 3:
            raise ValueError("Nome deve ter no mínimo 3 caracteres")
        return v

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        problem = password_problem(v)
        if problem:
            raise ValueError(problem)
        return v

    @field_validator("tenant_name")
    @classmethod
    def validate_tenant_name(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        if len(v) < 3 or len(v) > 100:
            raise ValueError("Nome da empresa deve ter entre 3 e 100 caracteres")
        return v


class RefreshRequest(BaseModel):
    refresh_token: str


class ProfileUpdate(BaseModel):
    name: str | None = None
    phone: str | None = None
    avatar: str | None = None


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, v: str) -> str:
        problem = password_problem(v, prefix="A nova senha")
        if problem:
            raise ValueError(problem)
        return v


class ForgotPasswordRequest(BaseModel):
    email: str

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)


class ResetPasswordRequest(BaseModel):
    email: str
    code: str = ""
    new_password: str

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)


class UserProfile(BaseModel):
    id: int
    email: str
    name: str
    phone: str | None = None
    avatar: str | None = None
    role: str
    tenant_id: int
    tenant_name: str
    membership_id: int


class AuthResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserProfile


class MessageResponse(BaseModel):
    message: str


def _profile(account: Account, membership: Membership, tenant: Tenant) -> UserProfile:
    return UserProfile(
        id=account.id,
        email=account.email,
        name=account.name,
        phone=account.phone,
        avatar=account.avatar,
        role=membership.role.value,
        tenant_id=tenant.id,
        tenant_name=tenant.name,
        membership_id=membership.id,
    )


def issue_tokens(session: Session, account: Account, membership: Membership) -> AuthResponse:
    tenant = session.get(Tenant, membership.tenant_id)
    access_token = create_access_token(
        account_id=account.id,
        tenant_id=membership.tenant_id,
        membership_id=membership.id,
        role=membership.role.value,
        email=account.email,
        name=account.name,
    )
    refresh_token = create_refresh_token(account.id, membership.tenant_id)
    account.refresh_token = refresh_token
    account.last_login_at = utc_now()
    account.updated_at = utc_now()
    session.add(account)
    session.commit()
    session.refresh(account)
    return AuthResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        user=_profile(account, membership, tenant),
    )


def _active_membership(session: Session, account_id: int, tenant_id: int | None) -> Membership | None:
    query = select(Membership).where(
        Membership.account_id == account_id,
        Membership.status == MembershipStatus.ACTIVE,
    )
    if tenant_id is not None:
        query = query.where(Membership.tenant_id == tenant_id)
    return session.exec(query.order_by(Membership.id.asc())).first()


@router.post("/login", response_model=AuthResponse)
def login(body: LoginRequest, session: Session = Depends(get_session)):
    """
    Login por email/senha.

    Sem `tenant_id`, usa o primeiro membership ACTIVE da conta.
    """
    account = session.exec(select(Account).where(Account.email == body.email)).first()
    if not account or not verify_password(account.password_hash, body.password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Email ou senha incorretos")
    if account.status != AccountStatus.ACTIVE:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Usuário inativo ou suspenso")

    membership = _active_membership(session, account.id, body.tenant_id)
    if not membership:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Usuário sem acesso ativo a nenhuma empresa",
        )
    tenant = session.get(Tenant, membership.tenant_id)
    if not tenant or not tenant.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Empresa inativa")

    logger.info(f"Login account_id={account.id} tenant_id={membership.tenant_id}")
    return issue_tokens(session, account, membership)


@router.post("/register", response_model=AuthResponse, status_code=201)
def register(body: RegisterRequest, session: Session = Depends(get_session)):
    """
    Cadastro de conta.

    - `tenant_name`: cria a empresa e o usuário vira ADMIN.
    - `tenant_id`: entra em uma empresa existente como SELLER.
    """
    existing = session.exec(select(Account).where(Account.email == body.email)).first()
    if existing:
        raise HTTPException(status_code=400, detail="Este email já está cadastrado")

    if not body.tenant_name and body.tenant_id is None:
        raise HTTPException(status_code=400, detail="Informe o nome da empresa ou o ID da empresa")

    try:
        if body.tenant_name:
            tenant = create_tenant(session, name=body.tenant_name, email=body.email, commit=False)
            role = MembershipRole.ADMIN
        else:
            tenant = get_tenant_by_id(session, body.tenant_id)
            if not tenant:
                raise HTTPException(status_code=404, detail="Empresa não encontrada")
            if not tenant.is_active:
                raise HTTPException(status_code=400, detail="Empresa inativa")
            role = MembershipRole.SELLER

        account = Account(
            email=body.email,
            name=body.name,
            phone=body.phone,
            password_hash=hash_password(body.password),
            status=AccountStatus.ACTIVE,
        )
        session.add(account)
        session.flush()

        membership = Membership(
            tenant_id=tenant.id,
            account_id=account.id,
            role=role,
            status=MembershipStatus.ACTIVE,
        )
        session.add(membership)
        session.commit()
    except Exception:
        session.rollback()
        raise

    session.refresh(account)
    session.refresh(membership)
    logger.info(f"Conta registrada account_id={account.id} tenant_id={tenant.id} role={role.value}")
    return issue_tokens(session, account, membership)


@router.post("/refresh", response_model=AuthResponse)
def refresh(body: RefreshRequest, session: Session = Depends(get_session)):
    payload = verify_token(body.refresh_token, expected_type="refresh")
    account = session.get(Account, int(payload.get("sub") or 0))
    if not account or account.refresh_token != body.refresh_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token inválido ou expirado")
    if account.status != AccountStatus.ACTIVE:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Usuário inativo ou suspenso")

    membership = _active_membership(session, account.id, payload.get("tenant_id"))
    if not membership:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token inválido ou expirado")
    return issue_tokens(session, account, membership)


@router.post("/logout", response_model=MessageResponse)
def logout(
    account: Account = Depends(get_current_account),
    session: Session = Depends(get_session),
):
    account.refresh_token = None
    account.updated_at = utc_now()
    session.add(account)
    session.commit()
    return MessageResponse(message="Logout realizado com sucesso")


@router.get("/profile", response_model=UserProfile)
def get_profile(
    account: Account = Depends(get_current_account),
    membership: Membership = Depends(get_current_membership),
    session: Session = Depends(get_session),
):
    tenant = session.get(Tenant, membership.tenant_id)
    return _profile(account, membership, tenant)


@router.patch("/profile", response_model=UserProfile)
def update_profile(
    body: ProfileUpdate,
    account: Account = Depends(get_current_account),
    membership: Membership = Depends(get_current_membership),
    session: Session = Depends(get_session),
):
    data = body.model_dump(exclude_unset=True)
    if "name" in data:
        name = (data["name"] or "").strip()
        if len(name) < 3:
            raise HTTPException(status_code=400, detail="Nome deve ter no mínimo 3 caracteres")
        account.name = name
    if "phone" in data:
        account.phone = data["phone"]
    if "avatar" in data:
        account.avatar = data["avatar"]
    account.updated_at = utc_now()
    session.add(account)
    session.commit()
    session.refresh(account)
    tenant = session.get(Tenant, membership.tenant_id)
    return _profile(account, membership, tenant)


@router.post("/change-password", response_model=MessageResponse)
def change_password(
    body: ChangePasswordRequest,
    account: Account = Depends(get_current_account),
    session: Session = Depends(get_session),
):
    if not verify_password(account.password_hash, body.current_password):
        raise HTTPException(status_code=400, detail="Senha atual incorreta")
    account.password_hash = hash_password(body.new_password)
    account.updated_at = utc_now()
    session.add(account)
    session.commit()
    return MessageResponse(message="Senha alterada com sucesso")


@router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(body: ForgotPasswordRequest, session: Session = Depends(get_session)):
    """Gera código de 6 dígitos (válido por 15 minutos) e envia por email."""
    account = session.exec(select(Account).where(Account.email == body.email)).first()
    if not account:
        raise HTTPException(status_code=404, detail="Email não encontrado")

    code = f"{secrets.randbelow(1_000_000):06d}"
    account.reset_code = code
    account.reset_code_expires_at = utc_now() + timedelta(minutes=RESET_CODE_MINUTES)
    account.updated_at = utc_now()
    session.add(account)
    session.commit()

    html, text = email_template.reset_code_email(name=account.name, code=code)
    ok, error = email_service.send_email(account.email, "Código de verificação - SmartFlux ERP", html, text)
    if not ok:
        logger.warning(f"[EMAIL] Código de recuperação não enviado para account_id={account.id}: {error}")
    return MessageResponse(message="Código de verificação enviado para seu email")


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(body: ResetPasswordRequest, session: Session = Depends(get_session)):
    if not body.code or not body.code.strip():
        raise HTTPException(status_code=400, detail="Código de verificação é obrigatório")
    problem = password_problem(body.new_password, prefix="A nova senha")
    if problem:
        raise HTTPException(status_code=400, detail=problem)

    account = session.exec(select(Account).where(Account.email == body.email)).first()
    if not account:
        raise HTTPException(status_code=404, detail="Usuário não encontrado")
    if not account.reset_code or not account.reset_code_expires_at:
        raise HTTPException(
            status_code=400,
            detail="Código de verificação não encontrado. Solicite um novo código.",
        )
    if ensure_utc(account.reset_code_expires_at) < utc_now():
        raise HTTPException(status_code=400, detail="Código de verificação expirado. Solicite um novo código.")
    if account.reset_code != body.code.strip():
        raise HTTPException(status_code=400, detail="Código de verificação inválido")

    account.password_hash = hash_password(body.new_password)
    account.reset_code = None
    account.reset_code_expires_at = None
    account.refresh_token = None
    account.updated_at = utc_now()
    session.add(account)
    session.commit()
    return MessageResponse(message="Senha redefinida com sucesso")
