import logging
import uuid
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel as PydanticBaseModel, field_validator
from sqlmodel import Session, select

from app.api.auth import AuthResponse, issue_tokens
from app.auth.dependencies import get_current_account, require_role
from app.auth.password import hash_password, password_problem
from app.db.session import get_session
from app.lib.text import ensure_utc, normalize_email
from app.model.account import Account, AccountStatus
from app.model.base import utc_now
from app.model.invitation import Invitation, InvitationStatus
from app.model.membership import Membership, MembershipRole, MembershipStatus
from app.model.tenant import Tenant
from app.services import email_service, email_template
from app.services.notification_service import frontend_url
from app.services.setting_service import role_label

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/invitations", tags=["Invitation"])

INVITATION_DAYS = 7


class InvitationCreate(PydanticBaseModel):
    email: str
    role: MembershipRole = MembershipRole.SELLER

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)


class InvitationAccept(PydanticBaseModel):
    token: str
    name: str | None = None
    password: str | None = None


class InvitationResponse(PydanticBaseModel):
    id: int
    tenant_id: int
    email: str
    role: MembershipRole
    status: InvitationStatus
    expires_at: datetime
    invited_by: int | None
    created_at: datetime

    class Config:
        from_attributes = True


class InvitationCreateResponse(InvitationResponse):
    invite_link: str


class InvitationPublicResponse(PydanticBaseModel):
    email: str
    role: MembershipRole
    role_label: str
    tenant_name: str
    expires_at: datetime
    account_exists: bool


def invite_link(token: str) -> str:
    return f"{frontend_url()}/invite/{token}"


def _send_invitation_email(
    session: Session, invitation: Invitation, inviter: Account | None, *, resent: bool = False
) -> None:
    """Falha no envio é apenas logada: o convite continua válido pelo link."""
    tenant = session.get(Tenant, invitation.tenant_id)
    html, text = email_template.invitation_email(
        tenant_name=tenant.name,
        inviter_name=inviter.name if inviter else tenant.name,
        role_label=role_label(invitation.role.value),
        invite_link=invite_link(invitation.token),
        expires_at=invitation.expires_at,
    )
    subject = f"Convite para {tenant.name} - SmartFlux ERP"
    if resent:
        subject += " (Reenviado)"
    ok, error = email_service.send_email(invitation.email, subject, html, text)
    if not ok:
        logger.warning(f"[EMAIL] Convite {invitation.id} não enviado para {invitation.email}: {error}")


def _get_invitation(session: Session, invitation_id: int, tenant_id: int) -> Invitation:
    invitation = session.get(Invitation, invitation_id)
    if not invitation or invitation.tenant_id != tenant_id:
        raise HTTPException(status_code=404, detail="Convite não encontrado")
    return invitation


def _valid_invitation_by_token(session: Session, token: str) -> Invitation:
    invitation = session.exec(select(Invitation).where(Invitation.token == token)).first()
    if not invitation:
        raise HTTPException(status_code=404, detail="Convite não encontrado")
    if invitation.status != InvitationStatus.PENDING:
        raise HTTPException(status_code=400, detail="Este convite já foi utilizado ou cancelado")
    if ensure_utc(invitation.expires_at) < utc_now():
        invitation.status = InvitationStatus.EXPIRED
        invitation.updated_at = utc_now()
        session.add(invitation)
        session.commit()
        raise HTTPException(status_code=400, detail="Este convite expirou")
    return invitation


@router.get("", response_model=list[InvitationResponse])
def list_invitations(
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    session: Session = Depends(get_session),
):
    return session.exec(
        select(Invitation)
        .where(Invitation.tenant_id == membership.tenant_id)
        .order_by(Invitation.created_at.desc(), Invitation.id.desc())  # type: ignore[attr-defined]
    ).all()


@router.post("", response_model=InvitationCreateResponse, status_code=201)
def create_invitation(
    body: InvitationCreate,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    account: Account = Depends(get_current_account),
    session: Session = Depends(get_session),
):
    if body.role == MembershipRole.ADMIN and membership.role != MembershipRole.ADMIN:
        raise HTTPException(status_code=403, detail="Apenas administradores podem convidar administradores")

    pending = session.exec(
        select(Invitation).where(
            Invitation.tenant_id == membership.tenant_id,
            Invitation.email == body.email,
            Invitation.status == InvitationStatus.PENDING,
        )
    ).first()
    if pending and ensure_utc(pending.expires_at) >= utc_now():
        raise HTTPException(status_code=409, detail="Já existe um convite pendente para este email")
    if pending:
        pending.status = InvitationStatus.EXPIRED
        session.add(pending)

    existing_member = session.exec(
        select(Membership)
        .join(Account, Account.id == Membership.account_id)
        .where(
            Membership.tenant_id == membership.tenant_id,
            Account.email == body.email,
            Membership.status == MembershipStatus.ACTIVE,
        )
    ).first()
    if existing_member:
        raise HTTPException(status_code=409, detail="Este email já faz parte da equipe")

    invitation = Invitation(
        tenant_id=membership.tenant_id,
        email=body.email,
        role=body.role,
        token=str(uuid.uuid4()),
        status=InvitationStatus.PENDING,
        expires_at=utc_now() + timedelta(days=INVITATION_DAYS),
        invited_by=account.id,
    )
    session.add(invitation)
    session.commit()
    session.refresh(invitation)

    _send_invitation_email(session, invitation, account)
    return InvitationCreateResponse(
        **InvitationResponse.model_validate(invitation).model_dump(),
        invite_link=invite_link(invitation.token),
    )


@router.get("/token/{token}", response_model=InvitationPublicResponse)
def get_invitation_by_token(token: str, session: Session = Depends(get_session)):
    """Consulta pública do convite (tela de aceite)."""
    invitation = _valid_invitation_by_token(session, token)
    tenant = session.get(Tenant, invitation.tenant_id)
    account_exists = session.exec(select(Account.id).where(Account.email == invitation.email)).first() is not None
    return InvitationPublicResponse(
        email=invitation.email,
        role=invitation.role,
        role_label=role_label(invitation.role.value),
        tenant_name=tenant.name,
        expires_at=invitation.expires_at,
        account_exists=account_exists,
    )


@router.post("/accept", response_model=AuthResponse)
def accept_invitation(body: InvitationAccept, session: Session = Depends(get_session)):
    """
    Aceita o convite.

    Conta existente: cria/reativa o membership com a role do convite.
    Conta nova: exige nome e senha.
    """
    invitation = _valid_invitation_by_token(session, body.token)
    account = session.exec(select(Account).where(Account.email == invitation.email)).first()

    try:
        if account is None:
            name = (body.name or "").strip()
            if len(name) < 3:
                raise HTTPException(status_code=400, detail="Nome deve ter no mínimo 3 caracteres")
            problem = password_problem(body.password or "")
            if problem:
                raise HTTPException(status_code=400, detail=problem)
            account = Account(
                email=invitation.email,
                name=name,
                password_hash=hash_password(body.password),
                status=AccountStatus.ACTIVE,
            )
            session.add(account)
            session.flush()

        membership = session.exec(
            select(Membership).where(
                Membership.tenant_id == invitation.tenant_id,
                Membership.account_id == account.id,
            )
        ).first()
        if membership:
            membership.role = invitation.role
            membership.status = MembershipStatus.ACTIVE
            membership.updated_at = utc_now()
        else:
            membership = Membership(
                tenant_id=invitation.tenant_id,
                account_id=account.id,
                role=invitation.role,
                status=MembershipStatus.ACTIVE,
            )
        session.add(membership)

        invitation.status = InvitationStatus.ACCEPTED
        invitation.updated_at = utc_now()
        session.add(invitation)
        session.commit()
    except Exception:
        session.rollback()
        raise

    session.refresh(account)
    session.refresh(membership)
    logger.info(f"Convite {invitation.id} aceito (tenant={invitation.tenant_id}, account_id={account.id})")
    return issue_tokens(session, account, membership)


@router.delete("/{invitation_id}", response_model=InvitationResponse)
def cancel_invitation(
    invitation_id: int,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    session: Session = Depends(get_session),
):
    invitation = _get_invitation(session, invitation_id, membership.tenant_id)
    if invitation.status != InvitationStatus.PENDING:
        raise HTTPException(status_code=400, detail="Este convite não pode ser cancelado")
    invitation.status = InvitationStatus.CANCELLED
    invitation.updated_at = utc_now()
    session.add(invitation)
    session.commit()
    session.refresh(invitation)
    return invitation


@router.post("/{invitation_id}/resend", response_model=InvitationCreateResponse)
def resend_invitation(
    invitation_id: int,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    account: Account = Depends(get_current_account),
    session: Session = Depends(get_session),
):
    invitation = _get_invitation(session, invitation_id, membership.tenant_id)
    if invitation.status not in (InvitationStatus.PENDING, InvitationStatus.EXPIRED):
        raise HTTPException(status_code=400, detail="Este convite não pode ser reenviado")
    invitation.status = InvitationStatus.PENDING
    invitation.expires_at = utc_now() + timedelta(days=INVITATION_DAYS)
    invitation.updated_at = utc_now()
    session.add(invitation)
    session.commit()
    session.refresh(invitation)

    _send_invitation_email(session, invitation, account, resent=True)
    return InvitationCreateResponse(
        **InvitationResponse.model_validate(invitation).model_dump(),
        invite_link=invite_link(invitation.token),
    )
