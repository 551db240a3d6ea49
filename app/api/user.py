import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel as PydanticBaseModel
from sqlalchemy import or_
from sqlmodel import Session, select

from app.auth.dependencies import get_current_membership, require_role
from app.db.session import get_session
from app.lib.pagination import paginate, total_pages
from app.model.account import Account
from app.model.base import utc_now
from app.model.membership import Membership, MembershipRole, MembershipStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["User"])


class MemberResponse(PydanticBaseModel):
    membership_id: int
    account_id: int
    email: str
    name: str
    phone: str | None
    avatar: str | None
    role: MembershipRole
    status: MembershipStatus
    last_login_at: datetime | None
    created_at: datetime


class MemberListResponse(PydanticBaseModel):
    items: list[MemberResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class MemberUpdate(PydanticBaseModel):
    role: MembershipRole | None = None
    status: MembershipStatus | None = None


def _member(membership: Membership, account: Account) -> MemberResponse:
    return MemberResponse(
        membership_id=membership.id,
        account_id=account.id,
        email=account.email,
        name=account.name,
        phone=account.phone,
        avatar=account.avatar,
        role=membership.role,
        status=membership.status,
        last_login_at=account.last_login_at,
        created_at=membership.created_at,
    )


def _get_member(session: Session, membership_id: int, tenant_id: int) -> tuple[Membership, Account]:
    membership = session.get(Membership, membership_id)
    if not membership or membership.tenant_id != tenant_id:
        raise HTTPException(status_code=404, detail="Usuário não encontrado")
    account = session.get(Account, membership.account_id)
    return membership, account


def _other_active_admins(session: Session, tenant_id: int, exclude_id: int) -> int:
    return len(
        session.exec(
            select(Membership.id).where(
                Membership.tenant_id == tenant_id,
                Membership.role == MembershipRole.ADMIN,
                Membership.status == MembershipStatus.ACTIVE,
                Membership.id != exclude_id,
            )
        ).all()
    )


@router.get("", response_model=MemberListResponse)
def list_users(
    search: str | None = Query(None),
    role: MembershipRole | None = Query(None),
    status: MembershipStatus | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    session: Session = Depends(get_session),
):
    """Equipe do tenant (Account + Membership)."""
    query = (
        select(Membership, Account)
        .join(Account, Account.id == Membership.account_id)
        .where(Membership.tenant_id == membership.tenant_id)
    )
    if search:
        term = f"%{search.strip()}%"
        query = query.where(or_(Account.name.ilike(term), Account.email.ilike(term)))  # type: ignore[attr-defined]
    if role is not None:
        query = query.where(Membership.role == role)
    if status is not None:
        query = query.where(Membership.status == status)
    query = query.order_by(Account.name.asc(), Membership.id.asc())  # type: ignore[attr-defined]

    rows, total = paginate(session, query, page=page, limit=limit)
    return MemberListResponse(
        items=[_member(m, a) for m, a in rows],
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages(total, limit),
    )


@router.get("/{membership_id}", response_model=MemberResponse)
def get_user(
    membership_id: int,
    membership: Membership = Depends(get_current_membership),
    session: Session = Depends(get_session),
):
    target, account = _get_member(session, membership_id, membership.tenant_id)
    return _member(target, account)


@router.patch("/{membership_id}", response_model=MemberResponse)
def update_user(
    membership_id: int,
    body: MemberUpdate,
    membership: Membership = Depends(require_role("ADMIN")),
    session: Session = Depends(get_session),
):
    target, account = _get_member(session, membership_id, membership.tenant_id)

    # Só importa se o alvo é hoje um ADMIN ativo e deixaria de ser
    active_admin = target.role == MembershipRole.ADMIN and target.status == MembershipStatus.ACTIVE
    demoting_admin = active_admin and (
        (body.role is not None and body.role != MembershipRole.ADMIN)
        or (body.status is not None and body.status != MembershipStatus.ACTIVE)
    )
    if demoting_admin and _other_active_admins(session, membership.tenant_id, target.id) == 0:
        raise HTTPException(status_code=400, detail="A empresa precisa de pelo menos um administrador ativo")

    if body.role is not None:
        target.role = body.role
    if body.status is not None:
        target.status = body.status
    target.updated_at = utc_now()
    session.add(target)
    session.commit()
    session.refresh(target)
    logger.info(f"Membership {target.id} atualizado: role={target.role.value} status={target.status.value}")
    return _member(target, account)


@router.delete("/{membership_id}")
def remove_user(
    membership_id: int,
    membership: Membership = Depends(require_role("ADMIN")),
    session: Session = Depends(get_session),
):
    """Remove o usuário da equipe (membership INACTIVE; a conta continua existindo)."""
    target, _ = _get_member(session, membership_id, membership.tenant_id)
    if target.id == membership.id:
        raise HTTPException(status_code=400, detail="Você não pode remover a si mesmo")
    target.status = MembershipStatus.INACTIVE
    target.updated_at = utc_now()
    session.add(target)
    session.commit()
    return {"message": "Usuário removido da equipe"}
