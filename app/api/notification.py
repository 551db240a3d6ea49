from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel as PydanticBaseModel
from sqlmodel import Session, select

from app.auth.dependencies import get_current_tenant, require_role
from app.db.session import get_session
from app.lib.pagination import paginate, total_pages
from app.model.membership import Membership
from app.model.notification_log import NotificationLog, NotificationStatus, NotificationType
from app.model.tenant import Tenant
from app.services.notification_service import send_logged_whatsapp

router = APIRouter(prefix="/notifications", tags=["Notification"])


class NotificationLogResponse(PydanticBaseModel):
    id: int
    tenant_id: int
    customer_id: int | None
    type: NotificationType
    status: NotificationStatus
    recipient: str
    subject: str | None
    content: str
    error_msg: str | None
    sent_at: datetime | None
    extra: dict[str, Any] | None
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationLogListResponse(PydanticBaseModel):
    items: list[NotificationLogResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class TestWhatsAppRequest(PydanticBaseModel):
    phone: str
    message: str | None = None


@router.get("/logs", response_model=NotificationLogListResponse)
def list_notification_logs(
    type: NotificationType | None = Query(None),
    status: NotificationStatus | None = Query(None),
    customer_id: int | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    session: Session = Depends(get_session),
):
    query = select(NotificationLog).where(NotificationLog.tenant_id == membership.tenant_id)
    if type is not None:
        query = query.where(NotificationLog.type == type)
    if status is not None:
        query = query.where(NotificationLog.status == status)
    if customer_id is not None:
        query = query.where(NotificationLog.customer_id == customer_id)
    query = query.order_by(NotificationLog.created_at.desc(), NotificationLog.id.desc())  # type: ignore[attr-defined]

    items, total = paginate(session, query, page=page, limit=limit)
    return NotificationLogListResponse(
        items=[NotificationLogResponse.model_validate(log) for log in items],
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages(total, limit),
    )


@router.post("/test-whatsapp", response_model=NotificationLogResponse)
def test_whatsapp(
    body: TestWhatsAppRequest,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    tenant: Tenant = Depends(get_current_tenant),
    session: Session = Depends(get_session),
):
    if not body.phone or not body.phone.strip():
        raise HTTPException(status_code=400, detail="Telefone é obrigatório")
    message = body.message or f"Mensagem de teste do SmartFlux ERP ({tenant.name}). Configuração do WhatsApp funcionando!"
    return send_logged_whatsapp(session, tenant, phone=body.phone, message=message, extra={"test": True})
