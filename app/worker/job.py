from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException
from sqlmodel import select

from app.db.session import get_session_context
from app.model.base import utc_now
from app.model.invitation import Invitation, InvitationStatus
from app.model.invoice import Invoice
from app.model.product import Product
from app.model.sale import Sale
from app.model.service_order import ServiceOrder
from app.model.tenant import Tenant
from app.services import notification_service
from app.services.invoice_service import send_invoice

logger = logging.getLogger(__name__)


async def sale_confirmation_job(ctx: dict[str, Any], sale_id: int) -> dict[str, Any]:
    """Confirmação de compra ao cliente (disparada após o commit da venda)."""
    with get_session_context() as session:
        sale = session.get(Sale, sale_id)
        if not sale:
            return {"ok": False, "error": "sale_not_found", "sale_id": sale_id}
        logs = notification_service.send_sale_confirmation(session, sale)
        return {"ok": True, "sale_id": sale_id, "sent": [log.status.value for log in logs]}


async def service_order_update_job(ctx: dict[str, Any], service_order_id: int) -> dict[str, Any]:
    with get_session_context() as session:
        order = session.get(ServiceOrder, service_order_id)
        if not order:
            return {"ok": False, "error": "service_order_not_found", "service_order_id": service_order_id}
        logs = notification_service.send_service_order_update(session, order)
        return {"ok": True, "service_order_id": service_order_id, "sent": [log.status.value for log in logs]}


async def low_stock_alert_job(ctx: dict[str, Any], tenant_id: int, product_ids: list[int]) -> dict[str, Any]:
    with get_session_context() as session:
        tenant = session.get(Tenant, tenant_id)
        if not tenant:
            return {"ok": False, "error": "tenant_not_found", "tenant_id": tenant_id}
        products = session.exec(
            select(Product).where(Product.tenant_id == tenant_id, Product.id.in_(product_ids))  # type: ignore[attr-defined]
        ).all()
        log = notification_service.send_low_stock_alert(session, tenant, list(products))
        return {"ok": True, "tenant_id": tenant_id, "status": log.status.value if log else None}


async def send_invoice_job(ctx: dict[str, Any], invoice_id: int, method: str = "EMAIL") -> dict[str, Any]:
    """Envio automático da nota (ex.: OS entregue)."""
    with get_session_context() as session:
        invoice = session.get(Invoice, invoice_id)
        if not invoice:
            return {"ok": False, "error": "invoice_not_found", "invoice_id": invoice_id}
        tenant = session.get(Tenant, invoice.tenant_id)
        try:
            result = send_invoice(session, tenant, invoice, method)
        except HTTPException as e:
            logger.warning(f"Nota {invoice_id} não enviada automaticamente: {e.detail}")
            return {"ok": False, "error": e.detail, "invoice_id": invoice_id}
        return {"ok": result["success"], "invoice_id": invoice_id}


async def expire_invitations_job(ctx: dict[str, Any]) -> dict[str, Any]:
    """
    Cron: marca como EXPIRED os convites PENDING com expires_at no passado.
    """
    now = utc_now()
    with get_session_context() as session:
        invitations = session.exec(
            select(Invitation).where(
                Invitation.status == InvitationStatus.PENDING,
                Invitation.expires_at < now,
            )
        ).all()
        for invitation in invitations:
            invitation.status = InvitationStatus.EXPIRED
            invitation.updated_at = now
            session.add(invitation)
        session.commit()
        if invitations:
            logger.info(f"{len(invitations)} convite(s) marcado(s) como EXPIRED")
        return {"ok": True, "expired": len(invitations)}
