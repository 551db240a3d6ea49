"""
Notificações ao cliente/empresa (email e WhatsApp) com registro em NotificationLog.

Cada envio grava um log PENDING e o atualiza para SENT/FAILED conforme o resultado.
As funções aqui são síncronas: a API chama diretamente quando o usuário pede o envio
(ex.: enviar nota) e o worker (app.worker.job) chama para envios em segundo plano.
"""
from __future__ import annotations

import logging
import os
from typing import Any

from sqlmodel import Session, select

from app.lib.text import ensure_utc
from app.model.base import utc_now
from app.model.customer import Customer
from app.model.invoice import Invoice
from app.model.notification_log import NotificationLog, NotificationStatus, NotificationType
from app.model.product import Product
from app.model.sale import Sale, SaleItem
from app.model.service_order import ServiceOrder
from app.model.tenant import Tenant
from app.services import email_service, email_template, whatsapp_service
from app.services.setting_service import get_notification_settings

logger = logging.getLogger(__name__)

PAYMENT_METHOD_LABELS = {
    "CASH": "Dinheiro",
    "CREDIT_CARD": "Cartão de Crédito",
    "DEBIT_CARD": "Cartão de Débito",
    "PIX": "PIX",
    "BANK_TRANSFER": "Transferência",
    "BOLETO": "Boleto",
    "INSTALLMENT": "Crediário",
}

SERVICE_ORDER_STATUS_LABELS = {
    "PENDING": "Pendente",
    "IN_PROGRESS": "Em andamento",
    "WAITING_PARTS": "Aguardando peças",
    "COMPLETED": "Concluída",
    "DELIVERED": "Entregue",
    "CANCELLED": "Cancelada",
}


def _brl(value: float | None) -> str:
    formatted = f"{float(value or 0):,.2f}"
    return "R$ " + formatted.replace(",", "X").replace(".", ",").replace("X", ".")


def frontend_url() -> str:
    return os.getenv("FRONTEND_URL", "http://localhost:3000").rstrip("/")


def _log(
    session: Session,
    *,
    tenant_id: int,
    type: NotificationType,
    recipient: str,
    content: str,
    subject: str | None = None,
    customer_id: int | None = None,
    extra: dict[str, Any] | None = None,
) -> NotificationLog:
    log = NotificationLog(
        tenant_id=tenant_id,
        customer_id=customer_id,
        type=type,
        status=NotificationStatus.PENDING,
        recipient=recipient,
        subject=subject,
        content=content[:2000],
        extra=extra,
    )
    session.add(log)
    session.commit()
    session.refresh(log)
    return log


def _finish(session: Session, log: NotificationLog, ok: bool, error: str) -> NotificationLog:
    log.status = NotificationStatus.SENT if ok else NotificationStatus.FAILED
    log.error_msg = None if ok else (error or "Falha no envio")[:500]
    log.sent_at = utc_now() if ok else None
    log.updated_at = utc_now()
    session.add(log)
    session.commit()
    session.refresh(log)
    return log


def _email_kwargs(tenant: Tenant) -> dict[str, Any]:
    config = get_notification_settings(tenant)
    return {"api_key": config.get("resend_api_key"), "email_from": config.get("email_from")}


def _whatsapp_kwargs(tenant: Tenant) -> dict[str, Any]:
    config = get_notification_settings(tenant)
    return {
        "api_url": config.get("evolution_api_url"),
        "api_key": config.get("evolution_api_key"),
        "instance": config.get("evolution_instance"),
    }


def _email_enabled(tenant: Tenant) -> bool:
    return bool(get_notification_settings(tenant).get("email_enabled", True))


def _whatsapp_enabled(tenant: Tenant) -> bool:
    return bool(get_notification_settings(tenant).get("whatsapp_enabled", False))


def send_logged_email(
    session: Session,
    tenant: Tenant,
    *,
    to_email: str,
    subject: str,
    html: str,
    text: str,
    customer_id: int | None = None,
    extra: dict[str, Any] | None = None,
) -> NotificationLog:
    log = _log(
        session,
        tenant_id=tenant.id,
        type=NotificationType.EMAIL,
        recipient=to_email,
        subject=subject,
        content=text,
        customer_id=customer_id,
        extra=extra,
    )
    ok, error = email_service.send_email(to_email, subject, html, text, **_email_kwargs(tenant))
    return _finish(session, log, ok, error)


def send_logged_whatsapp(
    session: Session,
    tenant: Tenant,
    *,
    phone: str,
    message: str,
    customer_id: int | None = None,
    extra: dict[str, Any] | None = None,
) -> NotificationLog:
    log = _log(
        session,
        tenant_id=tenant.id,
        type=NotificationType.WHATSAPP,
        recipient=phone,
        content=message,
        customer_id=customer_id,
        extra=extra,
    )
    ok, error = whatsapp_service.send_text(phone, message, **_whatsapp_kwargs(tenant))
    return _finish(session, log, ok, error)


# ---------------------------------------------------------------------------
# Nota fiscal
# ---------------------------------------------------------------------------

def invoice_access_link(invoice: Invoice) -> str:
    return f"{frontend_url()}/invoice/{invoice.access_key}"


def send_invoice_email(
    session: Session, tenant: Tenant, invoice: Invoice, to_email: str, *, is_copy: bool = False
) -> NotificationLog:
    subject = (
        f"[CÓPIA] Nota Fiscal {invoice.number} - {invoice.recipient_name or 'Consumidor Final'}"
        if is_copy
        else f"Nota Fiscal {invoice.number} - {tenant.name}"
    )
    html, text = email_template.invoice_email(
        company_name=tenant.name,
        recipient_name=invoice.recipient_name or "Consumidor Final",
        number=invoice.number,
        series=invoice.series,
        total=invoice.total,
        items=invoice.items or [],
        access_link=invoice_access_link(invoice),
        warranty_expires=invoice.warranty_expires,
    )
    return send_logged_email(
        session,
        tenant,
        to_email=to_email,
        subject=subject,
        html=html,
        text=text,
        customer_id=invoice.customer_id,
        extra={"invoice_id": invoice.id, "is_copy": is_copy},
    )


def invoice_whatsapp_message(invoice: Invoice) -> str:
    issued = ensure_utc(invoice.created_at)
    message = f"*NOTA FISCAL {invoice.number}*\n\n"
    message += f"Cliente: {invoice.recipient_name or 'Consumidor Final'}\n"
    message += f"Data: {issued.strftime('%d/%m/%Y') if issued else '-'}\n"
    message += f"Valor: *{_brl(invoice.total)}*\n"
    if invoice.warranty_days and invoice.warranty_expires:
        message += "\n*GARANTIA*\n"
        message += f"Prazo: {invoice.warranty_days} dias\n"
        message += f"Válida até: {ensure_utc(invoice.warranty_expires).strftime('%d/%m/%Y')}\n"
    message += f"\nChave de Acesso:\n`{invoice.access_key}`\n"
    message += "\n_Guarde este comprovante para sua segurança._"
    return message


def send_invoice_whatsapp(session: Session, tenant: Tenant, invoice: Invoice, phone: str) -> NotificationLog:
    return send_logged_whatsapp(
        session,
        tenant,
        phone=phone,
        message=invoice_whatsapp_message(invoice),
        customer_id=invoice.customer_id,
        extra={"invoice_id": invoice.id},
    )


# ---------------------------------------------------------------------------
# Venda / OS / estoque
# ---------------------------------------------------------------------------

def send_sale_confirmation(session: Session, sale: Sale) -> list[NotificationLog]:
    """Confirmação de compra ao cliente (email e/ou WhatsApp conforme configuração)."""
    if not sale.customer_id:
        return []
    customer = session.get(Customer, sale.customer_id)
    tenant = session.get(Tenant, sale.tenant_id)
    if not customer or not tenant:
        return []

    logs: list[NotificationLog] = []
    extra = {"sale_id": sale.id}

    if customer.email and _email_enabled(tenant):
        rows = session.exec(
            select(SaleItem, Product).join(Product, Product.id == SaleItem.product_id).where(SaleItem.sale_id == sale.id)
        ).all()
        items = [{"description": p.name, "quantity": i.quantity, "total": i.total} for i, p in rows]
        html, text = email_template.sale_confirmation_email(
            company_name=tenant.name, customer_name=customer.name, code=sale.code, total=sale.total, items=items
        )
        logs.append(
            send_logged_email(
                session,
                tenant,
                to_email=customer.email,
                subject=f"Compra confirmada - Pedido {sale.code}",
                html=html,
                text=text,
                customer_id=customer.id,
                extra=extra,
            )
        )

    phone = customer.whatsapp or customer.phone
    if phone and _whatsapp_enabled(tenant):
        message = "*COMPRA CONFIRMADA*\n\n"
        message += f"Pedido: *{sale.code}*\n"
        message += f"Total: *{_brl(sale.total)}*\n"
        message += f"Pagamento: {PAYMENT_METHOD_LABELS.get(sale.payment_method.value, sale.payment_method.value)}\n"
        message += "\nObrigado pela preferência!"
        logs.append(send_logged_whatsapp(session, tenant, phone=phone, message=message, customer_id=customer.id, extra=extra))

    return logs


def send_service_order_update(session: Session, order: ServiceOrder) -> list[NotificationLog]:
    """Aviso de mudança de situação da OS ao cliente."""
    customer = session.get(Customer, order.customer_id)
    tenant = session.get(Tenant, order.tenant_id)
    if not customer or not tenant:
        return []

    status_label = SERVICE_ORDER_STATUS_LABELS.get(order.status.value, order.status.value)
    extra = {"service_order_id": order.id, "status_change": order.status.value}
    logs: list[NotificationLog] = []

    if customer.email and _email_enabled(tenant):
        html, text = email_template.service_order_email(
            company_name=tenant.name,
            customer_name=customer.name,
            code=order.code,
            title=order.title,
            status_label=status_label,
            total=order.total,
        )
        logs.append(
            send_logged_email(
                session,
                tenant,
                to_email=customer.email,
                subject=f"OS {order.code} - {status_label}",
                html=html,
                text=text,
                customer_id=customer.id,
                extra=extra,
            )
        )

    phone = customer.whatsapp or customer.phone
    if phone and _whatsapp_enabled(tenant):
        message = f"*ORDEM DE SERVIÇO {order.code}*\n\n{order.title}\nSituação: *{status_label}*\nValor: {_brl(order.total)}"
        logs.append(send_logged_whatsapp(session, tenant, phone=phone, message=message, customer_id=customer.id, extra=extra))

    return logs


def send_low_stock_alert(session: Session, tenant: Tenant, products: list[Product]) -> NotificationLog | None:
    """Alerta de estoque baixo para o email da empresa."""
    if not products:
        return None
    if not tenant.email:
        logger.info(f"[EMAIL] Tenant {tenant.id} sem email cadastrado; alerta de estoque baixo ignorado")
        return None
    if not _email_enabled(tenant):
        return None

    data = [{"name": p.name, "sku": p.sku, "stock": p.stock, "min_stock": p.min_stock} for p in products]
    html, text = email_template.low_stock_email(company_name=tenant.name, products=data)
    return send_logged_email(
        session,
        tenant,
        to_email=tenant.email,
        subject=f"Alerta de estoque baixo - {len(products)} produto(s)",
        html=html,
        text=text,
        extra={"product_ids": [p.id for p in products]},
    )
