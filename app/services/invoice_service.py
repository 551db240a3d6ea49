"""
Emissão de notas fiscais simplificadas (numeração, chave de acesso, cópia dos
dados de emitente/destinatário) e envio ao cliente.
"""
from __future__ import annotations

import secrets
import time
from datetime import timedelta
from typing import Any

from fastapi import HTTPException
from sqlmodel import Session, select

from app.lib.text import round_money
from app.model.base import utc_now
from app.model.customer import Customer
from app.model.invoice import Invoice, InvoiceStatus, InvoiceType
from app.model.product import Product
from app.model.sale import Sale, SaleItem
from app.model.service_order import ServiceOrder, ServiceOrderItem
from app.model.tenant import Tenant
from app.services import notification_service

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def next_invoice_number(session: Session, tenant_id: int, series: str) -> str:
    last = session.exec(
        select(Invoice.number)
        .where(Invoice.tenant_id == tenant_id, Invoice.series == series)
        .order_by(Invoice.number.desc())  # type: ignore[attr-defined]
        .limit(1)
    ).first()
    next_number = int(last) + 1 if last and last.isdigit() else 1
    return f"{next_number:09d}"


def generate_access_key(number: str) -> str:
    """SF + timestamp (base36) + número + 8 hex aleatórios, em maiúsculas."""
    timestamp = _to_base36(int(time.time() * 1000))
    return f"SF{timestamp}{number}{secrets.token_hex(4)}".upper()


def _recipient_address(customer: Customer) -> str | None:
    if not customer.address:
        return None
    parts = [customer.address]
    if customer.number:
        parts.append(customer.number)
    address = ", ".join(parts)
    if customer.complement:
        address = f"{address} {customer.complement}"
    if customer.city:
        address = f"{address} - {customer.city}/{customer.state or ''}".rstrip("/")
    return address


def _issuer_address(tenant: Tenant) -> str | None:
    if not tenant.address:
        return None
    if tenant.city:
        return f"{tenant.address} - {tenant.city}/{tenant.state or ''}".rstrip("/")
    return tenant.address


def create_invoice(
    session: Session,
    tenant: Tenant,
    *,
    items: list[dict[str, Any]],
    type: InvoiceType = InvoiceType.SALE,
    series: str = "1",
    customer_id: int | None = None,
    sale_id: int | None = None,
    service_order_id: int | None = None,
    subtotal: float | None = None,
    discount: float = 0,
    tax: float = 0,
    warranty_days: int | None = None,
    description: str | None = None,
    notes: str | None = None,
    recipient: dict[str, Any] | None = None,
    commit: bool = True,
) -> Invoice:
    """
    Cria uma nota com status ISSUED.

    `commit=False` permite emitir a nota dentro de outra unidade de trabalho
    (ex.: conclusão de OS).
    """
    customer = None
    if customer_id is not None:
        customer = session.get(Customer, customer_id)
        if not customer or customer.tenant_id != tenant.id:
            raise HTTPException(status_code=404, detail="Cliente não encontrado")

    normalized_items = [
        {
            "description": str(item.get("description", "")),
            "quantity": item.get("quantity", 1),
            "unit_price": round_money(item.get("unit_price", 0)),
            "total": round_money(item.get("total", item.get("unit_price", 0) * item.get("quantity", 1))),
        }
        for item in items
    ]
    if subtotal is None:
        subtotal = sum(i["total"] for i in normalized_items)
    subtotal = round_money(subtotal)
    total = round_money(subtotal - (discount or 0) + (tax or 0))

    number = next_invoice_number(session, tenant.id, series)
    access_key = generate_access_key(number)
    now = utc_now()
    recipient = recipient or {}

    invoice = Invoice(
        tenant_id=tenant.id,
        number=number,
        series=series,
        access_key=access_key,
        type=type,
        status=InvoiceStatus.ISSUED,
        sale_id=sale_id,
        service_order_id=service_order_id,
        customer_id=customer.id if customer else None,
        issuer_name=tenant.name,
        issuer_document=tenant.document,
        issuer_address=_issuer_address(tenant),
        issuer_phone=tenant.phone,
        issuer_email=tenant.email,
        recipient_name=customer.name if customer else recipient.get("name"),
        recipient_document=customer.cpf_cnpj if customer else recipient.get("document"),
        recipient_address=_recipient_address(customer) if customer else recipient.get("address"),
        recipient_phone=(customer.whatsapp or customer.phone) if customer else recipient.get("phone"),
        recipient_email=customer.email if customer else recipient.get("email"),
        items=normalized_items,
        subtotal=subtotal,
        discount=round_money(discount),
        tax=round_money(tax),
        total=total,
        warranty_days=warranty_days,
        warranty_expires=now + timedelta(days=warranty_days) if warranty_days and warranty_days > 0 else None,
        qr_code_data=f"{notification_service.frontend_url()}/invoice/{access_key}",
        description=description,
        notes=notes,
    )
    session.add(invoice)
    if commit:
        session.commit()
        session.refresh(invoice)
    else:
        session.flush()
    return invoice


def sale_invoice_items(session: Session, sale: Sale) -> list[dict[str, Any]]:
    rows = session.exec(
        select(SaleItem, Product)
        .join(Product, Product.id == SaleItem.product_id)
        .where(SaleItem.sale_id == sale.id)
        .order_by(SaleItem.id)
    ).all()
    return [
        {"description": product.name, "quantity": item.quantity, "unit_price": item.unit_price, "total": item.total}
        for item, product in rows
    ]


def service_order_invoice_items(session: Session, order: ServiceOrder) -> list[dict[str, Any]]:
    items = [
        {"description": i.description, "quantity": i.quantity, "unit_price": i.unit_price, "total": i.total}
        for i in session.exec(
            select(ServiceOrderItem).where(ServiceOrderItem.service_order_id == order.id).order_by(ServiceOrderItem.id)
        ).all()
    ]
    if order.labor_cost and order.labor_cost > 0:
        items.append(
            {"description": "Mão de obra", "quantity": 1, "unit_price": order.labor_cost, "total": order.labor_cost}
        )
    return items


def generate_from_sale(
    session: Session, tenant: Tenant, sale: Sale, *, type: InvoiceType = InvoiceType.SALE,
    warranty_days: int | None = None, notes: str | None = None,
) -> Invoice:
    return create_invoice(
        session,
        tenant,
        type=type,
        items=sale_invoice_items(session, sale),
        customer_id=sale.customer_id,
        sale_id=sale.id,
        subtotal=sale.subtotal,
        discount=sale.discount,
        tax=sale.tax,
        warranty_days=warranty_days,
        description=f"Nota fiscal referente à venda #{sale.code}",
        notes=notes,
    )


def generate_from_service_order(
    session: Session, tenant: Tenant, order: ServiceOrder, *, type: InvoiceType = InvoiceType.SERVICE,
    warranty_days: int | None = None, notes: str | None = None, commit: bool = True,
) -> Invoice:
    return create_invoice(
        session,
        tenant,
        type=type,
        items=service_order_invoice_items(session, order),
        customer_id=order.customer_id,
        service_order_id=order.id,
        discount=order.discount,
        warranty_days=warranty_days if warranty_days is not None else order.warranty_days,
        description=f"Nota fiscal referente à ordem de serviço #{order.code}",
        notes=notes,
        commit=commit,
    )


def send_invoice(session: Session, tenant: Tenant, invoice: Invoice, methods: str | list[str] | tuple[str, ...] = ("EMAIL", "WHATSAPP")) -> dict[str, Any]:
    """
    Envia a nota ao cliente pelos canais pedidos e uma cópia para o email da empresa.
    Atualiza sent_at/sent_to/sent_method e status SENT quando algum envio dá certo.
    """
    if isinstance(methods, str):
        methods = [methods]
    methods = [m.upper() for m in methods]

    if invoice.status == InvoiceStatus.CANCELLED:
        raise HTTPException(status_code=400, detail="Nota fiscal cancelada não pode ser enviada")

    customer = session.get(Customer, invoice.customer_id) if invoice.customer_id else None
    if not customer:
        raise HTTPException(status_code=400, detail="Nota fiscal não possui cliente vinculado")

    results: list[dict[str, Any]] = []
    if "EMAIL" in methods and customer.email:
        log = notification_service.send_invoice_email(session, tenant, invoice, customer.email)
        results.append({"method": "EMAIL", "recipient": customer.email, "status": log.status.value, "error": log.error_msg})

    phone = customer.whatsapp or customer.phone
    if "WHATSAPP" in methods and phone:
        log = notification_service.send_invoice_whatsapp(session, tenant, invoice, phone)
        results.append({"method": "WHATSAPP", "recipient": phone, "status": log.status.value, "error": log.error_msg})

    if not results:
        raise HTTPException(status_code=400, detail="Cliente não possui email ou telefone para envio")

    if tenant.email:
        notification_service.send_invoice_email(session, tenant, invoice, tenant.email, is_copy=True)

    success = any(r["status"] == "SENT" for r in results)
    now = utc_now()
    invoice.sent_at = now
    invoice.sent_to = ",".join(r["recipient"] for r in results)
    invoice.sent_method = ",".join(r["method"] for r in results)
    if success and invoice.status == InvoiceStatus.ISSUED:
        invoice.status = InvoiceStatus.SENT
    invoice.updated_at = now
    session.add(invoice)
    session.commit()
    session.refresh(invoice)

    return {
        "success": success,
        "message": "Nota fiscal enviada com sucesso" if success else "Não foi possível enviar a nota fiscal",
        "results": results,
    }
