from datetime import datetime
from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import BaseModel as PydanticBaseModel, field_validator
from sqlalchemy import or_
from sqlmodel import Session, select

from app.auth.dependencies import get_current_membership, get_current_tenant, require_role
from app.db.session import get_session
from app.lib.pagination import paginate, total_pages
from app.model.base import utc_now
from app.model.invoice import Invoice, InvoiceStatus, InvoiceType
from app.model.membership import Membership
from app.model.sale import Sale, SaleStatus
from app.model.service_order import ServiceOrder
from app.model.tenant import Tenant
from app.report.invoice_pdf import build_invoice_pdf
from app.services import invoice_service

router = APIRouter(prefix="/invoices", tags=["Invoice"])


class InvoiceItem(PydanticBaseModel):
    description: str
    quantity: float = 1
    unit_price: float
    total: float | None = None

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Descrição é obrigatório")
        return v.strip()


class InvoiceRecipient(PydanticBaseModel):
    name: str | None = None
    document: str | None = None
    address: str | None = None
    phone: str | None = None
    email: str | None = None


class InvoiceCreate(PydanticBaseModel):
    items: list[InvoiceItem]
    type: InvoiceType = InvoiceType.SALE
    series: str = "1"
    customer_id: int | None = None
    sale_id: int | None = None
    service_order_id: int | None = None
    discount: float = 0
    tax: float = 0
    warranty_days: int | None = None
    description: str | None = None
    notes: str | None = None
    recipient: InvoiceRecipient | None = None

    @field_validator("items")
    @classmethod
    def validate_items(cls, v: list[InvoiceItem]) -> list[InvoiceItem]:
        if not v:
            raise ValueError("A nota fiscal deve ter pelo menos um item")
        return v


class InvoiceGenerateRequest(PydanticBaseModel):
    sale_id: int | None = None
    service_order_id: int | None = None
    type: InvoiceType | None = None
    warranty_days: int | None = None
    notes: str | None = None


class InvoiceSendRequest(PydanticBaseModel):
    method: Literal["EMAIL", "WHATSAPP"] | None = None
    methods: list[Literal["EMAIL", "WHATSAPP"]] | None = None


class InvoiceCancelRequest(PydanticBaseModel):
    reason: str

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Motivo do cancelamento é obrigatório")
        return v.strip()


class InvoiceResponse(PydanticBaseModel):
    id: int
    tenant_id: int
    number: str
    series: str
    access_key: str
    type: InvoiceType
    status: InvoiceStatus
    sale_id: int | None
    service_order_id: int | None
    customer_id: int | None
    issuer_name: str
    issuer_document: str | None
    issuer_address: str | None
    issuer_phone: str | None
    issuer_email: str | None
    recipient_name: str | None
    recipient_document: str | None
    recipient_address: str | None
    recipient_phone: str | None
    recipient_email: str | None
    items: list[dict[str, Any]]
    subtotal: float
    discount: float
    tax: float
    total: float
    warranty_days: int | None
    warranty_expires: datetime | None
    qr_code_data: str | None
    description: str | None
    notes: str | None
    sent_at: datetime | None
    sent_to: str | None
    sent_method: str | None
    cancelled_at: datetime | None
    cancel_reason: str | None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class InvoiceListResponse(PydanticBaseModel):
    items: list[InvoiceResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class SendResult(PydanticBaseModel):
    method: str
    recipient: str
    status: str
    error: str | None = None


class InvoiceSendResponse(PydanticBaseModel):
    success: bool
    message: str
    results: list[SendResult]
    invoice: InvoiceResponse


def _get_invoice(session: Session, invoice_id: int, tenant_id: int) -> Invoice:
    invoice = session.get(Invoice, invoice_id)
    if not invoice or invoice.tenant_id != tenant_id:
        raise HTTPException(status_code=404, detail="Nota fiscal não encontrada")
    return invoice


@router.get("", response_model=InvoiceListResponse)
def list_invoices(
    search: str | None = Query(None),
    status: InvoiceStatus | None = Query(None),
    type: InvoiceType | None = Query(None),
    customer_id: int | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    membership: Membership = Depends(get_current_membership),
    session: Session = Depends(get_session),
):
    query = select(Invoice).where(Invoice.tenant_id == membership.tenant_id)
    if search:
        term = f"%{search.strip()}%"
        query = query.where(
            or_(
                Invoice.number.ilike(term),  # type: ignore[attr-defined]
                Invoice.recipient_name.ilike(term),  # type: ignore[attr-defined]
                Invoice.access_key.ilike(term),  # type: ignore[attr-defined]
            )
        )
    if status is not None:
        query = query.where(Invoice.status == status)
    if type is not None:
        query = query.where(Invoice.type == type)
    if customer_id is not None:
        query = query.where(Invoice.customer_id == customer_id)
    query = query.order_by(Invoice.created_at.desc(), Invoice.id.desc())  # type: ignore[attr-defined]

    items, total = paginate(session, query, page=page, limit=limit)
    return InvoiceListResponse(
        items=[InvoiceResponse.model_validate(i) for i in items],
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages(total, limit),
    )


@router.get("/access/{access_key}", response_model=InvoiceResponse)
def get_invoice_by_access_key(access_key: str, session: Session = Depends(get_session)):
    """Consulta pública da nota pela chave de acesso (link do QR code)."""
    invoice = session.exec(select(Invoice).where(Invoice.access_key == access_key.upper())).first()
    if not invoice:
        raise HTTPException(status_code=404, detail="Nota fiscal não encontrada")
    return invoice


@router.post("/generate", response_model=InvoiceResponse, status_code=201)
def generate_invoice(
    body: InvoiceGenerateRequest,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER", "SELLER")),
    tenant: Tenant = Depends(get_current_tenant),
    session: Session = Depends(get_session),
):
    """Emite a nota a partir de uma venda ou de uma ordem de serviço."""
    if body.sale_id is not None:
        sale = session.get(Sale, body.sale_id)
        if not sale or sale.tenant_id != tenant.id:
            raise HTTPException(status_code=404, detail="Venda não encontrada")
        if sale.status == SaleStatus.CANCELLED:
            raise HTTPException(status_code=400, detail="Não é possível emitir nota de venda cancelada")
        return invoice_service.generate_from_sale(
            session,
            tenant,
            sale,
            type=body.type or InvoiceType.SALE,
            warranty_days=body.warranty_days,
            notes=body.notes,
        )
    if body.service_order_id is not None:
        order = session.get(ServiceOrder, body.service_order_id)
        if not order or order.tenant_id != tenant.id:
            raise HTTPException(status_code=404, detail="Ordem de serviço não encontrada")
        return invoice_service.generate_from_service_order(
            session,
            tenant,
            order,
            type=body.type or InvoiceType.SERVICE,
            warranty_days=body.warranty_days,
            notes=body.notes,
        )
    raise HTTPException(status_code=400, detail="É necessário informar uma venda ou ordem de serviço")


@router.get("/{invoice_id}", response_model=InvoiceResponse)
def get_invoice(
    invoice_id: int,
    membership: Membership = Depends(get_current_membership),
    session: Session = Depends(get_session),
):
    return _get_invoice(session, invoice_id, membership.tenant_id)


@router.get("/{invoice_id}/pdf")
def download_invoice_pdf(
    invoice_id: int,
    membership: Membership = Depends(get_current_membership),
    session: Session = Depends(get_session),
):
    invoice = _get_invoice(session, invoice_id, membership.tenant_id)
    pdf_bytes = build_invoice_pdf(invoice)
    filename = f"nota-fiscal-{invoice.number}.pdf"
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{filename}"'},
    )


@router.post("", response_model=InvoiceResponse, status_code=201)
def create_invoice(
    body: InvoiceCreate,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER", "SELLER")),
    tenant: Tenant = Depends(get_current_tenant),
    session: Session = Depends(get_session),
):
    if body.sale_id is not None:
        sale = session.get(Sale, body.sale_id)
        if not sale or sale.tenant_id != tenant.id:
            raise HTTPException(status_code=404, detail="Venda não encontrada")
    if body.service_order_id is not None:
        order = session.get(ServiceOrder, body.service_order_id)
        if not order or order.tenant_id != tenant.id:
            raise HTTPException(status_code=404, detail="Ordem de serviço não encontrada")

    items = []
    for item in body.items:
        data = item.model_dump()
        if data["total"] is None:
            data["total"] = data["unit_price"] * data["quantity"]
        items.append(data)

    return invoice_service.create_invoice(
        session,
        tenant,
        items=items,
        type=body.type,
        series=body.series,
        customer_id=body.customer_id,
        sale_id=body.sale_id,
        service_order_id=body.service_order_id,
        discount=body.discount,
        tax=body.tax,
        warranty_days=body.warranty_days,
        description=body.description,
        notes=body.notes,
        recipient=body.recipient.model_dump() if body.recipient else None,
    )


@router.post("/{invoice_id}/send", response_model=InvoiceSendResponse)
def send_invoice(
    invoice_id: int,
    body: InvoiceSendRequest,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER", "SELLER")),
    tenant: Tenant = Depends(get_current_tenant),
    session: Session = Depends(get_session),
):
    invoice = _get_invoice(session, invoice_id, tenant.id)
    methods = body.methods or ([body.method] if body.method else ["EMAIL"])
    result = invoice_service.send_invoice(session, tenant, invoice, methods)
    return InvoiceSendResponse(
        success=result["success"],
        message=result["message"],
        results=[SendResult(**r) for r in result["results"]],
        invoice=InvoiceResponse.model_validate(invoice),
    )


@router.post("/{invoice_id}/cancel", response_model=InvoiceResponse)
def cancel_invoice(
    invoice_id: int,
    body: InvoiceCancelRequest,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    session: Session = Depends(get_session),
):
    invoice = _get_invoice(session, invoice_id, membership.tenant_id)
    if invoice.status == InvoiceStatus.CANCELLED:
        raise HTTPException(status_code=400, detail="Nota fiscal já está cancelada")
    now = utc_now()
    invoice.status = InvoiceStatus.CANCELLED
    invoice.cancelled_at = now
    invoice.cancel_reason = body.reason
    invoice.updated_at = now
    session.add(invoice)
    session.commit()
    session.refresh(invoice)
    return invoice


@router.delete("/{invoice_id}")
def delete_invoice(
    invoice_id: int,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    session: Session = Depends(get_session),
):
    invoice = _get_invoice(session, invoice_id, membership.tenant_id)
    if invoice.status in (InvoiceStatus.ISSUED, InvoiceStatus.SENT):
        raise HTTPException(
            status_code=400,
            detail="Não é possível remover nota fiscal emitida. Cancele a nota antes de removê-la.",
        )
    session.delete(invoice)
    session.commit()
    return {"message": "Nota fiscal removida com sucesso"}
