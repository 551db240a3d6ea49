import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel as PydanticBaseModel, field_validator
from sqlalchemy import func, or_
from sqlmodel import Session, select

from app.auth.dependencies import get_current_account, get_current_membership, get_current_tenant, require_role
from app.db.session import get_session
from app.lib.pagination import paginate, total_pages
from app.lib.text import ensure_utc, next_sequential_code, round_money
from app.model.account import Account
from app.model.base import utc_now
from app.model.customer import Customer
from app.model.invoice import Invoice, InvoiceType
from app.model.membership import Membership
from app.model.product import Product
from app.model.service_order import Priority, ServiceOrder, ServiceOrderItem, ServiceOrderStatus
from app.model.tenant import Tenant
from app.model.transaction import Transaction, TransactionStatus, TransactionType
from app.services.invoice_service import generate_from_service_order
from app.services.setting_service import get_general_settings
from app.worker.queue import enqueue_job

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/service-orders", tags=["ServiceOrder"])

FINISHED_STATUSES = (ServiceOrderStatus.COMPLETED, ServiceOrderStatus.DELIVERED, ServiceOrderStatus.CANCELLED)


class ServiceOrderItemCreate(PydanticBaseModel):
    product_id: int | None = None
    description: str
    quantity: int = 1
    unit_price: float

    @field_validator("quantity")
    @classmethod
    def validate_quantity(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantidade deve ser no mínimo 1")
        return v

    @field_validator("unit_price")
    @classmethod
    def validate_price(cls, v: float) -> float:
        if v < 0:
            raise ValueError("O valor não pode ser negativo")
        return v


class ServiceOrderCreate(PydanticBaseModel):
    customer_id: int
    title: str
    description: str | None = None
    device_type: str | None = None
    device_brand: str | None = None
    device_model: str | None = None
    device_serial: str | None = None
    device_condition: str | None = None
    reported_issue: str | None = None
    priority: Priority = Priority.NORMAL
    labor_cost: float = 0
    discount: float = 0
    warranty_days: int = 90
    estimated_date: datetime | None = None
    notes: str | None = None
    items: list[ServiceOrderItemCreate] = []

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Título é obrigatório")
        return v.strip()

    @field_validator("labor_cost", "discount")
    @classmethod
    def validate_money(cls, v: float) -> float:
        if v < 0:
            raise ValueError("O valor não pode ser negativo")
        return v


class ServiceOrderUpdate(PydanticBaseModel):
    customer_id: int | None = None
    title: str | None = None
    description: str | None = None
    device_type: str | None = None
    device_brand: str | None = None
    device_model: str | None = None
    device_serial: str | None = None
    device_condition: str | None = None
    reported_issue: str | None = None
    diagnosis: str | None = None
    solution: str | None = None
    priority: Priority | None = None
    labor_cost: float | None = None
    discount: float | None = None
    warranty_days: int | None = None
    estimated_date: datetime | None = None
    notes: str | None = None
    items: list[ServiceOrderItemCreate] | None = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str | None) -> str | None:
        if v is None:
            return None
        if not v.strip():
            raise ValueError("Título é obrigatório")
        return v.strip()

    @field_validator("labor_cost", "discount")
    @classmethod
    def validate_money(cls, v: float | None) -> float | None:
        if v is not None and v < 0:
            raise ValueError("O valor não pode ser negativo")
        return v


class StatusUpdateRequest(PydanticBaseModel):
    status: ServiceOrderStatus
    notes: str | None = None


class ServiceOrderItemResponse(PydanticBaseModel):
    id: int
    product_id: int | None
    description: str
    quantity: int
    unit_price: float
    total: float

    class Config:
        from_attributes = True


class ServiceOrderResponse(PydanticBaseModel):
    id: int
    tenant_id: int
    code: str
    customer_id: int
    customer_name: str | None = None
    account_id: int | None
    title: str
    description: str | None
    device_type: str | None
    device_brand: str | None
    device_model: str | None
    device_serial: str | None
    device_condition: str | None
    reported_issue: str | None
    diagnosis: str | None
    solution: str | None
    priority: Priority
    status: ServiceOrderStatus
    labor_cost: float
    parts_cost: float
    discount: float
    total: float
    warranty_days: int
    estimated_date: datetime | None
    completed_at: datetime | None
    delivered_at: datetime | None
    notes: str | None
    created_at: datetime
    updated_at: datetime
    items: list[ServiceOrderItemResponse] = []


class ServiceOrderListResponse(PydanticBaseModel):
    items: list[ServiceOrderResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class ServiceOrderStatsResponse(PydanticBaseModel):
    by_status: dict[str, int]
    overdue: int
    revenue: float


def _get_order(session: Session, order_id: int, tenant_id: int) -> ServiceOrder:
    order = session.get(ServiceOrder, order_id)
    if not order or order.tenant_id != tenant_id:
        raise HTTPException(status_code=404, detail="Ordem de serviço não encontrada")
    return order


def _get_customer(session: Session, customer_id: int, tenant_id: int) -> Customer:
    customer = session.get(Customer, customer_id)
    if not customer or customer.tenant_id != tenant_id:
        raise HTTPException(status_code=404, detail="Cliente não encontrado")
    return customer


def _check_products(session: Session, items: list[ServiceOrderItemCreate], tenant_id: int) -> None:
    for item in items:
        if item.product_id is None:
            continue
        product = session.get(Product, item.product_id)
        if not product or product.tenant_id != tenant_id:
            raise HTTPException(status_code=404, detail="Produto não encontrado")


def _to_response(session: Session, order: ServiceOrder) -> ServiceOrderResponse:
    customer = session.get(Customer, order.customer_id)
    items = session.exec(
        select(ServiceOrderItem).where(ServiceOrderItem.service_order_id == order.id).order_by(ServiceOrderItem.id)
    ).all()
    data = {k: getattr(order, k) for k in ServiceOrderResponse.model_fields if k not in ("customer_name", "items")}
    return ServiceOrderResponse(
        **data,
        customer_name=customer.name if customer else None,
        items=[ServiceOrderItemResponse.model_validate(i) for i in items],
    )


def _order_total(order: ServiceOrder) -> float:
    total = round_money(order.labor_cost + order.parts_cost - order.discount)
    if total < 0:
        raise HTTPException(status_code=400, detail="Desconto não pode ser maior que o valor da OS")
    return total


def _replace_items(session: Session, order: ServiceOrder, items: list[ServiceOrderItemCreate]) -> float:
    """Troca os itens da OS e retorna o novo custo de peças."""
    for existing in session.exec(select(ServiceOrderItem).where(ServiceOrderItem.service_order_id == order.id)).all():
        session.delete(existing)
    parts_cost = 0.0
    for item in items:
        line_total = round_money(item.unit_price * item.quantity)
        parts_cost += line_total
        session.add(
            ServiceOrderItem(
                service_order_id=order.id,
                product_id=item.product_id,
                description=item.description,
                quantity=item.quantity,
                unit_price=round_money(item.unit_price),
                total=line_total,
            )
        )
    return round_money(parts_cost)


def _next_code(session: Session, tenant_id: int) -> str:
    last_code = session.exec(
        select(ServiceOrder.code)
        .where(ServiceOrder.tenant_id == tenant_id)
        .order_by(ServiceOrder.code.desc())  # type: ignore[attr-defined]
        .limit(1)
    ).first()
    return next_sequential_code("OS", last_code)


@router.get("", response_model=ServiceOrderListResponse)
def list_service_orders(
    search: str | None = Query(None),
    status: ServiceOrderStatus | None = Query(None),
    priority: Priority | None = Query(None),
    customer_id: int | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    membership: Membership = Depends(get_current_membership),
    session: Session = Depends(get_session),
):
    query = select(ServiceOrder).where(ServiceOrder.tenant_id == membership.tenant_id)
    if search:
        term = f"%{search.strip()}%"
        query = query.join(Customer, Customer.id == ServiceOrder.customer_id).where(
            or_(
                ServiceOrder.code.ilike(term),  # type: ignore[attr-defined]
                ServiceOrder.title.ilike(term),  # type: ignore[attr-defined]
                ServiceOrder.device_model.ilike(term),  # type: ignore[attr-defined]
                Customer.name.ilike(term),  # type: ignore[attr-defined]
            )
        )
    if status is not None:
        query = query.where(ServiceOrder.status == status)
    if priority is not None:
        query = query.where(ServiceOrder.priority == priority)
    if customer_id is not None:
        query = query.where(ServiceOrder.customer_id == customer_id)
    query = query.order_by(ServiceOrder.created_at.desc(), ServiceOrder.id.desc())  # type: ignore[attr-defined]

    items, total = paginate(session, query, page=page, limit=limit)
    return ServiceOrderListResponse(
        items=[_to_response(session, o) for o in items],
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages(total, limit),
    )


@router.get("/stats", response_model=ServiceOrderStatsResponse)
def service_order_stats(
    membership: Membership = Depends(get_current_membership),
    session: Session = Depends(get_session),
):
    rows = session.exec(
        select(ServiceOrder.status, func.count(ServiceOrder.id))
        .where(ServiceOrder.tenant_id == membership.tenant_id)
        .group_by(ServiceOrder.status)
    ).all()
    by_status = {s.value: 0 for s in ServiceOrderStatus}
    for status, count in rows:
        by_status[status.value if isinstance(status, ServiceOrderStatus) else str(status)] = count

    overdue = session.exec(
        select(func.count(ServiceOrder.id)).where(
            ServiceOrder.tenant_id == membership.tenant_id,
            ServiceOrder.estimated_date < utc_now(),
            ServiceOrder.status.not_in(FINISHED_STATUSES),  # type: ignore[attr-defined]
        )
    ).one()
    revenue = session.exec(
        select(func.coalesce(func.sum(ServiceOrder.total), 0)).where(
            ServiceOrder.tenant_id == membership.tenant_id,
            ServiceOrder.status.in_((ServiceOrderStatus.COMPLETED, ServiceOrderStatus.DELIVERED)),  # type: ignore[attr-defined]
        )
    ).one()
    return ServiceOrderStatsResponse(by_status=by_status, overdue=overdue, revenue=round_money(revenue))


@router.get("/{order_id}", response_model=ServiceOrderResponse)
def get_service_order(
    order_id: int,
    membership: Membership = Depends(get_current_membership),
    session: Session = Depends(get_session),
):
    return _to_response(session, _get_order(session, order_id, membership.tenant_id))


@router.post("", response_model=ServiceOrderResponse, status_code=201)
async def create_service_order(
    body: ServiceOrderCreate,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER", "SELLER")),
    account: Account = Depends(get_current_account),
    session: Session = Depends(get_session),
):
    _get_customer(session, body.customer_id, membership.tenant_id)
    _check_products(session, body.items, membership.tenant_id)

    data = body.model_dump(exclude={"items"})
    try:
        order = ServiceOrder(
            tenant_id=membership.tenant_id,
            account_id=account.id,
            code=_next_code(session, membership.tenant_id),
            status=ServiceOrderStatus.PENDING,
            **data,
        )
        session.add(order)
        session.flush()
        order.parts_cost = _replace_items(session, order, body.items)
        order.total = _order_total(order)
        session.add(order)
        session.commit()
    except Exception:
        session.rollback()
        raise
    session.refresh(order)
    logger.info(f"OS {order.code} criada (tenant={order.tenant_id})")

    await enqueue_job("service_order_update_job", order.id)
    return _to_response(session, order)


@router.put("/{order_id}", response_model=ServiceOrderResponse)
def update_service_order(
    order_id: int,
    body: ServiceOrderUpdate,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER", "SELLER")),
    session: Session = Depends(get_session),
):
    order = _get_order(session, order_id, membership.tenant_id)
    data = body.model_dump(exclude_unset=True)
    items = body.items if "items" in data else None
    data.pop("items", None)

    if data.get("customer_id") is not None:
        _get_customer(session, data["customer_id"], membership.tenant_id)
    if items is not None:
        _check_products(session, items, membership.tenant_id)

    try:
        for key, value in data.items():
            if value is None and key in ("customer_id", "title", "priority", "labor_cost", "discount", "warranty_days"):
                continue
            setattr(order, key, value)
        if items is not None:
            order.parts_cost = _replace_items(session, order, items)
        order.total = _order_total(order)
        order.updated_at = utc_now()
        session.add(order)
        session.commit()
    except Exception:
        session.rollback()
        raise
    session.refresh(order)
    return _to_response(session, order)


@router.patch("/{order_id}/status", response_model=ServiceOrderResponse)
async def update_service_order_status(
    order_id: int,
    body: StatusUpdateRequest,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER", "SELLER")),
    tenant: Tenant = Depends(get_current_tenant),
    session: Session = Depends(get_session),
):
    """
    Muda a situação da OS.

    - COMPLETED: lança a receita (PENDING) e, se configurado, emite a nota de serviço.
    - DELIVERED: envia a nota de serviço ao cliente por email.
    - Toda mudança de situação notifica o cliente.
    """
    order = _get_order(session, order_id, tenant.id)
    previous_status = order.status
    new_status = body.status
    now = utc_now()
    invoice: Invoice | None = None

    try:
        order.status = new_status
        if new_status == ServiceOrderStatus.COMPLETED:
            order.completed_at = now
        elif new_status == ServiceOrderStatus.DELIVERED:
            order.delivered_at = now
        if body.notes:
            order.notes = f"{order.notes or ''}\n[{new_status.value}]: {body.notes}"
        order.updated_at = now
        session.add(order)

        if new_status == ServiceOrderStatus.COMPLETED and previous_status != ServiceOrderStatus.COMPLETED:
            customer = session.get(Customer, order.customer_id)
            if order.total > 0:
                session.add(
                    Transaction(
                        tenant_id=tenant.id,
                        service_order_id=order.id,
                        type=TransactionType.INCOME,
                        description=f"OS #{order.code} - {order.title}",
                        amount=order.total,
                        due_date=now,
                        status=TransactionStatus.PENDING,
                        reference=order.code,
                        notes=f"Ordem de serviço: {order.title}\nCliente: {customer.name if customer else 'N/A'}",
                    )
                )
            if get_general_settings(tenant).get("auto_generate_invoice"):
                invoice = generate_from_service_order(
                    session,
                    tenant,
                    order,
                    type=InvoiceType.SERVICE,
                    notes=f"Referente à Ordem de Serviço #{order.code}",
                    commit=False,
                )

        if new_status == ServiceOrderStatus.CANCELLED:
            pending = session.exec(
                select(Transaction).where(
                    Transaction.service_order_id == order.id,
                    Transaction.status == TransactionStatus.PENDING,
                )
            ).all()
            for transaction in pending:
                transaction.status = TransactionStatus.CANCELLED
                transaction.updated_at = now
                session.add(transaction)

        session.commit()
    except Exception:
        session.rollback()
        raise
    session.refresh(order)
    if invoice is not None:
        logger.info(f"NF de serviço {invoice.number} gerada para OS {order.code}")

    if new_status == ServiceOrderStatus.DELIVERED and previous_status != ServiceOrderStatus.DELIVERED:
        service_invoice = session.exec(
            select(Invoice)
            .where(Invoice.service_order_id == order.id, Invoice.tenant_id == tenant.id)
            .order_by(Invoice.created_at.desc(), Invoice.id.desc())  # type: ignore[attr-defined]
        ).first()
        if service_invoice:
            await enqueue_job("send_invoice_job", service_invoice.id, "EMAIL")

    if new_status != previous_status:
        await enqueue_job("service_order_update_job", order.id)
    return _to_response(session, order)


@router.delete("/{order_id}")
def delete_service_order(
    order_id: int,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    session: Session = Depends(get_session),
):
    order = _get_order(session, order_id, membership.tenant_id)
    if order.status not in (ServiceOrderStatus.PENDING, ServiceOrderStatus.CANCELLED):
        raise HTTPException(status_code=400, detail="Só é possível remover OS pendentes ou canceladas")

    # Lançamentos e notas continuam no histórico, sem o vínculo com a OS
    for transaction in session.exec(select(Transaction).where(Transaction.service_order_id == order.id)).all():
        transaction.service_order_id = None
        session.add(transaction)
    for invoice in session.exec(select(Invoice).where(Invoice.service_order_id == order.id)).all():
        invoice.service_order_id = None
        session.add(invoice)
    session.flush()
    for item in session.exec(select(ServiceOrderItem).where(ServiceOrderItem.service_order_id == order.id)).all():
        session.delete(item)
    session.delete(order)
    session.commit()
    return {"message": "Ordem de serviço removida com sucesso"}
