import logging
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel as PydanticBaseModel, field_validator
from sqlalchemy import func, or_
from sqlmodel import Session, select

from app.auth.dependencies import get_current_account, get_current_membership, get_current_tenant, require_role
from app.db.session import get_session
from app.lib.pagination import paginate, total_pages
from app.lib.text import ensure_utc, local_day_start_utc, local_today, round_money
from app.model.account import Account
from app.model.base import utc_now
from app.model.customer import Customer
from app.model.membership import Membership
from app.model.product import Product
from app.model.sale import PaymentMethod, PaymentStatus, Sale, SaleItem, SalePayment, SaleStatus
from app.model.tenant import Tenant
from app.services.sale_service import cancel_sale, create_sale
from app.services.setting_service import get_general_settings
from app.worker.queue import enqueue_job

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sales", tags=["Sale"])


class SaleItemCreate(PydanticBaseModel):
    product_id: int
    quantity: int
    unit_price: float
    discount: float = 0

    @field_validator("quantity")
    @classmethod
    def validate_quantity(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantidade deve ser no mínimo 1")
        return v

    @field_validator("unit_price", "discount")
    @classmethod
    def validate_money(cls, v: float) -> float:
        if v < 0:
            raise ValueError("O valor não pode ser negativo")
        return v


class SalePaymentCreate(PydanticBaseModel):
    method: PaymentMethod
    amount: float
    installments: int = 1


class SaleCreate(PydanticBaseModel):
    items: list[SaleItemCreate]
    customer_id: int | None = None
    discount: float = 0
    tax: float = 0
    payment_method: PaymentMethod | None = None
    paid_amount: float | None = None
    payments: list[SalePaymentCreate] | None = None
    notes: str | None = None

    @field_validator("items")
    @classmethod
    def validate_items(cls, v: list[SaleItemCreate]) -> list[SaleItemCreate]:
        if not v:
            raise ValueError("A venda deve ter pelo menos um item")
        return v

    @field_validator("discount", "tax")
    @classmethod
    def validate_money(cls, v: float) -> float:
        if v < 0:
            raise ValueError("O valor não pode ser negativo")
        return v


class SaleCancelRequest(PydanticBaseModel):
    reason: str | None = None


class SaleItemResponse(PydanticBaseModel):
    id: int
    product_id: int
    product_name: str | None = None
    product_sku: str | None = None
    quantity: int
    unit_price: float
    discount: float
    total: float


class SalePaymentResponse(PydanticBaseModel):
    id: int
    method: PaymentMethod
    amount: float
    installments: int

    class Config:
        from_attributes = True


class SaleResponse(PydanticBaseModel):
    id: int
    tenant_id: int
    code: str
    customer_id: int | None
    customer_name: str | None = None
    account_id: int | None
    subtotal: float
    discount: float
    tax: float
    total: float
    paid_amount: float
    change_amount: float
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    status: SaleStatus
    notes: str | None
    completed_at: datetime | None
    cancelled_at: datetime | None
    created_at: datetime
    updated_at: datetime
    items: list[SaleItemResponse] = []
    payments: list[SalePaymentResponse] = []


class SaleListResponse(PydanticBaseModel):
    items: list[SaleResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class SaleCancelResponse(PydanticBaseModel):
    message: str
    sale: SaleResponse


class SaleStatsResponse(PydanticBaseModel):
    total_revenue: float
    total_discount: float
    average_ticket: float
    sales_count: int
    cancelled_count: int


class DailySales(PydanticBaseModel):
    date: str
    total: float
    count: int


def _get_sale(session: Session, sale_id: int, tenant_id: int) -> Sale:
    sale = session.get(Sale, sale_id)
    if not sale or sale.tenant_id != tenant_id:
        raise HTTPException(status_code=404, detail="Venda não encontrada")
    return sale


def _to_response(session: Session, sale: Sale, *, with_items: bool = True) -> SaleResponse:
    customer = session.get(Customer, sale.customer_id) if sale.customer_id else None
    items: list[SaleItemResponse] = []
    payments: list[SalePaymentResponse] = []
    if with_items:
        rows = session.exec(
            select(SaleItem, Product)
            .join(Product, Product.id == SaleItem.product_id)
            .where(SaleItem.sale_id == sale.id)
            .order_by(SaleItem.id)
        ).all()
        items = [
            SaleItemResponse(
                id=item.id,
                product_id=item.product_id,
                product_name=product.name,
                product_sku=product.sku,
                quantity=item.quantity,
                unit_price=item.unit_price,
                discount=item.discount,
                total=item.total,
            )
            for item, product in rows
        ]
        payments = [
            SalePaymentResponse.model_validate(p)
            for p in session.exec(select(SalePayment).where(SalePayment.sale_id == sale.id).order_by(SalePayment.id)).all()
        ]
    return SaleResponse(
        id=sale.id,
        tenant_id=sale.tenant_id,
        code=sale.code,
        customer_id=sale.customer_id,
        customer_name=customer.name if customer else None,
        account_id=sale.account_id,
        subtotal=sale.subtotal,
        discount=sale.discount,
        tax=sale.tax,
        total=sale.total,
        paid_amount=sale.paid_amount,
        change_amount=sale.change_amount,
        payment_method=sale.payment_method,
        payment_status=sale.payment_status,
        status=sale.status,
        notes=sale.notes,
        completed_at=sale.completed_at,
        cancelled_at=sale.cancelled_at,
        created_at=sale.created_at,
        updated_at=sale.updated_at,
        items=items,
        payments=payments,
    )


def _check_discount(body: SaleCreate, membership: Membership, general: dict) -> None:
    """Vendedores só concedem desconto até `max_discount_percent` quando a aprovação está ativa."""
    if not general.get("require_approval_for_discounts"):
        return
    if membership.role.value in ("ADMIN", "MANAGER"):
        return
    gross = sum(i.unit_price * i.quantity for i in body.items)
    if gross <= 0:
        return
    total_discount = body.discount + sum(i.discount for i in body.items)
    max_percent = float(general.get("max_discount_percent") or 0)
    if total_discount / gross * 100 > max_percent:
        raise HTTPException(
            status_code=400,
            detail=f"Desconto acima do limite permitido ({max_percent:g}%). Solicite aprovação de um gerente.",
        )


@router.get("", response_model=SaleListResponse)
def list_sales(
    search: str | None = Query(None),
    status: SaleStatus | None = Query(None),
    customer_id: int | None = Query(None),
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    membership: Membership = Depends(get_current_membership),
    session: Session = Depends(get_session),
):
    query = select(Sale).where(Sale.tenant_id == membership.tenant_id)
    if search:
        term = f"%{search.strip()}%"
        query = query.outerjoin(Customer, Customer.id == Sale.customer_id).where(
            or_(Sale.code.ilike(term), Customer.name.ilike(term))  # type: ignore[attr-defined]
        )
    if status is not None:
        query = query.where(Sale.status == status)
    if customer_id is not None:
        query = query.where(Sale.customer_id == customer_id)
    if start_date is not None:
        query = query.where(Sale.created_at >= ensure_utc(start_date))
    if end_date is not None:
        query = query.where(Sale.created_at <= ensure_utc(end_date))
    query = query.order_by(Sale.created_at.desc(), Sale.id.desc())  # type: ignore[attr-defined]

    items, total = paginate(session, query, page=page, limit=limit)
    return SaleListResponse(
        items=[_to_response(session, s, with_items=False) for s in items],
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages(total, limit),
    )


@router.get("/recent", response_model=list[SaleResponse])
def recent_sales(
    limit: int = Query(10, ge=1, le=50),
    membership: Membership = Depends(get_current_membership),
    session: Session = Depends(get_session),
):
    sales = session.exec(
        select(Sale)
        .where(Sale.tenant_id == membership.tenant_id)
        .order_by(Sale.created_at.desc(), Sale.id.desc())  # type: ignore[attr-defined]
        .limit(limit)
    ).all()
    return [_to_response(session, s, with_items=False) for s in sales]


@router.get("/stats", response_model=SaleStatsResponse)
def sale_stats(
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None),
    membership: Membership = Depends(get_current_membership),
    session: Session = Depends(get_session),
):
    """Totais das vendas concluídas no período (padrão: últimos 30 dias)."""
    end = ensure_utc(end_date) or utc_now()
    start = ensure_utc(start_date) or (end - timedelta(days=30))
    period = (Sale.tenant_id == membership.tenant_id, Sale.created_at >= start, Sale.created_at <= end)

    revenue, discount, count = session.exec(
        select(
            func.coalesce(func.sum(Sale.total), 0),
            func.coalesce(func.sum(Sale.discount), 0),
            func.count(Sale.id),
        ).where(*period, Sale.status == SaleStatus.COMPLETED)
    ).one()
    cancelled = session.exec(
        select(func.count(Sale.id)).where(*period, Sale.status == SaleStatus.CANCELLED)
    ).one()
    return SaleStatsResponse(
        total_revenue=round_money(revenue),
        total_discount=round_money(discount),
        average_ticket=round_money(revenue / count) if count else 0,
        sales_count=count,
        cancelled_count=cancelled,
    )


@router.get("/daily", response_model=list[DailySales])
def daily_sales(
    days: int = Query(7, ge=1, le=90),
    tenant: Tenant = Depends(get_current_tenant),
    session: Session = Depends(get_session),
):
    """Vendas por dia; os dias seguem o fuso da empresa (tenant.timezone)."""
    tenant_tz = ZoneInfo(tenant.timezone)
    today = local_today(tenant_tz, utc_now())
    first_day = today - timedelta(days=days - 1)
    buckets: dict[str, DailySales] = {}
    for offset in range(days):
        key = (first_day + timedelta(days=offset)).isoformat()
        buckets[key] = DailySales(date=key, total=0, count=0)

    since = local_day_start_utc(first_day, tenant_tz)
    sales = session.exec(
        select(Sale.created_at, Sale.total).where(
            Sale.tenant_id == tenant.id,
            Sale.status == SaleStatus.COMPLETED,
            Sale.created_at >= since,
        )
    ).all()
    for created_at, total in sales:
        key = ensure_utc(created_at).astimezone(tenant_tz).date().isoformat()
        if key in buckets:
            buckets[key].total = round_money(buckets[key].total + total)
            buckets[key].count += 1
    return list(buckets.values())


@router.get("/{sale_id}", response_model=SaleResponse)
def get_sale(
    sale_id: int,
    membership: Membership = Depends(get_current_membership),
    session: Session = Depends(get_session),
):
    return _to_response(session, _get_sale(session, sale_id, membership.tenant_id))


@router.post("", response_model=SaleResponse, status_code=201)
async def create_sale_route(
    body: SaleCreate,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER", "SELLER")),
    account: Account = Depends(get_current_account),
    tenant: Tenant = Depends(get_current_tenant),
    session: Session = Depends(get_session),
):
    """
    Finaliza uma venda do PDV.

    Estoque, movimentos, lançamento financeiro e totais do cliente são gravados
    em uma única transação. As notificações são enfileiradas depois do commit.
    """
    general = get_general_settings(tenant)
    _check_discount(body, membership, general)

    sale, low_stock_ids = create_sale(
        session,
        tenant_id=tenant.id,
        account_id=account.id,
        items=[i.model_dump() for i in body.items],
        customer_id=body.customer_id,
        discount=body.discount,
        tax=body.tax,
        payment_method=body.payment_method,
        paid_amount=body.paid_amount,
        payments=[p.model_dump() for p in body.payments] if body.payments else None,
        notes=body.notes,
        allow_negative_stock=bool(general.get("allow_negative_stock")),
    )

    if sale.customer_id:
        await enqueue_job("sale_confirmation_job", sale.id)
    if low_stock_ids:
        await enqueue_job("low_stock_alert_job", tenant.id, low_stock_ids)
    return _to_response(session, sale)


@router.post("/{sale_id}/cancel", response_model=SaleCancelResponse)
def cancel_sale_route(
    sale_id: int,
    body: SaleCancelRequest,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    account: Account = Depends(get_current_account),
    session: Session = Depends(get_session),
):
    sale = _get_sale(session, sale_id, membership.tenant_id)
    sale = cancel_sale(session, sale, reason=body.reason, account_id=account.id)
    return SaleCancelResponse(message="Venda cancelada com sucesso", sale=_to_response(session, sale))
