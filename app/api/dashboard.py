from datetime import datetime
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends
from pydantic import BaseModel as PydanticBaseModel
from sqlalchemy import func
from sqlmodel import Session, select

from app.auth.dependencies import require_permission
from app.db.session import get_session
from app.lib.text import local_day_start_utc, local_today, round_money
from app.model.base import utc_now
from app.model.customer import Customer
from app.model.membership import Membership
from app.model.product import Product
from app.model.sale import Sale, SaleStatus
from app.model.service_order import ServiceOrder, ServiceOrderStatus
from app.model.tenant import Tenant
from app.model.transaction import Transaction, TransactionStatus, TransactionType

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])

OPEN_SERVICE_ORDER_STATUSES = (
    ServiceOrderStatus.PENDING,
    ServiceOrderStatus.IN_PROGRESS,
    ServiceOrderStatus.WAITING_PARTS,
)


class PeriodSales(PydanticBaseModel):
    count: int
    revenue: float


class DashboardOverview(PydanticBaseModel):
    today: PeriodSales
    month: PeriodSales
    customers: int
    products: int
    low_stock: int
    open_service_orders: int
    pending_receivables: float
    generated_at: datetime


def _sales_since(session: Session, tenant_id: int, since: datetime) -> PeriodSales:
    count, revenue = session.exec(
        select(func.count(Sale.id), func.coalesce(func.sum(Sale.total), 0)).where(
            Sale.tenant_id == tenant_id,
            Sale.status == SaleStatus.COMPLETED,
            Sale.created_at >= since,
        )
    ).one()
    return PeriodSales(count=count, revenue=round_money(revenue))


@router.get("/overview", response_model=DashboardOverview)
def overview(
    membership: Membership = Depends(require_permission("dashboard")),
    session: Session = Depends(get_session),
):
    """Resumo do dia e do mês para a tela inicial; dia e mês seguem o fuso da empresa."""
    tenant_id = membership.tenant_id
    tenant = session.get(Tenant, tenant_id)
    tenant_tz = ZoneInfo(tenant.timezone)
    now = utc_now()
    today = local_today(tenant_tz, now)
    start_of_day = local_day_start_utc(today, tenant_tz)
    start_of_month = local_day_start_utc(today.replace(day=1), tenant_tz)

    customers = session.exec(
        select(func.count(Customer.id)).where(Customer.tenant_id == tenant_id, Customer.is_active == True)  # noqa: E712
    ).one()
    products = session.exec(
        select(func.count(Product.id)).where(Product.tenant_id == tenant_id, Product.is_active == True)  # noqa: E712
    ).one()
    low_stock = session.exec(
        select(func.count(Product.id)).where(
            Product.tenant_id == tenant_id,
            Product.is_active == True,  # noqa: E712
            Product.stock <= Product.min_stock,
        )
    ).one()
    open_orders = session.exec(
        select(func.count(ServiceOrder.id)).where(
            ServiceOrder.tenant_id == tenant_id,
            ServiceOrder.status.in_(OPEN_SERVICE_ORDER_STATUSES),  # type: ignore[attr-defined]
        )
    ).one()
    receivables = session.exec(
        select(func.coalesce(func.sum(Transaction.amount), 0)).where(
            Transaction.tenant_id == tenant_id,
            Transaction.type == TransactionType.INCOME,
            Transaction.status == TransactionStatus.PENDING,
        )
    ).one()

    return DashboardOverview(
        today=_sales_since(session, tenant_id, start_of_day),
        month=_sales_since(session, tenant_id, start_of_month),
        customers=customers,
        products=products,
        low_stock=low_stock,
        open_service_orders=open_orders,
        pending_receivables=round_money(receivables),
        generated_at=now,
    )
