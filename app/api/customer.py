from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel as PydanticBaseModel, field_validator
from sqlalchemy import func, or_
from sqlmodel import Session, select

from app.auth.dependencies import get_current_membership, require_role
from app.db.session import get_session
from app.lib.pagination import paginate, total_pages
from app.lib.text import normalize_email, only_digits
from app.model.base import utc_now
from app.model.customer import Customer, CustomerType, Gender
from app.model.membership import Membership
from app.model.sale import Sale
from app.model.service_order import ServiceOrder

router = APIRouter(prefix="/customers", tags=["Customer"])


def _clean_document(v: str | None) -> str | None:
    if v is None:
        return None
    digits = only_digits(v)
    if not digits:
        return None
    if len(digits) not in (11, 14):
        raise ValueError("CPF/CNPJ deve ter 11 ou 14 dígitos")
    return digits


def _clean_email(v: str | None) -> str | None:
    if v is None or not v.strip():
        return None
    return normalize_email(v)


class CustomerCreate(PydanticBaseModel):
    name: str
    type: CustomerType = CustomerType.PF
    cpf_cnpj: str | None = None
    email: str | None = None
    phone: str | None = None
    whatsapp: str | None = None
    birth_date: date | None = None
    gender: Gender | None = None
    address: str | None = None
    number: str | None = None
    complement: str | None = None
    neighborhood: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    notes: str | None = None
    tags: list[str] | None = None
    is_active: bool = True

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = (v or "").strip()
        if len(v) < 2:
            raise ValueError("Nome deve ter no mínimo 2 caracteres")
        return v

    @field_validator("cpf_cnpj")
    @classmethod
    def validate_cpf_cnpj(cls, v: str | None) -> str | None:
        return _clean_document(v)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str | None) -> str | None:
        return _clean_email(v)


class CustomerUpdate(PydanticBaseModel):
    name: str | None = None
    type: CustomerType | None = None
    cpf_cnpj: str | None = None
    email: str | None = None
    phone: str | None = None
    whatsapp: str | None = None
    birth_date: date | None = None
    gender: Gender | None = None
    address: str | None = None
    number: str | None = None
    complement: str | None = None
    neighborhood: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    notes: str | None = None
    tags: list[str] | None = None
    is_active: bool | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Nome deve ter no mínimo 2 caracteres")
        return v

    @field_validator("cpf_cnpj")
    @classmethod
    def validate_cpf_cnpj(cls, v: str | None) -> str | None:
        return _clean_document(v)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str | None) -> str | None:
        return _clean_email(v)


class CustomerResponse(PydanticBaseModel):
    id: int
    tenant_id: int
    type: CustomerType
    name: str
    cpf_cnpj: str | None
    email: str | None
    phone: str | None
    whatsapp: str | None
    birth_date: date | None
    gender: Gender | None
    address: str | None
    number: str | None
    complement: str | None
    neighborhood: str | None
    city: str | None
    state: str | None
    zip_code: str | None
    notes: str | None
    tags: list[str] | None
    points: int
    total_spent: float
    last_purchase: datetime | None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CustomerListResponse(PydanticBaseModel):
    items: list[CustomerResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class PointsRequest(PydanticBaseModel):
    points: int


class HistorySale(PydanticBaseModel):
    id: int
    code: str
    total: float
    status: str
    payment_method: str
    created_at: datetime


class HistoryServiceOrder(PydanticBaseModel):
    id: int
    code: str
    title: str
    total: float
    status: str
    created_at: datetime


class CustomerHistoryResponse(PydanticBaseModel):
    customer: CustomerResponse
    sales: list[HistorySale]
    service_orders: list[HistoryServiceOrder]


def _get_customer(session: Session, customer_id: int, tenant_id: int) -> Customer:
    customer = session.get(Customer, customer_id)
    if not customer or customer.tenant_id != tenant_id:
        raise HTTPException(status_code=404, detail="Cliente não encontrado")
    return customer


def _check_document(session: Session, tenant_id: int, cpf_cnpj: str | None, exclude_id: int | None = None) -> None:
    if not cpf_cnpj:
        return
    query = select(Customer.id).where(Customer.tenant_id == tenant_id, Customer.cpf_cnpj == cpf_cnpj)
    if exclude_id is not None:
        query = query.where(Customer.id != exclude_id)
    if session.exec(query).first() is not None:
        raise HTTPException(status_code=400, detail="CPF/CNPJ já cadastrado")


@router.get("", response_model=CustomerListResponse)
def list_customers(
    search: str | None = Query(None),
    type: CustomerType | None = Query(None),
    is_active: bool | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    membership: Membership = Depends(get_current_membership),
    session: Session = Depends(get_session),
):
    query = select(Customer).where(Customer.tenant_id == membership.tenant_id)
    if search:
        term = f"%{search.strip()}%"
        conditions = [
            Customer.name.ilike(term),  # type: ignore[attr-defined]
            Customer.email.ilike(term),  # type: ignore[attr-defined]
            Customer.phone.ilike(term),  # type: ignore[attr-defined]
        ]
        digits = only_digits(search)
        if digits:
            conditions.append(Customer.cpf_cnpj.ilike(f"%{digits}%"))  # type: ignore[attr-defined]
        query = query.where(or_(*conditions))
    if type is not None:
        query = query.where(Customer.type == type)
    if is_active is not None:
        query = query.where(Customer.is_active == is_active)
    query = query.order_by(Customer.name.asc())  # type: ignore[attr-defined]

    items, total = paginate(session, query, page=page, limit=limit)
    return CustomerListResponse(
        items=[CustomerResponse.model_validate(c) for c in items],
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages(total, limit),
    )


@router.get("/top", response_model=list[CustomerResponse])
def top_customers(
    limit: int = Query(10, ge=1, le=100),
    membership: Membership = Depends(get_current_membership),
    session: Session = Depends(get_session),
):
    return session.exec(
        select(Customer)
        .where(Customer.tenant_id == membership.tenant_id, Customer.is_active == True)  # noqa: E712
        .order_by(Customer.total_spent.desc())  # type: ignore[attr-defined]
        .limit(limit)
    ).all()


@router.get("/{customer_id}", response_model=CustomerResponse)
def get_customer(
    customer_id: int,
    membership: Membership = Depends(get_current_membership),
    session: Session = Depends(get_session),
):
    return _get_customer(session, customer_id, membership.tenant_id)


@router.post("", response_model=CustomerResponse, status_code=201)
def create_customer(
    body: CustomerCreate,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER", "SELLER")),
    session: Session = Depends(get_session),
):
    _check_document(session, membership.tenant_id, body.cpf_cnpj)
    customer = Customer(tenant_id=membership.tenant_id, **body.model_dump())
    session.add(customer)
    session.commit()
    session.refresh(customer)
    return customer


@router.put("/{customer_id}", response_model=CustomerResponse)
def update_customer(
    customer_id: int,
    body: CustomerUpdate,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER", "SELLER")),
    session: Session = Depends(get_session),
):
    customer = _get_customer(session, customer_id, membership.tenant_id)
    data = body.model_dump(exclude_unset=True)
    if data.get("cpf_cnpj") and data["cpf_cnpj"] != customer.cpf_cnpj:
        _check_document(session, membership.tenant_id, data["cpf_cnpj"], exclude_id=customer.id)
    for key, value in data.items():
        setattr(customer, key, value)
    customer.updated_at = utc_now()
    session.add(customer)
    session.commit()
    session.refresh(customer)
    return customer


@router.delete("/{customer_id}")
def delete_customer(
    customer_id: int,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    session: Session = Depends(get_session),
):
    """Cliente com vendas/OS é desativado; sem vínculos é removido."""
    customer = _get_customer(session, customer_id, membership.tenant_id)
    sales_count = session.exec(select(func.count(Sale.id)).where(Sale.customer_id == customer.id)).one()
    orders_count = session.exec(
        select(func.count(ServiceOrder.id)).where(ServiceOrder.customer_id == customer.id)
    ).one()
    if sales_count > 0 or orders_count > 0:
        customer.is_active = False
        customer.updated_at = utc_now()
        session.add(customer)
        session.commit()
        return {"message": "Cliente desativado (possui vendas/OS vinculadas)"}

    session.delete(customer)
    session.commit()
    return {"message": "Cliente removido com sucesso"}


@router.post("/{customer_id}/points", response_model=CustomerResponse)
def add_points(
    customer_id: int,
    body: PointsRequest,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER", "SELLER")),
    session: Session = Depends(get_session),
):
    """Soma (ou, com valor negativo, resgata) pontos de fidelidade."""
    customer = _get_customer(session, customer_id, membership.tenant_id)
    if customer.points + body.points < 0:
        raise HTTPException(status_code=400, detail="Pontos insuficientes")
    customer.points += body.points
    customer.updated_at = utc_now()
    session.add(customer)
    session.commit()
    session.refresh(customer)
    return customer


@router.get("/{customer_id}/history", response_model=CustomerHistoryResponse)
def customer_history(
    customer_id: int,
    limit: int = Query(50, ge=1, le=200),
    membership: Membership = Depends(get_current_membership),
    session: Session = Depends(get_session),
):
    customer = _get_customer(session, customer_id, membership.tenant_id)
    sales = session.exec(
        select(Sale)
        .where(Sale.customer_id == customer.id, Sale.tenant_id == membership.tenant_id)
        .order_by(Sale.created_at.desc())  # type: ignore[attr-defined]
        .limit(limit)
    ).all()
    orders = session.exec(
        select(ServiceOrder)
        .where(ServiceOrder.customer_id == customer.id, ServiceOrder.tenant_id == membership.tenant_id)
        .order_by(ServiceOrder.created_at.desc())  # type: ignore[attr-defined]
        .limit(limit)
    ).all()
    return CustomerHistoryResponse(
        customer=CustomerResponse.model_validate(customer),
        sales=[
            HistorySale(
                id=s.id,
                code=s.code,
                total=s.total,
                status=s.status.value,
                payment_method=s.payment_method.value,
                created_at=s.created_at,
            )
            for s in sales
        ],
        service_orders=[
            HistoryServiceOrder(
                id=o.id, code=o.code, title=o.title, total=o.total, status=o.status.value, created_at=o.created_at
            )
            for o in orders
        ],
    )
