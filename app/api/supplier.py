from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel as PydanticBaseModel, field_validator
from sqlalchemy import func, or_
from sqlmodel import Session, select

from app.auth.dependencies import get_current_membership, require_role
from app.db.session import get_session
from app.lib.pagination import paginate, total_pages
from app.lib.text import normalize_email, only_digits, round_money
from app.model.base import utc_now
from app.model.customer import CustomerType
from app.model.membership import Membership
from app.model.product import Product
from app.model.supplier import Supplier

router = APIRouter(prefix="/suppliers", tags=["Supplier"])


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


def _check_commercial(field: str, v):
    if v is None:
        return v
    if field == "rating" and not 1 <= v <= 5:
        raise ValueError("Avaliação deve ser de 1 a 5")
    if v < 0:
        raise ValueError("O valor não pode ser negativo")
    return v


class SupplierCreate(PydanticBaseModel):
    name: str
    type: CustomerType = CustomerType.PJ
    trade_name: str | None = None
    cpf_cnpj: str | None = None
    ie: str | None = None
    im: str | None = None
    email: str | None = None
    phone: str | None = None
    whatsapp: str | None = None
    website: str | None = None
    contact_person: str | None = None
    address: str | None = None
    number: str | None = None
    complement: str | None = None
    neighborhood: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str = "Brasil"
    payment_terms: str | None = None
    lead_time: int | None = None
    min_order_value: float | None = None
    rating: int | None = None
    notes: str | None = None
    tags: list[str] | None = None
    bank_info: dict | None = None
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

    @field_validator("lead_time", "min_order_value", "rating")
    @classmethod
    def validate_commercial(cls, v, info):
        return _check_commercial(info.field_name, v)


class SupplierUpdate(PydanticBaseModel):
    name: str | None = None
    type: CustomerType | None = None
    trade_name: str | None = None
    cpf_cnpj: str | None = None
    ie: str | None = None
    im: str | None = None
    email: str | None = None
    phone: str | None = None
    whatsapp: str | None = None
    website: str | None = None
    contact_person: str | None = None
    address: str | None = None
    number: str | None = None
    complement: str | None = None
    neighborhood: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None
    payment_terms: str | None = None
    lead_time: int | None = None
    min_order_value: float | None = None
    rating: int | None = None
    notes: str | None = None
    tags: list[str] | None = None
    bank_info: dict | None = None
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

    @field_validator("lead_time", "min_order_value", "rating")
    @classmethod
    def validate_commercial(cls, v, info):
        return _check_commercial(info.field_name, v)


class SupplierResponse(PydanticBaseModel):
    id: int
    tenant_id: int
    type: CustomerType
    name: str
    trade_name: str | None
    cpf_cnpj: str | None
    ie: str | None
    im: str | None
    email: str | None
    phone: str | None
    whatsapp: str | None
    website: str | None
    contact_person: str | None
    address: str | None
    number: str | None
    complement: str | None
    neighborhood: str | None
    city: str | None
    state: str | None
    zip_code: str | None
    country: str
    payment_terms: str | None
    lead_time: int | None
    min_order_value: float | None
    rating: int | None
    notes: str | None
    tags: list[str] | None
    bank_info: dict | None
    is_active: bool
    product_count: int = 0
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class SupplierListResponse(PydanticBaseModel):
    items: list[SupplierResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class SupplierProduct(PydanticBaseModel):
    id: int
    sku: str
    name: str
    cost_price: float
    stock: int


class SupplierDetailResponse(SupplierResponse):
    products: list[SupplierProduct] = []


class SupplierSimple(PydanticBaseModel):
    id: int
    name: str
    trade_name: str | None
    cpf_cnpj: str | None


class SupplierRanking(PydanticBaseModel):
    id: int
    name: str
    product_count: int


class SupplierStats(PydanticBaseModel):
    total: int
    active: int
    inactive: int
    with_products: int
    without_products: int
    top_by_products: list[SupplierRanking]


def _get_supplier(session: Session, supplier_id: int, tenant_id: int) -> Supplier:
    supplier = session.get(Supplier, supplier_id)
    if not supplier or supplier.tenant_id != tenant_id:
        raise HTTPException(status_code=404, detail="Fornecedor não encontrado")
    return supplier


def _check_document(
    session: Session, tenant_id: int, cpf_cnpj: str | None, exclude_id: int | None = None
) -> None:
    if not cpf_cnpj:
        return
    query = select(Supplier.id).where(Supplier.tenant_id == tenant_id, Supplier.cpf_cnpj == cpf_cnpj)
    if exclude_id is not None:
        query = query.where(Supplier.id != exclude_id)
    if session.exec(query).first() is not None:
        detail = "Já existe outro fornecedor com este CPF/CNPJ" if exclude_id else "Já existe um fornecedor com este CPF/CNPJ"
        raise HTTPException(status_code=409, detail=detail)


def _product_counts(session: Session, supplier_ids: list[int]) -> dict[int, int]:
    if not supplier_ids:
        return {}
    rows = session.exec(
        select(Product.supplier_id, func.count(Product.id))
        .where(Product.supplier_id.in_(supplier_ids))  # type: ignore[union-attr]
        .group_by(Product.supplier_id)
    ).all()
    return {supplier_id: count for supplier_id, count in rows}


def _to_response(supplier: Supplier, product_count: int = 0) -> SupplierResponse:
    response = SupplierResponse.model_validate(supplier)
    response.product_count = product_count
    if response.min_order_value is not None:
        response.min_order_value = round_money(response.min_order_value)
    return response


@router.get("", response_model=SupplierListResponse)
def list_suppliers(
    search: str | None = Query(None),
    city: str | None = Query(None),
    state: str | None = Query(None),
    is_active: bool | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    membership: Membership = Depends(get_current_membership),
    session: Session = Depends(get_session),
):
    query = select(Supplier).where(Supplier.tenant_id == membership.tenant_id)
    if search:
        term = f"%{search.strip()}%"
        conditions = [
            Supplier.name.ilike(term),  # type: ignore[attr-defined]
            Supplier.trade_name.ilike(term),  # type: ignore[attr-defined]
            Supplier.email.ilike(term),  # type: ignore[attr-defined]
            Supplier.contact_person.ilike(term),  # type: ignore[attr-defined]
        ]
        digits = only_digits(search)
        if digits:
            conditions.append(Supplier.cpf_cnpj.ilike(f"%{digits}%"))  # type: ignore[attr-defined]
        query = query.where(or_(*conditions))
    if city:
        query = query.where(Supplier.city.ilike(f"%{city.strip()}%"))  # type: ignore[attr-defined]
    if state:
        query = query.where(Supplier.state == state.strip().upper())
    if is_active is not None:
        query = query.where(Supplier.is_active == is_active)
    query = query.order_by(Supplier.name.asc())  # type: ignore[attr-defined]

    items, total = paginate(session, query, page=page, limit=limit)
    counts = _product_counts(session, [s.id for s in items])
    return SupplierListResponse(
        items=[_to_response(s, counts.get(s.id, 0)) for s in items],
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages(total, limit),
    )


@router.get("/stats", response_model=SupplierStats)
def supplier_stats(
    membership: Membership = Depends(get_current_membership),
    session: Session = Depends(get_session),
):
    suppliers = session.exec(select(Supplier).where(Supplier.tenant_id == membership.tenant_id)).all()
    counts = _product_counts(session, [s.id for s in suppliers])
    active = sum(1 for s in suppliers if s.is_active)
    with_products = sum(1 for s in suppliers if counts.get(s.id, 0) > 0)
    ranking = sorted(
        (s for s in suppliers if counts.get(s.id, 0) > 0),
        key=lambda s: (-counts[s.id], s.name),
    )[:5]
    return SupplierStats(
        total=len(suppliers),
        active=active,
        inactive=len(suppliers) - active,
        with_products=with_products,
        without_products=len(suppliers) - with_products,
        top_by_products=[SupplierRanking(id=s.id, name=s.name, product_count=counts[s.id]) for s in ranking],
    )


@router.get("/simple", response_model=list[SupplierSimple])
def list_suppliers_simple(
    membership: Membership = Depends(get_current_membership),
    session: Session = Depends(get_session),
):
    """Fornecedores ativos para selects (cadastro de produto)."""
    rows = session.exec(
        select(Supplier)
        .where(Supplier.tenant_id == membership.tenant_id, Supplier.is_active == True)  # noqa: E712
        .order_by(Supplier.name.asc())  # type: ignore[attr-defined]
    ).all()
    return [SupplierSimple(id=s.id, name=s.name, trade_name=s.trade_name, cpf_cnpj=s.cpf_cnpj) for s in rows]


@router.get("/{supplier_id}", response_model=SupplierDetailResponse)
def get_supplier(
    supplier_id: int,
    membership: Membership = Depends(get_current_membership),
    session: Session = Depends(get_session),
):
    supplier = _get_supplier(session, supplier_id, membership.tenant_id)
    products = session.exec(
        select(Product)
        .where(Product.supplier_id == supplier.id, Product.tenant_id == membership.tenant_id)
        .order_by(Product.name.asc())  # type: ignore[attr-defined]
        .limit(10)
    ).all()
    count = _product_counts(session, [supplier.id]).get(supplier.id, 0)
    return SupplierDetailResponse(
        **_to_response(supplier, count).model_dump(),
        products=[
            SupplierProduct(id=p.id, sku=p.sku, name=p.name, cost_price=round_money(p.cost_price), stock=p.stock)
            for p in products
        ],
    )


@router.post("", response_model=SupplierResponse, status_code=201)
def create_supplier(
    body: SupplierCreate,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    session: Session = Depends(get_session),
):
    _check_document(session, membership.tenant_id, body.cpf_cnpj)
    supplier = Supplier(tenant_id=membership.tenant_id, **body.model_dump())
    session.add(supplier)
    session.commit()
    session.refresh(supplier)
    return _to_response(supplier)


@router.put("/{supplier_id}", response_model=SupplierResponse)
def update_supplier(
    supplier_id: int,
    body: SupplierUpdate,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    session: Session = Depends(get_session),
):
    supplier = _get_supplier(session, supplier_id, membership.tenant_id)
    data = body.model_dump(exclude_unset=True)
    if data.get("cpf_cnpj") and data["cpf_cnpj"] != supplier.cpf_cnpj:
        _check_document(session, membership.tenant_id, data["cpf_cnpj"], exclude_id=supplier.id)
    for key, value in data.items():
        # Colunas NOT NULL: null explícito no PUT é ignorado
        if value is None and key in ("name", "type", "country", "is_active"):
            continue
        setattr(supplier, key, value)
    supplier.updated_at = utc_now()
    session.add(supplier)
    session.commit()
    session.refresh(supplier)
    return _to_response(supplier, _product_counts(session, [supplier.id]).get(supplier.id, 0))


@router.delete("/{supplier_id}")
def delete_supplier(
    supplier_id: int,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    session: Session = Depends(get_session),
):
    supplier = _get_supplier(session, supplier_id, membership.tenant_id)
    linked = _product_counts(session, [supplier.id]).get(supplier.id, 0)
    if linked:
        raise HTTPException(
            status_code=409,
            detail=f"Não é possível excluir: {linked} produto(s) vinculado(s) a este fornecedor",
        )
    session.delete(supplier)
    session.commit()
    return {"message": "Fornecedor excluído com sucesso"}
