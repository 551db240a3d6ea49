import logging
from datetime import datetime, timedelta
from enum import Enum

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel as PydanticBaseModel, field_validator
from sqlalchemy import func, or_
from sqlmodel import Session, select

from app.auth.dependencies import get_current_account, get_current_membership, require_role
from app.db.session import get_session
from app.lib.pagination import paginate, total_pages
from app.lib.text import round_money
from app.model.account import Account
from app.model.base import utc_now
from app.model.category import Category
from app.model.membership import Membership
from app.model.product import Product
from app.model.sale import Sale, SaleItem, SaleStatus
from app.model.stock_movement import StockMovement, StockMovementType
from app.model.supplier import Supplier
from app.services.stock_service import is_low_stock, move_stock
from app.worker.queue import enqueue_job

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["Product"])

# Colunas NOT NULL: null explícito no PUT é ignorado
REQUIRED_FIELDS = ("sku", "name", "cost_price", "sale_price", "stock", "min_stock", "unit", "is_active")


class ProductCreate(PydanticBaseModel):
    sku: str
    name: str
    barcode: str | None = None
    description: str | None = None
    brand: str | None = None
    color: str | None = None
    size: str | None = None
    category_id: int | None = None
    supplier_id: int | None = None
    cost_price: float = 0
    sale_price: float
    promo_price: float | None = None
    stock: int = 0
    min_stock: int = 0
    max_stock: int | None = None
    unit: str = "UN"
    ncm: str | None = None
    is_active: bool = True

    @field_validator("sku", "name")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("campo não pode ser vazio")
        return v.strip()

    @field_validator("cost_price", "sale_price")
    @classmethod
    def validate_price(cls, v: float) -> float:
        if v < 0:
            raise ValueError("O preço não pode ser negativo")
        return v

    @field_validator("stock", "min_stock")
    @classmethod
    def validate_stock(cls, v: int) -> int:
        if v < 0:
            raise ValueError("O estoque não pode ser negativo")
        return v


class ProductUpdate(PydanticBaseModel):
    sku: str | None = None
    name: str | None = None
    barcode: str | None = None
    description: str | None = None
    brand: str | None = None
    color: str | None = None
    size: str | None = None
    category_id: int | None = None
    supplier_id: int | None = None
    cost_price: float | None = None
    sale_price: float | None = None
    promo_price: float | None = None
    stock: int | None = None
    min_stock: int | None = None
    max_stock: int | None = None
    unit: str | None = None
    ncm: str | None = None
    is_active: bool | None = None

    @field_validator("sku", "name")
    @classmethod
    def validate_not_empty(cls, v: str | None) -> str | None:
        if v is None:
            return None
        if not v.strip():
            raise ValueError("campo não pode ser vazio")
        return v.strip()

    @field_validator("cost_price", "sale_price", "promo_price")
    @classmethod
    def validate_price(cls, v: float | None) -> float | None:
        if v is not None and v < 0:
            raise ValueError("O preço não pode ser negativo")
        return v

    @field_validator("stock", "min_stock", "max_stock")
    @classmethod
    def validate_stock(cls, v: int | None) -> int | None:
        if v is not None and v < 0:
            raise ValueError("O estoque não pode ser negativo")
        return v


class ProductResponse(PydanticBaseModel):
    id: int
    tenant_id: int
    sku: str
    barcode: str | None
    name: str
    description: str | None
    brand: str | None
    color: str | None
    size: str | None
    category_id: int | None
    supplier_id: int | None
    cost_price: float
    sale_price: float
    promo_price: float | None
    stock: int
    min_stock: int
    max_stock: int | None
    unit: str
    ncm: str | None
    is_active: bool
    is_variation: bool
    parent_product_id: int | None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ProductListResponse(PydanticBaseModel):
    items: list[ProductResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class StockUpdateType(str, Enum):
    IN = "IN"
    OUT = "OUT"
    ADJUSTMENT = "ADJUSTMENT"


class StockUpdateRequest(PydanticBaseModel):
    type: StockUpdateType
    quantity: int
    reason: str | None = None

    @field_validator("quantity")
    @classmethod
    def validate_quantity(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Quantidade deve ser no mínimo 0")
        return v


class StockUpdateResponse(PydanticBaseModel):
    product: ProductResponse
    previous_stock: int
    new_stock: int
    quantity: int
    type: str


class StockMovementResponse(PydanticBaseModel):
    id: int
    product_id: int
    account_id: int | None
    type: StockMovementType
    quantity: int
    reason: str | None
    reference: str | None
    previous_stock: int
    new_stock: int
    created_at: datetime

    class Config:
        from_attributes = True


class StockMovementListResponse(PydanticBaseModel):
    items: list[StockMovementResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class ProductStatsResponse(PydanticBaseModel):
    total_products: int
    low_stock_count: int
    out_of_stock_count: int
    stock_value: float
    stock_cost: float


class TopSellingItem(PydanticBaseModel):
    product_id: int
    name: str
    sku: str
    quantity_sold: int
    revenue: float


class VariationCreate(PydanticBaseModel):
    color: str | None = None
    size: str | None = None
    barcode: str | None = None
    cost_price: float | None = None
    sale_price: float | None = None
    stock: int = 0


class MessageResponse(PydanticBaseModel):
    message: str
    product: ProductResponse | None = None


def _get_product(session: Session, product_id: int, tenant_id: int) -> Product:
    product = session.get(Product, product_id)
    if not product or product.tenant_id != tenant_id:
        raise HTTPException(status_code=404, detail="Produto não encontrado")
    return product


def _check_category(session: Session, category_id: int | None, tenant_id: int) -> None:
    if category_id is None:
        return
    category = session.get(Category, category_id)
    if not category or category.tenant_id != tenant_id:
        raise HTTPException(status_code=404, detail="Categoria não encontrada")


def _check_supplier(session: Session, supplier_id: int | None, tenant_id: int) -> None:
    if supplier_id is None:
        return
    supplier = session.get(Supplier, supplier_id)
    if not supplier or supplier.tenant_id != tenant_id:
        raise HTTPException(status_code=404, detail="Fornecedor não encontrado")


def _check_unique(
    session: Session, tenant_id: int, *, sku: str | None, barcode: str | None, exclude_id: int | None = None
) -> None:
    if sku:
        query = select(Product.id).where(Product.tenant_id == tenant_id, Product.sku == sku)
        if exclude_id is not None:
            query = query.where(Product.id != exclude_id)
        if session.exec(query).first() is not None:
            raise HTTPException(status_code=400, detail="SKU já está em uso")
    if barcode:
        query = select(Product.id).where(Product.tenant_id == tenant_id, Product.barcode == barcode)
        if exclude_id is not None:
            query = query.where(Product.id != exclude_id)
        if session.exec(query).first() is not None:
            raise HTTPException(status_code=400, detail="Código de barras já está em uso")


async def _alert_low_stock(product: Product) -> None:
    if is_low_stock(product):
        await enqueue_job("low_stock_alert_job", product.tenant_id, [product.id])


@router.get("", response_model=ProductListResponse)
def list_products(
    search: str | None = Query(None),
    category_id: int | None = Query(None),
    is_active: bool | None = Query(None),
    low_stock: bool = Query(False),
    include_variations: bool = Query(True),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    membership: Membership = Depends(get_current_membership),
    session: Session = Depends(get_session),
):
    query = select(Product).where(Product.tenant_id == membership.tenant_id)
    if search:
        term = f"%{search.strip()}%"
        query = query.where(
            or_(
                Product.name.ilike(term),  # type: ignore[attr-defined]
                Product.sku.ilike(term),  # type: ignore[attr-defined]
                Product.barcode.ilike(term),  # type: ignore[attr-defined]
                Product.brand.ilike(term),  # type: ignore[attr-defined]
            )
        )
    if category_id is not None:
        query = query.where(Product.category_id == category_id)
    if is_active is not None:
        query = query.where(Product.is_active == is_active)
    if low_stock:
        query = query.where(Product.stock <= Product.min_stock)
    if not include_variations:
        query = query.where(Product.is_variation == False)  # noqa: E712
    query = query.order_by(Product.name.asc())  # type: ignore[attr-defined]

    items, total = paginate(session, query, page=page, limit=limit)
    return ProductListResponse(
        items=[ProductResponse.model_validate(p) for p in items],
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages(total, limit),
    )


@router.get("/stats", response_model=ProductStatsResponse)
def product_stats(
    membership: Membership = Depends(get_current_membership),
    session: Session = Depends(get_session),
):
    active = (Product.tenant_id == membership.tenant_id, Product.is_active == True)  # noqa: E712
    total_products = session.exec(select(func.count(Product.id)).where(*active)).one()
    low_stock_count = session.exec(
        select(func.count(Product.id)).where(*active, Product.stock <= Product.min_stock, Product.stock > 0)
    ).one()
    out_of_stock_count = session.exec(select(func.count(Product.id)).where(*active, Product.stock <= 0)).one()
    stock_value, stock_cost = session.exec(
        select(
            func.coalesce(func.sum(Product.sale_price * Product.stock), 0),
            func.coalesce(func.sum(Product.cost_price * Product.stock), 0),
        ).where(*active)
    ).one()
    return ProductStatsResponse(
        total_products=total_products,
        low_stock_count=low_stock_count,
        out_of_stock_count=out_of_stock_count,
        stock_value=round_money(stock_value),
        stock_cost=round_money(stock_cost),
    )


@router.get("/low-stock", response_model=list[ProductResponse])
def list_low_stock(
    membership: Membership = Depends(get_current_membership),
    session: Session = Depends(get_session),
):
    products = session.exec(
        select(Product)
        .where(
            Product.tenant_id == membership.tenant_id,
            Product.is_active == True,  # noqa: E712
            Product.stock <= Product.min_stock,
        )
        .order_by(Product.stock.asc())  # type: ignore[attr-defined]
    ).all()
    return products


@router.get("/top-selling", response_model=list[TopSellingItem])
def top_selling(
    days: int = Query(30, ge=1, le=365),
    limit: int = Query(10, ge=1, le=100),
    membership: Membership = Depends(get_current_membership),
    session: Session = Depends(get_session),
):
    since = utc_now() - timedelta(days=days)
    quantity_sold = func.sum(SaleItem.quantity).label("quantity_sold")
    rows = session.exec(
        select(Product.id, Product.name, Product.sku, quantity_sold, func.sum(SaleItem.total))
        .join(SaleItem, SaleItem.product_id == Product.id)
        .join(Sale, Sale.id == SaleItem.sale_id)
        .where(
            Sale.tenant_id == membership.tenant_id,
            Sale.status == SaleStatus.COMPLETED,
            Sale.created_at >= since,
        )
        .group_by(Product.id, Product.name, Product.sku)
        .order_by(quantity_sold.desc())
        .limit(limit)
    ).all()
    return [
        TopSellingItem(product_id=pid, name=name, sku=sku, quantity_sold=int(qty or 0), revenue=round_money(revenue))
        for pid, name, sku, qty, revenue in rows
    ]


@router.delete("/variations/{variation_id}", response_model=MessageResponse)
def delete_variation(
    variation_id: int,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    session: Session = Depends(get_session),
):
    variation = _get_product(session, variation_id, membership.tenant_id)
    if not variation.is_variation:
        raise HTTPException(status_code=400, detail="Este produto não é uma variação")
    sales_count = session.exec(select(func.count(SaleItem.id)).where(SaleItem.product_id == variation.id)).one()
    if sales_count > 0:
        raise HTTPException(status_code=400, detail="Não é possível excluir variação com vendas registradas")

    for movement in session.exec(select(StockMovement).where(StockMovement.product_id == variation.id)).all():
        session.delete(movement)
    session.delete(variation)
    session.commit()
    return MessageResponse(message="Variação excluída com sucesso")


@router.get("/{product_id}", response_model=ProductResponse)
def get_product(
    product_id: int,
    membership: Membership = Depends(get_current_membership),
    session: Session = Depends(get_session),
):
    return _get_product(session, product_id, membership.tenant_id)


@router.post("", response_model=ProductResponse, status_code=201)
async def create_product(
    body: ProductCreate,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER", "SELLER")),
    account: Account = Depends(get_current_account),
    session: Session = Depends(get_session),
):
    tenant_id = membership.tenant_id
    _check_unique(session, tenant_id, sku=body.sku, barcode=body.barcode)
    _check_category(session, body.category_id, tenant_id)
    _check_supplier(session, body.supplier_id, tenant_id)

    data = body.model_dump()
    initial_stock = data.pop("stock")
    product = Product(tenant_id=tenant_id, stock=0, **data)
    try:
        session.add(product)
        session.flush()
        if initial_stock > 0:
            move_stock(session, product, new_stock=initial_stock, reason="Estoque inicial", account_id=account.id)
        session.commit()
    except Exception:
        session.rollback()
        raise
    session.refresh(product)
    await _alert_low_stock(product)
    return product


@router.put("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: int,
    body: ProductUpdate,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER", "SELLER")),
    account: Account = Depends(get_current_account),
    session: Session = Depends(get_session),
):
    product = _get_product(session, product_id, membership.tenant_id)
    data = body.model_dump(exclude_unset=True)

    _check_unique(
        session,
        membership.tenant_id,
        sku=data.get("sku") if data.get("sku") != product.sku else None,
        barcode=data.get("barcode") if data.get("barcode") != product.barcode else None,
        exclude_id=product.id,
    )
    if "category_id" in data:
        _check_category(session, data["category_id"], membership.tenant_id)
    if "supplier_id" in data:
        _check_supplier(session, data["supplier_id"], membership.tenant_id)

    new_stock = data.pop("stock", None)
    try:
        for key, value in data.items():
            if value is None and key in REQUIRED_FIELDS:
                continue
            setattr(product, key, value)
        product.updated_at = utc_now()
        session.add(product)
        if new_stock is not None and new_stock != product.stock:
            move_stock(session, product, new_stock=new_stock, reason="Ajuste manual de estoque", account_id=account.id)
        session.commit()
    except Exception:
        session.rollback()
        raise
    session.refresh(product)
    if new_stock is not None:
        await _alert_low_stock(product)
    return product


@router.delete("/{product_id}", response_model=MessageResponse)
def delete_product(
    product_id: int,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    session: Session = Depends(get_session),
):
    """Produto com vendas é apenas desativado; sem vendas é removido."""
    product = _get_product(session, product_id, membership.tenant_id)
    sales_count = session.exec(select(func.count(SaleItem.id)).where(SaleItem.product_id == product.id)).one()
    if sales_count > 0:
        product.is_active = False
        product.updated_at = utc_now()
        session.add(product)
        session.commit()
        session.refresh(product)
        return MessageResponse(
            message="Produto desativado (possui vendas vinculadas)",
            product=ProductResponse.model_validate(product),
        )

    variations = session.exec(select(func.count(Product.id)).where(Product.parent_product_id == product.id)).one()
    if variations > 0:
        raise HTTPException(status_code=400, detail="Não é possível remover produto com variações cadastradas")

    for movement in session.exec(select(StockMovement).where(StockMovement.product_id == product.id)).all():
        session.delete(movement)
    session.delete(product)
    session.commit()
    logger.info(f"Produto removido (tenant={membership.tenant_id}, product_id={product_id})")
    return MessageResponse(message="Produto removido com sucesso")


@router.post("/{product_id}/stock", response_model=StockUpdateResponse)
async def update_stock(
    product_id: int,
    body: StockUpdateRequest,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER", "SELLER")),
    account: Account = Depends(get_current_account),
    session: Session = Depends(get_session),
):
    """
    Entrada (IN), saída (OUT) ou ajuste absoluto (ADJUSTMENT) de estoque.
    Estoque baixo após a operação dispara alerta em segundo plano.
    """
    product = _get_product(session, product_id, membership.tenant_id)
    previous_stock = product.stock

    if body.type == StockUpdateType.IN:
        new_stock = previous_stock + body.quantity
        default_reason = "Entrada de estoque"
    elif body.type == StockUpdateType.OUT:
        new_stock = previous_stock - body.quantity
        default_reason = "Saída de estoque"
    else:
        new_stock = body.quantity
        default_reason = "Ajuste de estoque"

    try:
        move_stock(
            session,
            product,
            new_stock=new_stock,
            reason=body.reason or default_reason,
            account_id=account.id,
            movement_type=None if body.type == StockUpdateType.ADJUSTMENT else StockMovementType(body.type.value),
        )
        session.commit()
    except Exception:
        session.rollback()
        raise
    session.refresh(product)
    await _alert_low_stock(product)

    return StockUpdateResponse(
        product=ProductResponse.model_validate(product),
        previous_stock=previous_stock,
        new_stock=product.stock,
        quantity=body.quantity,
        type=body.type.value,
    )


@router.get("/{product_id}/stock-movements", response_model=StockMovementListResponse)
def list_stock_movements(
    product_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    membership: Membership = Depends(get_current_membership),
    session: Session = Depends(get_session),
):
    product = _get_product(session, product_id, membership.tenant_id)
    query = (
        select(StockMovement)
        .where(StockMovement.product_id == product.id, StockMovement.tenant_id == membership.tenant_id)
        .order_by(StockMovement.created_at.desc(), StockMovement.id.desc())  # type: ignore[attr-defined]
    )
    items, total = paginate(session, query, page=page, limit=limit)
    return StockMovementListResponse(
        items=[StockMovementResponse.model_validate(m) for m in items],
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages(total, limit),
    )


def _variation_suffix(color: str | None, size: str | None) -> str:
    parts = [p.lower().replace(" ", "") for p in (color, size) if p]
    return "-".join(parts) or "var"


def _variation_name(parent_name: str, color: str | None, size: str | None) -> str:
    return " - ".join(p for p in (color, size) if p) or parent_name


@router.post("/{product_id}/variations", response_model=list[ProductResponse], status_code=201)
def create_variations(
    product_id: int,
    body: list[VariationCreate],
    membership: Membership = Depends(require_role("ADMIN", "MANAGER", "SELLER")),
    account: Account = Depends(get_current_account),
    session: Session = Depends(get_session),
):
    """Cria variações (cor/tamanho) do produto; SKU = SKU do pai + sufixo."""
    parent = _get_product(session, product_id, membership.tenant_id)
    if parent.is_variation:
        raise HTTPException(status_code=400, detail="Não é possível criar variação de uma variação")

    created: list[Product] = []
    try:
        for data in body:
            sku = f"{parent.sku}-{_variation_suffix(data.color, data.size)}"
            exists = session.exec(
                select(Product.id).where(Product.tenant_id == parent.tenant_id, Product.sku == sku)
            ).first()
            if exists is not None:
                raise HTTPException(status_code=400, detail=f"SKU {sku} já existe")
            _check_unique(session, parent.tenant_id, sku=None, barcode=data.barcode)

            variation = Product(
                tenant_id=parent.tenant_id,
                parent_product_id=parent.id,
                is_variation=True,
                sku=sku,
                barcode=data.barcode,
                name=_variation_name(parent.name, data.color, data.size),
                description=parent.description,
                category_id=parent.category_id,
                brand=parent.brand,
                color=data.color or parent.color,
                size=data.size or parent.size,
                ncm=parent.ncm,
                unit=parent.unit,
                cost_price=data.cost_price or parent.cost_price,
                sale_price=data.sale_price or parent.sale_price,
                promo_price=parent.promo_price,
                min_stock=parent.min_stock,
                max_stock=parent.max_stock,
                stock=0,
                is_active=True,
            )
            session.add(variation)
            session.flush()
            if data.stock and data.stock > 0:
                move_stock(
                    session,
                    variation,
                    new_stock=data.stock,
                    reason="Estoque inicial - Variação",
                    account_id=account.id,
                )
            created.append(variation)
        session.commit()
    except Exception:
        session.rollback()
        raise

    for variation in created:
        session.refresh(variation)
    return created


@router.get("/{product_id}/variations", response_model=list[ProductResponse])
def list_variations(
    product_id: int,
    membership: Membership = Depends(get_current_membership),
    session: Session = Depends(get_session),
):
    parent = _get_product(session, product_id, membership.tenant_id)
    return session.exec(
        select(Product)
        .where(
            Product.tenant_id == membership.tenant_id,
            Product.parent_product_id == parent.id,
            Product.is_variation == True,  # noqa: E712
        )
        .order_by(Product.created_at.asc(), Product.id.asc())  # type: ignore[attr-defined]
    ).all()
