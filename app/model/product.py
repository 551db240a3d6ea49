from sqlalchemy import UniqueConstraint
from sqlmodel import Field

from app.model.base import BaseModel, money_column


class Product(BaseModel, table=True):
    __tablename__ = "product"

    tenant_id: int = Field(foreign_key="tenant.id", index=True)
    category_id: int | None = Field(default=None, foreign_key="category.id", nullable=True, index=True)
    supplier_id: int | None = Field(default=None, foreign_key="supplier.id", nullable=True, index=True)

    sku: str = Field(index=True)
    barcode: str | None = Field(default=None, nullable=True, index=True)
    name: str = Field(index=True)
    description: str | None = Field(default=None, nullable=True)
    brand: str | None = Field(default=None, nullable=True)
    color: str | None = Field(default=None, nullable=True)
    size: str | None = Field(default=None, nullable=True)

    cost_price: float = Field(default=0, sa_type=money_column())
    sale_price: float = Field(default=0, sa_type=money_column())
    promo_price: float | None = Field(default=None, sa_type=money_column(), nullable=True)

    stock: int = Field(default=0)
    min_stock: int = Field(default=0)
    max_stock: int | None = Field(default=None, nullable=True)
    unit: str = Field(default="UN")
    ncm: str | None = Field(default=None, nullable=True)

    is_active: bool = Field(default=True, index=True)

    # Variações (cor/tamanho) apontam para o produto pai
    is_variation: bool = Field(default=False)
    parent_product_id: int | None = Field(default=None, foreign_key="product.id", nullable=True, index=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "sku", name="uq_product_tenant_sku"),
        UniqueConstraint("tenant_id", "barcode", name="uq_product_tenant_barcode"),
    )
