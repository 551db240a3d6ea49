from __future__ import annotations

import enum

from sqlmodel import Field

from app.model.base import BaseModel, enum_column


class StockMovementType(str, enum.Enum):
    IN = "IN"
    OUT = "OUT"


class StockMovement(BaseModel, table=True):
    """Livro-razão de estoque: cada alteração de `product.stock` gera uma linha."""

    __tablename__ = "stock_movement"

    tenant_id: int = Field(foreign_key="tenant.id", index=True)
    product_id: int = Field(foreign_key="product.id", index=True)
    account_id: int | None = Field(default=None, foreign_key="account.id", nullable=True)

    type: StockMovementType = Field(sa_type=enum_column(StockMovementType, "stock_movement_type"))
    quantity: int
    reason: str | None = Field(default=None, nullable=True)
    # id da venda/OS que originou o movimento (quando houver)
    reference: str | None = Field(default=None, nullable=True, index=True)
    previous_stock: int
    new_stock: int
