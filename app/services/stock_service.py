from __future__ import annotations

from fastapi import HTTPException
from sqlmodel import Session

from app.model.base import utc_now
from app.model.product import Product
from app.model.stock_movement import StockMovement, StockMovementType


def move_stock(
    session: Session,
    product: Product,
    *,
    new_stock: int,
    reason: str,
    reference: str | None = None,
    account_id: int | None = None,
    allow_negative: bool = False,
    movement_type: StockMovementType | None = None,
) -> StockMovement:
    """
    Altera `product.stock` para `new_stock` e registra o movimento no livro-razão.

    Não faz commit: quem chama decide a unidade de trabalho (ex.: venda inteira).
    O movimento é registrado mesmo sem variação (ajuste de conferência, entrada de 0).
    """
    if new_stock < 0 and not allow_negative:
        raise HTTPException(status_code=400, detail="Estoque insuficiente")

    previous_stock = product.stock
    if movement_type is None:
        movement_type = StockMovementType.IN if new_stock > previous_stock else StockMovementType.OUT

    movement = StockMovement(
        tenant_id=product.tenant_id,
        product_id=product.id,
        account_id=account_id,
        type=movement_type,
        quantity=abs(new_stock - previous_stock),
        reason=reason,
        reference=reference,
        previous_stock=previous_stock,
        new_stock=new_stock,
    )
    product.stock = new_stock
    product.updated_at = utc_now()
    session.add(product)
    session.add(movement)
    return movement


def is_low_stock(product: Product) -> bool:
    return 0 < product.stock <= product.min_stock
