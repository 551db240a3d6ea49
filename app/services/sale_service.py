"""
Venda (PDV): criação e cancelamento como uma única unidade de trabalho.

Criação: baixa de estoque + movimentos de estoque + lançamento financeiro +
agregados do cliente, tudo em um único commit. Qualquer erro faz rollback completo.
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException
from sqlalchemy import func
from sqlmodel import Session, select

from app.lib.text import next_sequential_code, round_money
from app.model.base import utc_now
from app.model.customer import Customer
from app.model.product import Product
from app.model.sale import PaymentMethod, PaymentStatus, Sale, SaleItem, SalePayment, SaleStatus
from app.model.transaction import Transaction, TransactionStatus, TransactionType
from app.services.stock_service import is_low_stock, move_stock

logger = logging.getLogger(__name__)


def next_sale_code(session: Session, tenant_id: int) -> str:
    last_code = session.exec(
        select(Sale.code).where(Sale.tenant_id == tenant_id).order_by(Sale.code.desc()).limit(1)  # type: ignore[attr-defined]
    ).first()
    return next_sequential_code("V", last_code)


def recompute_customer_totals(session: Session, customer_id: int, *, touch_last_purchase: bool = False) -> Customer | None:
    """total_spent = soma das vendas COMPLETED do cliente. Não faz commit."""
    customer = session.get(Customer, customer_id)
    if not customer:
        return None
    total = session.exec(
        select(func.coalesce(func.sum(Sale.total), 0)).where(
            Sale.customer_id == customer_id,
            Sale.status == SaleStatus.COMPLETED,
        )
    ).one()
    customer.total_spent = round_money(total)
    if touch_last_purchase:
        customer.last_purchase = utc_now()
    customer.updated_at = utc_now()
    session.add(customer)
    return customer


def _lock_product(session: Session, tenant_id: int, product_id: int) -> Product:
    product = session.exec(
        select(Product)
        .where(Product.id == product_id, Product.tenant_id == tenant_id)
        .with_for_update()
    ).first()
    if not product:
        raise HTTPException(status_code=404, detail="Produto não encontrado")
    return product


def create_sale(
    session: Session,
    *,
    tenant_id: int,
    account_id: int | None,
    items: list[dict[str, Any]],
    customer_id: int | None = None,
    discount: float = 0,
    tax: float = 0,
    payment_method: PaymentMethod | None = None,
    paid_amount: float | None = None,
    payments: list[dict[str, Any]] | None = None,
    notes: str | None = None,
    allow_negative_stock: bool = False,
) -> tuple[Sale, list[int]]:
    """
    Cria a venda concluída.

    Returns:
        (sale, low_stock_product_ids): os ids servem para o alerta de estoque baixo
        disparado depois do commit.
    """
    if not items:
        raise HTTPException(status_code=400, detail="A venda deve ter pelo menos um item")

    try:
        if customer_id is not None:
            customer = session.get(Customer, customer_id)
            if not customer or customer.tenant_id != tenant_id:
                raise HTTPException(status_code=404, detail="Cliente não encontrado")

        # 1) trava os produtos e valida estoque (quantidade acumulada por produto)
        products: dict[int, Product] = {}
        requested: dict[int, int] = {}
        for item in items:
            product_id = item["product_id"]
            if product_id not in products:
                products[product_id] = _lock_product(session, tenant_id, product_id)
            requested[product_id] = requested.get(product_id, 0) + item["quantity"]
        if not allow_negative_stock:
            for product_id, quantity in requested.items():
                product = products[product_id]
                if product.stock < quantity:
                    raise HTTPException(status_code=400, detail=f"Estoque insuficiente para {product.name}")

        # 2) totais
        lines = []
        for item in items:
            quantity = item["quantity"]
            unit_price = round_money(item["unit_price"])
            item_discount = round_money(item.get("discount") or 0)
            lines.append((item, quantity, unit_price, item_discount, round_money(unit_price * quantity - item_discount)))
        subtotal = round_money(sum(line[4] for line in lines))
        total = round_money(subtotal - (discount or 0) + (tax or 0))
        paid = round_money(paid_amount if paid_amount is not None else total)
        method = payment_method or PaymentMethod.CASH
        now = utc_now()

        # 3) venda
        sale = Sale(
            tenant_id=tenant_id,
            code=next_sale_code(session, tenant_id),
            customer_id=customer_id,
            account_id=account_id,
            subtotal=subtotal,
            discount=round_money(discount),
            tax=round_money(tax),
            total=total,
            paid_amount=paid,
            change_amount=round_money(paid - total),
            payment_method=method,
            payment_status=PaymentStatus.PAID,
            status=SaleStatus.COMPLETED,
            notes=notes,
            completed_at=now,
        )
        session.add(sale)
        session.flush()

        # 4) itens e pagamentos
        for item, quantity, unit_price, item_discount, line_total in lines:
            session.add(
                SaleItem(
                    sale_id=sale.id,
                    product_id=item["product_id"],
                    quantity=quantity,
                    unit_price=unit_price,
                    discount=item_discount,
                    total=line_total,
                )
            )
        if payments:
            for payment in payments:
                session.add(
                    SalePayment(
                        sale_id=sale.id,
                        method=payment["method"],
                        amount=round_money(payment["amount"]),
                        installments=payment.get("installments") or 1,
                    )
                )
        else:
            session.add(SalePayment(sale_id=sale.id, method=method, amount=total, installments=1))

        # 5) baixa de estoque + livro-razão
        for item, quantity, *_ in lines:
            product = products[item["product_id"]]
            move_stock(
                session,
                product,
                new_stock=product.stock - quantity,
                reason=f"Venda {sale.code}",
                reference=str(sale.id),
                account_id=account_id,
                allow_negative=allow_negative_stock,
            )

        # 6) lançamento financeiro
        session.add(
            Transaction(
                tenant_id=tenant_id,
                type=TransactionType.INCOME,
                description=f"Venda {sale.code}",
                amount=total,
                due_date=now,
                paid_date=now,
                status=TransactionStatus.CONFIRMED,
                payment_method=method,
                sale_id=sale.id,
            )
        )
        session.flush()

        # 7) agregados do cliente
        if customer_id is not None:
            recompute_customer_totals(session, customer_id, touch_last_purchase=True)

        session.commit()
    except Exception:
        session.rollback()
        raise

    session.refresh(sale)
    low_stock_ids = [p.id for p in products.values() if is_low_stock(p)]
    logger.info(f"Venda {sale.code} criada (tenant={tenant_id}, total={sale.total})")
    return sale, low_stock_ids


def cancel_sale(session: Session, sale: Sale, *, reason: str | None, account_id: int | None) -> Sale:
    """Cancela a venda: devolve estoque, cancela lançamentos e recalcula o cliente."""
    if sale.status == SaleStatus.CANCELLED:
        raise HTTPException(status_code=400, detail="Venda já está cancelada")

    try:
        now = utc_now()
        sale.status = SaleStatus.CANCELLED
        sale.payment_status = PaymentStatus.CANCELLED
        sale.cancelled_at = now
        sale.notes = f"{sale.notes or ''}\n[CANCELAMENTO]: {reason or 'Sem motivo informado'}"
        sale.updated_at = now
        session.add(sale)

        items = session.exec(select(SaleItem).where(SaleItem.sale_id == sale.id)).all()
        for item in items:
            product = _lock_product(session, sale.tenant_id, item.product_id)
            move_stock(
                session,
                product,
                new_stock=product.stock + item.quantity,
                reason=f"Cancelamento da venda {sale.code}",
                reference=str(sale.id),
                account_id=account_id,
            )

        transactions = session.exec(select(Transaction).where(Transaction.sale_id == sale.id)).all()
        for transaction in transactions:
            transaction.status = TransactionStatus.CANCELLED
            transaction.updated_at = now
            session.add(transaction)
        session.flush()

        if sale.customer_id is not None:
            recompute_customer_totals(session, sale.customer_id)

        session.commit()
    except Exception:
        session.rollback()
        raise

    session.refresh(sale)
    logger.info(f"Venda {sale.code} cancelada (tenant={sale.tenant_id})")
    return sale
