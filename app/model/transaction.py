from __future__ import annotations

import enum
from datetime import datetime

import sqlalchemy as sa
from sqlmodel import Field

from app.model.base import BaseModel, enum_column, money_column
from app.model.sale import PaymentMethod


class TransactionType(str, enum.Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class TransactionStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


class Transaction(BaseModel, table=True):
    """Lançamento financeiro (conta a receber/pagar)."""

    __tablename__ = "financial_transaction"

    tenant_id: int = Field(foreign_key="tenant.id", index=True)
    type: TransactionType = Field(sa_type=enum_column(TransactionType, "transaction_type"), index=True)
    description: str
    amount: float = Field(sa_type=money_column())
    due_date: datetime = Field(sa_type=sa.DateTime(timezone=True), nullable=False)
    paid_date: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True), nullable=True)
    status: TransactionStatus = Field(
        default=TransactionStatus.PENDING,
        sa_type=enum_column(TransactionStatus, "transaction_status"),
        index=True,
    )
    payment_method: PaymentMethod | None = Field(
        default=None,
        sa_type=enum_column(PaymentMethod, "transaction_payment_method"),
        nullable=True,
    )

    sale_id: int | None = Field(default=None, foreign_key="sale.id", nullable=True, index=True)
    service_order_id: int | None = Field(default=None, foreign_key="service_order.id", nullable=True, index=True)
    category_id: int | None = Field(default=None, foreign_key="transaction_category.id", nullable=True, index=True)
    reference: str | None = Field(default=None, nullable=True)
    notes: str | None = Field(default=None, nullable=True)
