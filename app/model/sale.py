from __future__ import annotations

import enum
from datetime import datetime

import sqlalchemy as sa
from sqlalchemy import UniqueConstraint
from sqlmodel import Field

from app.model.base import BaseModel, enum_column, money_column


class PaymentMethod(str, enum.Enum):
    CASH = "CASH"
    CREDIT_CARD = "CREDIT_CARD"
    DEBIT_CARD = "DEBIT_CARD"
    PIX = "PIX"
    BANK_TRANSFER = "BANK_TRANSFER"
    BOLETO = "BOLETO"
    INSTALLMENT = "INSTALLMENT"


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    PARTIAL = "PARTIAL"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class SaleStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class Sale(BaseModel, table=True):
    __tablename__ = "sale"

    tenant_id: int = Field(foreign_key="tenant.id", index=True)
    code: str = Field(index=True)
    customer_id: int | None = Field(default=None, foreign_key="customer.id", nullable=True, index=True)
    account_id: int | None = Field(default=None, foreign_key="account.id", nullable=True)

    subtotal: float = Field(default=0, sa_type=money_column())
    discount: float = Field(default=0, sa_type=money_column())
    tax: float = Field(default=0, sa_type=money_column())
    total: float = Field(default=0, sa_type=money_column())
    paid_amount: float = Field(default=0, sa_type=money_column())
    change_amount: float = Field(default=0, sa_type=money_column())

    payment_method: PaymentMethod = Field(
        default=PaymentMethod.CASH,
        sa_type=enum_column(PaymentMethod, "payment_method"),
    )
    payment_status: PaymentStatus = Field(
        default=PaymentStatus.PENDING,
        sa_type=enum_column(PaymentStatus, "payment_status"),
    )
    status: SaleStatus = Field(
        default=SaleStatus.DRAFT,
        sa_type=enum_column(SaleStatus, "sale_status"),
        index=True,
    )
    notes: str | None = Field(default=None, nullable=True)

    completed_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True), nullable=True)
    cancelled_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_sale_tenant_code"),
    )


class SaleItem(BaseModel, table=True):
    __tablename__ = "sale_item"

    sale_id: int = Field(foreign_key="sale.id", index=True)
    product_id: int = Field(foreign_key="product.id", index=True)
    quantity: int
    unit_price: float = Field(sa_type=money_column())
    discount: float = Field(default=0, sa_type=money_column())
    total: float = Field(sa_type=money_column())


class SalePayment(BaseModel, table=True):
    __tablename__ = "sale_payment"

    sale_id: int = Field(foreign_key="sale.id", index=True)
    method: PaymentMethod = Field(sa_type=enum_column(PaymentMethod, "sale_payment_method"))
    amount: float = Field(sa_type=money_column())
    installments: int = Field(default=1)
