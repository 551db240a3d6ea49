from __future__ import annotations

import enum
from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy import UniqueConstraint
from sqlmodel import Field

from app.model.base import BaseModel, enum_column, money_column


class InvoiceType(str, enum.Enum):
    SALE = "SALE"
    SERVICE = "SERVICE"
    WARRANTY = "WARRANTY"


class InvoiceStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    ISSUED = "ISSUED"
    SENT = "SENT"
    CANCELLED = "CANCELLED"


class Invoice(BaseModel, table=True):
    """
    Nota fiscal simplificada (não é NF-e).

    Os dados do emitente e do destinatário são copiados no momento da emissão,
    para que alterações posteriores no tenant/cliente não mudem a nota.
    """

    __tablename__ = "invoice"

    tenant_id: int = Field(foreign_key="tenant.id", index=True)
    number: str = Field(index=True)
    series: str = Field(default="1")
    access_key: str = Field(index=True, unique=True)
    type: InvoiceType = Field(
        default=InvoiceType.SALE,
        sa_type=enum_column(InvoiceType, "invoice_type"),
    )
    status: InvoiceStatus = Field(
        default=InvoiceStatus.DRAFT,
        sa_type=enum_column(InvoiceStatus, "invoice_status"),
        index=True,
    )

    sale_id: int | None = Field(default=None, foreign_key="sale.id", nullable=True, index=True)
    service_order_id: int | None = Field(default=None, foreign_key="service_order.id", nullable=True, index=True)
    customer_id: int | None = Field(default=None, foreign_key="customer.id", nullable=True, index=True)

    issuer_name: str
    issuer_document: str | None = Field(default=None, nullable=True)
    issuer_address: str | None = Field(default=None, nullable=True)
    issuer_phone: str | None = Field(default=None, nullable=True)
    issuer_email: str | None = Field(default=None, nullable=True)

    recipient_name: str | None = Field(default=None, nullable=True)
    recipient_document: str | None = Field(default=None, nullable=True)
    recipient_address: str | None = Field(default=None, nullable=True)
    recipient_phone: str | None = Field(default=None, nullable=True)
    recipient_email: str | None = Field(default=None, nullable=True)

    items: list[dict[str, Any]] = Field(default_factory=list, sa_type=sa.JSON)
    subtotal: float = Field(default=0, sa_type=money_column())
    discount: float = Field(default=0, sa_type=money_column())
    tax: float = Field(default=0, sa_type=money_column())
    total: float = Field(default=0, sa_type=money_column())

    warranty_days: int | None = Field(default=None, nullable=True)
    warranty_expires: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True), nullable=True)
    qr_code_data: str | None = Field(default=None, nullable=True)
    description: str | None = Field(default=None, nullable=True)
    notes: str | None = Field(default=None, nullable=True)

    sent_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True), nullable=True)
    sent_to: str | None = Field(default=None, nullable=True)
    sent_method: str | None = Field(default=None, nullable=True)
    cancelled_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True), nullable=True)
    cancel_reason: str | None = Field(default=None, nullable=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "series", "number", name="uq_invoice_tenant_series_number"),
    )
