from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy import UniqueConstraint
from sqlmodel import Field

from app.model.base import BaseModel, enum_column, money_column
from app.model.customer import CustomerType


class Supplier(BaseModel, table=True):
    __tablename__ = "supplier"

    tenant_id: int = Field(foreign_key="tenant.id", index=True)
    type: CustomerType = Field(
        default=CustomerType.PJ,
        sa_type=enum_column(CustomerType, "supplier_type"),
    )
    name: str = Field(index=True)
    trade_name: str | None = Field(default=None, nullable=True)
    cpf_cnpj: str | None = Field(default=None, nullable=True, index=True)
    ie: str | None = Field(default=None, nullable=True)
    im: str | None = Field(default=None, nullable=True)

    email: str | None = Field(default=None, nullable=True)
    phone: str | None = Field(default=None, nullable=True)
    whatsapp: str | None = Field(default=None, nullable=True)
    website: str | None = Field(default=None, nullable=True)
    contact_person: str | None = Field(default=None, nullable=True)

    address: str | None = Field(default=None, nullable=True)
    number: str | None = Field(default=None, nullable=True)
    complement: str | None = Field(default=None, nullable=True)
    neighborhood: str | None = Field(default=None, nullable=True)
    city: str | None = Field(default=None, nullable=True)
    state: str | None = Field(default=None, nullable=True)
    zip_code: str | None = Field(default=None, nullable=True)
    country: str = Field(default="Brasil")

    # Condições comerciais
    payment_terms: str | None = Field(default=None, nullable=True)
    lead_time: int | None = Field(default=None, nullable=True)
    min_order_value: float | None = Field(default=None, sa_type=money_column(), nullable=True)
    rating: int | None = Field(default=None, nullable=True)

    notes: str | None = Field(default=None, nullable=True)
    tags: list[str] | None = Field(default=None, sa_type=sa.JSON)
    bank_info: dict | None = Field(default=None, sa_type=sa.JSON)

    is_active: bool = Field(default=True, index=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "cpf_cnpj", name="uq_supplier_tenant_cpf_cnpj"),
    )
