from __future__ import annotations

import enum
from datetime import date, datetime

import sqlalchemy as sa
from sqlalchemy import UniqueConstraint
from sqlmodel import Field

from app.model.base import BaseModel, enum_column, money_column


class CustomerType(str, enum.Enum):
    PF = "PF"
    PJ = "PJ"


class Gender(str, enum.Enum):
    M = "M"
    F = "F"
    O = "O"  # noqa: E741


class Customer(BaseModel, table=True):
    __tablename__ = "customer"

    tenant_id: int = Field(foreign_key="tenant.id", index=True)
    type: CustomerType = Field(
        default=CustomerType.PF,
        sa_type=enum_column(CustomerType, "customer_type"),
    )
    name: str = Field(index=True)
    cpf_cnpj: str | None = Field(default=None, nullable=True, index=True)
    email: str | None = Field(default=None, nullable=True)
    phone: str | None = Field(default=None, nullable=True)
    whatsapp: str | None = Field(default=None, nullable=True)
    birth_date: date | None = Field(default=None, nullable=True)
    gender: Gender | None = Field(
        default=None,
        sa_type=enum_column(Gender, "customer_gender"),
        nullable=True,
    )

    address: str | None = Field(default=None, nullable=True)
    number: str | None = Field(default=None, nullable=True)
    complement: str | None = Field(default=None, nullable=True)
    neighborhood: str | None = Field(default=None, nullable=True)
    city: str | None = Field(default=None, nullable=True)
    state: str | None = Field(default=None, nullable=True)
    zip_code: str | None = Field(default=None, nullable=True)

    notes: str | None = Field(default=None, nullable=True)
    tags: list[str] | None = Field(default=None, sa_type=sa.JSON)

    # Agregados mantidos pelas vendas
    points: int = Field(default=0)
    total_spent: float = Field(default=0, sa_type=money_column())
    last_purchase: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True), nullable=True)

    is_active: bool = Field(default=True, index=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "cpf_cnpj", name="uq_customer_tenant_cpf_cnpj"),
    )
