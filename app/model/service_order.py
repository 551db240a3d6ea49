from __future__ import annotations

import enum
from datetime import datetime

import sqlalchemy as sa
from sqlalchemy import UniqueConstraint
from sqlmodel import Field

from app.model.base import BaseModel, enum_column, money_column


class ServiceOrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    WAITING_PARTS = "WAITING_PARTS"
    COMPLETED = "COMPLETED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class Priority(str, enum.Enum):
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"


class ServiceOrder(BaseModel, table=True):
    __tablename__ = "service_order"

    tenant_id: int = Field(foreign_key="tenant.id", index=True)
    code: str = Field(index=True)
    customer_id: int = Field(foreign_key="customer.id", index=True)
    account_id: int | None = Field(default=None, foreign_key="account.id", nullable=True)

    title: str
    description: str | None = Field(default=None, nullable=True)

    # Equipamento
    device_type: str | None = Field(default=None, nullable=True)
    device_brand: str | None = Field(default=None, nullable=True)
    device_model: str | None = Field(default=None, nullable=True)
    device_serial: str | None = Field(default=None, nullable=True)
    device_condition: str | None = Field(default=None, nullable=True)
    reported_issue: str | None = Field(default=None, nullable=True)
    diagnosis: str | None = Field(default=None, nullable=True)
    solution: str | None = Field(default=None, nullable=True)

    priority: Priority = Field(
        default=Priority.NORMAL,
        sa_type=enum_column(Priority, "service_order_priority"),
    )
    status: ServiceOrderStatus = Field(
        default=ServiceOrderStatus.PENDING,
        sa_type=enum_column(ServiceOrderStatus, "service_order_status"),
        index=True,
    )

    labor_cost: float = Field(default=0, sa_type=money_column())
    parts_cost: float = Field(default=0, sa_type=money_column())
    discount: float = Field(default=0, sa_type=money_column())
    total: float = Field(default=0, sa_type=money_column())
    warranty_days: int = Field(default=90)

    estimated_date: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True), nullable=True)
    completed_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True), nullable=True)
    delivered_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True), nullable=True)
    notes: str | None = Field(default=None, nullable=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_service_order_tenant_code"),
    )


class ServiceOrderItem(BaseModel, table=True):
    __tablename__ = "service_order_item"

    service_order_id: int = Field(foreign_key="service_order.id", index=True)
    product_id: int | None = Field(default=None, foreign_key="product.id", nullable=True)
    description: str
    quantity: int = Field(default=1)
    unit_price: float = Field(sa_type=money_column())
    total: float = Field(sa_type=money_column())
