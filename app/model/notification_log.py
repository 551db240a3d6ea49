from __future__ import annotations

import enum
from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from app.model.base import BaseModel, enum_column


class NotificationType(str, enum.Enum):
    EMAIL = "EMAIL"
    WHATSAPP = "WHATSAPP"
    SMS = "SMS"
    PUSH = "PUSH"


class NotificationStatus(str, enum.Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"
    DELIVERED = "DELIVERED"
    READ = "READ"


class NotificationLog(BaseModel, table=True):
    __tablename__ = "notification_log"

    tenant_id: int = Field(foreign_key="tenant.id", index=True)
    customer_id: int | None = Field(default=None, foreign_key="customer.id", nullable=True, index=True)

    type: NotificationType = Field(sa_type=enum_column(NotificationType, "notification_type"), index=True)
    status: NotificationStatus = Field(
        default=NotificationStatus.PENDING,
        sa_type=enum_column(NotificationStatus, "notification_status"),
        index=True,
    )
    recipient: str
    subject: str | None = Field(default=None, nullable=True)
    content: str
    error_msg: str | None = Field(default=None, nullable=True)
    sent_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True), nullable=True)

    # ex.: {"invoice_id": 1} / {"sale_id": 2}
    extra: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
