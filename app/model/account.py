from __future__ import annotations

import enum
from datetime import datetime

import sqlalchemy as sa
from sqlalchemy import UniqueConstraint
from sqlmodel import Field

from app.model.base import BaseModel, enum_column


class AccountStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"


class Account(BaseModel, table=True):
    """Modelo Account - contas do sistema (tabela account no banco)."""

    __tablename__ = "account"

    email: str = Field(index=True)
    name: str
    password_hash: str
    phone: str | None = Field(default=None, nullable=True)
    avatar: str | None = Field(default=None, nullable=True)
    status: AccountStatus = Field(
        default=AccountStatus.ACTIVE,
        sa_type=enum_column(AccountStatus, "account_status"),
    )

    refresh_token: str | None = Field(default=None, nullable=True)
    reset_code: str | None = Field(default=None, nullable=True)
    reset_code_expires_at: datetime | None = Field(
        default=None, sa_type=sa.DateTime(timezone=True), nullable=True
    )
    last_login_at: datetime | None = Field(
        default=None, sa_type=sa.DateTime(timezone=True), nullable=True
    )

    # Email globalmente único (um Account pode participar de múltiplos tenants via Membership)
    __table_args__ = (
        UniqueConstraint("email", name="uq_account_email"),
    )
