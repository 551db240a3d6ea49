from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from app.model.base import BaseModel


class Tenant(BaseModel, table=True):
    """Modelo Tenant - raiz do multi-tenant (não tem tenant_id)."""

    __tablename__ = "tenant"

    name: str = Field(index=True)
    slug: str = Field(index=True, unique=True)
    document: str | None = Field(default=None, nullable=True)
    email: str | None = Field(default=None, nullable=True)
    phone: str | None = Field(default=None, nullable=True)
    address: str | None = Field(default=None, nullable=True)
    city: str | None = Field(default=None, nullable=True)
    state: str | None = Field(default=None, nullable=True)
    zip_code: str | None = Field(default=None, nullable=True)
    logo: str | None = Field(default=None, nullable=True)
    is_active: bool = Field(default=True)
    timezone: str = Field(default="America/Sao_Paulo")
    locale: str = Field(default="pt-BR")
    currency: str = Field(default="BRL")

    # Configurações do tenant (company, notifications, permissions, view, general)
    settings: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
