from sqlalchemy import UniqueConstraint
from sqlmodel import Field

from app.model.base import BaseModel


class Category(BaseModel, table=True):
    __tablename__ = "category"

    tenant_id: int = Field(foreign_key="tenant.id", index=True)
    name: str
    description: str | None = Field(default=None, nullable=True)
    color: str | None = Field(default=None, nullable=True)
    icon: str | None = Field(default=None, nullable=True)
    parent_id: int | None = Field(default=None, foreign_key="category.id", nullable=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_category_tenant_name"),
    )
