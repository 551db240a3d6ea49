from sqlmodel import Field

from app.model.base import BaseModel, enum_column
from app.model.transaction import TransactionType


class TransactionCategory(BaseModel, table=True):
    """Categoria de receita/despesa. Sem tenant_id e com is_system são as categorias padrão."""

    __tablename__ = "transaction_category"

    tenant_id: int | None = Field(default=None, foreign_key="tenant.id", nullable=True, index=True)
    name: str
    type: TransactionType = Field(sa_type=enum_column(TransactionType, "transaction_category_type"))
    color: str | None = Field(default=None, nullable=True)
    icon: str | None = Field(default=None, nullable=True)
    is_system: bool = Field(default=False)
    is_active: bool = Field(default=True)
