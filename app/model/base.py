from datetime import datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlmodel import SQLModel, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def enum_column(enum_cls: type, name: str) -> sa.Enum:
    # Persistir enums pelos *values*, pois o banco usa strings.
    return sa.Enum(
        enum_cls,
        name=name,
        native_enum=False,
        values_callable=lambda e: [m.value for m in e],
    )


def money_column() -> sa.Numeric:
    return sa.Numeric(12, 2, asdecimal=False)


class BaseModel(SQLModel):
    """Modelo base com campos comuns a todas as tabelas."""

    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_type=sa.DateTime(timezone=True),
        nullable=False,
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_type=sa.DateTime(timezone=True),
        nullable=False,
    )
