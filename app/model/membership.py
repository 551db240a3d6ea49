from __future__ import annotations

import enum

from sqlalchemy import UniqueConstraint
from sqlmodel import Field

from app.model.base import BaseModel, enum_column


class MembershipRole(str, enum.Enum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    SELLER = "SELLER"
    VIEWER = "VIEWER"


class MembershipStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"


class Membership(BaseModel, table=True):
    """
    Vínculo Account ↔ Tenant.

    Observações:
      - `role` e `status` vivem no Membership (não no Account).
      - Um Account pode ter múltiplos memberships (um por tenant).
    """

    __tablename__ = "membership"

    tenant_id: int = Field(foreign_key="tenant.id", index=True)
    account_id: int = Field(foreign_key="account.id", index=True)

    role: MembershipRole = Field(
        default=MembershipRole.SELLER,
        sa_type=enum_column(MembershipRole, "membership_role"),
        index=True,
    )
    status: MembershipStatus = Field(
        default=MembershipStatus.ACTIVE,
        sa_type=enum_column(MembershipStatus, "membership_status"),
        index=True,
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "account_id", name="uq_membership_tenant_account"),
    )
