from __future__ import annotations

import enum
from datetime import datetime

import sqlalchemy as sa
from sqlmodel import Field

from app.model.base import BaseModel, enum_column
from app.model.membership import MembershipRole


class InvitationStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


class Invitation(BaseModel, table=True):
    __tablename__ = "invitation"

    tenant_id: int = Field(foreign_key="tenant.id", index=True)
    email: str = Field(index=True)
    role: MembershipRole = Field(
        default=MembershipRole.SELLER,
        sa_type=enum_column(MembershipRole, "invitation_role"),
    )
    token: str = Field(index=True, unique=True)
    status: InvitationStatus = Field(
        default=InvitationStatus.PENDING,
        sa_type=enum_column(InvitationStatus, "invitation_status"),
        index=True,
    )
    expires_at: datetime = Field(sa_type=sa.DateTime(timezone=True), nullable=False)
    invited_by: int | None = Field(default=None, foreign_key="account.id", nullable=True)
