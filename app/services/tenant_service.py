from __future__ import annotations

from sqlmodel import Session, select

from app.lib.text import slugify
from app.model.tenant import Tenant


def get_tenant_by_id(session: Session, tenant_id: int) -> Tenant | None:
    return session.exec(select(Tenant).where(Tenant.id == int(tenant_id))).first()


def unique_slug(session: Session, name: str) -> str:
    """Slug a partir do nome; acrescenta -2, -3... se já existir."""
    base = slugify(name)
    slug = base
    suffix = 2
    while session.exec(select(Tenant.id).where(Tenant.slug == slug)).first() is not None:
        slug = f"{base}-{suffix}"
        suffix += 1
    return slug


def create_tenant(session: Session, *, name: str, email: str | None = None, commit: bool = True) -> Tenant:
    tenant = Tenant(name=name, slug=unique_slug(session, name), email=email)
    session.add(tenant)
    if commit:
        session.commit()
        session.refresh(tenant)
    else:
        session.flush()
    return tenant
