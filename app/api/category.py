from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel as PydanticBaseModel, field_validator
from sqlalchemy import func
from sqlmodel import Session, select

from app.auth.dependencies import get_current_membership, require_role
from app.db.session import get_session
from app.lib.pagination import paginate, total_pages
from app.model.base import utc_now
from app.model.category import Category
from app.model.membership import Membership
from app.model.product import Product

router = APIRouter(prefix="/categories", tags=["Category"])


class CategoryCreate(PydanticBaseModel):
    name: str
    description: str | None = None
    color: str | None = None
    icon: str | None = None
    parent_id: int | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Nome é obrigatório")
        return v.strip()


class CategoryUpdate(PydanticBaseModel):
    name: str | None = None
    description: str | None = None
    color: str | None = None
    icon: str | None = None
    parent_id: int | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        if v is None:
            return None
        if not v.strip():
            raise ValueError("Nome é obrigatório")
        return v.strip()


class CategoryResponse(PydanticBaseModel):
    id: int
    tenant_id: int
    name: str
    description: str | None
    color: str | None
    icon: str | None
    parent_id: int | None
    product_count: int = 0
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CategoryListResponse(PydanticBaseModel):
    items: list[CategoryResponse]
    total: int
    page: int
    limit: int
    total_pages: int


def _get_category(session: Session, category_id: int, tenant_id: int) -> Category:
    category = session.get(Category, category_id)
    if not category or category.tenant_id != tenant_id:
        raise HTTPException(status_code=404, detail="Categoria não encontrada")
    return category


def _product_count(session: Session, category_id: int) -> int:
    return session.exec(select(func.count(Product.id)).where(Product.category_id == category_id)).one()


def _to_response(session: Session, category: Category) -> CategoryResponse:
    response = CategoryResponse.model_validate(category)
    response.product_count = _product_count(session, category.id)
    return response


def _check_name(session: Session, tenant_id: int, name: str, exclude_id: int | None = None) -> None:
    query = select(Category.id).where(
        Category.tenant_id == tenant_id,
        func.lower(Category.name) == name.lower(),
    )
    if exclude_id is not None:
        query = query.where(Category.id != exclude_id)
    if session.exec(query).first() is not None:
        raise HTTPException(status_code=400, detail="Categoria com este nome já existe")


@router.get("", response_model=CategoryListResponse)
def list_categories(
    search: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    membership: Membership = Depends(get_current_membership),
    session: Session = Depends(get_session),
):
    query = select(Category).where(Category.tenant_id == membership.tenant_id)
    if search:
        query = query.where(Category.name.ilike(f"%{search.strip()}%"))  # type: ignore[attr-defined]
    query = query.order_by(Category.name.asc())  # type: ignore[attr-defined]
    items, total = paginate(session, query, page=page, limit=limit)
    return CategoryListResponse(
        items=[_to_response(session, c) for c in items],
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages(total, limit),
    )


@router.get("/{category_id}", response_model=CategoryResponse)
def get_category(
    category_id: int,
    membership: Membership = Depends(get_current_membership),
    session: Session = Depends(get_session),
):
    return _to_response(session, _get_category(session, category_id, membership.tenant_id))


@router.post("", response_model=CategoryResponse, status_code=201)
def create_category(
    body: CategoryCreate,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    session: Session = Depends(get_session),
):
    _check_name(session, membership.tenant_id, body.name)
    if body.parent_id is not None:
        _get_category(session, body.parent_id, membership.tenant_id)
    category = Category(tenant_id=membership.tenant_id, **body.model_dump())
    session.add(category)
    session.commit()
    session.refresh(category)
    return _to_response(session, category)


@router.put("/{category_id}", response_model=CategoryResponse)
def update_category(
    category_id: int,
    body: CategoryUpdate,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    session: Session = Depends(get_session),
):
    category = _get_category(session, category_id, membership.tenant_id)
    data = body.model_dump(exclude_unset=True)
    if data.get("name") and data["name"] != category.name:
        _check_name(session, membership.tenant_id, data["name"], exclude_id=category.id)
    if data.get("parent_id") is not None:
        if data["parent_id"] == category.id:
            raise HTTPException(status_code=400, detail="Uma categoria não pode ser pai de si mesma")
        _get_category(session, data["parent_id"], membership.tenant_id)
    for key, value in data.items():
        setattr(category, key, value)
    category.updated_at = utc_now()
    session.add(category)
    session.commit()
    session.refresh(category)
    return _to_response(session, category)


@router.delete("/{category_id}")
def delete_category(
    category_id: int,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    session: Session = Depends(get_session),
):
    category = _get_category(session, category_id, membership.tenant_id)
    if _product_count(session, category.id) > 0:
        raise HTTPException(status_code=400, detail="Não é possível remover categoria com produtos vinculados")
    for child in session.exec(select(Category).where(Category.parent_id == category.id)).all():
        child.parent_id = None
        session.add(child)
    session.delete(category)
    session.commit()
    return {"message": "Categoria removida com sucesso"}
