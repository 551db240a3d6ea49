from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel as PydanticBaseModel, field_validator
from sqlalchemy import func, or_
from sqlmodel import Session, select

from app.auth.dependencies import require_role
from app.db.session import get_session
from app.lib.pagination import paginate, total_pages
from app.lib.text import ensure_utc, local_day_start_utc, local_today, round_money
from app.model.base import utc_now
from app.model.membership import Membership
from app.model.sale import PaymentMethod
from app.model.tenant import Tenant
from app.model.transaction import Transaction, TransactionStatus, TransactionType
from app.model.transaction_category import TransactionCategory

router = APIRouter(prefix="/financial", tags=["Financial"])

MONTH_LABELS = ("Jan", "Fev", "Mar", "Abr", "Mai", "Jun", "Jul", "Ago", "Set", "Out", "Nov", "Dez")

UNCATEGORIZED_NAME = "Sem categoria"
UNCATEGORIZED_COLOR = "#64748b"


class TransactionCreate(PydanticBaseModel):
    type: TransactionType
    description: str
    amount: float
    due_date: datetime
    paid_date: datetime | None = None
    status: TransactionStatus = TransactionStatus.PENDING
    payment_method: PaymentMethod | None = None
    category_id: int | None = None
    reference: str | None = None
    notes: str | None = None

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Descrição é obrigatório")
        return v.strip()

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Valor deve ser maior que zero")
        return v


class TransactionUpdate(PydanticBaseModel):
    type: TransactionType | None = None
    description: str | None = None
    amount: float | None = None
    due_date: datetime | None = None
    paid_date: datetime | None = None
    payment_method: PaymentMethod | None = None
    category_id: int | None = None
    reference: str | None = None
    notes: str | None = None

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str | None) -> str | None:
        if v is None:
            return v
        if not v.strip():
            raise ValueError("Descrição é obrigatório")
        return v.strip()

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            raise ValueError("Valor deve ser maior que zero")
        return v


class TransactionConfirm(PydanticBaseModel):
    paid_date: datetime | None = None
    payment_method: PaymentMethod | None = None


class TransactionResponse(PydanticBaseModel):
    id: int
    tenant_id: int
    type: TransactionType
    description: str
    amount: float
    due_date: datetime
    paid_date: datetime | None
    status: TransactionStatus
    payment_method: PaymentMethod | None
    sale_id: int | None
    service_order_id: int | None
    category_id: int | None
    reference: str | None
    notes: str | None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TransactionListResponse(PydanticBaseModel):
    items: list[TransactionResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class BalanceResponse(PydanticBaseModel):
    income: float
    expense: float
    balance: float
    pending_income: float
    pending_expense: float


class CashFlowMonth(PydanticBaseModel):
    month: str
    label: str
    income: float
    expense: float
    balance: float


class CategoryCreate(PydanticBaseModel):
    name: str
    type: TransactionType
    color: str | None = None
    icon: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Nome é obrigatório")
        return v.strip()


class CategoryUpdate(PydanticBaseModel):
    name: str | None = None
    type: TransactionType | None = None
    color: str | None = None
    icon: str | None = None
    is_active: bool | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        if v is None:
            return v
        if not v.strip():
            raise ValueError("Nome é obrigatório")
        return v.strip()


class CategoryResponse(PydanticBaseModel):
    id: int
    tenant_id: int | None
    name: str
    type: TransactionType
    color: str | None
    icon: str | None
    is_system: bool
    is_active: bool

    class Config:
        from_attributes = True


class PendingGroup(PydanticBaseModel):
    count: int
    total: float
    items: list[TransactionResponse]


class PendingResponse(PydanticBaseModel):
    overdue: PendingGroup
    due_today: PendingGroup
    upcoming: PendingGroup


class ExpenseByCategory(PydanticBaseModel):
    category_id: int | None
    category_name: str
    category_color: str
    total: float
    count: int


class AmountCount(PydanticBaseModel):
    total: float
    count: int


class MonthSummary(PydanticBaseModel):
    income: float
    expense: float
    balance: float
    income_growth: float
    expense_growth: float


class FinancialDashboard(PydanticBaseModel):
    current_month: MonthSummary
    pending: AmountCount
    receivable: AmountCount
    overdue: AmountCount
    expenses_by_category: list[ExpenseByCategory]


def _get_transaction(session: Session, transaction_id: int, tenant_id: int) -> Transaction:
    transaction = session.get(Transaction, transaction_id)
    if not transaction or transaction.tenant_id != tenant_id:
        raise HTTPException(status_code=404, detail="Transação não encontrada")
    return transaction


def _get_own_category(session: Session, category_id: int, tenant_id: int) -> TransactionCategory:
    """Categoria editável pela empresa; as do sistema são visíveis mas somente leitura."""
    category = session.get(TransactionCategory, category_id)
    if not category or (category.tenant_id is not None and category.tenant_id != tenant_id):
        raise HTTPException(status_code=404, detail="Categoria não encontrada")
    return category


def _check_category(session: Session, category_id: int | None, tenant_id: int) -> None:
    if category_id is None:
        return
    category = session.get(TransactionCategory, category_id)
    visible = category is not None and (
        category.tenant_id == tenant_id or (category.tenant_id is None and category.is_system)
    )
    if not visible:
        raise HTTPException(status_code=404, detail="Categoria não encontrada")


def _tenant_tz(session: Session, tenant_id: int) -> ZoneInfo:
    return ZoneInfo(session.get(Tenant, tenant_id).timezone)


def _aggregate(session: Session, tenant_id: int, *conditions) -> AmountCount:
    total, count = session.exec(
        select(func.coalesce(func.sum(Transaction.amount), 0), func.count(Transaction.id)).where(
            Transaction.tenant_id == tenant_id, *conditions
        )
    ).one()
    return AmountCount(total=round_money(total), count=count)


def _growth(current: float, previous: float) -> float:
    if previous <= 0:
        return 0.0
    return round_money((current - previous) / previous * 100)


def _sum(session: Session, tenant_id: int, type: TransactionType, status: TransactionStatus, *extra) -> float:
    total = session.exec(
        select(func.coalesce(func.sum(Transaction.amount), 0)).where(
            Transaction.tenant_id == tenant_id,
            Transaction.type == type,
            Transaction.status == status,
            *extra,
        )
    ).one()
    return round_money(total)


@router.get("/transactions", response_model=TransactionListResponse)
def list_transactions(
    type: TransactionType | None = Query(None),
    status: TransactionStatus | None = Query(None),
    category_id: int | None = Query(None),
    search: str | None = Query(None),
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    session: Session = Depends(get_session),
):
    query = select(Transaction).where(Transaction.tenant_id == membership.tenant_id)
    if type is not None:
        query = query.where(Transaction.type == type)
    if status is not None:
        query = query.where(Transaction.status == status)
    if category_id is not None:
        query = query.where(Transaction.category_id == category_id)
    if search:
        term = f"%{search.strip()}%"
        query = query.where(
            or_(Transaction.description.ilike(term), Transaction.reference.ilike(term))  # type: ignore[attr-defined]
        )
    if start_date is not None:
        query = query.where(Transaction.due_date >= ensure_utc(start_date))
    if end_date is not None:
        query = query.where(Transaction.due_date <= ensure_utc(end_date))
    query = query.order_by(Transaction.due_date.desc(), Transaction.id.desc())  # type: ignore[attr-defined]

    items, total = paginate(session, query, page=page, limit=limit)
    return TransactionListResponse(
        items=[TransactionResponse.model_validate(t) for t in items],
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages(total, limit),
    )


@router.get("/balance", response_model=BalanceResponse)
def get_balance(
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    session: Session = Depends(get_session),
):
    """Saldo dos lançamentos CONFIRMED (e totais pendentes a receber/pagar)."""
    tenant_id = membership.tenant_id
    income = _sum(session, tenant_id, TransactionType.INCOME, TransactionStatus.CONFIRMED)
    expense = _sum(session, tenant_id, TransactionType.EXPENSE, TransactionStatus.CONFIRMED)
    return BalanceResponse(
        income=income,
        expense=expense,
        balance=round_money(income - expense),
        pending_income=_sum(session, tenant_id, TransactionType.INCOME, TransactionStatus.PENDING),
        pending_expense=_sum(session, tenant_id, TransactionType.EXPENSE, TransactionStatus.PENDING),
    )


@router.get("/cash-flow", response_model=list[CashFlowMonth])
def get_cash_flow(
    months: int = Query(6, ge=1, le=24),
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    session: Session = Depends(get_session),
):
    """Fluxo de caixa mensal (lançamentos CONFIRMED pela data de pagamento)."""
    now = utc_now()
    keys: list[tuple[int, int]] = []
    year, month = now.year, now.month
    for _ in range(months):
        keys.append((year, month))
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    keys.reverse()

    first_year, first_month = keys[0]
    since = now.replace(year=first_year, month=first_month, day=1, hour=0, minute=0, second=0, microsecond=0)
    rows = session.exec(
        select(Transaction.type, Transaction.amount, Transaction.paid_date, Transaction.due_date).where(
            Transaction.tenant_id == membership.tenant_id,
            Transaction.status == TransactionStatus.CONFIRMED,
            or_(Transaction.paid_date >= since, Transaction.due_date >= since),  # type: ignore[operator]
        )
    ).all()

    buckets = {key: {"income": 0.0, "expense": 0.0} for key in keys}
    for type_, amount, paid_date, due_date in rows:
        when = ensure_utc(paid_date or due_date)
        key = (when.year, when.month)
        if key not in buckets:
            continue
        bucket = buckets[key]
        if type_ == TransactionType.INCOME:
            bucket["income"] += amount
        else:
            bucket["expense"] += amount

    result = []
    for (y, m), bucket in buckets.items():
        result.append(
            CashFlowMonth(
                month=f"{y:04d}-{m:02d}",
                label=f"{MONTH_LABELS[m - 1]}/{str(y)[-2:]}",
                income=round_money(bucket["income"]),
                expense=round_money(bucket["expense"]),
                balance=round_money(bucket["income"] - bucket["expense"]),
            )
        )
    return result


@router.get("/transactions/{transaction_id}", response_model=TransactionResponse)
def get_transaction(
    transaction_id: int,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    session: Session = Depends(get_session),
):
    return _get_transaction(session, transaction_id, membership.tenant_id)


@router.post("/transactions", response_model=TransactionResponse, status_code=201)
def create_transaction(
    body: TransactionCreate,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    session: Session = Depends(get_session),
):
    data = body.model_dump()
    _check_category(session, data["category_id"], membership.tenant_id)
    if data["status"] == TransactionStatus.CONFIRMED and not data["paid_date"]:
        data["paid_date"] = utc_now()
    transaction = Transaction(tenant_id=membership.tenant_id, **data)
    transaction.amount = round_money(transaction.amount)
    session.add(transaction)
    session.commit()
    session.refresh(transaction)
    return transaction


@router.put("/transactions/{transaction_id}", response_model=TransactionResponse)
def update_transaction(
    transaction_id: int,
    body: TransactionUpdate,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    session: Session = Depends(get_session),
):
    transaction = _get_transaction(session, transaction_id, membership.tenant_id)
    if transaction.status == TransactionStatus.CANCELLED:
        raise HTTPException(status_code=400, detail="Não é possível alterar transação cancelada")
    data = body.model_dump(exclude_unset=True)
    if "category_id" in data:
        _check_category(session, data["category_id"], membership.tenant_id)
    for key, value in data.items():
        if value is None and key in ("type", "description", "amount", "due_date"):
            continue
        setattr(transaction, key, value)
    transaction.amount = round_money(transaction.amount)
    transaction.updated_at = utc_now()
    session.add(transaction)
    session.commit()
    session.refresh(transaction)
    return transaction


@router.post("/transactions/{transaction_id}/confirm", response_model=TransactionResponse)
def confirm_transaction(
    transaction_id: int,
    body: TransactionConfirm,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    session: Session = Depends(get_session),
):
    transaction = _get_transaction(session, transaction_id, membership.tenant_id)
    if transaction.status == TransactionStatus.CANCELLED:
        raise HTTPException(status_code=400, detail="Não é possível confirmar transação cancelada")
    if transaction.status == TransactionStatus.CONFIRMED:
        raise HTTPException(status_code=400, detail="Transação já está confirmada")
    transaction.status = TransactionStatus.CONFIRMED
    transaction.paid_date = body.paid_date or utc_now()
    if body.payment_method is not None:
        transaction.payment_method = body.payment_method
    transaction.updated_at = utc_now()
    session.add(transaction)
    session.commit()
    session.refresh(transaction)
    return transaction


@router.post("/transactions/{transaction_id}/cancel", response_model=TransactionResponse)
def cancel_transaction(
    transaction_id: int,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    session: Session = Depends(get_session),
):
    transaction = _get_transaction(session, transaction_id, membership.tenant_id)
    if transaction.status == TransactionStatus.CANCELLED:
        raise HTTPException(status_code=400, detail="Transação já está cancelada")
    if transaction.sale_id is not None:
        raise HTTPException(status_code=400, detail="Cancele a venda para cancelar esta transação")
    transaction.status = TransactionStatus.CANCELLED
    transaction.updated_at = utc_now()
    session.add(transaction)
    session.commit()
    session.refresh(transaction)
    return transaction


@router.delete("/transactions/{transaction_id}")
def delete_transaction(
    transaction_id: int,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    session: Session = Depends(get_session),
):
    transaction = _get_transaction(session, transaction_id, membership.tenant_id)
    if transaction.sale_id is not None:
        raise HTTPException(status_code=400, detail="Não é possível remover transação vinculada a uma venda")
    session.delete(transaction)
    session.commit()
    return {"message": "Transação removida com sucesso"}


def _expenses_by_category(
    session: Session, tenant_id: int, start: datetime | None = None, end: datetime | None = None
) -> list[ExpenseByCategory]:
    query = (
        select(
            Transaction.category_id,
            TransactionCategory.name,
            TransactionCategory.color,
            func.coalesce(func.sum(Transaction.amount), 0),
            func.count(Transaction.id),
        )
        .join(TransactionCategory, Transaction.category_id == TransactionCategory.id, isouter=True)
        .where(
            Transaction.tenant_id == tenant_id,
            Transaction.type == TransactionType.EXPENSE,
            Transaction.status == TransactionStatus.CONFIRMED,
        )
        .group_by(Transaction.category_id, TransactionCategory.name, TransactionCategory.color)
    )
    if start is not None:
        query = query.where(Transaction.paid_date >= ensure_utc(start))
    if end is not None:
        query = query.where(Transaction.paid_date <= ensure_utc(end))

    result = [
        ExpenseByCategory(
            category_id=category_id,
            category_name=name or UNCATEGORIZED_NAME,
            category_color=color or UNCATEGORIZED_COLOR,
            total=round_money(total),
            count=count,
        )
        for category_id, name, color, total, count in session.exec(query).all()
    ]
    result.sort(key=lambda item: item.total, reverse=True)
    return result


def _month_summary(session: Session, tenant_id: int, start: datetime, end: datetime) -> tuple[float, float]:
    paid_in_range = (
        Transaction.status == TransactionStatus.CONFIRMED,
        Transaction.paid_date >= start,
        Transaction.paid_date < end,
    )
    income = _aggregate(session, tenant_id, Transaction.type == TransactionType.INCOME, *paid_in_range).total
    expense = _aggregate(session, tenant_id, Transaction.type == TransactionType.EXPENSE, *paid_in_range).total
    return income, expense


@router.get("/categories", response_model=list[CategoryResponse])
def list_categories(
    type: TransactionType | None = Query(None),
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    session: Session = Depends(get_session),
):
    """Categorias da empresa mais as categorias padrão do sistema."""
    query = select(TransactionCategory).where(
        or_(
            TransactionCategory.tenant_id == membership.tenant_id,
            (TransactionCategory.tenant_id == None) & (TransactionCategory.is_system == True),  # noqa: E711,E712
        )
    )
    if type is not None:
        query = query.where(TransactionCategory.type == type)
    query = query.order_by(TransactionCategory.type, TransactionCategory.name)
    return session.exec(query).all()


@router.post("/categories", response_model=CategoryResponse, status_code=201)
def create_category(
    body: CategoryCreate,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    session: Session = Depends(get_session),
):
    category = TransactionCategory(tenant_id=membership.tenant_id, **body.model_dump())
    session.add(category)
    session.commit()
    session.refresh(category)
    return category


@router.put("/categories/{category_id}", response_model=CategoryResponse)
def update_category(
    category_id: int,
    body: CategoryUpdate,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    session: Session = Depends(get_session),
):
    category = _get_own_category(session, category_id, membership.tenant_id)
    if category.is_system:
        raise HTTPException(status_code=400, detail="Não é possível editar categoria do sistema")
    for key, value in body.model_dump(exclude_unset=True).items():
        if value is None and key in ("name", "type", "is_active"):
            continue
        setattr(category, key, value)
    category.updated_at = utc_now()
    session.add(category)
    session.commit()
    session.refresh(category)
    return category


@router.delete("/categories/{category_id}")
def delete_category(
    category_id: int,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    session: Session = Depends(get_session),
):
    category = _get_own_category(session, category_id, membership.tenant_id)
    if category.is_system:
        raise HTTPException(status_code=400, detail="Não é possível remover categoria do sistema")
    linked = session.exec(select(func.count(Transaction.id)).where(Transaction.category_id == category.id)).one()
    if linked:
        raise HTTPException(status_code=400, detail="Categoria possui transações vinculadas")
    session.delete(category)
    session.commit()
    return {"message": "Categoria removida com sucesso"}


@router.get("/pending", response_model=PendingResponse)
def get_pending(
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    session: Session = Depends(get_session),
):
    """
    Lançamentos PENDING agrupados por vencimento: atrasados, vencendo hoje
    e nos próximos 7 dias. Os dias seguem o fuso da empresa.
    """
    tenant_id = membership.tenant_id
    tenant_tz = _tenant_tz(session, tenant_id)
    today = local_today(tenant_tz, utc_now())
    start_of_today = local_day_start_utc(today, tenant_tz)
    start_of_tomorrow = local_day_start_utc(today + timedelta(days=1), tenant_tz)
    end_of_week = local_day_start_utc(today + timedelta(days=8), tenant_tz)

    def group(*conditions) -> PendingGroup:
        items = session.exec(
            select(Transaction)
            .where(Transaction.tenant_id == tenant_id, Transaction.status == TransactionStatus.PENDING, *conditions)
            .order_by(Transaction.due_date, Transaction.id)
        ).all()
        return PendingGroup(
            count=len(items),
            total=round_money(sum(t.amount for t in items)),
            items=[TransactionResponse.model_validate(t) for t in items],
        )

    return PendingResponse(
        overdue=group(Transaction.due_date < start_of_today),
        due_today=group(Transaction.due_date >= start_of_today, Transaction.due_date < start_of_tomorrow),
        upcoming=group(Transaction.due_date >= start_of_tomorrow, Transaction.due_date < end_of_week),
    )


@router.get("/expenses-by-category", response_model=list[ExpenseByCategory])
def get_expenses_by_category(
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None),
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    session: Session = Depends(get_session),
):
    """Despesas CONFIRMED por categoria (período pela data de pagamento), da maior para a menor."""
    return _expenses_by_category(session, membership.tenant_id, start_date, end_date)


@router.get("/dashboard", response_model=FinancialDashboard)
def get_financial_dashboard(
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    session: Session = Depends(get_session),
):
    tenant_id = membership.tenant_id
    tenant_tz = _tenant_tz(session, tenant_id)
    now = utc_now()
    today = local_today(tenant_tz, now)
    start_of_month = local_day_start_utc(today.replace(day=1), tenant_tz)
    last_month_day = today.replace(day=1) - timedelta(days=1)
    start_of_last_month = local_day_start_utc(last_month_day.replace(day=1), tenant_tz)

    income, expense = _month_summary(session, tenant_id, start_of_month, now + timedelta(seconds=1))
    last_income, last_expense = _month_summary(session, tenant_id, start_of_last_month, start_of_month)
    pending_expense = (Transaction.status == TransactionStatus.PENDING, Transaction.type == TransactionType.EXPENSE)

    return FinancialDashboard(
        current_month=MonthSummary(
            income=income,
            expense=expense,
            balance=round_money(income - expense),
            income_growth=_growth(income, last_income),
            expense_growth=_growth(expense, last_expense),
        ),
        pending=_aggregate(session, tenant_id, *pending_expense),
        receivable=_aggregate(
            session,
            tenant_id,
            Transaction.status == TransactionStatus.PENDING,
            Transaction.type == TransactionType.INCOME,
        ),
        overdue=_aggregate(session, tenant_id, *pending_expense, Transaction.due_date < now),
        expenses_by_category=_expenses_by_category(session, tenant_id, start_of_month, now),
    )
