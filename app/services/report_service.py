"""
Relatórios gerenciais por empresa: vendas, produtos, clientes, financeiro,
ordens de serviço e notas fiscais.

Cada gerador devolve `{"summary": {...}, "items": [...]}` com linhas planas
(já prontas para tabela), usadas tanto na resposta JSON quanto nas exportações
PDF (reportlab) e Excel (openpyxl).
"""

from __future__ import annotations

import io
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Callable
from zoneinfo import ZoneInfo

from fastapi import HTTPException
from sqlalchemy import func
from sqlmodel import Session, select

from app.lib.text import isoformat_utc, local_day_start_utc, round_money
from app.model.account import Account
from app.model.category import Category
from app.model.customer import Customer
from app.model.invoice import Invoice, InvoiceStatus, InvoiceType
from app.model.product import Product
from app.model.sale import PaymentMethod, Sale, SaleItem, SaleStatus
from app.model.service_order import Priority, ServiceOrder, ServiceOrderStatus
from app.model.tenant import Tenant
from app.model.transaction import Transaction, TransactionStatus, TransactionType
from app.model.transaction_category import TransactionCategory

DEFAULT_CUSTOMER_NAME = "Consumidor Final"

REPORT_TITLES = {
    "sales": "Relatório de Vendas",
    "products": "Relatório de Produtos",
    "customers": "Relatório de Clientes",
    "financial": "Relatório Financeiro",
    "service-orders": "Relatório de Ordens de Serviço",
    "invoices": "Relatório de Notas Fiscais",
}

# (chave do item, cabeçalho, largura da coluna no Excel)
REPORT_COLUMNS: dict[str, list[tuple[str, str, int]]] = {
    "sales": [
        ("code", "Código", 15),
        ("date", "Data", 15),
        ("customer", "Cliente", 30),
        ("payment_method", "Pagamento", 15),
        ("status", "Status", 15),
        ("total", "Total", 15),
    ],
    "products": [
        ("sku", "SKU", 15),
        ("name", "Produto", 40),
        ("category", "Categoria", 20),
        ("stock", "Estoque", 10),
        ("sold_quantity", "Vendidos", 10),
        ("sale_price", "Preço", 15),
        ("revenue", "Faturamento", 15),
    ],
    "customers": [
        ("name", "Nome", 30),
        ("email", "Email", 30),
        ("phone", "Telefone", 20),
        ("order_count", "Pedidos", 10),
        ("total_spent", "Total Gasto", 15),
        ("last_order_date", "Última Compra", 15),
    ],
    "financial": [
        ("date", "Data", 15),
        ("description", "Descrição", 40),
        ("category", "Categoria", 20),
        ("type", "Tipo", 10),
        ("status", "Status", 15),
        ("amount", "Valor", 15),
    ],
    "service-orders": [
        ("code", "Código", 15),
        ("customer", "Cliente", 30),
        ("title", "Título", 40),
        ("status", "Status", 15),
        ("priority", "Prioridade", 15),
        ("total", "Total", 15),
    ],
    "invoices": [
        ("number", "Número", 15),
        ("type", "Tipo", 15),
        ("customer", "Cliente", 30),
        ("date", "Data", 15),
        ("status", "Status", 15),
        ("total", "Valor", 15),
    ],
}

# Rótulos do resumo: (chave, rótulo, é valor monetário)
SUMMARY_LABELS: dict[str, list[tuple[str, str, bool]]] = {
    "sales": [
        ("total_sales", "Total em Vendas", True),
        ("total_orders", "Nº de Vendas", False),
        ("average_ticket", "Ticket Médio", True),
        ("total_items", "Itens Vendidos", False),
    ],
    "products": [
        ("total_products", "Total de Produtos", False),
        ("stock_value", "Valor em Estoque", True),
        ("low_stock_count", "Estoque Baixo", False),
        ("out_of_stock_count", "Sem Estoque", False),
    ],
    "customers": [
        ("total_customers", "Total de Clientes", False),
        ("active_customers", "Clientes Ativos", False),
        ("total_revenue", "Receita Total", True),
    ],
    "financial": [
        ("total_income", "Receitas", True),
        ("total_expenses", "Despesas", True),
        ("balance", "Saldo", True),
        ("pending_amount", "Pendentes", True),
    ],
    "service-orders": [
        ("total", "Total de OS", False),
        ("completed", "Concluídas", False),
        ("in_progress", "Em Andamento", False),
        ("revenue", "Faturamento", True),
    ],
    "invoices": [
        ("total", "Total de Notas", False),
        ("issued", "Emitidas", False),
        ("cancelled", "Canceladas", False),
        ("total_value", "Valor Total", True),
    ],
}

FINISHED_ORDER_STATUSES = (ServiceOrderStatus.COMPLETED, ServiceOrderStatus.DELIVERED)


@dataclass
class ReportFilters:
    """Filtros aceitos pelos relatórios; cada relatório usa os que fazem sentido para ele."""

    period_start: date | None = None
    period_end: date | None = None
    status: str | None = None
    payment_method: list[str] = field(default_factory=list)
    customer: str | None = None
    total_min: float | None = None
    total_max: float | None = None
    sort_by: str | None = None
    category: str | None = None
    search: str | None = None
    type: str | None = None
    priority: str | None = None
    technician: str | None = None
    stock_status: str | None = None
    show_inactive: bool = False
    has_orders: bool = False
    total_spent_min: float | None = None
    total_spent_max: float | None = None


def _period(filters: ReportFilters, tenant_tz: ZoneInfo) -> tuple[datetime | None, datetime | None]:
    """Período em datas locais da empresa: [início do primeiro dia, início do dia seguinte ao último)."""
    start = local_day_start_utc(filters.period_start, tenant_tz) if filters.period_start else None
    end = local_day_start_utc(filters.period_end + timedelta(days=1), tenant_tz) if filters.period_end else None
    return start, end


def _in_period(query, column, start: datetime | None, end: datetime | None):
    if start is not None:
        query = query.where(column >= start)
    if end is not None:
        query = query.where(column < end)
    return query


def _like(value: str) -> str:
    return f"%{value.strip()}%"


def _enum(enum_cls, value: str, label: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Filtro inválido: {label}")


def sales_report(session: Session, tenant: Tenant, filters: ReportFilters) -> dict[str, Any]:
    tenant_tz = ZoneInfo(tenant.timezone)
    start, end = _period(filters, tenant_tz)
    query = (
        select(Sale, Customer.name)
        .join(Customer, Sale.customer_id == Customer.id, isouter=True)
        .where(Sale.tenant_id == tenant.id)
    )
    query = _in_period(query, Sale.created_at, start, end)
    if filters.status:
        query = query.where(Sale.status == _enum(SaleStatus, filters.status, "status"))
    if filters.payment_method:
        methods = [_enum(PaymentMethod, m, "payment_method") for m in filters.payment_method]
        query = query.where(Sale.payment_method.in_(methods))  # type: ignore[attr-defined]
    if filters.customer:
        query = query.where(Customer.name.ilike(_like(filters.customer)))  # type: ignore[attr-defined]
    if filters.total_min is not None:
        query = query.where(Sale.total >= filters.total_min)
    if filters.total_max is not None:
        query = query.where(Sale.total <= filters.total_max)
    rows = session.exec(query.order_by(Sale.created_at.desc(), Sale.id.desc())).all()  # type: ignore[attr-defined]

    sale_ids = [sale.id for sale, _ in rows]
    quantities: dict[int, int] = {}
    if sale_ids:
        quantities = dict(
            session.exec(
                select(SaleItem.sale_id, func.sum(SaleItem.quantity))
                .where(SaleItem.sale_id.in_(sale_ids))  # type: ignore[attr-defined]
                .group_by(SaleItem.sale_id)
            ).all()
        )

    total_sales = round_money(sum(sale.total for sale, _ in rows))
    sales_growth = 0.0
    if filters.period_start and filters.period_end and start is not None:
        period_days = (filters.period_end - filters.period_start).days
        previous_start = local_day_start_utc(filters.period_start - timedelta(days=period_days), tenant_tz)
        previous_total = session.exec(
            select(func.coalesce(func.sum(Sale.total), 0)).where(
                Sale.tenant_id == tenant.id, Sale.created_at >= previous_start, Sale.created_at < start
            )
        ).one()
        previous_total = float(previous_total)
        if previous_total > 0:
            sales_growth = round_money((total_sales - previous_total) / previous_total * 100)

    return {
        "summary": {
            "total_sales": total_sales,
            "total_orders": len(rows),
            "average_ticket": round_money(total_sales / len(rows)) if rows else 0.0,
            "total_items": int(sum(quantities.values())),
            "sales_growth": sales_growth,
        },
        "items": [
            {
                "id": sale.id,
                "code": sale.code,
                "date": isoformat_utc(sale.created_at),
                "customer": customer_name or DEFAULT_CUSTOMER_NAME,
                "payment_method": sale.payment_method.value,
                "status": sale.status.value,
                "items": int(quantities.get(sale.id, 0)),
                "total": round_money(sale.total),
            }
            for sale, customer_name in rows
        ],
    }


def products_report(session: Session, tenant: Tenant, filters: ReportFilters) -> dict[str, Any]:
    query = (
        select(Product, Category.name)
        .join(Category, Product.category_id == Category.id, isouter=True)
        .where(Product.tenant_id == tenant.id)
    )
    if filters.category:
        query = query.where(Category.name.ilike(_like(filters.category)))  # type: ignore[attr-defined]
    if filters.stock_status == "out":
        query = query.where(Product.stock <= 0)
    elif filters.stock_status == "low":
        query = query.where(Product.stock > 0, Product.stock <= Product.min_stock)
    elif filters.stock_status == "normal":
        query = query.where(Product.stock > 0)
    if not filters.show_inactive:
        query = query.where(Product.is_active == True)  # noqa: E712
    rows = session.exec(query.order_by(Product.name)).all()

    sold: dict[int, tuple[int, float]] = {}
    if filters.period_start or filters.period_end:
        start, end = _period(filters, ZoneInfo(tenant.timezone))
        sold_query = (
            select(SaleItem.product_id, func.sum(SaleItem.quantity), func.sum(SaleItem.total))
            .join(Sale, SaleItem.sale_id == Sale.id)
            .where(Sale.tenant_id == tenant.id, Sale.status == SaleStatus.COMPLETED)
            .group_by(SaleItem.product_id)
        )
        sold_query = _in_period(sold_query, Sale.created_at, start, end)
        sold = {product_id: (int(qty or 0), float(total or 0)) for product_id, qty, total in session.exec(sold_query).all()}

    items = []
    for product, category_name in rows:
        quantity, revenue = sold.get(product.id, (0, 0.0))
        items.append(
            {
                "id": product.id,
                "sku": product.sku,
                "name": product.name,
                "category": category_name or "-",
                "stock": product.stock,
                "min_stock": product.min_stock,
                "sold_quantity": quantity,
                "cost_price": round_money(product.cost_price),
                "sale_price": round_money(product.sale_price),
                "revenue": round_money(revenue),
            }
        )

    sort_keys: dict[str, Callable[[dict], Any]] = {
        "sales": lambda i: -i["sold_quantity"],
        "revenue": lambda i: -i["revenue"],
        "stock": lambda i: -i["stock"],
        "name": lambda i: i["name"].lower(),
    }
    if filters.sort_by in sort_keys:
        items.sort(key=sort_keys[filters.sort_by])

    products = [product for product, _ in rows]
    return {
        "summary": {
            "total_products": len(products),
            "stock_value": round_money(sum(p.stock * (p.cost_price or p.sale_price) for p in products)),
            "low_stock_count": sum(1 for p in products if 0 < p.stock <= p.min_stock),
            "out_of_stock_count": sum(1 for p in products if p.stock <= 0),
        },
        "items": items,
    }


def customers_report(session: Session, tenant: Tenant, filters: ReportFilters) -> dict[str, Any]:
    query = select(Customer).where(Customer.tenant_id == tenant.id)
    if filters.search:
        term = _like(filters.search)
        query = query.where(
            Customer.name.ilike(term) | Customer.email.ilike(term) | Customer.phone.ilike(term)  # type: ignore[attr-defined]
        )
    customers = session.exec(query.order_by(Customer.name)).all()

    start, end = _period(filters, ZoneInfo(tenant.timezone))
    sales_query = (
        select(Sale.customer_id, func.sum(Sale.total), func.count(Sale.id), func.max(Sale.created_at))
        .where(Sale.tenant_id == tenant.id, Sale.customer_id != None, Sale.status == SaleStatus.COMPLETED)  # noqa: E711
        .group_by(Sale.customer_id)
    )
    sales_query = _in_period(sales_query, Sale.created_at, start, end)
    by_customer = {row[0]: row[1:] for row in session.exec(sales_query).all()}

    items = []
    for customer in customers:
        total_spent, order_count, last_order = by_customer.get(customer.id, (0, 0, None))
        items.append(
            {
                "id": customer.id,
                "name": customer.name,
                "email": customer.email or "-",
                "phone": customer.phone or "-",
                "order_count": order_count,
                "total_spent": round_money(total_spent),
                "last_order_date": isoformat_utc(last_order),
            }
        )

    if filters.has_orders:
        items = [i for i in items if i["order_count"] > 0]
    if filters.total_spent_min is not None:
        items = [i for i in items if i["total_spent"] >= filters.total_spent_min]
    if filters.total_spent_max is not None:
        items = [i for i in items if i["total_spent"] <= filters.total_spent_max]

    sort_keys: dict[str, Callable[[dict], Any]] = {
        "total_spent": lambda i: -i["total_spent"],
        "order_count": lambda i: -i["order_count"],
        "last_order": lambda i: i["last_order_date"] or "",
        "name": lambda i: i["name"].lower(),
    }
    if filters.sort_by in sort_keys:
        items.sort(key=sort_keys[filters.sort_by], reverse=filters.sort_by == "last_order")

    return {
        "summary": {
            "total_customers": len(customers),
            "active_customers": sum(1 for i in items if i["order_count"] > 0),
            "total_revenue": round_money(sum(i["total_spent"] for i in items)),
        },
        "items": items,
    }


def financial_report(session: Session, tenant: Tenant, filters: ReportFilters) -> dict[str, Any]:
    start, end = _period(filters, ZoneInfo(tenant.timezone))
    query = (
        select(Transaction, TransactionCategory.name)
        .join(TransactionCategory, Transaction.category_id == TransactionCategory.id, isouter=True)
        .where(Transaction.tenant_id == tenant.id)
    )
    query = _in_period(query, Transaction.due_date, start, end)
    if filters.type:
        query = query.where(Transaction.type == _enum(TransactionType, filters.type, "type"))
    if filters.status:
        query = query.where(Transaction.status == _enum(TransactionStatus, filters.status, "status"))
    if filters.category:
        query = query.where(TransactionCategory.name.ilike(_like(filters.category)))  # type: ignore[attr-defined]
    rows = session.exec(query.order_by(Transaction.due_date.desc(), Transaction.id.desc())).all()  # type: ignore[attr-defined]

    transactions = [t for t, _ in rows]
    income = round_money(sum(t.amount for t in transactions if t.type == TransactionType.INCOME))
    expense = round_money(sum(t.amount for t in transactions if t.type == TransactionType.EXPENSE))
    return {
        "summary": {
            "total_income": income,
            "total_expenses": expense,
            "balance": round_money(income - expense),
            "pending_amount": round_money(
                sum(t.amount for t in transactions if t.status == TransactionStatus.PENDING)
            ),
        },
        "items": [
            {
                "id": t.id,
                "date": isoformat_utc(t.due_date),
                "description": t.description,
                "category": category_name or "-",
                "type": t.type.value,
                "status": t.status.value,
                "amount": round_money(t.amount),
            }
            for t, category_name in rows
        ],
    }


def service_orders_report(session: Session, tenant: Tenant, filters: ReportFilters) -> dict[str, Any]:
    start, end = _period(filters, ZoneInfo(tenant.timezone))
    query = (
        select(ServiceOrder, Customer.name, Account.name)
        .join(Customer, ServiceOrder.customer_id == Customer.id)
        .join(Account, ServiceOrder.account_id == Account.id, isouter=True)
        .where(ServiceOrder.tenant_id == tenant.id)
    )
    query = _in_period(query, ServiceOrder.created_at, start, end)
    if filters.status:
        query = query.where(ServiceOrder.status == _enum(ServiceOrderStatus, filters.status, "status"))
    if filters.priority:
        query = query.where(ServiceOrder.priority == _enum(Priority, filters.priority, "priority"))
    if filters.technician:
        query = query.where(Account.name.ilike(_like(filters.technician)))  # type: ignore[attr-defined]
    rows = session.exec(query.order_by(ServiceOrder.created_at.desc(), ServiceOrder.id.desc())).all()  # type: ignore[attr-defined]

    orders = [order for order, _, _ in rows]
    finished = [o for o in orders if o.status in FINISHED_ORDER_STATUSES]
    return {
        "summary": {
            "total": len(orders),
            "completed": len(finished),
            "in_progress": sum(1 for o in orders if o.status == ServiceOrderStatus.IN_PROGRESS),
            "revenue": round_money(sum(o.total for o in finished)),
        },
        "items": [
            {
                "id": order.id,
                "code": order.code,
                "date": isoformat_utc(order.created_at),
                "customer": customer_name or "-",
                "technician": technician or "-",
                "title": order.title,
                "status": order.status.value,
                "priority": order.priority.value,
                "total": round_money(order.total),
            }
            for order, customer_name, technician in rows
        ],
    }


def invoices_report(session: Session, tenant: Tenant, filters: ReportFilters) -> dict[str, Any]:
    start, end = _period(filters, ZoneInfo(tenant.timezone))
    query = select(Invoice).where(Invoice.tenant_id == tenant.id)
    query = _in_period(query, Invoice.created_at, start, end)
    if filters.type:
        query = query.where(Invoice.type == _enum(InvoiceType, filters.type, "type"))
    if filters.status:
        query = query.where(Invoice.status == _enum(InvoiceStatus, filters.status, "status"))
    if filters.total_min is not None:
        query = query.where(Invoice.total >= filters.total_min)
    if filters.total_max is not None:
        query = query.where(Invoice.total <= filters.total_max)
    invoices = session.exec(query.order_by(Invoice.created_at.desc(), Invoice.id.desc())).all()  # type: ignore[attr-defined]

    return {
        "summary": {
            "total": len(invoices),
            "issued": sum(1 for i in invoices if i.status in (InvoiceStatus.ISSUED, InvoiceStatus.SENT)),
            "cancelled": sum(1 for i in invoices if i.status == InvoiceStatus.CANCELLED),
            "total_value": round_money(sum(i.total for i in invoices if i.status != InvoiceStatus.CANCELLED)),
        },
        "items": [
            {
                "id": invoice.id,
                "number": invoice.number,
                "type": invoice.type.value,
                "customer": invoice.recipient_name or DEFAULT_CUSTOMER_NAME,
                "date": isoformat_utc(invoice.created_at),
                "status": invoice.status.value,
                "total": round_money(invoice.total),
            }
            for invoice in invoices
        ],
    }


GENERATORS: dict[str, Callable[[Session, Tenant, ReportFilters], dict[str, Any]]] = {
    "sales": sales_report,
    "products": products_report,
    "customers": customers_report,
    "financial": financial_report,
    "service-orders": service_orders_report,
    "invoices": invoices_report,
}


def generate_report(session: Session, tenant: Tenant, report_type: str, filters: ReportFilters) -> dict[str, Any]:
    return GENERATORS[report_type](session, tenant, filters)


def _brl(value: float | None) -> str:
    formatted = f"{float(value or 0):,.2f}"
    return "R$ " + formatted.replace(",", "X").replace(".", ",").replace("X", ".")


def _cell_text(key: str, value: Any) -> str:
    if value is None:
        return "-"
    if key in ("date", "last_order_date") and isinstance(value, str):
        # ISO UTC -> dd/mm/aaaa
        return f"{value[8:10]}/{value[5:7]}/{value[0:4]}"
    if isinstance(value, float):
        return _brl(value)
    return str(value)


def _period_text(filters: ReportFilters) -> str:
    if filters.period_start and filters.period_end:
        return f"{filters.period_start:%d/%m/%Y} a {filters.period_end:%d/%m/%Y}"
    if filters.period_start:
        return f"A partir de {filters.period_start:%d/%m/%Y}"
    if filters.period_end:
        return f"Até {filters.period_end:%d/%m/%Y}"
    return ""


def export_pdf(tenant: Tenant, report_type: str, data: dict[str, Any], filters: ReportFilters) -> bytes:
    from app.report.pdf_layout import build_document_pdf

    summary = data["summary"]
    summary_rows = [
        (label, _brl(summary.get(key)) if money else str(summary.get(key, 0)))
        for key, label, money in SUMMARY_LABELS[report_type]
    ]
    columns = REPORT_COLUMNS[report_type]
    rows = [[_cell_text(key, item.get(key)) for key, _, _ in columns] for item in data["items"]]
    total_width = sum(width for _, _, width in columns)
    return build_document_pdf(
        header_title=tenant.name,
        title=REPORT_TITLES[report_type],
        info_sections=[("Período", [("Período", _period_text(filters))]), ("Resumo", summary_rows)],
        headers=[header for _, header, _ in columns],
        rows=rows if rows else [["Nenhum dado encontrado."] + [""] * (len(columns) - 1)],
        col_ratios=[width / total_width for _, _, width in columns],
    )


def export_excel(report_type: str, data: dict[str, Any]) -> bytes:
    from openpyxl import Workbook
    from openpyxl.styles import Font, PatternFill
    from openpyxl.utils import get_column_letter

    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Relatório"

    columns = REPORT_COLUMNS[report_type]
    sheet.append([header for _, header, _ in columns])
    for cell in sheet[1]:
        cell.font = Font(bold=True, color="FFFFFFFF")
        cell.fill = PatternFill(fill_type="solid", fgColor="FF4F46E5")
    for index, (_, _, width) in enumerate(columns, start=1):
        sheet.column_dimensions[get_column_letter(index)].width = width

    for item in data["items"]:
        sheet.append([item.get(key) for key, _, _ in columns])

    buf = io.BytesIO()
    workbook.save(buf)
    return buf.getvalue()
