import enum
import logging
from datetime import date
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from pydantic import BaseModel as PydanticBaseModel, model_validator
from sqlmodel import Session

from app.auth.dependencies import get_current_tenant, require_role
from app.db.session import get_session
from app.model.membership import Membership
from app.model.tenant import Tenant
from app.services import report_service
from app.services.report_service import ReportFilters

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["Report"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class ReportType(str, enum.Enum):
    SALES = "sales"
    PRODUCTS = "products"
    CUSTOMERS = "customers"
    FINANCIAL = "financial"
    SERVICE_ORDERS = "service-orders"
    INVOICES = "invoices"


class ReportRequest(PydanticBaseModel):
    period_start: date | None = None
    period_end: date | None = None
    status: str | None = None
    payment_method: list[str] = []
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

    @model_validator(mode="after")
    def validate_period(self):
        if self.period_start and self.period_end and self.period_end < self.period_start:
            raise ValueError("Data final deve ser posterior à data inicial")
        return self


class ReportResponse(PydanticBaseModel):
    summary: dict[str, Any]
    items: list[dict[str, Any]]


def _run(session: Session, tenant: Tenant, report_type: ReportType, body: ReportRequest | None):
    filters = ReportFilters(**(body or ReportRequest()).model_dump())
    return filters, report_service.generate_report(session, tenant, report_type.value, filters)


@router.post("/{report_type}", response_model=ReportResponse)
def generate_report(
    report_type: ReportType,
    body: ReportRequest | None = None,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    tenant: Tenant = Depends(get_current_tenant),
    session: Session = Depends(get_session),
):
    _, data = _run(session, tenant, report_type, body)
    return data


@router.post("/{report_type}/export/pdf")
def export_report_pdf(
    report_type: ReportType,
    body: ReportRequest | None = None,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    tenant: Tenant = Depends(get_current_tenant),
    session: Session = Depends(get_session),
):
    filters, data = _run(session, tenant, report_type, body)
    pdf_bytes = report_service.export_pdf(tenant, report_type.value, data, filters)
    logger.info(f"[REPORT] PDF {report_type.value} gerado (tenant={tenant.id}, linhas={len(data['items'])})")
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="relatorio-{report_type.value}.pdf"'},
    )


@router.post("/{report_type}/export/excel")
def export_report_excel(
    report_type: ReportType,
    body: ReportRequest | None = None,
    membership: Membership = Depends(require_role("ADMIN", "MANAGER")),
    tenant: Tenant = Depends(get_current_tenant),
    session: Session = Depends(get_session),
):
    _, data = _run(session, tenant, report_type, body)
    content = report_service.export_excel(report_type.value, data)
    logger.info(f"[REPORT] Excel {report_type.value} gerado (tenant={tenant.id}, linhas={len(data['items'])})")
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="relatorio-{report_type.value}.xlsx"'},
    )
