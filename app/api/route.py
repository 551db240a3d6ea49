from fastapi import APIRouter

from app.api.auth import router as auth_router
from app.api.category import router as category_router
from app.api.customer import router as customer_router
from app.api.dashboard import router as dashboard_router
from app.api.financial import router as financial_router
from app.api.invitation import router as invitation_router
from app.api.invoice import router as invoice_router
from app.api.notification import router as notification_router
from app.api.product import router as product_router
from app.api.report import router as report_router
from app.api.sale import router as sale_router
from app.api.service_order import router as service_order_router
from app.api.setting import router as setting_router
from app.api.supplier import router as supplier_router
from app.api.user import router as user_router


router = APIRouter()  # Sem tag padrão - cada router define sua própria tag
router.include_router(auth_router)
router.include_router(product_router)
router.include_router(category_router)
router.include_router(customer_router)
router.include_router(supplier_router)
router.include_router(sale_router)
router.include_router(service_order_router)
router.include_router(invoice_router)
router.include_router(financial_router)
router.include_router(notification_router)
router.include_router(setting_router)
router.include_router(invitation_router)
router.include_router(user_router)
router.include_router(dashboard_router)
router.include_router(report_router)


@router.get("/health", tags=["System"])
def health():
    """Health check endpoint."""
    return {"status": "ok"}
