from app.model.base import BaseModel
from app.model.tenant import Tenant
from app.model.account import Account
from app.model.membership import Membership
from app.model.invitation import Invitation
from app.model.category import Category
from app.model.supplier import Supplier
from app.model.product import Product
from app.model.stock_movement import StockMovement
from app.model.customer import Customer
from app.model.sale import Sale, SaleItem, SalePayment
from app.model.service_order import ServiceOrder, ServiceOrderItem
from app.model.invoice import Invoice
from app.model.transaction import Transaction
from app.model.transaction_category import TransactionCategory
from app.model.notification_log import NotificationLog

__all__ = [
    "BaseModel",
    "Tenant",
    "Account",
    "Membership",
    "Invitation",
    "Category",
    "Supplier",
    "Product",
    "StockMovement",
    "Customer",
    "Sale",
    "SaleItem",
    "SalePayment",
    "ServiceOrder",
    "ServiceOrderItem",
    "Invoice",
    "Transaction",
    "TransactionCategory",
    "NotificationLog",
]
