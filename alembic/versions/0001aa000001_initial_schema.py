"""initial schema (tenant, account, membership, catálogo, vendas, OS, notas e financeiro)

Revision ID: 0001aa000001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001aa000001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _base_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def _money(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.Numeric(12, 2), nullable=nullable)


def upgrade() -> None:
    op.create_table(
        "tenant",
        *_base_columns(),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("slug", sa.String(), nullable=False),
        sa.Column("document", sa.String(), nullable=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("address", sa.String(), nullable=True),
        sa.Column("city", sa.String(), nullable=True),
        sa.Column("state", sa.String(), nullable=True),
        sa.Column("zip_code", sa.String(), nullable=True),
        sa.Column("logo", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("timezone", sa.String(), nullable=False, server_default="America/Sao_Paulo"),
        sa.Column("locale", sa.String(), nullable=False, server_default="pt-BR"),
        sa.Column("currency", sa.String(), nullable=False, server_default="BRL"),
        sa.Column("settings", sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_tenant_name"), "tenant", ["name"], unique=False)
    op.create_index(op.f("ix_tenant_slug"), "tenant", ["slug"], unique=True)

    op.create_table(
        "account",
        *_base_columns(),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("password_hash", sa.String(), nullable=False),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("avatar", sa.String(), nullable=True),
        sa.Column("status", sa.String(length=9), nullable=False, server_default="ACTIVE"),
        sa.Column("refresh_token", sa.String(), nullable=True),
        sa.Column("reset_code", sa.String(), nullable=True),
        sa.Column("reset_code_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email", name="uq_account_email"),
    )
    op.create_index(op.f("ix_account_email"), "account", ["email"], unique=False)

    op.create_table(
        "membership",
        *_base_columns(),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("role", sa.String(length=7), nullable=False, server_default="SELLER"),
        sa.Column("status", sa.String(length=9), nullable=False, server_default="ACTIVE"),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenant.id"]),
        sa.ForeignKeyConstraint(["account_id"], ["account.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "account_id", name="uq_membership_tenant_account"),
    )
    op.create_index(op.f("ix_membership_tenant_id"), "membership", ["tenant_id"], unique=False)
    op.create_index(op.f("ix_membership_account_id"), "membership", ["account_id"], unique=False)
    op.create_index(op.f("ix_membership_role"), "membership", ["role"], unique=False)
    op.create_index(op.f("ix_membership_status"), "membership", ["status"], unique=False)

    op.create_table(
        "invitation",
        *_base_columns(),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("role", sa.String(length=7), nullable=False, server_default="SELLER"),
        sa.Column("token", sa.String(), nullable=False),
        sa.Column("status", sa.String(length=9), nullable=False, server_default="PENDING"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("invited_by", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenant.id"]),
        sa.ForeignKeyConstraint(["invited_by"], ["account.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_invitation_tenant_id"), "invitation", ["tenant_id"], unique=False)
    op.create_index(op.f("ix_invitation_email"), "invitation", ["email"], unique=False)
    op.create_index(op.f("ix_invitation_token"), "invitation", ["token"], unique=True)
    op.create_index(op.f("ix_invitation_status"), "invitation", ["status"], unique=False)

    op.create_table(
        "category",
        *_base_columns(),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("color", sa.String(), nullable=True),
        sa.Column("icon", sa.String(), nullable=True),
        sa.Column("parent_id", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenant.id"]),
        sa.ForeignKeyConstraint(["parent_id"], ["category.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "name", name="uq_category_tenant_name"),
    )
    op.create_index(op.f("ix_category_tenant_id"), "category", ["tenant_id"], unique=False)

    op.create_table(
        "product",
        *_base_columns(),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("category_id", sa.Integer(), nullable=True),
        sa.Column("sku", sa.String(), nullable=False),
        sa.Column("barcode", sa.String(), nullable=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("brand", sa.String(), nullable=True),
        sa.Column("color", sa.String(), nullable=True),
        sa.Column("size", sa.String(), nullable=True),
        _money("cost_price"),
        _money("sale_price"),
        _money("promo_price", nullable=True),
        sa.Column("stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("min_stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_stock", sa.Integer(), nullable=True),
        sa.Column("unit", sa.String(), nullable=False, server_default="UN"),
        sa.Column("ncm", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_variation", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("parent_product_id", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenant.id"]),
        sa.ForeignKeyConstraint(["category_id"], ["category.id"]),
        sa.ForeignKeyConstraint(["parent_product_id"], ["product.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "sku", name="uq_product_tenant_sku"),
        sa.UniqueConstraint("tenant_id", "barcode", name="uq_product_tenant_barcode"),
    )
    op.create_index(op.f("ix_product_tenant_id"), "product", ["tenant_id"], unique=False)
    op.create_index(op.f("ix_product_category_id"), "product", ["category_id"], unique=False)
    op.create_index(op.f("ix_product_sku"), "product", ["sku"], unique=False)
    op.create_index(op.f("ix_product_barcode"), "product", ["barcode"], unique=False)
    op.create_index(op.f("ix_product_name"), "product", ["name"], unique=False)
    op.create_index(op.f("ix_product_is_active"), "product", ["is_active"], unique=False)
    op.create_index(op.f("ix_product_parent_product_id"), "product", ["parent_product_id"], unique=False)

    op.create_table(
        "stock_movement",
        *_base_columns(),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=True),
        sa.Column("type", sa.String(length=10), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(), nullable=True),
        sa.Column("reference", sa.String(), nullable=True),
        sa.Column("previous_stock", sa.Integer(), nullable=False),
        sa.Column("new_stock", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenant.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["product.id"]),
        sa.ForeignKeyConstraint(["account_id"], ["account.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_stock_movement_tenant_id"), "stock_movement", ["tenant_id"], unique=False)
    op.create_index(op.f("ix_stock_movement_product_id"), "stock_movement", ["product_id"], unique=False)
    op.create_index(op.f("ix_stock_movement_reference"), "stock_movement", ["reference"], unique=False)

    op.create_table(
        "customer",
        *_base_columns(),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(length=2), nullable=False, server_default="PF"),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("cpf_cnpj", sa.String(), nullable=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("whatsapp", sa.String(), nullable=True),
        sa.Column("birth_date", sa.Date(), nullable=True),
        sa.Column("gender", sa.String(length=6), nullable=True),
        sa.Column("address", sa.String(), nullable=True),
        sa.Column("number", sa.String(), nullable=True),
        sa.Column("complement", sa.String(), nullable=True),
        sa.Column("neighborhood", sa.String(), nullable=True),
        sa.Column("city", sa.String(), nullable=True),
        sa.Column("state", sa.String(), nullable=True),
        sa.Column("zip_code", sa.String(), nullable=True),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=True),
        sa.Column("points", sa.Integer(), nullable=False, server_default="0"),
        _money("total_spent"),
        sa.Column("last_purchase", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenant.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "cpf_cnpj", name="uq_customer_tenant_cpf_cnpj"),
    )
    op.create_index(op.f("ix_customer_tenant_id"), "customer", ["tenant_id"], unique=False)
    op.create_index(op.f("ix_customer_name"), "customer", ["name"], unique=False)
    op.create_index(op.f("ix_customer_cpf_cnpj"), "customer", ["cpf_cnpj"], unique=False)
    op.create_index(op.f("ix_customer_is_active"), "customer", ["is_active"], unique=False)

    op.create_table(
        "sale",
        *_base_columns(),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=True),
        sa.Column("account_id", sa.Integer(), nullable=True),
        _money("subtotal"),
        _money("discount"),
        _money("tax"),
        _money("total"),
        _money("paid_amount"),
        _money("change_amount"),
        sa.Column("payment_method", sa.String(length=13), nullable=False),
        sa.Column("payment_status", sa.String(length=9), nullable=False),
        sa.Column("status", sa.String(length=9), nullable=False),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenant.id"]),
        sa.ForeignKeyConstraint(["customer_id"], ["customer.id"]),
        sa.ForeignKeyConstraint(["account_id"], ["account.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "code", name="uq_sale_tenant_code"),
    )
    op.create_index(op.f("ix_sale_tenant_id"), "sale", ["tenant_id"], unique=False)
    op.create_index(op.f("ix_sale_code"), "sale", ["code"], unique=False)
    op.create_index(op.f("ix_sale_customer_id"), "sale", ["customer_id"], unique=False)
    op.create_index(op.f("ix_sale_status"), "sale", ["status"], unique=False)

    op.create_table(
        "sale_item",
        *_base_columns(),
        sa.Column("sale_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        _money("unit_price"),
        _money("discount"),
        _money("total"),
        sa.ForeignKeyConstraint(["sale_id"], ["sale.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["product.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_sale_item_sale_id"), "sale_item", ["sale_id"], unique=False)
    op.create_index(op.f("ix_sale_item_product_id"), "sale_item", ["product_id"], unique=False)

    op.create_table(
        "sale_payment",
        *_base_columns(),
        sa.Column("sale_id", sa.Integer(), nullable=False),
        sa.Column("method", sa.String(length=13), nullable=False),
        _money("amount"),
        sa.Column("installments", sa.Integer(), nullable=False, server_default="1"),
        sa.ForeignKeyConstraint(["sale_id"], ["sale.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_sale_payment_sale_id"), "sale_payment", ["sale_id"], unique=False)

    op.create_table(
        "service_order",
        *_base_columns(),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("device_type", sa.String(), nullable=True),
        sa.Column("device_brand", sa.String(), nullable=True),
        sa.Column("device_model", sa.String(), nullable=True),
        sa.Column("device_serial", sa.String(), nullable=True),
        sa.Column("device_condition", sa.String(), nullable=True),
        sa.Column("reported_issue", sa.String(), nullable=True),
        sa.Column("diagnosis", sa.String(), nullable=True),
        sa.Column("solution", sa.String(), nullable=True),
        sa.Column("priority", sa.String(length=6), nullable=False, server_default="NORMAL"),
        sa.Column("status", sa.String(length=13), nullable=False, server_default="PENDING"),
        _money("labor_cost"),
        _money("parts_cost"),
        _money("discount"),
        _money("total"),
        sa.Column("warranty_days", sa.Integer(), nullable=False, server_default="90"),
        sa.Column("estimated_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenant.id"]),
        sa.ForeignKeyConstraint(["customer_id"], ["customer.id"]),
        sa.ForeignKeyConstraint(["account_id"], ["account.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "code", name="uq_service_order_tenant_code"),
    )
    op.create_index(op.f("ix_service_order_tenant_id"), "service_order", ["tenant_id"], unique=False)
    op.create_index(op.f("ix_service_order_code"), "service_order", ["code"], unique=False)
    op.create_index(op.f("ix_service_order_customer_id"), "service_order", ["customer_id"], unique=False)
    op.create_index(op.f("ix_service_order_status"), "service_order", ["status"], unique=False)

    op.create_table(
        "service_order_item",
        *_base_columns(),
        sa.Column("service_order_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=True),
        sa.Column("description", sa.String(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
        _money("unit_price"),
        _money("total"),
        sa.ForeignKeyConstraint(["service_order_id"], ["service_order.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["product.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_service_order_item_service_order_id"), "service_order_item", ["service_order_id"], unique=False
    )

    op.create_table(
        "invoice",
        *_base_columns(),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("number", sa.String(), nullable=False),
        sa.Column("series", sa.String(), nullable=False, server_default="1"),
        sa.Column("access_key", sa.String(), nullable=False),
        sa.Column("type", sa.String(length=8), nullable=False, server_default="SALE"),
        sa.Column("status", sa.String(length=9), nullable=False, server_default="DRAFT"),
        sa.Column("sale_id", sa.Integer(), nullable=True),
        sa.Column("service_order_id", sa.Integer(), nullable=True),
        sa.Column("customer_id", sa.Integer(), nullable=True),
        sa.Column("issuer_name", sa.String(), nullable=False),
        sa.Column("issuer_document", sa.String(), nullable=True),
        sa.Column("issuer_address", sa.String(), nullable=True),
        sa.Column("issuer_phone", sa.String(), nullable=True),
        sa.Column("issuer_email", sa.String(), nullable=True),
        sa.Column("recipient_name", sa.String(), nullable=True),
        sa.Column("recipient_document", sa.String(), nullable=True),
        sa.Column("recipient_address", sa.String(), nullable=True),
        sa.Column("recipient_phone", sa.String(), nullable=True),
        sa.Column("recipient_email", sa.String(), nullable=True),
        sa.Column("items", sa.JSON(), nullable=True),
        _money("subtotal"),
        _money("discount"),
        _money("tax"),
        _money("total"),
        sa.Column("warranty_days", sa.Integer(), nullable=True),
        sa.Column("warranty_expires", sa.DateTime(timezone=True), nullable=True),
        sa.Column("qr_code_data", sa.String(), nullable=True),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sent_to", sa.String(), nullable=True),
        sa.Column("sent_method", sa.String(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancel_reason", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenant.id"]),
        sa.ForeignKeyConstraint(["sale_id"], ["sale.id"]),
        sa.ForeignKeyConstraint(["service_order_id"], ["service_order.id"]),
        sa.ForeignKeyConstraint(["customer_id"], ["customer.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "series", "number", name="uq_invoice_tenant_series_number"),
    )
    op.create_index(op.f("ix_invoice_tenant_id"), "invoice", ["tenant_id"], unique=False)
    op.create_index(op.f("ix_invoice_number"), "invoice", ["number"], unique=False)
    op.create_index(op.f("ix_invoice_access_key"), "invoice", ["access_key"], unique=True)
    op.create_index(op.f("ix_invoice_status"), "invoice", ["status"], unique=False)
    op.create_index(op.f("ix_invoice_sale_id"), "invoice", ["sale_id"], unique=False)
    op.create_index(op.f("ix_invoice_service_order_id"), "invoice", ["service_order_id"], unique=False)
    op.create_index(op.f("ix_invoice_customer_id"), "invoice", ["customer_id"], unique=False)

    op.create_table(
        "financial_transaction",
        *_base_columns(),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(length=7), nullable=False),
        sa.Column("description", sa.String(), nullable=False),
        _money("amount"),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("paid_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(length=9), nullable=False, server_default="PENDING"),
        sa.Column("payment_method", sa.String(length=13), nullable=True),
        sa.Column("sale_id", sa.Integer(), nullable=True),
        sa.Column("service_order_id", sa.Integer(), nullable=True),
        sa.Column("reference", sa.String(), nullable=True),
        sa.Column("notes", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenant.id"]),
        sa.ForeignKeyConstraint(["sale_id"], ["sale.id"]),
        sa.ForeignKeyConstraint(["service_order_id"], ["service_order.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_financial_transaction_tenant_id"), "financial_transaction", ["tenant_id"], unique=False)
    op.create_index(op.f("ix_financial_transaction_type"), "financial_transaction", ["type"], unique=False)
    op.create_index(op.f("ix_financial_transaction_status"), "financial_transaction", ["status"], unique=False)
    op.create_index(op.f("ix_financial_transaction_sale_id"), "financial_transaction", ["sale_id"], unique=False)
    op.create_index(
        op.f("ix_financial_transaction_service_order_id"), "financial_transaction", ["service_order_id"], unique=False
    )

    op.create_table(
        "notification_log",
        *_base_columns(),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=True),
        sa.Column("type", sa.String(length=8), nullable=False),
        sa.Column("status", sa.String(length=9), nullable=False, server_default="PENDING"),
        sa.Column("recipient", sa.String(), nullable=False),
        sa.Column("subject", sa.String(), nullable=True),
        sa.Column("content", sa.String(), nullable=False),
        sa.Column("error_msg", sa.String(), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("extra", sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenant.id"]),
        sa.ForeignKeyConstraint(["customer_id"], ["customer.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_notification_log_tenant_id"), "notification_log", ["tenant_id"], unique=False)
    op.create_index(op.f("ix_notification_log_customer_id"), "notification_log", ["customer_id"], unique=False)
    op.create_index(op.f("ix_notification_log_type"), "notification_log", ["type"], unique=False)
    op.create_index(op.f("ix_notification_log_status"), "notification_log", ["status"], unique=False)


def downgrade() -> None:
    # Tabelas com FK primeiro; os índices caem junto com as tabelas.
    for table in (
        "notification_log",
        "financial_transaction",
        "invoice",
        "service_order_item",
        "service_order",
        "sale_payment",
        "sale_item",
        "sale",
        "customer",
        "stock_movement",
        "product",
        "category",
        "invitation",
        "membership",
        "account",
        "tenant",
    ):
        op.drop_table(table)
