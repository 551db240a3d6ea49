"""add supplier, transaction_category e vínculos em product/financial_transaction

Revision ID: 0002bb000002
Revises: 0001aa000001
Create Date: 2026-10-19 00:00:00.000000

"""

from datetime import datetime, timezone
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0002bb000002"
down_revision: Union[str, None] = "0001aa000001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Categorias padrão (tenant_id NULL, is_system) visíveis para todas as empresas
SYSTEM_CATEGORIES = (
    ("Vendas", "INCOME", "#22c55e", "shopping-cart"),
    ("Serviços", "INCOME", "#3b82f6", "wrench"),
    ("Outras receitas", "INCOME", "#14b8a6", "plus-circle"),
    ("Fornecedores", "EXPENSE", "#f97316", "truck"),
    ("Aluguel", "EXPENSE", "#ef4444", "home"),
    ("Salários", "EXPENSE", "#a855f7", "users"),
    ("Impostos", "EXPENSE", "#64748b", "file-text"),
    ("Marketing", "EXPENSE", "#6366f1", "megaphone"),
    ("Outras despesas", "EXPENSE", "#94a3b8", "minus-circle"),
)


def upgrade() -> None:
    op.create_table(
        "supplier",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(length=2), nullable=False, server_default="PJ"),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("trade_name", sa.String(), nullable=True),
        sa.Column("cpf_cnpj", sa.String(), nullable=True),
        sa.Column("ie", sa.String(), nullable=True),
        sa.Column("im", sa.String(), nullable=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("whatsapp", sa.String(), nullable=True),
        sa.Column("website", sa.String(), nullable=True),
        sa.Column("contact_person", sa.String(), nullable=True),
        sa.Column("address", sa.String(), nullable=True),
        sa.Column("number", sa.String(), nullable=True),
        sa.Column("complement", sa.String(), nullable=True),
        sa.Column("neighborhood", sa.String(), nullable=True),
        sa.Column("city", sa.String(), nullable=True),
        sa.Column("state", sa.String(), nullable=True),
        sa.Column("zip_code", sa.String(), nullable=True),
        sa.Column("country", sa.String(), nullable=False, server_default="Brasil"),
        sa.Column("payment_terms", sa.String(), nullable=True),
        sa.Column("lead_time", sa.Integer(), nullable=True),
        sa.Column("min_order_value", sa.Numeric(12, 2), nullable=True),
        sa.Column("rating", sa.Integer(), nullable=True),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=True),
        sa.Column("bank_info", sa.JSON(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenant.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "cpf_cnpj", name="uq_supplier_tenant_cpf_cnpj"),
    )
    op.create_index(op.f("ix_supplier_tenant_id"), "supplier", ["tenant_id"], unique=False)
    op.create_index(op.f("ix_supplier_name"), "supplier", ["name"], unique=False)
    op.create_index(op.f("ix_supplier_cpf_cnpj"), "supplier", ["cpf_cnpj"], unique=False)
    op.create_index(op.f("ix_supplier_is_active"), "supplier", ["is_active"], unique=False)

    category_table = op.create_table(
        "transaction_category",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("type", sa.String(length=7), nullable=False),
        sa.Column("color", sa.String(), nullable=True),
        sa.Column("icon", sa.String(), nullable=True),
        sa.Column("is_system", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenant.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_transaction_category_tenant_id"), "transaction_category", ["tenant_id"], unique=False)

    now = datetime.now(timezone.utc)
    op.bulk_insert(
        category_table,
        [
            {
                "created_at": now,
                "updated_at": now,
                "name": name,
                "type": type_,
                "color": color,
                "icon": icon,
                "is_system": True,
                "is_active": True,
            }
            for name, type_, color, icon in SYSTEM_CATEGORIES
        ],
    )

    with op.batch_alter_table("product") as batch_op:
        batch_op.add_column(sa.Column("supplier_id", sa.Integer(), nullable=True))
        batch_op.create_foreign_key("fk_product_supplier_id", "supplier", ["supplier_id"], ["id"])
        batch_op.create_index(op.f("ix_product_supplier_id"), ["supplier_id"], unique=False)

    with op.batch_alter_table("financial_transaction") as batch_op:
        batch_op.add_column(sa.Column("category_id", sa.Integer(), nullable=True))
        batch_op.create_foreign_key(
            "fk_financial_transaction_category_id", "transaction_category", ["category_id"], ["id"]
        )
        batch_op.create_index(op.f("ix_financial_transaction_category_id"), ["category_id"], unique=False)


def downgrade() -> None:
    with op.batch_alter_table("financial_transaction") as batch_op:
        batch_op.drop_index(op.f("ix_financial_transaction_category_id"))
        batch_op.drop_constraint("fk_financial_transaction_category_id", type_="foreignkey")
        batch_op.drop_column("category_id")

    with op.batch_alter_table("product") as batch_op:
        batch_op.drop_index(op.f("ix_product_supplier_id"))
        batch_op.drop_constraint("fk_product_supplier_id", type_="foreignkey")
        batch_op.drop_column("supplier_id")

    op.drop_table("transaction_category")
    op.drop_table("supplier")
