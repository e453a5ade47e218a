"""Initial GemsTrack schema: catalogue, rates, sales, orders, ledger

Revision ID: 20261018_initial
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_initial"
down_revision = None
branch_labels = None
depends_on = None


def _item_columns():
    """Columns shared by products and sold_products."""
    return [
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("category_id", sa.String(32), nullable=False),
        sa.Column("primary_material", sa.String(32), nullable=False),
        sa.Column("purity_tier", sa.String(8), nullable=True),
        sa.Column("gross_weight_grams", sa.Numeric(12, 3), nullable=False),
        sa.Column("secondary_material", sa.String(32), nullable=True),
        sa.Column("secondary_purity_tier", sa.String(8), nullable=True),
        sa.Column("secondary_weight_grams", sa.Numeric(12, 3), nullable=False),
        sa.Column("has_gemstones", sa.Boolean(), nullable=False),
        sa.Column("gemstone_weight_grams", sa.Numeric(12, 3), nullable=False),
        sa.Column("wastage_percentage", sa.Numeric(7, 3), nullable=False),
        sa.Column("labor_charge", sa.Numeric(14, 2), nullable=False),
        sa.Column("has_diamonds", sa.Boolean(), nullable=False),
        sa.Column("diamond_charge", sa.Numeric(14, 2), nullable=False),
        sa.Column("gemstone_charge", sa.Numeric(14, 2), nullable=False),
        sa.Column("misc_charge", sa.Numeric(14, 2), nullable=False),
        sa.Column("manual_price_enabled", sa.Boolean(), nullable=False),
        sa.Column("manual_price", sa.Numeric(14, 2), nullable=True),
    ]


def upgrade():
    op.create_table(
        "rate_entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("material", sa.String(32), nullable=False),
        sa.Column("purity_tier", sa.String(8), nullable=False),
        sa.Column("unit_price_per_gram", sa.Numeric(14, 2), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.UniqueConstraint("material", "purity_tier", name="uq_rate_entries_material_tier"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_rate_entries_material", "rate_entries", ["material"])

    op.create_table(
        "sequence_counters",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(32), nullable=False),
        sa.Column("last_value", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.UniqueConstraint("name", name="uq_sequence_counters_name"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "categories",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("title", sa.String(128), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "products",
        sa.Column("sku", sa.String(32), primary_key=True),
        *_item_columns(),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("version_id", sa.Integer(), nullable=False),
    )
    op.create_index("ix_products_category_id", "products", ["category_id"])
    op.create_index("ix_products_category_name", "products", ["category_id", "name"])

    op.create_table(
        "sold_products",
        sa.Column("sku", sa.String(32), primary_key=True),
        *_item_columns(),
        sa.Column("invoice_id", sa.String(32), nullable=False),
        sa.Column("sold_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_sold_products_category_id", "sold_products", ["category_id"])
    op.create_index("ix_sold_products_invoice_id", "sold_products", ["invoice_id"])

    op.create_table(
        "customers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("address", sa.String(512), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_customers_name", "customers", ["name"])
    op.create_index("ix_customers_phone", "customers", ["phone"])

    op.create_table(
        "artisans",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("contact", sa.String(64), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "invoices",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id"), nullable=True),
        sa.Column("customer_name", sa.String(255), nullable=False),
        sa.Column("customer_phone", sa.String(32), nullable=True),
        sa.Column("subtotal", sa.Numeric(14, 2), nullable=False),
        sa.Column("discount", sa.Numeric(14, 2), nullable=False),
        sa.Column("grand_total", sa.Numeric(14, 2), nullable=False),
        sa.Column("amount_paid", sa.Numeric(14, 2), nullable=False),
        sa.Column("balance_due", sa.Numeric(14, 2), nullable=False),
        sa.Column("rate_snapshot", sa.JSON(), nullable=False),
        sa.Column("source_order_id", sa.String(32), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False),
    )
    op.create_index("ix_invoices_customer_id", "invoices", ["customer_id"])
    op.create_index("ix_invoices_source_order_id", "invoices", ["source_order_id"])
    op.create_index("ix_invoices_customer_created", "invoices", ["customer_id", "created_at"])

    op.create_table(
        "invoice_lines",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("invoice_id", sa.String(32), sa.ForeignKey("invoices.id"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("sku", sa.String(32), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("item_snapshot", sa.JSON(), nullable=False),
        sa.Column("metal_cost", sa.Numeric(14, 2), nullable=False),
        sa.Column("wastage_cost", sa.Numeric(14, 2), nullable=False),
        sa.Column("labor_charge", sa.Numeric(14, 2), nullable=False),
        sa.Column("diamond_charge", sa.Numeric(14, 2), nullable=False),
        sa.Column("gemstone_charge", sa.Numeric(14, 2), nullable=False),
        sa.Column("misc_charge", sa.Numeric(14, 2), nullable=False),
        sa.Column("line_total", sa.Numeric(14, 2), nullable=False),
        sa.UniqueConstraint("invoice_id", "position", name="uq_invoice_lines_invoice_position"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_invoice_lines_invoice_id", "invoice_lines", ["invoice_id"])
    op.create_index("ix_invoice_lines_sku", "invoice_lines", ["sku"])

    op.create_table(
        "invoice_payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("invoice_id", sa.String(32), sa.ForeignKey("invoices.id"), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("note", sa.String(255), nullable=True),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_invoice_payments_invoice_id", "invoice_payments", ["invoice_id"])
    op.create_index("ix_invoice_payments_invoice_timestamp", "invoice_payments", ["invoice_id", "timestamp"])

    op.create_table(
        "orders",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id"), nullable=True),
        sa.Column("customer_name", sa.String(255), nullable=False),
        sa.Column("customer_phone", sa.String(32), nullable=True),
        sa.Column("advance_cash", sa.Numeric(14, 2), nullable=False),
        sa.Column("advance_material_value", sa.Numeric(14, 2), nullable=False),
        sa.Column("advance_material_description", sa.String(255), nullable=True),
        sa.Column("estimated_subtotal", sa.Numeric(14, 2), nullable=False),
        sa.Column("rate_snapshot", sa.JSON(), nullable=False),
        sa.Column("invoice_id", sa.String(32), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("version_id", sa.Integer(), nullable=False),
    )
    op.create_index("ix_orders_status", "orders", ["status"])
    op.create_index("ix_orders_customer_id", "orders", ["customer_id"])
    op.create_index("ix_orders_invoice_id", "orders", ["invoice_id"])
    op.create_index("ix_orders_status_created", "orders", ["status", "created_at"])

    op.create_table(
        "order_lines",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.String(32), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("description", sa.String(255), nullable=False),
        sa.Column("item_snapshot", sa.JSON(), nullable=False),
        sa.Column("estimated_total", sa.Numeric(14, 2), nullable=False),
        sa.Column("final_item_snapshot", sa.JSON(), nullable=True),
        sa.Column("final_total", sa.Numeric(14, 2), nullable=True),
        sa.UniqueConstraint("order_id", "position", name="uq_order_lines_order_position"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_order_lines_order_id", "order_lines", ["order_id"])

    op.create_table(
        "ledger_postings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("entity_id", sa.String(32), nullable=False),
        sa.Column("entity_kind", sa.String(16), nullable=False),
        sa.Column("entity_name", sa.String(255), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("description", sa.String(255), nullable=False),
        sa.Column("invoice_ref", sa.String(32), nullable=True),
        sa.Column("cash_owed_by_entity", sa.Numeric(14, 2), nullable=False),
        sa.Column("cash_owed_to_entity", sa.Numeric(14, 2), nullable=False),
        sa.Column("material_owed_by_entity", sa.Numeric(12, 3), nullable=False),
        sa.Column("material_owed_to_entity", sa.Numeric(12, 3), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_ledger_postings_timestamp", "ledger_postings", ["timestamp"])
    op.create_index("ix_ledger_postings_invoice_ref", "ledger_postings", ["invoice_ref"])
    op.create_index("ix_ledger_postings_entity", "ledger_postings", ["entity_kind", "entity_id", "timestamp"])


def downgrade():
    op.drop_table("ledger_postings")
    op.drop_table("order_lines")
    op.drop_table("orders")
    op.drop_table("invoice_payments")
    op.drop_table("invoice_lines")
    op.drop_table("invoices")
    op.drop_table("artisans")
    op.drop_table("customers")
    op.drop_table("sold_products")
    op.drop_table("products")
    op.drop_table("categories")
    op.drop_table("sequence_counters")
    op.drop_table("rate_entries")
