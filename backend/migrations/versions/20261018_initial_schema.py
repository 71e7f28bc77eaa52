"""Initial ShopSync schema: categories, inventory, sales, customers, loyalty

Revision ID: 20261018_initial_schema
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "categories",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("parent_id", sa.String(36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["parent_id"], ["categories.id"]),
        sa.PrimaryKeyConstraint("id"),
    )

    with op.batch_alter_table("categories", schema=None) as batch_op:
        batch_op.create_index("ix_categories_parent_id", ["parent_id"], unique=False)

    op.create_table(
        "products",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("category_id", sa.String(64), nullable=True),
        sa.Column("sub_category_id", sa.String(64), nullable=True),
        sa.Column("manufacturer", sa.String(128), nullable=False, server_default="N/A"),
        sa.Column("location", sa.String(128), nullable=False, server_default=""),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("purchase_price_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("sale_price_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("barcode", sa.String(64), nullable=True),
        sa.Column("image_url", sa.String(512), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    with op.batch_alter_table("products", schema=None) as batch_op:
        batch_op.create_index("ix_products_name", ["name"], unique=False)
        batch_op.create_index("ix_products_barcode", ["barcode"], unique=False)

    op.create_table(
        "customers",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("contact_number", sa.String(32), nullable=True),
        sa.Column("first_seen", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_seen", sa.DateTime(timezone=True), nullable=False),
        sa.Column("loyalty_points", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("tier_id", sa.String(64), nullable=True),
        sa.Column("balance_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("manual_visit_adjustment", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("service_frequency_value", sa.Integer(), nullable=True),
        sa.Column("service_frequency_unit", sa.String(8), nullable=True),
        sa.Column("next_service_date", sa.Date(), nullable=True),
        sa.Column("servicing_notes", sa.Text(), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.PrimaryKeyConstraint("id"),
    )

    with op.batch_alter_table("customers", schema=None) as batch_op:
        batch_op.create_index("ix_customers_last_seen", ["last_seen"], unique=False)

    op.create_table(
        "sales",
        sa.Column("id", sa.String(32), nullable=False),
        sa.Column("customer_id", sa.String(64), nullable=False),
        sa.Column("customer_name", sa.String(255), nullable=False),
        sa.Column("subtotal_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_item_discounts_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("overall_discount_value", sa.Numeric(14, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("overall_discount_type", sa.String(16), nullable=False, server_default="fixed"),
        sa.Column("overall_discount_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("tuning_charges_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("labor_charges_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("loyalty_discount_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("previous_balance_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("amount_paid_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("balance_due_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("payment_status", sa.String(16), nullable=False, server_default="UNPAID"),
        sa.Column("points_earned", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("redeemed_points", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("final_loyalty_points", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("promotion_applied", sa.JSON(), nullable=True),
        sa.Column("tier_applied", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.PrimaryKeyConstraint("id"),
    )

    with op.batch_alter_table("sales", schema=None) as batch_op:
        batch_op.create_index("ix_sales_customer_id", ["customer_id"], unique=False)
        batch_op.create_index("ix_sales_created_at", ["created_at"], unique=False)
        batch_op.create_index("ix_sales_payment_status", ["payment_status"], unique=False)
        batch_op.create_index("ix_sales_customer_created", ["customer_id", "created_at"], unique=False)

    op.create_table(
        "sale_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sale_id", sa.String(32), nullable=False),
        sa.Column("line_number", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_manual", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("original_price_cents", sa.Integer(), nullable=False),
        sa.Column("discount_value", sa.Numeric(14, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("discount_type", sa.String(16), nullable=False, server_default="fixed"),
        sa.Column("price_cents", sa.Integer(), nullable=False),
        sa.Column("purchase_price_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.ForeignKeyConstraint(["sale_id"], ["sales.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("sale_items", schema=None) as batch_op:
        batch_op.create_index("ix_sale_items_sale_id", ["sale_id"], unique=False)
        batch_op.create_index("ix_sale_items_product_id", ["product_id"], unique=False)

    op.create_table(
        "payments",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("customer_id", sa.String(64), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("notes", sa.String(255), nullable=True),
        sa.Column("balance_before_cents", sa.Integer(), nullable=False),
        sa.Column("balance_after_cents", sa.Integer(), nullable=False),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.PrimaryKeyConstraint("id"),
    )

    with op.batch_alter_table("payments", schema=None) as batch_op:
        batch_op.create_index("ix_payments_customer_id", ["customer_id"], unique=False)
        batch_op.create_index("ix_payments_paid_at", ["paid_at"], unique=False)

    op.create_table(
        "loyalty_transactions",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("customer_id", sa.String(64), nullable=False),
        sa.Column("transaction_type", sa.String(16), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.Column("sale_id", sa.String(32), nullable=True),
        sa.Column("reason", sa.String(255), nullable=True),
        sa.Column("points_before", sa.Integer(), nullable=False),
        sa.Column("points_after", sa.Integer(), nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.PrimaryKeyConstraint("id"),
    )

    with op.batch_alter_table("loyalty_transactions", schema=None) as batch_op:
        batch_op.create_index("ix_loyalty_transactions_customer_id", ["customer_id"], unique=False)
        batch_op.create_index("ix_loyalty_transactions_transaction_type", ["transaction_type"], unique=False)
        batch_op.create_index("ix_loyalty_transactions_sale_id", ["sale_id"], unique=False)
        batch_op.create_index("ix_loyalty_transactions_occurred_at", ["occurred_at"], unique=False)
        batch_op.create_index("ix_loyalty_txns_customer_occurred", ["customer_id", "occurred_at"], unique=False)

    op.create_table(
        "earning_rules",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("min_spend_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("max_spend_cents", sa.Integer(), nullable=True),
        sa.Column("points_per_hundred", sa.Float(), nullable=False, server_default=sa.text("1.0")),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("earning_rules", schema=None) as batch_op:
        batch_op.create_index("ix_earning_rules_position", ["position"], unique=False)

    op.create_table(
        "promotions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("multiplier", sa.Float(), nullable=False, server_default=sa.text("1.0")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "customer_tiers",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("min_visits", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("min_spend_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("period_value", sa.Integer(), nullable=False, server_default=sa.text("12")),
        sa.Column("period_unit", sa.String(8), nullable=False, server_default="months"),
        sa.Column("points_multiplier", sa.Float(), nullable=False, server_default=sa.text("1.0")),
        sa.Column("rank", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.PrimaryKeyConstraint("id"),
    )

    with op.batch_alter_table("customer_tiers", schema=None) as batch_op:
        batch_op.create_index("ix_customer_tiers_rank", ["rank"], unique=False)

    op.create_table(
        "loyalty_settings",
        sa.Column("key", sa.String(128), nullable=False),
        sa.Column("value", sa.JSON(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("key"),
    )


def downgrade():
    op.drop_table("loyalty_settings")

    with op.batch_alter_table("customer_tiers", schema=None) as batch_op:
        batch_op.drop_index("ix_customer_tiers_rank")
    op.drop_table("customer_tiers")

    op.drop_table("promotions")

    with op.batch_alter_table("earning_rules", schema=None) as batch_op:
        batch_op.drop_index("ix_earning_rules_position")
    op.drop_table("earning_rules")

    with op.batch_alter_table("loyalty_transactions", schema=None) as batch_op:
        batch_op.drop_index("ix_loyalty_txns_customer_occurred")
        batch_op.drop_index("ix_loyalty_transactions_occurred_at")
        batch_op.drop_index("ix_loyalty_transactions_sale_id")
        batch_op.drop_index("ix_loyalty_transactions_transaction_type")
        batch_op.drop_index("ix_loyalty_transactions_customer_id")
    op.drop_table("loyalty_transactions")

    with op.batch_alter_table("payments", schema=None) as batch_op:
        batch_op.drop_index("ix_payments_paid_at")
        batch_op.drop_index("ix_payments_customer_id")
    op.drop_table("payments")

    with op.batch_alter_table("sale_items", schema=None) as batch_op:
        batch_op.drop_index("ix_sale_items_product_id")
        batch_op.drop_index("ix_sale_items_sale_id")
    op.drop_table("sale_items")

    with op.batch_alter_table("sales", schema=None) as batch_op:
        batch_op.drop_index("ix_sales_customer_created")
        batch_op.drop_index("ix_sales_payment_status")
        batch_op.drop_index("ix_sales_created_at")
        batch_op.drop_index("ix_sales_customer_id")
    op.drop_table("sales")

    with op.batch_alter_table("customers", schema=None) as batch_op:
        batch_op.drop_index("ix_customers_last_seen")
    op.drop_table("customers")

    with op.batch_alter_table("products", schema=None) as batch_op:
        batch_op.drop_index("ix_products_barcode")
        batch_op.drop_index("ix_products_name")
    op.drop_table("products")

    with op.batch_alter_table("categories", schema=None) as batch_op:
        batch_op.drop_index("ix_categories_parent_id")
    op.drop_table("categories")
