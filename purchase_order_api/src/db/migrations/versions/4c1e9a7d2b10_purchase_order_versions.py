"""Purchase order version store.

- suppliers
- purchase_orders (append-only header versions; max(id) per po_number is current)
- purchase_order_lines (whole-set replaced per header version)
- units_of_measurement (unit label suggestion catalogue)
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "4c1e9a7d2b10"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _money(name: str) -> sa.Column:
    return sa.Column(name, sa.Numeric(18, 2), nullable=True)


def upgrade() -> None:
    op.create_table(
        "suppliers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("supplier_code", sa.Text(), nullable=False),
        sa.Column("supplier_name", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("supplier_code", name="uq_suppliers_supplier_code"),
    )

    op.create_table(
        "purchase_orders",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("po_number", sa.Text(), nullable=False),
        sa.Column("order_book", sa.Text(), nullable=True),
        sa.Column("order_sheet_no", sa.Text(), nullable=True),
        sa.Column("supplier_id", sa.Integer(), nullable=True),
        sa.Column("supplier_code", sa.Text(), nullable=True),
        sa.Column("supplier_name", sa.Text(), nullable=True),
        sa.Column("order_date", sa.Date(), nullable=True),
        sa.Column("cost_code", sa.Text(), nullable=True),
        sa.Column("cost_code_description", sa.Text(), nullable=True),
        sa.Column("terms", sa.Text(), nullable=True),
        sa.Column("reference", sa.Text(), nullable=True),
        sa.Column("order_type", sa.Text(), server_default="standard", nullable=False),
        _money("subtotal"),
        _money("exclusive_amount"),
        sa.Column("vat_percent", sa.Numeric(7, 3), nullable=True),
        _money("vat_amount"),
        sa.Column("misc1_label", sa.Text(), nullable=True),
        _money("misc1_amount"),
        sa.Column("misc2_label", sa.Text(), nullable=True),
        _money("misc2_amount"),
        _money("total_amount"),
        sa.Column("created_by", sa.Text(), nullable=True),
        sa.Column("source_filename", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(
            ["supplier_id"], ["suppliers.id"],
            name="fk_purchase_orders_supplier_id_suppliers", ondelete="SET NULL",
        ),
        sa.CheckConstraint(
            "order_type IN ('standard', 'transactional')",
            name="ck_purchase_orders_order_type",
        ),
    )
    op.create_index("ix_purchase_orders_po_number", "purchase_orders", ["po_number"])
    op.create_index("ix_purchase_orders_order_book", "purchase_orders", ["order_book"])

    op.create_table(
        "purchase_order_lines",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("purchase_order_id", sa.Integer(), nullable=False),
        sa.Column("po_number", sa.Text(), nullable=True),
        sa.Column("supplier_code", sa.Text(), nullable=True),
        sa.Column("supplier_name", sa.Text(), nullable=True),
        sa.Column("line_no", sa.Integer(), nullable=False),
        sa.Column("line_type", sa.Text(), server_default="standard", nullable=False),
        sa.Column("is_vatable", sa.Boolean(), nullable=True),
        sa.Column("item_code", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("quantity", sa.Numeric(18, 4), nullable=True),
        sa.Column("unit", sa.Text(), nullable=True),
        sa.Column("unit_price", sa.Numeric(18, 4), nullable=True),
        sa.Column("discount_percent", sa.Numeric(7, 3), nullable=True),
        _money("net_price"),
        sa.Column("line_date", sa.Date(), nullable=True),
        _money("deposit_amount"),
        _money("ex_vat_amount"),
        _money("line_vat_amount"),
        _money("line_total_amount"),
        sa.ForeignKeyConstraint(
            ["purchase_order_id"], ["purchase_orders.id"],
            name="fk_purchase_order_lines_purchase_order_id_purchase_orders", ondelete="CASCADE",
        ),
    )
    op.create_index(
        "ix_purchase_order_lines_purchase_order_id", "purchase_order_lines", ["purchase_order_id"]
    )

    op.create_table(
        "units_of_measurement",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("unit_label", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("unit_label", name="uq_units_of_measurement_unit_label"),
    )


def downgrade() -> None:
    op.drop_table("units_of_measurement")
    op.drop_index("ix_purchase_order_lines_purchase_order_id", table_name="purchase_order_lines")
    op.drop_table("purchase_order_lines")
    op.drop_index("ix_purchase_orders_order_book", table_name="purchase_orders")
    op.drop_index("ix_purchase_orders_po_number", table_name="purchase_orders")
    op.drop_table("purchase_orders")
    op.drop_table("suppliers")
