"""Initial schema: the orders table.

Revision ID: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ── orders ────────────────────────────────────────────────────────
    op.create_table(
        "orders",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("stops", sa.JSON, nullable=False),
        sa.Column("driving_distances_m", sa.JSON, nullable=False),
        sa.Column("fare_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("fare_currency", sa.CHAR(3), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "ASSIGNING",
                "ONGOING",
                "COMPLETED",
                "CANCELLED",
                name="orderstatus",
            ),
            nullable=False,
        ),
        sa.Column("created_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("order_date_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ongoing_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("idx_orders_status", "orders", ["status"])
    op.create_index("idx_orders_created", "orders", ["created_time"])


def downgrade() -> None:
    op.drop_index("idx_orders_created", table_name="orders")
    op.drop_index("idx_orders_status", table_name="orders")
    op.drop_table("orders")
    op.execute("DROP TYPE IF EXISTS orderstatus")
