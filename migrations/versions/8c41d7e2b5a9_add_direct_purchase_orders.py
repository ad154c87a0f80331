"""add_direct_purchase_orders

Revision ID: 8c41d7e2b5a9
Revises: 3f9a1c2d7e10
Create Date: 2026-10-19 14:05:00.000000+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "8c41d7e2b5a9"
down_revision: Union[str, None] = "3f9a1c2d7e10"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.alter_column("purchase_orders", "request_id", existing_type=sa.UUID(), nullable=True)
    op.add_column("purchase_orders", sa.Column("delivery_site_id", sa.UUID(), nullable=True))
    op.add_column(
        "purchase_orders",
        sa.Column("is_direct", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.add_column("purchase_orders", sa.Column("per_unit_basis", sa.Integer(), nullable=True))
    op.add_column("purchase_orders", sa.Column("per_unit_basis_unit", sa.String(length=30), nullable=True))
    op.add_column("purchase_orders", sa.Column("valid_till", sa.DateTime(), nullable=True))
    op.create_foreign_key(
        "fk_po_delivery_site", "purchase_orders", "sites", ["delivery_site_id"], ["id"]
    )
    op.create_check_constraint(
        "chk_po_destination",
        "purchase_orders",
        "request_id IS NOT NULL OR delivery_site_id IS NOT NULL",
    )
    op.create_check_constraint(
        "chk_po_basis", "purchase_orders", "per_unit_basis IS NULL OR per_unit_basis > 0"
    )
    op.create_index("idx_po_is_direct", "purchase_orders", ["is_direct"], unique=False)


def downgrade() -> None:
    op.drop_index("idx_po_is_direct", table_name="purchase_orders")
    op.drop_constraint("chk_po_basis", "purchase_orders", type_="check")
    op.drop_constraint("chk_po_destination", "purchase_orders", type_="check")
    op.drop_constraint("fk_po_delivery_site", "purchase_orders", type_="foreignkey")
    op.drop_column("purchase_orders", "valid_till")
    op.drop_column("purchase_orders", "per_unit_basis_unit")
    op.drop_column("purchase_orders", "per_unit_basis")
    op.drop_column("purchase_orders", "is_direct")
    op.drop_column("purchase_orders", "delivery_site_id")
    op.execute("DELETE FROM purchase_orders WHERE request_id IS NULL")
    op.alter_column("purchase_orders", "request_id", existing_type=sa.UUID(), nullable=False)
