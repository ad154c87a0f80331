"""initial_schema

Revision ID: 3f9a1c2d7e10
Revises:
Create Date: 2026-10-19 09:12:44.518210+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3f9a1c2d7e10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # 1. users (self FK for created_by)
    op.create_table('users',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('username', sa.String(length=100), nullable=False),
    sa.Column('full_name', sa.String(length=200), nullable=False),
    sa.Column('phone_number', sa.String(length=30), nullable=True),
    sa.Column('role', sa.String(length=50), nullable=False),
    sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
    sa.Column('created_by', sa.UUID(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.Column('updated_at', sa.DateTime(), nullable=False),
    sa.CheckConstraint("role IN ('site_engineer','manager','purchase_officer')", name='chk_user_role'),
    sa.ForeignKeyConstraint(['created_by'], ['users.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('username')
    )
    op.create_index('idx_users_role', 'users', ['role'], unique=False)

    # 2. sites
    op.create_table('sites',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('name', sa.String(length=200), nullable=False),
    sa.Column('code', sa.String(length=50), nullable=True),
    sa.Column('address', sa.Text(), nullable=True),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('type', sa.String(length=20), nullable=False, server_default='site'),
    sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
    sa.Column('created_by', sa.UUID(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.Column('updated_at', sa.DateTime(), nullable=False),
    sa.CheckConstraint("type IN ('site','inventory','other')", name='chk_site_type'),
    sa.ForeignKeyConstraint(['created_by'], ['users.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_sites_name', 'sites', ['name'], unique=False)
    op.create_index('idx_sites_active', 'sites', ['is_active'], unique=False)

    # 3. user_sites (assignment of site engineers to sites)
    op.create_table('user_sites',
    sa.Column('user_id', sa.UUID(), nullable=False),
    sa.Column('site_id', sa.UUID(), nullable=False),
    sa.ForeignKeyConstraint(['site_id'], ['sites.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('user_id', 'site_id')
    )

    # 4. vendors
    op.create_table('vendors',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('company_name', sa.String(length=200), nullable=False),
    sa.Column('contact_name', sa.String(length=200), nullable=True),
    sa.Column('email', sa.String(length=255), nullable=False),
    sa.Column('phone', sa.String(length=30), nullable=False),
    sa.Column('gst_number', sa.String(length=15), nullable=False),
    sa.Column('address', sa.Text(), nullable=False),
    sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
    sa.Column('created_by', sa.UUID(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.Column('updated_at', sa.DateTime(), nullable=False),
    sa.ForeignKeyConstraint(['created_by'], ['users.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_vendors_company_name', 'vendors', ['company_name'], unique=False)
    op.create_index('idx_vendors_active', 'vendors', ['is_active'], unique=False)

    # 5. inventory + inventory_vendors
    op.create_table('inventory',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('item_name', sa.String(length=300), nullable=False),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('hsn_sac_code', sa.String(length=20), nullable=True),
    sa.Column('unit', sa.String(length=30), nullable=True),
    sa.Column('central_stock', sa.Integer(), nullable=False, server_default='0'),
    sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
    sa.Column('created_by', sa.UUID(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.Column('updated_at', sa.DateTime(), nullable=False),
    sa.CheckConstraint('central_stock >= 0', name='chk_inventory_stock'),
    sa.ForeignKeyConstraint(['created_by'], ['users.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_inventory_item_name', 'inventory', ['item_name'], unique=False)
    op.create_index('idx_inventory_active', 'inventory', ['is_active'], unique=False)

    op.create_table('inventory_vendors',
    sa.Column('inventory_id', sa.UUID(), nullable=False),
    sa.Column('vendor_id', sa.UUID(), nullable=False),
    sa.ForeignKeyConstraint(['inventory_id'], ['inventory.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['vendor_id'], ['vendors.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('inventory_id', 'vendor_id')
    )

    # 6. requests
    op.create_table('requests',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('request_number', sa.String(length=20), nullable=False),
    sa.Column('item_order', sa.Integer(), nullable=True),
    sa.Column('created_by', sa.UUID(), nullable=False),
    sa.Column('site_id', sa.UUID(), nullable=False),
    sa.Column('item_name', sa.String(length=300), nullable=False),
    sa.Column('description', sa.Text(), nullable=False),
    sa.Column('specs_brand', sa.String(length=300), nullable=True),
    sa.Column('quantity', sa.Integer(), nullable=False),
    sa.Column('unit', sa.String(length=30), nullable=False),
    sa.Column('required_by', sa.DateTime(), nullable=False),
    sa.Column('is_urgent', sa.Boolean(), nullable=False, server_default=sa.false()),
    sa.Column('notes', sa.Text(), nullable=True),
    sa.Column('status', sa.String(length=30), nullable=False),
    sa.Column('direct_action', sa.String(length=20), nullable=True),
    sa.Column('approved_by', sa.UUID(), nullable=True),
    sa.Column('approved_at', sa.DateTime(), nullable=True),
    sa.Column('rejection_reason', sa.Text(), nullable=True),
    sa.Column('delivery_marked_at', sa.DateTime(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.Column('updated_at', sa.DateTime(), nullable=False),
    sa.CheckConstraint('quantity > 0', name='chk_request_qty'),
    sa.CheckConstraint(
        "status IN ('draft','pending','approved','rejected','recheck','ready_for_cc',"
        "'cc_pending','cc_approved','cc_rejected','ready_for_po','pending_po','rejected_po',"
        "'ready_for_delivery','delivery_stage','delivered')",
        name='chk_request_status',
    ),
    sa.CheckConstraint(
        "direct_action IS NULL OR direct_action IN ('po','delivery')",
        name='chk_request_direct_action',
    ),
    sa.ForeignKeyConstraint(['approved_by'], ['users.id'], ),
    sa.ForeignKeyConstraint(['created_by'], ['users.id'], ),
    sa.ForeignKeyConstraint(['site_id'], ['sites.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_requests_number', 'requests', ['request_number'], unique=False)
    op.create_index('idx_requests_created_by', 'requests', ['created_by'], unique=False)
    op.create_index('idx_requests_site', 'requests', ['site_id'], unique=False)
    op.create_index('idx_requests_status', 'requests', ['status'], unique=False)
    op.create_index('idx_requests_created_at', 'requests', ['created_at'], unique=False)

    # 7. cost_comparisons + vendor_quotes
    op.create_table('cost_comparisons',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('request_id', sa.UUID(), nullable=False),
    sa.Column('created_by', sa.UUID(), nullable=False),
    sa.Column('status', sa.String(length=20), nullable=False, server_default='draft'),
    sa.Column('selected_vendor_id', sa.UUID(), nullable=True),
    sa.Column('manager_notes', sa.Text(), nullable=True),
    sa.Column('is_direct_delivery', sa.Boolean(), nullable=False, server_default=sa.false()),
    sa.Column('inventory_fulfillment_quantity', sa.Integer(), nullable=True),
    sa.Column('purchase_quantity', sa.Integer(), nullable=True),
    sa.Column('approved_by', sa.UUID(), nullable=True),
    sa.Column('approved_at', sa.DateTime(), nullable=True),
    sa.Column('rejected_at', sa.DateTime(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.Column('updated_at', sa.DateTime(), nullable=False),
    sa.CheckConstraint(
        "status IN ('draft','cc_pending','cc_approved','cc_rejected')", name='chk_cc_status'
    ),
    sa.ForeignKeyConstraint(['approved_by'], ['users.id'], ),
    sa.ForeignKeyConstraint(['created_by'], ['users.id'], ),
    sa.ForeignKeyConstraint(['request_id'], ['requests.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['selected_vendor_id'], ['vendors.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('request_id', name='uq_cost_comparison_request')
    )
    op.create_index('idx_cc_status', 'cost_comparisons', ['status'], unique=False)

    op.create_table('vendor_quotes',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('cost_comparison_id', sa.UUID(), nullable=False),
    sa.Column('position', sa.Integer(), nullable=False),
    sa.Column('vendor_id', sa.UUID(), nullable=False),
    sa.Column('unit_price', sa.Numeric(precision=14, scale=2), nullable=False),
    sa.Column('amount', sa.Numeric(precision=14, scale=2), nullable=True),
    sa.Column('unit', sa.String(length=30), nullable=True),
    sa.Column('discount_percent', sa.Numeric(precision=5, scale=2), nullable=True),
    sa.Column('gst_percent', sa.Numeric(precision=5, scale=2), nullable=True),
    sa.CheckConstraint('unit_price >= 0', name='chk_quote_price'),
    sa.ForeignKeyConstraint(['cost_comparison_id'], ['cost_comparisons.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['vendor_id'], ['vendors.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('cost_comparison_id', 'vendor_id', name='uq_quote_vendor')
    )

    # 8. purchase_orders
    op.create_table('purchase_orders',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('po_number', sa.String(length=50), nullable=False),
    sa.Column('request_id', sa.UUID(), nullable=False),
    sa.Column('vendor_id', sa.UUID(), nullable=False),
    sa.Column('created_by', sa.UUID(), nullable=False),
    sa.Column('item_description', sa.Text(), nullable=False),
    sa.Column('quantity', sa.Integer(), nullable=False),
    sa.Column('unit', sa.String(length=30), nullable=False),
    sa.Column('hsn_sac_code', sa.String(length=20), nullable=True),
    sa.Column('unit_rate', sa.Numeric(precision=14, scale=2), nullable=False),
    sa.Column('discount_percent', sa.Numeric(precision=5, scale=2), nullable=False, server_default='0'),
    sa.Column('gst_percent', sa.Numeric(precision=5, scale=2), nullable=False, server_default='0'),
    sa.Column('total_amount', sa.Numeric(precision=16, scale=2), nullable=False),
    sa.Column('notes', sa.Text(), nullable=True),
    sa.Column('status', sa.String(length=30), nullable=False, server_default='pending_approval'),
    sa.Column('approved_by', sa.UUID(), nullable=True),
    sa.Column('approved_at', sa.DateTime(), nullable=True),
    sa.Column('rejection_reason', sa.Text(), nullable=True),
    sa.Column('expected_delivery_date', sa.DateTime(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.Column('updated_at', sa.DateTime(), nullable=False),
    sa.CheckConstraint('quantity > 0', name='chk_po_qty'),
    sa.CheckConstraint('unit_rate > 0', name='chk_po_rate'),
    sa.CheckConstraint('gst_percent >= 0 AND gst_percent <= 100', name='chk_po_gst'),
    sa.CheckConstraint(
        "status IN ('pending_approval','ordered','rejected','cancelled','delivered')",
        name='chk_po_status',
    ),
    sa.ForeignKeyConstraint(['approved_by'], ['users.id'], ),
    sa.ForeignKeyConstraint(['created_by'], ['users.id'], ),
    sa.ForeignKeyConstraint(['request_id'], ['requests.id'], ),
    sa.ForeignKeyConstraint(['vendor_id'], ['vendors.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('po_number')
    )
    op.create_index('idx_po_request', 'purchase_orders', ['request_id'], unique=False)
    op.create_index('idx_po_vendor', 'purchase_orders', ['vendor_id'], unique=False)
    op.create_index('idx_po_status', 'purchase_orders', ['status'], unique=False)

    # 9. request_notes
    op.create_table('request_notes',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('request_number', sa.String(length=20), nullable=False),
    sa.Column('user_id', sa.UUID(), nullable=False),
    sa.Column('role', sa.String(length=50), nullable=False),
    sa.Column('status', sa.String(length=30), nullable=True),
    sa.Column('type', sa.String(length=10), nullable=False, server_default='note'),
    sa.Column('content', sa.Text(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.CheckConstraint("type IN ('note','log')", name='chk_note_type'),
    sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_notes_request_number', 'request_notes', ['request_number'], unique=False)
    op.create_index('idx_notes_created', 'request_notes', [sa.text('created_at DESC')], unique=False)


def downgrade() -> None:
    op.drop_index('idx_notes_created', table_name='request_notes')
    op.drop_index('idx_notes_request_number', table_name='request_notes')
    op.drop_table('request_notes')
    op.drop_index('idx_po_status', table_name='purchase_orders')
    op.drop_index('idx_po_vendor', table_name='purchase_orders')
    op.drop_index('idx_po_request', table_name='purchase_orders')
    op.drop_table('purchase_orders')
    op.drop_table('vendor_quotes')
    op.drop_index('idx_cc_status', table_name='cost_comparisons')
    op.drop_table('cost_comparisons')
    op.drop_index('idx_requests_created_at', table_name='requests')
    op.drop_index('idx_requests_status', table_name='requests')
    op.drop_index('idx_requests_site', table_name='requests')
    op.drop_index('idx_requests_created_by', table_name='requests')
    op.drop_index('idx_requests_number', table_name='requests')
    op.drop_table('requests')
    op.drop_table('inventory_vendors')
    op.drop_index('idx_inventory_active', table_name='inventory')
    op.drop_index('idx_inventory_item_name', table_name='inventory')
    op.drop_table('inventory')
    op.drop_index('idx_vendors_active', table_name='vendors')
    op.drop_index('idx_vendors_company_name', table_name='vendors')
    op.drop_table('vendors')
    op.drop_table('user_sites')
    op.drop_index('idx_sites_active', table_name='sites')
    op.drop_index('idx_sites_name', table_name='sites')
    op.drop_table('sites')
    op.drop_index('idx_users_role', table_name='users')
    op.drop_table('users')
