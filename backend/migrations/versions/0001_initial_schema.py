"""initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-03-02 00:00:00.000000

Creates the complete schema:
- users, session_tokens: staff accounts and bearer sessions
- inventory_units, plots: units and their individually sellable plots
- plot_assignments: immutable allocation records
- inventory_requests, inventory_request_plots: salesperson requests for plots
- investors, inventory_payments: the funding ledger
- customers, deals, deal_plots: plot consumption by sales
- ledger_events: append-only audit spine
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
    ]


def upgrade():
    # ============================================================================
    # users / session_tokens
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=32), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email', name='uq_users_email'),
        sa.CheckConstraint("role IN ('admin', 'salesperson')", name='ck_users_role'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_email', 'users', ['email'])

    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=255), nullable=True),
        sa.Column('user_agent', sa.String(length=255), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('token_hash', name='uq_session_tokens_hash'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_user_revoked', 'session_tokens', ['user_id', 'is_revoked'])

    # ============================================================================
    # inventory_units / plots / plot_assignments
    # ============================================================================
    op.create_table(
        'inventory_units',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('category', sa.String(length=32), nullable=False),
        sa.Column('address', sa.Text(), nullable=False),
        sa.Column('price_cents', sa.BigInteger(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('plot_numbers_input', sa.Text(), nullable=True),
        sa.Column('assigned_to', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['assigned_to'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint("category IN ('plot', 'house', 'shop_office')", name='ck_inventory_units_category'),
        sa.CheckConstraint("status IN ('available', 'assigned', 'paid', 'sold')", name='ck_inventory_units_status'),
        sa.CheckConstraint('price_cents >= 0', name='ck_inventory_units_price_nonneg'),
        sa.CheckConstraint('quantity >= 0', name='ck_inventory_units_quantity_nonneg'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_inventory_units_status', 'inventory_units', ['status'])

    op.create_table(
        'plots',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('inventory_unit_id', sa.Integer(), nullable=False),
        sa.Column('plot_number', sa.String(length=64), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('assigned_to', sa.Integer(), nullable=True),
        sa.Column('assigned_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['inventory_unit_id'], ['inventory_units.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['assigned_to'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('inventory_unit_id', 'plot_number', name='uq_plots_unit_number'),
        sa.CheckConstraint(
            "status IN ('available', 'assigned', 'paid', 'used_in_deal', 'sold')", name='ck_plots_status'
        ),
        sqlite_autoincrement=True
    )
    op.create_index('ix_plots_unit_status', 'plots', ['inventory_unit_id', 'status'])
    op.create_index('ix_plots_assigned_to', 'plots', ['assigned_to'])

    op.create_table(
        'plot_assignments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('inventory_unit_id', sa.Integer(), nullable=False),
        sa.Column('salesperson_id', sa.Integer(), nullable=False),
        sa.Column('assignment_date', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('total_plots_assigned', sa.Integer(), nullable=False),
        sa.Column('total_amount_cents', sa.BigInteger(), nullable=False),
        sa.Column('amount_paid_cents', sa.BigInteger(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['inventory_unit_id'], ['inventory_units.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['salesperson_id'], ['users.id']),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('total_plots_assigned > 0', name='ck_plot_assignments_count_positive'),
        sa.CheckConstraint('amount_paid_cents >= 0', name='ck_plot_assignments_paid_nonneg'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_plot_assignments_unit_sp', 'plot_assignments', ['inventory_unit_id', 'salesperson_id'])

    # ============================================================================
    # inventory_requests / inventory_request_plots
    # ============================================================================
    op.create_table(
        'inventory_requests',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('inventory_unit_id', sa.Integer(), nullable=False),
        sa.Column('salesperson_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('admin_notes', sa.Text(), nullable=True),
        sa.Column('decided_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('decided_by_user_id', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['inventory_unit_id'], ['inventory_units.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['salesperson_id'], ['users.id']),
        sa.ForeignKeyConstraint(['decided_by_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')", name='ck_inventory_requests_status'
        ),
        sqlite_autoincrement=True
    )
    op.create_index('ix_inventory_requests_unit_status', 'inventory_requests', ['inventory_unit_id', 'status'])
    op.create_index('ix_inventory_requests_salesperson', 'inventory_requests', ['salesperson_id'])

    op.create_table(
        'inventory_request_plots',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('request_id', sa.Integer(), nullable=False),
        sa.Column('plot_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['request_id'], ['inventory_requests.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['plot_id'], ['plots.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('request_id', 'plot_id', name='uq_inventory_request_plots'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_inventory_request_plots_plot', 'inventory_request_plots', ['plot_id'])

    # ============================================================================
    # investors / inventory_payments: the funding ledger
    # ============================================================================
    op.create_table(
        'investors',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('salesperson_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=64), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('total_invested_cents', sa.BigInteger(), nullable=False),
        sa.Column('paid_amount_cents', sa.BigInteger(), nullable=False),
        sa.Column('remaining_balance_cents', sa.BigInteger(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['salesperson_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('total_invested_cents >= 0', name='ck_investors_total_nonneg'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_investors_salesperson', 'investors', ['salesperson_id'])

    op.create_table(
        'inventory_payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('inventory_unit_id', sa.Integer(), nullable=False),
        sa.Column('plot_id', sa.Integer(), nullable=True),
        sa.Column('investor_id', sa.Integer(), nullable=True),
        sa.Column('salesperson_id', sa.Integer(), nullable=False),
        sa.Column('amount_cents', sa.BigInteger(), nullable=False),
        sa.Column('payment_date', sa.Date(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['inventory_unit_id'], ['inventory_units.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['plot_id'], ['plots.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['investor_id'], ['investors.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['salesperson_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('amount_cents > 0', name='ck_inventory_payments_amount_positive'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_inventory_payments_unit', 'inventory_payments', ['inventory_unit_id'])
    op.create_index('ix_inventory_payments_plot', 'inventory_payments', ['plot_id'])
    op.create_index('ix_inventory_payments_investor', 'inventory_payments', ['investor_id'])
    op.create_index('ix_inventory_payments_salesperson', 'inventory_payments', ['salesperson_id'])

    # ============================================================================
    # customers / deals / deal_plots
    # ============================================================================
    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('cnic', sa.String(length=32), nullable=True),
        sa.Column('phone_number', sa.String(length=64), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['created_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_customers_created_by', 'customers', ['created_by'])

    op.create_table(
        'deals',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('salesperson_id', sa.Integer(), nullable=False),
        sa.Column('inventory_unit_id', sa.Integer(), nullable=True),
        sa.Column('property_type', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('original_price_cents', sa.BigInteger(), nullable=True),
        sa.Column('sale_price_cents', sa.BigInteger(), nullable=True),
        sa.Column('demand_price_cents', sa.BigInteger(), nullable=True),
        sa.Column('profit_cents', sa.BigInteger(), nullable=True),
        sa.Column('profit_percentage', sa.Numeric(10, 2), nullable=True),
        sa.Column('plot_info', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['salesperson_id'], ['users.id']),
        sa.ForeignKeyConstraint(['inventory_unit_id'], ['inventory_units.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint("status IN ('in_progress', 'deal_done', 'deal_not_done')", name='ck_deals_status'),
        sa.CheckConstraint("property_type IN ('house', 'plot', 'shop_office')", name='ck_deals_property_type'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_deals_salesperson', 'deals', ['salesperson_id'])
    op.create_index('ix_deals_unit', 'deals', ['inventory_unit_id'])

    op.create_table(
        'deal_plots',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('deal_id', sa.Integer(), nullable=False),
        sa.Column('plot_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['deal_id'], ['deals.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['plot_id'], ['plots.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('deal_id', 'plot_id', name='uq_deal_plots'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_deal_plots_plot', 'deal_plots', ['plot_id'])

    # ============================================================================
    # ledger_events: append-only audit spine
    # ============================================================================
    op.create_table(
        'ledger_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('entity_type', sa.String(length=64), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=False),
        sa.Column('actor_user_id', sa.Integer(), nullable=True),
        sa.Column('inventory_unit_id', sa.Integer(), nullable=True),
        sa.Column('plot_id', sa.Integer(), nullable=True),
        sa.Column('investor_id', sa.Integer(), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('payload', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['actor_user_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_ledger_events_occurred', 'ledger_events', ['occurred_at'])
    op.create_index('ix_ledger_events_entity', 'ledger_events', ['entity_type', 'entity_id'])
    op.create_index('ix_ledger_events_unit', 'ledger_events', ['inventory_unit_id'])


def downgrade():
    op.drop_table('ledger_events')
    op.drop_table('deal_plots')
    op.drop_table('deals')
    op.drop_table('customers')
    op.drop_table('inventory_payments')
    op.drop_table('investors')
    op.drop_table('inventory_request_plots')
    op.drop_table('inventory_requests')
    op.drop_table('plot_assignments')
    op.drop_table('plots')
    op.drop_table('inventory_units')
    op.drop_table('session_tokens')
    op.drop_table('users')
