"""initial_schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

IN_FLIGHT_PREDICATE = "status IN ('PENDING', 'RUNNING')"


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('feeds',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('kind', sa.String(length=50), nullable=False),
        sa.Column('feed_url', sa.Text(), nullable=False),
        sa.Column('detail_feed_id', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('last_sync', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['detail_feed_id'], ['feeds.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_feeds_id'), 'feeds', ['id'], unique=False)
    op.create_index(op.f('ix_feeds_kind'), 'feeds', ['kind'], unique=False)

    op.create_table('projects',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('external_id', sa.String(length=255), nullable=False),
        sa.Column('client_name', sa.Text(), nullable=True),
        sa.Column('project_name', sa.Text(), nullable=True),
        sa.Column('budget', sa.Float(), nullable=True),
        sa.Column('spent', sa.Float(), nullable=True),
        sa.Column('hours_estimate', sa.Float(), nullable=True),
        sa.Column('hours_actual', sa.Float(), nullable=True),
        sa.Column('hours_remaining', sa.Float(), nullable=True),
        sa.Column('status', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('raw_data', sa.Text(), nullable=True),
        sa.Column('detail_raw_data', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_projects_id'), 'projects', ['id'], unique=False)
    op.create_index(op.f('ix_projects_external_id'), 'projects', ['external_id'], unique=True)
    op.create_index(op.f('ix_projects_status'), 'projects', ['status'], unique=False)
    op.create_index(op.f('ix_projects_is_active'), 'projects', ['is_active'], unique=False)

    op.create_table('opportunities',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('external_id', sa.String(length=255), nullable=False),
        sa.Column('opportunity_name', sa.Text(), nullable=True),
        sa.Column('company_name', sa.String(length=255), nullable=True),
        sa.Column('sales_rep', sa.String(length=255), nullable=True),
        sa.Column('stage', sa.String(length=255), nullable=True),
        sa.Column('expected_revenue', sa.Float(), nullable=True),
        sa.Column('close_date', sa.String(length=50), nullable=True),
        sa.Column('probability', sa.Integer(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('raw_data', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_opportunities_id'), 'opportunities', ['id'], unique=False)
    op.create_index(op.f('ix_opportunities_external_id'), 'opportunities', ['external_id'], unique=True)
    op.create_index(op.f('ix_opportunities_company_name'), 'opportunities', ['company_name'], unique=False)
    op.create_index(op.f('ix_opportunities_sales_rep'), 'opportunities', ['sales_rep'], unique=False)
    op.create_index(op.f('ix_opportunities_stage'), 'opportunities', ['stage'], unique=False)

    op.create_table('service_tickets',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('external_id', sa.String(length=255), nullable=False),
        sa.Column('summary', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=255), nullable=True),
        sa.Column('priority', sa.String(length=255), nullable=True),
        sa.Column('assigned_to', sa.String(length=255), nullable=True),
        sa.Column('company_name', sa.String(length=255), nullable=True),
        sa.Column('board_name', sa.String(length=255), nullable=True),
        sa.Column('created_date', sa.String(length=50), nullable=True),
        sa.Column('last_updated', sa.String(length=50), nullable=True),
        sa.Column('due_date', sa.String(length=50), nullable=True),
        sa.Column('hours_estimate', sa.Float(), nullable=True),
        sa.Column('hours_actual', sa.Float(), nullable=True),
        sa.Column('hours_remaining', sa.Float(), nullable=True),
        sa.Column('budget', sa.Float(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('raw_data', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_service_tickets_id'), 'service_tickets', ['id'], unique=False)
    op.create_index(op.f('ix_service_tickets_external_id'), 'service_tickets', ['external_id'], unique=True)
    for column in ('status', 'priority', 'assigned_to', 'company_name', 'board_name'):
        op.create_index(op.f(f'ix_service_tickets_{column}'), 'service_tickets', [column], unique=False)

    op.create_table('sync_runs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('kind', sa.String(length=50), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('triggered_by', sa.String(length=50), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('records_processed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('records_created', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('records_updated', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('records_unchanged', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_sync_runs_id'), 'sync_runs', ['id'], unique=False)
    op.create_index(op.f('ix_sync_runs_kind'), 'sync_runs', ['kind'], unique=False)
    op.create_index(op.f('ix_sync_runs_status'), 'sync_runs', ['status'], unique=False)
    # Una sola corrida en vuelo por tipo
    op.create_index(
        'uq_sync_runs_in_flight_kind',
        'sync_runs',
        ['kind'],
        unique=True,
        postgresql_where=sa.text(IN_FLIGHT_PREDICATE),
        sqlite_where=sa.text(IN_FLIGHT_PREDICATE),
    )

    op.create_table('sync_changes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sync_run_id', sa.Integer(), nullable=False),
        sa.Column('entity_type', sa.String(length=50), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=False),
        sa.Column('external_id', sa.String(length=255), nullable=True),
        sa.Column('change_type', sa.String(length=20), nullable=False),
        sa.Column('field_name', sa.String(length=100), nullable=True),
        sa.Column('old_value', sa.Text(), nullable=True),
        sa.Column('new_value', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(['sync_run_id'], ['sync_runs.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_sync_changes_id'), 'sync_changes', ['id'], unique=False)
    op.create_index(op.f('ix_sync_changes_sync_run_id'), 'sync_changes', ['sync_run_id'], unique=False)

    op.create_table('system_settings',
        sa.Column('key', sa.String(length=255), nullable=False),
        sa.Column('value', sa.JSON(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint('key')
    )
    op.create_index(op.f('ix_system_settings_key'), 'system_settings', ['key'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('system_settings')
    op.drop_table('sync_changes')
    op.drop_index('uq_sync_runs_in_flight_kind', table_name='sync_runs')
    op.drop_table('sync_runs')
    op.drop_table('service_tickets')
    op.drop_table('opportunities')
    op.drop_table('projects')
    op.drop_table('feeds')
