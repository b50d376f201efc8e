"""create_workflow_tables

Revision ID: 7d2e41c09a13
Revises:
Create Date: 2026-10-19 09:12:40.118204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '7d2e41c09a13'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'employees',
        sa.Column('id', sa.String(64), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('department', sa.String(255), nullable=False),
        sa.Column('job_title', sa.String(255), nullable=False),
        sa.Column('reports_to', sa.String(64), nullable=True),
        sa.Column('system_role', sa.String(50), nullable=False),
        sa.Column('balances', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('delegate_id', sa.String(64), nullable=True),
        sa.Column('delegate_name', sa.String(255), nullable=True),
        sa.Column('delegation_until', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['reports_to'], ['employees.id']),
        sa.ForeignKeyConstraint(['delegate_id'], ['employees.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_employees_email', 'employees', ['email'], unique=True)
    op.create_index('ix_employees_reports_to', 'employees', ['reports_to'])
    op.create_index('ix_employees_system_role', 'employees', ['system_role'])

    op.create_table(
        'service_definitions',
        sa.Column('id', sa.String(100), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('icon', sa.String(100), nullable=False),
        sa.Column('color', sa.String(50), nullable=False),
        sa.Column('fields', sa.JSON(), nullable=False),
        sa.Column('approval_steps', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'requests',
        sa.Column('id', sa.String(64), nullable=False),
        sa.Column('employee_id', sa.String(64), nullable=False),
        sa.Column('employee_name', sa.String(255), nullable=False),
        sa.Column('department', sa.String(255), nullable=False),
        sa.Column('service_id', sa.String(100), nullable=False),
        sa.Column('service_title', sa.String(255), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('current_step_index', sa.Integer(), nullable=False),
        sa.Column('assigned_to', sa.String(64), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('approval_steps', sa.JSON(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id']),
        sa.ForeignKeyConstraint(['service_id'], ['service_definitions.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_requests_employee_id', 'requests', ['employee_id'])
    op.create_index('ix_requests_service_id', 'requests', ['service_id'])
    op.create_index('ix_requests_status', 'requests', ['status'])
    op.create_index('ix_requests_assigned_to', 'requests', ['assigned_to'])

    op.create_table(
        'request_history',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('request_id', sa.String(64), nullable=False),
        sa.Column('seq', sa.Integer(), nullable=False),
        sa.Column('actor_id', sa.String(64), nullable=False),
        sa.Column('actor_name', sa.String(255), nullable=False),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('idempotency_key', sa.String(128), nullable=True),
        sa.ForeignKeyConstraint(['request_id'], ['requests.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('request_id', 'seq', name='uq_request_history_seq'),
        sa.UniqueConstraint('request_id', 'idempotency_key', name='uq_request_history_idempotency_key'),
    )
    op.create_index('ix_request_history_request_id', 'request_history', ['request_id'])


def downgrade() -> None:
    op.drop_index('ix_request_history_request_id', table_name='request_history')
    op.drop_table('request_history')
    op.drop_index('ix_requests_assigned_to', table_name='requests')
    op.drop_index('ix_requests_status', table_name='requests')
    op.drop_index('ix_requests_service_id', table_name='requests')
    op.drop_index('ix_requests_employee_id', table_name='requests')
    op.drop_table('requests')
    op.drop_table('service_definitions')
    op.drop_index('ix_employees_system_role', table_name='employees')
    op.drop_index('ix_employees_reports_to', table_name='employees')
    op.drop_index('ix_employees_email', table_name='employees')
    op.drop_table('employees')
