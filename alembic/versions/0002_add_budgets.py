"""add budgets table

Revision ID: 0002_add_budgets
Revises: 0001_initial_schema
Create Date: 2026-10-17

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0002_add_budgets'
down_revision = '0001_initial_schema'
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        'budgets',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column('user_id', sa.Uuid(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('amount', sa.Float, nullable=False),
        sa.Column('month', sa.Integer, nullable=False),
        sa.Column('year', sa.Integer, nullable=False),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
        sa.UniqueConstraint('user_id', 'year', 'month', name='uq_budgets_user_month'),
        sa.CheckConstraint('month >= 1 AND month <= 12', name='ck_budgets_month'),
    )
    op.create_index('ix_budgets_user_id', 'budgets', ['user_id'])

def downgrade():
    op.drop_index('ix_budgets_user_id', table_name='budgets')
    op.drop_table('budgets')
