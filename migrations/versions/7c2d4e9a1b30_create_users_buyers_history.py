"""Create users, buyers and buyer_history tables

Revision ID: 7c2d4e9a1b30
Revises:
Create Date: 2026-10-18 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '7c2d4e9a1b30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('users',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email')
    )

    op.create_table('buyers',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('full_name', sa.String(length=80), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=15), nullable=False),
        sa.Column('city', sa.String(length=20), nullable=False),
        sa.Column('property_type', sa.String(length=20), nullable=False),
        sa.Column('bhk', sa.String(length=10), nullable=True),
        sa.Column('purpose', sa.String(length=10), nullable=False),
        sa.Column('budget_min', sa.Integer(), nullable=True),
        sa.Column('budget_max', sa.Integer(), nullable=True),
        sa.Column('timeline', sa.String(length=30), nullable=False),
        sa.Column('source', sa.String(length=20), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('tags', sa.Text(), nullable=False),
        sa.Column('owner_id', sa.String(length=36), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_buyers_owner_id', 'buyers', ['owner_id'])
    op.create_index('ix_buyers_city', 'buyers', ['city'])
    op.create_index('ix_buyers_status', 'buyers', ['status'])
    op.create_index('ix_buyers_created_at', 'buyers', ['created_at'])
    op.create_index('ix_buyers_updated_at', 'buyers', ['updated_at'])

    op.create_table('buyer_history',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('buyer_id', sa.String(length=36), nullable=False),
        sa.Column('changed_by_id', sa.String(length=36), nullable=False),
        sa.Column('changed_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('diff', sa.JSON(), nullable=False),
        sa.ForeignKeyConstraint(['buyer_id'], ['buyers.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['changed_by_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_buyer_history_buyer_id', 'buyer_history', ['buyer_id'])


def downgrade():
    op.drop_index('ix_buyer_history_buyer_id', table_name='buyer_history')
    op.drop_table('buyer_history')
    op.drop_index('ix_buyers_updated_at', table_name='buyers')
    op.drop_index('ix_buyers_created_at', table_name='buyers')
    op.drop_index('ix_buyers_status', table_name='buyers')
    op.drop_index('ix_buyers_city', table_name='buyers')
    op.drop_index('ix_buyers_owner_id', table_name='buyers')
    op.drop_table('buyers')
    op.drop_table('users')
