"""Initial migration

Revision ID: 001_initial
Revises: 
Create Date: 2026-10-19 09:30:00

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create offline_events table
    op.create_table(
        'offline_events',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('program_stage', sa.String(), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('synced_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_offline_events_program_stage'), 'offline_events', ['program_stage'], unique=False)

    # Create offline_organisations table
    op.create_table(
        'offline_organisations',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('parent_id', sa.String(), nullable=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('is_leaf', sa.Boolean(), nullable=True),
        sa.Column('synced_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )

    # Create offline_themes table
    op.create_table(
        'offline_themes',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('parent_id', sa.String(), nullable=True),
        sa.Column('synced_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )


def downgrade() -> None:
    op.drop_table('offline_themes')
    op.drop_table('offline_organisations')
    op.drop_index(op.f('ix_offline_events_program_stage'), table_name='offline_events')
    op.drop_table('offline_events')
