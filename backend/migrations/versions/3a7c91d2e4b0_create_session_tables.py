"""create game_session, session_status and player tables

Revision ID: 3a7c91d2e4b0
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3a7c91d2e4b0'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'game_session',
        sa.Column('code', sa.Integer(), autoincrement=False, nullable=False),
        sa.Column('created_at', sa.Float(), nullable=False),
        sa.PrimaryKeyConstraint('code'),
    )
    op.create_table(
        'session_status',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('session_code', sa.Integer(), nullable=False),
        sa.Column('playing', sa.Boolean(), nullable=False),
        sa.Column('last_significant_change', sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(['session_code'], ['game_session.code'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('session_code'),
    )
    op.create_table(
        'player',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('session_code', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('order', sa.Integer(), nullable=False),
        sa.Column('hashed_key', sa.String(length=128), nullable=False),
        sa.Column('connection_id', sa.String(length=64), nullable=True),
        sa.ForeignKeyConstraint(['session_code'], ['game_session.code'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('session_code', 'name', name='uq_player_session_name'),
    )
    op.create_index(op.f('ix_player_session_code'), 'player', ['session_code'], unique=False)


def downgrade():
    op.drop_index(op.f('ix_player_session_code'), table_name='player')
    op.drop_table('player')
    op.drop_table('session_status')
    op.drop_table('game_session')
