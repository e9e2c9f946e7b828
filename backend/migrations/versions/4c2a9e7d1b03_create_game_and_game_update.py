"""create game document table and game_update log

Revision ID: 4c2a9e7d1b03
Revises: 
Create Date: 2026-10-17 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c2a9e7d1b03'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'game' not in existing_tables:
        op.create_table(
            'game',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('game_code', sa.String(length=16), nullable=False),
            sa.Column('document', sa.Text(), nullable=False),
            sa.Column('last_activity', sa.Float(), nullable=True),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_game_game_code', 'game', ['game_code'], unique=True)
        op.create_index('ix_game_last_activity', 'game', ['last_activity'], unique=False)

    if 'game_update' not in existing_tables:
        op.create_table(
            'game_update',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('game_id', sa.Integer(), nullable=False),
            sa.Column('timestamp', sa.Float(), nullable=False),
            sa.Column('type', sa.String(length=32), nullable=False),
            sa.Column('player_id', sa.String(length=64), nullable=True),
            sa.ForeignKeyConstraint(['game_id'], ['game.id']),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_game_update_game_id', 'game_update', ['game_id'], unique=False)


def downgrade():
    op.drop_index('ix_game_update_game_id', table_name='game_update')
    op.drop_table('game_update')
    op.drop_index('ix_game_last_activity', table_name='game')
    op.drop_index('ix_game_game_code', table_name='game')
    op.drop_table('game')
