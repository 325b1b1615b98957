"""create room, player, draw, marked_cell and winner tables

Revision ID: 5c7a1e9d2b40
Revises:
Create Date: 2026-10-18 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c7a1e9d2b40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'room',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(length=12), nullable=False),
        sa.Column('host_connection_id', sa.String(length=64), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='waiting'),
        sa.Column('winning_pattern', sa.Text(), nullable=False, server_default='[]'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    with op.batch_alter_table('room') as batch_op:
        batch_op.create_index('ix_room_code', ['code'], unique=True)
        batch_op.create_index('ix_room_host_connection_id', ['host_connection_id'])
        batch_op.create_index('ix_room_created_at', ['created_at'])

    op.create_table(
        'player',
        sa.Column('id', sa.String(length=32), primary_key=True),
        sa.Column('room_id', sa.Integer(), sa.ForeignKey('room.id'), nullable=False),
        sa.Column('connection_id', sa.String(length=64), nullable=True),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('name_key', sa.String(length=64), nullable=False),
        sa.Column('is_host', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_spectator', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('connected', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('card_matrix', sa.Text(), nullable=True),
        sa.Column('joined_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('room_id', 'name_key', name='uq_player_room_name'),
    )
    with op.batch_alter_table('player') as batch_op:
        batch_op.create_index('ix_player_room_id', ['room_id'])
        batch_op.create_index('ix_player_connection_id', ['connection_id'])

    op.create_table(
        'draw',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('room_id', sa.Integer(), sa.ForeignKey('room.id'), nullable=False),
        sa.Column('seq', sa.Integer(), nullable=False),
        sa.Column('number', sa.Integer(), nullable=False),
        sa.UniqueConstraint('room_id', 'number', name='uq_draw_room_number'),
        sa.UniqueConstraint('room_id', 'seq', name='uq_draw_room_seq'),
    )
    op.create_index('ix_draw_room_id', 'draw', ['room_id'])

    op.create_table(
        'marked_cell',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('player_id', sa.String(length=32), sa.ForeignKey('player.id'), nullable=False),
        sa.Column('cell_index', sa.Integer(), nullable=False),
        sa.UniqueConstraint('player_id', 'cell_index', name='uq_mark_player_cell'),
    )
    op.create_index('ix_marked_cell_player_id', 'marked_cell', ['player_id'])

    op.create_table(
        'winner',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('room_id', sa.Integer(), sa.ForeignKey('room.id'), nullable=False),
        sa.Column('player_id', sa.String(length=32), nullable=True),
        sa.Column('player_name', sa.String(length=64), nullable=False),
        sa.Column('rank', sa.Integer(), nullable=False),
        sa.UniqueConstraint('room_id', 'player_name', name='uq_winner_room_name'),
        sa.UniqueConstraint('room_id', 'rank', name='uq_winner_room_rank'),
    )
    op.create_index('ix_winner_room_id', 'winner', ['room_id'])


def downgrade():
    op.drop_index('ix_winner_room_id', table_name='winner')
    op.drop_table('winner')
    op.drop_index('ix_marked_cell_player_id', table_name='marked_cell')
    op.drop_table('marked_cell')
    op.drop_index('ix_draw_room_id', table_name='draw')
    op.drop_table('draw')
    with op.batch_alter_table('player') as batch_op:
        batch_op.drop_index('ix_player_connection_id')
        batch_op.drop_index('ix_player_room_id')
    op.drop_table('player')
    with op.batch_alter_table('room') as batch_op:
        batch_op.drop_index('ix_room_created_at')
        batch_op.drop_index('ix_room_host_connection_id')
        batch_op.drop_index('ix_room_code')
    op.drop_table('room')
