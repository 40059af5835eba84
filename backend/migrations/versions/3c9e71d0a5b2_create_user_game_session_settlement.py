"""create user, game_session and settlement_entry tables

Revision ID: 3c9e71d0a5b2
Revises:
Create Date: 2026-10-19 11:20:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3c9e71d0a5b2'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'user',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('email', sa.String(length=120), nullable=False),
        sa.Column('password_hash', sa.String(length=256), nullable=False),
        sa.Column('matches_played', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('wins', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('losses', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('ties', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('win_rate', sa.Float(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('user') as batch_op:
        batch_op.create_index('ix_user_username', ['username'], unique=True)
        batch_op.create_index('ix_user_email', ['email'], unique=True)

    op.create_table(
        'game_session',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('room_code', sa.String(length=16), nullable=True),
        sa.Column('game_type', sa.String(length=32), nullable=False),
        sa.Column('mode', sa.String(length=16), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('state', sa.Text(), nullable=False),
        sa.Column('created_at', sa.Float(), nullable=True),
        sa.Column('updated_at', sa.Float(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('game_session') as batch_op:
        # Room codes repeat once a game closes, so the index is not unique
        batch_op.create_index('ix_game_session_room_code', ['room_code'], unique=False)
        batch_op.create_index('ix_game_session_status', ['status'], unique=False)

    op.create_table(
        'settlement_entry',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('session_id', sa.String(length=32), nullable=False),
        sa.Column('account_id', sa.Integer(), nullable=False),
        sa.Column('outcome', sa.String(length=8), nullable=False),
        sa.Column('created_at', sa.Float(), nullable=True),
        sa.ForeignKeyConstraint(['account_id'], ['user.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('session_id', 'account_id', name='uq_settlement_session_account'),
    )
    with op.batch_alter_table('settlement_entry') as batch_op:
        batch_op.create_index('ix_settlement_entry_session_id', ['session_id'], unique=False)


def downgrade():
    with op.batch_alter_table('settlement_entry') as batch_op:
        batch_op.drop_index('ix_settlement_entry_session_id')
    op.drop_table('settlement_entry')

    with op.batch_alter_table('game_session') as batch_op:
        batch_op.drop_index('ix_game_session_status')
        batch_op.drop_index('ix_game_session_room_code')
    op.drop_table('game_session')

    with op.batch_alter_table('user') as batch_op:
        batch_op.drop_index('ix_user_email')
        batch_op.drop_index('ix_user_username')
    op.drop_table('user')
