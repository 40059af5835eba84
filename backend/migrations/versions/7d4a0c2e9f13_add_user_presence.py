"""add is_online and last_active to user

Revision ID: 7d4a0c2e9f13
Revises: 3c9e71d0a5b2
Create Date: 2026-10-19 15:05:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '7d4a0c2e9f13'
down_revision = '3c9e71d0a5b2'
branch_labels = None
depends_on = None


def upgrade():
    with op.batch_alter_table('user') as batch_op:
        batch_op.add_column(sa.Column('is_online', sa.Boolean(), nullable=False, server_default=sa.false()))
        batch_op.add_column(sa.Column('last_active', sa.Float(), nullable=True))


def downgrade():
    with op.batch_alter_table('user') as batch_op:
        batch_op.drop_column('last_active')
        batch_op.drop_column('is_online')
