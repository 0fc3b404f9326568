"""add notification read status

Revision ID: 8b4e61d0c5a2
Revises: 3f1a9c2d7e10
Create Date: 2026-10-06 16:40:27.902115

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8b4e61d0c5a2'
down_revision: Union[str, None] = '3f1a9c2d7e10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ブロードキャスト通知の既読台帳（通知×ユーザーで1行）
    op.create_table(
        'notification_read_status',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('notification_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('read_at', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['notification_id'], ['notifications.id']),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('notification_id', 'user_id', name='uq_notification_read_status_user'),
    )
    op.create_index('ix_notification_read_status_notification_id', 'notification_read_status', ['notification_id'], unique=False)
    op.create_index('ix_notification_read_status_user_id', 'notification_read_status', ['user_id'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_notification_read_status_user_id', table_name='notification_read_status')
    op.drop_index('ix_notification_read_status_notification_id', table_name='notification_read_status')
    op.drop_table('notification_read_status')
