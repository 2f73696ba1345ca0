# alembic/versions/001_initial_tables.py
"""initial tables

Revision ID: 001_initial_tables
Create Date: 2026-10-18 10:00:00.000000
"""
import sqlalchemy as sa
from alembic import op

revision = '001_initial_tables'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create rooms table
    op.create_table(
        'rooms',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.String(), nullable=False, index=True),
        sa.Column('room_id', sa.BigInteger(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('created_at', sa.BigInteger(), nullable=False),
        sa.UniqueConstraint('user_id', 'room_id', name='uq_rooms_user_room')
    )

    # Create chat_messages table
    op.create_table(
        'chat_messages',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('room_id', sa.BigInteger(), nullable=False),
        sa.Column('uuid', sa.BigInteger(), nullable=False),
        sa.Column('prompt', sa.Text(), nullable=False),
        sa.Column('response', sa.Text(), nullable=False, server_default=''),
        sa.Column('date_time', sa.BigInteger(), nullable=False, index=True),
        sa.Column('status', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('message_id', sa.String()),
        sa.Column('parent_message_id', sa.String()),
        sa.UniqueConstraint('user_id', 'room_id', 'uuid', name='uq_chat_messages_room_uuid')
    )

    # Create upstream_configs table
    op.create_table(
        'upstream_configs',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('api_key', sa.String()),
        sa.Column('model', sa.String(), nullable=False),
        sa.Column('base_url', sa.String(), nullable=False),
        sa.Column('proxy', sa.String()),
        sa.Column('timeout_ms', sa.Integer(), nullable=False),
        sa.Column('system_message', sa.Text()),
        sa.Column('temperature', sa.Float(), nullable=False),
        sa.Column('created_at', sa.BigInteger(), nullable=False)
    )


def downgrade() -> None:
    op.drop_table('upstream_configs')
    op.drop_table('chat_messages')
    op.drop_table('rooms')
