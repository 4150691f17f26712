"""join_gate_schema

Revision ID: 0001_join_gate
Revises:
Create Date: 2026-10-19

Начальная схема: политика групп, списки allow/deny, прошедшие проверку,
федерации и предупреждения.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# ============================================================
# ИДЕНТИФИКАТОРЫ РЕВИЗИИ
# ============================================================
revision: str = '0001_join_gate'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ─────────────────────────────────────────────────────
    # Политика группы
    # ─────────────────────────────────────────────────────
    op.create_table(
        'group_policies',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('chat_id', sa.BigInteger(), nullable=False),
        sa.Column('welcome_message', sa.Text(), nullable=True),
        sa.Column('rules_message', sa.Text(), nullable=True),
        sa.Column('delete_service_messages', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_group_policies_chat_id', 'group_policies', ['chat_id'], unique=True)

    op.create_table(
        'policy_list_entries',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('chat_id', sa.BigInteger(), nullable=False),
        sa.Column('user_id', sa.BigInteger(), nullable=False),
        sa.Column('list_type', sa.String(8), nullable=False),
        sa.Column('added_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('chat_id', 'user_id', name='uq_policy_list_chat_user'),
    )
    op.create_index('ix_policy_list_entries_chat_id', 'policy_list_entries', ['chat_id'])

    op.create_table(
        'verified_users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('chat_id', sa.BigInteger(), nullable=False),
        sa.Column('user_id', sa.BigInteger(), nullable=False),
        sa.Column('verified_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_verified_chat_user', 'verified_users', ['chat_id', 'user_id'], unique=True)

    # ─────────────────────────────────────────────────────
    # Федерации
    # ─────────────────────────────────────────────────────
    op.create_table(
        'federations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('hub_chat_id', sa.BigInteger(), nullable=False, unique=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )

    op.create_table(
        'federation_chats',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column(
            'federation_id', sa.Integer(),
            sa.ForeignKey('federations.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('chat_id', sa.BigInteger(), nullable=False, unique=True),
        sa.Column('linked_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_federation_chats_federation_id', 'federation_chats', ['federation_id'])

    op.create_table(
        'federation_bans',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column(
            'federation_id', sa.Integer(),
            sa.ForeignKey('federations.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('user_id', sa.BigInteger(), nullable=False),
        sa.Column('banned_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('federation_id', 'user_id', name='uq_federation_ban_user'),
    )
    op.create_index('ix_federation_bans_federation_id', 'federation_bans', ['federation_id'])

    # ─────────────────────────────────────────────────────
    # Предупреждения
    # ─────────────────────────────────────────────────────
    op.create_table(
        'user_warnings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('chat_id', sa.BigInteger(), nullable=False),
        sa.Column('user_id', sa.BigInteger(), nullable=False),
        sa.Column('count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_reason', sa.Text(), nullable=True),
        sa.Column('updated_by', sa.BigInteger(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_user_warnings_chat_user', 'user_warnings', ['chat_id', 'user_id'], unique=True)


def downgrade() -> None:
    op.drop_index('ix_user_warnings_chat_user', table_name='user_warnings')
    op.drop_table('user_warnings')
    op.drop_index('ix_federation_bans_federation_id', table_name='federation_bans')
    op.drop_table('federation_bans')
    op.drop_index('ix_federation_chats_federation_id', table_name='federation_chats')
    op.drop_table('federation_chats')
    op.drop_table('federations')
    op.drop_index('ix_verified_chat_user', table_name='verified_users')
    op.drop_table('verified_users')
    op.drop_index('ix_policy_list_entries_chat_id', table_name='policy_list_entries')
    op.drop_table('policy_list_entries')
    op.drop_index('ix_group_policies_chat_id', table_name='group_policies')
    op.drop_table('group_policies')
