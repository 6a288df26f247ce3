"""Create planning and calendar sync tables

Revision ID: 3f1a7c2d9b40
Revises:
Create Date: 2026-10-19

Planning tables (users, shared_spaces, space_memberships, plans) are owned
by the web application and only read here. The sync tables hold connected
Google accounts, their calendar catalog and sync state, plan to event
links, and cached busy blocks.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1a7c2d9b40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _base_columns() -> list:
    return [
        sa.Column('id', sa.CHAR(length=32), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    op.create_table('users',
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=True),
        *_base_columns(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )
    op.create_table('shared_spaces',
        sa.Column('name', sa.String(length=100), nullable=False),
        *_base_columns(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table('space_memberships',
        sa.Column('space_id', sa.CHAR(length=32), nullable=False),
        sa.Column('user_id', sa.CHAR(length=32), nullable=False),
        *_base_columns(),
        sa.ForeignKeyConstraint(['space_id'], ['shared_spaces.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('space_memberships', schema=None) as batch_op:
        batch_op.create_index('ix_space_memberships_space_user', ['space_id', 'user_id'], unique=True)

    op.create_table('plans',
        sa.Column('space_id', sa.CHAR(length=32), nullable=False),
        sa.Column('created_by_user_id', sa.CHAR(length=32), nullable=True),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('starts_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('ends_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('time_is_set', sa.Boolean(), nullable=False),
        sa.Column('place_name', sa.String(length=200), nullable=True),
        sa.Column('place_address', sa.String(length=500), nullable=True),
        *_base_columns(),
        sa.ForeignKeyConstraint(['space_id'], ['shared_spaces.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('plans', schema=None) as batch_op:
        batch_op.create_index('ix_plans_space_id', ['space_id'], unique=False)

    op.create_table('connected_accounts',
        sa.Column('user_id', sa.CHAR(length=32), nullable=False),
        sa.Column('provider', sa.String(length=50), nullable=False, server_default='google'),
        sa.Column('provider_account_email', sa.String(length=255), nullable=False),
        sa.Column('access_credential', sa.Text(), nullable=False),
        sa.Column('refresh_credential', sa.Text(), nullable=True),
        sa.Column('access_expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('scope', sa.Text(), nullable=True),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        *_base_columns(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('connected_accounts', schema=None) as batch_op:
        batch_op.create_index('ix_connected_accounts_user_id', ['user_id'], unique=False)
        batch_op.create_index('ix_connected_accounts_user_provider', ['user_id', 'provider'], unique=True)

    op.create_table('remote_calendars',
        sa.Column('account_id', sa.CHAR(length=32), nullable=False),
        sa.Column('remote_calendar_id', sa.String(length=255), nullable=False),
        sa.Column('summary', sa.String(length=255), nullable=False),
        sa.Column('primary', sa.Boolean(), nullable=False),
        sa.Column('selected', sa.Boolean(), nullable=False),
        sa.Column('background_color', sa.String(length=20), nullable=True),
        sa.Column('foreground_color', sa.String(length=20), nullable=True),
        *_base_columns(),
        sa.ForeignKeyConstraint(['account_id'], ['connected_accounts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('remote_calendars', schema=None) as batch_op:
        batch_op.create_index('ix_remote_calendars_account_calendar', ['account_id', 'remote_calendar_id'], unique=True)

    op.create_table('account_sync_states',
        sa.Column('account_id', sa.CHAR(length=32), nullable=False),
        sa.Column('last_synced_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_sync_error', sa.Text(), nullable=True),
        *_base_columns(),
        sa.ForeignKeyConstraint(['account_id'], ['connected_accounts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('account_id'),
    )

    op.create_table('plan_event_links',
        sa.Column('plan_id', sa.CHAR(length=32), nullable=False),
        sa.Column('account_id', sa.CHAR(length=32), nullable=False),
        sa.Column('remote_calendar_id', sa.String(length=255), nullable=False),
        sa.Column('remote_event_id', sa.String(length=1024), nullable=False),
        sa.Column('etag', sa.String(length=255), nullable=True),
        sa.Column('last_synced_at', sa.DateTime(timezone=True), nullable=False),
        *_base_columns(),
        sa.ForeignKeyConstraint(['plan_id'], ['plans.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['account_id'], ['connected_accounts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('plan_id'),
    )
    with op.batch_alter_table('plan_event_links', schema=None) as batch_op:
        batch_op.create_index('ix_plan_event_links_account_id', ['account_id'], unique=False)

    op.create_table('availability_blocks',
        sa.Column('user_id', sa.CHAR(length=32), nullable=False),
        sa.Column('account_id', sa.CHAR(length=32), nullable=False),
        sa.Column('remote_calendar_id', sa.String(length=255), nullable=False),
        sa.Column('start_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('source', sa.String(length=50), nullable=False, server_default='google'),
        *_base_columns(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['account_id'], ['connected_accounts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('availability_blocks', schema=None) as batch_op:
        batch_op.create_index('ix_availability_blocks_account_window', ['account_id', 'start_at', 'end_at'], unique=False)
        batch_op.create_index('ix_availability_blocks_user_window', ['user_id', 'start_at', 'end_at'], unique=False)


def downgrade() -> None:
    with op.batch_alter_table('availability_blocks', schema=None) as batch_op:
        batch_op.drop_index('ix_availability_blocks_user_window')
        batch_op.drop_index('ix_availability_blocks_account_window')
    op.drop_table('availability_blocks')

    with op.batch_alter_table('plan_event_links', schema=None) as batch_op:
        batch_op.drop_index('ix_plan_event_links_account_id')
    op.drop_table('plan_event_links')

    op.drop_table('account_sync_states')

    with op.batch_alter_table('remote_calendars', schema=None) as batch_op:
        batch_op.drop_index('ix_remote_calendars_account_calendar')
    op.drop_table('remote_calendars')

    with op.batch_alter_table('connected_accounts', schema=None) as batch_op:
        batch_op.drop_index('ix_connected_accounts_user_provider')
        batch_op.drop_index('ix_connected_accounts_user_id')
    op.drop_table('connected_accounts')

    with op.batch_alter_table('plans', schema=None) as batch_op:
        batch_op.drop_index('ix_plans_space_id')
    op.drop_table('plans')

    with op.batch_alter_table('space_memberships', schema=None) as batch_op:
        batch_op.drop_index('ix_space_memberships_space_user')
    op.drop_table('space_memberships')

    op.drop_table('shared_spaces')
    op.drop_table('users')
