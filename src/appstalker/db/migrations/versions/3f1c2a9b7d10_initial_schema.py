"""Initial schema: users, profiles, installed apps, follows, notifications

Revision ID: 3f1c2a9b7d10
Revises:
Create Date: 2026-10-19 09:40:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c2a9b7d10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('username', sa.String(50), nullable=False, unique=True),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'profiles',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'user_id', sa.Uuid(),
            sa.ForeignKey('users.id', ondelete='CASCADE'),
            nullable=False, unique=True,
        ),
        sa.Column('display_name', sa.String(100), nullable=False),
        sa.Column('bio', sa.Text(), nullable=True),
        sa.Column('avatar_url', sa.Text(), nullable=True),
        sa.Column('is_private', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('show_apps', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'installed_apps',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'user_id', sa.Uuid(),
            sa.ForeignKey('users.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('package_name', sa.String(255), nullable=False),
        sa.Column('app_name', sa.String(255), nullable=False),
        sa.Column('app_icon', sa.Text(), nullable=True),
        sa.Column('platform', sa.String(20), nullable=False),
        sa.Column('is_visible', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('installed_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('user_id', 'package_name', name='uq_installed_apps_user_package'),
    )
    op.create_index(
        'idx_installed_apps_user_visible', 'installed_apps', ['user_id', 'is_visible']
    )

    op.create_table(
        'follows',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'follower_id', sa.Uuid(),
            sa.ForeignKey('users.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column(
            'following_id', sa.Uuid(),
            sa.ForeignKey('users.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('follower_id', 'following_id', name='uq_follows'),
        sa.CheckConstraint('follower_id <> following_id', name='ck_follows_not_self'),
    )
    op.create_index('idx_follows_following', 'follows', ['following_id'])

    op.create_table(
        'notifications',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'user_id', sa.Uuid(),
            sa.ForeignKey('users.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('type', sa.String(30), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column(
            'related_user_id', sa.Uuid(),
            sa.ForeignKey('users.id', ondelete='CASCADE'),
            nullable=True,
        ),
        sa.Column(
            'related_app_id', sa.Uuid(),
            sa.ForeignKey('installed_apps.id', ondelete='CASCADE'),
            nullable=True,
        ),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint(
            "type IN ('new_app', 'new_follower')", name='ck_notifications_type'
        ),
    )
    op.create_index('idx_notifications_user_read', 'notifications', ['user_id', 'is_read'])
    op.create_index('idx_notifications_created', 'notifications', ['created_at'])


def downgrade() -> None:
    op.drop_index('idx_notifications_created', table_name='notifications')
    op.drop_index('idx_notifications_user_read', table_name='notifications')
    op.drop_table('notifications')
    op.drop_index('idx_follows_following', table_name='follows')
    op.drop_table('follows')
    op.drop_index('idx_installed_apps_user_visible', table_name='installed_apps')
    op.drop_table('installed_apps')
    op.drop_table('profiles')
    op.drop_table('users')
