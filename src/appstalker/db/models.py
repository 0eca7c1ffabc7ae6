"""SQLAlchemy ORM models — single source of truth for the database schema.

Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Alembic migrations under db/migrations mirror these classes.

Key concepts:
- UUID primary keys via the generic Uuid type (native UUID on PostgreSQL,
  CHAR(32) elsewhere, so the test suite can run on SQLite)
- ON DELETE CASCADE everywhere a row belongs to a user: deleting a user
  takes their apps, follow edges and notifications with them
- Python-side defaults for id/created_at so freshly inserted rows are
  complete without a refresh round-trip
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    false,
    func,
    true,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from appstalker.notifications.types import NOTIFICATION_TYPES


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_uuid() -> uuid.UUID:
    return uuid.uuid4()


# ══════════════════════════════════════════════════════════════
# Accounts
# ══════════════════════════════════════════════════════════════


class User(Base):
    """A registered account. Login is by email; username is the public handle."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    username: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )

    # Relationships
    profile: Mapped[Optional["Profile"]] = relationship(
        back_populates="user", uselist=False, cascade="all, delete-orphan"
    )


class Profile(Base):
    """Public-facing profile, one per user, created at registration.

    is_private hides the whole profile from non-followers; show_apps hides
    just the app list (from everyone, followers included).
    """

    __tablename__ = "profiles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    avatar_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_private: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=false(), nullable=False
    )
    show_apps: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=true(), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )

    user: Mapped["User"] = relationship(back_populates="profile")


# ══════════════════════════════════════════════════════════════
# Installed apps
# ══════════════════════════════════════════════════════════════


class InstalledApp(Base):
    """An app reported by the owner's device during sync.

    (user_id, package_name) is unique: re-syncing a package updates the
    existing row instead of inserting a second one.
    """

    __tablename__ = "installed_apps"
    __table_args__ = (
        UniqueConstraint("user_id", "package_name", name="uq_installed_apps_user_package"),
        Index("idx_installed_apps_user_visible", "user_id", "is_visible"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    package_name: Mapped[str] = mapped_column(String(255), nullable=False)
    app_name: Mapped[str] = mapped_column(String(255), nullable=False)
    app_icon: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    platform: Mapped[str] = mapped_column(String(20), nullable=False)
    is_visible: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=false(), nullable=False
    )
    installed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )


# ══════════════════════════════════════════════════════════════
# Social graph
# ══════════════════════════════════════════════════════════════


class Follow(Base):
    """Directed edge: follower_id watches following_id's visible apps."""

    __tablename__ = "follows"
    __table_args__ = (
        UniqueConstraint("follower_id", "following_id", name="uq_follows"),
        CheckConstraint("follower_id <> following_id", name="ck_follows_not_self"),
        Index("idx_follows_following", "following_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    follower_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    following_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )


# ══════════════════════════════════════════════════════════════
# Notifications
# ══════════════════════════════════════════════════════════════


_TYPE_CHECK = "type IN ({})".format(", ".join(f"'{t}'" for t in NOTIFICATION_TYPES))


class Notification(Base):
    """A notification addressed to user_id.

    Immutable once written except for is_read. Rows are only created by the
    notification store and never deleted by the application. They go away
    with the recipient (or the related user/app) via ON DELETE CASCADE.
    """

    __tablename__ = "notifications"
    __table_args__ = (
        CheckConstraint(_TYPE_CHECK, name="ck_notifications_type"),
        Index("idx_notifications_user_read", "user_id", "is_read"),
        Index("idx_notifications_created", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    related_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=True
    )
    related_app_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("installed_apps.id", ondelete="CASCADE"), nullable=True
    )
    is_read: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=false(), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
