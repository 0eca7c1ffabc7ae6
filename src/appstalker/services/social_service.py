"""Social service — the follow graph.

Follow edges are directed: follower_id receives notifications about
following_id's newly revealed apps. follower_ids() is the keyed lookup the
fan-out engine resolves recipients with.
"""

import uuid

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from appstalker.db.models import Follow, Profile, User
from appstalker.schemas.profile import UserSummary


class UserNotFoundError(Exception):
    """Raised when the target user doesn't exist."""


class SelfFollowError(Exception):
    """Raised when a user tries to follow themselves."""


class AlreadyFollowingError(Exception):
    """Raised when the follow edge already exists."""


class NotFollowingError(Exception):
    """Raised when unfollowing a user that isn't followed."""


class SocialService:
    """Business logic for follow edges."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Lookups ────────────────────────────────────────

    async def follower_ids(self, user_id: uuid.UUID) -> list[uuid.UUID]:
        """Everyone following user_id."""
        result = await self.db.execute(
            select(Follow.follower_id).where(Follow.following_id == user_id)
        )
        return list(result.scalars().all())

    async def is_following(self, follower_id: uuid.UUID, following_id: uuid.UUID) -> bool:
        result = await self.db.execute(
            select(Follow.id).where(
                Follow.follower_id == follower_id,
                Follow.following_id == following_id,
            )
        )
        return result.first() is not None

    async def counts(self, user_id: uuid.UUID) -> tuple[int, int]:
        """(followers, following) for user_id."""
        followers = await self.db.execute(
            select(func.count()).select_from(Follow).where(Follow.following_id == user_id)
        )
        following = await self.db.execute(
            select(func.count()).select_from(Follow).where(Follow.follower_id == user_id)
        )
        return followers.scalar_one(), following.scalar_one()

    async def list_followers(self, user_id: uuid.UUID) -> list[UserSummary]:
        return await self._list_users(
            select(User, Profile)
            .join(Follow, Follow.follower_id == User.id)
            .join(Profile, Profile.user_id == User.id)
            .where(Follow.following_id == user_id)
            .order_by(Follow.created_at.desc())
        )

    async def list_following(self, user_id: uuid.UUID) -> list[UserSummary]:
        return await self._list_users(
            select(User, Profile)
            .join(Follow, Follow.following_id == User.id)
            .join(Profile, Profile.user_id == User.id)
            .where(Follow.follower_id == user_id)
            .order_by(Follow.created_at.desc())
        )

    # ─── Mutations ──────────────────────────────────────

    async def follow(self, follower_id: uuid.UUID, following_id: uuid.UUID) -> Follow:
        if follower_id == following_id:
            raise SelfFollowError("You cannot follow yourself")

        if await self.db.get(User, following_id) is None:
            raise UserNotFoundError(f"User {following_id} not found")

        if await self.is_following(follower_id, following_id):
            raise AlreadyFollowingError("Already following this user")

        edge = Follow(follower_id=follower_id, following_id=following_id)
        self.db.add(edge)
        try:
            await self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent follow of the same user.
            await self.db.rollback()
            raise AlreadyFollowingError("Already following this user")
        return edge

    async def unfollow(self, follower_id: uuid.UUID, following_id: uuid.UUID) -> None:
        result = await self.db.execute(
            select(Follow).where(
                Follow.follower_id == follower_id,
                Follow.following_id == following_id,
            )
        )
        edge = result.scalars().first()
        if edge is None:
            raise NotFollowingError("Not following this user")
        await self.db.delete(edge)
        await self.db.commit()

    # ─── Internals ──────────────────────────────────────

    async def _list_users(self, query) -> list[UserSummary]:
        result = await self.db.execute(query)
        return [
            UserSummary(
                id=user.id,
                username=user.username,
                display_name=profile.display_name,
                avatar_url=profile.avatar_url,
                bio=profile.bio,
            )
            for user, profile in result.all()
        ]
