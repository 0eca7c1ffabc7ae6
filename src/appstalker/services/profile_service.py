"""Profile service — accounts, profiles and user search."""

import uuid
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from appstalker.auth.password import hash_password
from appstalker.db.models import Profile, User
from appstalker.schemas.profile import ProfileUpdate, UserSummary


class UserAlreadyExistsError(Exception):
    """Raised when the email or username is taken."""


class ProfileService:
    """Business logic for users and their profiles."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Users ──────────────────────────────────────────

    async def create_user(
        self,
        email: str,
        username: str,
        password: str,
        display_name: Optional[str] = None,
    ) -> User:
        """Create a user together with their profile."""
        result = await self.db.execute(
            select(User).where(or_(User.email == email, User.username == username))
        )
        taken = result.scalars().first()
        if taken:
            field = "Email" if taken.email == email else "Username"
            raise UserAlreadyExistsError(f"{field} already registered")

        user = User(
            email=email,
            username=username,
            password_hash=hash_password(password),
        )
        self.db.add(user)
        await self.db.flush()

        self.db.add(Profile(user_id=user.id, display_name=display_name or username))
        await self.db.commit()
        return user

    async def get_user(self, user_id: uuid.UUID) -> Optional[User]:
        return await self.db.get(User, user_id)

    async def get_user_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalars().first()

    async def get_user_by_username(self, username: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.username == username))
        return result.scalars().first()

    # ─── Profiles ───────────────────────────────────────

    async def get_profile(self, user_id: uuid.UUID) -> Optional[Profile]:
        result = await self.db.execute(select(Profile).where(Profile.user_id == user_id))
        return result.scalars().first()

    async def update_profile(
        self, user_id: uuid.UUID, changes: ProfileUpdate
    ) -> Optional[Profile]:
        """Apply only the fields the client actually sent."""
        profile = await self.get_profile(user_id)
        if profile is None:
            return None
        for name, value in changes.model_dump(exclude_unset=True).items():
            if name == "display_name" and not value:
                continue
            setattr(profile, name, value)
        await self.db.commit()
        await self.db.refresh(profile)
        return profile

    async def search(self, query: str, limit: int = 20) -> list[UserSummary]:
        """Case-insensitive substring match on username or display name."""
        pattern = f"%{_escape_like(query)}%"
        result = await self.db.execute(
            select(User, Profile)
            .join(Profile, Profile.user_id == User.id)
            .where(
                or_(
                    User.username.ilike(pattern, escape="\\"),
                    Profile.display_name.ilike(pattern, escape="\\"),
                )
            )
            .order_by(User.username)
            .limit(limit)
        )
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


def _escape_like(value: str) -> str:
    """Make % and _ in user input match literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
