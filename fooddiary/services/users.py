"""
User accounts: registration, lookup and withdrawal.

Withdrawal removes everything the user contributed: like counts and review
stats on catalog foods are rolled back, then reviews, likes, weekly progress
records and finally the user row are deleted. Exposure history lives in
Redis and is purged by the caller once this transaction has committed.
"""
import logging

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from fooddiary.errors import ConflictError, NotFoundError, ValidationError
from fooddiary.models import Like, User
from fooddiary.services.catalog import CandidateStore
from fooddiary.services.progress import WeeklyProgressStore
from fooddiary.services.reviews import ReviewService

logger = logging.getLogger(__name__)

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 15


def validate_username(username: str) -> None:
    if not USERNAME_MIN_LENGTH <= len(username) <= USERNAME_MAX_LENGTH:
        raise ValidationError(
            f"username must be between {USERNAME_MIN_LENGTH} and "
            f"{USERNAME_MAX_LENGTH} characters"
        )


class UserService:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def username_exists(self, username: str) -> bool:
        validate_username(username)
        rows = await self.db.execute(select(User.user_id).where(User.username == username))
        return rows.first() is not None

    async def create(self, username: str, display_name: str | None = None) -> User:
        if await self.username_exists(username):
            raise ConflictError(f"username '{username}' already taken")

        user = User(username=username, display_name=display_name, day=1, week=1)
        self.db.add(user)
        await self.db.flush()  # get user_id before commit
        logger.info("Created user %s (id=%s)", user.username, user.user_id)
        return user

    async def get(self, user_id: str) -> User:
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("user not found")
        return user

    async def withdraw(self, user_id: str) -> None:
        user = await self.get(user_id)
        catalog = CandidateStore(self.db)

        rows = await self.db.execute(select(Like.food_id).where(Like.user_id == user_id))
        liked_food_ids = [r[0] for r in rows.all()]
        for food_id in liked_food_ids:
            await catalog.adjust_like_count(food_id, -1)
        await self.db.execute(delete(Like).where(Like.user_id == user_id))

        review_count = await ReviewService(self.db).delete_all_for_user(user_id)
        await WeeklyProgressStore(self.db).delete_for_user(user_id)
        await self.db.delete(user)
        await self.db.flush()
        logger.info(
            "Withdrew user %s (likes=%d, reviews=%d)",
            user_id, len(liked_food_ids), review_count,
        )
