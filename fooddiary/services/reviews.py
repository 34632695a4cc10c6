"""
Review service — meal log entries and the stats they feed.

A review is stamped with the author's current day/week when written and keeps
counting toward that week forever. Creating one bumps the aggregate stats of
every standard food it mentions, the review count of every custom food, and
the weekly progress record of its week. Editing is only allowed while the
review's week is still the user's current week and only moves ratings, never
counts. Deleting reverses the food stats; the weekly record is left as is.
"""
import logging
from typing import Optional, Sequence

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from fooddiary.errors import ForbiddenError, NotFoundError, ValidationError, WeekClosedError
from fooddiary.models import (
    FOOD_TYPE_CUSTOM,
    FOOD_TYPE_STANDARD,
    Review,
    StandardFood,
    User,
    utcnow,
)
from fooddiary.services.catalog import CandidateStore
from fooddiary.services.progress import WeeklyProgressStore, WeeklyProgressTracker

logger = logging.getLogger(__name__)

MAX_COMMENT_LENGTH = 50
MAX_RECENT_REVIEWS = 3


def _split_food_ids(foods: Sequence[dict]) -> tuple[list[str], list[str]]:
    standard, custom = [], []
    for item in foods:
        if item.get("type") == FOOD_TYPE_STANDARD:
            standard.append(item["food_id"])
        elif item.get("type") == FOOD_TYPE_CUSTOM:
            custom.append(item["food_id"])
    return standard, custom


def _validate_rating_and_comment(rating: int, comment: str) -> None:
    if rating <= 0 or rating > 5:
        raise ValidationError("rating must be between 1 and 5")
    if not 0 < len(comment or "") <= MAX_COMMENT_LENGTH:
        raise ValidationError(f"comment must be between 1 and {MAX_COMMENT_LENGTH} characters")


class ReviewService:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.catalog = CandidateStore(db)
        self.tracker = WeeklyProgressTracker(WeeklyProgressStore(db))

    async def _get_owned(self, review_id: str, user_id: str) -> Review:
        review = await self.db.get(Review, review_id)
        if review is None:
            raise NotFoundError("review not found")
        if review.user_id != user_id:
            raise ForbiddenError("you are not the owner of this review")
        return review

    async def create(
        self,
        user_id: str,
        name: str,
        foods: Sequence[dict],
        meal_time: str,
        rating: int,
        comment: str,
        image_url: str = "",
    ) -> Review:
        if not foods:
            raise ValidationError("at least one food item is required")
        _validate_rating_and_comment(rating, comment)

        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("user not found")

        review = Review(
            user_id=user.user_id,
            name=name,
            foods=[dict(f) for f in foods],
            meal_time=meal_time,
            image_url=image_url or "",
            comment=comment,
            rating=rating,
            day=user.day,
            week=user.week,
        )
        self.db.add(review)
        await self.db.flush()

        standard_ids, custom_ids = _split_food_ids(review.foods)
        await self.catalog.apply_review_stats(standard_ids, 1, rating)
        await self.catalog.adjust_custom_review_count(custom_ids, 1)
        await self.tracker.record_review(user.user_id, review.week, rating)

        logger.info(
            "Review %s created by user %s (day=%d, week=%d, rating=%d)",
            review.review_id, user.user_id, review.day, review.week, rating,
        )
        return review

    async def update(
        self,
        review_id: str,
        user_id: str,
        meal_time: str,
        rating: int,
        comment: str,
        image_url: str = "",
    ) -> Review:
        review = await self._get_owned(review_id, user_id)
        _validate_rating_and_comment(rating, comment)

        user = await self.db.get(User, review.user_id)
        if user is None:
            raise NotFoundError("user not found")
        if review.week != user.week:
            raise WeekClosedError(f"week {review.week} is already closed")

        old_rating = review.rating
        review.meal_time = meal_time
        review.image_url = image_url or ""
        review.comment = comment
        review.rating = rating
        review.updated_at = utcnow()
        await self.db.flush()

        if old_rating != rating:
            standard_ids, _ = _split_food_ids(review.foods)
            await self.catalog.apply_review_stats(standard_ids, 0, rating - old_rating)
            await self.tracker.revise_review(user.user_id, review.week, old_rating, rating)

        return review

    async def delete(self, review_id: str, user_id: str) -> None:
        review = await self._get_owned(review_id, user_id)
        await self._reverse_food_stats(review)
        await self.db.delete(review)
        logger.info("Review %s deleted by user %s", review_id, user_id)

    async def _reverse_food_stats(self, review: Review) -> None:
        standard_ids, custom_ids = _split_food_ids(review.foods)
        await self.catalog.apply_review_stats(standard_ids, -1, -review.rating)
        await self.catalog.adjust_custom_review_count(custom_ids, -1)

    async def list_by_day(self, user_id: str, day: int) -> list[Review]:
        if day <= 0:
            raise ValidationError("day must be a positive integer")
        rows = await self.db.execute(
            select(Review)
            .where(Review.user_id == user_id, Review.day == day)
            .order_by(Review.created_at)
        )
        return list(rows.scalars().all())

    async def recent_with_standard_food(
        self, user_id: str, count: int
    ) -> list[tuple[Review, Optional[StandardFood]]]:
        """Latest reviews that mention a standard food, paired with the first one."""
        if count <= 0:
            raise ValidationError("count must be a positive integer")
        count = min(count, MAX_RECENT_REVIEWS)

        rows = await self.db.execute(
            select(Review)
            .where(Review.user_id == user_id)
            .order_by(Review.created_at.desc())
        )
        result: list[tuple[Review, Optional[StandardFood]]] = []
        for review in rows.scalars():
            standard_ids, _ = _split_food_ids(review.foods)
            if not standard_ids:
                continue
            food = await self.catalog.get(standard_ids[0])
            if food is None:
                logger.warning(
                    "Review %s references missing food %s", review.review_id, standard_ids[0]
                )
            result.append((review, food))
            if len(result) >= count:
                break
        return result

    async def delete_all_for_user(self, user_id: str) -> int:
        """Reverse food stats for every review of `user_id`, then delete them."""
        rows = await self.db.execute(select(Review).where(Review.user_id == user_id))
        reviews = list(rows.scalars().all())
        for review in reviews:
            await self._reverse_food_stats(review)
        await self.db.execute(delete(Review).where(Review.user_id == user_id))
        return len(reviews)
