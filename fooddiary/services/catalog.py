"""
Candidate store — the food catalog as seen by the feed and the review/like flows.

Aggregate counters (like_count, review_count, total_rating) are only ever
changed with `SET col = col + :delta` statements so concurrent likes and
reviews from different users never lose updates.
"""
import logging
from typing import Iterable, Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fooddiary.models import CustomFood, StandardFood

logger = logging.getLogger(__name__)


class CandidateStore:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # ── Reads ──────────────────────────────────────────────────────────────

    async def get(self, food_id: str) -> Optional[StandardFood]:
        return await self.db.get(StandardFood, food_id)

    async def find_by_name(self, name: str) -> Optional[StandardFood]:
        rows = await self.db.execute(select(StandardFood).where(StandardFood.name == name))
        return rows.scalar_one_or_none()

    async def sample_candidates(
        self,
        speed: str,
        count: int,
        categories: Optional[Sequence[str]] = None,
    ) -> list[StandardFood]:
        """
        Random sample (without replacement) of up to `count` foods of `speed`.

        With `categories`, only foods carrying at least one of them qualify.
        Category overlap is checked here rather than in SQL because JSON
        containment operators differ between backends; the catalog is curated
        and small.
        """
        stmt = (
            select(StandardFood)
            .where(StandardFood.speed == speed)
            .order_by(func.random())
        )
        if not categories:
            rows = await self.db.execute(stmt.limit(count))
            return list(rows.scalars().all())

        wanted = set(categories)
        rows = await self.db.execute(stmt)
        matches = [f for f in rows.scalars().all() if wanted & set(f.categories or [])]
        return matches[:count]

    # ── Writes ─────────────────────────────────────────────────────────────

    async def create_many(self, foods: Iterable[StandardFood]) -> list[StandardFood]:
        foods = list(foods)
        self.db.add_all(foods)
        await self.db.flush()
        return foods

    async def adjust_like_count(self, food_id: str, delta: int) -> None:
        await self.db.execute(
            update(StandardFood)
            .where(StandardFood.food_id == food_id)
            .values(like_count=StandardFood.like_count + delta)
        )

    async def apply_review_stats(
        self, food_ids: Sequence[str], count_delta: int, rating_delta: int
    ) -> None:
        """Shift review_count / total_rating of standard foods by the given deltas."""
        if not food_ids:
            return
        await self.db.execute(
            update(StandardFood)
            .where(StandardFood.food_id.in_(food_ids))
            .values(
                review_count=StandardFood.review_count + count_delta,
                total_rating=StandardFood.total_rating + rating_delta,
            )
        )

    # ── Custom foods ───────────────────────────────────────────────────────

    async def find_custom_by_name(self, name: str) -> Optional[CustomFood]:
        rows = await self.db.execute(select(CustomFood).where(CustomFood.name == name))
        return rows.scalars().first()

    async def create_custom(self, name: str) -> CustomFood:
        food = CustomFood(name=name, review_count=0)
        self.db.add(food)
        await self.db.flush()
        logger.info("Created custom food %r (id=%s)", name, food.food_id)
        return food

    async def adjust_custom_review_count(self, food_ids: Sequence[str], delta: int) -> None:
        if not food_ids:
            return
        await self.db.execute(
            update(CustomFood)
            .where(CustomFood.food_id.in_(food_ids))
            .values(review_count=CustomFood.review_count + delta)
        )
