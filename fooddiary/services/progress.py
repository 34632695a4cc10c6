"""
Weekly progress tracker — one status record per (user, week).

A record is opened by the day/week synchronizer, accumulates review activity
while the week is current, and is finalized exactly once with a status derived
from its final counters. After that its counters never change: every counter
update carries an `is_finalized = false` guard in SQL and a miss is raised as
WeekClosedError.

Status codes:
  -2  in progress (not finalized yet)
  -1  no activity (finalized with zero reviews, or a week never opened)
  0…  activity tiers from the configured banding table
"""
import logging
import uuid
from typing import Optional, Sequence

from sqlalchemy import delete, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fooddiary.config import StatusBand
from fooddiary.errors import ConflictError, NotFoundError, StorageError, WeekClosedError
from fooddiary.models import (
    STATUS_IN_PROGRESS,
    STATUS_NO_ACTIVITY,
    WeeklyProgress,
)

logger = logging.getLogger(__name__)


def derive_status(review_count: int, total_rating: int, bands: Sequence[StatusBand]) -> int:
    """
    Terminal status for a week's counters.

    Bands are checked in order (best first); the first one whose review count
    and average rating minimums are both met wins. No reviews → no activity.
    A week with reviews that matches no band also reports no activity.
    """
    if review_count <= 0:
        return STATUS_NO_ACTIVITY
    average = total_rating / review_count
    for band in bands:
        if review_count >= band.min_reviews and average >= band.min_average:
            return band.status
    return STATUS_NO_ACTIVITY


class WeeklyProgressStore:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def find(
        self, user_id: str, week: int, for_update: bool = False
    ) -> Optional[WeeklyProgress]:
        stmt = (
            select(WeeklyProgress)
            .where(WeeklyProgress.user_id == user_id, WeeklyProgress.week == week)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        rows = await self.db.execute(stmt)
        return rows.scalar_one_or_none()

    async def list_for_user(self, user_id: str) -> list[WeeklyProgress]:
        rows = await self.db.execute(
            select(WeeklyProgress)
            .where(WeeklyProgress.user_id == user_id)
            .order_by(WeeklyProgress.week)
            .execution_options(populate_existing=True)
        )
        return list(rows.scalars().all())

    async def _insert_if_absent(
        self, user_id: str, week: int, status: int, is_finalized: bool
    ) -> WeeklyProgress:
        # INSERT OR IGNORE / INSERT IGNORE: the (user_id, week) unique
        # constraint decides which of two racing creators wins.
        stmt = (
            insert(WeeklyProgress.__table__)
            .values(
                progress_id=str(uuid.uuid4()),
                user_id=user_id,
                week=week,
                review_count=0,
                total_rating=0,
                status=status,
                is_finalized=is_finalized,
            )
            .prefix_with("OR IGNORE", dialect="sqlite")
            .prefix_with("IGNORE", dialect="mysql")
        )
        await self.db.execute(stmt)
        # Locking read: sees a row committed after this transaction's snapshot.
        progress = await self.find(user_id, week, for_update=True)
        if progress is None:
            logger.error("Weekly progress for week %d missing after insert (user=%s)", week, user_id)
            raise StorageError(f"weekly progress for week {week} could not be created")
        return progress

    async def ensure_open(self, user_id: str, week: int) -> WeeklyProgress:
        """Open the record for `week` with zero counters unless one exists."""
        return await self._insert_if_absent(user_id, week, STATUS_IN_PROGRESS, False)

    async def create_empty_finalized(self, user_id: str, week: int) -> WeeklyProgress:
        """Close a week the user never opened."""
        return await self._insert_if_absent(user_id, week, STATUS_NO_ACTIVITY, True)

    async def finalize(self, progress: WeeklyProgress, status: int) -> bool:
        """Set the terminal status. Returns False if it was already finalized."""
        result = await self.db.execute(
            update(WeeklyProgress)
            .where(
                WeeklyProgress.progress_id == progress.progress_id,
                WeeklyProgress.is_finalized == False,  # noqa: E712
            )
            .values(status=status, is_finalized=True)
        )
        return result.rowcount > 0

    async def apply_review_delta(
        self, progress_id: str, count_delta: int, rating_delta: int
    ) -> None:
        result = await self.db.execute(
            update(WeeklyProgress)
            .where(
                WeeklyProgress.progress_id == progress_id,
                WeeklyProgress.is_finalized == False,  # noqa: E712
            )
            .values(
                review_count=WeeklyProgress.review_count + count_delta,
                total_rating=WeeklyProgress.total_rating + rating_delta,
            )
        )
        if result.rowcount == 0:
            existing = await self.db.get(WeeklyProgress, progress_id)
            if existing is None:
                raise NotFoundError("weekly progress not found")
            logger.error(
                "Rejected review delta on finalized week %d (user=%s)",
                existing.week, existing.user_id,
            )
            raise WeekClosedError(f"week {existing.week} is already closed")

    async def delete_for_user(self, user_id: str) -> None:
        await self.db.execute(delete(WeeklyProgress).where(WeeklyProgress.user_id == user_id))


class WeeklyProgressTracker:
    """Review-facing operations on the weekly status records."""

    def __init__(self, store: WeeklyProgressStore) -> None:
        self.store = store

    async def _open_record(self, user_id: str, week: int) -> WeeklyProgress:
        progress = await self.store.find(user_id, week)
        if progress is None:
            raise ConflictError(f"week {week} has not been opened yet; sync the user first")
        if progress.is_finalized:
            raise WeekClosedError(f"week {week} is already closed")
        return progress

    async def record_review(self, user_id: str, week: int, rating: int) -> None:
        """Count a new review toward the week it was written in."""
        progress = await self._open_record(user_id, week)
        await self.store.apply_review_delta(progress.progress_id, 1, rating)

    async def revise_review(
        self, user_id: str, week: int, old_rating: int, new_rating: int
    ) -> None:
        """Edits change how good the week was, never how many reviews it had."""
        if old_rating == new_rating:
            return
        progress = await self._open_record(user_id, week)
        await self.store.apply_review_delta(progress.progress_id, 0, new_rating - old_rating)
