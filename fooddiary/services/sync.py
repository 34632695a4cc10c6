"""
Day/week synchronizer — advances a user's elapsed-time counters.

Called whenever the client checks in (pull-based, no scheduler). Each call
recomputes the user's day from the account's creation date:

  day  = calendar days since signup, in the home timezone, counting signup as 1
         (local midnight boundaries, not rolling 24h windows)
  week = (day - 1) // 7 + 1

and then:

  1. opens the weekly progress record for the current week if it is missing
  2. if the day did not move forward, stops (calling twice a day is harmless)
  3. if the week moved forward, closes every week in [stored_week, week):
       missing     → created already finalized as "no activity"
       open        → finalized with the status derived from its counters
       finalized   → left alone
     strictly in increasing week order
  4. stores the new day/week with an update that can only move them forward,
     so racing calls for the same user cannot regress the counters

The synchronizer never commits. All of its writes ride on the caller's
transaction, so a failure while closing any week rolls back the whole call and
the next call retries the full backfill from the same stored week.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from opentelemetry import trace
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fooddiary.config import ProgressPolicy
from fooddiary.errors import NotFoundError, StorageError
from fooddiary.models import User, WeeklyProgress
from fooddiary.services.progress import WeeklyProgressStore, derive_status
from fooddiary.telemetry import WEEKS_FINALIZED_TOTAL

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


def calendar_day(created_at: datetime, now: datetime, tz: ZoneInfo) -> int:
    """1-based day ordinal of `now` counted from `created_at` (naive UTC) in `tz`."""
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    created_local = created_at.astimezone(tz).date()
    today_local = now.astimezone(tz).date()
    return max((today_local - created_local).days + 1, 1)


def week_of(day: int) -> int:
    return (day - 1) // 7 + 1


@dataclass
class SyncResult:
    user: User
    is_new_week: bool
    # Record of the week just left behind; only set when the week advanced.
    last_progress: Optional[WeeklyProgress] = None


class DayWeekSynchronizer:
    def __init__(self, db: AsyncSession, policy: ProgressPolicy) -> None:
        self.db = db
        self.policy = policy
        self.progress = WeeklyProgressStore(db)

    async def sync(self, user_id: str, now: Optional[datetime] = None) -> SyncResult:
        now = now or datetime.now(timezone.utc)
        try:
            return await self._sync(user_id, now)
        except SQLAlchemyError as exc:
            logger.error("Day/week sync failed for user=%s: %s", user_id, exc)
            raise StorageError("failed to synchronise day/week") from exc

    async def _sync(self, user_id: str, now: datetime) -> SyncResult:
        with tracer.start_as_current_span("sync_user_day") as span:
            span.set_attribute("user.id", user_id)

            user = await self._load_user(user_id)

            day = calendar_day(user.created_at, now, self.policy.home_timezone)
            week = week_of(day)
            span.set_attribute("sync.calculated_day", day)
            span.set_attribute("sync.stored_day", user.day)

            await self.progress.ensure_open(user.user_id, week)

            if day <= user.day:
                return SyncResult(user=user, is_new_week=False)

            is_new_week = week > user.week
            last_progress = None
            if is_new_week:
                for past_week in range(user.week, week):
                    await self._close_week(user.user_id, past_week)
                last_progress = await self.progress.find(user.user_id, week - 1)

            await self.advance_day_week(user.user_id, day, week)
            await self.db.refresh(user)

            span.set_attribute("sync.new_week", is_new_week)
            logger.info(
                "User %s advanced to day %d / week %d (new_week=%s)",
                user.user_id, user.day, user.week, is_new_week,
            )
            return SyncResult(user=user, is_new_week=is_new_week, last_progress=last_progress)

    async def _load_user(self, user_id: str) -> User:
        user = await self.db.get(User, user_id, populate_existing=True)
        if user is None:
            raise NotFoundError("user not found")
        return user

    async def advance_day_week(self, user_id: str, day: int, week: int) -> bool:
        """Store the new counters unless a newer day is already stored."""
        result = await self.db.execute(
            update(User)
            .where(User.user_id == user_id, User.day < day)
            .values(day=day, week=week)
        )
        return result.rowcount > 0

    async def _close_week(self, user_id: str, week: int) -> None:
        progress = await self.progress.find(user_id, week)
        if progress is None:
            # Never opened the app that week.
            progress = await self.progress.create_empty_finalized(user_id, week)
            if progress.is_finalized:
                WEEKS_FINALIZED_TOTAL.labels(kind="empty").inc()
                logger.info("Closed unvisited week %d for user=%s", week, user_id)
                return
            # A concurrent sync opened it between the read and the insert.

        if progress.is_finalized:
            return

        status = derive_status(
            progress.review_count, progress.total_rating, self.policy.status_bands
        )
        if await self.progress.finalize(progress, status):
            WEEKS_FINALIZED_TOTAL.labels(kind="finalized").inc()
            logger.info(
                "Finalized week %d for user=%s (reviews=%d, status=%d)",
                week, user_id, progress.review_count, status,
            )
