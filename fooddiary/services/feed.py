"""
Feed service — the daily "what should I eat" feed.

  Stage 1 │ Validation     — speed key, count range, category keys
  Stage 2 │ Candidates     — random sample of count × oversample_factor foods
  Stage 3 │ History        — per-food last exposure (exposure window) and
          │                  parent tags already shown (parent window)
  Stage 4 │ Ranking        — FeedRanker: recency decay × jitter, parent-tag
          │                  diversity, tag-ignoring fallback
  Stage 5 │ Exposure write — handed to ExposureRecorder; the response never
          │                  waits on it
  Stage 6 │ Like status    — which of the served foods the user already likes

Storage failures in stages 2–3 surface as StorageError (retryable, 503). The
ranking call is not retried internally.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Sequence

from opentelemetry import trace
from redis.exceptions import RedisError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fooddiary.clients.exposure_ledger import ExposureLedger
from fooddiary.config import RankingPolicy
from fooddiary.errors import StorageError, ValidationError
from fooddiary.models import SPEEDS, Like, StandardFood
from fooddiary.services.catalog import CandidateStore
from fooddiary.services.exposure import ExposureRecorder
from fooddiary.services.ranker import FeedRanker
from fooddiary.telemetry import FEED_FALLBACK_TOTAL

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass
class FeedItem:
    food: StandardFood
    is_liked: bool


class FeedService:
    def __init__(
        self,
        db: AsyncSession,
        ledger: ExposureLedger,
        recorder: ExposureRecorder,
        ranker: FeedRanker,
    ) -> None:
        self.db = db
        self.catalog = CandidateStore(db)
        self.ledger = ledger
        self.recorder = recorder
        self.ranker = ranker

    @property
    def policy(self) -> RankingPolicy:
        return self.ranker.policy

    def _validate(self, speed: str, count: int) -> None:
        if count <= 0 or count > self.policy.max_count:
            raise ValidationError("invalid food count")
        if speed not in SPEEDS:
            raise ValidationError("invalid speed type")

    async def main_feed(
        self,
        user_id: str,
        speed: str,
        count: int,
        now: Optional[datetime] = None,
    ) -> list[FeedItem]:
        self._validate(speed, count)
        now = now or datetime.now(timezone.utc)

        with tracer.start_as_current_span("main_feed") as span:
            span.set_attribute("user.id", user_id)
            span.set_attribute("feed.count", count)

            with tracer.start_as_current_span("feed_candidates"):
                try:
                    pool = await self.catalog.sample_candidates(
                        speed, count * self.policy.oversample_factor
                    )
                except SQLAlchemyError as exc:
                    raise StorageError("failed to get candidate foods") from exc

            with tracer.start_as_current_span("feed_history"):
                try:
                    exposure = await self.ledger.recent_exposure(
                        user_id, self.policy.exposure_window_days, now
                    )
                    recent_tags = await self.ledger.recent_tags(
                        user_id, self.policy.parent_window_days, now
                    )
                except RedisError as exc:
                    raise StorageError("failed to get recommendation history") from exc

            result = self.ranker.rank(pool, exposure, recent_tags, count, now)
            span.set_attribute("feed.pool_size", len(pool))
            span.set_attribute("feed.fallback_used", result.fallback_used)
            if result.fallback_used:
                FEED_FALLBACK_TOTAL.inc()
                logger.debug(
                    "Diversity fallback for user=%s (pool=%d, count=%d)",
                    user_id, len(pool), count,
                )

            if result.items:
                self.recorder.dispatch(user_id, result.food_ids, result.parents, now)

            return await self._with_like_status(user_id, result.items)

    async def by_categories(
        self,
        user_id: str,
        speed: str,
        categories: Sequence[str],
        count: int,
    ) -> list[FeedItem]:
        """Random foods from the given categories; no ranking, no exposure write."""
        self._validate(speed, count)
        categories = [c.strip() for c in categories if c and c.strip()]
        if not categories:
            raise ValidationError("at least one category is required")

        try:
            foods = await self.catalog.sample_candidates(speed, count, categories)
        except SQLAlchemyError as exc:
            raise StorageError("failed to get foods by categories") from exc
        return await self._with_like_status(user_id, foods)

    async def _with_like_status(
        self, user_id: str, foods: Sequence[StandardFood]
    ) -> list[FeedItem]:
        if not foods:
            return []
        try:
            rows = await self.db.execute(
                select(Like.food_id).where(
                    Like.user_id == user_id,
                    Like.food_id.in_([f.food_id for f in foods]),
                )
            )
        except SQLAlchemyError as exc:
            raise StorageError("failed to check liked status") from exc
        liked = {r[0] for r in rows.all()}
        return [FeedItem(food=f, is_liked=f.food_id in liked) for f in foods]
