"""
FastAPI dependencies shared by the routers.

Engine components are built once from `settings` and handed their policy
objects explicitly; nothing below the routers reads `settings` itself.
"""
from typing import Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fooddiary.clients.exposure_ledger import ExposureLedger
from fooddiary.clients.redis_client import get_redis
from fooddiary.config import ProgressPolicy, progress_policy, ranking_policy, settings
from fooddiary.database import get_db
from fooddiary.services.exposure import ExposureRecorder
from fooddiary.services.feed import FeedService
from fooddiary.services.ranker import FeedRanker
from fooddiary.services.sync import DayWeekSynchronizer

feed_ranker = FeedRanker(ranking_policy(settings))
_progress_policy = progress_policy(settings)
_recorder: Optional[ExposureRecorder] = None


def get_ledger() -> ExposureLedger:
    return ExposureLedger(get_redis(), retention_days=settings.exposure_retention_days)


def init_recorder() -> ExposureRecorder:
    global _recorder
    _recorder = ExposureRecorder(get_ledger(), timeout=settings.exposure_write_timeout)
    return _recorder


def get_recorder() -> ExposureRecorder:
    if _recorder is None:
        raise RuntimeError("Exposure recorder not initialised — call init_recorder() at startup")
    return _recorder


def get_ranker() -> FeedRanker:
    return feed_ranker


def get_progress_policy() -> ProgressPolicy:
    return _progress_policy


def get_feed_service(
    db: AsyncSession = Depends(get_db),
    ledger: ExposureLedger = Depends(get_ledger),
    recorder: ExposureRecorder = Depends(get_recorder),
    ranker: FeedRanker = Depends(get_ranker),
) -> FeedService:
    return FeedService(db, ledger, recorder, ranker)


def get_synchronizer(
    db: AsyncSession = Depends(get_db),
    policy: ProgressPolicy = Depends(get_progress_policy),
) -> DayWeekSynchronizer:
    return DayWeekSynchronizer(db, policy)
