"""
Exposure history ledger — which foods were shown to a user, and when.

Storage layout:
  exp:{user_id}  ZSET
                 member = JSON {"id", "food_ids", "parents", "ts"}
                 score  = exposure time (Unix seconds)

One member per feed response. Members are never updated. Entries older than
the retention window are trimmed on every write and the whole key carries a
TTL of the retention window, so an idle user's history expires on its own.
"""
import json
import logging
import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Iterable

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)

EXPOSURE_KEY = "exp:{user_id}"


class ExposureLedger:
    def __init__(self, redis: aioredis.Redis, retention_days: int = 7) -> None:
        self._redis = redis
        self.retention_seconds = retention_days * 86400

    async def record(
        self,
        user_id: str,
        food_ids: Iterable[str],
        parents: Iterable[str],
        shown_at: datetime | None = None,
    ) -> None:
        ts = shown_at.timestamp() if shown_at else time.time()
        member = json.dumps(
            {
                "id": uuid.uuid4().hex,
                "food_ids": list(food_ids),
                "parents": sorted(set(parents)),
                "ts": ts,
            }
        )
        key = EXPOSURE_KEY.format(user_id=user_id)
        pipe = self._redis.pipeline()
        pipe.zadd(key, {member: ts})
        pipe.zremrangebyscore(key, "-inf", ts - self.retention_seconds)
        pipe.expire(key, self.retention_seconds)
        await pipe.execute()

    async def _entries_since(self, user_id: str, cutoff: datetime) -> list[dict]:
        key = EXPOSURE_KEY.format(user_id=user_id)
        raw: list[str] = await self._redis.zrangebyscore(key, cutoff.timestamp(), "+inf")
        return [json.loads(m) for m in raw]

    async def recent_exposure(
        self, user_id: str, window_days: int, now: datetime
    ) -> dict[str, datetime]:
        """Most recent exposure time per food_id within the trailing window."""
        latest: dict[str, float] = {}
        for entry in await self._entries_since(user_id, now - timedelta(days=window_days)):
            for food_id in entry["food_ids"]:
                if entry["ts"] > latest.get(food_id, float("-inf")):
                    latest[food_id] = entry["ts"]
        return {
            fid: datetime.fromtimestamp(ts, tz=timezone.utc) for fid, ts in latest.items()
        }

    async def recent_tags(self, user_id: str, window_days: int, now: datetime) -> set[str]:
        """Parent tags covered by any feed shown within the trailing window."""
        tags: set[str] = set()
        for entry in await self._entries_since(user_id, now - timedelta(days=window_days)):
            tags.update(entry["parents"])
        return tags

    async def purge_user(self, user_id: str) -> None:
        await self._redis.delete(EXPOSURE_KEY.format(user_id=user_id))
        logger.info("Purged exposure history for user_id=%s", user_id)
