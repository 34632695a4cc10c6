"""FeedService tests: SQLite catalog, fakeredis ledger, real ranker."""
import random
from datetime import timedelta

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from conftest import SIGNUP, add_foods, add_user
from fooddiary.clients.exposure_ledger import ExposureLedger
from fooddiary.config import RankingPolicy
from fooddiary.errors import StorageError, ValidationError
from fooddiary.models import Like
from fooddiary.services.exposure import ExposureRecorder
from fooddiary.services.feed import FeedService
from fooddiary.services.ranker import FeedRanker

FAST_CATALOG = [
    ("Kimbap", "fast", ["rice"], ["korean"]),
    ("Ramyeon", "fast", ["noodle"], ["korean"]),
    ("Tteokbokki", "fast", ["rice_cake"], ["korean", "snack"]),
    ("Fried Chicken", "fast", ["chicken"], ["korean"]),
    ("Pizza", "fast", ["bread"], ["western"]),
    ("Salad", "fast", ["vegetable"], ["western", "healthy"]),
]
SLOW_CATALOG = [
    ("Bibimbap", "slow", ["rice"], ["korean"]),
    ("Pho", "slow", ["noodle", "soup"], ["vietnamese"]),
]


class UnreachableLedger(ExposureLedger):
    async def recent_exposure(self, *args, **kwargs):
        raise RedisConnectionError("connection refused")


class WriteOnlyBrokenLedger(ExposureLedger):
    async def record(self, *args, **kwargs):
        raise RedisConnectionError("connection reset")


@pytest.fixture
async def user(db):
    return await add_user(db, SIGNUP)


@pytest.fixture
async def catalog(db):
    return await add_foods(db, FAST_CATALOG + SLOW_CATALOG)


def build_feed(db, ledger, seed=5, **policy_overrides):
    ranker = FeedRanker(RankingPolicy(**policy_overrides), rng=random.Random(seed))
    recorder = ExposureRecorder(ledger, timeout=1.0)
    return FeedService(db, ledger, recorder, ranker), recorder


async def test_feed_returns_requested_count_of_matching_speed(db, ledger, user, catalog, now):
    feed, recorder = build_feed(db, ledger)

    items = await feed.main_feed(user.user_id, "fast", 3, now=now)
    await recorder.drain()

    assert len(items) == 3
    assert all(item.food.speed == "fast" for item in items)
    assert len({item.food.food_id for item in items}) == 3


async def test_feed_records_what_was_served(db, ledger, user, catalog, now):
    feed, recorder = build_feed(db, ledger)

    items = await feed.main_feed(user.user_id, "fast", 3, now=now)
    await recorder.drain()

    exposure = await ledger.recent_exposure(user.user_id, window_days=2, now=now)
    tags = await ledger.recent_tags(user.user_id, window_days=7, now=now)
    assert set(exposure) == {item.food.food_id for item in items}
    assert tags == {p for item in items for p in item.food.parents}


async def test_next_feed_avoids_recently_shown_tags(db, ledger, user, catalog, now):
    feed, recorder = build_feed(db, ledger)

    first = await feed.main_feed(user.user_id, "fast", 3, now=now)
    await recorder.drain()
    second = await feed.main_feed(user.user_id, "fast", 3, now=now + timedelta(minutes=10))
    await recorder.drain()

    first_ids = {item.food.food_id for item in first}
    second_ids = {item.food.food_id for item in second}
    # Six fast foods with disjoint tags: the second feed is the other half.
    assert first_ids.isdisjoint(second_ids)
    assert len(first_ids | second_ids) == 6


async def test_pool_smaller_than_count_returns_everything(db, ledger, user, catalog, now):
    feed, recorder = build_feed(db, ledger)

    items = await feed.main_feed(user.user_id, "slow", 5, now=now)
    await recorder.drain()

    assert sorted(item.food.name for item in items) == ["Bibimbap", "Pho"]


async def test_empty_catalog_gives_empty_feed_without_exposure(db, ledger, user, now):
    feed, recorder = build_feed(db, ledger)

    assert await feed.main_feed(user.user_id, "fast", 3, now=now) == []
    assert recorder.pending == 0


async def test_like_status_is_attached(db, ledger, user, catalog, now):
    feed, recorder = build_feed(db, ledger)
    liked = catalog[0]
    db.add(Like(user_id=user.user_id, food_id=liked.food_id))
    await db.flush()

    items = await feed.main_feed(user.user_id, "fast", 6, now=now)
    await recorder.drain()

    flags = {item.food.food_id: item.is_liked for item in items}
    assert flags[liked.food_id] is True
    assert sum(flags.values()) == 1


@pytest.mark.parametrize("speed, count", [("fast", 0), ("fast", 11), ("fast", -1), ("medium", 3)])
async def test_invalid_request_is_rejected(db, ledger, user, speed, count):
    feed, _ = build_feed(db, ledger)
    with pytest.raises(ValidationError):
        await feed.main_feed(user.user_id, speed, count)


async def test_history_outage_surfaces_as_storage_error(db, redis, user, catalog, now):
    feed, _ = build_feed(db, UnreachableLedger(redis))
    with pytest.raises(StorageError):
        await feed.main_feed(user.user_id, "fast", 3, now=now)


async def test_exposure_write_failure_does_not_fail_the_feed(db, redis, user, catalog, now):
    feed, recorder = build_feed(db, WriteOnlyBrokenLedger(redis))

    items = await feed.main_feed(user.user_id, "fast", 3, now=now)
    await recorder.drain()

    assert len(items) == 3


async def test_by_categories_filters_and_skips_exposure(db, ledger, user, catalog, now):
    feed, recorder = build_feed(db, ledger)

    items = await feed.by_categories(user.user_id, "fast", ["western"], 10)

    assert sorted(item.food.name for item in items) == ["Pizza", "Salad"]
    assert recorder.pending == 0
    assert await ledger.recent_exposure(user.user_id, window_days=2, now=now) == {}


async def test_by_categories_requires_a_category(db, ledger, user):
    feed, _ = build_feed(db, ledger)
    with pytest.raises(ValidationError):
        await feed.by_categories(user.user_id, "fast", ["  "], 3)
