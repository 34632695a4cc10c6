"""
Shared fixtures: in-memory SQLite (aiosqlite) for the SQL stores and
fakeredis (or a real server via REDIS_URL) for the exposure ledger.
"""
import os

os.environ.setdefault("OTEL_ENABLED", "false")

from dataclasses import dataclass, field  # noqa: E402
from datetime import datetime, timezone  # noqa: E402

import fakeredis  # noqa: E402
import pytest  # noqa: E402
import redis.asyncio as aioredis  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from fooddiary import models  # noqa: E402,F401  (registers tables on Base.metadata)
from fooddiary.clients.exposure_ledger import ExposureLedger  # noqa: E402
from fooddiary.database import Base  # noqa: E402
from fooddiary.models import StandardFood, User  # noqa: E402

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


@dataclass
class Food:
    """Minimal candidate for pure ranker tests."""
    food_id: str
    parents: list = field(default_factory=list)


async def make_engine():
    engine = create_async_engine(TEST_DB_URL, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return engine


@pytest.fixture
async def engine():
    engine = await make_engine()
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def redis():
    # REDIS_URL runs the ledger tests against a real server.
    if os.environ.get("REDIS_URL"):
        client = aioredis.from_url(os.environ["REDIS_URL"], decode_responses=True)
    else:
        client = fakeredis.FakeAsyncRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


@pytest.fixture
def ledger(redis):
    return ExposureLedger(redis, retention_days=7)


@pytest.fixture
def now():
    return datetime(2026, 3, 10, 3, 0, tzinfo=timezone.utc)  # 12:00 in Seoul


async def add_user(db, created_at: datetime, day: int = 1, week: int = 1, username: str = "minji") -> User:
    if created_at.tzinfo is not None:
        created_at = created_at.astimezone(timezone.utc).replace(tzinfo=None)
    user = User(username=username, day=day, week=week, created_at=created_at)
    db.add(user)
    await db.flush()
    return user


async def add_foods(db, specs) -> list[StandardFood]:
    """specs: iterable of (name, speed, parents[, categories])."""
    foods = []
    for spec in specs:
        name, speed, parents = spec[:3]
        categories = spec[3] if len(spec) > 3 else []
        foods.append(
            StandardFood(
                name=name,
                image_url=f"https://img.example.com/{name}.png",
                speed=speed,
                parents=list(parents),
                categories=list(categories),
                like_count=0,
                review_count=0,
                total_rating=0,
            )
        )
    db.add_all(foods)
    await db.flush()
    return foods


# 2026-03-02 09:00 in Seoul
SIGNUP = datetime(2026, 3, 2, 0, 0, tzinfo=timezone.utc)