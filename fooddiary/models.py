"""
SQLAlchemy ORM models.

Tables:
  users            — profiles + elapsed day/week counters
  standard_foods   — curated catalog (feed candidates) + aggregate stats
  custom_foods     — free-text foods users logged that are not in the catalog
  reviews          — meal log entries, stamped with the user's day/week
  likes            — user × standard food
  weekly_progress  — one status record per (user, week)

All timestamps are naive UTC.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from fooddiary.database import Base

SPEED_FAST = "fast"
SPEED_SLOW = "slow"
SPEEDS = (SPEED_FAST, SPEED_SLOW)

FOOD_TYPE_STANDARD = "standard"
FOOD_TYPE_CUSTOM = "custom"

STATUS_IN_PROGRESS = -2
STATUS_NO_ACTIVITY = -1


def _uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    __tablename__ = "users"

    user_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    display_name: Mapped[Optional[str]] = mapped_column(String(255))
    # Maintained by the day/week synchronizer only; never regress.
    day: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    week: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class StandardFood(Base):
    __tablename__ = "standard_foods"

    food_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    image_url: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    speed: Mapped[str] = mapped_column(String(10), nullable=False)  # 'fast' | 'slow'
    # Broad groupings ("noodle", "rice") used for feed diversity.
    parents: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    categories: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    # Only ever changed through atomic increments (services/catalog.py).
    like_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    review_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_rating: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (Index("idx_food_speed", "speed"),)


class CustomFood(Base):
    __tablename__ = "custom_foods"

    food_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    review_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (Index("idx_custom_food_name", "name"),)


class Review(Base):
    __tablename__ = "reviews"

    review_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    # [{"food_id": ..., "food_name": ..., "type": "standard" | "custom"}]
    foods: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    meal_time: Mapped[str] = mapped_column(String(20), nullable=False)
    image_url: Mapped[str] = mapped_column(String(500), default="", nullable=False)
    comment: Mapped[str] = mapped_column(String(200), default="", nullable=False)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    day: Mapped[int] = mapped_column(Integer, nullable=False)
    week: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (Index("idx_user_day_review", "user_id", "day"),)


class Like(Base):
    __tablename__ = "likes"

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), primary_key=True
    )
    food_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("standard_foods.food_id"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (Index("idx_like_user_id", "user_id"),)


class WeeklyProgress(Base):
    """The per-week status record ("marshmallow")."""
    __tablename__ = "weekly_progress"

    progress_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), nullable=False
    )
    week: Mapped[int] = mapped_column(Integer, nullable=False)
    review_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_rating: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    status: Mapped[int] = mapped_column(Integer, default=STATUS_IN_PROGRESS, nullable=False)
    is_finalized: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        # Concurrent syncs for one user race to create the same week.
        UniqueConstraint("user_id", "week", name="uq_progress_user_week"),
    )
