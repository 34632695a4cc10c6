"""
Configuration management using Pydantic BaseSettings.
All values can be overridden via environment variables or a .env file.

The ranking and progress engines never read `settings` directly: they receive
a RankingPolicy / ProgressPolicy built once from it (see `ranking_policy()`
and `progress_policy()`).
"""
from dataclasses import dataclass, field
from zoneinfo import ZoneInfo

from pydantic import BaseModel
from pydantic_settings import BaseSettings


class StatusBand(BaseModel):
    """One row of the weekly status banding table."""
    status: int
    min_reviews: int
    min_average: float


# Ordered best → worst; first matching band wins.
DEFAULT_STATUS_BANDS = [
    StatusBand(status=3, min_reviews=7, min_average=4.0),
    StatusBand(status=2, min_reviews=5, min_average=3.0),
    StatusBand(status=1, min_reviews=3, min_average=0.0),
    StatusBand(status=0, min_reviews=1, min_average=0.0),
]


class Settings(BaseSettings):
    # ── Database (MySQL-protocol compatible) ───────────────────────────────
    db_host: str = "mysql"
    db_port: int = 3306
    db_user: str = "root"
    db_password: str = ""
    db_database: str = "food_diary"
    database_url_override: str | None = None

    @property
    def database_url(self) -> str:
        if self.database_url_override:
            return self.database_url_override
        return (
            f"mysql+aiomysql://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_database}"
        )

    # ── Redis (exposure history ledger) ────────────────────────────────────
    redis_host: str = "redis"
    redis_port: int = 6379
    exposure_retention_days: int = 7     # ledger entries expire after this

    # ── Feed ranking ───────────────────────────────────────────────────────
    feed_max_count: int = 10
    oversample_factor: int = 7
    exposure_window_days: int = 2        # item recency lookback
    parent_window_days: int = 7          # parent-tag diversity lookback
    # (hours_since_seen_upper_bound, weight): the first bound greater than the
    # elapsed hours wins; anything older gets `recency_floor_weight`.
    recency_steps: list[tuple[float, float]] = [(1.0, 0.01), (6.0, 0.10), (18.0, 0.40)]
    recency_floor_weight: float = 0.80
    jitter_low: float = 0.8
    jitter_high: float = 1.2
    exposure_write_timeout: float = 5.0  # seconds

    # ── Day / week progress ────────────────────────────────────────────────
    home_timezone: str = "Asia/Seoul"
    status_bands: list[StatusBand] = DEFAULT_STATUS_BANDS

    # ── Observability ──────────────────────────────────────────────────────
    otel_enabled: bool = True
    otel_exporter_otlp_endpoint: str = "http://jaeger:4317"
    service_name: str = "food-diary-api"
    environment: str = "development"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@dataclass(frozen=True)
class RankingPolicy:
    oversample_factor: int = 7
    exposure_window_days: int = 2
    parent_window_days: int = 7
    recency_steps: tuple[tuple[float, float], ...] = ((1.0, 0.01), (6.0, 0.10), (18.0, 0.40))
    recency_floor_weight: float = 0.80
    unseen_weight: float = 1.0
    jitter_low: float = 0.8
    jitter_high: float = 1.2
    max_count: int = 10


@dataclass(frozen=True)
class ProgressPolicy:
    home_timezone: ZoneInfo = field(default_factory=lambda: ZoneInfo("Asia/Seoul"))
    status_bands: tuple[StatusBand, ...] = tuple(DEFAULT_STATUS_BANDS)


settings = Settings()


def ranking_policy(s: Settings = settings) -> RankingPolicy:
    return RankingPolicy(
        oversample_factor=s.oversample_factor,
        exposure_window_days=s.exposure_window_days,
        parent_window_days=s.parent_window_days,
        recency_steps=tuple(tuple(step) for step in s.recency_steps),
        recency_floor_weight=s.recency_floor_weight,
        jitter_low=s.jitter_low,
        jitter_high=s.jitter_high,
        max_count=s.feed_max_count,
    )


def progress_policy(s: Settings = settings) -> ProgressPolicy:
    return ProgressPolicy(
        home_timezone=ZoneInfo(s.home_timezone),
        status_bands=tuple(s.status_bands),
    )
