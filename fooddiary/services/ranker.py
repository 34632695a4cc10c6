"""
Feed ranker — turns an oversampled candidate pool into the foods a user sees.

Pure computation, no I/O. Candidates are any objects with `food_id` and
`parents` attributes (StandardFood rows in production).

Pipeline:
  1. Dedup      — repeated food_ids in the pool collapse to the first one.
  2. Score      — recency weight (step decay on time since last exposure)
                  × uniform jitter in [jitter_low, jitter_high).
  3. Sort       — descending by score; stable, so equal scores keep pool order.
  4. Diversity  — greedy pass that skips any food sharing a parent tag with
                  something already used (seeded with the user's recent tags).
  5. Fallback   — if slots remain, fill them in score order ignoring tags.

The result always holds exactly min(k, distinct pool size) foods.
"""
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Sequence

from fooddiary.config import RankingPolicy


@dataclass
class ScoredCandidate:
    item: Any
    weight: float
    score: float


@dataclass
class RankResult:
    items: list
    # True when the tag-ignoring pass had to add at least one food.
    fallback_used: bool = False

    @property
    def food_ids(self) -> list[str]:
        return [item.food_id for item in self.items]

    @property
    def parents(self) -> set[str]:
        return {p for item in self.items for p in (item.parents or [])}


class FeedRanker:
    def __init__(self, policy: RankingPolicy, rng: random.Random | None = None) -> None:
        self.policy = policy
        self._rng = rng or random.Random()

    def recency_weight(self, last_seen: datetime | None, now: datetime) -> float:
        """
        Step decay on hours since the food was last shown.

        Never shown → unseen_weight (1.0). Otherwise the first step whose upper
        bound exceeds the elapsed hours wins; older than every step →
        recency_floor_weight.
        """
        if last_seen is None:
            return self.policy.unseen_weight
        hours = (now - last_seen).total_seconds() / 3600
        for upper_bound, weight in self.policy.recency_steps:
            if hours < upper_bound:
                return weight
        return self.policy.recency_floor_weight

    def _jitter(self) -> float:
        """Uniform in [jitter_low, jitter_high); never returns the upper bound."""
        low, high = self.policy.jitter_low, self.policy.jitter_high
        return low + (high - low) * self._rng.random()

    def score(
        self,
        pool: Sequence[Any],
        recent_exposure: Mapping[str, datetime],
        now: datetime,
    ) -> list[ScoredCandidate]:
        """Dedup, score and sort the pool (highest score first)."""
        seen: set[str] = set()
        scored: list[ScoredCandidate] = []
        for item in pool:
            if item.food_id in seen:
                continue
            seen.add(item.food_id)
            weight = self.recency_weight(recent_exposure.get(item.food_id), now)
            jitter = self._jitter()
            scored.append(ScoredCandidate(item=item, weight=weight, score=weight * jitter))

        scored.sort(key=lambda sc: sc.score, reverse=True)
        return scored

    def rank(
        self,
        pool: Sequence[Any],
        recent_exposure: Mapping[str, datetime],
        recent_parent_tags: set[str],
        k: int,
        now: datetime,
    ) -> RankResult:
        if not pool or k <= 0:
            return RankResult(items=[])

        scored = self.score(pool, recent_exposure, now)

        selected: list[Any] = []
        selected_ids: set[str] = set()
        used_parents = set(recent_parent_tags)

        for sc in scored:
            if len(selected) >= k:
                break
            parents = sc.item.parents or []
            if any(p in used_parents for p in parents):
                continue
            selected.append(sc.item)
            selected_ids.add(sc.item.food_id)
            used_parents.update(parents)

        fallback_used = False
        for sc in scored:
            if len(selected) >= k:
                break
            if sc.item.food_id in selected_ids:
                continue
            selected.append(sc.item)
            selected_ids.add(sc.item.food_id)
            fallback_used = True

        return RankResult(items=selected, fallback_used=fallback_used)
