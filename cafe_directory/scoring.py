"""Popularity scoring from per-place interaction statistics."""
from __future__ import annotations

import time
from typing import Optional

from .models import InteractionRecord

FAVORITE_BONUS = 20.0
CLICK_WEIGHT = 2.0
RECENT_DAY_BONUS = 6.0
RECENT_WEEK_BONUS = 3.0

DAY_SECONDS = 24 * 60 * 60
WEEK_SECONDS = 7 * DAY_SECONDS


def recency_bonus(last_seen_at: Optional[float], now: float) -> float:
    if last_seen_at is None:
        return 0.0
    age = now - float(last_seen_at)
    if age <= DAY_SECONDS:
        return RECENT_DAY_BONUS
    if age <= WEEK_SECONDS:
        return RECENT_WEEK_BONUS
    return 0.0


def popularity_score(record: Optional[InteractionRecord], now: Optional[float] = None) -> float:
    """Additive, unbounded ranking value; an unseen place scores 0."""
    if record is None:
        return 0.0
    if now is None:
        now = time.time()
    score = FAVORITE_BONUS if record.favorite else 0.0
    score += CLICK_WEIGHT * max(0, int(record.click_count))
    score += recency_bonus(record.last_seen_at, now)
    return score
