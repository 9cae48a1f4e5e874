from __future__ import annotations

import datetime as dt
import math
from typing import Iterable, List, Optional, Tuple

from src.srs.due import BUCKET_NEW, BUCKET_OVERDUE, BUCKET_UPCOMING
from src.srs.state import DEFAULT_EASE_FACTOR, ReviewState


OVERDUE_BASE = 1000.0
NEW_BASE = 500.0
UPCOMING_BASE = 100.0

_SECONDS_PER_DAY = 24 * 60 * 60


def overdue_days(state: ReviewState, now: dt.datetime) -> int:
    """Whole days past the review date; negative when not yet due."""
    delta = (now - state.next_review_date).total_seconds()
    return math.floor(delta / _SECONDS_PER_DAY)


def ease_factor_penalty(state: ReviewState) -> float:
    # Harder than default (lower EF) ranks higher.
    return (DEFAULT_EASE_FACTOR - state.ease_factor) * 10


def _infer_regime(state: ReviewState, days: int) -> str:
    if days > 0:
        return BUCKET_OVERDUE
    if state.repetitions == 0:
        return BUCKET_NEW
    return BUCKET_UPCOMING


def priority_score(
    state: ReviewState,
    now: dt.datetime,
    *,
    bucket: Optional[str] = None,
) -> float:
    """
    Urgency score for a card, higher is more urgent.

    Three regimes share one formula family with distinct base constants:

        overdue:  1000 + overdue_days + ease_factor_penalty
        new:       500 + ease_factor_penalty
        upcoming:  max(0, 100 + overdue_days)   (overdue_days < 0 here)

    When `bucket` is omitted the regime is inferred from the state. Due
    today cards score in the upcoming regime.
    """
    days = overdue_days(state, now)
    regime = bucket or _infer_regime(state, days)

    if regime == BUCKET_OVERDUE:
        return OVERDUE_BASE + days + ease_factor_penalty(state)
    if regime == BUCKET_NEW:
        return NEW_BASE + ease_factor_penalty(state)
    return max(0.0, UPCOMING_BASE + days)


def rank(
    records: Iterable[Tuple[str, ReviewState]],
    now: dt.datetime,
    *,
    bucket: Optional[str] = None,
) -> List[str]:
    """
    Order question ids by descending priority score.

    `sorted` is stable, so equal scores keep their input order.
    """
    scored = [
        (question_id, priority_score(state, now, bucket=bucket))
        for question_id, state in records
    ]
    return [question_id for question_id, _ in sorted(scored, key=lambda x: x[1], reverse=True)]


def rank_overdue(
    records: Iterable[Tuple[str, ReviewState]],
    now: dt.datetime,
) -> List[str]:
    return rank(records, now, bucket=BUCKET_OVERDUE)
