from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Iterable, List, Tuple

from src.srs.state import ReviewState


BUCKET_OVERDUE = "overdue"
BUCKET_DUE_TODAY = "due_today"
BUCKET_NEW = "new"
BUCKET_UPCOMING = "upcoming"

# Order in which the study queue drains buckets.
BUCKET_ORDER = (BUCKET_OVERDUE, BUCKET_DUE_TODAY, BUCKET_NEW, BUCKET_UPCOMING)


@dataclass
class DueBuckets:
    """Question ids partitioned by review urgency."""

    overdue: List[str] = field(default_factory=list)
    due_today: List[str] = field(default_factory=list)
    new: List[str] = field(default_factory=list)
    upcoming: List[str] = field(default_factory=list)

    def get(self, bucket: str) -> List[str]:
        return getattr(self, bucket)

    def counts(self) -> dict:
        return {name: len(self.get(name)) for name in BUCKET_ORDER}


def end_of_day(now: dt.datetime) -> dt.datetime:
    """Last representable instant of `now`'s calendar day, same tzinfo."""
    return now.replace(hour=23, minute=59, second=59, microsecond=999999)


def classify_state(state: ReviewState, now: dt.datetime) -> str:
    """
    Bucket a single review state relative to `now`.

    New status is checked first: a card that has never been answered
    correctly is `new` even when its review date lies in the past.
    """
    if state.repetitions == 0:
        return BUCKET_NEW
    if state.next_review_date < now:
        return BUCKET_OVERDUE
    if state.next_review_date <= end_of_day(now):
        return BUCKET_DUE_TODAY
    return BUCKET_UPCOMING


def classify(
    records: Iterable[Tuple[str, ReviewState]],
    now: dt.datetime,
) -> DueBuckets:
    """
    Partition `(question_id, state)` pairs into four disjoint buckets.

    Input order is preserved inside each bucket; ranking is a separate step.
    """
    buckets = DueBuckets()
    for question_id, state in records:
        buckets.get(classify_state(state, now)).append(question_id)
    return buckets
