from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from src.srs.display import MASTERY_MASTERED, mastery_level
from src.srs.due import BUCKET_DUE_TODAY, BUCKET_OVERDUE, DueBuckets, classify_state
from src.srs.state import DEFAULT_EASE_FACTOR, ProgressRecord, ReviewLogEntry


UNCATEGORIZED = "uncategorized"


@dataclass
class CategoryProgress:
    category: str
    total_questions: int = 0
    studied_questions: int = 0
    mastered_questions: int = 0
    average_ease_factor: float = DEFAULT_EASE_FACTOR
    due_count: int = 0


@dataclass
class Dashboard:
    total_questions: int
    total_studied: int
    total_mastered: int
    streak_days: int
    last_study_date: Optional[dt.date]
    due: DueBuckets
    categories: List[CategoryProgress] = field(default_factory=list)
    recent_reviews: List[Tuple[str, ReviewLogEntry]] = field(default_factory=list)


def study_streak(review_dates: Iterable[dt.date], today: dt.date) -> int:
    """
    Number of consecutive calendar days with at least one review.

    The run must end today or yesterday; a streak is not broken until a
    whole day passes without studying.
    """
    days = set(review_dates)
    one_day = dt.timedelta(days=1)
    if today in days:
        cursor = today
    elif today - one_day in days:
        cursor = today - one_day
    else:
        return 0

    streak = 0
    while cursor in days:
        streak += 1
        cursor -= one_day
    return streak


def category_progress(
    records: Sequence[ProgressRecord],
    now: dt.datetime,
) -> List[CategoryProgress]:
    """
    Per-category totals, in order of first appearance.

    A question counts as studied once it has at least one review; the
    average ease factor is taken over studied questions only.
    """
    by_category: Dict[str, CategoryProgress] = {}
    ease_sums: Dict[str, float] = {}

    for record in records:
        name = record.meta.category or UNCATEGORIZED
        entry = by_category.setdefault(name, CategoryProgress(category=name))
        entry.total_questions += 1
        if record.total_reviews == 0:
            continue

        entry.studied_questions += 1
        ease_sums[name] = ease_sums.get(name, 0.0) + record.state.ease_factor
        if mastery_level(record.state) == MASTERY_MASTERED:
            entry.mastered_questions += 1
        if classify_state(record.state, now) in (BUCKET_OVERDUE, BUCKET_DUE_TODAY):
            entry.due_count += 1

    for name, entry in by_category.items():
        if entry.studied_questions:
            entry.average_ease_factor = ease_sums[name] / entry.studied_questions

    return list(by_category.values())


def build_dashboard(
    records: Sequence[ProgressRecord],
    due: DueBuckets,
    now: dt.datetime,
    *,
    recent_limit: int = 20,
) -> Dashboard:
    reviews: List[Tuple[str, ReviewLogEntry]] = [
        (record.question_id, entry)
        for record in records
        for entry in record.review_history
    ]
    reviews.sort(key=lambda item: item[1].reviewed_at, reverse=True)

    review_dates = [entry.reviewed_at.date() for _, entry in reviews]
    return Dashboard(
        total_questions=len(records),
        total_studied=sum(1 for r in records if r.total_reviews > 0),
        total_mastered=sum(1 for r in records if mastery_level(r.state) == MASTERY_MASTERED),
        streak_days=study_streak(review_dates, now.date()),
        last_study_date=review_dates[0] if review_dates else None,
        due=due,
        categories=category_progress(records, now),
        recent_reviews=reviews[:recent_limit],
    )
