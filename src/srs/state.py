from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Dict, List, Optional


# SM-2 quality scale (0-5).
QUALITY_BLACKOUT = 0
QUALITY_INCORRECT_REMEMBERED = 1
QUALITY_INCORRECT_EASY = 2
QUALITY_CORRECT_DIFFICULT = 3
QUALITY_CORRECT_HESITATION = 4
QUALITY_PERFECT = 5

MIN_QUALITY = QUALITY_BLACKOUT
MAX_QUALITY = QUALITY_PERFECT

# Rating buttons shown in the study UI. "hard" is a failing grade.
QUALITY_BUTTONS: Dict[str, int] = {
    "again": QUALITY_BLACKOUT,
    "hard": QUALITY_INCORRECT_EASY,
    "good": QUALITY_CORRECT_HESITATION,
    "easy": QUALITY_PERFECT,
}

DEFAULT_EASE_FACTOR = 2.5


@dataclass(frozen=True)
class ReviewState:
    """
    Spaced-repetition state for a single question.

    Instances are immutable; the SM-2 calculator always returns a new
    value so callers can compare the before and after states.
    """

    ease_factor: float
    interval: int
    repetitions: int
    next_review_date: dt.datetime
    last_review_date: Optional[dt.datetime] = None

    @classmethod
    def initial(
        cls,
        now: dt.datetime,
        ease_factor: float = DEFAULT_EASE_FACTOR,
    ) -> "ReviewState":
        """Canonical state for a freshly created question."""
        return cls(
            ease_factor=ease_factor,
            interval=0,
            repetitions=0,
            next_review_date=now,
            last_review_date=None,
        )


@dataclass(frozen=True)
class ReviewLogEntry:
    """One past review of a question."""

    reviewed_at: dt.datetime
    quality: int
    response_time_ms: int = 0
    was_revealed: bool = False


@dataclass(frozen=True)
class QuestionMeta:
    """Question fields the scheduler filters and reports on."""

    category: Optional[str] = None
    difficulty: Optional[str] = None
    question: str = ""
    answer: str = ""


@dataclass(frozen=True)
class ProgressRecord:
    """
    A question's review state together with its reporting aggregate.

    `version` increases by one on every successful write and is used for
    optimistic concurrency checks.
    """

    question_id: str
    state: ReviewState
    meta: QuestionMeta = field(default_factory=QuestionMeta)
    version: int = 0
    total_reviews: int = 0
    correct_reviews: int = 0
    average_quality: float = 0.0
    review_history: List[ReviewLogEntry] = field(default_factory=list)


def is_valid_quality(quality: object) -> bool:
    # bool is an int subclass but never a rating
    if isinstance(quality, bool) or not isinstance(quality, int):
        return False
    return MIN_QUALITY <= quality <= MAX_QUALITY
