from __future__ import annotations

import datetime as dt

import pytest

from src.srs.display import (
    MASTERY_LEARNING,
    MASTERY_MASTERED,
    MASTERY_NEW,
    MASTERY_REVIEWING,
    format_interval,
    interval_previews,
    mastery_level,
)
from src.srs.state import ReviewState


NOW = dt.datetime(2025, 1, 1, tzinfo=dt.timezone.utc)


def _state(*, interval: int, repetitions: int, ease_factor: float = 2.5) -> ReviewState:
    return ReviewState(
        ease_factor=ease_factor,
        interval=interval,
        repetitions=repetitions,
        next_review_date=NOW,
        last_review_date=NOW - dt.timedelta(days=interval),
    )


@pytest.mark.parametrize(
    "days, expected",
    [
        (-3, "Now"),
        (0, "Now"),
        (1, "1 day"),
        (6, "6 days"),
        (7, "1 week"),
        (10, "1 week"),
        (11, "2 weeks"),
        (29, "4 weeks"),
        (30, "1 month"),
        (45, "2 months"),
        (364, "12 months"),
        (365, "1 year"),
        (900, "2 years"),
    ],
)
def test_format_interval(days, expected):
    assert format_interval(days) == expected


def test_mastery_levels():
    assert mastery_level(_state(interval=0, repetitions=0)) == MASTERY_NEW
    assert mastery_level(_state(interval=1, repetitions=1)) == MASTERY_LEARNING
    assert mastery_level(_state(interval=6, repetitions=2)) == MASTERY_LEARNING
    assert mastery_level(_state(interval=7, repetitions=3)) == MASTERY_REVIEWING
    assert mastery_level(_state(interval=30, repetitions=4)) == MASTERY_MASTERED


def test_previews_for_new_card_are_all_one_day():
    previews = interval_previews(ReviewState.initial(NOW), NOW)

    assert sorted(previews) == [0, 1, 2, 3, 4, 5]
    assert set(previews.values()) == {"1 day"}


def test_previews_separate_failing_and_passing_ratings():
    state = _state(interval=20, repetitions=2)

    previews = interval_previews(state, NOW)

    for quality in (0, 1, 2):
        assert previews[quality] == "1 day"
    assert previews[4] == "2 months"


def test_previews_do_not_touch_state():
    state = _state(interval=20, repetitions=2)
    interval_previews(state, NOW)
    assert state.interval == 20
    assert state.repetitions == 2
