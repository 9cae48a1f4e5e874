from __future__ import annotations

import datetime as dt
import math
from dataclasses import dataclass, replace
from typing import Optional

from src.srs.state import DEFAULT_EASE_FACTOR, ReviewState


@dataclass
class SM2Config:
    """Config values for the SM-2 calculator."""

    min_ease_factor: float = 1.3
    max_ease_factor: float = 3.0
    initial_ease_factor: float = DEFAULT_EASE_FACTOR
    passing_quality: int = 3


@dataclass(frozen=True)
class SM2Result:
    """Outcome of applying one rating to a review state."""

    new_state: ReviewState
    previous_state: ReviewState
    interval_delta: int
    ease_factor_delta: float


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class SM2Calculator:
    """
    Classic SM-2 spaced repetition calculator.

        - quality is an integer in [0, 5]
        - quality < 3 is a failed recall
        - the ease factor (EF) is adjusted after every review, pass or fail,
          and clamped into [min_ease_factor, max_ease_factor]
        - interval is in days and determines the next review date

    The calculator is a pure transition: it never mutates the state it is
    given and reads the clock only through the explicit `now` argument.
    Quality validation belongs to the caller.
    """

    def __init__(self, config: Optional[SM2Config] = None) -> None:
        self.config = config or SM2Config()

    def next_ease_factor(self, ease_factor: float, quality: int) -> float:
        q_delta = 5 - quality
        ef = ease_factor + (0.1 - q_delta * (0.08 + q_delta * 0.02))
        return max(self.config.min_ease_factor, min(self.config.max_ease_factor, ef))

    def apply(self, state: ReviewState, quality: int, *, now: dt.datetime) -> SM2Result:
        ef = self.next_ease_factor(state.ease_factor, quality)

        if quality < self.config.passing_quality:
            repetitions = 0
            interval = 1
        else:
            repetitions = state.repetitions + 1
            if repetitions == 1:
                interval = 1
            elif repetitions == 2:
                interval = 6
            else:
                # Old interval, new ease factor.
                interval = max(1, _round_half_up(state.interval * ef))

        new_state = replace(
            state,
            ease_factor=ef,
            interval=interval,
            repetitions=repetitions,
            next_review_date=now + dt.timedelta(days=interval),
            last_review_date=now,
        )
        return SM2Result(
            new_state=new_state,
            previous_state=state,
            interval_delta=interval - state.interval,
            ease_factor_delta=ef - state.ease_factor,
        )

    def initial_state(self, now: dt.datetime) -> ReviewState:
        return ReviewState.initial(now, ease_factor=self.config.initial_ease_factor)
