"""
Derived, display-only values: mastery labels and interval strings.
"""

from __future__ import annotations

import datetime as dt
import math
from typing import Dict, Optional

from src.srs.sm2 import SM2Calculator
from src.srs.state import MAX_QUALITY, MIN_QUALITY, ReviewState


MASTERY_NEW = "new"
MASTERY_LEARNING = "learning"
MASTERY_REVIEWING = "reviewing"
MASTERY_MASTERED = "mastered"


def mastery_level(state: ReviewState) -> str:
    if state.repetitions == 0:
        return MASTERY_NEW
    if state.interval < 7:
        return MASTERY_LEARNING
    if state.interval < 30:
        return MASTERY_REVIEWING
    return MASTERY_MASTERED


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}" if count == 1 else f"{count} {unit}s"


def format_interval(days: int) -> str:
    """
    Human readable form of a day count.

    Weeks, months (30 days) and years (365 days) are rounded, not truncated:
    10 days is "1 week", 11 days is "2 weeks".
    """
    if days <= 0:
        return "Now"
    if days < 7:
        return _plural(days, "day")
    if days < 30:
        return _plural(_round_half_up(days / 7), "week")
    if days < 365:
        return _plural(_round_half_up(days / 30), "month")
    return _plural(_round_half_up(days / 365), "year")


def interval_previews(
    state: ReviewState,
    now: dt.datetime,
    calculator: Optional[SM2Calculator] = None,
) -> Dict[int, str]:
    """Formatted next interval for every possible rating, without side effects."""
    calculator = calculator or SM2Calculator()
    return {
        quality: format_interval(calculator.apply(state, quality, now=now).new_state.interval)
        for quality in range(MIN_QUALITY, MAX_QUALITY + 1)
    }
