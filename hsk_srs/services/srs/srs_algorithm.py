"""
SRS leveled-interval algorithm.

Each entry sits at an SRS level that indexes a fixed table of review
intervals. A correct answer promotes the entry one level; a wrong answer
demotes it two levels (not a reset to zero).
"""

from datetime import date, timedelta
from typing import Optional, Tuple

from ...domain.vocabulary import MAX_SRS_LEVEL, SRS_INTERVALS, clamp_srs_level


def next_srs_level(current_level: int, was_correct: bool) -> int:
    """Return the SRS level after one practice outcome."""
    level = clamp_srs_level(current_level)
    if was_correct:
        return min(level + 1, MAX_SRS_LEVEL)
    return max(0, level - 2)


def compute_next_review(
    current_level: int,
    was_correct: bool,
    today: Optional[date] = None,
) -> Tuple[int, date]:
    """
    Calculate the next SRS level and review date.

    Args:
        current_level: Current SRS level (clamped into the interval table)
        was_correct: Whether the entry was recalled correctly
        today: Local calendar date to schedule from (defaults to today)

    Returns:
        (new_level, next_review_date)
    """
    new_level = next_srs_level(current_level, was_correct)
    start = today or date.today()
    return new_level, start + timedelta(days=SRS_INTERVALS[new_level])
