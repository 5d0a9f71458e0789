"""
SM-2 Spaced Repetition Algorithm

Quality ratings:
1 - Incorrect, didn't recognize the word
2 - Incorrect, but answer seemed easy to recall
3 - Correct with serious difficulty
4 - Correct after hesitation
5 - Perfect response

Anything below 3 is a lapse.
"""

import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from errors import InvalidRatingError

DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3
MIN_RATING = 1
MAX_RATING = 5
PASSING_QUALITY = 3
# A century; keeps next_due_at inside what datetime can represent
MAX_INTERVAL_DAYS = 36500


class Classification(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what the database columns store."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class ReviewState:
    ease_factor: float = DEFAULT_EASE_FACTOR
    interval_days: int = 0
    repetitions: int = 0
    next_due_at: Optional[datetime] = None
    last_reviewed_at: Optional[datetime] = None
    classification: Optional[Classification] = None
    seen_count: int = 0

    @classmethod
    def new(cls, now: datetime) -> "ReviewState":
        """State for a word that has never been reviewed: due immediately."""
        return cls(next_due_at=now)


@dataclass(frozen=True)
class ReviewEvent:
    word_id: int
    quality: int
    difficulty: int
    occurred_at: datetime


def validate_rating(name: str, value) -> int:
    """Reject anything that is not an integer in [1, 5]."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidRatingError(name, value)
    if not MIN_RATING <= value <= MAX_RATING:
        raise InvalidRatingError(name, value)
    return value


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def next_ease_factor(ease_factor: float, quality: int) -> float:
    # EF' = EF + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02))
    miss = MAX_RATING - quality
    return max(MIN_EASE_FACTOR, ease_factor + (0.1 - miss * (0.08 + miss * 0.02)))


def classify(quality: int) -> Classification:
    if quality < PASSING_QUALITY:
        return Classification.HARD
    if quality == PASSING_QUALITY:
        return Classification.MEDIUM
    return Classification.EASY


def apply_review(state: ReviewState, event: ReviewEvent) -> ReviewState:
    """
    Apply SM-2 to a review state.

    Args:
        state: Current scheduling state of the word
        event: Review outcome; quality and difficulty must already be validated

    Returns:
        A new ReviewState. The input is not modified and no clock is read,
        so identical inputs always give identical results.
    """
    quality = event.quality

    if quality < PASSING_QUALITY:
        # Lapse - start over, review again tomorrow
        repetitions = 0
        interval_days = 1
    else:
        repetitions = state.repetitions + 1
        if repetitions == 1:
            interval_days = 1
        elif repetitions == 2:
            interval_days = 6
        else:
            grown = round_half_up(state.interval_days * state.ease_factor)
            interval_days = min(MAX_INTERVAL_DAYS, max(1, grown))

    return replace(
        state,
        ease_factor=next_ease_factor(state.ease_factor, quality),
        interval_days=interval_days,
        repetitions=repetitions,
        last_reviewed_at=event.occurred_at,
        next_due_at=event.occurred_at + timedelta(days=interval_days),
        classification=classify(quality),
    )
