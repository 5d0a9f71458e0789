from datetime import datetime, timedelta

import pytest

from errors import InvalidRatingError
from spaced_rep import (
    Classification, MAX_INTERVAL_DAYS, MIN_EASE_FACTOR, ReviewEvent, ReviewState, apply_review, round_half_up, validate_rating,
)

T0 = datetime(2024, 1, 1, 9, 0, 0)


def review(state, quality, difficulty=3, at=T0):
    return apply_review(state, ReviewEvent(word_id=1, quality=quality, difficulty=difficulty, occurred_at=at))


def test_first_review_quality_5():
    result = review(ReviewState.new(T0), 5)

    assert result.repetitions == 1
    assert result.interval_days == 1
    assert result.classification == Classification.EASY
    assert result.last_reviewed_at == T0
    assert result.next_due_at == T0 + timedelta(days=1)
    assert result.ease_factor == pytest.approx(2.6)


def test_interval_sequence_for_perfect_reviews():
    state = ReviewState.new(T0)
    intervals = []
    for _ in range(5):
        state = review(state, 5)
        intervals.append(state.interval_days)

    # EF after two perfect reviews is 2.7 -> round(6 * 2.7) = 16
    assert intervals[:3] == [1, 6, 16]
    assert all(b > a for a, b in zip(intervals, intervals[1:]))


def test_third_review_uses_ease_factor_before_update():
    state = ReviewState(ease_factor=2.5, interval_days=6, repetitions=2, next_due_at=T0)
    result = review(state, 4)

    assert result.repetitions == 3
    assert result.interval_days == 15
    assert result.ease_factor == pytest.approx(2.5)


@pytest.mark.parametrize("quality", [1, 2])
def test_lapse_resets(quality):
    state = ReviewState(ease_factor=2.6, interval_days=30, repetitions=5, next_due_at=T0)
    result = review(state, quality)

    assert result.repetitions == 0
    assert result.interval_days == 1
    assert result.classification == Classification.HARD
    assert result.next_due_at == T0 + timedelta(days=1)
    assert result.ease_factor < 2.6


def test_quality_3_is_medium():
    result = review(ReviewState.new(T0), 3)

    assert result.repetitions == 1
    assert result.classification == Classification.MEDIUM
    assert result.ease_factor == pytest.approx(2.36)


def test_ease_factor_floor():
    state = ReviewState(ease_factor=MIN_EASE_FACTOR, next_due_at=T0)
    for quality in (1, 2, 3, 1):
        state = review(state, quality)
        assert state.ease_factor >= MIN_EASE_FACTOR


def test_ease_factor_has_no_ceiling():
    state = ReviewState.new(T0)
    for _ in range(20):
        state = review(state, 5)
    assert state.ease_factor == pytest.approx(2.5 + 20 * 0.1)
    assert state.interval_days == MAX_INTERVAL_DAYS


def test_interval_grows_until_capped():
    state = ReviewState.new(T0)
    intervals = []
    for _ in range(20):
        state = review(state, 5)
        intervals.append(state.interval_days)

    capped_from = intervals.index(MAX_INTERVAL_DAYS)
    growing = intervals[:capped_from + 1]
    assert all(b > a for a, b in zip(growing, growing[1:]))
    assert set(intervals[capped_from:]) == {MAX_INTERVAL_DAYS}
    assert state.next_due_at == T0 + timedelta(days=MAX_INTERVAL_DAYS)


def test_capped_interval_stays_reviewable():
    state = ReviewState(ease_factor=4.5, interval_days=MAX_INTERVAL_DAYS, repetitions=30, next_due_at=T0)
    result = review(state, 5)

    assert result.interval_days == MAX_INTERVAL_DAYS
    assert result.repetitions == 31


def test_deterministic_and_input_untouched():
    state = ReviewState(ease_factor=2.1, interval_days=9, repetitions=4, next_due_at=T0, seen_count=7)
    event = ReviewEvent(word_id=1, quality=4, difficulty=2, occurred_at=T0)

    assert apply_review(state, event) == apply_review(state, event)
    assert state.repetitions == 4
    assert apply_review(state, event).seen_count == 7


def test_difficulty_does_not_change_schedule():
    state = ReviewState.new(T0)
    assert review(state, 4, difficulty=1) == review(state, 4, difficulty=5)


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(16.2) == 16
    assert round_half_up(14.5) == 15


@pytest.mark.parametrize("value", [0, 6, -1, 3.0, "4", None, True])
def test_validate_rating_rejects(value):
    with pytest.raises(InvalidRatingError):
        validate_rating("quality", value)


def test_validate_rating_accepts_range():
    assert [validate_rating("difficulty", v) for v in range(1, 6)] == [1, 2, 3, 4, 5]
