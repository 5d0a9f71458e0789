"""
Scheduler service: the operations the UI calls.

Wires together the SM-2 algorithm, the review store, the batch selector and
the debounced view counter.
"""

import logging
from typing import Callable, Optional

from errors import ItemNotFoundError, ReviewConflictError
from seen_counter import SeenCounter
from selection import DueSetSelector
from settings import Settings
from spaced_rep import ReviewEvent, apply_review, utcnow, validate_rating
from store import KeyedLocks, ReviewRecord, ReviewStats, ReviewStore

logger = logging.getLogger(__name__)


class SchedulerService:
    def __init__(self, store: ReviewStore, selector: DueSetSelector, seen_counter: SeenCounter,
                 clock: Callable = utcnow, locks: Optional[KeyedLocks] = None):
        self.store = store
        self.selector = selector
        self.seen_counter = seen_counter
        self.clock = clock
        self.locks = locks or KeyedLocks()

    @classmethod
    def from_settings(cls, store: ReviewStore, settings: Settings, clock: Callable = utcnow) -> "SchedulerService":
        selector = DueSetSelector(store, recency_window=settings.drill_recency_window, clock=clock)
        seen_counter = SeenCounter(lambda key: store.increment_seen(*key), window=settings.seen_debounce_seconds)
        return cls(store, selector, seen_counter, clock=clock)

    def submit_review(self, user_id: str, word_id: int, quality: int, difficulty: int,
                      expected_version: Optional[int] = None) -> ReviewRecord:
        """
        Apply one review to a word and persist the new schedule.

        Args:
            user_id: Reviewing user
            word_id: Word being reviewed
            quality: Recall quality, 1-5
            difficulty: Perceived difficulty, 1-5
            expected_version: If given, the review is only applied when the
                stored state is still at this version. Lets a caller resubmit
                after a failed request without the review landing twice.

        Raises:
            InvalidRatingError, ItemNotFoundError, ReviewConflictError,
            StorageUnavailableError
        """
        quality = validate_rating("quality", quality)
        difficulty = validate_rating("difficulty", difficulty)

        with self.locks.hold((user_id, word_id)):
            if self.store.get_word(word_id) is None:
                raise ItemNotFoundError(word_id)

            now = self.clock()
            record = self.store.load_or_create(user_id, word_id, now)
            if expected_version is not None and record.version != expected_version:
                logger.info("Rejected stale review for word %s (user %s): version %s != %s",
                            word_id, user_id, expected_version, record.version)
                raise ReviewConflictError(user_id, word_id, expected_version, record.version)

            event = ReviewEvent(word_id=word_id, quality=quality, difficulty=difficulty, occurred_at=now)
            new_state = apply_review(record.state, event)
            saved = self.store.save_state(record, new_state, quality=quality, difficulty=difficulty)

        logger.debug("Reviewed word %s (user %s): q=%s interval=%s ef=%.2f",
                     word_id, user_id, quality, saved.state.interval_days, saved.state.ease_factor)
        return saved

    def get_due_batch(self, user_id: str, limit: int) -> list:
        return self.selector.due_for_review(user_id, limit)

    def get_drill_batch(self, user_id: str, limit: int) -> list:
        return self.selector.recent_hard_or_medium(user_id, limit)

    def record_view(self, user_id: str, word_id: int) -> None:
        """Count a view of a word. Never raises."""
        try:
            self.seen_counter.record_seen((user_id, word_id))
        except Exception:
            logger.exception("Could not record view of word %s (user %s)", word_id, user_id)

    def get_review_stats(self, user_id: str) -> ReviewStats:
        return self.store.review_stats(user_id, self.clock())

    def close(self) -> None:
        self.seen_counter.shutdown()
