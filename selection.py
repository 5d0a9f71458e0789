"""
Review batch selection: words due now, and shuffled drill pools.
"""

import random
from typing import Callable, Optional

from spaced_rep import utcnow


class DueSetSelector:
    """Read-only queries over review state. Never writes, never takes key locks."""

    def __init__(self, store, recency_window: int = 50, clock: Callable = utcnow,
                 rng: Optional[random.Random] = None):
        self.store = store
        self.recency_window = recency_window
        self.clock = clock
        self.rng = rng or random.Random()

    def due_for_review(self, user_id: str, limit: int) -> list:
        """
        Words whose next due time has arrived, most overdue first.

        Words the user has never reviewed sort ahead of everything else.
        """
        if limit < 1:
            return []
        return self.store.due_words(user_id, self.clock(), limit)

    def recent_hard_or_medium(self, user_id: str, limit: int) -> list:
        """
        A drill batch of recently reviewed hard/medium words in random order.

        The whole recency pool is shuffled before truncating, so repeated calls
        vary both the order and, when limit is smaller than the pool, the subset.
        """
        if limit < 1:
            return []
        pool = self.store.recent_hard_or_medium(user_id, self.recency_window)
        self.rng.shuffle(pool)
        return pool[:limit]
