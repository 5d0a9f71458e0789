"""
Persistence for words and per-user review state.

Every scheduling write is a compare-and-swap on ReviewStateDB.version, so a
writer holding a stale copy of the state can never overwrite a newer one.
KeyedLocks serializes same-key writers inside one process so that they don't
collide on the version in the first place.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Hashable, Optional

from sqlalchemy import and_, func, or_
from sqlalchemy.exc import DBAPIError, IntegrityError

from errors import ItemNotFoundError, ReviewConflictError, StorageUnavailableError
from models import ReviewHistory, ReviewStateDB, WordDB
from spaced_rep import Classification, ReviewState, utcnow

logger = logging.getLogger(__name__)

DRILL_CLASSIFICATIONS = (Classification.HARD.value, Classification.MEDIUM.value)


@dataclass(frozen=True)
class ReviewRecord:
    """A stored review state together with its compare-and-swap version."""
    user_id: str
    word_id: int
    version: int
    state: ReviewState


@dataclass(frozen=True)
class ReviewStats:
    total_words: int
    words_reviewed_today: int
    words_due_for_review: int
    average_ease_factor: float
    average_interval: float


class KeyedLocks:
    """One lock per key, created on demand and dropped when nobody holds it."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict = {}

    @contextmanager
    def hold(self, key: Hashable):
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = [threading.Lock(), 0]
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    def __len__(self):
        with self._guard:
            return len(self._locks)


def _to_state(row: ReviewStateDB) -> ReviewState:
    return ReviewState(
        ease_factor=row.ease_factor,
        interval_days=row.interval_days,
        repetitions=row.repetitions,
        next_due_at=row.next_due_at,
        last_reviewed_at=row.last_reviewed_at,
        classification=Classification(row.classification) if row.classification else None,
        seen_count=row.seen_count,
    )


def _to_record(row: ReviewStateDB) -> ReviewRecord:
    return ReviewRecord(user_id=row.user_id, word_id=row.word_id, version=row.version, state=_to_state(row))


class ReviewStore:
    """Repository for words, review state and review history."""

    def __init__(self, session_factory):
        self._session_factory = session_factory

    @contextmanager
    def _session(self):
        session = self._session_factory()
        try:
            yield session
        except DBAPIError as exc:
            session.rollback()
            logger.error("Review store failure: %s", exc)
            raise StorageUnavailableError(str(exc)) from exc
        finally:
            session.close()

    @staticmethod
    def _state_query(session, user_id: str, word_id: int):
        return session.query(ReviewStateDB).filter(
            ReviewStateDB.user_id == user_id, ReviewStateDB.word_id == word_id
        )

    # --- Words ---

    def add_word(self, word: str, translation: str = "", meaning: Optional[str] = None) -> WordDB:
        with self._session() as session:
            db_word = WordDB(word=word.strip(), translation=translation, meaning=meaning)
            session.add(db_word)
            session.commit()
            return db_word

    def get_word(self, word_id: int) -> Optional[WordDB]:
        with self._session() as session:
            return session.get(WordDB, word_id)

    def delete_word(self, word_id: int) -> None:
        """Delete a word; its review states and history go with it."""
        with self._session() as session:
            db_word = session.get(WordDB, word_id)
            if db_word is None:
                raise ItemNotFoundError(word_id)
            session.delete(db_word)
            session.commit()

    # --- Review state ---

    def get_state(self, user_id: str, word_id: int) -> Optional[ReviewRecord]:
        with self._session() as session:
            row = self._state_query(session, user_id, word_id).one_or_none()
            return _to_record(row) if row is not None else None

    def load_or_create(self, user_id: str, word_id: int, now: datetime) -> ReviewRecord:
        """Return the stored state, inserting a fresh one (version 0) if there is none."""
        with self._session() as session:
            row = self._state_query(session, user_id, word_id).one_or_none()
            if row is None:
                row = ReviewStateDB(user_id=user_id, word_id=word_id, next_due_at=now,
                                    seen_count=0, version=0)
                session.add(row)
                try:
                    session.commit()
                except IntegrityError:
                    # Someone else created it first, or the word is gone
                    session.rollback()
                    row = self._state_query(session, user_id, word_id).one_or_none()
                    if row is None:
                        raise ItemNotFoundError(word_id)
            return _to_record(row)

    def save_state(self, record: ReviewRecord, state: ReviewState, quality: int, difficulty: int) -> ReviewRecord:
        """
        Write new scheduling fields if the stored version still matches record.version.

        seen_count is never written here. A review history row is added in the
        same transaction.

        Raises:
            ReviewConflictError: the stored version moved on since record was loaded
        """
        user_id, word_id = record.user_id, record.word_id
        with self._session() as session:
            updated = (
                self._state_query(session, user_id, word_id)
                .filter(ReviewStateDB.version == record.version)
                .update(
                    {
                        ReviewStateDB.ease_factor: state.ease_factor,
                        ReviewStateDB.interval_days: state.interval_days,
                        ReviewStateDB.repetitions: state.repetitions,
                        ReviewStateDB.next_due_at: state.next_due_at,
                        ReviewStateDB.last_reviewed_at: state.last_reviewed_at,
                        ReviewStateDB.classification: state.classification.value if state.classification else None,
                        ReviewStateDB.version: ReviewStateDB.version + 1,
                    },
                    synchronize_session=False,
                )
            )
            if not updated:
                session.rollback()
                current = self._state_query(session, user_id, word_id).one_or_none()
                raise ReviewConflictError(
                    user_id, word_id, record.version, current.version if current is not None else None
                )

            session.add(ReviewHistory(
                user_id=user_id,
                word_id=word_id,
                quality=quality,
                difficulty=difficulty,
                interval_days=state.interval_days,
                reviewed_at=state.last_reviewed_at,
            ))
            session.commit()

            row = self._state_query(session, user_id, word_id).one()
            return _to_record(row)

    def increment_seen(self, user_id: str, word_id: int) -> None:
        """Add one to seen_count, creating the state row if the word was never reviewed."""
        with self._session() as session:
            increment = {ReviewStateDB.seen_count: ReviewStateDB.seen_count + 1}
            updated = self._state_query(session, user_id, word_id).update(increment, synchronize_session=False)
            if not updated:
                session.add(ReviewStateDB(user_id=user_id, word_id=word_id, next_due_at=utcnow(),
                                          seen_count=1, version=0))
                try:
                    session.commit()
                    return
                except IntegrityError:
                    session.rollback()
                    updated = self._state_query(session, user_id, word_id).update(
                        increment, synchronize_session=False
                    )
                    if not updated:
                        raise ItemNotFoundError(word_id)
            session.commit()

    def history(self, user_id: str, word_id: int) -> list[ReviewHistory]:
        with self._session() as session:
            return (
                session.query(ReviewHistory)
                .filter(ReviewHistory.user_id == user_id, ReviewHistory.word_id == word_id)
                .order_by(ReviewHistory.reviewed_at.desc(), ReviewHistory.id.desc())
                .all()
            )

    # --- Queries ---

    @staticmethod
    def _due_query(session, user_id: str, now: datetime):
        return (
            session.query(WordDB)
            .outerjoin(
                ReviewStateDB,
                and_(ReviewStateDB.word_id == WordDB.id, ReviewStateDB.user_id == user_id),
            )
            .filter(or_(ReviewStateDB.id.is_(None), ReviewStateDB.next_due_at <= now))
        )

    def due_words(self, user_id: str, now: datetime, limit: int) -> list[WordDB]:
        """Words due at now: never-reviewed first, then most overdue first."""
        with self._session() as session:
            return (
                self._due_query(session, user_id, now)
                .order_by(
                    ReviewStateDB.last_reviewed_at.is_(None).desc(),
                    ReviewStateDB.next_due_at.asc(),
                    WordDB.id.asc(),
                )
                .limit(limit)
                .all()
            )

    def recent_hard_or_medium(self, user_id: str, window: int) -> list[WordDB]:
        """The window most recently reviewed words classified hard or medium."""
        with self._session() as session:
            return (
                session.query(WordDB)
                .join(ReviewStateDB, ReviewStateDB.word_id == WordDB.id)
                .filter(
                    ReviewStateDB.user_id == user_id,
                    ReviewStateDB.classification.in_(DRILL_CLASSIFICATIONS),
                )
                .order_by(
                    ReviewStateDB.last_reviewed_at.desc(),
                    ReviewStateDB.created_at.desc(),
                    WordDB.id.desc(),
                )
                .limit(window)
                .all()
            )

    def review_stats(self, user_id: str, now: datetime) -> ReviewStats:
        day_start = datetime(now.year, now.month, now.day)
        with self._session() as session:
            total = session.query(func.count(WordDB.id)).scalar() or 0
            reviewed_today = (
                session.query(func.count(ReviewStateDB.id))
                .filter(ReviewStateDB.user_id == user_id, ReviewStateDB.last_reviewed_at >= day_start)
                .scalar()
            ) or 0
            due = self._due_query(session, user_id, now).count()
            avg_ease, avg_interval = (
                session.query(func.avg(ReviewStateDB.ease_factor), func.avg(ReviewStateDB.interval_days))
                .filter(ReviewStateDB.user_id == user_id, ReviewStateDB.last_reviewed_at.isnot(None))
                .one()
            )
        return ReviewStats(
            total_words=total,
            words_reviewed_today=reviewed_today,
            words_due_for_review=due,
            average_ease_factor=float(avg_ease or 0.0),
            average_interval=float(avg_interval or 0.0),
        )
