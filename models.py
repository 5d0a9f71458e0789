"""
Pydantic & SQLAlchemy models for the review scheduler.
Words, per-user SM-2 review state and the review log.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import (
    Column, Integer, String, Float, DateTime, Text, ForeignKey, Index, UniqueConstraint,
    create_engine, event,
)
from sqlalchemy.orm import declarative_base, sessionmaker, relationship

from spaced_rep import DEFAULT_EASE_FACTOR, Classification, utcnow

Base = declarative_base()


# SQLAlchemy ORM Models
class WordDB(Base):
    __tablename__ = "words"

    id = Column(Integer, primary_key=True, autoincrement=True)
    word = Column(String(255), nullable=False, index=True)
    translation = Column(String(500), nullable=False, default="")
    meaning = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow)

    review_states = relationship("ReviewStateDB", back_populates="word", cascade="all, delete-orphan",
                                 passive_deletes=True)
    history = relationship("ReviewHistory", back_populates="word", cascade="all, delete-orphan",
                           passive_deletes=True)


class ReviewStateDB(Base):
    __tablename__ = "review_states"
    __table_args__ = (
        UniqueConstraint("user_id", "word_id", name="uq_review_states_user_word"),
        Index("ix_review_states_user_due", "user_id", "next_due_at"),
        Index("ix_review_states_user_class_reviewed", "user_id", "classification", "last_reviewed_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False)
    word_id = Column(Integer, ForeignKey("words.id", ondelete="CASCADE"), nullable=False)

    # SM-2 Spaced Repetition fields
    ease_factor = Column(Float, nullable=False, default=DEFAULT_EASE_FACTOR)
    interval_days = Column(Integer, nullable=False, default=0)
    repetitions = Column(Integer, nullable=False, default=0)
    next_due_at = Column(DateTime, nullable=False, default=utcnow)
    last_reviewed_at = Column(DateTime, nullable=True)
    classification = Column(String(10), nullable=True)

    # Only ever incremented by the view counter
    seen_count = Column(Integer, nullable=False, default=0)

    # Compare-and-swap token for scheduling updates
    version = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    word = relationship("WordDB", back_populates="review_states")


class ReviewHistory(Base):
    __tablename__ = "review_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)
    word_id = Column(Integer, ForeignKey("words.id", ondelete="CASCADE"), nullable=False)
    quality = Column(Integer, nullable=False)  # 1-5
    difficulty = Column(Integer, nullable=False)  # 1-5
    interval_days = Column(Integer, nullable=False)
    reviewed_at = Column(DateTime, default=utcnow)

    word = relationship("WordDB", back_populates="history")


# Pydantic models for API
class WordCreate(BaseModel):
    word: str = Field(..., min_length=1)
    translation: str = ""
    meaning: Optional[str] = None


class WordResponse(BaseModel):
    id: int
    word: str
    translation: str
    meaning: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ReviewRequest(BaseModel):
    quality: int = Field(..., ge=1, le=5, description="1=no recall, 5=perfect")
    difficulty: int = Field(..., ge=1, le=5, description="Perceived difficulty, 1=trivial, 5=very hard")
    expected_version: Optional[int] = Field(
        None, ge=0, description="Reject the review if the stored state has moved past this version"
    )


class ReviewStateResponse(BaseModel):
    word_id: int
    version: int
    ease_factor: float
    interval_days: int
    repetitions: int
    next_due_at: datetime
    last_reviewed_at: Optional[datetime] = None
    classification: Optional[Classification] = None
    seen_count: int


class ReviewStatsResponse(BaseModel):
    total_words: int
    words_reviewed_today: int
    words_due_for_review: int
    average_ease_factor: float
    average_interval: float


# Database setup
def get_engine(database_url: str = "sqlite:///reviews.db"):
    if database_url.startswith("sqlite"):
        engine = create_engine(database_url, echo=False, connect_args={"check_same_thread": False})

        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys = ON")
            cursor.close()

        return engine
    return create_engine(database_url, echo=False)


def init_db(engine):
    Base.metadata.create_all(engine)


def get_session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)
