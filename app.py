"""
FastAPI backend for the vocabulary review scheduler.
Exposes SM-2 reviews, due/drill batches, view counting and review stats.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import asdict

from fastapi import FastAPI, HTTPException, Depends, Header, Query, Request
from fastapi.responses import JSONResponse

from errors import InvalidRatingError, ItemNotFoundError, ReviewConflictError, StorageUnavailableError
from models import (
    WordCreate, WordResponse, ReviewRequest, ReviewStateResponse, ReviewStatsResponse,
    get_engine, init_db, get_session_factory,
)
from service import SchedulerService
from settings import get_settings
from store import ReviewRecord, ReviewStore

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: Initialize database and scheduler
    logging.basicConfig(level=settings.log_level)
    engine = get_engine(settings.database_url)
    init_db(engine)
    logger.info("Database initialized at %s", settings.database_url)
    app.state.scheduler = SchedulerService.from_settings(ReviewStore(get_session_factory(engine)), settings)
    yield
    # Shutdown: let pending view increments land
    app.state.scheduler.close()
    engine.dispose()


app = FastAPI(
    title="Vocabulary Review Scheduler API",
    description="Spaced repetition scheduling for vocabulary words",
    version="1.0.0",
    lifespan=lifespan,
)


# --- Error mapping ---

@app.exception_handler(InvalidRatingError)
async def invalid_rating_handler(request: Request, exc: InvalidRatingError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(ItemNotFoundError)
async def item_not_found_handler(request: Request, exc: ItemNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ReviewConflictError)
async def conflict_handler(request: Request, exc: ReviewConflictError):
    return JSONResponse(
        status_code=409,
        content={"detail": str(exc), "current_version": exc.actual_version},
    )


@app.exception_handler(StorageUnavailableError)
async def storage_unavailable_handler(request: Request, exc: StorageUnavailableError):
    return JSONResponse(status_code=503, content={"detail": "Storage unavailable"})


# --- Dependencies ---

def get_scheduler(request: Request) -> SchedulerService:
    return request.app.state.scheduler


def get_user_id(x_user_id: str = Header(..., min_length=1, max_length=64)) -> str:
    return x_user_id


def batch_limit(limit: int = Query(settings.default_batch_limit, ge=1, le=settings.max_batch_limit)) -> int:
    return limit


def to_state_response(record: ReviewRecord) -> ReviewStateResponse:
    state = record.state
    return ReviewStateResponse(
        word_id=record.word_id,
        version=record.version,
        ease_factor=state.ease_factor,
        interval_days=state.interval_days,
        repetitions=state.repetitions,
        next_due_at=state.next_due_at,
        last_reviewed_at=state.last_reviewed_at,
        classification=state.classification,
        seen_count=state.seen_count,
    )


# --- Routes ---
# Handlers are plain functions so they run on the thread pool; the store is blocking.

@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/api/words", response_model=WordResponse)
def create_word(word: WordCreate, scheduler: SchedulerService = Depends(get_scheduler)):
    """Create a new word."""
    return scheduler.store.add_word(word.word, translation=word.translation, meaning=word.meaning)


@app.get("/api/words/get-words-for-review", response_model=list[WordResponse])
def get_words_for_review(
    limit: int = Depends(batch_limit),
    user_id: str = Depends(get_user_id),
    scheduler: SchedulerService = Depends(get_scheduler),
):
    """Get words due for review, most overdue first."""
    return scheduler.get_due_batch(user_id, limit)


@app.get("/api/words/get-cards-anki", response_model=list[WordResponse])
def get_cards_anki(
    limit: int = Depends(batch_limit),
    user_id: str = Depends(get_user_id),
    scheduler: SchedulerService = Depends(get_scheduler),
):
    """Get a shuffled drill batch of recently reviewed hard/medium words."""
    return scheduler.get_drill_batch(user_id, limit)


@app.get("/api/words/get-review-stats", response_model=ReviewStatsResponse)
def get_review_stats(user_id: str = Depends(get_user_id), scheduler: SchedulerService = Depends(get_scheduler)):
    """Get review statistics for the user."""
    stats = scheduler.get_review_stats(user_id)
    return ReviewStatsResponse(**asdict(stats))


@app.get("/api/words/{word_id}", response_model=WordResponse)
def get_word(word_id: int, scheduler: SchedulerService = Depends(get_scheduler)):
    """Get a specific word by ID."""
    word = scheduler.store.get_word(word_id)
    if not word:
        raise HTTPException(status_code=404, detail="Word not found")
    return word


@app.post("/api/words/{word_id}/update-review", response_model=ReviewStateResponse)
def update_review(
    word_id: int,
    review: ReviewRequest,
    user_id: str = Depends(get_user_id),
    scheduler: SchedulerService = Depends(get_scheduler),
):
    """Submit a review result for a word."""
    record = scheduler.submit_review(
        user_id, word_id, review.quality, review.difficulty, expected_version=review.expected_version
    )
    return to_state_response(record)


@app.put("/api/words/{word_id}/increment-seen", status_code=202)
def increment_seen(word_id: int, user_id: str = Depends(get_user_id),
                   scheduler: SchedulerService = Depends(get_scheduler)):
    """Count a view of a word. The counter is updated after the debounce window."""
    scheduler.record_view(user_id, word_id)
    return {"status": "pending"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
