"""SM-2 scheduling core.

Pure components (no I/O):
- Card / derive_state: per-item scheduling state and its derived learning stage
- SM2Scheduler: computes the next card state from a review quality
- build_queue / due_cards: selects and orders the cards due at an instant
- ProgressAggregator: streaks, mastery counts and accuracy trend

ReviewSession drives a fixed queue through the scheduler and persists each
result via an injected CardStore.
"""

from srs_engine.srs.card import Card, CardState, ReviewResponse, derive_state, new_card
from srs_engine.srs.errors import (
    ConcurrencyConflict,
    SRSError,
    StateError,
    StoreError,
    ValidationError,
)
from srs_engine.srs.progress import ProgressAggregator, ProgressReport, Trend
from srs_engine.srs.queue import QueueConfig, ReviewQueue, build_queue, due_cards
from srs_engine.srs.scheduler import SchedulerConfig, SM2Scheduler, advance
from srs_engine.srs.session import ReviewSession, SessionStatus, SessionSummary, start_session
from srs_engine.srs.store import CardStore, InMemoryCardStore

__all__ = [
    "Card",
    "CardState",
    "CardStore",
    "ConcurrencyConflict",
    "InMemoryCardStore",
    "ProgressAggregator",
    "ProgressReport",
    "QueueConfig",
    "ReviewQueue",
    "ReviewResponse",
    "ReviewSession",
    "SM2Scheduler",
    "SRSError",
    "SchedulerConfig",
    "SessionStatus",
    "SessionSummary",
    "StateError",
    "StoreError",
    "Trend",
    "ValidationError",
    "advance",
    "build_queue",
    "derive_state",
    "due_cards",
    "new_card",
    "start_session",
]
