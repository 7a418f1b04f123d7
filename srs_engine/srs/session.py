"""Review session orchestrator.

Drives one bounded run through a fixed list of due cards: applies the
scheduler to each response, persists the result through the injected
CardStore and aggregates session statistics for the host UI.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from srs_engine.config import settings, utcnow
from srs_engine.srs.card import Card, ReviewResponse
from srs_engine.srs.errors import StateError, StoreError, ValidationError
from srs_engine.srs.queue import QueueConfig, build_queue
from srs_engine.srs.scheduler import SM2Scheduler, validate_quality
from srs_engine.srs.store import CardStore

logger = logging.getLogger(__name__)


class SessionStatus(Enum):
    """Lifecycle of a review session."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


@dataclass
class SessionSummary:
    """Statistics for a finished (or abandoned) review session."""

    session_id: str
    user_id: str
    cards_total: int = 0
    cards_reviewed: int = 0
    correct_count: int = 0
    incorrect_count: int = 0
    new_cards_seen: int = 0
    average_response_time: float = 0.0  # seconds
    total_duration_minutes: float = 0.0
    was_abandoned: bool = False
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def accuracy(self) -> float:
        """Fraction of reviewed cards answered correctly."""
        return self.correct_count / self.cards_reviewed if self.cards_reviewed else 0.0


@dataclass
class ReviewSession:
    """Manages one interactive review run for a learner.

    Not safe to share across tasks: overlapping ``submit_response`` calls
    are rejected with StateError instead of being interleaved.
    """

    user_id: str
    store: CardStore
    scheduler: SM2Scheduler = field(default_factory=SM2Scheduler)
    clock: Callable[[], datetime] = utcnow
    store_timeout: float = field(default_factory=lambda: settings.store_timeout_seconds)
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: SessionStatus = field(default=SessionStatus.NOT_STARTED, init=False)
    summary: SessionSummary | None = field(default=None, init=False)
    answer_revealed: bool = field(default=False, init=False)
    _cards: list[Card] = field(default_factory=list, init=False)
    _index: int = field(default=0, init=False)
    _responses: list[ReviewResponse] = field(default_factory=list, init=False)
    _updated: list[Card] = field(default_factory=list, init=False)
    _started_at: datetime | None = field(default=None, init=False)
    _in_flight: bool = field(default=False, init=False)

    @property
    def current_index(self) -> int:
        return self._index

    @property
    def remaining(self) -> int:
        """Return the number of cards left to review."""
        return max(0, len(self._cards) - self._index)

    @property
    def is_complete(self) -> bool:
        return self.status is SessionStatus.COMPLETED

    @property
    def current_card(self) -> Card | None:
        """Return the card being reviewed, or None outside an active session."""
        if self.status is SessionStatus.IN_PROGRESS and self._index < len(self._cards):
            return self._cards[self._index]
        return None

    @property
    def responses(self) -> list[ReviewResponse]:
        return list(self._responses)

    @property
    def updated_cards(self) -> list[Card]:
        """Cards as persisted after each submitted response, in review order."""
        return list(self._updated)

    def start(self, cards: Sequence[Card]) -> None:
        """Fix the card list for this session and begin at the first card."""
        if self.status is not SessionStatus.NOT_STARTED:
            raise StateError(f"Session {self.session_id} has already been started")
        if not cards:
            raise ValidationError("Cannot start a session without cards")

        self._cards = list(cards)
        self._index = 0
        self._started_at = self.clock()
        self.status = SessionStatus.IN_PROGRESS

        logger.info(
            "Started session %s for user %s: %d cards queued",
            self.session_id,
            self.user_id,
            len(self._cards),
        )

    def reveal_answer(self) -> None:
        """Mark the current card's answer as shown. Safe to call repeatedly."""
        if self.status is not SessionStatus.IN_PROGRESS:
            raise StateError(f"Cannot reveal an answer while session is {self.status.value}")
        self.answer_revealed = True

    async def submit_response(self, quality: int, response_time_seconds: float) -> Card:
        """Grade the current card, persist it and move to the next one.

        Either the updated card is saved and the cursor advances, or neither
        happens and the same response can be resubmitted.

        Args:
            quality: Review quality (0=Again .. 4=Perfect).
            response_time_seconds: How long the learner took to answer.

        Returns:
            The card as scheduled and persisted.

        Raises:
            StateError: If the session is not in progress, the answer has not
                been revealed, or another submission is still running.
            ValidationError: If quality or response time is invalid.
            StoreError: If persisting the card fails or times out.
            ConcurrencyConflict: If the card was updated elsewhere.
        """
        if self.status is not SessionStatus.IN_PROGRESS:
            raise StateError(f"Cannot submit a response while session is {self.status.value}")
        if self._in_flight:
            raise StateError("Another response is already being submitted for this session")
        if not 0 <= self._index < len(self._cards):
            raise StateError(f"No card at position {self._index}")
        if not self.answer_revealed:
            raise StateError("The answer must be revealed before submitting a response")
        validate_quality(quality)
        if (
            isinstance(response_time_seconds, bool)
            or not isinstance(response_time_seconds, int | float)
            or response_time_seconds < 0
        ):
            raise ValidationError(
                f"Response time must be a non-negative number, got {response_time_seconds!r}",
                invariant="response_time",
            )

        card = self._cards[self._index]
        reviewed_at = self.clock()
        updated = self.scheduler.advance(card, quality, reviewed_at)
        response = ReviewResponse(
            card_id=card.id,
            quality=quality,
            response_time_seconds=float(response_time_seconds),
            occurred_at=reviewed_at,
            user_id=self.user_id,
            session_id=self.session_id,
            easiness_before=card.easiness_factor,
            easiness_after=updated.easiness_factor,
            interval_before=card.interval_days,
            interval_after=updated.interval_days,
        )

        self._in_flight = True
        try:
            await self._save_card(updated)
            await self._save_log(response)
        finally:
            self._in_flight = False

        self._responses.append(response)
        self._updated.append(updated)
        self._index += 1
        self.answer_revealed = False

        if self._index == len(self._cards):
            self._finish(abandoned=False)
        return updated

    def abandon(self) -> SessionSummary:
        """End the session early, keeping whatever was reviewed so far."""
        if self.status is not SessionStatus.IN_PROGRESS:
            raise StateError(f"Cannot abandon a session that is {self.status.value}")
        if self._in_flight:
            raise StateError("Cannot abandon while a response is being submitted")
        return self._finish(abandoned=True)

    async def _save_card(self, card: Card) -> None:
        try:
            async with asyncio.timeout(self.store_timeout):
                await self.store.save(card)
        except TimeoutError as exc:
            raise StoreError(
                f"Timed out after {self.store_timeout}s saving card {card.id}"
            ) from exc

    async def _save_log(self, response: ReviewResponse) -> None:
        try:
            async with asyncio.timeout(self.store_timeout):
                await self.store.save_log(response)
        except (StoreError, TimeoutError) as exc:
            logger.warning("Failed to log review of card %s: %s", response.card_id, exc)

    def _finish(self, abandoned: bool) -> SessionSummary:
        completed_at = self.clock()
        started_at = self._started_at or completed_at
        reviewed = len(self._responses)
        correct = sum(1 for r in self._responses if r.is_correct)
        total_time = sum(r.response_time_seconds for r in self._responses)

        self.summary = SessionSummary(
            session_id=self.session_id,
            user_id=self.user_id,
            cards_total=len(self._cards),
            cards_reviewed=reviewed,
            correct_count=correct,
            incorrect_count=reviewed - correct,
            new_cards_seen=sum(1 for c in self._cards[:reviewed] if c.is_new),
            average_response_time=total_time / reviewed if reviewed else 0.0,
            total_duration_minutes=(completed_at - started_at).total_seconds() / 60,
            was_abandoned=abandoned,
            started_at=started_at,
            completed_at=completed_at,
        )
        self.status = SessionStatus.COMPLETED

        logger.info(
            "Session %s %s: %d/%d reviewed, %d correct",
            self.session_id,
            "abandoned" if abandoned else "completed",
            reviewed,
            len(self._cards),
            correct,
        )
        return self.summary


async def start_session(
    store: CardStore,
    user_id: str,
    config: QueueConfig | None = None,
    scheduler: SM2Scheduler | None = None,
    clock: Callable[[], datetime] = utcnow,
) -> ReviewSession | None:
    """Load a learner's cards, queue the due ones and start a session.

    Args:
        store: Card store to load from and save to.
        user_id: The learner starting the session.
        config: Queue configuration (limits).
        scheduler: Scheduler to apply (defaults to standard SM-2 bounds).
        clock: Source of the current time.

    Returns:
        A started ReviewSession, or None if nothing is due.
    """
    cards = await store.load(user_id)
    queue = build_queue(cards, clock(), config)
    if queue.total == 0:
        logger.info("No cards due for user %s", user_id)
        return None

    session = ReviewSession(
        user_id=user_id,
        store=store,
        scheduler=scheduler or SM2Scheduler(),
        clock=clock,
    )
    session.start(queue.cards)
    return session
