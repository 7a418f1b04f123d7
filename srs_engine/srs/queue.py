"""Queue selection for SRS review sessions.

Picks the cards due at a given instant from an in-memory snapshot, clears
the review backlog before introducing new material, and caps new cards per
session to prevent overwhelm. Loading the snapshot is the caller's job.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from srs_engine.config import settings
from srs_engine.srs.card import Card
from srs_engine.srs.errors import ValidationError

logger = logging.getLogger(__name__)


@dataclass
class QueueConfig:
    """Configuration for queue building."""

    max_cards: int = field(default_factory=lambda: settings.max_reviews_per_session)
    new_cards_per_session: int = field(default_factory=lambda: settings.new_cards_per_session)


@dataclass
class ReviewQueue:
    """A prepared queue of cards for a review session."""

    due: list[Card] = field(default_factory=list)
    new: list[Card] = field(default_factory=list)

    @property
    def cards(self) -> list[Card]:
        """Return the presentation order: the due backlog, then new cards."""
        return self.due + self.new

    @property
    def total(self) -> int:
        return len(self.due) + len(self.new)


def is_due(card: Card, now: datetime) -> bool:
    """Return True if the card should be offered for review at ``now``."""
    return card.is_new or card.next_review_date <= now


def _review_priority(card: Card, now: datetime) -> tuple[timedelta, int, str]:
    # Negated so an ascending sort puts the most overdue, most lapsed first
    return (-(now - card.next_review_date), -card.lapses, card.id)


def build_queue(
    cards: Iterable[Card],
    now: datetime,
    config: QueueConfig | None = None,
) -> ReviewQueue:
    """Build a review queue from a snapshot of a learner's cards.

    Args:
        cards: Every card the learner owns.
        now: The instant to evaluate due dates against.
        config: Queue configuration (limits).

    Returns:
        A ReviewQueue with due reviews and admitted new cards.
    """
    config = config or QueueConfig()
    if config.max_cards < 0:
        raise ValidationError(f"Queue limit must be non-negative, got {config.max_cards}")
    if config.new_cards_per_session < 0:
        raise ValidationError(
            f"New cards per session must be non-negative, got {config.new_cards_per_session}"
        )

    reviews: list[Card] = []
    new: list[Card] = []
    for card in cards:
        if card.is_new:
            new.append(card)
        elif is_due(card, now):
            reviews.append(card)

    reviews.sort(key=lambda c: _review_priority(c, now))
    new.sort(key=lambda c: c.id)  # Oldest first (FIFO on sortable ids)

    selected = reviews[: config.max_cards]
    new_slots = min(config.new_cards_per_session, config.max_cards - len(selected))
    new_cards = new[:new_slots]

    queue = ReviewQueue(due=selected, new=new_cards)
    logger.info(
        "Built queue: %d due + %d new = %d total (%d due, %d new available)",
        len(selected),
        len(new_cards),
        queue.total,
        len(reviews),
        len(new),
    )
    return queue


def due_cards(
    all_cards: Iterable[Card],
    now: datetime,
    limit: int,
    new_cards_per_session: int | None = None,
) -> list[Card]:
    """Return the ordered cards due at ``now``, at most ``limit`` of them."""
    if new_cards_per_session is None:
        new_cards_per_session = settings.new_cards_per_session
    config = QueueConfig(max_cards=limit, new_cards_per_session=new_cards_per_session)
    return build_queue(all_cards, now, config).cards


def count_due(cards: Iterable[Card], now: datetime) -> tuple[int, int]:
    """Return (reviews due, new cards available) without any limits applied."""
    due = new = 0
    for card in cards:
        if card.is_new:
            new += 1
        elif is_due(card, now):
            due += 1
    return due, new
