"""Card persistence interface required from the host, plus an in-memory store.

The scheduling core never talks to a database directly: sessions receive a
CardStore and call it. Every implementation must make ``save`` a
compare-and-set on ``Card.version`` so a lost update surfaces as
ConcurrencyConflict instead of silently overwriting another review.
"""

import asyncio
import logging
from typing import Protocol, runtime_checkable

from srs_engine.srs.card import Card, ReviewResponse
from srs_engine.srs.errors import ConcurrencyConflict, StoreError

logger = logging.getLogger(__name__)


@runtime_checkable
class CardStore(Protocol):
    """Persistence capability the scheduling core depends on."""

    async def load(self, user_id: str) -> list[Card]:
        """Return every card owned by ``user_id``."""
        ...

    async def save(self, card: Card) -> None:
        """Persist a scheduled card.

        The stored version must equal ``card.version - 1``; otherwise raise
        ConcurrencyConflict. Raise StoreError on any other failure.
        """
        ...

    async def save_log(self, response: ReviewResponse) -> None:
        """Record a review response. Best effort: callers log and move on."""
        ...


class InMemoryCardStore:
    """Dict-backed CardStore for tests and embedding hosts."""

    def __init__(self, cards: list[Card] | None = None) -> None:
        self._cards: dict[str, Card] = {}
        self.logs: list[ReviewResponse] = []
        self._lock = asyncio.Lock()
        for card in cards or []:
            self._cards[card.id] = card

    async def add(self, card: Card) -> None:
        """Insert a brand-new card."""
        async with self._lock:
            if card.id in self._cards:
                raise StoreError(f"Card {card.id} already exists")
            self._cards[card.id] = card

    async def get(self, card_id: str) -> Card | None:
        return self._cards.get(card_id)

    async def load(self, user_id: str) -> list[Card]:
        return [card for card in self._cards.values() if card.user_id == user_id]

    async def save(self, card: Card) -> None:
        async with self._lock:
            current = self._cards.get(card.id)
            if current is None:
                raise StoreError(f"Card {card.id} does not exist")
            if current.version != card.version - 1:
                raise ConcurrencyConflict(card.id, card.version - 1, current.version)
            self._cards[card.id] = card
        logger.debug("Saved card %s at version %d", card.id, card.version)

    async def save_log(self, response: ReviewResponse) -> None:
        self.logs.append(response)
