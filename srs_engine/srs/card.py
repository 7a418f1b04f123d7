"""Card entity: per-user, per-item SM-2 scheduling state.

A Card only references its learning item by id; item content is owned by the
content subsystem. Cards are immutable values. The scheduler produces a new
Card for every review, and ``state`` is always derived from the numeric
fields, never passed in.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from srs_engine.config import settings
from srs_engine.srs.errors import ValidationError

# Quality at or above this value counts as a correct recall
CORRECT_THRESHOLD = 3


class CardState(Enum):
    """Learning stage of a card, derived from its scheduling fields."""

    NEW = "new"             # Never reviewed
    LEARNING = "learning"   # Ramping up after first review or a lapse
    REVIEW = "review"       # Regular reviews, interval below maturity
    MATURE = "mature"       # Interval long enough to count as retained
    LAPSED = "lapsed"       # Latest response was a lapse


def derive_state(
    total_reviews: int,
    repetition_number: int,
    interval_days: int,
    mature_threshold_days: int | None = None,
) -> CardState:
    """Derive the card state from its updated numeric fields.

    A lapse is the only transition that leaves ``repetition_number`` at 0 on a
    reviewed card, so Lapsed holds exactly until the next response.
    """
    if mature_threshold_days is None:
        mature_threshold_days = settings.mature_threshold_days
    if total_reviews == 0:
        return CardState.NEW
    if repetition_number == 0:
        return CardState.LAPSED
    if repetition_number < 3:
        return CardState.LEARNING
    if interval_days < mature_threshold_days:
        return CardState.REVIEW
    return CardState.MATURE


@dataclass(frozen=True)
class Card:
    """SM-2 scheduling state for one learner/item pair."""

    id: str
    user_id: str
    item_id: str
    next_review_date: datetime
    easiness_factor: float = 2.5
    repetition_number: int = 0  # Consecutive correct reviews since last lapse
    interval_days: int = 0
    last_reviewed_at: datetime | None = None
    consecutive_correct: int = 0  # For mastery display, not used in EF math
    total_reviews: int = 0
    lapses: int = 0
    created_at: datetime | None = None
    version: int = 0  # Bumped on every scheduled update; stores compare-and-set on it
    state: CardState = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "state",
            derive_state(self.total_reviews, self.repetition_number, self.interval_days),
        )

    @property
    def is_new(self) -> bool:
        return self.state is CardState.NEW

    def validate(self, min_easiness: float | None = None) -> None:
        """Raise ValidationError naming the first violated invariant."""
        if min_easiness is None:
            min_easiness = settings.min_easiness

        if self.easiness_factor < min_easiness:
            raise ValidationError(
                f"Card {self.id}: easiness factor {self.easiness_factor} is below {min_easiness}",
                invariant="easiness_floor",
            )
        counters = {
            "repetition_number": self.repetition_number,
            "interval_days": self.interval_days,
            "consecutive_correct": self.consecutive_correct,
            "total_reviews": self.total_reviews,
            "lapses": self.lapses,
            "version": self.version,
        }
        for name, value in counters.items():
            if value < 0:
                raise ValidationError(
                    f"Card {self.id}: {name} must be non-negative, got {value}",
                    invariant="non_negative_counters",
                )
        if self.repetition_number >= 1 and self.interval_days < 1:
            raise ValidationError(
                f"Card {self.id}: interval must be at least 1 day once repetition_number >= 1",
                invariant="interval_after_success",
            )
        if self.repetition_number > self.total_reviews or self.lapses > self.total_reviews:
            raise ValidationError(
                f"Card {self.id}: repetition/lapse counters exceed total reviews",
                invariant="counters_consistent",
            )
        if self.last_reviewed_at is not None and self.next_review_date < self.last_reviewed_at:
            raise ValidationError(
                f"Card {self.id}: next review date precedes the last review",
                invariant="due_after_last_review",
            )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to plain JSON-compatible data."""
        data = asdict(self)
        data["state"] = self.state.value
        for key in ("next_review_date", "last_reviewed_at", "created_at"):
            if data[key] is not None:
                data[key] = data[key].isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Card:
        """Rebuild a card from ``to_dict`` output. ``state`` is re-derived."""
        values = {k: v for k, v in data.items() if k != "state"}
        for key in ("next_review_date", "last_reviewed_at", "created_at"):
            if values.get(key) is not None:
                values[key] = datetime.fromisoformat(values[key])
        return cls(**values)


@dataclass(frozen=True)
class ReviewResponse:
    """A single graded review, kept in the session log and stored for analytics."""

    card_id: str
    quality: int  # 0=Again .. 4=Perfect
    response_time_seconds: float
    occurred_at: datetime
    user_id: str = ""
    session_id: str | None = None
    easiness_before: float | None = None
    easiness_after: float | None = None
    interval_before: int | None = None
    interval_after: int | None = None

    @property
    def is_correct(self) -> bool:
        return self.quality >= CORRECT_THRESHOLD


def new_card(
    user_id: str,
    item_id: str,
    now: datetime,
    card_id: str | None = None,
    starting_easiness: float | None = None,
) -> Card:
    """Create the card for an item selected for study for the first time.

    New cards are due immediately.
    """
    return Card(
        id=card_id or uuid.uuid4().hex,
        user_id=user_id,
        item_id=item_id,
        next_review_date=now,
        easiness_factor=(
            starting_easiness if starting_easiness is not None else settings.starting_easiness
        ),
        created_at=now,
    )
