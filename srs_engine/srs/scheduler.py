"""SM-2 scheduler for vocabulary cards.

A variant of the SuperMemo SM-2 algorithm using a 0-4 quality scale.
Reference: https://super-memory.com/english/ol/sm2.htm

Key concepts:
- Easiness factor (EF): multiplier controlling how fast intervals grow, never below 1.3.
- Repetition number (n): consecutive correct reviews since the last lapse.
- Interval (I): whole days from the last review to the next one.
- Quality: 0=Again .. 4=Perfect. Anything below 3 is a lapse.
"""

import logging
import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta

from srs_engine.config import settings
from srs_engine.srs.card import CORRECT_THRESHOLD, Card, new_card
from srs_engine.srs.errors import ValidationError

logger = logging.getLogger(__name__)

MIN_QUALITY = 0
MAX_QUALITY = 4

# Fixed intervals for the first two successful repetitions
FIRST_INTERVAL = 1
SECOND_INTERVAL = 6


@dataclass
class SchedulerConfig:
    """Easiness bounds for the scheduler."""

    min_easiness: float = field(default_factory=lambda: settings.min_easiness)
    starting_easiness: float = field(default_factory=lambda: settings.starting_easiness)


def validate_quality(quality: int) -> None:
    """Reject anything that is not an integer quality in [0, 4]."""
    if isinstance(quality, bool) or not isinstance(quality, int):
        raise ValidationError(
            f"Quality must be an integer, got {quality!r}", invariant="quality_range"
        )
    if not MIN_QUALITY <= quality <= MAX_QUALITY:
        raise ValidationError(
            f"Quality must be between {MIN_QUALITY} and {MAX_QUALITY}, got {quality}",
            invariant="quality_range",
        )


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (no banker's rounding)."""
    return math.floor(value + 0.5)


class SM2Scheduler:
    """Pure SM-2 state transition for cards."""

    def __init__(self, config: SchedulerConfig | None = None) -> None:
        """Initialize the scheduler with optional easiness bounds."""
        self.config = config or SchedulerConfig()

    def advance(self, card: Card, quality: int, reviewed_at: datetime) -> Card:
        """Apply one review response and return the next card state.

        The input card is left untouched. No clock is read: ``reviewed_at``
        stamps both the review and the next due date.

        Args:
            card: Current card state.
            quality: Review quality (0=Again .. 4=Perfect).
            reviewed_at: When the review happened.

        Returns:
            A new Card carrying the updated schedule.

        Raises:
            ValidationError: If the quality is out of range or the card
                already violates one of its invariants.
        """
        validate_quality(quality)
        card.validate(self.config.min_easiness)

        new_ef = self.next_easiness(card.easiness_factor, quality)

        if quality < CORRECT_THRESHOLD:
            repetition_number = 0
            interval = FIRST_INTERVAL
            lapses = card.lapses + 1
            consecutive_correct = 0
        else:
            repetition_number = card.repetition_number + 1
            consecutive_correct = card.consecutive_correct + 1
            lapses = card.lapses
            if repetition_number == 1:
                interval = FIRST_INTERVAL
            elif repetition_number == 2:
                interval = SECOND_INTERVAL
            else:
                interval = max(FIRST_INTERVAL, round_half_up(card.interval_days * new_ef))

        updated = replace(
            card,
            easiness_factor=new_ef,
            repetition_number=repetition_number,
            interval_days=interval,
            consecutive_correct=consecutive_correct,
            lapses=lapses,
            total_reviews=card.total_reviews + 1,
            last_reviewed_at=reviewed_at,
            next_review_date=reviewed_at + timedelta(days=interval),
            version=card.version + 1,
        )

        logger.debug(
            "Card %s: q=%d EF %.2f->%.2f n=%d I=%d state=%s",
            card.id,
            quality,
            card.easiness_factor,
            new_ef,
            repetition_number,
            interval,
            updated.state.value,
        )
        return updated

    def new_card(self, user_id: str, item_id: str, now: datetime) -> Card:
        """Create a due-immediately card at the configured starting easiness."""
        return new_card(user_id, item_id, now, starting_easiness=self.config.starting_easiness)

    def preview(self, card: Card, reviewed_at: datetime) -> dict[int, Card]:
        """Return the outcome of every possible quality for ``card``."""
        return {
            quality: self.advance(card, quality, reviewed_at)
            for quality in range(MIN_QUALITY, MAX_QUALITY + 1)
        }

    def next_easiness(self, easiness: float, quality: int) -> float:
        """EF' = EF + (0.1 - (4 - q) * (0.08 + (4 - q) * 0.02)), floored at the minimum."""
        distance = MAX_QUALITY - quality
        new_ef = easiness + (0.1 - distance * (0.08 + distance * 0.02))
        return max(new_ef, self.config.min_easiness)


_default_scheduler = SM2Scheduler()


def advance(card: Card, quality: int, reviewed_at: datetime) -> Card:
    """Advance ``card`` with the default scheduler configuration."""
    return _default_scheduler.advance(card, quality, reviewed_at)
