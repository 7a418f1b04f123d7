"""User-level progress reporting from scheduled cards and review history.

Read-only: nothing here feeds back into easiness or interval math.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum

from srs_engine.config import settings
from srs_engine.srs.card import Card, CardState, ReviewResponse
from srs_engine.srs.session import SessionSummary

logger = logging.getLogger(__name__)


class Trend(Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


@dataclass
class ProgressReport:
    """Aggregated learner statistics."""

    total_cards: int = 0
    cards_by_state: dict[str, int] = field(default_factory=dict)
    cards_due: int = 0
    overdue: int = 0  # Due for more than a day
    mastered: int = 0
    average_easiness: float = 0.0
    average_interval: float = 0.0
    total_reviews: int = 0
    accuracy: float | None = None
    streak_days: int = 0
    trend: Trend = Trend.STABLE


def accuracy(responses: Iterable[ReviewResponse]) -> float | None:
    """Fraction of correct responses, or None when there are none."""
    total = correct = 0
    for response in responses:
        total += 1
        if response.is_correct:
            correct += 1
    return correct / total if total else None


def calculate_streak(active_days: Iterable[date], today: date) -> int:
    """Count consecutive calendar days with activity, ending today."""
    days = set(active_days)
    streak = 0
    while today - timedelta(days=streak) in days:
        streak += 1
    return streak


def session_streak(sessions: Iterable[SessionSummary], today: date) -> int:
    """Streak of days with at least one fully completed session.

    Abandoned sessions hold partial data and do not keep a streak alive.
    """
    return calculate_streak(
        (
            s.completed_at.date()
            for s in sessions
            if s.completed_at is not None and not s.was_abandoned
        ),
        today,
    )


def classify_trend(
    responses: Iterable[ReviewResponse],
    now: datetime,
    window_days: int | None = None,
    threshold: float | None = None,
) -> Trend:
    """Compare accuracy over the latest window with the window before it.

    Either window lacking reviews yields STABLE.
    """
    if window_days is None:
        window_days = settings.trend_window_days
    if threshold is None:
        threshold = settings.trend_threshold

    window = timedelta(days=window_days)
    recent_start = now - window
    previous_start = recent_start - window

    recent: list[ReviewResponse] = []
    previous: list[ReviewResponse] = []
    for response in responses:
        if recent_start < response.occurred_at <= now:
            recent.append(response)
        elif previous_start < response.occurred_at <= recent_start:
            previous.append(response)

    recent_accuracy = accuracy(recent)
    previous_accuracy = accuracy(previous)
    if recent_accuracy is None or previous_accuracy is None:
        return Trend.STABLE

    delta = recent_accuracy - previous_accuracy
    if delta > threshold:
        return Trend.IMPROVING
    if delta < -threshold:
        return Trend.DECLINING
    return Trend.STABLE


class ProgressAggregator:
    """Rolls per-card state and review history into a ProgressReport."""

    def __init__(
        self,
        window_days: int | None = None,
        threshold: float | None = None,
    ) -> None:
        self.window_days = window_days if window_days is not None else settings.trend_window_days
        self.threshold = threshold if threshold is not None else settings.trend_threshold

    def report(
        self,
        cards: Iterable[Card],
        responses: Iterable[ReviewResponse],
        sessions: Iterable[SessionSummary],
        now: datetime,
    ) -> ProgressReport:
        cards = list(cards)
        responses = list(responses)

        by_state = {state.value: 0 for state in CardState}
        for card in cards:
            by_state[card.state.value] += 1

        reviewed = [c for c in cards if not c.is_new]
        overdue_cutoff = now - timedelta(days=1)

        report = ProgressReport(
            total_cards=len(cards),
            cards_by_state=by_state,
            cards_due=sum(1 for c in reviewed if c.next_review_date <= now),
            overdue=sum(1 for c in reviewed if c.next_review_date < overdue_cutoff),
            mastered=by_state[CardState.MATURE.value],
            average_easiness=(
                sum(c.easiness_factor for c in cards) / len(cards) if cards else 0.0
            ),
            average_interval=(
                sum(c.interval_days for c in cards) / len(cards) if cards else 0.0
            ),
            total_reviews=len(responses),
            accuracy=accuracy(responses),
            streak_days=session_streak(sessions, now.date()),
            trend=classify_trend(responses, now, self.window_days, self.threshold),
        )
        logger.debug(
            "Progress: %d cards, %d mature, streak %d, trend %s",
            report.total_cards,
            report.mastered,
            report.streak_days,
            report.trend.value,
        )
        return report
