"""Tests for progress aggregation: streaks, mastery counts and trend."""

from datetime import date, datetime, timedelta

import pytest

from srs_engine.srs.card import Card, ReviewResponse, new_card
from srs_engine.srs.progress import (
    ProgressAggregator,
    Trend,
    accuracy,
    calculate_streak,
    classify_trend,
    session_streak,
)
from srs_engine.srs.session import SessionSummary

NOW = datetime(2025, 3, 15, 18, 0, 0)


def _response(days_ago: float, quality: int) -> ReviewResponse:
    return ReviewResponse(
        card_id="card-1",
        quality=quality,
        response_time_seconds=3.0,
        occurred_at=NOW - timedelta(days=days_ago),
    )


def _session(days_ago: int, abandoned: bool = False) -> SessionSummary:
    completed = NOW - timedelta(days=days_ago)
    return SessionSummary(
        session_id=f"s-{days_ago}-{abandoned}",
        user_id="user-1",
        cards_total=10,
        cards_reviewed=4 if abandoned else 10,
        was_abandoned=abandoned,
        started_at=completed - timedelta(minutes=10),
        completed_at=completed,
    )


def _scheduled(card_id: str, repetition_number: int, interval: int, due_days: float) -> Card:
    due = NOW + timedelta(days=due_days)
    return Card(
        id=card_id,
        user_id="user-1",
        item_id=card_id,
        next_review_date=due,
        repetition_number=repetition_number,
        interval_days=interval,
        total_reviews=max(1, repetition_number),
        last_reviewed_at=due - timedelta(days=interval),
        easiness_factor=2.0,
    )


class TestStreak:
    def test_consecutive_days(self) -> None:
        today = date(2025, 3, 15)
        days = [today, today - timedelta(days=1), today - timedelta(days=2)]
        assert calculate_streak(days, today) == 3

    def test_gap_breaks_streak(self) -> None:
        today = date(2025, 3, 15)
        days = [today, today - timedelta(days=2)]
        assert calculate_streak(days, today) == 1

    def test_no_activity_today(self) -> None:
        today = date(2025, 3, 15)
        assert calculate_streak([today - timedelta(days=1)], today) == 0

    def test_duplicate_days_count_once(self) -> None:
        today = date(2025, 3, 15)
        assert calculate_streak([today, today, today], today) == 1

    def test_abandoned_sessions_do_not_count(self) -> None:
        sessions = [_session(0), _session(1, abandoned=True), _session(2)]
        assert session_streak(sessions, NOW.date()) == 1

    def test_completed_sessions_build_streak(self) -> None:
        sessions = [_session(0), _session(1), _session(1, abandoned=True), _session(2)]
        assert session_streak(sessions, NOW.date()) == 3


class TestTrend:
    def test_accuracy_empty(self) -> None:
        assert accuracy([]) is None

    def test_accuracy_fraction(self) -> None:
        assert accuracy([_response(1, 4), _response(1, 0)]) == pytest.approx(0.5)

    def test_improving(self) -> None:
        responses = [_response(10, 4), _response(10, 1)] + [_response(2, 4), _response(3, 3)]
        assert classify_trend(responses, NOW, window_days=7, threshold=0.05) is Trend.IMPROVING

    def test_declining(self) -> None:
        responses = [_response(9, 4), _response(12, 4)] + [_response(1, 0), _response(2, 4)]
        assert classify_trend(responses, NOW, window_days=7, threshold=0.05) is Trend.DECLINING

    def test_small_change_is_stable(self) -> None:
        previous = [_response(8, 4)] * 19 + [_response(8, 0)]  # 95%
        recent = [_response(1, 4)] * 49 + [_response(1, 0)]  # 98%
        assert classify_trend(previous + recent, NOW, window_days=7, threshold=0.05) is Trend.STABLE

    def test_missing_window_is_stable(self) -> None:
        assert classify_trend([_response(1, 4)], NOW, window_days=7) is Trend.STABLE

    def test_older_reviews_ignored(self) -> None:
        responses = [_response(30, 0)] * 5 + [_response(10, 4), _response(2, 4)]
        assert classify_trend(responses, NOW, window_days=7) is Trend.STABLE


class TestProgressAggregator:
    def test_report(self) -> None:
        cards = [
            new_card("user-1", "fresh", NOW, card_id="fresh"),
            _scheduled("learning", 1, 1, due_days=-0.5),
            _scheduled("review", 3, 10, due_days=-3),
            _scheduled("mature", 5, 30, due_days=12),
            _scheduled("lapsed", 0, 1, due_days=0.5),
        ]
        responses = [_response(1, 4), _response(1, 3), _response(2, 1), _response(3, 4)]
        sessions = [_session(0), _session(1)]

        report = ProgressAggregator(window_days=7, threshold=0.05).report(
            cards, responses, sessions, NOW
        )

        assert report.total_cards == 5
        assert report.cards_by_state == {
            "new": 1,
            "learning": 1,
            "review": 1,
            "mature": 1,
            "lapsed": 1,
        }
        assert report.mastered == 1
        assert report.cards_due == 2
        assert report.overdue == 1
        assert report.total_reviews == 4
        assert report.accuracy == pytest.approx(0.75)
        assert report.streak_days == 2
        assert report.trend is Trend.STABLE
        assert report.average_interval == pytest.approx((0 + 1 + 10 + 30 + 1) / 5)
        assert report.average_easiness == pytest.approx((2.5 + 2.0 * 4) / 5)

    def test_empty_report(self) -> None:
        report = ProgressAggregator().report([], [], [], NOW)
        assert report.total_cards == 0
        assert report.accuracy is None
        assert report.average_easiness == 0.0
        assert report.streak_days == 0
        assert report.trend is Trend.STABLE
