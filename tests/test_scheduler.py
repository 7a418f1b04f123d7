"""Tests for the card model and the SM-2 scheduler."""

from datetime import datetime, timedelta

import pytest

from srs_engine.srs.card import Card, CardState, derive_state, new_card
from srs_engine.srs.errors import ValidationError
from srs_engine.srs.scheduler import SchedulerConfig, SM2Scheduler, advance, round_half_up

T0 = datetime(2025, 3, 1, 9, 0, 0)


def _card(**overrides) -> Card:
    values = {
        "id": "card-1",
        "user_id": "user-1",
        "item_id": "item-1",
        "next_review_date": T0,
    }
    values.update(overrides)
    return Card(**values)


def _reviewed_card(repetition_number: int, interval_days: int, **overrides) -> Card:
    values = {
        "repetition_number": repetition_number,
        "interval_days": interval_days,
        "total_reviews": repetition_number,
        "consecutive_correct": repetition_number,
        "last_reviewed_at": T0 - timedelta(days=interval_days),
    }
    values.update(overrides)
    return _card(**values)


# --- Card ---


class TestCard:
    def test_new_card_defaults(self) -> None:
        card = new_card("user-1", "item-1", T0)
        assert card.state is CardState.NEW
        assert card.easiness_factor == 2.5
        assert card.repetition_number == 0
        assert card.next_review_date == T0  # Due immediately
        assert card.last_reviewed_at is None
        assert card.version == 0

    def test_new_card_custom_easiness(self) -> None:
        card = new_card("user-1", "item-1", T0, starting_easiness=2.3)
        assert card.easiness_factor == 2.3

    def test_state_cannot_be_passed_in(self) -> None:
        with pytest.raises(TypeError):
            Card(id="x", user_id="u", item_id="i", next_review_date=T0, state=CardState.MATURE)

    def test_state_follows_fields(self) -> None:
        assert _reviewed_card(2, 6).state is CardState.LEARNING
        assert _reviewed_card(4, 15).state is CardState.REVIEW
        assert _reviewed_card(4, 40).state is CardState.MATURE

    def test_dict_round_trip(self) -> None:
        card = _reviewed_card(3, 16, easiness_factor=2.6, lapses=1, total_reviews=5, version=4)
        data = card.to_dict()
        assert data["state"] == "review"
        assert isinstance(data["next_review_date"], str)
        assert Card.from_dict(data) == card

    def test_validate_rejects_low_easiness(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            _card(easiness_factor=1.2).validate()
        assert exc_info.value.invariant == "easiness_floor"

    def test_validate_rejects_zero_interval_after_success(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            _reviewed_card(1, 0).validate()
        assert exc_info.value.invariant == "interval_after_success"

    def test_validate_rejects_negative_counter(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            _card(lapses=-1).validate()
        assert exc_info.value.invariant == "non_negative_counters"

    def test_validate_rejects_due_before_last_review(self) -> None:
        card = _reviewed_card(1, 1, last_reviewed_at=T0 + timedelta(days=2))
        with pytest.raises(ValidationError) as exc_info:
            card.validate()
        assert exc_info.value.invariant == "due_after_last_review"


# --- State derivation ---


class TestDeriveState:
    def test_new(self) -> None:
        assert derive_state(0, 0, 0) is CardState.NEW

    def test_lapsed_after_failure(self) -> None:
        assert derive_state(5, 0, 1) is CardState.LAPSED

    def test_learning(self) -> None:
        assert derive_state(1, 1, 1) is CardState.LEARNING
        assert derive_state(4, 2, 6) is CardState.LEARNING

    def test_review_below_threshold(self) -> None:
        assert derive_state(3, 3, 20) is CardState.REVIEW

    def test_mature_at_threshold(self) -> None:
        assert derive_state(3, 3, 21) is CardState.MATURE

    def test_custom_threshold(self) -> None:
        assert derive_state(3, 3, 21, mature_threshold_days=30) is CardState.REVIEW

    def test_deterministic(self) -> None:
        args = (7, 4, 18)
        assert derive_state(*args) is derive_state(*args)


# --- Scheduler ---


class TestSM2Scheduler:
    def setup_method(self) -> None:
        self.scheduler = SM2Scheduler()

    def test_first_review_perfect(self) -> None:
        result = self.scheduler.advance(new_card("user-1", "item-1", T0), 4, T0)
        assert result.repetition_number == 1
        assert result.interval_days == 1
        assert result.state is CardState.LEARNING
        assert result.easiness_factor == pytest.approx(2.6)
        assert result.next_review_date == T0 + timedelta(days=1)
        assert result.last_reviewed_at == T0
        assert result.total_reviews == 1
        assert result.consecutive_correct == 1
        assert result.version == 1

    def test_second_success_interval_six(self) -> None:
        card = _reviewed_card(1, 1)
        result = self.scheduler.advance(card, 3, T0)
        assert result.repetition_number == 2
        assert result.interval_days == 6
        assert result.easiness_factor == pytest.approx(2.5)  # q=3 leaves EF unchanged

    def test_third_success_multiplies_interval(self) -> None:
        card = _reviewed_card(2, 6, easiness_factor=2.5)
        result = self.scheduler.advance(card, 4, T0)
        assert result.repetition_number == 3
        assert result.easiness_factor == pytest.approx(2.6)
        assert result.interval_days == 16  # round(6 * 2.6)
        assert result.state is CardState.REVIEW

    def test_becomes_mature(self) -> None:
        card = _reviewed_card(3, 10, easiness_factor=2.5)
        result = self.scheduler.advance(card, 4, T0)
        assert result.interval_days == 26
        assert result.state is CardState.MATURE

    def test_lapse_on_mature_card(self) -> None:
        card = _reviewed_card(5, 30, easiness_factor=2.5)
        result = self.scheduler.advance(card, 1, T0)
        assert result.repetition_number == 0
        assert result.interval_days == 1
        assert result.lapses == card.lapses + 1
        assert result.consecutive_correct == 0
        assert result.state is CardState.LAPSED
        assert result.easiness_factor == pytest.approx(2.18)
        assert result.next_review_date == T0 + timedelta(days=1)

    def test_lapsed_recovers_to_learning(self) -> None:
        lapsed = self.scheduler.advance(_reviewed_card(5, 30), 0, T0)
        result = self.scheduler.advance(lapsed, 3, T0 + timedelta(days=1))
        assert result.state is CardState.LEARNING
        assert result.repetition_number == 1
        assert result.interval_days == 1

    def test_easiness_never_below_floor(self) -> None:
        card = _reviewed_card(3, 10, easiness_factor=1.3)
        for quality in range(5):
            assert self.scheduler.advance(card, quality, T0).easiness_factor >= 1.3

    def test_repeated_failures_floor_easiness(self) -> None:
        card = new_card("user-1", "item-1", T0)
        for day in range(10):
            card = self.scheduler.advance(card, 0, T0 + timedelta(days=day))
        assert card.easiness_factor == pytest.approx(1.3)
        assert card.lapses == 10

    @pytest.mark.parametrize("quality", [0, 1, 2])
    def test_lapse_resets_progress(self, quality: int) -> None:
        result = self.scheduler.advance(_reviewed_card(4, 15), quality, T0)
        assert result.repetition_number == 0
        assert result.interval_days == 1

    @pytest.mark.parametrize("quality", [3, 4])
    def test_success_increments_repetition(self, quality: int) -> None:
        card = _reviewed_card(4, 15)
        result = self.scheduler.advance(card, quality, T0)
        assert result.repetition_number == card.repetition_number + 1

    @pytest.mark.parametrize("quality", [-1, 5, 3.0, True, "3", None])
    def test_invalid_quality_rejected(self, quality) -> None:
        with pytest.raises(ValidationError) as exc_info:
            self.scheduler.advance(new_card("user-1", "item-1", T0), quality, T0)
        assert exc_info.value.invariant == "quality_range"

    def test_corrupted_card_rejected(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            self.scheduler.advance(_card(easiness_factor=1.1), 4, T0)
        assert exc_info.value.invariant == "easiness_floor"

    def test_input_not_mutated(self) -> None:
        card = _reviewed_card(2, 6)
        snapshot = card.to_dict()
        self.scheduler.advance(card, 4, T0)
        assert card.to_dict() == snapshot

    def test_counters_monotonic(self) -> None:
        card = new_card("user-1", "item-1", T0)
        for day, quality in enumerate([4, 1, 3, 4, 2, 4]):
            result = self.scheduler.advance(card, quality, T0 + timedelta(days=day))
            assert result.total_reviews == card.total_reviews + 1
            assert result.lapses >= card.lapses
            assert result.next_review_date > result.last_reviewed_at
            result.validate()
            card = result

    def test_custom_min_easiness(self) -> None:
        scheduler = SM2Scheduler(SchedulerConfig(min_easiness=1.7, starting_easiness=2.5))
        result = scheduler.advance(_reviewed_card(3, 10, easiness_factor=1.8), 0, T0)
        assert result.easiness_factor == pytest.approx(1.7)

    def test_new_card_uses_config(self) -> None:
        scheduler = SM2Scheduler(SchedulerConfig(min_easiness=1.3, starting_easiness=2.2))
        assert scheduler.new_card("user-1", "item-1", T0).easiness_factor == 2.2

    def test_preview_covers_all_qualities(self) -> None:
        card = _reviewed_card(2, 6)
        outcomes = self.scheduler.preview(card, T0)
        assert sorted(outcomes) == [0, 1, 2, 3, 4]
        assert outcomes[0].interval_days == 1
        assert outcomes[4].interval_days == 16

    def test_module_level_advance(self) -> None:
        result = advance(new_card("user-1", "item-1", T0), 3, T0)
        assert result.repetition_number == 1

    def test_round_half_up(self) -> None:
        assert round_half_up(2.5) == 3
        assert round_half_up(15.4) == 15
        assert round_half_up(15.6) == 16
