"""SQLAlchemy-backed CardStore.

Card saves are optimistic: the UPDATE only matches the row when the stored
version is the one the card was scheduled from, so two concurrent reviews
of the same card cannot silently overwrite each other.
"""

import logging
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from srs_engine.config import settings
from srs_engine.models.card import CardRecord
from srs_engine.models.review_log import ReviewLog
from srs_engine.models.review_session import ReviewSessionRecord
from srs_engine.srs.card import Card, ReviewResponse
from srs_engine.srs.errors import ConcurrencyConflict, StoreError
from srs_engine.srs.session import SessionSummary

logger = logging.getLogger(__name__)


def _is_transient(exc: BaseException) -> bool:
    """SQLite lock contention and dropped connections surface as OperationalError."""
    return isinstance(exc, StoreError) and isinstance(exc.__cause__, OperationalError)


# Host-side retry for transient driver errors; conflicts and missing rows are never retried
_transient_retry = retry(
    retry=retry_if_exception(_is_transient),
    stop=stop_after_attempt(settings.store_retry_attempts),
    wait=wait_exponential(multiplier=0.05, min=0.05, max=1),
    reraise=True,
)


def _to_card(record: CardRecord) -> Card:
    return Card(
        id=record.id,
        user_id=record.user_id,
        item_id=record.item_id,
        next_review_date=record.next_review_date,
        easiness_factor=record.easiness_factor,
        repetition_number=record.repetition_number,
        interval_days=record.interval_days,
        last_reviewed_at=record.last_reviewed_at,
        consecutive_correct=record.consecutive_correct,
        total_reviews=record.total_reviews,
        lapses=record.lapses,
        created_at=record.created_at,
        version=record.version,
    )


def _schedule_values(card: Card) -> dict:
    return {
        "easiness_factor": card.easiness_factor,
        "repetition_number": card.repetition_number,
        "interval_days": card.interval_days,
        "next_review_date": card.next_review_date,
        "last_reviewed_at": card.last_reviewed_at,
        "consecutive_correct": card.consecutive_correct,
        "total_reviews": card.total_reviews,
        "lapses": card.lapses,
        "state": card.state.value,
        "version": card.version,
    }


class SqlCardStore:
    """CardStore persisting cards, review logs and session summaries via SQLAlchemy."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    @_transient_retry
    async def add(self, card: Card) -> None:
        """Insert a brand-new card."""
        record = CardRecord(id=card.id, user_id=card.user_id, item_id=card.item_id)
        for key, value in _schedule_values(card).items():
            setattr(record, key, value)
        if card.created_at is not None:
            record.created_at = card.created_at
        try:
            async with self.session_factory() as db:
                db.add(record)
                await db.commit()
        except IntegrityError as exc:
            raise StoreError(f"Card {card.id} already exists for item {card.item_id}") from exc
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to add card {card.id}") from exc

    @_transient_retry
    async def get(self, card_id: str) -> Card | None:
        try:
            async with self.session_factory() as db:
                record = await db.get(CardRecord, card_id)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to load card {card_id}") from exc
        return _to_card(record) if record is not None else None

    @_transient_retry
    async def find_by_item(self, user_id: str, item_id: str) -> Card | None:
        stmt = select(CardRecord).where(
            CardRecord.user_id == user_id, CardRecord.item_id == item_id
        )
        try:
            async with self.session_factory() as db:
                record = (await db.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to look up item {item_id}") from exc
        return _to_card(record) if record is not None else None

    @_transient_retry
    async def load(self, user_id: str) -> list[Card]:
        stmt = select(CardRecord).where(CardRecord.user_id == user_id).order_by(CardRecord.id)
        try:
            async with self.session_factory() as db:
                records = (await db.execute(stmt)).scalars().all()
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to load cards for user {user_id}") from exc
        return [_to_card(r) for r in records]

    @_transient_retry
    async def save(self, card: Card) -> None:
        expected = card.version - 1
        stmt = (
            update(CardRecord)
            .where(CardRecord.id == card.id, CardRecord.version == expected)
            .values(**_schedule_values(card))
            .execution_options(synchronize_session=False)
        )
        try:
            async with self.session_factory() as db:
                result = await db.execute(stmt)
                if result.rowcount == 0:
                    current = await db.scalar(
                        select(CardRecord.version).where(CardRecord.id == card.id)
                    )
                    await db.rollback()
                    if current is None:
                        raise StoreError(f"Card {card.id} does not exist")
                    raise ConcurrencyConflict(card.id, expected, current)
                await db.commit()
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to save card {card.id}") from exc

        logger.debug("Saved card %s at version %d", card.id, card.version)

    @_transient_retry
    async def save_log(self, response: ReviewResponse) -> None:
        entry = ReviewLog(
            card_id=response.card_id,
            user_id=response.user_id,
            session_id=response.session_id,
            quality=response.quality,
            response_time_seconds=response.response_time_seconds,
            easiness_before=response.easiness_before,
            easiness_after=response.easiness_after,
            interval_before=response.interval_before,
            interval_after=response.interval_after,
            reviewed_at=response.occurred_at,
        )
        try:
            async with self.session_factory() as db:
                db.add(entry)
                await db.commit()
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to log review of card {response.card_id}") from exc

    @_transient_retry
    async def load_logs(self, user_id: str, since: datetime | None = None) -> list[ReviewResponse]:
        """Return a learner's review history, oldest first."""
        stmt = select(ReviewLog).where(ReviewLog.user_id == user_id)
        if since is not None:
            stmt = stmt.where(ReviewLog.reviewed_at >= since)
        stmt = stmt.order_by(ReviewLog.reviewed_at.asc(), ReviewLog.id.asc())
        try:
            async with self.session_factory() as db:
                entries = (await db.execute(stmt)).scalars().all()
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to load review logs for user {user_id}") from exc
        return [
            ReviewResponse(
                card_id=e.card_id,
                quality=e.quality,
                response_time_seconds=e.response_time_seconds,
                occurred_at=e.reviewed_at,
                user_id=e.user_id,
                session_id=e.session_id,
                easiness_before=e.easiness_before,
                easiness_after=e.easiness_after,
                interval_before=e.interval_before,
                interval_after=e.interval_after,
            )
            for e in entries
        ]

    @_transient_retry
    async def save_session(self, summary: SessionSummary) -> None:
        record = ReviewSessionRecord(
            id=summary.session_id,
            user_id=summary.user_id,
            cards_total=summary.cards_total,
            cards_reviewed=summary.cards_reviewed,
            correct_count=summary.correct_count,
            new_cards_seen=summary.new_cards_seen,
            average_response_time=summary.average_response_time,
            total_duration_minutes=summary.total_duration_minutes,
            was_abandoned=summary.was_abandoned,
            started_at=summary.started_at,
            completed_at=summary.completed_at,
        )
        try:
            async with self.session_factory() as db:
                db.add(record)
                await db.commit()
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to save session {summary.session_id}") from exc

    @_transient_retry
    async def load_sessions(self, user_id: str) -> list[SessionSummary]:
        stmt = (
            select(ReviewSessionRecord)
            .where(ReviewSessionRecord.user_id == user_id)
            .order_by(ReviewSessionRecord.completed_at.asc())
        )
        try:
            async with self.session_factory() as db:
                records = (await db.execute(stmt)).scalars().all()
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to load sessions for user {user_id}") from exc
        return [
            SessionSummary(
                session_id=r.id,
                user_id=r.user_id,
                cards_total=r.cards_total,
                cards_reviewed=r.cards_reviewed,
                correct_count=r.correct_count,
                incorrect_count=r.cards_reviewed - r.correct_count,
                new_cards_seen=r.new_cards_seen,
                average_response_time=r.average_response_time,
                total_duration_minutes=r.total_duration_minutes,
                was_abandoned=r.was_abandoned,
                started_at=r.started_at,
                completed_at=r.completed_at,
            )
            for r in records
        ]
