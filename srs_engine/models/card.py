"""SRS card table linking learners to learning items."""

from datetime import datetime

from sqlalchemy import DateTime, Float, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from srs_engine.config import utcnow
from srs_engine.models.base import Base, TimestampMixin


class CardRecord(Base, TimestampMixin):
    """Stored SM-2 scheduling state for a learner-item pair."""

    __tablename__ = "cards"
    __table_args__ = (UniqueConstraint("user_id", "item_id", name="uq_cards_user_item"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    item_id: Mapped[str] = mapped_column(String(64), nullable=False)  # Owned by the content subsystem
    easiness_factor: Mapped[float] = mapped_column(Float, nullable=False, default=2.5)
    repetition_number: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    interval_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    next_review_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    last_reviewed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    consecutive_correct: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_reviews: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    lapses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    state: Mapped[str] = mapped_column(String(20), nullable=False, default="new")  # Denormalized for queries
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
