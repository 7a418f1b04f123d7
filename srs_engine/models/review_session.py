from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from srs_engine.models.base import Base


class ReviewSessionRecord(Base):
    __tablename__ = "review_sessions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    cards_total: Mapped[int] = mapped_column(Integer, nullable=False)
    cards_reviewed: Mapped[int] = mapped_column(Integer, nullable=False)
    correct_count: Mapped[int] = mapped_column(Integer, nullable=False)
    new_cards_seen: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    average_response_time: Mapped[float] = mapped_column(Float, nullable=False)
    total_duration_minutes: Mapped[float] = mapped_column(Float, nullable=False)
    was_abandoned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    started_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
