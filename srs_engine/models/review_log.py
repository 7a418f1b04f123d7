from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from srs_engine.config import utcnow
from srs_engine.models.base import Base


class ReviewLog(Base):
    __tablename__ = "review_logs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    card_id: Mapped[str] = mapped_column(ForeignKey("cards.id"), nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    session_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    quality: Mapped[int] = mapped_column(Integer, nullable=False)  # 0=Again .. 4=Perfect
    response_time_seconds: Mapped[float] = mapped_column(Float, nullable=False)
    easiness_before: Mapped[float | None] = mapped_column(Float, nullable=True)
    easiness_after: Mapped[float | None] = mapped_column(Float, nullable=True)
    interval_before: Mapped[int | None] = mapped_column(Integer, nullable=True)
    interval_after: Mapped[int | None] = mapped_column(Integer, nullable=True)
    reviewed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
