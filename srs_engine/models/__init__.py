"""SQLAlchemy ORM models for the vocabulary SRS database."""

from srs_engine.models.base import Base
from srs_engine.models.card import CardRecord
from srs_engine.models.review_log import ReviewLog
from srs_engine.models.review_session import ReviewSessionRecord

__all__ = ["Base", "CardRecord", "ReviewLog", "ReviewSessionRecord"]
