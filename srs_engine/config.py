from datetime import UTC, datetime
from pathlib import Path

from pydantic_settings import BaseSettings


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime.

    Kept naive so card timestamps compare cleanly with values read back
    from SQLite (which doesn't store tz info).
    """
    return datetime.now(UTC).replace(tzinfo=None)


class Settings(BaseSettings):
    app_name: str = "Vocab SRS"
    database_url: str = f"sqlite+aiosqlite:///{Path(__file__).resolve().parent.parent / 'data' / 'vocab_srs.db'}"
    default_user_id: str = "local"
    new_cards_per_session: int = 10
    max_reviews_per_session: int = 20
    mature_threshold_days: int = 21
    min_easiness: float = 1.3
    starting_easiness: float = 2.5
    store_timeout_seconds: float = 5.0
    store_retry_attempts: int = 3
    trend_window_days: int = 7
    trend_threshold: float = 0.05  # fraction, i.e. 5 percentage points
    debug: bool = False

    model_config = {"env_prefix": "VOCAB_SRS_", "env_file": ".env"}


settings = Settings()
