"""Database-aware helpers for SQL column defaults."""

from sqlalchemy import Column, DateTime
from sqlalchemy.sql import text


def timestamp_default():
    """Return a server-side timestamp default portable across dialects."""
    return text("CURRENT_TIMESTAMP")


class TimestampMixin:
    """``created_at``/``updated_at`` columns maintained by the database."""

    created_at = Column(DateTime(timezone=True), server_default=timestamp_default())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=timestamp_default(),
        onupdate=timestamp_default(),
    )


__all__ = ["TimestampMixin", "timestamp_default"]
