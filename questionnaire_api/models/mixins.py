# questionnaire_api/models/mixins.py
from datetime import datetime, timedelta, timezone
from typing import List

from sqlalchemy import Column, DateTime, func


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def utc_sequence(count: int) -> List[datetime]:
    """Strictly increasing creation stamps for rows added in one batch."""
    base = utcnow()
    return [base + timedelta(microseconds=i) for i in range(count)]


class TimestampMixin:
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False
    )
