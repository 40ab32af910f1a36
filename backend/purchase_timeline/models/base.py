"""Shared columns for all models."""
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime

from purchase_timeline.models.types import GUID


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how the columns are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class BaseModel:
    """
    Mixin providing primary key and audit timestamps.

    Attributes:
        id: UUID primary key
        created_at: Row creation time (UTC)
        updated_at: Last modification time (UTC)
    """

    id = Column(GUID(), primary_key=True, default=uuid.uuid4, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<{self.__class__.__name__}(id='{self.id}')>"
