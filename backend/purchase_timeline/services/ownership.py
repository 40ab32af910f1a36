"""Ownership capability used before any timeline read or write."""
from typing import Protocol
from uuid import UUID

from sqlalchemy.orm import Session

from purchase_timeline.models.property import Property
from purchase_timeline.models.timeline import Timeline


class OwnershipChecker(Protocol):
    """Answers whether a caller owns a timeline or a property."""

    def owns_timeline(self, caller_id: UUID, timeline_id: UUID) -> bool: ...

    def owns_property(self, caller_id: UUID, property_id: UUID) -> bool: ...


class DatabaseOwnershipChecker:
    """
    Ownership backed by the user_id columns.

    A soft-deleted property is owned by nobody.
    """

    def __init__(self, db: Session):
        self.db = db

    def owns_timeline(self, caller_id: UUID, timeline_id: UUID) -> bool:
        return self.db.query(Timeline.id).filter(
            Timeline.id == timeline_id,
            Timeline.user_id == caller_id
        ).first() is not None

    def owns_property(self, caller_id: UUID, property_id: UUID) -> bool:
        return self.db.query(Property.id).filter(
            Property.id == property_id,
            Property.user_id == caller_id,
            Property.deleted_at.is_(None)
        ).first() is not None
