"""TimelineNote model."""
from sqlalchemy import Column, String, Text, Boolean, ForeignKey
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import relationship

from purchase_timeline.database import Base
from purchase_timeline.models.base import BaseModel
from purchase_timeline.models.enums import NoteType
from purchase_timeline.models.types import GUID


class TimelineNote(Base, BaseModel):
    """Free-form note on a timeline, editable by its author or the timeline owner."""

    __tablename__ = "timeline_notes"

    timeline_id = Column(
        GUID(),
        ForeignKey("timelines.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    title = Column(String(200), nullable=True)
    content = Column(Text, nullable=False)
    note_type = Column(
        SQLEnum(NoteType, name="note_type"),
        nullable=False,
        default=NoteType.GENERAL
    )
    is_important = Column(Boolean, nullable=False, default=False)
    is_private = Column(Boolean, nullable=False, default=False)
    author_id = Column(GUID(), nullable=False)
    author_name = Column(String(100), nullable=False)

    # Relationships
    timeline = relationship("Timeline", back_populates="notes")
