"""StepComment model."""
from sqlalchemy import Column, String, Text, ForeignKey
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import relationship

from purchase_timeline.database import Base
from purchase_timeline.models.base import BaseModel
from purchase_timeline.models.enums import CommentType
from purchase_timeline.models.types import GUID


class StepComment(Base, BaseModel):
    """Comment on a step, editable by its author or the timeline owner."""

    __tablename__ = "timeline_step_comments"

    step_id = Column(
        GUID(),
        ForeignKey("timeline_steps.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    content = Column(Text, nullable=False)
    comment_type = Column(
        SQLEnum(CommentType, name="comment_type"),
        nullable=False,
        default=CommentType.UPDATE
    )
    author_id = Column(GUID(), nullable=False)
    author_name = Column(String(100), nullable=False)

    # Relationships
    step = relationship("TimelineStep", back_populates="comments")
