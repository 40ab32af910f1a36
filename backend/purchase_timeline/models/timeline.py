"""Timeline model."""
from sqlalchemy import Column, String, Integer, Float, DateTime, ForeignKey
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import relationship

from purchase_timeline.database import Base
from purchase_timeline.models.base import BaseModel, utcnow
from purchase_timeline.models.enums import TimelineStatus
from purchase_timeline.models.types import GUID


class Timeline(Base, BaseModel):
    """
    Timeline model tracking the purchase of one property.

    Mutated only through TimelineOrchestrator. Never hard-deleted:
    cancelling sets status to CANCELLED.

    Attributes:
        property_id: Tracked property (one timeline per property)
        user_id: Owner of the timeline
        title: Display title
        start_date: Anchor for every step's scheduled_date
        estimated_closing_date: Expected closing
        actual_closing_date: Real closing, once known
        status: ACTIVE, COMPLETED or CANCELLED
        total_steps: Cached step count
        completed_steps: Cached completed step count
        progress_percentage: Cached completed_steps / total_steps * 100
    """

    __tablename__ = "timelines"

    property_id = Column(
        GUID(),
        ForeignKey("properties.id", ondelete="CASCADE"),
        unique=True,
        nullable=False
    )
    user_id = Column(
        GUID(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    title = Column(String(200), nullable=False, default="Home Purchase Timeline")
    start_date = Column(DateTime, nullable=False, default=utcnow, index=True)
    estimated_closing_date = Column(DateTime, nullable=True)
    actual_closing_date = Column(DateTime, nullable=True)
    status = Column(
        SQLEnum(TimelineStatus, name="timeline_status"),
        nullable=False,
        default=TimelineStatus.ACTIVE,
        index=True
    )

    # Cached aggregates, recomputed after every step mutation
    total_steps = Column(Integer, nullable=False, default=0)
    completed_steps = Column(Integer, nullable=False, default=0)
    progress_percentage = Column(Float, nullable=False, default=0.0)

    # Relationships
    user = relationship("User", back_populates="timelines")
    property = relationship("Property", back_populates="timeline")
    steps = relationship(
        "TimelineStep",
        back_populates="timeline",
        cascade="all, delete-orphan",
        order_by="TimelineStep.sort_order"
    )
    documents = relationship(
        "TimelineDocument",
        back_populates="timeline",
        cascade="all, delete-orphan"
    )
    team_members = relationship(
        "TeamMember",
        back_populates="timeline",
        cascade="all, delete-orphan"
    )
    notes = relationship(
        "TimelineNote",
        back_populates="timeline",
        cascade="all, delete-orphan"
    )
