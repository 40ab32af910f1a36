"""TimelineStep model."""
from sqlalchemy import (
    Column, String, Text, Integer, BigInteger, Boolean, DateTime, ForeignKey,
    UniqueConstraint,
)
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import relationship

from purchase_timeline.database import Base
from purchase_timeline.models.base import BaseModel
from purchase_timeline.models.enums import StepCategory, StepPriority, StepStatus
from purchase_timeline.models.types import GUID, JSONType


class TimelineStep(Base, BaseModel):
    """
    Ordered unit of work within a timeline.

    Sort orders are unique and dense (0..n-1) per timeline. At most one step
    of a timeline is CURRENT. Costs are integer cents.

    Attributes:
        timeline_id: Owning timeline
        title: Step title, also the key other steps use to declare dependencies
        description: What the step involves
        category: Cost/reporting category
        icon: UI icon name
        sort_order: Position within the timeline
        status: UPCOMING, CURRENT or COMPLETED
        is_required: Whether the step can be left undone
        is_blocked: Whether something external blocks the step
        block_reason: Why the step is blocked
        days_from_start: Offset of scheduled_date from timeline start
        estimated_duration: Expected duration in days
        scheduled_date: timeline.start_date + days_from_start
        actual_start_date: When work started
        actual_end_date: When the step was completed
        estimated_cost: Expected cost in cents
        actual_cost: Real cost in cents
        priority: LOW..CRITICAL
        dependencies: Titles of sibling steps that should be completed first
    """

    __tablename__ = "timeline_steps"
    __table_args__ = (
        UniqueConstraint("timeline_id", "sort_order", name="uq_timeline_steps_sort_order"),
    )

    timeline_id = Column(
        GUID(),
        ForeignKey("timelines.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=False, default="")
    category = Column(
        SQLEnum(StepCategory, name="step_category"),
        nullable=False,
        index=True
    )
    icon = Column(String(50), nullable=False, default="Circle")
    sort_order = Column(Integer, nullable=False)
    status = Column(
        SQLEnum(StepStatus, name="step_status"),
        nullable=False,
        default=StepStatus.UPCOMING,
        index=True
    )
    is_required = Column(Boolean, nullable=False, default=True)
    is_blocked = Column(Boolean, nullable=False, default=False)
    block_reason = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    completed_by = Column(String(100), nullable=True)

    days_from_start = Column(Integer, nullable=False, default=0)
    estimated_duration = Column(Integer, nullable=False, default=1)
    scheduled_date = Column(DateTime, nullable=True)
    actual_start_date = Column(DateTime, nullable=True)
    actual_end_date = Column(DateTime, nullable=True)

    estimated_cost = Column(BigInteger, nullable=True)
    actual_cost = Column(BigInteger, nullable=True)

    priority = Column(
        SQLEnum(StepPriority, name="step_priority"),
        nullable=False,
        default=StepPriority.MEDIUM
    )
    external_url = Column(String, nullable=True)
    dependencies = Column(JSONType, nullable=True)

    # Relationships
    timeline = relationship("Timeline", back_populates="steps")
    documents = relationship("TimelineDocument", back_populates="step")
    comments = relationship(
        "StepComment",
        back_populates="step",
        cascade="all, delete-orphan",
        order_by="StepComment.created_at.desc()"
    )

    @property
    def is_completed(self) -> bool:
        return self.status == StepStatus.COMPLETED

    def __repr__(self):
        return (
            f"<TimelineStep(title='{self.title}', sort_order={self.sort_order}, "
            f"status='{self.status}')>"
        )
