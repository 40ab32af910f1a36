"""Progress service for timeline progress and cost aggregation."""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from purchase_timeline.models.base import utcnow
from purchase_timeline.models.enums import StepCategory, StepStatus
from purchase_timeline.models.timeline_step import TimelineStep
from purchase_timeline.utils.money import cents_to_dollars


@dataclass
class ProgressStats:
    """Progress snapshot of one timeline."""
    total_steps: int
    completed_steps: int
    upcoming_steps: int
    overdue: int
    blocked: int
    progress_percentage: float
    estimated_days_remaining: int
    on_track: bool


@dataclass
class CostSummary:
    """Cost totals of one timeline, in dollars."""
    estimated_total: Decimal
    actual_total: Decimal
    remaining_estimated: Decimal
    by_category: Dict[StepCategory, Decimal] = field(default_factory=dict)


class ProgressService:
    """
    Service for calculating timeline progress and costs.

    Rules:
    - Read-only: never writes, never flushes
    - Recomputed on demand from the steps, not from cached counters
    - Pure deterministic calculations
    """

    def __init__(self, db: Session):
        """
        Initialize progress service.

        Args:
            db: Database session
        """
        self.db = db

    def _get_steps(self, timeline_id: UUID) -> List[TimelineStep]:
        return self.db.query(TimelineStep).filter(
            TimelineStep.timeline_id == timeline_id
        ).order_by(TimelineStep.sort_order).all()

    def get_progress_stats(
        self,
        timeline_id: UUID,
        now: Optional[datetime] = None
    ) -> ProgressStats:
        """
        Calculate progress statistics for a timeline.

        A step is overdue when it is not completed and its scheduled date
        has passed. The timeline is on track when nothing is overdue or
        blocked.

        Args:
            timeline_id: Timeline ID
            now: Reference time (defaults to current UTC time)

        Returns:
            ProgressStats for the timeline
        """
        if now is None:
            now = utcnow()

        steps = self._get_steps(timeline_id)
        total = len(steps)
        pending = [s for s in steps if s.status != StepStatus.COMPLETED]
        completed = total - len(pending)

        overdue = sum(
            1 for s in pending
            if s.scheduled_date is not None and s.scheduled_date < now
        )
        blocked = sum(1 for s in steps if s.is_blocked)
        progress_percentage = (completed / total) * 100 if total > 0 else 0.0

        return ProgressStats(
            total_steps=total,
            completed_steps=completed,
            upcoming_steps=sum(1 for s in steps if s.status == StepStatus.UPCOMING),
            overdue=overdue,
            blocked=blocked,
            progress_percentage=round(progress_percentage, 2),
            estimated_days_remaining=sum(s.estimated_duration or 0 for s in pending),
            on_track=overdue == 0 and blocked == 0,
        )

    def get_cost_summary(self, timeline_id: UUID) -> CostSummary:
        """
        Calculate cost totals for a timeline.

        ``by_category`` has an entry for every category and counts each
        step's actual cost when present, its estimate otherwise.

        Args:
            timeline_id: Timeline ID

        Returns:
            CostSummary in dollars
        """
        steps = self._get_steps(timeline_id)

        estimated_cents = sum(s.estimated_cost or 0 for s in steps)
        actual_cents = sum(s.actual_cost or 0 for s in steps)
        remaining_cents = sum(
            s.estimated_cost or 0 for s in steps
            if s.status != StepStatus.COMPLETED
        )

        category_cents = {category: 0 for category in StepCategory}
        for step in steps:
            cost = step.actual_cost if step.actual_cost is not None else step.estimated_cost
            category_cents[step.category] += cost or 0

        return CostSummary(
            estimated_total=cents_to_dollars(estimated_cents),
            actual_total=cents_to_dollars(actual_cents),
            remaining_estimated=cents_to_dollars(remaining_cents),
            by_category={
                category: cents_to_dollars(cents)
                for category, cents in category_cents.items()
            },
        )
