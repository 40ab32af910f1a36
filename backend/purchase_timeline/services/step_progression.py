"""
Step progression state machine.

Owns the UPCOMING / CURRENT / COMPLETED transitions of a timeline's steps
and the cached progress counters on the timeline.

Rules:
- Normal completion advances CURRENT to the next non-completed step
  by sort order (local rule)
- Early completion leaves the CURRENT pointer where it is
- Reverting completion recomputes CURRENT from scratch (global rule)
- Reordering never recomputes CURRENT; call recompute_current_step for that

All methods run inside the caller's transaction and only flush.
"""
from datetime import datetime
from typing import Dict, List, Optional, Protocol
from uuid import UUID

from sqlalchemy.orm import Session

from purchase_timeline.logging import get_logger
from purchase_timeline.models.base import utcnow
from purchase_timeline.models.enums import StepStatus
from purchase_timeline.models.timeline import Timeline
from purchase_timeline.models.timeline_step import TimelineStep

logger = get_logger(__name__)


class StepProgressionError(Exception):
    """Base exception for step progression errors."""
    pass


class VersioningEngine(Protocol):
    """What the state machine needs from the document versioning engine."""

    def handle_step_incomplete(self, step_id: UUID):
        ...


class StepProgressionService:
    """
    Service applying step status transitions.

    The versioning engine is injected so the state machine can be exercised
    with a fake in tests.
    """

    def __init__(self, db: Session, versioning: VersioningEngine):
        """
        Initialize step progression service.

        Args:
            db: Database session
            versioning: Engine notified when a step is marked incomplete
        """
        self.db = db
        self.versioning = versioning

    def get_steps(self, timeline_id: UUID) -> List[TimelineStep]:
        """Get a timeline's steps ordered by sort order."""
        return self.db.query(TimelineStep).filter(
            TimelineStep.timeline_id == timeline_id
        ).order_by(TimelineStep.sort_order).all()

    def set_step_completion(
        self,
        step: TimelineStep,
        completed: bool,
        is_early_completion: bool = False,
        actual_cost: Optional[int] = None,
        actual_end_date: Optional[datetime] = None,
    ) -> TimelineStep:
        """
        Mark a step completed or not completed and move the CURRENT pointer.

        Args:
            step: Step to transition
            completed: Target completion state
            is_early_completion: Complete out of order without moving CURRENT
            actual_cost: Actual cost in cents, stored when given
            actual_end_date: Completion time (defaults to now)

        Returns:
            The updated step
        """
        if actual_cost is not None:
            step.actual_cost = actual_cost

        if completed:
            self._complete(step, is_early_completion, actual_end_date)
        else:
            self._uncomplete(step)

        self.update_timeline_progress(step.timeline_id)
        return step

    def _complete(
        self,
        step: TimelineStep,
        is_early_completion: bool,
        actual_end_date: Optional[datetime],
    ) -> None:
        was_current = step.status == StepStatus.CURRENT

        step.status = StepStatus.COMPLETED
        step.actual_end_date = actual_end_date or utcnow()
        self.db.flush()

        # Completing the CURRENT step early is the same as completing it normally
        if is_early_completion and not was_current:
            logger.info(
                "Step '%s' completed early, CURRENT pointer unchanged",
                step.title,
            )
            return

        steps = self.get_steps(step.timeline_id)
        pending = [s for s in steps if s.status != StepStatus.COMPLETED]
        successor = next(
            (s for s in pending if s.sort_order > step.sort_order),
            None
        )

        if successor is not None:
            for candidate in pending:
                candidate.status = (
                    StepStatus.CURRENT if candidate.id == successor.id else StepStatus.UPCOMING
                )
            self.db.flush()
            logger.info(
                "Step '%s' completed, '%s' is now CURRENT",
                step.title,
                successor.title,
            )
            return

        # No successor: earlier steps may still be open with nobody CURRENT
        if pending and not any(s.status == StepStatus.CURRENT for s in pending):
            self.recompute_current_step(step.timeline_id)
            return

        logger.info("Step '%s' completed, no later step to advance to", step.title)

    def _uncomplete(self, step: TimelineStep) -> None:
        step.status = StepStatus.UPCOMING
        step.actual_end_date = None
        self.db.flush()

        self.versioning.handle_step_incomplete(step.id)
        current = self.recompute_current_step(step.timeline_id)

        logger.info(
            "Step '%s' marked incomplete, '%s' is CURRENT",
            step.title,
            current.title if current else None,
        )

    def recompute_current_step(self, timeline_id: UUID) -> Optional[TimelineStep]:
        """
        Recompute the CURRENT pointer from scratch.

        Every non-completed step becomes UPCOMING, then the one with the
        smallest sort order becomes CURRENT.

        Args:
            timeline_id: Timeline ID

        Returns:
            The CURRENT step, or None when every step is completed
        """
        pending = [
            s for s in self.get_steps(timeline_id)
            if s.status != StepStatus.COMPLETED
        ]

        for candidate in pending:
            candidate.status = StepStatus.UPCOMING

        current = pending[0] if pending else None
        if current is not None:
            current.status = StepStatus.CURRENT

        self.db.flush()
        return current

    def apply_sort_orders(self, timeline_id: UUID, orders: Dict[UUID, int]) -> None:
        """
        Write new sort orders without tripping the unique constraint.

        Steps are first moved to negative placeholders, then to their
        final positions.

        Args:
            timeline_id: Timeline ID
            orders: New sort order per step id

        Raises:
            StepProgressionError: If a step id does not belong to the timeline
        """
        if not orders:
            return

        steps = {s.id: s for s in self.get_steps(timeline_id)}
        unknown = [step_id for step_id in orders if step_id not in steps]
        if unknown:
            raise StepProgressionError(
                f"Steps {', '.join(str(u) for u in unknown)} do not belong to timeline {timeline_id}"
            )

        for placeholder, step_id in enumerate(orders, start=1):
            steps[step_id].sort_order = -placeholder
        self.db.flush()

        for step_id, sort_order in orders.items():
            steps[step_id].sort_order = sort_order
        self.db.flush()

    def reorder_steps(self, timeline_id: UUID, updates: Dict[UUID, int]) -> List[TimelineStep]:
        """
        Apply a batch of sort order changes.

        Does not recompute the CURRENT pointer.

        Args:
            timeline_id: Timeline ID
            updates: New sort order per step id

        Returns:
            The timeline's steps in their new order
        """
        changed = {
            step.id: updates[step.id]
            for step in self.get_steps(timeline_id)
            if step.id in updates and step.sort_order != updates[step.id]
        }
        self.apply_sort_orders(timeline_id, changed)

        logger.info(
            "Reordered %d of %d requested steps on timeline %s",
            len(changed),
            len(updates),
            timeline_id,
        )
        return self.get_steps(timeline_id)

    def compact_sort_orders(self, timeline_id: UUID) -> None:
        """Renumber a timeline's steps to 0..n-1 keeping their relative order."""
        steps = self.get_steps(timeline_id)
        orders = {
            step.id: index
            for index, step in enumerate(steps)
            if step.sort_order != index
        }
        self.apply_sort_orders(timeline_id, orders)

    def update_timeline_progress(self, timeline_id: UUID) -> Timeline:
        """
        Recompute the cached counters of a timeline.

        Args:
            timeline_id: Timeline ID

        Returns:
            The updated timeline
        """
        steps = self.get_steps(timeline_id)
        total = len(steps)
        completed = sum(1 for s in steps if s.status == StepStatus.COMPLETED)

        timeline = self.db.query(Timeline).filter(Timeline.id == timeline_id).one()
        timeline.total_steps = total
        timeline.completed_steps = completed
        timeline.progress_percentage = (completed / total) * 100 if total > 0 else 0.0
        self.db.flush()
        return timeline
