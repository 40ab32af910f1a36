"""
System invariants and validation utilities.

Enforces the stored constraints of a timeline:
1. At most one CURRENT step, and exactly one while any step is not completed
2. Sort orders of a timeline are unique and dense (0..n-1)
3. Exactly one current, non-deleted document per (step, document_type)

Checks run inside the caller's transaction, before commit. A violation
aborts the transaction. Fail fast with explicit errors.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from purchase_timeline.models.enums import DocumentType, StepStatus
from purchase_timeline.models.timeline_document import TimelineDocument
from purchase_timeline.models.timeline_step import TimelineStep


class InvariantViolationError(Exception):
    """Base exception for invariant violations."""

    def __init__(self, invariant_name: str, message: str, details: dict = None):
        self.invariant_name = invariant_name
        self.details = details or {}
        super().__init__(f"[INVARIANT VIOLATION: {invariant_name}] {message}")


class MultipleCurrentStepsError(InvariantViolationError):
    """Raised when a timeline has more than one CURRENT step, or none while work remains."""

    def __init__(self, message: str, details: dict = None):
        super().__init__("single_current_step", message, details)


class SparseSortOrderError(InvariantViolationError):
    """Raised when a timeline's sort orders are not exactly 0..n-1."""

    def __init__(self, message: str, details: dict = None):
        super().__init__("dense_sort_orders", message, details)


class CurrentVersionError(InvariantViolationError):
    """Raised when a (step, document_type) chain has zero or several current versions."""

    def __init__(self, message: str, details: dict = None):
        super().__init__("single_current_version", message, details)


class InvariantChecker:
    """
    Central invariant checker for timeline state.

    Usage:
        checker = InvariantChecker(db)
        checker.check_timeline(timeline_id)
    """

    def __init__(self, db: Session):
        """
        Initialize invariant checker.

        Args:
            db: Database session
        """
        self.db = db

    def _steps(self, timeline_id: UUID):
        return self.db.query(TimelineStep).filter(
            TimelineStep.timeline_id == timeline_id
        ).order_by(TimelineStep.sort_order).all()

    def check_single_current_step(
        self,
        timeline_id: UUID,
        allow_none: bool = False
    ) -> None:
        """
        Invariant: exactly one CURRENT step while any step is not completed.

        Args:
            timeline_id: Timeline to check
            allow_none: Accept zero CURRENT steps even though work remains

        Raises:
            MultipleCurrentStepsError: If the invariant does not hold
        """
        steps = self._steps(timeline_id)
        current = [s for s in steps if s.status == StepStatus.CURRENT]
        pending = [s for s in steps if s.status != StepStatus.COMPLETED]

        if len(current) > 1:
            raise MultipleCurrentStepsError(
                f"Timeline {timeline_id} has {len(current)} CURRENT steps",
                details={
                    "timeline_id": str(timeline_id),
                    "current_step_ids": [str(s.id) for s in current],
                }
            )

        if pending and not current and not allow_none:
            raise MultipleCurrentStepsError(
                f"Timeline {timeline_id} has {len(pending)} pending steps but none is CURRENT",
                details={
                    "timeline_id": str(timeline_id),
                    "pending_steps": len(pending),
                }
            )

    def check_dense_sort_orders(self, timeline_id: UUID) -> None:
        """
        Invariant: sort orders of a timeline are exactly 0..n-1.

        Args:
            timeline_id: Timeline to check

        Raises:
            SparseSortOrderError: If orders have gaps or duplicates
        """
        orders = [s.sort_order for s in self._steps(timeline_id)]
        if orders != list(range(len(orders))):
            raise SparseSortOrderError(
                f"Timeline {timeline_id} sort orders are not dense",
                details={
                    "timeline_id": str(timeline_id),
                    "sort_orders": orders,
                }
            )

    def check_single_current_version(
        self,
        step_id: UUID,
        document_type: DocumentType
    ) -> None:
        """
        Invariant: one current, non-deleted document per (step, document_type).

        An empty chain passes.

        Args:
            step_id: Step the chain belongs to
            document_type: Classification key of the chain

        Raises:
            CurrentVersionError: If the chain has zero or several current versions
        """
        documents = self.db.query(TimelineDocument).filter(
            TimelineDocument.step_id == step_id,
            TimelineDocument.document_type == document_type,
            TimelineDocument.deleted_at.is_(None)
        ).all()

        if not documents:
            return

        current = [d for d in documents if d.is_current_version]
        if len(current) != 1:
            raise CurrentVersionError(
                f"Step {step_id} has {len(current)} current {document_type.value} documents",
                details={
                    "step_id": str(step_id),
                    "document_type": document_type.value,
                    "current_document_ids": [str(d.id) for d in current],
                    "document_count": len(documents),
                }
            )

    def check_timeline(
        self,
        timeline_id: UUID,
        allow_no_current: bool = False
    ) -> None:
        """
        Check all step invariants of a timeline.

        Args:
            timeline_id: Timeline to check
            allow_no_current: Passed through to check_single_current_step

        Raises:
            InvariantViolationError: If any invariant is violated
        """
        self.check_dense_sort_orders(timeline_id)
        self.check_single_current_step(timeline_id, allow_none=allow_no_current)


def check_single_current_step(
    db: Session,
    timeline_id: UUID,
    allow_none: bool = False
) -> None:
    """Standalone wrapper for InvariantChecker.check_single_current_step."""
    InvariantChecker(db).check_single_current_step(timeline_id, allow_none=allow_none)


def check_dense_sort_orders(db: Session, timeline_id: UUID) -> None:
    """Standalone wrapper for InvariantChecker.check_dense_sort_orders."""
    InvariantChecker(db).check_dense_sort_orders(timeline_id)


def check_single_current_version(
    db: Session,
    step_id: UUID,
    document_type: DocumentType
) -> None:
    """Standalone wrapper for InvariantChecker.check_single_current_version."""
    InvariantChecker(db).check_single_current_version(step_id, document_type)
