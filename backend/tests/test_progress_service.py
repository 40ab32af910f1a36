"""
Progress and cost analytics tests.

Analytics are read-only and computed from the steps on every call.
"""
from datetime import timedelta
from decimal import Decimal

import pytest

from purchase_timeline.models import StepCategory, Timeline
from purchase_timeline.services.progress_service import ProgressService


@pytest.fixture
def progress(db):
    return ProgressService(db)


class TestProgressStats:
    """get_progress_stats"""

    def test_fresh_timeline(self, progress, abc_timeline):
        stats = progress.get_progress_stats(abc_timeline.id, now=abc_timeline.start_date)

        assert stats.total_steps == 3
        assert stats.completed_steps == 0
        assert stats.upcoming_steps == 2
        assert stats.overdue == 0
        assert stats.blocked == 0
        assert stats.progress_percentage == 0.0
        assert stats.estimated_days_remaining == 6
        assert stats.on_track is True

    def test_overdue_steps(self, progress, abc_timeline):
        now = abc_timeline.start_date + timedelta(days=3)

        stats = progress.get_progress_stats(abc_timeline.id, now=now)

        assert stats.overdue == 2
        assert stats.on_track is False

    def test_completed_steps_are_never_overdue(self, orchestrator, owner, progress, abc_timeline, steps_of):
        orchestrator.update_step(owner.id, steps_of(abc_timeline.id)["A"].id, is_completed=True)
        now = abc_timeline.start_date + timedelta(days=3)

        stats = progress.get_progress_stats(abc_timeline.id, now=now)

        assert stats.completed_steps == 1
        assert stats.upcoming_steps == 1
        assert stats.overdue == 1
        assert stats.progress_percentage == 33.33
        assert stats.estimated_days_remaining == 5

    def test_blocked_step_is_off_track(self, orchestrator, owner, progress, abc_timeline, steps_of):
        orchestrator.update_step(
            owner.id, steps_of(abc_timeline.id)["B"].id,
            is_blocked=True, block_reason="Appraisal came in low",
        )

        stats = progress.get_progress_stats(abc_timeline.id, now=abc_timeline.start_date)

        assert stats.blocked == 1
        assert stats.on_track is False

    def test_all_completed(self, orchestrator, owner, progress, abc_timeline, steps_of):
        for step in steps_of(abc_timeline.id).values():
            orchestrator.update_step(owner.id, step.id, is_completed=True)

        stats = progress.get_progress_stats(abc_timeline.id)

        assert stats.progress_percentage == 100.0
        assert stats.estimated_days_remaining == 0
        assert stats.upcoming_steps == 0

    def test_ignores_cached_counters(self, db, progress, abc_timeline):
        timeline = db.query(Timeline).filter(Timeline.id == abc_timeline.id).one()
        timeline.completed_steps = 3
        timeline.progress_percentage = 100.0
        db.flush()

        stats = progress.get_progress_stats(abc_timeline.id, now=abc_timeline.start_date)

        assert stats.completed_steps == 0
        assert stats.progress_percentage == 0.0

    def test_does_not_write(self, db, progress, abc_timeline):
        progress.get_progress_stats(abc_timeline.id)
        progress.get_cost_summary(abc_timeline.id)

        assert not db.new and not db.dirty and not db.deleted

    def test_orchestrator_checks_ownership(self, orchestrator, other_user, abc_timeline):
        from purchase_timeline.exceptions import NotFoundOrUnauthorizedError

        with pytest.raises(NotFoundOrUnauthorizedError):
            orchestrator.get_progress_stats(other_user.id, abc_timeline.id)


class TestCostSummary:
    """get_cost_summary"""

    def test_estimates(self, progress, abc_timeline):
        summary = progress.get_cost_summary(abc_timeline.id)

        assert summary.estimated_total == Decimal("350.50")
        assert summary.actual_total == Decimal("0.00")
        assert summary.remaining_estimated == Decimal("350.50")

    def test_every_category_present(self, progress, abc_timeline):
        summary = progress.get_cost_summary(abc_timeline.id)

        assert set(summary.by_category) == set(StepCategory)
        assert summary.by_category[StepCategory.LEGAL] == Decimal("100.00")
        assert summary.by_category[StepCategory.FINANCING] == Decimal("250.50")
        assert summary.by_category[StepCategory.INSPECTION] == Decimal("0.00")
        assert summary.by_category[StepCategory.CLOSING] == Decimal("0.00")

    def test_actual_cost_replaces_estimate(self, orchestrator, owner, progress, abc_timeline, steps_of):
        orchestrator.update_step(
            owner.id, steps_of(abc_timeline.id)["A"].id,
            is_completed=True, actual_cost=Decimal("120.00"),
        )

        summary = progress.get_cost_summary(abc_timeline.id)

        assert summary.actual_total == Decimal("120.00")
        assert summary.remaining_estimated == Decimal("250.50")
        assert summary.estimated_total == Decimal("350.50")
        assert summary.by_category[StepCategory.LEGAL] == Decimal("120.00")

    def test_default_template_costs(self, orchestrator, owner, default_timeline):
        summary = orchestrator.get_cost_summary(owner.id, default_timeline.id)

        assert summary.estimated_total == Decimal("8900.00")
        assert summary.by_category[StepCategory.PAPERWORK] == Decimal("5000.00")
        assert summary.by_category[StepCategory.FINANCING] == Decimal("400.00")
        assert summary.by_category[StepCategory.INSPECTION] == Decimal("500.00")
        assert summary.by_category[StepCategory.CLOSING] == Decimal("3000.00")
