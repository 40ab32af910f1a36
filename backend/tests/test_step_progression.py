"""
Step progression state machine tests.

Covers:
1. Normal completion advances CURRENT locally
2. Early completion leaves CURRENT where it is
3. Reverting completion recomputes CURRENT globally
4. Cached counters after every transition
5. The versioning engine is reached only through the injected interface
"""
from datetime import datetime

import pytest

from purchase_timeline.models import DocumentType, StepStatus, Timeline, TimelineDocument
from purchase_timeline.services.step_progression import StepProgressionService
from purchase_timeline.utils.invariants import (
    InvariantChecker,
    MultipleCurrentStepsError,
    SparseSortOrderError,
)


class FakeVersioningEngine:
    """Records calls instead of touching documents."""

    def __init__(self):
        self.incomplete_calls = []

    def handle_step_incomplete(self, step_id):
        self.incomplete_calls.append(step_id)
        return None


@pytest.fixture
def fake_versioning():
    return FakeVersioningEngine()


@pytest.fixture
def progression(db, fake_versioning):
    return StepProgressionService(db, fake_versioning)


def statuses(progression, timeline_id):
    return {s.title: s.status for s in progression.get_steps(timeline_id)}


def current_titles(progression, timeline_id):
    return [
        s.title for s in progression.get_steps(timeline_id)
        if s.status == StepStatus.CURRENT
    ]


class TestNormalCompletion:
    """Completing a step in order."""

    def test_completing_current_advances_to_next(self, db, progression, abc_timeline, steps_of):
        steps = steps_of(abc_timeline.id)

        progression.set_step_completion(steps["A"], completed=True)
        db.commit()

        assert statuses(progression, abc_timeline.id) == {
            "A": StepStatus.COMPLETED,
            "B": StepStatus.CURRENT,
            "C": StepStatus.UPCOMING,
        }
        assert steps["A"].actual_end_date is not None

    def test_supplied_end_date_and_cost_are_kept(self, db, progression, abc_timeline, steps_of):
        steps = steps_of(abc_timeline.id)
        end = datetime(2024, 5, 1, 12, 0)

        progression.set_step_completion(
            steps["A"], completed=True, actual_cost=12345, actual_end_date=end
        )
        db.commit()

        assert steps["A"].actual_end_date == end
        assert steps["A"].actual_cost == 12345

    def test_completing_last_step_leaves_no_current(self, db, progression, abc_timeline, steps_of):
        steps = steps_of(abc_timeline.id)

        for title in ("A", "B", "C"):
            progression.set_step_completion(steps[title], completed=True)
        db.commit()

        timeline = db.query(Timeline).filter(Timeline.id == abc_timeline.id).one()
        assert current_titles(progression, abc_timeline.id) == []
        assert timeline.completed_steps == 3
        assert timeline.progress_percentage == 100

    def test_no_successor_recomputes_when_nothing_is_current(self, db, progression, abc_timeline, steps_of):
        steps = steps_of(abc_timeline.id)
        # Out-of-order state: C is CURRENT while A and B are still open
        steps["A"].status = StepStatus.UPCOMING
        steps["C"].status = StepStatus.CURRENT
        db.flush()

        progression.set_step_completion(steps["C"], completed=True)
        db.commit()

        assert current_titles(progression, abc_timeline.id) == ["A"]

    def test_versioning_engine_not_called_on_completion(self, progression, fake_versioning, abc_timeline, steps_of):
        steps = steps_of(abc_timeline.id)

        progression.set_step_completion(steps["A"], completed=True)

        assert fake_versioning.incomplete_calls == []


class TestEarlyCompletion:
    """Completing a step ahead of the CURRENT pointer."""

    def test_early_completion_keeps_current(self, db, progression, abc_timeline, steps_of):
        steps = steps_of(abc_timeline.id)

        progression.set_step_completion(steps["C"], completed=True, is_early_completion=True)
        db.commit()

        assert statuses(progression, abc_timeline.id) == {
            "A": StepStatus.CURRENT,
            "B": StepStatus.UPCOMING,
            "C": StepStatus.COMPLETED,
        }
        assert steps["C"].actual_end_date is not None

    def test_early_completion_of_current_step_advances(self, db, progression, abc_timeline, steps_of):
        steps = steps_of(abc_timeline.id)

        progression.set_step_completion(steps["A"], completed=True, is_early_completion=True)
        db.commit()

        assert current_titles(progression, abc_timeline.id) == ["B"]


class TestMarkIncomplete:
    """Reverting a completed step."""

    def test_incomplete_restores_current(self, db, progression, abc_timeline, steps_of):
        steps = steps_of(abc_timeline.id)
        for title in ("A", "B", "C"):
            progression.set_step_completion(steps[title], completed=True)

        progression.set_step_completion(steps["B"], completed=False)
        db.commit()

        assert statuses(progression, abc_timeline.id) == {
            "A": StepStatus.COMPLETED,
            "B": StepStatus.CURRENT,
            "C": StepStatus.COMPLETED,
        }
        assert steps["B"].actual_end_date is None

    def test_incomplete_earlier_step_moves_current_back(self, db, progression, abc_timeline, steps_of):
        steps = steps_of(abc_timeline.id)
        progression.set_step_completion(steps["A"], completed=True)

        progression.set_step_completion(steps["A"], completed=False)
        db.commit()

        assert statuses(progression, abc_timeline.id) == {
            "A": StepStatus.CURRENT,
            "B": StepStatus.UPCOMING,
            "C": StepStatus.UPCOMING,
        }

    def test_incomplete_notifies_versioning_engine(self, progression, fake_versioning, abc_timeline, steps_of):
        steps = steps_of(abc_timeline.id)
        progression.set_step_completion(steps["A"], completed=True)

        progression.set_step_completion(steps["A"], completed=False)

        assert fake_versioning.incomplete_calls == [steps["A"].id]

    def test_incomplete_never_deletes_documents(self, db, orchestrator, owner, abc_timeline, steps_of):
        step_a = steps_of(abc_timeline.id)["A"]

        def document_count():
            return db.query(TimelineDocument).filter(
                TimelineDocument.step_id == step_a.id,
                TimelineDocument.document_type == DocumentType.CONTRACT
            ).count()

        counts = []
        for round_number in range(3):
            session_id = orchestrator.versioning.create_completion_session(step_a.id)
            orchestrator.create_document(
                owner.id,
                abc_timeline.id,
                step_id=step_a.id,
                file_name=f"contract-{round_number}.pdf",
                original_name="contract.pdf",
                mime_type="application/pdf",
                file_size=1024,
                document_type=DocumentType.CONTRACT,
                storage_provider="memory",
                storage_key=f"contracts/{round_number}",
                download_url=f"memory://contracts/{round_number}",
                completion_session_id=session_id,
            )
            orchestrator.update_step(owner.id, step_a.id, is_completed=True)
            counts.append(document_count())
            orchestrator.update_step(owner.id, step_a.id, is_completed=False)
            counts.append(document_count())

        assert counts == sorted(counts)
        assert counts[-1] == 3


class TestAbcScenario:
    """Steps A, B, C driven through the orchestrator."""

    def test_scenario(self, orchestrator, owner, abc_timeline, steps_of):
        steps = steps_of(abc_timeline.id)

        orchestrator.update_step(owner.id, steps["A"].id, is_completed=True)
        timeline = orchestrator.get_timeline(owner.id, abc_timeline.id)
        assert [s.status for s in orchestrator.get_steps(owner.id, abc_timeline.id)] == [
            StepStatus.COMPLETED, StepStatus.CURRENT, StepStatus.UPCOMING,
        ]
        assert round(timeline.progress_percentage) == 33

        orchestrator.update_step(
            owner.id, steps["C"].id, is_completed=True, is_early_completion=True
        )
        timeline = orchestrator.get_timeline(owner.id, abc_timeline.id)
        assert [s.status for s in orchestrator.get_steps(owner.id, abc_timeline.id)] == [
            StepStatus.COMPLETED, StepStatus.CURRENT, StepStatus.COMPLETED,
        ]
        assert round(timeline.progress_percentage) == 67

        orchestrator.update_step(owner.id, steps["C"].id, is_completed=False)
        timeline = orchestrator.get_timeline(owner.id, abc_timeline.id)
        assert [s.status for s in orchestrator.get_steps(owner.id, abc_timeline.id)] == [
            StepStatus.COMPLETED, StepStatus.CURRENT, StepStatus.UPCOMING,
        ]
        assert round(timeline.progress_percentage) == 33

    def test_current_is_minimal_pending_after_every_normal_mutation(self, orchestrator, owner, abc_timeline, steps_of):
        steps = steps_of(abc_timeline.id)
        actions = [
            (steps["A"].id, True),
            (steps["B"].id, True),
            (steps["A"].id, False),
            (steps["A"].id, True),
            (steps["C"].id, True),
            (steps["B"].id, False),
        ]

        for step_id, completed in actions:
            orchestrator.update_step(owner.id, step_id, is_completed=completed)
            ordered = orchestrator.get_steps(owner.id, abc_timeline.id)
            pending = [s for s in ordered if s.status != StepStatus.COMPLETED]
            current = [s for s in ordered if s.status == StepStatus.CURRENT]
            if pending:
                assert len(current) == 1
                assert current[0].sort_order == min(s.sort_order for s in pending)
            else:
                assert current == []


class TestRecomputeAndReorder:
    """Global recompute and raw reordering."""

    def test_recompute_picks_lowest_pending(self, db, progression, abc_timeline, steps_of):
        steps = steps_of(abc_timeline.id)
        steps["A"].status = StepStatus.COMPLETED
        steps["B"].status = StepStatus.UPCOMING
        steps["C"].status = StepStatus.CURRENT
        db.flush()

        current = progression.recompute_current_step(abc_timeline.id)

        assert current.title == "B"
        assert current_titles(progression, abc_timeline.id) == ["B"]

    def test_recompute_with_everything_completed(self, db, progression, abc_timeline, steps_of):
        for step in steps_of(abc_timeline.id).values():
            step.status = StepStatus.COMPLETED
        db.flush()

        assert progression.recompute_current_step(abc_timeline.id) is None

    def test_reorder_does_not_move_current(self, db, progression, abc_timeline, steps_of):
        steps = steps_of(abc_timeline.id)

        progression.reorder_steps(abc_timeline.id, {
            steps["A"].id: 2,
            steps["C"].id: 0,
        })
        db.commit()

        ordered = progression.get_steps(abc_timeline.id)
        assert [s.title for s in ordered] == ["C", "B", "A"]
        assert current_titles(progression, abc_timeline.id) == ["A"]

    def test_compact_sort_orders(self, db, progression, abc_timeline, steps_of):
        steps = steps_of(abc_timeline.id)
        progression.apply_sort_orders(abc_timeline.id, {
            steps["A"].id: 10,
            steps["B"].id: 20,
            steps["C"].id: 30,
        })

        progression.compact_sort_orders(abc_timeline.id)

        assert [s.sort_order for s in progression.get_steps(abc_timeline.id)] == [0, 1, 2]


class TestInvariantChecker:
    """Invariant checks used before commit."""

    def test_valid_timeline_passes(self, db, abc_timeline):
        InvariantChecker(db).check_timeline(abc_timeline.id)

    def test_two_current_steps_fail(self, db, abc_timeline, steps_of):
        steps_of(abc_timeline.id)["B"].status = StepStatus.CURRENT
        db.flush()

        with pytest.raises(MultipleCurrentStepsError):
            InvariantChecker(db).check_single_current_step(abc_timeline.id)

    def test_pending_without_current_fails(self, db, abc_timeline, steps_of):
        steps_of(abc_timeline.id)["A"].status = StepStatus.UPCOMING
        db.flush()

        checker = InvariantChecker(db)
        with pytest.raises(MultipleCurrentStepsError) as exc_info:
            checker.check_single_current_step(abc_timeline.id)
        assert exc_info.value.invariant_name == "single_current_step"

        checker.check_single_current_step(abc_timeline.id, allow_none=True)

    def test_sparse_sort_orders_fail(self, db, progression, abc_timeline, steps_of):
        progression.apply_sort_orders(abc_timeline.id, {steps_of(abc_timeline.id)["C"].id: 5})

        with pytest.raises(SparseSortOrderError) as exc_info:
            InvariantChecker(db).check_dense_sort_orders(abc_timeline.id)
        assert exc_info.value.details["sort_orders"] == [0, 1, 5]
