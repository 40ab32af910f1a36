"""
Document versioning tests.

Covers:
1. Version numbers grow by one per (step, document_type) chain
2. Exactly one current version per chain
3. Completion sessions group documents and order history
4. Promotion and soft deletion keep the chain consistent
5. Reverting step completion never touches documents
"""
import pytest

from purchase_timeline.exceptions import ValidationFailureError
from purchase_timeline.models import DocumentType, TimelineDocument
from purchase_timeline.services.document_version_service import (
    DocumentVersionService,
    DocumentVersionServiceError,
)
from purchase_timeline.utils.invariants import InvariantChecker


def add_document(orchestrator, owner, timeline, step=None, name="contract.pdf",
                 document_type=DocumentType.CONTRACT, session_id=None):
    return orchestrator.create_document(
        owner.id,
        timeline.id,
        step_id=step.id if step is not None else None,
        file_name=name,
        original_name=name,
        mime_type="application/pdf",
        file_size=2048,
        document_type=document_type,
        storage_provider="memory",
        storage_key=f"docs/{name}",
        download_url=f"memory://docs/{name}",
        completion_session_id=session_id,
    )


@pytest.fixture
def versioning(db):
    return DocumentVersionService(db)


@pytest.fixture
def step_a(abc_timeline, steps_of):
    return steps_of(abc_timeline.id)["A"]


class TestVersionChain:
    """Version numbering and the current flag."""

    def test_first_document_is_version_one(self, orchestrator, owner, abc_timeline, step_a):
        document = add_document(orchestrator, owner, abc_timeline, step_a)

        assert document.document_version == 1
        assert document.is_current_version is True
        assert document.completion_session_id.startswith(f"session_{step_a.id}_")

    def test_versions_are_one_to_n_with_only_latest_current(self, db, orchestrator, owner, abc_timeline, step_a):
        documents = [
            add_document(orchestrator, owner, abc_timeline, step_a, name=f"contract-v{i}.pdf")
            for i in range(4)
        ]

        for document in documents:
            db.refresh(document)
        assert [d.document_version for d in documents] == [1, 2, 3, 4]
        assert [d.is_current_version for d in documents] == [False, False, False, True]
        assert all(d.superseded_at is not None for d in documents[:-1])

    def test_each_version_supersedes_the_previous(self, db, orchestrator, owner, abc_timeline, step_a):
        first = add_document(orchestrator, owner, abc_timeline, step_a, name="v1.pdf")
        second = add_document(orchestrator, owner, abc_timeline, step_a, name="v2.pdf")

        db.refresh(first)
        assert first.superseded_by_id == second.id
        assert second.superseded_by_id is None

    def test_document_types_are_separate_chains(self, orchestrator, owner, abc_timeline, step_a):
        contract = add_document(orchestrator, owner, abc_timeline, step_a, name="contract.pdf")
        report = add_document(
            orchestrator, owner, abc_timeline, step_a,
            name="report.pdf", document_type=DocumentType.INSPECTION,
        )

        assert contract.document_version == 1
        assert report.document_version == 1
        assert contract.is_current_version and report.is_current_version

    def test_timeline_document_is_not_versioned(self, orchestrator, owner, abc_timeline):
        document = add_document(orchestrator, owner, abc_timeline, name="disclosures.pdf")

        assert document.step_id is None
        assert document.completion_session_id is None
        assert document.document_version == 1

    def test_chain_invariant_holds_after_uploads(self, db, orchestrator, owner, abc_timeline, step_a):
        for i in range(3):
            add_document(orchestrator, owner, abc_timeline, step_a, name=f"c{i}.pdf")

        InvariantChecker(db).check_single_current_version(step_a.id, DocumentType.CONTRACT)

    def test_record_new_version_rejects_foreign_document(self, db, versioning, orchestrator, owner, abc_timeline, steps_of):
        steps = steps_of(abc_timeline.id)
        document = add_document(orchestrator, owner, abc_timeline, steps["A"])

        with pytest.raises(DocumentVersionServiceError):
            versioning.record_new_version(
                steps["B"].id, DocumentType.CONTRACT, document.id, "session_x"
            )


class TestCompletionSessions:
    """Grouping documents by completion session."""

    def test_two_sessions_scenario(self, orchestrator, owner, abc_timeline, step_a):
        first_session = orchestrator.versioning.create_completion_session(step_a.id)
        v1 = add_document(orchestrator, owner, abc_timeline, step_a, name="v1.pdf", session_id=first_session)
        orchestrator.update_step(owner.id, step_a.id, is_completed=True)
        orchestrator.update_step(owner.id, step_a.id, is_completed=False)

        second_session = orchestrator.versioning.create_completion_session(step_a.id)
        v2 = add_document(orchestrator, owner, abc_timeline, step_a, name="v2.pdf", session_id=second_session)

        listing = orchestrator.list_step_documents(owner.id, step_a.id)

        assert [entry.document.id for entry in listing.current] == [v2.id]
        current_info = listing.current[0].session_info
        assert current_info.session_number == 2
        assert current_info.total_sessions == 2
        assert current_info.is_latest_session is True

        assert len(listing.previous_sessions) == 1
        previous = listing.previous_sessions[0]
        assert previous.session.id == first_session
        assert previous.session.session_number == 1
        assert [entry.document.id for entry in previous.documents] == [v1.id]
        assert previous.documents[0].session_info.is_latest_session is False
        assert v1.document_version == 1
        assert v2.document_version == 2

    def test_same_session_documents_share_one_session(self, orchestrator, owner, abc_timeline, step_a):
        session_id = orchestrator.versioning.create_completion_session(step_a.id)
        add_document(orchestrator, owner, abc_timeline, step_a, name="a.pdf", session_id=session_id)
        second = add_document(orchestrator, owner, abc_timeline, step_a, name="b.pdf", session_id=session_id)

        sessions = orchestrator.versioning.get_completion_sessions(step_a.id)
        listing = orchestrator.list_step_documents(owner.id, step_a.id)

        assert len(sessions) == 1
        assert sessions[0].document_count == 2
        assert second.document_version == 2
        assert [entry.document.id for entry in listing.current] == [second.id]
        assert listing.previous_sessions == []

    def test_missing_session_id_starts_new_session(self, orchestrator, owner, abc_timeline, step_a):
        first = add_document(orchestrator, owner, abc_timeline, step_a, name="a.pdf")
        second = add_document(orchestrator, owner, abc_timeline, step_a, name="b.pdf")

        assert first.completion_session_id != second.completion_session_id
        sessions = orchestrator.versioning.get_completion_sessions(step_a.id)
        assert [s.session_number for s in sessions] == [1, 2]
        assert [s.id for s in sessions] == [first.completion_session_id, second.completion_session_id]

    def test_step_without_documents_has_no_sessions(self, orchestrator, owner, step_a):
        listing = orchestrator.list_step_documents(owner.id, step_a.id)

        assert listing.current == []
        assert listing.previous_sessions == []


class TestStepIncomplete:
    """Reverting completion keeps every document as it was."""

    def test_returns_latest_session_without_writes(self, db, versioning, orchestrator, owner, abc_timeline, step_a):
        add_document(orchestrator, owner, abc_timeline, step_a, name="a.pdf")
        latest = add_document(orchestrator, owner, abc_timeline, step_a, name="b.pdf")

        def snapshot():
            return sorted(
                (str(d.id), d.document_version, d.is_current_version, d.deleted_at)
                for d in db.query(TimelineDocument).all()
            )

        before = snapshot()
        session = versioning.handle_step_incomplete(step_a.id)

        assert session.id == latest.completion_session_id
        assert session.session_number == 2
        assert not db.new and not db.dirty and not db.deleted
        assert snapshot() == before

    def test_no_sessions_returns_none(self, versioning, step_a):
        assert versioning.handle_step_incomplete(step_a.id) is None


class TestPromoteAndDelete:
    """Manual promotion and soft deletion."""

    def test_promote_older_version(self, db, orchestrator, owner, abc_timeline, step_a):
        first = add_document(orchestrator, owner, abc_timeline, step_a, name="v1.pdf")
        second = add_document(orchestrator, owner, abc_timeline, step_a, name="v2.pdf")

        orchestrator.promote_document(owner.id, first.id)

        db.refresh(first)
        db.refresh(second)
        assert first.is_current_version is True
        assert first.superseded_by_id is None
        assert second.is_current_version is False
        assert second.superseded_by_id == first.id

    def test_promote_current_is_noop(self, orchestrator, owner, abc_timeline, step_a):
        document = add_document(orchestrator, owner, abc_timeline, step_a)

        promoted = orchestrator.promote_document(owner.id, document.id)

        assert promoted.is_current_version is True
        assert promoted.document_version == 1

    def test_promote_timeline_document_fails(self, orchestrator, owner, abc_timeline):
        document = add_document(orchestrator, owner, abc_timeline, name="general.pdf")

        with pytest.raises(ValidationFailureError):
            orchestrator.promote_document(owner.id, document.id)

    def test_deleting_current_promotes_highest_remaining(self, db, orchestrator, owner, abc_timeline, step_a):
        first = add_document(orchestrator, owner, abc_timeline, step_a, name="v1.pdf")
        second = add_document(orchestrator, owner, abc_timeline, step_a, name="v2.pdf")
        third = add_document(orchestrator, owner, abc_timeline, step_a, name="v3.pdf")

        orchestrator.delete_document(owner.id, third.id)

        for document in (first, second, third):
            db.refresh(document)
        assert third.deleted_at is not None
        assert third.is_current_version is False
        assert second.is_current_version is True
        assert first.is_current_version is False

        remaining = orchestrator.get_documents(owner.id, abc_timeline.id, include_history=True)
        assert {d.id for d in remaining} == {first.id, second.id}

    def test_deleting_history_keeps_current(self, db, orchestrator, owner, abc_timeline, step_a):
        first = add_document(orchestrator, owner, abc_timeline, step_a, name="v1.pdf")
        second = add_document(orchestrator, owner, abc_timeline, step_a, name="v2.pdf")

        orchestrator.delete_document(owner.id, first.id)

        db.refresh(second)
        assert second.is_current_version is True
        current = orchestrator.get_documents(owner.id, abc_timeline.id, step_id=step_a.id)
        assert [d.id for d in current] == [second.id]

    def test_next_version_after_delete_continues_numbering(self, db, orchestrator, owner, abc_timeline, step_a):
        add_document(orchestrator, owner, abc_timeline, step_a, name="v1.pdf")
        second = add_document(orchestrator, owner, abc_timeline, step_a, name="v2.pdf")
        orchestrator.delete_document(owner.id, second.id)

        third = add_document(orchestrator, owner, abc_timeline, step_a, name="v3.pdf")

        assert third.document_version == 2
        InvariantChecker(db).check_single_current_version(step_a.id, DocumentType.CONTRACT)

    def test_deleted_document_cannot_be_promoted(self, versioning, orchestrator, owner, abc_timeline, step_a):
        document = add_document(orchestrator, owner, abc_timeline, step_a)
        orchestrator.delete_document(owner.id, document.id)

        with pytest.raises(DocumentVersionServiceError):
            versioning.promote_document(document)
