"""Timeline orchestrator: the single entry point for timeline mutations."""
from datetime import timedelta
from typing import List, Optional, Tuple, Union
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from purchase_timeline.config import Settings
from purchase_timeline.exceptions import (
    ConflictError,
    NotFoundOrUnauthorizedError,
    ValidationFailureError,
)
from purchase_timeline.logging import get_logger
from purchase_timeline.models.base import utcnow
from purchase_timeline.models.enums import StepStatus, TimelineStatus
from purchase_timeline.models.step_comment import StepComment
from purchase_timeline.models.team_member import TeamMember
from purchase_timeline.models.timeline import Timeline
from purchase_timeline.models.timeline_document import TimelineDocument
from purchase_timeline.models.timeline_note import TimelineNote
from purchase_timeline.models.timeline_step import TimelineStep
from purchase_timeline.models.user import User
from purchase_timeline.orchestrators.base import BaseOrchestrator
from purchase_timeline.schemas import (
    AddStepCommentInput,
    AddTeamMemberInput,
    CreateDocumentInput,
    CreateNoteInput,
    CreateStepInput,
    CreateTimelineInput,
    ReorderStepsInput,
    UpdateCommentInput,
    UpdateNoteInput,
    UpdateStepInput,
    UpdateTeamMemberInput,
    UpdateTimelineInput,
    UploadDocumentInput,
    parse_input,
)
from purchase_timeline.services.dependency_resolver import DependencyCheck, can_complete
from purchase_timeline.services.document_version_service import (
    DocumentVersionService,
    StepDocuments,
)
from purchase_timeline.services.ownership import DatabaseOwnershipChecker, OwnershipChecker
from purchase_timeline.services.progress_service import (
    CostSummary,
    ProgressService,
    ProgressStats,
)
from purchase_timeline.services.step_progression import StepProgressionService
from purchase_timeline.services.storage import (
    LocalFileStorageProvider,
    StorageError,
    StorageProvider,
)
from purchase_timeline.services.templates import DEFAULT_TIMELINE_STEPS
from purchase_timeline.utils.invariants import InvariantChecker
from purchase_timeline.utils.money import dollars_to_cents

logger = get_logger(__name__)

# Fields of UpdateStepInput handled by the state machine rather than copied
_COMPLETION_FIELDS = ("is_completed", "is_early_completion", "actual_cost", "actual_end_date")


class TimelineOrchestrator(BaseOrchestrator):
    """
    Orchestrator for timelines, their steps, documents and collaboration records.

    Every mutating operation:
    1. Validates its input (ValidationFailureError, nothing written)
    2. Verifies ownership once (NotFoundOrUnauthorizedError)
    3. Runs inside one transaction, rolled back in full on any failure
    4. Recomputes the timeline's cached counters on step/document changes
    5. Checks the step invariants before committing
    """

    def __init__(
        self,
        db: Session,
        ownership: Optional[OwnershipChecker] = None,
        versioning: Optional[DocumentVersionService] = None,
        storage: Optional[StorageProvider] = None,
        config: Optional[Settings] = None,
    ):
        """
        Initialize timeline orchestrator.

        Args:
            db: Database session
            ownership: Ownership capability (defaults to the user_id columns)
            versioning: Document versioning engine
            storage: Provider for document bytes (defaults to local files)
            config: Settings (defaults to the environment-derived settings)
        """
        super().__init__(db, config)
        self.ownership = ownership or DatabaseOwnershipChecker(db)
        self.versioning = versioning or DocumentVersionService(db)
        self.progression = StepProgressionService(db, self.versioning)
        self.progress = ProgressService(db)
        self.invariants = InvariantChecker(db)
        self.storage = storage or LocalFileStorageProvider(self.settings.storage.root)

    @property
    def orchestrator_name(self) -> str:
        """Get orchestrator name for tracing."""
        return "timeline_orchestrator"

    # ------------------------------------------------------------------
    # Ownership
    # ------------------------------------------------------------------

    def verify_ownership(self, caller_id: UUID, timeline_id: UUID) -> Timeline:
        """
        Resolve a timeline owned by the caller.

        Args:
            caller_id: Authenticated caller
            timeline_id: Timeline to resolve

        Returns:
            The timeline

        Raises:
            NotFoundOrUnauthorizedError: If missing or owned by someone else
        """
        if not self.ownership.owns_timeline(caller_id, timeline_id):
            raise NotFoundOrUnauthorizedError("Timeline", timeline_id)

        timeline = self.db.query(Timeline).filter(Timeline.id == timeline_id).first()
        if not timeline:
            raise NotFoundOrUnauthorizedError("Timeline", timeline_id)
        return timeline

    def _get_owned_step(self, caller_id: UUID, step_id: UUID) -> Tuple[TimelineStep, Timeline]:
        step = self.db.query(TimelineStep).filter(TimelineStep.id == step_id).first()
        if not step or not self.ownership.owns_timeline(caller_id, step.timeline_id):
            raise NotFoundOrUnauthorizedError("TimelineStep", step_id)
        return step, step.timeline

    def _get_owned_document(self, caller_id: UUID, document_id: UUID) -> TimelineDocument:
        document = self.db.query(TimelineDocument).filter(
            TimelineDocument.id == document_id,
            TimelineDocument.deleted_at.is_(None)
        ).first()
        if not document or not self.ownership.owns_timeline(caller_id, document.timeline_id):
            raise NotFoundOrUnauthorizedError("TimelineDocument", document_id)
        return document

    def _finish_step_mutation(self, timeline_id: UUID) -> None:
        """Recompute counters and check invariants before commit."""
        with self._trace_step("update_timeline_progress"):
            self.progression.update_timeline_progress(timeline_id)
        with self._trace_step("check_invariants"):
            self.invariants.check_timeline(timeline_id)

    # ------------------------------------------------------------------
    # Timelines
    # ------------------------------------------------------------------

    def create_timeline(
        self,
        owner_id: UUID,
        data: Union[CreateTimelineInput, dict, None] = None,
        **fields
    ) -> Timeline:
        """
        Create a timeline for a property and seed its steps.

        Steps come from ``custom_steps`` or the default template, in order,
        with dense sort orders. The first step is CURRENT.

        Args:
            owner_id: Caller, must own the property
            data: CreateTimelineInput or dict
            **fields: Input fields as keywords

        Returns:
            The created timeline

        Raises:
            ValidationFailureError: If input is invalid
            NotFoundOrUnauthorizedError: If the property is not the caller's
            ConflictError: If the property already has a timeline
        """
        request = parse_input(CreateTimelineInput, data, **fields)

        with self._transaction("create_timeline"):
            with self._trace_step("verify_property"):
                if not self.ownership.owns_property(owner_id, request.property_id):
                    raise NotFoundOrUnauthorizedError("Property", request.property_id)

                existing = self.db.query(Timeline.id).filter(
                    Timeline.property_id == request.property_id
                ).first()
                if existing:
                    raise ConflictError(
                        f"Timeline already exists for property {request.property_id}"
                    )

            templates = request.custom_steps or DEFAULT_TIMELINE_STEPS
            start_date = request.start_date or utcnow()
            closing_date = request.estimated_closing_date or (
                start_date + timedelta(days=self.settings.default_closing_days)
            )

            with self._trace_step("create_timeline") as step:
                timeline = Timeline(
                    property_id=request.property_id,
                    user_id=owner_id,
                    title=request.title,
                    start_date=start_date,
                    estimated_closing_date=closing_date,
                    status=TimelineStatus.ACTIVE,
                    total_steps=len(templates),
                    completed_steps=0,
                    progress_percentage=0.0,
                )
                self.db.add(timeline)
                try:
                    self.db.flush()
                except IntegrityError as e:
                    raise ConflictError(
                        f"Timeline already exists for property {request.property_id}"
                    ) from e
                step.details["timeline_id"] = str(timeline.id)

            with self._trace_step("create_steps") as step:
                for index, template in enumerate(templates):
                    self.db.add(TimelineStep(
                        timeline_id=timeline.id,
                        title=template.title,
                        description=template.description,
                        category=template.category,
                        icon=template.icon,
                        sort_order=index,
                        status=StepStatus.CURRENT if index == 0 else StepStatus.UPCOMING,
                        is_required=template.is_required,
                        days_from_start=template.days_from_start,
                        estimated_duration=template.estimated_duration,
                        scheduled_date=start_date + timedelta(days=template.days_from_start),
                        estimated_cost=dollars_to_cents(template.estimated_cost),
                        priority=template.priority,
                        external_url=template.external_url,
                        dependencies=list(template.dependencies),
                    ))
                self.db.flush()
                step.details["steps_created"] = len(templates)

            self._finish_step_mutation(timeline.id)

        logger.info(
            "Created timeline %s with %d steps for property %s",
            timeline.id,
            len(templates),
            request.property_id,
        )
        return timeline

    def get_timeline(self, owner_id: UUID, timeline_id: UUID) -> Timeline:
        """
        Get a timeline owned by the caller.

        Raises:
            NotFoundOrUnauthorizedError: If missing or not owned
        """
        return self.verify_ownership(owner_id, timeline_id)

    def get_timeline_by_property(self, owner_id: UUID, property_id: UUID) -> Optional[Timeline]:
        """
        Get the timeline tracking a property, if any.

        Raises:
            NotFoundOrUnauthorizedError: If the property is not the caller's
        """
        if not self.ownership.owns_property(owner_id, property_id):
            raise NotFoundOrUnauthorizedError("Property", property_id)

        return self.db.query(Timeline).filter(
            Timeline.property_id == property_id,
            Timeline.user_id == owner_id
        ).first()

    def list_user_timelines(
        self,
        owner_id: UUID,
        include_cancelled: bool = False
    ) -> List[Timeline]:
        """List the caller's timelines, newest first."""
        query = self.db.query(Timeline).filter(Timeline.user_id == owner_id)
        if not include_cancelled:
            query = query.filter(Timeline.status != TimelineStatus.CANCELLED)
        return query.order_by(Timeline.created_at.desc()).all()

    def update_timeline(
        self,
        owner_id: UUID,
        timeline_id: UUID,
        data: Union[UpdateTimelineInput, dict, None] = None,
        **fields
    ) -> Timeline:
        """
        Update a timeline's title, status or closing dates.

        Raises:
            ValidationFailureError: If input is invalid
            NotFoundOrUnauthorizedError: If missing or not owned
        """
        request = parse_input(UpdateTimelineInput, data, **fields)

        with self._transaction("update_timeline"):
            timeline = self.verify_ownership(owner_id, timeline_id)
            for name, value in request.model_dump(exclude_unset=True).items():
                setattr(timeline, name, value)
            self.db.flush()

        return timeline

    def cancel_timeline(self, owner_id: UUID, timeline_id: UUID) -> Timeline:
        """
        Soft-delete a timeline by setting its status to CANCELLED.

        Raises:
            NotFoundOrUnauthorizedError: If missing or not owned
        """
        with self._transaction("cancel_timeline"):
            timeline = self.verify_ownership(owner_id, timeline_id)
            timeline.status = TimelineStatus.CANCELLED
            self.db.flush()

        logger.info("Cancelled timeline %s", timeline_id)
        return timeline

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def get_steps(self, owner_id: UUID, timeline_id: UUID) -> List[TimelineStep]:
        """Get a timeline's steps ordered by sort order."""
        self.verify_ownership(owner_id, timeline_id)
        return self.progression.get_steps(timeline_id)

    def create_step(
        self,
        owner_id: UUID,
        timeline_id: UUID,
        data: Union[CreateStepInput, dict, None] = None,
        **fields
    ) -> TimelineStep:
        """
        Add a step to a timeline.

        Without a sort order the step is appended. With one, steps at or
        after that position move down by one. The new step is UPCOMING
        unless the timeline has no CURRENT step or the new step precedes
        it, in which case CURRENT is recomputed.

        Raises:
            ValidationFailureError: If input or sort order is invalid
            NotFoundOrUnauthorizedError: If the timeline is not the caller's
        """
        request = parse_input(CreateStepInput, data, **fields)

        with self._transaction("create_step"):
            timeline = self.verify_ownership(owner_id, timeline_id)
            steps = self.progression.get_steps(timeline_id)

            position = request.sort_order if request.sort_order is not None else len(steps)
            if position > len(steps):
                raise ValidationFailureError(
                    f"sort_order must be between 0 and {len(steps)}",
                    errors=[{"field": "sort_order", "message": "out of range"}],
                )

            current = next((s for s in steps if s.status == StepStatus.CURRENT), None)
            precedes_current = current is not None and position <= current.sort_order

            with self._trace_step("shift_steps"):
                self.progression.apply_sort_orders(timeline_id, {
                    s.id: s.sort_order + 1 for s in steps if s.sort_order >= position
                })

            with self._trace_step("insert_step"):
                step = TimelineStep(
                    timeline_id=timeline_id,
                    title=request.title,
                    description=request.description,
                    category=request.category,
                    icon=request.icon,
                    sort_order=position,
                    status=StepStatus.UPCOMING,
                    is_required=request.is_required,
                    days_from_start=request.days_from_start,
                    estimated_duration=request.estimated_duration,
                    scheduled_date=timeline.start_date + timedelta(days=request.days_from_start),
                    estimated_cost=dollars_to_cents(request.estimated_cost),
                    priority=request.priority,
                    external_url=request.external_url,
                    dependencies=list(request.dependencies),
                )
                self.db.add(step)
                self.db.flush()

            if current is None or precedes_current:
                with self._trace_step("recompute_current_step"):
                    self.progression.recompute_current_step(timeline_id)

            self._finish_step_mutation(timeline_id)

        logger.info("Added step '%s' at position %d to timeline %s", step.title, position, timeline_id)
        return step

    def update_step(
        self,
        owner_id: UUID,
        step_id: UUID,
        data: Union[UpdateStepInput, dict, None] = None,
        **fields
    ) -> TimelineStep:
        """
        Update a step.

        ``is_completed`` (with ``is_early_completion``, ``actual_cost`` and
        ``actual_end_date``) goes through the step progression state
        machine. Other fields are written as given.

        Raises:
            ValidationFailureError: If input is invalid
            NotFoundOrUnauthorizedError: If the step is not the caller's
        """
        request = parse_input(UpdateStepInput, data, **fields)
        values = request.model_dump(exclude_unset=True)
        completion = {name: values.pop(name) for name in _COMPLETION_FIELDS if name in values}

        with self._transaction("update_step"):
            step, timeline = self._get_owned_step(owner_id, step_id)

            start = values.get("actual_start_date", step.actual_start_date)
            end = completion.get("actual_end_date", step.actual_end_date)
            if start is not None and end is not None and end < start:
                raise ValidationFailureError(
                    "End date must not be before start date",
                    errors=[{"field": "actual_end_date", "message": "before actual_start_date"}],
                )

            with self._trace_step("apply_fields"):
                if "estimated_cost" in values:
                    values["estimated_cost"] = dollars_to_cents(values["estimated_cost"])
                if "days_from_start" in values:
                    step.scheduled_date = timeline.start_date + timedelta(
                        days=values["days_from_start"]
                    )
                if values.get("is_blocked") is False and "block_reason" not in values:
                    values["block_reason"] = None

                for name, value in values.items():
                    setattr(step, name, value)
                self.db.flush()

            actual_cost = dollars_to_cents(completion.get("actual_cost"))
            if completion.get("is_completed") is not None:
                with self._trace_step("set_step_completion") as trace:
                    self.progression.set_step_completion(
                        step,
                        completed=completion["is_completed"],
                        is_early_completion=completion.get("is_early_completion", False),
                        actual_cost=actual_cost,
                        actual_end_date=completion.get("actual_end_date"),
                    )
                    trace.details["status"] = step.status.value
            else:
                if "actual_cost" in completion:
                    step.actual_cost = actual_cost
                if "actual_end_date" in completion:
                    step.actual_end_date = completion["actual_end_date"]
                self.db.flush()

            self._finish_step_mutation(timeline.id)

        return step

    def delete_step(self, owner_id: UUID, step_id: UUID) -> None:
        """
        Delete a step.

        Its documents move to the timeline (no orphans), its comments are
        deleted, remaining sort orders are renumbered 0..n-1 and CURRENT is
        recomputed if the deleted step was CURRENT.

        Raises:
            NotFoundOrUnauthorizedError: If the step is not the caller's
        """
        with self._transaction("delete_step"):
            step, timeline = self._get_owned_step(owner_id, step_id)
            was_current = step.status == StepStatus.CURRENT

            with self._trace_step("detach_documents") as trace:
                documents = self.db.query(TimelineDocument).filter(
                    TimelineDocument.step_id == step.id
                ).all()
                for document in documents:
                    document.step_id = None
                self.db.flush()
                trace.details["documents_detached"] = len(documents)

            with self._trace_step("delete_step"):
                self.db.delete(step)
                self.db.flush()

            with self._trace_step("compact_sort_orders"):
                self.progression.compact_sort_orders(timeline.id)

            if was_current:
                with self._trace_step("recompute_current_step"):
                    self.progression.recompute_current_step(timeline.id)

            self._finish_step_mutation(timeline.id)

        logger.info("Deleted step %s from timeline %s", step_id, timeline.id)

    def reorder_steps(
        self,
        owner_id: UUID,
        timeline_id: UUID,
        data: Union[ReorderStepsInput, dict, None] = None,
        **fields
    ) -> List[TimelineStep]:
        """
        Apply new sort orders in one transaction.

        The resulting orders must still be exactly 0..n-1. CURRENT is not
        recomputed; call recompute_current_step afterwards if needed.

        Raises:
            ValidationFailureError: If input is invalid or orders would not be dense
            NotFoundOrUnauthorizedError: If the timeline or any step is not the caller's
        """
        request = parse_input(ReorderStepsInput, data, **fields)
        updates = {u.step_id: u.sort_order for u in request.step_updates}

        with self._transaction("reorder_steps"):
            self.verify_ownership(owner_id, timeline_id)
            steps = self.progression.get_steps(timeline_id)

            known = {s.id for s in steps}
            for step_id in updates:
                if step_id not in known:
                    raise NotFoundOrUnauthorizedError("TimelineStep", step_id)

            final_orders = {s.id: s.sort_order for s in steps}
            final_orders.update(updates)
            if sorted(final_orders.values()) != list(range(len(steps))):
                raise ValidationFailureError(
                    "Sort orders must stay unique and dense (0..n-1)",
                    errors=[{"field": "step_updates", "message": "orders not dense"}],
                )

            with self._trace_step("apply_sort_orders"):
                steps = self.progression.reorder_steps(timeline_id, updates)
            with self._trace_step("check_invariants"):
                self.invariants.check_dense_sort_orders(timeline_id)

        return steps

    def recompute_current_step(self, owner_id: UUID, timeline_id: UUID) -> Optional[TimelineStep]:
        """
        Recompute CURRENT as the non-completed step with the lowest sort order.

        Returns:
            The CURRENT step, or None when every step is completed
        """
        with self._transaction("recompute_current_step"):
            self.verify_ownership(owner_id, timeline_id)
            current = self.progression.recompute_current_step(timeline_id)
            self._finish_step_mutation(timeline_id)
        return current

    def check_step_dependencies(self, owner_id: UUID, step_id: UUID) -> DependencyCheck:
        """Advisory: which declared dependencies of a step are not completed yet."""
        step, timeline = self._get_owned_step(owner_id, step_id)
        return can_complete(step, self.progression.get_steps(timeline.id))

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def create_document(
        self,
        owner_id: UUID,
        timeline_id: UUID,
        data: Union[CreateDocumentInput, dict, None] = None,
        **fields
    ) -> TimelineDocument:
        """
        Record metadata of a stored document.

        A step-attached document becomes the new current version of its
        (step, document_type) chain. Without a completion session id a new
        session is started for it.

        Raises:
            ValidationFailureError: If input is invalid
            NotFoundOrUnauthorizedError: If the timeline is not the caller's or
                the step does not belong to it
        """
        request = parse_input(CreateDocumentInput, data, **fields)

        with self._transaction("create_document"):
            self.verify_ownership(owner_id, timeline_id)

            step = None
            if request.step_id is not None:
                step = self.db.query(TimelineStep).filter(
                    TimelineStep.id == request.step_id,
                    TimelineStep.timeline_id == timeline_id
                ).first()
                if not step:
                    raise NotFoundOrUnauthorizedError("TimelineStep", request.step_id)

            with self._trace_step("insert_document"):
                document = TimelineDocument(
                    timeline_id=timeline_id,
                    step_id=request.step_id,
                    file_name=request.file_name,
                    original_name=request.original_name,
                    mime_type=request.mime_type,
                    file_size=request.file_size,
                    document_type=request.document_type,
                    description=request.description,
                    storage_provider=request.storage_provider,
                    storage_key=request.storage_key,
                    download_url=request.download_url,
                    thumbnail_url=request.thumbnail_url,
                    uploaded_by=owner_id,
                    document_version=1,
                    is_current_version=True,
                    completion_session_id=request.completion_session_id,
                )
                self.db.add(document)
                self.db.flush()

            if step is not None:
                with self._trace_step("record_new_version"):
                    session_id = (
                        request.completion_session_id
                        or self.versioning.create_completion_session(step.id)
                    )
                    self.versioning.record_new_version(
                        step.id, request.document_type, document.id, session_id
                    )
                    self.invariants.check_single_current_version(
                        step.id, request.document_type
                    )

            self._finish_step_mutation(timeline_id)

        return document

    def upload_document(
        self,
        owner_id: UUID,
        timeline_id: UUID,
        content: bytes,
        data: Union[UploadDocumentInput, dict, None] = None,
        **fields
    ) -> TimelineDocument:
        """
        Push bytes through the storage provider, then record the document.

        The stored object is deleted again if recording fails.

        Raises:
            ValidationFailureError: If input is invalid, empty or too large
            NotFoundOrUnauthorizedError: If the timeline or step is not the caller's
            StorageError: If the provider fails to store the bytes
        """
        request = parse_input(UploadDocumentInput, data, **fields)
        if not content:
            raise ValidationFailureError(
                "File is empty", errors=[{"field": "content", "message": "empty"}]
            )
        if len(content) > self.settings.storage.max_upload_bytes:
            raise ValidationFailureError(
                f"File size must be at most {self.settings.storage.max_upload_bytes} bytes",
                errors=[{"field": "content", "message": "too large"}],
            )

        self.verify_ownership(owner_id, timeline_id)

        key_hint = f"timelines/{timeline_id}/{request.step_id or 'general'}"
        stored = self.storage.upload(content, key_hint, request.mime_type)

        try:
            return self.create_document(
                owner_id,
                timeline_id,
                CreateDocumentInput(
                    step_id=request.step_id,
                    file_name=stored.key.rsplit("/", 1)[-1],
                    original_name=request.original_name,
                    mime_type=request.mime_type,
                    file_size=stored.size,
                    document_type=request.document_type,
                    description=request.description,
                    storage_provider=self.storage.name,
                    storage_key=stored.key,
                    download_url=stored.url,
                    completion_session_id=request.completion_session_id,
                ),
            )
        except Exception:
            self._delete_blob(stored.key)
            raise

    def get_documents(
        self,
        owner_id: UUID,
        timeline_id: UUID,
        step_id: Optional[UUID] = None,
        include_history: bool = False
    ) -> List[TimelineDocument]:
        """
        List a timeline's documents, newest first.

        Args:
            owner_id: Caller
            timeline_id: Timeline ID
            step_id: Restrict to one step
            include_history: Include non-current versions
        """
        self.verify_ownership(owner_id, timeline_id)

        query = self.db.query(TimelineDocument).filter(
            TimelineDocument.timeline_id == timeline_id,
            TimelineDocument.deleted_at.is_(None)
        )
        if step_id is not None:
            query = query.filter(TimelineDocument.step_id == step_id)
        if not include_history:
            query = query.filter(TimelineDocument.is_current_version.is_(True))
        return query.order_by(TimelineDocument.created_at.desc()).all()

    def list_step_documents(self, owner_id: UUID, step_id: UUID) -> StepDocuments:
        """Current documents of a step plus earlier completion sessions."""
        step, _ = self._get_owned_step(owner_id, step_id)
        return self.versioning.list_documents(step.id)

    def promote_document(self, owner_id: UUID, document_id: UUID) -> TimelineDocument:
        """
        Make an older version the current one of its chain.

        Raises:
            NotFoundOrUnauthorizedError: If the document is not the caller's
            ValidationFailureError: If the document is not attached to a step
        """
        with self._transaction("promote_document"):
            document = self._get_owned_document(owner_id, document_id)
            if document.step_id is None:
                raise ValidationFailureError(
                    "Only step documents have versions",
                    errors=[{"field": "document_id", "message": "not attached to a step"}],
                )

            self.versioning.promote_document(document)
            self.invariants.check_single_current_version(
                document.step_id, document.document_type
            )

        return document

    def delete_document(self, owner_id: UUID, document_id: UUID) -> None:
        """
        Soft-delete a document.

        Deleting the current version promotes the highest remaining one.
        The stored bytes are removed once the transaction has committed.

        Raises:
            NotFoundOrUnauthorizedError: If the document is not the caller's
        """
        with self._transaction("delete_document"):
            document = self._get_owned_document(owner_id, document_id)
            storage_key = document.storage_key
            step_id = document.step_id
            document_type = document.document_type

            self.versioning.soft_delete_document(document)
            if step_id is not None:
                self.invariants.check_single_current_version(step_id, document_type)
            self._finish_step_mutation(document.timeline_id)

        self._delete_blob(storage_key)

    def _delete_blob(self, key: str) -> None:
        try:
            self.storage.delete(key)
        except StorageError as e:
            # Metadata is already consistent; the object is left for cleanup
            logger.warning("Could not delete stored object %s: %s", key, e)

    # ------------------------------------------------------------------
    # Team members
    # ------------------------------------------------------------------

    def add_team_member(
        self,
        owner_id: UUID,
        timeline_id: UUID,
        data: Union[AddTeamMemberInput, dict, None] = None,
        **fields
    ) -> TeamMember:
        """
        Add a professional to a timeline.

        A primary member replaces any other primary member of the same role.
        """
        request = parse_input(AddTeamMemberInput, data, **fields)

        with self._transaction("add_team_member"):
            self.verify_ownership(owner_id, timeline_id)
            if request.is_primary:
                self._clear_primary(timeline_id, request.role)

            member = TeamMember(timeline_id=timeline_id, is_active=True, **request.model_dump())
            self.db.add(member)
            self.db.flush()

        return member

    def update_team_member(
        self,
        owner_id: UUID,
        member_id: UUID,
        data: Union[UpdateTeamMemberInput, dict, None] = None,
        **fields
    ) -> TeamMember:
        """Update a team member. Becoming primary demotes others of the same role."""
        request = parse_input(UpdateTeamMemberInput, data, **fields)
        values = request.model_dump(exclude_unset=True)

        with self._transaction("update_team_member"):
            member = self._get_owned_member(owner_id, member_id)
            for name, value in values.items():
                setattr(member, name, value)

            if member.is_primary and member.is_active:
                self._clear_primary(member.timeline_id, member.role, keep=member.id)
            self.db.flush()

        return member

    def remove_team_member(self, owner_id: UUID, member_id: UUID) -> TeamMember:
        """Deactivate a team member. The record is kept."""
        with self._transaction("remove_team_member"):
            member = self._get_owned_member(owner_id, member_id)
            member.is_active = False
            member.is_primary = False
            self.db.flush()

        return member

    def list_team_members(
        self,
        owner_id: UUID,
        timeline_id: UUID,
        include_inactive: bool = False
    ) -> List[TeamMember]:
        """List team members, primary ones first."""
        self.verify_ownership(owner_id, timeline_id)

        query = self.db.query(TeamMember).filter(TeamMember.timeline_id == timeline_id)
        if not include_inactive:
            query = query.filter(TeamMember.is_active.is_(True))
        return query.order_by(TeamMember.is_primary.desc(), TeamMember.created_at).all()

    def _get_owned_member(self, caller_id: UUID, member_id: UUID) -> TeamMember:
        member = self.db.query(TeamMember).filter(TeamMember.id == member_id).first()
        if not member or not self.ownership.owns_timeline(caller_id, member.timeline_id):
            raise NotFoundOrUnauthorizedError("TeamMember", member_id)
        return member

    def _clear_primary(self, timeline_id: UUID, role, keep: Optional[UUID] = None) -> None:
        query = self.db.query(TeamMember).filter(
            TeamMember.timeline_id == timeline_id,
            TeamMember.role == role,
            TeamMember.is_primary.is_(True)
        )
        for other in query.all():
            if other.id != keep:
                other.is_primary = False
        self.db.flush()

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    def create_note(
        self,
        owner_id: UUID,
        timeline_id: UUID,
        data: Union[CreateNoteInput, dict, None] = None,
        author_name: Optional[str] = None,
        **fields
    ) -> TimelineNote:
        """Add a note to a timeline, authored by the caller."""
        request = parse_input(CreateNoteInput, data, **fields)

        with self._transaction("create_note"):
            self.verify_ownership(owner_id, timeline_id)
            note = TimelineNote(
                timeline_id=timeline_id,
                author_id=owner_id,
                author_name=author_name or self._author_name(owner_id),
                **request.model_dump(),
            )
            self.db.add(note)
            self.db.flush()

        return note

    def update_note(
        self,
        owner_id: UUID,
        note_id: UUID,
        data: Union[UpdateNoteInput, dict, None] = None,
        **fields
    ) -> TimelineNote:
        """Update a note. Allowed for its author and the timeline owner."""
        request = parse_input(UpdateNoteInput, data, **fields)

        with self._transaction("update_note"):
            note = self._get_editable_note(owner_id, note_id)
            for name, value in request.model_dump(exclude_unset=True).items():
                setattr(note, name, value)
            self.db.flush()

        return note

    def delete_note(self, owner_id: UUID, note_id: UUID) -> None:
        """Delete a note. Allowed for its author and the timeline owner."""
        with self._transaction("delete_note"):
            note = self._get_editable_note(owner_id, note_id)
            self.db.delete(note)
            self.db.flush()

    def list_notes(self, owner_id: UUID, timeline_id: UUID) -> List[TimelineNote]:
        """List notes, newest first. Private notes are only shown to their author."""
        self.verify_ownership(owner_id, timeline_id)

        notes = self.db.query(TimelineNote).filter(
            TimelineNote.timeline_id == timeline_id
        ).order_by(TimelineNote.created_at.desc()).all()
        return [n for n in notes if not n.is_private or n.author_id == owner_id]

    def _get_editable_note(self, caller_id: UUID, note_id: UUID) -> TimelineNote:
        note = self.db.query(TimelineNote).filter(TimelineNote.id == note_id).first()
        if not note or not (
            note.author_id == caller_id
            or self.ownership.owns_timeline(caller_id, note.timeline_id)
        ):
            raise NotFoundOrUnauthorizedError("TimelineNote", note_id)
        return note

    # ------------------------------------------------------------------
    # Step comments
    # ------------------------------------------------------------------

    def add_step_comment(
        self,
        owner_id: UUID,
        step_id: UUID,
        data: Union[AddStepCommentInput, dict, None] = None,
        author_name: Optional[str] = None,
        **fields
    ) -> StepComment:
        """Comment on a step, authored by the caller."""
        request = parse_input(AddStepCommentInput, data, **fields)

        with self._transaction("add_step_comment"):
            step, _ = self._get_owned_step(owner_id, step_id)
            comment = StepComment(
                step_id=step.id,
                author_id=owner_id,
                author_name=author_name or self._author_name(owner_id),
                **request.model_dump(),
            )
            self.db.add(comment)
            self.db.flush()

        return comment

    def update_step_comment(
        self,
        owner_id: UUID,
        comment_id: UUID,
        data: Union[UpdateCommentInput, dict, None] = None,
        **fields
    ) -> StepComment:
        """Edit a comment. Allowed for its author and the timeline owner."""
        request = parse_input(UpdateCommentInput, data, **fields)

        with self._transaction("update_step_comment"):
            comment = self._get_editable_comment(owner_id, comment_id)
            comment.content = request.content
            self.db.flush()

        return comment

    def delete_step_comment(self, owner_id: UUID, comment_id: UUID) -> None:
        """Delete a comment. Allowed for its author and the timeline owner."""
        with self._transaction("delete_step_comment"):
            comment = self._get_editable_comment(owner_id, comment_id)
            self.db.delete(comment)
            self.db.flush()

    def list_step_comments(self, owner_id: UUID, step_id: UUID) -> List[StepComment]:
        """List a step's comments, newest first."""
        step, _ = self._get_owned_step(owner_id, step_id)
        return self.db.query(StepComment).filter(
            StepComment.step_id == step.id
        ).order_by(StepComment.created_at.desc()).all()

    def _get_editable_comment(self, caller_id: UUID, comment_id: UUID) -> StepComment:
        comment = self.db.query(StepComment).filter(StepComment.id == comment_id).first()
        if not comment or not (
            comment.author_id == caller_id
            or self.ownership.owns_timeline(caller_id, comment.step.timeline_id)
        ):
            raise NotFoundOrUnauthorizedError("StepComment", comment_id)
        return comment

    def _author_name(self, user_id: UUID) -> str:
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            return "Unknown"
        return user.full_name or user.email

    # ------------------------------------------------------------------
    # Analytics
    # ------------------------------------------------------------------

    def get_progress_stats(self, owner_id: UUID, timeline_id: UUID) -> ProgressStats:
        """Progress statistics computed from the steps."""
        self.verify_ownership(owner_id, timeline_id)
        return self.progress.get_progress_stats(timeline_id)

    def get_cost_summary(self, owner_id: UUID, timeline_id: UUID) -> CostSummary:
        """Cost totals in dollars, with one entry per category."""
        self.verify_ownership(owner_id, timeline_id)
        return self.progress.get_cost_summary(timeline_id)
