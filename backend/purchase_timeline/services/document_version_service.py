"""Document version chains and completion sessions for timeline steps."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from purchase_timeline.logging import get_logger
from purchase_timeline.models.base import utcnow
from purchase_timeline.models.enums import DocumentType
from purchase_timeline.models.timeline_document import TimelineDocument

logger = get_logger(__name__)


class DocumentVersionServiceError(Exception):
    """Base exception for document version service errors."""
    pass


@dataclass
class CompletionSession:
    """Documents submitted together by one "complete this step" action."""
    id: str
    step_id: UUID
    session_number: int
    created_at: datetime
    document_count: int


@dataclass
class SessionInfo:
    """Position of a document's session among all sessions of its step."""
    session_number: int
    total_sessions: int
    is_latest_session: bool


@dataclass
class VersionedDocument:
    """A document annotated with its session position."""
    document: TimelineDocument
    session_info: SessionInfo


@dataclass
class SessionDocuments:
    """History documents of one earlier completion session."""
    session: CompletionSession
    documents: List[VersionedDocument] = field(default_factory=list)


@dataclass
class StepDocuments:
    """Current documents of a step plus the history of earlier sessions."""
    current: List[VersionedDocument] = field(default_factory=list)
    previous_sessions: List[SessionDocuments] = field(default_factory=list)


class DocumentVersionService:
    """
    Service maintaining one version chain per (step, document_type).

    Versioning is additive: documents are never removed by version
    bookkeeping, only flagged as history. Every method works inside the
    caller's transaction and only flushes; committing is up to the caller.
    """

    def __init__(self, db: Session):
        """
        Initialize document version service.

        Args:
            db: Database session
        """
        self.db = db

    def create_completion_session(self, step_id: UUID) -> str:
        """
        Create a new completion session id for a step.

        Args:
            step_id: Step being completed

        Returns:
            Opaque session id
        """
        return f"session_{step_id}_{uuid4().hex}"

    def record_new_version(
        self,
        step_id: UUID,
        document_type: DocumentType,
        new_document_id: UUID,
        session_id: str,
    ) -> TimelineDocument:
        """
        Make a freshly inserted document the current version of its chain.

        Locks every non-deleted document of the (step, document_type) pair,
        flags all of them except the new one as history and gives the new
        document version max(existing) + 1.

        Args:
            step_id: Step the chain belongs to
            document_type: Classification key of the chain
            new_document_id: Already flushed document to promote
            session_id: Completion session the new document belongs to

        Returns:
            The new document with its version assigned

        Raises:
            DocumentVersionServiceError: If the new document is not part of the chain
        """
        chain = self._lock_chain(step_id, document_type)

        new_document = next((d for d in chain if d.id == new_document_id), None)
        if new_document is None:
            raise DocumentVersionServiceError(
                f"Document {new_document_id} is not a {document_type.value} "
                f"document of step {step_id}"
            )

        now = utcnow()
        max_version = 0
        for document in chain:
            if document.id == new_document_id:
                continue
            max_version = max(max_version, document.document_version or 0)
            if document.is_current_version:
                document.is_current_version = False
                document.superseded_at = now
                document.superseded_by_id = new_document_id

        new_document.document_version = max_version + 1
        new_document.is_current_version = True
        new_document.completion_session_id = session_id
        new_document.superseded_by_id = None
        new_document.superseded_at = None
        self.db.flush()

        logger.info(
            "Recorded %s document %s as version %d of step %s",
            document_type.value,
            new_document_id,
            new_document.document_version,
            step_id,
        )
        return new_document

    def handle_step_incomplete(self, step_id: UUID) -> Optional[CompletionSession]:
        """
        React to a step being marked incomplete.

        Reverting completion never touches document state: the latest
        session's documents stay as they are.

        Args:
            step_id: Step reverted to incomplete

        Returns:
            The retained latest session, or None if the step has no sessions
        """
        sessions = self.get_completion_sessions(step_id)
        if not sessions:
            return None

        latest = sessions[-1]
        logger.info(
            "Step %s marked incomplete, keeping session %d (%d documents)",
            step_id,
            latest.session_number,
            latest.document_count,
        )
        return latest

    def get_completion_sessions(self, step_id: UUID) -> List[CompletionSession]:
        """
        Get all completion sessions of a step.

        Sessions are ordered by their earliest document's creation time;
        ties fall back to the highest version in the session, then the
        session id.

        Args:
            step_id: Step ID

        Returns:
            Sessions numbered 1..n in that order
        """
        documents = self.db.query(TimelineDocument).filter(
            TimelineDocument.step_id == step_id,
            TimelineDocument.completion_session_id.isnot(None),
            TimelineDocument.deleted_at.is_(None)
        ).all()

        grouped: Dict[str, List[TimelineDocument]] = {}
        for document in documents:
            grouped.setdefault(document.completion_session_id, []).append(document)

        ordered = sorted(
            grouped.items(),
            key=lambda item: (
                min(d.created_at for d in item[1]),
                max(d.document_version or 0 for d in item[1]),
                item[0],
            )
        )

        return [
            CompletionSession(
                id=session_id,
                step_id=step_id,
                session_number=index,
                created_at=min(d.created_at for d in docs),
                document_count=len(docs),
            )
            for index, (session_id, docs) in enumerate(ordered, start=1)
        ]

    def list_documents(self, step_id: UUID) -> StepDocuments:
        """
        List a step's documents grouped by completion session.

        ``previous_sessions`` holds every session except the latest, each
        with its non-current documents.

        Args:
            step_id: Step ID

        Returns:
            StepDocuments with session info on every listed document
        """
        sessions = self.get_completion_sessions(step_id)
        total_sessions = len(sessions)
        numbers = {session.id: session.session_number for session in sessions}

        documents = self.db.query(TimelineDocument).filter(
            TimelineDocument.step_id == step_id,
            TimelineDocument.deleted_at.is_(None)
        ).order_by(
            TimelineDocument.document_version.desc(),
            TimelineDocument.created_at.desc()
        ).all()

        def annotate(document: TimelineDocument) -> VersionedDocument:
            number = numbers.get(document.completion_session_id, total_sessions)
            return VersionedDocument(
                document=document,
                session_info=SessionInfo(
                    session_number=number,
                    total_sessions=total_sessions,
                    is_latest_session=number == total_sessions,
                ),
            )

        current = [annotate(d) for d in documents if d.is_current_version]

        previous_sessions = []
        for session in sessions[:-1]:
            history = [
                annotate(d) for d in documents
                if not d.is_current_version and d.completion_session_id == session.id
            ]
            previous_sessions.append(SessionDocuments(session=session, documents=history))

        return StepDocuments(current=current, previous_sessions=previous_sessions)

    def get_current_documents(self, step_id: UUID) -> List[TimelineDocument]:
        """Get the current version of every document type of a step."""
        return self.db.query(TimelineDocument).filter(
            TimelineDocument.step_id == step_id,
            TimelineDocument.is_current_version.is_(True),
            TimelineDocument.deleted_at.is_(None)
        ).order_by(TimelineDocument.created_at.desc()).all()

    def promote_document(self, document: TimelineDocument) -> TimelineDocument:
        """
        Make an older version the current one of its chain.

        Args:
            document: Non-deleted, step-attached document

        Returns:
            The promoted document

        Raises:
            DocumentVersionServiceError: If the document is deleted or not step-attached
        """
        if document.deleted_at is not None:
            raise DocumentVersionServiceError(f"Document {document.id} is deleted")
        if document.step_id is None:
            raise DocumentVersionServiceError(
                f"Document {document.id} is not attached to a step"
            )

        if document.is_current_version:
            return document

        now = utcnow()
        for other in self._lock_chain(document.step_id, document.document_type):
            if other.id != document.id and other.is_current_version:
                other.is_current_version = False
                other.superseded_at = now
                other.superseded_by_id = document.id

        document.is_current_version = True
        document.superseded_at = None
        document.superseded_by_id = None
        self.db.flush()

        logger.info(
            "Promoted version %d of %s documents on step %s",
            document.document_version,
            document.document_type.value,
            document.step_id,
        )
        return document

    def soft_delete_document(self, document: TimelineDocument) -> Optional[TimelineDocument]:
        """
        Soft-delete a document and keep its chain consistent.

        Deleting the current version promotes the highest remaining version.

        Args:
            document: Document to delete

        Returns:
            The document promoted in its place, or None
        """
        was_current = document.is_current_version
        document.deleted_at = utcnow()
        document.is_current_version = False
        self.db.flush()

        if not was_current or document.step_id is None:
            return None

        remaining = self._lock_chain(document.step_id, document.document_type)
        if not remaining:
            return None

        replacement = max(remaining, key=lambda d: (d.document_version or 0, d.created_at))
        replacement.is_current_version = True
        replacement.superseded_at = None
        replacement.superseded_by_id = None
        self.db.flush()

        logger.info(
            "Deleted current %s document %s, version %d is current again",
            document.document_type.value,
            document.id,
            replacement.document_version,
        )
        return replacement

    def _lock_chain(
        self,
        step_id: UUID,
        document_type: DocumentType
    ) -> List[TimelineDocument]:
        """Load non-deleted documents of a chain with a row lock where supported."""
        return self.db.query(TimelineDocument).filter(
            TimelineDocument.step_id == step_id,
            TimelineDocument.document_type == document_type,
            TimelineDocument.deleted_at.is_(None)
        ).order_by(TimelineDocument.document_version).with_for_update().all()
