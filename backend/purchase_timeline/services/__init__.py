"""
Services package.

Services hold the single-purpose logic of the timeline core.

Services should:
    - Accept database session as parameter
    - Work inside the caller's transaction and only flush
    - Return data or raise exceptions
"""

from purchase_timeline.services.dependency_resolver import (
    DependencyCheck,
    can_complete,
)
from purchase_timeline.services.document_version_service import (
    DocumentVersionService,
    DocumentVersionServiceError,
    CompletionSession,
    SessionInfo,
    VersionedDocument,
    SessionDocuments,
    StepDocuments,
)
from purchase_timeline.services.step_progression import (
    StepProgressionService,
    StepProgressionError,
    VersioningEngine,
)
from purchase_timeline.services.progress_service import (
    ProgressService,
    ProgressStats,
    CostSummary,
)
from purchase_timeline.services.storage import (
    StorageProvider,
    StorageError,
    StoredObject,
    LocalFileStorageProvider,
    InMemoryStorageProvider,
)
from purchase_timeline.services.ownership import (
    OwnershipChecker,
    DatabaseOwnershipChecker,
)
from purchase_timeline.services.templates import (
    StepTemplate,
    DEFAULT_TIMELINE_STEPS,
)

__all__ = [
    "DependencyCheck",
    "can_complete",
    "DocumentVersionService",
    "DocumentVersionServiceError",
    "CompletionSession",
    "SessionInfo",
    "VersionedDocument",
    "SessionDocuments",
    "StepDocuments",
    "StepProgressionService",
    "StepProgressionError",
    "VersioningEngine",
    "ProgressService",
    "ProgressStats",
    "CostSummary",
    "StorageProvider",
    "StorageError",
    "StoredObject",
    "LocalFileStorageProvider",
    "InMemoryStorageProvider",
    "OwnershipChecker",
    "DatabaseOwnershipChecker",
    "StepTemplate",
    "DEFAULT_TIMELINE_STEPS",
]
