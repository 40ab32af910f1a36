"""TimelineDocument model."""
from sqlalchemy import Column, String, Text, Integer, BigInteger, Boolean, DateTime, ForeignKey
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import relationship

from purchase_timeline.database import Base
from purchase_timeline.models.base import BaseModel
from purchase_timeline.models.enums import DocumentType
from purchase_timeline.models.types import GUID


class TimelineDocument(Base, BaseModel):
    """
    Metadata for an uploaded artifact. The bytes live with the storage provider.

    Documents attached to a step form one version chain per
    (step_id, document_type). Exactly one non-deleted document of a chain
    is the current version; the rest are history ordered by version.

    Attributes:
        timeline_id: Owning timeline
        step_id: Step the document supports (None for timeline-level files)
        file_name: Stored file name
        original_name: Name of the file as uploaded
        mime_type: MIME type reported at upload
        file_size: Size in bytes
        document_type: Classification key of the version chain
        storage_provider: Name of the provider holding the bytes
        storage_key: Provider key used for deletion
        download_url: Public or signed URL
        thumbnail_url: Optional preview URL
        uploaded_by: Caller that uploaded the document
        document_version: 1-based position in the version chain
        is_current_version: Whether this is the live version of its chain
        completion_session_id: Groups documents submitted in one completion
        superseded_by_id: Document that replaced this one
        superseded_at: When this version stopped being current
        deleted_at: Soft-delete marker
    """

    __tablename__ = "timeline_documents"

    timeline_id = Column(
        GUID(),
        ForeignKey("timelines.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    step_id = Column(
        GUID(),
        ForeignKey("timeline_steps.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    file_name = Column(String(255), nullable=False)
    original_name = Column(String(255), nullable=False)
    mime_type = Column(String(100), nullable=False)
    file_size = Column(BigInteger, nullable=False)
    document_type = Column(
        SQLEnum(DocumentType, name="document_type"),
        nullable=False,
        default=DocumentType.OTHER
    )
    description = Column(Text, nullable=True)

    # Storage pointer returned by the storage provider
    storage_provider = Column(String(50), nullable=False)
    storage_key = Column(String(500), nullable=False)
    download_url = Column(String, nullable=True)
    thumbnail_url = Column(String, nullable=True)

    uploaded_by = Column(GUID(), nullable=False)

    # Version chain
    document_version = Column(Integer, nullable=False, default=1)
    is_current_version = Column(Boolean, nullable=False, default=True, index=True)
    completion_session_id = Column(String(255), nullable=True, index=True)
    superseded_by_id = Column(
        GUID(),
        ForeignKey("timeline_documents.id", ondelete="SET NULL"),
        nullable=True
    )
    superseded_at = Column(DateTime, nullable=True)
    deleted_at = Column(DateTime, nullable=True, index=True)

    # Relationships
    timeline = relationship("Timeline", back_populates="documents")
    step = relationship("TimelineStep", back_populates="documents")

    def __repr__(self):
        return (
            f"<TimelineDocument(file_name='{self.file_name}', "
            f"type='{self.document_type}', version={self.document_version}, "
            f"current={self.is_current_version})>"
        )
