"""Pydantic input schemas for timeline operations.

Every mutating operation parses its input through one of these models
before touching the database.
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from purchase_timeline.config import settings
from purchase_timeline.models.enums import (
    CommentType,
    ContactMethod,
    DocumentType,
    NoteType,
    StepCategory,
    StepPriority,
    TeamMemberRole,
    TimelineStatus,
)

PHONE_PATTERN = r"^\+?[1-9]\d{0,15}$"
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
URL_PATTERN = r"^https?://\S+$"


class InputModel(BaseModel):
    """
    Base for input schemas.

    Unknown fields are rejected. Datetimes are stored as naive UTC, so aware
    values are converted on the way in.
    """

    model_config = ConfigDict(extra="forbid")

    @field_validator("*")
    @classmethod
    def to_naive_utc(cls, value: Any) -> Any:
        if isinstance(value, datetime) and value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value


def _reject_null(value: Any) -> Any:
    """Partial updates may omit a field but not null out a required column."""
    if value is None:
        raise ValueError("Field may be omitted but not set to null")
    return value


# ============================================================================
# TIMELINES
# ============================================================================

class StepTemplateInput(InputModel):
    """A custom step supplied at timeline creation. Costs are in dollars."""

    title: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=1, max_length=500)
    category: StepCategory
    icon: str = Field(default="Circle", min_length=1, max_length=50)
    days_from_start: int = Field(ge=0)
    estimated_duration: int = Field(gt=0)
    priority: StepPriority = StepPriority.MEDIUM
    is_required: bool = True
    estimated_cost: Optional[Decimal] = Field(default=None, ge=0)
    external_url: Optional[str] = Field(default=None, pattern=URL_PATTERN)
    dependencies: List[str] = Field(default_factory=list)


class CreateTimelineInput(InputModel):
    property_id: UUID
    title: str = Field(default="Home Purchase Timeline", min_length=1, max_length=200)
    start_date: Optional[datetime] = None
    estimated_closing_date: Optional[datetime] = None
    custom_steps: List[StepTemplateInput] = Field(default_factory=list)


class UpdateTimelineInput(InputModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    status: Optional[TimelineStatus] = None
    estimated_closing_date: Optional[datetime] = None
    actual_closing_date: Optional[datetime] = None

    @field_validator("title", "status", mode="before")
    @classmethod
    def reject_null(cls, value: Any) -> Any:
        return _reject_null(value)


# ============================================================================
# STEPS
# ============================================================================

class CreateStepInput(StepTemplateInput):
    """A step added to an existing timeline.

    Without sort_order the step is appended; with one, later steps shift down.
    """

    sort_order: Optional[int] = Field(default=None, ge=0)


class UpdateStepInput(InputModel):
    """
    Partial step update.

    Status and sort order are not writable here: completion goes through
    is_completed and ordering through reorder.
    """

    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, min_length=1, max_length=500)
    category: Optional[StepCategory] = None
    icon: Optional[str] = Field(default=None, min_length=1, max_length=50)
    notes: Optional[str] = Field(default=None, max_length=1000)
    is_completed: Optional[bool] = None
    is_early_completion: bool = False
    is_blocked: Optional[bool] = None
    block_reason: Optional[str] = Field(default=None, max_length=200)
    days_from_start: Optional[int] = Field(default=None, ge=0)
    estimated_duration: Optional[int] = Field(default=None, gt=0)
    actual_start_date: Optional[datetime] = None
    actual_end_date: Optional[datetime] = None
    estimated_cost: Optional[Decimal] = Field(default=None, ge=0)
    actual_cost: Optional[Decimal] = Field(default=None, ge=0)
    priority: Optional[StepPriority] = None
    completed_by: Optional[str] = Field(default=None, max_length=100)
    external_url: Optional[str] = Field(default=None, pattern=URL_PATTERN)
    dependencies: Optional[List[str]] = None

    @field_validator(
        "title",
        "description",
        "category",
        "icon",
        "is_blocked",
        "days_from_start",
        "estimated_duration",
        "priority",
        mode="before",
    )
    @classmethod
    def reject_null(cls, value: Any) -> Any:
        return _reject_null(value)

    @model_validator(mode="after")
    def check_consistency(self) -> "UpdateStepInput":
        if self.is_blocked and not (self.block_reason or "").strip():
            raise ValueError("Block reason is required when step is blocked")
        if (
            self.actual_start_date is not None
            and self.actual_end_date is not None
            and self.actual_end_date < self.actual_start_date
        ):
            raise ValueError("End date must not be before start date")
        return self


class StepOrderUpdate(InputModel):
    step_id: UUID
    sort_order: int = Field(ge=0)


class ReorderStepsInput(InputModel):
    step_updates: List[StepOrderUpdate] = Field(min_length=1)

    @field_validator("step_updates")
    @classmethod
    def check_batch(cls, value: List[StepOrderUpdate]) -> List[StepOrderUpdate]:
        if len(value) > settings.max_reorder_batch:
            raise ValueError(
                f"Too many steps to reorder (max {settings.max_reorder_batch})"
            )
        step_ids = [u.step_id for u in value]
        if len(set(step_ids)) != len(step_ids):
            raise ValueError("Each step may appear only once")
        orders = [u.sort_order for u in value]
        if len(set(orders)) != len(orders):
            raise ValueError("Sort orders must be unique")
        return value


# ============================================================================
# DOCUMENTS
# ============================================================================

def _check_file_size(value: int) -> int:
    if value > settings.storage.max_upload_bytes:
        raise ValueError(
            f"File size must be at most {settings.storage.max_upload_bytes} bytes"
        )
    return value


class CreateDocumentInput(InputModel):
    """Metadata of a document whose bytes are already stored."""

    step_id: Optional[UUID] = None
    file_name: str = Field(min_length=1, max_length=255)
    original_name: str = Field(min_length=1, max_length=255)
    mime_type: str = Field(min_length=1, max_length=100)
    file_size: int = Field(gt=0)
    document_type: DocumentType = DocumentType.OTHER
    description: Optional[str] = Field(default=None, max_length=500)
    storage_provider: str = Field(min_length=1, max_length=50)
    storage_key: str = Field(min_length=1, max_length=500)
    download_url: str = Field(min_length=1)
    thumbnail_url: Optional[str] = None
    completion_session_id: Optional[str] = Field(default=None, min_length=1, max_length=255)

    @field_validator("file_size")
    @classmethod
    def check_file_size(cls, value: int) -> int:
        return _check_file_size(value)


class UploadDocumentInput(InputModel):
    """Metadata accompanying raw bytes pushed through the storage provider."""

    step_id: Optional[UUID] = None
    original_name: str = Field(min_length=1, max_length=255)
    mime_type: str = Field(min_length=1, max_length=100)
    document_type: DocumentType = DocumentType.OTHER
    description: Optional[str] = Field(default=None, max_length=500)
    completion_session_id: Optional[str] = Field(default=None, min_length=1, max_length=255)


# ============================================================================
# TEAM MEMBERS
# ============================================================================

class AddTeamMemberInput(InputModel):
    name: str = Field(min_length=1, max_length=100)
    role: TeamMemberRole
    company: Optional[str] = Field(default=None, max_length=100)
    email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN)
    phone: Optional[str] = Field(default=None, pattern=PHONE_PATTERN)
    website: Optional[str] = Field(default=None, pattern=URL_PATTERN)
    license_number: Optional[str] = Field(default=None, max_length=50)
    preferred_contact: ContactMethod = ContactMethod.EMAIL
    is_primary: bool = False
    notes: Optional[str] = Field(default=None, max_length=1000)

    @model_validator(mode="after")
    def check_contact(self) -> "AddTeamMemberInput":
        if not self.email and not self.phone:
            raise ValueError("Either email or phone number is required")
        return self


class UpdateTeamMemberInput(InputModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    role: Optional[TeamMemberRole] = None
    company: Optional[str] = Field(default=None, max_length=100)
    email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN)
    phone: Optional[str] = Field(default=None, pattern=PHONE_PATTERN)
    website: Optional[str] = Field(default=None, pattern=URL_PATTERN)
    license_number: Optional[str] = Field(default=None, max_length=50)
    preferred_contact: Optional[ContactMethod] = None
    is_primary: Optional[bool] = None
    is_active: Optional[bool] = None
    notes: Optional[str] = Field(default=None, max_length=1000)
    last_contact: Optional[datetime] = None

    @field_validator(
        "name", "role", "preferred_contact", "is_primary", "is_active", mode="before"
    )
    @classmethod
    def reject_null(cls, value: Any) -> Any:
        return _reject_null(value)


# ============================================================================
# NOTES AND COMMENTS
# ============================================================================

class CreateNoteInput(InputModel):
    title: Optional[str] = Field(default=None, max_length=200)
    content: str = Field(min_length=1, max_length=5000)
    note_type: NoteType = NoteType.GENERAL
    is_important: bool = False
    is_private: bool = False


class UpdateNoteInput(InputModel):
    title: Optional[str] = Field(default=None, max_length=200)
    content: Optional[str] = Field(default=None, min_length=1, max_length=5000)
    note_type: Optional[NoteType] = None
    is_important: Optional[bool] = None
    is_private: Optional[bool] = None

    @field_validator(
        "content", "note_type", "is_important", "is_private", mode="before"
    )
    @classmethod
    def reject_null(cls, value: Any) -> Any:
        return _reject_null(value)


class AddStepCommentInput(InputModel):
    content: str = Field(min_length=1, max_length=2000)
    comment_type: CommentType = CommentType.UPDATE


class UpdateCommentInput(InputModel):
    content: str = Field(min_length=1, max_length=2000)
