"""Enumerations shared by the timeline models."""
import enum


class TimelineStatus(str, enum.Enum):
    """Lifecycle of a timeline. CANCELLED is the soft-delete state."""
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class StepStatus(str, enum.Enum):
    """Progression state of a timeline step."""
    UPCOMING = "UPCOMING"
    CURRENT = "CURRENT"
    COMPLETED = "COMPLETED"


class StepCategory(str, enum.Enum):
    LEGAL = "LEGAL"
    FINANCING = "FINANCING"
    INSPECTION = "INSPECTION"
    PAPERWORK = "PAPERWORK"
    COMMUNICATION = "COMMUNICATION"
    CLOSING = "CLOSING"


class StepPriority(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class DocumentType(str, enum.Enum):
    """Classification key used to chain document versions per step."""
    CONTRACT = "CONTRACT"
    FINANCIAL = "FINANCIAL"
    INSPECTION = "INSPECTION"
    APPRAISAL = "APPRAISAL"
    INSURANCE = "INSURANCE"
    TITLE = "TITLE"
    MORTGAGE = "MORTGAGE"
    CLOSING = "CLOSING"
    CORRESPONDENCE = "CORRESPONDENCE"
    RECEIPT = "RECEIPT"
    OTHER = "OTHER"


class TeamMemberRole(str, enum.Enum):
    BUYER_AGENT = "BUYER_AGENT"
    SELLER_AGENT = "SELLER_AGENT"
    LENDER = "LENDER"
    LOAN_OFFICER = "LOAN_OFFICER"
    INSPECTOR = "INSPECTOR"
    APPRAISER = "APPRAISER"
    ATTORNEY = "ATTORNEY"
    TITLE_COMPANY = "TITLE_COMPANY"
    INSURANCE_AGENT = "INSURANCE_AGENT"
    CONTRACTOR = "CONTRACTOR"
    ESCROW_OFFICER = "ESCROW_OFFICER"
    OTHER = "OTHER"


class ContactMethod(str, enum.Enum):
    EMAIL = "EMAIL"
    PHONE = "PHONE"
    TEXT = "TEXT"
    BOTH = "BOTH"


class NoteType(str, enum.Enum):
    GENERAL = "GENERAL"
    MILESTONE = "MILESTONE"
    ISSUE = "ISSUE"
    DECISION = "DECISION"
    REMINDER = "REMINDER"


class CommentType(str, enum.Enum):
    UPDATE = "UPDATE"
    QUESTION = "QUESTION"
    ISSUE = "ISSUE"
    RESOLUTION = "RESOLUTION"
    REMINDER = "REMINDER"
