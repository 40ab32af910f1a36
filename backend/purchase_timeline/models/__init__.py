"""
Models Package

Imports all SQLAlchemy models for application use.
"""

from purchase_timeline.models.base import BaseModel
from purchase_timeline.models.enums import (
    TimelineStatus,
    StepStatus,
    StepCategory,
    StepPriority,
    DocumentType,
    TeamMemberRole,
    ContactMethod,
    NoteType,
    CommentType,
)
from purchase_timeline.models.user import User
from purchase_timeline.models.property import Property
from purchase_timeline.models.timeline import Timeline
from purchase_timeline.models.timeline_step import TimelineStep
from purchase_timeline.models.timeline_document import TimelineDocument
from purchase_timeline.models.team_member import TeamMember
from purchase_timeline.models.timeline_note import TimelineNote
from purchase_timeline.models.step_comment import StepComment

__all__ = [
    'BaseModel',
    'TimelineStatus',
    'StepStatus',
    'StepCategory',
    'StepPriority',
    'DocumentType',
    'TeamMemberRole',
    'ContactMethod',
    'NoteType',
    'CommentType',
    'User',
    'Property',
    'Timeline',
    'TimelineStep',
    'TimelineDocument',
    'TeamMember',
    'TimelineNote',
    'StepComment',
]
