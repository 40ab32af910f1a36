"""TeamMember model."""
from sqlalchemy import Column, String, Text, Boolean, DateTime, ForeignKey
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import relationship

from purchase_timeline.database import Base
from purchase_timeline.models.base import BaseModel
from purchase_timeline.models.enums import ContactMethod, TeamMemberRole
from purchase_timeline.models.types import GUID


class TeamMember(Base, BaseModel):
    """
    Professional involved in a purchase (agent, lender, inspector, ...).

    Removal is a soft deactivation. At most one active member per role is primary.
    """

    __tablename__ = "timeline_team_members"

    timeline_id = Column(
        GUID(),
        ForeignKey("timelines.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    name = Column(String(100), nullable=False)
    role = Column(SQLEnum(TeamMemberRole, name="team_member_role"), nullable=False)
    company = Column(String(100), nullable=True)
    email = Column(String, nullable=True)
    phone = Column(String(20), nullable=True)
    website = Column(String, nullable=True)
    license_number = Column(String(50), nullable=True)
    preferred_contact = Column(
        SQLEnum(ContactMethod, name="contact_method"),
        nullable=False,
        default=ContactMethod.EMAIL
    )
    is_primary = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    notes = Column(Text, nullable=True)
    last_contact = Column(DateTime, nullable=True)

    # Relationships
    timeline = relationship("Timeline", back_populates="team_members")
