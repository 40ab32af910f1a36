"""User model."""
from sqlalchemy import Column, String, Boolean
from sqlalchemy.orm import relationship

from purchase_timeline.database import Base
from purchase_timeline.models.base import BaseModel


class User(Base, BaseModel):
    """
    User model representing a buyer who tracks property purchases.

    Identity is established upstream; the core only relies on the id.

    Attributes:
        email: Unique email address
        full_name: User's full name
        is_active: Whether the user account is active
    """

    __tablename__ = "users"

    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    properties = relationship(
        "Property",
        back_populates="user",
        cascade="all, delete-orphan"
    )
    timelines = relationship(
        "Timeline",
        back_populates="user",
        cascade="all, delete-orphan"
    )
