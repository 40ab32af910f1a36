"""Property model."""
from sqlalchemy import Column, String, BigInteger, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from purchase_timeline.database import Base
from purchase_timeline.models.base import BaseModel
from purchase_timeline.models.types import GUID


class Property(Base, BaseModel):
    """
    A property a user is purchasing. At most one timeline tracks it.

    Attributes:
        user_id: Owner of the property record
        address: Street address
        city, state, zip_code: Location
        price: Listing price in cents
        deleted_at: Soft-delete marker; deleted properties are owned by nobody
    """

    __tablename__ = "properties"

    user_id = Column(
        GUID(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    address = Column(String, nullable=False)
    city = Column(String, nullable=True)
    state = Column(String(2), nullable=True)
    zip_code = Column(String(10), nullable=True)
    price = Column(BigInteger, nullable=True)
    deleted_at = Column(DateTime, nullable=True)

    # Relationships
    user = relationship("User", back_populates="properties")
    timeline = relationship("Timeline", back_populates="property", uselist=False)
