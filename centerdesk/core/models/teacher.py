import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import relationship

from centerdesk.db.session import Base


class Teacher(Base):
    """Teacher at a center. Reaches the teacher portal through a portal token, not a user account."""

    __tablename__ = "teachers"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    center_id = Column(Uuid, ForeignKey("tutorial_centers.id", ondelete="CASCADE"), nullable=False, index=True)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    specialization = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default="active")
    portal_token = Column(String(64), nullable=True, unique=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    center = relationship("Center")
