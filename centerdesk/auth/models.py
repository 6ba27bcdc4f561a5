import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from centerdesk.db.session import Base


class User(Base):
    """Staff user of a center (or a platform super admin with no center)."""

    __tablename__ = "users"
    __table_args__ = (
        # Email must be unique per center
        UniqueConstraint("center_id", "email", name="uq_user_center_email"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    # Owning center; null for platform super admins
    center_id = Column(Uuid, ForeignKey("tutorial_centers.id"), nullable=True)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    # super_admin, center_admin, admin, teacher, staff
    role = Column(String(50), nullable=False)
    status = Column(String(20), nullable=False, default="active")
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    center = relationship("Center", back_populates="users")
