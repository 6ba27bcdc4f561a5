"""Students enrolled at a center. Portal access uses JWT tokens; portal_token holds the legacy UUID link."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import relationship

from centerdesk.db.session import Base


class Student(Base):
    __tablename__ = "students"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    center_id = Column(Uuid, ForeignKey("tutorial_centers.id", ondelete="CASCADE"), nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    surname = Column(String(100), nullable=False)
    # "<surname> <first_name>"
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    gender = Column(String(20), nullable=True)
    grade = Column(String(50), nullable=True)
    parent_name = Column(String(255), nullable=True)
    parent_phone = Column(String(50), nullable=True)
    parent_email = Column(String(255), nullable=True)
    address = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="active")  # active, inactive, withdrawn
    registration_fee_paid = Column(Boolean, nullable=False, default=False)
    registration_fee_paid_date = Column(DateTime(timezone=True), nullable=True)
    portal_token = Column(String(64), nullable=True, unique=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    center = relationship("Center")
