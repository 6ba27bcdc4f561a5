"""Tutorial center: the tenant in the multi-tenant platform."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String, Uuid
from sqlalchemy.orm import relationship

from centerdesk.db.session import Base


class Center(Base):
    """
    A single school / tutorial-center account.

    - student_limit: maximum active students on the current plan; -1 means unlimited.
    - referral_free_months: free subscription months earned through referrals.
    """

    __tablename__ = "tutorial_centers"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False, default="active")
    subscription_tier = Column(String(50), nullable=False, default="starter")
    student_limit = Column(Integer, nullable=False, default=-1)
    referral_free_months = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    users = relationship("User", back_populates="center")
