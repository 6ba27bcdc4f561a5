"""
Center-to-center referrals. Each center owns one referral code; a referral row is
created when a prospective center signs up with that code.
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import relationship

from centerdesk.core.enums import ReferralStatus
from centerdesk.db.session import Base


class ReferralCode(Base):
    __tablename__ = "referral_codes"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    center_id = Column(Uuid, ForeignKey("tutorial_centers.id", ondelete="CASCADE"), nullable=False, unique=True)
    code = Column(String(20), nullable=False, unique=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    total_referrals = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    center = relationship("Center")


class Referral(Base):
    """One row per referred email. referred_center_id is set once the referred center signs up."""

    __tablename__ = "referrals"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    referral_code_id = Column(Uuid, ForeignKey("referral_codes.id", ondelete="CASCADE"), nullable=False)
    referrer_center_id = Column(Uuid, ForeignKey("tutorial_centers.id", ondelete="CASCADE"), nullable=False, index=True)
    referred_email = Column(String(255), nullable=False, unique=True)
    referred_center_id = Column(Uuid, ForeignKey("tutorial_centers.id", ondelete="SET NULL"), nullable=True)
    status = Column(String(20), nullable=False, default=ReferralStatus.pending.value)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
