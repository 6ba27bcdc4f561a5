"""Payments received from students, their per-fee allocations, reversals and refunds."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import relationship

from centerdesk.core.enums import PaymentStatus
from centerdesk.db.session import Base


class Payment(Base):
    """Lump sum paid by a student. Distributed over outstanding fees oldest month first."""

    __tablename__ = "payments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    center_id = Column(Uuid, ForeignKey("tutorial_centers.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="RESTRICT"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(String(30), nullable=False)
    reference = Column(String(100), nullable=True)
    status = Column(String(20), nullable=False, default=PaymentStatus.completed.value)
    notes = Column(Text, nullable=True)
    payment_date = Column(Date, nullable=False)
    recorded_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    student = relationship("Student")


class PaymentAllocation(Base):
    """Portion of a payment applied to one fee row."""

    __tablename__ = "payment_allocations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    payment_id = Column(Uuid, ForeignKey("payments.id", ondelete="CASCADE"), nullable=False, index=True)
    fee_id = Column(Uuid, ForeignKey("student_fees.id", ondelete="RESTRICT"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)


class PaymentReversal(Base):
    """Immutable record of a reversed payment."""

    __tablename__ = "payment_reversals"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    original_payment_id = Column(Uuid, ForeignKey("payments.id", ondelete="RESTRICT"), nullable=False, unique=True)
    center_id = Column(Uuid, ForeignKey("tutorial_centers.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="RESTRICT"), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    reason = Column(Text, nullable=False)
    reversed_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reversed_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)


class Refund(Base):
    """Money paid back against a payment. Several partial refunds may share one payment."""

    __tablename__ = "refunds"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    center_id = Column(Uuid, ForeignKey("tutorial_centers.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="RESTRICT"), nullable=False, index=True)
    original_payment_id = Column(Uuid, ForeignKey("payments.id", ondelete="RESTRICT"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    reason = Column(String(30), nullable=False)
    reason_notes = Column(Text, nullable=True)
    student_status_updated = Column(Boolean, nullable=False, default=False)
    processed_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    refund_date = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
