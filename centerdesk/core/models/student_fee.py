"""Student fee: one row per student per billing month per fee type."""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Numeric, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from centerdesk.core.enums import FeeStatus, FeeType
from centerdesk.db.session import Base


class StudentFee(Base):
    """
    Monthly (or one-off) fee owed by a student.

    fee_month is always the first day of the billing month. Created by the fee generator,
    mutated only by payment allocation and reversal, never deleted.
    """

    __tablename__ = "student_fees"
    __table_args__ = (
        UniqueConstraint("student_id", "fee_month", "fee_type", name="uq_student_fee_month_type"),
        CheckConstraint(
            "status IN ('unpaid','partial','paid')",
            name="chk_student_fee_status",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    center_id = Column(Uuid, ForeignKey("tutorial_centers.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    fee_month = Column(Date, nullable=False)
    fee_type = Column(String(30), nullable=False, default=FeeType.tuition.value)
    amount_due = Column(Numeric(12, 2), nullable=False)
    amount_paid = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(String(20), nullable=False, default=FeeStatus.unpaid.value)
    due_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    student = relationship("Student")

    @property
    def balance(self):
        return self.amount_due - self.amount_paid
