"""FIFO allocation of payments across outstanding fees."""

from datetime import date
from decimal import Decimal
from types import SimpleNamespace

from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from centerdesk.api.v1.fees.service import allocate_payment, plan_allocation
from centerdesk.core.enums import FeeStatus, FeeType
from centerdesk.core.models import Payment, PaymentAllocation, StudentFee


def fee_stub(month, due, paid="0"):
    return SimpleNamespace(fee_month=month, amount_due=Decimal(due), amount_paid=Decimal(paid))


def test_plan_allocation_oldest_month_first_regardless_of_input_order():
    march = fee_stub(date(2024, 3, 1), "500")
    january = fee_stub(date(2024, 1, 1), "500")
    february = fee_stub(date(2024, 2, 1), "500", paid="200")

    plan, remaining = plan_allocation([march, january, february], Decimal("900"))

    assert [(f.fee_month, amount) for f, amount in plan] == [
        (date(2024, 1, 1), Decimal("500")),
        (date(2024, 2, 1), Decimal("300")),
        (date(2024, 3, 1), Decimal("100")),
    ]
    assert remaining == Decimal("0")


def test_plan_allocation_leaves_credit_and_skips_settled_fees():
    settled = fee_stub(date(2024, 1, 1), "500", paid="500")
    open_fee = fee_stub(date(2024, 2, 1), "500")

    plan, remaining = plan_allocation([settled, open_fee], Decimal("650"))

    assert [f for f, _ in plan] == [open_fee]
    assert remaining == Decimal("150")


async def test_allocation_updates_fees_and_conserves_amount(db_session, student, make_fee):
    jan = await make_fee(student, date(2024, 1, 1), "500.00")
    feb = await make_fee(student, date(2024, 2, 1), "500.00")
    mar = await make_fee(student, date(2024, 3, 1), "500.00")

    result = await allocate_payment(db_session, student.center_id, student.id, Decimal("1200.00"))

    assert result.success is True
    assert [a.fee_id for a in result.allocations] == [jan.id, feb.id, mar.id]
    assert [a.amount_allocated for a in result.allocations] == [
        Decimal("500.00"),
        Decimal("500.00"),
        Decimal("200.00"),
    ]
    assert result.remaining_credit == Decimal("0")
    assert sum(a.amount_allocated for a in result.allocations) + result.remaining_credit == Decimal("1200.00")

    assert jan.status == FeeStatus.paid.value
    assert feb.status == FeeStatus.paid.value
    assert mar.status == FeeStatus.partial.value
    assert Decimal(mar.amount_paid) == Decimal("200.00")


async def test_overpayment_is_returned_as_credit(db_session, student, make_fee):
    fee = await make_fee(student, date(2024, 1, 1), "300.00", amount_paid="100.00")

    result = await allocate_payment(db_session, student.center_id, student.id, "500")

    assert result.success is True
    assert len(result.allocations) == 1
    assert result.allocations[0].amount_allocated == Decimal("200.00")
    assert result.remaining_credit == Decimal("300.00")
    assert fee.status == FeeStatus.paid.value
    assert Decimal(fee.amount_paid) == Decimal("300.00")


async def test_no_outstanding_fees_returns_full_credit(db_session, student, make_fee):
    await make_fee(student, date(2024, 1, 1), "300.00", amount_paid="300.00")

    result = await allocate_payment(db_session, student.center_id, student.id, Decimal("250.00"))

    assert result.success is True
    assert result.allocations == []
    assert result.remaining_credit == Decimal("250.00")


async def test_small_payment_makes_oldest_fee_partial(db_session, student, make_fee):
    jan = await make_fee(student, date(2024, 1, 1), "500.00")
    feb = await make_fee(student, date(2024, 2, 1), "500.00")

    await allocate_payment(db_session, student.center_id, student.id, Decimal("0.01"))

    assert jan.status == FeeStatus.partial.value
    assert Decimal(jan.amount_paid) == Decimal("0.01")
    assert feb.status == FeeStatus.unpaid.value


async def test_paid_registration_fee_marks_student(db_session, student, make_fee):
    await make_fee(student, date(2024, 1, 1), "250.00", fee_type=FeeType.registration)
    assert student.registration_fee_paid is False

    await allocate_payment(db_session, student.center_id, student.id, Decimal("250.00"))

    assert student.registration_fee_paid is True
    assert student.registration_fee_paid_date is not None


async def test_partially_paid_registration_fee_does_not_mark_student(db_session, student, make_fee):
    await make_fee(student, date(2024, 1, 1), "250.00", fee_type=FeeType.registration)

    await allocate_payment(db_session, student.center_id, student.id, Decimal("100.00"))

    assert student.registration_fee_paid is False


async def test_allocation_rows_written_for_payment(db_session, student, make_fee, current_user):
    await make_fee(student, date(2024, 1, 1), "400.00")
    await make_fee(student, date(2024, 2, 1), "400.00")
    payment = Payment(
        center_id=student.center_id,
        student_id=student.id,
        amount=Decimal("600.00"),
        payment_method="cash",
        payment_date=date(2024, 2, 10),
        recorded_by=current_user.id,
    )
    db_session.add(payment)
    await db_session.commit()

    result = await allocate_payment(
        db_session, student.center_id, student.id, Decimal("600.00"), payment.id
    )

    rows = (
        await db_session.execute(
            select(PaymentAllocation).where(PaymentAllocation.payment_id == payment.id)
        )
    ).scalars().all()
    assert result.success is True
    assert sorted(Decimal(r.amount) for r in rows) == [Decimal("200.00"), Decimal("400.00")]


async def test_fees_are_settled_by_month_not_insertion_order(db_session, student, make_fee):
    jan = await make_fee(student, date(2024, 1, 1), "500.00")
    mar = await make_fee(student, date(2024, 3, 1), "500.00")
    feb = await make_fee(student, date(2024, 2, 1), "500.00")

    result = await allocate_payment(db_session, student.center_id, student.id, Decimal("1000.00"))

    assert [a.fee_id for a in result.allocations] == [jan.id, feb.id]
    assert jan.status == FeeStatus.paid.value
    assert feb.status == FeeStatus.paid.value
    assert mar.status == FeeStatus.unpaid.value
    assert Decimal(mar.amount_paid) == Decimal("0")


async def test_failed_allocation_rolls_back_every_fee(db_session, student, make_fee, monkeypatch):
    await make_fee(student, date(2024, 1, 1), "500.00")
    await make_fee(student, date(2024, 2, 1), "500.00")
    center_id, student_id = student.center_id, student.id

    async def failing_flush(*args, **kwargs):
        raise OperationalError("UPDATE student_fees", {}, Exception("database is locked"))

    monkeypatch.setattr(db_session, "flush", failing_flush)
    result = await allocate_payment(db_session, center_id, student_id, Decimal("700.00"))
    monkeypatch.undo()

    assert result.success is False
    assert result.allocations == []
    assert result.remaining_credit == Decimal("700.00")
    assert "database is locked" in result.error

    rows = (
        await db_session.execute(
            select(StudentFee.amount_paid, StudentFee.status)
            .where(StudentFee.student_id == student_id)
            .order_by(StudentFee.fee_month)
        )
    ).all()
    assert [(Decimal(paid), fee_status) for paid, fee_status in rows] == [
        (Decimal("0"), FeeStatus.unpaid.value),
        (Decimal("0"), FeeStatus.unpaid.value),
    ]
