"""Recording and reversing payments through the API."""

from datetime import date
from decimal import Decimal

from sqlalchemy import select

from centerdesk.core.enums import FeeStatus, FeeType, PaymentStatus
from centerdesk.core.models import AuditLog, Payment, PaymentAllocation, PaymentReversal


async def record(client, headers, student, amount, **extra):
    payload = {"student_id": str(student.id), "amount": amount, "payment_method": "eft", **extra}
    return await client.post("/api/v1/payments", json=payload, headers=headers)


async def test_record_payment_allocates_oldest_first(client, auth_headers, db_session, student, make_fee):
    jan = await make_fee(student, date(2024, 1, 1), "500.00")
    feb = await make_fee(student, date(2024, 2, 1), "500.00")

    response = await record(client, auth_headers, student, "700.00", reference="INV-001")

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["payment"]["status"] == PaymentStatus.completed.value
    assert body["payment"]["reference"] == "INV-001"
    assert [a["fee_id"] for a in body["allocations"]] == [str(jan.id), str(feb.id)]
    assert [Decimal(a["amount_allocated"]) for a in body["allocations"]] == [Decimal("500"), Decimal("200")]
    assert Decimal(body["remaining_credit"]) == Decimal("0")

    assert jan.status == FeeStatus.paid.value
    assert feb.status == FeeStatus.partial.value

    payment_id = body["payment"]["id"]
    rows = (await db_session.execute(select(PaymentAllocation))).scalars().all()
    assert len(rows) == 2
    audit = (
        await db_session.execute(select(AuditLog).where(AuditLog.entity_id == payment_id))
    ).scalars().all()
    assert [(a.action, a.entity_type) for a in audit] == [("create", "payment")]


async def test_record_payment_overpayment_reports_credit(client, auth_headers, student, make_fee):
    await make_fee(student, date(2024, 1, 1), "300.00")

    response = await record(client, auth_headers, student, "450.00")

    assert response.status_code == 201
    assert Decimal(response.json()["remaining_credit"]) == Decimal("150.00")


async def test_record_payment_validation(client, auth_headers, student):
    response = await record(client, auth_headers, student, "0")
    assert response.status_code == 422

    response = await record(client, auth_headers, student, "10.00", payment_method="bitcoin")
    assert response.status_code == 422


async def test_record_payment_unknown_student(client, auth_headers):
    response = await client.post(
        "/api/v1/payments",
        json={
            "student_id": "0b6c5a1e-2f43-4c51-8f0d-7e6b9d3a2c10",
            "amount": "100.00",
            "payment_method": "cash",
        },
        headers=auth_headers,
    )
    assert response.status_code == 404


async def test_reverse_payment_restores_fees(client, auth_headers, db_session, student, make_fee):
    jan = await make_fee(student, date(2024, 1, 1), "500.00")
    feb = await make_fee(student, date(2024, 2, 1), "500.00", amount_paid="100.00")
    recorded = await record(client, auth_headers, student, "900.00")
    payment_id = recorded.json()["payment"]["id"]
    assert feb.status == FeeStatus.paid.value

    response = await client.post(
        f"/api/v1/payments/{payment_id}/reverse",
        json={"reason": "Bounced EFT"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Payment reversed successfully"

    assert Decimal(jan.amount_paid) == Decimal("0")
    assert jan.status == FeeStatus.unpaid.value
    assert Decimal(feb.amount_paid) == Decimal("100.00")
    assert feb.status == FeeStatus.partial.value

    payment = (
        await db_session.execute(select(Payment).where(Payment.id == recorded.json()["payment"]["id"]))
    ).scalar_one()
    assert payment.status == PaymentStatus.reversed.value
    assert "[REVERSED]" in payment.notes
    assert "Bounced EFT" in payment.notes

    reversal = (await db_session.execute(select(PaymentReversal))).scalar_one()
    assert reversal.reason == "Bounced EFT"
    assert Decimal(reversal.amount) == Decimal("900.00")


async def test_reverse_twice_is_rejected(client, auth_headers, student, make_fee):
    await make_fee(student, date(2024, 1, 1), "500.00")
    payment_id = (await record(client, auth_headers, student, "200.00")).json()["payment"]["id"]

    first = await client.post(
        f"/api/v1/payments/{payment_id}/reverse", json={"reason": "Duplicate"}, headers=auth_headers
    )
    second = await client.post(
        f"/api/v1/payments/{payment_id}/reverse", json={"reason": "Duplicate"}, headers=auth_headers
    )

    assert first.status_code == 200
    assert second.status_code == 400
    assert second.json()["detail"] == "Payment has already been reversed"


async def test_reverse_requires_reason(client, auth_headers, student, make_fee):
    await make_fee(student, date(2024, 1, 1), "500.00")
    payment_id = (await record(client, auth_headers, student, "200.00")).json()["payment"]["id"]

    response = await client.post(
        f"/api/v1/payments/{payment_id}/reverse", json={"reason": ""}, headers=auth_headers
    )
    assert response.status_code == 422


async def test_payment_detail_lists_allocations(client, auth_headers, student, make_fee):
    await make_fee(student, date(2024, 1, 1), "250.00", fee_type=FeeType.registration)
    await make_fee(student, date(2024, 2, 1), "500.00")
    payment_id = (await record(client, auth_headers, student, "400.00")).json()["payment"]["id"]

    response = await client.get(f"/api/v1/payments/{payment_id}", headers=auth_headers)

    assert response.status_code == 200
    allocations = response.json()["allocations"]
    assert [(a["fee_month"], a["fee_type"], Decimal(a["amount"])) for a in allocations] == [
        ("2024-01-01", "registration", Decimal("250")),
        ("2024-02-01", "tuition", Decimal("150")),
    ]
    assert student.registration_fee_paid is True


async def test_list_payments_filters_by_student(client, auth_headers, student, make_fee):
    await make_fee(student, date(2024, 1, 1), "500.00")
    await record(client, auth_headers, student, "100.00")
    await record(client, auth_headers, student, "50.00")

    response = await client.get(
        "/api/v1/payments", params={"student_id": str(student.id)}, headers=auth_headers
    )

    assert response.status_code == 200
    assert len(response.json()) == 2


async def test_fee_summary_after_payment(client, auth_headers, student, make_fee):
    await make_fee(student, date(2024, 1, 1), "500.00")
    await make_fee(student, date(2024, 2, 1), "500.00")
    await record(client, auth_headers, student, "600.00")

    response = await client.get(f"/api/v1/fees/student/{student.id}", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert Decimal(body["total_due"]) == Decimal("1000.00")
    assert Decimal(body["total_paid"]) == Decimal("600.00")
    assert Decimal(body["outstanding_balance"]) == Decimal("400.00")
    assert body["outstanding_display"] == "R 400.00"
    assert [f["status"] for f in body["fees"]] == ["paid", "partial"]
