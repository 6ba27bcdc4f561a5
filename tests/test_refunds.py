"""Refunds against recorded payments."""

from decimal import Decimal

from sqlalchemy import select

from centerdesk.auth.models import User
from centerdesk.core.enums import UserRole
from centerdesk.core.models import AuditLog, Refund


async def paid(client, headers, student, amount="1000.00"):
    response = await client.post(
        "/api/v1/payments",
        json={"student_id": str(student.id), "amount": amount, "payment_method": "cash"},
        headers=headers,
    )
    assert response.status_code == 201
    return response.json()["payment"]["id"]


async def refund(client, headers, payment_id, amount, reason="relocation", **extra):
    return await client.post(
        f"/api/v1/payments/{payment_id}/refunds",
        json={"amount": amount, "reason": reason, **extra},
        headers=headers,
    )


async def test_partial_refunds_are_capped_at_remaining_amount(client, auth_headers, db_session, student):
    payment_id = await paid(client, auth_headers, student)

    first = await refund(client, auth_headers, payment_id, "600.00")
    assert first.status_code == 201
    body = first.json()
    assert body["success"] is True
    assert body["message"] == "Refund processed successfully"
    assert Decimal(body["refund"]["amount"]) == Decimal("600.00")
    assert Decimal(body["remaining_refundable"]) == Decimal("400.00")

    over = await refund(client, auth_headers, payment_id, "500.00")
    assert over.status_code == 400
    assert over.json()["detail"] == "Refund amount cannot exceed R 400.00 (remaining refundable amount)"

    rest = await refund(client, auth_headers, payment_id, "400.00")
    assert rest.status_code == 201
    assert Decimal(rest.json()["remaining_refundable"]) == Decimal("0")

    amounts = (await db_session.execute(select(Refund.amount))).scalars().all()
    assert sum(Decimal(a) for a in amounts) == Decimal("1000.00")


async def test_fully_refunded_payment_is_rejected(client, auth_headers, student):
    payment_id = await paid(client, auth_headers, student, "300.00")
    assert (await refund(client, auth_headers, payment_id, "300.00")).status_code == 201

    response = await refund(client, auth_headers, payment_id, "0.01")

    assert response.status_code == 400
    assert response.json()["detail"] == "This payment has already been fully refunded"


async def test_other_reason_needs_notes(client, auth_headers, student):
    payment_id = await paid(client, auth_headers, student)

    missing = await refund(client, auth_headers, payment_id, "100.00", reason="other", reason_notes="  ")
    given = await refund(client, auth_headers, payment_id, "100.00", reason="other", reason_notes="Moved to Durban")

    assert missing.status_code == 400
    assert missing.json()["detail"] == 'Notes are required when reason is "Other"'
    assert given.status_code == 201
    assert given.json()["refund"]["reason_notes"] == "Moved to Durban"


async def test_refund_can_withdraw_student_and_is_audited(client, auth_headers, db_session, student):
    payment_id = await paid(client, auth_headers, student)

    response = await refund(client, auth_headers, payment_id, "250.00", reason="medical", update_student_status=True)

    assert response.status_code == 201
    refund_id = response.json()["refund"]["id"]
    assert response.json()["refund"]["student_status_updated"] is True
    assert student.status == "withdrawn"

    entry = (
        await db_session.execute(select(AuditLog).where(AuditLog.entity_id == refund_id))
    ).scalar_one()
    assert entry.action == "create"
    assert entry.entity_type == "refund"
    assert entry.new_values["amount"] == "250.00"
    assert entry.new_values["original_payment_id"] == payment_id
    assert entry.new_values["student_status_updated"] is True


async def test_reversed_payment_cannot_be_refunded(client, auth_headers, student):
    payment_id = await paid(client, auth_headers, student)
    reversed_ = await client.post(
        f"/api/v1/payments/{payment_id}/reverse", json={"reason": "Bounced"}, headers=auth_headers
    )
    assert reversed_.status_code == 200

    response = await refund(client, auth_headers, payment_id, "100.00")

    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot refund a reversed payment"


async def test_refund_validation_and_unknown_payment(client, auth_headers, student):
    payment_id = await paid(client, auth_headers, student)

    assert (await refund(client, auth_headers, payment_id, "0")).status_code == 422
    assert (await refund(client, auth_headers, payment_id, "10.00", reason="bored")).status_code == 422

    unknown = await refund(client, auth_headers, "5f1c6a3e-8d3b-4b4e-9a59-1f0d8b0f2a11", "10.00")
    assert unknown.status_code == 404
    assert unknown.json()["detail"] == "Payment not found"


async def test_refunds_restricted_to_center_admins(client, auth_headers, db_session, center, student, headers_for):
    payment_id = await paid(client, auth_headers, student)
    staff = User(
        center_id=center.id,
        full_name="Kagiso Molefe",
        email="kagiso@brightminds.co.za",
        role=UserRole.ADMIN.value,
    )
    db_session.add(staff)
    await db_session.commit()

    response = await refund(client, headers_for(staff), payment_id, "100.00")

    assert response.status_code == 403


async def test_list_refunds_for_payment_and_center(client, auth_headers, student):
    first_payment = await paid(client, auth_headers, student)
    second_payment = await paid(client, auth_headers, student, "500.00")
    await refund(client, auth_headers, first_payment, "100.00")
    await refund(client, auth_headers, first_payment, "50.00")
    await refund(client, auth_headers, second_payment, "20.00")

    per_payment = await client.get(f"/api/v1/payments/{first_payment}/refunds", headers=auth_headers)
    assert per_payment.status_code == 200
    assert sorted(Decimal(r["amount"]) for r in per_payment.json()) == [Decimal("50.00"), Decimal("100.00")]

    page = await client.get(
        "/api/v1/payments/refunds",
        params={"student_id": str(student.id), "limit": 2},
        headers=auth_headers,
    )
    assert page.status_code == 200
    body = page.json()
    assert body["total"] == 3
    assert body["page"] == 1
    assert body["total_pages"] == 2
    assert len(body["data"]) == 2
