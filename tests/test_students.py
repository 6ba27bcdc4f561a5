"""Student endpoints: create/update with audit entries, CSV preview and bulk import."""

from sqlalchemy import select

from centerdesk.core.enums import FeeType, UserRole
from centerdesk.auth.models import User
from centerdesk.core.models import AuditLog, Center, Student, StudentFee


async def audit_entries(db, entity_id=None):
    stmt = select(AuditLog).order_by(AuditLog.created_at)
    if entity_id is not None:
        stmt = stmt.where(AuditLog.entity_id == entity_id)
    return (await db.execute(stmt)).scalars().all()


async def test_download_template(client):
    response = await client.get("/api/v1/students/import/template")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "student_import_template.csv" in response.headers["content-disposition"]
    assert response.text.splitlines()[0].startswith("first_name,last_name,email")


async def test_preview_import(client, auth_headers):
    response = await client.post(
        "/api/v1/students/import/preview",
        json={"content": "Name,Surname,Cell\nThabo,Nkosi,082 123 4567\nLerato,,\n"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["headers"] == ["first_name", "last_name", "phone"]
    assert [s["first_name"] for s in body["data"]] == ["Thabo"]
    assert body["errors"] == [{"row": 3, "message": "Last name is required"}]


async def test_import_students_creates_rows_and_one_audit_entry(client, auth_headers, db_session, center):
    payload = {
        "students": [
            {"first_name": "Thabo", "last_name": "Nkosi", "gender": "male", "date_of_birth": "2010-05-15"},
            {"first_name": "Lerato", "last_name": "Dlamini", "email": "lerato@example.com"},
        ]
    }

    response = await client.post(
        "/api/v1/students/import",
        json=payload,
        headers={**auth_headers, "X-Forwarded-For": "196.25.1.1, 10.0.0.1", "User-Agent": "pytest"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["imported"] == 2

    students = (await db_session.execute(select(Student).order_by(Student.surname))).scalars().all()
    assert [s.full_name for s in students] == ["Dlamini Lerato", "Nkosi Thabo"]
    assert all(s.status == "active" for s in students)

    entries = await audit_entries(db_session, "bulk-import")
    assert len(entries) == 1
    assert entries[0].action == "create"
    assert entries[0].entity_type == "student"
    assert entries[0].new_values["count"] == 2
    assert entries[0].ip_address == "196.25.1.1"
    assert entries[0].user_agent == "pytest"


async def test_import_rejected_when_over_plan_limit(client, auth_headers, db_session, center, student):
    center.student_limit = 2
    await db_session.commit()

    response = await client.post(
        "/api/v1/students/import",
        json={
            "students": [
                {"first_name": "A", "last_name": "One"},
                {"first_name": "B", "last_name": "Two"},
            ]
        },
        headers=auth_headers,
    )

    assert response.status_code == 400
    assert response.json()["detail"] == (
        "Cannot import 2 students. You have 1 slots available on your starter plan."
    )
    count = len((await db_session.execute(select(Student))).scalars().all())
    assert count == 1


async def test_import_rejects_rows_that_fail_validation(client, auth_headers, db_session):
    response = await client.post(
        "/api/v1/students/import",
        json={
            "students": [
                {"first_name": "Thabo", "last_name": "Nkosi"},
                {"first_name": "Lerato", "last_name": "Dlamini", "phone": "not-a-phone", "email": "nope"},
            ]
        },
        headers=auth_headers,
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Row 2: Invalid email format; Invalid phone number format"
    assert (await db_session.execute(select(Student))).scalars().all() == []


async def test_import_requires_at_least_one_row(client, auth_headers):
    response = await client.post("/api/v1/students/import", json={"students": []}, headers=auth_headers)
    assert response.status_code == 422


async def test_import_forbidden_for_teachers(client, db_session, center, headers_for):
    teacher_user = User(
        center_id=center.id,
        full_name="Mr Botha",
        email="botha@example.com",
        role=UserRole.TEACHER.value,
    )
    db_session.add(teacher_user)
    await db_session.commit()

    response = await client.post(
        "/api/v1/students/import",
        json={"students": [{"first_name": "A", "last_name": "One"}]},
        headers=headers_for(teacher_user),
    )
    assert response.status_code == 403


async def test_create_student_with_registration_fee(client, auth_headers, db_session):
    response = await client.post(
        "/api/v1/students",
        json={
            "first_name": "Ayanda",
            "surname": "Khumalo",
            "phone": "082 123 4567",
            "registration_fee": "250.00",
        },
        headers=auth_headers,
    )

    assert response.status_code == 201
    body = response.json()
    assert body["full_name"] == "Khumalo Ayanda"
    assert body["registration_fee_paid"] is False

    fees = (await db_session.execute(select(StudentFee))).scalars().all()
    assert [(f.fee_type, str(f.amount_due)) for f in fees] == [(FeeType.registration.value, "250.00")]
    entries = await audit_entries(db_session, body["id"])
    assert [e.action for e in entries] == ["create"]


async def test_create_student_rejects_invalid_phone(client, auth_headers):
    response = await client.post(
        "/api/v1/students",
        json={"first_name": "Ayanda", "surname": "Khumalo", "parent_phone": "12345"},
        headers=auth_headers,
    )
    assert response.status_code == 400
    assert "Parent phone" in response.json()["detail"]


async def test_update_student_logs_only_changed_fields(client, auth_headers, db_session, student):
    response = await client.patch(
        f"/api/v1/students/{student.id}",
        json={"grade": "Grade 9", "first_name": "Thabo"},
        headers=auth_headers,
    )
    assert response.status_code == 200

    entries = await audit_entries(db_session, str(student.id))
    assert len(entries) == 1
    detail = await client.get(f"/api/v1/audit-logs/{entries[0].id}", headers=auth_headers)
    assert detail.json()["changes"] == [{"field": "grade", "old_value": None, "new_value": "Grade 9"}]


async def test_update_without_changes_writes_no_audit_entry(client, auth_headers, db_session, student):
    response = await client.patch(
        f"/api/v1/students/{student.id}",
        json={"first_name": "Thabo"},
        headers=auth_headers,
    )
    assert response.status_code == 200
    assert await audit_entries(db_session, str(student.id)) == []


async def test_students_are_scoped_to_center(client, auth_headers, db_session):
    other = Center(name="Elsewhere Academy")
    db_session.add(other)
    await db_session.flush()
    outsider = Student(center_id=other.id, first_name="X", surname="Y", full_name="Y X")
    db_session.add(outsider)
    await db_session.commit()

    response = await client.get(f"/api/v1/students/{outsider.id}", headers=auth_headers)
    assert response.status_code == 404

    listing = await client.get("/api/v1/students", headers=auth_headers)
    assert listing.json() == []
