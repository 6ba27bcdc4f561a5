import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret")
os.environ.setdefault("PORTAL_JWT_SECRET", "portal-test-secret-that-is-long-enough-0123")

from datetime import date
from decimal import Decimal
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from centerdesk.auth.models import User
from centerdesk.auth.schemas import CurrentUser
from centerdesk.auth.security import create_access_token
from centerdesk.core.enums import FeeStatus, FeeType, UserRole
from centerdesk.core.models import Center, Student, StudentFee
from centerdesk.db.session import Base, get_db
from centerdesk.main import app


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture()
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database per test; the same session backs the app's get_db."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.clear()
    await engine.dispose()


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture()
async def center(db_session: AsyncSession) -> Center:
    center = Center(name="Bright Minds Tutoring", subscription_tier="starter", student_limit=-1)
    db_session.add(center)
    await db_session.commit()
    return center


@pytest.fixture()
async def admin_user(db_session: AsyncSession, center: Center) -> User:
    user = User(
        center_id=center.id,
        full_name="Naledi Mokoena",
        email="naledi@brightminds.co.za",
        role=UserRole.CENTER_ADMIN.value,
    )
    db_session.add(user)
    await db_session.commit()
    return user


@pytest.fixture()
def current_user(admin_user: User) -> CurrentUser:
    return CurrentUser(
        id=admin_user.id,
        center_id=admin_user.center_id,
        role=admin_user.role,
        full_name=admin_user.full_name,
    )


@pytest.fixture()
def headers_for():
    """Bearer headers for any user."""

    def _headers_for(user: User) -> dict:
        token = create_access_token(subject={"sub": str(user.id)})
        return {"Authorization": f"Bearer {token}"}

    return _headers_for


@pytest.fixture()
def auth_headers(admin_user: User, headers_for) -> dict:
    return headers_for(admin_user)


@pytest.fixture()
async def student(db_session: AsyncSession, center: Center) -> Student:
    student = Student(
        center_id=center.id,
        first_name="Thabo",
        surname="Nkosi",
        full_name="Nkosi Thabo",
        email="thabo@example.com",
        status="active",
    )
    db_session.add(student)
    await db_session.commit()
    return student


@pytest.fixture()
def make_fee(db_session: AsyncSession):
    """Factory for fee rows: await make_fee(student, date(2024, 1, 1), "500.00", ...)."""

    async def _make_fee(
        student: Student,
        fee_month: date,
        amount_due,
        amount_paid="0",
        fee_type: FeeType = FeeType.tuition,
    ) -> StudentFee:
        due = Decimal(str(amount_due))
        paid = Decimal(str(amount_paid))
        if paid >= due:
            fee_status = FeeStatus.paid
        elif paid > 0:
            fee_status = FeeStatus.partial
        else:
            fee_status = FeeStatus.unpaid
        fee = StudentFee(
            center_id=student.center_id,
            student_id=student.id,
            fee_month=fee_month,
            fee_type=fee_type.value,
            amount_due=due,
            amount_paid=paid,
            status=fee_status.value,
            due_date=fee_month.replace(day=7),
        )
        db_session.add(fee)
        await db_session.commit()
        return fee

    return _make_fee
