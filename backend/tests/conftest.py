"""
eTuition Backend - Test Configuration (conftest.py)
===================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Every test gets a fresh in-memory SQLite database built from the ORM
       metadata, an in-memory payment gateway, and an httpx AsyncClient
       talking to a freshly created app through ASGITransport.

Fixture Hierarchy (all function-scoped):
    engine ─▶ session_factory ─▶ app ─▶ client
    fake_gateway ────────────────┘
    create_user / create_tuition / create_application: row factories
    auth_headers: Authorization header for an email + role
"""

import os

# Override settings BEFORE any etuition import: the settings singleton and the
# module-level engine are built at import time
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-secret-not-real"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_not_real"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["RATE_LIMIT_REQUESTS"] = "10000"

import dataclasses
from datetime import timedelta
from typing import Dict, List, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import etuition.models  # noqa: F401  registers tables on Base.metadata
from etuition.auth.tokens import issue_token
from etuition.database import Base, get_db_session, session_scope
from etuition.exceptions import PaymentProviderError
from etuition.models import Application, ApplicationStatus, Role, Tuition, TuitionStatus, User
from etuition.services.payment_base import CheckoutLineItem, CheckoutSession, PaymentGateway
from etuition.services.stripe_gateway import get_payment_gateway


# ══════════════════════════════════════════════════════════════════════════
# Payment Gateway Double
# ══════════════════════════════════════════════════════════════════════════

class FakePaymentGateway(PaymentGateway):
    """
    In-memory checkout provider.

    Sessions start unpaid; tests call mark_paid() to simulate the student
    completing the hosted payment page.
    """

    def __init__(self):
        self.sessions: Dict[str, CheckoutSession] = {}
        self.created: List[dict] = []
        self.status = "available"

    async def create_checkout_session(
        self,
        *,
        line_item: CheckoutLineItem,
        currency: str,
        metadata: Dict[str, str],
        customer_email: Optional[str],
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        session_id = f"cs_test_{len(self.created) + 1}"
        self.created.append(
            {
                "line_item": line_item,
                "currency": currency,
                "metadata": dict(metadata),
                "customer_email": customer_email,
                "success_url": success_url,
                "cancel_url": cancel_url,
            }
        )
        session = CheckoutSession(
            id=session_id,
            url=f"https://checkout.test/pay/{session_id}",
            amount_total=line_item.unit_amount * line_item.quantity,
            currency=currency,
            customer_email=customer_email,
            metadata=dict(metadata),
        )
        self.sessions[session_id] = session
        return session

    async def retrieve_checkout_session(self, session_id: str) -> CheckoutSession:
        if session_id not in self.sessions:
            raise PaymentProviderError(
                message="The payment provider rejected the request.",
                context={"session_id": session_id},
            )
        return self.sessions[session_id]

    async def health_check(self) -> str:
        return self.status

    def mark_paid(self, session_id: str, payment_intent: str = "pi_test_123") -> None:
        self.sessions[session_id] = dataclasses.replace(
            self.sessions[session_id],
            payment_status="paid",
            payment_intent=payment_intent,
        )


# ══════════════════════════════════════════════════════════════════════════
# Database & App Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def engine():
    """
    Fresh in-memory database per test.

    StaticPool keeps the single SQLite connection alive across sessions;
    otherwise every new connection would see an empty database.
    """
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
def fake_gateway():
    return FakePaymentGateway()


@pytest.fixture
def app(session_factory, fake_gateway):
    from etuition.main import create_app

    application = create_app()

    async def override_db_session():
        async with session_scope(session_factory) as session:
            yield session

    application.dependency_overrides[get_db_session] = override_db_session
    application.dependency_overrides[get_payment_gateway] = lambda: fake_gateway
    return application


@pytest_asyncio.fixture
async def client(app):
    """
    HTTPX AsyncClient routed straight into the ASGI app.

    Usage:
        async def test_health(client):
            response = await client.get("/health")
            assert response.status_code == 200
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client


# ══════════════════════════════════════════════════════════════════════════
# Row Factories & Auth
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def auth_headers():
    """Build an Authorization header for `email` acting as `role`."""

    def _headers(email: str, role: Role = Role.STUDENT, expires_delta: Optional[timedelta] = None) -> dict:
        token = issue_token(email, role, expires_delta=expires_delta)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def create_user(session_factory):
    async def _create(email: str, role: Role = Role.STUDENT, **fields) -> User:
        async with session_scope(session_factory) as session:
            user = User(email=email, role=role, name=fields.pop("name", email.split("@")[0]), **fields)
            session.add(user)
        return user

    return _create


@pytest.fixture
def create_tuition(session_factory):
    async def _create(
        student_email: str = "student@example.com",
        status: TuitionStatus = TuitionStatus.APPROVED,
        **fields,
    ) -> Tuition:
        values = {
            "subject": "Mathematics",
            "tuition_class": "10",
            "location": "Dhaka",
            "budget": 5000,
            "days_per_week": 3,
        }
        values.update(fields)
        async with session_scope(session_factory) as session:
            tuition = Tuition(student_email=student_email, status=status, **values)
            session.add(tuition)
        return tuition

    return _create


@pytest.fixture
def create_application(session_factory):
    async def _create(
        tuition: Tuition,
        tutor_email: str = "tutor@example.com",
        status: ApplicationStatus = ApplicationStatus.PENDING,
        **fields,
    ) -> Application:
        values = {
            "tutor_name": "Tutor One",
            "qualifications": "BSc Mathematics",
            "experience": "3 years",
            "expected_salary": 50,
        }
        values.update(fields)
        async with session_scope(session_factory) as session:
            application = Application(
                tuition_id=tuition.id,
                tutor_email=tutor_email,
                status=status,
                **values,
            )
            session.add(application)
        return application

    return _create
