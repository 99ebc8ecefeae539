"""
Tests for checkout creation, payment reconciliation and the payment reports.

The hosted checkout provider is the in-memory FakePaymentGateway from
conftest.py; `fake_gateway.mark_paid()` plays the student finishing payment.
"""

import dataclasses
import uuid
from decimal import Decimal
from unittest.mock import patch

import pytest
import pytest_asyncio
from sqlalchemy import func, select

from etuition.database import session_scope

from etuition.models import Application, ApplicationStatus, Payment, Role
from etuition.services.payment_service import payment_service

STUDENT = "student@example.com"
TUTOR = "tutor@example.com"


@pytest_asyncio.fixture
async def application(create_tuition, create_application):
    tuition = await create_tuition(student_email=STUDENT, subject="Mathematics", tuition_class="10")
    return await create_application(tuition, tutor_email=TUTOR, expected_salary=50)


def checkout_body(application, **overrides) -> dict:
    body = {
        "applicationId": str(application.id),
        "tuitionId": str(application.tuition_id),
        "expectedSalary": application.expected_salary,
        "tutorEmail": application.tutor_email,
        "tutorName": "Tutor One",
        "studentEmail": STUDENT,
        "subject": "Mathematics",
        "tuitionClass": "10",
    }
    body.update(overrides)
    return body


async def start_paid_checkout(client, fake_gateway, application) -> str:
    response = await client.post("/payment-checkout-session", json=checkout_body(application))
    session_id = response.json()["url"].rsplit("/", 1)[-1]
    fake_gateway.mark_paid(session_id)
    return session_id


async def count_payments(session_factory) -> int:
    async with session_factory() as session:
        result = await session.execute(select(func.count(Payment.id)))
        return result.scalar()


async def load_application(session_factory, application_id) -> Application:
    async with session_factory() as session:
        return await session.get(Application, application_id)


class TestCheckout:

    @pytest.mark.asyncio
    async def test_amount_is_salary_in_minor_units(self, client, fake_gateway, application, session_factory):
        response = await client.post("/payment-checkout-session", json=checkout_body(application))

        assert response.status_code == 200
        assert response.json() == {"url": "https://checkout.test/pay/cs_test_1"}

        created = fake_gateway.created[0]
        assert created["line_item"].unit_amount == 5000
        assert created["line_item"].name == "Tuition: Mathematics | Class : 10"
        assert created["line_item"].description == f"Tutor: Tutor One | Email: {TUTOR}"
        assert created["currency"] == "usd"
        assert created["customer_email"] == STUDENT
        assert created["metadata"] == {
            "applicationId": str(application.id),
            "tuitionId": str(application.tuition_id),
            "tutorEmail": TUTOR,
        }
        assert "session_id={CHECKOUT_SESSION_ID}" in created["success_url"]

    @pytest.mark.asyncio
    async def test_checkout_writes_nothing(self, client, application, session_factory):
        await client.post("/payment-checkout-session", json=checkout_body(application))

        assert await count_payments(session_factory) == 0
        stored = await load_application(session_factory, application.id)
        assert stored.status == ApplicationStatus.PENDING

    @pytest.mark.asyncio
    async def test_amount_must_match_expected_salary(self, client, fake_gateway, application):
        response = await client.post("/payment-checkout-session", json=checkout_body(application, expectedSalary=1))

        assert response.status_code == 400
        assert fake_gateway.created == []

    @pytest.mark.asyncio
    async def test_tutor_must_match_application(self, client, fake_gateway, application):
        response = await client.post(
            "/payment-checkout-session",
            json=checkout_body(application, tutorEmail="mallory@example.com"),
        )

        assert response.status_code == 400
        assert response.json()["details"] == {"field": "tutorEmail"}
        assert fake_gateway.created == []

    @pytest.mark.asyncio
    async def test_class_key_accepted(self, client, fake_gateway, application):
        body = checkout_body(application)
        body["class"] = body.pop("tuitionClass")

        response = await client.post("/payment-checkout-session", json=body)

        assert response.status_code == 200
        assert fake_gateway.created[0]["line_item"].name == "Tuition: Mathematics | Class : 10"

    @pytest.mark.asyncio
    async def test_tuition_must_match_application(self, client, application):
        response = await client.post(
            "/payment-checkout-session",
            json=checkout_body(application, tuitionId=str(uuid.uuid4())),
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_missing_application_not_found(self, client, application):
        response = await client.post(
            "/payment-checkout-session",
            json=checkout_body(application, applicationId=str(uuid.uuid4())),
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_approved_application_conflict(self, client, create_tuition, create_application):
        paid = await create_application(
            await create_tuition(),
            status=ApplicationStatus.APPROVED,
            transaction_id="pi_old",
        )

        response = await client.post("/payment-checkout-session", json=checkout_body(paid))

        assert response.status_code == 409


class TestReconcile:

    @pytest.mark.asyncio
    async def test_unpaid_session_writes_nothing(self, client, fake_gateway, application, session_factory):
        await client.post("/payment-checkout-session", json=checkout_body(application))

        response = await client.patch("/payment-success", params={"session_id": "cs_test_1"})

        assert response.status_code == 200
        assert response.json() == {"success": False}
        assert await count_payments(session_factory) == 0
        assert (await load_application(session_factory, application.id)).status == ApplicationStatus.PENDING

    @pytest.mark.asyncio
    async def test_paid_session_approves_application(self, client, fake_gateway, application, session_factory):
        session_id = await start_paid_checkout(client, fake_gateway, application)

        response = await client.patch("/payment-success", params={"session_id": session_id})

        assert response.status_code == 200
        body = response.json()
        assert body["sessionId"] == session_id
        assert body["amount"] == 50
        assert body["currency"] == "usd"
        assert body["transactionId"] == "pi_test_123"
        assert body["paymentStatus"] == "paid"
        assert body["studentEmail"] == STUDENT
        assert body["tutorEmail"] == TUTOR
        assert body["subject"] == "Mathematics"
        assert body["class"] == "10"

        stored = await load_application(session_factory, application.id)
        assert stored.status == ApplicationStatus.APPROVED
        assert stored.transaction_id == "pi_test_123"

    @pytest.mark.asyncio
    async def test_replay_is_idempotent(self, client, fake_gateway, application, session_factory):
        session_id = await start_paid_checkout(client, fake_gateway, application)

        first = await client.patch("/payment-success", params={"session_id": session_id})
        second = await client.patch("/payment-success", params={"session_id": session_id})

        assert second.status_code == 200
        assert second.json() == first.json()
        assert await count_payments(session_factory) == 1

    @pytest.mark.asyncio
    async def test_payment_credited_to_applicant(self, client, fake_gateway, application):
        session_id = await start_paid_checkout(client, fake_gateway, application)
        stored_session = fake_gateway.sessions[session_id]
        fake_gateway.sessions[session_id] = dataclasses.replace(
            stored_session,
            metadata={**stored_session.metadata, "tutorEmail": "mallory@example.com"},
        )

        response = await client.patch("/payment-success", params={"session_id": session_id})

        assert response.json()["tutorEmail"] == TUTOR

    @pytest.mark.asyncio
    async def test_concurrent_reconcile_returns_stored_payment(
        self, client, fake_gateway, application, session_factory
    ):
        session_id = await start_paid_checkout(client, fake_gateway, application)
        async with session_scope(session_factory) as session:
            winner = Payment(
                session_id=session_id,
                application_id=application.id,
                tuition_id=application.tuition_id,
                student_email=STUDENT,
                tutor_email=TUTOR,
                amount=Decimal("50.00"),
                currency="usd",
                transaction_id="pi_test_123",
                payment_status="paid",
            )
            session.add(winner)

        # The other request commits after this one's lookup came back empty
        real_lookup = payment_service._find_by_session
        lookups = []

        async def miss_first(db, sid):
            lookups.append(sid)
            return None if len(lookups) == 1 else await real_lookup(db, sid)

        with patch.object(payment_service, "_find_by_session", miss_first):
            response = await client.patch("/payment-success", params={"session_id": session_id})

        assert response.status_code == 200
        assert response.json()["id"] == str(winner.id)
        assert len(lookups) == 2
        assert await count_payments(session_factory) == 1

    @pytest.mark.asyncio
    async def test_unknown_session_is_provider_error(self, client):
        response = await client.patch("/payment-success", params={"session_id": "cs_missing"})

        assert response.status_code == 502
        assert response.json()["error"] == "payment_provider_error"

    @pytest.mark.asyncio
    async def test_session_id_required(self, client):
        response = await client.patch("/payment-success")

        assert response.status_code == 422


class TestPaymentReports:

    @pytest.mark.asyncio
    async def test_histories_and_admin_report(self, client, fake_gateway, application, auth_headers):
        session_id = await start_paid_checkout(client, fake_gateway, application)
        await client.patch("/payment-success", params={"session_id": session_id})

        history = await client.get(f"/payments/{STUDENT}", headers=auth_headers(STUDENT, Role.STUDENT))
        revenue = await client.get(f"/revenue/{TUTOR}", headers=auth_headers(TUTOR, Role.TUTOR))
        report = await client.get("/admin/reports", headers=auth_headers("admin@example.com", Role.ADMIN))

        assert [p["sessionId"] for p in history.json()] == [session_id]
        assert [p["sessionId"] for p in revenue.json()] == [session_id]
        assert report.json()["totalEarnings"] == 50
        assert len(report.json()["transactions"]) == 1

    @pytest.mark.asyncio
    async def test_empty_report(self, client, auth_headers):
        report = await client.get("/admin/reports", headers=auth_headers("admin@example.com", Role.ADMIN))

        assert report.json() == {"totalEarnings": 0, "transactions": []}

    @pytest.mark.asyncio
    async def test_revenue_self_only(self, client, auth_headers):
        response = await client.get("/revenue/other@example.com", headers=auth_headers(TUTOR, Role.TUTOR))

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_history_requires_student(self, client, auth_headers):
        response = await client.get(f"/payments/{TUTOR}", headers=auth_headers(TUTOR, Role.TUTOR))

        assert response.status_code == 403
