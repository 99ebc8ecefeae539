"""
Tests for tutor applications: de-duplicated applying, tutor ownership and
the student's applicant view.
"""

import uuid
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select

from etuition.models import Application, ApplicationStatus, Role, TuitionStatus
from etuition.services.application_service import application_service

TUTOR = "tutor@example.com"


@pytest.fixture
def tutor(auth_headers):
    return auth_headers(TUTOR, Role.TUTOR)


def apply_body(tuition_id, **overrides) -> dict:
    body = {
        "tuitionId": str(tuition_id),
        "tutorEmail": TUTOR,
        "tutorName": "Tutor One",
        "qualifications": "MSc Physics",
        "experience": "5 years",
        "expectedSalary": 60,
    }
    body.update(overrides)
    return body


async def count_applications(session_factory) -> int:
    async with session_factory() as session:
        result = await session.execute(select(func.count(Application.id)))
        return result.scalar()


class TestApply:

    @pytest.mark.asyncio
    async def test_first_application_succeeds(self, client, create_tuition):
        tuition = await create_tuition()

        response = await client.post("/apply-tuition", json=apply_body(tuition.id))

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["insertedId"]

    @pytest.mark.asyncio
    async def test_duplicate_is_soft_failure(self, client, create_tuition, session_factory):
        tuition = await create_tuition()

        await client.post("/apply-tuition", json=apply_body(tuition.id))
        again = await client.post("/apply-tuition", json=apply_body(tuition.id, tutorEmail="TUTOR@example.com"))

        assert again.status_code == 200
        assert again.json() == {
            "success": False,
            "message": "You have already applied for this tuition.",
            "insertedId": None,
        }
        assert await count_applications(session_factory) == 1

    @pytest.mark.asyncio
    async def test_concurrent_duplicate_is_soft_failure(
        self, client, create_tuition, create_application, session_factory
    ):
        tuition = await create_tuition()
        await create_application(tuition, tutor_email=TUTOR)

        # The other request inserted its row after this one checked
        with patch.object(application_service, "_has_applied", AsyncMock(return_value=False)):
            response = await client.post("/apply-tuition", json=apply_body(tuition.id))

        assert response.status_code == 200
        assert response.json() == {
            "success": False,
            "message": "You have already applied for this tuition.",
            "insertedId": None,
        }
        assert await count_applications(session_factory) == 1

    @pytest.mark.asyncio
    async def test_other_tutor_may_apply(self, client, create_tuition, session_factory):
        tuition = await create_tuition()

        await client.post("/apply-tuition", json=apply_body(tuition.id))
        other = await client.post("/apply-tuition", json=apply_body(tuition.id, tutorEmail="second@example.com"))

        assert other.json()["success"] is True
        assert await count_applications(session_factory) == 2

    @pytest.mark.asyncio
    async def test_missing_tuition_not_found(self, client):
        response = await client.post("/apply-tuition", json=apply_body(uuid.uuid4()))

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_non_positive_salary_rejected(self, client, create_tuition):
        tuition = await create_tuition()

        response = await client.post("/apply-tuition", json=apply_body(tuition.id, expectedSalary=0))

        assert response.status_code == 422


class TestTutorOwnership:

    @pytest.mark.asyncio
    async def test_edit_pending_application(self, client, tutor, create_tuition, create_application):
        application = await create_application(await create_tuition(), tutor_email=TUTOR)

        response = await client.patch(
            f"/applications/{application.id}",
            json={"expectedSalary": 75, "experience": "6 years"},
            headers=tutor,
        )

        assert response.json() == {"acknowledged": True, "matchedCount": 1, "modifiedCount": 1}
        mine = (await client.get(f"/my-applications/tutor/{TUTOR}", headers=tutor)).json()
        assert mine[0]["expectedSalary"] == 75
        assert mine[0]["experience"] == "6 years"

    @pytest.mark.asyncio
    async def test_approved_application_is_frozen(self, client, tutor, create_tuition, create_application):
        application = await create_application(
            await create_tuition(),
            tutor_email=TUTOR,
            status=ApplicationStatus.APPROVED,
            transaction_id="pi_test_1",
        )

        updated = await client.patch(f"/applications/{application.id}", json={"expectedSalary": 1}, headers=tutor)
        deleted = await client.delete(f"/applications/{application.id}", headers=tutor)

        assert updated.json()["matchedCount"] == 0
        assert deleted.json()["deletedCount"] == 0

    @pytest.mark.asyncio
    async def test_other_tutors_application_untouched(self, client, tutor, create_tuition, create_application):
        application = await create_application(await create_tuition(), tutor_email="someone@example.com")

        updated = await client.patch(f"/applications/{application.id}", json={"expectedSalary": 1}, headers=tutor)
        deleted = await client.delete(f"/applications/{application.id}", headers=tutor)

        assert updated.json()["matchedCount"] == 0
        assert deleted.json()["deletedCount"] == 0

    @pytest.mark.asyncio
    async def test_withdraw_pending_application(self, client, tutor, create_tuition, create_application, session_factory):
        application = await create_application(await create_tuition(), tutor_email=TUTOR)

        response = await client.delete(f"/applications/{application.id}", headers=tutor)

        assert response.json() == {"acknowledged": True, "deletedCount": 1}
        assert await count_applications(session_factory) == 0

    @pytest.mark.asyncio
    async def test_my_applications_self_only(self, client, tutor):
        response = await client.get("/my-applications/tutor/someone@example.com", headers=tutor)

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_ongoing_and_stats(self, client, tutor, create_tuition, create_application):
        await create_application(await create_tuition(), tutor_email=TUTOR, status=ApplicationStatus.APPROVED)
        await create_application(await create_tuition(), tutor_email=TUTOR)
        await create_application(await create_tuition(), tutor_email=TUTOR)

        ongoing = (await client.get(f"/tuitions/ongoing/{TUTOR}", headers=tutor)).json()
        stats = (await client.get(f"/tutor/stats/{TUTOR}", headers=tutor)).json()

        assert len(ongoing) == 1
        assert ongoing[0]["status"] == "Approved"
        assert stats == {
            "totalApplications": 3,
            "approvedApplications": 1,
            "pendingApplications": 2,
            "rejectedApplications": 0,
        }


class TestStudentApplicantView:

    @pytest.mark.asyncio
    async def test_applications_joined_with_post(self, client, auth_headers, create_tuition, create_application):
        student = "student@example.com"
        approved = await create_tuition(student_email=student, subject="Physics")
        pending = await create_tuition(student_email=student, status=TuitionStatus.PENDING)
        foreign = await create_tuition(student_email="other@example.com")
        await create_application(approved)
        await create_application(pending)
        await create_application(foreign)

        response = await client.get(
            f"/applications/student/{student}",
            headers=auth_headers(student, Role.STUDENT),
        )

        assert response.status_code == 200
        body = response.json()
        assert len(body) == 1
        assert body[0]["tuitionId"] == str(approved.id)
        assert body[0]["tuitionInfo"]["subject"] == "Physics"
        assert body[0]["tuitionInfo"]["class"] == "10"

    @pytest.mark.asyncio
    async def test_tutor_token_forbidden(self, client, tutor):
        response = await client.get("/applications/student/student@example.com", headers=tutor)

        assert response.status_code == 403
