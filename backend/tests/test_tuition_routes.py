"""
Tests for tuition posts: public browsing, student ownership and admin moderation.
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from etuition.models.enums import Role, TuitionStatus

STUDENT = "student@example.com"


def minutes_ago(minutes: int) -> datetime:
    return datetime.now(timezone.utc) - timedelta(minutes=minutes)


@pytest.fixture
def student(auth_headers):
    return auth_headers(STUDENT, Role.STUDENT)


@pytest.fixture
def admin(auth_headers):
    return auth_headers("admin@example.com", Role.ADMIN)


class TestAddTuition:

    @pytest.mark.asyncio
    async def test_new_post_starts_pending(self, client, student, admin):
        response = await client.post(
            "/add-tuition",
            json={
                "studentEmail": STUDENT,
                "subject": "Physics",
                "class": 9,
                "location": "Chittagong",
                "budget": 4000,
                "status": "Approved",
            },
            headers=student,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["acknowledged"] is True

        stored = (await client.get("/tuitions", headers=admin)).json()
        assert len(stored) == 1
        assert stored[0]["id"] == body["insertedId"]
        assert stored[0]["status"] == "Pending"
        assert stored[0]["class"] == "9"
        assert stored[0]["createdAt"]

    @pytest.mark.asyncio
    async def test_email_taken_from_token_when_omitted(self, client, student, admin):
        await client.post("/add-tuition", json={"subject": "Chemistry", "class": "8", "budget": 100}, headers=student)

        stored = (await client.get("/tuitions", headers=admin)).json()
        assert stored[0]["studentEmail"] == STUDENT

    @pytest.mark.asyncio
    async def test_posting_for_someone_else_forbidden(self, client, student):
        response = await client.post(
            "/add-tuition",
            json={"studentEmail": "other@example.com", "subject": "Physics", "class": "9", "budget": 1},
            headers=student,
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_tutor_cannot_post(self, client, auth_headers):
        response = await client.post(
            "/add-tuition",
            json={"subject": "Physics", "class": "9", "budget": 1},
            headers=auth_headers("tutor@example.com", Role.TUTOR),
        )

        assert response.status_code == 403


class TestPublicListing:

    @pytest.mark.asyncio
    async def test_class_filter_with_budget_sort(self, client, create_tuition):
        for budget in (300, 100, 200):
            await create_tuition(tuition_class="10", budget=budget)
        await create_tuition(tuition_class="9", budget=50)
        await create_tuition(tuition_class="10", budget=10, status=TuitionStatus.PENDING)

        response = await client.get("/all-tuitions?class=10&sort=budget-asc&page=1&limit=8")

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 3
        assert body["page"] == 1
        assert body["limit"] == 8
        assert [t["budget"] for t in body["data"]] == [100, 200, 300]
        assert all(t["status"] == "Approved" for t in body["data"])

    @pytest.mark.asyncio
    async def test_search_matches_subject_or_location(self, client, create_tuition):
        await create_tuition(subject="English", location="Sylhet")
        await create_tuition(subject="Mathematics", location="Dhaka")
        await create_tuition(subject="Biology", location="Dhaka Cantonment")

        body = (await client.get("/all-tuitions", params={"search": "dhaka"})).json()

        assert body["total"] == 2
        assert {t["subject"] for t in body["data"]} == {"Mathematics", "Biology"}

    @pytest.mark.asyncio
    async def test_search_wildcards_are_literal(self, client, create_tuition):
        await create_tuition(subject="Mathematics")

        body = (await client.get("/all-tuitions", params={"search": "%"})).json()

        assert body["total"] == 0

    @pytest.mark.asyncio
    async def test_pagination_reports_full_total(self, client, create_tuition):
        for i in range(5):
            await create_tuition(created_at=minutes_ago(i))

        first = (await client.get("/all-tuitions?page=1&limit=2")).json()
        third = (await client.get("/all-tuitions?page=3&limit=2")).json()

        assert first["total"] == 5
        assert len(first["data"]) == 2
        assert len(third["data"]) == 1
        # newest first by default
        assert first["data"][0]["createdAt"] > first["data"][1]["createdAt"]

    @pytest.mark.asyncio
    async def test_invalid_page_rejected(self, client):
        response = await client.get("/all-tuitions?page=0")
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_latest_tuitions_only_approved(self, client, create_tuition):
        for i in range(5):
            await create_tuition(created_at=minutes_ago(i))
        await create_tuition(status=TuitionStatus.REJECTED)

        latest = (await client.get("/latest-tuitions")).json()

        assert len(latest) == 4
        assert all(t["status"] == "Approved" for t in latest)

    @pytest.mark.asyncio
    async def test_filters_are_distinct(self, client, create_tuition):
        await create_tuition(tuition_class="10", subject="Physics", location="Dhaka")
        await create_tuition(tuition_class="10", subject="Chemistry", location="Dhaka")
        await create_tuition(tuition_class="12", subject="Secret", status=TuitionStatus.PENDING)

        body = (await client.get("/tuition-filters")).json()

        assert body == {"classes": ["10"], "subjects": ["Chemistry", "Physics"], "locations": ["Dhaka"]}

    @pytest.mark.asyncio
    async def test_single_post(self, client, create_tuition):
        tuition = await create_tuition(subject="History")

        response = await client.get(f"/tuition/{tuition.id}")

        assert response.status_code == 200
        assert response.json()["subject"] == "History"

    @pytest.mark.asyncio
    async def test_missing_post_not_found(self, client):
        response = await client.get(f"/tuition/{uuid.uuid4()}")

        assert response.status_code == 404


class TestStudentOwnership:

    @pytest.mark.asyncio
    async def test_my_tuitions_self_only(self, client, student, create_tuition):
        await create_tuition(student_email=STUDENT)
        await create_tuition(student_email=STUDENT, status=TuitionStatus.PENDING)
        await create_tuition(student_email="other@example.com")

        mine = await client.get("/my-tuitions", params={"email": STUDENT}, headers=student)
        theirs = await client.get("/my-tuitions", params={"email": "other@example.com"}, headers=student)

        assert mine.status_code == 200
        assert len(mine.json()) == 1
        assert theirs.status_code == 403

    @pytest.mark.asyncio
    async def test_owner_edit_never_touches_status(self, client, student, admin, create_tuition):
        tuition = await create_tuition(student_email=STUDENT, status=TuitionStatus.PENDING)

        response = await client.patch(
            f"/tuition/{tuition.id}",
            json={"budget": 9000, "status": "Approved"},
            headers=student,
        )

        assert response.json() == {"acknowledged": True, "matchedCount": 1, "modifiedCount": 1}
        stored = (await client.get(f"/tuition/{tuition.id}")).json()
        assert stored["budget"] == 9000
        assert stored["status"] == "Pending"

    @pytest.mark.asyncio
    async def test_foreign_post_matches_nothing(self, client, student, create_tuition):
        tuition = await create_tuition(student_email="other@example.com", budget=100)

        updated = await client.patch(f"/tuition/{tuition.id}", json={"budget": 1}, headers=student)
        deleted = await client.delete(f"/tuition/{tuition.id}", headers=student)

        assert updated.json() == {"acknowledged": True, "matchedCount": 0, "modifiedCount": 0}
        assert deleted.json() == {"acknowledged": True, "deletedCount": 0}
        assert (await client.get(f"/tuition/{tuition.id}")).json()["budget"] == 100

    @pytest.mark.asyncio
    async def test_owner_delete(self, client, student, create_tuition):
        tuition = await create_tuition(student_email=STUDENT)

        response = await client.delete(f"/tuition/{tuition.id}", headers=student)

        assert response.json() == {"acknowledged": True, "deletedCount": 1}
        assert (await client.get(f"/tuition/{tuition.id}")).status_code == 404

    @pytest.mark.asyncio
    async def test_student_stats(self, client, student, create_tuition):
        await create_tuition(student_email=STUDENT)
        await create_tuition(student_email=STUDENT)
        await create_tuition(student_email=STUDENT, status=TuitionStatus.PENDING)
        await create_tuition(student_email=STUDENT, status=TuitionStatus.REJECTED)

        response = await client.get(f"/student/stats/{STUDENT}", headers=student)

        assert response.json() == {"totalPosts": 4, "approved": 2, "pending": 1, "rejected": 1}


class TestModeration:

    @pytest.mark.asyncio
    async def test_admin_approves(self, client, admin, create_tuition):
        tuition = await create_tuition(status=TuitionStatus.PENDING)

        response = await client.patch(f"/tuitions/{tuition.id}", json={"status": "Approved"}, headers=admin)

        assert response.json()["modifiedCount"] == 1
        listing = (await client.get("/all-tuitions")).json()
        assert [t["id"] for t in listing["data"]] == [str(tuition.id)]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [{"status": "Published"}, {}, {"status": 5}, {"status": None}])
    async def test_invalid_status_rejected(self, client, admin, create_tuition, body):
        tuition = await create_tuition(status=TuitionStatus.PENDING)

        response = await client.patch(f"/tuitions/{tuition.id}", json=body, headers=admin)

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid status value"

    @pytest.mark.asyncio
    async def test_student_cannot_moderate(self, client, student, create_tuition):
        tuition = await create_tuition(student_email=STUDENT, status=TuitionStatus.PENDING)

        response = await client.patch(f"/tuitions/{tuition.id}", json={"status": "Approved"}, headers=student)

        assert response.status_code == 403
