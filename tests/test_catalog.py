"""Tests for terms, sessions and reference data endpoints."""

from datetime import date

import pytest
from httpx import AsyncClient

from app.models.enrollment import EnrollmentType
from app.services.checkout_service import DraftItem

pytestmark = pytest.mark.asyncio


def term_body(**overrides) -> dict:
    body = {
        "fiscal_year": 2025,
        "term_number": 2,
        "start_date": "2025-04-14",
        "end_date": "2025-06-27",
    }
    body.update(overrides)
    return body


class TestTerms:
    async def test_create_and_list(self, client: AsyncClient, admin_headers: dict):
        response = await client.post("/api/v1/terms/", json=term_body(), headers=admin_headers)
        assert response.status_code == 201
        assert response.json()["label"] == "FY2025 Term 2"

        listed = await client.get("/api/v1/terms/")
        assert [t["id"] for t in listed.json()] == [response.json()["id"]]

    async def test_duplicate_year_and_number(self, client: AsyncClient, admin_headers: dict):
        await client.post("/api/v1/terms/", json=term_body(), headers=admin_headers)
        response = await client.post(
            "/api/v1/terms/", json=term_body(start_date="2025-07-01", end_date="2025-09-01"), headers=admin_headers
        )
        assert response.status_code == 409

    async def test_dates_must_be_ordered(self, client: AsyncClient, admin_headers: dict):
        response = await client.post(
            "/api/v1/terms/", json=term_body(start_date="2025-06-27", end_date="2025-04-14"), headers=admin_headers
        )
        assert response.status_code == 422

    async def test_customers_cannot_create(self, client: AsyncClient, auth_headers: dict):
        response = await client.post("/api/v1/terms/", json=term_body(), headers=auth_headers)
        assert response.status_code == 403

    async def test_update_without_sessions(self, client: AsyncClient, admin_headers: dict):
        created = await client.post("/api/v1/terms/", json=term_body(), headers=admin_headers)
        response = await client.put(
            f"/api/v1/terms/{created.json()['id']}",
            json={"end_date": "2025-07-04"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["end_date"] == "2025-07-04"

    async def test_update_blocked_once_sessions_exist(
        self, client: AsyncClient, admin_headers: dict, test_term, monday_session
    ):
        response = await client.put(
            f"/api/v1/terms/{test_term.id}",
            json={"end_date": test_term.end_date.isoformat()},
            headers=admin_headers,
        )
        assert response.status_code == 409

        response = await client.delete(f"/api/v1/terms/{test_term.id}", headers=admin_headers)
        assert response.status_code == 409


class TestSessions:
    def session_body(self, term, venue, instructor, exercise_type, **overrides) -> dict:
        body = {
            "name": "Wednesday Balance",
            "term_id": term.id,
            "day_of_week": "wednesday",
            "start_time": "09:30:00",
            "end_time": "10:30:00",
            "fee_amount": "120.00",
            "venue_id": venue.id,
            "instructor_id": instructor.id,
            "exercise_type_id": exercise_type.id,
        }
        body.update(overrides)
        return body

    async def test_create_and_occurrences(
        self, client: AsyncClient, admin_headers: dict, test_term, test_venue, test_instructor, test_exercise_type
    ):
        response = await client.post(
            "/api/v1/sessions/",
            json=self.session_body(test_term, test_venue, test_instructor, test_exercise_type),
            headers=admin_headers,
        )
        assert response.status_code == 201
        session = response.json()

        occurrences = await client.get(f"/api/v1/sessions/{session['id']}/occurrences")
        data = occurrences.json()
        assert data["total"] == session["total_occurrences"] == len(data["occurrences"])
        assert all(date.fromisoformat(d).weekday() == 2 for d in data["occurrences"])
        assert data["occurrences"] == sorted(data["occurrences"])

    async def test_weekday_missing_from_term(
        self, client: AsyncClient, admin_headers: dict, db_session, test_venue, test_instructor, test_exercise_type
    ):
        from app.models.term import Term

        # Monday to Wednesday only
        short = Term(fiscal_year=2030, term_number=1, start_date=date(2030, 1, 7), end_date=date(2030, 1, 9))
        db_session.add(short)
        await db_session.commit()

        response = await client.post(
            "/api/v1/sessions/",
            json=self.session_body(short, test_venue, test_instructor, test_exercise_type, day_of_week="friday"),
            headers=admin_headers,
        )
        assert response.status_code == 422
        assert response.json()["error_code"] == "INVALID_TERM_CONFIGURATION"

    async def test_unknown_venue(
        self, client: AsyncClient, admin_headers: dict, test_term, test_venue, test_instructor, test_exercise_type
    ):
        response = await client.post(
            "/api/v1/sessions/",
            json=self.session_body(test_term, test_venue, test_instructor, test_exercise_type, venue_id="missing"),
            headers=admin_headers,
        )
        assert response.status_code == 404

    async def test_weekday_locked_once_enrolled(
        self, client: AsyncClient, admin_headers: dict, enroll, test_customer, monday_session
    ):
        await enroll(test_customer, DraftItem(session_id=monday_session.id, enrollment_type=EnrollmentType.FULL))

        response = await client.put(
            f"/api/v1/sessions/{monday_session.id}",
            json={"day_of_week": "tuesday"},
            headers=admin_headers,
        )
        assert response.status_code == 409

        response = await client.put(
            f"/api/v1/sessions/{monday_session.id}",
            json={"name": "Monday Strength (Hall B)"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["name"] == "Monday Strength (Hall B)"

        response = await client.delete(f"/api/v1/sessions/{monday_session.id}", headers=admin_headers)
        assert response.status_code == 409

    async def test_delete_unreferenced(self, client: AsyncClient, admin_headers: dict, monday_session):
        response = await client.delete(f"/api/v1/sessions/{monday_session.id}", headers=admin_headers)
        assert response.status_code == 204
        assert (await client.get(f"/api/v1/sessions/{monday_session.id}")).status_code == 404

    async def test_list_filters(self, client: AsyncClient, make_session):
        from app.models.class_session import Weekday

        await make_session()
        await make_session(day_of_week=Weekday.THURSDAY, name="Thursday Aqua")

        response = await client.get("/api/v1/sessions/", params={"day_of_week": "thursday"})
        assert [s["name"] for s in response.json()] == ["Thursday Aqua"]

    async def test_list_in_calendar_order(self, client: AsyncClient, make_session):
        from app.models.class_session import Weekday

        for day in (Weekday.FRIDAY, Weekday.SATURDAY, Weekday.MONDAY, Weekday.WEDNESDAY):
            await make_session(day_of_week=day, name=f"{day.value.title()} Class")

        response = await client.get("/api/v1/sessions/")
        assert [s["name"] for s in response.json()] == [
            "Monday Class",
            "Wednesday Class",
            "Friday Class",
            "Saturday Class",
        ]


class TestReferenceData:
    async def test_venue_crud(self, client: AsyncClient, admin_headers: dict):
        response = await client.post(
            "/api/v1/venues", json={"name": "Pool", "address": "2 Beach Rd"}, headers=admin_headers
        )
        assert response.status_code == 201
        listed = await client.get("/api/v1/venues")
        assert [v["name"] for v in listed.json()] == ["Pool"]

    async def test_exercise_type_names_unique(self, client: AsyncClient, admin_headers: dict):
        body = {"name": "Aqua"}
        assert (await client.post("/api/v1/exercise-types", json=body, headers=admin_headers)).status_code == 201
        response = await client.post("/api/v1/exercise-types", json=body, headers=admin_headers)
        assert response.status_code == 409

    async def test_instructor_linked_to_login(
        self, client: AsyncClient, admin_headers: dict, instructor_user
    ):
        body = {"name": "Casey Coach", "user_id": instructor_user.id}
        response = await client.post("/api/v1/instructors", json=body, headers=admin_headers)
        assert response.status_code == 201
        assert response.json()["user_id"] == instructor_user.id

        response = await client.post("/api/v1/instructors", json=body, headers=admin_headers)
        assert response.status_code == 409
