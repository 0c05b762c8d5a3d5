# backend/tests/routes/test_sessions_routes.py
"""HTTP surface for /api/v1/sessions."""

from datetime import datetime, timedelta

import pytest

from tests.factories.scheduling import utc
from tutorhub.api.dependencies import get_clock
from tutorhub.main import app

BASE = "/api/v1/sessions"


def parse(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def booking_payload(tutor, student, **overrides):
    payload = {
        "tutor_id": tutor.id,
        "student_id": student.id,
        "scheduled_at": "2024-03-04T14:00:00Z",
        "timezone": "America/New_York",
        "subject": "Algebra",
    }
    payload.update(overrides)
    return payload


class TestBookSessionRoute:
    def test_book_returns_201(self, client, tutor, student):
        response = client.post(BASE, json=booking_payload(tutor, student))

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["idempotent_replay"] is False
        assert body["occurrence_ids"] == []

        session = client.get(f"{BASE}/{body['session_id']}").json()
        assert parse(session["scheduled_at"]) == utc(2024, 3, 4, 14, 0)
        assert session["status"] == "scheduled"
        assert session["price"] == "60.00"

    def test_book_by_local_time(self, client, tutor, student):
        payload = booking_payload(tutor, student, local_start="2024-03-04T10:00:00")
        del payload["scheduled_at"]

        response = client.post(BASE, json=payload)

        assert response.status_code == 201
        session = client.get(f"{BASE}/{response.json()['session_id']}").json()
        assert parse(session["scheduled_at"]) == utc(2024, 3, 4, 15, 0)

    def test_conflict_is_409_problem(self, client, tutor, student, other_student):
        first = client.post(BASE, json=booking_payload(tutor, student))
        assert first.status_code == 201

        response = client.post(
            BASE,
            json=booking_payload(tutor, other_student, scheduled_at="2024-03-04T14:30:00Z", duration_minutes=30),
        )

        assert response.status_code == 409
        assert response.headers["content-type"].startswith("application/problem+json")
        body = response.json()
        assert body["code"] == "BOOKING_CONFLICT"
        assert body["instance"] == BASE
        conflicts = body["errors"]["conflicts"]
        assert [c["kind"] for c in conflicts] == ["tutor_busy"]
        assert conflicts[0]["conflicting_session"]["id"] == first.json()["session_id"]
        assert [parse(t) for t in conflicts[0]["suggested_times"]] == [
            utc(2024, 3, 4, 15, 0),
            utc(2024, 3, 4, 15, 30),
            utc(2024, 3, 4, 16, 0),
        ]

    def test_outside_availability_is_409(self, client, tutor, student):
        response = client.post(
            BASE, json=booking_payload(tutor, student, scheduled_at="2024-03-05T14:00:00Z")
        )

        assert response.status_code == 409
        assert response.json()["errors"]["conflicts"][0]["kind"] == "outside_availability"

    def test_idempotent_replay_returns_200(self, client, tutor, student):
        payload = booking_payload(tutor, student, idempotency_key="client-req-1")

        first = client.post(BASE, json=payload)
        replay = client.post(BASE, json=payload)

        assert first.status_code == 201
        assert replay.status_code == 200
        assert replay.json()["session_id"] == first.json()["session_id"]
        assert replay.json()["idempotent_replay"] is True

    def test_recurring_booking(self, client, tutor, student):
        payload = booking_payload(
            tutor,
            student,
            recurrence={"frequency": "weekly", "days_of_week": [1, 3], "max_occurrences": 4},
        )

        response = client.post(BASE, json=payload)

        assert response.status_code == 201
        assert len(response.json()["occurrence_ids"]) == 3

    @pytest.mark.parametrize(
        "overrides,code",
        [
            ({"timezone": "Mars/Olympus"}, "INVALID_TIMEZONE"),
            ({"duration_minutes": 10}, "INVALID_DURATION"),
            ({"local_start": "2024-03-04T09:00:00"}, "AMBIGUOUS_START"),
        ],
    )
    def test_invalid_requests_are_400(self, client, tutor, student, overrides, code):
        response = client.post(BASE, json=booking_payload(tutor, student, **overrides))

        assert response.status_code == 400
        assert response.json()["code"] == code

    def test_unknown_field_is_422(self, client, tutor, student):
        response = client.post(BASE, json=booking_payload(tutor, student, room="B12"))

        assert response.status_code == 422
        assert response.json()["code"] == "validation_error"

    def test_unknown_tutor_is_404(self, client, student):
        response = client.post(
            BASE,
            json={
                "tutor_id": "01HNOTUTOR0000000000000000",
                "student_id": student.id,
                "scheduled_at": "2024-03-04T14:00:00Z",
            },
        )

        assert response.status_code == 404
        assert response.json()["code"] == "ENTITY_NOT_FOUND"


class TestSessionQueriesRoutes:
    def test_list_and_filter(self, client, session_factory, tutor, student):
        booked = session_factory(tutor, student, utc(2024, 3, 4, 14), subject="Algebra")
        session_factory(tutor, student, utc(2024, 3, 6, 14), status="cancelled")

        response = client.get(BASE, params={"user_id": student.id, "status": "scheduled"})

        assert response.status_code == 200
        assert [s["id"] for s in response.json()] == [booked.id]

    def test_invalid_status_filter(self, client):
        response = client.get(BASE, params={"status": "done"})

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_STATUS"

    def test_upcoming(self, client, session_factory, tutor, student):
        future = session_factory(tutor, student, utc(2024, 3, 4, 14))
        session_factory(tutor, student, utc(2024, 2, 26, 14), status="completed")

        response = client.get(f"{BASE}/upcoming", params={"user_id": student.id})

        assert [s["id"] for s in response.json()] == [future.id]

    def test_stats(self, client, session_factory, tutor, student):
        session_factory(tutor, student, utc(2024, 2, 26, 14), 90, status="completed")
        session_factory(tutor, student, utc(2024, 3, 4, 14))

        body = client.get(f"{BASE}/stats", params={"user_id": tutor.id, "role": "tutor"}).json()

        assert body["total"] == 2
        assert body["completed"] == 1
        assert body["upcoming"] == 1
        assert body["total_hours"] == 1.5

    def test_unknown_session_is_404(self, client):
        response = client.get(f"{BASE}/01HUNKNOWNSESSION000000000")

        assert response.status_code == 404
        assert response.json()["code"] == "ENTITY_NOT_FOUND"


class TestCheckConflictsRoute:
    def test_available(self, client, tutor, student):
        response = client.post(
            f"{BASE}/check-conflicts",
            json={"tutor_id": tutor.id, "student_id": student.id, "scheduled_at": "2024-03-04T14:00:00Z"},
        )

        assert response.status_code == 200
        assert response.json() == {"available": True, "conflicts": []}

    def test_reports_every_conflict_in_order(self, client, tutor, student):
        response = client.post(
            f"{BASE}/check-conflicts",
            json={"tutor_id": tutor.id, "student_id": student.id, "scheduled_at": "2024-03-01T11:00:00Z"},
        )

        body = response.json()
        assert body["available"] is False
        assert [c["kind"] for c in body["conflicts"]] == [
            "past_time",
            "too_short_notice",
            "outside_availability",
        ]

    def test_check_does_not_book(self, client, tutor, student):
        client.post(
            f"{BASE}/check-conflicts",
            json={"tutor_id": tutor.id, "student_id": student.id, "scheduled_at": "2024-03-04T14:00:00Z"},
        )

        assert client.get(BASE, params={"user_id": tutor.id}).json() == []


class TestLifecycleRoutes:
    @pytest.fixture
    def booked(self, session_factory, tutor, student):
        return session_factory(tutor, student, utc(2024, 3, 4, 14), price=60)

    @pytest.fixture
    def at(self, client):
        """Move the request clock."""

        def _set(instant):
            app.dependency_overrides[get_clock] = lambda: instant

        return _set

    def test_cancel_with_full_refund(self, client, booked, student):
        response = client.post(
            f"{BASE}/{booked.id}/cancel", json={"cancelled_by": student.id, "reason": "Exam week"}
        )

        assert response.status_code == 200
        refund = response.json()["refund"]
        assert refund["amount"] == "60.00"
        assert refund["fraction"] == "1"
        assert refund["policy_basis"] == ">=24 hours before session: full refund"
        assert client.get(f"{BASE}/{booked.id}").json()["status"] == "cancelled"

    def test_cancel_without_body(self, client, booked):
        response = client.post(f"{BASE}/{booked.id}/cancel")

        assert response.status_code == 200

    def test_cancel_twice_is_422(self, client, booked):
        client.post(f"{BASE}/{booked.id}/cancel")
        response = client.post(f"{BASE}/{booked.id}/cancel")

        assert response.status_code == 422
        assert response.json()["code"] == "INVALID_STATE_TRANSITION"

    def test_start_and_end(self, client, booked, at):
        at(utc(2024, 3, 4, 13, 50))
        started = client.post(f"{BASE}/{booked.id}/start")
        assert started.status_code == 200
        assert started.json()["status"] == "ongoing"
        assert started.json()["meeting_url"].endswith(booked.id)

        at(utc(2024, 3, 4, 15, 0))
        ended = client.post(f"{BASE}/{booked.id}/end")
        assert ended.json()["status"] == "completed"

    def test_end_with_closing_notes(self, client, booked, at):
        at(utc(2024, 3, 4, 14, 0))
        client.post(f"{BASE}/{booked.id}/start")

        at(utc(2024, 3, 4, 15, 0))
        ended = client.post(f"{BASE}/{booked.id}/end", json={"notes": "Covered fractions"})

        assert ended.status_code == 200
        assert ended.json()["notes"] == "Covered fractions"

    def test_start_too_early(self, client, booked):
        response = client.post(f"{BASE}/{booked.id}/start")

        assert response.status_code == 422
        assert response.json()["code"] == "OUTSIDE_START_WINDOW"

    def test_no_show(self, client, booked, at):
        at(utc(2024, 3, 4, 14, 10))
        assert client.post(f"{BASE}/{booked.id}/no-show").json()["code"] == "NO_SHOW_TOO_EARLY"

        at(utc(2024, 3, 4, 14, 30))
        response = client.post(f"{BASE}/{booked.id}/no-show")
        assert response.status_code == 200
        assert response.json()["status"] == "no-show"

    def test_reschedule(self, client, booked):
        response = client.patch(f"{BASE}/{booked.id}", json={"scheduled_at": "2024-03-06T14:00:00Z"})

        assert response.status_code == 200
        assert parse(response.json()["scheduled_at"]) == utc(2024, 3, 6, 14, 0)

    def test_reschedule_conflict_is_409(self, client, booked, session_factory, tutor, other_student):
        session_factory(tutor, other_student, utc(2024, 3, 6, 14))

        response = client.patch(f"{BASE}/{booked.id}", json={"scheduled_at": "2024-03-06T14:00:00Z"})

        assert response.status_code == 409
        assert response.json()["errors"]["conflicts"][0]["kind"] == "tutor_busy"
        after = client.get(f"{BASE}/{booked.id}").json()
        assert parse(after["scheduled_at"]) == utc(2024, 3, 4, 14)

    def test_edit_notes(self, client, booked):
        response = client.patch(f"{BASE}/{booked.id}", json={"notes": "Chapter 5"})

        assert response.json()["notes"] == "Chapter 5"
        assert parse(response.json()["ends_at"]) - parse(response.json()["scheduled_at"]) == timedelta(hours=1)
