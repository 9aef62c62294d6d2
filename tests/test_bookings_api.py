# tests/test_bookings_api.py
from datetime import datetime
from http import HTTPStatus

import pytest

from helpers import at, iso

ADMIN = {"X-User-Id": "admin@example.com", "X-User-Role": "admin"}
ALICE = {"X-User-Id": "alice@example.com"}
BOB = {"X-User-Id": "bob@example.com"}
CAROL = {"X-User-Id": "carol@example.com"}


def _parse(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@pytest.fixture
def room_id(client) -> int:
    response = client.post(
        "/rooms",
        json={"name": "Boardroom", "capacity": 10},
        headers=ADMIN,
    )
    return response.json()["id"]


def _booking_payload(room_id: int, start=None, end=None, **overrides) -> dict:
    payload = {
        "room_id": room_id,
        "title": "Sprint planning",
        "start_time": iso(start or at(10)),
        "end_time": iso(end or at(11)),
    }
    payload.update(overrides)
    return payload


def test_create_booking_success(client, room_id):
    response = client.post(
        "/bookings",
        json=_booking_payload(
            room_id,
            description="Plan the next two weeks",
            attendees=[{"email": "Carol@Example.com", "name": "Carol"}],
        ),
        headers=ALICE,
    )
    assert response.status_code == HTTPStatus.CREATED

    body = response.json()
    booking = body["booking"]
    assert body["recurrence"] is None
    assert booking["status"] == "CONFIRMED"
    assert booking["user_id"] == "alice@example.com"
    assert _parse(booking["start_time"]) == at(10)
    assert _parse(booking["end_time"]) == at(11)
    assert booking["attendees"] == [{"email": "carol@example.com", "name": "Carol"}]


def test_naive_timestamps_are_taken_as_utc(client, room_id):
    response = client.post(
        "/bookings",
        json=_booking_payload(room_id) | {"start_time": "2030-01-07T10:00:00", "end_time": "2030-01-07T11:00:00"},
        headers=ALICE,
    )
    assert response.status_code == HTTPStatus.CREATED
    assert _parse(response.json()["booking"]["start_time"]) == at(10)


def test_offsets_are_normalized(client, room_id):
    client.post("/bookings", json=_booking_payload(room_id), headers=ALICE)

    # 12:00+02:00 is 10:00Z, the same slot.
    response = client.post(
        "/bookings",
        json=_booking_payload(room_id)
        | {"start_time": "2030-01-07T12:00:00+02:00", "end_time": "2030-01-07T13:00:00+02:00"},
        headers=BOB,
    )
    assert response.status_code == HTTPStatus.CONFLICT


def test_create_booking_requires_identity(client, room_id):
    response = client.post("/bookings", json=_booking_payload(room_id))
    assert response.status_code == HTTPStatus.UNAUTHORIZED


def test_overlapping_booking_conflicts(client, room_id):
    first = client.post("/bookings", json=_booking_payload(room_id), headers=ALICE)
    assert first.status_code == HTTPStatus.CREATED

    second = client.post(
        "/bookings",
        json=_booking_payload(room_id, at(10, 30), at(11, 30)),
        headers=BOB,
    )
    assert second.status_code == HTTPStatus.CONFLICT
    assert second.json() == {
        "detail": "Room is already booked for this time slot",
        "code": "conflict",
    }

    back_to_back = client.post(
        "/bookings",
        json=_booking_payload(room_id, at(11), at(12)),
        headers=BOB,
    )
    assert back_to_back.status_code == HTTPStatus.CREATED


@pytest.mark.parametrize(
    "overrides",
    [
        {"title": "ab"},
        {"end_time": iso(at(10, 10))},
        {"start_time": iso(at(6)), "end_time": iso(at(7))},
        {"recurrence_rule": "FREQ=WEEKLY"},
    ],
)
def test_rule_violations_return_invalid(client, room_id, overrides):
    response = client.post("/bookings", json=_booking_payload(room_id, **overrides), headers=ALICE)

    assert response.status_code == HTTPStatus.UNPROCESSABLE_ENTITY
    assert response.json()["code"] == "invalid"


def test_end_before_start_is_invalid(client, room_id):
    response = client.post(
        "/bookings",
        json=_booking_payload(room_id, at(11), at(10)),
        headers=ALICE,
    )
    assert response.status_code == HTTPStatus.UNPROCESSABLE_ENTITY
    assert response.json()["code"] == "invalid"


def test_recurring_booking_reports_skipped_occurrences(client, room_id):
    client.post(
        "/bookings",
        json=_booking_payload(room_id, at(10, days=14), at(11, days=14)),
        headers=BOB,
    )

    response = client.post(
        "/bookings",
        json=_booking_payload(room_id, recurrence_rule="RRULE:FREQ=WEEKLY;COUNT=4"),
        headers=ALICE,
    )
    assert response.status_code == HTTPStatus.CREATED

    recurrence = response.json()["recurrence"]
    assert recurrence["requested"] == 3
    assert recurrence["created"] == 2
    assert recurrence["skipped"] == 1
    assert [_parse(s) for s in recurrence["skipped_start_times"]] == [at(10, days=14)]


def test_get_booking(client, room_id):
    created = client.post("/bookings", json=_booking_payload(room_id), headers=ALICE).json()
    booking_id = created["booking"]["id"]

    response = client.get(f"/bookings/{booking_id}")
    assert response.status_code == HTTPStatus.OK
    assert response.json()["title"] == "Sprint planning"

    missing = client.get("/bookings/9999")
    assert missing.status_code == HTTPStatus.NOT_FOUND
    assert missing.json()["code"] == "not_found"


def test_update_booking(client, room_id):
    booking_id = client.post("/bookings", json=_booking_payload(room_id), headers=ALICE).json()[
        "booking"
    ]["id"]

    forbidden = client.patch(f"/bookings/{booking_id}", json={"title": "Mine now"}, headers=BOB)
    assert forbidden.status_code == HTTPStatus.FORBIDDEN
    assert forbidden.json()["code"] == "forbidden"

    response = client.patch(
        f"/bookings/{booking_id}",
        json={
            "title": "Sprint review",
            "start_time": iso(at(13)),
            "end_time": iso(at(14)),
            "attendees": [{"email": "dave@example.com"}],
        },
        headers=ALICE,
    )
    assert response.status_code == HTTPStatus.OK
    body = response.json()
    assert body["title"] == "Sprint review"
    assert _parse(body["start_time"]) == at(13)
    assert [a["email"] for a in body["attendees"]] == ["dave@example.com"]

    by_admin = client.patch(f"/bookings/{booking_id}", json={"description": "Agenda"}, headers=ADMIN)
    assert by_admin.status_code == HTTPStatus.OK
    assert by_admin.json()["description"] == "Agenda"


def test_cancel_booking_is_not_repeatable(client, room_id):
    booking_id = client.post("/bookings", json=_booking_payload(room_id), headers=ALICE).json()[
        "booking"
    ]["id"]

    first = client.post(f"/bookings/{booking_id}/cancel", headers=ALICE)
    assert first.status_code == HTTPStatus.OK
    assert first.json()["status"] == "CANCELLED"

    second = client.post(f"/bookings/{booking_id}/cancel", headers=ALICE)
    assert second.status_code == HTTPStatus.CONFLICT
    assert second.json()["code"] == "already_cancelled"

    # The slot is free again.
    rebook = client.post("/bookings", json=_booking_payload(room_id), headers=BOB)
    assert rebook.status_code == HTTPStatus.CREATED


def test_my_bookings(client, room_id):
    first = client.post("/bookings", json=_booking_payload(room_id), headers=ALICE).json()
    second = client.post(
        "/bookings",
        json=_booking_payload(room_id, start=at(10, days=1), end=at(11, days=1)),
        headers=ALICE,
    ).json()
    client.post(
        "/bookings",
        json=_booking_payload(room_id, start=at(12), end=at(13)),
        headers=BOB,
    )
    client.post(f"/bookings/{second['booking']['id']}/cancel", headers=ALICE)

    response = client.get("/bookings/me", headers=ALICE)
    assert response.status_code == HTTPStatus.OK
    body = response.json()
    assert body["total"] == 2
    assert [b["status"] for b in body["data"]] == ["CONFIRMED", "CANCELLED"]

    confirmed = client.get("/bookings/me", params={"status": "CONFIRMED"}, headers=ALICE).json()
    assert [b["id"] for b in confirmed["data"]] == [first["booking"]["id"]]

    tuesday = client.get(
        "/bookings/me",
        params={"start_date": "2030-01-08", "end_date": "2030-01-08"},
        headers=ALICE,
    ).json()
    assert [b["id"] for b in tuesday["data"]] == [second["booking"]["id"]]

    assert client.get("/bookings/me").status_code == HTTPStatus.UNAUTHORIZED
    bad_page = client.get("/bookings/me", params={"limit": 0}, headers=ALICE)
    assert bad_page.status_code == HTTPStatus.UNPROCESSABLE_ENTITY


def test_check_in_and_status(client, room_id, clock):
    payload = _booking_payload(room_id, attendees=[{"email": "carol@example.com"}])
    booking_id = client.post("/bookings", json=payload, headers=ALICE).json()["booking"]["id"]

    too_early = client.post(f"/bookings/{booking_id}/check-in", headers=ALICE)
    assert too_early.status_code == HTTPStatus.UNPROCESSABLE_ENTITY

    clock.now = at(9, 50)

    stranger = client.post(f"/bookings/{booking_id}/check-in", headers=BOB)
    assert stranger.status_code == HTTPStatus.FORBIDDEN

    checked = client.post(f"/bookings/{booking_id}/check-in", headers=CAROL)
    assert checked.status_code == HTTPStatus.CREATED
    assert _parse(checked.json()["checked_in_at"]) == at(9, 50)

    again = client.post(f"/bookings/{booking_id}/check-in", headers=CAROL)
    assert again.status_code == HTTPStatus.CONFLICT

    status = client.get(f"/bookings/{booking_id}/check-ins")
    assert status.status_code == HTTPStatus.OK
    body = status.json()
    assert body["total_expected"] == 2
    assert body["total_checked_in"] == 1
    assert [c["user_id"] for c in body["check_ins"]] == ["carol@example.com"]

    assert client.get("/bookings/9999/check-ins").status_code == HTTPStatus.NOT_FOUND
