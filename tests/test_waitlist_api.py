# tests/test_waitlist_api.py
from http import HTTPStatus

import pytest

from helpers import at, iso

ADMIN = {"X-User-Id": "admin@example.com", "X-User-Role": "admin"}
ALICE = {"X-User-Id": "alice@example.com"}
U1 = {"X-User-Id": "u1"}
U2 = {"X-User-Id": "u2"}


@pytest.fixture
def room_id(client) -> int:
    return client.post("/rooms", json={"name": "Boardroom", "capacity": 10}, headers=ADMIN).json()["id"]


def _slot(room_id: int) -> dict:
    return {"room_id": room_id, "start_time": iso(at(10)), "end_time": iso(at(11))}


def _book(client, room_id: int) -> int:
    response = client.post(
        "/bookings",
        json=_slot(room_id) | {"title": "Sprint planning"},
        headers=ALICE,
    )
    return response.json()["booking"]["id"]


def test_join_free_slot_is_invalid(client, room_id):
    response = client.post("/waitlist", json=_slot(room_id), headers=U1)

    assert response.status_code == HTTPStatus.UNPROCESSABLE_ENTITY
    assert response.json()["code"] == "invalid"


def test_join_list_and_leave(client, room_id):
    _book(client, room_id)

    joined = client.post("/waitlist", json=_slot(room_id), headers=U1)
    assert joined.status_code == HTTPStatus.CREATED
    entry = joined.json()
    assert entry["status"] == "WAITING"
    assert entry["user_id"] == "u1"

    duplicate = client.post("/waitlist", json=_slot(room_id), headers=U1)
    assert duplicate.status_code == HTTPStatus.CONFLICT

    mine = client.get("/waitlist/me", headers=U1).json()
    assert [e["id"] for e in mine] == [entry["id"]]
    assert client.get("/waitlist/me", headers=U2).json() == []

    not_yours = client.delete(f"/waitlist/{entry['id']}", headers=U2)
    assert not_yours.status_code == HTTPStatus.FORBIDDEN

    left = client.delete(f"/waitlist/{entry['id']}", headers=U1)
    assert left.status_code == HTTPStatus.NO_CONTENT
    assert client.get("/waitlist/me", headers=U1).json() == []

    assert client.delete("/waitlist/9999", headers=U1).status_code == HTTPStatus.NOT_FOUND


def test_cancellation_notifies_waitlist(client, room_id):
    booking_id = _book(client, room_id)
    client.post("/waitlist", json=_slot(room_id), headers=U1)
    client.post("/waitlist", json=_slot(room_id), headers=U2)

    client.post(f"/bookings/{booking_id}/cancel", headers=ALICE)

    for headers in (U1, U2):
        entries = client.get("/waitlist/me", headers=headers).json()
        assert [e["status"] for e in entries] == ["NOTIFIED"]
        assert entries[0]["notified_at"] is not None


def test_internal_maintenance_endpoints(client, room_id):
    _book(client, room_id)

    sweep = client.post("/internal/sweep-waitlist")
    assert sweep.status_code == HTTPStatus.OK
    assert sweep.json()["expired"] == 0

    reminders = client.post("/internal/send-reminders")
    assert reminders.status_code == HTTPStatus.OK
    body = reminders.json()
    assert body["one_hour_bookings"] == 0
    assert body["twenty_four_hour_bookings"] == 0


def test_check_waitlist(client, room_id):
    _book(client, room_id)
    client.post("/waitlist", json=_slot(room_id), headers=U1)

    params = {"room_id": room_id, "start_time": iso(at(10, 30)), "end_time": iso(at(11, 30))}
    mine = client.get("/waitlist/check", params=params, headers=U1)
    assert mine.status_code == HTTPStatus.OK
    assert mine.json()["on_waitlist"] is True

    assert client.get("/waitlist/check", params=params, headers=U2).json()["on_waitlist"] is False

    backwards = params | {"start_time": iso(at(12)), "end_time": iso(at(11))}
    response = client.get("/waitlist/check", params=backwards, headers=U1)
    assert response.status_code == HTTPStatus.UNPROCESSABLE_ENTITY
