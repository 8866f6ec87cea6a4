# tests/routes/test_occurrences_routes.py
from decimal import Decimal

from tests.helpers.auth import as_user

WINDOW = {"start": "2024-03-01T00:00:00Z", "end": "2024-03-31T00:00:00Z"}


def test_tutor_completes_own_session_once(client, db, make_occurrence, tutor):
    occurrence = make_occurrence()
    for _ in range(2):
        response = client.post(
            f"/api/v1/occurrences/{occurrence.id}/status",
            json={"status": "completed"},
            headers=as_user(tutor),
        )
        assert response.status_code == 200
        assert response.json()["status"] == "completed"

    conflict = client.post(
        f"/api/v1/occurrences/{occurrence.id}/log", json={}, headers=as_user(tutor)
    )
    assert conflict.status_code == 409


def test_cancelled_session_cannot_be_completed(client, make_occurrence, tutor):
    occurrence = make_occurrence()
    url = f"/api/v1/occurrences/{occurrence.id}/status"
    client.post(url, json={"status": "cancelled", "reason": "ill"}, headers=as_user(tutor))
    response = client.post(url, json={"status": "completed"}, headers=as_user(tutor))
    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "INVALID_TRANSITION"


def test_unassigned_tutor_forbidden(client, make_occurrence, other_tutor):
    occurrence = make_occurrence()
    response = client.post(
        f"/api/v1/occurrences/{occurrence.id}/status",
        json={"status": "completed"},
        headers=as_user(other_tutor),
    )
    assert response.status_code == 403


def test_parent_cannot_change_status(client, make_occurrence, parent):
    occurrence = make_occurrence()
    response = client.post(
        f"/api/v1/occurrences/{occurrence.id}/status",
        json={"status": "cancelled"},
        headers=as_user(parent),
    )
    assert response.status_code == 403


def test_list_is_scoped_to_caller(client, make_occurrence, parent, other_parent, other_tutor):
    make_occurrence()
    assert len(client.get("/api/v1/occurrences", params=WINDOW, headers=as_user(parent)).json()) == 1
    assert client.get("/api/v1/occurrences", params=WINDOW, headers=as_user(other_parent)).json() == []
    assert client.get("/api/v1/occurrences", params=WINDOW, headers=as_user(other_tutor)).json() == []


def test_list_rejects_naive_range(client, admin):
    response = client.get(
        "/api/v1/occurrences",
        params={"start": "2024-03-01T00:00:00", "end": "2024-03-31T00:00:00"},
        headers=as_user(admin),
    )
    assert response.status_code == 400


def test_log_session_returns_timesheet(client, make_occurrence, tutor):
    occurrence = make_occurrence(duration_minutes=45)
    response = client.post(
        f"/api/v1/occurrences/{occurrence.id}/log",
        json={"description": "Algebra"},
        headers=as_user(tutor),
    )
    assert response.status_code == 201
    body = response.json()
    assert Decimal(body["hours"]) == Decimal("0.75")
    assert body["session_occurrence_id"] == occurrence.id


def test_admin_moves_and_deletes_session(client, make_occurrence, admin):
    occurrence = make_occurrence()
    moved = client.patch(
        f"/api/v1/occurrences/{occurrence.id}",
        json={"start_at": "2024-03-04T18:00:00Z"},
        headers=as_user(admin),
    )
    assert moved.status_code == 200
    assert moved.json()["source"] == "rescheduled"
    assert moved.json()["end_at"].startswith("2024-03-04T19:00:00")

    deleted = client.delete(f"/api/v1/occurrences/{occurrence.id}", headers=as_user(admin))
    assert deleted.status_code == 204
    missing = client.get(f"/api/v1/occurrences/{occurrence.id}", headers=as_user(admin))
    assert missing.status_code == 404


def test_parent_flags_session(client, sink, make_occurrence, parent, admin):
    occurrence = make_occurrence()
    response = client.post(
        f"/api/v1/occurrences/{occurrence.id}/flag",
        json={"comment": "Started late"},
        headers=as_user(parent),
    )
    assert response.status_code == 200
    assert response.json()["parent_flagged"] is True
    assert [n["recipient_id"] for n in sink.of_type("session_flagged")] == [admin.id]
