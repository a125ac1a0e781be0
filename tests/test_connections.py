import pytest

from conftest import auth_header, link, register
from connections import APPROVED, PENDING, REJECTED, ConnectionStateError, request_conflict, resolve


def test_request_conflict():
    assert request_conflict([]) is None
    assert request_conflict([{"status": REJECTED}]) is None
    assert request_conflict([{"status": PENDING}]) == "Connection request already sent!"
    assert request_conflict([{"status": APPROVED}]) == "Student is already linked!"


def test_resolve_is_one_way():
    assert resolve(PENDING, "approve") == APPROVED
    assert resolve(PENDING, "reject") == REJECTED
    with pytest.raises(ConnectionStateError):
        resolve(APPROVED, "reject")
    with pytest.raises(ConnectionStateError):
        resolve(REJECTED, "approve")


def _request(client, teacher, student):
    return client.post("/api/connections/request", json={"teacherId": teacher["id"], "studentId": student["id"]})


def test_duplicate_pending_request_is_rejected(client, teacher, student):
    assert _request(client, teacher, student).status_code == 201
    res = _request(client, teacher, student)
    assert res.status_code == 400
    assert res.json() == {"success": False, "message": "Connection request already sent!"}


def test_linked_pair_cannot_request_again(client, teacher, student):
    link(client, teacher["id"], student["id"])
    res = _request(client, teacher, student)
    assert res.status_code == 400
    assert res.json()["message"] == "Student is already linked!"


def test_rejected_pair_may_request_again(client, db, teacher, student):
    connection_id = _request(client, teacher, student).json()["connection"]["id"]
    res = client.post("/api/connections/respond", json={"connectionId": connection_id, "action": "reject"})
    assert res.json()["connection"]["status"] == "rejected"

    res = _request(client, teacher, student)
    assert res.status_code == 201
    assert res.json()["connection"]["status"] == "pending"
    assert db["connections"].count_documents({}) == 2


def test_answered_request_cannot_be_answered_again(client, teacher, student):
    connection_id = link(client, teacher["id"], student["id"])
    res = client.post("/api/connections/respond", json={"connectionId": connection_id, "action": "reject"})
    assert res.status_code == 400
    assert res.json()["message"] == "Request has already been approved!"


def test_only_the_requested_teacher_can_respond(client, teacher, student):
    other = register(client, "Teacher", "Alan Turing", "alan@school.edu")
    connection_id = _request(client, teacher, student).json()["connection"]["id"]

    res = client.post("/api/connections/respond", json={
        "connectionId": connection_id, "action": "approve", "teacherId": other["id"],
    })
    assert res.status_code == 403

    res = client.post(
        "/api/connections/respond",
        json={"connectionId": connection_id, "action": "approve"},
        headers=auth_header(client, "Teacher", "alan@school.edu"),
    )
    assert res.status_code == 403


def test_respond_with_bad_id(client):
    res = client.post("/api/connections/respond", json={"connectionId": "nope", "action": "approve"})
    assert res.status_code == 400
    assert res.json()["message"] == "Invalid connection ID!"


def test_respond_with_unknown_action(client, teacher, student):
    connection_id = _request(client, teacher, student).json()["connection"]["id"]
    res = client.post("/api/connections/respond", json={"connectionId": connection_id, "action": "maybe"})
    assert res.status_code == 400
    assert res.json()["success"] is False


def test_stats_and_listings(client, teacher, student):
    other = register(client, "Student", "Bo Chen", "bo@school.edu")
    link(client, teacher["id"], student["id"])
    _request(client, teacher, other)

    stats = client.get(f"/api/connections/stats/{teacher['id']}").json()["stats"]
    assert stats == {"totalLinked": 1, "totalPending": 1, "totalConnections": 2}

    pending = client.get(f"/api/connections/pending/{teacher['id']}").json()["requests"]
    assert [p["email"] for p in pending] == ["bo@school.edu"]

    linked = client.get(f"/api/connections/linked/{teacher['id']}").json()["students"]
    assert [s["name"] for s in linked] == ["Ana Lima"]

    found = client.get(f"/api/connections/find/{student['id']}/{teacher['id']}").json()["connection"]
    assert found["status"] == "approved"
    assert client.get(f"/api/connections/find/{other['id']}/{teacher['id']}").json()["connection"] is None

    incoming = client.get(f"/api/student/connections/pending/{other['id']}").json()["requests"]
    assert incoming[0]["teacherName"] == "Grace Hopper"

    teachers = client.get(f"/api/student/teachers/{student['id']}").json()["teachers"]
    assert [(t["id"], t["email"]) for t in teachers] == [(teacher["id"], "grace@school.edu")]


def test_remove_connection(client, db, teacher, student):
    connection_id = link(client, teacher["id"], student["id"])
    res = client.delete(f"/api/connections/remove/{connection_id}")
    assert res.status_code == 200
    assert db["connections"].count_documents({}) == 0
    assert client.delete(f"/api/connections/remove/{connection_id}").status_code == 404
