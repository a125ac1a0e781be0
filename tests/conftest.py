import mongomock
import pytest
from fastapi.testclient import TestClient

import database
import main

PASSWORD = "secret1"


@pytest.fixture
def db(monkeypatch):
    mock_db = mongomock.MongoClient()["quizapp_test"]
    monkeypatch.setattr(database, "_db", mock_db)
    return mock_db


@pytest.fixture
def client(db):
    with TestClient(main.app) as c:
        yield c


def register(client, role, name, email, password=PASSWORD):
    res = client.post("/api/register", json={
        "role": role,
        "name": name,
        "email": email,
        "password": password,
        "confirm": password,
    })
    assert res.status_code == 201, res.text
    return res.json()["user"]


def login(client, role, email, password=PASSWORD):
    res = client.post("/api/login", json={"role": role, "email": email, "password": password})
    assert res.status_code == 200, res.text
    return res.json()


def auth_header(client, role, email):
    return {"Authorization": f"Bearer {login(client, role, email)['access_token']}"}


def save_quiz(client, teacher_id, questions, title="Unit 1", **extra):
    res = client.post("/api/quizzes/save", json={
        "teacherId": teacher_id,
        "title": title,
        "questions": questions,
        **extra,
    })
    assert res.status_code == 201, res.text
    return res.json()["quiz"]


def link(client, teacher_id, student_id):
    res = client.post("/api/connections/request", json={"teacherId": teacher_id, "studentId": student_id})
    assert res.status_code == 201, res.text
    connection_id = res.json()["connection"]["id"]
    res = client.post("/api/connections/respond", json={"connectionId": connection_id, "action": "approve"})
    assert res.status_code == 200, res.text
    return connection_id


@pytest.fixture
def teacher(client):
    return register(client, "Teacher", "Grace Hopper", "grace@school.edu")


@pytest.fixture
def student(client):
    return register(client, "Student", "Ana Lima", "ana@school.edu")


@pytest.fixture
def two_question_quiz():
    return [
        {"text": "2 + 2?", "options": ["4", "3", "5", "22"], "correctAnswer": 0, "marks": 5},
        {"text": "Capital of France?", "options": ["Rome", "Madrid", "Paris"], "correctAnswer": 2, "marks": 5},
    ]
