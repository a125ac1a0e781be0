from conftest import auth_header, link, register, save_quiz


def _attempt(client, student_id, quiz_id, answers, **extra):
    return client.post("/api/student/quiz/attempt", json={
        "studentId": student_id,
        "quizId": quiz_id,
        "answers": answers,
        **extra,
    })


def test_quizzes_are_visible_only_through_approved_links(client, teacher, student, two_question_quiz):
    other = register(client, "Teacher", "Alan Turing", "alan@school.edu")
    save_quiz(client, teacher["id"], two_question_quiz, title="Linked")
    save_quiz(client, other["id"], two_question_quiz, title="Not linked")

    body = client.get(f"/api/student/quizzes/{student['id']}").json()
    assert body["quizzes"] == []
    assert body["message"] == "No teachers connected yet"

    client.post("/api/connections/request", json={"teacherId": other["id"], "studentId": student["id"]})
    link(client, teacher["id"], student["id"])

    quizzes = client.get(f"/api/student/quizzes/{student['id']}").json()["quizzes"]
    assert [q["title"] for q in quizzes] == ["Linked"]
    assert quizzes[0]["teacherName"] == "Grace Hopper"
    assert quizzes[0]["totalMarks"] == 10
    assert quizzes[0]["isAttempted"] is False


def test_inactive_quizzes_are_hidden(client, teacher, student, two_question_quiz):
    link(client, teacher["id"], student["id"])
    quiz = save_quiz(client, teacher["id"], two_question_quiz)
    client.put(f"/api/quizzes/update/{quiz['id']}", json={"isActive": False})
    assert client.get(f"/api/student/quizzes/{student['id']}").json()["quizzes"] == []


def test_attempt_is_graded_and_stored(client, db, teacher, student, two_question_quiz):
    quiz = save_quiz(client, teacher["id"], two_question_quiz)
    res = _attempt(client, student["id"], quiz["id"], [{"selectedAnswer": 0}, {"selectedAnswer": 1}], timeSpent="03:20")
    assert res.status_code == 201
    report = res.json()["report"]
    assert (report["score"], report["totalMarks"], report["percentage"], report["grade"]) == (5, 10, 50.0, "F")
    assert report["timeSpent"] == "03:20"
    assert [a["isCorrect"] for a in report["answers"]] == [True, False]

    stored = db["reports"].find_one()
    assert stored["studentName"] == "Ana Lima"
    assert stored["quizTitle"] == "Unit 1"
    assert stored["teacherId"] == teacher["id"]
    assert stored["status"] == "completed"


def test_string_answer_key_is_graded_as_index(client, teacher, student):
    quiz = save_quiz(client, teacher["id"], [{"text": "Pick", "options": ["a", "b", "c"], "correctAnswer": "2"}])
    report = _attempt(client, student["id"], quiz["id"], [{"selectedAnswer": 2}]).json()["report"]
    assert report["answers"][0]["isCorrect"] is True
    assert report["percentage"] == 100.0
    assert report["grade"] == "A+"


def test_each_submission_creates_a_new_report(client, db, teacher, student, two_question_quiz):
    quiz = save_quiz(client, teacher["id"], two_question_quiz)
    first = _attempt(client, student["id"], quiz["id"], [0, 2]).json()["report"]
    second = _attempt(client, student["id"], quiz["id"], [1, 1]).json()["report"]

    assert first["id"] != second["id"]
    assert db["reports"].count_documents({"studentId": student["id"], "quizId": quiz["id"]}) == 2
    assert [r["score"] for r in client.get(f"/api/student/reports/{student['id']}").json()["reports"]] == [0, 10]


def test_attempt_on_missing_quiz(client, student):
    assert _attempt(client, student["id"], "0" * 24, []).status_code == 404
    assert _attempt(client, student["id"], "bad", []).status_code == 400


def test_attempt_as_someone_else_is_forbidden(client, teacher, student, two_question_quiz):
    quiz = save_quiz(client, teacher["id"], two_question_quiz)
    register(client, "Student", "Bo Chen", "bo@school.edu")
    headers = auth_header(client, "Student", "bo@school.edu")
    res = client.post("/api/student/quiz/attempt", headers=headers, json={
        "studentId": student["id"], "quizId": quiz["id"], "answers": [0, 2],
    })
    assert res.status_code == 403


def test_dashboard(client, teacher, student, two_question_quiz):
    link(client, teacher["id"], student["id"])
    done = save_quiz(client, teacher["id"], two_question_quiz, title="Done")
    save_quiz(client, teacher["id"], two_question_quiz, title="Open")
    _attempt(client, student["id"], done["id"], [0, 2])
    _attempt(client, student["id"], done["id"], [0, 1])

    body = client.get(f"/api/student/dashboard/{student['id']}").json()
    assert body["stats"] == {
        "totalQuizzesAttempted": 2,
        "averageScore": 75,
        "pendingQuizzes": 1,
        "totalTeachers": 1,
    }
    assert [q["title"] for q in body["upcomingQuizzes"]] == ["Open"]
    assert len(body["recentActivities"]) == 2


def test_invalid_student_id(client):
    res = client.get("/api/student/quizzes/not-an-id")
    assert res.status_code == 400
    assert res.json()["message"] == "Invalid student ID!"
