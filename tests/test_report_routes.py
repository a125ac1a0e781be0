from conftest import save_quiz


def _add(client, teacher_id, student_id, quiz_id, score, total=10, **extra):
    res = client.post("/api/reports/add", json={
        "studentId": student_id,
        "teacherId": teacher_id,
        "quizId": quiz_id,
        "score": score,
        "totalMarks": total,
        **extra,
    })
    assert res.status_code == 201, res.text
    return res.json()["report"]


def test_add_derives_percentage_and_grade(client, teacher, student, two_question_quiz):
    quiz = save_quiz(client, teacher["id"], two_question_quiz, difficulty="hard")
    report = _add(client, teacher["id"], student["id"], quiz["id"], 9, studentName="Ana Lima")
    assert report["percentage"] == 90.0
    assert report["grade"] == "A+"
    assert report["quizTitle"] == "Unit 1"

    listed = client.get(f"/api/reports/teacher/{teacher['id']}").json()["reports"]
    assert listed[0]["student"] == "Ana Lima"
    assert listed[0]["total"] == 10
    assert listed[0]["difficulty"] == "hard"


def test_add_rejects_non_positive_total(client, teacher, student):
    res = client.post("/api/reports/add", json={
        "studentId": student["id"], "teacherId": teacher["id"], "quizId": "x", "score": 1, "totalMarks": 0,
    })
    assert res.status_code == 400


def test_update_recomputes_grade(client, teacher, student, two_question_quiz):
    quiz = save_quiz(client, teacher["id"], two_question_quiz)
    report = _add(client, teacher["id"], student["id"], quiz["id"], 5)
    res = client.put(f"/api/reports/update/{report['id']}", json={"score": 8.99})
    updated = res.json()["report"]
    assert updated["percentage"] == 89.9
    assert updated["grade"] == "A"


def test_delete_report(client, db, teacher, student):
    report = _add(client, teacher["id"], student["id"], "quiz", 5)
    assert client.delete(f"/api/reports/delete/{report['id']}").status_code == 200
    assert db["reports"].count_documents({}) == 0
    assert client.delete(f"/api/reports/delete/{report['id']}").status_code == 404


def test_student_reports_newest_first(client, teacher, student):
    _add(client, teacher["id"], student["id"], "quiz", 2)
    _add(client, teacher["id"], student["id"], "quiz", 7)
    reports = client.get(f"/api/student/reports/{student['id']}").json()["reports"]
    assert [r["score"] for r in reports] == [7, 2]
    assert reports[0]["difficulty"] == "medium"


def test_analytics(client, teacher, student, two_question_quiz):
    save_quiz(client, teacher["id"], two_question_quiz, title="Algebra")
    _add(client, teacher["id"], student["id"], "a", 4, quizTitle="Algebra")
    _add(client, teacher["id"], student["id"], "a", 9, quizTitle="Algebra")
    _add(client, teacher["id"], student["id"], "b", 6, quizTitle="Biology")

    body = client.get(f"/api/reports/analytics/{teacher['id']}").json()
    algebra, biology = body["analytics"]
    assert algebra["quizTitle"] == "Algebra"
    assert algebra["averageScore"] == 6.5
    assert (algebra["highestScore"], algebra["lowestScore"], algebra["totalStudents"]) == (9, 4, 2)
    assert algebra["averagePercentage"] == 65.0
    assert biology["totalStudents"] == 1
    assert body["quizzes"] == ["Algebra"]

    filtered = client.get(f"/api/reports/analytics/{teacher['id']}", params={"quizFilter": "Biology"}).json()
    assert [a["quizTitle"] for a in filtered["analytics"]] == ["Biology"]
