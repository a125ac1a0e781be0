import logging
import math
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from auth import Session, ensure_actor, get_session
from connections import APPROVED
from database import create_document, get_db, oid
from grading import evaluate_submission, sum_marks
from routes.auth_routes import users_by_id
from routes.quiz_routes import get_quiz_or_404
from routes.report_routes import student_reports
from schemas import Report

logger = logging.getLogger("student_routes")

router = APIRouter(prefix="/api/student", tags=["Student"])


class AttemptRequest(BaseModel):
    studentId: str = Field(..., min_length=1)
    quizId: str = Field(..., min_length=1)
    answers: List[Any]
    studentName: Optional[str] = None
    quizTitle: Optional[str] = None
    teacherId: Optional[str] = None
    timeSpent: Optional[Union[str, int, float]] = None


def approved_teacher_ids(student_id: str) -> List[str]:
    links = get_db()["connections"].find({"studentId": student_id, "status": APPROVED})
    return [link["teacherId"] for link in links]


def available_quizzes(student_id: str) -> List[Dict[str, Any]]:
    teacher_ids = approved_teacher_ids(student_id)
    if not teacher_ids:
        return []

    db = get_db()
    quizzes = list(
        db["quizzes"].find({"teacherId": {"$in": teacher_ids}, "isActive": True})
        .sort([("createdAt", -1), ("_id", -1)])
    )
    teachers = users_by_id(q["teacherId"] for q in quizzes)
    teacher_names = {uid: u["name"] for uid, u in teachers.items()}
    attempted = {r["quizId"] for r in db["reports"].find({"studentId": student_id}, {"quizId": 1})}

    return [
        {
            "id": str(q["_id"]),
            "title": q.get("title") or "Untitled Quiz",
            "description": q.get("description") or f"Quiz by {teacher_names.get(q['teacherId'], 'Teacher')}",
            "teacherId": q["teacherId"],
            "teacherName": teacher_names.get(q["teacherId"], "Unknown Teacher"),
            "difficulty": q.get("difficulty", "medium"),
            "duration": q.get("duration", 30),
            "totalMarks": q.get("totalMarks") or sum_marks(q.get("questions") or []),
            "questionsCount": len(q.get("questions") or []),
            "createdAt": q.get("createdAt"),
            "isAttempted": str(q["_id"]) in attempted,
        }
        for q in quizzes
    ]


@router.get("/quizzes/{studentId}")
async def list_available_quizzes(studentId: str):
    oid(studentId, "student")
    quizzes = available_quizzes(studentId)
    response = {"success": True, "quizzes": quizzes}
    if not quizzes and not approved_teacher_ids(studentId):
        response["message"] = "No teachers connected yet"
    return response


@router.post("/quiz/attempt", status_code=201)
async def submit_attempt(payload: AttemptRequest, session: Optional[Session] = Depends(get_session)):
    ensure_actor(session, payload.studentId, role="Student")
    quiz = get_quiz_or_404(payload.quizId)

    evaluation = evaluate_submission(quiz.get("questions") or [], payload.answers, quiz.get("totalMarks"))

    student_name = payload.studentName
    if not student_name:
        student_name = users_by_id([payload.studentId]).get(payload.studentId, {}).get("name", "")

    report = Report(
        studentId=payload.studentId,
        teacherId=payload.teacherId or quiz["teacherId"],
        studentName=student_name,
        quizId=str(quiz["_id"]),
        quizTitle=payload.quizTitle or quiz["title"],
        score=evaluation.score,
        totalMarks=evaluation.totalMarks,
        percentage=evaluation.percentage,
        grade=evaluation.grade,
        timeSpent=str(payload.timeSpent) if payload.timeSpent not in (None, "") else "00:00",
        answers=[a.model_dump() for a in evaluation.answers],
    )
    # every submission is stored; retakes add reports instead of replacing one
    report_id = create_document("reports", report)
    logger.info(
        f"Attempt by {payload.studentId} on quiz {payload.quizId}: "
        f"{evaluation.score}/{evaluation.totalMarks} ({evaluation.percentage}%, {evaluation.grade})"
    )

    return {
        "success": True,
        "message": "Quiz submitted successfully!",
        "report": {
            "id": report_id,
            "score": evaluation.score,
            "totalMarks": evaluation.totalMarks,
            "percentage": evaluation.percentage,
            "grade": evaluation.grade,
            "timeSpent": report.timeSpent,
            "answers": [a.model_dump() for a in evaluation.answers],
        },
    }


@router.get("/dashboard/{studentId}")
async def dashboard(studentId: str):
    oid(studentId, "student")
    quizzes = available_quizzes(studentId)
    reports = student_reports(studentId)
    pending = [q for q in quizzes if not q["isAttempted"]]

    average = 0
    if reports:
        mean = sum(r["percentage"] for r in reports) / len(reports)
        average = int(math.floor(mean + 0.5))

    return {
        "success": True,
        "stats": {
            "totalQuizzesAttempted": len(reports),
            "averageScore": average,
            "pendingQuizzes": len(pending),
            "totalTeachers": len(set(approved_teacher_ids(studentId))),
        },
        "recentActivities": reports[:3],
        "upcomingQuizzes": pending[:2],
    }
