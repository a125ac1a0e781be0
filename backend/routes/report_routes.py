import logging
from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from auth import Session, ensure_actor, get_session
from database import create_document, get_db, oid, serialize
from grading import get_grade, round_percentage
from schemas import Report, ReportAnswer

logger = logging.getLogger("report_routes")

router = APIRouter(prefix="/api", tags=["Report"])


class ReportAddRequest(BaseModel):
    studentId: str = Field(..., min_length=1)
    teacherId: str = Field(..., min_length=1)
    quizId: str = Field(..., min_length=1)
    score: float = Field(..., ge=0)
    totalMarks: float = Field(..., gt=0)
    studentName: str = ""
    quizTitle: str = ""
    answers: List[ReportAnswer] = []
    timeSpent: Optional[str] = None


class ReportUpdateRequest(BaseModel):
    score: Optional[float] = Field(None, ge=0)
    totalMarks: Optional[float] = Field(None, gt=0)
    timeSpent: Optional[str] = None
    answers: Optional[List[ReportAnswer]] = None


def _difficulties(reports: Iterable[Dict[str, Any]]) -> Dict[str, str]:
    quiz_ids = [ObjectId(r["quizId"]) for r in reports if ObjectId.is_valid(r.get("quizId", ""))]
    if not quiz_ids:
        return {}
    quizzes = get_db()["quizzes"].find({"_id": {"$in": quiz_ids}}, {"difficulty": 1})
    return {str(q["_id"]): q.get("difficulty", "medium") for q in quizzes}


def _newest_first(filter_dict: Dict[str, Any]) -> List[Dict[str, Any]]:
    return list(get_db()["reports"].find(filter_dict).sort([("date", -1), ("_id", -1)]))


def student_reports(student_id: str) -> List[Dict[str, Any]]:
    reports = _newest_first({"studentId": student_id})
    difficulty = _difficulties(reports)
    return [
        {
            "id": str(r["_id"]),
            "quizId": r["quizId"],
            "quizTitle": r.get("quizTitle", ""),
            "score": r["score"],
            "totalMarks": r["totalMarks"],
            "percentage": r["percentage"],
            "grade": r.get("grade"),
            "date": r.get("date"),
            "timeSpent": r.get("timeSpent", "00:00"),
            "difficulty": difficulty.get(r["quizId"], "medium"),
        }
        for r in reports
    ]


def get_report_or_404(report_id: str) -> Dict[str, Any]:
    report = get_db()["reports"].find_one({"_id": oid(report_id, "report")})
    if not report:
        raise HTTPException(status_code=404, detail="Report not found!")
    return report


@router.get("/reports/teacher/{teacherId}")
async def list_teacher_reports(teacherId: str):
    reports = _newest_first({"teacherId": teacherId})
    difficulty = _difficulties(reports)
    return {
        "success": True,
        "reports": [
            {
                "id": str(r["_id"]),
                "studentId": r["studentId"],
                "student": r.get("studentName", ""),
                "quizId": r["quizId"],
                "quiz": r.get("quizTitle", ""),
                "score": r["score"],
                "total": r["totalMarks"],
                "percentage": r["percentage"],
                "date": r.get("date"),
                "timeSpent": r.get("timeSpent", "00:00"),
                "status": r.get("status", "completed"),
                "grade": r.get("grade"),
                "difficulty": difficulty.get(r["quizId"], "medium"),
            }
            for r in reports
        ],
    }


@router.get("/student/reports/{studentId}")
async def list_student_reports(studentId: str):
    return {"success": True, "reports": student_reports(studentId)}


@router.post("/reports/add", status_code=201)
async def add_report(payload: ReportAddRequest, session: Optional[Session] = Depends(get_session)):
    ensure_actor(session, payload.teacherId, role="Teacher")
    quiz_title = payload.quizTitle
    if not quiz_title and ObjectId.is_valid(payload.quizId):
        quiz = get_db()["quizzes"].find_one({"_id": ObjectId(payload.quizId)}, {"title": 1})
        quiz_title = quiz["title"] if quiz else ""

    percentage = round_percentage(payload.score, payload.totalMarks)
    report = Report(
        studentId=payload.studentId,
        teacherId=payload.teacherId,
        studentName=payload.studentName,
        quizId=payload.quizId,
        quizTitle=quiz_title,
        score=payload.score,
        totalMarks=payload.totalMarks,
        percentage=percentage,
        grade=get_grade(percentage),
        timeSpent=payload.timeSpent or "00:00",
        answers=payload.answers,
    )
    report_id = create_document("reports", report)
    logger.info(f"Report {report_id} added for student {payload.studentId}")

    saved = get_db()["reports"].find_one({"_id": oid(report_id)})
    return {"success": True, "message": "Report saved successfully!", "report": serialize(saved)}


@router.put("/reports/update/{reportId}")
async def update_report(
    reportId: str,
    payload: ReportUpdateRequest,
    session: Optional[Session] = Depends(get_session),
):
    report = get_report_or_404(reportId)
    ensure_actor(session, report["teacherId"], role="Teacher")

    changes: Dict[str, Any] = {}
    if payload.score is not None:
        changes["score"] = payload.score
    if payload.totalMarks is not None:
        changes["totalMarks"] = payload.totalMarks
    if payload.timeSpent:
        changes["timeSpent"] = payload.timeSpent
    if payload.answers is not None:
        changes["answers"] = [a.model_dump() for a in payload.answers]

    score = changes.get("score", report["score"])
    total = changes.get("totalMarks", report["totalMarks"])
    changes["percentage"] = round_percentage(score, total)
    changes["grade"] = get_grade(changes["percentage"])

    db = get_db()
    db["reports"].update_one({"_id": report["_id"]}, {"$set": changes})
    logger.info(f"Report {reportId} updated")
    return {
        "success": True,
        "message": "Report updated successfully!",
        "report": serialize(db["reports"].find_one({"_id": report["_id"]})),
    }


@router.delete("/reports/delete/{reportId}")
async def delete_report(reportId: str, session: Optional[Session] = Depends(get_session)):
    report = get_report_or_404(reportId)
    ensure_actor(session, report["teacherId"], role="Teacher")
    get_db()["reports"].delete_one({"_id": report["_id"]})
    logger.info(f"Report {reportId} deleted")
    return {"success": True, "message": "Report deleted successfully!"}


@router.get("/reports/analytics/{teacherId}")
async def report_analytics(teacherId: str, quizFilter: Optional[str] = None):
    match: Dict[str, Any] = {"teacherId": teacherId}
    if quizFilter and quizFilter != "all":
        match["quizTitle"] = quizFilter

    db = get_db()
    groups = db["reports"].aggregate([
        {"$match": match},
        {"$group": {
            "_id": "$quizTitle",
            "averageScore": {"$avg": "$score"},
            "highestScore": {"$max": "$score"},
            "lowestScore": {"$min": "$score"},
            "totalStudents": {"$sum": 1},
            "totalMarks": {"$first": "$totalMarks"},
            "averagePercentage": {"$avg": "$percentage"},
        }},
        {"$sort": {"_id": 1}},
    ])
    analytics = [
        {
            "quizTitle": g["_id"],
            "averageScore": round(g["averageScore"], 1),
            "highestScore": g["highestScore"],
            "lowestScore": g["lowestScore"],
            "totalStudents": g["totalStudents"],
            "totalMarks": g["totalMarks"],
            "averagePercentage": round(g["averagePercentage"], 1),
        }
        for g in groups
    ]
    titles = [q["title"] for q in db["quizzes"].find({"teacherId": teacherId}, {"title": 1})]
    return {"success": True, "analytics": analytics, "quizzes": titles}
