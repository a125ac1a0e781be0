import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from auth import Session, ensure_actor, get_session
from database import create_document, get_db, oid, serialize, utcnow
from grading import sum_marks
from schemas import Difficulty, Question, Quiz, number_questions

logger = logging.getLogger("quiz_routes")

router = APIRouter(prefix="/api", tags=["Quiz"])

DEFAULT_DURATION = 30


class QuizSaveRequest(BaseModel):
    teacherId: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    questions: List[Question]
    description: Optional[str] = ""
    difficulty: Optional[Difficulty] = "medium"
    duration: Optional[int] = DEFAULT_DURATION
    topicId: Optional[str] = None


class QuizUpdateRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    questions: Optional[List[Question]] = None
    difficulty: Optional[Difficulty] = None
    duration: Optional[int] = None
    isActive: Optional[bool] = None


class TimerRequest(BaseModel):
    quizId: str
    studentId: str
    duration: Optional[int] = None


def quiz_summary(quiz: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": str(quiz["_id"]),
        "title": quiz["title"],
        "questionsCount": len(quiz.get("questions") or []),
        "difficulty": quiz.get("difficulty", "medium"),
        "totalMarks": quiz.get("totalMarks", 0),
        "createdAt": quiz.get("createdAt"),
        "updatedAt": quiz.get("updatedAt"),
        "isActive": quiz.get("isActive", True),
    }


def get_quiz_or_404(quiz_id: str) -> Dict[str, Any]:
    quiz = get_db()["quizzes"].find_one({"_id": oid(quiz_id, "quiz")})
    if not quiz:
        raise HTTPException(status_code=404, detail="Quiz not found!")
    return quiz


def _bump_topic_quizzes(topic_id: Optional[str], delta: int) -> None:
    if not topic_id:
        return
    get_db()["topics"].update_one({"_id": oid(topic_id, "topic")}, {"$inc": {"quizzes": delta}})


@router.post("/quizzes/save", status_code=201)
async def save_quiz(payload: QuizSaveRequest, session: Optional[Session] = Depends(get_session)):
    ensure_actor(session, payload.teacherId, role="Teacher")
    db = get_db()

    if payload.topicId and not db["topics"].find_one({"_id": oid(payload.topicId, "topic")}):
        raise HTTPException(status_code=404, detail="Topic not found!")

    questions = number_questions(payload.questions)
    quiz = Quiz(
        teacherId=payload.teacherId,
        title=payload.title.strip(),
        description=payload.description or "",
        difficulty=payload.difficulty or "medium",
        duration=payload.duration or DEFAULT_DURATION,
        topicId=payload.topicId,
    ).model_dump()
    quiz["questions"] = questions
    quiz["totalMarks"] = sum_marks(questions)

    inserted_id = create_document("quizzes", quiz)
    _bump_topic_quizzes(payload.topicId, 1)
    logger.info(f"Quiz {inserted_id} saved by teacher {payload.teacherId} ({len(questions)} questions)")

    saved = db["quizzes"].find_one({"_id": oid(inserted_id)})
    return {"success": True, "message": "Quiz saved successfully!", "quiz": quiz_summary(saved)}


@router.get("/quizzes/teacher/{teacherId}")
async def list_teacher_quizzes(teacherId: str):
    quizzes = get_db()["quizzes"].find({"teacherId": teacherId}).sort([("createdAt", -1), ("_id", -1)])
    return {"success": True, "quizzes": [quiz_summary(q) for q in quizzes]}


@router.get("/quizzes/{quizId}")
async def get_quiz(quizId: str):
    quiz = serialize(get_quiz_or_404(quizId))
    return {
        "success": True,
        "quiz": {
            "id": quiz["id"],
            "teacherId": quiz["teacherId"],
            "title": quiz["title"],
            "description": quiz.get("description", ""),
            "questions": quiz.get("questions", []),
            "difficulty": quiz.get("difficulty", "medium"),
            "duration": quiz.get("duration", DEFAULT_DURATION),
            "totalMarks": quiz.get("totalMarks", 0),
            "isActive": quiz.get("isActive", True),
            "topicId": quiz.get("topicId"),
            "createdAt": quiz.get("createdAt"),
        },
    }


@router.put("/quizzes/update/{quizId}")
async def update_quiz(
    quizId: str,
    payload: QuizUpdateRequest,
    session: Optional[Session] = Depends(get_session),
):
    quiz = get_quiz_or_404(quizId)
    ensure_actor(session, quiz["teacherId"], role="Teacher")

    changes = payload.model_dump(exclude_none=True, exclude={"questions"})
    if "title" in changes:
        changes["title"] = changes["title"].strip() or quiz["title"]
    if payload.questions is not None:
        questions = number_questions(payload.questions)
        changes["questions"] = questions
        changes["totalMarks"] = sum_marks(questions)
    changes["updatedAt"] = utcnow()

    db = get_db()
    db["quizzes"].update_one({"_id": quiz["_id"]}, {"$set": changes})
    logger.info(f"Quiz {quizId} updated: {sorted(changes)}")

    updated = db["quizzes"].find_one({"_id": quiz["_id"]})
    return {"success": True, "message": "Quiz updated successfully!", "quiz": quiz_summary(updated)}


@router.delete("/quizzes/delete/{quizId}")
async def delete_quiz(quizId: str, session: Optional[Session] = Depends(get_session)):
    quiz = get_quiz_or_404(quizId)
    ensure_actor(session, quiz["teacherId"], role="Teacher")

    result = get_db()["quizzes"].delete_one({"_id": quiz["_id"]})
    if result.deleted_count:
        _bump_topic_quizzes(quiz.get("topicId"), -1)
    logger.info(f"Quiz {quizId} deleted")
    return {"success": True, "message": "Quiz deleted successfully!"}


@router.post("/quiz/start-timer")
async def start_timer(payload: TimerRequest):
    duration = payload.duration or DEFAULT_DURATION
    start = utcnow()
    return {
        "success": True,
        "message": "Quiz timer started!",
        "timer": {
            "quizId": payload.quizId,
            "studentId": payload.studentId,
            "startTime": start,
            "endTime": start + timedelta(minutes=duration),
            "duration": duration,
        },
    }
