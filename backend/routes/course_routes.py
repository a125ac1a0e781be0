import logging
from typing import Any, Dict, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from auth import Session, ensure_actor, get_session
from database import create_document, get_db, oid
from schemas import Course, Difficulty, Topic

logger = logging.getLogger("course_routes")

router = APIRouter(prefix="/api", tags=["Course"])


class CourseCreateRequest(BaseModel):
    teacherId: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    code: str = Field(..., min_length=1)
    description: Optional[str] = ""
    credits: Optional[int] = None
    department: Optional[str] = None


class TopicCreateRequest(BaseModel):
    courseId: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    description: Optional[str] = ""
    duration: Optional[int] = None
    difficulty: Optional[Difficulty] = None


def course_row(course: Dict[str, Any]) -> Dict[str, Any]:
    created = course.get("createdAt")
    return {
        "id": str(course["_id"]),
        "title": course["title"],
        "code": course["code"],
        "description": course.get("description", ""),
        "credits": course.get("credits", 3),
        "department": course.get("department", "Computer Science"),
        "students": course.get("students", 0),
        "topics": course.get("topics", 0),
        "createdAt": created.date().isoformat() if created else None,
        "status": course.get("status", "active"),
    }


def topic_row(topic: Dict[str, Any], course: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    row = {
        "id": str(topic["_id"]),
        "courseId": topic["courseId"],
        "title": topic["title"],
        "description": topic.get("description", ""),
        "duration": topic.get("duration", 1),
        "difficulty": topic.get("difficulty", "medium"),
        "order": topic.get("order"),
        "quizzes": topic.get("quizzes", 0),
        "createdAt": topic.get("createdAt"),
    }
    if course is not None:
        row["courseTitle"] = course["title"]
        row["courseCode"] = course["code"]
    return row


def get_course_or_404(course_id: str) -> Dict[str, Any]:
    course = get_db()["courses"].find_one({"_id": oid(course_id, "course")})
    if not course:
        raise HTTPException(status_code=404, detail="Course not found!")
    return course


@router.get("/courses/teacher/{teacherId}")
async def list_courses(teacherId: str):
    courses = get_db()["courses"].find({"teacherId": teacherId}).sort([("createdAt", -1), ("_id", -1)])
    return {"success": True, "courses": [course_row(c) for c in courses]}


@router.post("/courses/create", status_code=201)
async def create_course(payload: CourseCreateRequest, session: Optional[Session] = Depends(get_session)):
    ensure_actor(session, payload.teacherId, role="Teacher")
    db = get_db()
    course = Course(
        teacherId=payload.teacherId,
        title=payload.title.strip(),
        code=payload.code,
        description=payload.description or "",
        credits=payload.credits or 3,
        department=payload.department or "Computer Science",
    )
    if db["courses"].find_one({"teacherId": payload.teacherId, "code": course.code}):
        raise HTTPException(status_code=400, detail="Course with this code already exists!")

    course_id = create_document("courses", course)
    logger.info(f"Course {course.code} ({course_id}) created by teacher {payload.teacherId}")
    return {
        "success": True,
        "message": "Course created successfully!",
        "course": course_row(db["courses"].find_one({"_id": oid(course_id)})),
    }


@router.delete("/courses/{courseId}")
async def delete_course(courseId: str, session: Optional[Session] = Depends(get_session)):
    course = get_course_or_404(courseId)
    ensure_actor(session, course["teacherId"], role="Teacher")
    db = get_db()
    db["courses"].delete_one({"_id": course["_id"]})
    removed = db["topics"].delete_many({"courseId": courseId}).deleted_count
    logger.info(f"Course {courseId} deleted with {removed} topics")
    return {"success": True, "message": "Course deleted successfully!"}


@router.get("/topics/course/{courseId}")
async def list_course_topics(courseId: str):
    topics = get_db()["topics"].find({"courseId": courseId}).sort("order", 1)
    return {"success": True, "topics": [topic_row(t) for t in topics]}


@router.post("/topics/create", status_code=201)
async def create_topic(payload: TopicCreateRequest, session: Optional[Session] = Depends(get_session)):
    course = get_course_or_404(payload.courseId)
    ensure_actor(session, course["teacherId"], role="Teacher")
    db = get_db()

    last = db["topics"].find_one({"courseId": payload.courseId}, sort=[("order", -1)])
    topic = Topic(
        courseId=payload.courseId,
        title=payload.title.strip(),
        description=payload.description or "",
        duration=payload.duration or 1,
        difficulty=payload.difficulty or "medium",
        order=(last.get("order") or 0) + 1 if last else 1,
    )
    topic_id = create_document("topics", topic)
    db["courses"].update_one({"_id": course["_id"]}, {"$inc": {"topics": 1}})
    logger.info(f"Topic {topic_id} added to course {payload.courseId}")

    return {
        "success": True,
        "message": "Topic added successfully!",
        "topic": topic_row(db["topics"].find_one({"_id": oid(topic_id)})),
    }


@router.delete("/topics/{topicId}")
async def delete_topic(topicId: str, session: Optional[Session] = Depends(get_session)):
    db = get_db()
    topic = db["topics"].find_one({"_id": oid(topicId, "topic")})
    if not topic:
        raise HTTPException(status_code=404, detail="Topic not found!")
    if session is not None and ObjectId.is_valid(topic["courseId"]):
        course = db["courses"].find_one({"_id": ObjectId(topic["courseId"])}, {"teacherId": 1})
        if course:
            ensure_actor(session, course["teacherId"], role="Teacher")

    # only the request that actually removed the topic decrements the counter
    if db["topics"].find_one_and_delete({"_id": topic["_id"]}) is None:
        raise HTTPException(status_code=404, detail="Topic not found!")
    if ObjectId.is_valid(topic["courseId"]):
        db["courses"].update_one({"_id": ObjectId(topic["courseId"])}, {"$inc": {"topics": -1}})
    logger.info(f"Topic {topicId} deleted from course {topic['courseId']}")
    return {"success": True, "message": "Topic deleted successfully!"}


@router.get("/topics/teacher/{teacherId}")
async def list_teacher_topics(teacherId: str):
    db = get_db()
    courses = {str(c["_id"]): c for c in db["courses"].find({"teacherId": teacherId})}
    if not courses:
        return {"success": True, "topics": []}
    topics = db["topics"].find({"courseId": {"$in": list(courses)}}).sort([("createdAt", -1), ("_id", -1)])
    return {"success": True, "topics": [topic_row(t, courses[t["courseId"]]) for t in topics]}
