import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, EmailStr, Field
from pymongo import UpdateOne
from pymongo.errors import DuplicateKeyError

from auth import Session, ensure_actor, get_session
from connections import APPROVED
from database import create_document, get_db, oid, serialize, utcnow
from routes.auth_routes import users_by_id
from roster import RosterGateError, RosterState, apply_gate
from schemas import Student

logger = logging.getLogger("roster_routes")

router = APIRouter(prefix="/api", tags=["Roster"])

LINKED_DEFAULT_COURSE = "CS-101"


class StudentAddRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    course: str = Field(..., min_length=1)
    teacherId: str = Field(..., min_length=1)


class StudentFields(BaseModel):
    attendance: Optional[bool] = None
    allowed: Optional[bool] = None
    name: Optional[str] = None
    course: Optional[str] = None


class BulkItem(BaseModel):
    studentId: str
    fields: StudentFields


class BulkUpdateRequest(BaseModel):
    teacherId: str
    updates: List[BulkItem]


def gated_changes(doc: Dict[str, Any], fields: StudentFields) -> Dict[str, Any]:
    try:
        state = apply_gate(RosterState.of(doc), attendance=fields.attendance, allowed=fields.allowed)
    except RosterGateError as e:
        raise HTTPException(status_code=400, detail=str(e))

    changes: Dict[str, Any] = state._asdict()
    if fields.name and fields.name.strip():
        changes["name"] = fields.name.strip()
    if fields.course and fields.course.strip():
        changes["course"] = fields.course.strip()
    changes["lastUpdated"] = utcnow()
    return changes


def get_student_or_404(student_id: str) -> Dict[str, Any]:
    student = get_db()["students"].find_one({"_id": oid(student_id, "student")})
    if not student:
        raise HTTPException(status_code=404, detail="Student not found!")
    return student


def merged_roster(teacher_id: str) -> List[Dict[str, Any]]:
    # roster entries plus linked students not on the roster yet
    db = get_db()
    by_email: Dict[str, Dict[str, Any]] = {}
    for student in db["students"].find({"teacherId": teacher_id}):
        row = serialize(student)
        row["source"] = "studentModel"
        by_email[student["email"]] = row

    links = list(db["connections"].find({"teacherId": teacher_id, "status": APPROVED}))
    users = users_by_id(link["studentId"] for link in links)

    for link in links:
        user = users.get(link["studentId"])
        if not user or user["email"] in by_email:
            continue
        by_email[user["email"]] = {
            "id": str(user["_id"]),
            "name": user["name"],
            "email": user["email"],
            "course": link.get("course") or LINKED_DEFAULT_COURSE,
            "teacherId": teacher_id,
            "attendance": False,
            "allowed": False,
            "lastUpdated": utcnow().isoformat(),
            "source": "connection",
        }
    return list(by_email.values())


@router.get("/students/teacher/{teacherId}")
async def list_students(teacherId: str):
    return {"success": True, "students": merged_roster(teacherId)}


@router.get("/teacher/students/{teacherId}")
async def list_all_students(teacherId: str):
    return {"success": True, "students": merged_roster(teacherId)}


@router.post("/students/add", status_code=201)
async def add_student(payload: StudentAddRequest, session: Optional[Session] = Depends(get_session)):
    ensure_actor(session, payload.teacherId, role="Teacher")
    db = get_db()
    email = payload.email.lower()
    if db["students"].find_one({"email": email, "teacherId": payload.teacherId}):
        raise HTTPException(status_code=400, detail="Student with this email already exists!")

    student = Student(
        name=payload.name.strip(),
        email=email,
        course=payload.course.strip(),
        teacherId=payload.teacherId,
    )
    try:
        inserted_id = create_document("students", student)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Student with this email already exists!")

    logger.info(f"Student {email} added to roster of teacher {payload.teacherId}")
    return {
        "success": True,
        "message": "Student added successfully!",
        "student": serialize(db["students"].find_one({"_id": oid(inserted_id)})),
    }


@router.put("/students/update/{studentId}")
async def update_student(
    studentId: str,
    payload: StudentFields,
    session: Optional[Session] = Depends(get_session),
):
    student = get_student_or_404(studentId)
    ensure_actor(session, student["teacherId"], role="Teacher")

    changes = gated_changes(student, payload)
    db = get_db()
    db["students"].update_one({"_id": student["_id"]}, {"$set": changes})
    return {
        "success": True,
        "message": "Student updated successfully!",
        "student": serialize(db["students"].find_one({"_id": student["_id"]})),
    }


@router.delete("/students/delete/{studentId}")
async def delete_student(studentId: str, session: Optional[Session] = Depends(get_session)):
    student = get_student_or_404(studentId)
    ensure_actor(session, student["teacherId"], role="Teacher")
    get_db()["students"].delete_one({"_id": student["_id"]})
    logger.info(f"Student {studentId} removed from roster")
    return {"success": True, "message": "Student deleted successfully!"}


@router.put("/students/bulk-update")
async def bulk_update_students(payload: BulkUpdateRequest, session: Optional[Session] = Depends(get_session)):
    ensure_actor(session, payload.teacherId, role="Teacher")
    db = get_db()

    # validate every update first so a rejected one leaves the roster untouched
    operations = []
    staged: Dict[Any, Dict[str, Any]] = {}
    for item in payload.updates:
        _id = oid(item.studentId, "student")
        student = staged.get(_id)
        if student is None:
            student = db["students"].find_one({"_id": _id, "teacherId": payload.teacherId})
            if not student:
                raise HTTPException(status_code=404, detail=f"Student {item.studentId} not found!")
        # a repeated id is gated against the state left by its earlier updates
        changes = gated_changes(student, item.fields)
        staged[_id] = {**student, **changes}
        operations.append(UpdateOne({"_id": _id}, {"$set": changes}))

    modified = 0
    if operations:
        modified = db["students"].bulk_write(operations).modified_count
    logger.info(f"Bulk roster update for teacher {payload.teacherId}: {modified} modified")
    return {"success": True, "message": "Bulk update completed successfully!", "modified": modified}
