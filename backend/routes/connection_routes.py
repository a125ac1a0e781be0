import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from auth import Session, ensure_actor, get_session
from connections import ACTIVE_STATUSES, APPROVED, PENDING, Action, ConnectionStateError, request_conflict, resolve
from database import create_document, get_db, oid, utcnow
from routes.auth_routes import users_by_id
from schemas import Connection

logger = logging.getLogger("connection_routes")

router = APIRouter(prefix="/api", tags=["Connection"])


class ConnectionRequest(BaseModel):
    teacherId: str = Field(..., min_length=1)
    studentId: str = Field(..., min_length=1)
    course: Optional[str] = None


class ConnectionResponse(BaseModel):
    connectionId: str
    action: Action
    teacherId: Optional[str] = None


def _with_student(links: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    students = users_by_id(link["studentId"] for link in links)
    rows = []
    for link in links:
        student = students.get(link["studentId"], {})
        rows.append({
            "id": str(link["_id"]),
            "studentId": link["studentId"],
            "teacherId": link["teacherId"],
            "name": student.get("name", ""),
            "email": student.get("email", ""),
            "course": link.get("course"),
            "status": link["status"],
            "requestedAt": link.get("requestedAt"),
            "respondedAt": link.get("respondedAt"),
        })
    return rows


def _with_teacher(links: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    teachers = users_by_id(link["teacherId"] for link in links)
    rows = []
    for link in links:
        teacher = teachers.get(link["teacherId"], {})
        rows.append({
            "id": str(link["_id"]),
            "teacherId": link["teacherId"],
            "teacherName": teacher.get("name", ""),
            "teacherEmail": teacher.get("email", ""),
            "course": link.get("course"),
            "status": link["status"],
            "requestedAt": link.get("requestedAt"),
            "respondedAt": link.get("respondedAt"),
        })
    return rows


def get_connection_or_404(connection_id: str) -> Dict[str, Any]:
    link = get_db()["connections"].find_one({"_id": oid(connection_id, "connection")})
    if not link:
        raise HTTPException(status_code=404, detail="Connection request not found!")
    return link


@router.post("/connections/request", status_code=201)
async def request_connection(payload: ConnectionRequest, session: Optional[Session] = Depends(get_session)):
    if session is not None and session.uid not in (payload.teacherId, payload.studentId):
        raise HTTPException(status_code=403, detail="You can only act on your own account!")

    db = get_db()
    existing = db["connections"].find({
        "teacherId": payload.teacherId,
        "studentId": payload.studentId,
        "status": {"$in": list(ACTIVE_STATUSES)},
    })
    conflict = request_conflict(existing)
    if conflict:
        logger.warning(f"Refused connection {payload.studentId} -> {payload.teacherId}: {conflict}")
        raise HTTPException(status_code=400, detail=conflict)

    connection = Connection(
        teacherId=payload.teacherId,
        studentId=payload.studentId,
        course=payload.course or "General",
    )
    connection_id = create_document("connections", connection)
    logger.info(f"Connection {connection_id} requested: student {payload.studentId}, teacher {payload.teacherId}")

    saved = db["connections"].find_one({"_id": oid(connection_id)})
    return {
        "success": True,
        "message": "Connection request sent successfully!",
        "connection": _with_student([saved])[0],
    }


@router.post("/connections/respond")
async def respond_to_connection(payload: ConnectionResponse, session: Optional[Session] = Depends(get_session)):
    link = get_connection_or_404(payload.connectionId)
    if payload.teacherId is not None and payload.teacherId != link["teacherId"]:
        raise HTTPException(status_code=403, detail="Only the requested teacher can respond!")
    ensure_actor(session, link["teacherId"], role="Teacher")

    try:
        status = resolve(link["status"], payload.action)
    except ConnectionStateError as e:
        raise HTTPException(status_code=400, detail=str(e))

    db = get_db()
    # the status filter keeps a concurrent response from overwriting this one
    result = db["connections"].update_one(
        {"_id": link["_id"], "status": PENDING},
        {"$set": {"status": status, "respondedAt": utcnow()}},
    )
    if result.modified_count == 0:
        raise HTTPException(status_code=400, detail="Request has already been answered!")
    logger.info(f"Connection {payload.connectionId} {status}")

    updated = db["connections"].find_one({"_id": link["_id"]})
    return {
        "success": True,
        "message": f"Request {status} successfully!",
        "connection": _with_student([updated])[0],
    }


@router.delete("/connections/remove/{connectionId}")
async def remove_connection(connectionId: str, session: Optional[Session] = Depends(get_session)):
    link = get_connection_or_404(connectionId)
    if session is not None and session.uid not in (link["teacherId"], link["studentId"]):
        raise HTTPException(status_code=403, detail="You can only act on your own account!")
    get_db()["connections"].delete_one({"_id": link["_id"]})
    logger.info(f"Connection {connectionId} removed")
    return {"success": True, "message": "Student removed successfully!"}


@router.get("/connections/stats/{teacherId}")
async def connection_stats(teacherId: str):
    groups = get_db()["connections"].aggregate([
        {"$match": {"teacherId": teacherId}},
        {"$group": {"_id": "$status", "count": {"$sum": 1}}},
    ])
    counts = {g["_id"]: g["count"] for g in groups}
    linked = counts.get(APPROVED, 0)
    pending = counts.get(PENDING, 0)
    return {
        "success": True,
        "stats": {"totalLinked": linked, "totalPending": pending, "totalConnections": linked + pending},
    }


@router.get("/connections/pending/{teacherId}")
async def pending_requests(teacherId: str):
    links = list(get_db()["connections"].find({"teacherId": teacherId, "status": PENDING}))
    return {"success": True, "requests": _with_student(links)}


@router.get("/connections/linked/{teacherId}")
async def linked_students(teacherId: str):
    links = list(get_db()["connections"].find({"teacherId": teacherId, "status": APPROVED}))
    return {"success": True, "students": _with_student(links)}


@router.get("/connections/find/{studentId}/{teacherId}")
async def find_connection(studentId: str, teacherId: str):
    link = get_db()["connections"].find_one({"studentId": studentId, "teacherId": teacherId, "status": APPROVED})
    return {"success": True, "connection": _with_student([link])[0] if link else None}


@router.get("/student/connections/pending/{studentId}")
async def student_pending_requests(studentId: str):
    links = list(get_db()["connections"].find({"studentId": studentId, "status": PENDING}))
    return {"success": True, "requests": _with_teacher(links)}


@router.get("/student/teachers/{studentId}")
async def student_teachers(studentId: str):
    links = list(get_db()["connections"].find({"studentId": studentId, "status": APPROVED}))
    return {
        "success": True,
        "teachers": [
            {
                "id": row["teacherId"],
                "name": row["teacherName"],
                "email": row["teacherEmail"],
                "course": row["course"],
                "connectedAt": row["respondedAt"],
            }
            for row in _with_teacher(links)
        ],
    }
