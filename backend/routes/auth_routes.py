import logging
import re
from typing import Any, Dict, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, EmailStr, Field
from pymongo.errors import DuplicateKeyError

from auth import Session, ensure_actor, get_session, hash_password, session_token, verify_password
from database import create_document, get_db, oid
from schemas import Role, User

logger = logging.getLogger("auth_routes")

router = APIRouter(prefix="/api", tags=["Auth"])

MIN_PASSWORD_LENGTH = 6


class RegisterRequest(BaseModel):
    role: Role
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str
    confirm: str


class LoginRequest(BaseModel):
    role: Role
    email: str
    password: str


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None


def user_summary(user: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": str(user["_id"]),
        "role": user["role"],
        "name": user["name"],
        "email": user["email"],
    }


def users_by_id(user_ids) -> Dict[str, Dict[str, Any]]:
    # invalid ids are skipped
    object_ids = [ObjectId(u) for u in set(user_ids) if ObjectId.is_valid(u)]
    if not object_ids:
        return {}
    users = get_db()["users"].find({"_id": {"$in": object_ids}}, {"name": 1, "email": 1, "role": 1})
    return {str(u["_id"]): u for u in users}


def search_users(role: str, query: str):
    pattern = {"$regex": re.escape(query), "$options": "i"}
    return list(get_db()["users"].find(
        {"role": role, "$or": [{"name": pattern}, {"email": pattern}]},
        {"name": 1, "email": 1},
    ))


@router.post("/register", status_code=201)
async def register(payload: RegisterRequest):
    if payload.password != payload.confirm:
        raise HTTPException(status_code=400, detail="Passwords do not match!")
    if len(payload.password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters long!",
        )

    db = get_db()
    email = payload.email.lower()
    if db["users"].find_one({"email": email}):
        raise HTTPException(status_code=400, detail="User already exists with this email!")

    user = User(
        role=payload.role,
        name=payload.name.strip(),
        email=email,
        password=hash_password(payload.password),
    )
    try:
        inserted_id = create_document("users", user)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="User already exists with this email!")

    logger.info(f"Registered {payload.role} {email}")
    saved = db["users"].find_one({"_id": oid(inserted_id)})
    return {
        "success": True,
        "message": f"{payload.role} registered successfully!",
        "user": user_summary(saved),
    }


@router.post("/login")
async def login(payload: LoginRequest):
    db = get_db()
    user = db["users"].find_one({"email": payload.email.strip().lower()})
    if not user:
        raise HTTPException(status_code=400, detail="Invalid email or password!")
    if user["role"] != payload.role:
        raise HTTPException(status_code=400, detail=f"No {payload.role} account found with this email!")
    if not verify_password(payload.password, user.get("password", "")):
        logger.warning(f"Failed login for {user['email']}")
        raise HTTPException(status_code=400, detail="Invalid email or password!")

    return {
        "success": True,
        "message": f"{payload.role} logged in successfully!",
        "user": user_summary(user),
        "access_token": session_token(user),
        "token_type": "bearer",
    }


@router.get("/students/search")
async def search_students(query: Optional[str] = None, teacherId: Optional[str] = None):
    if not query or not query.strip():
        raise HTTPException(status_code=400, detail="Search query is required!")

    students = search_users("Student", query.strip())
    linked_ids = set()
    if teacherId:
        links = get_db()["connections"].find({
            "teacherId": teacherId,
            "studentId": {"$in": [str(s["_id"]) for s in students]},
        })
        linked_ids = {link["studentId"] for link in links}

    return {
        "success": True,
        "students": [
            {
                "id": str(s["_id"]),
                "studentId": str(s["_id"]),
                "name": s["name"],
                "email": s["email"],
                "isLinked": str(s["_id"]) in linked_ids,
            }
            for s in students
        ],
    }


@router.get("/teachers/search")
async def search_teachers(query: Optional[str] = None):
    if not query or not query.strip():
        raise HTTPException(status_code=400, detail="Search query is required!")
    teachers = search_users("Teacher", query.strip())
    return {
        "success": True,
        "teachers": [{"id": str(t["_id"]), "name": t["name"], "email": t["email"]} for t in teachers],
    }


@router.put("/student/profile/{studentId}")
async def update_profile(
    studentId: str,
    payload: ProfileUpdate,
    session: Optional[Session] = Depends(get_session),
):
    ensure_actor(session, studentId)
    db = get_db()
    _id = oid(studentId, "student")
    student = db["users"].find_one({"_id": _id})
    if not student:
        raise HTTPException(status_code=404, detail="Student not found!")

    changes: Dict[str, Any] = {}
    if payload.name and payload.name.strip():
        changes["name"] = payload.name.strip()
    if payload.email:
        email = payload.email.lower()
        if email != student["email"] and db["users"].find_one({"email": email}):
            raise HTTPException(status_code=400, detail="User already exists with this email!")
        changes["email"] = email

    if changes:
        db["users"].update_one({"_id": _id}, {"$set": changes})
        student.update(changes)

    return {
        "success": True,
        "message": "Profile updated successfully!",
        "student": user_summary(student),
    }
