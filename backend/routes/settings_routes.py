import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ValidationError
from pymongo.errors import DuplicateKeyError

from auth import Session, ensure_actor, get_session
from database import get_db, utcnow
from schemas import GeneralSettings, NotificationSettings, SecuritySettings, Settings

logger = logging.getLogger("settings_routes")

router = APIRouter(prefix="/api/settings", tags=["Settings"])

SECTIONS = {
    "general": GeneralSettings,
    "security": SecuritySettings,
    "notifications": NotificationSettings,
}


class SettingsUpdate(BaseModel):
    general: Optional[Dict[str, Any]] = None
    security: Optional[Dict[str, Any]] = None
    notifications: Optional[Dict[str, Any]] = None


def settings_payload(doc: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "general": doc["general"],
        "security": doc["security"],
        "notifications": doc["notifications"],
        "lastUpdated": doc.get("lastUpdated"),
    }


def load_settings(teacher_id: str) -> Dict[str, Any]:
    db = get_db()
    doc = db["settings"].find_one({"teacherId": teacher_id})
    if doc is None:
        try:
            db["settings"].insert_one(Settings(teacherId=teacher_id).model_dump())
            logger.info(f"Default settings created for teacher {teacher_id}")
        except DuplicateKeyError:
            logger.info(f"Settings for teacher {teacher_id} were created by a concurrent request")
        doc = db["settings"].find_one({"teacherId": teacher_id})
    return doc


def _save(teacher_id: str, sections: Dict[str, Any]) -> Dict[str, Any]:
    db = get_db()
    db["settings"].update_one(
        {"teacherId": teacher_id},
        {"$set": {**sections, "lastUpdated": utcnow()}},
        upsert=True,
    )
    return db["settings"].find_one({"teacherId": teacher_id})


@router.get("/teacher/{teacherId}")
async def get_settings(teacherId: str):
    return {"success": True, "settings": settings_payload(load_settings(teacherId))}


@router.put("/update/{teacherId}")
async def update_settings(
    teacherId: str,
    payload: SettingsUpdate,
    session: Optional[Session] = Depends(get_session),
):
    ensure_actor(session, teacherId, role="Teacher")
    current = load_settings(teacherId)

    merged = {}
    for name, model in SECTIONS.items():
        changes = getattr(payload, name)
        if changes:
            # validate the merged section so one bad field rejects the whole update
            try:
                merged[name] = model(**{**(current.get(name) or {}), **changes}).model_dump()
            except ValidationError as e:
                error = e.errors()[0]
                field = ".".join(str(p) for p in error["loc"])
                raise HTTPException(status_code=400, detail=f"{name}.{field}: {error['msg']}")

    doc = _save(teacherId, merged)
    logger.info(f"Settings updated for teacher {teacherId}: {sorted(merged)}")
    return {"success": True, "message": "Settings updated successfully!", "settings": settings_payload(doc)}


@router.post("/reset/{teacherId}")
async def reset_settings(teacherId: str, session: Optional[Session] = Depends(get_session)):
    ensure_actor(session, teacherId, role="Teacher")
    defaults = Settings(teacherId=teacherId).model_dump(include=set(SECTIONS))
    doc = _save(teacherId, defaults)
    logger.info(f"Settings reset for teacher {teacherId}")
    return {"success": True, "message": "Settings reset to defaults successfully!", "settings": settings_payload(doc)}
