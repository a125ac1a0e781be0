import logging
from typing import Any, Dict, Optional, Union
from datetime import datetime, timezone

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import HTTPException
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient

from config import DATABASE_URL, DATABASE_NAME

logger = logging.getLogger("database")

_client: Optional[MongoClient] = None
_db = None


def get_db():
    global _client, _db
    if _db is None:
        _client = MongoClient(DATABASE_URL)
        _db = _client[DATABASE_NAME]
        logger.info(f"Using MongoDB database '{DATABASE_NAME}'")
    return _db


def ensure_indexes(db) -> None:
    db["users"].create_index("email", unique=True)
    db["students"].create_index([("teacherId", ASCENDING), ("email", ASCENDING)], unique=True)
    db["settings"].create_index("teacherId", unique=True)
    db["connections"].create_index([("studentId", ASCENDING), ("teacherId", ASCENDING)])
    db["reports"].create_index([("studentId", ASCENDING), ("date", DESCENDING)])
    db["reports"].create_index([("teacherId", ASCENDING), ("date", DESCENDING)])


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def create_document(collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    db = get_db()
    if isinstance(data, BaseModel):
        data = data.model_dump()
    now = utcnow()
    data.setdefault("createdAt", now)
    data.setdefault("updatedAt", now)
    result = db[collection_name].insert_one(data)
    return str(result.inserted_id)


def oid(id_str: str, label: str = "") -> ObjectId:
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        raise HTTPException(status_code=400, detail=f"Invalid {label + ' ' if label else ''}ID!")


def serialize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not doc:
        return doc
    doc = dict(doc)
    if "_id" in doc:
        doc["id"] = str(doc.pop("_id"))
    for k, v in list(doc.items()):
        if isinstance(v, datetime):
            doc[k] = v.isoformat()
        elif isinstance(v, ObjectId):
            doc[k] = str(v)
    return doc
