from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import Header, HTTPException
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel

from config import ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES, SECRET_KEY
from schemas import Role

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class Session(BaseModel):
    uid: str
    email: str
    role: Role
    name: str = ""


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(password, hashed)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def session_token(user: Dict[str, Any]) -> str:
    return create_access_token({
        "sub": str(user["_id"]),
        "email": user["email"],
        "role": user["role"],
        "name": user.get("name", ""),
    })


def get_session(authorization: Optional[str] = Header(None)) -> Optional[Session]:
    # no header means an anonymous request; a bad token is still rejected
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(status_code=401, detail="Invalid authentication scheme")
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
    if payload.get("sub") is None or payload.get("role") not in ("Teacher", "Student"):
        raise HTTPException(status_code=401, detail="Invalid token")
    return Session(
        uid=payload["sub"],
        email=payload.get("email", ""),
        role=payload["role"],
        name=payload.get("name", ""),
    )


def ensure_actor(session: Optional[Session], user_id: Optional[str], role: Optional[str] = None) -> None:
    if session is None:
        return
    if role and session.role != role:
        raise HTTPException(status_code=403, detail=f"Only a {role} can do this!")
    if user_id is not None and session.uid != str(user_id):
        raise HTTPException(status_code=403, detail="You can only act on your own account!")
