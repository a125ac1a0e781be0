# pending -> approved | rejected
from typing import Any, Iterable, Literal, Mapping, Optional

PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"

ACTIVE_STATUSES = (PENDING, APPROVED)

Action = Literal["approve", "reject"]


class ConnectionStateError(ValueError):
    pass


def request_conflict(existing: Iterable[Mapping[str, Any]]) -> Optional[str]:
    statuses = {doc.get("status") for doc in existing}
    if PENDING in statuses:
        return "Connection request already sent!"
    if APPROVED in statuses:
        return "Student is already linked!"
    return None


def resolve(status: str, action: Action) -> str:
    if status != PENDING:
        raise ConnectionStateError(f"Request has already been {status}!")
    return APPROVED if action == "approve" else REJECTED
