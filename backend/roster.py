# allowed implies attendance
from typing import Any, Mapping, NamedTuple, Optional


class RosterGateError(ValueError):
    pass


class RosterState(NamedTuple):
    attendance: bool = False
    allowed: bool = False

    @classmethod
    def of(cls, doc: Mapping[str, Any]) -> "RosterState":
        attendance = bool(doc.get("attendance", False))
        return cls(attendance=attendance, allowed=attendance and bool(doc.get("allowed", False)))


def mark_attendance(state: RosterState, present: bool) -> RosterState:
    if not present:
        return RosterState(attendance=False, allowed=False)
    return RosterState(attendance=True, allowed=state.allowed)


def set_allowed(state: RosterState, allowed: bool) -> RosterState:
    if allowed and not state.attendance:
        raise RosterGateError("Cannot allow a student who is marked absent!")
    return RosterState(attendance=state.attendance, allowed=allowed)


def apply_gate(
    state: RosterState,
    attendance: Optional[bool] = None,
    allowed: Optional[bool] = None,
) -> RosterState:
    # attendance first, so {attendance: true, allowed: true} works in one request
    if attendance is not None:
        state = mark_attendance(state, attendance)
    if allowed is not None:
        state = set_allowed(state, allowed)
    return state
