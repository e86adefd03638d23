"""
Audit Log
=========
Append-only, per-record sequence of access events.

An entry records a caller's claim that an access with a given outcome took
place; it is evidence, not enforcement, so denied and failed attempts are
logged the same way as successful ones.
"""

from typing import Tuple

from core.exceptions import InvalidInputError
from core.models import AccessEvent, EventType

from .guards import require_record, require_registered
from .state import LedgerState


def log_event(
    state: LedgerState,
    caller: str,
    record_id: str,
    actor: str,
    success: bool,
    action: str,
    now: int,
) -> AccessEvent:
    """
    Append an access event to a record's log.

    Raises:
        UnknownPrincipalError: Caller is not registered.
        RecordNotFoundError: Record does not exist.
        InvalidInputError: Actor or action is empty.
    """
    require_registered(state, caller)
    require_record(state, record_id)
    if not isinstance(actor, str) or not actor.strip():
        raise InvalidInputError("actor", "must be a non-empty string")
    if not isinstance(action, str) or not action.strip():
        raise InvalidInputError("action", "must be a non-empty string")

    event = AccessEvent(
        record_id=record_id,
        actor=actor,
        success=bool(success),
        action=action,
        timestamp=now,
        logged_by=caller,
    )
    position = state.append_access_event(event)
    state.emit(
        EventType.ACCESS_EVENT,
        now,
        actor=actor,
        record_id=record_id,
        success=event.success,
        action=action,
        position=position,
        logged_by=caller,
    )
    return event


def get_log(state: LedgerState, record_id: str) -> Tuple[AccessEvent, ...]:
    require_record(state, record_id)
    return state.access_logs[record_id].snapshot()
